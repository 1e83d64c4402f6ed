# This project was developed with assistance from AI tools.
"""S3-compatible blob storage for generated letters.

Uses boto3 synchronous client run in a thread-pool executor for async
compatibility. The module exposes a singleton initialised at app startup
via ``init_storage_service()``; it stays ``None`` when no storage secret is
configured, and every upload then fails with a recorded error.
"""

import asyncio
import logging
import os
from datetime import UTC, datetime, timedelta
from functools import partial

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ConfigDict, Field

from ..core.config import Settings
from ..schemas.switchboard import LetterPath
from .letters import Letter

logger = logging.getLogger(__name__)

# Presigned letter links stay valid for 72 hours
URL_EXPIRATION_SECONDS = 72 * 60 * 60
UPLOAD_TIMEOUT_SECONDS = 30
NOT_CONFIGURED = "Blob storage not configured"


class UploadError(BaseModel):
    filename: str
    error: str


class UploadSummary(BaseModel):
    """Best-effort outcome of uploading a letter set."""

    model_config = ConfigDict(populate_by_name=True)

    ok: bool
    uploaded_count: int = Field(default=0, alias="uploadedCount")
    failed_count: int = Field(default=0, alias="failedCount")
    urls: dict[str, str] = Field(default_factory=dict)
    errors: list[UploadError] = Field(default_factory=list)
    expires_at: str | None = Field(default=None, alias="expiresAt")


class StorageService:
    """Thin wrapper around a boto3 S3 client."""

    def __init__(
        self,
        endpoint: str | None,
        access_key: str,
        secret_key: str,
        bucket: str,
        region: str = "us-east-1",
    ):
        self._bucket = bucket
        self._client = boto3.client(
            "s3",
            endpoint_url=endpoint,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            config=BotoConfig(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
            ),
        )

    async def upload_file(
        self,
        file_data: bytes,
        object_key: str,
        content_type: str = "application/pdf",
    ) -> str:
        """Upload bytes to S3 and return the object key.

        Keys are deterministic, so re-uploading a letter overwrites it.
        """
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None,
            partial(
                self._client.put_object,
                Bucket=self._bucket,
                Key=object_key,
                Body=file_data,
                ContentType=content_type,
            ),
        )
        return object_key

    async def get_download_url(
        self,
        object_key: str,
        expires_in: int = URL_EXPIRATION_SECONDS,
    ) -> str:
        """Return a presigned GET URL for the given object key."""
        loop = asyncio.get_running_loop()
        url: str = await loop.run_in_executor(
            None,
            partial(
                self._client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self._bucket, "Key": object_key},
                ExpiresIn=expires_in,
            ),
        )
        return url

    async def upload_letter(self, letter: Letter, folder: str) -> str:
        """Upload one letter and return its time-limited download URL."""
        key = self.build_object_key(folder, letter.filename)
        await asyncio.wait_for(
            self.upload_file(letter.data, key, "application/pdf"),
            timeout=UPLOAD_TIMEOUT_SECONDS,
        )
        return await self.get_download_url(key)

    @staticmethod
    def build_object_key(folder: str, filename: str) -> str:
        """Build the object key: letters/{folder}/{filename}.

        Strips path components to prevent path traversal.
        """
        safe_folder = os.path.basename(folder.strip("/")) or "anonymous"
        safe_name = os.path.basename(filename) or "letter.pdf"
        return f"letters/{safe_folder}/{safe_name}"


def _url_key(filename: str) -> str:
    return filename[:-4] if filename.endswith(".pdf") else filename


async def upload_all(
    letters: list[Letter],
    folder: str,
    service: StorageService | None,
) -> UploadSummary:
    """Upload every letter concurrently; failures are recorded, never raised."""
    if service is None:
        logger.warning("Blob storage not configured, skipping %d letter uploads", len(letters))
        return UploadSummary(
            ok=False,
            failed_count=len(letters),
            errors=[UploadError(filename=lt.filename, error=NOT_CONFIGURED) for lt in letters],
        )

    async def _one(letter: Letter) -> tuple[Letter, str | None, str | None]:
        try:
            return letter, await service.upload_letter(letter, folder), None
        except TimeoutError:
            logger.error("Upload timed out: %s", letter.filename)
            return letter, None, f"Upload timeout after {UPLOAD_TIMEOUT_SECONDS}s"
        except (BotoCoreError, ClientError) as exc:
            logger.exception("Letter upload failed: %s", letter.filename)
            return letter, None, str(exc)

    results = await asyncio.gather(*(_one(lt) for lt in letters))

    urls: dict[str, str] = {}
    errors: list[UploadError] = []
    for letter, url, error in results:
        if url:
            urls[_url_key(letter.filename)] = url
        else:
            errors.append(UploadError(filename=letter.filename, error=error or "upload failed"))

    expires_at = (datetime.now(UTC) + timedelta(seconds=URL_EXPIRATION_SECONDS)).isoformat()
    summary = UploadSummary(
        ok=not errors,
        uploaded_count=len(urls),
        failed_count=len(errors),
        urls=urls,
        errors=errors,
        expires_at=expires_at if urls else None,
    )
    logger.info(
        "Uploaded %d/%d letters to %s", summary.uploaded_count, len(letters), folder
    )
    return summary


def map_urls_to_crm_fields(urls: dict[str, str], path: LetterPath | str) -> dict[str, str]:
    """Translate uploaded letter URLs into CRM custom field names.

    Only URLs that are non-empty strings are mapped; the status fields are
    always present.
    """
    path = LetterPath(path)
    fields: dict[str, str] = {}

    for prefix in ("ex", "eq", "tu"):
        if path == LetterPath.REPAIR:
            sources = {f"{prefix}_round{r}": f"repair_letter_round_{r}_{prefix}" for r in (1, 2, 3)}
            sources[f"personal_info_{prefix}"] = f"repair_letter_personal_info_{prefix}"
        else:
            sources = {
                f"inquiry_{prefix}": f"funding_letter_inquiry_{prefix}",
                f"personal_info_{prefix}": f"funding_letter_personal_info_{prefix}",
            }
        for source, field in sources.items():
            url = urls.get(source)
            if isinstance(url, str) and url:
                fields[field] = url

    fields["analyzer_path"] = path.value
    fields["letters_ready"] = "true"
    fields["analyzer_status"] = "complete"
    return fields


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_service: StorageService | None = None


def init_storage_service(cfg: Settings) -> StorageService | None:
    """Initialise the singleton (called once from app lifespan)."""
    global _service  # noqa: PLW0603
    if not cfg.BLOB_READ_WRITE_TOKEN:
        logger.warning("BLOB_READ_WRITE_TOKEN not configured, letter uploads disabled")
        _service = None
        return None
    _service = StorageService(
        endpoint=cfg.BLOB_ENDPOINT,
        access_key=cfg.BLOB_ACCESS_KEY_ID,
        secret_key=cfg.BLOB_READ_WRITE_TOKEN,
        bucket=cfg.BLOB_BUCKET,
        region=cfg.BLOB_REGION,
    )
    logger.info("StorageService initialised (bucket=%s)", cfg.BLOB_BUCKET)
    return _service


def get_storage_service() -> StorageService | None:
    """Return the StorageService singleton, or None when storage is not configured."""
    return _service
