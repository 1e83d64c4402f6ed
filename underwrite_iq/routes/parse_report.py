# This project was developed with assistance from AI tools.
"""POST /parse-report -- extraction and classification of a single PDF."""

import asyncio
import logging

from fastapi import APIRouter, Depends, File, UploadFile

from ..schemas.errors import FailureResponse
from ..services.extraction import ExtractionService, get_extraction_service
from ..services.ingestion import ingest_report
from ..services.upload_validation import UploadCandidate, validate_uploads

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/parse-report")
async def parse_report(
    file: UploadFile = File(...),
    extraction: ExtractionService = Depends(get_extraction_service),
) -> dict:
    """Extract per-bureau data from one report without underwriting it."""
    candidate = UploadCandidate(
        filename=file.filename or "report.pdf",
        content_type=file.content_type or "",
        data=await file.read(),
    )
    # pymupdf sniffing is blocking
    loop = asyncio.get_running_loop()
    validation = await loop.run_in_executor(None, validate_uploads, [candidate])
    if not validation.ok:
        return FailureResponse(
            reason=validation.error,
            msg=validation.msg,
            stage="validate",
            filename=validation.filename,
        ).model_dump(mode="json")

    result = await extraction.extract(candidate.data, candidate.safe_name)
    if not result.ok:
        return FailureResponse(
            reason=result.error,
            msg=result.reason,
            stage="extract",
            filename=candidate.safe_name,
        ).model_dump(mode="json")

    ingestion = ingest_report(result.text, result.bureaus, candidate.data)
    return {
        "ok": True,
        "bureaus": {key: record.to_wire() for key, record in ingestion.bureaus.items()},
        "meta": {
            **result.meta(),
            "filename": candidate.safe_name,
            "source_type": ingestion.source_type.value,
            "merged_document_id": ingestion.merged_document_id,
            "warnings": ingestion.warnings,
        },
    }
