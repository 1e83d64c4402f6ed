# This project was developed with assistance from AI tools.
"""GoHighLevel contact notification.

After each run the applicant's CRM contact is created or updated with the
analyzer outcome and the letter download links. Failures are logged and
reported back to the caller; they never fail the request.
"""

import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field

from ..core.config import Settings
from ..schemas.errors import ErrorKind

logger = logging.getLogger(__name__)

API_VERSION = "2021-07-28"
CONTACT_SOURCE = "UnderwriteIQ Analyzer"
CONTACT_TAGS = ["underwriteiq", "credit-analyzer"]


class CrmContact(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    business_age_months: float | None = None
    result_type: str | None = None
    credit_score: int | None = None
    total_funding: float | None = None
    ref_id: str | None = None


class CrmResult(BaseModel):
    ok: bool
    contact_id: str | None = None
    created: bool = False
    error: ErrorKind | None = None
    detail: str | None = None
    fields_sent: list[str] = Field(default_factory=list)


def build_custom_fields(contact: CrmContact, extra: dict[str, str] | None = None) -> list[dict]:
    """GHL ``customFields`` entries for the contact and letter fields."""
    fields: list[dict[str, str]] = []
    if contact.business_age_months is not None:
        fields.append({"key": "business_age_months", "field_value": str(contact.business_age_months)})
    if contact.result_type:
        fields.append({"key": "analyzer_result_type", "field_value": contact.result_type})
    if contact.credit_score:
        fields.append({"key": "credit_score", "field_value": str(contact.credit_score)})
    if contact.total_funding:
        fields.append(
            {"key": "total_funding_estimate", "field_value": str(round(contact.total_funding))}
        )
    if contact.ref_id:
        fields.append({"key": "referral_id", "field_value": contact.ref_id})
    for key, value in (extra or {}).items():
        fields.append({"key": key, "field_value": value})
    return fields


class CrmClient:
    """Upserts contacts through the GHL REST API."""

    def __init__(
        self,
        api_key: str,
        location_id: str,
        base_url: str = "https://services.leadconnectorhq.com",
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._location_id = location_id
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Version": API_VERSION,
                "Accept": "application/json",
            },
        )

    async def find_contact_by_email(self, email: str) -> dict | None:
        if not email:
            return None
        resp = await self._client.get(
            "/contacts/",
            params={"locationId": self._location_id, "query": email},
        )
        resp.raise_for_status()
        contacts = resp.json().get("contacts") or []
        target = email.lower()
        return next(
            (c for c in contacts if str(c.get("email") or "").lower() == target),
            None,
        )

    async def upsert_contact(
        self,
        contact: CrmContact,
        letter_fields: dict[str, str] | None = None,
    ) -> CrmResult:
        """Create the contact, or update it when the email already exists."""
        payload: dict[str, Any] = {
            "firstName": contact.first_name,
            "lastName": contact.last_name,
            "email": contact.email,
            "phone": contact.phone,
            "source": CONTACT_SOURCE,
            "tags": CONTACT_TAGS,
        }
        custom_fields = build_custom_fields(contact, letter_fields)
        if custom_fields:
            payload["customFields"] = custom_fields
        sent = [f["key"] for f in custom_fields]

        try:
            existing = await self.find_contact_by_email(contact.email)
            if existing:
                contact_id = str(existing.get("id"))
                resp = await self._client.put(f"/contacts/{contact_id}", json=payload)
                resp.raise_for_status()
                logger.info("CRM contact updated (%d custom fields)", len(sent))
                return CrmResult(ok=True, contact_id=contact_id, fields_sent=sent)

            resp = await self._client.post(
                "/contacts/",
                json={**payload, "locationId": self._location_id},
            )
            resp.raise_for_status()
            body = resp.json()
            created = body.get("contact") or body
            logger.info("CRM contact created (%d custom fields)", len(sent))
            return CrmResult(
                ok=True,
                contact_id=created.get("id"),
                created=True,
                fields_sent=sent,
            )
        except httpx.HTTPStatusError as exc:
            logger.error("CRM request failed with HTTP %s", exc.response.status_code)
            return CrmResult(
                ok=False,
                error=ErrorKind.CRM_UNREACHABLE,
                detail=f"HTTP {exc.response.status_code}",
                fields_sent=sent,
            )
        except httpx.HTTPError as exc:
            logger.exception("CRM request failed")
            return CrmResult(
                ok=False,
                error=ErrorKind.CRM_UNREACHABLE,
                detail=str(exc),
                fields_sent=sent,
            )
        except (ValueError, AttributeError) as exc:
            # Non-JSON body, or JSON that isn't the expected object
            logger.exception("CRM returned an unreadable response")
            return CrmResult(
                ok=False,
                error=ErrorKind.CRM_UNREACHABLE,
                detail=f"Unreadable CRM response: {type(exc).__name__}",
                fields_sent=sent,
            )

    async def aclose(self) -> None:
        await self._client.aclose()


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_client: CrmClient | None = None


def init_crm_client(cfg: Settings) -> CrmClient | None:
    """Initialise the singleton (called once from app lifespan)."""
    global _client  # noqa: PLW0603
    if not cfg.GHL_PRIVATE_API_KEY or not cfg.GHL_LOCATION_ID:
        logger.warning("GHL not configured, CRM notifications disabled")
        _client = None
        return None
    _client = CrmClient(cfg.GHL_PRIVATE_API_KEY, cfg.GHL_LOCATION_ID, base_url=cfg.GHL_API_BASE)
    logger.info("CrmClient initialised")
    return _client


def get_crm_client() -> CrmClient | None:
    """Return the CrmClient singleton, or None when the CRM is not configured."""
    return _client
