# This project was developed with assistance from AI tools.
"""Field-level validation for applicant intake.

Pure functions that validate and normalize the identity fields collected on
the upload form. Each validator returns ``(ok, error, normalized)``.
"""

import math
import re

from pydantic import BaseModel

MAX_NAME_LENGTH = 100
MAX_EMAIL_LENGTH = 254
MAX_DEVICE_ID_LENGTH = 100
MAX_REF_ID_LENGTH = 100
MAX_BUSINESS_AGE_MONTHS = 1200

BLOCKED_EMAIL_DOMAINS = {
    "test.com",
    "example.com",
    "fake.com",
    "asdf.com",
    "mailinator.com",
    "tempmail.com",
    "throwaway.com",
}

# Unicode letters plus space, hyphen and apostrophe
_NAME_RE = re.compile(r"^(?:[^\W\d_]|[ '\-])+$")
_EMAIL_RE = re.compile(r"^[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}$")
_HTML_TAG_RE = re.compile(r"<[^>]*>")
_DEVICE_ID_RE = re.compile(r"[^A-Za-z0-9-]")
_REF_ID_RE = re.compile(r"[^A-Za-z0-9_-]")
_TRUE_STRINGS = {"true", "1", "yes", "on"}


def validate_name(first: str | None, last: str | None) -> tuple[bool, str, str | None]:
    """Both parts required; letters, spaces, hyphens, and apostrophes only."""
    first = (first or "").strip()
    last = (last or "").strip()
    if not first or not last:
        return False, "First and last name are required.", None
    for part in (first, last):
        if len(part) > MAX_NAME_LENGTH:
            return False, "Name is too long.", None
        if not _NAME_RE.fullmatch(part):
            return False, "Names may only contain letters, spaces, hyphens, and apostrophes.", None
    return True, "", f"{first} {last}"


def validate_email(value: str | None) -> tuple[bool, str, str | None]:
    """Format check plus a blocklist of throwaway domains."""
    value = (value or "").strip().lower()
    if not value:
        return False, "Email is required.", None
    if len(value) > MAX_EMAIL_LENGTH or not _EMAIL_RE.fullmatch(value):
        return False, "Please enter a valid email address.", None
    if value.rsplit("@", 1)[1] in BLOCKED_EMAIL_DOMAINS:
        return False, "Please use a real email address.", None
    return True, "", value


def validate_phone(value: str | None) -> tuple[bool, str, str | None]:
    """10 to 15 digits after stripping formatting."""
    digits = re.sub(r"\D", "", (value or "").strip())
    if len(digits) < 10 or len(digits) > 15:
        return False, "Please enter a valid phone number.", None
    return True, "", digits


def _clean_token(value: str | None, pattern: re.Pattern, max_len: int) -> str | None:
    cleaned = pattern.sub("", _HTML_TAG_RE.sub("", value or "")).strip()
    return cleaned[:max_len] or None


def parse_business_age(value: str | None) -> tuple[bool, str, float | None]:
    raw = (value or "").strip()
    if not raw:
        return True, "", None
    try:
        months = float(raw)
    except ValueError:
        return False, "Business age must be a number of months.", None
    if not math.isfinite(months):
        return False, "Business age must be a number of months.", None
    if months < 0 or months > MAX_BUSINESS_AGE_MONTHS:
        return False, "Business age is out of range.", None
    return True, "", months


def parse_flag(value: str | bool | None) -> bool:
    if isinstance(value, bool):
        return value
    return (value or "").strip().lower() in _TRUE_STRINGS


class IntakeForm(BaseModel):
    """Sanitized /switchboard form fields."""

    first_name: str
    last_name: str
    email: str
    phone: str
    device_id: str | None = None
    ref_id: str | None = None
    business_age_months: float | None = None
    force_reprocess: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


def sanitize_form(
    first_name: str | None,
    last_name: str | None,
    email: str | None,
    phone: str | None,
    device_id: str | None = None,
    ref_id: str | None = None,
    business_age_months: str | None = None,
    force_reprocess: str | bool | None = None,
) -> tuple[IntakeForm | None, str]:
    """Validate every form field; return the form or the first error."""
    ok, error, _ = validate_name(first_name, last_name)
    if not ok:
        return None, error
    ok, error, clean_email = validate_email(email)
    if not ok:
        return None, error
    ok, error, clean_phone = validate_phone(phone)
    if not ok:
        return None, error
    ok, error, age = parse_business_age(business_age_months)
    if not ok:
        return None, error

    form = IntakeForm(
        first_name=(first_name or "").strip(),
        last_name=(last_name or "").strip(),
        email=clean_email,
        phone=clean_phone,
        device_id=_clean_token(device_id, _DEVICE_ID_RE, MAX_DEVICE_ID_LENGTH),
        ref_id=_clean_token(ref_id, _REF_ID_RE, MAX_REF_ID_LENGTH),
        business_age_months=age,
        force_reprocess=parse_flag(force_reprocess),
    )
    return form, ""
