# This project was developed with assistance from AI tools.
"""Form field validators called by the front end before upload."""

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from ..schemas import OkResponse
from ..services.intake_validation import validate_email, validate_name, validate_phone

router = APIRouter()


class NameRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")


class EmailRequest(BaseModel):
    email: str = ""


class PhoneRequest(BaseModel):
    phone: str = ""


class ValidationResponse(OkResponse):
    msg: str | None = None
    normalized: str | None = None


@router.post("/validate-name", response_model=ValidationResponse, response_model_exclude_none=True)
async def check_name(body: NameRequest) -> ValidationResponse:
    ok, error, _ = validate_name(body.first_name, body.last_name)
    return ValidationResponse(ok=ok, error=error or None)


@router.post("/validate-email", response_model=ValidationResponse, response_model_exclude_none=True)
async def check_email(body: EmailRequest) -> ValidationResponse:
    ok, error, _ = validate_email(body.email)
    return ValidationResponse(ok=ok, error=error or None)


@router.post("/validate-phone", response_model=ValidationResponse, response_model_exclude_none=True)
async def check_phone(body: PhoneRequest) -> ValidationResponse:
    ok, error, normalized = validate_phone(body.phone)
    if not ok:
        return ValidationResponse(ok=False, msg=error)
    return ValidationResponse(ok=True, normalized=normalized)
