# This project was developed with assistance from AI tools.
"""POST /switchboard -- the full analyzer pipeline."""

import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ..schemas.errors import ErrorKind, FailureResponse
from ..services.intake_validation import sanitize_form
from ..services.switchboard import Stage, Switchboard, get_switchboard
from ..services.upload_validation import UploadCandidate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/switchboard")
async def switchboard(
    file: list[UploadFile] | None = File(default=None),
    email: str = Form(default=""),
    phone: str = Form(default=""),
    first_name: str = Form(default="", alias="firstName"),
    last_name: str = Form(default="", alias="lastName"),
    device_id: str | None = Form(default=None, alias="deviceId"),
    business_age_months: str | None = Form(default=None, alias="businessAgeMonths"),
    force_reprocess: str | None = Form(default=None, alias="forceReprocess"),
    ref_id: str | None = Form(default=None, alias="refId"),
    pipeline: Switchboard = Depends(get_switchboard),
) -> dict:
    """Upload 1-3 credit report PDFs and get the result redirect.

    Always answers 200; ``ok`` tells the front end whether to redirect.
    """
    form, error = sanitize_form(
        first_name,
        last_name,
        email,
        phone,
        device_id=device_id,
        ref_id=ref_id,
        business_age_months=business_age_months,
        force_reprocess=force_reprocess,
    )
    if form is None:
        logger.info("Switchboard rejected form input")
        return FailureResponse(
            reason=ErrorKind.INVALID_INPUT,
            msg=error,
            stage=Stage.RECEIVED.value,
        ).model_dump(mode="json")

    candidates = [
        UploadCandidate(
            filename=f.filename or "report.pdf",
            content_type=f.content_type or "",
            data=await f.read(),
        )
        for f in file or []
    ]
    result = await pipeline.run(form, candidates)
    return result.model_dump(mode="json")
