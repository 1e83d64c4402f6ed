# This project was developed with assistance from AI tools.
"""Shared schema components."""

from pydantic import BaseModel


class OkResponse(BaseModel):
    """Minimal ``{ok, error?}`` body used by the field validators."""

    ok: bool
    error: str | None = None
