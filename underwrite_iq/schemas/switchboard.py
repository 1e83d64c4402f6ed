# This project was developed with assistance from AI tools.
"""Switchboard request/response schemas."""

import enum

from pydantic import BaseModel, ConfigDict, Field

from .bureau import SlotRejection
from .underwrite import UnderwriteResult


class ResultType(str, enum.Enum):
    FUNDING = "funding"
    REPAIR = "repair"


class LetterPath(str, enum.Enum):
    REPAIR = "repair"
    FUNDABLE = "fundable"


class Suggestions(BaseModel):
    web_summary: str = ""
    email_summary: str = ""
    actions: list[str] = Field(default_factory=list)
    au_actions: list[str] = Field(default_factory=list)


class SuggestionItem(BaseModel):
    title: str
    description: str


class RedirectPayload(BaseModel):
    """What the front end needs to send the user to their result page.

    Persisted verbatim in the dedupe cache.
    """

    model_config = ConfigDict(populate_by_name=True)

    result_type: ResultType = Field(alias="resultType")
    result_url: str = Field(alias="resultUrl")
    query: dict[str, int] = Field(default_factory=dict)
    suggestions: list[SuggestionItem] = Field(default_factory=list)
    last_upload: str = Field(alias="lastUpload")
    days_remaining: int = Field(default=30, alias="daysRemaining")
    ref_id: str | None = Field(default=None, alias="refId")
    affiliate_link: str | None = Field(default=None, alias="affiliateLink")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class LetterSummary(BaseModel):
    path: LetterPath
    generated: int = 0
    uploaded: int = 0
    failed: int = 0
    urls: dict[str, str] = Field(default_factory=dict)


class SwitchboardResult(BaseModel):
    """Successful (possibly degraded) /switchboard response body."""

    ok: bool = True
    deduped: bool = False
    fallback: bool = False
    bureaus: dict[str, dict] = Field(default_factory=dict)
    rejected: list[SlotRejection] = Field(default_factory=list)
    underwrite: UnderwriteResult
    suggestions: Suggestions
    cards: list[str] = Field(default_factory=list)
    redirect: dict
    letters: LetterSummary
    warnings: list[str] = Field(default_factory=list)


class DedupeHitResponse(BaseModel):
    ok: bool = True
    deduped: bool = True
    source: str
    redirect: dict
