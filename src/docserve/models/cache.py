from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, model_validator


class LinkState(StrEnum):
    PENDING = "pending"  # fetch started, no verdict yet
    VALID = "valid"
    INVALID = "invalid"


class LinkRecord(BaseModel):
    """Memoized verdict for one external link. Lives for the whole process."""

    url: str
    state: LinkState = LinkState.PENDING
    checked_at: datetime
    status_code: int = -1  # -1 until a response was received
    error: str = ""

    @model_validator(mode="after")
    def _error_iff_invalid(self) -> LinkRecord:
        if (self.state is LinkState.INVALID) != bool(self.error):
            raise ValueError("error text must be set exactly when the link is invalid")
        return self

    @property
    def ok(self) -> bool:
        return self.state is not LinkState.INVALID


class IncludeRecord(BaseModel):
    """Last observed modification time of one include file."""

    path: str  # store key, e.g. "/en/include_footer.asciidoc"
    mtime: float | None = None  # None while the file cannot be resolved
    checked_at: datetime

    @property
    def missing(self) -> bool:
        return self.mtime is None
