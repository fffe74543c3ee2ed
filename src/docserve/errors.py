from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    SOURCE_NOT_FOUND = "SOURCE_NOT_FOUND"
    RENDER_FAILED = "RENDER_FAILED"
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"
    CONFIG_INVALID = "CONFIG_INVALID"


class DiagnosticKind(StrEnum):
    """Categories collected into a DiagnosticReport. Never raised."""

    RENDERER = "renderer"
    LINK = "link"
    MISSING_INCLUDE = "missing_include"
    SPELLING = "spelling"
    STRUCTURE_MISMATCH = "structure_mismatch"
    UNSAFE_CODE_BLOCK = "unsafe_code_block"


class DocserveError(Exception):
    """Raised by components for all expected failure conditions.

    Renderer and source failures are caught at the DocumentCacheEntry boundary
    and turned into renderer diagnostics; a broken document is served with
    errors, never turned into an outage. ``DOCUMENT_NOT_FOUND`` is caught by
    server.py and answered with a 404. ``CONFIG_INVALID`` aborts startup.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str = "",
        details: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details  # e.g. the renderer output explaining a failure

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "details": list(self.details),
            }
        }
