from __future__ import annotations

from docserve.models.cache import IncludeRecord, LinkRecord, LinkState
from docserve.models.document import (
    DiagnosticReport,
    DocumentKey,
    EntryState,
    NodeKind,
    RenderedOutput,
    StructuralFingerprint,
    StructuralNode,
)

__all__ = [
    # cache
    "IncludeRecord",
    "LinkRecord",
    "LinkState",
    # document
    "DiagnosticReport",
    "DocumentKey",
    "EntryState",
    "NodeKind",
    "RenderedOutput",
    "StructuralFingerprint",
    "StructuralNode",
]
