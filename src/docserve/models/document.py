from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from docserve.errors import DiagnosticKind

if TYPE_CHECKING:
    from bs4 import Tag

_SERVED_PATH_RE = re.compile(r"^(?:/last_change)?/latest/([a-z]{2})/([0-9A-Za-z._-]+)\.html$")


@dataclass(frozen=True)
class DocumentKey:
    """Language + source path of one logical document, e.g. ``en`` / ``agent_linux.asciidoc``."""

    language: str
    path: str

    @classmethod
    def from_served_path(cls, served_path: str) -> DocumentKey | None:
        """Parse ``/latest/<lang>/<name>.html`` (optionally under ``/last_change``)."""
        match = _SERVED_PATH_RE.match(served_path.strip())
        if match is None:
            return None
        return cls(language=match.group(1), path=f"{match.group(2)}.asciidoc")

    @property
    def stem(self) -> str:
        return self.path.removesuffix(".asciidoc")

    @property
    def source_key(self) -> str:
        return f"/{self.language}/{self.path}"

    @property
    def html_key(self) -> str:
        return f"/{self.language}/{self.stem}.html"

    @property
    def served_path(self) -> str:
        return f"/latest/{self.language}/{self.stem}.html"

    @property
    def is_menu(self) -> bool:
        return self.path == "menu.asciidoc"

    @property
    def is_index(self) -> bool:
        return self.path == "index.asciidoc"

    def with_language(self, language: str) -> DocumentKey:
        return DocumentKey(language=language, path=self.path)

    def __str__(self) -> str:
        return self.source_key


class EntryState(StrEnum):
    FRESH = "fresh"
    STALE = "stale"
    REBUILDING = "rebuilding"


class NodeKind(StrEnum):
    HEADING = "heading"
    IMAGE = "image"
    INLINE_IMAGE = "inline_image"
    PARAGRAPH = "paragraph"
    TABLE = "table"
    UNORDERED_LIST = "unordered_list"
    ORDERED_LIST = "ordered_list"
    CODE_LISTING = "code_listing"
    # Placeholder produced by diff() when one fingerprint is shorter.
    EMPTY = "empty"


@dataclass(frozen=True)
class StructuralNode:
    """One element of a structural fingerprint."""

    kind: NodeKind
    trait: str | int | None = None
    level: int | None = None  # heading level, None for everything else
    element: Tag | None = field(default=None, compare=False, repr=False)

    @classmethod
    def empty(cls) -> StructuralNode:
        return cls(kind=NodeKind.EMPTY)

    @property
    def tag(self) -> str:
        if self.kind is NodeKind.HEADING and self.level is not None:
            return f"h{self.level}"
        return self.kind.value

    @property
    def signature(self) -> tuple[str, str]:
        """What diff() compares: tag and trait in string form (None as "")."""
        return self.tag, "" if self.trait is None else str(self.trait)

    def to_html(self) -> str:
        if self.element is None:
            return "<b>Empty</b>"
        return str(self.element)

    def __str__(self) -> str:
        return " ".join(self.signature)


StructuralFingerprint = tuple[StructuralNode, ...]


@dataclass(frozen=True)
class DiagnosticReport:
    """Everything found wrong with one render. Created fresh on every render."""

    renderer_errors: tuple[str, ...] = ()
    broken_links: dict[str, str] = field(default_factory=dict)
    missing_includes: tuple[str, ...] = ()
    misspelled: tuple[str, ...] = ()
    structure_mismatch: tuple[StructuralNode, StructuralNode] | None = None
    unsafe_code_blocks: tuple[str, ...] = ()

    @property
    def counts(self) -> dict[DiagnosticKind, int]:
        return {
            DiagnosticKind.RENDERER: len(self.renderer_errors),
            DiagnosticKind.LINK: len(self.broken_links),
            DiagnosticKind.MISSING_INCLUDE: len(self.missing_includes),
            DiagnosticKind.SPELLING: len(self.misspelled),
            DiagnosticKind.STRUCTURE_MISMATCH: 0 if self.structure_mismatch is None else 1,
            DiagnosticKind.UNSAFE_CODE_BLOCK: len(self.unsafe_code_blocks),
        }

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def is_empty(self) -> bool:
        return self.total == 0


@dataclass(frozen=True)
class RenderedOutput:
    html: str
    report: DiagnosticReport
    csv_line: str | None = None  # side output for errors.csv
    html_row: str | None = None  # side output for errors.html
