"""Anchor extraction and cross-document anchor resolution."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog

from docserve.markup import parse

if TYPE_CHECKING:
    from docserve.document import DocumentCacheEntry
    from docserve.models.document import DocumentKey

log = structlog.get_logger()

# Prefix asciidoctor uses for ids it generates from section titles.
AUTO_ID_PREFIX = "_"
HEADING_ID_PREFIX = "heading_"


def extract_anchors(html: str) -> list[str]:
    """Return the ids of the hidden anchor spans, de-duplicated in document order."""
    soup = parse(html)
    anchors: dict[str, None] = {}
    for span in soup.select("span.hidden-anchor.sr-only"):
        anchor_id = span.get("id")
        if anchor_id:
            anchors[str(anchor_id)] = None
    return list(anchors)


def find_element_id(html: str, anchor: str) -> bool:
    """True if any element carries ``id=anchor`` or ``id=heading_<anchor>``.

    Covers anchors assigned by the renderer that the hidden-span pass misses.
    """
    soup = parse(html)
    return (
        soup.find(id=anchor) is not None
        or soup.find(id=f"{HEADING_ID_PREFIX}{anchor}") is not None
    )


def is_forbidden_anchor(anchor: str) -> bool:
    return anchor.startswith(AUTO_ID_PREFIX)


EntryLookup = Callable[["DocumentKey"], "DocumentCacheEntry | None"]


class AnchorIndex:
    """Answers "does document D contain anchor A".

    The target document is looked up through the Build Cache and brought up to
    date with ``ensure_fresh()`` before checking. Targets are rendered but never
    link-checked, so documents that reference each other cannot recurse.
    """

    def __init__(self, lookup: EntryLookup) -> None:
        self._lookup = lookup

    async def has_anchor(self, key: DocumentKey, anchor: str, depth: int) -> bool:
        # Depth exhausted: treated as valid. This can hide genuinely broken
        # anchors in deep reference chains.
        if depth < 1:
            log.debug("anchor_check_skipped", document=str(key), anchor=anchor, depth=depth)
            return True

        entry = self._lookup(key)
        if entry is None:
            return False
        await entry.ensure_fresh()

        if anchor in entry.anchors():
            return True
        found = find_element_id(entry.html, anchor)
        log.debug("anchor_id_lookup", document=str(key), anchor=anchor, found=found)
        return found
