"""Include dependency tracking.

A document is stale when its source or any of its includes changed after the
last render. Include directives and the two comment markers (IGNORE word lists
and NONASCII exemptions) are read from the source in a single pass.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from docserve.models.cache import IncludeRecord

if TYPE_CHECKING:
    from docserve.protocols import SourceStore

log = structlog.get_logger()

_INCLUDE_RE = re.compile(r"include::(.*?)\[")
_IGNORE_RE = re.compile(r"//\s*IGNORE")
_NONASCII_RE = re.compile(r"//\s*NONASCII")

# Layout files that drive index pages without being explicit includes.
_INDEX_LAYOUT_SUFFIXES = (".xml", ".txt")


@dataclass
class IncludeDirectives:
    includes: list[str] = field(default_factory=list)
    ignored: list[str] = field(default_factory=list)
    nonascii: list[str] = field(default_factory=list)


def resolve_includes(source_text: str, language: str) -> IncludeDirectives:
    """Collect include keys, ignored words and non-ASCII markers from a source.

    ``include::foo.asciidoc[]`` becomes ``/<language>/foo.asciidoc``. Marker
    lines look like ``// IGNORE word1 word2``: everything after the first two
    whitespace-separated tokens is collected.
    """
    directives = IncludeDirectives()
    for line in source_text.splitlines():
        match = _INCLUDE_RE.search(line)
        if match:
            directives.includes.append(f"/{language}/{match.group(1)}")
        if _IGNORE_RE.search(line):
            directives.ignored.extend(line.split()[2:])
        if _NONASCII_RE.search(line):
            directives.nonascii.extend(line.split()[2:])
    return directives


class IncludeTracker:
    """Shared map of include key → IncludeRecord."""

    def __init__(self, store: SourceStore) -> None:
        self._store = store
        self._records: dict[str, IncludeRecord] = {}

    @property
    def records(self) -> dict[str, IncludeRecord]:
        return self._records

    def refresh(self, path: str) -> IncludeRecord:
        """Re-read the modification time of one include and store the record."""
        if path not in self._records:
            log.debug("include_registered", path=path)
        record = IncludeRecord(
            path=path,
            mtime=self._store.mtime(path),
            checked_at=datetime.now(UTC),
        )
        self._records[path] = record
        return record

    def latest_include_time(
        self,
        paths: list[str],
        *,
        index_dir: str | None = None,
    ) -> tuple[float, list[str]]:
        """Return (newest mtime, missing include keys).

        Unresolvable includes are reported, never raised. With *index_dir* set
        (index documents) the mtimes of every ``*.xml``/``*.txt`` file in that
        directory count as well.
        """
        latest = 0.0
        missing: list[str] = []
        for path in paths:
            record = self.refresh(path)
            if record.mtime is None:
                log.warning("include_missing", path=path)
                missing.append(path)
                continue
            latest = max(latest, record.mtime)

        if index_dir is not None:
            for name in self._store.list_dir(index_dir):
                if name.endswith(_INDEX_LAYOUT_SUFFIXES):
                    mtime = self._store.mtime(f"{index_dir}/{name}")
                    if mtime is not None:
                        latest = max(latest, mtime)

        return latest, missing
