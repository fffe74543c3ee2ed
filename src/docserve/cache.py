"""Build Cache: the registry of Document Cache Entries.

Owns every entry, the link cache, the include records and the Allowed-Path Set
for the lifetime of the process. Entries are created lazily on first access and
never evicted; they refer to each other only by DocumentKey.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from docserve import report
from docserve.anchors import AnchorIndex
from docserve.document import DocumentCacheEntry, RenderContext
from docserve.errors import DocserveError, ErrorCode
from docserve.includes import IncludeTracker
from docserve.links import LinkCache, LinkValidator
from docserve.models.document import DocumentKey
from docserve.paths import scan_allowed_paths

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

    import httpx

    from docserve.config import Settings
    from docserve.models.document import RenderedOutput, StructuralFingerprint
    from docserve.protocols import Dictionary, RendererProtocol, SourceStore

log = structlog.get_logger()

MENU_DOCUMENT = "menu.asciidoc"


class BuildCache:
    def __init__(
        self,
        *,
        settings: Settings,
        store: SourceStore,
        renderer: RendererProtocol,
        dictionaries: Mapping[str, Sequence[Dictionary]],
        client: httpx.AsyncClient,
        docs_dir: Path,
        styling_dir: Path,
        cache_dir: Path,
    ) -> None:
        self._settings = settings
        self._store = store
        self._renderer = renderer
        self._dictionaries = dictionaries
        self._docs_dir = docs_dir
        self._styling_dir = styling_dir
        self._cache_dir = cache_dir

        self.entries: dict[DocumentKey, DocumentCacheEntry] = {}
        self.links = LinkCache()
        self.includes = IncludeTracker(store)
        self.allowed = scan_allowed_paths(docs_dir, styling_dir, settings.languages)
        self.anchor_index = AnchorIndex(self.get_or_create)
        self.validator = LinkValidator(
            client=client,
            cache=self.links,
            allowed=self.allowed,
            store=store,
            settings=settings.checks,
        )
        self._context = RenderContext(links=self.validator, anchors=self.anchor_index)

    def refresh_allowed(self) -> None:
        """Rescan the checkouts; documents or images may have been added."""
        self.allowed.replace(
            scan_allowed_paths(self._docs_dir, self._styling_dir, self._settings.languages)
        )

    def get(self, key: DocumentKey) -> DocumentCacheEntry | None:
        return self.entries.get(key)

    def get_or_create(self, key: DocumentKey) -> DocumentCacheEntry | None:
        """Return the entry for *key*, creating it if the source exists."""
        entry = self.entries.get(key)
        if entry is not None:
            return entry
        if not self._store.exists(key.source_key):
            log.debug("document_source_missing", document=str(key))
            return None
        entry = DocumentCacheEntry(
            key,
            store=self._store,
            tracker=self.includes,
            renderer=self._renderer,
            dictionaries=self._dictionaries,
            settings=self._settings,
            output_dir=self._cache_dir / self._settings.renderer.branch / key.language,
        )
        self.entries[key] = entry
        log.info("document_registered", document=str(key), entries=len(self.entries))
        return entry

    async def _peer_fingerprint(self, key: DocumentKey) -> StructuralFingerprint | None:
        """Fingerprint of the same document in the first other language that has it."""
        for language in self._settings.languages:
            if language == key.language:
                continue
            peer_key = key.with_language(language)
            if not self.allowed.is_document(peer_key.served_path):
                continue
            peer = self.get_or_create(peer_key)
            if peer is None:
                continue
            await peer.ensure_fresh()
            return peer.structural_fingerprint()
        return None

    async def _menu_html(self, key: DocumentKey) -> str | None:
        menu = self.get_or_create(DocumentKey(language=key.language, path=MENU_DOCUMENT))
        if menu is None:
            return None
        output = await menu.render(context=self._context)
        return output.html

    async def render(self, key: DocumentKey, *, depth: int | None = None) -> RenderedOutput:
        """Render *key* with the peer structure and the menu of its language.

        Raises DocserveError(DOCUMENT_NOT_FOUND) if the source does not exist.
        """
        entry = self.get_or_create(key)
        if entry is None:
            raise DocserveError(
                code=ErrorCode.DOCUMENT_NOT_FOUND,
                message=f"No such document: {key}",
                suggestion="Check the file name; documents live in <docs>/<lang>/.",
            )

        peer = None
        if self._settings.checks.structure and not key.is_menu:
            peer = await self._peer_fingerprint(key)
        menu_html = None if key.is_menu else await self._menu_html(key)

        return await entry.render(
            peer,
            context=self._context,
            depth=self._settings.checks.anchor_depth if depth is None else depth,
            menu_html=menu_html,
        )

    def last_change(self, key: DocumentKey) -> int:
        """Epoch seconds of the newest input of *key*; now for unknown documents."""
        entry = self.entries.get(key)
        if entry is None:
            return int(time.time())
        return entry.last_change()

    # ------------------------------------------------------------------
    # Global listings
    # ------------------------------------------------------------------

    def _sorted_entries(self) -> list[DocumentCacheEntry]:
        return [self.entries[key] for key in sorted(self.entries, key=str)]

    def errors_csv(self) -> str:
        return report.errors_csv(e.csv_line for e in self._sorted_entries() if e.csv_line)

    def errors_html(self) -> str:
        return report.errors_html(e.html_row for e in self._sorted_entries() if e.html_row)

    def links_html(self) -> str:
        return report.links_html(self.links)

    def wordcount_html(self) -> str:
        return report.wordcount_html(
            {str(e.key): e.count_words() for e in self._sorted_entries() if not e.key.is_menu}
        )

    def images_txt(self) -> str:
        used = [image for entry in self.entries.values() for image in entry.images]
        return report.images_txt(self.allowed.images, used)

    def images_html(self) -> str:
        used = [image for entry in self.entries.values() for image in entry.images]
        return report.images_html(self.allowed.images, used)
