"""Document Cache Entry: one rendered document plus its validation state.

Lifecycle:
  Stale      → never rendered, or source/include newer than the last render
  Rebuilding → renderer running under the per-entry lock
  Fresh      → last render newer than every input

A rebuild always ends Fresh, even when the renderer failed: the failure is kept
as renderer errors and the previous HTML (or a placeholder page) is served
until the source changes again.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from functools import cache
from importlib.resources import files
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from bs4 import BeautifulSoup

from docserve.anchors import extract_anchors
from docserve.codeblocks import check_code_blocks
from docserve.errors import DocserveError, ErrorCode
from docserve.includes import resolve_includes
from docserve.links import ANCHOR_MISSING
from docserve.markup import NAV_CONTENT, PARSER, parse
from docserve.models.document import (
    DiagnosticReport,
    EntryState,
    RenderedOutput,
    StructuralFingerprint,
)
from docserve.renderer import RenderRequest
from docserve.report import build_panel, csv_line, document_url, html_row
from docserve.spelling import check_spelling, count_words, extract_words
from docserve.structure import diff, fingerprint

if TYPE_CHECKING:
    from collections import Counter
    from collections.abc import Mapping, Sequence

    from docserve.anchors import AnchorIndex
    from docserve.config import Settings
    from docserve.includes import IncludeTracker
    from docserve.links import LinkValidator
    from docserve.models.document import DocumentKey
    from docserve.protocols import Dictionary, RendererProtocol, SourceStore

log = structlog.get_logger()

PLACEHOLDER_HTML = '<html><head></head><body><div id="header"></div></body></html>'


@cache
def _asset(name: str) -> str:
    return (files("docserve") / "assets" / name).read_text(encoding="utf-8")


def _read_injections(paths: Sequence[str]) -> list[str]:
    contents = []
    for raw in paths:
        path = Path(raw).expanduser()
        if path.is_file():
            contents.append(path.read_text(encoding="utf-8"))
        else:
            log.warning("injection_file_missing", path=str(path))
    return contents


@dataclass
class RenderContext:
    """Collaborators a render needs beyond the entry itself."""

    links: LinkValidator
    anchors: AnchorIndex


class DocumentCacheEntry:
    def __init__(
        self,
        key: DocumentKey,
        *,
        store: SourceStore,
        tracker: IncludeTracker,
        renderer: RendererProtocol,
        dictionaries: Mapping[str, Sequence[Dictionary]],
        settings: Settings,
        output_dir: Path,
    ) -> None:
        self.key = key
        self._store = store
        self._tracker = tracker
        self._renderer = renderer
        self._dictionaries = dictionaries
        self._settings = settings
        self._output_dir = output_dir

        self._lock = asyncio.Lock()
        self._rebuilding = False

        self.html = ""
        self.last_render_time = 0.0  # 0.0 = never rendered
        self.includes: list[str] = []
        self.ignored: list[str] = []
        self.nonascii: list[str] = []
        self.renderer_errors: list[str] = []
        self.words: list[str] = []
        self.misspelled: list[str] = []
        self.images: list[str] = []
        self.report = DiagnosticReport()
        self.csv_line: str | None = None
        self.html_row: str | None = None
        self._anchors: list[str] = []
        self._fingerprint: StructuralFingerprint = ()

    # ------------------------------------------------------------------
    # Staleness
    # ------------------------------------------------------------------

    def _index_dir(self) -> str | None:
        return f"/{self.key.language}" if self.key.is_index else None

    def _input_time(self) -> tuple[float, list[str]]:
        """Newest mtime across source and includes, plus the missing includes."""
        source_mtime = self._store.mtime(self.key.source_key) or 0.0
        include_mtime, missing = self._tracker.latest_include_time(
            self.includes, index_dir=self._index_dir()
        )
        return max(source_mtime, include_mtime), missing

    def is_stale(self) -> bool:
        if self.last_render_time == 0.0:
            return True
        newest, _ = self._input_time()
        return newest > self.last_render_time

    @property
    def state(self) -> EntryState:
        if self._rebuilding:
            return EntryState.REBUILDING
        return EntryState.STALE if self.is_stale() else EntryState.FRESH

    def last_change(self) -> int:
        """Whole seconds, compared by the reload script against int(last_render_time)."""
        newest, _ = self._input_time()
        if self.last_render_time and newest > self.last_render_time:
            # An edit within the second the render started must still read as newer.
            return max(int(newest), int(self.last_render_time) + 1)
        return int(newest)

    # ------------------------------------------------------------------
    # Rebuild
    # ------------------------------------------------------------------

    async def ensure_fresh(self) -> None:
        """Rebuild if stale. Concurrent callers share a single rebuild."""
        if not self.is_stale():
            return
        async with self._lock:
            # Whoever held the lock before us may have rebuilt already.
            if not self.is_stale():
                return
            self._rebuilding = True
            try:
                await self._rebuild()
            finally:
                self._rebuilding = False

    async def _rebuild(self) -> None:
        started = time.time()
        log.info("document_rebuild_started", document=str(self.key))
        try:
            source = self._store.read_text(self.key.source_key)
            directives = resolve_includes(source, self.key.language)
            self.includes = directives.includes
            self.ignored = directives.ignored
            self.nonascii = directives.nonascii

            source_path = self._store.path_for(self.key.source_key)
            if source_path is None:
                raise DocserveError(
                    code=ErrorCode.SOURCE_NOT_FOUND,
                    message=f"No source file for {self.key}",
                )
            result = await self._renderer.render(
                RenderRequest(
                    source=source_path,
                    output_dir=self._output_dir,
                    language=self.key.language,
                    menu=self.key.is_menu,
                )
            )
        except DocserveError as exc:
            log.warning(
                "document_rebuild_failed",
                document=str(self.key),
                code=exc.code,
                message=exc.message,
            )
            self.renderer_errors = [exc.message, *exc.details]
            if not self.html:
                self.html = PLACEHOLDER_HTML
        else:
            self.renderer_errors = result.errors
            self.html = result.html

        self.last_render_time = started
        self._anchors = extract_anchors(self.html)
        self._fingerprint = fingerprint(self.html)
        self.words = extract_words(self.html)
        if self._dictionaries.get(self.key.language):
            self.misspelled = check_spelling(
                self.words, self.key.language, self._dictionaries, self.ignored
            )
        else:
            self.misspelled = []
        log.info(
            "document_rebuild_complete",
            document=str(self.key),
            duration=round(time.time() - started, 3),
            renderer_errors=len(self.renderer_errors),
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def anchors(self) -> list[str]:
        return self._anchors

    def structural_fingerprint(self) -> StructuralFingerprint:
        """Fingerprint of the last render. Never triggers a rebuild."""
        return self._fingerprint

    def count_words(self) -> Counter[str]:
        return count_words(self.words)

    # ------------------------------------------------------------------
    # Render
    # ------------------------------------------------------------------

    async def render(
        self,
        peer_fingerprint: StructuralFingerprint | None = None,
        *,
        context: RenderContext,
        depth: int = 1,
        menu_html: str | None = None,
    ) -> RenderedOutput:
        """Bring the entry up to date and return the decorated page.

        Diagnostics are recomputed on every call; the previous report is
        replaced, never merged.
        """
        await self.ensure_fresh()

        if self.key.is_menu:
            # The menu is injected into other pages, never decorated itself.
            report = DiagnosticReport(renderer_errors=tuple(self.renderer_errors))
            return RenderedOutput(html=self.html, report=report)

        _, missing = self._input_time()
        links = await context.links.validate_links(
            self.html, self.key, own_anchors=self._anchors, depth=depth
        )
        broken = dict(links.broken)
        for request in links.anchor_requests:
            if await context.anchors.has_anchor(request.target, request.anchor, depth):
                continue
            existing = broken.get(request.link)
            broken[request.link] = f"{existing}; {ANCHOR_MISSING}" if existing else ANCHOR_MISSING
        self.images = links.images

        mismatch = None
        if peer_fingerprint is not None:
            mismatch = diff(self._fingerprint, peer_fingerprint)

        report = DiagnosticReport(
            renderer_errors=tuple(self.renderer_errors),
            broken_links=broken,
            missing_includes=tuple(missing),
            misspelled=tuple(self.misspelled),
            structure_mismatch=mismatch,
            unsafe_code_blocks=tuple(check_code_blocks(self.html, self.nonascii)),
        )
        url = document_url(self._settings.server.public_url, self.key)
        self.report = report
        self.csv_line = csv_line(report, url)
        self.html_row = html_row(report, url, self.key.html_key)
        log.info("document_rendered", document=str(self.key), errors=report.total, depth=depth)
        return RenderedOutput(
            html=self._decorate(report, menu_html),
            report=report,
            csv_line=self.csv_line,
            html_row=self.html_row,
        )

    def _decorate(self, report: DiagnosticReport, menu_html: str | None) -> str:
        soup = parse(self.html, without=("div#hiring-banner",))

        if soup.head is not None:
            for css in (_asset("docserve.css"), *_read_injections(self._settings.inject.css)):
                style = soup.new_tag("style")
                style.string = f"\n{css}\n"
                soup.head.append(style)

        if not report.is_empty:
            panel = BeautifulSoup(build_panel(report), PARSER).find("div")
            preamble = soup.select_one("div#preamble")
            header = soup.select_one("div#header")
            if preamble is not None:
                preamble.insert(0, panel)
            elif header is not None:
                log.debug("preamble_missing", document=str(self.key))
                header.append(panel)
            elif soup.body is not None:
                soup.body.insert(0, panel)

        nav = soup.select_one(NAV_CONTENT)
        if nav is not None and menu_html is not None:
            menu = BeautifulSoup(menu_html, PARSER)
            nav.clear()
            for child in list((menu.body or menu).contents):
                nav.append(child)

        body = soup.body or soup
        reload_script = (
            _asset("autoreload.js")
            .replace("CHANGED", str(int(self.last_render_time)), 1)
            .replace("JSONURL", f"/last_change{self.key.served_path}", 1)
        )
        for js in (reload_script, *_read_injections(self._settings.inject.js)):
            script = soup.new_tag("script")
            script.string = f"\n{js}\n"
            body.append(script)

        return str(soup)
