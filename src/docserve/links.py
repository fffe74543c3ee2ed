"""Link validation with session-scoped memoization.

Every ``<a href>`` of a rendered page is classified as a self/anchor link, an
already known link, a local document name or an external URL. External URLs
are fetched once per process through the shared httpx.AsyncClient; the
verdict is kept in a LinkCache owned by the Build Cache. The LinkCache never
expires within one run.

Cross-document anchors are not resolved here: they come back as explicit
AnchorRequests so the caller can render the target document first.
"""

from __future__ import annotations

import asyncio
import errno
import re
import socket
import ssl
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import httpx
import structlog

from docserve.anchors import find_element_id, is_forbidden_anchor
from docserve.markup import NAV_CONTENT, NAV_UTILS, parse
from docserve.models.cache import LinkRecord, LinkState
from docserve.models.document import DocumentKey

if TYPE_CHECKING:
    from collections.abc import Iterable

    from bs4 import BeautifulSoup

    from docserve.config import CheckSettings
    from docserve.paths import AllowedPaths
    from docserve.protocols import SourceStore

log = structlog.get_logger()

NOT_FOUND = "404 – File not found"
ANCHOR_MISSING_HERE = "this file, target anchor missing"
ANCHOR_MISSING = "Target anchor missing"
ANCHOR_FORBIDDEN = "Target anchor is forbidden automatic style"

_LOCAL_NAME_RE = re.compile(r"^[0-9a-z._-]+$")

_STATUS_MESSAGES = {
    401: "401 – Unauthorized",
    404: NOT_FOUND,
    500: "500 – Internal Server Error",
}


def build_http_client(timeout_seconds: float = 30.0) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        follow_redirects=False,
        timeout=httpx.Timeout(timeout_seconds),
        headers={"User-Agent": "docserve-linkcheck/1.0"},
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )


@dataclass(frozen=True)
class AnchorRequest:
    """An anchor that can only be checked after rendering another document."""

    link: str  # key under which a failure is reported
    target: DocumentKey
    anchor: str


@dataclass
class LinkCheckResult:
    broken: dict[str, str] = field(default_factory=dict)
    anchor_requests: list[AnchorRequest] = field(default_factory=list)
    images: list[str] = field(default_factory=list)


class LinkCache:
    """Memoized link verdicts plus the documents referencing each link."""

    def __init__(self) -> None:
        self.records: dict[str, LinkRecord] = {}
        self.used_by: dict[str, list[str]] = {}
        self._inflight: dict[str, asyncio.Event] = {}

    def get(self, url: str) -> LinkRecord | None:
        return self.records.get(url)

    def note_usage(self, url: str, document: str) -> None:
        users = self.used_by.setdefault(url, [])
        if document not in users:
            users.append(document)

    def begin(self, url: str) -> asyncio.Event | None:
        """Create the Pending record for *url*.

        Returns the event to set once the verdict is stored, or None when
        another caller already owns the fetch.
        """
        if url in self.records:
            return None
        self.records[url] = LinkRecord(url=url, checked_at=datetime.now(UTC))
        event = asyncio.Event()
        self._inflight[url] = event
        return event

    def finish(self, record: LinkRecord) -> None:
        self.records[record.url] = record
        event = self._inflight.pop(record.url, None)
        if event is not None:
            event.set()

    def abandon(self, url: str) -> None:
        """Drop the unfinished Pending record of *url* and wake its waiters.

        Waiters find no record and fetch again themselves.
        """
        record = self.records.get(url)
        if record is not None and record.state is LinkState.PENDING:
            del self.records[url]
        event = self._inflight.pop(url, None)
        if event is not None:
            event.set()

    async def wait(self, url: str) -> LinkRecord | None:
        """Wait for an in-flight fetch of *url* (if any) and return its record."""
        event = self._inflight.get(url)
        if event is not None:
            await event.wait()
        return self.records.get(url)


def _transport_reason(exc: httpx.HTTPError | httpx.InvalidURL) -> str:
    """Map a transport failure to the reason shown in the report."""
    if isinstance(exc, httpx.InvalidURL):
        return "Invalid URI error"
    if isinstance(exc, httpx.UnsupportedProtocol):
        return "Could not convert URI"
    if isinstance(exc, httpx.TimeoutException):
        return "Request timeout"
    if isinstance(exc, (httpx.RemoteProtocolError, httpx.DecodingError)):
        return "Could not parse response header"

    # httpx wraps the socket error; walk the chain to find out what happened.
    cause: BaseException | None = exc
    while cause is not None:
        if isinstance(cause, ssl.SSLError):
            return "Unspecified SSL error"
        if isinstance(cause, socket.gaierror):
            return "Host not found or port unavailable"
        if isinstance(cause, ConnectionResetError):
            return "Connection reset by peer"
        if isinstance(cause, ConnectionRefusedError):
            return "Connection refused"
        if isinstance(cause, OSError) and cause.errno == errno.EHOSTUNREACH:
            return "No route to host"
        cause = cause.__cause__ or cause.__context__

    if isinstance(exc, httpx.ConnectError):
        return "Host not found or port unavailable"
    if isinstance(exc, httpx.ReadError):
        return "Connection reset by peer"
    return "Unspecified transport error"


def classify_status(url: str, status_code: int, reason: str) -> LinkRecord:
    """Turn an HTTP status into a LinkRecord verdict."""
    now = datetime.now(UTC)
    if status_code in (401, 402) or 403 < status_code <= 500:
        error = _STATUS_MESSAGES.get(status_code) or f"{status_code} – {reason or 'Error'}"
        return LinkRecord(
            url=url,
            state=LinkState.INVALID,
            checked_at=now,
            status_code=status_code,
            error=error,
        )
    if status_code == 403 or status_code > 500:
        log.warning("link_status_suspicious", url=url, status_code=status_code)
    return LinkRecord(url=url, state=LinkState.VALID, checked_at=now, status_code=status_code)


class LinkValidator:
    """Validates the links and images of rendered pages."""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        cache: LinkCache,
        allowed: AllowedPaths,
        store: SourceStore,
        settings: CheckSettings,
    ) -> None:
        self._client = client
        self._cache = cache
        self._store = store
        self._settings = settings
        self._self_patterns = [re.compile(p) for p in settings.self_link_patterns]
        self.allowed = allowed

    @property
    def cache(self) -> LinkCache:
        return self._cache

    def _is_self_link(self, href: str) -> bool:
        if href == "" or href.startswith((".", "/")):
            return True
        return any(p.search(href) for p in self._self_patterns)

    async def fetch(self, url: str) -> LinkRecord:
        """Return the verdict for an external URL, fetching it at most once per process."""
        event = self._cache.begin(url)
        if event is None:
            record = await self._cache.wait(url)
            if record is None or record.state is LinkState.PENDING:
                # The owning fetch was abandoned; take it over.
                return await self.fetch(url)
            return record

        try:
            record = await self._request(url)
        except BaseException:
            # Cancelled or crashed: never leave a Pending record behind.
            log.warning("link_fetch_abandoned", url=url)
            self._cache.abandon(url)
            raise
        self._cache.finish(record)
        return record

    async def _request(self, url: str) -> LinkRecord:
        try:
            response = await self._client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            record = LinkRecord(
                url=url,
                state=LinkState.INVALID,
                checked_at=datetime.now(UTC),
                error=_transport_reason(exc),
            )
            log.info("link_fetch_failed", url=url, reason=record.error, error=str(exc))
            return record
        log.info("link_fetch_complete", url=url, status_code=response.status_code)
        return classify_status(url, response.status_code, response.reason_phrase)

    def _check_images(self, soup: BeautifulSoup, result: LinkCheckResult) -> None:
        for img in soup.find_all("img"):
            src = img.get("src")
            if src is None:
                continue
            src = str(src)
            result.images.append(src)
            # ../images/foo.png is checked against the docs tree, no network.
            if src.startswith("../") and not self._store.exists(src[2:]):
                result.broken[src] = NOT_FOUND

    async def validate_links(
        self,
        html: str,
        key: DocumentKey,
        *,
        own_anchors: Iterable[str] = (),
        depth: int = 1,
    ) -> LinkCheckResult:
        """Validate every link and image of *html*, rendered from document *key*.

        Returns the broken links (link → reason), the cross-document anchors
        still to be resolved and every image source seen. Nothing is checked at
        depth < 1 or with link checking disabled.
        """
        result = LinkCheckResult()
        if depth < 1 or not self._settings.links:
            return result

        soup = parse(html, without=(NAV_CONTENT, NAV_UTILS))
        self._check_images(soup, result)

        own = set(own_anchors)
        referrer = key.html_key
        for a in soup.find_all("a"):
            raw = a.get("href")
            href, _, anchor = (str(raw) if raw is not None else ".").partition("#")

            if self._is_self_link(href):
                if href == "" and anchor:
                    if anchor not in own and not find_element_id(html, anchor):
                        result.broken[f"#{anchor}"] = ANCHOR_MISSING_HERE
                continue

            record = self._cache.get(href)
            if record is not None:
                self._cache.note_usage(href, referrer)
                if record.state is LinkState.PENDING:
                    record = await self.fetch(href)
                if not record.ok:
                    result.broken[href] = record.error
                continue

            if _LOCAL_NAME_RE.match(href):
                self._check_local(href, anchor, key, result)
                continue

            self._cache.note_usage(href, referrer)
            record = await self.fetch(href)
            if not record.ok:
                result.broken[href] = record.error

        log.info("links_checked", document=str(key), broken=len(result.broken))
        return result

    def _check_local(
        self,
        href: str,
        anchor: str,
        key: DocumentKey,
        result: LinkCheckResult,
    ) -> None:
        served = f"/latest/{key.language}/{href}"
        if href in self._settings.ignore_broken:
            log.debug("link_ignored", document=str(key), link=served)
            return
        if served not in self.allowed:
            result.broken[served] = NOT_FOUND
            return
        if not anchor:
            return

        link = f"{served}#{anchor}"
        if is_forbidden_anchor(anchor):
            result.broken[link] = ANCHOR_FORBIDDEN
        target = DocumentKey.from_served_path(served)
        if target is not None:
            result.anchor_requests.append(AnchorRequest(link=link, target=target, anchor=anchor))
