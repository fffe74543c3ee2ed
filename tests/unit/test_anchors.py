"""Unit tests for docserve.anchors."""

from __future__ import annotations

from docserve.anchors import AnchorIndex, extract_anchors, find_element_id, is_forbidden_anchor
from docserve.models.document import DocumentKey

TARGET = DocumentKey(language="en", path="other.asciidoc")


class _StubEntry:
    def __init__(self, html: str, anchors: list[str]) -> None:
        self.html = html
        self._anchors = anchors
        self.refreshed = 0

    async def ensure_fresh(self) -> None:
        self.refreshed += 1

    def anchors(self) -> list[str]:
        return self._anchors


class TestExtractAnchors:
    def test_hidden_spans_in_order_without_duplicates(self, page) -> None:
        html = page(anchors=("b", "a", "b"))
        assert extract_anchors(html) == ["b", "a"]

    def test_other_spans_are_ignored(self) -> None:
        html = '<body><span id="plain"></span><span class="hidden-anchor" id="half"></span></body>'
        assert extract_anchors(html) == []


class TestFindElementId:
    def test_plain_id(self) -> None:
        assert find_element_id('<body><div id="setup"></div></body>', "setup")

    def test_heading_prefixed_id(self) -> None:
        assert find_element_id('<body><h2 id="heading_setup">Setup</h2></body>', "setup")

    def test_navigation_ids_do_not_count(self) -> None:
        html = '<body><div class="main-nav__content"><a id="setup"></a></div></body>'
        assert not find_element_id(html, "setup")


class TestIsForbiddenAnchor:
    def test_auto_ids(self) -> None:
        assert is_forbidden_anchor("_introduction")
        assert not is_forbidden_anchor("introduction")


class TestAnchorIndex:
    async def test_depth_exhausted_is_valid_without_lookup(self) -> None:
        calls: list[DocumentKey] = []

        def lookup(key: DocumentKey) -> None:
            calls.append(key)

        index = AnchorIndex(lookup)
        assert await index.has_anchor(TARGET, "anything", depth=0)
        assert calls == []

    async def test_unknown_document(self) -> None:
        index = AnchorIndex(lambda key: None)
        assert not await index.has_anchor(TARGET, "x", depth=1)

    async def test_cached_anchor_refreshes_target_first(self) -> None:
        entry = _StubEntry("<body></body>", ["setup"])
        index = AnchorIndex(lambda key: entry)

        assert await index.has_anchor(TARGET, "setup", depth=1)
        assert entry.refreshed == 1

    async def test_falls_back_to_element_ids(self) -> None:
        entry = _StubEntry('<body><h3 id="heading_faq">FAQ</h3></body>', [])
        index = AnchorIndex(lambda key: entry)

        assert await index.has_anchor(TARGET, "faq", depth=1)
        assert not await index.has_anchor(TARGET, "missing", depth=1)
