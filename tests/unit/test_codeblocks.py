"""Unit tests for docserve.codeblocks."""

from __future__ import annotations

from docserve.codeblocks import check_code_blocks


class TestCheckCodeBlocks:
    def test_plain_ascii_is_safe(self, page) -> None:
        assert check_code_blocks(page("<p><code>cmk -R --debug</code></p>")) == []

    def test_clickable_link_is_unsafe(self, page) -> None:
        html = page('<p><code>see <a href="https://example.com">here</a></code></p>')
        assert check_code_blocks(html) == ['<code>see <a href="https://example.com">here</a></code>']

    def test_typographic_quotes_are_unsafe(self, page) -> None:
        html = page("<p><code>echo “hello”</code></p>")
        assert len(check_code_blocks(html)) == 1

    def test_letters_of_any_script_are_safe(self, page) -> None:
        assert check_code_blocks(page("<p><code>Größe_über</code></p>")) == []

    def test_ellipsis_is_safe(self, page) -> None:
        assert check_code_blocks(page("<p><code>cmk …</code></p>")) == []

    def test_exempt_markers(self, page) -> None:
        html = page("<p><code>a → b</code></p>")
        assert len(check_code_blocks(html)) == 1
        assert check_code_blocks(html, exempt=["→"]) == []

    def test_script_elements_are_checked(self, page) -> None:
        assert len(check_code_blocks(page("<script>var s = '–';</script>"))) == 1

    def test_navigation_is_excluded(self) -> None:
        html = (
            "<html><body>"
            '<div class="main-nav__content"><code>“nav”</code></div>'
            '<div class="main-nav__utils"><code><a href="x">y</a></code></div>'
            "</body></html>"
        )
        assert check_code_blocks(html) == []
