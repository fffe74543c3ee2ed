"""Unit tests for docserve.report."""

from __future__ import annotations

from collections import Counter

from docserve.links import LinkCache, classify_status
from docserve.models.document import DiagnosticReport, DocumentKey, NodeKind, StructuralNode
from docserve.report import (
    ERRORS_CSV_HEADER,
    build_panel,
    csv_line,
    document_url,
    errors_csv,
    errors_html,
    html_row,
    images_html,
    images_txt,
    links_html,
    unused_images,
    wordcount_html,
)

URL = "http://localhost:8088/latest/en/intro.html"


class TestBuildPanel:
    def test_only_non_empty_sections(self) -> None:
        panel = build_panel(DiagnosticReport(misspelled=("agnet", "teh")))

        assert panel.startswith("<div id='docserveerrors'>")
        assert "<h3>Misspelled or unknown words</h3><p>agnet teh</p>" in panel
        assert "Broken links" not in panel
        assert "Asciidoctor errors" not in panel

    def test_values_are_escaped(self) -> None:
        report = DiagnosticReport(
            renderer_errors=("line <3>",),
            broken_links={"https://example.com/?a=1&b=2": "404 – Not Found"},
        )
        panel = build_panel(report)

        assert "line &lt;3&gt;" in panel
        assert "https://example.com/?a=1&amp;b=2" in panel
        assert "(404 – Not Found)" in panel

    def test_structure_mismatch_shows_both_nodes(self) -> None:
        this = StructuralNode(kind=NodeKind.PARAGRAPH)
        report = DiagnosticReport(structure_mismatch=(this, StructuralNode.empty()))
        panel = build_panel(report)

        assert "<h3>Structure not matching</h3>" in panel
        assert "<p><b>Other:</b> <b>Empty</b></p>" in panel

    def test_code_blocks_kept_as_markup(self) -> None:
        panel = build_panel(DiagnosticReport(unsafe_code_blocks=("<code>“x”</code>",)))
        assert "<pre class='pygments highlight'><code>“x”</code></pre>" in panel


class TestSummaryLines:
    def test_empty_report_has_no_lines(self) -> None:
        assert csv_line(DiagnosticReport(), URL) is None
        assert html_row(DiagnosticReport(), URL, "/en/intro.html") is None

    def test_column_order(self) -> None:
        report = DiagnosticReport(
            renderer_errors=("a", "b"),
            missing_includes=("/en/x.asciidoc",),
            unsafe_code_blocks=("<code>x</code>",),
        )
        assert csv_line(report, URL) == f"{URL};2;0;1;0;0;1;\n"
        row = html_row(report, URL, "/en/intro.html")
        assert row.endswith("<td>2</td><td>0</td><td>1</td><td>0</td><td>0</td><td>1</td></tr>\n")

    def test_document_url(self) -> None:
        key = DocumentKey(language="en", path="intro.asciidoc")
        assert document_url("http://localhost:8088/", key) == URL


class TestGlobalListings:
    def test_errors_csv_starts_with_header(self) -> None:
        body = errors_csv([f"{URL};1;0;0;0;0;0;\n"])
        assert body.startswith(ERRORS_CSV_HEADER)
        assert body.endswith(f"{URL};1;0;0;0;0;0;\n")

    def test_errors_html_table(self) -> None:
        body = errors_html(["<tr><td>row</td></tr>\n"])
        assert "<title>Errors</title>" in body
        assert "<tr><td>row</td></tr>" in body

    def test_links_html_sections(self) -> None:
        cache = LinkCache()
        for url, status in (
            ("https://example.com/gone", 404),
            ("https://example.com/moved", 301),
            ("https://example.com/", 200),
        ):
            cache.finish(classify_status(url, status, ""))
            cache.note_usage(url, "/en/intro.html")

        body = links_html(cache)
        broken, rest = body.split("<h2>Working links with redirect</h2>")
        redirected, working = rest.split("<h2>Working links</h2>")

        assert "https://example.com/gone" in broken
        assert "(301)" in redirected
        assert "https://example.com/moved" not in working
        assert "<a href='/latest/en/intro.html'>/en/intro.html</a>" in working

    def test_wordcount_most_common_first(self) -> None:
        body = wordcount_html({"/en/intro.html": Counter({"rare": 1, "often": 5})})
        assert body.index("often") < body.index("rare")


class TestUnusedImages:
    def test_unused_and_originals(self) -> None:
        available = ["../images/a.png", "../images/b.png", "../images/c_original.png", "../images/icons/i.png"]
        used = ["../images/a.png", "../images/icons/i.png"]

        assert unused_images(available, used) == ["images/b.png"]
        assert images_txt(available, used) == "images/b.png\n"

    def test_images_html_counts_and_links(self) -> None:
        available = ["../images/a.png", "../images/b.png", "../images/c_original.png"]

        body = images_html(available, ["../images/a.png"])

        assert "Images present: 3" in body
        assert "Images used: 1" in body
        assert "Original images: 1" in body
        assert "<li><a href='/latest/images/b.png'>images/b.png</a></li>" in body
        assert "c_original" not in body.split("<h2>Unused images</h2>")[1]
