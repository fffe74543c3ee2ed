"""Unit tests for docserve.includes."""

from __future__ import annotations

from typing import TYPE_CHECKING

from docserve.includes import IncludeTracker, resolve_includes
from docserve.store import FileSystemStore

if TYPE_CHECKING:
    from pathlib import Path

# ---------------------------------------------------------------------------
# resolve_includes
# ---------------------------------------------------------------------------


class TestResolveIncludes:
    def test_include_keys_are_language_scoped(self) -> None:
        source = "= Title\n\ninclude::include_a.asciidoc[]\ntext\ninclude::include_b.asciidoc[tag=x]\n"
        directives = resolve_includes(source, "de")
        assert directives.includes == ["/de/include_a.asciidoc", "/de/include_b.asciidoc"]

    def test_ignore_marker_collects_words_after_second_token(self) -> None:
        directives = resolve_includes("// IGNORE Checkmk Livestatus\n", "en")
        assert directives.ignored == ["Checkmk", "Livestatus"]

    def test_ignore_marker_accumulates_across_lines(self) -> None:
        directives = resolve_includes("// IGNORE foo\ntext\n//IGNORE x bar\n", "en")
        # "//IGNORE x bar" splits into two leading tokens, "bar" remains
        assert directives.ignored == ["foo", "bar"]

    def test_nonascii_marker(self) -> None:
        directives = resolve_includes("// NONASCII → ✓\n", "en")
        assert directives.nonascii == ["→", "✓"]
        assert directives.ignored == []

    def test_plain_source(self) -> None:
        directives = resolve_includes("Nothing special here.\n", "en")
        assert directives.includes == []
        assert directives.ignored == []
        assert directives.nonascii == []


# ---------------------------------------------------------------------------
# IncludeTracker
# ---------------------------------------------------------------------------


class TestIncludeTracker:
    def test_latest_time_is_newest_include(self, docs_dir: Path, touch) -> None:
        touch(docs_dir / "en" / "include_footer.asciidoc", -10)
        tracker = IncludeTracker(FileSystemStore(docs_dir))

        latest, missing = tracker.latest_include_time(["/en/include_footer.asciidoc", "/en/other.asciidoc"])

        assert latest == (docs_dir / "en" / "include_footer.asciidoc").stat().st_mtime
        assert missing == []

    def test_missing_include_is_reported_not_raised(self, docs_dir: Path) -> None:
        tracker = IncludeTracker(FileSystemStore(docs_dir))

        latest, missing = tracker.latest_include_time(["/en/include_gone.asciidoc"])

        assert latest == 0.0
        assert missing == ["/en/include_gone.asciidoc"]
        assert tracker.records["/en/include_gone.asciidoc"].missing

    def test_no_includes(self, docs_dir: Path) -> None:
        tracker = IncludeTracker(FileSystemStore(docs_dir))
        assert tracker.latest_include_time([]) == (0.0, [])

    def test_touching_an_include_increases_the_result(self, docs_dir: Path, touch) -> None:
        tracker = IncludeTracker(FileSystemStore(docs_dir))
        paths = ["/en/include_footer.asciidoc"]
        before, _ = tracker.latest_include_time(paths)

        touch(docs_dir / "en" / "include_footer.asciidoc", 5)
        after, _ = tracker.latest_include_time(paths)

        assert after > before

    def test_index_documents_fold_in_layout_files(self, docs_dir: Path, touch) -> None:
        touch(docs_dir / "en" / "featured.xml", 30)
        tracker = IncludeTracker(FileSystemStore(docs_dir))

        plain, _ = tracker.latest_include_time([])
        index, _ = tracker.latest_include_time([], index_dir="/en")

        assert plain == 0.0
        assert index == (docs_dir / "en" / "featured.xml").stat().st_mtime

    def test_records_are_shared_and_refreshed(self, docs_dir: Path, touch) -> None:
        tracker = IncludeTracker(FileSystemStore(docs_dir))
        tracker.latest_include_time(["/en/include_footer.asciidoc"])
        first = tracker.records["/en/include_footer.asciidoc"].mtime

        touch(docs_dir / "en" / "include_footer.asciidoc", 10)
        tracker.latest_include_time(["/en/include_footer.asciidoc"])

        assert tracker.records["/en/include_footer.asciidoc"].mtime > first
