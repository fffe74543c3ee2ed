"""Unit tests for docserve.store."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from docserve.errors import DocserveError, ErrorCode
from docserve.store import FileSystemStore

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
def store(docs_dir: Path) -> FileSystemStore:
    return FileSystemStore(docs_dir)


class TestFileSystemStore:
    def test_read_and_mtime(self, store: FileSystemStore, docs_dir: Path) -> None:
        assert store.read_text("/en/other.asciidoc") == "= Other\n"
        assert store.mtime("/en/other.asciidoc") == (docs_dir / "en" / "other.asciidoc").stat().st_mtime

    def test_missing_file(self, store: FileSystemStore) -> None:
        assert not store.exists("/en/missing.asciidoc")
        assert store.mtime("/en/missing.asciidoc") is None
        with pytest.raises(DocserveError) as exc_info:
            store.read_bytes("/en/missing.asciidoc")
        assert exc_info.value.code == ErrorCode.SOURCE_NOT_FOUND

    def test_keys_cannot_escape_root(self, store: FileSystemStore, tmp_path: Path) -> None:
        (tmp_path / "secret.txt").write_text("x", encoding="utf-8")

        assert store.path_for("/../secret.txt") is None
        assert not store.exists("/../secret.txt")
        with pytest.raises(DocserveError):
            store.read_text("/../secret.txt")

    def test_list_dir(self, store: FileSystemStore) -> None:
        assert store.list_dir("/images") == ["present.png", "shot_original.png", "unused.png"]
        assert store.list_dir("/nope") == []
