"""File-system implementation of SourceStore.

Keys are absolute-looking paths relative to the store root
(``/en/agent_linux.asciidoc``, ``/images/icons/foo.png``). Keys that would
escape the root resolve to "does not exist".
"""

from __future__ import annotations

from pathlib import Path

from docserve.errors import DocserveError, ErrorCode


class FileSystemStore:
    """SourceStore backed by a directory."""

    def __init__(self, root: Path) -> None:
        self._root = root.resolve()

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path | None:
        candidate = (self._root / key.lstrip("/")).resolve()
        if candidate != self._root and self._root not in candidate.parents:
            return None
        return candidate

    def exists(self, key: str) -> bool:
        path = self.path_for(key)
        return path is not None and path.is_file()

    def mtime(self, key: str) -> float | None:
        path = self.path_for(key)
        if path is None:
            return None
        try:
            return path.stat().st_mtime
        except OSError:
            return None

    def read_bytes(self, key: str) -> bytes:
        path = self.path_for(key)
        try:
            if path is None:
                raise FileNotFoundError(key)
            return path.read_bytes()
        except OSError as exc:
            raise DocserveError(
                code=ErrorCode.SOURCE_NOT_FOUND,
                message=f"Cannot read {key}: {exc}",
                suggestion="Check that the file exists in the docs checkout.",
            ) from exc

    def read_text(self, key: str) -> str:
        return self.read_bytes(key).decode("utf-8", errors="replace")

    def list_dir(self, key: str) -> list[str]:
        """Return the file names (not keys) in a directory, sorted; [] if absent."""
        path = self.path_for(key)
        if path is None or not path.is_dir():
            return []
        return sorted(p.name for p in path.iterdir() if p.is_file())
