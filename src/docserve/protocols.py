"""Protocol interfaces for the external collaborators of the build cache.

The Build Cache and the Document Cache Entry reference these protocols, not the
concrete implementations, so tests can plug in an in-process renderer, a dict
backed store or a fixed word list.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from pathlib import Path

    from docserve.renderer import RenderRequest, RenderResult


class SourceStore(Protocol):
    """Key → bytes access to the documentation tree (keys look like ``/en/x.asciidoc``)."""

    def exists(self, key: str) -> bool: ...

    def mtime(self, key: str) -> float | None: ...

    def read_bytes(self, key: str) -> bytes: ...

    def read_text(self, key: str) -> str: ...

    def list_dir(self, key: str) -> list[str]: ...

    def path_for(self, key: str) -> Path | None: ...


class RendererProtocol(Protocol):
    """Interface for the external document renderer."""

    async def render(self, request: RenderRequest) -> RenderResult: ...


class Dictionary(Protocol):
    """One loaded spelling dictionary."""

    def is_known(self, word: str) -> bool: ...
