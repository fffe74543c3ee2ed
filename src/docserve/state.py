"""Application state container.

AppState is created once at startup (in the Starlette lifespan, or by the
batch runner) and reached from every request handler through ``app.state``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from docserve.cache import BuildCache
from docserve.links import build_http_client
from docserve.renderer import AsciidoctorRenderer
from docserve.spelling import load_dictionaries
from docserve.store import FileSystemStore

if TYPE_CHECKING:
    from pathlib import Path

    import httpx

    from docserve.config import Settings
    from docserve.protocols import RendererProtocol


@dataclass
class AppState:
    """Holds all shared runtime state."""

    settings: Settings
    build_cache: BuildCache
    http_client: httpx.AsyncClient
    docs_dir: Path
    styling_dir: Path


def build_state(
    settings: Settings,
    *,
    renderer: RendererProtocol | None = None,
    client: httpx.AsyncClient | None = None,
) -> AppState:
    """Wire up the Build Cache and its collaborators.

    Raises DocserveError(CONFIG_INVALID) if the configured directories are
    unusable.
    """
    docs_dir, styling_dir, cache_dir = settings.require_directories()
    store = FileSystemStore(docs_dir)
    http_client = client or build_http_client(settings.checks.link_timeout_seconds)
    build_cache = BuildCache(
        settings=settings,
        store=store,
        renderer=renderer or AsciidoctorRenderer(settings.renderer, styling_dir),
        dictionaries=load_dictionaries(settings),
        client=http_client,
        docs_dir=docs_dir,
        styling_dir=styling_dir,
        cache_dir=cache_dir,
    )
    return AppState(
        settings=settings,
        build_cache=build_cache,
        http_client=http_client,
        docs_dir=docs_dir,
        styling_dir=styling_dir,
    )
