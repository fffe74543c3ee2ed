"""Shared test fixtures for the docserve test suite."""

from __future__ import annotations

import asyncio
import os
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

import httpx
import pytest

from docserve.cache import BuildCache
from docserve.config import Settings
from docserve.errors import DocserveError, ErrorCode
from docserve.renderer import RenderRequest, RenderResult
from docserve.store import FileSystemStore

if TYPE_CHECKING:
    from pathlib import Path

PageBuilder = Callable[..., str]


def build_page(body: str = "", *, title: str = "Test", anchors: tuple[str, ...] = ()) -> str:
    """Markup shaped like the page template output."""
    spans = "".join(f'<span class="hidden-anchor sr-only" id="{a}"></span>' for a in anchors)
    return (
        f"<html><head><title>{title}</title></head><body>"
        '<div class="main-nav__content"><a href="https://nav.example.com/">Nav</a></div>'
        f'<div id="header"><h1>{title}</h1></div>'
        f'<div id="content"><div id="preamble"></div><main>{spans}{body}</main></div>'
        "</body></html>"
    )


class FakeRenderer:
    """In-process RendererProtocol. Pages are keyed ``<lang>/<file name>``."""

    def __init__(self) -> None:
        self.pages: dict[str, str] = {}
        self.errors: list[str] = []
        self.calls: list[RenderRequest] = []
        self.fail = False
        self.delay = 0.0

    async def render(self, request: RenderRequest) -> RenderResult:
        self.calls.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise DocserveError(
                code=ErrorCode.RENDER_FAILED, message="renderer crashed", details=tuple(self.errors)
            )
        name = f"{request.language}/{request.source.name}"
        default = build_page(f'<div class="paragraph"><p>{request.source.stem}</p></div>')
        return RenderResult(html=self.pages.get(name, default), errors=list(self.errors))

    def calls_for(self, name: str) -> int:
        return sum(1 for c in self.calls if f"{c.language}/{c.source.name}" == name)


def set_mtime(path: Path, offset: float) -> None:
    """Set the mtime of *path* to now + offset seconds."""
    stamp = time.time() + offset
    os.utime(path, (stamp, stamp))


@pytest.fixture()
def page() -> PageBuilder:
    return build_page


@pytest.fixture()
def touch() -> Callable[[Path, float], None]:
    return set_mtime


@pytest.fixture()
def docs_dir(tmp_path: Path) -> Path:
    """A small two-language docs checkout with every source dated in the past."""
    docs = tmp_path / "docs"
    files = {
        "en/intro.asciidoc": "= Intro\ninclude::include_footer.asciidoc[]\n// IGNORE Checkmk\n",
        "en/include_footer.asciidoc": "Footer\n",
        "en/other.asciidoc": "= Other\n",
        "en/index.asciidoc": "= Start\n",
        "en/menu.asciidoc": "* Menu\n",
        "en/featured.xml": "<featured/>\n",
        "de/intro.asciidoc": "= Einleitung\n",
        "de/menu.asciidoc": "* Menü\n",
    }
    for name, content in files.items():
        path = docs / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    (docs / "images" / "icons").mkdir(parents=True)
    for name in ("images/present.png", "images/unused.png", "images/shot_original.png", "images/icons/icon.png"):
        (docs / name).write_bytes(b"\x89PNG")
    for path in docs.rglob("*"):
        if path.is_file():
            set_mtime(path, -100)
    return docs


@pytest.fixture()
def styling_dir(tmp_path: Path) -> Path:
    styling = tmp_path / "styling"
    (styling / "assets" / "css").mkdir(parents=True)
    (styling / "assets" / "css" / "checkmk.css").write_text("body {}\n", encoding="utf-8")
    (styling / "templates" / "slim").mkdir(parents=True)
    (styling / "templates" / "index").mkdir(parents=True)
    return styling


@pytest.fixture()
def settings(docs_dir: Path, styling_dir: Path, tmp_path: Path) -> Settings:
    return Settings(
        paths={"docs": str(docs_dir), "styling": str(styling_dir), "cache": str(tmp_path / "cache")},
        checks={"spelling": False},
    )


@pytest.fixture()
def fake_renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture()
def dictionaries() -> dict[str, list]:
    """Per-language dictionaries handed to the Build Cache; tests may fill it."""
    return {}


@pytest.fixture()
async def http_client() -> httpx.AsyncClient:
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture()
def build_cache(
    settings: Settings,
    fake_renderer: FakeRenderer,
    dictionaries: dict[str, list],
    http_client: httpx.AsyncClient,
    docs_dir: Path,
    styling_dir: Path,
    tmp_path: Path,
) -> BuildCache:
    return BuildCache(
        settings=settings,
        store=FileSystemStore(docs_dir),
        renderer=fake_renderer,
        dictionaries=dictionaries,
        client=http_client,
        docs_dir=docs_dir,
        styling_dir=styling_dir,
        cache_dir=tmp_path / "cache",
    )
