"""HTTP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Build AppState and hand it to the Starlette app
- Route requests to the Build Cache and the global listings
- Start uvicorn, or run the batch build and exit
"""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.responses import (
    FileResponse,
    HTMLResponse,
    JSONResponse,
    PlainTextResponse,
    RedirectResponse,
    Response,
)
from starlette.routing import Route

from docserve import __version__
from docserve.batch import prebuild, run_batch
from docserve.config import Settings
from docserve.errors import DocserveError, ErrorCode
from docserve.models.document import DocumentKey
from docserve.state import AppState, build_state

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request

log = structlog.get_logger()

NOT_FOUND_BODY = "<html><body>404 File not found!</body></html>"


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # stdout carries the batch result lines
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Request handlers
# ---------------------------------------------------------------------------


def _state(request: Request) -> AppState:
    return request.app.state.docserve


def _require_allowed(request: Request) -> AppState:
    """Return the state, or 404 if the path is not servable even after a rescan."""
    state = _state(request)
    path = request.url.path
    if path not in state.build_cache.allowed:
        state.build_cache.refresh_allowed()
        if path not in state.build_cache.allowed:
            raise HTTPException(status_code=404)
    return state


async def root(request: Request) -> Response:
    return RedirectResponse("/latest/en/", status_code=307)


async def language_index(request: Request) -> Response:
    state = _state(request)
    language = request.path_params.get("lang", "en")
    if language not in state.settings.languages:
        raise HTTPException(status_code=404)
    return RedirectResponse(f"/latest/{language}/index.html", status_code=307)


async def document(request: Request) -> Response:
    state = _require_allowed(request)
    key = DocumentKey.from_served_path(request.url.path)
    if key is None or not state.build_cache.allowed.is_document(key.served_path):
        raise HTTPException(status_code=404)
    try:
        output = await state.build_cache.render(key)
    except DocserveError as exc:
        if exc.code is ErrorCode.DOCUMENT_NOT_FOUND:
            raise HTTPException(status_code=404) from exc
        raise
    return HTMLResponse(output.html)


async def last_change(request: Request) -> Response:
    state = _require_allowed(request)
    key = DocumentKey.from_served_path(request.url.path)
    if key is None:
        raise HTTPException(status_code=404)
    return JSONResponse({"last-change": state.build_cache.last_change(key)})


async def image(request: Request) -> Response:
    state = _require_allowed(request)
    name = request.path_params["name"]
    return FileResponse(state.docs_dir / "images" / name)


async def icon(request: Request) -> Response:
    state = _require_allowed(request)
    name = request.path_params["name"]
    return FileResponse(state.docs_dir / "images" / "icons" / name)


async def asset(request: Request) -> Response:
    state = _require_allowed(request)
    params = request.path_params
    return FileResponse(state.styling_dir / "assets" / params["directory"] / params["name"])


async def errors_csv(request: Request) -> Response:
    return PlainTextResponse(_state(request).build_cache.errors_csv(), media_type="text/csv")


async def errors_html(request: Request) -> Response:
    return HTMLResponse(_state(request).build_cache.errors_html())


async def links_html(request: Request) -> Response:
    return HTMLResponse(_state(request).build_cache.links_html())


async def wordcount_html(request: Request) -> Response:
    return HTMLResponse(_state(request).build_cache.wordcount_html())


async def images_txt(request: Request) -> Response:
    return PlainTextResponse(_state(request).build_cache.images_txt())


async def images_html(request: Request) -> Response:
    return HTMLResponse(_state(request).build_cache.images_html())


async def not_found(request: Request, exc: Exception) -> Response:
    return HTMLResponse(NOT_FOUND_BODY, status_code=404)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def create_app(state: AppState) -> Starlette:
    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        build = state.settings.build
        if build.build_all or build.prebuild or build.since:
            await prebuild(state)
        log.info("server_started", version=__version__, documents=len(state.build_cache.allowed.documents))
        try:
            yield
        finally:
            await state.http_client.aclose()
            log.info("server_stopping")

    routes = [
        Route("/", root),
        Route("/latest", language_index),
        Route("/latest/", language_index),
        Route("/errors.csv", errors_csv),
        Route("/errors.html", errors_html),
        Route("/links.html", links_html),
        Route("/wordcount.html", wordcount_html),
        Route("/images.txt", images_txt),
        Route("/images.html", images_html),
        Route("/last_change/latest/{lang}/{name}", last_change),
        Route("/latest/images/icons/{name}", icon),
        Route("/latest/images/{name}", image),
        Route("/latest/{lang}", language_index),
        Route("/latest/{lang}/", language_index),
        Route("/latest/{lang}/{name}", document),
        Route("/assets/{directory}/{name}", asset),
    ]
    app = Starlette(
        routes=routes,
        exception_handlers={404: not_found},
        lifespan=lifespan,
    )
    app.state.docserve = state
    return app


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()
    _setup_logging(settings)
    log.info("docserve_starting", version=__version__, batch=settings.build.batch)

    try:
        state = build_state(settings)
    except DocserveError as exc:
        log.error("startup_failed", code=exc.code, message=exc.message, suggestion=exc.suggestion)
        sys.exit(1)

    if settings.build.batch:
        sys.exit(asyncio.run(run_batch(state)))

    uvicorn.run(
        create_app(state),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )


if __name__ == "__main__":
    main()
