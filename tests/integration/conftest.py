"""Integration test fixtures.

Provides a fully wired AppState (real Build Cache, file system store and link
validator; in-process renderer) and an httpx client speaking to the Starlette
app over ASGI. Docs and styling checkouts come from tests/conftest.py.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from docserve.server import create_app
from docserve.state import AppState, build_state

if TYPE_CHECKING:
    from starlette.applications import Starlette

    from docserve.config import Settings


@pytest.fixture()
def app_state(settings: Settings, fake_renderer, http_client: httpx.AsyncClient) -> AppState:
    return build_state(settings, renderer=fake_renderer, client=http_client)


@pytest.fixture()
def app(app_state: AppState) -> Starlette:
    return create_app(app_state)


@pytest.fixture()
async def client(app: Starlette) -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
