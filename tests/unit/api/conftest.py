"""Pytest fixtures for overlay server tests.

Route tests run the aiohttp application in-process through TestClient.
Lifecycle and fan-out tests bind real sockets on 127.0.0.1.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Coroutine, TypeVar

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web

from card_overlay.core.api.server import BroadcastServer
from card_overlay.core.overlay_state import OverlayState


T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine synchronously for testing."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def create_test_app(state: OverlayState) -> web.Application:
    """Build the overlay application without binding a port."""
    server = BroadcastServer(state, "127.0.0.1", heartbeat=None)
    return server._create_app()


def make_server(state: OverlayState, **kwargs: Any) -> BroadcastServer:
    kwargs.setdefault("heartbeat", None)
    return BroadcastServer(state, "127.0.0.1", public_host="127.0.0.1", **kwargs)


@pytest_asyncio.fixture
async def broadcast_server(overlay_state) -> AsyncIterator[BroadcastServer]:
    server = make_server(overlay_state)
    yield server
    await server.stop()


@pytest_asyncio.fixture
async def http_session() -> AsyncIterator[aiohttp.ClientSession]:
    async with aiohttp.ClientSession() as session:
        yield session


async def wait_for_clients(server: BroadcastServer, count: int, timeout: float = 2.0) -> None:
    """Wait until ``server`` has exactly ``count`` registered viewers."""
    async def _poll() -> None:
        while server.client_count != count:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)
