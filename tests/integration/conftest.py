"""Fixtures that run the whole server context on a real port."""

import aiohttp
import pytest_asyncio

from card_overlay.core.api.server import BroadcastServer
from card_overlay.core.overlay_state import OverlayState
from card_overlay.core.service import OverlayService


@pytest_asyncio.fixture
async def running_service(unused_tcp_port):
    """OverlayService with its server started on a free port."""
    state = OverlayState()
    server = BroadcastServer(state, "127.0.0.1", public_host="127.0.0.1", heartbeat=None)
    async with OverlayService(state, server) as service:
        await service.start_server(unused_tcp_port)
        yield service


@pytest_asyncio.fixture
async def viewer(running_service):
    """A WebSocket viewer connected to the running service."""
    async with aiohttp.ClientSession() as session:
        async with session.ws_connect(f"http://127.0.0.1:{running_service.server.port}/ws") as ws:
            yield ws
