"""End-to-end runs: commands through the bridge, messages out to a real viewer."""

import asyncio
import base64

import aiohttp
import pytest
from aiohttp import WSCloseCode, WSMsgType

from card_overlay.capture.producer import FrameProducer
from card_overlay.capture.source import TestPatternSource
from card_overlay.core.bridge import CommandKind


async def _expect_silence(ws, timeout=0.2):
    with pytest.raises(asyncio.TimeoutError):
        await ws.receive(timeout=timeout)


@pytest.mark.asyncio
async def test_card_update_reaches_viewer_once(running_service, viewer):
    card = await running_service.bridge.request(
        CommandKind.UPDATE_CARD_DATA,
        partial={"name": "Mox Sapphire", "price": "$12,000"},
    )

    message = await viewer.receive_json(timeout=2)

    assert message["type"] == "card-data"
    assert message["payload"] == card.to_dict()
    assert message["payload"]["set"] == "Alpha"
    await _expect_silence(viewer)


@pytest.mark.asyncio
async def test_config_update_and_snapshots_agree(running_service, viewer):
    await running_service.bridge.request(
        CommandKind.UPDATE_CONFIG,
        partial={"anchor": "top-right", "offsetX": 12, "customCss": ".card { color: red; }"},
    )

    message = await viewer.receive_json(timeout=2)
    assert message["type"] == "config"

    async with aiohttp.ClientSession() as session:
        async with session.get(f"http://127.0.0.1:{running_service.server.port}/api/config") as resp:
            assert resp.status == 200
            assert await resp.json() == message["payload"]
        async with session.get(f"http://127.0.0.1:{running_service.server.port}/overlay") as resp:
            page = await resp.text()
    assert "top-right" in page
    assert ".card { color: red; }" in page


@pytest.mark.asyncio
async def test_rejected_config_sends_nothing(running_service, viewer):
    with pytest.raises(ValueError):
        await running_service.bridge.request(CommandKind.UPDATE_CONFIG, partial={"opacity": 0.5})
    await _expect_silence(viewer)


@pytest.mark.asyncio
async def test_producer_frames_reach_viewer(running_service, viewer):
    producer = FrameProducer(TestPatternSource((320, 240)), running_service.bridge, "local")
    producer.start()
    try:
        message = await viewer.receive_json(timeout=5)
    finally:
        await asyncio.to_thread(producer.stop)

    assert message["type"] == "video-frame"
    prefix = "data:image/jpeg;base64,"
    assert message["payload"].startswith(prefix)
    jpeg = base64.b64decode(message["payload"][len(prefix):])
    assert jpeg[:2] == b"\xff\xd8"


@pytest.mark.asyncio
async def test_stop_disconnects_viewer(running_service, viewer):
    receive = asyncio.create_task(viewer.receive())

    await running_service.bridge.request(CommandKind.STOP)

    message = await asyncio.wait_for(receive, timeout=3)
    assert message.type in (WSMsgType.CLOSE, WSMsgType.CLOSED, WSMsgType.CLOSING)
    assert viewer.close_code == WSCloseCode.GOING_AWAY
    assert not running_service.bridge.sink_ready
