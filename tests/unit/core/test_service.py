"""Tests for OverlayService command dispatch and frame forwarding."""

import asyncio
import threading

import pytest
import pytest_asyncio

from card_overlay.capture.frames import EncodedFrame
from card_overlay.core.api.server import BroadcastServer, ServerRuntimeStatus
from card_overlay.core.bridge import CommandKind
from card_overlay.core.errors import AlreadyRunning, InvalidConfig
from card_overlay.core.overlay_state import OverlayState
from card_overlay.core.service import OverlayService


@pytest_asyncio.fixture
async def service():
    state = OverlayState()
    server = BroadcastServer(state, "127.0.0.1", public_host="127.0.0.1", heartbeat=None)
    service = OverlayService(state, server)
    await service.start()
    yield service
    await service.close()


class TestCommands:

    @pytest.mark.asyncio
    async def test_start_and_stop_toggle_sink(self, service, unused_tcp_port):
        urls = await service.bridge.request(CommandKind.START, port=unused_tcp_port)

        assert urls["overlay"].endswith(f":{unused_tcp_port}/overlay")
        assert service.bridge.sink_ready

        await service.bridge.request(CommandKind.STOP)

        assert not service.bridge.sink_ready
        assert not service.server.is_running

    @pytest.mark.asyncio
    async def test_errors_reach_the_caller(self, service, unused_tcp_port):
        await service.bridge.request(CommandKind.START, port=unused_tcp_port)

        with pytest.raises(AlreadyRunning):
            await service.bridge.request(CommandKind.START, port=unused_tcp_port)
        with pytest.raises(InvalidConfig):
            await service.bridge.request(CommandKind.UPDATE_CONFIG, partial={"anchor": "invalid"})

        # the pump survives failed commands
        status = await service.bridge.request(CommandKind.GET_STATUS)
        assert isinstance(status, ServerRuntimeStatus)
        assert status.running

    @pytest.mark.asyncio
    async def test_updates_apply_while_stopped(self, service):
        card = await service.bridge.request(CommandKind.UPDATE_CARD_DATA, partial={"price": "$30,000"})
        config = await service.bridge.request(CommandKind.UPDATE_CONFIG, partial={"anchor": "center"})

        assert card.price == "$30,000"
        assert service.overlay_state.config is config
        assert config.anchor.value == "center"

    @pytest.mark.asyncio
    async def test_commands_from_another_thread_apply_in_order(self, service):
        def submit_all():
            return [
                service.bridge.submit(CommandKind.UPDATE_CARD_DATA, partial={"name": f"card {i}"})
                for i in range(50)
            ]

        futures = await asyncio.to_thread(submit_all)
        results = await asyncio.gather(*(asyncio.wrap_future(f) for f in futures))

        assert [c.name for c in results] == [f"card {i}" for i in range(50)]
        stamps = [c.updated_at for c in results]
        assert stamps == sorted(stamps)
        assert service.overlay_state.card_data.name == "card 49"

    @pytest.mark.asyncio
    async def test_close_fails_late_commands(self, service):
        await service.close()
        future = service.bridge.submit(CommandKind.GET_STATUS)
        with pytest.raises(RuntimeError):
            future.result(timeout=1)


class TestFrames:

    @pytest.mark.asyncio
    async def test_frames_dropped_while_stopped(self, service):
        service.bridge.offer_frame(EncodedFrame(b"x", 1, 1, 0.0))
        await asyncio.sleep(0.05)
        assert service.frames_published == 0

    @pytest.mark.asyncio
    async def test_frames_forwarded_while_running(self, service, unused_tcp_port):
        await service.bridge.request(CommandKind.START, port=unused_tcp_port)

        thread = threading.Thread(target=service.bridge.offer_frame, args=(EncodedFrame(b"x", 1, 1, 0.0),))
        thread.start()
        thread.join()

        for _ in range(100):
            if service.frames_published:
                break
            await asyncio.sleep(0.01)
        assert service.frames_published == 1
