"""Tests for the producer/server transport bridge."""

import asyncio
import threading

import pytest

from card_overlay.capture.frames import EncodedFrame
from card_overlay.core.bridge import CommandKind, LatestFrameSlot, TransportBridge


def make_frame(tag: int) -> EncodedFrame:
    return EncodedFrame(data=bytes([tag]), width=1, height=1, captured_at=float(tag))


class TestLatestFrameSlot:

    def test_take_empty(self):
        assert LatestFrameSlot().take() is None

    def test_newest_frame_wins(self):
        slot = LatestFrameSlot()
        assert slot.put(make_frame(1)) is False
        assert slot.put(make_frame(2)) is True
        assert slot.put(make_frame(3)) is True

        assert slot.take().data == bytes([3])
        assert slot.take() is None
        assert slot.dropped == 2


class TestCommands:

    def test_submit_before_attach_fails(self):
        future = TransportBridge().submit(CommandKind.GET_STATUS)
        with pytest.raises(RuntimeError):
            future.result(timeout=1)

    @pytest.mark.asyncio
    async def test_commands_keep_submission_order_across_threads(self):
        bridge = TransportBridge()
        bridge.attach()

        def producer():
            for i in range(200):
                bridge.submit(CommandKind.UPDATE_CARD_DATA, partial={"price": str(i)})

        thread = threading.Thread(target=producer)
        thread.start()
        await asyncio.to_thread(thread.join)

        received = [await asyncio.wait_for(bridge.next_command(), 1) for _ in range(200)]
        assert [c.payload["partial"]["price"] for c in received] == [str(i) for i in range(200)]
        assert all(c.kind is CommandKind.UPDATE_CARD_DATA for c in received)

    @pytest.mark.asyncio
    async def test_request_resolves_with_result(self):
        bridge = TransportBridge()
        bridge.attach()

        async def consumer():
            command = await bridge.next_command()
            command.future.set_result(("handled", command.kind))

        task = asyncio.create_task(consumer())
        result = await asyncio.wait_for(bridge.request(CommandKind.STOP), 1)
        await task

        assert result == ("handled", CommandKind.STOP)

    @pytest.mark.asyncio
    async def test_close_fails_pending_commands(self):
        bridge = TransportBridge()
        bridge.attach()
        future = bridge.submit(CommandKind.GET_STATUS)
        await asyncio.sleep(0)  # let call_soon_threadsafe enqueue it

        bridge.close()

        with pytest.raises(RuntimeError):
            future.result(timeout=1)
        late = bridge.submit(CommandKind.GET_STATUS)
        with pytest.raises(RuntimeError):
            late.result(timeout=1)

    @pytest.mark.asyncio
    async def test_close_before_enqueue_fails_command(self):
        bridge = TransportBridge()
        bridge.attach()
        future = bridge.submit(CommandKind.GET_STATUS)

        # close runs before the loop has processed the scheduled enqueue
        bridge.close()
        await asyncio.sleep(0.05)

        assert future.done()
        with pytest.raises(RuntimeError, match="Bridge closed"):
            future.result(timeout=0)


class TestFrames:

    @pytest.mark.asyncio
    async def test_frame_from_thread_wakes_consumer(self):
        bridge = TransportBridge()
        bridge.attach()
        waiter = asyncio.create_task(bridge.next_frame())
        await asyncio.sleep(0)

        threading.Thread(target=bridge.offer_frame, args=(make_frame(7),)).start()

        frame = await asyncio.wait_for(waiter, 1)
        assert frame.data == bytes([7])

    @pytest.mark.asyncio
    async def test_consumer_gets_latest_frame_only(self):
        bridge = TransportBridge()
        bridge.attach()
        for tag in (1, 2, 3):
            bridge.offer_frame(make_frame(tag))

        frame = await asyncio.wait_for(bridge.next_frame(), 1)

        assert frame.data == bytes([3])
        assert bridge.dropped_frames == 2
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(bridge.next_frame(), 0.05)

    def test_offer_without_loop_only_fills_slot(self):
        bridge = TransportBridge()
        assert bridge.offer_frame(make_frame(1)) is False
        assert bridge.offer_frame(make_frame(2)) is True


class TestSinkReady:

    def test_flag_and_wait(self):
        bridge = TransportBridge()
        assert bridge.sink_ready is False
        assert bridge.wait_sink_ready(0.01) is False

        bridge.set_sink_ready(True)

        assert bridge.sink_ready is True
        assert bridge.wait_sink_ready(0.01) is True

    def test_not_ready_discards_undelivered_frame(self):
        bridge = TransportBridge()
        bridge.set_sink_ready(True)
        bridge.offer_frame(make_frame(1))

        bridge.set_sink_ready(False)

        assert bridge._slot.take() is None
