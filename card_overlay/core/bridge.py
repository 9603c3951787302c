"""Hand-off between the frame producer thread and the server event loop.

Two channels with different policies:

* frames go through a depth-1 slot where the newest frame replaces an
  undelivered one, so a slow server never makes the producer wait;
* commands go through an unbounded FIFO drained one at a time on the server
  loop, so every command is applied, in the order it was submitted.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from card_overlay.capture.frames import EncodedFrame
from card_overlay.core.logging_utils import get_module_logger


class CommandKind(Enum):
    START = "start"
    STOP = "stop"
    UPDATE_CARD_DATA = "update_card_data"
    UPDATE_CONFIG = "update_config"
    GET_STATUS = "get_status"


@dataclass
class Command:
    kind: CommandKind
    payload: Dict[str, Any] = field(default_factory=dict)
    future: concurrent.futures.Future = field(default_factory=concurrent.futures.Future)


class LatestFrameSlot:
    """Thread-safe single-frame mailbox; the newest frame always wins."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._frame: Optional[EncodedFrame] = None
        self.dropped = 0

    def put(self, frame: EncodedFrame) -> bool:
        """Store ``frame``. Returns True when it replaced an undelivered frame."""
        with self._lock:
            replaced = self._frame is not None
            if replaced:
                self.dropped += 1
            self._frame = frame
            return replaced

    def take(self) -> Optional[EncodedFrame]:
        with self._lock:
            frame, self._frame = self._frame, None
            return frame

    def clear(self) -> None:
        with self._lock:
            self._frame = None


class TransportBridge:
    """Connects the producer context to the server context.

    ``attach`` must be called from the server loop before commands or frames
    can be consumed. ``submit`` and ``offer_frame`` are safe from any thread.
    """

    def __init__(self) -> None:
        self.logger = get_module_logger("TransportBridge")
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._commands: Optional[asyncio.Queue[Command]] = None
        self._frame_event: Optional[asyncio.Event] = None
        self._slot = LatestFrameSlot()
        self._sink_ready = threading.Event()
        self._closed = False

    # ------------------------------------------------------------------
    # Server side

    def attach(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._commands = asyncio.Queue()
        self._frame_event = asyncio.Event()
        self._closed = False
        self.logger.debug("Attached to event loop")

    @property
    def attached(self) -> bool:
        return self._loop is not None and not self._closed

    async def next_command(self) -> Command:
        if self._commands is None:
            raise RuntimeError("Bridge is not attached to an event loop")
        return await self._commands.get()

    async def next_frame(self) -> EncodedFrame:
        """Wait for the newest undelivered frame."""
        if self._frame_event is None:
            raise RuntimeError("Bridge is not attached to an event loop")
        while True:
            frame = self._slot.take()
            if frame is not None:
                return frame
            self._frame_event.clear()
            # A frame may have landed between take() and clear()
            frame = self._slot.take()
            if frame is not None:
                return frame
            await self._frame_event.wait()

    def set_sink_ready(self, ready: bool) -> None:
        if ready:
            self._sink_ready.set()
        else:
            self._sink_ready.clear()
            self._slot.clear()

    async def request(self, kind: CommandKind, **payload: Any) -> Any:
        """Submit a command from a coroutine and await its result."""
        return await asyncio.wrap_future(self.submit(kind, **payload))

    def close(self) -> None:
        """Detach; pending and future commands fail with RuntimeError."""
        self._closed = True
        self._sink_ready.clear()
        self._slot.clear()
        if self._commands is not None:
            while not self._commands.empty():
                command = self._commands.get_nowait()
                if not command.future.done():
                    command.future.set_exception(RuntimeError("Bridge closed"))
        self.logger.debug("Closed")

    # ------------------------------------------------------------------
    # Any thread

    def submit(self, kind: CommandKind, **payload: Any) -> concurrent.futures.Future:
        command = Command(kind, dict(payload))
        if self._loop is None or self._commands is None or self._closed:
            command.future.set_exception(RuntimeError("Bridge is not attached"))
            return command.future
        try:
            self._loop.call_soon_threadsafe(self._enqueue, command)
        except RuntimeError as exc:
            command.future.set_exception(RuntimeError(f"Server loop unavailable: {exc}"))
        return command.future

    def _enqueue(self, command: Command) -> None:
        # Runs on the server loop; close() may have drained the queue already
        if self._closed or self._commands is None:
            if not command.future.done():
                command.future.set_exception(RuntimeError("Bridge closed"))
            return
        self._commands.put_nowait(command)

    def offer_frame(self, frame: EncodedFrame) -> bool:
        """Hand a frame to the server. Returns True when it replaced an older one."""
        replaced = self._slot.put(frame)
        if self._loop is not None and self._frame_event is not None and not self._closed:
            try:
                self._loop.call_soon_threadsafe(self._frame_event.set)
            except RuntimeError:
                # Loop already closed during shutdown
                pass
        return replaced

    @property
    def sink_ready(self) -> bool:
        return self._sink_ready.is_set()

    def wait_sink_ready(self, timeout: Optional[float] = None) -> bool:
        return self._sink_ready.wait(timeout)

    @property
    def dropped_frames(self) -> int:
        return self._slot.dropped


__all__ = ["Command", "CommandKind", "LatestFrameSlot", "TransportBridge"]
