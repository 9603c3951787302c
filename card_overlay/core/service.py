"""Server-side context: applies bridge commands and forwards frames to viewers."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Optional

from card_overlay.core.api.messages import CardDataChanged, ConfigChanged, FrameReady
from card_overlay.core.api.server import BroadcastServer, ServerRuntimeStatus
from card_overlay.core.asyncio_utils import create_logged_task
from card_overlay.core.bridge import Command, CommandKind, TransportBridge
from card_overlay.core.logging_utils import get_module_logger
from card_overlay.core.overlay_state import CardData, OverlayConfig, OverlayState


class OverlayService:
    """Owns the state store, the broadcast server and the server end of the bridge.

    Commands are taken off the bridge one at a time, so lifecycle and update
    operations never interleave. Frames are published only while the server
    is running.
    """

    def __init__(
        self,
        overlay_state: Optional[OverlayState] = None,
        server: Optional[BroadcastServer] = None,
        bridge: Optional[TransportBridge] = None,
    ) -> None:
        self.logger = get_module_logger("OverlayService")
        self.overlay_state = overlay_state or OverlayState()
        self.server = server or BroadcastServer(self.overlay_state)
        self.bridge = bridge or TransportBridge()
        self._tasks: set[asyncio.Task] = set()
        self._started = False
        self.frames_published = 0

    # ------------------------------------------------------------------
    # Task management

    async def start(self) -> None:
        """Attach the bridge to the running loop and start the pumps."""
        if self._started:
            return
        self.bridge.attach(asyncio.get_running_loop())
        create_logged_task(self._command_pump(), logger=self.logger, context="command pump", pending=self._tasks)
        create_logged_task(self._frame_pump(), logger=self.logger, context="frame pump", pending=self._tasks)
        self._started = True

    async def close(self) -> None:
        """Stop the server, fail pending commands and end the pumps."""
        if not self._started:
            return
        self._started = False
        for task in list(self._tasks):
            task.cancel()
        for task in list(self._tasks):
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self.server.stop()
        self.bridge.set_sink_ready(False)
        self.bridge.close()

    async def __aenter__(self) -> "OverlayService":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Commands

    async def _command_pump(self) -> None:
        while True:
            command = await self.bridge.next_command()
            await self._dispatch(command)

    async def _dispatch(self, command: Command) -> None:
        if command.future.cancelled():
            return
        try:
            result = await self._execute(command.kind, command.payload)
        except asyncio.CancelledError:
            command.future.cancel()
            raise
        except Exception as exc:
            self.logger.debug("Command %s failed: %s", command.kind.value, exc)
            if not command.future.done():
                command.future.set_exception(exc)
            return
        if not command.future.done():
            command.future.set_result(result)

    async def _execute(self, kind: CommandKind, payload: dict) -> Any:
        if kind is CommandKind.START:
            return await self.start_server(payload.get("port"))
        if kind is CommandKind.STOP:
            return await self.stop_server()
        if kind is CommandKind.UPDATE_CARD_DATA:
            return self.update_card_data(payload.get("partial") or {})
        if kind is CommandKind.UPDATE_CONFIG:
            return self.update_config(payload.get("partial") or {})
        if kind is CommandKind.GET_STATUS:
            return self.get_status()
        raise ValueError(f"Unknown command {kind!r}")

    async def start_server(self, port: Optional[int] = None) -> dict:
        urls = await self.server.start(port)
        self.bridge.set_sink_ready(True)
        return urls

    async def stop_server(self) -> None:
        self.bridge.set_sink_ready(False)
        await self.server.stop()

    def update_card_data(self, partial: dict) -> CardData:
        card = self.overlay_state.apply_card_data(partial)
        self.server.publish(CardDataChanged(card))
        return card

    def update_config(self, partial: dict) -> OverlayConfig:
        config = self.overlay_state.apply_config(partial)
        self.server.publish(ConfigChanged(config))
        return config

    def get_status(self) -> ServerRuntimeStatus:
        return self.server.get_status()

    # ------------------------------------------------------------------
    # Frames

    async def _frame_pump(self) -> None:
        while True:
            frame = await self.bridge.next_frame()
            if self.server.is_running:
                self.server.publish(FrameReady(frame))
                self.frames_published += 1


__all__ = ["OverlayService"]
