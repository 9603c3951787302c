"""
Broadcast Server - aiohttp HTTP + WebSocket listener for overlay viewers.

Serves the overlay pages and JSON snapshots, and fans broadcast events out
to every connected WebSocket viewer. Each viewer gets a bounded outbox
drained by its own writer task, so ``publish`` never waits on a socket and
one slow viewer cannot hold up the others.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Set

from aiohttp import WSCloseCode, WSMsgType, web

from card_overlay.core.asyncio_utils import create_logged_task
from card_overlay.core.errors import AlreadyRunning, BindError, ClientWriteFailure
from card_overlay.core.logging_utils import get_module_logger
from card_overlay.core.overlay_state import OverlayState

from .messages import BroadcastEvent, encode_message
from .middleware import (
    cors_middleware,
    error_handling_middleware,
    request_logging_middleware,
    set_debug_mode,
)
from .routes import setup_routes


DEFAULT_CLIENT_QUEUE_LIMIT = 16
HEARTBEAT_SECONDS = 20.0
SHUTDOWN_TIMEOUT_SECONDS = 2.0


class ServerState(Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass(frozen=True)
class ServerRuntimeStatus:
    running: bool
    port: int
    urls: Dict[str, str]
    error: Optional[str] = None
    state: ServerState = ServerState.STOPPED
    clients: int = 0

    def to_dict(self) -> dict:
        result = {"running": self.running, "port": self.port, "urls": dict(self.urls)}
        if self.error:
            result["error"] = self.error
        return result


@dataclass(eq=False)
class ClientConnection:
    """One viewer socket, its outbox and the task draining it."""

    ws: web.WebSocketResponse
    outbox: asyncio.Queue
    peer: str = "unknown"
    writer: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def closing(self) -> bool:
        return self.ws.closed or self.ws.close_code is not None

    async def drain(self) -> None:
        while True:
            message = await self.outbox.get()
            try:
                await self.ws.send_str(message)
            except (ConnectionError, RuntimeError) as exc:
                raise ClientWriteFailure(f"Write to {self.peer} failed: {exc}") from exc

    def cancel_writer(self) -> None:
        if self.writer is not None and not self.writer.done():
            self.writer.cancel()


class BroadcastServer:
    """
    HTTP/WebSocket server that keeps overlay viewers in sync.

    Lifecycle: STOPPED -> STARTING -> RUNNING -> STOPPING -> STOPPED. The
    instance can be started again after a stop, on the same or another port.
    Every method must be called from the event loop the server runs on.
    """

    def __init__(
        self,
        overlay_state: OverlayState,
        host: Optional[str] = "0.0.0.0",
        *,
        public_host: str = "localhost",
        client_queue_limit: int = DEFAULT_CLIENT_QUEUE_LIMIT,
        heartbeat: Optional[float] = HEARTBEAT_SECONDS,
        debug: bool = False,
    ):
        """
        Args:
            overlay_state: Store read by the HTTP snapshot routes
            host: Interface to bind (None binds all interfaces)
            public_host: Host name used in the URLs reported by ``get_status``
            client_queue_limit: Messages a viewer may fall behind before it is dropped
            heartbeat: WebSocket ping interval in seconds, or None to disable
            debug: Include tracebacks in HTTP error bodies
        """
        self.logger = get_module_logger("BroadcastServer")
        self.overlay_state = overlay_state
        self.host = host
        self.public_host = public_host
        self.client_queue_limit = client_queue_limit
        self.heartbeat = heartbeat
        self.debug = debug

        self._state = ServerState.STOPPED
        self._runner: Optional[web.AppRunner] = None
        self._port: Optional[int] = None
        self._last_error: Optional[str] = None
        self._clients: Set[ClientConnection] = set()
        self._pending: Set[asyncio.Task] = set()

        set_debug_mode(debug)

    # ------------------------------------------------------------------
    # Properties

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is ServerState.RUNNING

    @property
    def port(self) -> Optional[int]:
        return self._port

    @property
    def client_count(self) -> int:
        return len(self._clients)

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def urls(self, port: Optional[int] = None) -> Dict[str, str]:
        port = port if port is not None else (self._port or self.overlay_state.config.port)
        base = f"http://{self.public_host}:{port}"
        return {"overlay": f"{base}/overlay", "webcamOverlay": f"{base}/overlay-webcam"}

    def _set_state(self, state: ServerState) -> None:
        if state is not self._state:
            self.logger.debug("%s -> %s", self._state.value, state.value)
            self._state = state

    # ------------------------------------------------------------------
    # Lifecycle

    def _create_app(self) -> web.Application:
        # error handling innermost; CORS headers also cover error bodies
        middlewares = [cors_middleware, request_logging_middleware, error_handling_middleware]
        app = web.Application(middlewares=middlewares)
        app["overlay_server"] = self
        app["overlay_state"] = self.overlay_state
        setup_routes(app)
        return app

    async def start(self, port: Optional[int] = None) -> Dict[str, str]:
        """Bind and start serving. Returns the overlay URLs.

        Raises AlreadyRunning unless stopped, and BindError when the port
        cannot be bound (the server is then stopped again).
        """
        if self._state is not ServerState.STOPPED:
            raise AlreadyRunning(self._state.value)

        requested = self.overlay_state.config.port if port is None else port
        self._set_state(ServerState.STARTING)
        self._last_error = None

        runner = web.AppRunner(
            self._create_app(),
            handle_signals=False,
            shutdown_timeout=SHUTDOWN_TIMEOUT_SECONDS,
        )
        await runner.setup()
        site = web.TCPSite(runner, self.host, requested)
        try:
            await site.start()
        except OSError as exc:
            await runner.cleanup()
            error = BindError(requested, exc)
            self._last_error = str(error)
            self._set_state(ServerState.STOPPED)
            self.logger.error("%s", error)
            raise error from exc
        except BaseException:
            await runner.cleanup()
            self._set_state(ServerState.STOPPED)
            raise

        self._runner = runner
        self._port = runner.addresses[0][1] if runner.addresses else requested
        self._set_state(ServerState.RUNNING)
        urls = self.urls(self._port)
        self.logger.info("Overlay server started on http://%s:%d", self.host or "*", self._port)
        self.logger.info("  overlay:        %s", urls["overlay"])
        self.logger.info("  webcam overlay: %s", urls["webcamOverlay"])
        return urls

    async def stop(self) -> None:
        """Close every viewer, release the port, return to STOPPED. No-op unless running."""
        if self._state is not ServerState.RUNNING:
            return

        self._set_state(ServerState.STOPPING)
        self.logger.info("Stopping overlay server (%d clients)", len(self._clients))

        clients = list(self._clients)
        self._clients.clear()
        for client in clients:
            client.cancel_writer()
        await asyncio.gather(
            *(client.ws.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown") for client in clients),
            *(client.writer for client in clients if client.writer is not None),
            *self._pending,
            return_exceptions=True,
        )

        runner, self._runner = self._runner, None
        if runner is not None:
            await runner.cleanup()

        self._port = None
        self._set_state(ServerState.STOPPED)
        self.logger.info("Overlay server stopped")

    def get_status(self) -> ServerRuntimeStatus:
        port = self._port if self._port is not None else self.overlay_state.config.port
        return ServerRuntimeStatus(
            running=self.is_running,
            port=port,
            urls=self.urls(port),
            error=self._last_error,
            state=self._state,
            clients=len(self._clients),
        )

    # ------------------------------------------------------------------
    # Fan-out

    def publish(self, event: BroadcastEvent) -> int:
        """Queue ``event`` for every open viewer. Returns how many it was queued for.

        Never awaits a socket. Viewers that are closing or whose outbox is
        full are removed from the set.
        """
        if not self._clients or self._state is not ServerState.RUNNING:
            return 0

        message = encode_message(event)
        queued = 0
        for client in list(self._clients):
            if client.closing:
                self._drop(client)
                continue
            try:
                client.outbox.put_nowait(message)
            except asyncio.QueueFull:
                self.logger.warning("Dropping slow client %s (%d messages behind)", client.peer, client.outbox.qsize())
                self._drop(client, close_code=WSCloseCode.TRY_AGAIN_LATER)
                continue
            queued += 1
        return queued

    def _drop(self, client: ClientConnection, close_code: Optional[int] = None) -> None:
        if client not in self._clients:
            return
        self._clients.discard(client)
        client.cancel_writer()
        if close_code is not None and not client.ws.closed:
            create_logged_task(
                client.ws.close(code=close_code, message=b"Client too slow"),
                logger=self.logger,
                context=f"close {client.peer}",
                pending=self._pending,
            )
        self.logger.debug("Client %s removed (%d remaining)", client.peer, len(self._clients))

    async def _run_writer(self, client: ClientConnection) -> None:
        try:
            await client.drain()
        except ClientWriteFailure as exc:
            self.logger.debug("%s", exc)
            self._drop(client)

    # ------------------------------------------------------------------
    # WebSocket endpoint

    async def handle_websocket(self, request: web.Request, ws: web.WebSocketResponse) -> web.WebSocketResponse:
        if self._state is not ServerState.RUNNING:
            raise web.HTTPServiceUnavailable(text="Overlay server is stopping")

        client = ClientConnection(ws, asyncio.Queue(maxsize=self.client_queue_limit), request.remote or "unknown")
        # Registered before the handshake: a publish racing the handshake
        # is queued and delivered once the writer starts.
        self._clients.add(client)
        try:
            await ws.prepare(request)
        except BaseException:
            self._clients.discard(client)
            raise

        client.writer = create_logged_task(
            self._run_writer(client),
            logger=self.logger,
            context=f"writer {client.peer}",
        )
        self.logger.info("Client connected from %s (%d total)", client.peer, len(self._clients))

        try:
            async for msg in ws:
                # Viewers are receive-only; anything they send is ignored
                if msg.type == WSMsgType.ERROR:
                    self.logger.debug("Client %s error: %s", client.peer, ws.exception())
                    break
        finally:
            self._drop(client)
            self.logger.info("Client disconnected from %s (%d remaining)", client.peer, len(self._clients))

        return ws


__all__ = [
    "BroadcastServer",
    "ClientConnection",
    "DEFAULT_CLIENT_QUEUE_LIMIT",
    "ServerRuntimeStatus",
    "ServerState",
]
