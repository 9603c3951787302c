"""
Overlay Routes - pages, JSON snapshots and the WebSocket endpoint.

The WebSocket shares the HTTP listener. It is reachable at ``/ws`` and at
``/``; a plain GET on ``/`` returns a small index page instead.
"""

from aiohttp import web

from card_overlay.core.overlay_state import OverlayState

from .pages import render_index_page, render_overlay_page


def setup_routes(app: web.Application) -> None:
    """Register overlay routes."""
    app.router.add_get("/", root_handler)
    app.router.add_get("/ws", websocket_handler)
    app.router.add_get("/overlay", overlay_handler)
    app.router.add_get("/overlay-webcam", overlay_webcam_handler)
    app.router.add_get("/api/card-data", card_data_handler)
    app.router.add_get("/api/config", config_handler)


def _state(request: web.Request) -> OverlayState:
    return request.app["overlay_state"]


async def overlay_handler(request: web.Request) -> web.Response:
    """GET /overlay - Card overlay on a transparent background."""
    state = _state(request)
    return web.Response(text=render_overlay_page(state.card_data, state.config), content_type="text/html")


async def overlay_webcam_handler(request: web.Request) -> web.Response:
    """GET /overlay-webcam - Card overlay above the live video feed."""
    state = _state(request)
    page = render_overlay_page(state.card_data, state.config, include_webcam=True)
    return web.Response(text=page, content_type="text/html")


async def card_data_handler(request: web.Request) -> web.Response:
    """GET /api/card-data - Current card snapshot."""
    return web.json_response(_state(request).card_data.to_dict())


async def config_handler(request: web.Request) -> web.Response:
    """GET /api/config - Current overlay config snapshot."""
    return web.json_response(_state(request).config.to_dict())


async def websocket_handler(request: web.Request) -> web.StreamResponse:
    ws = web.WebSocketResponse(heartbeat=request.app["overlay_server"].heartbeat)
    if not ws.can_prepare(request).ok:
        raise web.HTTPBadRequest(text="Expected a WebSocket upgrade")
    return await request.app["overlay_server"].handle_websocket(request, ws)


async def root_handler(request: web.Request) -> web.StreamResponse:
    ws = web.WebSocketResponse(heartbeat=request.app["overlay_server"].heartbeat)
    if ws.can_prepare(request).ok:
        return await request.app["overlay_server"].handle_websocket(request, ws)
    return web.Response(text=render_index_page(), content_type="text/html")
