"""Unit tests for overlay HTTP routes.

Verifies pages, JSON snapshots, CORS and error bodies using an in-process
aiohttp test server.
"""

from __future__ import annotations

from aiohttp.test_utils import TestClient, TestServer

from card_overlay.core.overlay_state import OverlayState
from tests.unit.api.conftest import create_test_app, run_async


class TestSnapshotRoutes:
    """Tests for /api/card-data and /api/config."""

    def test_card_data(self):
        """GET /api/card-data returns the current card."""

        async def do_test():
            state = OverlayState()
            state.apply_card_data({"name": "Mox Sapphire", "price": "$12,000"})
            async with TestClient(TestServer(create_test_app(state))) as client:
                resp = await client.get("/api/card-data")
                assert resp.status == 200
                data = await resp.json()
                assert data["name"] == "Mox Sapphire"
                assert data["price"] == "$12,000"
                assert data["set"] == "Alpha"
                assert isinstance(data["updatedAt"], int)

        run_async(do_test())

    def test_config(self):
        """GET /api/config returns the flat config snapshot."""

        async def do_test():
            async with TestClient(TestServer(create_test_app(OverlayState()))) as client:
                resp = await client.get("/api/config")
                assert resp.status == 200
                assert await resp.json() == {
                    "anchor": "top-left",
                    "offsetX": 50,
                    "offsetY": 50,
                    "customCss": "",
                    "port": 3030,
                }

        run_async(do_test())

    def test_cors_header(self):
        """Snapshot routes are readable from any origin."""

        async def do_test():
            async with TestClient(TestServer(create_test_app(OverlayState()))) as client:
                resp = await client.get("/api/config")
                assert resp.headers["Access-Control-Allow-Origin"] == "*"

                preflight = await client.options("/api/card-data")
                assert preflight.status == 204
                assert preflight.headers["Access-Control-Allow-Origin"] == "*"

        run_async(do_test())


class TestPages:
    """Tests for /overlay, /overlay-webcam and /."""

    def test_overlay_page(self):
        """GET /overlay renders the card without a video element."""

        async def do_test():
            state = OverlayState()
            state.apply_config({"anchor": "bottom-right", "offsetX": 12})
            async with TestClient(TestServer(create_test_app(state))) as client:
                resp = await client.get("/overlay")
                assert resp.status == 200
                assert resp.content_type == "text/html"
                html = await resp.text()
                assert "Black Lotus" in html
                assert 'class="bottom-right"' in html
                assert "--overlay-x: 12px" in html
                assert "webcam-feed\"" not in html.split("<body>")[1].split("<script>")[0]

        run_async(do_test())

    def test_overlay_webcam_page(self):
        """GET /overlay-webcam adds the video element."""

        async def do_test():
            async with TestClient(TestServer(create_test_app(OverlayState()))) as client:
                resp = await client.get("/overlay-webcam")
                assert resp.status == 200
                html = await resp.text()
                assert '<img id="webcam-feed"' in html
                assert "video-frame" in html

        run_async(do_test())

    def test_card_text_is_escaped(self):
        """Card fields never inject markup."""

        async def do_test():
            state = OverlayState()
            state.apply_card_data({"name": "<script>alert(1)</script>"})
            async with TestClient(TestServer(create_test_app(state))) as client:
                html = await (await client.get("/overlay")).text()
                assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html

        run_async(do_test())

    def test_custom_css_injected(self):
        """Custom CSS lands in its own style element and cannot close it."""

        async def do_test():
            state = OverlayState()
            state.apply_config({"customCss": ".card-price { color: gold; } </style><b>"})
            async with TestClient(TestServer(create_test_app(state))) as client:
                html = await (await client.get("/overlay")).text()
                assert '<style id="custom-css">.card-price { color: gold; } <\\/style><b></style>' in html

        run_async(do_test())

    def test_root_without_upgrade_serves_index(self):
        """GET / without a WebSocket upgrade returns the index page."""

        async def do_test():
            async with TestClient(TestServer(create_test_app(OverlayState()))) as client:
                resp = await client.get("/")
                assert resp.status == 200
                assert "/overlay-webcam" in await resp.text()

        run_async(do_test())


class TestErrors:
    """Error bodies follow the JSON error format."""

    def test_unknown_route(self):
        async def do_test():
            async with TestClient(TestServer(create_test_app(OverlayState()))) as client:
                resp = await client.get("/api/nope")
                assert resp.status == 404
                data = await resp.json()
                assert data["status"] == 404
                assert data["error"]["code"] == "NOT_FOUND"

        run_async(do_test())

    def test_ws_endpoint_requires_upgrade(self):
        async def do_test():
            async with TestClient(TestServer(create_test_app(OverlayState()))) as client:
                resp = await client.get("/ws")
                assert resp.status == 400
                data = await resp.json()
                assert data["error"]["code"] == "BAD_REQUEST"

        run_async(do_test())
