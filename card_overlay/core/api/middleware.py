"""
HTTP middleware for the overlay server.

Provides:
- Unified JSON error responses
- Request timing at DEBUG level
- Permissive CORS for browser sources loaded from other origins
"""

import time
import traceback
from typing import Callable, Optional

from aiohttp import web

from card_overlay.core.logging_utils import get_module_logger


logger = get_module_logger("HTTPMiddleware")

# Verbose error bodies (traceback included); toggled by the server
_debug_mode: bool = False

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def set_debug_mode(enabled: bool) -> None:
    global _debug_mode
    _debug_mode = enabled


def create_error_response(code: str, message: str, status: int = 400, details: Optional[dict] = None) -> web.Response:
    """Create standardized error response."""
    error = {"error": {"code": code, "message": message}, "status": status}
    if details:
        error["error"]["details"] = details
    return web.json_response(error, status=status)


@web.middleware
async def cors_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
    if request.method == "OPTIONS":
        return web.Response(status=204, headers=CORS_HEADERS)
    response = await handler(request)
    # Upgraded WebSocket responses have already sent their headers
    if not response.prepared:
        response.headers.update(CORS_HEADERS)
    return response


@web.middleware
async def request_logging_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
    start_time = time.perf_counter()
    try:
        response = await handler(request)
    except web.HTTPException as e:
        logger.debug("%s %s -> %d (%.1f ms)", request.method, request.path, e.status, (time.perf_counter() - start_time) * 1000)
        raise
    logger.debug("%s %s -> %d (%.1f ms)", request.method, request.path, response.status, (time.perf_counter() - start_time) * 1000)
    return response


@web.middleware
async def error_handling_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
    """
    Catch errors raised by handlers and format them as JSON:

    {
        "error": {"code": "ERROR_CODE", "message": "...", "details": {...}},
        "status": 500
    }
    """
    try:
        return await handler(request)
    except web.HTTPException as e:
        if e.status < 400:
            raise
        code = e.reason.upper().replace(" ", "_") if e.reason else "HTTP_ERROR"
        return create_error_response(code, e.text or str(e), status=e.status)
    except ValueError as e:
        logger.warning("Validation error: %s", e)
        return create_error_response("VALIDATION_ERROR", str(e), status=400)
    except Exception as e:
        tb = traceback.format_exc()
        logger.error("Unexpected error handling %s %s: %s\n%s", request.method, request.path, e, tb)
        details = {"type": type(e).__name__, "message": str(e)}
        if _debug_mode:
            details["traceback"] = tb.split("\n")
        return create_error_response("INTERNAL_ERROR", "An unexpected error occurred", status=500, details=details)


__all__ = [
    "CORS_HEADERS",
    "cors_middleware",
    "create_error_response",
    "error_handling_middleware",
    "request_logging_middleware",
    "set_debug_mode",
]
