"""
Overlay HTTP/WebSocket server.

Serves the overlay pages and JSON snapshots to browser sources and pushes
card, config and video-frame events to connected viewers over WebSocket.
"""

from .messages import CardDataChanged, ConfigChanged, FrameReady, MessageType, encode_message
from .server import BroadcastServer, ServerRuntimeStatus, ServerState

__all__ = [
    "BroadcastServer",
    "CardDataChanged",
    "ConfigChanged",
    "FrameReady",
    "MessageType",
    "ServerRuntimeStatus",
    "ServerState",
    "encode_message",
]
