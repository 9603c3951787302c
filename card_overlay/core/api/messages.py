"""
Broadcast events and their WebSocket wire format.

Every message is a JSON object ``{"type": ..., "payload": ...}``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Union

from card_overlay.capture.frames import EncodedFrame
from card_overlay.core.overlay_state import CardData, OverlayConfig


class MessageType(str, Enum):
    CARD_DATA = "card-data"
    CONFIG = "config"
    VIDEO_FRAME = "video-frame"


@dataclass(frozen=True)
class CardDataChanged:
    card_data: CardData

    message_type = MessageType.CARD_DATA

    def payload(self) -> Dict[str, Any]:
        return self.card_data.to_dict()


@dataclass(frozen=True)
class ConfigChanged:
    config: OverlayConfig

    message_type = MessageType.CONFIG

    def payload(self) -> Dict[str, Any]:
        return self.config.to_dict()


@dataclass(frozen=True)
class FrameReady:
    frame: EncodedFrame

    message_type = MessageType.VIDEO_FRAME

    def payload(self) -> str:
        return self.frame.to_data_url()


BroadcastEvent = Union[CardDataChanged, ConfigChanged, FrameReady]


def encode_message(event: BroadcastEvent) -> str:
    return json.dumps(
        {"type": event.message_type.value, "payload": event.payload()},
        separators=(",", ":"),
    )


__all__ = [
    "BroadcastEvent",
    "CardDataChanged",
    "ConfigChanged",
    "FrameReady",
    "MessageType",
    "encode_message",
]
