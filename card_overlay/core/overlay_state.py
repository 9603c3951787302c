"""Last-known card and overlay configuration, shared by every viewer."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from card_overlay.core.errors import InvalidConfig
from card_overlay.core.logging_utils import get_module_logger


DEFAULT_PORT = 3030


class Anchor(str, Enum):
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"
    CENTER = "center"

    @classmethod
    def parse(cls, value: Any) -> "Anchor":
        if isinstance(value, Anchor):
            return value
        try:
            return cls(value)
        except ValueError:
            valid = ", ".join(a.value for a in cls)
            raise InvalidConfig(f"Invalid anchor {value!r} (expected one of: {valid})") from None


@dataclass(frozen=True)
class CardData:
    name: str = "Black Lotus"
    price: str = "$25,000"
    card_set: Optional[str] = "Alpha"
    rarity: Optional[str] = "Rare"
    updated_at: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "price": self.price,
            "set": self.card_set,
            "rarity": self.rarity,
            "updatedAt": round(self.updated_at * 1000),
        }


@dataclass(frozen=True)
class OverlayConfig:
    anchor: Anchor = Anchor.TOP_LEFT
    offset_x: int = 50
    offset_y: int = 50
    custom_css: str = ""
    port: int = DEFAULT_PORT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "anchor": self.anchor.value,
            "offsetX": self.offset_x,
            "offsetY": self.offset_y,
            "customCss": self.custom_css,
            "port": self.port,
        }


# Wire name -> attribute name. Attribute names are accepted as well.
_CARD_FIELDS = {
    "name": "name",
    "price": "price",
    "set": "card_set",
    "card_set": "card_set",
    "rarity": "rarity",
}
_CARD_IGNORED = {"updatedAt", "updated_at", "timestamp"}

_CONFIG_FIELDS = {
    "anchor": "anchor",
    "offsetX": "offset_x",
    "offset_x": "offset_x",
    "offsetY": "offset_y",
    "offset_y": "offset_y",
    "customCss": "custom_css",
    "custom_css": "custom_css",
    "port": "port",
}


def _as_int(key: str, value: Any) -> int:
    # bool is an int subclass but never a valid offset or port
    if isinstance(value, bool):
        raise InvalidConfig(f"{key} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise InvalidConfig(f"{key} must be an integer, got {value!r}")


def _coerce_config_value(attr: str, key: str, value: Any) -> Any:
    if attr == "anchor":
        return Anchor.parse(value)
    if attr == "custom_css":
        if value is None:
            return ""
        if not isinstance(value, str):
            raise InvalidConfig(f"{key} must be a string")
        return value
    number = _as_int(key, value)
    if attr == "port" and not 0 <= number <= 65535:
        raise InvalidConfig(f"port {number} is outside 0-65535")
    return number


class OverlayState:
    """Holds the current CardData and OverlayConfig.

    Updates are merges: only supplied fields change. Each update swaps in a
    new frozen snapshot under a lock, so readers on any thread only ever see
    complete values.
    """

    def __init__(
        self,
        card_data: Optional[CardData] = None,
        config: Optional[OverlayConfig] = None,
    ) -> None:
        self.logger = get_module_logger("OverlayState")
        self._lock = threading.Lock()
        self._card_data = card_data or CardData(updated_at=time.time())
        self._config = config or OverlayConfig()

    @property
    def card_data(self) -> CardData:
        return self._card_data

    @property
    def config(self) -> OverlayConfig:
        return self._config

    def get_card_data(self) -> CardData:
        return self._card_data

    def get_config(self) -> OverlayConfig:
        return self._config

    def apply_card_data(self, partial: Mapping[str, Any]) -> CardData:
        changes: Dict[str, Any] = {}
        for key, value in partial.items():
            attr = _CARD_FIELDS.get(key)
            if attr is None:
                if key not in _CARD_IGNORED:
                    self.logger.debug("Ignoring unknown card field %r", key)
                continue
            if attr in ("name", "price"):
                changes[attr] = "" if value is None else str(value)
            else:
                changes[attr] = None if value is None else str(value)

        with self._lock:
            previous = self._card_data
            # Strictly increasing even when the wall clock stalls or steps back
            stamp = max(time.time(), previous.updated_at + 1e-3)
            self._card_data = replace(previous, updated_at=stamp, **changes)
            return self._card_data

    def apply_config(self, partial: Mapping[str, Any]) -> OverlayConfig:
        changes: Dict[str, Any] = {}
        for key, value in partial.items():
            attr = _CONFIG_FIELDS.get(key)
            if attr is None:
                raise InvalidConfig(f"Unknown config field {key!r}")
            changes[attr] = _coerce_config_value(attr, key, value)

        with self._lock:
            self._config = replace(self._config, **changes)
            return self._config


__all__ = ["Anchor", "CardData", "OverlayConfig", "OverlayState", "DEFAULT_PORT"]
