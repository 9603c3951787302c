from .bridge import Command, CommandKind, LatestFrameSlot, TransportBridge
from .errors import (
    AlreadyRunning,
    BindError,
    ClientWriteFailure,
    InvalidConfig,
    OverlayError,
    SourceUnavailable,
)
from .overlay_state import Anchor, CardData, OverlayConfig, OverlayState
from .service import OverlayService

__all__ = [
    'AlreadyRunning',
    'Anchor',
    'BindError',
    'CardData',
    'ClientWriteFailure',
    'Command',
    'CommandKind',
    'InvalidConfig',
    'LatestFrameSlot',
    'OverlayConfig',
    'OverlayError',
    'OverlayService',
    'OverlayState',
    'SourceUnavailable',
    'TransportBridge',
]
