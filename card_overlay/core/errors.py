"""Error taxonomy for the overlay service."""

from __future__ import annotations


class OverlayError(Exception):
    """Base class for overlay service failures."""


class AlreadyRunning(OverlayError):
    """``start`` was called while the server was not stopped."""

    def __init__(self, state: str) -> None:
        super().__init__(f"Broadcast server is already {state}")
        self.state = state


class BindError(OverlayError):
    """The listener could not bind its port."""

    def __init__(self, port: int, cause: OSError) -> None:
        super().__init__(f"Could not bind port {port}: {cause.strerror or cause}")
        self.port = port
        self.cause = cause


class InvalidConfig(OverlayError, ValueError):
    """A config update was rejected; the stored config is unchanged."""


class SourceUnavailable(OverlayError):
    pass


class ClientWriteFailure(OverlayError):
    pass


__all__ = [
    "OverlayError",
    "AlreadyRunning",
    "BindError",
    "InvalidConfig",
    "SourceUnavailable",
    "ClientWriteFailure",
]
