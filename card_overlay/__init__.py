"""Live card price overlay served to browser sources over HTTP and WebSocket."""

from __future__ import annotations

from importlib import metadata
from typing import Optional, Sequence

from .app.main import main

try:
    __version__ = metadata.version("card-overlay")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev
    __version__ = "0.0.0"


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Run the overlay service; returns the process exit code."""
    from .app.main import run as _run

    return _run(list(argv) if argv is not None else None)


__all__ = ["__version__", "main", "run"]
