"""Centralized path constants for the overlay service."""

from __future__ import annotations

import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Configuration
CONFIG_PATH = PROJECT_ROOT / "config.txt"

# Runtime output, relocatable via CARD_OVERLAY_HOME
_HOME_ENV = os.environ.get("CARD_OVERLAY_HOME")
DATA_HOME = Path(_HOME_ENV).expanduser() if _HOME_ENV else PROJECT_ROOT
LOGS_DIR = DATA_HOME / "logs"
LOG_FILE = LOGS_DIR / "overlay.log"
CAPTURES_DIR = DATA_HOME / "captures"


def ensure_directories() -> None:
    """Create the log and capture directories if they don't exist."""

    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    CAPTURES_DIR.mkdir(parents=True, exist_ok=True)


__all__ = [
    'PROJECT_ROOT',
    'CONFIG_PATH',
    'DATA_HOME',
    'LOGS_DIR',
    'LOG_FILE',
    'CAPTURES_DIR',
    'ensure_directories',
]
