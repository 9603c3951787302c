"""Single-shot still capture written as lossless PNG."""
from __future__ import annotations

import time
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from card_overlay.capture.defaults import SNAPSHOT_PREFIX
from card_overlay.capture.frames import CropRegion, crop_frame
from card_overlay.core.logging_utils import get_module_logger


logger = get_module_logger("Snapshot")


def snapshot_path(directory: Path, timestamp: Optional[float] = None) -> Path:
    stamp_ms = round((time.time() if timestamp is None else timestamp) * 1000)
    path = directory / f"{SNAPSHOT_PREFIX}{stamp_ms}.png"
    # Two captures within the same millisecond must not overwrite each other
    suffix = 1
    while path.exists():
        path = directory / f"{SNAPSHOT_PREFIX}{stamp_ms}-{suffix}.png"
        suffix += 1
    return path


def save_snapshot(
    frame: np.ndarray,
    directory: Path,
    *,
    crop: Optional[CropRegion] = None,
    timestamp: Optional[float] = None,
) -> Path:
    """Crop ``frame`` at native resolution and write it to ``directory``.

    Returns the written path. Raises OSError when the file cannot be written.
    """
    directory.mkdir(parents=True, exist_ok=True)
    image = crop_frame(frame, crop)
    path = snapshot_path(directory, timestamp)
    if not cv2.imwrite(str(path), image):
        raise OSError(f"Failed to write snapshot {path}")
    h, w = image.shape[:2]
    logger.info("Saved snapshot %s (%dx%d)", path, w, h)
    return path


__all__ = ["save_snapshot", "snapshot_path"]
