"""
Frame geometry and encoding.

Crop, downscale and JPEG/PNG encode numpy frames with OpenCV. All helpers are
pure functions so the producer thread can call them without locking.
"""
from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np


@dataclass(frozen=True)
class CropRegion:
    """Rectangle in source pixel coordinates."""

    x: int
    y: int
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.x < 0 or self.y < 0:
            raise ValueError(f"Crop origin must be non-negative, got ({self.x}, {self.y})")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Crop size must be positive, got {self.width}x{self.height}")

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def clamp_to(self, width: int, height: int) -> Optional["CropRegion"]:
        """Intersect with a ``width`` x ``height`` frame; None when nothing overlaps."""
        x0 = min(self.x, width)
        y0 = min(self.y, height)
        x1 = min(self.right, width)
        y1 = min(self.bottom, height)
        if x1 <= x0 or y1 <= y0:
            return None
        if (x0, y0, x1 - x0, y1 - y0) == (self.x, self.y, self.width, self.height):
            return self
        return CropRegion(x0, y0, x1 - x0, y1 - y0)

    @classmethod
    def from_corners(cls, x1: float, y1: float, x2: float, y2: float) -> "CropRegion":
        left, right = sorted((x1, x2))
        top, bottom = sorted((y1, y2))
        x = max(0, round(left))
        y = max(0, round(top))
        return cls(x, y, round(right) - x, round(bottom) - y)


@dataclass(frozen=True)
class EncodedFrame:
    data: bytes
    width: int
    height: int
    captured_at: float
    mime_type: str = "image/jpeg"

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


def frame_size(frame: np.ndarray) -> tuple[int, int]:
    h, w = frame.shape[:2]
    return w, h


def crop_frame(frame: np.ndarray, region: Optional[CropRegion]) -> np.ndarray:
    """Return the part of ``frame`` inside ``region``.

    The region is clamped to the frame. A region that misses the frame
    entirely yields the full frame.
    """
    if region is None:
        return frame
    w, h = frame_size(frame)
    clamped = region.clamp_to(w, h)
    if clamped is None:
        return frame
    return frame[clamped.y:clamped.bottom, clamped.x:clamped.right]


def fit_within(frame: np.ndarray, max_size: Optional[tuple[int, int]]) -> np.ndarray:
    """Downscale to fit ``max_size`` keeping aspect ratio. Never upscales."""
    if max_size is None:
        return frame
    w, h = frame_size(frame)
    max_w, max_h = max_size
    scale = min(max_w / w, max_h / h)
    if scale >= 1.0:
        return frame
    target = (max(1, int(round(w * scale))), max(1, int(round(h * scale))))
    return cv2.resize(frame, target, interpolation=cv2.INTER_AREA)


def encode_jpeg(frame: np.ndarray, *, quality: int = 80, captured_at: float = 0.0) -> EncodedFrame:
    """
    Compress a BGR frame to JPEG.

    Args:
        frame: BGR numpy array
        quality: JPEG quality (1-100)
        captured_at: Monotonic timestamp of the source read

    Returns:
        EncodedFrame carrying the JPEG bytes and output dimensions
    """
    encode_params = [cv2.IMWRITE_JPEG_QUALITY, int(quality)]
    success, encoded = cv2.imencode(".jpg", frame, encode_params)
    if not success:
        raise RuntimeError("JPEG encoding failed")
    w, h = frame_size(frame)
    return EncodedFrame(encoded.tobytes(), w, h, captured_at, "image/jpeg")


__all__ = [
    "CropRegion",
    "EncodedFrame",
    "crop_frame",
    "encode_jpeg",
    "fit_within",
    "frame_size",
]
