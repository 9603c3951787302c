"""
Video sources read by the frame producer thread.

Sources are synchronous: ``read`` blocks for at most one frame period and
raises SourceUnavailable when no frame can be produced.
"""
from __future__ import annotations

import sys
import time
from abc import ABC, abstractmethod
from typing import Optional, Union

import cv2
import numpy as np

from card_overlay.capture.defaults import DEFAULT_CAPTURE_FPS, DEFAULT_CAPTURE_RESOLUTION
from card_overlay.core.errors import SourceUnavailable
from card_overlay.core.logging_utils import get_module_logger


class VideoSource(ABC):
    """A device (or synthetic generator) that yields BGR frames."""

    name = "source"

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    def open(self) -> None:
        ...

    @abstractmethod
    def read(self) -> np.ndarray:
        ...

    @abstractmethod
    def close(self) -> None:
        ...


class OpenCVSource(VideoSource):
    """OpenCV-based capture for USB cameras and video files."""

    WARMUP_ATTEMPTS = 3
    MAX_CONSECUTIVE_FAILURES = 10

    def __init__(
        self,
        device: Union[int, str] = 0,
        resolution: tuple[int, int] = DEFAULT_CAPTURE_RESOLUTION,
        fps: float = DEFAULT_CAPTURE_FPS,
    ) -> None:
        self.logger = get_module_logger("OpenCVSource")
        if isinstance(device, str) and device.isdigit():
            device = int(device)
        self.device = device
        self.name = f"camera:{device}"
        self._resolution = resolution
        self._fps = fps
        self._cap: Optional[cv2.VideoCapture] = None
        self._failures = 0

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    def open(self) -> None:
        if self._cap is not None:
            return
        self.logger.info("Opening camera: %s", self.device)

        # Prefer V4L2 on Linux
        backend = getattr(cv2, "CAP_V4L2", None) if sys.platform == "linux" and isinstance(self.device, int) else None
        cap = cv2.VideoCapture(self.device, backend) if backend is not None else cv2.VideoCapture(self.device)
        if not cap.isOpened():
            cap.release()
            raise SourceUnavailable(f"Failed to open camera: {self.device}")

        cap.set(cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*"MJPG"))
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._resolution[0])
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._resolution[1])
        cap.set(cv2.CAP_PROP_FPS, self._fps)

        # Some cameras need a few reads before the first frame arrives
        success = False
        for attempt in range(self.WARMUP_ATTEMPTS):
            if attempt > 0:
                time.sleep(0.2)
            success, _ = cap.read()
            if success:
                break
            self.logger.debug("Camera %s test frame attempt %d failed, retrying", self.device, attempt + 1)
        if not success:
            cap.release()
            raise SourceUnavailable(f"Camera {self.device} opened but cannot read frames")

        self.logger.info(
            "Camera opened: %dx%d @ %.1f fps",
            int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            cap.get(cv2.CAP_PROP_FPS),
        )
        self._cap = cap
        self._failures = 0

    def read(self) -> np.ndarray:
        if self._cap is None:
            raise SourceUnavailable(f"Camera {self.device} is not open")
        success, frame = self._cap.read()
        if not success or frame is None:
            self._failures += 1
            if self._failures >= self.MAX_CONSECUTIVE_FAILURES:
                # Unplugged or stalled: drop the handle so the next open retries
                self.close()
            raise SourceUnavailable(f"Camera {self.device} returned no frame")
        self._failures = 0
        return frame

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            self.logger.debug("Camera %s released", self.device)


class TestPatternSource(VideoSource):
    """Synthetic moving color bars, for running without a camera."""

    __test__ = False  # keep pytest from collecting this as a test class
    name = "pattern"

    def __init__(self, resolution: tuple[int, int] = DEFAULT_CAPTURE_RESOLUTION) -> None:
        self._width, self._height = resolution
        self._open = False
        self._frame_number = 0
        self._bars: Optional[np.ndarray] = None

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        colors = np.array(
            [
                [255, 255, 255],
                [0, 255, 255],
                [255, 255, 0],
                [0, 255, 0],
                [255, 0, 255],
                [0, 0, 255],
                [255, 0, 0],
                [16, 16, 16],
            ],
            dtype=np.uint8,
        )
        columns = (np.arange(self._width) * len(colors)) // self._width
        row = colors[columns]
        self._bars = np.repeat(row[np.newaxis, :, :], self._height, axis=0)
        self._open = True

    def read(self) -> np.ndarray:
        if not self._open or self._bars is None:
            raise SourceUnavailable("Test pattern is not open")
        self._frame_number += 1
        frame = np.roll(self._bars, self._frame_number * 4, axis=1)
        cv2.putText(
            frame,
            f"#{self._frame_number}",
            (16, self._height - 24),
            cv2.FONT_HERSHEY_SIMPLEX,
            1.0,
            (0, 0, 0),
            2,
        )
        return frame

    def close(self) -> None:
        self._open = False


def open_source(
    kind: str,
    device: Union[int, str] = 0,
    resolution: tuple[int, int] = DEFAULT_CAPTURE_RESOLUTION,
    fps: float = DEFAULT_CAPTURE_FPS,
) -> Optional[VideoSource]:
    """
    Build (but do not open) a video source.

    Args:
        kind: "camera", "pattern" or "none"
        device: camera index or device path / video file for "camera"
        resolution: requested capture resolution (width, height)
        fps: requested capture rate

    Returns:
        The source, or None for "none"
    """
    if kind == "none":
        return None
    if kind == "pattern":
        return TestPatternSource(resolution)
    if kind == "camera":
        return OpenCVSource(device, resolution, fps)
    raise ValueError(f"Unknown source kind: {kind}")


__all__ = ["VideoSource", "OpenCVSource", "TestPatternSource", "open_source"]
