"""
Frame producer.

Runs on its own thread: reads the video source, crops, downscales,
JPEG-encodes and offers frames to the transport bridge at the active
profile's rate. Talks to the server only through the bridge.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

import cv2
import numpy as np

from card_overlay.capture import defaults
from card_overlay.capture.frames import CropRegion, EncodedFrame, crop_frame, encode_jpeg, fit_within, frame_size
from card_overlay.capture.snapshot import save_snapshot
from card_overlay.capture.source import VideoSource
from card_overlay.capture.throttle import FrameThrottle
from card_overlay.core.bridge import TransportBridge
from card_overlay.core.errors import SourceUnavailable
from card_overlay.core.logging_utils import get_module_logger


@dataclass(frozen=True)
class FrameProfile:
    name: str
    min_interval: float
    max_size: Optional[tuple[int, int]]
    jpeg_quality: int


PROFILES = {
    "bandwidth": FrameProfile(
        "bandwidth",
        defaults.BANDWIDTH_MIN_INTERVAL,
        defaults.BANDWIDTH_MAX_SIZE,
        defaults.BANDWIDTH_JPEG_QUALITY,
    ),
    "local": FrameProfile(
        "local",
        defaults.LOCAL_MIN_INTERVAL,
        None,
        defaults.LOCAL_JPEG_QUALITY,
    ),
}


def get_profile(name: str) -> FrameProfile:
    try:
        return PROFILES[name]
    except KeyError:
        raise ValueError(f"Unknown frame profile {name!r} (expected one of: {', '.join(PROFILES)})") from None


@dataclass(slots=True)
class ProducerStats:
    emitted: int = 0
    throttled: int = 0
    missed_reads: int = 0
    encode_errors: int = 0
    tick_errors: int = 0


class FrameProducer:
    """Turns source frames into encoded frames offered to the bridge."""

    def __init__(
        self,
        source: Optional[VideoSource],
        bridge: TransportBridge,
        profile: Union[str, FrameProfile] = defaults.DEFAULT_PROFILE,
        *,
        retry_seconds: float = defaults.SOURCE_RETRY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.logger = get_module_logger("FrameProducer")
        self._source = source
        self._bridge = bridge
        self._profile = get_profile(profile) if isinstance(profile, str) else profile
        self._throttle = FrameThrottle(self._profile.min_interval)
        self._retry_seconds = retry_seconds
        self._clock = clock

        self._source_lock = threading.Lock()
        self._crop: Optional[CropRegion] = None
        self._warned_crop: Optional[CropRegion] = None
        self._enabled = source is not None
        self._source_size: Optional[tuple[int, int]] = None
        self._degraded = False
        self._retry_at = 0.0

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._wake = threading.Event()
        self.stats = ProducerStats()

    # ------------------------------------------------------------------
    # Properties

    @property
    def profile(self) -> FrameProfile:
        return self._profile

    @property
    def crop(self) -> Optional[CropRegion]:
        return self._crop

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def source_size(self) -> Optional[tuple[int, int]]:
        """(width, height) of the last frame read from the source."""
        return self._source_size

    @property
    def source_name(self) -> str:
        return self._source.name if self._source is not None else "none"

    # ------------------------------------------------------------------
    # Controls (any thread)

    def set_enabled(self, enabled: bool) -> None:
        if enabled and self._source is None:
            raise SourceUnavailable("No video source configured")
        self._enabled = enabled
        self.logger.info("Producer %s", "enabled" if enabled else "disabled")
        self._wake.set()

    def set_crop(self, region: Optional[CropRegion]) -> None:
        self._crop = region
        self._warned_crop = None
        self.logger.info("Crop region set to %s", region)

    def set_profile(self, profile: Union[str, FrameProfile]) -> None:
        resolved = get_profile(profile) if isinstance(profile, str) else profile
        self._profile = resolved
        self._throttle.min_interval = resolved.min_interval
        self.logger.info(
            "Profile %s: %.0f ms, max %s, quality %d",
            resolved.name,
            resolved.min_interval * 1000,
            resolved.max_size or "native",
            resolved.jpeg_quality,
        )

    # ------------------------------------------------------------------
    # Frame pipeline

    def tick(self, now: Optional[float] = None) -> Optional[EncodedFrame]:
        """Produce at most one frame. Returns it, or None when nothing was emitted."""
        now = self._clock() if now is None else now
        if not self._enabled or self._source is None:
            return None
        if not self._bridge.sink_ready:
            return None
        if not self._throttle.ready(now):
            self.stats.throttled += 1
            return None

        with self._source_lock:
            frame = self._read_source(now)
        if frame is None:
            return None

        try:
            image = fit_within(self._apply_crop(frame), self._profile.max_size)
            encoded = encode_jpeg(image, quality=self._profile.jpeg_quality, captured_at=now)
        except (cv2.error, RuntimeError) as exc:
            self.stats.encode_errors += 1
            self.logger.error("Frame encode failed: %s", exc)
            return None

        self._throttle.mark(now)
        self._bridge.offer_frame(encoded)
        self.stats.emitted += 1
        return encoded

    def _read_source(self, now: float) -> Optional[np.ndarray]:
        if self._degraded and now < self._retry_at:
            return None
        try:
            if not self._source.is_open:
                self._source.open()
            frame = self._source.read()
        except SourceUnavailable as exc:
            if self._source.is_open:
                self.stats.missed_reads += 1
                self.logger.debug("Missed read: %s", exc)
                return None
            if not self._degraded:
                self.logger.warning("Video source unavailable, retrying every %.1fs: %s", self._retry_seconds, exc)
            self._degraded = True
            self._retry_at = now + self._retry_seconds
            return None

        if self._degraded:
            self._degraded = False
            self.logger.info("Video source %s recovered", self._source.name)
        self._source_size = frame_size(frame)
        return frame

    def _apply_crop(self, frame: np.ndarray) -> np.ndarray:
        region = self._crop
        if region is not None and region != self._warned_crop:
            w, h = frame_size(frame)
            if region.clamp_to(w, h) is None:
                self.logger.warning("Crop %s lies outside the %dx%d source, sending full frame", region, w, h)
                self._warned_crop = region
        return crop_frame(frame, region)

    def snapshot(self, directory: Path) -> Path:
        """Write one full-resolution cropped PNG; independent of the server."""
        if self._source is None:
            raise SourceUnavailable("No video source configured")
        with self._source_lock:
            if not self._source.is_open:
                self._source.open()
            frame = self._source.read()
            self._source_size = frame_size(frame)
        return save_snapshot(frame, directory, crop=self._crop)

    # ------------------------------------------------------------------
    # Thread lifecycle

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="FrameProducer", daemon=True)
        self._thread.start()
        self.logger.info("Producer thread started (source=%s, profile=%s)", self.source_name, self._profile.name)

    def stop(self, timeout: float = 2.0) -> None:
        self._stop_event.set()
        self._wake.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                self.logger.warning("Producer thread did not stop within %.1fs", timeout)
        self._thread = None
        if self._source is not None:
            with self._source_lock:
                self._source.close()
        self.logger.info(
            "Producer stopped: %d emitted, %d replaced before delivery",
            self.stats.emitted,
            self._bridge.dropped_frames,
        )

    def _run(self) -> None:
        while not self._stop_event.is_set():
            if not self._enabled:
                self._wake.wait(defaults.SINK_WAIT_SECONDS)
                self._wake.clear()
                continue
            if not self._bridge.sink_ready:
                self._bridge.wait_sink_ready(defaults.SINK_WAIT_SECONDS)
                continue
            try:
                self.tick()
            except Exception:
                self.stats.tick_errors += 1
                self.logger.exception("Frame tick failed, retrying in %.1fs", self._retry_seconds)
                self._stop_event.wait(self._retry_seconds)
                continue
            self._stop_event.wait(self._next_delay())

    def _next_delay(self) -> float:
        now = self._clock()
        if self._degraded:
            return max(0.01, min(self._retry_at - now, defaults.SINK_WAIT_SECONDS))
        last = self._throttle.last_emit
        if last is None:
            return 0.001
        return max(0.001, self._profile.min_interval - (now - last))


__all__ = ["FrameProducer", "FrameProfile", "ProducerStats", "PROFILES", "get_profile"]
