"""Tests for single-shot PNG capture."""

import cv2
import pytest

from card_overlay.capture.frames import CropRegion
from card_overlay.capture.snapshot import save_snapshot, snapshot_path


def test_name_uses_epoch_milliseconds(tmp_path):
    assert snapshot_path(tmp_path, timestamp=1700000000.123).name == "capture-1700000000123.png"


def test_same_millisecond_does_not_overwrite(bgr_frame, tmp_path):
    first = save_snapshot(bgr_frame, tmp_path, timestamp=5.0)
    second = save_snapshot(bgr_frame, tmp_path, timestamp=5.0)
    assert first != second
    assert first.exists() and second.exists()


def test_full_frame_when_no_crop(bgr_frame, tmp_path):
    path = save_snapshot(bgr_frame, tmp_path)
    assert cv2.imread(str(path)).shape[:2] == (480, 640)


def test_crop_at_native_resolution(bgr_frame, tmp_path):
    path = save_snapshot(bgr_frame, tmp_path, crop=CropRegion(100, 50, 300, 200))
    assert cv2.imread(str(path)).shape[:2] == (200, 300)


def test_creates_directory(bgr_frame, tmp_path):
    target = tmp_path / "nested" / "captures"
    assert save_snapshot(bgr_frame, target).parent == target


def test_unwritable_target_raises(bgr_frame, tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(OSError):
        save_snapshot(bgr_frame, blocker)
