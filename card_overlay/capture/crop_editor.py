"""
Crop Editor - Interactive selection of the broadcast crop region.

States:
- IDLE: no selection in progress, no committed region
- SELECTING: the operator is dragging a rectangle over the preview
- COMMITTED: a region is applied to outgoing frames

The rectangle is tracked in display (preview) pixels and converted to
source pixels on commit. Entering selection forces the preview visible;
leaving it restores whatever visibility the preview had before.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from card_overlay.capture.frames import CropRegion
from card_overlay.core.logging_utils import get_module_logger


class CropEditorState(Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    COMMITTED = "committed"


@dataclass
class PreviewToggle:
    """Visibility flag of the operator's local video preview."""
    visible: bool = False

    def show(self) -> None:
        self.visible = True

    def hide(self) -> None:
        self.visible = False


RegionListener = Callable[[Optional[CropRegion]], None]


class CropEditor:
    """Press/drag/release selection that commits a CropRegion."""

    def __init__(self, preview: Optional[PreviewToggle] = None) -> None:
        self.logger = get_module_logger("CropEditor")
        self.preview = preview or PreviewToggle()
        self._state = CropEditorState.IDLE
        self._region: Optional[CropRegion] = None
        self._start: Optional[tuple[float, float]] = None
        self._current: Optional[tuple[float, float]] = None
        self._dragging = False
        self._preview_was_visible = False
        self._state_before: CropEditorState = CropEditorState.IDLE
        self._listeners: List[RegionListener] = []

    @property
    def state(self) -> CropEditorState:
        return self._state

    @property
    def region(self) -> Optional[CropRegion]:
        return self._region

    @property
    def selection(self) -> Optional[tuple[float, float, float, float]]:
        """Current rectangle in display pixels as (x1, y1, x2, y2)."""
        if self._start is None or self._current is None:
            return None
        return (*self._start, *self._current)

    def add_listener(self, listener: RegionListener) -> None:
        self._listeners.append(listener)

    def _set_state(self, state: CropEditorState) -> None:
        if state != self._state:
            self.logger.debug("%s -> %s", self._state.value, state.value)
            self._state = state

    def _notify(self) -> None:
        for listener in self._listeners:
            listener(self._region)

    def _reset_selection(self) -> None:
        self._start = None
        self._current = None
        self._dragging = False

    # ------------------------------------------------------------------
    # Transitions

    def begin(self) -> None:
        if self._state == CropEditorState.SELECTING:
            return
        self._state_before = self._state
        self._preview_was_visible = self.preview.visible
        if not self.preview.visible:
            self.preview.show()
        self._reset_selection()
        self._set_state(CropEditorState.SELECTING)

    def press(self, x: float, y: float) -> None:
        if self._state != CropEditorState.SELECTING:
            return
        self._start = (x, y)
        self._current = (x, y)
        self._dragging = True

    def drag(self, x: float, y: float) -> None:
        if self._state != CropEditorState.SELECTING or not self._dragging:
            return
        self._current = (x, y)

    def release(self, x: Optional[float] = None, y: Optional[float] = None) -> None:
        if self._state != CropEditorState.SELECTING or self._start is None:
            return
        if x is not None and y is not None and self._dragging:
            self._current = (x, y)
        self._dragging = False

    def commit(
        self,
        display_size: tuple[float, float],
        source_size: tuple[int, int],
    ) -> Optional[CropRegion]:
        """Convert the selection to source pixels and apply it.

        A missing or zero-area selection commits nothing and behaves like
        ``cancel``. Returns the committed region or None.
        """
        if self._state != CropEditorState.SELECTING:
            return None

        selection = self.selection
        display_w, display_h = display_size
        if selection is None or display_w <= 0 or display_h <= 0:
            self.cancel()
            return None

        scale_x = source_size[0] / display_w
        scale_y = source_size[1] / display_h
        x1, y1, x2, y2 = selection
        try:
            region = CropRegion.from_corners(x1 * scale_x, y1 * scale_y, x2 * scale_x, y2 * scale_y)
        except ValueError:
            self.logger.debug("Degenerate selection %s ignored", selection)
            self.cancel()
            return None

        self._region = region
        self._restore_preview()
        self._reset_selection()
        self._set_state(CropEditorState.COMMITTED)
        self.logger.info("Committed crop %dx%d at (%d, %d)", region.width, region.height, region.x, region.y)
        self._notify()
        return region

    def cancel(self) -> None:
        if self._state != CropEditorState.SELECTING:
            return
        self._restore_preview()
        self._reset_selection()
        self._set_state(self._state_before)

    def clear(self) -> None:
        if self._state == CropEditorState.SELECTING:
            self._restore_preview()
            self._reset_selection()
        had_region = self._region is not None
        self._region = None
        self._set_state(CropEditorState.IDLE)
        if had_region:
            self._notify()

    def _restore_preview(self) -> None:
        self.preview.visible = self._preview_was_visible


__all__ = ["CropEditor", "CropEditorState", "PreviewToggle"]
