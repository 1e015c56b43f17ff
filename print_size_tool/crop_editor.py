"""
Crop editor state machine and drawing model (Qt-free).

``CropInteractor`` owns the crop region of the one size being edited.
It turns pointer events in canvas coordinates into moves of the region in
source-image coordinates, clamped to the image, and re-renders that size
on apply.  The region's width and height never change while editing: the
print's aspect ratio is fixed.

States::

    CLOSED → INITIALIZING → READY ⇄ DRAGGING
    READY → APPLYING → CLOSED      (APPLYING → READY on failure)
    READY → CANCELED → CLOSED

``draw_commands`` describes one frame of the editor canvas as a list of
plain drawing operations; ``crop_widget.CropCanvas`` executes them with
QPainter.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from PIL import Image

from print_size_tool.config import (
    CANVAS_MARGIN, CANVAS_MIN_H, CANVAS_MIN_W, DIM_ALPHA, HANDLE_SIZE,
    NUDGE_LARGE, NUDGE_SMALL, TARGET_DPI, ZOOM_MAX, ZOOM_MIN, ZOOM_STEP,
)
from print_size_tool.errors import PrintSizeError
from print_size_tool.geometry import (
    CropRegion, auto_crop, clamp_origin, fit_scale, is_within_bounds,
    map_display_to_source, map_source_to_display,
)
from print_size_tool.resample import render_size
from print_size_tool.results import ProcessedResult
from print_size_tool.sizes import PhysicalSize

logger = logging.getLogger(__name__)

BORDER_COLOR = (59, 130, 246, 255)
HANDLE_COLOR = (59, 130, 246, 255)
LABEL_COLOR = (255, 255, 255, 255)
BORDER_WIDTH = 2
LABEL_HEIGHT = 20


class EditorState(Enum):
    CLOSED = "closed"
    INITIALIZING = "initializing"
    READY = "ready"
    DRAGGING = "dragging"
    APPLYING = "applying"
    CANCELED = "canceled"


# =============================================================================
# Drawing model
# =============================================================================
@dataclass(frozen=True)
class DrawCommand:
    """
    One drawing operation in canvas coordinates.

    ``op`` is one of ``"image"`` (whole source scaled into ``rect``),
    ``"fill"``, ``"stroke"`` or ``"text"``.  Colors are RGBA tuples.
    """
    op: str
    rect: tuple[float, float, float, float]
    color: tuple[int, int, int, int] = (0, 0, 0, 0)
    width: float = 0
    text: str = ""


@dataclass(frozen=True)
class EditorView:
    """Snapshot of everything needed to draw one editor frame."""
    img_w: int
    img_h: int
    canvas_w: float
    canvas_h: float
    crop: tuple[int, int, int, int]
    zoom: float = 1.0


def draw_commands(view: EditorView) -> list[DrawCommand]:
    """Image, dimmed surroundings, crop border, corner handles and size label."""
    cw, ch = view.canvas_w, view.canvas_h
    if cw <= 0 or ch <= 0 or view.img_w <= 0 or view.img_h <= 0:
        return []

    x, y, w, h = view.crop
    left, top = map_source_to_display((x, y), (view.img_w, view.img_h), (cw, ch))
    right, bottom = map_source_to_display((x + w, y + h), (view.img_w, view.img_h), (cw, ch))

    commands = [DrawCommand("image", (0, 0, cw, ch))]

    # Dim area outside crop: top, bottom, left, right strips
    dim = (0, 0, 0, round(255 * DIM_ALPHA))
    strips = [
        (0, 0, cw, top),
        (0, bottom, cw, ch - bottom),
        (0, top, left, bottom - top),
        (right, top, cw - right, bottom - top),
    ]
    commands.extend(DrawCommand("fill", s, dim) for s in strips if s[2] > 0 and s[3] > 0)

    commands.append(DrawCommand("stroke", (left, top, right - left, bottom - top), BORDER_COLOR, BORDER_WIDTH))

    hs = HANDLE_SIZE / 2
    for hx, hy in ((left, top), (right, top), (left, bottom), (right, bottom)):
        commands.append(DrawCommand("fill", (hx - hs, hy - hs, HANDLE_SIZE, HANDLE_SIZE), HANDLE_COLOR))

    commands.append(DrawCommand(
        "text", (left, top - LABEL_HEIGHT, right - left, LABEL_HEIGHT), LABEL_COLOR, text=f"{w} × {h}",
    ))
    return commands


# =============================================================================
# Interactor
# =============================================================================
class CropInteractor:
    """Interactive crop editing for one catalog size at a time."""

    def __init__(
        self,
        source: Image.Image,
        commit: Callable[[ProcessedResult], None] | None = None,
        render: Callable[..., ProcessedResult] = render_size,
        dpi: int = TARGET_DPI,
    ):
        self._source = source
        self._img_w, self._img_h = source.size
        self._commit = commit
        self._render = render
        self._dpi = dpi

        self.state = EditorState.CLOSED
        self.size: PhysicalSize | None = None
        self.region: CropRegion | None = None
        self.zoom = 1.0
        self.last_error: str | None = None
        self._stored: CropRegion | None = None

        # Area the canvas is fitted into
        self._max_w = float(CANVAS_MIN_W)
        self._max_h = float(CANVAS_MIN_H)

        # Drag state: pointer position and region origin at pointer-down
        self._drag_anchor = (0.0, 0.0)
        self._drag_origin = (0, 0)

    # --- Lifecycle ---

    def open(self, size: PhysicalSize, stored: CropRegion | None = None) -> None:
        """Start editing *size*, from *stored* if given, else the auto-crop."""
        if self.state != EditorState.CLOSED:
            raise RuntimeError(f"Crop editor is already open ({self.state.value})")
        self.size = size
        self._stored = stored.copy() if stored is not None else None
        self.zoom = 1.0
        self.last_error = None
        self.state = EditorState.INITIALIZING
        self._initialize()

    def _initialize(self) -> None:
        stored = self._stored
        if stored is not None and is_within_bounds(stored, self._img_w, self._img_h):
            self.region = stored.copy()
        else:
            self.region = auto_crop(self._img_w, self._img_h, self.size.aspect_ratio)
        self.state = EditorState.READY
        logger.debug("Crop editor ready for %s: %s", self.size.label, self.region)

    def reset(self) -> None:
        """Discard unsaved moves and start over from the initial region."""
        if self.state in (EditorState.READY, EditorState.DRAGGING):
            self.state = EditorState.INITIALIZING
            self._initialize()

    def cancel(self) -> None:
        if self.state == EditorState.CLOSED:
            return
        self.state = EditorState.CANCELED
        logger.debug("Crop edit canceled for %s", self.size.label if self.size else "?")
        self._close()

    def _close(self) -> None:
        self.region = None
        self.size = None
        self._stored = None
        self.state = EditorState.CLOSED

    def apply(self) -> ProcessedResult | None:
        """
        Re-render the size with the current region and hand it to ``commit``.

        On failure the editor stays open with ``last_error`` set and the
        region untouched; returns None.
        """
        if self.state == EditorState.DRAGGING:
            self.state = EditorState.READY
        if self.state != EditorState.READY:
            return None

        self.state = EditorState.APPLYING
        try:
            result = self._render(self._source, self.size, crop=self.region.copy(), dpi=self._dpi)
            if self._commit is not None:
                self._commit(result)
        except (PrintSizeError, KeyError) as exc:
            self.last_error = f"Error applying crop: {exc}"
            logger.error("Error applying crop for %s: %s", self.size.label, exc)
            self.state = EditorState.READY
            return None

        logger.info("Applied crop %s for %s", result.crop, self.size.label)
        self.last_error = None
        self._close()
        return result

    # --- Display mapping ---

    def set_viewport(self, container_w: float, container_h: float) -> None:
        """Set the container size the canvas is fitted into."""
        self._max_w = max(float(CANVAS_MIN_W), container_w - CANVAS_MARGIN)
        self._max_h = max(float(CANVAS_MIN_H), container_h - CANVAS_MARGIN)

    def set_zoom(self, zoom: float) -> None:
        self.zoom = round(max(ZOOM_MIN, min(ZOOM_MAX, zoom)), 2)
        if self.state == EditorState.DRAGGING:
            # Anchor is in the old canvas scale
            self.state = EditorState.READY

    def zoom_in(self) -> None:
        self.set_zoom(self.zoom + ZOOM_STEP)

    def zoom_out(self) -> None:
        self.set_zoom(self.zoom - ZOOM_STEP)

    def canvas_size(self) -> tuple[float, float]:
        scale = fit_scale(self._img_w, self._img_h, self._max_w, self._max_h, self.zoom)
        return self._img_w * scale, self._img_h * scale

    def _to_source(self, x: float, y: float) -> tuple[float, float]:
        return map_display_to_source((x, y), self.canvas_size(), (self._img_w, self._img_h))

    def view(self) -> EditorView | None:
        if self.region is None:
            return None
        cw, ch = self.canvas_size()
        r = self.region
        return EditorView(self._img_w, self._img_h, cw, ch, (r.x, r.y, r.width, r.height), self.zoom)

    # --- Pointer / keyboard ---

    def pointer_down(self, x: float, y: float) -> bool:
        """Start a drag if (x, y) is inside the crop window."""
        if self.state != EditorState.READY:
            return False
        sx, sy = self._to_source(x, y)
        if not self.region.contains(sx, sy):
            return False
        self._drag_anchor = (x, y)
        self._drag_origin = (self.region.x, self.region.y)
        self.state = EditorState.DRAGGING
        return True

    def pointer_move(self, x: float, y: float) -> bool:
        """Move the region by the pointer's offset from the drag anchor."""
        if self.state != EditorState.DRAGGING:
            return False
        dx, dy = self._to_source(x - self._drag_anchor[0], y - self._drag_anchor[1])
        moved = CropRegion(
            round(self._drag_origin[0] + dx),
            round(self._drag_origin[1] + dy),
            self.region.width,
            self.region.height,
        )
        self.region = clamp_origin(moved, self._img_w, self._img_h)
        return True

    def pointer_up(self) -> None:
        if self.state == EditorState.DRAGGING:
            self.state = EditorState.READY

    pointer_leave = pointer_up

    def nudge(self, dx: int, dy: int, large: bool = False) -> bool:
        """Move the region by whole steps of NUDGE_SMALL or NUDGE_LARGE pixels."""
        if self.state != EditorState.READY:
            return False
        step = NUDGE_LARGE if large else NUDGE_SMALL
        moved = CropRegion(
            self.region.x + dx * step, self.region.y + dy * step,
            self.region.width, self.region.height,
        )
        self.region = clamp_origin(moved, self._img_w, self._img_h)
        return True
