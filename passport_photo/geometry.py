"""
Pan/zoom geometry for the crop editor.

Three coordinate spaces are involved:
  - viewport space: the on-screen editor surface, origin at its top-left
  - image space: source-image pixels
  - output space: the fixed TARGET_WIDTH x TARGET_HEIGHT raster

The image is drawn centered in the viewport, shifted by the transform offset and
scaled by `base_scale * zoom`. The crop frame is fixed in viewport space, so a
crop area in image space is derived by inverting that placement.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace

from .config import CROP_FRAME_FIT, VIEWPORT_FIT, ZOOM_MAX, ZOOM_MIN, ZOOM_STEP
from .errors import ViewportNotReady


@dataclass(frozen=True)
class Size:
    width: float
    height: float

    @property
    def is_empty(self) -> bool:
        return not (self.width > 0 and self.height > 0)


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def x2(self) -> float:
        return self.x + self.width

    @property
    def y2(self) -> float:
        return self.y + self.height

    def as_box(self) -> tuple[float, float, float, float]:
        """(left, top, right, bottom), the order Pillow expects."""
        return self.x, self.y, self.x2, self.y2


@dataclass(frozen=True)
class Transform:
    """User-facing pan/zoom; `zoom` multiplies the per-image base scale."""

    zoom: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    def with_offset(self, x: float, y: float) -> Transform:
        return replace(self, offset_x=float(x), offset_y=float(y))

    def with_zoom(self, zoom: float) -> Transform:
        return replace(self, zoom=clamp_zoom(zoom))


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def clamp_zoom(zoom: float) -> float:
    """Bound to the slider range and snap to its step."""
    z = _clamp(float(zoom), ZOOM_MIN, ZOOM_MAX)
    steps = round((z - ZOOM_MIN) / ZOOM_STEP)
    return round(ZOOM_MIN + steps * ZOOM_STEP, 10)


def _require_measured(*sizes: Size) -> None:
    for s in sizes:
        if s.is_empty:
            raise ViewportNotReady(f"Cannot compute geometry for empty size {s.width}x{s.height}")


def compute_base_scale(image_size: Size, viewport_size: Size) -> float:
    """Scale that fits the whole image inside 90% of the viewport."""
    _require_measured(image_size, viewport_size)
    scale_x = (viewport_size.width * VIEWPORT_FIT) / image_size.width
    scale_y = (viewport_size.height * VIEWPORT_FIT) / image_size.height
    return min(scale_x, scale_y)


def compute_crop_frame(viewport_size: Size, aspect_ratio: float) -> Rect:
    """Fixed-aspect frame centered in the viewport with a 10% margin on the binding side."""
    _require_measured(viewport_size)
    if aspect_ratio <= 0:
        raise ValueError(f"Aspect ratio must be positive, got {aspect_ratio}")
    crop_w = min(viewport_size.width * CROP_FRAME_FIT, viewport_size.height * CROP_FRAME_FIT * aspect_ratio)
    crop_h = crop_w / aspect_ratio
    return Rect(
        x=viewport_size.width / 2 - crop_w / 2,
        y=viewport_size.height / 2 - crop_h / 2,
        width=crop_w,
        height=crop_h,
    )


def effective_scale(transform: Transform, base_scale: float) -> float:
    scale = float(base_scale) * float(transform.zoom)
    if not (scale > 0 and math.isfinite(scale)):
        raise ValueError(f"Effective scale must be positive, got {scale}")
    return scale


def image_placement(image_size: Size, viewport_size: Size, transform: Transform, base_scale: float) -> Rect:
    """Where the transformed image lands in viewport space."""
    scale = effective_scale(transform, base_scale)
    drawn_w = image_size.width * scale
    drawn_h = image_size.height * scale
    return Rect(
        x=viewport_size.width / 2 + transform.offset_x - drawn_w / 2,
        y=viewport_size.height / 2 + transform.offset_y - drawn_h / 2,
        width=drawn_w,
        height=drawn_h,
    )


def clamp_crop_area(area: Rect, image_size: Size) -> Rect:
    """
    Shift the crop back inside the image, then truncate whatever still overhangs.
    Out-of-frame crops are corrected silently; they are not a user error.
    """
    x = max(0.0, min(area.x, image_size.width - area.width))
    y = max(0.0, min(area.y, image_size.height - area.height))
    width = min(area.width, image_size.width - x)
    height = min(area.height, image_size.height - y)
    return Rect(x=x, y=y, width=width, height=height)


def viewport_to_image_rect(
    crop_frame: Rect,
    transform: Transform,
    base_scale: float,
    image_size: Size,
    viewport_size: Size,
) -> Rect:
    """Map the viewport-space crop frame to a clamped crop area in image pixels."""
    _require_measured(image_size, viewport_size)
    scale = effective_scale(transform, base_scale)
    placed = image_placement(image_size, viewport_size, transform, base_scale)
    area = Rect(
        x=(crop_frame.x - placed.x) / scale,
        y=(crop_frame.y - placed.y) / scale,
        width=crop_frame.width / scale,
        height=crop_frame.height / scale,
    )
    return clamp_crop_area(area, image_size)


def image_rect_to_viewport(
    area: Rect,
    transform: Transform,
    base_scale: float,
    image_size: Size,
    viewport_size: Size,
) -> Rect:
    """Inverse of `viewport_to_image_rect` (without clamping)."""
    _require_measured(image_size, viewport_size)
    scale = effective_scale(transform, base_scale)
    placed = image_placement(image_size, viewport_size, transform, base_scale)
    return Rect(
        x=placed.x + area.x * scale,
        y=placed.y + area.y * scale,
        width=area.width * scale,
        height=area.height * scale,
    )
