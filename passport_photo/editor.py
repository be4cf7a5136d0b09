from __future__ import annotations

import logging
from typing import Optional

from .config import ASPECT_RATIO
from .errors import ViewportNotReady
from .geometry import (
    Point,
    Rect,
    Size,
    Transform,
    compute_base_scale,
    compute_crop_frame,
    viewport_to_image_rect,
)
from .io import ImageBuffer
from .rasterizer import extract_crop, render_preview
from .surface import RasterSurface

logger = logging.getLogger(__name__)


class CropEditor:
    """
    Interactive pan/zoom state for one loaded image.

    The live offset is never clamped while dragging; only the crop area derived
    at confirm time is clamped to the image bounds.
    """

    def __init__(self, aspect_ratio: float = ASPECT_RATIO):
        self.aspect_ratio = aspect_ratio
        self.image: Optional[ImageBuffer] = None
        self.viewport: Size = Size(0, 0)
        self.base_scale: Optional[float] = None
        self.transform = Transform()
        self._drag_origin: Optional[Point] = None

    @property
    def is_ready(self) -> bool:
        return self.image is not None and self.base_scale is not None

    @property
    def is_dragging(self) -> bool:
        return self._drag_origin is not None

    def load_image(self, image: ImageBuffer) -> None:
        self.image = image
        self._refit()

    def measure_viewport(self, width: float, height: float) -> None:
        self.viewport = Size(float(width), float(height))
        self._refit()

    def _refit(self) -> None:
        """New image or viewport: recompute the base scale and start from a fresh framing."""
        self._drag_origin = None
        if self.image is None or self.viewport.is_empty:
            self.base_scale = None
            return
        self.base_scale = compute_base_scale(Size(self.image.width, self.image.height), self.viewport)
        self.transform = Transform()
        logger.debug("Base scale %.4f for %dx%d image", self.base_scale, self.image.width, self.image.height)

    # --- Pointer + slider input ---

    def pointer_down(self, x: float, y: float) -> None:
        self._drag_origin = Point(x - self.transform.offset_x, y - self.transform.offset_y)

    def pointer_move(self, x: float, y: float) -> None:
        if self._drag_origin is None:
            return
        self.transform = self.transform.with_offset(x - self._drag_origin.x, y - self._drag_origin.y)

    def pointer_up(self) -> None:
        self._drag_origin = None

    def set_zoom(self, zoom: float) -> None:
        self.transform = self.transform.with_zoom(zoom)

    def reset(self) -> None:
        self._drag_origin = None
        self.transform = Transform()

    # --- Derived geometry ---

    def _require_ready(self) -> ImageBuffer:
        if self.image is None or self.base_scale is None:
            raise ViewportNotReady("Image not loaded or viewport not measured yet")
        return self.image

    def crop_frame(self) -> Rect:
        return compute_crop_frame(self.viewport, self.aspect_ratio)

    def crop_area(self) -> Rect:
        image = self._require_ready()
        return viewport_to_image_rect(
            self.crop_frame(),
            self.transform,
            self.base_scale,
            Size(image.width, image.height),
            self.viewport,
        )

    def render(self) -> ImageBuffer:
        image = self._require_ready()
        return render_preview(image, self.viewport, self.transform, self.base_scale, self.aspect_ratio)

    def confirm(self, surface: Optional[RasterSurface] = None) -> ImageBuffer:
        image = self._require_ready()
        return extract_crop(image, self.crop_area(), surface)
