from __future__ import annotations

import logging
from typing import Optional

import cv2
import numpy as np

from .config import (
    ASPECT_RATIO,
    BORDER_COLOR,
    BORDER_WIDTH,
    GRID_COLOR,
    GRID_OPACITY,
    PREVIEW_BACKGROUND,
    PREVIEW_DIM_OPACITY,
    TARGET_HEIGHT,
    TARGET_WIDTH,
)
from .errors import CanvasOperationError
from .geometry import Rect, Size, Transform, clamp_crop_area, compute_crop_frame, effective_scale, image_placement
from .io import ImageBuffer
from .surface import PillowSurface, RasterSurface

logger = logging.getLogger(__name__)


def extract_crop(image: ImageBuffer, crop_area: Rect, surface: Optional[RasterSurface] = None) -> ImageBuffer:
    """
    Draw `crop_area` (image pixels) scaled to fill exactly TARGET_WIDTH x TARGET_HEIGHT.

    The result is opaque RGB; any source alpha is dropped here.
    """
    surface = surface or PillowSurface()
    area = clamp_crop_area(crop_area, Size(image.width, image.height))
    if area.width <= 0 or area.height <= 0:
        raise ValueError(f"Crop area is empty after clamping: {area}")

    canvas = surface.allocate((TARGET_WIDTH, TARGET_HEIGHT), (255, 255, 255))
    out = surface.draw(canvas, image.to_rgb(), Rect(0, 0, TARGET_WIDTH, TARGET_HEIGHT), src_rect=area)
    logger.debug(
        "Extracted crop x=%.1f y=%.1f w=%.1f h=%.1f from %dx%d",
        area.x, area.y, area.width, area.height, image.width, image.height,
    )
    return out.to_rgb()


def _warp_into_viewport(image: ImageBuffer, placed: Rect, scale: float, vw: int, vh: int) -> np.ndarray:
    """Affine-draw the image into a viewport-sized buffer over the muted background."""
    src = np.array(image.pixels)
    if not image.has_alpha:
        src = np.dstack([src, np.full(src.shape[:2], 255, dtype=np.uint8)])

    m = np.float32([[scale, 0.0, placed.x], [0.0, scale, placed.y]])
    warped = cv2.warpAffine(
        src,
        m,
        (vw, vh),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(0, 0, 0, 0),
    )
    alpha = warped[..., 3:4].astype(np.float32) / 255.0
    bg = np.array(PREVIEW_BACKGROUND, dtype=np.float32).reshape(1, 1, 3)
    out = warped[..., :3].astype(np.float32) * alpha + bg * (1.0 - alpha)
    return np.clip(out, 0, 255).astype(np.uint8)


def render_preview(
    image: ImageBuffer,
    viewport_size: Size,
    transform: Transform,
    base_scale: float,
    aspect_ratio: float = ASPECT_RATIO,
) -> ImageBuffer:
    """
    Editor preview: transformed image, dimmed outside the crop frame,
    rule-of-thirds grid and a solid border around the frame.
    """
    vw = int(round(viewport_size.width))
    vh = int(round(viewport_size.height))
    frame = compute_crop_frame(viewport_size, aspect_ratio)
    scale = effective_scale(transform, base_scale)
    placed = image_placement(Size(image.width, image.height), viewport_size, transform, base_scale)

    try:
        out = _warp_into_viewport(image, placed, scale, vw, vh)

        x0, y0 = int(round(frame.x)), int(round(frame.y))
        x1, y1 = int(round(frame.x2)), int(round(frame.y2))

        inside = np.zeros((vh, vw), dtype=bool)
        inside[y0:y1, x0:x1] = True
        dimmed = (out.astype(np.float32) * (1.0 - PREVIEW_DIM_OPACITY)).astype(np.uint8)
        out = np.where(inside[..., None], out, dimmed)
        out = np.ascontiguousarray(out)

        grid = out.copy()
        for i in (1, 2):
            gx = int(round(frame.x + frame.width / 3 * i))
            gy = int(round(frame.y + frame.height / 3 * i))
            cv2.line(grid, (gx, y0), (gx, y1), GRID_COLOR, 1)
            cv2.line(grid, (x0, gy), (x1, gy), GRID_COLOR, 1)
        out = cv2.addWeighted(grid, GRID_OPACITY, out, 1.0 - GRID_OPACITY, 0)

        cv2.rectangle(out, (x0, y0), (x1 - 1, y1 - 1), BORDER_COLOR, BORDER_WIDTH)
    except cv2.error as e:
        raise CanvasOperationError(f"Failed to render preview: {e}") from e

    return ImageBuffer(out)
