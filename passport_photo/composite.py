from __future__ import annotations

import logging
import re
from typing import Optional, Sequence, Tuple, Union

from .config import FLATTEN_BASE_COLOR, TARGET_HEIGHT, TARGET_WIDTH
from .geometry import Rect
from .io import ImageBuffer
from .surface import PillowSurface, RasterSurface

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]
ColorLike = Union[str, Sequence[int]]

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def parse_color(color: ColorLike) -> RGB:
    """
    Accepts "#RRGGBB", "#RGB" (leading # optional) or an (r, g, b) sequence.
    """
    if isinstance(color, str):
        m = _HEX_RE.match(color.strip())
        if not m:
            raise ValueError(f"Invalid color: {color!r}")
        digits = m.group(1)
        if len(digits) == 3:
            digits = "".join(ch * 2 for ch in digits)
        return tuple(int(digits[i : i + 2], 16) for i in (0, 2, 4))  # type: ignore[return-value]

    values = tuple(int(v) for v in color)
    if len(values) != 3 or any(v < 0 or v > 255 for v in values):
        raise ValueError(f"Invalid color: {color!r}")
    return values  # type: ignore[return-value]


def color_to_hex(color: ColorLike) -> str:
    r, g, b = parse_color(color)
    return f"#{r:02X}{g:02X}{b:02X}"


def fit_rect(width: int, height: int, box_w: int = TARGET_WIDTH, box_h: int = TARGET_HEIGHT) -> Rect:
    """Aspect-preserving scale-to-fit, centered (letterboxed when aspects differ)."""
    scale = min(box_w / width, box_h / height)
    scaled_w = width * scale
    scaled_h = height * scale
    return Rect(x=(box_w - scaled_w) / 2, y=(box_h - scaled_h) / 2, width=scaled_w, height=scaled_h)


def composite_over_color(
    foreground: ImageBuffer,
    color: ColorLike,
    surface: Optional[RasterSurface] = None,
) -> ImageBuffer:
    """
    Fill a target-size canvas with `color`, then source-over the foreground on top.

    Always call with the unflattened foreground (crop or background-removed
    result), never with a previous composite.
    """
    surface = surface or PillowSurface()
    rgb = parse_color(color)
    canvas = surface.allocate((TARGET_WIDTH, TARGET_HEIGHT), rgb)
    out = surface.draw(canvas, foreground, fit_rect(foreground.width, foreground.height))
    logger.debug("Composited %dx%d foreground over %s", foreground.width, foreground.height, color_to_hex(rgb))
    return out.to_rgb()


def flatten(image: ImageBuffer, surface: Optional[RasterSurface] = None) -> ImageBuffer:
    """
    Un-scaled draw at (0, 0) onto an opaque target-size canvas.

    Input is expected to already be target-sized; anything else is clipped or
    left on the canvas base color rather than rescaled.
    """
    surface = surface or PillowSurface()
    if image.size != (TARGET_WIDTH, TARGET_HEIGHT):
        logger.warning(
            "Flattening %dx%d image onto %dx%d canvas without scaling",
            image.width, image.height, TARGET_WIDTH, TARGET_HEIGHT,
        )
    canvas = surface.allocate((TARGET_WIDTH, TARGET_HEIGHT), FLATTEN_BASE_COLOR)
    out = surface.draw(canvas, image, Rect(0, 0, image.width, image.height))
    return out.to_rgb()
