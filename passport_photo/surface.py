"""
Raster surface capability.

Every pixel-producing step (crop extraction, compositing, export) goes through a
surface object instead of touching Pillow directly, so the geometry and
compositing logic can be exercised with any backend that implements the same
three operations.
"""

from __future__ import annotations

import io
import logging
from typing import Optional, Protocol, Tuple

from PIL import Image

from .config import PAPER_SIZE
from .errors import CanvasOperationError
from .geometry import Rect
from .io import ImageBuffer

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]

_PIL_FORMATS = {"png": "PNG", "jpg": "JPEG", "jpeg": "JPEG"}


class RasterSurface(Protocol):
    def allocate(self, size: Tuple[int, int], fill: RGB) -> ImageBuffer:
        ...

    def draw(
        self,
        dst: ImageBuffer,
        src: ImageBuffer,
        dst_rect: Rect,
        src_rect: Optional[Rect] = None,
    ) -> ImageBuffer:
        ...

    def encode(self, image: ImageBuffer, fmt: str, quality: Optional[int] = None) -> bytes:
        ...


class PillowSurface:
    """Pillow-backed surface; draws are source-over with Lanczos resampling."""

    resample = Image.Resampling.LANCZOS

    def allocate(self, size: Tuple[int, int], fill: RGB) -> ImageBuffer:
        w, h = int(size[0]), int(size[1])
        if w <= 0 or h <= 0:
            raise CanvasOperationError(f"Cannot allocate a {w}x{h} canvas")
        try:
            return ImageBuffer.from_pil(Image.new("RGB", (w, h), tuple(fill)))
        except (MemoryError, ValueError) as e:
            raise CanvasOperationError(f"Failed to allocate {w}x{h} canvas: {e}") from e

    def draw(
        self,
        dst: ImageBuffer,
        src: ImageBuffer,
        dst_rect: Rect,
        src_rect: Optional[Rect] = None,
    ) -> ImageBuffer:
        """
        Draw `src_rect` of `src` (whole image if None) scaled into `dst_rect` of `dst`.
        Returns a new buffer; neither input is modified.
        """
        dw = max(1, int(round(dst_rect.width)))
        dh = max(1, int(round(dst_rect.height)))
        dx = int(round(dst_rect.x))
        dy = int(round(dst_rect.y))
        box = src_rect.as_box() if src_rect is not None else None
        try:
            src_img = src.to_pil()
            if box is not None or src_img.size != (dw, dh):
                src_img = src_img.resize((dw, dh), self.resample, box=box)
            canvas = dst.to_pil()
            if src_img.mode == "RGBA":
                if canvas.mode == "RGBA":
                    layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
                    layer.paste(src_img, (dx, dy))
                    canvas = Image.alpha_composite(canvas, layer)
                else:
                    canvas.paste(src_img, (dx, dy), mask=src_img)
            else:
                canvas.paste(src_img.convert(canvas.mode), (dx, dy))
        except (MemoryError, OSError, ValueError) as e:
            raise CanvasOperationError(f"Failed to draw image: {e}") from e
        return ImageBuffer.from_pil(canvas)

    def encode(self, image: ImageBuffer, fmt: str, quality: Optional[int] = None) -> bytes:
        pil_format = _PIL_FORMATS.get(fmt.lower())
        if pil_format is None:
            raise ValueError(f"Unsupported export format: {fmt}")
        img = image.to_pil()
        params = {"dpi": (PAPER_SIZE.dpi, PAPER_SIZE.dpi)}
        if pil_format == "JPEG":
            img = img.convert("RGB")
            if quality is not None:
                params["quality"] = int(quality)
        buf = io.BytesIO()
        try:
            img.save(buf, format=pil_format, **params)
        except (MemoryError, OSError, ValueError) as e:
            raise CanvasOperationError(f"Failed to encode {pil_format}: {e}") from e
        data = buf.getvalue()
        logger.debug("Encoded %dx%d image as %s (%d bytes)", image.width, image.height, pil_format, len(data))
        return data
