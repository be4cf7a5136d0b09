from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .composite import flatten
from .config import EXPORT_FORMATS, JPEG_QUALITY, PAPER_SIZE
from .io import ImageBuffer
from .surface import PillowSurface, RasterSurface

logger = logging.getLogger(__name__)


def _normalize_format(fmt: str) -> str:
    f = (fmt or "").lower().lstrip(".")
    if f == "jpeg":
        f = "jpg"
    if f not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt!r} (expected one of {EXPORT_FORMATS})")
    return f


def export_filename(fmt: str) -> str:
    return f"passport-photo-{PAPER_SIZE.name}.{_normalize_format(fmt)}"


def encode(image: ImageBuffer, fmt: str, surface: Optional[RasterSurface] = None) -> bytes:
    """
    Flatten onto a fresh opaque target-size canvas, then encode.
    JPEG at quality 95, PNG lossless.
    """
    f = _normalize_format(fmt)
    surface = surface or PillowSurface()
    final = flatten(image, surface)
    quality = JPEG_QUALITY if f == "jpg" else None
    return surface.encode(final, f, quality=quality)


def save_export(data: bytes, fmt: str, directory: str | Path, filename: Optional[str] = None) -> Path:
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / (filename or export_filename(fmt))
    out_path.write_bytes(data)
    logger.info("Saved %s (%d bytes)", out_path, len(data))
    return out_path
