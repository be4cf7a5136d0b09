from __future__ import annotations

import base64
import binascii
import io
import json
import mimetypes
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from .config import ALLOWED_MIME_PATTERN, MAX_UPLOAD_BYTES
from .errors import DecodeError, InputValidationError


@dataclass(frozen=True, eq=False)
class ImageBuffer:
    """
    Immutable decoded raster.

    pixels: uint8 (H, W, 3) for RGB or (H, W, 4) for RGBA, row-major, read-only.
    """

    pixels: np.ndarray

    def __post_init__(self) -> None:
        arr = self.pixels
        if arr.ndim != 3 or arr.shape[2] not in (3, 4):
            raise ValueError(f"Expected (H,W,3) or (H,W,4) pixels, got shape={arr.shape}")
        if arr.shape[0] <= 0 or arr.shape[1] <= 0:
            raise ValueError(f"Invalid image size: {arr.shape[:2]}")
        # Own a private C-contiguous copy so callers cannot mutate it behind our back.
        arr = np.array(arr, dtype=np.uint8, order="C", copy=True)
        arr.flags.writeable = False
        object.__setattr__(self, "pixels", arr)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def has_alpha(self) -> bool:
        return self.pixels.shape[2] == 4

    @property
    def mode(self) -> str:
        return "RGBA" if self.has_alpha else "RGB"

    @classmethod
    def from_pil(cls, img: Image.Image) -> "ImageBuffer":
        has_alpha = img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)
        converted = img.convert("RGBA" if has_alpha else "RGB")
        return cls(np.array(converted, dtype=np.uint8))

    def to_pil(self) -> Image.Image:
        return Image.fromarray(np.array(self.pixels))

    def to_rgb(self) -> "ImageBuffer":
        """Drop the alpha channel (if any) without blending."""
        if not self.has_alpha:
            return self
        return ImageBuffer(self.pixels[..., :3])

    def transparent_pixel_count(self) -> int:
        if not self.has_alpha:
            return 0
        return int((self.pixels[..., 3] < 255).sum())


def decode_bytes(data: bytes) -> ImageBuffer:
    if not data:
        raise DecodeError("Failed to load image: empty data")
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
        # Camera orientation tag, as a browser would display it.
        img = ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DecodeError(f"Failed to load image: {e}") from e
    return ImageBuffer.from_pil(img)


def decode_data_url(url: str) -> ImageBuffer:
    """Decode a `data:<mime>;base64,<payload>` URL."""
    parts = url.split(",")
    if len(parts) != 2 or not parts[0].startswith("data:"):
        raise DecodeError("Invalid data URL format")
    try:
        raw = base64.b64decode(parts[1], validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Invalid data URL payload: {e}") from e
    return decode_bytes(raw)


def load_image(path: str | Path) -> ImageBuffer:
    p = Path(path)
    try:
        data = p.read_bytes()
    except OSError as e:
        raise DecodeError(f"Could not read image: {p}") from e
    return decode_bytes(data)


def to_png_bytes(image: ImageBuffer) -> bytes:
    buf = io.BytesIO()
    image.to_pil().save(buf, format="PNG")
    return buf.getvalue()


def to_data_url(image: ImageBuffer) -> str:
    b64 = base64.b64encode(to_png_bytes(image)).decode("utf-8")
    return f"data:image/png;base64,{b64}"


def guess_mime_type(path: str | Path) -> str:
    mime, _ = mimetypes.guess_type(str(path))
    if mime is None and Path(path).suffix.lower() == ".webp":
        return "image/webp"
    return mime or "application/octet-stream"


def validate_upload(mime_type: str, size_bytes: int) -> None:
    """
    Type first, then size. Raises InputValidationError with a user-facing message.
    """
    if not re.fullmatch(ALLOWED_MIME_PATTERN, mime_type or ""):
        raise InputValidationError("Please upload a valid image file (JPG, PNG, or WEBP)")
    if size_bytes > MAX_UPLOAD_BYTES:
        raise InputValidationError("File size must be less than 10MB")


def write_json(path: str | Path, data: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
