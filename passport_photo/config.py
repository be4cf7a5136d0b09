"""
Centralized configuration constants for the passport photo pipeline.

Ground rules:
- Output is always TARGET_WIDTH x TARGET_HEIGHT (3.5 x 4.5 cm @ 300 DPI)
- Geometry never hardcodes the aspect ratio; it is passed in from PAPER_SIZE
"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class PaperSize:
    name: str
    width_cm: float
    height_cm: float
    width_px: int
    height_px: int
    dpi: int

    @property
    def aspect_ratio(self) -> float:
        return self.width_cm / self.height_cm


PAPER_SIZE = PaperSize(name="3.5x4.5cm", width_cm=3.5, height_cm=4.5, width_px=413, height_px=531, dpi=300)

TARGET_WIDTH = PAPER_SIZE.width_px
TARGET_HEIGHT = PAPER_SIZE.height_px
ASPECT_RATIO = PAPER_SIZE.aspect_ratio

# Interactive crop editor.
VIEWPORT_FIT = 0.9
CROP_FRAME_FIT = 0.8
ZOOM_MIN = 0.5
ZOOM_MAX = 3.0
ZOOM_STEP = 0.1
DEFAULT_VIEWPORT = (800, 500)

# Preview overlay styling (RGB, opacity in [0,1]).
PREVIEW_BACKGROUND = (241, 245, 249)
PREVIEW_DIM_OPACITY = 0.5
GRID_COLOR = (255, 255, 255)
GRID_OPACITY = 0.3
BORDER_COLOR = (255, 255, 255)
BORDER_WIDTH = 2

# Export.
JPEG_QUALITY = 95
EXPORT_FORMATS = ("jpg", "png")
FLATTEN_BASE_COLOR = (255, 255, 255)

# Upload validation.
ALLOWED_MIME_PATTERN = r"image/(jpeg|jpg|png|webp)"
MAX_UPLOAD_BYTES = 10 * 1024 * 1024

# Background palette offered after background removal.
BACKGROUND_COLORS = {
    "White": "#FFFFFF",
    "Black": "#000000",
    "Blue": "#0000FF",
}
DEFAULT_BACKGROUND_COLOR = BACKGROUND_COLORS["White"]

# Remote background removal.
REMOVE_BG_PATH = "/v1.0/removebg"
REMOVE_BG_API_KEY_ENV = "REMOVE_BG_API_KEY"


def get_remove_bg_base_url() -> str:
    return os.getenv("REMOVE_BG_BASE_URL", "https://api.remove.bg").rstrip("/")


def get_remove_bg_timeout_s() -> float:
    try:
        return float(os.getenv("REMOVE_BG_TIMEOUT_S", "30"))
    except ValueError:
        return 30.0
