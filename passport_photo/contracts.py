from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel


class CropAreaRecord(BaseModel):
    x: float
    y: float
    width: float
    height: float


class ExportRecord(BaseModel):
    """Metadata emitted next to every exported photo."""

    source_path: str
    output_path: str
    format: Literal["jpg", "png"]
    width: int
    height: int
    dpi: int
    zoom: float
    crop_area: CropAreaRecord
    background_removed: bool
    background_color: Optional[str] = None
    removal_status: Literal["idle", "pending", "succeeded", "failed", "skipped"] = "skipped"
    removal_error: str = ""
