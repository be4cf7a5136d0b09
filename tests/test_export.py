from __future__ import annotations

import io

import numpy as np
import pytest
from PIL import Image

from passport_photo.config import TARGET_HEIGHT, TARGET_WIDTH
from passport_photo.export import encode, export_filename, save_export
from passport_photo.io import ImageBuffer


def _rgba_cutout() -> ImageBuffer:
    arr = np.zeros((TARGET_HEIGHT, TARGET_WIDTH, 4), dtype=np.uint8)
    arr[200:300, 150:250] = (0, 128, 0, 255)
    return ImageBuffer(arr)


@pytest.mark.parametrize("fmt,pil_format", [("png", "PNG"), ("jpg", "JPEG"), ("JPEG", "JPEG")])
def test_encode_produces_target_size(fmt, pil_format):
    data = encode(_rgba_cutout(), fmt)
    img = Image.open(io.BytesIO(data))
    assert img.format == pil_format
    assert img.size == (TARGET_WIDTH, TARGET_HEIGHT)
    assert img.mode == "RGB"


def test_png_export_is_opaque_and_lossless():
    img = Image.open(io.BytesIO(encode(_rgba_cutout(), "png")))
    assert img.getpixel((0, 0)) == (255, 255, 255)
    assert img.getpixel((200, 250)) == (0, 128, 0)


def test_jpeg_carries_print_dpi():
    img = Image.open(io.BytesIO(encode(_rgba_cutout(), "jpg")))
    dpi = img.info.get("dpi")
    assert dpi is not None
    assert dpi[0] == pytest.approx(300, abs=1)


def test_wrong_size_input_still_exports_target_size():
    arr = np.zeros((50, 60, 3), dtype=np.uint8)
    img = Image.open(io.BytesIO(encode(ImageBuffer(arr), "png")))
    assert img.size == (TARGET_WIDTH, TARGET_HEIGHT)
    assert img.getpixel((10, 10)) == (0, 0, 0)
    assert img.getpixel((300, 300)) == (255, 255, 255)


@pytest.mark.parametrize("fmt", ["gif", "webp", "", "tiff"])
def test_unsupported_format(fmt):
    with pytest.raises(ValueError):
        encode(_rgba_cutout(), fmt)
    with pytest.raises(ValueError):
        export_filename(fmt)


def test_export_filename():
    assert export_filename("jpg") == "passport-photo-3.5x4.5cm.jpg"
    assert export_filename("jpeg") == "passport-photo-3.5x4.5cm.jpg"
    assert export_filename("PNG") == "passport-photo-3.5x4.5cm.png"


def test_save_export_creates_directory(tmp_path):
    out = save_export(b"abc", "png", tmp_path / "nested" / "dir")
    assert out == tmp_path / "nested" / "dir" / "passport-photo-3.5x4.5cm.png"
    assert out.read_bytes() == b"abc"

    custom = save_export(b"xyz", "jpg", tmp_path, filename="alice.jpg")
    assert custom.name == "alice.jpg"
