from __future__ import annotations

import io
import json

import numpy as np
import pytest
from PIL import Image

from passport_photo.config import MAX_UPLOAD_BYTES
from passport_photo.errors import DecodeError, InputValidationError
from passport_photo.io import (
    ImageBuffer,
    decode_bytes,
    decode_data_url,
    guess_mime_type,
    load_image,
    to_data_url,
    validate_upload,
    write_json,
)


def _png_bytes(mode: str = "RGB", size=(20, 10)) -> bytes:
    buf = io.BytesIO()
    Image.new(mode, size).save(buf, format="PNG")
    return buf.getvalue()


@pytest.mark.parametrize("mime", ["image/jpeg", "image/jpg", "image/png", "image/webp"])
def test_accepts_allowed_types(mime):
    validate_upload(mime, 1024)


@pytest.mark.parametrize(
    "mime", ["image/gif", "application/pdf", "", "IMAGE/PNG", "image/png; charset=x", "image/png\n", " image/png"]
)
def test_rejects_other_types(mime):
    with pytest.raises(InputValidationError, match="valid image file"):
        validate_upload(mime, 1024)


def test_size_limit_is_inclusive():
    validate_upload("image/png", MAX_UPLOAD_BYTES)
    with pytest.raises(InputValidationError, match="10MB"):
        validate_upload("image/png", MAX_UPLOAD_BYTES + 1)


def test_type_is_checked_before_size():
    with pytest.raises(InputValidationError, match="valid image file"):
        validate_upload("image/gif", MAX_UPLOAD_BYTES * 2)


def test_decode_keeps_alpha_only_when_present():
    assert decode_bytes(_png_bytes("RGB")).has_alpha is False
    rgba = decode_bytes(_png_bytes("RGBA"))
    assert rgba.has_alpha is True
    assert rgba.size == (20, 10)


@pytest.mark.parametrize("data", [b"", b"not an image", b"<html></html>"])
def test_decode_failures(data):
    with pytest.raises(DecodeError):
        decode_bytes(data)


def test_oversized_pixel_count_is_a_decode_error(monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 50)
    # 200 px is more than twice the limit, which Pillow refuses outright
    with pytest.raises(DecodeError):
        decode_bytes(_png_bytes("L", size=(20, 10)))


def test_exif_orientation_is_applied():
    img = Image.new("RGB", (400, 300), (255, 0, 0))
    img.paste((0, 0, 255), (0, 0, 400, 150))
    exif = Image.Exif()
    exif[0x0112] = 6
    buf = io.BytesIO()
    img.save(buf, format="JPEG", exif=exif)

    out = decode_bytes(buf.getvalue())
    assert out.size == (300, 400)
    # rotated 90 degrees clockwise: the blue top half ends up on the right
    right = out.pixels[200, 250]
    assert int(right[2]) > 200 and int(right[0]) < 60


def test_load_image_missing_file(tmp_path):
    with pytest.raises(DecodeError):
        load_image(tmp_path / "missing.png")


def test_data_url_round_trip():
    src = ImageBuffer(np.full((4, 3, 4), 77, dtype=np.uint8))
    url = to_data_url(src)
    assert url.startswith("data:image/png;base64,")
    out = decode_data_url(url)
    assert np.array_equal(out.pixels, src.pixels)


@pytest.mark.parametrize("url", ["image/png;base64,AAAA", "data:image/png;base64,@@@", "data:a,b,c"])
def test_bad_data_url(url):
    with pytest.raises(DecodeError):
        decode_data_url(url)


def test_image_buffer_is_immutable_copy():
    arr = np.zeros((2, 2, 3), dtype=np.uint8)
    buf = ImageBuffer(arr)
    arr[0, 0] = 255
    assert buf.pixels[0, 0, 0] == 0
    with pytest.raises(ValueError):
        buf.pixels[0, 0, 0] = 1


@pytest.mark.parametrize("shape", [(2, 2), (2, 2, 2), (0, 5, 3)])
def test_image_buffer_rejects_bad_shapes(shape):
    with pytest.raises(ValueError):
        ImageBuffer(np.zeros(shape, dtype=np.uint8))


def test_to_rgb_drops_alpha_without_blending():
    arr = np.zeros((1, 1, 4), dtype=np.uint8)
    arr[0, 0] = (10, 20, 30, 0)
    rgb = ImageBuffer(arr).to_rgb()
    assert rgb.has_alpha is False
    assert tuple(int(v) for v in rgb.pixels[0, 0]) == (10, 20, 30)


def test_guess_mime_type():
    assert guess_mime_type("a/b/photo.JPG") == "image/jpeg"
    assert guess_mime_type("photo.png") == "image/png"
    assert guess_mime_type("photo.webp") == "image/webp"


def test_write_json(tmp_path):
    p = tmp_path / "out" / "meta.json"
    write_json(p, {"b": 1, "a": [1, 2]})
    assert json.loads(p.read_text(encoding="utf-8")) == {"a": [1, 2], "b": 1}
