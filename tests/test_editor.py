from __future__ import annotations

import numpy as np
import pytest

from passport_photo.config import TARGET_HEIGHT, TARGET_WIDTH
from passport_photo.editor import CropEditor
from passport_photo.errors import ViewportNotReady
from passport_photo.geometry import Transform
from passport_photo.io import ImageBuffer


def _image(w: int = 1200, h: int = 900) -> ImageBuffer:
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[..., 1] = 128
    return ImageBuffer(arr)


def _ready_editor() -> CropEditor:
    ed = CropEditor()
    ed.measure_viewport(800, 500)
    ed.load_image(_image())
    return ed


def test_not_ready_until_viewport_measured():
    ed = CropEditor()
    ed.load_image(_image())
    assert ed.is_ready is False
    assert ed.base_scale is None
    with pytest.raises(ViewportNotReady):
        ed.crop_area()

    ed.measure_viewport(800, 500)
    assert ed.is_ready is True
    assert ed.base_scale == pytest.approx(0.5)


def test_new_image_resets_framing():
    ed = _ready_editor()
    ed.set_zoom(2.0)
    ed.pointer_down(0, 0)
    ed.pointer_move(50, 60)
    ed.pointer_up()
    assert ed.transform != Transform()

    ed.load_image(_image(600, 600))
    assert ed.transform == Transform()
    assert ed.base_scale == pytest.approx(450 / 600)


def test_remeasure_resets_framing():
    ed = _ready_editor()
    ed.set_zoom(1.5)
    ed.measure_viewport(1000, 1000)
    assert ed.transform.zoom == 1.0
    assert ed.base_scale == pytest.approx(900 / 1200)


def test_drag_updates_offset_without_clamping():
    ed = _ready_editor()
    ed.pointer_down(100, 100)
    ed.pointer_move(400, 50)
    assert (ed.transform.offset_x, ed.transform.offset_y) == (300, -50)
    ed.pointer_up()

    ed.pointer_down(0, 0)
    ed.pointer_move(10, 10)
    assert (ed.transform.offset_x, ed.transform.offset_y) == (310, -40)

    ed.pointer_move(100000, 0)
    assert ed.transform.offset_x == 100300
    ed.pointer_up()

    # the derived crop area is what gets clamped
    area = ed.crop_area()
    assert area.x >= 0
    assert area.x + area.width <= 1200 + 1e-6


def test_move_without_press_is_ignored():
    ed = _ready_editor()
    ed.pointer_move(300, 300)
    assert ed.transform == Transform()
    assert ed.is_dragging is False


def test_zoom_slider_bounds():
    ed = _ready_editor()
    ed.set_zoom(10)
    assert ed.transform.zoom == 3.0
    ed.set_zoom(0)
    assert ed.transform.zoom == 0.5


def test_confirm_and_render():
    ed = _ready_editor()
    crop = ed.confirm()
    assert crop.size == (TARGET_WIDTH, TARGET_HEIGHT)
    preview = ed.render()
    assert preview.size == (800, 500)
