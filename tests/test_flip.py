import numpy as np
import pytest

from conftest import make_image, random_image
from raster_editor.models import AllocationError, PixelFormat, PixelStorage
from raster_editor.services import editor_service


@pytest.mark.parametrize("fmt", list(PixelFormat))
@pytest.mark.parametrize("height", [1, 2, 3, 7])
def test_double_flip_is_identity(editor, rng, fmt, height):
    img = random_image(rng, 5, height, fmt)
    before = img.pixels.as_bytes().copy()
    editor.flip_vertically(img.pixels, img.height)
    editor.flip_vertically(img.pixels, img.height)
    assert np.array_equal(img.pixels.as_bytes(), before)


@pytest.mark.parametrize("fmt", [PixelFormat.GRAYSCALE8, PixelFormat.RGB24, PixelFormat.FLOAT32])
def test_flip_reverses_rows(editor, rng, fmt):
    img = random_image(rng, 4, 5, fmt)
    rows = img.pixels.as_array().reshape(5, -1).copy()
    editor.flip_vertically(img.pixels, img.height)
    assert np.array_equal(img.pixels.as_array().reshape(5, -1), rows[::-1])


def test_single_row_is_untouched(editor):
    img = make_image(np.arange(12, dtype=np.uint8).reshape(1, 4, 3), PixelFormat.RGB24)
    editor.flip_vertically(img.pixels, 1)
    assert list(img.pixels.as_bytes()) == list(range(12))


def test_odd_height_keeps_middle_row(editor):
    img = make_image(np.array([[1, 1], [2, 2], [3, 3]], dtype=np.uint8), PixelFormat.GRAYSCALE8)
    editor.flip_vertically(img.pixels, 3)
    assert img.pixels.as_array()[:, 0].tolist() == [3, 3, 2, 2, 1, 1]


def test_height_must_divide_buffer(editor):
    storage = PixelStorage.allocate(PixelFormat.RGBA32, 6)
    with pytest.raises(ValueError):
        editor.flip_vertically(storage, 5)


def test_zero_height_only_for_empty_buffer(editor):
    editor.flip_vertically(PixelStorage.allocate(PixelFormat.RGBA32, 0), 0)
    with pytest.raises(ValueError):
        editor.flip_vertically(PixelStorage.allocate(PixelFormat.RGBA32, 4), 0)


def test_scratch_allocation_failure_leaves_buffer_alone(editor, monkeypatch):
    def no_memory(size):
        raise AllocationError(f"Unable to allocate {size} bytes")

    img = make_image(np.array([[1], [2]], dtype=np.uint8), PixelFormat.GRAYSCALE8)
    monkeypatch.setattr(editor_service, "allocate_bytes", no_memory)
    with pytest.raises(AllocationError):
        editor.flip_vertically(img.pixels, 2)
    assert img.pixels.as_bytes().tolist() == [1, 2]
