import numpy as np
import pytest

from conftest import make_image, random_image
from raster_editor.models import Colorf32, PixelFormat
from raster_editor.repositories import ImageRepository
from raster_editor.services import interpolate, interpolate_pixel


def pixels_of(img):
    return ImageRepository.to_array(img)


@pytest.mark.parametrize("fmt", list(PixelFormat))
def test_same_size_returns_identical_copy(editor, rng, fmt):
    img = random_image(rng, 5, 4, fmt)
    resized = editor.resize(img, 5, 4)
    assert np.array_equal(resized.pixels.as_bytes(), img.pixels.as_bytes())
    assert resized.pixels is not img.pixels
    if fmt.is_indexed():
        assert np.array_equal(resized.pixels.get_palette(), img.pixels.get_palette())


@pytest.mark.parametrize("size", [(13, 3), (2, 2), (1, 9), (7, 5)])
def test_integer_output_stays_in_range(editor, rng, size):
    arr = rng.integers(0, 256, size=(5, 7, 4), dtype=np.uint8)
    arr[:, :3, 3] = 0        # fully transparent region
    arr[:, 4:, 3] = 255      # fully opaque region
    img = make_image(arr, PixelFormat.RGBA32)
    resized = editor.resize(img, *size)
    out = pixels_of(resized)
    assert out.dtype == np.uint8
    assert out.shape == (size[1], size[0], 4)
    assert out.min() >= 0 and out.max() <= 255


def test_transparent_edge_has_no_dark_fringe(editor):
    red_to_clear = make_image(np.array([[[255, 0, 0, 255], [0, 0, 0, 0]]], dtype=np.uint8), PixelFormat.RGBA32)
    out = pixels_of(editor.resize(red_to_clear, 4, 1))[0]

    assert out[0].tolist() == [255, 0, 0, 255]
    assert out[1][:3].tolist() == [255, 0, 0]
    assert out[1][3] in (127, 128)
    assert out[2][3] == 0 and out[3][3] == 0

    # Without premultiplication the midpoint would be blended halfway to black.
    naive = interpolate(red_to_clear.pixels.as_array().astype(np.float32) / 255, 2, 1, 4, 1)
    assert naive[1][0] * 255 < out[1][0] - 100


@pytest.mark.parametrize("pixel", [[10, 200, 30, 255], [90, 45, 250, 128]])
@pytest.mark.parametrize("size", [(1, 1), (5, 3), (2, 8)])
def test_single_pixel_is_replicated(editor, pixel, size):
    img = make_image(np.array([[pixel]], dtype=np.uint8), PixelFormat.RGBA32)
    out = pixels_of(editor.resize(img, *size))
    assert out.shape == (size[1], size[0], 4)
    assert (out == np.array(pixel, dtype=np.uint8)).all()


def test_single_float_pixel_is_replicated(editor):
    value = [0.2, 0.4, 0.6, 1.0]
    img = make_image(np.array([[value]], dtype=np.float32), PixelFormat.FLOAT32)
    out = pixels_of(editor.resize(img, 3, 2))
    assert np.allclose(out, np.array(value, dtype=np.float32), atol=1e-5)


def test_downscale_samples_source_grid(editor, rng):
    arr = rng.integers(0, 256, size=(4, 4, 4), dtype=np.uint8)
    arr[..., 3] = 255
    img = make_image(arr, PixelFormat.RGBA32)
    out = pixels_of(editor.resize(img, 2, 2))
    # gx = x / 2 * 4 lands exactly on source pixels 0 and 2.
    assert np.array_equal(out, arr[::2, ::2])


def test_uniform_grayscale_stays_uniform(editor):
    img = make_image(np.full((3, 4), 77, dtype=np.uint8), PixelFormat.GRAYSCALE8)
    resized = editor.resize(img, 9, 5)
    assert resized.pixel_format() is PixelFormat.GRAYSCALE8
    assert (pixels_of(resized) == 77).all()


def test_uniform_rgb48_stays_uniform(editor):
    img = make_image(np.full((2, 2, 3), [1000, 30000, 65535], dtype=np.uint16), PixelFormat.RGB48)
    out = pixels_of(editor.resize(img, 5, 3)).astype(np.int64)
    assert np.abs(out - [1000, 30000, 65535]).max() <= 1


def test_indexed_resize_keeps_palette(editor, indexed_image):
    resized = editor.resize(indexed_image, 9, 4)
    assert resized.pixel_format() is PixelFormat.INDEXED8
    assert np.array_equal(resized.pixels.get_palette(), indexed_image.pixels.get_palette())
    assert pixels_of(resized).max() < len(indexed_image.pixels.get_palette())


def test_resize_leaves_source_untouched(editor, rgba_image):
    before = rgba_image.pixels.as_bytes().copy()
    editor.resize(rgba_image, 3, 17)
    assert np.array_equal(rgba_image.pixels.as_bytes(), before)


def test_zero_target_gives_empty_image(editor, rgba_image, indexed_image):
    empty = editor.resize(rgba_image, 0, 5)
    assert (empty.width, empty.height, len(empty.pixels)) == (0, 5, 0)
    empty_indexed = editor.resize(indexed_image, 4, 0)
    assert np.array_equal(empty_indexed.pixels.get_palette(), indexed_image.pixels.get_palette())


def test_empty_source_cannot_grow(editor):
    empty = make_image(np.zeros((0, 3, 4), dtype=np.uint8), PixelFormat.RGBA32)
    with pytest.raises(ValueError):
        editor.resize(empty, 2, 2)


def test_negative_size_rejected(editor, rgba_image):
    with pytest.raises(ValueError):
        editor.resize(rgba_image, -1, 4)


def test_pixel_function_matches_grid(rng):
    source = rng.random((4 * 3, 4), dtype=np.float32)
    grid = interpolate(source, 4, 3, 7, 5)
    for y in range(5):
        for x in range(7):
            color = interpolate_pixel(source, 4, 3, 7, 5, x, y)
            assert isinstance(color, Colorf32)
            assert np.allclose(color.to_array(), grid[y * 7 + x], atol=1e-6)


def test_interpolation_clamps_at_edges():
    source = np.array([[0, 0, 0, 1], [1, 1, 1, 1]], dtype=np.float32)
    grid = interpolate(source, 2, 1, 4, 1)
    assert np.allclose(grid[:, 0], [0.0, 0.5, 1.0, 1.0])


def test_fully_transparent_pixel_resizes_to_zero(editor):
    img = make_image(np.array([[[100, 0]]], dtype=np.uint8), PixelFormat.GRAYSCALE8_ALPHA)
    out = pixels_of(editor.resize(img, 3, 2))
    assert out.shape == (2, 3, 2)
    assert (out == 0).all()


def test_out_of_memory_mid_resize_is_allocation_error(editor, rgba_image, monkeypatch):
    from raster_editor.models import AllocationError
    from raster_editor.services import editor_service

    def no_memory(*args, **kwargs):
        raise MemoryError

    monkeypatch.setattr(editor_service, "interpolate", no_memory)
    with pytest.raises(AllocationError) as info:
        editor.resize(rgba_image, 4, 4)
    assert isinstance(info.value.__cause__, MemoryError)


def test_allocation_error_from_converter_passes_through(editor, rgba_image, monkeypatch):
    from raster_editor.models import AllocationError

    def no_memory(*args, **kwargs):
        raise AllocationError("Unable to allocate")

    monkeypatch.setattr(editor.converter, "from_rgba_float", no_memory)
    with pytest.raises(AllocationError, match="Unable to allocate"):
        editor.resize(rgba_image, 4, 4)
