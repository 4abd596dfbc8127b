import numpy as np
import pytest

from raster_editor.models import Image, PixelFormat
from raster_editor.repositories import FormatConverter, ImageRepository
from raster_editor.services import EditorService, ImageService


def make_image(arr, pixel_format, palette=None, path=None) -> Image:
    return ImageRepository.create_image(np.asarray(arr), pixel_format, palette, path)


def random_image(rng, width, height, pixel_format, palette_size=16) -> Image:
    """Random content in any format (indexed formats get a random palette)."""
    fmt = pixel_format
    if fmt.is_indexed():
        palette = rng.integers(0, 256, size=(palette_size, 4), dtype=np.uint8)
        indices = rng.integers(0, palette_size, size=(height, width)).astype(fmt.dtype)
        return make_image(indices, fmt, palette)
    shape = (height, width, fmt.channels)
    if fmt is PixelFormat.FLOAT32:
        return make_image(rng.random(shape, dtype=np.float32), fmt)
    top = np.iinfo(fmt.dtype).max
    return make_image(rng.integers(0, top, size=shape, endpoint=True).astype(fmt.dtype), fmt)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def editor():
    return EditorService(FormatConverter())


@pytest.fixture
def converter():
    return FormatConverter()


@pytest.fixture
def repo():
    return ImageRepository()


@pytest.fixture
def image_service():
    return ImageService()


@pytest.fixture
def rgba_image():
    """10x10 RGBA32 image whose pixel (x, y) is (x, y, x + y, 255)."""
    ys, xs = np.mgrid[0:10, 0:10]
    arr = np.stack([xs, ys, xs + ys, np.full_like(xs, 255)], axis=-1).astype(np.uint8)
    return make_image(arr, PixelFormat.RGBA32)


@pytest.fixture
def indexed_image():
    palette = np.array([
        [0, 0, 0, 255],
        [255, 0, 0, 255],
        [0, 255, 0, 255],
        [0, 0, 255, 128],
    ], dtype=np.uint8)
    indices = (np.arange(36).reshape(6, 6) % 4).astype(np.uint8)
    return make_image(indices, PixelFormat.INDEXED8, palette)
