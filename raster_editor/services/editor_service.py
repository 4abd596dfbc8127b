from __future__ import annotations

import logging
import os

import numpy as np
from dotenv import load_dotenv

from ..color_spaces import delinearize_unpremultiplied, linearize_premultiplied
from ..models.box import Box
from ..models.color import Colorf32
from ..models.image import Image
from ..models.pixel_format import PixelFormat
from ..models.pixel_storage import AllocationError, PixelStorage, allocate_bytes
from ..repositories.format_converter import FormatConverter

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

RESIZE_ALPHA_EPSILON = float(os.getenv("RESIZE_ALPHA_EPSILON", "1e-6"))


def _source_coords(new_length: int, old_length: int):
    """
    Map destination indices [0, new_length) onto the source axis.

    Returns (lower index, upper index, fractional part) arrays; the upper
    index is edge-clamped to old_length - 1.
    """
    g = np.arange(new_length, dtype=np.float32) / np.float32(new_length) * np.float32(old_length)
    lower = np.minimum(np.floor(g).astype(np.intp), old_length - 1)
    frac = g - lower.astype(np.float32)
    upper = np.minimum(lower + 1, old_length - 1)
    return lower, upper, frac


def interpolate_pixel(
    source: np.ndarray,
    old_width: int,
    old_height: int,
    new_width: int,
    new_height: int,
    x: int,
    y: int,
) -> Colorf32:
    """
    Bilinear sample of destination pixel (x, y).

    Pure function of the read-only (old_width * old_height, 4) float32
    *source*; it shares no state between calls, so output pixels can be
    computed in any order.
    """
    gx = np.float32(x) / np.float32(new_width) * np.float32(old_width)
    gy = np.float32(y) / np.float32(new_height) * np.float32(old_height)
    gxi = min(int(np.floor(gx)), old_width - 1)
    gyi = min(int(np.floor(gy)), old_height - 1)
    xf = gx - np.float32(gxi)
    yf = gy - np.float32(gyi)
    x2 = min(gxi + 1, old_width - 1)
    y2 = min(gyi + 1, old_height - 1)

    one = np.float32(1.0)
    p1 = source[gyi * old_width + gxi]
    p2 = source[gyi * old_width + x2]
    p3 = source[y2 * old_width + gxi]
    p4 = source[y2 * old_width + x2]
    out = (p1 * (one - xf) * (one - yf)
           + p2 * xf * (one - yf)
           + p3 * (one - xf) * yf
           + p4 * xf * yf)
    return Colorf32.from_array(out)


def interpolate(
    source: np.ndarray,
    old_width: int,
    old_height: int,
    new_width: int,
    new_height: int,
) -> np.ndarray:
    """
    interpolate_pixel() evaluated for every destination pixel at once.

    Returns a (new_width * new_height, 4) float32 array, row-major.
    """
    gxi, x2, xf = _source_coords(new_width, old_width)
    gyi, y2, yf = _source_coords(new_height, old_height)

    row1 = (gyi * old_width)[:, None]
    row2 = (y2 * old_width)[:, None]
    p1 = source[row1 + gxi[None, :]]
    p2 = source[row1 + x2[None, :]]
    p3 = source[row2 + gxi[None, :]]
    p4 = source[row2 + x2[None, :]]

    one = np.float32(1.0)
    xf = xf[None, :, None]
    yf = yf[:, None, None]
    out = (p1 * (one - xf) * (one - yf)
           + p2 * xf * (one - yf)
           + p3 * (one - xf) * yf
           + p4 * xf * yf)
    return out.reshape(-1, 4)


class EditorService:
    """
    Geometric transforms over Image / PixelStorage:
    vertical flip (in place), crop and bilinear resize (new images).
    """

    def __init__(self, converter: FormatConverter | None = None, alpha_epsilon: float | None = None):
        self.converter = converter or FormatConverter()
        self.alpha_epsilon = RESIZE_ALPHA_EPSILON if alpha_epsilon is None else alpha_epsilon

    # ─── Flip ──────────────────────────────────────────────────────
    def flip_vertically(self, pixels: PixelStorage, height: int) -> None:
        """
        Mirror the rows of *pixels* in place (row i <-> row height-1-i).

        Raises:
            ValueError: if height does not evenly divide the buffer.
            AllocationError: if the scratch row cannot be allocated.
        """
        data = pixels.as_bytes()
        if height == 0:
            if data.size:
                raise ValueError("A non-empty buffer cannot have zero rows")
            return
        if data.size % height:
            raise ValueError(f"Height {height} does not divide a {data.size}-byte buffer")

        row_size = data.size // height
        temp = allocate_bytes(row_size)
        top, bottom = 0, data.size
        while bottom - top > row_size:
            row1 = data[top:top + row_size]
            row2 = data[bottom - row_size:bottom]
            temp[:] = row1
            row1[:] = row2
            row2[:] = temp
            top += row_size
            bottom -= row_size

    # ─── Crop ──────────────────────────────────────────────────────
    def crop(self, image: Image, crop_area: Box) -> Image:
        """
        Copy the (clamped) *crop_area* of *image* into a new Image.
        Indexed images get a copy of the full source palette.
        """
        box = crop_area.clamp(image.width, image.height)
        fmt = image.pixel_format()

        cropped_pixels = PixelStorage.allocate(fmt, box.width * box.height)
        if fmt.is_indexed():
            cropped_pixels.set_palette(image.pixels.get_palette())

        if box.width == 0 or box.height == 0 or image.width == 0 or image.height == 0:
            logger.debug(f"Degenerate crop {box} of {image.width}x{image.height} image")
            return Image(width=box.width, height=box.height, pixels=cropped_pixels)

        original_data = image.pixels.as_bytes()
        cropped_data = cropped_pixels.as_bytes()
        pixel_size = fmt.pixel_stride()
        assert cropped_data.size == box.width * box.height * pixel_size

        row_byte_width = box.width * pixel_size
        for y in range(box.height):
            start = box.x * pixel_size + (y + box.y) * image.width * pixel_size
            dest = y * row_byte_width
            cropped_data[dest:dest + row_byte_width] = original_data[start:start + row_byte_width]

        return Image(width=box.width, height=box.height, pixels=cropped_pixels)

    # ─── Resize ────────────────────────────────────────────────────
    def resize(self, image: Image, new_width: int, new_height: int) -> Image:
        """
        Bilinear resize in linear light with premultiplied alpha.

        Returns:
            New Image of new_width x new_height in the source pixel format.
        Raises:
            ValueError: on negative sizes, or when an empty image is asked
                to grow to a non-empty size.
            AllocationError: if any intermediate buffer cannot be allocated.
        """
        old_width, old_height = image.width, image.height
        if new_width < 0 or new_height < 0:
            raise ValueError(f"Invalid target size {new_width}x{new_height}")

        if new_width == old_width and new_height == old_height:
            return Image(width=new_width, height=new_height, pixels=image.pixels.copy())

        fmt = image.pixel_format()
        palette = image.pixels.get_palette()

        if new_width == 0 or new_height == 0:
            empty = PixelStorage.allocate(fmt, 0)
            if palette is not None:
                empty.set_palette(palette)
            return Image(width=new_width, height=new_height, pixels=empty)
        if old_width == 0 or old_height == 0:
            raise ValueError(
                f"Cannot resize an empty {old_width}x{old_height} image to {new_width}x{new_height}"
            )

        logger.debug(f"Resizing {fmt.name} image {old_width}x{old_height} -> {new_width}x{new_height}")

        # Each stage replaces `working`, releasing the previous buffer.
        try:
            working = self.converter.convert(image.pixels, PixelFormat.FLOAT32).as_float32()
            working = linearize_premultiplied(working)
            working = interpolate(working, old_width, old_height, new_width, new_height)
            working = delinearize_unpremultiplied(working, self.alpha_epsilon)
            resized_pixels = self.converter.from_rgba_float(working, fmt, palette)
        except AllocationError:
            raise
        except MemoryError as exc:
            raise AllocationError(
                f"Out of memory resizing {old_width}x{old_height} -> {new_width}x{new_height}"
            ) from exc

        return Image(width=new_width, height=new_height, pixels=resized_pixels)
