from __future__ import annotations

import logging
import os

import cv2
import numpy as np
from dotenv import load_dotenv
from PIL import Image as PILImage

from ..models.pixel_format import PixelFormat
from ..models.pixel_storage import PixelStorage

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Pixels compared against a 256-entry palette per batch (bounds the distance matrix).
PALETTE_MATCH_CHUNK = int(os.getenv("PALETTE_MATCH_CHUNK", "4096"))

# OpenCV codes: native layout -> RGBA, and RGBA -> native layout.
_TO_RGBA = {
    PixelFormat.GRAYSCALE8: cv2.COLOR_GRAY2RGBA,
    PixelFormat.GRAYSCALE16: cv2.COLOR_GRAY2RGBA,
    PixelFormat.RGB24: cv2.COLOR_RGB2RGBA,
    PixelFormat.RGB48: cv2.COLOR_RGB2RGBA,
    PixelFormat.BGR24: cv2.COLOR_BGR2RGBA,
    PixelFormat.BGRA32: cv2.COLOR_BGRA2RGBA,
}
_FROM_RGBA = {
    PixelFormat.GRAYSCALE8: cv2.COLOR_RGBA2GRAY,
    PixelFormat.GRAYSCALE16: cv2.COLOR_RGBA2GRAY,
    PixelFormat.RGB24: cv2.COLOR_RGBA2RGB,
    PixelFormat.RGB48: cv2.COLOR_RGBA2RGB,
    PixelFormat.BGR24: cv2.COLOR_RGBA2BGR,
    PixelFormat.BGRA32: cv2.COLOR_RGBA2BGRA,
}


def _channel_max(dtype: np.dtype) -> float:
    return float(np.iinfo(dtype).max)


def _cvt(pixels: np.ndarray, code: int) -> np.ndarray:
    """Run cv2.cvtColor over an (N, C) pixel list by treating it as an N x 1 image."""
    n, channels = pixels.shape
    src = np.ascontiguousarray(pixels.reshape(n, 1) if channels == 1 else pixels.reshape(n, 1, channels))
    out = cv2.cvtColor(src, code)
    return out.reshape(n, -1)


class FormatConverter:
    """
    Transcodes PixelStorage between any two PixelFormats.

    Every conversion goes through an (N, 4) float32 RGBA array in [0, 1]:
    integer channels are scaled by their maximum, grayscale is replicated
    into r, g, b and missing alpha becomes 1.0.
    """

    def __init__(self, chunk_size: int | None = None):
        self.chunk_size = chunk_size or PALETTE_MATCH_CHUNK

    # ─── Public API ────────────────────────────────────────────────
    def convert(
        self,
        storage: PixelStorage,
        target_format: PixelFormat,
        palette: np.ndarray | None = None,
    ) -> PixelStorage:
        """
        Args:
            storage: source pixels (left untouched).
            target_format: format of the returned storage.
            palette: palette for an indexed target. Defaults to the source
                palette when both formats are indexed and it fits the
                target; otherwise one is built.
        Returns:
            Newly allocated PixelStorage in *target_format*.
        """
        source_format = storage.pixel_format
        if source_format is target_format and palette is None:
            return storage.copy()
        if palette is None and source_format.is_indexed() and target_format.is_indexed():
            source_palette = storage.get_palette()
            if len(source_palette) <= target_format.max_palette_size():
                palette = source_palette

        logger.debug(f"Converting {len(storage)} pixels {source_format.name} -> {target_format.name}")
        rgba = self.to_rgba_float(storage)
        return self.from_rgba_float(rgba, target_format, palette)

    def to_rgba_float(self, storage: PixelStorage) -> np.ndarray:
        fmt = storage.pixel_format
        pixels = storage.as_array()
        if len(pixels) == 0:
            return np.zeros((0, 4), dtype=np.float32)

        if fmt is PixelFormat.FLOAT32:
            return pixels.copy()

        if fmt.is_indexed():
            palette = storage.get_palette()
            if len(palette) == 0:
                raise ValueError("Indexed storage has an empty palette")
            rgba = np.take(palette, pixels[:, 0], axis=0, mode="clip")
            return rgba.astype(np.float32) / np.float32(255.0)

        if fmt is PixelFormat.GRAYSCALE8_ALPHA:
            rgba = pixels[:, [0, 0, 0, 1]]
        elif fmt in _TO_RGBA:
            rgba = _cvt(pixels, _TO_RGBA[fmt])
        else:
            rgba = pixels
        return rgba.astype(np.float32) / np.float32(_channel_max(fmt.dtype))

    def from_rgba_float(
        self,
        rgba: np.ndarray,
        target_format: PixelFormat,
        palette: np.ndarray | None = None,
    ) -> PixelStorage:
        rgba = np.asarray(rgba, dtype=np.float32)
        out = PixelStorage.allocate(target_format, len(rgba))

        if target_format is PixelFormat.FLOAT32:
            out.as_float32()[...] = rgba
            return out

        if target_format.is_indexed():
            rgba8 = self._quantize(rgba, np.uint8)
            if palette is None:
                palette = self.build_palette(rgba8, target_format)
            out.set_palette(palette)
            out.as_array()[:, 0] = self.match_palette(rgba8, out.get_palette())
            return out

        if len(rgba) == 0:
            return out

        native = self._quantize(rgba, target_format.dtype)
        if target_format is PixelFormat.GRAYSCALE8_ALPHA:
            gray = _cvt(native, cv2.COLOR_RGBA2GRAY)
            out.as_array()[...] = np.column_stack([gray[:, 0], native[:, 3]])
        elif target_format in _FROM_RGBA:
            out.as_array()[...] = _cvt(native, _FROM_RGBA[target_format])
        else:
            out.as_array()[...] = native
        return out

    # ─── Palette helpers ───────────────────────────────────────────
    def build_palette(self, rgba8: np.ndarray, target_format: PixelFormat) -> np.ndarray:
        """Palette for *rgba8* pixels from Pillow's fast-octree quantizer."""
        if len(rgba8) == 0:
            return np.zeros((0, 4), dtype=np.uint8)
        colors = min(256, target_format.max_palette_size())
        pil_img = PILImage.fromarray(np.ascontiguousarray(rgba8.reshape(-1, 1, 4)))
        quantized = pil_img.quantize(colors=colors, method=PILImage.Quantize.FASTOCTREE)
        used = int(np.asarray(quantized).max()) + 1
        palette = np.array(quantized.getpalette("RGBA"), dtype=np.uint8).reshape(-1, 4)
        logger.debug(f"Built {used}-colour palette for {len(rgba8)} pixels")
        return palette[:used]

    def match_palette(self, rgba8: np.ndarray, palette: np.ndarray) -> np.ndarray:
        """Index of the nearest (squared RGBA distance) palette entry for each pixel."""
        indices = np.zeros(len(rgba8), dtype=np.intp)
        if len(rgba8) == 0:
            return indices
        if len(palette) == 0:
            raise ValueError("Cannot map pixels onto an empty palette")

        pal = palette.astype(np.int32)
        step = self.match_step(len(pal))
        for start in range(0, len(rgba8), step):
            block = rgba8[start:start + step].astype(np.int32)
            dist = ((block[:, None, :] - pal[None, :, :]) ** 2).sum(axis=2)
            indices[start:start + len(block)] = dist.argmin(axis=1)
        return indices

    def match_step(self, palette_size: int) -> int:
        """
        Pixels per matching batch. chunk_size is the batch for a 256-entry
        palette; larger palettes get proportionally fewer pixels so the
        distance matrix stays around chunk_size * 256 entries.
        """
        return max(1, self.chunk_size * 256 // max(palette_size, 1))

    @staticmethod
    def _quantize(rgba: np.ndarray, dtype) -> np.ndarray:
        """Clip to [0, 1], scale to the integer range and round half-to-even."""
        dtype = np.dtype(dtype)
        scaled = np.clip(rgba, 0.0, 1.0) * np.float32(_channel_max(dtype))
        return np.rint(scaled).astype(dtype)
