from __future__ import annotations
from enum import Enum

import numpy as np


class PixelFormat(Enum):
    """
    Closed set of pixel layouts an image buffer can hold.
    Every member maps to (numpy dtype, channels, indexed) in _LAYOUT below.
    """
    INDEXED8 = "indexed8"
    INDEXED16 = "indexed16"
    GRAYSCALE8 = "grayscale8"
    GRAYSCALE8_ALPHA = "grayscale8_alpha"
    GRAYSCALE16 = "grayscale16"
    RGB24 = "rgb24"
    BGR24 = "bgr24"
    RGBA32 = "rgba32"
    BGRA32 = "bgra32"
    RGB48 = "rgb48"
    RGBA64 = "rgba64"
    FLOAT32 = "float32"          # RGBA, one float32 per channel

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(_LAYOUT[self][0])

    @property
    def channels(self) -> int:
        return _LAYOUT[self][1]

    def pixel_stride(self) -> int:
        """Bytes per pixel."""
        return self.dtype.itemsize * self.channels

    def is_indexed(self) -> bool:
        return _LAYOUT[self][2]

    def has_alpha(self) -> bool:
        return self in _ALPHA_FORMATS

    def max_palette_size(self) -> int:
        if not self.is_indexed():
            raise TypeError(f"{self.name} has no palette")
        return 1 << (8 * self.dtype.itemsize)

    @classmethod
    def parse(cls, name: str) -> "PixelFormat":
        """Accept either the member name (RGBA32) or its value (rgba32)."""
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown pixel format: {name}") from None


_LAYOUT = {
    PixelFormat.INDEXED8:         (np.uint8,   1, True),
    PixelFormat.INDEXED16:        (np.uint16,  1, True),
    PixelFormat.GRAYSCALE8:       (np.uint8,   1, False),
    PixelFormat.GRAYSCALE8_ALPHA: (np.uint8,   2, False),
    PixelFormat.GRAYSCALE16:      (np.uint16,  1, False),
    PixelFormat.RGB24:            (np.uint8,   3, False),
    PixelFormat.BGR24:            (np.uint8,   3, False),
    PixelFormat.RGBA32:           (np.uint8,   4, False),
    PixelFormat.BGRA32:           (np.uint8,   4, False),
    PixelFormat.RGB48:            (np.uint16,  3, False),
    PixelFormat.RGBA64:           (np.uint16,  4, False),
    PixelFormat.FLOAT32:          (np.float32, 4, False),
}

_ALPHA_FORMATS = {
    PixelFormat.GRAYSCALE8_ALPHA,
    PixelFormat.RGBA32,
    PixelFormat.BGRA32,
    PixelFormat.RGBA64,
    PixelFormat.FLOAT32,
}
