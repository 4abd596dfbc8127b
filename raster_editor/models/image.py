from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path

from .pixel_format import PixelFormat
from .pixel_storage import PixelStorage


@dataclass
class Image:
    """
    Simple data object: dimensions + packed pixel storage
    (+ optional source path for bookkeeping).
    """
    width: int
    height: int
    pixels: PixelStorage        # width * height pixels, row-major
    path: Path | None = None    # Source / destination of the image.

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Invalid image dimensions {self.width}x{self.height}")
        if len(self.pixels) != self.width * self.height:
            raise ValueError(
                f"Storage holds {len(self.pixels)} pixels, "
                f"expected {self.width}x{self.height}"
            )
        if self.path is not None:
            self.path = Path(self.path)

    def pixel_format(self) -> PixelFormat:
        return self.pixels.pixel_format
