from __future__ import annotations

import numpy as np

from .pixel_format import PixelFormat


class AllocationError(MemoryError):
    """Raised when a pixel buffer (or scratch buffer) cannot be allocated."""


def allocate_bytes(size: int) -> np.ndarray:
    """Zero-filled uint8 buffer; wraps MemoryError into AllocationError."""
    try:
        return np.zeros(size, dtype=np.uint8)
    except MemoryError as exc:
        raise AllocationError(f"Unable to allocate {size} bytes") from exc


class PixelStorage:
    """
    Packed, row-major pixel buffer tagged with its PixelFormat.

    The raw bytes live in one flat uint8 array; typed views are built on top
    of it so that writes through any view land in the same memory.
    Indexed formats additionally carry an (n, 4) uint8 RGBA palette.
    """

    def __init__(self, pixel_format: PixelFormat, buffer: np.ndarray,
                 palette: np.ndarray | None = None):
        stride = pixel_format.pixel_stride()
        if buffer.dtype != np.uint8 or buffer.ndim != 1:
            raise ValueError("buffer must be a flat uint8 array")
        if buffer.size % stride:
            raise ValueError(
                f"buffer of {buffer.size} bytes is not a multiple of the "
                f"{pixel_format.name} stride ({stride})"
            )
        self._format = pixel_format
        self._buffer = buffer
        self._palette: np.ndarray | None = None
        if pixel_format.is_indexed():
            self._palette = np.zeros((0, 4), dtype=np.uint8)
            if palette is not None:
                self.set_palette(palette)
        elif palette is not None:
            raise TypeError(f"{pixel_format.name} does not use a palette")

    # ─── Construction ─────────────────────────────────────────────
    @classmethod
    def allocate(cls, pixel_format: PixelFormat, pixel_count: int) -> "PixelStorage":
        if pixel_count < 0:
            raise ValueError(f"pixel_count must be >= 0, got {pixel_count}")
        return cls(pixel_format, allocate_bytes(pixel_count * pixel_format.pixel_stride()))

    @classmethod
    def from_array(cls, pixel_format: PixelFormat, array: np.ndarray,
                   palette: np.ndarray | None = None) -> "PixelStorage":
        """
        Copy *array* into freshly allocated storage.
        Any shape works as long as its size is pixel_count * channels.
        """
        arr = np.asarray(array)
        channels = pixel_format.channels
        if arr.size % channels:
            raise ValueError(
                f"array of size {arr.size} does not hold whole {pixel_format.name} pixels"
            )
        storage = cls.allocate(pixel_format, arr.size // channels)
        storage.as_array()[...] = arr.reshape(-1, channels).astype(pixel_format.dtype, copy=False)
        if palette is not None:
            storage.set_palette(palette)
        return storage

    # ─── Views ────────────────────────────────────────────────────
    @property
    def pixel_format(self) -> PixelFormat:
        return self._format

    def __len__(self) -> int:
        return self._buffer.size // self._format.pixel_stride()

    def pixel_stride(self) -> int:
        return self._format.pixel_stride()

    def as_bytes(self) -> np.ndarray:
        """Writable uint8 view of the raw buffer."""
        return self._buffer

    def as_array(self) -> np.ndarray:
        """Typed (pixel_count, channels) view of the buffer."""
        return self._buffer.view(self._format.dtype).reshape(-1, self._format.channels)

    def as_float32(self) -> np.ndarray:
        if self._format is not PixelFormat.FLOAT32:
            raise TypeError(f"{self._format.name} storage has no float32 view")
        return self.as_array()

    # ─── Palette ──────────────────────────────────────────────────
    def get_palette(self) -> np.ndarray | None:
        """(n, 4) RGBA palette for indexed formats, None otherwise."""
        return self._palette

    def resize_palette(self, size: int) -> None:
        if self._palette is None:
            raise TypeError(f"{self._format.name} does not use a palette")
        if not 0 <= size <= self._format.max_palette_size():
            raise ValueError(
                f"palette size {size} out of range for {self._format.name} "
                f"(max {self._format.max_palette_size()})"
            )
        resized = np.zeros((size, 4), dtype=np.uint8)
        keep = min(size, len(self._palette))
        resized[:keep] = self._palette[:keep]
        self._palette = resized

    def set_palette(self, palette: np.ndarray) -> None:
        """Copy *palette* (n x 3 RGB or n x 4 RGBA, uint8) into this storage."""
        pal = np.asarray(palette, dtype=np.uint8)
        if pal.ndim != 2 or pal.shape[1] not in (3, 4):
            raise ValueError(f"palette must have shape (n, 3) or (n, 4), got {pal.shape}")
        self.resize_palette(len(pal))
        self._palette[:, :pal.shape[1]] = pal
        if pal.shape[1] == 3:
            self._palette[:, 3] = 255

    # ─── Copying ──────────────────────────────────────────────────
    def copy(self) -> "PixelStorage":
        buffer = allocate_bytes(self._buffer.size)
        buffer[...] = self._buffer
        clone = PixelStorage(self._format, buffer)
        if self._palette is not None:
            clone.set_palette(self._palette)
        return clone

    def __repr__(self) -> str:
        palette = "" if self._palette is None else f", palette={len(self._palette)}"
        return f"PixelStorage({self._format.name}, pixels={len(self)}{palette})"
