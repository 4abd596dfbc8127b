from __future__ import annotations

import logging
import os
from io import BytesIO
from pathlib import Path
from typing import Iterable, Iterator, List, Union

import numpy as np
from dotenv import load_dotenv
from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from ..models.image import Image
from ..models.pixel_format import PixelFormat
from ..models.pixel_storage import PixelStorage
from .format_converter import FormatConverter

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_EXTS = ".png,.jpg,.jpeg,.bmp,.gif,.tif,.tiff,.webp"

# Pillow modes that map 1:1 onto a PixelFormat.
_MODE_TO_FORMAT = {
    "P": PixelFormat.INDEXED8,
    "L": PixelFormat.GRAYSCALE8,
    "LA": PixelFormat.GRAYSCALE8_ALPHA,
    "I;16": PixelFormat.GRAYSCALE16,
    "RGB": PixelFormat.RGB24,
    "RGBA": PixelFormat.RGBA32,
}
_FORMAT_TO_MODE = {fmt: mode for mode, fmt in _MODE_TO_FORMAT.items()}


class ImageRepository:
    """
    Handles file I/O and array <-> Image construction.
    """
    def __init__(self, converter: FormatConverter | None = None):
        self.VALID_EXTS = {
            ext.strip().lower()
            for ext in os.getenv("VALID_IMAGE_EXTENSIONS", DEFAULT_EXTS).split(",")
            if ext.strip()
        }
        self.converter = converter or FormatConverter()

    # ─── Construction ─────────────────────────────────────────────
    @staticmethod
    def create_image(
        pixels: np.ndarray,
        pixel_format: PixelFormat,
        palette: np.ndarray | None = None,
        path: Union[str, Path] = None,
    ) -> Image:
        """Build an Image from an (H, W) or (H, W, C) array."""
        arr = np.asarray(pixels)
        if arr.ndim not in (2, 3):
            raise ValueError(f"Expected an (H, W) or (H, W, C) array, got shape {arr.shape}")
        height, width = arr.shape[:2]
        storage = PixelStorage.from_array(pixel_format, arr, palette)
        return Image(width=width, height=height, pixels=storage,
                     path=Path(path) if path is not None else None)

    @staticmethod
    def to_array(image: Image) -> np.ndarray:
        """(H, W, C) view onto the image's pixels."""
        channels = image.pixel_format().channels
        return image.pixels.as_array().reshape(image.height, image.width, channels)

    @staticmethod
    def retrieve_image_dimensions(img: Image):
        return img.height, img.width

    # ─── Decoding ─────────────────────────────────────────────────
    @staticmethod
    def _palette_from_pil(pil_img: PILImage.Image) -> np.ndarray:
        if pil_img.palette is not None and pil_img.palette.mode == "RGBA":
            return np.array(pil_img.getpalette("RGBA"), dtype=np.uint8).reshape(-1, 4)

        rgb = np.array(pil_img.getpalette() or [], dtype=np.uint8).reshape(-1, 3)
        palette = np.full((len(rgb), 4), 255, dtype=np.uint8)
        palette[:, :3] = rgb

        # tRNS chunk: a single transparent index or per-entry alpha bytes.
        trns = pil_img.info.get("transparency")
        if isinstance(trns, int) and trns < len(palette):
            palette[trns, 3] = 0
        elif isinstance(trns, bytes):
            alpha = np.frombuffer(trns, dtype=np.uint8)[:len(palette)]
            palette[:len(alpha), 3] = alpha
        return palette

    def from_pil(self, pil_img: PILImage.Image, path: Union[str, Path] = None) -> Image:
        fmt = _MODE_TO_FORMAT.get(pil_img.mode)
        if fmt is None:
            logger.debug(f"Converting unsupported Pillow mode {pil_img.mode} to RGBA")
            pil_img = pil_img.convert("RGBA")
            fmt = PixelFormat.RGBA32

        palette = self._palette_from_pil(pil_img) if fmt.is_indexed() else None
        return self.create_image(np.asarray(pil_img), fmt, palette, path)

    def load(self, path: Union[str, Path], pixel_format: PixelFormat | None = None) -> Image:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Image not found: {path}")
        try:
            with PILImage.open(path) as pil_img:
                pil_img.load()
                image = self.from_pil(pil_img, path)
        except UnidentifiedImageError as err:
            raise FileNotFoundError(f"Image unreadable: {path}") from err

        if pixel_format is not None and pixel_format is not image.pixel_format():
            image.pixels = self.converter.convert(image.pixels, pixel_format)
        return image

    def load_bytes(self, data: bytes) -> Image:
        try:
            with PILImage.open(BytesIO(data)) as pil_img:
                pil_img.load()
                return self.from_pil(pil_img)
        except UnidentifiedImageError as err:
            raise ValueError("Uploaded data is not a readable image") from err

    # ─── Encoding ─────────────────────────────────────────────────
    def to_pil(self, image: Image) -> PILImage.Image:
        """
        Pillow image for *image*. Formats Pillow cannot hold directly are
        converted to RGBA32 first.
        """
        if image.width == 0 or image.height == 0:
            raise ValueError(f"Cannot encode an empty {image.width}x{image.height} image")

        pixels = image.pixels
        mode = _FORMAT_TO_MODE.get(pixels.pixel_format)
        if mode is None:
            pixels = self.converter.convert(pixels, PixelFormat.RGBA32)
            mode = "RGBA"

        raw = pixels.as_array()
        if mode == "I;16":
            raw = raw.astype("<u2")
        pil_img = PILImage.frombytes(mode, (image.width, image.height), raw.tobytes())
        if mode == "P":
            pil_img.putpalette(pixels.get_palette().tobytes(), rawmode="RGBA")
        return pil_img

    def encode(self, image: Image, fmt: str = "PNG") -> bytes:
        buffer = BytesIO()
        self.to_pil(image).save(buffer, format=fmt)
        return buffer.getvalue()

    def save(self, image: Image, path: Union[str, Path] = None) -> Path:
        path = Path(path) if path is not None else image.path
        if path is None:
            raise ValueError("Image has no path to save to")
        path.parent.mkdir(parents=True, exist_ok=True)
        self.to_pil(image).save(path)
        logger.debug(f"Saved {image.width}x{image.height} image to {path}")
        return path

    # ─── Directories ──────────────────────────────────────────────
    def iter_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield Image objects one at a time.  Nothing accumulates in memory.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"

        for p in sorted(folder.glob(pattern)):
            if p.suffix.lower() not in allowed or not p.is_file():
                continue
            try:
                image = self.load(p)
            except (OSError, ValueError) as err:
                logger.warning(f"Skipping {p.name}: {err}")
                continue
            yield image

    def load_dir(
        self, folder: Union[str, Path], *, recursive=False, exts=None
    ) -> List[Image]:
        return list(self.iter_dir(folder, recursive=recursive, exts=exts))
