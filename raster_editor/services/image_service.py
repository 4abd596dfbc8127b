from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Union

import numpy as np
from PIL import Image as PILImage

from ..models.box import Box
from ..models.image import Image
from ..models.pixel_format import PixelFormat
from ..repositories.format_converter import FormatConverter
from ..repositories.image_repository import ImageRepository
from .editor_service import EditorService

logger = logging.getLogger(__name__)


class ImageService:
    """Business-level image helpers: I/O through the repository, transforms through the editor."""
    def __init__(self, editor: EditorService | None = None, image_repository: ImageRepository | None = None):
        self.editor = editor or EditorService(FormatConverter())
        self.image_repository = image_repository or ImageRepository(self.editor.converter)

    def create_image(
        self,
        pixels: np.ndarray,
        pixel_format: PixelFormat,
        palette: np.ndarray | None = None,
        path: Union[str, Path] = None,
    ) -> Image:
        return self.image_repository.create_image(pixels, pixel_format, palette, path)

    def load(self, path: str | Path, pixel_format: PixelFormat | None = None) -> Image:
        """Load a single image from disk into an Image object."""
        return self.image_repository.load(path, pixel_format)

    def load_bytes(self, data: bytes) -> Image:
        return self.image_repository.load_bytes(data)

    def stream_gallery(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield images lazily instead of returning a gigantic list.
        """
        return self.image_repository.iter_dir(folder,
                                              recursive=recursive,
                                              exts=exts)

    def save(self, image: Image, path: Union[str, Path] = None) -> Path:
        """
        Business-level method to save the image to its own (or the given) path.
        """
        return self.image_repository.save(image, path)

    def save_gallery(self, gallery: Iterable[Image]) -> List[Path]:
        return [self.save(img) for img in gallery]

    def encode(self, image: Image, fmt: str = "PNG") -> bytes:
        return self.image_repository.encode(image, fmt)

    def get_image_dimensions(self, img: Image):
        return self.image_repository.retrieve_image_dimensions(img)

    def to_array(self, img: Image) -> np.ndarray:
        return self.image_repository.to_array(img)

    def to_pil_image(self, img: Image) -> PILImage.Image:
        return self.image_repository.to_pil(img)

    # ─── Transforms ───────────────────────────────────────────────
    def flip_image(self, img: Image) -> Image:
        """Flip *img* upside down in place and return it."""
        self.editor.flip_vertically(img.pixels, img.height)
        return img

    def crop_image(self, img: Image, box: Box) -> Image:
        cropped = self.editor.crop(img, box)
        logger.debug(f"Cropped {img.width}x{img.height} -> {cropped.width}x{cropped.height}")
        return cropped

    def resize_image(self, img: Image, width: int, height: int) -> Image:
        return self.editor.resize(img, width, height)

    def convert_image(self, img: Image, pixel_format: PixelFormat) -> Image:
        pixels = self.editor.converter.convert(img.pixels, pixel_format)
        return Image(width=img.width, height=img.height, pixels=pixels, path=img.path)
