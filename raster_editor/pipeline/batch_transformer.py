# pipeline/batch_transformer.py
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, List, Tuple

from dotenv import load_dotenv
from tqdm import tqdm

from ..models.box import Box
from ..models.image import Image
from ..services.image_service import ImageService

# ------------------------------------------------------------------
# env‑vars
load_dotenv()
OUTPUT_EXT = os.getenv("OUTPUT_IMG_EXT", ".png")

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
def transform_gallery(
    gallery: Iterable[Image],
    *,
    crop_box: Box | None             = None,
    size: Tuple[int, int] | None     = None,
    flip: bool                       = False,
    output_dir: str | Path | None    = None,
    ext: str                         = OUTPUT_EXT,
    image_service: ImageService      = ImageService(),
    show_progress: bool              = True,
) -> List[Image]:
    """
    For every Image in *gallery*:
        • crop to *crop_box* (clamped to the image)
        • resize to *size* = (width, height)
        • flip vertically
        • point the result at output_dir/<source stem><ext>
    Source images are never modified. Returns the new Image objects.
    """
    output_dir = Path(output_dir) if output_dir is not None else None
    transformed: List[Image] = []

    for index, img in enumerate(tqdm(gallery, desc="transform", ncols=70, disable=not show_progress)):
        result = img
        if crop_box is not None:
            result = image_service.crop_image(result, crop_box)
        if size is not None:
            result = image_service.resize_image(result, *size)
        if result is img:
            result = Image(width=img.width, height=img.height, pixels=img.pixels.copy())
        if flip:
            image_service.flip_image(result)

        if output_dir is not None:
            stem = img.path.stem if img.path is not None else f"image_{index:04d}"
            result.path = output_dir / f"{stem}{ext}"
        logger.info(f"Transformed {img.width}x{img.height} -> {result.width}x{result.height}")
        transformed.append(result)

    return transformed
