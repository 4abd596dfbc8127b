"""In-memory raster transforms: vertical flip, crop and bilinear resize."""

from .models import AllocationError, Box, Colorf32, Image, PixelFormat, PixelStorage
from .repositories import FormatConverter, ImageRepository
from .services import EditorService, ImageService

__version__ = "1.0.0"

_editor = EditorService()

flip_vertically = _editor.flip_vertically
crop = _editor.crop
resize = _editor.resize

__all__ = [
    "AllocationError",
    "Box",
    "Colorf32",
    "EditorService",
    "FormatConverter",
    "Image",
    "ImageRepository",
    "ImageService",
    "PixelFormat",
    "PixelStorage",
    "crop",
    "flip_vertically",
    "resize",
]
