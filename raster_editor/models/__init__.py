from .box import Box
from .color import Colorf32
from .image import Image
from .pixel_format import PixelFormat
from .pixel_storage import AllocationError, PixelStorage

__all__ = [
    "AllocationError",
    "Box",
    "Colorf32",
    "Image",
    "PixelFormat",
    "PixelStorage",
]
