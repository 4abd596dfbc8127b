from .format_converter import FormatConverter
from .image_repository import ImageRepository

__all__ = ["FormatConverter", "ImageRepository"]
