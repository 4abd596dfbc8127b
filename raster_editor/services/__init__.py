from .editor_service import EditorService, interpolate, interpolate_pixel
from .image_service import ImageService

__all__ = ["EditorService", "ImageService", "interpolate", "interpolate_pixel"]
