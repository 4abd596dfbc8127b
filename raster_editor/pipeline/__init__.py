"""Batch pipelines over image galleries."""

from .batch_transformer import transform_gallery

__all__ = ["transform_gallery"]
