from __future__ import annotations
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class Box:
    """
    Region of an image to extract. Not validated against any image until
    clamp() is called: a box wider than the image is shrunk to fit, but the
    origin never moves.
    """
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0

    def clamp(self, image_width: int, image_height: int) -> "Box":
        """
        Shrink width/height so the box fits inside image_width x image_height.

        Raises:
            ValueError: if the origin itself lies outside the image.
        """
        if min(self.x, self.y, self.width, self.height) < 0:
            raise ValueError(f"Crop box has negative fields: {self}")
        if self.x > image_width or self.y > image_height:
            raise ValueError(
                f"Crop origin ({self.x},{self.y}) outside of "
                f"{image_width}x{image_height} image"
            )
        return replace(
            self,
            width=min(self.width, image_width - self.x),
            height=min(self.height, image_height - self.y),
        )
