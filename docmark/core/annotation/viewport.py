"""
Mapping between viewport pointer positions and canvas coordinates.

The base image is fitted into its container and centered. Canvas
coordinates are pixels of the base image, so annotations stay anchored to
image content whatever size the container has.
"""

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class PointerEvent:
    """Pointer position relative to the top-left of the viewport."""

    client_x: float
    client_y: float


@dataclass(frozen=True)
class ImageLayout:
    """Where the image sits inside the container."""

    scale: float
    offset_x: float
    offset_y: float
    width: int
    height: int


class CoordinateMapper:
    """
    Converts pointer events to canvas-local coordinates.

    The layout is derived from the current container size on every call;
    :meth:`resize` must be called on load and on every container resize.
    """

    def __init__(self, allow_upscale: bool = False):
        self.allow_upscale = allow_upscale
        self.left = 0.0
        self.top = 0.0
        self.width = 0
        self.height = 0
        self.image_size: Optional[Tuple[int, int]] = None

    def resize(self, width: int, height: int, left: float = 0.0, top: float = 0.0):
        """Record the container's current size and position in the viewport."""
        self.width = max(int(width), 0)
        self.height = max(int(height), 0)
        self.left = left
        self.top = top

    def set_image_size(self, width: Optional[int], height: Optional[int] = None):
        if width is None or height is None:
            self.image_size = None
        else:
            self.image_size = (int(width), int(height))

    @property
    def is_measured(self) -> bool:
        return self.width > 0 and self.height > 0

    def layout(self) -> Optional[ImageLayout]:
        """
        Compute the image placement for the current container size.

        Returns:
            The layout, or None if the container is unmeasured or no image
            size is known
        """
        if not self.is_measured or self.image_size is None:
            return None
        image_w, image_h = self.image_size
        if image_w <= 0 or image_h <= 0:
            return None

        scale = min(self.width / image_w, self.height / image_h)
        if not self.allow_upscale:
            scale = min(scale, 1.0)

        shown_w = image_w * scale
        shown_h = image_h * scale
        return ImageLayout(
            scale=scale,
            offset_x=(self.width - shown_w) / 2,
            offset_y=(self.height - shown_h) / 2,
            width=self.width,
            height=self.height,
        )

    def to_canvas(self, event: PointerEvent) -> Optional[Tuple[float, float]]:
        """
        Map a pointer event to canvas coordinates.

        Returns:
            (x, y) in canvas units, or None when there is nothing to map onto
        """
        layout = self.layout()
        if layout is None:
            return None
        local_x = event.client_x - self.left - layout.offset_x
        local_y = event.client_y - self.top - layout.offset_y
        return local_x / layout.scale, local_y / layout.scale

    def to_view(self, x: float, y: float) -> Optional[Tuple[float, float]]:
        """Map canvas coordinates to container-local pixels."""
        layout = self.layout()
        if layout is None:
            return None
        return x * layout.scale + layout.offset_x, y * layout.scale + layout.offset_y
