"""labeler/core/geometry.py

Conversion between pixel coordinates (pointer events against the rendered
image container) and normalized [0,1] image-fraction coordinates (what is
stored). Boxes are always kept in canonical ``(x_min, y_min, x_max, y_max)``
form.
"""
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

Point = Tuple[float, float]
# (x_min, y_min, x_max, y_max)
Box = Tuple[float, float, float, float]


@dataclass(frozen=True)
class PixelRect:
    """On-screen rectangle, ready for absolute positioning."""
    left: float
    top: float
    width: float
    height: float

    def as_dict(self) -> dict:
        return {"left": self.left, "top": self.top, "width": self.width, "height": self.height}


def _axis(dimension: Optional[float]) -> float:
    # Unmeasured (0/None) containers divide by 1 instead of 0
    return dimension or 1


def normalize(pixel_x: float, pixel_y: float,
              container_width: Optional[float], container_height: Optional[float]) -> Point:
    """Map a pixel point into container-fraction coordinates.

    A zero or missing dimension is replaced with 1, so the result is defined
    (if mis-scaled) before the container has been measured.
    """
    return (pixel_x / _axis(container_width), pixel_y / _axis(container_height))


def denormalize(norm_x: float, norm_y: float,
                container_width: float, container_height: float) -> Point:
    """Inverse of :func:`normalize` for a measured container."""
    return (norm_x * container_width, norm_y * container_height)


def box(p1: Point, p2: Point) -> Box:
    """Canonical box spanned by two corners, whatever order they were clicked in."""
    (x1, y1), (x2, y2) = p1, p2
    return (min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2))


def clamp_unit(value: float) -> float:
    return min(1.0, max(0.0, value))


def box_rect(x1: float, y1: float, x2: float, y2: float) -> PixelRect:
    """Rectangle between two arbitrary corners."""
    return PixelRect(
        left=min(x1, x2),
        top=min(y1, y2),
        width=abs(x2 - x1),
        height=abs(y2 - y1),
    )


def normalized_box_rect(bounds: Sequence[float], container_width: float, container_height: float) -> PixelRect:
    """Render a normalized box at the current container size."""
    x_min, y_min, x_max, y_max = bounds
    sx1, sy1 = denormalize(x_min, y_min, container_width, container_height)
    sx2, sy2 = denormalize(x_max, y_max, container_width, container_height)
    return box_rect(sx1, sy1, sx2, sy2)


def box_contains(bounds: Sequence[float], norm_x: float, norm_y: float) -> bool:
    x_min, y_min, x_max, y_max = bounds
    return x_min <= norm_x <= x_max and y_min <= norm_y <= y_max
