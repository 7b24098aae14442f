"""Bounding-box geometry in original image pixel space."""

import math
from dataclasses import dataclass
from typing import Sequence

# Sub-pixel tolerance for comparing boxes echoed back by external services.
DEFAULT_EPSILON = 0.01


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box; (x1, y1) is the top-left corner, (x2, y2) the bottom-right."""

    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def is_empty(self) -> bool:
        """True when the box covers no area (a no-op for compositing)."""
        return self.width <= 0 or self.height <= 0

    def to_list(self) -> list:
        """Convert to the ``[x1, y1, x2, y2]`` form used by the suggestion service."""
        return [self.x1, self.y1, self.x2, self.y2]

    def to_dict(self) -> dict:
        return {"x1": self.x1, "y1": self.y1, "x2": self.x2, "y2": self.y2}

    @classmethod
    def from_list(cls, coords: Sequence[float]) -> "BoundingBox":
        if len(coords) != 4:
            raise ValueError(f"Bounding box needs 4 coordinates, got {len(coords)}")
        x1, y1, x2, y2 = (float(c) for c in coords)
        return cls(x1=x1, y1=y1, x2=x2, y2=y2)

    @classmethod
    def from_dict(cls, data: dict) -> "BoundingBox":
        return cls(
            x1=float(data["x1"]),
            y1=float(data["y1"]),
            x2=float(data["x2"]),
            y2=float(data["y2"]),
        )

    def to_pixel_rect(self) -> tuple[int, int, int, int]:
        """Integer ``(left, top, right, bottom)`` covering every pixel the box touches.

        Start edges are floored and end edges ceiled, so adjacent or
        overlapping regions never leave an unredacted sliver between them.
        """
        return (
            math.floor(self.x1),
            math.floor(self.y1),
            math.ceil(self.x2),
            math.ceil(self.y2),
        )

    def normalize(self, image_width: float, image_height: float) -> "BoundingBox":
        return normalize(self, image_width, image_height)

    def equals(self, other: "BoundingBox", epsilon: float = DEFAULT_EPSILON) -> bool:
        return equals(self, other, epsilon)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def normalize(box: BoundingBox, image_width: float, image_height: float) -> BoundingBox:
    """Order the corners of *box* and clamp it into the image bounds.

    Detection services are not guaranteed to return ordered or in-bounds
    coordinates; the result always has non-negative width and height.
    """
    x1, x2 = sorted((box.x1, box.x2))
    y1, y2 = sorted((box.y1, box.y2))
    return BoundingBox(
        x1=_clamp(x1, 0.0, image_width),
        y1=_clamp(y1, 0.0, image_height),
        x2=_clamp(x2, 0.0, image_width),
        y2=_clamp(y2, 0.0, image_height),
    )


def equals(a: BoundingBox, b: BoundingBox, epsilon: float = DEFAULT_EPSILON) -> bool:
    """Geometric equality with a per-coordinate tolerance."""
    return (
        abs(a.x1 - b.x1) <= epsilon
        and abs(a.y1 - b.y1) <= epsilon
        and abs(a.x2 - b.x2) <= epsilon
        and abs(a.y2 - b.y2) <= epsilon
    )
