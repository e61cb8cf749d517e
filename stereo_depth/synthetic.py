"""
Synthetic Stereo Source
========================

Generates rectified stereo pairs with known disparity for testing and demos.

Objects are drawn at their left-image position; the right image shows each
object shifted left by its disparity in pixels, as a rectified right camera
would see it.

This module provides:
- ObjectShape: Shape types for scene objects
- SceneObject: Immutable object with a known disparity
- SyntheticStereoSource: Renders stereo pairs from a list of objects
- shifted_square_pair: One bright square on a uniform background
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Sequence

import cv2
import numpy as np

from .config import Resolution
from .raster import CaptureMode, StereoPair

if TYPE_CHECKING:
    import numpy.typing as npt


__all__ = [
    "ObjectShape",
    "SceneObject",
    "SyntheticStereoSource",
    "shifted_square_pair",
]


class ObjectShape(Enum):
    """Shape types for scene objects."""

    RECTANGLE = auto()
    CIRCLE = auto()


@dataclass(frozen=True, slots=True)
class SceneObject:
    """An object at a known disparity.

    Attributes:
        x, y: Top-left corner in the left image (pixels)
        width, height: Bounding dimensions
        disparity_px: Horizontal shift between left and right views
        shape: Object shape type
        color_bgr: Fill color
        label: Object identifier
    """

    x: int
    y: int
    width: int
    height: int
    disparity_px: int
    shape: ObjectShape = ObjectShape.RECTANGLE
    color_bgr: tuple[int, int, int] = (200, 200, 200)
    label: str = "object"

    def __str__(self) -> str:
        return f"{self.label}({self.shape.name}) @ ({self.x},{self.y}) disparity={self.disparity_px}px"


@dataclass
class SyntheticStereoSource:
    """
    Renders rectified stereo pairs with per-object disparity.

    Example:
        >>> source = SyntheticStereoSource(objects=[SceneObject(100, 80, 40, 40, 8)])
        >>> pair = source.capture()
    """

    resolution: Resolution = field(default_factory=lambda: Resolution(320, 240))
    background_bgr: tuple[int, int, int] = (40, 40, 40)
    objects: list[SceneObject] = field(default_factory=list)
    noise_std: float = 0.0
    seed: int = 42

    _frame: int = field(default=0, init=False)
    _rng: np.random.Generator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._rng = np.random.default_rng(self.seed)

    def _render(self, offset_sign: int) -> npt.NDArray:
        w, h = self.resolution
        image = np.empty((h, w, 3), dtype=np.uint8)
        image[:] = self.background_bgr

        # Farthest first so nearer objects occlude
        for obj in sorted(self.objects, key=lambda o: o.disparity_px):
            x = obj.x + offset_sign * obj.disparity_px
            match obj.shape:
                case ObjectShape.CIRCLE:
                    center = (x + obj.width // 2, obj.y + obj.height // 2)
                    cv2.circle(image, center, min(obj.width, obj.height) // 2, obj.color_bgr, -1)
                case _:
                    x0, x1 = max(x, 0), min(x + obj.width, w)
                    y0, y1 = max(obj.y, 0), min(obj.y + obj.height, h)
                    if x0 < x1 and y0 < y1:
                        image[y0:y1, x0:x1] = obj.color_bgr

        if self.noise_std > 0:
            noise = self._rng.normal(0.0, self.noise_std, image.shape)
            image = np.clip(image.astype(np.float32) + noise, 0, 255).astype(np.uint8)
        return image

    def capture(self) -> StereoPair:
        """Render the next stereo pair."""
        self._frame += 1
        return StereoPair.from_arrays(
            self._render(0),
            self._render(-1),
            timestamp=float(self._frame),
            capture_mode=CaptureMode.SIMULTANEOUS,
        )

    @property
    def frame_count(self) -> int:
        return self._frame


def shifted_square_pair(
    dx: int,
    size: int = 40,
    resolution: Resolution | Sequence[int] = Resolution(256, 192),
    background: int = 40,
    foreground: int = 200,
) -> StereoPair:
    """
    One bright square shifted by dx pixels between the views.

    The square is centered in the left image; the rest of the scene is
    uniform.
    """
    w, h = resolution
    square = SceneObject(
        x=(w - size) // 2,
        y=(h - size) // 2,
        width=size,
        height=size,
        disparity_px=dx,
        color_bgr=(foreground,) * 3,
        label="square",
    )
    source = SyntheticStereoSource(
        resolution=Resolution(w, h),
        background_bgr=(background,) * 3,
        objects=[square],
    )
    return source.capture()
