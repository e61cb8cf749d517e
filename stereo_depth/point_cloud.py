"""
Point Cloud Generation
=======================

Back-projects a metric depth map into colored 3D points with a pinhole
camera whose principal point is the image center and whose focal length is
a fixed constant (not calibrated).

Coordinate system:
- X: right (positive = right of camera)
- Y: down (positive = below camera center)
- Z: forward (depth into scene)

This module provides:
- Point3D: Immutable colored point in meters
- PointCloudGenerator: Grid-sampled depth -> list[Point3D]
- points_to_arrays: Flatten a point list into numpy arrays
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

import numpy as np

from .errors import DepthCalculationError, InvalidImagesError
from .raster import ImageBuffer

if TYPE_CHECKING:
    import numpy.typing as npt


__all__ = [
    "Point3D",
    "PointCloudGenerator",
    "points_to_arrays",
]


@dataclass(frozen=True, slots=True)
class Point3D:
    """3D point in camera coordinates (meters) with an 8-bit RGB color."""

    x: float
    y: float
    z: float
    color: tuple[int, int, int] = (255, 255, 255)

    def as_array(self) -> npt.NDArray:
        return np.array([self.x, self.y, self.z])

    def __str__(self) -> str:
        return f"({self.x:.2f}, {self.y:.2f}, {self.z:.2f})m rgb{self.color}"


def points_to_arrays(points: Sequence[Point3D]) -> tuple[npt.NDArray, npt.NDArray]:
    """Return (N x 3 float32 positions, N x 3 uint8 RGB colors)."""
    if not points:
        return np.zeros((0, 3), dtype=np.float32), np.zeros((0, 3), dtype=np.uint8)
    xyz = np.array([(p.x, p.y, p.z) for p in points], dtype=np.float32)
    rgb = np.array([p.color for p in points], dtype=np.uint8)
    return xyz, rgb


class PointCloudGenerator:
    """
    Sample a depth map on a regular grid and back-project each sample.

    For pixel (x, y) with depth z:
        X = (x - cx) * z / f,  Y = (y - cy) * z / f,  Z = z

    The grid starts at (0, 0) with the given stride, so a W x H map yields
    exactly ceil(W / stride) * ceil(H / stride) points. No filtering,
    deduplication or spatial index.

    Example:
        >>> generator = PointCloudGenerator(focal_length_px=500.0)
        >>> points = generator.generate(depth, left, stride=10)
    """

    __slots__ = ("_focal", "_stride")

    def __init__(self, focal_length_px: float = 500.0, stride: int = 10) -> None:
        if focal_length_px <= 0:
            raise ValueError(f"Focal length must be positive: {focal_length_px}")
        if stride < 1:
            raise ValueError(f"stride must be >= 1: {stride}")
        self._focal = focal_length_px
        self._stride = stride

    @property
    def focal_length_px(self) -> float:
        return self._focal

    @property
    def stride(self) -> int:
        return self._stride

    @staticmethod
    def expected_count(width: int, height: int, stride: int) -> int:
        return math.ceil(width / stride) * math.ceil(height / stride)

    def generate(
        self,
        depth_map: npt.NDArray,
        reference: npt.NDArray | ImageBuffer,
        stride: int | None = None,
    ) -> list[Point3D]:
        """
        Back-project grid samples of a depth map.

        Args:
            depth_map: (H, W) metric depth
            reference: Image the colors are read from (same size)
            stride: Grid step override

        Returns:
            Unordered list of Point3D

        Raises:
            ValueError: If stride < 1
            DepthCalculationError: If the depth map is empty or not 2D
            InvalidImagesError: If the reference does not match the depth map
        """
        step = self._stride if stride is None else stride
        if step < 1:
            raise ValueError(f"stride must be >= 1: {step}")

        depth = np.asarray(depth_map, dtype=np.float32)
        if depth.ndim != 2 or depth.size == 0:
            raise DepthCalculationError(f"depth map must be a non-empty 2D raster, got {depth.shape}")

        ref = ImageBuffer(reference, name="reference image")
        if ref.shape != depth.shape:
            raise InvalidImagesError(
                f"reference {ref.width}x{ref.height} does not match depth "
                f"{depth.shape[1]}x{depth.shape[0]}"
            )

        h, w = depth.shape
        cx, cy = w / 2.0, h / 2.0

        points: list[Point3D] = []
        for y in range(0, h, step):
            for x in range(0, w, step):
                z = float(depth[y, x])
                points.append(
                    Point3D(
                        x=(x - cx) * z / self._focal,
                        y=(y - cy) * z / self._focal,
                        z=z,
                        color=ref.pixel_rgb(x, y),
                    )
                )
        return points
