"""
Disparity to Depth Conversion
==============================

Turns a normalized disparity map into a metric depth map.

Larger disparity means a nearer object, so depth is produced by a monotonic
decreasing transform: the disparity is tonally inverted, smoothed with an
edge-preserving filter and mapped linearly into a fixed metric range:

    depth = min_depth + (1 - disparity / 255) * (max_depth - min_depth)

With the default range that is ``0.5 + n * 9.5`` meters. The range is a
constant, never derived from scene content.

This module provides:
- refine_fast: Morphological local contrast reduction
- refine_bilateral: Depth + color bilateral filter
- triangulate: Metric f * B / d depth for pixel disparities
- DepthStats: Summary statistics of a depth map
- DepthConverter: DisparityMap -> DepthMap
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import cv2
import numpy as np

from .config import BilateralParams, RefinementMode, StereoConfig
from .errors import DepthCalculationError
from .matching import DisparityMap
from .raster import ImageBuffer

if TYPE_CHECKING:
    import numpy.typing as npt


__all__ = [
    "refine_fast",
    "refine_bilateral",
    "triangulate",
    "DepthStats",
    "DepthConverter",
]


def refine_fast(normalized: npt.NDArray, radius: int = 3) -> npt.NDArray:
    """
    Reduce local contrast with a morphological midrange.

    Each pixel becomes the mean of the local max and local min over an
    elliptical window of the given radius. Uniform regions are unchanged.
    """
    size = 2 * radius + 1
    kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (size, size))
    src = normalized.astype(np.float32)
    upper = cv2.dilate(src, kernel, borderType=cv2.BORDER_REPLICATE)
    lower = cv2.erode(src, kernel, borderType=cv2.BORDER_REPLICATE)
    return 0.5 * (upper + lower)


def refine_bilateral(
    normalized: npt.NDArray,
    reference: npt.NDArray | ImageBuffer | None = None,
    params: BilateralParams | None = None,
) -> npt.NDArray:
    """
    Edge-preserving bilateral smoothing of a normalized depth map.

    Every neighbor within ``radius`` is weighted by the product of
    - a spatial Gaussian over its distance (sigma_spatial),
    - a range Gaussian over the depth difference (sigma_range),
    - a Gaussian over the color distance of the reference pixels
      (sigma_range reused).
    Borders are clamped. A pixel whose weight sum is zero is kept as is.

    Args:
        normalized: (H, W) depth in [0, 1]
        reference: Color or gray image aligned with the depth map; the
            color term is skipped when None
        params: Radius and sigmas

    Returns:
        float32 (H, W) refined map
    """
    p = params or BilateralParams()
    depth = np.asarray(normalized, dtype=np.float64)
    h, w = depth.shape
    r = p.radius

    padded = np.pad(depth, r, mode="edge")

    color = None
    if reference is not None:
        ref = ImageBuffer(reference, name="reference image")
        if ref.shape != depth.shape:
            raise DepthCalculationError(
                f"reference {ref.width}x{ref.height} does not match depth {w}x{h}"
            )
        color = ref.to_float(np.float64)
        if color.ndim == 2:
            color = color[:, :, None]
        padded_color = np.pad(color, ((r, r), (r, r), (0, 0)), mode="edge")

    two_ss = 2.0 * p.sigma_spatial**2
    two_sr = 2.0 * p.sigma_range**2

    num = np.zeros_like(depth)
    den = np.zeros_like(depth)
    for dy in range(-r, r + 1):
        for dx in range(-r, r + 1):
            dist2 = dx * dx + dy * dy
            if dist2 > r * r:
                continue

            neighbor = padded[r + dy : r + dy + h, r + dx : r + dx + w]
            weight = np.exp(-dist2 / two_ss) * np.exp(-((neighbor - depth) ** 2) / two_sr)

            if color is not None:
                neighbor_color = padded_color[r + dy : r + dy + h, r + dx : r + dx + w]
                color_dist2 = np.sum((neighbor_color - color) ** 2, axis=2)
                weight *= np.exp(-color_dist2 / two_sr)

            num += weight * neighbor
            den += weight

    out = depth.copy()
    valid = den > 0
    out[valid] = num[valid] / den[valid]
    return out.astype(np.float32)


def triangulate(
    disparity_px: npt.NDArray,
    focal_length_px: float,
    baseline_m: float,
    min_depth_m: float = 0.5,
    max_depth_m: float = 10.0,
) -> npt.NDArray:
    """
    Metric depth from pixel disparity: depth = focal * baseline / disparity.

    Zero or negative disparity is treated as infinitely far and reported as
    max_depth_m. The result is clamped into [min_depth_m, max_depth_m].
    """
    disparity = np.asarray(disparity_px, dtype=np.float32)
    with np.errstate(divide="ignore", invalid="ignore"):
        depth = (focal_length_px * baseline_m) / disparity
    depth[~np.isfinite(depth) | (disparity <= 0)] = max_depth_m
    return np.clip(depth, min_depth_m, max_depth_m).astype(np.float32)


@dataclass(frozen=True, slots=True)
class DepthStats:
    """Summary statistics of a depth map (meters).

    Attributes:
        min_m: Nearest depth
        max_m: Farthest depth
        mean_m: Mean depth
        median_m: Median depth
        std_m: Standard deviation
        near_ratio: Fraction of pixels nearer than the far limit
    """

    min_m: float
    max_m: float
    mean_m: float
    median_m: float
    std_m: float
    near_ratio: float

    @classmethod
    def from_depth_map(cls, depth_map: npt.NDArray, max_depth_m: float = 10.0) -> DepthStats:
        """Compute statistics from depth map."""
        if depth_map.size == 0:
            return cls(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)
        return cls(
            min_m=float(np.min(depth_map)),
            max_m=float(np.max(depth_map)),
            mean_m=float(np.mean(depth_map)),
            median_m=float(np.median(depth_map)),
            std_m=float(np.std(depth_map)),
            near_ratio=float(np.mean(depth_map < max_depth_m - 1e-6)),
        )

    def format_verbose(self) -> str:
        """Format stats as multi-line verbose string."""
        return "\n".join(
            [
                f"  Range: {self.min_m:.2f} - {self.max_m:.2f}m",
                f"  Mean: {self.mean_m:.2f}m | Median: {self.median_m:.2f}m | Std: {self.std_m:.2f}m",
                f"  Nearer than far limit: {self.near_ratio * 100:.1f}%",
            ]
        )


class DepthConverter:
    """
    DisparityMap -> DepthMap.

    Steps, strictly in sequence:
    1. Invert: n = 1 - disparity / 255
    2. Refine: fast morphological pass (default) or bilateral filter
    3. Scale: min_depth + n * (max_depth - min_depth), clamped

    Example:
        >>> converter = DepthConverter(config)
        >>> depth = converter.convert(disparity, reference=left)
    """

    __slots__ = ("_config",)

    def __init__(self, config: StereoConfig | None = None) -> None:
        self._config = config or StereoConfig()

    @property
    def config(self) -> StereoConfig:
        return self._config

    @staticmethod
    def invert(disparity: DisparityMap | npt.NDArray) -> npt.NDArray:
        """Normalized inverse disparity in [0, 1] (1 = far / unmatched)."""
        values = disparity.values if isinstance(disparity, DisparityMap) else np.asarray(disparity)
        if values.ndim != 2 or values.size == 0:
            raise DepthCalculationError(f"disparity must be a non-empty 2D raster, got {values.shape}")
        if values.dtype.kind not in "uif":
            raise DepthCalculationError(f"unsupported disparity dtype {values.dtype}")

        normalized = values.astype(np.float32) / 255.0
        if not np.all(np.isfinite(normalized)):
            raise DepthCalculationError("disparity contains non-finite values")
        return 1.0 - np.clip(normalized, 0.0, 1.0)

    def refine(
        self,
        normalized: npt.NDArray,
        reference: npt.NDArray | ImageBuffer | None = None,
        mode: RefinementMode | None = None,
    ) -> npt.NDArray:
        """Apply the configured (or given) refinement to a normalized map."""
        mode = mode or self._config.refinement
        match mode:
            case RefinementMode.NONE:
                return normalized.astype(np.float32)
            case RefinementMode.BILATERAL:
                return refine_bilateral(normalized, reference, self._config.bilateral)
            case _:
                return refine_fast(normalized)

    def scale(self, normalized: npt.NDArray) -> npt.NDArray:
        """Map [0, 1] onto the configured metric range."""
        lo, hi = self._config.depth_range
        depth = lo + normalized.astype(np.float32) * (hi - lo)
        return np.clip(depth, lo, hi).astype(np.float32)

    def convert(
        self,
        disparity: DisparityMap | npt.NDArray,
        reference: npt.NDArray | ImageBuffer | None = None,
        refinement: RefinementMode | None = None,
    ) -> npt.NDArray:
        """
        Convert disparity to a metric depth map.

        Args:
            disparity: DisparityMap or (H, W) array in [0, 255]
            reference: Reference (left) image for the bilateral color term
            refinement: Override for config.refinement

        Returns:
            float32 (H, W) depth in meters within [min_depth, max_depth]

        Raises:
            DepthCalculationError: If the disparity raster is empty or corrupt
        """
        normalized = self.invert(disparity)
        try:
            refined = self.refine(normalized, reference, refinement)
        except cv2.error as exc:
            raise DepthCalculationError(str(exc)) from exc
        return self.scale(refined)

    def triangulate(self, disparity: DisparityMap) -> npt.NDArray:
        """Metric f * B / d depth for the matched pixels of a disparity map."""
        c = self._config
        return triangulate(
            disparity.in_pixels(), c.focal_length_px, c.baseline_m, c.min_depth_m, c.max_depth_m
        )
