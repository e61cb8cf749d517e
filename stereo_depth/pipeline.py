"""
Stereo Depth Pipeline
======================

End-to-end stereo path:

    StereoPair -> features (left, right) -> epipolar matching -> disparity
               -> inverted + refined depth -> colored point cloud

Every pass consumes the complete output of the previous one. Nothing is
cached between calls.

This module provides:
- DepthMapResult: Immutable result container
- DepthMapper: Pipeline orchestration (sync and async)
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .config import StereoConfig
from .depth import DepthConverter, DepthStats
from .errors import DepthCalculationError, DepthError, FeatureDetectionError
from .features import ContourFeatureDetector, FeatureDetector, FeaturePoint
from .matching import DisparityMap, StereoMatcher
from .point_cloud import Point3D, PointCloudGenerator
from .raster import StereoPair

if TYPE_CHECKING:
    import numpy.typing as npt


__all__ = [
    "DepthMapResult",
    "DepthMapper",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DepthMapResult:
    """
    Immutable container for stereo pipeline results.

    Attributes:
        depth_image: (H, W) float32 depth in meters
        point_cloud: Unordered colored points
        min_depth: Nearest representable depth (meters)
        max_depth: Farthest representable depth (meters)
        disparity_map: Intermediate disparity raster
        stats: Depth statistics
        elapsed_ms: Wall time of the pipeline run
    """

    depth_image: npt.NDArray
    point_cloud: list[Point3D]
    min_depth: float
    max_depth: float
    disparity_map: DisparityMap | None = None
    stats: DepthStats | None = None
    elapsed_ms: float = 0.0

    def at(self, x: int, y: int) -> float:
        """Depth at a pixel in meters, or max_depth outside the image."""
        h, w = self.depth_image.shape
        if not (0 <= x < w and 0 <= y < h):
            return self.max_depth
        return float(self.depth_image[y, x])

    def at_center(self) -> float:
        h, w = self.depth_image.shape
        return self.at(w // 2, h // 2)


class DepthMapper:
    """
    Stereo pair -> depth map + point cloud.

    The feature detector is pluggable: anything satisfying the
    ``FeatureDetector`` protocol can replace the default contour detector.

    Example:
        >>> mapper = DepthMapper(StereoConfig())
        >>> result = mapper.generate(StereoPair.from_arrays(left, right))
        >>> print(f"{len(result.point_cloud)} points")
    """

    __slots__ = ("_config", "_detector", "_matcher", "_converter", "_generator")

    def __init__(
        self,
        config: StereoConfig | None = None,
        detector: FeatureDetector | None = None,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            config: Geometry and stage parameters
            detector: Feature detector (default: ContourFeatureDetector)
        """
        self._config = config or StereoConfig()
        self._detector = detector or ContourFeatureDetector(self._config.detector)
        self._matcher = StereoMatcher(self._config.matcher)
        self._converter = DepthConverter(self._config)
        self._generator = PointCloudGenerator(
            self._config.focal_length_px, self._config.point_stride
        )

    @property
    def config(self) -> StereoConfig:
        return self._config

    @property
    def detector(self) -> FeatureDetector:
        return self._detector

    def _detect(self, pair: StereoPair) -> tuple[list[FeaturePoint], list[FeaturePoint]]:
        try:
            left = self._detector.detect(pair.left)
            right = self._detector.detect(pair.right)
        except DepthError:
            raise
        except Exception as exc:
            raise FeatureDetectionError(f"{type(exc).__name__}: {exc}") from exc
        return left, right

    def compute_disparity(self, pair: StereoPair) -> DisparityMap:
        """Detect features in both views and match them."""
        left, right = self._detect(pair)
        return self._matcher.match(left, right, pair.width, pair.height)

    def generate(self, pair: StereoPair, stride: int | None = None) -> DepthMapResult:
        """
        Run the full stereo path.

        Args:
            pair: Rectified stereo pair
            stride: Point cloud grid step override

        Returns:
            DepthMapResult

        Raises:
            InvalidImagesError: Malformed input (raised by StereoPair)
            FeatureDetectionError: The detector failed
            DepthCalculationError: Disparity could not be converted
        """
        start = time.perf_counter()
        logger.info("Generating depth map from %dx%d stereo pair", pair.width, pair.height)

        disparity = self.compute_disparity(pair)

        try:
            depth = self._converter.convert(disparity, reference=pair.left)
        except DepthError:
            raise
        except Exception as exc:
            raise DepthCalculationError(f"{type(exc).__name__}: {exc}") from exc

        points = self._generator.generate(depth, pair.left, stride)
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        logger.info(
            "Depth map generated: %d matches, %d 3D points in %.1fms",
            disparity.match_count,
            len(points),
            elapsed_ms,
        )

        return DepthMapResult(
            depth_image=depth,
            point_cloud=points,
            min_depth=self._config.min_depth_m,
            max_depth=self._config.max_depth_m,
            disparity_map=disparity,
            stats=DepthStats.from_depth_map(depth, self._config.max_depth_m),
            elapsed_ms=elapsed_ms,
        )

    async def generate_async(
        self,
        pair: StereoPair,
        stride: int | None = None,
        timeout: float | None = None,
    ) -> DepthMapResult:
        """
        Run ``generate`` in a worker thread.

        Args:
            pair: Rectified stereo pair
            stride: Point cloud grid step override
            timeout: Seconds to wait before giving up; the worker thread
                itself is not interrupted

        Raises:
            TimeoutError: If the deadline passes first
        """
        return await asyncio.wait_for(
            asyncio.to_thread(self.generate, pair, stride), timeout=timeout
        )
