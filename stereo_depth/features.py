"""
Feature Detection Interface
============================

Pluggable 2D keypoint candidates for stereo correspondence.

Any detector that turns a raster into normalized candidate points with a
confidence satisfies the ``FeatureDetector`` protocol; the matcher and depth
stages never depend on a concrete implementation.

This module provides:
- FeaturePoint: Immutable normalized keypoint candidate
- FeatureDetector: Protocol for detection backends
- ContourFeatureDetector: Contour tracing with contrast adjustment (default)
- CornerFeatureDetector: Shi-Tomasi / Harris corners
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Sequence, runtime_checkable

import cv2
import numpy as np

from .config import DetectorParams
from .errors import FeatureDetectionError
from .raster import ImageBuffer

if TYPE_CHECKING:
    import numpy.typing as npt


__all__ = [
    "FeaturePoint",
    "FeatureDetector",
    "ContourFeatureDetector",
    "CornerFeatureDetector",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FeaturePoint:
    """
    Immutable keypoint candidate in normalized image coordinates.

    Attributes:
        x: Column / width, in [0, 1]
        y: Row / height, in [0, 1] (top-left origin)
        confidence: Detector confidence (0.0 to 1.0)
    """

    x: float
    y: float
    confidence: float = 1.0

    def to_pixel(self, width: int, height: int) -> tuple[int, int]:
        """Nearest pixel (x, y), clamped inside the image."""
        px = min(max(int(round(self.x * width)), 0), width - 1)
        py = min(max(int(round(self.y * height)), 0), height - 1)
        return (px, py)

    @classmethod
    def from_pixel(
        cls, x: float, y: float, width: int, height: int, confidence: float = 1.0
    ) -> FeaturePoint:
        return cls(x=x / width, y=y / height, confidence=confidence)


@runtime_checkable
class FeatureDetector(Protocol):
    """
    Protocol for feature detection backends.

    Implement this with FAST, ORB, SIFT or any other detector.
    """

    def detect(self, image: npt.NDArray | ImageBuffer) -> list[FeaturePoint]:
        """
        Detect keypoint candidates in a single raster.

        Args:
            image: Grayscale or BGR raster

        Returns:
            Candidates sorted by row then column; empty if none found

        Raises:
            InvalidImagesError: If the raster is malformed
            FeatureDetectionError: If the backend itself fails
        """
        ...


def _sorted_points(points: list[FeaturePoint]) -> list[FeaturePoint]:
    return sorted(points, key=lambda p: (p.y, p.x))


class ContourFeatureDetector:
    """
    Contour-anchor detector.

    Boosts contrast around mid-gray, binarizes with a dark-on-light (or
    light-on-dark) polarity, traces contours and emits one keypoint per
    contour at its bounding-box origin. With ``polygon_vertices`` every
    vertex of the simplified contour polygon is emitted instead; a matcher
    can then pair a shape's left edge with its own right edge when the
    disparity exceeds the shape width. Intentionally coarse.

    Example:
        >>> detector = ContourFeatureDetector()
        >>> points = detector.detect(frame)
    """

    __slots__ = ("_params",)

    def __init__(self, params: DetectorParams | None = None) -> None:
        """
        Initialize contour detector.

        Args:
            params: Detector parameters (defaults: contrast 2.0, dark on light)
        """
        self._params = params or DetectorParams()

    @property
    def params(self) -> DetectorParams:
        return self._params

    def _foreground_mask(self, gray: npt.NDArray) -> npt.NDArray:
        """Binary mask of the shapes to trace."""
        adjusted = np.clip((gray - 0.5) * self._params.contrast + 0.5, 0.0, 1.0)
        if self._params.dark_on_light:
            mask = adjusted < 0.5
        else:
            mask = adjusted > 0.5
        return mask.astype(np.uint8) * 255

    def detect(self, image: npt.NDArray | ImageBuffer) -> list[FeaturePoint]:
        """Detect contour anchors (or vertices)."""
        buf = ImageBuffer(image)
        width, height = buf.width, buf.height
        mask = self._foreground_mask(buf.gray())

        try:
            contours, _ = cv2.findContours(mask, cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)
        except cv2.error as exc:
            raise FeatureDetectionError(str(exc)) from exc

        points: list[FeaturePoint] = []
        for contour in contours:
            area = cv2.contourArea(contour)
            if area < self._params.min_area:
                continue

            confidence = min(1.0, area / (self._params.min_area * 10.0))

            if not self._params.polygon_vertices:
                # One anchor per shape: its bounding-box origin
                x, y, _, _ = cv2.boundingRect(contour)
                points.append(
                    FeaturePoint.from_pixel(float(x), float(y), width, height, confidence)
                )
                continue

            perimeter = cv2.arcLength(contour, True)
            polygon = cv2.approxPolyDP(contour, self._params.epsilon_ratio * perimeter, True)
            for x, y in polygon.reshape(-1, 2):
                points.append(
                    FeaturePoint.from_pixel(float(x), float(y), width, height, confidence)
                )

        # Keep the most confident points when capped
        if len(points) > self._params.max_features:
            points.sort(key=lambda p: p.confidence, reverse=True)
            points = points[: self._params.max_features]

        logger.debug("Contour detector: %d candidates in %dx%d", len(points), width, height)
        return _sorted_points(points)

    def detect_batch(self, images: Sequence[npt.NDArray]) -> list[list[FeaturePoint]]:
        """Detect in multiple rasters."""
        return [self.detect(img) for img in images]


class CornerFeatureDetector:
    """
    Shi-Tomasi (or Harris) corner detector.

    Confidence is the corner response relative to the strongest corner.
    """

    __slots__ = ("_max_corners", "_quality", "_min_distance", "_use_harris")

    def __init__(
        self,
        max_corners: int = 500,
        quality_level: float = 0.01,
        min_distance: float = 5.0,
        use_harris: bool = False,
    ) -> None:
        self._max_corners = max_corners
        self._quality = quality_level
        self._min_distance = min_distance
        self._use_harris = use_harris

    def detect(self, image: npt.NDArray | ImageBuffer) -> list[FeaturePoint]:
        """Detect corners."""
        buf = ImageBuffer(image)
        gray = buf.gray()

        try:
            corners = cv2.goodFeaturesToTrack(
                gray,
                maxCorners=self._max_corners,
                qualityLevel=self._quality,
                minDistance=self._min_distance,
                useHarrisDetector=self._use_harris,
            )
            if corners is None:
                return []
            response = cv2.cornerMinEigenVal(gray, 3)
        except cv2.error as exc:
            raise FeatureDetectionError(str(exc)) from exc

        peak = float(response.max()) or 1.0
        points = []
        for x, y in corners.reshape(-1, 2):
            r = float(response[int(y), int(x)])
            points.append(
                FeaturePoint.from_pixel(
                    float(x), float(y), buf.width, buf.height, min(1.0, max(0.0, r / peak))
                )
            )
        return _sorted_points(points)
