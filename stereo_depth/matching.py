"""
Epipolar Stereo Matching
=========================

Brute-force correspondence between left and right keypoints of a rectified
pair, rasterized into a full-resolution disparity map.

For rectified images, matching points share (almost) the same row, so a
right keypoint is a candidate only when its normalized vertical coordinate is
within ``epsilon`` of the left one. No vertical search and no block cost
aggregation is performed: this is O(n*m) pairing, not SGM / PatchMatch.

This module provides:
- DisparityMap: uint8 disparity raster with unit conversions
- StereoMatcher: Epipolar-constrained keypoint matcher
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

import numpy as np

from .config import MatcherParams
from .errors import InvalidImagesError
from .features import FeaturePoint

if TYPE_CHECKING:
    import numpy.typing as npt


__all__ = [
    "DisparityMap",
    "StereoMatcher",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DisparityMap:
    """
    Normalized disparity raster.

    Attributes:
        values: (H, W) uint8; value / 255 is the horizontal offset as a
            fraction of the image width. 0 means no match (infinitely far).
        match_count: Number of accepted correspondences
    """

    values: npt.NDArray
    match_count: int = 0

    @property
    def width(self) -> int:
        return int(self.values.shape[1])

    @property
    def height(self) -> int:
        return int(self.values.shape[0])

    def normalized(self) -> npt.NDArray:
        """Disparity as a fraction of the image width, float32 in [0, 1]."""
        return self.values.astype(np.float32) / 255.0

    def in_pixels(self) -> npt.NDArray:
        """Disparity in pixels of horizontal offset (quantized to width / 255)."""
        return self.normalized() * float(self.width)

    @property
    def valid_mask(self) -> npt.NDArray:
        return self.values > 0


class StereoMatcher:
    """
    Epipolar-constrained brute-force matcher.

    For every left keypoint the right keypoints are walked from the left
    keypoint's column toward smaller x, i.e. by increasing disparity, and the
    first one inside the epipolar band wins. There is no best-of-many
    selection. With ``require_positive_disparity=False`` the right keypoints
    are walked in row-major order and either sign is accepted.

    Example:
        >>> matcher = StereoMatcher()
        >>> disparity = matcher.match(left_pts, right_pts, 640, 480)
    """

    __slots__ = ("_params",)

    def __init__(self, params: MatcherParams | None = None) -> None:
        self._params = params or MatcherParams()

    @property
    def params(self) -> MatcherParams:
        return self._params

    def correspondences(
        self,
        left: Sequence[FeaturePoint],
        right: Sequence[FeaturePoint],
    ) -> list[tuple[FeaturePoint, float]]:
        """
        Pair left keypoints with right keypoints.

        Returns:
            (left keypoint, normalized disparity) for each matched left point
        """
        eps = self._params.epsilon
        positive_only = self._params.require_positive_disparity

        if positive_only:
            # Right-to-left scan order: nearest column first
            ordered = sorted(right, key=lambda p: (-p.x, p.y))
        else:
            ordered = sorted(right, key=lambda p: (p.y, p.x))

        matches: list[tuple[FeaturePoint, float]] = []
        for lp in sorted(left, key=lambda p: (p.y, p.x)):
            for rp in ordered:
                if abs(lp.y - rp.y) >= eps:
                    continue
                if positive_only and rp.x > lp.x:
                    continue
                matches.append((lp, abs(lp.x - rp.x)))
                break

        return matches

    def match(
        self,
        left: Sequence[FeaturePoint],
        right: Sequence[FeaturePoint],
        width: int,
        height: int,
    ) -> DisparityMap:
        """
        Build a full-resolution disparity map from keypoint correspondences.

        Args:
            left: Keypoints of the left (reference) image
            right: Keypoints of the right image
            width: Left image width in pixels
            height: Left image height in pixels

        Returns:
            DisparityMap; pixels without a correspondence are 0

        Raises:
            InvalidImagesError: If the image size is not positive
        """
        if width <= 0 or height <= 0:
            raise InvalidImagesError(f"invalid disparity size {width}x{height}")

        values = np.zeros((height, width), dtype=np.uint8)
        matches = self.correspondences(left, right)

        for point, disparity in matches:
            x, y = point.to_pixel(width, height)
            values[y, x] = int(np.clip(int(disparity * 255.0), 0, 255))

        logger.debug(
            "Matched %d of %d left keypoints against %d right keypoints",
            len(matches),
            len(left),
            len(right),
        )
        return DisparityMap(values=values, match_count=len(matches))
