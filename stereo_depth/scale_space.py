"""
Scale-Space Keypoint Detection
===============================

Gaussian pyramid, Difference-of-Gaussians and non-extremum suppression.

Each primitive computes every output pixel independently from read-only
inputs; multi-pass pipelines (blur -> DoG -> suppression) run strictly in
sequence because each pass consumes the complete previous output.

Only detection is in scope: no descriptor vector is computed. Gradient
magnitude/orientation is exposed for downstream descriptor code.

This module provides:
- gaussian_blur, difference_of_gaussians, suppress_non_extrema: primitives
- sobel_gradients: per-pixel gradient magnitude and orientation
- Keypoint: Immutable multi-scale keypoint
- ScaleSpaceDetector: Octave pyramid keypoint detector
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple

import cv2
import numpy as np

from .config import ScaleSpaceParams
from .raster import ImageBuffer

if TYPE_CHECKING:
    import numpy.typing as npt


__all__ = [
    "gaussian_kernel",
    "gaussian_blur",
    "difference_of_gaussians",
    "suppress_non_extrema",
    "GradientField",
    "sobel_gradients",
    "Keypoint",
    "ScaleSpaceDetector",
]

logger = logging.getLogger(__name__)

# Smallest octave side length that still has an interior after suppression
_MIN_OCTAVE_SIDE = 8

# Smaller sigmas are treated as a unit impulse
_MIN_SIGMA = 1e-6


def gaussian_kernel(sigma: float, radius: int | None = None) -> npt.NDArray:
    """1D normalized Gaussian taps, radius ceil(3 * sigma) by default."""
    if sigma < _MIN_SIGMA:
        taps = np.zeros(2 * (radius or 1) + 1)
        taps[len(taps) // 2] = 1.0
        return taps
    if radius is None:
        radius = max(1, math.ceil(3.0 * sigma))
    d = np.arange(-radius, radius + 1, dtype=np.float64)
    weights = np.exp(-(d * d) / (2.0 * sigma * sigma))
    return weights / weights.sum()


def gaussian_blur(
    image: npt.NDArray | ImageBuffer, sigma: float, radius: int | None = None
) -> npt.NDArray:
    """
    Blur with a (2r+1)x(2r+1) Gaussian, border pixels clamped.

    The 2D weight exp(-d^2 / 2 sigma^2) factors into two 1D passes, so the
    normalized separable filter gives the same result as the direct sum.

    Args:
        image: Raster (gray or BGR), uint8 or float in [0, 1]
        sigma: Standard deviation in pixels; below 1e-6 returns a copy
        radius: Override for ceil(3 * sigma)

    Returns:
        float32 raster in the input's channel layout
    """
    src = ImageBuffer(image).to_float(np.float32)
    if sigma < _MIN_SIGMA:
        return src

    taps = gaussian_kernel(sigma, radius).astype(np.float32)
    return cv2.sepFilter2D(src, cv2.CV_32F, taps, taps, borderType=cv2.BORDER_REPLICATE)


def difference_of_gaussians(a: npt.NDArray, b: npt.NDArray) -> npt.NDArray:
    """Per-pixel a - b of two blur levels."""
    if a.shape != b.shape:
        raise ValueError(f"DoG levels differ in shape: {a.shape} vs {b.shape}")
    return a.astype(np.float32) - b.astype(np.float32)


def suppress_non_extrema(dog: npt.NDArray, threshold: float) -> npt.NDArray:
    """
    Keep strict 8-neighborhood extrema whose magnitude exceeds threshold.

    A pixel survives if it is strictly greater than all eight neighbors or
    strictly less than all eight, and |value| > threshold. All other pixels,
    including the one-pixel border, are zero.

    Returns:
        Sparse float32 raster of surviving responses
    """
    dog = np.asarray(dog, dtype=np.float32)
    if dog.ndim != 2:
        raise ValueError("suppress_non_extrema expects a single-channel raster")

    h, w = dog.shape
    out = np.zeros_like(dog)
    if h < 3 or w < 3:
        return out

    center = dog[1:-1, 1:-1]
    is_max = np.ones(center.shape, dtype=bool)
    is_min = np.ones(center.shape, dtype=bool)
    for dy in (-1, 0, 1):
        for dx in (-1, 0, 1):
            if dy == 0 and dx == 0:
                continue
            neighbor = dog[1 + dy : h - 1 + dy, 1 + dx : w - 1 + dx]
            is_max &= center > neighbor
            is_min &= center < neighbor

    keep = (is_max | is_min) & (np.abs(center) > threshold)
    out[1:-1, 1:-1] = np.where(keep, center, 0.0)
    return out


class GradientField(NamedTuple):
    """Sobel gradients of a raster."""

    gx: npt.NDArray
    gy: npt.NDArray
    magnitude: npt.NDArray
    orientation: npt.NDArray  # radians, atan2(gy, gx)


def sobel_gradients(image: npt.NDArray | ImageBuffer) -> GradientField:
    """3x3 Sobel gradients ({1, 2, 1} smoothing) of the grayscale raster."""
    gray = ImageBuffer(image).gray()
    gx = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=3, borderType=cv2.BORDER_REPLICATE)
    gy = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=3, borderType=cv2.BORDER_REPLICATE)
    return GradientField(
        gx=gx,
        gy=gy,
        magnitude=np.sqrt(gx * gx + gy * gy),
        orientation=np.arctan2(gy, gx),
    )


@dataclass(frozen=True, slots=True)
class Keypoint:
    """
    Multi-scale keypoint in full-resolution pixel coordinates.

    Attributes:
        x: Column in pixels
        y: Row in pixels
        scale: Blur sigma of the detecting level, in full-resolution pixels
        response: |DoG| at the keypoint
        octave: Pyramid octave the keypoint was found in
        orientation: Sobel gradient angle at the keypoint (radians)
    """

    x: float
    y: float
    scale: float
    response: float
    octave: int = 0
    orientation: float = 0.0

    def __str__(self) -> str:
        return f"Keypoint(({self.x:.0f}, {self.y:.0f}) sigma={self.scale:.2f} r={self.response:.3f})"


class ScaleSpaceDetector:
    """
    Difference-of-Gaussians keypoint detector over an octave pyramid.

    Each octave halves the resolution of the previous one and blurs it at
    ``base_sigma * 2^(s / scales_per_octave)``. Adjacent levels are
    subtracted, suppressed and the survivors mapped back to the input
    resolution. The strongest ``max_keypoints`` responses are returned.

    Example:
        >>> detector = ScaleSpaceDetector()
        >>> keypoints = detector.detect(gray)
    """

    __slots__ = ("_params",)

    def __init__(self, params: ScaleSpaceParams | None = None) -> None:
        self._params = params or ScaleSpaceParams()

    @property
    def params(self) -> ScaleSpaceParams:
        return self._params

    def level_sigmas(self) -> list[float]:
        """Blur sigma of each level within an octave."""
        p = self._params
        return [p.base_sigma * 2.0 ** (s / p.scales_per_octave) for s in range(p.scales_per_octave)]

    def build_octave(self, image: npt.NDArray) -> list[npt.NDArray]:
        """Blur levels of a single octave."""
        return [gaussian_blur(image, sigma) for sigma in self.level_sigmas()]

    def detect(self, image: npt.NDArray | ImageBuffer) -> list[Keypoint]:
        """Detect keypoints, strongest first."""
        p = self._params
        base = ImageBuffer(image).gray()
        keypoints: list[Keypoint] = []

        octave_image = base
        for octave in range(p.octaves):
            if octave > 0:
                octave_image = octave_image[::2, ::2]
            if min(octave_image.shape) < _MIN_OCTAVE_SIDE:
                break

            factor = 2.0**octave
            levels = self.build_octave(octave_image)

            for s in range(len(levels) - 1):
                dog = difference_of_gaussians(levels[s], levels[s + 1])
                extrema = suppress_non_extrema(dog, p.threshold)
                ys, xs = np.nonzero(extrema)
                if len(xs) == 0:
                    continue

                grads = sobel_gradients(levels[s])
                scale = p.base_sigma * 2.0 ** (octave + s / p.scales_per_octave)
                for y, x in zip(ys, xs):
                    keypoints.append(
                        Keypoint(
                            x=float(x) * factor,
                            y=float(y) * factor,
                            scale=scale,
                            response=float(abs(extrema[y, x])),
                            octave=octave,
                            orientation=float(grads.orientation[y, x]),
                        )
                    )

        keypoints.sort(key=lambda k: k.response, reverse=True)
        logger.debug("Scale space: %d keypoints before cap", len(keypoints))
        return keypoints[: p.max_keypoints]

    def response_map(self, image: npt.NDArray | ImageBuffer, level: int = 0) -> npt.NDArray:
        """Sparse suppressed DoG raster of one first-octave level pair."""
        levels = self.build_octave(ImageBuffer(image).gray())
        if not 0 <= level < len(levels) - 1:
            raise ValueError(f"level must be in [0, {len(levels) - 2}]")
        dog = difference_of_gaussians(levels[level], levels[level + 1])
        return suppress_non_extrema(dog, self._params.threshold)
