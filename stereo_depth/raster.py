"""
Raster Buffers
===============

Shared raster abstraction for every kernel in the package.

Inputs are read-only views over numpy arrays (unsigned integers over their
full range, e.g. ``uint8`` in [0, 255] or ``uint16`` in [0, 65535], or float
in [0, 1], grayscale or BGR as OpenCV loads them). Kernels read through
``ImageBuffer`` and write fresh output arrays, never into their inputs.

This module provides:
- ImageBuffer: Validated read-only raster with float / gray conversions
- CaptureMode: How the two views of a stereo pair were captured
- StereoPair: Time-aligned left/right rasters
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

import cv2
import numpy as np

from .errors import InvalidImagesError

if TYPE_CHECKING:
    import numpy.typing as npt


__all__ = [
    "ImageBuffer",
    "CaptureMode",
    "StereoPair",
]


class ImageBuffer:
    """
    Read-only view over a grayscale or BGR raster.

    Example:
        >>> buf = ImageBuffer(cv2.imread("left.png"))
        >>> gray = buf.gray()  # float32 in [0, 1]
    """

    __slots__ = ("_data",)

    def __init__(self, data: npt.NDArray | ImageBuffer, name: str = "image") -> None:
        """
        Wrap and validate a raster.

        Args:
            data: (H, W) or (H, W, 3/4) array, or another ImageBuffer
            name: Label used in error messages

        Raises:
            InvalidImagesError: If the raster is missing, empty, has an
                unsupported shape or contains non-finite values
        """
        if isinstance(data, ImageBuffer):
            self._data = data._data
            return

        if data is None:
            raise InvalidImagesError(f"{name} is missing")

        arr = np.asarray(data)
        if arr.ndim not in (2, 3) or arr.size == 0:
            raise InvalidImagesError(f"{name} has unsupported shape {arr.shape}")
        if arr.ndim == 3 and arr.shape[2] not in (1, 3, 4):
            raise InvalidImagesError(f"{name} has {arr.shape[2]} channels")
        # Signed integers have no defined black level
        if arr.dtype.kind not in "uf" or (arr.dtype.kind == "u" and arr.dtype.itemsize > 4):
            raise InvalidImagesError(f"{name} has unsupported dtype {arr.dtype}")
        if arr.dtype.kind == "f" and not np.all(np.isfinite(arr)):
            raise InvalidImagesError(f"{name} contains non-finite values")

        view = arr.view()
        view.flags.writeable = False
        self._data = view

    @property
    def data(self) -> npt.NDArray:
        """The underlying read-only array."""
        return self._data

    @property
    def width(self) -> int:
        return int(self._data.shape[1])

    @property
    def height(self) -> int:
        return int(self._data.shape[0])

    @property
    def shape(self) -> tuple[int, int]:
        """(height, width)."""
        return (self.height, self.width)

    @property
    def channels(self) -> int:
        return 1 if self._data.ndim == 2 else int(self._data.shape[2])

    @property
    def is_integer(self) -> bool:
        return self._data.dtype.kind == "u"

    @property
    def full_scale(self) -> float:
        """Raw value that maps to 1.0 (dtype maximum for integer rasters)."""
        if self.is_integer:
            return float(np.iinfo(self._data.dtype).max)
        return 1.0

    def to_float(self, dtype: type = np.float32) -> npt.NDArray:
        """Return a writable float copy scaled to [0, 1], channels preserved."""
        arr = self._data
        if arr.ndim == 3 and arr.shape[2] == 1:
            arr = arr[:, :, 0]
        if arr.ndim == 3 and arr.shape[2] == 4:
            arr = arr[:, :, :3]
        if self.is_integer:
            return arr.astype(dtype) / dtype(self.full_scale)
        return arr.astype(dtype, copy=True)

    def gray(self, dtype: type = np.float32) -> npt.NDArray:
        """Return a float grayscale copy in [0, 1]."""
        img = self.to_float(np.float32)
        if img.ndim == 3:
            img = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
        return img.astype(dtype, copy=False)

    def bgr(self) -> npt.NDArray:
        """Return a float BGR copy in [0, 1] (gray input is replicated)."""
        img = self.to_float(np.float32)
        if img.ndim == 2:
            img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
        return img

    def pixel_rgb(self, x: int, y: int) -> tuple[int, int, int]:
        """Color at (x, y) as an 8-bit (r, g, b) tuple."""
        px = self._data[y, x]
        if self._data.dtype != np.uint8:
            px = np.clip(np.asarray(px, dtype=np.float64) * (255.0 / self.full_scale) + 0.5, 0, 255)
        px = np.atleast_1d(px).astype(np.int64)
        if px.size == 1:
            v = int(px[0])
            return (v, v, v)
        b, g, r = (int(c) for c in px[:3])
        return (r, g, b)

    def same_size(self, other: ImageBuffer) -> bool:
        return self.shape == other.shape

    def __repr__(self) -> str:
        return f"ImageBuffer({self.width}x{self.height}, channels={self.channels}, dtype={self._data.dtype})"


def to_output(values: npt.NDArray, like: ImageBuffer) -> npt.NDArray:
    """Clip a [0, 1] float result and rescale it to the dtype of ``like``."""
    clipped = np.clip(np.asarray(values, dtype=np.float64), 0.0, 1.0)
    if like.is_integer:
        return (clipped * like.full_scale + 0.5).astype(like.data.dtype)
    return clipped.astype(np.float32)


class CaptureMode(Enum):
    """How the two views of a stereo pair were captured."""

    SIMULTANEOUS = "simultaneous"
    SEQUENTIAL = "sequential"


@dataclass(frozen=True, slots=True)
class StereoPair:
    """
    Time-aligned left/right rasters.

    Both views are assumed rectified (epipolar lines horizontal). This is
    not verified.

    Attributes:
        left: Left (reference) image
        right: Right image
        timestamp: Capture time in seconds
        capture_mode: Simultaneous dual capture or sequential single camera
    """

    left: ImageBuffer
    right: ImageBuffer
    timestamp: float = field(default_factory=time.time)
    capture_mode: CaptureMode = CaptureMode.SIMULTANEOUS

    def __post_init__(self) -> None:
        left = ImageBuffer(self.left, name="left image")
        right = ImageBuffer(self.right, name="right image")
        if not left.same_size(right):
            raise InvalidImagesError(
                f"size mismatch: left {left.width}x{left.height}, "
                f"right {right.width}x{right.height}"
            )
        object.__setattr__(self, "left", left)
        object.__setattr__(self, "right", right)

    @classmethod
    def from_arrays(
        cls,
        left: npt.NDArray,
        right: npt.NDArray,
        timestamp: float | None = None,
        capture_mode: CaptureMode = CaptureMode.SIMULTANEOUS,
    ) -> StereoPair:
        """Build a pair from raw arrays."""
        return cls(
            left=ImageBuffer(left, name="left image"),
            right=ImageBuffer(right, name="right image"),
            timestamp=time.time() if timestamp is None else timestamp,
            capture_mode=capture_mode,
        )

    @property
    def width(self) -> int:
        return self.left.width

    @property
    def height(self) -> int:
        return self.left.height
