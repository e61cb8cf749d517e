"""
Lucas-Kanade Optical Flow
==========================

Dense per-pixel motion between two temporally adjacent frames.

For each pixel the spatial gradients (gx, gy) of the current frame and the
temporal gradient gt = current - previous are accumulated over a square
window, giving the normal equations

    [[sum gx^2,  sum gx*gy],     [u]     [-sum gx*gt]
     [sum gx*gy, sum gy^2 ]]  *  [v]  =  [-sum gy*gt]

solved with Cramer's rule. Where |det| <= det_threshold the system is
under-constrained (textureless or aperture-limited) and the flow is zero.

Known accuracy limit: there is no pyramid, so motions larger than the window
(a few pixels) are not tracked correctly.

This module provides:
- FlowField: Per-pixel (u, v) displacement field
- OpticalFlowTracker: Window-based Lucas-Kanade solver
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

import cv2
import numpy as np

from .config import FlowParams
from .errors import InvalidImagesError
from .raster import ImageBuffer

if TYPE_CHECKING:
    import numpy.typing as npt


__all__ = [
    "FlowField",
    "OpticalFlowTracker",
]


@dataclass(frozen=True, slots=True)
class FlowField:
    """
    Per-pixel displacement from the previous to the current frame.

    Attributes:
        u: (H, W) horizontal displacement in pixels
        v: (H, W) vertical displacement in pixels
        border: Width of the unevaluated (zero) frame around the image
    """

    u: npt.NDArray
    v: npt.NDArray
    border: int = 2

    @property
    def shape(self) -> tuple[int, int]:
        return self.u.shape

    @property
    def magnitude(self) -> npt.NDArray:
        return np.hypot(self.u, self.v)

    def at(self, x: int, y: int) -> tuple[float, float]:
        """(u, v) at a pixel, (0, 0) outside the image."""
        h, w = self.u.shape
        if not (0 <= x < w and 0 <= y < h):
            return (0.0, 0.0)
        return (float(self.u[y, x]), float(self.v[y, x]))

    def as_array(self) -> npt.NDArray:
        """(H, W, 2) stacked (u, v)."""
        return np.dstack([self.u, self.v])

    def track(self, points: Sequence[tuple[float, float]]) -> list[tuple[float, float]]:
        """Move pixel positions by the flow sampled at their nearest pixel."""
        moved = []
        for x, y in points:
            du, dv = self.at(int(round(x)), int(round(y)))
            moved.append((x + du, y + dv))
        return moved


class OpticalFlowTracker:
    """
    Single-level Lucas-Kanade flow.

    Example:
        >>> tracker = OpticalFlowTracker()
        >>> flow = tracker.compute(prev_frame, frame)
        >>> u, v = flow.at(320, 240)
    """

    __slots__ = ("_params",)

    def __init__(self, params: FlowParams | None = None) -> None:
        self._params = params or FlowParams()

    @property
    def params(self) -> FlowParams:
        return self._params

    @property
    def border(self) -> int:
        return self._params.window // 2

    @staticmethod
    def spatial_gradients(frame: npt.NDArray) -> tuple[npt.NDArray, npt.NDArray]:
        """Half-weight central differences, borders clamped."""
        padded = np.pad(frame, 1, mode="edge")
        gx = 0.5 * (padded[1:-1, 2:] - padded[1:-1, :-2])
        gy = 0.5 * (padded[2:, 1:-1] - padded[:-2, 1:-1])
        return gx, gy

    def _window_sum(self, values: npt.NDArray) -> npt.NDArray:
        k = self._params.window
        return cv2.boxFilter(
            values, cv2.CV_64F, (k, k), normalize=False, borderType=cv2.BORDER_REPLICATE
        )

    def compute(
        self,
        previous: npt.NDArray | ImageBuffer,
        current: npt.NDArray | ImageBuffer,
    ) -> FlowField:
        """
        Estimate per-pixel flow from previous to current.

        Args:
            previous: Earlier frame (gray or BGR)
            current: Later frame, same size

        Returns:
            FlowField; zero within the border and at singular pixels

        Raises:
            InvalidImagesError: If a frame is malformed or sizes differ
        """
        prev_buf = ImageBuffer(previous, name="previous frame")
        curr_buf = ImageBuffer(current, name="current frame")
        if not prev_buf.same_size(curr_buf):
            raise InvalidImagesError(
                f"frame size changed: {prev_buf.width}x{prev_buf.height} -> "
                f"{curr_buf.width}x{curr_buf.height}"
            )

        prev = prev_buf.gray(np.float64)
        curr = curr_buf.gray(np.float64)

        gx, gy = self.spatial_gradients(curr)
        gt = curr - prev

        sxx = self._window_sum(gx * gx)
        sxy = self._window_sum(gx * gy)
        syy = self._window_sum(gy * gy)
        bx = -self._window_sum(gx * gt)
        by = -self._window_sum(gy * gt)

        det = sxx * syy - sxy * sxy
        solvable = np.abs(det) > self._params.det_threshold
        safe_det = np.where(solvable, det, 1.0)

        u = np.where(solvable, (bx * syy - sxy * by) / safe_det, 0.0)
        v = np.where(solvable, (sxx * by - sxy * bx) / safe_det, 0.0)

        b = self.border
        interior = np.zeros(u.shape, dtype=bool)
        interior[b : u.shape[0] - b, b : u.shape[1] - b] = True
        u = np.where(interior, u, 0.0).astype(np.float32)
        v = np.where(interior, v, 0.0).astype(np.float32)

        return FlowField(u=u, v=v, border=b)
