"""
Depth Pipeline Errors
======================

Every failure is terminal for the current call. Callers are expected to
re-invoke with a fresh capture rather than retry inside the pipeline.
"""

from __future__ import annotations


__all__ = [
    "DepthError",
    "InvalidImagesError",
    "FeatureDetectionError",
    "DepthCalculationError",
]


class DepthError(Exception):
    """Base class for stereo depth pipeline failures."""

    message = "Stereo depth pipeline failed"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail
        text = self.message if detail is None else f"{self.message}: {detail}"
        super().__init__(text)


class InvalidImagesError(DepthError, ValueError):
    """Malformed, empty or mismatched input rasters."""

    message = "Invalid stereo images"


class FeatureDetectionError(DepthError):
    """The underlying feature detector raised."""

    message = "Failed to detect features"


class DepthCalculationError(DepthError):
    """Disparity could not be converted to depth."""

    message = "Failed to calculate depth"
