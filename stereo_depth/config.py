"""
Stereo Depth Configuration
===========================

Immutable configuration dataclasses for the stereo depth pipeline.
All distances are in meters unless otherwise specified.

This module provides:
- Resolution: Type-safe resolution representation
- QualityPreset: Predefined quality/speed tradeoffs
- RefinementMode: Depth refinement strategy
- DetectorParams, MatcherParams, BilateralParams: Stereo path parameters
- ScaleSpaceParams, FlowParams: Tracking path parameters
- EnhancementParams: Enhancement kernel parameters
- StereoConfig: Main configuration with validation and serialization
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, NamedTuple, Self

import numpy as np
import yaml

if TYPE_CHECKING:
    import numpy.typing as npt


__all__ = [
    "Resolution",
    "QualityPreset",
    "RefinementMode",
    "DetectorParams",
    "MatcherParams",
    "BilateralParams",
    "ScaleSpaceParams",
    "FlowParams",
    "EnhancementParams",
    "StereoConfig",
]


class Resolution(NamedTuple):
    """Type-safe resolution representation."""

    width: int
    height: int

    @property
    def aspect_ratio(self) -> float:
        """Width / height ratio."""
        return self.width / self.height

    def scaled(self, factor: float) -> Resolution:
        """Return a new Resolution scaled by factor."""
        return Resolution(int(self.width * factor), int(self.height * factor))

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"

    @classmethod
    def parse(cls, s: str) -> Resolution:
        """Parse 'WxH' string to Resolution."""
        w, h = s.lower().split("x")
        return cls(int(w), int(h))


class QualityPreset(Enum):
    """Predefined quality/performance tradeoffs."""

    FAST = "fast"  # Coarse sampling, cheap refinement
    BALANCED = "balanced"  # Good tradeoff for most use cases
    QUALITY = "quality"  # Bilateral refinement, dense sampling


class RefinementMode(Enum):
    """Edge-preserving refinement applied to the inverted disparity."""

    NONE = "none"
    FAST = "fast"  # Morphological local contrast reduction
    BILATERAL = "bilateral"  # Depth + color bilateral filter


class DetectorParams(NamedTuple):
    """Contour feature detector parameters.

    Attributes:
        contrast: Contrast adjustment factor applied around mid-gray
        dark_on_light: Treat dark shapes on a light background as foreground
        min_area: Minimum contour area in pixels
        epsilon_ratio: Polygon simplification tolerance relative to perimeter
        max_features: Upper bound on returned keypoints
        polygon_vertices: Emit every simplified polygon vertex instead of
            one bounding-box origin per contour
    """

    contrast: float = 2.0
    dark_on_light: bool = True
    min_area: float = 16.0
    epsilon_ratio: float = 0.02
    max_features: int = 2000
    polygon_vertices: bool = False


class MatcherParams(NamedTuple):
    """Epipolar correspondence parameters.

    Attributes:
        epsilon: Max normalized vertical offset between matched keypoints
        require_positive_disparity: Only accept right keypoints left of
            (or at) the left keypoint's column
    """

    epsilon: float = 0.05
    require_positive_disparity: bool = True


class BilateralParams(NamedTuple):
    """Bilateral depth refinement parameters (normalized depth units)."""

    radius: int = 5
    sigma_spatial: float = 2.5
    sigma_range: float = 0.1


class ScaleSpaceParams(NamedTuple):
    """Gaussian pyramid keypoint detection parameters.

    Attributes:
        octaves: Number of octaves (each one half the previous resolution)
        scales_per_octave: Blur levels per octave
        base_sigma: Blur of the first level in every octave
        threshold: Minimum |DoG| response on [0, 1] intensities
        max_keypoints: Strongest responses kept
    """

    octaves: int = 4
    scales_per_octave: int = 5
    base_sigma: float = 1.6
    threshold: float = 0.03
    max_keypoints: int = 500

    @classmethod
    def for_preset(cls, preset: QualityPreset) -> ScaleSpaceParams:
        """Get pyramid parameters for a quality preset."""
        match preset:
            case QualityPreset.FAST:
                return cls(octaves=2, scales_per_octave=3, max_keypoints=200)
            case QualityPreset.QUALITY:
                return cls(octaves=4, scales_per_octave=5, threshold=0.02, max_keypoints=1000)
            case _:  # BALANCED
                return cls()


class FlowParams(NamedTuple):
    """Lucas-Kanade parameters."""

    window: int = 5
    det_threshold: float = 0.001


class EnhancementParams(NamedTuple):
    """Enhancement kernel stage strengths.

    The neutral setting (sharpness=0, contrast=1, saturation=1, denoise=0)
    reduces the kernel to plain bicubic resampling.
    """

    sharpness: float = 0.5
    contrast: float = 1.1
    saturation: float = 1.1
    denoise: float = 0.2

    @classmethod
    def neutral(cls) -> EnhancementParams:
        """Parameters that leave the bicubic result untouched."""
        return cls(sharpness=0.0, contrast=1.0, saturation=1.0, denoise=0.0)

    @classmethod
    def for_preset(cls, preset: QualityPreset) -> EnhancementParams:
        """Get enhancement strengths for a quality preset."""
        match preset:
            case QualityPreset.FAST:
                return cls(sharpness=0.3, contrast=1.05, saturation=1.0, denoise=0.0)
            case QualityPreset.QUALITY:
                return cls(sharpness=0.8, contrast=1.15, saturation=1.2, denoise=0.4)
            case _:  # BALANCED
                return cls()


@dataclass(frozen=True, slots=True)
class StereoConfig:
    """
    Immutable configuration for the stereo depth pipeline.

    Camera geometry is a fixed, known constant: the focal length is not
    derived from calibration.

    Attributes:
        baseline_m: Distance between the two camera centers
        focal_length_px: Focal length in pixels
        min_depth_m: Nearest reported depth
        max_depth_m: Farthest reported depth (also "no match")
        point_stride: Grid step for point cloud sampling
        refinement: Depth refinement strategy
        detector: Contour detector parameters
        matcher: Epipolar matcher parameters
        bilateral: Bilateral refinement parameters
        scale_space: Keypoint pyramid parameters
        flow: Optical flow parameters

    Example:
        >>> config = StereoConfig.for_preset(QualityPreset.QUALITY)
        >>> config.refinement
        <RefinementMode.BILATERAL: 'bilateral'>
    """

    baseline_m: float = 0.06
    focal_length_px: float = 500.0
    min_depth_m: float = 0.5
    max_depth_m: float = 10.0
    point_stride: int = 10
    refinement: RefinementMode = RefinementMode.FAST
    detector: DetectorParams = field(default_factory=DetectorParams)
    matcher: MatcherParams = field(default_factory=MatcherParams)
    bilateral: BilateralParams = field(default_factory=BilateralParams)
    scale_space: ScaleSpaceParams = field(default_factory=ScaleSpaceParams)
    flow: FlowParams = field(default_factory=FlowParams)

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.baseline_m <= 0:
            raise ValueError(f"Baseline must be positive: {self.baseline_m}")
        if self.focal_length_px <= 0:
            raise ValueError(f"Focal length must be positive: {self.focal_length_px}")
        if not 0 < self.min_depth_m < self.max_depth_m:
            raise ValueError(
                f"Invalid depth range: {self.min_depth_m} - {self.max_depth_m}"
            )
        if self.point_stride < 1:
            raise ValueError(f"point_stride must be >= 1: {self.point_stride}")
        if self.matcher.epsilon <= 0:
            raise ValueError("matcher.epsilon must be positive")
        if self.bilateral.radius < 1:
            raise ValueError("bilateral.radius must be >= 1")
        if self.flow.window < 3 or self.flow.window % 2 == 0:
            raise ValueError("flow.window must be odd and >= 3")
        if self.scale_space.octaves < 1 or self.scale_space.scales_per_octave < 2:
            raise ValueError("scale_space needs >= 1 octave and >= 2 scales")

    @property
    def depth_range(self) -> tuple[float, float]:
        """(min_depth_m, max_depth_m)."""
        return (self.min_depth_m, self.max_depth_m)

    @property
    def depth_factor(self) -> float:
        """focal_length * baseline, for metric triangulation."""
        return self.focal_length_px * self.baseline_m

    def get_camera_matrix(
        self, width: int, height: int
    ) -> "npt.NDArray[np.float64]":
        """Get 3x3 intrinsic matrix K with the principal point at the image center."""
        return np.array(
            [
                [self.focal_length_px, 0, width / 2.0],
                [0, self.focal_length_px, height / 2.0],
                [0, 0, 1],
            ],
            dtype=np.float64,
        )

    @classmethod
    def for_preset(
        cls,
        preset: QualityPreset,
        baseline_m: float = 0.06,
        focal_length_px: float = 500.0,
    ) -> Self:
        """Create configuration with optimized parameters for a preset."""
        match preset:
            case QualityPreset.FAST:
                refinement, stride = RefinementMode.FAST, 20
            case QualityPreset.QUALITY:
                refinement, stride = RefinementMode.BILATERAL, 5
            case _:
                refinement, stride = RefinementMode.FAST, 10
        return cls(
            baseline_m=baseline_m,
            focal_length_px=focal_length_px,
            point_stride=stride,
            refinement=refinement,
            scale_space=ScaleSpaceParams.for_preset(preset),
        )

    def to_dict(self) -> dict:
        """Serialize to dictionary (for JSON / YAML storage)."""
        return {
            "baseline_m": self.baseline_m,
            "focal_length_px": self.focal_length_px,
            "min_depth_m": self.min_depth_m,
            "max_depth_m": self.max_depth_m,
            "point_stride": self.point_stride,
            "refinement": self.refinement.value,
            "detector": self.detector._asdict(),
            "matcher": self.matcher._asdict(),
            "bilateral": self.bilateral._asdict(),
            "scale_space": self.scale_space._asdict(),
            "flow": self.flow._asdict(),
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """
        Create configuration from dictionary.

        Missing keys fall back to defaults, so partial files are accepted.

        Args:
            data: Dictionary with configuration values (from to_dict())

        Returns:
            StereoConfig instance
        """
        return cls(
            baseline_m=data.get("baseline_m", 0.06),
            focal_length_px=data.get("focal_length_px", 500.0),
            min_depth_m=data.get("min_depth_m", 0.5),
            max_depth_m=data.get("max_depth_m", 10.0),
            point_stride=data.get("point_stride", 10),
            refinement=RefinementMode(data.get("refinement", RefinementMode.FAST.value)),
            detector=DetectorParams(**data.get("detector", {})),
            matcher=MatcherParams(**data.get("matcher", {})),
            bilateral=BilateralParams(**data.get("bilateral", {})),
            scale_space=ScaleSpaceParams(**data.get("scale_space", {})),
            flow=FlowParams(**data.get("flow", {})),
        )

    @classmethod
    def from_json(cls, json_str: str) -> Self:
        """Create configuration from JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """
        Load configuration from a YAML file.

        File format:
            baseline_m: 0.06
            focal_length_px: 500.0
            refinement: bilateral
            matcher:
              epsilon: 0.05

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If file format is invalid
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Invalid config file format: {path}")

        return cls.from_dict(data)

    def save_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file (creates parent dirs)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
