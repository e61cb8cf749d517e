"""
Stereo Depth
============

Depth maps and colored point clouds from rectified stereo pairs, plus the
image kernels used for feature tracking and visual quality.

Quick Start (Synthetic Pair)::

    from stereo_depth import DepthMapper, StereoConfig, shifted_square_pair

    pair = shifted_square_pair(dx=8)
    result = DepthMapper(StereoConfig()).generate(pair)
    print(f"Center depth: {result.at_center():.2f}m, {len(result.point_cloud)} points")

Image Files::

    import cv2
    from stereo_depth import DepthMapper, StereoPair

    pair = StereoPair.from_arrays(cv2.imread("left.png"), cv2.imread("right.png"))
    result = DepthMapper().generate(pair)

Modules:
    config: Geometry constants and stage parameters
    raster: Read-only raster buffers and stereo pairs
    features: Pluggable 2D feature detectors
    matching: Epipolar keypoint matching -> disparity
    depth: Disparity -> metric depth with refinement
    point_cloud: Depth -> colored 3D points
    scale_space: Gaussian / DoG / suppression keypoint detection
    flow: Lucas-Kanade optical flow
    enhance: Bicubic enhancement kernel
    pipeline: End-to-end stereo path
    synthetic: Synthetic stereo pairs for testing
"""

__version__ = "1.0.0"

# Errors
from .errors import (
    DepthError,
    InvalidImagesError,
    FeatureDetectionError,
    DepthCalculationError,
)

# Configuration
from .config import (
    Resolution,
    QualityPreset,
    RefinementMode,
    DetectorParams,
    MatcherParams,
    BilateralParams,
    ScaleSpaceParams,
    FlowParams,
    EnhancementParams,
    StereoConfig,
)

# Rasters
from .raster import (
    ImageBuffer,
    CaptureMode,
    StereoPair,
)

# Features
from .features import (
    FeaturePoint,
    FeatureDetector,
    ContourFeatureDetector,
    CornerFeatureDetector,
)

# Stereo path
from .matching import (
    DisparityMap,
    StereoMatcher,
)
from .depth import (
    DepthStats,
    DepthConverter,
    refine_fast,
    refine_bilateral,
    triangulate,
)
from .point_cloud import (
    Point3D,
    PointCloudGenerator,
    points_to_arrays,
)
from .pipeline import (
    DepthMapResult,
    DepthMapper,
)

# Tracking path
from .scale_space import (
    gaussian_blur,
    difference_of_gaussians,
    suppress_non_extrema,
    sobel_gradients,
    GradientField,
    Keypoint,
    ScaleSpaceDetector,
)
from .flow import (
    FlowField,
    OpticalFlowTracker,
)

# Enhancement
from .enhance import (
    cubic_weight,
    bicubic_resize,
    EnhancementKernel,
)

# Synthetic data (for testing)
from .synthetic import (
    ObjectShape,
    SceneObject,
    SyntheticStereoSource,
    shifted_square_pair,
)

__all__ = [
    # Version
    "__version__",
    # Errors
    "DepthError",
    "InvalidImagesError",
    "FeatureDetectionError",
    "DepthCalculationError",
    # Config
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
    # Rasters
    "ImageBuffer",
    "CaptureMode",
    "StereoPair",
    # Features
    "FeaturePoint",
    "FeatureDetector",
    "ContourFeatureDetector",
    "CornerFeatureDetector",
    # Stereo path
    "DisparityMap",
    "StereoMatcher",
    "DepthStats",
    "DepthConverter",
    "refine_fast",
    "refine_bilateral",
    "triangulate",
    "Point3D",
    "PointCloudGenerator",
    "points_to_arrays",
    "DepthMapResult",
    "DepthMapper",
    # Tracking path
    "gaussian_blur",
    "difference_of_gaussians",
    "suppress_non_extrema",
    "sobel_gradients",
    "GradientField",
    "Keypoint",
    "ScaleSpaceDetector",
    "FlowField",
    "OpticalFlowTracker",
    # Enhancement
    "cubic_weight",
    "bicubic_resize",
    "EnhancementKernel",
    # Synthetic
    "ObjectShape",
    "SceneObject",
    "SyntheticStereoSource",
    "shifted_square_pair",
]
