#!/usr/bin/env python3
"""
Stereo Depth - Command Line Demo
=================================

Runs the stereo depth path on two image files (or a synthetic pair) and
prints depth statistics. Optional extras: scale-space keypoints, optical
flow between the two views, and an enhanced copy of the left image.

Usage:
    python main.py --synthetic
    python main.py left.png right.png --save-depth depth.png
    python main.py left.png right.png --config stereo.yaml --keypoints --flow
    python main.py left.png right.png --enhance 1280x960 --save-enhanced big.png
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import cv2
import numpy as np

from stereo_depth import (
    DepthError,
    DepthMapper,
    EnhancementKernel,
    EnhancementParams,
    OpticalFlowTracker,
    QualityPreset,
    Resolution,
    ScaleSpaceDetector,
    StereoConfig,
    StereoPair,
    shifted_square_pair,
)

if TYPE_CHECKING:
    import numpy.typing as npt


logger = logging.getLogger("stereo_depth.demo")


# ============================================================================
# Configuration
# ============================================================================


@dataclass
class DemoConfig:
    """Demo application configuration."""

    left: Path | None = None
    right: Path | None = None
    synthetic: bool = False
    disparity_px: int = 8
    config_path: Path | None = None
    preset: QualityPreset = QualityPreset.BALANCED
    save_depth: Path | None = None
    keypoints: bool = False
    flow: bool = False
    enhance: Resolution | None = None
    save_enhanced: Path | None = None
    verbose: bool = False

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> DemoConfig:
        """Create from parsed arguments."""
        return cls(
            left=Path(args.left) if args.left else None,
            right=Path(args.right) if args.right else None,
            synthetic=args.synthetic,
            disparity_px=args.disparity,
            config_path=Path(args.config) if args.config else None,
            preset=QualityPreset(args.preset),
            save_depth=Path(args.save_depth) if args.save_depth else None,
            keypoints=args.keypoints,
            flow=args.flow,
            enhance=Resolution.parse(args.enhance) if args.enhance else None,
            save_enhanced=Path(args.save_enhanced) if args.save_enhanced else None,
            verbose=args.verbose,
        )

    def stereo_config(self) -> StereoConfig:
        if self.config_path is not None:
            return StereoConfig.from_yaml(self.config_path)
        return StereoConfig.for_preset(self.preset)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Stereo depth map and point cloud demo",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("left", nargs="?", help="Left (reference) image")
    parser.add_argument("right", nargs="?", help="Right image")
    parser.add_argument(
        "--synthetic", "-s", action="store_true", help="Use a synthetic shifted-square pair"
    )
    parser.add_argument(
        "--disparity", "-d", type=int, default=8, help="Synthetic disparity in pixels"
    )
    parser.add_argument("--config", "-c", type=str, help="YAML configuration file")
    parser.add_argument(
        "--preset",
        choices=[p.value for p in QualityPreset],
        default=QualityPreset.BALANCED.value,
        help="Quality preset when no config file is given",
    )
    parser.add_argument("--save-depth", type=str, help="Write colorized depth PNG")
    parser.add_argument("--keypoints", action="store_true", help="Run scale-space detection")
    parser.add_argument("--flow", action="store_true", help="Run optical flow left -> right")
    parser.add_argument("--enhance", type=str, help="Enhance left image to WxH")
    parser.add_argument("--save-enhanced", type=str, help="Write enhanced image")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    return parser.parse_args(argv)


# ============================================================================
# Helpers
# ============================================================================


def load_pair(demo: DemoConfig) -> StereoPair:
    """Load the stereo pair from disk or synthesize one."""
    if demo.synthetic:
        return shifted_square_pair(demo.disparity_px)

    if demo.left is None or demo.right is None:
        raise SystemExit("Provide LEFT and RIGHT images, or use --synthetic")

    left = cv2.imread(str(demo.left), cv2.IMREAD_COLOR)
    right = cv2.imread(str(demo.right), cv2.IMREAD_COLOR)
    if left is None or right is None:
        raise SystemExit(f"Could not read {demo.left} / {demo.right}")
    return StereoPair.from_arrays(left, right)


def colorize_depth(
    depth: npt.NDArray, min_depth: float, max_depth: float
) -> npt.NDArray:
    """Near = warm, far = cool."""
    norm = (max_depth - np.clip(depth, min_depth, max_depth)) / (max_depth - min_depth)
    return cv2.applyColorMap((norm * 255).astype(np.uint8), cv2.COLORMAP_JET)


# ============================================================================
# Main
# ============================================================================


def run(demo: DemoConfig) -> int:
    config = demo.stereo_config()
    pair = load_pair(demo)

    try:
        result = DepthMapper(config).generate(pair)
    except DepthError as exc:
        logger.error("%s", exc)
        return 1

    print(f"=== DEPTH ({pair.width}x{pair.height}, {result.elapsed_ms:.1f}ms) ===")
    print(f"  Matches: {result.disparity_map.match_count}")
    print(f"  Points: {len(result.point_cloud)}")
    print(f"  Center: {result.at_center():.2f}m")
    if result.stats is not None:
        print(result.stats.format_verbose())

    if demo.save_depth is not None:
        demo.save_depth.parent.mkdir(parents=True, exist_ok=True)
        cv2.imwrite(
            str(demo.save_depth),
            colorize_depth(result.depth_image, result.min_depth, result.max_depth),
        )
        print(f"  Saved depth: {demo.save_depth}")

    if demo.keypoints:
        keypoints = ScaleSpaceDetector(config.scale_space).detect(pair.left)
        print(f"=== KEYPOINTS ({len(keypoints)}) ===")
        for kp in keypoints[:10]:
            print(f"  {kp}")

    if demo.flow:
        flow = OpticalFlowTracker(config.flow).compute(pair.left, pair.right)
        mag = flow.magnitude
        print("=== FLOW (left -> right) ===")
        print(f"  Mean |flow|: {float(mag.mean()):.3f}px | Max: {float(mag.max()):.3f}px")

    if demo.enhance is not None:
        kernel = EnhancementKernel(EnhancementParams.for_preset(demo.preset))
        enhanced = kernel.enhance(pair.left, demo.enhance)
        print(f"=== ENHANCED -> {demo.enhance} ===")
        if demo.save_enhanced is not None:
            demo.save_enhanced.parent.mkdir(parents=True, exist_ok=True)
            cv2.imwrite(str(demo.save_enhanced), enhanced)
            print(f"  Saved: {demo.save_enhanced}")

    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point."""
    demo = DemoConfig.from_args(parse_args(argv))
    logging.basicConfig(
        level=logging.DEBUG if demo.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    return run(demo)


if __name__ == "__main__":
    sys.exit(main())
