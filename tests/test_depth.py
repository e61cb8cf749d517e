"""
Unit tests for disparity to depth conversion.
"""

import numpy as np
import pytest

from stereo_depth import (
    BilateralParams,
    DepthCalculationError,
    DepthConverter,
    DepthStats,
    DisparityMap,
    RefinementMode,
    StereoConfig,
    refine_bilateral,
    refine_fast,
    triangulate,
)


class TestRefinement:
    """Tests for the refinement primitives."""

    def test_fast_uniform_unchanged(self) -> None:
        flat = np.full((30, 40), 0.7, dtype=np.float32)
        assert np.allclose(refine_fast(flat), 0.7)

    def test_fast_reduces_local_contrast(self) -> None:
        depth = np.ones((30, 30), dtype=np.float32)
        depth[15, 15] = 0.0  # isolated near pixel
        refined = refine_fast(depth)

        assert refined[15, 15] == pytest.approx(0.5)
        assert refined.min() >= 0.0 and refined.max() <= 1.0

    def test_bilateral_constant_idempotent(self) -> None:
        flat = np.full((25, 25), 0.42, dtype=np.float32)
        ref = np.random.default_rng(3).integers(0, 255, (25, 25, 3), dtype=np.uint8)

        assert np.allclose(refine_bilateral(flat, ref), 0.42, atol=1e-6)
        assert np.allclose(refine_bilateral(flat), 0.42, atol=1e-6)

    def test_bilateral_preserves_depth_edge(self) -> None:
        depth = np.zeros((20, 40), dtype=np.float32)
        depth[:, 20:] = 1.0
        refined = refine_bilateral(depth, params=BilateralParams(radius=5, sigma_spatial=3.0, sigma_range=0.1))

        # A step of 1.0 is ten range sigmas: almost no bleeding across it
        assert refined[10, 19] < 0.01
        assert refined[10, 20] > 0.99

    def test_bilateral_smooths_noise(self) -> None:
        rng = np.random.default_rng(7)
        depth = (0.5 + rng.normal(0, 0.02, (30, 30))).astype(np.float32)
        refined = refine_bilateral(depth)
        assert refined.std() < depth.std()

    def test_bilateral_reference_mismatch(self) -> None:
        with pytest.raises(DepthCalculationError):
            refine_bilateral(np.zeros((10, 10)), np.zeros((5, 5, 3), dtype=np.uint8))


class TestTriangulate:
    """Tests for metric triangulation."""

    def test_formula(self) -> None:
        depth = triangulate(np.array([[10.0]]), focal_length_px=500.0, baseline_m=0.06)
        assert depth[0, 0] == pytest.approx(3.0)

    def test_zero_disparity_is_far(self) -> None:
        depth = triangulate(np.array([[0.0, 1.0, 1000.0]]), 500.0, 0.06)
        assert depth[0, 0] == 10.0
        assert depth[0, 1] == 10.0  # 30m clamped
        assert depth[0, 2] == 0.5  # 0.03m clamped


class TestDepthConverter:
    """Tests for DepthConverter."""

    @pytest.fixture
    def converter(self) -> DepthConverter:
        return DepthConverter(StereoConfig())

    def test_invert(self) -> None:
        inverted = DepthConverter.invert(np.array([[0, 255]], dtype=np.uint8))
        assert inverted[0, 0] == pytest.approx(1.0)
        assert inverted[0, 1] == pytest.approx(0.0)

    def test_scale(self, converter: DepthConverter) -> None:
        depth = converter.scale(np.array([[0.0, 0.5, 1.0]], dtype=np.float32))
        assert depth[0].tolist() == pytest.approx([0.5, 5.25, 10.0])

    def test_zero_disparity_is_max_depth(self, converter: DepthConverter) -> None:
        disparity = DisparityMap(values=np.zeros((40, 60), dtype=np.uint8))
        for mode in RefinementMode:
            depth = converter.convert(disparity, refinement=mode)
            assert depth.dtype == np.float32
            assert np.allclose(depth, 10.0)

    def test_full_disparity_is_min_depth(self, converter: DepthConverter) -> None:
        depth = converter.convert(np.full((10, 10), 255, dtype=np.uint8))
        assert np.allclose(depth, 0.5)

    @pytest.mark.parametrize("mode", list(RefinementMode))
    def test_range_always_respected(self, converter: DepthConverter, mode: RefinementMode) -> None:
        rng = np.random.default_rng(11)
        values = rng.integers(0, 256, (40, 50), dtype=np.uint8)
        ref = rng.integers(0, 256, (40, 50, 3), dtype=np.uint8)

        depth = converter.convert(values, reference=ref, refinement=mode)
        assert depth.shape == (40, 50)
        assert depth.min() >= 0.5
        assert depth.max() <= 10.0

    def test_larger_disparity_is_nearer(self, converter: DepthConverter) -> None:
        values = np.zeros((40, 40), dtype=np.uint8)
        values[:, 20:] = 200
        depth = converter.convert(values, refinement=RefinementMode.NONE)
        assert depth[0, 30] < depth[0, 5]

    def test_custom_range(self) -> None:
        converter = DepthConverter(StereoConfig(min_depth_m=1.0, max_depth_m=3.0))
        depth = converter.convert(np.zeros((5, 5), dtype=np.uint8))
        assert np.allclose(depth, 3.0)

    @pytest.mark.parametrize(
        "bad",
        [
            np.zeros((0, 0), dtype=np.uint8),
            np.zeros((4, 4, 3), dtype=np.uint8),
            np.full((4, 4), np.inf, dtype=np.float32),
        ],
    )
    def test_corrupt_input(self, converter: DepthConverter, bad) -> None:
        with pytest.raises(DepthCalculationError):
            converter.convert(bad)

    def test_triangulate_disparity_map(self, converter: DepthConverter) -> None:
        values = np.zeros((10, 255), dtype=np.uint8)
        values[3, 3] = 10  # 10 px at width 255
        depth = converter.triangulate(DisparityMap(values=values))
        assert depth[3, 3] == pytest.approx(3.0)
        assert depth[0, 0] == 10.0


class TestDepthStats:
    """Tests for DepthStats dataclass."""

    def test_from_depth_map(self) -> None:
        depth = np.array([[1.0, 2.0], [3.0, 10.0]], dtype=np.float32)
        stats = DepthStats.from_depth_map(depth)

        assert stats.min_m == 1.0
        assert stats.max_m == 10.0
        assert stats.median_m == pytest.approx(2.5)
        assert stats.near_ratio == pytest.approx(0.75)

    def test_empty(self) -> None:
        stats = DepthStats.from_depth_map(np.zeros((0, 0), dtype=np.float32))
        assert stats.max_m == 0.0

    def test_format_verbose(self) -> None:
        stats = DepthStats.from_depth_map(np.full((4, 4), 2.0, dtype=np.float32))
        assert "Range: 2.00 - 2.00m" in stats.format_verbose()
