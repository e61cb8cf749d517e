"""
Unit tests for scale-space keypoint detection.
"""

import numpy as np
import pytest

from stereo_depth import (
    Keypoint,
    ScaleSpaceDetector,
    ScaleSpaceParams,
    difference_of_gaussians,
    gaussian_blur,
    sobel_gradients,
    suppress_non_extrema,
)
from stereo_depth.scale_space import gaussian_kernel


def blob_image(size: int = 64, sigma: float = 3.0) -> np.ndarray:
    """Dark image with a bright Gaussian blob centered at (size/2, size/2)."""
    yy, xx = np.mgrid[0:size, 0:size].astype(np.float32)
    c = size / 2
    return np.exp(-((xx - c) ** 2 + (yy - c) ** 2) / (2 * sigma**2)).astype(np.float32)


def blob_grid(size: int = 96, spacing: int = 12, sigma: float = 2.0) -> np.ndarray:
    """Lattice of bright Gaussian blobs, one every ``spacing`` pixels."""
    yy, xx = np.mgrid[0:size, 0:size].astype(np.float32)
    img = np.zeros((size, size), dtype=np.float32)
    for cy in range(spacing // 2, size, spacing):
        for cx in range(spacing // 2, size, spacing):
            img = np.maximum(img, np.exp(-((xx - cx) ** 2 + (yy - cy) ** 2) / (2 * sigma**2)))
    return img.astype(np.float32)


class TestGaussianBlur:
    """Tests for gaussian_kernel and gaussian_blur."""

    def test_kernel_normalized(self) -> None:
        taps = gaussian_kernel(1.6)
        assert len(taps) == 2 * 5 + 1  # ceil(4.8) = 5
        assert taps.sum() == pytest.approx(1.0)
        assert taps[5] == taps.max()

    def test_zero_sigma_is_identity(self) -> None:
        img = np.random.default_rng(0).random((20, 30)).astype(np.float32)
        assert np.array_equal(gaussian_blur(img, 0.0), img)

    def test_tiny_sigma_is_near_identity(self) -> None:
        img = np.random.default_rng(1).random((20, 30)).astype(np.float32)
        assert np.allclose(gaussian_blur(img, 0.1), img, atol=1e-4)

    @pytest.mark.parametrize("sigma", [1e-7, 1e-200])
    def test_vanishing_sigma_is_identity(self, sigma: float) -> None:
        img = np.random.default_rng(2).random((20, 30)).astype(np.float32)
        out = gaussian_blur(img, sigma)
        assert np.all(np.isfinite(out))
        assert np.array_equal(out, img)

        taps = gaussian_kernel(sigma)
        assert np.all(np.isfinite(taps))
        assert taps.sum() == pytest.approx(1.0)

    def test_uniform_unchanged(self) -> None:
        img = np.full((25, 25), 0.3, dtype=np.float32)
        assert np.allclose(gaussian_blur(img, 2.0), 0.3)

    def test_uint8_scaled(self) -> None:
        img = np.full((10, 10, 3), 255, dtype=np.uint8)
        out = gaussian_blur(img, 1.0)
        assert out.dtype == np.float32
        assert out.shape == (10, 10, 3)
        assert np.allclose(out, 1.0)

    def test_blur_spreads_impulse(self) -> None:
        img = np.zeros((21, 21), dtype=np.float32)
        img[10, 10] = 1.0
        out = gaussian_blur(img, 1.5)
        assert out[10, 10] < 1.0
        assert out[10, 11] > 0.0
        assert out.sum() == pytest.approx(1.0, abs=1e-4)


class TestSuppression:
    """Tests for difference_of_gaussians and suppress_non_extrema."""

    def test_dog(self) -> None:
        a = np.full((3, 3), 0.5, dtype=np.float32)
        b = np.full((3, 3), 0.2, dtype=np.float32)
        assert np.allclose(difference_of_gaussians(a, b), 0.3)

    def test_dog_shape_mismatch(self) -> None:
        with pytest.raises(ValueError):
            difference_of_gaussians(np.zeros((3, 3)), np.zeros((4, 4)))

    def test_isolated_maximum_kept(self) -> None:
        dog = np.zeros((5, 5), dtype=np.float32)
        dog[2, 2] = 0.5
        out = suppress_non_extrema(dog, 0.03)
        assert out[2, 2] == pytest.approx(0.5)
        assert np.count_nonzero(out) == 1

    def test_minimum_kept(self) -> None:
        dog = np.zeros((5, 5), dtype=np.float32)
        dog[2, 2] = -0.5
        assert suppress_non_extrema(dog, 0.03)[2, 2] == pytest.approx(-0.5)

    def test_threshold_is_strict(self) -> None:
        dog = np.zeros((5, 5), dtype=np.float32)
        dog[2, 2] = 0.25
        assert not suppress_non_extrema(dog, 0.25).any()

    def test_plateau_rejected(self) -> None:
        dog = np.zeros((5, 6), dtype=np.float32)
        dog[2, 2] = dog[2, 3] = 0.5
        assert not suppress_non_extrema(dog, 0.03).any()

    def test_border_is_zero(self) -> None:
        dog = np.zeros((5, 5), dtype=np.float32)
        dog[0, 0] = 1.0
        dog[4, 2] = -1.0
        assert not suppress_non_extrema(dog, 0.03).any()


class TestSobelGradients:
    """Tests for sobel_gradients."""

    def test_horizontal_ramp(self) -> None:
        ramp = np.tile(np.arange(20, dtype=np.float32) * 0.01, (10, 1))
        grads = sobel_gradients(ramp)

        # {-1, 0, 1} x {1, 2, 1} on a 0.01 / px ramp
        assert grads.gx[5, 10] == pytest.approx(0.08, abs=1e-5)
        assert grads.gy[5, 10] == pytest.approx(0.0, abs=1e-6)
        assert grads.magnitude[5, 10] == pytest.approx(0.08, abs=1e-5)
        assert grads.orientation[5, 10] == pytest.approx(0.0, abs=1e-5)

    def test_vertical_orientation(self) -> None:
        ramp = np.tile((np.arange(20, dtype=np.float32) * 0.01)[:, None], (1, 10))
        grads = sobel_gradients(ramp)
        assert grads.orientation[10, 5] == pytest.approx(np.pi / 2, abs=1e-5)


class TestScaleSpaceDetector:
    """Tests for ScaleSpaceDetector."""

    def test_level_sigmas(self) -> None:
        sigmas = ScaleSpaceDetector().level_sigmas()
        assert len(sigmas) == 5
        assert sigmas[0] == pytest.approx(1.6)
        assert all(a < b for a, b in zip(sigmas, sigmas[1:]))

    def test_uniform_image_has_no_keypoints(self) -> None:
        img = np.full((64, 64), 0.5, dtype=np.float32)
        assert ScaleSpaceDetector().detect(img) == []

    def test_blob_detected_at_center(self) -> None:
        keypoints = ScaleSpaceDetector().detect(blob_image())

        assert keypoints
        assert all(isinstance(k, Keypoint) for k in keypoints)
        assert any(abs(k.x - 32) <= 2 and abs(k.y - 32) <= 2 for k in keypoints)

    def test_sorted_by_response(self) -> None:
        keypoints = ScaleSpaceDetector().detect(blob_grid())
        responses = [k.response for k in keypoints]
        assert len(responses) >= 16
        assert responses == sorted(responses, reverse=True)
        assert all(r > 0.03 for r in responses)

    def test_max_keypoints_cap(self) -> None:
        detector = ScaleSpaceDetector(ScaleSpaceParams(max_keypoints=10))
        assert len(detector.detect(blob_grid())) == 10

    def test_keypoints_inside_image(self) -> None:
        rng = np.random.default_rng(7)
        keypoints = ScaleSpaceDetector().detect(rng.random((80, 100)).astype(np.float32))
        assert all(0 <= k.x < 100 and 0 <= k.y < 80 for k in keypoints)
        assert {k.octave for k in keypoints} <= {0, 1, 2, 3}

    def test_small_image_stops_early(self) -> None:
        img = blob_image(size=12, sigma=1.5)
        keypoints = ScaleSpaceDetector().detect(img)
        # 12 -> 6 px: only the first octave is searched
        assert all(k.octave == 0 for k in keypoints)

    def test_response_map(self) -> None:
        detector = ScaleSpaceDetector()
        response = detector.response_map(blob_image())
        assert response.shape == (64, 64)
        assert response[32, 32] > 0.03

    def test_response_map_level_range(self) -> None:
        with pytest.raises(ValueError, match="level"):
            ScaleSpaceDetector().response_map(blob_image(), level=4)
