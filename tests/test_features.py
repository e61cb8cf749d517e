"""
Unit tests for feature detection module.
"""

import numpy as np
import pytest

from stereo_depth import (
    ContourFeatureDetector,
    CornerFeatureDetector,
    DetectorParams,
    FeatureDetectionError,
    FeatureDetector,
    FeaturePoint,
    InvalidImagesError,
)


def square_image(x0: int = 40, y0: int = 30, size: int = 20, bright: bool = True) -> np.ndarray:
    bg, fg = (40, 200) if bright else (200, 40)
    img = np.full((100, 120, 3), bg, dtype=np.uint8)
    img[y0 : y0 + size, x0 : x0 + size] = fg
    return img


class TestFeaturePoint:
    """Tests for FeaturePoint dataclass."""

    def test_from_pixel(self) -> None:
        p = FeaturePoint.from_pixel(60, 25, 120, 100, confidence=0.5)
        assert p.x == pytest.approx(0.5)
        assert p.y == pytest.approx(0.25)
        assert p.confidence == 0.5

    def test_to_pixel_roundtrip(self) -> None:
        p = FeaturePoint.from_pixel(37, 81, 120, 100)
        assert p.to_pixel(120, 100) == (37, 81)

    def test_to_pixel_clamps(self) -> None:
        assert FeaturePoint(1.0, 1.0).to_pixel(10, 10) == (9, 9)


class TestContourFeatureDetector:
    """Tests for the contour vertex detector."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(ContourFeatureDetector(), FeatureDetector)
        assert isinstance(CornerFeatureDetector(), FeatureDetector)

    def test_default_params(self) -> None:
        params = ContourFeatureDetector().params
        assert params.contrast == 2.0
        assert params.dark_on_light is True

    def test_bright_square_anchor(self) -> None:
        detector = ContourFeatureDetector(DetectorParams(dark_on_light=False))
        points = detector.detect(square_image())

        assert [p.to_pixel(120, 100) for p in points] == [(40, 30)]

    def test_bright_square_vertices(self) -> None:
        detector = ContourFeatureDetector(DetectorParams(dark_on_light=False, polygon_vertices=True))
        points = detector.detect(square_image())

        pixels = {p.to_pixel(120, 100) for p in points}
        assert pixels == {(40, 30), (59, 30), (40, 49), (59, 49)}

    def test_dark_square_with_dark_on_light(self) -> None:
        detector = ContourFeatureDetector()
        points = detector.detect(square_image(bright=False))

        assert [p.to_pixel(120, 100) for p in points] == [(40, 30)]

    def test_sixteen_bit_input(self) -> None:
        img = square_image().astype(np.uint16) * 257
        detector = ContourFeatureDetector(DetectorParams(dark_on_light=False))
        assert [p.to_pixel(120, 100) for p in detector.detect(img)] == [(40, 30)]

    def test_normalized_and_sorted(self) -> None:
        detector = ContourFeatureDetector(DetectorParams(dark_on_light=False))
        points = detector.detect(square_image())

        assert all(0.0 <= p.x <= 1.0 and 0.0 <= p.y <= 1.0 for p in points)
        assert points == sorted(points, key=lambda p: (p.y, p.x))
        assert all(0.0 < p.confidence <= 1.0 for p in points)

    def test_empty_result(self) -> None:
        # Uniform light image: nothing is dark enough to be foreground
        img = np.full((50, 50), 230, dtype=np.uint8)
        assert ContourFeatureDetector().detect(img) == []

    def test_small_contours_dropped(self) -> None:
        detector = ContourFeatureDetector(DetectorParams(dark_on_light=False, min_area=1000))
        assert detector.detect(square_image()) == []

    def test_max_features(self) -> None:
        detector = ContourFeatureDetector(
            DetectorParams(dark_on_light=False, max_features=2, polygon_vertices=True)
        )
        assert len(detector.detect(square_image())) == 2

    def test_invalid_image(self) -> None:
        with pytest.raises(InvalidImagesError):
            ContourFeatureDetector().detect(np.zeros((0, 0), dtype=np.uint8))

    def test_detect_batch(self) -> None:
        detector = ContourFeatureDetector(DetectorParams(dark_on_light=False))
        results = detector.detect_batch([square_image(), square_image(x0=10)])
        assert len(results) == 2
        assert len(results[0]) == len(results[1])


class TestCornerFeatureDetector:
    """Tests for the Shi-Tomasi corner detector."""

    def test_square_corners(self) -> None:
        points = CornerFeatureDetector().detect(square_image())
        assert 1 <= len(points) <= 500

        pixels = [p.to_pixel(120, 100) for p in points]
        # Every corner lies near the square outline
        for x, y in pixels:
            assert 36 <= x <= 63 and 26 <= y <= 53

    def test_uniform_image(self) -> None:
        assert CornerFeatureDetector().detect(np.full((40, 40), 128, dtype=np.uint8)) == []

    def test_backend_failure_wrapped(self, monkeypatch) -> None:
        import cv2

        def broken(*args, **kwargs):
            raise cv2.error("backend exploded")

        monkeypatch.setattr(cv2, "goodFeaturesToTrack", broken)
        with pytest.raises(FeatureDetectionError):
            CornerFeatureDetector().detect(square_image())
