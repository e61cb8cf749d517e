"""
Unit tests for the synthetic stereo source.
"""

import numpy as np

from stereo_depth import (
    ObjectShape,
    Resolution,
    SceneObject,
    StereoPair,
    SyntheticStereoSource,
    shifted_square_pair,
)


class TestSceneObject:
    """Tests for SceneObject dataclass."""

    def test_str(self) -> None:
        obj = SceneObject(10, 20, 30, 30, disparity_px=5, label="box")
        assert "box" in str(obj)
        assert "disparity=5px" in str(obj)


class TestSyntheticStereoSource:
    """Tests for SyntheticStereoSource."""

    def test_empty_scene(self) -> None:
        source = SyntheticStereoSource()
        pair = source.capture()

        assert isinstance(pair, StereoPair)
        assert (pair.width, pair.height) == (320, 240)
        assert np.array_equal(pair.left.data, pair.right.data)

    def test_right_view_shifted_left(self) -> None:
        source = SyntheticStereoSource(
            resolution=Resolution(100, 50),
            objects=[SceneObject(40, 10, 20, 20, disparity_px=6, color_bgr=(0, 0, 255))],
        )
        pair = source.capture()

        assert tuple(pair.left.data[15, 40]) == (0, 0, 255)
        assert tuple(pair.left.data[15, 39]) == (40, 40, 40)
        assert tuple(pair.right.data[15, 34]) == (0, 0, 255)
        assert tuple(pair.right.data[15, 54]) == (40, 40, 40)

    def test_nearer_object_occludes(self) -> None:
        far = SceneObject(20, 10, 30, 30, disparity_px=2, color_bgr=(50, 50, 50))
        near = SceneObject(30, 10, 30, 30, disparity_px=10, color_bgr=(250, 250, 250))
        pair = SyntheticStereoSource(resolution=Resolution(100, 50), objects=[near, far]).capture()
        assert tuple(pair.left.data[20, 35]) == (250, 250, 250)

    def test_circle(self) -> None:
        obj = SceneObject(20, 10, 20, 20, disparity_px=4, shape=ObjectShape.CIRCLE)
        pair = SyntheticStereoSource(resolution=Resolution(80, 40), objects=[obj]).capture()
        assert tuple(pair.left.data[20, 30]) == (200, 200, 200)
        assert tuple(pair.left.data[10, 20]) == (40, 40, 40)

    def test_frame_count_and_timestamp(self) -> None:
        source = SyntheticStereoSource()
        first = source.capture()
        second = source.capture()
        assert source.frame_count == 2
        assert second.timestamp > first.timestamp

    def test_noise_is_seeded(self) -> None:
        a = SyntheticStereoSource(noise_std=5.0, seed=1).capture()
        b = SyntheticStereoSource(noise_std=5.0, seed=1).capture()
        assert np.array_equal(a.left.data, b.left.data)
        assert a.left.data.std() > 0


class TestShiftedSquarePair:
    """Tests for shifted_square_pair."""

    def test_square_centered_in_left(self) -> None:
        pair = shifted_square_pair(8, size=20, resolution=Resolution(100, 60))
        left = pair.left.data[..., 0]
        ys, xs = np.nonzero(left == 200)

        assert (xs.min(), xs.max()) == (40, 59)
        assert (ys.min(), ys.max()) == (20, 39)

    def test_right_shift(self) -> None:
        pair = shifted_square_pair(8, size=20, resolution=Resolution(100, 60))
        xs = np.nonzero(pair.right.data[30, :, 0] == 200)[0]
        assert (xs.min(), xs.max()) == (32, 51)

    def test_zero_shift_is_identical(self) -> None:
        pair = shifted_square_pair(0)
        assert np.array_equal(pair.left.data, pair.right.data)
