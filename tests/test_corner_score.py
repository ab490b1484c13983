"""
Unit tests for the structure tensor and corner scores.
"""

import numpy as np
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from motion.corner_score import (
    corner_response, harris_response, noble_response, smooth_tensor, structure_tensor
)
from motion.gradients import image_gradients


class TestSmoothTensor:
    """Tests for 3x3 integer smoothing."""

    def test_border_is_zero(self):
        component = np.full((6, 6), 14000, dtype=np.int64)
        smoothed = smooth_tensor(component)
        assert not smoothed[0, :].any()
        assert not smoothed[-1, :].any()
        assert not smoothed[:, 0].any()
        assert not smoothed[:, -1].any()

    def test_constant_interior(self):
        """Each sample is divided by 14, the weighted sum (16x) by 255."""
        component = np.full((5, 5), 14000, dtype=np.int64)
        smoothed = smooth_tensor(component)
        assert np.all(smoothed[1:-1, 1:-1] == (1000 * 16) // 255)

    def test_negative_truncates_toward_zero(self):
        component = np.full((3, 3), -20, dtype=np.int64)
        # -20 / 14 -> -1, -16 / 255 -> 0
        assert smooth_tensor(component)[1, 1] == 0

    def test_tiny_plane(self):
        assert not smooth_tensor(np.ones((2, 5), dtype=np.int64)).any()


class TestHarris:
    """Tests for the Harris response."""

    def test_corner_value(self, corner_image):
        response = corner_response(corner_image, "harris")
        # SDXX = SDYY = 100, SDXY = 44, trace clamped to 200
        assert response[20, 20] == 100 * 100 - 44 * 44 - (200 * 200) // 25

    def test_corner_is_strict_maximum(self, corner_image):
        response = corner_response(corner_image)
        assert response.max() == response[20, 20]
        assert np.count_nonzero(response == response.max()) == 1

    def test_flat_and_edge(self, corner_image):
        response = corner_response(corner_image)
        assert response[5, 5] == 0
        # Straight edge: no determinant, only the trace penalty
        assert response[30, 20] < 0

    def test_trace_clamp(self):
        sdxx = np.array([[300]])
        sdyy = np.array([[300]])
        sdxy = np.array([[0]])
        assert harris_response(sdxx, sdxy, sdyy)[0, 0] == 90000 - (255 * 255) // 25


class TestNoble:
    """Tests for the Noble response."""

    def test_ratio(self, corner_image):
        dx, dy = image_gradients(corner_image)
        sdxx, sdxy, sdyy = structure_tensor(dx, dy)
        response = noble_response(sdxx, sdxy, sdyy)
        assert response[20, 20] == (100 * 100 - 44 * 44) // 200

    def test_flat_is_zero(self):
        response = corner_response(np.full((10, 10), 90, dtype=np.uint8), "noble")
        assert not response.any()

    def test_fallback_small(self):
        sdxx = np.array([-2])
        sdyy = np.array([-3])
        sdxy = np.array([0])
        assert noble_response(sdxx, sdxy, sdyy)[0] == 6 * 1000

    def test_fallback_saturates(self):
        sdxx = np.array([-10])
        sdyy = np.array([-10])
        sdxy = np.array([0])
        assert noble_response(sdxx, sdxy, sdyy)[0] == 65335

    def test_fallback_non_positive(self):
        sdxx = np.array([-1])
        sdyy = np.array([-1])
        sdxy = np.array([5])
        assert noble_response(sdxx, sdxy, sdyy)[0] == 0


class TestCornerResponse:
    """Tests for the response dispatcher."""

    def test_unknown_score(self, corner_image):
        with pytest.raises(ValueError):
            corner_response(corner_image, "shi-tomasi")

    def test_shape(self, texture):
        assert corner_response(texture).shape == texture.shape
