"""
Unit tests for fixed-point bilinear sampling.
"""

import numpy as np

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from motion.subpixel import sample_point, sample_window


class TestSampleWindow:
    """Tests for window sampling."""

    def test_grid_aligned_copies_pixels(self, texture):
        window = sample_window(texture, 40 * 10, 30 * 10, 5, 10)

        assert window.shape == (11, 11)
        np.testing.assert_array_equal(window, texture[25:36, 35:46])

    def test_constant_image(self):
        img = np.full((20, 20), 77, dtype=np.uint8)
        window = sample_window(img, 103, 87, 3, 10)
        assert np.all(window == 77)

    def test_horizontal_blend(self):
        img = np.array([[0, 100], [0, 100]], dtype=np.uint8)
        assert sample_point(img, 5, 0, 10) == 50
        assert sample_point(img, 3, 0, 10) == 30

    def test_blend_truncates(self):
        img = np.array([[0, 1], [0, 1]], dtype=np.uint8)
        assert sample_point(img, 5, 0, 10) == 0

    def test_two_dimensional_blend(self):
        img = np.array([[0, 0], [0, 200]], dtype=np.uint8)
        # Weight of the bottom-right pixel is 5 * 5 / 100
        assert sample_point(img, 5, 5, 10) == 50

    def test_clamped_outside(self):
        img = np.arange(25, dtype=np.uint8).reshape(5, 5)
        assert sample_point(img, -30, -30, 10) == img[0, 0]
        assert sample_point(img, 1000, 1000, 10) == img[4, 4]

    def test_last_pixel_exact(self):
        img = np.arange(25, dtype=np.uint8).reshape(5, 5)
        assert sample_point(img, 40, 20, 10) == img[2, 4]

    def test_output_buffer(self, texture):
        out = np.empty((5, 5), dtype=np.int64)
        window = sample_window(texture, 305, 305, 2, 10, out=out)
        assert window is out

    def test_other_factor(self):
        img = np.array([[0, 100]], dtype=np.uint8)
        assert sample_point(img, 1, 0, 4) == 25
