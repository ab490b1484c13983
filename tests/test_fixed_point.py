"""
Unit tests for fixed-point helpers and scratch buffers.
"""

import numpy as np
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from motion.fixed_point import BufferPool, FlowError, TrackStatus, as_luma, trunc_div


class TestTruncDiv:
    """Tests for C-style integer division."""

    def test_positive(self):
        assert trunc_div(7, 2) == 3
        assert trunc_div(40000, 14) == 2857

    def test_negative_rounds_toward_zero(self):
        assert trunc_div(-7, 2) == -3
        assert trunc_div(7, -2) == -3
        assert trunc_div(-7, -2) == 3
        assert trunc_div(-15, 10) == -1

    def test_exact(self):
        assert trunc_div(-20, 10) == -2
        assert trunc_div(0, 5) == 0

    def test_array(self):
        a = np.array([-7, -1, 0, 1, 7], dtype=np.int64)
        np.testing.assert_array_equal(trunc_div(a, 2), [-3, 0, 0, 0, 3])

    def test_array_divisor(self):
        a = np.array([9, -9], dtype=np.int64)
        b = np.array([-2, 4], dtype=np.int64)
        np.testing.assert_array_equal(trunc_div(a, b), [-4, -2])


class TestCodes:
    """Tests for result codes."""

    def test_values(self):
        assert FlowError.OK == 0
        assert FlowError.NO_MEMORY == -1
        assert TrackStatus.LOST == 0
        assert TrackStatus.TRACKED == 1


class TestAsLuma:
    """Tests for luma plane validation."""

    def test_converts_to_int64(self):
        plane = as_luma(np.full((4, 6), 200, dtype=np.uint8))
        assert plane.dtype == np.int64
        assert plane.shape == (4, 6)
        assert plane[0, 0] == 200

    def test_rejects_color(self):
        with pytest.raises(ValueError):
            as_luma(np.zeros((4, 4, 3), dtype=np.uint8))

    def test_rejects_empty(self):
        with pytest.raises(ValueError):
            as_luma(np.zeros((0, 4), dtype=np.uint8))


class TestBufferPool:
    """Tests for reusable scratch buffers."""

    def test_reuse_same_shape(self):
        pool = BufferPool()
        a = pool.get("dx", (11, 11))
        b = pool.get("dx", (11, 11))
        assert a is b
        assert len(pool) == 1
        assert "dx" in pool

    def test_new_shape_reallocates(self):
        pool = BufferPool()
        a = pool.get("dx", (11, 11))
        b = pool.get("dx", (13, 13))
        assert a is not b
        assert b.shape == (13, 13)
        assert pool.get("dx", (13, 13)) is b

    def test_dtype_is_part_of_key(self):
        pool = BufferPool()
        a = pool.get("mask", (5, 5), dtype=bool)
        assert a.dtype == bool
        assert pool.get("mask", (5, 5)) is not a

    def test_zeros(self):
        pool = BufferPool()
        buf = pool.get("acc", (3, 3))
        buf.fill(9)
        assert not pool.zeros("acc", (3, 3)).any()

    def test_release(self):
        pool = BufferPool()
        pool.get("a", (2, 2))
        pool.get("b", (2, 2))
        pool.release()
        assert len(pool) == 0
        assert "a" not in pool
