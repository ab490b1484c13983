"""
Fixed-point helpers, result codes and reusable scratch buffers.

All image arithmetic in the motion package is integer arithmetic. Division
follows C semantics (truncation toward zero) so results match the flight
firmware bit for bit; Python's ``//`` floors and must not be used on values
that can be negative.
"""

import logging
from enum import IntEnum
from typing import Dict, Tuple

import numpy as np

logger = logging.getLogger(__name__)


class FlowError(IntEnum):
    """Outcome of a whole detection or tracking call."""
    OK = 0
    NO_MEMORY = -1


class TrackStatus(IntEnum):
    """Outcome for a single tracked point."""
    LOST = 0
    TRACKED = 1


def trunc_div(a, b):
    """
    Integer division rounding toward zero.

    Works on Python ints, numpy integer scalars and numpy integer arrays.
    """
    if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
        a = np.asarray(a)
        b = np.asarray(b)
        q = np.abs(a) // np.abs(b)
        return np.where((a < 0) != (b < 0), -q, q)

    q = abs(a) // abs(b)
    return -q if (a < 0) != (b < 0) else q


def as_luma(plane: np.ndarray) -> np.ndarray:
    """
    Validate a luma plane and return it as a signed integer array.

    The plane's own shape is the only source of image dimensions.

    Raises:
        ValueError: If the plane is not a non-empty 2-D array
    """
    plane = np.asarray(plane)
    if plane.ndim != 2 or plane.size == 0:
        raise ValueError(f"Expected a non-empty 2-D luma plane, got shape {plane.shape}")
    return plane.astype(np.int64, copy=False)


class BufferPool:
    """
    Named scratch buffers that live as long as their owner.

    A buffer is allocated the first time it is requested and handed out
    again on every later request with the same shape and dtype. A new shape
    (different image size or window size) replaces the old buffer.

    Allocation failures surface as ``MemoryError``; owners convert them to
    ``FlowError.NO_MEMORY``.
    """

    def __init__(self):
        self._buffers: Dict[str, np.ndarray] = {}

    def get(self, name: str, shape: Tuple[int, ...], dtype=np.int64) -> np.ndarray:
        """Get the buffer called ``name`` with the requested shape (contents undefined)."""
        shape = tuple(int(s) for s in shape)
        dtype = np.dtype(dtype)
        buf = self._buffers.get(name)

        if buf is None or buf.shape != shape or buf.dtype != dtype:
            buf = np.empty(shape, dtype=dtype)
            self._buffers[name] = buf
            logger.debug("Allocated buffer %s %s %s", name, shape, dtype)

        return buf

    def zeros(self, name: str, shape: Tuple[int, ...], dtype=np.int64) -> np.ndarray:
        """Get a buffer and clear it."""
        buf = self.get(name, shape, dtype)
        buf.fill(0)
        return buf

    def release(self) -> None:
        """Drop all buffers."""
        self._buffers.clear()

    def __contains__(self, name: str) -> bool:
        return name in self._buffers

    def __len__(self) -> int:
        return len(self._buffers)
