"""
Central-difference image gradients.

dx uses the mask [-1, 0, 1] along a row and dy the same mask along a
column. Missing neighbours at the image border are replaced by the border
pixel itself (edge replication).
"""

from typing import Tuple

import numpy as np


def gradient_at(luma: np.ndarray, x: int, y: int) -> Tuple[int, int]:
    """
    Gradient at a single pixel.

    Coordinates outside the image are clamped to the nearest valid pixel.

    Returns:
        (dx, dy) as Python ints
    """
    h, w = luma.shape
    x = min(max(int(x), 0), w - 1)
    y = min(max(int(y), 0), h - 1)

    left = int(luma[y, max(x - 1, 0)])
    right = int(luma[y, min(x + 1, w - 1)])
    up = int(luma[max(y - 1, 0), x])
    down = int(luma[min(y + 1, h - 1), x])

    return right - left, down - up


def image_gradients(luma: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Gradients for every pixel of a luma plane.

    Returns:
        (DX, DY) int64 arrays with the shape of the plane
    """
    padded = np.pad(np.asarray(luma, dtype=np.int64), 1, mode="edge")
    dx = padded[1:-1, 2:] - padded[1:-1, :-2]
    dy = padded[2:, 1:-1] - padded[:-2, 1:-1]
    return dx, dy


def patch_gradients(padded_patch: np.ndarray,
                    dx_out: np.ndarray = None,
                    dy_out: np.ndarray = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Gradients of the inner part of a padded patch.

    A (2h+3) x (2h+3) patch yields (2h+1) x (2h+1) gradients, one for every
    pixel that has all four neighbours inside the patch.

    Args:
        padded_patch: Square patch sampled one pixel wider than the window
        dx_out: Optional buffer for DX
        dy_out: Optional buffer for DY

    Returns:
        (DX, DY)
    """
    inner = (padded_patch.shape[0] - 2, padded_patch.shape[1] - 2)
    if dx_out is None:
        dx_out = np.empty(inner, dtype=np.int64)
    if dy_out is None:
        dy_out = np.empty(inner, dtype=np.int64)

    np.subtract(padded_patch[1:-1, 2:], padded_patch[1:-1, :-2], out=dx_out)
    np.subtract(padded_patch[2:, 1:-1], padded_patch[:-2, 1:-1], out=dy_out)
    return dx_out, dy_out
