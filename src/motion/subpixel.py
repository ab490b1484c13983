"""
Fixed-point bilinear sampling of a luma plane.

A fixed-point coordinate is ``pixel * subpixel_factor + fraction`` with
``0 <= fraction < subpixel_factor``. Grid-aligned samples are copied
unchanged; everything else is blended from the four surrounding pixels and
truncated, which biases blended samples slightly downward.
"""

import numpy as np

from config import SUBPIXEL_FACTOR


def sample_window(luma: np.ndarray, center_x: int, center_y: int,
                  half_window: int, subpixel_factor: int = SUBPIXEL_FACTOR,
                  out: np.ndarray = None) -> np.ndarray:
    """
    Sample a square window around a fixed-point centre.

    Window cells are one pixel apart, so the fractional part of the centre
    is shared by all cells.

    Args:
        luma: 2-D integer luma plane
        center_x: Window centre, fixed-point x
        center_y: Window centre, fixed-point y
        half_window: Window is (2 * half_window + 1) square
        subpixel_factor: Fixed-point units per pixel
        out: Optional int64 buffer of the window's shape

    Returns:
        Window indexed [row, column]
    """
    size = 2 * half_window + 1
    if out is None:
        out = np.empty((size, size), dtype=np.int64)

    h, w = luma.shape
    f = subpixel_factor
    offsets = (np.arange(size, dtype=np.int64) - half_window) * f

    xs = np.clip(center_x + offsets, 0, (w - 1) * f)
    ys = np.clip(center_y + offsets, 0, (h - 1) * f)

    x0 = xs // f
    y0 = ys // f
    alpha_x = xs - x0 * f
    alpha_y = ys - y0 * f

    # Right / bottom neighbours only carry weight when alpha > 0, which
    # cannot happen on the last row or column
    x1 = np.minimum(x0 + 1, w - 1)
    y1 = np.minimum(y0 + 1, h - 1)

    top_left = luma[np.ix_(y0, x0)].astype(np.int64, copy=False)
    top_right = luma[np.ix_(y0, x1)].astype(np.int64, copy=False)
    bottom_left = luma[np.ix_(y1, x0)].astype(np.int64, copy=False)
    bottom_right = luma[np.ix_(y1, x1)].astype(np.int64, copy=False)

    ax = alpha_x[np.newaxis, :]
    ay = alpha_y[:, np.newaxis]
    blend = ((f - ax) * (f - ay) * top_left
             + ax * (f - ay) * top_right
             + (f - ax) * ay * bottom_left
             + ax * ay * bottom_right)

    # All terms are non-negative, so floor division truncates
    np.floor_divide(blend, f * f, out=out)

    exact = (ay == 0) & (ax == 0)
    np.copyto(out, top_left, where=exact)
    return out


def sample_point(luma: np.ndarray, x: int, y: int,
                 subpixel_factor: int = SUBPIXEL_FACTOR) -> int:
    """Sample a single fixed-point coordinate."""
    return int(sample_window(luma, x, y, 0, subpixel_factor)[0, 0])
