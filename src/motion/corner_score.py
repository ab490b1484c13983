"""
Structure tensor and corner response maps.

The second-moment products dx*dx, dx*dy and dy*dy are smoothed with the
integer kernel [1,2,1; 2,4,2; 1,2,1] and scaled down so that the Harris
determinant stays within a signed 32-bit range on the flight hardware.
"""

from typing import Tuple

import numpy as np

from config import (
    SMOOTH_KERNEL, SMOOTH_PRE_DIVISOR, SMOOTH_POST_DIVISOR,
    HARRIS_RECIPROCAL_K, HARRIS_TRACE_CLAMP,
    NOBLE_SMALL_LIMIT, NOBLE_SMALL_GAIN, NOBLE_SATURATION
)
from motion.fixed_point import trunc_div
from motion.gradients import image_gradients

SCORES = ("harris", "noble")


def smooth_tensor(component: np.ndarray,
                  kernel=SMOOTH_KERNEL,
                  pre_divisor: int = SMOOTH_PRE_DIVISOR,
                  post_divisor: int = SMOOTH_POST_DIVISOR) -> np.ndarray:
    """
    Smooth one tensor component over 3x3 neighbourhoods.

    Every sample is divided by ``pre_divisor`` before weighting and the
    weighted sum by ``post_divisor``. Border pixels are set to zero.
    """
    h, w = component.shape
    dst = np.zeros((h, w), dtype=np.int64)
    if h < 3 or w < 3:
        return dst

    reduced = trunc_div(component.astype(np.int64, copy=False), pre_divisor)
    acc = np.zeros((h - 2, w - 2), dtype=np.int64)
    for j in range(3):
        for i in range(3):
            acc += kernel[j][i] * reduced[j:j + h - 2, i:i + w - 2]

    dst[1:-1, 1:-1] = trunc_div(acc, post_divisor)
    return dst


def structure_tensor(dx: np.ndarray, dy: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Smoothed second-moment components per pixel.

    Returns:
        (SDXX, SDXY, SDYY)
    """
    return (
        smooth_tensor(dx * dx),
        smooth_tensor(dx * dy),
        smooth_tensor(dy * dy),
    )


def harris_response(sdxx: np.ndarray, sdxy: np.ndarray, sdyy: np.ndarray,
                    reciprocal_k: int = HARRIS_RECIPROCAL_K,
                    trace_clamp: int = HARRIS_TRACE_CLAMP) -> np.ndarray:
    """
    Harris score: det - trace^2 / K, with the trace clamped first.
    """
    trace = np.minimum(sdxx + sdyy, trace_clamp)
    det = sdxx * sdyy - sdxy * sdxy
    return det - trunc_div(trace * trace, reciprocal_k)


def noble_response(sdxx: np.ndarray, sdxy: np.ndarray, sdyy: np.ndarray,
                   small_limit: int = NOBLE_SMALL_LIMIT,
                   small_gain: int = NOBLE_SMALL_GAIN,
                   saturation: int = NOBLE_SATURATION) -> np.ndarray:
    """
    Noble score: det / trace.

    Where the trace is not positive a clamped heuristic is used instead:
    small positive determinants are amplified, large ones saturate and
    everything else scores zero.
    """
    det = sdxx * sdyy - sdxy * sdxy
    trace = sdxx + sdyy
    positive = trace > 0

    ratio = trunc_div(det, np.where(positive, trace, 1))
    fallback = np.where(det > small_limit, saturation, det * small_gain)
    fallback = np.where(det > 0, fallback, 0)

    return np.where(positive, ratio, fallback)


def corner_response(luma: np.ndarray, score: str = "harris") -> np.ndarray:
    """
    Response map of a luma plane.

    Args:
        luma: 2-D integer luma plane
        score: "harris" or "noble"

    Returns:
        int64 array with one score per pixel
    """
    if score not in SCORES:
        raise ValueError(f"Unknown corner score '{score}', expected one of {SCORES}")

    dx, dy = image_gradients(luma)
    sdxx, sdxy, sdyy = structure_tensor(dx, dy)

    if score == "noble":
        return noble_response(sdxx, sdxy, sdyy)
    return harris_response(sdxx, sdxy, sdyy)
