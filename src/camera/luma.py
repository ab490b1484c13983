"""
Luma extraction from camera frames.
The onboard camera delivers UYVY (YUV422); desktop sources deliver BGR.
"""

import cv2
import numpy as np


def luma_from_uyvy(buffer, width: int, height: int) -> np.ndarray:
    """
    Luma plane of a UYVY frame.

    Every 4-byte macropixel (U, Y0, V, Y1) covers two pixels; both get the
    average of Y0 and Y1, as the onboard vision code does.

    Args:
        buffer: Raw frame bytes (bytes, bytearray or uint8 array)
        width: Frame width in pixels (even)
        height: Frame height in pixels

    Returns:
        (height, width) uint8 luma plane

    Raises:
        ValueError: If the width is odd or the buffer is too small
    """
    if width <= 0 or height <= 0 or width % 2:
        raise ValueError(f"Invalid UYVY frame size {width}x{height}")

    if isinstance(buffer, np.ndarray):
        raw = buffer.reshape(-1).view(np.uint8)
    else:
        raw = np.frombuffer(buffer, dtype=np.uint8)

    n_bytes = width * height * 2
    if raw.size < n_bytes:
        raise ValueError(f"UYVY buffer holds {raw.size} bytes, need {n_bytes}")

    macro = raw[:n_bytes].reshape(height, width // 2, 4)
    pairs = (macro[..., 1].astype(np.uint16) + macro[..., 3]) >> 1
    return np.repeat(pairs.astype(np.uint8), 2, axis=1)


def luma_from_bgr(frame: np.ndarray) -> np.ndarray:
    """Luma plane of a BGR frame."""
    return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)


def to_luma(frame: np.ndarray) -> np.ndarray:
    """
    Luma plane of a grayscale or BGR frame.

    Grayscale frames are returned unchanged.
    """
    frame = np.asarray(frame)
    if frame.ndim == 2:
        return frame
    if frame.ndim == 3 and frame.shape[2] == 3:
        return luma_from_bgr(frame)
    raise ValueError(f"Cannot extract luma from frame of shape {frame.shape}")
