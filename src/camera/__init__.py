"""Camera frame conversion module."""

from .luma import luma_from_uyvy, luma_from_bgr, to_luma

__all__ = [
    "luma_from_uyvy",
    "luma_from_bgr",
    "to_luma"
]
