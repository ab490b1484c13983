"""Corner detection and optical flow module."""

from .fixed_point import FlowError, TrackStatus, BufferPool, trunc_div
from .feature_detector import (
    CornerFinder,
    CornerResult,
    HarrisCornerDetector,
    create_corner_finder
)
from .agent_search import AgentCornerFinder
from .subpixel import sample_window, sample_point
from .optical_flow import LucasKanadeTracker, FlowResult, TrackResult
from .motion_field import MotionVectorField, MotionFieldState

__all__ = [
    "FlowError",
    "TrackStatus",
    "BufferPool",
    "trunc_div",
    "CornerFinder",
    "CornerResult",
    "HarrisCornerDetector",
    "create_corner_finder",
    "AgentCornerFinder",
    "sample_window",
    "sample_point",
    "LucasKanadeTracker",
    "FlowResult",
    "TrackResult",
    "MotionVectorField",
    "MotionFieldState"
]
