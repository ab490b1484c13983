"""
Optic flow estimator - per-frame entry point for the navigation loop.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

import numpy as np

from config import DETECTOR_STRATEGY
from camera.luma import to_luma
from motion.feature_detector import CornerFinder, create_corner_finder
from motion.fixed_point import FlowError
from motion.motion_field import MotionFieldState, MotionVectorField
from motion.optical_flow import FlowResult, LucasKanadeTracker

logger = logging.getLogger(__name__)


@dataclass
class FlowEstimate:
    """
    Displacement estimate between the two most recent frames.

    This is the interface between the vision core and the flight controller.
    """
    timestamp: float

    flow: Tuple[int, int]            # Mean flow, subpixel units
    flow_pixels: Tuple[int, int]     # Mean flow, whole pixels
    smoothed_flow: Tuple[int, int]   # Mean over recent reliable frames, subpixel units

    detected_points: int = 0
    tracked_points: int = 0
    reliable: bool = False
    stale: bool = False              # True if reused after a failed frame
    error: FlowError = FlowError.OK

    # Detailed data (optional, for deep analysis)
    motion_state: Optional[MotionFieldState] = None
    processing_time_ms: float = 0.0


class OpticFlowEstimator:
    """
    Turns a stream of frames into displacement estimates.

    Pipeline per frame:
    Luma -> Corner detection (previous frame) -> Lucas-Kanade tracking ->
    Motion field -> FlowEstimate

    Only the previous luma plane is kept between frames. Points are
    detected afresh every frame, so lost points are simply replaced.
    A failed frame (out of memory) yields the previous estimate marked stale.

    Usage:
        estimator = OpticFlowEstimator()
        for frame in frames:
            estimate = estimator.process(frame)
            if estimate is not None and estimate.reliable:
                controller.update(estimate.flow)
    """

    def __init__(self,
                 detector: Optional[CornerFinder] = None,
                 tracker: Optional[LucasKanadeTracker] = None,
                 motion_field: Optional[MotionVectorField] = None,
                 strategy: str = DETECTOR_STRATEGY,
                 include_motion_state: bool = False):
        """
        Initialize the estimator.

        Args:
            detector: Point finder; built from ``strategy`` if omitted
            tracker: Lucas-Kanade tracker with default settings if omitted
            motion_field: Aggregator with default settings if omitted
            strategy: "harris" or "agents"
            include_motion_state: If True, attach the MotionFieldState to estimates
        """
        self._detector = detector or create_corner_finder(strategy)
        self._tracker = tracker or LucasKanadeTracker()
        self._motion_field = motion_field or MotionVectorField()
        self.include_motion_state = include_motion_state

        # State
        self._prev_luma: Optional[np.ndarray] = None
        self._latest: Optional[FlowEstimate] = None
        self._callback: Optional[Callable[[FlowEstimate], Any]] = None
        self._frame_count = 0

    def set_callback(self, callback: Callable[[FlowEstimate], Any]) -> None:
        """
        Set callback for new estimates.

        Args:
            callback: Function called with each FlowEstimate
        """
        self._callback = callback

    def process(self, frame: np.ndarray) -> Optional[FlowEstimate]:
        """
        Feed the next frame.

        Args:
            frame: Grayscale or BGR frame

        Returns:
            FlowEstimate, or None on the first frame
        """
        luma = to_luma(frame)
        self._frame_count += 1

        if self._prev_luma is None or self._prev_luma.shape != luma.shape:
            self._prev_luma = luma.copy()
            return None

        estimate = self.process_pair(self._prev_luma, luma)
        self._prev_luma = luma.copy()

        if self._callback is not None:
            self._callback(estimate)

        return estimate

    def process_pair(self, prev_luma: np.ndarray, curr_luma: np.ndarray) -> FlowEstimate:
        """Estimate flow between two luma planes."""
        start_time = time.time()

        corners = self._detector.detect(prev_luma)
        if not corners.ok:
            return self._reuse_latest(corners.error)

        flow_result = self._tracker.track(prev_luma, curr_luma, corners.points)
        if not flow_result.ok:
            return self._reuse_latest(flow_result.error)

        estimate = self._build_estimate(flow_result, corners.count, curr_luma.shape, start_time)
        self._latest = estimate
        return estimate

    def _build_estimate(self, flow_result: FlowResult, detected: int,
                        frame_shape: tuple, start_time: float) -> FlowEstimate:
        motion_state = self._motion_field.analyze(flow_result, frame_shape)

        logger.debug("Frame %d: %d detected, %d tracked, flow %s",
                     self._frame_count, detected, motion_state.tracked_points,
                     motion_state.mean_flow)

        return FlowEstimate(
            timestamp=time.time(),
            flow=motion_state.mean_flow,
            flow_pixels=self._motion_field.to_pixels(motion_state.mean_flow),
            smoothed_flow=self._motion_field.get_average_flow(),
            detected_points=detected,
            tracked_points=motion_state.tracked_points,
            reliable=motion_state.reliable,
            motion_state=motion_state if self.include_motion_state else None,
            processing_time_ms=(time.time() - start_time) * 1000
        )

    def _reuse_latest(self, error: FlowError) -> FlowEstimate:
        """No perception update this frame: hand back the previous estimate."""
        logger.warning("Frame %d failed (%s), reusing previous estimate",
                       self._frame_count, error.name)

        if self._latest is None:
            return FlowEstimate(
                timestamp=time.time(),
                flow=(0, 0),
                flow_pixels=(0, 0),
                smoothed_flow=(0, 0),
                stale=True,
                error=error
            )

        return FlowEstimate(
            timestamp=self._latest.timestamp,
            flow=self._latest.flow,
            flow_pixels=self._latest.flow_pixels,
            smoothed_flow=self._latest.smoothed_flow,
            detected_points=self._latest.detected_points,
            tracked_points=self._latest.tracked_points,
            reliable=self._latest.reliable,
            stale=True,
            error=error,
            motion_state=self._latest.motion_state
        )

    def get_latest_estimate(self) -> Optional[FlowEstimate]:
        """Most recent fresh estimate."""
        return self._latest

    def reset(self) -> None:
        """Reset all internal state."""
        self._tracker.reset()
        self._motion_field.reset()
        self._prev_luma = None
        self._latest = None
        self._frame_count = 0
