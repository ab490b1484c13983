"""
Unit tests for the per-frame flow estimator.
"""

import numpy as np
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from motion.feature_detector import CornerFinder, CornerResult, HarrisCornerDetector
from motion.fixed_point import FlowError
from navigation.flow_estimator import FlowEstimate, OpticFlowEstimator


class SwitchableDetector(CornerFinder):
    """Harris detector that can be told to run out of memory."""

    def __init__(self):
        self.inner = HarrisCornerDetector()
        self.exhausted = False

    def detect(self, luma, mark_points=False):
        if self.exhausted:
            return CornerResult(error=FlowError.NO_MEMORY)
        return self.inner.detect(luma, mark_points)


class TestOpticFlowEstimator:
    """Tests for OpticFlowEstimator class."""

    @pytest.fixture
    def estimator(self):
        """Create an estimator with default settings."""
        return OpticFlowEstimator()

    def test_first_frame(self, estimator, texture):
        assert estimator.process(texture) is None
        assert estimator.get_latest_estimate() is None

    def test_static_scene(self, estimator, texture):
        estimator.process(texture)
        estimate = estimator.process(texture)

        assert isinstance(estimate, FlowEstimate)
        assert estimate.flow == (0, 0)
        assert estimate.reliable
        assert not estimate.stale
        assert estimate.detected_points > 0

    def test_rightward_motion(self, estimator, texture):
        estimator.process(texture)
        estimate = estimator.process(np.roll(texture, 1, axis=1))

        assert estimate.reliable
        assert estimate.tracked_points >= 3
        assert abs(estimate.flow[0] - 10) <= 6
        assert abs(estimate.flow[1]) <= 6
        assert estimate.error == FlowError.OK

    def test_bgr_frames(self, estimator, texture):
        bgr = np.dstack([texture] * 3)
        estimator.process(bgr)
        estimate = estimator.process(bgr)
        assert estimate.flow == (0, 0)

    def test_size_change_restarts(self, estimator, texture):
        estimator.process(texture)
        assert estimator.process(texture[:64, :64]) is None

    def test_failed_frame_reuses_estimate(self, texture):
        detector = SwitchableDetector()
        estimator = OpticFlowEstimator(detector=detector)

        estimator.process(texture)
        fresh = estimator.process(np.roll(texture, 1, axis=1))

        detector.exhausted = True
        stale = estimator.process(texture)

        assert stale.stale
        assert stale.error == FlowError.NO_MEMORY
        assert stale.flow == fresh.flow
        assert estimator.get_latest_estimate() is fresh

    def test_failure_without_history(self, texture):
        detector = SwitchableDetector()
        detector.exhausted = True
        estimator = OpticFlowEstimator(detector=detector)

        estimator.process(texture)
        estimate = estimator.process(texture)

        assert estimate.stale
        assert estimate.flow == (0, 0)
        assert not estimate.reliable

    def test_callback(self, estimator, texture):
        received = []
        estimator.set_callback(received.append)

        estimator.process(texture)
        estimator.process(texture)

        assert len(received) == 1
        assert received[0] is estimator.get_latest_estimate()

    def test_motion_state_attached(self, texture):
        estimator = OpticFlowEstimator(include_motion_state=True)
        estimate = estimator.process_pair(texture, texture)

        assert estimate.motion_state is not None
        assert estimate.motion_state.tracked_points == estimate.tracked_points

    def test_agent_strategy(self, texture):
        estimator = OpticFlowEstimator(strategy="agents")
        estimate = estimator.process_pair(texture, texture)
        assert estimate.flow == (0, 0)

    def test_reset(self, estimator, texture):
        estimator.process(texture)
        estimator.process(texture)
        estimator.reset()

        assert estimator.get_latest_estimate() is None
        assert estimator.process(texture) is None
