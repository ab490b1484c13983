"""
Corner detection with eager non-maximum suppression.
Produces well-separated candidate points for the Lucas-Kanade tracker.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import numpy as np

from config import (
    MAX_POINTS, SUPPRESSION_DISTANCE, THRESHOLD_RATIO,
    CORNER_SCORE, DETECTOR_STRATEGY
)
from motion.corner_score import corner_response, SCORES
from motion.fixed_point import BufferPool, FlowError, as_luma, trunc_div

logger = logging.getLogger(__name__)

STRATEGIES = ("harris", "agents")


def _empty_points() -> np.ndarray:
    return np.empty((0, 2), dtype=np.int64)


@dataclass
class CornerResult:
    """Result of a detection call."""
    points: np.ndarray = field(default_factory=_empty_points)  # (N, 2) integer (x, y)
    error: FlowError = FlowError.OK

    @property
    def count(self) -> int:
        return len(self.points)

    @property
    def ok(self) -> bool:
        return self.error == FlowError.OK


class CornerFinder(ABC):
    """
    Produces candidate points from a luma plane.

    Implementations are interchangeable; the flow estimator only relies on
    this interface.
    """

    @abstractmethod
    def detect(self, luma: np.ndarray, mark_points: bool = False) -> CornerResult:
        """
        Find candidate points.

        Args:
            luma: 2-D luma plane (width and height are taken from its shape)
            mark_points: Draw a 3x3 marker on ``luma`` for every point

        Returns:
            CornerResult; ``error`` is NO_MEMORY if scratch space ran out
        """


def threshold_response(response: np.ndarray, ratio: int = THRESHOLD_RATIO) -> np.ndarray:
    """
    Zero every score below max / ratio, in place.

    Returns:
        The maximum of the map before thresholding
    """
    max_val = int(response.max())
    threshold = trunc_div(max_val, ratio)
    response[response < threshold] = 0
    return max_val


def find_local_maxima(response: np.ndarray,
                      max_points: int = MAX_POINTS,
                      suppression_distance: int = SUPPRESSION_DISTANCE,
                      mask: np.ndarray = None) -> np.ndarray:
    """
    Greedy selection of local maxima.

    Pixels are visited column by column (x outer, y inner), skipping the
    border. A pixel is a maximum only if it is strictly larger than all 8
    neighbours. Each accepted maximum excludes the square of half-width
    ``suppression_distance`` around it from later acceptance.

    Args:
        response: Response map
        max_points: Stop after this many points
        suppression_distance: Half-width of the exclusion square
        mask: Optional boolean scratch buffer, cleared here

    Returns:
        (N, 2) array of (x, y) in acceptance order
    """
    h, w = response.shape
    if mask is None:
        mask = np.zeros((h, w), dtype=bool)
    else:
        mask.fill(False)

    if h < 3 or w < 3 or max_points <= 0:
        return _empty_points()

    center = response[1:-1, 1:-1]
    peaks = np.ones(center.shape, dtype=bool)
    for j in range(3):
        for i in range(3):
            if i == 1 and j == 1:
                continue
            peaks &= center > response[j:j + h - 2, i:i + w - 2]

    # Transposed so that nonzero() enumerates x first, then y
    xs, ys = np.nonzero(peaks.T)
    r = suppression_distance
    points = []

    for x, y in zip(xs + 1, ys + 1):
        if mask[y, x]:
            continue

        points.append((x, y))
        mask[max(y - r, 0):y + r + 1, max(x - r, 0):x + r + 1] = True

        if len(points) == max_points:
            break

    if not points:
        return _empty_points()
    return np.array(points, dtype=np.int64)


def mark_corners(luma: np.ndarray, points: np.ndarray, value: int = 255) -> None:
    """Paint a 3x3 square on the plane around every point away from the border."""
    h, w = luma.shape[:2]
    for x, y in points:
        if 1 <= x < w - 1 and 1 <= y < h - 1:
            luma[y - 1:y + 2, x - 1:x + 2] = value


class HarrisCornerDetector(CornerFinder):
    """
    Harris (or Noble) corners with eager non-maximum suppression.

    Steps per call:
    1. Central-difference gradients
    2. Smoothed structure tensor and corner score
    3. Discard scores below max / threshold_ratio
    4. Greedy local maxima with square suppression

    The suppression mask is kept between calls and only reallocated when
    the image size changes.
    """

    def __init__(self,
                 max_points: int = MAX_POINTS,
                 suppression_distance: int = SUPPRESSION_DISTANCE,
                 threshold_ratio: int = THRESHOLD_RATIO,
                 score: str = CORNER_SCORE):
        if score not in SCORES:
            raise ValueError(f"Unknown corner score '{score}', expected one of {SCORES}")
        if threshold_ratio <= 0:
            raise ValueError("threshold_ratio must be positive")

        self.max_points = max_points
        self.suppression_distance = suppression_distance
        self.threshold_ratio = threshold_ratio
        self.score = score

        self._buffers = BufferPool()

    def detect(self, luma: np.ndarray, mark_points: bool = False) -> CornerResult:
        plane = as_luma(luma)

        try:
            response = corner_response(plane, self.score)
            threshold_response(response, self.threshold_ratio)
            mask = self._buffers.get("suppression_mask", plane.shape, dtype=bool)
            points = find_local_maxima(
                response, self.max_points, self.suppression_distance, mask
            )
        except MemoryError:
            logger.warning("Out of memory during corner detection on %dx%d plane",
                           plane.shape[1], plane.shape[0])
            return CornerResult(error=FlowError.NO_MEMORY)

        if mark_points:
            mark_corners(luma, points)

        logger.debug("Detected %d corners (%s)", len(points), self.score)
        return CornerResult(points=points)


def create_corner_finder(strategy: str = DETECTOR_STRATEGY, **kwargs) -> CornerFinder:
    """
    Build the configured point-finding strategy.

    Args:
        strategy: "harris" or "agents"
        **kwargs: Passed to the strategy's constructor
    """
    if strategy == "harris":
        return HarrisCornerDetector(**kwargs)
    if strategy == "agents":
        from motion.agent_search import AgentCornerFinder
        return AgentCornerFinder(**kwargs)
    raise ValueError(f"Unknown detector strategy '{strategy}', expected one of {STRATEGIES}")
