"""
Motion field aggregation.
Reduces per-point flow to the displacement estimate a flight controller uses.
"""

from collections import deque
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from config import MOTION_GRID, MOTION_HISTORY_FRAMES, MIN_TRACKED_POINTS, SUBPIXEL_FACTOR
from motion.fixed_point import trunc_div
from motion.optical_flow import FlowResult


@dataclass
class MotionFieldState:
    """
    Aggregated flow between two frames.
    All flow values are integers in subpixel units.
    """
    # Grid dimensions
    grid_cols: int
    grid_rows: int

    # Per-cell statistics (shape: rows x cols)
    point_count_grid: np.ndarray
    flow_x_grid: np.ndarray
    flow_y_grid: np.ndarray

    # Global statistics
    mean_flow: Tuple[int, int] = (0, 0)
    median_flow: Tuple[int, int] = (0, 0)
    total_points: int = 0
    tracked_points: int = 0
    tracking_quality: float = 0.0
    reliable: bool = False

    # Raw data for detailed analysis
    all_vectors: Optional[np.ndarray] = None
    all_points: Optional[np.ndarray] = None

    @property
    def lost_points(self) -> int:
        return self.total_points - self.tracked_points


class MotionVectorField:
    """
    Aggregates tracked flow vectors into global and per-cell averages.

    Provides:
    - Integer mean and median flow of tracked points
    - Per-cell point counts and mean flow, to spot clustered features
    - A short history for smoothing the displacement estimate
    """

    def __init__(self,
                 grid_size: tuple = MOTION_GRID,
                 history_length: int = MOTION_HISTORY_FRAMES,
                 min_tracked_points: int = MIN_TRACKED_POINTS,
                 subpixel_factor: int = SUBPIXEL_FACTOR):
        self.grid_size = grid_size  # (cols, rows)
        self.history_length = history_length
        self.min_tracked_points = min_tracked_points
        self.subpixel_factor = subpixel_factor

        self._history: deque = deque(maxlen=history_length)

    def analyze(self, flow_result: FlowResult, frame_shape: tuple) -> MotionFieldState:
        """
        Aggregate a flow result.

        Args:
            flow_result: Result from LucasKanadeTracker
            frame_shape: (height, width) of the tracked frames

        Returns:
            MotionFieldState
        """
        cols, rows = self.grid_size
        valid_mask = flow_result.valid_mask

        if not np.any(valid_mask):
            state = self._create_empty_state(len(flow_result.status))
            self._history.append(state)
            return state

        valid_points = flow_result.prev_points[valid_mask]
        valid_vectors = flow_result.motion_vectors[valid_mask]

        point_count_grid = np.zeros((rows, cols), dtype=np.int64)
        flow_x_grid = np.zeros((rows, cols), dtype=np.int64)
        flow_y_grid = np.zeros((rows, cols), dtype=np.int64)

        cell_indices = self._get_cell_indices(valid_points, frame_shape)
        for (col, row), (vx, vy) in zip(cell_indices, valid_vectors):
            point_count_grid[row, col] += 1
            flow_x_grid[row, col] += vx
            flow_y_grid[row, col] += vy

        occupied = point_count_grid > 0
        flow_x_grid[occupied] = trunc_div(flow_x_grid[occupied], point_count_grid[occupied])
        flow_y_grid[occupied] = trunc_div(flow_y_grid[occupied], point_count_grid[occupied])

        n = len(valid_vectors)
        sums = valid_vectors.sum(axis=0)
        median = np.median(valid_vectors, axis=0)

        state = MotionFieldState(
            grid_cols=cols,
            grid_rows=rows,
            point_count_grid=point_count_grid,
            flow_x_grid=flow_x_grid,
            flow_y_grid=flow_y_grid,
            mean_flow=(trunc_div(int(sums[0]), n), trunc_div(int(sums[1]), n)),
            median_flow=(int(median[0]), int(median[1])),
            total_points=len(flow_result.status),
            tracked_points=n,
            tracking_quality=flow_result.tracking_quality,
            reliable=n >= self.min_tracked_points,
            all_vectors=valid_vectors,
            all_points=valid_points
        )

        self._history.append(state)
        return state

    def _get_cell_indices(self, points: np.ndarray, frame_shape: tuple) -> np.ndarray:
        """Convert pixel coordinates to (col, row) cell indices."""
        h, w = frame_shape[:2]
        cols, rows = self.grid_size
        col = np.clip(points[:, 0] * cols // max(w, 1), 0, cols - 1)
        row = np.clip(points[:, 1] * rows // max(h, 1), 0, rows - 1)
        return np.column_stack([col, row])

    def _create_empty_state(self, total_points: int = 0) -> MotionFieldState:
        """Create a state for a frame pair without tracked points."""
        cols, rows = self.grid_size
        return MotionFieldState(
            grid_cols=cols,
            grid_rows=rows,
            point_count_grid=np.zeros((rows, cols), dtype=np.int64),
            flow_x_grid=np.zeros((rows, cols), dtype=np.int64),
            flow_y_grid=np.zeros((rows, cols), dtype=np.int64),
            total_points=total_points
        )

    def to_pixels(self, flow: Tuple[int, int]) -> Tuple[int, int]:
        """Convert a subpixel flow to whole pixels (truncating)."""
        return (trunc_div(flow[0], self.subpixel_factor),
                trunc_div(flow[1], self.subpixel_factor))

    def get_average_flow(self) -> Tuple[int, int]:
        """
        Mean flow over the reliable states in the history.

        Returns:
            (x, y) in subpixel units, (0, 0) without reliable history
        """
        reliable = [s.mean_flow for s in self._history if s.reliable]
        if not reliable:
            return (0, 0)

        n = len(reliable)
        return (trunc_div(sum(f[0] for f in reliable), n),
                trunc_div(sum(f[1] for f in reliable), n))

    def get_history(self) -> list:
        """Get motion field history."""
        return list(self._history)

    def reset(self) -> None:
        """Reset history."""
        self._history.clear()
