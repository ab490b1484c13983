"""
Single-level Lucas-Kanade tracking in fixed point.
Every point is refined independently; a lost point never affects the others.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np

from config import (
    SUBPIXEL_FACTOR, HALF_WINDOW_SIZE, MAX_ITERATIONS,
    STEP_THRESHOLD, TENSOR_SCALE, RESIDUAL_PER_PIXEL
)
from motion.fixed_point import BufferPool, FlowError, TrackStatus, as_luma, trunc_div
from motion.gradients import patch_gradients
from motion.subpixel import sample_window

logger = logging.getLogger(__name__)


@dataclass
class TrackResult:
    """Outcome of tracking one seed point."""
    seed: Tuple[int, int]            # Seed in pixels
    position: Tuple[int, int]        # Refined position in pixels
    velocity: Tuple[int, int] = (0, 0)  # Accumulated flow in subpixel units
    iterations: int = 0
    status: TrackStatus = TrackStatus.LOST


@dataclass
class FlowResult:
    """Result of tracking a set of points between two frames."""
    prev_points: np.ndarray          # (N, 2) seeds in pixels
    curr_points: np.ndarray          # (N, 2) refined positions in pixels
    motion_vectors: np.ndarray       # (N, 2) flow in subpixel units
    status: np.ndarray               # (N,) uint8, 1 = tracked, 0 = lost
    iterations: np.ndarray           # (N,) iterations spent per point
    tracks: List[TrackResult] = field(default_factory=list)
    error: FlowError = FlowError.OK
    tracking_quality: float = 0.0    # Fraction of points tracked

    @property
    def valid_mask(self) -> np.ndarray:
        return self.status == TrackStatus.TRACKED

    @property
    def ok(self) -> bool:
        return self.error == FlowError.OK

    @classmethod
    def empty(cls, error: FlowError = FlowError.OK) -> "FlowResult":
        return cls(
            prev_points=np.empty((0, 2), dtype=np.int64),
            curr_points=np.empty((0, 2), dtype=np.int64),
            motion_vectors=np.empty((0, 2), dtype=np.int64),
            status=np.empty((0,), dtype=np.uint8),
            iterations=np.empty((0,), dtype=np.int64),
            error=error
        )


class LucasKanadeTracker:
    """
    Iterative Lucas-Kanade on fixed-point coordinates.

    For every seed:
    1. Sample a padded window in the old frame, take its gradients and
       build the structure tensor G (scaled down by ``tensor_scale``)
    2. Reject the point if det(G) / subpixel_factor < 1
    3. Repeatedly sample the new frame at the current estimate, form the
       mismatch vector b and solve G * step = b with Cramer's rule
    4. Stop when the L1 step drops below ``step_threshold`` or after
       ``max_iterations``

    Points within ``half_window + 1`` pixels of the border, points whose
    residual is still large past half of the iterations, and ill-conditioned
    windows end up LOST.

    Scratch windows are allocated once per window size and reused for all
    points and calls.
    """

    def __init__(self,
                 half_window: int = HALF_WINDOW_SIZE,
                 max_iterations: int = MAX_ITERATIONS,
                 subpixel_factor: int = SUBPIXEL_FACTOR,
                 step_threshold: int = STEP_THRESHOLD,
                 tensor_scale: int = TENSOR_SCALE,
                 residual_per_pixel: int = RESIDUAL_PER_PIXEL):
        if half_window < 1:
            raise ValueError("half_window must be at least 1")
        if subpixel_factor < 1:
            raise ValueError("subpixel_factor must be at least 1")

        self.half_window = half_window
        self.max_iterations = max_iterations
        self.subpixel_factor = subpixel_factor
        self.step_threshold = step_threshold
        self.tensor_scale = tensor_scale

        self.patch_size = 2 * half_window + 1
        self.error_threshold = (residual_per_pixel * residual_per_pixel) * (self.patch_size * self.patch_size)

        self._buffers = BufferPool()

    def _inside(self, x: int, y: int, w: int, h: int) -> bool:
        """True if a fixed-point position keeps the padded window inside the image."""
        margin = (self.half_window + 1) * self.subpixel_factor
        return (margin < x < (w - 1) * self.subpixel_factor - margin and
                margin < y < (h - 1) * self.subpixel_factor - margin)

    def _structure_tensor(self, dx: np.ndarray, dy: np.ndarray) -> Tuple[int, int, int, int]:
        gxx = trunc_div(int(np.sum(dx * dx)), self.tensor_scale)
        gxy = trunc_div(int(np.sum(dx * dy)), self.tensor_scale)
        gyy = trunc_div(int(np.sum(dy * dy)), self.tensor_scale)
        return gxx, gxy, gxy, gyy

    def track_point(self, old: np.ndarray, new: np.ndarray, x: int, y: int) -> TrackResult:
        """
        Track a single seed.

        Args:
            old: Old luma plane (int64)
            new: New luma plane (int64), same shape as ``old``
            x: Seed x in pixels
            y: Seed y in pixels

        Returns:
            TrackResult for the seed
        """
        h, w = old.shape
        f = self.subpixel_factor
        hw = self.half_window
        seed_x, seed_y = int(x) * f, int(y) * f
        result = TrackResult(seed=(int(x), int(y)), position=(int(x), int(y)))

        if not self._inside(seed_x, seed_y, w, h):
            return result

        padded = sample_window(
            old, seed_x, seed_y, hw + 1, f,
            out=self._buffers.get("padded", (self.patch_size + 2, self.patch_size + 2))
        )
        template = padded[1:-1, 1:-1]
        dx, dy = patch_gradients(
            padded,
            self._buffers.get("dx", (self.patch_size, self.patch_size)),
            self._buffers.get("dy", (self.patch_size, self.patch_size))
        )

        g = self._structure_tensor(dx, dy)
        det = trunc_div(g[0] * g[3] - g[1] * g[2], f)
        if det < 1:
            return result

        window = self._buffers.get("window", (self.patch_size, self.patch_size))
        diff = self._buffers.get("diff", (self.patch_size, self.patch_size))

        status = TrackStatus.TRACKED
        v_x = v_y = 0
        it = 0
        step_size = self.step_threshold + 1

        while it < self.max_iterations and step_size >= self.step_threshold:
            if not self._inside(seed_x + v_x, seed_y + v_y, w, h):
                status = TrackStatus.LOST
                break

            sample_window(new, seed_x + v_x, seed_y + v_y, hw, f, out=window)
            np.subtract(template, window, out=diff)

            error = int(np.sum(diff * diff))
            if error > self.error_threshold and it > self.max_iterations // 2:
                status = TrackStatus.LOST
                break

            b_x = trunc_div(int(np.sum(diff * dx)), self.tensor_scale)
            b_y = trunc_div(int(np.sum(diff * dy)), self.tensor_scale)

            step_x = trunc_div(g[3] * b_x - g[1] * b_y, det)
            step_y = trunc_div(g[0] * b_y - g[2] * b_x, det)
            v_x += step_x
            v_y += step_y

            it += 1
            step_size = abs(step_x) + abs(step_y)

        result.velocity = (v_x, v_y)
        result.iterations = it
        result.status = status
        result.position = (trunc_div(seed_x + v_x, f), trunc_div(seed_y + v_y, f))
        return result

    def track(self, old_frame: np.ndarray, new_frame: np.ndarray,
              points: np.ndarray) -> FlowResult:
        """
        Track points from old_frame to new_frame.

        Args:
            old_frame: Previous luma plane
            new_frame: Current luma plane, same shape
            points: (N, 2) integer seeds (x, y) in pixels

        Returns:
            FlowResult with one entry per seed, or an empty result with
            ``error`` set to NO_MEMORY if scratch space ran out
        """
        old = as_luma(old_frame)
        new = as_luma(new_frame)
        if old.shape != new.shape:
            raise ValueError(f"Frame shapes differ: {old.shape} vs {new.shape}")

        if points is None or len(points) == 0:
            return FlowResult.empty()
        points = np.asarray(points, dtype=np.int64).reshape(-1, 2)

        try:
            tracks = [self.track_point(old, new, x, y) for x, y in points]
        except MemoryError:
            logger.warning("Out of memory while tracking %d points", len(points))
            return FlowResult.empty(FlowError.NO_MEMORY)

        status = np.array([t.status for t in tracks], dtype=np.uint8)
        n_tracked = int(np.sum(status))
        logger.debug("Tracked %d of %d points", n_tracked, len(tracks))

        return FlowResult(
            prev_points=points,
            curr_points=np.array([t.position for t in tracks], dtype=np.int64),
            motion_vectors=np.array([t.velocity for t in tracks], dtype=np.int64),
            status=status,
            iterations=np.array([t.iterations for t in tracks], dtype=np.int64),
            tracks=tracks,
            tracking_quality=n_tracked / len(tracks)
        )

    def reset(self) -> None:
        """Release scratch buffers."""
        self._buffers.release()

    @staticmethod
    def compute_motion_stats(flow_result: FlowResult) -> dict:
        """
        Statistics on the flow of tracked points.

        Returns:
            Dict with mean / median flow in subpixel units and the count
        """
        valid_vectors = flow_result.motion_vectors[flow_result.valid_mask]

        if len(valid_vectors) == 0:
            return {
                'mean_flow': (0, 0),
                'median_flow': (0, 0),
                'count': 0
            }

        n = len(valid_vectors)
        sums = valid_vectors.sum(axis=0)
        median = np.median(valid_vectors, axis=0)

        return {
            'mean_flow': (trunc_div(int(sums[0]), n), trunc_div(int(sums[1]), n)),
            'median_flow': (int(median[0]), int(median[1])),
            'count': n
        }
