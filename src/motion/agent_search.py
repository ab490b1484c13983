"""
Agent-based corner search.

A grid of agents walks over the image. Each agent senses a small gradient
patch, feeds it through a fixed perceptron and either stops (the spot is
interesting) or jumps. Cheaper than a full Harris map on large images, at
the price of less predictable point quality.
"""

import logging

import numpy as np

from config import (
    AGENT_GRID_ROWS, AGENT_RESOLUTION, AGENT_BORDER, AGENT_MAX_JUMP,
    AGENT_HALF_PATCH, AGENT_TIME_STEPS, AGENT_ONLY_STOPPED
)
from motion.feature_detector import CornerFinder, CornerResult, mark_corners
from motion.fixed_point import FlowError, as_luma, trunc_div
from motion.gradients import image_gradients

logger = logging.getLogger(__name__)

N_VISUAL_INPUTS = 51  # 25 dx, 25 dy, bias
N_ACTIONS = 3  # move x, move y, stop
INPUT_RANGE = 25500  # max |input| * max |weight|
BIAS_INPUT = 255

# Evolved offline; inputs in [-255, 255], weights in [-100, 100]
AGENT_WEIGHTS = np.array([
    # action 0
    -78, -46, 18, 59, 0, 100, 0, 0, 100, -29, -45, 0, 15, -30, 59, -100, -99,
    -100, -47, 0, -100, -100, 2, -78, 0, 10, -68, 53, 0, 0, -61, -28, 51, 0,
    -86, -73, 10, -65, -100, 98, -19, 63, -100, -42, -83, 21, 0, 3, 7, 0, -100,
    # action 1
    24, -100, -99, -40, -100, 91, 0, 0, 54, 0, -90, -22, 13, 6, 31, 0, 100,
    -58, -31, 100, 5, 21, -100, 37, -100, 57, 100, -96, -3, -74, -3, -64, -68, 6,
    -100, -71, -81, 100, 13, 100, 0, -100, -57, 77, -100, -61, -100, 0, 37, -100, -100,
    # action 2
    -100, 10, -36, -100, 62, 8, 0, 21, 2, -61, -5, 32, -64, 15, -100, -90, -74,
    -18, -22, -28, 42, -92, 0, 3, -3, -13, 100, -5, 88, 0, 7, -100, 90, 73,
    -53, 100, 0, 2, 0, -95, -60, -62, 0, -6, 82, 0, -79, -69, 73, -38, 100,
], dtype=np.int64).reshape(N_ACTIONS, N_VISUAL_INPUTS)


def visual_inputs(dx: np.ndarray, dy: np.ndarray, x: int, y: int,
                  half_patch: int = AGENT_HALF_PATCH) -> np.ndarray:
    """
    Sensory input vector of an agent at pixel (x, y).

    The patch is read column by column; the first half of the vector holds
    dx, the second half dy, the last entry is the bias.
    """
    h, w = dx.shape
    xs = np.clip(np.arange(x - half_patch, x + half_patch + 1), 0, w - 1)
    ys = np.clip(np.arange(y - half_patch, y + half_patch + 1), 0, h - 1)
    window = np.ix_(ys, xs)

    half = N_VISUAL_INPUTS // 2
    inputs = np.empty(N_VISUAL_INPUTS, dtype=np.int64)
    inputs[:half] = dx[window].T.ravel()
    inputs[half:2 * half] = dy[window].T.ravel()
    inputs[-1] = BIAS_INPUT
    return inputs


def apply_perceptron(inputs: np.ndarray, resolution: int = AGENT_RESOLUTION,
                     weights: np.ndarray = AGENT_WEIGHTS) -> np.ndarray:
    """
    Actions in [-resolution, resolution] for one input vector.
    """
    factor = INPUT_RANGE // resolution
    actions = weights @ inputs
    actions = trunc_div(actions, factor)
    actions = trunc_div(actions, 2)
    return np.clip(actions, -resolution, resolution)


class AgentCornerFinder(CornerFinder):
    """
    Corner candidates from a swarm of perceptron-driven agents.

    Agents start on a regular grid inside a border, move for a fixed number
    of time steps and wrap around when they leave the usable area. Stopped
    agents mark interesting spots.
    """

    def __init__(self,
                 grid_rows: int = AGENT_GRID_ROWS,
                 only_stopped: bool = AGENT_ONLY_STOPPED,
                 resolution: int = AGENT_RESOLUTION,
                 border: int = AGENT_BORDER,
                 max_jump: int = AGENT_MAX_JUMP,
                 half_patch: int = AGENT_HALF_PATCH,
                 time_steps: int = AGENT_TIME_STEPS):
        if grid_rows < 2:
            raise ValueError("grid_rows must be at least 2")
        if not 0 < resolution <= INPUT_RANGE:
            raise ValueError(f"resolution must be in (0, {INPUT_RANGE}]")
        if 2 * (2 * half_patch + 1) ** 2 + 1 != N_VISUAL_INPUTS:
            raise ValueError(f"half_patch {half_patch} does not match the "
                             f"{N_VISUAL_INPUTS}-input weight table")

        self.grid_rows = grid_rows
        self.only_stopped = only_stopped
        self.resolution = resolution
        self.border = border
        self.max_jump = max_jump
        self.half_patch = half_patch
        self.time_steps = time_steps

    @property
    def n_agents(self) -> int:
        return self.grid_rows * self.grid_rows

    def _initial_positions(self, w: int, h: int):
        """Grid positions in agent resolution units."""
        step_x = max(w - 2 * self.border, 0) // (self.grid_rows - 1)
        step_y = max(h - 2 * self.border, 0) // (self.grid_rows - 1)

        xs, ys = [], []
        for gr in range(self.grid_rows):
            for gc in range(self.grid_rows):
                xs.append((self.border + gr * step_x) * self.resolution)
                ys.append((self.border + gc * step_y) * self.resolution)
        return xs, ys

    def _wrap(self, pos: int, size: int) -> int:
        """Send an agent that left the usable band to the opposite side."""
        low = self.half_patch + 1
        high = size - self.half_patch - 2
        pixel = trunc_div(pos, self.resolution)
        if pixel < low:
            return high * self.resolution
        if pixel > high:
            return low * self.resolution
        return pos

    def search(self, plane: np.ndarray):
        """
        Run the agents on a plane.

        Returns:
            (xs, ys, active) lists; positions in agent resolution units
        """
        h, w = plane.shape
        dx, dy = image_gradients(plane)
        xs, ys = self._initial_positions(w, h)
        active = [True] * self.n_agents

        for t in range(self.time_steps):
            n_active = 0

            for a in range(self.n_agents):
                if not active[a]:
                    continue
                n_active += 1

                inputs = visual_inputs(
                    dx, dy,
                    trunc_div(xs[a], self.resolution),
                    trunc_div(ys[a], self.resolution),
                    self.half_patch
                )
                move_x, move_y, stop = (int(v) for v in apply_perceptron(inputs, self.resolution))

                if stop < 0:
                    active[a] = False
                    continue

                xs[a] = self._wrap(xs[a] + move_x * self.max_jump, w)
                ys[a] = self._wrap(ys[a] + move_y * self.max_jump, h)

            if n_active == 0:
                logger.debug("All agents stopped after %d steps", t + 1)
                break

        return xs, ys, active

    def detect(self, luma: np.ndarray, mark_points: bool = False) -> CornerResult:
        plane = as_luma(luma)

        try:
            xs, ys, active = self.search(plane)
        except MemoryError:
            logger.warning("Out of memory during agent search")
            return CornerResult(error=FlowError.NO_MEMORY)

        points = [
            (trunc_div(x, self.resolution), trunc_div(y, self.resolution))
            for x, y, moving in zip(xs, ys, active)
            if not (self.only_stopped and moving)
        ]
        points = np.array(points, dtype=np.int64).reshape(-1, 2)

        if mark_points:
            mark_corners(luma, points)

        logger.debug("Agents returned %d of %d points", len(points), self.n_agents)
        return CornerResult(points=points)
