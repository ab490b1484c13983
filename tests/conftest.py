"""
Shared synthetic imagery for the motion tests.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def block_texture(seed: int = 3, blocks: int = 12, block_size: int = 8) -> np.ndarray:
    """Random-intensity square blocks, giving sharp corners everywhere."""
    rng = np.random.default_rng(seed)
    levels = rng.integers(20, 236, size=(blocks, blocks))
    return np.kron(levels, np.ones((block_size, block_size))).astype(np.uint8)


@pytest.fixture
def texture():
    """96x96 blocky texture."""
    return block_texture()


@pytest.fixture
def corner_image():
    """Flat background with one bright square whose top-left corner is (20, 20)."""
    img = np.zeros((40, 40), dtype=np.uint8)
    img[20:, 20:] = 200
    return img
