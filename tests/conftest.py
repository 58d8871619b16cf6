"""Synthetic page scans for the tests."""
import math
from typing import List
from typing import Tuple

import numpy as np
import numpy.typing as npt
import pytest
from PIL import Image
from PIL import ImageDraw


def generate_page(width: int, height: int, seed: int = 0) -> npt.NDArray:
    """Draw a page with crossing lines and coloured discs on white."""
    image = Image.new("RGB", (width, height), "white")
    draw = ImageDraw.Draw(image)
    for i in range(0, width, 10):
        draw.line([(i, 0), (i * 2, height)], fill="black", width=3)
        draw.line([(width - i, 0), (width - i * 2, height)], fill="black", width=3)
    rng = np.random.default_rng(seed)
    for _ in range(width * height // 20000):
        cx, cy = rng.uniform(0, width), rng.uniform(0, height)
        r = rng.uniform(5, 40)
        color = tuple(int(v) for v in rng.integers(0, 256, size=3))
        draw.ellipse([cx - r, cy - r, cx + r, cy + r], fill=color)
    return np.array(image)


def split_page(page: npt.NDArray) -> Tuple[List[npt.NDArray], List[int]]:
    """Split a page as scanned in three parts by the next smaller paper size.

    Returns the left, center and right fragments and their positions.
    """
    height, width = page.shape[:2]
    fragment_width = int(height / math.sqrt(2))
    posx1 = (width - fragment_width) // 2
    posx2 = width - fragment_width
    positions = [0, posx1, posx2]
    fragments = [page[:, p : p + fragment_width].copy() for p in positions]
    return fragments, positions


@pytest.fixture(scope="session")
def small_page() -> npt.NDArray:
    return generate_page(1280, 906)


@pytest.fixture(scope="session")
def small_fragments(
    small_page: npt.NDArray,
) -> Tuple[List[npt.NDArray], List[int]]:
    fragments, positions = split_page(small_page)
    assert positions == [0, 320, 640]
    return fragments, positions


@pytest.fixture
def noise_image() -> npt.NDArray:
    rng = np.random.default_rng(1)
    return rng.integers(0, 256, size=(40, 300, 3), dtype=np.uint8)
