"""Test cases for merging the fragments of a page."""
from typing import List
from typing import Tuple

import numpy as np
import numpy.typing as npt
import pytest

from conftest import generate_page
from conftest import split_page
from scanstitch import MergeResult
from scanstitch import PageMerger
from scanstitch import SearchOptions
from scanstitch import merge_fragments

GRAY_OPTIONS = SearchOptions(y_range_floor=2, dead_zone=0, shears=(0,))


def test_merger_rejects_empty_reference() -> None:
    with pytest.raises(ValueError):
        PageMerger(np.zeros((0, 0, 3), dtype=np.uint8))


def test_merge_without_adopting() -> None:
    image = np.full((64, 64, 3), 128, dtype=np.uint8)
    merger = PageMerger(image, options=GRAY_OPTIONS)
    assert merger.history.empty
    assert list(merger.history.columns) == ["x", "y", "angle", "deviation", "width", "height"]

    merged = merger.merge_on_right(image, adopt=False)
    assert merged.shape == (61, 64, 3)
    assert merger.reference.shape == (64, 64, 3)
    assert merger.history.empty

    merged = merger.merge_on_right(image)
    assert merger.reference is not merged
    assert np.array_equal(merger.reference, merged)
    assert merger.history[["x", "y"]].values.tolist() == [[0, -3]]


def test_search_and_compose_separately(
    small_fragments: Tuple[List[npt.NDArray], List[int]]
) -> None:
    (left, center, _), (_, posx1, _) = small_fragments
    merger = PageMerger(left, options=SearchOptions(y_range_floor=20))
    result = merger.search(center)
    assert result == MergeResult(posx1, 0, 0.0, 0.0)
    merged = merger.compose(center, result)
    assert merged.shape == (906, posx1 + center.shape[1], 3)
    assert merger.reference is not merged


def test_reference_is_copied() -> None:
    image = np.full((64, 64, 3), 128, dtype=np.uint8)
    merger = PageMerger(image, options=GRAY_OPTIONS)
    image[:] = 0
    assert np.all(merger.reference == 128)

    merged = merger.merge_on_right(np.full((64, 64, 3), 128, dtype=np.uint8))
    merged[:] = 0
    assert np.all(merger.reference == 128)


def test_search_returns_a_pose() -> None:
    image = np.full((64, 64, 3), 128, dtype=np.uint8)
    merger = PageMerger(image, options=GRAY_OPTIONS)
    result = merger.search(image)
    assert isinstance(result, MergeResult)
    assert (result.x, result.y) == (0, -3)


def test_single_fragment() -> None:
    image = np.full((10, 20, 3), 7, dtype=np.uint8)
    page, grid = merge_fragments([image])
    assert np.array_equal(page, image)
    assert len(grid) == 1
    assert grid.loc[0, "x"] == 0
    assert np.isnan(grid.loc[0, "deviation"])


def test_no_fragment() -> None:
    with pytest.raises(ValueError):
        merge_fragments([])


def test_merge_fragments_rebuilds_the_page(
    small_page: npt.NDArray,
    small_fragments: Tuple[List[npt.NDArray], List[int]],
) -> None:
    fragments, positions = small_fragments
    page, grid = merge_fragments(fragments)
    assert grid["x"].tolist() == positions
    assert grid["y"].tolist() == [0, 0, 0]
    assert grid["angle"].tolist() == [0.0, 0.0, 0.0]
    assert grid["deviation"].iloc[1:].tolist() == [0.0, 0.0]
    assert grid["width"].tolist() == [640, 640, 640]
    assert np.array_equal(page, small_page)


def test_merge_on_right_with_seam_correction(
    small_page: npt.NDArray,
    small_fragments: Tuple[List[npt.NDArray], List[int]],
) -> None:
    """Merge the center and right fragments, as scanned with a smaller paper size."""
    fragments, (_, posx1, posx2) = small_fragments
    merger = PageMerger(fragments[0], seam_correction=True)

    result = merger.search(fragments[1])
    assert result.x == posx1
    merger.reference = merger.compose(fragments[1], result)

    result = merger.search(fragments[2])
    assert result.x == posx2
    merger.reference = merger.compose(fragments[2], result)

    assert merger.reference.shape == small_page.shape
    # away from the seams, the page is copied as it is
    assert np.array_equal(merger.reference[:, :posx1], small_page[:, :posx1])
    assert np.array_equal(merger.reference[:, posx2 + 150 :], small_page[:, posx2 + 150 :])


@pytest.mark.slow
def test_merge_full_size_page() -> None:
    page = generate_page(2480, 1754)
    fragments, (_, posx1, posx2) = split_page(page)
    assert (posx1, posx2) == (620, 1240)
    merger = PageMerger(fragments[0], seam_correction=True)

    result = merger.search(fragments[1])
    assert result.x == posx1
    merger.reference = merger.compose(fragments[1], result)

    result = merger.search(fragments[2])
    assert result.x == posx2
    merger.reference = merger.compose(fragments[2], result)

    assert merger.reference.shape == page.shape
