"""This module merges scanned fragments of a page from left to right."""
import logging
from typing import List
from typing import Optional
from typing import Sequence
from typing import Tuple

import numpy as np
import pandas as pd
from tqdm import tqdm

from ._alignment_search import MergeResult
from ._alignment_search import SearchOptions
from ._alignment_search import search_alignment
from ._composition import compose_images
from ._raster import as_raster
from ._typing_utils import NumArray
from ._typing_utils import UInt8Array
from .progress import ProgressReporter

logger = logging.getLogger(__name__)

HISTORY_COLUMNS = ["x", "y", "angle", "deviation", "width", "height"]


class PageMerger:
    """Merge scans of a page, from the left side to the right side.

    The first (leftmost) fragment is the initial reference. Each fragment
    merged on the right is aligned on the reference, with a vertical offset
    and a small rotation, and the merged image becomes the new reference.

    Parameters
    ----------
    reference : NumArray
        the first (leftmost) fragment
    seam_correction : bool, default False
        if True, the left border of each merged fragment is replaced by the
        reference and blended gradually into the fragment. Useful when the
        scanner does not capture the border of the fragment in full quality.
    options : SearchOptions, optional
        the alignment search parameters
    reporter : ProgressReporter, optional
        receives the progress of the alignment searches
    """

    def __init__(
        self,
        reference: NumArray,
        seam_correction: bool = False,
        options: Optional[SearchOptions] = None,
        reporter: Optional[ProgressReporter] = None,
    ) -> None:
        self.reference = reference
        self.seam_correction = seam_correction
        self.options = options if options is not None else SearchOptions()
        self.reporter = reporter
        self._history: List[dict] = []

    @property
    def reference(self) -> UInt8Array:
        """The image onto which the next fragment is merged.

        The merger keeps its own copy of the images assigned to it.
        """
        return self._reference

    @reference.setter
    def reference(self, image: NumArray) -> None:
        self._reference = as_raster(image, "reference").copy()

    @property
    def history(self) -> pd.DataFrame:
        """The poses of the merged fragments, one row per adopted merge."""
        return pd.DataFrame(self._history, columns=HISTORY_COLUMNS)

    def search(self, candidate: NumArray) -> MergeResult:
        """Search the pose of a fragment on the right of the reference."""
        return search_alignment(
            self.reference, candidate, options=self.options, reporter=self.reporter
        )

    def compose(self, candidate: NumArray, result: MergeResult) -> UInt8Array:
        """Compose a fragment at a given pose, without validating the pose."""
        return compose_images(
            self.reference, candidate, result, seam_correction=self.seam_correction
        )

    def merge_on_right(self, candidate: NumArray, adopt: bool = True) -> UInt8Array:
        """Merge a fragment on the right of the reference.

        Parameters
        ----------
        candidate : NumArray
            the fragment to merge
        adopt : bool, default True
            if True, the merged image becomes the reference

        Returns
        -------
        merged : UInt8Array
            the merged image
        """
        candidate = as_raster(candidate, "candidate")
        result = self.search(candidate)
        merged = self.compose(candidate, result)
        logger.info(
            "merged %dx%d fragment at x=%d, y=%d, angle=%.5f rad, dev=%.4f",
            candidate.shape[1],
            candidate.shape[0],
            result.x,
            result.y,
            result.angle,
            result.deviation,
        )
        if adopt:
            self.reference = merged
            self._history.append(
                {
                    "x": result.x,
                    "y": result.y,
                    "angle": result.angle,
                    "deviation": result.deviation,
                    "width": candidate.shape[1],
                    "height": candidate.shape[0],
                }
            )
        return merged


def merge_fragments(
    fragments: Sequence[NumArray],
    seam_correction: bool = False,
    options: Optional[SearchOptions] = None,
    reporter: Optional[ProgressReporter] = None,
    show_progress: bool = False,
) -> Tuple[UInt8Array, pd.DataFrame]:
    """Merge the scanned fragments of a page.

    Parameters
    ----------
    fragments : Sequence[NumArray]
        the fragments, ordered from the left side to the right side of the page

    seam_correction : bool, default False
        if True, the left border of each merged fragment is blended from the
        previous fragments

    options : SearchOptions, optional
        the alignment search parameters

    reporter : ProgressReporter, optional
        receives the progress of each alignment search

    show_progress : bool, default False
        if True, shows a progress bar over the fragments

    Returns
    -------
    page : UInt8Array
        the merged page

    grid : pd.DataFrame
        one row per fragment, with the columns "x", "y", "angle", "deviation",
        "width" and "height". The first fragment is at the origin and has no
        deviation.

    Raises
    ------
    ValueError
        when there is no fragment
    """
    if len(fragments) < 1:
        raise ValueError("at least one fragment is required")
    first = as_raster(fragments[0], "fragments[0]")
    merger = PageMerger(
        first, seam_correction=seam_correction, options=options, reporter=reporter
    )
    for fragment in tqdm(fragments[1:], disable=not show_progress, desc="merging"):
        merger.merge_on_right(fragment)

    first_row = {
        "x": 0,
        "y": 0,
        "angle": 0.0,
        "deviation": np.nan,
        "width": first.shape[1],
        "height": first.shape[0],
    }
    grid = pd.DataFrame(
        [first_row] + merger.history.to_dict("records"), columns=HISTORY_COLUMNS
    )
    for key in ["x", "y", "width", "height"]:
        grid[key] = grid[key].astype(np.int64)
    return merger.reference, grid
