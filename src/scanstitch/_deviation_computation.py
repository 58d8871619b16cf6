import math
from dataclasses import dataclass
from typing import Optional
from typing import Tuple

import numpy as np

from ._typing_utils import BoolArray
from ._typing_utils import Float
from ._typing_utils import Int
from ._typing_utils import NumArray


@dataclass(frozen=True)
class SamplingPatch:
    """The candidate pixels seen through the sampling rectangle.

    The point (i, j) of the rectangle is the candidate pixel at the rotated
    position of (i, j); it does not depend on the candidate translation, so
    one patch serves every position of a search level.

    Attributes
    ----------
    values : NumArray
        the sampled RGB values, with the dimensions (row, column, channel)
    mask : BoolArray, optional
        whether each point falls inside the candidate. None if all points do.
    angle : float
        the rotation (rad) of the candidate
    """

    values: NumArray
    mask: Optional[BoolArray]
    angle: float


def trial_angle(shear: Int, height: Int) -> float:
    """Convert a horizontal shear over the image height into an angle (rad)."""
    if shear == 0:
        return 0.0
    return math.atan2(shear, height)


def build_sampling_patch(
    candidate: NumArray, width: Int, height: Int, angle: Float
) -> SamplingPatch:
    """Sample the candidate over the sampling rectangle.

    Parameters
    ----------
    candidate : NumArray
        the candidate RGB image, with the dimensions (row, column, channel)
    width : Int
        the width of the sampling rectangle
    height : Int
        the height of the sampling rectangle
    angle : Float
        the rotation (rad) applied to the candidate

    Returns
    -------
    patch : SamplingPatch
        the sampled patch. Without rotation, the patch is the top left part
        of the candidate (smaller than the rectangle if the candidate is).
    """
    if angle == 0:
        return SamplingPatch(candidate[:height, :width], None, 0.0)

    cand_h, cand_w = candidate.shape[:2]
    rows, cols = np.mgrid[0:height, 0:width]
    cos = math.cos(angle)
    sin = math.sin(angle)
    # truncation toward zero, not floor
    sample_x = np.trunc(cols * cos + rows * sin).astype(np.int64)
    sample_y = np.trunc(-cols * sin + rows * cos).astype(np.int64)
    mask = (sample_x >= 0) & (sample_y >= 0) & (sample_x < cand_w) & (sample_y < cand_h)
    values = np.zeros((height, width, candidate.shape[2]), dtype=candidate.dtype)
    values[mask] = candidate[sample_y[mask], sample_x[mask]]
    return SamplingPatch(values, mask, float(angle))


def extract_overlap_region(
    reference: NumArray, patch: SamplingPatch, x: Int, y: Int, dead_zone: Int
) -> Optional[Tuple[slice, slice, slice, slice]]:
    """Compute the overlapping region of the reference and the placed patch.

    Parameters
    ----------
    reference : NumArray
        the reference image, with the dimensions (row, column, channel)
    patch : SamplingPatch
        the sampling patch
    x : Int
        the column of the reference where the patch origin is placed
    y : Int
        the row of the reference where the patch origin is placed
    dead_zone : Int
        the reference columns below this value are excluded

    Returns
    -------
    region : Tuple[slice, slice, slice, slice], optional
        the row and column slices for the reference, then for the patch.
        None if the region is empty.
    """
    ref_h, ref_w = reference.shape[:2]
    patch_h, patch_w = patch.values.shape[:2]
    x0 = max(x, dead_zone, 0)
    x1 = min(x + patch_w, ref_w)
    y0 = max(y, 0)
    y1 = min(y + patch_h, ref_h)
    if x1 <= x0 or y1 <= y0:
        return None
    return (
        slice(y0, y1),
        slice(x0, x1),
        slice(y0 - y, y1 - y),
        slice(x0 - x, x1 - x),
    )


def patch_deviation(
    reference: NumArray, patch: SamplingPatch, x: Int, y: Int, dead_zone: Int
) -> Tuple[float, int]:
    """Compute the mean absolute RGB deviation of a placed patch.

    Parameters
    ----------
    reference : NumArray
        the reference RGB image (signed integers), with the dimensions
        (row, column, channel)
    patch : SamplingPatch
        the sampling patch (same dtype as the reference)
    x : Int
        the column of the reference where the patch origin is placed
    y : Int
        the row of the reference where the patch origin is placed
    dead_zone : Int
        the reference columns below this value are excluded

    Returns
    -------
    deviation : float
        the sum of the absolute red, green and blue differences per valid
        sample, inf if there is no valid sample
    count : int
        the number of valid samples
    """
    region = extract_overlap_region(reference, patch, x, y, dead_zone)
    if region is None:
        return math.inf, 0
    ref_rows, ref_cols, patch_rows, patch_cols = region
    diff = np.abs(reference[ref_rows, ref_cols] - patch.values[patch_rows, patch_cols])
    if patch.mask is None:
        count = diff.shape[0] * diff.shape[1]
        total = int(diff.sum(dtype=np.int64))
    else:
        mask = patch.mask[patch_rows, patch_cols]
        count = int(np.count_nonzero(mask))
        if count < 1:
            return math.inf, 0
        total = int(diff.sum(dtype=np.int64, where=mask[:, :, np.newaxis]))
    return total / count, count
