import logging
import math
from typing import Tuple

import numpy as np
from scipy import ndimage

from ._alignment_search import MergeResult
from ._raster import WHITE
from ._raster import as_raster
from ._raster import flatten_alpha
from ._typing_utils import FloatArray
from ._typing_utils import Int
from ._typing_utils import NumArray
from ._typing_utils import UInt8Array

logger = logging.getLogger(__name__)

IGNORE_WIDTH = 100
FEATHER_WIDTH = 50


def rotate_candidate(
    candidate: UInt8Array,
    angle: float,
    origin: Tuple[Int, Int],
    shape: Tuple[Int, Int],
) -> Tuple[FloatArray, FloatArray]:
    """Rotate the candidate around its top left corner with bilinear sampling.

    Parameters
    ----------
    candidate : UInt8Array
        the candidate image, with the dimensions (row, column, 3 or 4)
    angle : float
        the rotation (rad). If positive, the positive x axis is rotated onto
        the positive y axis.
    origin : Tuple[Int, Int]
        the (row, column) of the rotated image at the first output pixel
    shape : Tuple[Int, Int]
        the output (row, column) size

    Returns
    -------
    premultiplied : FloatArray
        the rotated RGB values multiplied by the coverage,
        with the dimensions (row, column, 3)
    coverage : FloatArray
        the opacity of the rotated candidate, with the dimensions (row, column)
    """
    if candidate.shape[2] == 4:
        alpha = candidate[:, :, 3].astype(np.float64) / 255.0
    else:
        alpha = np.ones(candidate.shape[:2], dtype=np.float64)
    premultiplied = candidate[:, :, :3].astype(np.float64) * alpha[:, :, np.newaxis]

    row0, col0 = origin
    if angle == 0:
        rows = slice(row0, row0 + shape[0])
        cols = slice(col0, col0 + shape[1])
        out_values = np.zeros(tuple(shape) + (3,), dtype=np.float64)
        out_coverage = np.zeros(tuple(shape), dtype=np.float64)
        part = premultiplied[rows, cols]
        out_values[: part.shape[0], : part.shape[1]] = part
        out_coverage[: part.shape[0], : part.shape[1]] = alpha[rows, cols]
        return out_values, out_coverage

    cos = math.cos(angle)
    sin = math.sin(angle)
    # output (row, column) -> input (row, column), with the inverse rotation
    matrix = np.array([[cos, -sin], [sin, cos]])
    offset = matrix @ np.array([row0, col0], dtype=np.float64)

    def transform(channel: FloatArray) -> FloatArray:
        return ndimage.affine_transform(
            channel,
            matrix,
            offset=offset,
            output_shape=tuple(shape),
            order=1,
            mode="grid-constant",
            cval=0.0,
        )

    out_values = np.stack(
        [transform(premultiplied[:, :, c]) for c in range(3)], axis=-1
    )
    out_coverage = np.clip(transform(alpha), 0.0, 1.0)
    return out_values, out_coverage


def correct_left_seam(
    composed: UInt8Array,
    reference: UInt8Array,
    x: Int,
    y: Int,
    ignore_width: Int = IGNORE_WIDTH,
    feather_width: Int = FEATHER_WIDTH,
) -> UInt8Array:
    """Replace the left border of the placed candidate by the reference.

    The first ``ignore_width`` columns of the candidate show the reference,
    and the next ``feather_width`` columns blend linearly from the reference
    to the candidate.

    Parameters
    ----------
    composed : UInt8Array
        the composed image, updated in place
    reference : UInt8Array
        the RGB reference image
    x : Int
        the column of the candidate origin
    y : Int
        the row of the candidate origin
    ignore_width : Int, optional
        the width of the band keeping the reference, by default 100
    feather_width : Int, optional
        the width of the blending band, by default 50

    Returns
    -------
    composed : UInt8Array
        the updated composed image
    """
    height, width = composed.shape[:2]
    ref_h, ref_w = reference.shape[:2]
    col0 = max(x, 0)
    col1 = min(x + ignore_width + feather_width, ref_w, width)
    row0 = max(y, 0)
    row1 = min(ref_h, height, y + height)
    if col1 <= col0 or row1 <= row0:
        return composed

    offsets = np.arange(col0 - x, col1 - x)
    if feather_width > 0:
        factor = np.clip((offsets - ignore_width) / feather_width, 0.0, 1.0)
    else:
        factor = (offsets >= ignore_width).astype(np.float64)
    factor = factor[np.newaxis, :, np.newaxis]

    kept = reference[row0:row1, col0:col1].astype(np.float64)
    placed = composed[row0:row1, col0:col1].astype(np.float64)
    blended = np.trunc(kept * (1.0 - factor) + placed * factor)
    composed[row0:row1, col0:col1] = np.clip(blended, 0, 255).astype(np.uint8)
    return composed


def compose_images(
    reference: NumArray,
    candidate: NumArray,
    result: MergeResult,
    seam_correction: bool = False,
    ignore_width: Int = IGNORE_WIDTH,
    feather_width: Int = FEATHER_WIDTH,
) -> UInt8Array:
    """Compose the candidate image onto the reference image.

    Parameters
    ----------
    reference : NumArray
        the reference image, placed at the origin
    candidate : NumArray
        the candidate image, rotated and placed at the pose
    result : MergeResult
        the pose of the candidate
    seam_correction : bool, default False
        if True, the left border of the candidate is replaced by the
        reference and blended gradually (see ``correct_left_seam``)
    ignore_width : Int, optional
        the seam band keeping the reference, by default 100
    feather_width : Int, optional
        the seam band blending to the candidate, by default 50

    Returns
    -------
    composed : UInt8Array
        the composed RGB image, with the size (y + candidate height,
        x + candidate width) and a white background

    Raises
    ------
    ValueError
        when an image is invalid or the pose leaves no canvas
    """
    reference = flatten_alpha(as_raster(reference, "reference"))
    candidate = as_raster(candidate, "candidate")
    cand_h, cand_w = candidate.shape[:2]
    height = result.y + cand_h
    width = result.x + cand_w
    if height < 1 or width < 1:
        raise ValueError(
            f"the pose (x={result.x}, y={result.y}) leaves an empty canvas"
        )
    logger.info("composing %dx%d image", width, height)

    composed = np.full((height, width, 3), WHITE, dtype=np.uint8)
    ref_h = min(reference.shape[0], height)
    ref_w = min(reference.shape[1], width)
    composed[:ref_h, :ref_w] = reference[:ref_h, :ref_w]

    row0 = max(result.y, 0)
    col0 = max(result.x, 0)
    premultiplied, coverage = rotate_candidate(
        candidate,
        result.angle,
        (row0 - result.y, col0 - result.x),
        (height - row0, width - col0),
    )
    underlying = composed[row0:, col0:].astype(np.float64)
    painted = premultiplied + underlying * (1.0 - coverage[:, :, np.newaxis])
    composed[row0:, col0:] = np.clip(np.rint(painted), 0, 255).astype(np.uint8)

    if seam_correction:
        composed = correct_left_seam(
            composed, reference, result.x, result.y, ignore_width, feather_width
        )
    return composed
