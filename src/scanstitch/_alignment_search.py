import logging
import math
import numbers
import time
import warnings
from dataclasses import dataclass
from dataclasses import field
from typing import Callable
from typing import List
from typing import Literal
from typing import Optional
from typing import Tuple
from typing import Union
from typing import overload

import pandas as pd

from ._deviation_computation import build_sampling_patch
from ._deviation_computation import patch_deviation
from ._deviation_computation import trial_angle
from ._raster import as_raster
from ._raster import downscale
from ._raster import rgb_channels
from ._typing_utils import Int
from ._typing_utils import NumArray
from .progress import NullProgressReporter
from .progress import ProgressReporter
from .progress import ProgressSample

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergeResult:
    """The pose of the candidate image on the reference image.

    Attributes
    ----------
    x : int
        the column of the reference where the candidate origin is placed
    y : int
        the row of the reference where the candidate origin is placed
    angle : float
        the rotation (rad) of the candidate around its origin. If positive,
        the positive x axis is rotated onto the positive y axis.
    deviation : float
        the mean red + green + blue deviation per sample at this pose.
        Less is better; below 100 is a good value and below 60 a very good
        one. nan if unknown, inf if no sample overlapped.
    """

    x: int
    y: int
    angle: float
    deviation: float = math.nan


@dataclass(frozen=True)
class SearchOptions:
    """The parameters of the alignment search.

    Attributes
    ----------
    target_size : int
        the approximate reference height (px) at the coarsest level
    y_range_floor : int
        the minimum half width of the vertical range at the coarsest level
    y_range_divisor : int
        the vertical half range is the reference height divided by this value
    refine_radius : int
        the half width of the window around the previous best pose
    shears : Tuple[int, ...]
        the horizontal shears (px over the candidate height) tried as rotations
    rotation_max_scale : int
        the rotations other than zero are only tried up to this scale reduction
    dead_zone : int
        the reference columns (in the level's px) excluded from the deviation
    min_sample_width : int
        the minimum width of the sampling rectangle
    min_sample_height : int
        the minimum height of the sampling rectangle
    sample_width_divisor : int
        the sampling width is the reference width divided by this value
    progress_interval : float
        the minimum time (s) between two progress samples
    """

    target_size: int = 300
    y_range_floor: int = 100
    y_range_divisor: int = 20
    refine_radius: int = 4
    shears: Tuple[int, ...] = (-6, -3, 0, 3, 6)
    rotation_max_scale: int = 2
    dead_zone: int = 100
    min_sample_width: int = 200
    min_sample_height: int = 200
    sample_width_divisor: int = 10
    progress_interval: float = 1.0

    def __post_init__(self) -> None:
        for name in ["target_size", "y_range_divisor", "sample_width_divisor"]:
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be positive")
        for name in [
            "y_range_floor",
            "refine_radius",
            "rotation_max_scale",
            "dead_zone",
            "min_sample_width",
            "min_sample_height",
        ]:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if len(self.shears) == 0:
            raise ValueError("shears must contain at least one value")
        if not all(isinstance(s, numbers.Integral) for s in self.shears):
            raise ValueError(f"shears must be integers, got {self.shears}")
        if self.progress_interval < 0:
            raise ValueError("progress_interval must not be negative")
        object.__setattr__(self, "shears", tuple(int(s) for s in self.shears))


@dataclass(frozen=True)
class SearchWindow:
    """The poses searched at one pyramid level (half open ranges)."""

    scale: int
    x_min: int
    x_max: int
    y_min: int
    y_max: int


def compute_initial_scale(height: Int, target_size: Int) -> int:
    """Compute the power of two reducing the height close to the target size.

    Parameters
    ----------
    height : Int
        the reference height
    target_size : Int
        the target height

    Returns
    -------
    scale : int
        the scale reduction, at least 1
    """
    ratio = height // target_size
    if ratio < 1:
        return 1
    return 2 ** int(math.floor(math.log2(ratio) + 0.5))


def compute_initial_window(
    height: Int, width: Int, scale: Int, options: SearchOptions
) -> SearchWindow:
    """Compute the coarsest search window for a reference image size."""
    y_range = height // options.y_range_divisor // scale
    return SearchWindow(
        scale=int(scale),
        x_min=0,
        x_max=int(width // scale),
        y_min=int(min(-y_range, -options.y_range_floor)),
        y_max=int(max(y_range, options.y_range_floor)),
    )


@dataclass
class _SearchContext:
    reporter: ProgressReporter
    interval: float
    first_scale: int
    clock: Callable[[], float] = time.monotonic
    window: Optional[SearchWindow] = None
    last_emission: float = field(default=0.0)

    def __post_init__(self) -> None:
        self.last_emission = self.clock()

    def progress(self, x: Int, y: Int) -> float:
        assert self.window is not None
        steps = math.log2(self.first_scale) + 1
        scale_progress = (
            math.log2(self.first_scale) - math.log2(self.window.scale)
        ) / steps
        x_steps = max(self.window.x_max - self.window.x_min, 1)
        y_steps = max(self.window.y_max - self.window.y_min, 1)
        x_progress = (x - self.window.x_min) / x_steps
        y_progress = (y - self.window.y_min) / y_steps
        return scale_progress + x_progress / steps + y_progress / x_steps / steps

    def emit(
        self,
        progress: float,
        current: Tuple[int, int, float],
        best: Tuple[int, int, float],
        best_deviation: float,
        level_complete: bool = False,
    ) -> None:
        assert self.window is not None
        sample = ProgressSample(
            progress,
            self.first_scale,
            self.window.scale,
            self.window.x_min,
            self.window.x_max,
            self.window.y_min,
            self.window.y_max,
            *current,
            *best,
            best_deviation,
            level_complete,
        )
        self.reporter.update(sample)
        self.last_emission = self.clock()

    def tick(
        self,
        current: Tuple[int, int, float],
        best: Tuple[int, int, float],
        best_deviation: float,
    ) -> None:
        if self.clock() - self.last_emission <= self.interval:
            return
        progress = self.progress(current[0], current[1])
        logger.debug(
            "progress %.1f%%: current x=%d, y=%d, angle=%.5f; "
            "best x=%d, y=%d, angle=%.5f, dev=%.8f",
            progress * 100,
            *current,
            *best,
            best_deviation,
        )
        self.emit(progress, current, best, best_deviation)

    def complete_level(
        self, best: Tuple[int, int, float], best_deviation: float
    ) -> None:
        assert self.window is not None
        steps = math.log2(self.first_scale) + 1
        progress = (
            math.log2(self.first_scale) - math.log2(self.window.scale) + 1
        ) / steps
        self.emit(progress, best, best, best_deviation, level_complete=True)


@overload
def search_alignment(
    reference: NumArray,
    candidate: NumArray,
    options: Optional[SearchOptions] = ...,
    reporter: Optional[ProgressReporter] = ...,
    full_output: Literal[False] = ...,
    clock: Callable[[], float] = ...,
) -> MergeResult:
    ...


@overload
def search_alignment(
    reference: NumArray,
    candidate: NumArray,
    options: Optional[SearchOptions] = ...,
    reporter: Optional[ProgressReporter] = ...,
    *,
    full_output: Literal[True],
    clock: Callable[[], float] = ...,
) -> Tuple[MergeResult, pd.DataFrame]:
    ...


@overload
def search_alignment(
    reference: NumArray,
    candidate: NumArray,
    options: Optional[SearchOptions] = ...,
    reporter: Optional[ProgressReporter] = ...,
    full_output: bool = ...,
    clock: Callable[[], float] = ...,
) -> Union[MergeResult, Tuple[MergeResult, pd.DataFrame]]:
    ...


def search_alignment(
    reference: NumArray,
    candidate: NumArray,
    options: Optional[SearchOptions] = None,
    reporter: Optional[ProgressReporter] = None,
    full_output: bool = False,
    clock: Callable[[], float] = time.monotonic,
) -> Union[MergeResult, Tuple[MergeResult, pd.DataFrame]]:
    """Search the pose of a candidate image on the right of a reference image.

    The poses are searched coarse to fine: the images are reduced by a power
    of two, a wide window is searched exhaustively, and the window is then
    narrowed around the best pose while the reduction is halved down to the
    native resolution. Rotations are only tried at the finest levels.

    Parameters
    ----------
    reference : NumArray
        the reference image, with the dimensions (row, column[, channel])
    candidate : NumArray
        the candidate image, located on the right of the reference
    options : SearchOptions, optional
        the search parameters, by default SearchOptions()
    reporter : ProgressReporter, optional
        receives the progress samples, by default none
    full_output : bool, default False
        if True, also returns the per-level results in a pd.DataFrame
    clock : Callable[[], float], optional
        the time source for the progress throttling, by default time.monotonic

    Returns
    -------
    result : MergeResult
        the best pose at the native resolution, with its deviation

    levels : pd.DataFrame
        only if full_output. One row per level, with the columns "scale",
        "x_min", "x_max", "y_min", "y_max", "sample_width", "sample_height",
        "x", "y", "angle" and "deviation" (in the level's pixels)

    Raises
    ------
    ValueError
        when either image is empty or is not an RGB(A) image
    """
    reference = as_raster(reference, "reference")
    candidate = as_raster(candidate, "candidate")
    if options is None:
        options = SearchOptions()
    if reporter is None:
        reporter = NullProgressReporter()

    reference_rgb = rgb_channels(reference)
    candidate_rgb = rgb_channels(candidate)
    ref_h, ref_w = reference_rgb.shape[:2]

    first_scale = compute_initial_scale(ref_h, options.target_size)
    window = compute_initial_window(ref_h, ref_w, first_scale, options)
    context = _SearchContext(reporter, options.progress_interval, first_scale, clock)

    best_x, best_y, best_angle = 0, 0, 0.0
    best_deviation = math.inf
    levels: List[dict] = []

    while window.scale >= 1:
        scale = window.scale
        context.window = window
        logger.info("searching at scale reduction %d", scale)

        reference_scaled = downscale(reference_rgb, scale)
        candidate_scaled = downscale(candidate_rgb, scale)
        sample_width = max(
            reference_scaled.shape[1] // options.sample_width_divisor,
            options.min_sample_width,
        )
        sample_height = max(reference_scaled.shape[0], options.min_sample_height)
        patches = [
            build_sampling_patch(
                candidate_scaled,
                sample_width,
                sample_height,
                trial_angle(shear, candidate_scaled.shape[0]),
            )
            for shear in options.shears
            if shear == 0 or scale <= options.rotation_max_scale
        ]

        best_deviation = math.inf
        for x in range(window.x_min, window.x_max):
            for y in range(window.y_min, window.y_max):
                for patch in patches:
                    context.tick(
                        (x, y, patch.angle),
                        (best_x, best_y, best_angle),
                        best_deviation,
                    )
                    deviation, _ = patch_deviation(
                        reference_scaled, patch, x, y, options.dead_zone
                    )
                    if deviation < best_deviation:
                        best_deviation = deviation
                        best_x, best_y, best_angle = x, y, patch.angle

        if math.isinf(best_deviation):
            warnings.warn(
                f"no overlapping sample found at scale reduction {scale}; "
                "keeping the previous pose"
            )
        logger.info(
            "resulting position: x=%d, y=%d, angle=%.5f rad, dev=%.8f, scale=%d",
            best_x,
            best_y,
            best_angle,
            best_deviation,
            scale,
        )
        context.complete_level((best_x, best_y, best_angle), best_deviation)
        levels.append(
            {
                "scale": scale,
                "x_min": window.x_min,
                "x_max": window.x_max,
                "y_min": window.y_min,
                "y_max": window.y_max,
                "sample_width": sample_width,
                "sample_height": sample_height,
                "x": best_x,
                "y": best_y,
                "angle": best_angle,
                "deviation": best_deviation,
            }
        )

        r = options.refine_radius
        next_window = SearchWindow(
            scale=scale // 2,
            x_min=best_x * 2 - r,
            x_max=best_x * 2 + r,
            y_min=best_y * 2 - r,
            y_max=best_y * 2 + r,
        )
        if scale > 1:
            best_x *= 2
            best_y *= 2
        window = next_window

    result = MergeResult(best_x, best_y, best_angle, best_deviation)
    if full_output:
        return result, pd.DataFrame(levels)
    else:
        return result


def pose_deviation(
    reference: NumArray,
    candidate: NumArray,
    result: MergeResult,
    options: Optional[SearchOptions] = None,
) -> float:
    """Compute the deviation of a pose at the native resolution.

    The samples are taken the same way as in the search at the finest level.

    Parameters
    ----------
    reference : NumArray
        the reference image
    candidate : NumArray
        the candidate image
    result : MergeResult
        the pose to evaluate
    options : SearchOptions, optional
        the search parameters, by default SearchOptions()

    Returns
    -------
    deviation : float
        the mean red + green + blue deviation per sample, inf if no sample
        overlaps
    """
    reference = as_raster(reference, "reference")
    candidate = as_raster(candidate, "candidate")
    if options is None:
        options = SearchOptions()
    reference_rgb = rgb_channels(reference)
    sample_width = max(
        reference_rgb.shape[1] // options.sample_width_divisor,
        options.min_sample_width,
    )
    sample_height = max(reference_rgb.shape[0], options.min_sample_height)
    patch = build_sampling_patch(
        rgb_channels(candidate), sample_width, sample_height, result.angle
    )
    deviation, _ = patch_deviation(
        reference_rgb, patch, result.x, result.y, options.dead_zone
    )
    return deviation
