"""Progress reporting for the alignment search."""
from dataclasses import dataclass
from typing import Optional
from typing import Protocol

from tqdm import tqdm


@dataclass(frozen=True)
class ProgressSample:
    """A snapshot of the alignment search state.

    Attributes
    ----------
    progress : float
        the overall progress, from 0 to 1
    first_scale : int
        the scale reduction of the coarsest level
    scale : int
        the scale reduction of the current level
    x_min, x_max, y_min, y_max : int
        the current search window (half open ranges, in the level's pixels)
    current_x, current_y : int
        the pose being evaluated
    current_angle : float
        the rotation (rad) being evaluated
    best_x, best_y : int
        the best position found so far in the current level
    best_angle : float
        the best rotation (rad) found so far in the current level
    best_deviation : float
        the mean red + green + blue deviation of the best pose, per sample.
        Less is better; below 100 is a good value and below 60 a very good one.
    level_complete : bool
        whether the sample is emitted after the level has been searched
    """

    progress: float
    first_scale: int
    scale: int
    x_min: int
    x_max: int
    y_min: int
    y_max: int
    current_x: int
    current_y: int
    current_angle: float
    best_x: int
    best_y: int
    best_angle: float
    best_deviation: float
    level_complete: bool = False


class ProgressReporter(Protocol):
    """Receives the progress samples of the alignment search.

    The reporter is called synchronously from the search loop; raising an
    exception from ``update`` aborts the search.
    """

    def update(self, sample: ProgressSample) -> None:
        ...


class NullProgressReporter:
    """Ignores every sample."""

    def update(self, sample: ProgressSample) -> None:
        pass


class TqdmProgressReporter:
    """Show the search progress on a tqdm bar.

    A new bar is started for each search and closed once the search ends.

    Parameters
    ----------
    desc : str, optional
        the bar description, by default "searching"
    leave : bool, optional
        whether to keep the bar after ``close``, by default False
    disable : bool, optional
        disables the bar output, by default False
    """

    def __init__(
        self, desc: str = "searching", leave: bool = False, disable: bool = False
    ) -> None:
        self.bar: Optional[tqdm] = None
        self.desc = desc
        self.leave = leave
        self.disable = disable

    def update(self, sample: ProgressSample) -> None:
        if self.bar is None:
            self.bar = tqdm(
                total=100,
                desc=self.desc,
                leave=self.leave,
                disable=self.disable,
                unit="%",
            )
        position = min(100, max(0, int(sample.progress * 100)))
        if position > self.bar.n:
            self.bar.update(position - self.bar.n)
        self.bar.set_postfix(
            scale=sample.scale,
            x=sample.best_x,
            y=sample.best_y,
            dev=f"{sample.best_deviation:.2f}",
            refresh=False,
        )
        if sample.level_complete and sample.scale == 1:
            self.close()

    def close(self) -> None:
        if self.bar is not None:
            self.bar.close()
            self.bar = None
