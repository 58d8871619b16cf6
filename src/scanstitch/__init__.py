"""ScanStitch.

Merges overlapping scans of a page (for example an A3 page scanned as three
A4 fragments) into a single image, with vertical offset and small angle
correction.
"""

from ._alignment_search import MergeResult
from ._alignment_search import SearchOptions
from ._alignment_search import pose_deviation
from ._alignment_search import search_alignment
from ._composition import compose_images
from .merging import PageMerger
from .merging import merge_fragments
from .progress import NullProgressReporter
from .progress import ProgressReporter
from .progress import ProgressSample
from .progress import TqdmProgressReporter

__all__ = [
    "MergeResult",
    "SearchOptions",
    "pose_deviation",
    "search_alignment",
    "compose_images",
    "PageMerger",
    "merge_fragments",
    "NullProgressReporter",
    "ProgressReporter",
    "ProgressSample",
    "TqdmProgressReporter",
]
