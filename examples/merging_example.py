# coding: utf-8
import sys
from os import path

import numpy as np
from PIL import Image

import scanstitch

script_path = path.dirname(path.realpath(__file__))

# the scans, ordered from the left side to the right side of the page
fragment_paths = sys.argv[1:]
fragments = []
for fragment_path in fragment_paths:
    with Image.open(fragment_path) as image:
        fragments.append(np.asarray(image.convert("RGB")))

print([fragment.shape for fragment in fragments])
# each fragment has the dimensions (row, column, channel)

reporter = scanstitch.TqdmProgressReporter()
page, grid = scanstitch.merge_fragments(
    fragments, seam_correction=True, reporter=reporter
)

print(grid[["x", "y", "angle", "deviation"]])
# the position (px) and skew (rad) of each fragment on the page,
# with the mean RGB deviation of the overlap (less than 100 is good)

result_image_file_path = path.join(script_path, "merged_page.png")
Image.fromarray(page).save(result_image_file_path)

# alternatively, the search and the composition can be done step by step,
# for example to stop at the first poor match
merger = scanstitch.PageMerger(fragments[0], seam_correction=True)
for fragment in fragments[1:]:
    result = merger.search(fragment)
    if result.deviation > 100:
        print(f"poor match at x={result.x}, y={result.y}: {result.deviation:.1f}")
        break
    merger.reference = merger.compose(fragment, result)

step_image_file_path = path.join(script_path, "merged_page_step_by_step.png")
Image.fromarray(merger.reference).save(step_image_file_path)
