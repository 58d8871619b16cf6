"""Command-line interface."""
import logging
from pathlib import Path
from typing import Optional
from typing import Tuple

import click
import numpy as np
from PIL import Image

from .merging import merge_fragments
from .progress import TqdmProgressReporter


@click.command()
@click.version_option(package_name="scanstitch")
@click.argument(
    "fragments",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o",
    "--output",
    required=True,
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    help="Path of the merged image.",
)
@click.option(
    "--seam-correction/--no-seam-correction",
    default=False,
    help="Blend the left border of each fragment from the previous ones.",
)
@click.option(
    "--max-deviation",
    type=float,
    default=None,
    help="Exit with status 1 if a merge deviates more than this value.",
)
@click.option("-q", "--quiet", is_flag=True, help="Do not show progress bars.")
@click.option("-v", "--verbose", is_flag=True, help="Log the search details.")
def main(
    fragments: Tuple[Path, ...],
    output: Path,
    seam_correction: bool,
    max_deviation: Optional[float],
    quiet: bool,
    verbose: bool,
) -> None:
    """Merge the scans FRAGMENTS of a page, ordered from left to right."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )
    images = []
    for path in fragments:
        with Image.open(path) as image:
            images.append(np.asarray(image.convert("RGB")))

    reporter = TqdmProgressReporter(disable=quiet)
    try:
        page, grid = merge_fragments(
            images,
            seam_correction=seam_correction,
            reporter=reporter,
            show_progress=not quiet,
        )
    finally:
        reporter.close()
    Image.fromarray(page).save(output)

    for path, row in zip(fragments, grid.itertuples()):
        click.echo(
            f"{path.name}: x={int(row.x)} y={int(row.y)} "
            f"angle={row.angle:.5f} deviation={row.deviation:.4f}"
        )
    click.echo(f"{output}: {page.shape[1]}x{page.shape[0]}")

    if max_deviation is not None and np.any(grid["deviation"] > max_deviation):
        raise click.ClickException(
            f"some fragments deviate more than {max_deviation}"
        )


if __name__ == "__main__":
    main(prog_name="scanstitch")  # pragma: no cover
