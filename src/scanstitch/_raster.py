import numpy as np

from ._typing_utils import Int
from ._typing_utils import NumArray
from ._typing_utils import UInt8Array

WHITE = 255


def as_raster(image: NumArray, name: str = "image") -> UInt8Array:
    """Validate an image array and return it as a uint8 raster.

    Parameters
    ----------
    image : NumArray
        the image, with the dimensions (height, width) for grayscale images or
        (height, width, channel) with 3 (RGB) or 4 (RGBA) channels
    name : str, optional
        the name used in the error messages, by default "image"

    Returns
    -------
    raster : UInt8Array
        the raster with the dimensions (height, width, 3 or 4)

    Raises
    ------
    ValueError
        when the shape is not that of an RGB(A) image, the image has zero area
        or the pixel values fall outside 0..255
    """
    image = np.asarray(image)
    if image.ndim == 2:
        image = np.repeat(image[:, :, np.newaxis], 3, axis=2)
    if image.ndim != 3 or image.shape[2] not in (3, 4):
        raise ValueError(
            f"{name} must have the shape (height, width[, 3|4]), got {image.shape}"
        )
    if image.shape[0] < 1 or image.shape[1] < 1:
        raise ValueError(f"{name} must not be empty, got {image.shape}")
    if image.dtype == np.uint8:
        return image
    if image.dtype == np.bool_ or not np.issubdtype(image.dtype, np.number):
        raise ValueError(f"{name} must be numeric, got {image.dtype}")
    if not np.all(np.isfinite(image)) or np.any(image < 0) or np.any(image > 255):
        raise ValueError(f"{name} values must be within 0..255")
    return image.astype(np.uint8)


def rgb_channels(raster: UInt8Array) -> NumArray:
    """Return the RGB channels as int16, ignoring any alpha channel."""
    return raster[:, :, :3].astype(np.int16)


def flatten_alpha(raster: UInt8Array, background: Int = WHITE) -> UInt8Array:
    """Composite an RGBA raster over a uniform background.

    RGB rasters are returned unchanged.
    """
    if raster.shape[2] == 3:
        return raster
    alpha = raster[:, :, 3:].astype(np.float64) / 255.0
    rgb = raster[:, :, :3].astype(np.float64)
    flat = rgb * alpha + background * (1.0 - alpha)
    return np.clip(np.rint(flat), 0, 255).astype(np.uint8)


def downscale(image: NumArray, scale: Int) -> NumArray:
    """Reduce an image by an integer factor with a box (area) average.

    The rows and columns that do not fill a whole block are dropped, so the
    result has the shape (height // scale, width // scale, channel). The
    average is rounded half up in integer arithmetic, so the result does not
    depend on the platform.

    Parameters
    ----------
    image : NumArray
        the image with the dimensions (height, width, channel)
    scale : Int
        the reduction factor (>= 1)

    Returns
    -------
    image : NumArray
        the reduced image, with the dtype of the input
    """
    assert scale >= 1
    if scale == 1:
        return image
    height = image.shape[0] // scale
    width = image.shape[1] // scale
    blocks = image[: height * scale, : width * scale].astype(np.int64)
    blocks = blocks.reshape(height, scale, width, scale, image.shape[2])
    area = scale * scale
    reduced = (blocks.sum(axis=(1, 3)) + area // 2) // area
    return reduced.astype(image.dtype)
