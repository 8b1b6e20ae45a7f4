# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Pixel-domain pre-conversions

YCbCr -> RGB and YCCK -> CMYK decoding applied in place to interleaved
8-bit rasters before they are handed to the colour transform engine.
Derived samples are rounded half up and clamped to [0, 255].

Copyright 2025 DNAi inc.
"""

import numpy as np

from colormeta.exceptions import TransformError


def clip8bit(values: np.ndarray) -> np.ndarray:
    """Round half up and clamp to the 8-bit range."""
    return np.clip(np.floor(values + 0.5), 0, 255).astype(np.uint8)


def _ycbcr_planes(samples: np.ndarray, bands: int):
    pixels = samples.reshape(-1, bands).astype(np.float64)
    y = pixels[:, 0]
    cb = pixels[:, 1] - 128.0
    cr = pixels[:, 2] - 128.0
    red = y + 1.402 * cr
    green = y - 0.34414 * cb - 0.71414 * cr
    blue = y + 1.772 * cb
    return pixels, red, green, blue


def _as_samples(data, bands: int) -> np.ndarray:
    samples = np.frombuffer(data, dtype=np.uint8) if not isinstance(data, np.ndarray) else data
    if samples.size % bands:
        raise TransformError(
            f"Raster of {samples.size} samples is not a whole number of {bands}-band pixels"
        )
    return samples


def convert_ycbcr_to_rgb(data) -> None:
    """
    Convert interleaved YCbCr samples to RGB in place.

    Args:
        data: Writable buffer (bytearray or uint8 array) of 3-band pixels

    Raises:
        TransformError: If the buffer is not a whole number of pixels
    """
    samples = _as_samples(data, 3)
    _, red, green, blue = _ycbcr_planes(samples, 3)
    out = samples.reshape(-1, 3)
    out[:, 0] = clip8bit(red)
    out[:, 1] = clip8bit(green)
    out[:, 2] = clip8bit(blue)


def convert_ycck_to_cmyk(data, invert: bool = False) -> None:
    """
    Convert interleaved YCCK samples to CMYK in place.

    CMY are the complements of the RGB decoding of YCbCr; K is kept.
    With `invert`, used for Adobe-style samples, the chroma channels are the
    rounded RGB decoding itself and K is inverted.

    Args:
        data: Writable buffer (bytearray or uint8 array) of 4-band pixels
        invert: Apply Adobe inversion

    Raises:
        TransformError: If the buffer is not a whole number of pixels
    """
    samples = _as_samples(data, 4)
    pixels, red, green, blue = _ycbcr_planes(samples, 4)
    black = pixels[:, 3]

    out = samples.reshape(-1, 4)
    if invert:
        cyan = clip8bit(red)
        magenta = clip8bit(green)
        yellow = clip8bit(blue)
        key = (255 - black).astype(np.uint8)
    else:
        cyan = clip8bit(255.0 - red)
        magenta = clip8bit(255.0 - green)
        yellow = clip8bit(255.0 - blue)
        key = black.astype(np.uint8)

    out[:, 0] = cyan
    out[:, 1] = magenta
    out[:, 2] = yellow
    out[:, 3] = key
