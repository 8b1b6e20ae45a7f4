# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Raster decoding and encoding through Pillow

Decodes image files into interleaved 8-bit rasters in the sample encoding
the profile policy expects, and encodes rasters back to JPEG or PNG with
the ICC profile and resolution embedded by the container rewriters.

Pillow hands out JPEG samples after libjpeg's own colour handling:
- 3-component JPEGs are decoded in draft "YCbCr" mode when the raw YCbCr
  samples are wanted. If libjpeg stores the components as RGB the draft has
  no effect and the raster is marked as already converted.
- 4-component JPEGs are always inverted by Pillow (Adobe convention), so
  the stored samples are recovered by complementing them again.
- YCCK JPEGs are converted to CMYK by libjpeg; the raster is marked as
  already converted and carries the plain CMYK samples.

Copyright 2025 DNAi inc.
"""

import logging
import shutil
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from colormeta.exceptions import FormatError, TransformError
from colormeta.file_utils import atomic_output, staged_file
from colormeta.icc_profile import IccProfile
from colormeta.image_metadata import ImageMetadata
from colormeta.jpeg_modifier import JPEGModifier
from colormeta.jpeg_parser import ADOBE_TRANSFORM_YCCK, JPEGMetadata
from colormeta.png_writer import PNGWriter
from colormeta.raster_pipeline import Raster

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Raster bands -> Pillow mode
BAND_MODES = {
    1: 'L',
    3: 'RGB',
    4: 'CMYK',
}

MODE_BANDS = {mode: bands for bands, mode in BAND_MODES.items()}

# Pillow modes delivered as single-band gray rasters
GRAY_MODES = ('1', 'L', 'LA', 'I', 'I;16', 'I;16B', 'I;16L', 'F')


def _target_mode(mode: str) -> str:
    if mode in GRAY_MODES:
        return 'L'
    if mode == 'CMYK':
        return 'CMYK'
    return 'RGB'


def source_bands(metadata: ImageMetadata) -> int:
    """
    Number of bands `read_raster` will deliver for an image.

    Raises:
        FormatError: If Pillow cannot identify the image
        OSError: If the file cannot be read
    """
    if isinstance(metadata, JPEGMetadata) and metadata.num_components in BAND_MODES:
        return metadata.num_components

    try:
        with Image.open(metadata.file_path) as im:
            return MODE_BANDS[_target_mode(im.mode)]
    except UnidentifiedImageError as e:
        raise FormatError(f"Unrecognized image data: {e}") from e


def read_raster(metadata: ImageMetadata, decode_ycbcr: bool = False) -> Raster:
    """
    Decode an image file into a raster.

    Args:
        metadata: Parsed metadata of the file (its path is decoded)
        decode_ycbcr: Deliver raw YCbCr samples for 3-component JPEGs

    Returns:
        Raster with 1, 3 or 4 bands

    Raises:
        FormatError: If Pillow cannot decode the image
        OSError: If the file cannot be read
    """
    if metadata.file_path is None:
        raise FormatError("Metadata has no source file to decode")

    try:
        with Image.open(metadata.file_path) as im:
            if isinstance(metadata, JPEGMetadata):
                return _read_jpeg(im, metadata, decode_ycbcr)
            return _read_generic(im)
    except UnidentifiedImageError as e:
        raise FormatError(f"Unrecognized image data: {e}") from e


def _read_jpeg(im: Image.Image, metadata: JPEGMetadata, decode_ycbcr: bool) -> Raster:
    pre_converted = False

    if im.mode == 'RGB' and decode_ycbcr:
        im.draft('YCbCr', im.size)
        if im.mode != 'YCbCr':
            logger.debug("JPEG components are stored as RGB; no YCbCr decoding needed")
            pre_converted = True

    im.load()
    width, height = im.size
    data = bytearray(im.tobytes())

    if im.mode == 'CMYK':
        if metadata.adobe_app14_found and metadata.adobe_transform == ADOBE_TRANSFORM_YCCK:
            pre_converted = True
        else:
            samples = np.frombuffer(data, dtype=np.uint8)
            data = bytearray((255 - samples).tobytes())
    elif im.mode not in ('L', 'RGB', 'YCbCr'):
        raise TransformError(f"Unsupported JPEG mode {im.mode}")

    bands = len(im.getbands())
    return Raster(width, height, bands, data, pre_converted=pre_converted)


def _read_generic(im: Image.Image) -> Raster:
    target = _target_mode(im.mode)
    if im.mode != target:
        logger.debug("Converting %s raster to %s", im.mode, target)
        im = im.convert(target)
    width, height = im.size
    return Raster(width, height, MODE_BANDS[target], bytearray(im.tobytes()))


def raster_to_image(raster: Raster) -> Image.Image:
    """
    Wrap a raster in a Pillow image.

    Raises:
        TransformError: If the band count has no Pillow mode
    """
    mode = BAND_MODES.get(raster.bands)
    if mode is None:
        raise TransformError(f"No image mode for {raster.bands}-band rasters")
    return Image.frombytes(mode, (raster.width, raster.height), bytes(raster.data))


def write_jpeg(raster: Raster, output_path: PathLike, quality: float = 1.0,
               profile: Optional[IccProfile] = None, dpi: float = 0) -> None:
    """
    Encode a raster as JPEG and embed the profile and resolution.

    The encoded image is staged next to the destination and only moved
    into place once the metadata has been embedded, so a failure leaves
    no output behind.

    Args:
        raster: Raster to encode
        output_path: Destination file
        quality: Encoder quality in 0..1
        profile: Profile to embed, if any
        dpi: Resolution to embed, or 0

    Raises:
        TransformError: If the raster cannot be encoded
        MetadataWriteError: If the profile or resolution cannot be embedded
        OSError: If writing fails
    """
    image = raster_to_image(raster)
    quality = min(max(quality, 0.0), 1.0)
    with staged_file(output_path) as staged:
        image.save(staged, format='JPEG', quality=int(round(quality * 100)))
        if not JPEGModifier().embed_metadata(staged, profile=profile, dpi=dpi,
                                             output_path=output_path):
            _publish(staged, output_path)


def write_png(raster: Raster, output_path: PathLike,
              profile: Optional[IccProfile] = None, dpi: float = 0) -> None:
    """
    Encode a raster as PNG and embed the profile and resolution.

    Raises:
        TransformError: If the raster cannot be encoded
        MetadataWriteError: If the profile or resolution cannot be embedded
        OSError: If writing fails
    """
    image = raster_to_image(raster)
    with staged_file(output_path) as staged:
        image.save(staged, format='PNG')
        if not PNGWriter().embed_metadata(staged, profile=profile, dpi=dpi,
                                          output_path=output_path):
            _publish(staged, output_path)


def _publish(staged: str, output_path: PathLike) -> None:
    with atomic_output(output_path) as out:
        with open(staged, 'rb') as src:
            shutil.copyfileobj(src, out)
