# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Colour transform engine contract and Pillow adapter

The raster pipeline talks to an abstract TransformEngine that builds
Transform objects converting raw pixel samples between two profiles.
PillowTransformEngine implements the contract on top of Pillow's ImageCms
binding to LittleCMS; pixel formats are mapped to Pillow modes here and
nowhere else.

Copyright 2025 DNAi inc.
"""

import logging
from abc import ABC, abstractmethod
from enum import IntEnum, IntFlag

import numpy as np
from PIL import Image, ImageCms

from colormeta.exceptions import TransformError, UnsupportedProfileError
from colormeta.icc_profile import IccProfile
from colormeta.pixel_format import ChannelLayout, ChannelOrder, PixelFormat

logger = logging.getLogger(__name__)


class Intent(IntEnum):
    """ICC rendering intents."""
    PERCEPTUAL = 0
    RELATIVE_COLORIMETRIC = 1
    SATURATION = 2
    ABSOLUTE_COLORIMETRIC = 3


class TransformFlags(IntFlag):
    """Transform creation flags (LittleCMS values)."""
    NONE = 0
    BLACKPOINTCOMPENSATION = 0x2000


class Transform(ABC):
    """
    A colour transform between two pixel formats.

    Transforms hold engine resources and must be released; they can be
    used as context managers.
    """

    @abstractmethod
    def transform(self, input_buffer, output_buffer, pixel_count: int) -> None:
        """
        Convert `pixel_count` pixels from `input_buffer` into `output_buffer`.

        Raises:
            TransformError: If the engine fails
        """

    @abstractmethod
    def release(self) -> None:
        """Free the engine resources held by this transform."""

    def __enter__(self) -> 'Transform':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class TransformEngine(ABC):
    """Factory for colour transforms."""

    @abstractmethod
    def create_transform(self, src_profile: IccProfile, src_format: PixelFormat,
                         dst_profile: IccProfile, dst_format: PixelFormat,
                         intent: Intent = Intent.PERCEPTUAL,
                         flags: TransformFlags = TransformFlags.NONE) -> Transform:
        """
        Build a transform.

        Raises:
            TransformError: If the transform cannot be built
        """


# Pillow modes for each channel layout
PILLOW_MODES = {
    ChannelLayout.GRAY: 'L',
    ChannelLayout.RGB: 'RGB',
    ChannelLayout.CMYK: 'CMYK',
}


def _to_engine_order(samples: np.ndarray, pixel_format: PixelFormat) -> np.ndarray:
    """Convert samples in `pixel_format` to natural interleaved order."""
    if pixel_format.order == ChannelOrder.REVERSED:
        return 255 - samples
    if pixel_format.order == ChannelOrder.SWAPPED:
        return samples.reshape(-1, pixel_format.channels)[:, ::-1].reshape(-1)
    return samples


def _from_engine_order(samples: np.ndarray, pixel_format: PixelFormat) -> np.ndarray:
    """Convert natural interleaved samples to `pixel_format`."""
    # Both conversions are involutions
    return _to_engine_order(samples, pixel_format)


class PillowTransform(Transform):
    """Transform backed by a Pillow ImageCms transform."""

    def __init__(self, cms_transform: ImageCms.ImageCmsTransform,
                 src_format: PixelFormat, dst_format: PixelFormat):
        self._cms_transform = cms_transform
        self.src_format = src_format
        self.dst_format = dst_format

    def transform(self, input_buffer, output_buffer, pixel_count: int) -> None:
        if self._cms_transform is None:
            raise TransformError("Transform has been released")
        if pixel_count <= 0:
            return

        in_size = pixel_count * self.src_format.bytes_per_pixel
        out_size = pixel_count * self.dst_format.bytes_per_pixel
        samples = np.frombuffer(input_buffer, dtype=np.uint8, count=in_size)
        samples = _to_engine_order(samples, self.src_format)

        src_mode = PILLOW_MODES[self.src_format.layout]
        try:
            image = Image.frombytes(src_mode, (pixel_count, 1), samples.tobytes())
            result = ImageCms.applyTransform(image, self._cms_transform)
        except (ImageCms.PyCMSError, ValueError) as e:
            raise TransformError(f"Colour transform failed: {e}") from e

        converted = np.frombuffer(result.tobytes(), dtype=np.uint8)
        converted = _from_engine_order(converted, self.dst_format)
        output_buffer[:out_size] = converted.tobytes()

    def release(self) -> None:
        self._cms_transform = None


class PillowTransformEngine(TransformEngine):
    """
    Transform engine using Pillow's ImageCms (LittleCMS).

    Only 8-bit interleaved formats are supported.
    """

    def create_transform(self, src_profile: IccProfile, src_format: PixelFormat,
                         dst_profile: IccProfile, dst_format: PixelFormat,
                         intent: Intent = Intent.PERCEPTUAL,
                         flags: TransformFlags = TransformFlags.NONE) -> Transform:
        for pixel_format in (src_format, dst_format):
            if pixel_format.planar or pixel_format.bits != 8:
                raise TransformError(f"Pixel format {pixel_format.name} is not supported by Pillow")

        src_mode = PILLOW_MODES[src_format.layout]
        dst_mode = PILLOW_MODES[dst_format.layout]
        logger.debug("Building transform %s -> %s (intent %s, flags 0x%X)",
                     src_format.name, dst_format.name, Intent(intent).name, int(flags))

        try:
            cms_transform = ImageCms.buildTransform(
                src_profile.to_pillow(), dst_profile.to_pillow(),
                src_mode, dst_mode,
                renderingIntent=int(intent), flags=int(flags),
            )
        except (ImageCms.PyCMSError, UnsupportedProfileError) as e:
            raise TransformError(f"Unable to create transform: {e}") from e

        return PillowTransform(cms_transform, src_format, dst_format)
