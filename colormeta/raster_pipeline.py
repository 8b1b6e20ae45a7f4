# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Raster transform pipeline

Runs the pixel-domain pre-conversion over a whole raster and then streams
it one scanline at a time through a colour transform, so that transient
buffers never exceed a single line.

Copyright 2025 DNAi inc.
"""

import logging

from colormeta.exceptions import TransformError
from colormeta.icc_profile import IccProfile
from colormeta.pixel_conversion import convert_ycbcr_to_rgb, convert_ycck_to_cmyk
from colormeta.pixel_format import PixelFormat
from colormeta.profile_policy import PreConversion, ProfileResolution
from colormeta.transform_engine import Intent, TransformEngine, TransformFlags

logger = logging.getLogger(__name__)


class Raster:
    """
    An interleaved 8-bit raster.

    Attributes:
        width: Pixels per line
        height: Number of lines
        bands: Samples per pixel
        data: width * height * bands bytes, line by line
        pre_converted: True when the decoder has already applied the
            YCbCr/YCCK decoding the metadata calls for
    """

    def __init__(self, width: int, height: int, bands: int, data=None,
                 pre_converted: bool = False):
        if width < 0 or height < 0 or bands <= 0:
            raise TransformError(f"Invalid raster geometry {width}x{height}x{bands}")

        size = width * height * bands
        if data is None:
            data = bytearray(size)
        elif not isinstance(data, bytearray):
            data = bytearray(data)
        if len(data) != size:
            raise TransformError(
                f"Raster data has {len(data)} bytes, expected {size} for {width}x{height}x{bands}"
            )

        self.width = width
        self.height = height
        self.bands = bands
        self.data = data
        self.pre_converted = pre_converted

    @property
    def line_size(self) -> int:
        return self.width * self.bands

    def line(self, y: int) -> memoryview:
        start = y * self.line_size
        return memoryview(self.data)[start:start + self.line_size]

    def __repr__(self) -> str:
        return f"Raster({self.width}x{self.height}x{self.bands})"


class RasterTransformPipeline:
    """
    Applies pre-conversion and a colour transform to rasters.
    """

    def __init__(self, engine: TransformEngine):
        """
        Initialize the pipeline.

        Args:
            engine: Initialized transform engine
        """
        self.engine = engine

    @staticmethod
    def pre_convert(raster: Raster, pre_conversion: PreConversion) -> None:
        """
        Apply a pixel-domain pre-conversion in place.

        Raises:
            TransformError: If the raster band count does not fit the conversion
        """
        if pre_conversion == PreConversion.NONE:
            return
        if raster.pre_converted:
            logger.debug("Raster already decoded, skipping %s", pre_conversion.value)
            return

        if pre_conversion == PreConversion.YCBCR_TO_RGB:
            if raster.bands != 3:
                raise TransformError("YCbCr conversion requires a 3-band raster")
            convert_ycbcr_to_rgb(raster.data)
        elif pre_conversion == PreConversion.YCCK_TO_CMYK:
            if raster.bands != 4:
                raise TransformError("YCCK conversion requires a 4-band raster")
            convert_ycck_to_cmyk(raster.data, invert=True)
        raster.pre_converted = True

    def run(self, raster: Raster, resolution: ProfileResolution,
            destination_profile: IccProfile, output_format: PixelFormat,
            output_bands: int, intent: Intent = Intent.PERCEPTUAL,
            flags: TransformFlags = TransformFlags.NONE) -> Raster:
        """
        Transform a raster into the destination colour space.

        The input raster is pre-converted in place.

        Args:
            raster: Source raster
            resolution: Input profile resolution from the policy
            destination_profile: Destination profile
            output_format: Output pixel format
            output_bands: Output samples per pixel

        Returns:
            New raster in the destination colour space

        Raises:
            TransformError: If the transform cannot be built or fails
        """
        if raster.bands != resolution.input_format.channels:
            raise TransformError(
                f"Raster has {raster.bands} bands but {resolution.input_format.name} "
                f"expects {resolution.input_format.channels}"
            )

        self.pre_convert(raster, resolution.pre_conversion)

        output = Raster(raster.width, raster.height, output_bands)
        transform = self.engine.create_transform(
            resolution.input_profile, resolution.input_format,
            destination_profile, output_format, intent, flags,
        )
        try:
            in_buffer = bytearray(raster.line_size)
            out_buffer = bytearray(output.line_size)
            for y in range(raster.height):
                in_buffer[:] = raster.line(y)
                transform.transform(in_buffer, out_buffer, raster.width)
                output.line(y)[:] = out_buffer
        finally:
            transform.release()

        logger.debug("Transformed %r -> %r", raster, output)
        return output
