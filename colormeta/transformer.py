# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
ICC transformer

High-level colour conversion: parse the source container, resolve the
source profile and pre-conversion, decode the raster, stream it through
the transform engine and encode the result with the destination profile
and the source resolution embedded.

Copyright 2025 DNAi inc.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from colormeta.exceptions import UnsupportedFormatError, UnsupportedProfileError
from colormeta.icc_profile import ColorSpaceType, IccProfile
from colormeta.image_metadata import ImageMetadata, read_metadata
from colormeta.profile_policy import PreConversion, ProfileResolutionPolicy
from colormeta.raster_io import read_raster, source_bands, write_jpeg, write_png
from colormeta.raster_pipeline import Raster, RasterTransformPipeline
from colormeta.standard_profiles import adobe_rgb_profile, gray_profile, srgb_profile
from colormeta.transform_engine import (
    Intent,
    PillowTransformEngine,
    TransformEngine,
    TransformFlags,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

JPEG_SUFFIXES = ('.jpg', '.jpeg', '.jpe', '.jfif')
PNG_SUFFIXES = ('.png',)


class TransformerConfig:
    """
    Configuration for colour transformations.

    Defaults: relative colorimetric intent, black point compensation on,
    embedded profiles honoured, JPEG quality 1.0, gray gamma 2.2 and sRGB
    as gray/RGB defaults. No CMYK default is set.
    """

    def __init__(self):
        """Initialize with default settings."""
        self.intent = Intent.RELATIVE_COLORIMETRIC
        self.black_point_compensation = True
        self.use_embedded_profiles = True
        self._jpeg_quality = 1.0
        self._default_gray: Optional[IccProfile] = None
        self._default_rgb: Optional[IccProfile] = None
        self._default_cmyk: Optional[IccProfile] = None

    @property
    def jpeg_quality(self) -> float:
        return self._jpeg_quality

    @jpeg_quality.setter
    def jpeg_quality(self, value: float) -> None:
        # Clamped to 0..1
        self._jpeg_quality = min(max(float(value), 0.0), 1.0)

    @property
    def flags(self) -> TransformFlags:
        if self.black_point_compensation:
            return TransformFlags.BLACKPOINTCOMPENSATION
        return TransformFlags.NONE

    def default_gray(self) -> IccProfile:
        return self._default_gray if self._default_gray is not None else gray_profile()

    def default_rgb(self) -> IccProfile:
        return self._default_rgb if self._default_rgb is not None else srgb_profile()

    def default_cmyk(self) -> Optional[IccProfile]:
        return self._default_cmyk

    def set_default_gray(self, profile: IccProfile) -> None:
        self._default_gray = self._check_space(profile, ColorSpaceType.GRAY)

    def set_default_rgb(self, profile: IccProfile) -> None:
        self._default_rgb = self._check_space(profile, ColorSpaceType.RGB)

    def set_default_cmyk(self, profile: IccProfile) -> None:
        self._default_cmyk = self._check_space(profile, ColorSpaceType.CMYK)

    @staticmethod
    def _check_space(profile: IccProfile, expected: ColorSpaceType) -> IccProfile:
        space = profile.colorspace_type()
        if space != expected:
            raise UnsupportedProfileError(
                f"Expected a {expected} profile, got a {space} profile"
            )
        return profile

    def make_policy(self) -> ProfileResolutionPolicy:
        """Build the input profile policy for these settings."""
        return ProfileResolutionPolicy(
            default_gray=self.default_gray,
            default_rgb=self.default_rgb,
            default_cmyk=self.default_cmyk,
            srgb=srgb_profile,
            adobe_rgb=adobe_rgb_profile,
            use_embedded_profiles=self.use_embedded_profiles,
        )


class IccTransformer:
    """
    Converts images into the colour space of a destination profile.
    """

    def __init__(self, destination_profile: IccProfile,
                 config: Optional[TransformerConfig] = None,
                 engine: Optional[TransformEngine] = None):
        """
        Initialize the transformer.

        Args:
            destination_profile: Gray or RGB profile to convert into
            config: Transformation settings (defaults if omitted)
            engine: Transform engine (Pillow/LittleCMS if omitted)

        Raises:
            UnsupportedProfileError: If the destination is neither gray nor RGB
        """
        self.destination_profile = destination_profile
        self.config = config if config is not None else TransformerConfig()
        self.engine = engine if engine is not None else PillowTransformEngine()
        self.output_format, self.output_bands = \
            ProfileResolutionPolicy.resolve_output(destination_profile)

    def transform_raster(self, raster: Raster, metadata: ImageMetadata) -> Raster:
        """
        Transform a decoded raster.

        The raster must carry the samples as stored in the source file;
        pre-conversion is applied to it in place.

        Args:
            raster: Source raster
            metadata: Metadata of the source image

        Returns:
            Raster in the destination colour space

        Raises:
            TransformError: If the raster cannot be transformed
            UnsupportedProfileError: If a required default profile is missing
        """
        policy = self.config.make_policy()
        resolution = policy.resolve_input(metadata, raster.bands)
        pipeline = RasterTransformPipeline(self.engine)
        return pipeline.run(
            raster, resolution, self.destination_profile,
            self.output_format, self.output_bands,
            self.config.intent, self.config.flags,
        )

    def transform_file(self, source_path: PathLike) -> Raster:
        """
        Decode and transform an image file.

        Args:
            source_path: Image file

        Returns:
            Raster in the destination colour space

        Raises:
            FormatError: If the file cannot be parsed or decoded
            TransformError: If the raster cannot be transformed
            OSError: If the file cannot be read
        """
        metadata = read_metadata(source_path)
        return self._transform_metadata(metadata)

    def _transform_metadata(self, metadata: ImageMetadata) -> Raster:
        policy = self.config.make_policy()
        bands = source_bands(metadata)
        resolution = policy.resolve_input(metadata, bands)

        raster = read_raster(
            metadata,
            decode_ycbcr=resolution.pre_conversion == PreConversion.YCBCR_TO_RGB,
        )
        logger.debug("Decoded %r from %s", raster, metadata.file_path)

        pipeline = RasterTransformPipeline(self.engine)
        return pipeline.run(
            raster, resolution, self.destination_profile,
            self.output_format, self.output_bands,
            self.config.intent, self.config.flags,
        )

    def transform_file_to(self, source_path: PathLike, output_path: PathLike) -> None:
        """
        Convert an image file and write the result.

        The output format follows the destination suffix (JPEG or PNG).
        The destination profile and the source resolution are embedded.
        Only the horizontal resolution is carried; both axes of the output
        get that value.

        Args:
            source_path: Source image file
            output_path: Destination .jpg/.jpeg or .png file

        Raises:
            UnsupportedFormatError: If the destination suffix is not JPEG or PNG
            FormatError: If the source cannot be parsed or decoded
            TransformError: If the raster cannot be transformed
            OSError: If reading or writing fails
        """
        suffix = Path(output_path).suffix.lower()
        if suffix not in JPEG_SUFFIXES + PNG_SUFFIXES:
            raise UnsupportedFormatError(f"Cannot write '{suffix}' files; use JPEG or PNG")

        metadata = read_metadata(source_path)
        result = self._transform_metadata(metadata)
        dpi = metadata.horizontal_dpi
        if metadata.vertical_dpi and metadata.vertical_dpi != dpi:
            logger.warning("%s has %s x %s dpi; writing %s dpi on both axes",
                           source_path, dpi, metadata.vertical_dpi, dpi)

        if suffix in JPEG_SUFFIXES:
            write_jpeg(result, output_path, self.config.jpeg_quality,
                       self.destination_profile, dpi)
        else:
            write_png(result, output_path, self.destination_profile, dpi)
        logger.info("Converted %s -> %s", source_path, output_path)
