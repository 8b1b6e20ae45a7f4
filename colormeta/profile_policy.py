# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Profile resolution policy

Decides, from parsed container metadata and the raster band count, which
pixel format and source profile a raster should be transformed from, and
which pixel-domain pre-conversion must run first. Also derives the output
pixel format from the destination profile.

Copyright 2025 DNAi inc.
"""

import logging
from enum import Enum
from typing import Callable, Optional, Tuple

from colormeta.exceptions import TransformError, UnsupportedProfileError
from colormeta.icc_profile import ColorSpaceType, IccProfile
from colormeta.image_metadata import ImageMetadata
from colormeta.jpeg_parser import (
    ADOBE_TRANSFORM_UNKNOWN,
    ADOBE_TRANSFORM_YCbCr,
    ADOBE_TRANSFORM_YCCK,
    EXIF_CS_ADOBERGB,
    EXIF_CS_SRGB,
    JPEGMetadata,
)
from colormeta.pixel_format import PixelFormat

logger = logging.getLogger(__name__)


class PreConversion(Enum):
    """Pixel-domain conversion applied before the colour transform."""
    NONE = "none"
    YCBCR_TO_RGB = "ycbcr-to-rgb"
    YCCK_TO_CMYK = "ycck-to-cmyk"


class ProfileSource(Enum):
    """Where the source profile came from."""
    DEFAULT = "default"
    EMBEDDED = "embedded"
    EXIF_SRGB = "exif-srgb"
    EXIF_ADOBERGB = "exif-adobergb"


class ProfileResolution:
    """
    Result of input profile resolution.

    Attributes:
        input_format: Pixel format of the raster after pre-conversion
        input_profile: Source profile for the transform
        pre_conversion: Pre-conversion to apply to the raw raster
        profile_source: How the source profile was chosen
    """

    def __init__(self, input_format: PixelFormat, input_profile: IccProfile,
                 pre_conversion: PreConversion = PreConversion.NONE,
                 profile_source: ProfileSource = ProfileSource.DEFAULT):
        self.input_format = input_format
        self.input_profile = input_profile
        self.pre_conversion = pre_conversion
        self.profile_source = profile_source

    def __repr__(self) -> str:
        return (f"ProfileResolution(format={self.input_format.name}, "
                f"pre_conversion={self.pre_conversion.value}, "
                f"source={self.profile_source.value})")


class ProfileResolutionPolicy:
    """
    Layered input profile decision.

    Default profiles are supplied as zero-argument callables so that a
    profile which is not needed (for example an unconfigured CMYK default
    for an RGB image) is never requested.
    """

    def __init__(self,
                 default_gray: Callable[[], IccProfile],
                 default_rgb: Callable[[], IccProfile],
                 default_cmyk: Callable[[], Optional[IccProfile]],
                 srgb: Callable[[], IccProfile],
                 adobe_rgb: Callable[[], IccProfile],
                 use_embedded_profiles: bool = True):
        self.default_gray = default_gray
        self.default_rgb = default_rgb
        self.default_cmyk = default_cmyk
        self.srgb = srgb
        self.adobe_rgb = adobe_rgb
        self.use_embedded_profiles = use_embedded_profiles

    def resolve_input(self, metadata: ImageMetadata, num_bands: int) -> ProfileResolution:
        """
        Resolve the input pixel format, source profile and pre-conversion.

        Args:
            metadata: Parsed metadata of the source image
            num_bands: Number of bands in the decoded raster

        Returns:
            ProfileResolution

        Raises:
            TransformError: If the band count is not 1, 3 or 4
            UnsupportedProfileError: If a required default profile is missing
        """
        jpeg = metadata if isinstance(metadata, JPEGMetadata) else None
        pre_conversion = PreConversion.NONE

        if num_bands == 1:
            input_format = PixelFormat.GRAY_8
            default = self.default_gray
        elif num_bands == 3:
            input_format = PixelFormat.RGB_8
            default = self.default_rgb
            if jpeg is not None and (not jpeg.adobe_app14_found
                                     or jpeg.adobe_transform == ADOBE_TRANSFORM_YCbCr):
                pre_conversion = PreConversion.YCBCR_TO_RGB
        elif num_bands == 4:
            input_format = PixelFormat.CMYK_8_REV
            default = self.default_cmyk
            if jpeg is not None and jpeg.adobe_app14_found:
                if jpeg.adobe_transform == ADOBE_TRANSFORM_YCCK:
                    pre_conversion = PreConversion.YCCK_TO_CMYK
                    input_format = PixelFormat.CMYK_8
                elif jpeg.adobe_transform != ADOBE_TRANSFORM_UNKNOWN:
                    logger.warning("Unexpected Adobe transform %d for 4-band raster",
                                   jpeg.adobe_transform)
        else:
            raise TransformError(f"Unsupported number of bands: {num_bands}")

        profile, source = self._choose_profile(metadata, jpeg, input_format, num_bands)
        if profile is None:
            profile = default()
            source = ProfileSource.DEFAULT
        if profile is None:
            raise UnsupportedProfileError(
                f"No default {input_format.color_space} profile configured"
            )

        resolution = ProfileResolution(input_format, profile, pre_conversion, source)
        logger.debug("Resolved input: %r", resolution)
        return resolution

    def _choose_profile(self, metadata: ImageMetadata, jpeg: Optional[JPEGMetadata],
                        input_format: PixelFormat,
                        num_bands: int) -> Tuple[Optional[IccProfile], ProfileSource]:
        if not self.use_embedded_profiles:
            return None, ProfileSource.DEFAULT

        embedded = metadata.icc_profile()
        if embedded is not None:
            if embedded.colorspace_type() == input_format.color_space:
                return embedded, ProfileSource.EMBEDDED
            logger.warning("Ignoring embedded %s profile for %d-band raster",
                           embedded.colorspace_type(), num_bands)

        if jpeg is not None and num_bands == 3:
            if jpeg.exif_color_space == EXIF_CS_SRGB:
                return self.srgb(), ProfileSource.EXIF_SRGB
            if jpeg.exif_color_space == EXIF_CS_ADOBERGB:
                return self.adobe_rgb(), ProfileSource.EXIF_ADOBERGB

        return None, ProfileSource.DEFAULT

    @staticmethod
    def resolve_output(destination_profile: IccProfile) -> Tuple[PixelFormat, int]:
        """
        Derive the output pixel format from the destination profile.

        Returns:
            Tuple of (pixel format, number of bands)

        Raises:
            UnsupportedProfileError: If the destination is neither gray nor RGB
        """
        space = destination_profile.colorspace_type()
        if space == ColorSpaceType.GRAY:
            return PixelFormat.GRAY_8, 1
        if space == ColorSpaceType.RGB:
            return PixelFormat.RGB_8, 3
        raise UnsupportedProfileError(
            f"Destination colour space {space} is not supported; use a gray or RGB profile"
        )
