# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
colormeta - Image colour metadata and ICC transformation toolkit

Reads and rewrites the colour-related metadata of JPEG and PNG files
(dimensions, embedded ICC profile, print resolution, EXIF colour space,
Adobe transform, thumbnail) and uses it to convert rasters between ICC
profiles through LittleCMS.

Container parsing and rewriting are done by directly reading and writing
the binary file structures; Pillow is used for pixel decoding/encoding
and colour transforms.

Copyright 2025 DNAi inc.
"""

__version__ = "0.1.0"
__author__ = "DNAi inc."

from colormeta.exceptions import (
    ColorMetaError,
    CompressionError,
    FormatError,
    MetadataWriteError,
    TransformError,
    UnsupportedFormatError,
    UnsupportedProfileError,
)
from colormeta.format_detector import ImageType, detect_file_type, detect_image_type
from colormeta.image_metadata import (
    ImageMetadata,
    ImageOrientation,
    ParseResult,
    ThumbnailRange,
    embed_metadata,
    get_icc_profile,
    load_metadata,
    read_metadata,
)
from colormeta.jpeg_parser import JPEGMetadata
from colormeta.png_parser import PNGMetadata
from colormeta.jpeg_modifier import JPEGModifier, split_profile
from colormeta.png_writer import PNGWriter
from colormeta.icc_profile import ColorSpaceType, IccProfile
from colormeta.pixel_format import PixelFormat
from colormeta.transform_engine import (
    Intent,
    PillowTransformEngine,
    Transform,
    TransformEngine,
    TransformFlags,
)
from colormeta.profile_policy import (
    PreConversion,
    ProfileResolution,
    ProfileResolutionPolicy,
    ProfileSource,
)
from colormeta.raster_pipeline import Raster, RasterTransformPipeline
from colormeta.transformer import IccTransformer, TransformerConfig

__all__ = [
    "ColorMetaError",
    "CompressionError",
    "FormatError",
    "MetadataWriteError",
    "TransformError",
    "UnsupportedFormatError",
    "UnsupportedProfileError",
    "ImageType",
    "detect_file_type",
    "detect_image_type",
    "ImageMetadata",
    "ImageOrientation",
    "ParseResult",
    "ThumbnailRange",
    "embed_metadata",
    "get_icc_profile",
    "load_metadata",
    "read_metadata",
    "JPEGMetadata",
    "PNGMetadata",
    "JPEGModifier",
    "split_profile",
    "PNGWriter",
    "ColorSpaceType",
    "IccProfile",
    "PixelFormat",
    "Intent",
    "PillowTransformEngine",
    "Transform",
    "TransformEngine",
    "TransformFlags",
    "PreConversion",
    "ProfileResolution",
    "ProfileResolutionPolicy",
    "ProfileSource",
    "Raster",
    "RasterTransformPipeline",
    "IccTransformer",
    "TransformerConfig",
]
