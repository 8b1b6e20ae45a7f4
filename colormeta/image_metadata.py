# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Container metadata model

This module defines the read-only metadata object shared by all container
parsers, the parse result type returned by the public parse entry points,
and the factory that selects a parser from the sniffed container type.

Copyright 2025 DNAi inc.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Dict, Generic, Optional, TypeVar, Union

from PIL import Image, UnidentifiedImageError

from colormeta.exceptions import (
    ColorMetaError,
    FormatError,
    UnsupportedFormatError,
    UnsupportedProfileError,
)
from colormeta.format_detector import FormatDetector, ImageType
from colormeta.stream_reader import read_exact

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class ImageOrientation(Enum):
    """
    Orientation of the stored pixels relative to the upright image.

    The value names the side of the upright image that the first stored
    row corresponds to.
    """
    TOP = "top"
    RIGHT = "right"
    DOWN = "down"
    LEFT = "left"

    @classmethod
    def from_exif(cls, value: int) -> 'ImageOrientation':
        """
        Map an EXIF orientation value (1..8) to an orientation.

        Mirrored variants map to the same orientation as their unmirrored
        counterparts. Unknown values map to TOP.
        """
        if value in (3, 4):
            return cls.DOWN
        if value in (5, 6):
            return cls.RIGHT
        if value in (7, 8):
            return cls.LEFT
        return cls.TOP


class ThumbnailRange:
    """Absolute byte range of an embedded thumbnail inside its file."""

    def __init__(self, offset: int, length: int):
        self.offset = offset
        self.length = length

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ThumbnailRange):
            return NotImplemented
        return self.offset == other.offset and self.length == other.length

    def __repr__(self) -> str:
        return f"ThumbnailRange(offset={self.offset}, length={self.length})"


class ImageMetadata:
    """
    Metadata extracted from an image container.

    Instances are populated by a single parse pass and are read-only
    afterwards. Resolution values are in dots per inch, 0 meaning unknown.
    """

    def __init__(self, image_type: ImageType, file_path: Optional[PathLike] = None):
        self._image_type = image_type
        self._file_path = Path(file_path) if file_path is not None else None
        self._width = 0
        self._height = 0
        self._bit_depth = 0
        self._greyscale = False
        self._rgb = False
        self._indexed = False
        self._transparent = False
        self._cmyk = False
        self._horizontal_dpi = 0.0
        self._vertical_dpi = 0.0
        self._icc_profile_data: Optional[bytes] = None
        self._orientation = ImageOrientation.TOP
        self._thumbnail: Optional[ThumbnailRange] = None

    @property
    def image_type(self) -> ImageType:
        return self._image_type

    @property
    def file_path(self) -> Optional[Path]:
        return self._file_path

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def bit_depth(self) -> int:
        return self._bit_depth

    @property
    def is_greyscale(self) -> bool:
        return self._greyscale

    @property
    def is_rgb(self) -> bool:
        return self._rgb

    @property
    def is_indexed(self) -> bool:
        return self._indexed

    @property
    def is_transparent(self) -> bool:
        return self._transparent

    @property
    def is_cmyk(self) -> bool:
        return self._cmyk

    @property
    def horizontal_dpi(self) -> float:
        return self._horizontal_dpi

    @property
    def vertical_dpi(self) -> float:
        return self._vertical_dpi

    @property
    def orientation(self) -> ImageOrientation:
        return self._orientation

    @property
    def thumbnail_range(self) -> Optional[ThumbnailRange]:
        return self._thumbnail

    def _set_resolution(self, horizontal: float, vertical: float) -> None:
        # Non-positive values mean "unknown"
        self._horizontal_dpi = horizontal if horizontal > 0 else 0.0
        self._vertical_dpi = vertical if vertical > 0 else 0.0

    def has_icc_profile(self) -> bool:
        return self._icc_profile_data is not None

    def icc_profile_bytes(self) -> Optional[bytes]:
        """
        Get the raw embedded ICC profile.

        Returns:
            Profile bytes, or None if no profile was found or it could not
            be reassembled
        """
        return self._icc_profile_data

    def icc_profile(self):
        """
        Get the embedded ICC profile as a validated profile object.

        Invalid profile data is reported as "no profile".

        Returns:
            IccProfile instance or None
        """
        from colormeta.icc_profile import IccProfile

        if self._icc_profile_data is None:
            return None
        try:
            return IccProfile(self._icc_profile_data)
        except UnsupportedProfileError as e:
            logger.warning("Ignoring invalid embedded ICC profile: %s", e.message)
            return None

    def has_thumbnail(self) -> bool:
        return self._thumbnail is not None and self._thumbnail.length > 0

    def thumbnail_bytes(self, stream: Optional[BinaryIO] = None) -> Optional[bytes]:
        """
        Read the embedded thumbnail.

        Args:
            stream: Optional open stream over the same file. When omitted,
                the file the metadata was parsed from is reopened.

        Returns:
            Thumbnail bytes (usually a JPEG stream), or None if the image
            has no embedded thumbnail

        Raises:
            FormatError: If the file ends before the thumbnail does
            ValueError: If no stream is given and the source path is unknown
        """
        if not self.has_thumbnail():
            return None

        if stream is not None:
            stream.seek(self._thumbnail.offset)
            return read_exact(stream, self._thumbnail.length, "thumbnail")

        if self._file_path is None:
            raise ValueError("Metadata was parsed from a stream; pass the stream to read the thumbnail")

        with open(self._file_path, 'rb') as f:
            f.seek(self._thumbnail.offset)
            return read_exact(f, self._thumbnail.length, "thumbnail")

    def save_thumbnail(self, output_path: PathLike) -> bool:
        """
        Save the embedded thumbnail to a file.

        Args:
            output_path: Destination file path

        Returns:
            True if a thumbnail was written, False if the image has none
        """
        data = self.thumbnail_bytes()
        if data is None:
            return False
        with open(output_path, 'wb') as f:
            f.write(data)
        logger.debug("Thumbnail saved to %s (%d bytes)", output_path, len(data))
        return True

    def to_dict(self) -> Dict[str, Any]:
        """
        Summarize the metadata as a plain dictionary.

        Returns:
            Dictionary of metadata values suitable for JSON output
        """
        return {
            'ImageType': str(self._image_type),
            'Width': self._width,
            'Height': self._height,
            'BitDepth': self._bit_depth,
            'Greyscale': self._greyscale,
            'RGB': self._rgb,
            'Indexed': self._indexed,
            'Transparent': self._transparent,
            'CMYK': self._cmyk,
            'HorizontalDPI': self._horizontal_dpi,
            'VerticalDPI': self._vertical_dpi,
            'Orientation': self._orientation.name,
            'ICCProfile': self._icc_profile_data is not None,
            'ICCProfileSize': len(self._icc_profile_data) if self._icc_profile_data else 0,
            'Thumbnail': self.has_thumbnail(),
        }

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(type={self._image_type}, "
                f"size={self._width}x{self._height}, depth={self._bit_depth})")


M = TypeVar('M', bound=ImageMetadata)


class ParseResult(Generic[M]):
    """
    Outcome of a parse: either a metadata object or the error that stopped it.

    A failed parse never carries a metadata object.
    """

    def __init__(self, metadata: Optional[M] = None, error: Optional[ColorMetaError] = None):
        if (metadata is None) == (error is None):
            raise ValueError("ParseResult needs exactly one of metadata or error")
        self.metadata = metadata
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> M:
        """
        Get the metadata or raise the parse error.

        Raises:
            ColorMetaError: The error that stopped the parse
        """
        if self.error is not None:
            raise self.error
        return self.metadata

    def __repr__(self) -> str:
        if self.ok:
            return f"ParseResult(ok, {self.metadata!r})"
        return f"ParseResult(error={self.error.message!r})"


class GenericMetadata(ImageMetadata):
    """
    Dimension-only metadata for containers without a dedicated parser.

    Values come from the Pillow image header; no ICC profile, thumbnail or
    orientation is reported.
    """

    # Pillow mode -> (bit depth, greyscale, rgb, indexed, transparent, cmyk)
    MODE_INFO = {
        '1': (1, True, False, False, False, False),
        'L': (8, True, False, False, False, False),
        'LA': (8, True, False, False, True, False),
        'I;16': (16, True, False, False, False, False),
        'I;16B': (16, True, False, False, False, False),
        'I': (32, True, False, False, False, False),
        'P': (8, False, False, True, False, False),
        'PA': (8, False, False, True, True, False),
        'RGB': (8, False, True, False, False, False),
        'RGBA': (8, False, True, False, True, False),
        'CMYK': (8, False, False, False, False, True),
    }

    @classmethod
    def parse(cls, file_path: PathLike, image_type: ImageType) -> ParseResult['GenericMetadata']:
        """
        Read image dimensions through Pillow.

        Raises:
            OSError: If the file cannot be opened
        """
        metadata = cls(image_type, file_path)
        with open(file_path, 'rb') as f:
            try:
                with Image.open(f) as im:
                    metadata._apply_image(im)
            except UnidentifiedImageError as e:
                return ParseResult(error=FormatError(f"Unrecognized image data: {e}"))
        return ParseResult(metadata)

    def _apply_image(self, im: Image.Image) -> None:
        self._width, self._height = im.size
        depth, grey, rgb, indexed, transparent, cmyk = self.MODE_INFO.get(
            im.mode, (8, False, False, False, False, False)
        )
        self._bit_depth = depth
        self._greyscale = grey
        self._rgb = rgb
        self._indexed = indexed
        self._transparent = transparent or 'transparency' in im.info
        self._cmyk = cmyk

        dpi = im.info.get('dpi')
        if dpi:
            self._set_resolution(float(dpi[0]), float(dpi[1]))


def load_metadata(file_path: PathLike) -> ParseResult:
    """
    Parse the metadata of an image file.

    The container type is sniffed from the file signature. JPEG and PNG
    files are parsed fully; other formats get dimension-only metadata.

    Args:
        file_path: Path to image file

    Returns:
        ParseResult carrying the metadata or the parse error

    Raises:
        OSError: If the file cannot be opened or read
    """
    from colormeta.jpeg_parser import JPEGMetadata
    from colormeta.png_parser import PNGMetadata

    with open(file_path, 'rb') as f:
        image_type = FormatDetector.detect_stream(f)

    logger.debug("Detected %s for %s", image_type, file_path)

    if image_type == ImageType.JPEG:
        return JPEGMetadata.parse(file_path)
    if image_type == ImageType.PNG:
        return PNGMetadata.parse(file_path)
    return GenericMetadata.parse(file_path, image_type)


def read_metadata(file_path: PathLike) -> ImageMetadata:
    """
    Parse the metadata of an image file.

    Raises:
        FormatError: If the container cannot be parsed
        OSError: If the file cannot be opened or read
    """
    return load_metadata(file_path).unwrap()


def get_icc_profile(file_path: PathLike) -> Optional[bytes]:
    """
    Get the raw embedded ICC profile of an image file.

    Returns:
        Profile bytes, or None if the file has no usable profile

    Raises:
        FormatError: If the container cannot be parsed
        OSError: If the file cannot be opened or read
    """
    return read_metadata(file_path).icc_profile_bytes()


def embed_metadata(file_path: PathLike, profile=None, dpi: float = 0,
                   output_path: Optional[PathLike] = None) -> bool:
    """
    Embed an ICC profile and/or resolution into a JPEG or PNG file.

    Args:
        file_path: Image file to rewrite
        profile: IccProfile or raw profile bytes, or None to keep the current one
        dpi: Resolution in dots per inch, or 0 to keep the current one
        output_path: Destination file (defaults to replacing the source)

    Returns:
        True if a file was written, False if no change was requested

    Raises:
        UnsupportedFormatError: If the file is neither JPEG nor PNG
        FormatError: If the container cannot be parsed
        MetadataWriteError: If the metadata cannot be encoded
        OSError: If reading or writing fails
    """
    from colormeta.jpeg_modifier import JPEGModifier
    from colormeta.png_writer import PNGWriter

    image_type = FormatDetector.detect_file(file_path)
    if image_type == ImageType.JPEG:
        return JPEGModifier().embed_metadata(file_path, profile, dpi, output_path)
    if image_type == ImageType.PNG:
        return PNGWriter().embed_metadata(file_path, profile, dpi, output_path)
    raise UnsupportedFormatError(f"Metadata embedding is not supported for {image_type} files")
