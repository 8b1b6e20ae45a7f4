# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
JPEG metadata parser

This module walks the JPEG marker sequence and extracts:
- JFIF presence and pixel density (APP0)
- EXIF orientation, resolution, colour space and thumbnail range (APP1)
- ICC profile fragments (APP2)
- Adobe colour transform code (APP14)
- Frame dimensions and component count (SOFn)

The byte ranges of the metadata segments are recorded so that the JPEG
rewriter can replace them without touching anything else.

Copyright 2025 DNAi inc.
"""

import logging
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

from colormeta.exceptions import FormatError
from colormeta.format_detector import ImageType
from colormeta.icc_assembler import IccFragment, assemble_fragments
from colormeta.image_metadata import (
    ImageMetadata,
    ImageOrientation,
    ParseResult,
    ThumbnailRange,
)
from colormeta.stream_reader import read_exact, read_optional, read_u8, read_u16be
from colormeta.tiff_structure import (
    TAG_COLOR_SPACE,
    TAG_EXIF_IFD_POINTER,
    TAG_ORIENTATION,
    TAG_PRIMARY_CHROMATICITIES,
    TAG_RESOLUTION_UNIT,
    TAG_THUMBNAIL_LENGTH,
    TAG_THUMBNAIL_OFFSET,
    TAG_WHITE_POINT,
    TAG_X_RESOLUTION,
    TAG_Y_RESOLUTION,
    ExifTagType,
    TIFFStructure,
)

logger = logging.getLogger(__name__)

# JPEG markers
MARKER_SOI = 0xD8
MARKER_EOI = 0xD9
MARKER_SOS = 0xDA
MARKER_APP0 = 0xE0
MARKER_APP1 = 0xE1
MARKER_APP2 = 0xE2
MARKER_APP14 = 0xEE
MARKER_APP15 = 0xEF

# SOFn markers that are not frame headers
NON_SOF_MARKERS = (0xC4, 0xC8, 0xCC)

# Segment identifiers
JFIF_IDENTIFIER = b'JFIF\x00'
EXIF_IDENTIFIER = b'Exif\x00\x00'
ICC_IDENTIFIER = b'ICC_PROFILE\x00'
ADOBE_IDENTIFIER = b'Adobe\x00'

# EXIF colour space values
EXIF_CS_SRGB = 1
EXIF_CS_ADOBERGB = 2
EXIF_CS_UNKNOWN = 0xFFFF

# Adobe APP14 colour transform codes
ADOBE_TRANSFORM_UNKNOWN = 0
ADOBE_TRANSFORM_YCbCr = 1
ADOBE_TRANSFORM_YCCK = 2

# White point (2 rationals) and primary chromaticities (6 rationals) of
# Adobe RGB (1998), as numerator/denominator pairs
ADOBE_RGB_CHROMATICITIES = (
    313, 1000, 329, 1000,
    64, 100, 33, 100, 21, 100, 71, 100, 15, 100, 6, 100,
)

# EXIF resolution units
RESOLUTION_UNIT_NONE = 1
RESOLUTION_UNIT_INCH = 2
RESOLUTION_UNIT_CM = 3

CM_PER_INCH = 2.54


class JPEGSegment:
    """
    Byte range of a segment located during the parse.

    Attributes:
        marker: Marker code (second marker byte)
        offset: Absolute position of the 0xFF marker byte
        length: Total segment length including the marker bytes
        kind: 'JFIF', 'EXIF', 'ICC', 'ADOBE' or 'APP'
    """

    def __init__(self, marker: int, offset: int, length: int, kind: str):
        self.marker = marker
        self.offset = offset
        self.length = length
        self.kind = kind

    @property
    def end(self) -> int:
        return self.offset + self.length

    def __repr__(self) -> str:
        return (f"JPEGSegment(marker=0x{self.marker:02X}, offset={self.offset}, "
                f"length={self.length}, kind={self.kind})")


class ExifResolutionField:
    """
    Position of a resolution value inside the EXIF IFD0.

    For 'x' and 'y' the position points at an unsigned rational (8 bytes);
    for 'unit' it points at the inline SHORT value field of the entry.
    """

    def __init__(self, name: str, position: int, little_endian: bool):
        self.name = name
        self.position = position
        self.little_endian = little_endian

    def __repr__(self) -> str:
        return f"ExifResolutionField({self.name}, position={self.position})"


class JPEGMetadata(ImageMetadata):
    """
    Metadata of a JPEG file.
    """

    def __init__(self, file_path: Optional[Union[str, Path]] = None):
        super().__init__(ImageType.JPEG, file_path)
        self._exif_found = False
        self._jfif_found = False
        self._adobe_app14_found = False
        self._adobe_transform = ADOBE_TRANSFORM_UNKNOWN
        self._exif_orientation = 0
        self._exif_color_space = 0
        self._adobe_rgb_inferred = False
        self._num_components = 0
        self._icc_fragments: List[IccFragment] = []
        self._segments: List[JPEGSegment] = []
        self._jfif_density_offset: Optional[int] = None
        self._resolution_fields: List[ExifResolutionField] = []
        self._jfif_dpi = (0.0, 0.0)
        self._exif_dpi = (0.0, 0.0)

    # Read-only properties

    @property
    def exif_found(self) -> bool:
        return self._exif_found

    @property
    def jfif_found(self) -> bool:
        return self._jfif_found

    @property
    def adobe_app14_found(self) -> bool:
        return self._adobe_app14_found

    @property
    def adobe_transform(self) -> int:
        return self._adobe_transform

    @property
    def exif_orientation(self) -> int:
        """Raw EXIF orientation value (1..8), or 0 if absent."""
        return self._exif_orientation

    @property
    def exif_color_space(self) -> int:
        """EXIF colour space: EXIF_CS_SRGB, EXIF_CS_ADOBERGB, EXIF_CS_UNKNOWN or 0 if absent."""
        return self._exif_color_space

    @property
    def adobe_rgb_inferred(self) -> bool:
        """True if Adobe RGB was inferred from the white point and primaries."""
        return self._adobe_rgb_inferred

    @property
    def num_components(self) -> int:
        return self._num_components

    @property
    def icc_fragments(self) -> List[IccFragment]:
        return list(self._icc_fragments)

    @property
    def segments(self) -> List[JPEGSegment]:
        return list(self._segments)

    @property
    def jfif_density_offset(self) -> Optional[int]:
        """Absolute position of the JFIF density units byte, if a JFIF APP0 exists."""
        return self._jfif_density_offset

    @property
    def resolution_fields(self) -> List[ExifResolutionField]:
        return list(self._resolution_fields)

    def is_srgb(self) -> bool:
        return self._exif_color_space == EXIF_CS_SRGB

    def is_adobe_rgb(self) -> bool:
        return self._exif_color_space == EXIF_CS_ADOBERGB

    def icc_segments(self) -> List[JPEGSegment]:
        """Segments carrying ICC profile fragments."""
        return [segment for segment in self._segments if segment.kind == 'ICC']

    @classmethod
    def parse(cls, file_path: Union[str, Path]) -> ParseResult['JPEGMetadata']:
        """
        Parse a JPEG file.

        Args:
            file_path: Path to JPEG file

        Returns:
            ParseResult with the metadata, or the FormatError that stopped the parse

        Raises:
            OSError: If the file cannot be opened or read
        """
        with open(file_path, 'rb') as f:
            return cls.parse_stream(f, file_path)

    @classmethod
    def parse_stream(cls, stream: BinaryIO,
                     file_path: Optional[Union[str, Path]] = None) -> ParseResult['JPEGMetadata']:
        """
        Parse a seekable JPEG stream positioned at its SOI marker.

        Args:
            stream: Seekable binary stream
            file_path: Source path, if known

        Returns:
            ParseResult with the metadata, or the FormatError that stopped the parse
        """
        metadata = cls(file_path)
        try:
            metadata._read(stream)
        except FormatError as e:
            logger.debug("JPEG parse failed: %s", e.message)
            return ParseResult(error=e)
        return ParseResult(metadata)

    # Parsing

    def _read(self, stream: BinaryIO) -> None:
        soi = read_exact(stream, 2, "SOI marker")
        if soi != b'\xff\xd8':
            raise FormatError("Missing JPEG SOI marker")

        marker = None
        while True:
            offset = stream.tell()
            marker = self._read_marker(stream)
            if marker is None:
                break
            if not MARKER_APP0 <= marker <= MARKER_APP15:
                logger.debug("Marker 0x%02X at %d ends metadata segments", marker, offset)
                break

            length = read_u16be(stream, "segment length")
            if length < 2:
                raise FormatError(f"Invalid segment length {length} at offset {offset}")
            payload_start = stream.tell()
            offset = payload_start - 4
            payload = read_exact(stream, length - 2, f"APP{marker - MARKER_APP0} segment")

            kind = self._dispatch_app(stream, marker, payload, payload_start)
            self._segments.append(JPEGSegment(marker, offset, length + 2, kind))
            logger.debug("APP%d segment (%s, %d bytes) at %d",
                         marker - MARKER_APP0, kind, length, offset)
            stream.seek(payload_start + length - 2)

        if marker is not None:
            self._scan_frame_header(stream, marker)

        if self._exif_dpi[0] > 0 or self._exif_dpi[1] > 0:
            self._set_resolution(*self._exif_dpi)
        else:
            self._set_resolution(*self._jfif_dpi)

        if self._icc_fragments:
            try:
                self._icc_profile_data = assemble_fragments(stream, self._icc_fragments)
            except FormatError as e:
                logger.warning("Ignoring embedded ICC profile: %s", e.message)
                self._icc_profile_data = None

    @staticmethod
    def _read_marker(stream: BinaryIO) -> Optional[int]:
        """
        Read the next marker code, skipping 0xFF fill bytes.

        Returns:
            Marker code, or None at a clean end of stream
        """
        data = read_optional(stream, 2, "marker")
        if data is None:
            return None
        if data[0] != 0xFF:
            raise FormatError(f"Invalid marker byte 0x{data[0]:02X}")
        marker = data[1]
        while marker == 0xFF:
            marker = read_u8(stream, "marker")
        return marker

    def _dispatch_app(self, stream: BinaryIO, marker: int, payload: bytes, payload_start: int) -> str:
        if marker == MARKER_APP0 and payload.startswith(JFIF_IDENTIFIER):
            self._read_jfif(payload, payload_start)
            return 'JFIF'
        if marker == MARKER_APP1 and payload.startswith(EXIF_IDENTIFIER):
            self._exif_found = True
            self._read_exif(stream, payload_start + len(EXIF_IDENTIFIER))
            return 'EXIF'
        if marker == MARKER_APP2 and payload.startswith(ICC_IDENTIFIER):
            self._read_icc_fragment(payload, payload_start)
            return 'ICC'
        if marker == MARKER_APP14 and payload.startswith(ADOBE_IDENTIFIER):
            self._read_adobe(payload)
            return 'ADOBE'
        return 'APP'

    def _read_jfif(self, payload: bytes, payload_start: int) -> None:
        if not self._exif_found:
            self._jfif_found = True

        # JFIF\0, version (2), units (1), Xdensity (2), Ydensity (2)
        if len(payload) < 12:
            raise FormatError("Truncated JFIF header")
        units = payload[7]
        x_density = (payload[8] << 8) | payload[9]
        y_density = (payload[10] << 8) | payload[11]
        self._jfif_density_offset = payload_start + 7

        if units == 1:
            self._jfif_dpi = (float(x_density), float(y_density))
        elif units == 2:
            self._jfif_dpi = (x_density * CM_PER_INCH, y_density * CM_PER_INCH)

    def _read_icc_fragment(self, payload: bytes, payload_start: int) -> None:
        header_size = len(ICC_IDENTIFIER) + 2
        if len(payload) < header_size:
            raise FormatError("Truncated ICC_PROFILE segment")
        index = payload[len(ICC_IDENTIFIER)]
        count = payload[len(ICC_IDENTIFIER) + 1]
        fragment = IccFragment(payload_start + header_size, len(payload) - header_size, index, count)
        self._icc_fragments.append(fragment)
        logger.debug("ICC fragment %d/%d (%d bytes)", index, count, fragment.length)

    def _read_adobe(self, payload: bytes) -> None:
        # Adobe\0 is followed by version (low byte), flags0, flags1, transform
        block = payload[len(ADOBE_IDENTIFIER):len(ADOBE_IDENTIFIER) + 6]
        if len(block) < 6:
            raise FormatError("Truncated Adobe APP14 segment")
        self._adobe_app14_found = True
        self._adobe_transform = block[5]

    def _read_exif(self, stream: BinaryIO, tiff_start: int) -> None:
        """
        Walk IFD0, IFD1 and the Exif sub-IFD of an EXIF APP1 segment.

        Raises:
            FormatError: On an invalid byte order or truncated directory
        """
        tiff = TIFFStructure(stream, tiff_start)
        ifd0_offset = tiff.read_header()
        entries, ifd1_offset = tiff.read_ifd(ifd0_offset)
        logger.debug("%d entries in EXIF IFD0", len(entries))

        sub_ifd_offset = 0
        white_point_offset = 0
        primaries_offset = 0
        resolution_unit = RESOLUTION_UNIT_INCH
        x_resolution = 0.0
        y_resolution = 0.0

        for entry in entries:
            if entry.tag == TAG_ORIENTATION:
                self._exif_orientation = entry.value
                self._orientation = ImageOrientation.from_exif(entry.value)
            elif entry.tag == TAG_EXIF_IFD_POINTER:
                sub_ifd_offset = entry.value
            elif entry.tag == TAG_WHITE_POINT:
                white_point_offset = entry.value
            elif entry.tag == TAG_PRIMARY_CHROMATICITIES:
                primaries_offset = entry.value
            elif entry.tag in (TAG_X_RESOLUTION, TAG_Y_RESOLUTION):
                value = tiff.read_rational(entry.value)
                name = 'x' if entry.tag == TAG_X_RESOLUTION else 'y'
                self._resolution_fields.append(
                    ExifResolutionField(name, tiff_start + entry.value, tiff.little_endian)
                )
                if name == 'x':
                    x_resolution = value
                else:
                    y_resolution = value
            elif entry.tag == TAG_RESOLUTION_UNIT:
                resolution_unit = entry.value
                if entry.tag_type == ExifTagType.SHORT and entry.count == 1:
                    self._resolution_fields.append(
                        ExifResolutionField('unit', entry.position, tiff.little_endian)
                    )

        if resolution_unit == RESOLUTION_UNIT_INCH:
            self._exif_dpi = (x_resolution, y_resolution)
        elif resolution_unit == RESOLUTION_UNIT_CM:
            self._exif_dpi = (x_resolution * CM_PER_INCH, y_resolution * CM_PER_INCH)

        if ifd1_offset:
            self._read_ifd1(tiff, ifd1_offset)

        if sub_ifd_offset:
            sub_entries, _ = tiff.read_ifd(sub_ifd_offset)
            logger.debug("%d entries in Exif sub-IFD", len(sub_entries))
            for entry in sub_entries:
                if entry.tag == TAG_COLOR_SPACE:
                    self._exif_color_space = entry.value

        if (self._exif_color_space in (0, EXIF_CS_UNKNOWN)
                and white_point_offset and primaries_offset):
            values = tiff.read_longs(white_point_offset, 4) + tiff.read_longs(primaries_offset, 12)
            if tuple(values) == ADOBE_RGB_CHROMATICITIES:
                logger.debug("Adobe RGB inferred from white point and primaries")
                self._exif_color_space = EXIF_CS_ADOBERGB
                self._adobe_rgb_inferred = True

    def _read_ifd1(self, tiff: TIFFStructure, ifd1_offset: int) -> None:
        entries, _ = tiff.read_ifd(ifd1_offset)
        logger.debug("%d entries in EXIF IFD1 (thumbnail)", len(entries))

        thumbnail_offset = 0
        thumbnail_length = 0
        for entry in entries:
            if entry.tag == TAG_THUMBNAIL_OFFSET:
                thumbnail_offset = entry.value
            elif entry.tag == TAG_THUMBNAIL_LENGTH:
                thumbnail_length = entry.value

        if thumbnail_offset and thumbnail_length:
            self._thumbnail = ThumbnailRange(tiff.tiff_start + thumbnail_offset, thumbnail_length)

    def _scan_frame_header(self, stream: BinaryIO, marker: int) -> None:
        """
        Continue past non-APPn segments until a frame header is found.

        Stops at SOS, EOI or the end of the stream.
        """
        while marker is not None:
            if marker in (MARKER_SOS, MARKER_EOI):
                return
            if 0xD0 <= marker <= 0xD7 or marker == 0x01:
                # Standalone markers carry no length
                marker = self._read_marker(stream)
                continue

            length = read_u16be(stream, "segment length")
            if length < 2:
                raise FormatError(f"Invalid segment length {length}")

            if 0xC0 <= marker <= 0xCF and marker not in NON_SOF_MARKERS:
                frame = read_exact(stream, 6, "frame header")
                self._bit_depth = frame[0]
                self._height = (frame[1] << 8) | frame[2]
                self._width = (frame[3] << 8) | frame[4]
                self._num_components = frame[5]
                self._greyscale = self._num_components == 1
                self._rgb = self._num_components == 3
                self._cmyk = self._num_components == 4
                logger.debug("Frame 0x%02X: %dx%d, %d components",
                             marker, self._width, self._height, self._num_components)
                return

            stream.seek(length - 2, 1)
            marker = self._read_marker(stream)

    def to_dict(self):
        result = super().to_dict()
        result.update({
            'Components': self._num_components,
            'JFIF': self._jfif_found,
            'EXIF': self._exif_found,
            'EXIFOrientation': self._exif_orientation,
            'EXIFColorSpace': self._exif_color_space,
            'AdobeRGBInferred': self._adobe_rgb_inferred,
            'AdobeAPP14': self._adobe_app14_found,
            'AdobeTransform': self._adobe_transform,
            'ICCFragments': len(self._icc_fragments),
        })
        return result
