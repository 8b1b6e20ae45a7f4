# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
PNG metadata parser

This module reads the PNG chunk sequence and extracts image dimensions
(IHDR), the embedded ICC profile (iCCP) and print resolution (pHYs).
Chunk CRCs are consumed but not verified.

Copyright 2025 DNAi inc.
"""

import logging
import struct
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

from colormeta.exceptions import CompressionError, FormatError
from colormeta.format_detector import ImageType
from colormeta.icc_assembler import inflate_profile
from colormeta.image_metadata import ImageMetadata, ParseResult
from colormeta.stream_reader import read_exact, read_optional

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'

# Meters per inch divided by 100: pixels-per-meter / (100 / 2.54) = dpi
PPM_PER_DPI = 100 / 2.54

# PNG colour types
COLOR_TYPE_GREYSCALE = 0
COLOR_TYPE_RGB = 2
COLOR_TYPE_INDEXED = 3
COLOR_TYPE_GREYSCALE_ALPHA = 4
COLOR_TYPE_RGBA = 6


class PNGChunkInfo:
    """Location of a chunk inside a PNG stream."""

    def __init__(self, chunk_type: bytes, offset: int, length: int):
        self.chunk_type = chunk_type
        self.offset = offset
        self.length = length

    @property
    def total_length(self) -> int:
        """Length of the chunk including length, type and CRC fields."""
        return self.length + 12

    def __repr__(self) -> str:
        return (f"PNGChunkInfo(type={self.chunk_type!r}, offset={self.offset}, "
                f"length={self.length})")


class PNGMetadata(ImageMetadata):
    """
    Metadata of a PNG file.
    """

    def __init__(self, file_path: Optional[Union[str, Path]] = None):
        super().__init__(ImageType.PNG, file_path)
        self._color_type = 0
        self._chunks: List[PNGChunkInfo] = []

    @property
    def color_type(self) -> int:
        return self._color_type

    @property
    def chunks(self) -> List[PNGChunkInfo]:
        return list(self._chunks)

    @classmethod
    def parse(cls, file_path: Union[str, Path]) -> ParseResult['PNGMetadata']:
        """
        Parse a PNG file.

        Args:
            file_path: Path to PNG file

        Returns:
            ParseResult with the metadata, or the FormatError that stopped the parse

        Raises:
            OSError: If the file cannot be opened or read
        """
        with open(file_path, 'rb') as f:
            return cls.parse_stream(f, file_path)

    @classmethod
    def parse_stream(cls, stream: BinaryIO,
                     file_path: Optional[Union[str, Path]] = None) -> ParseResult['PNGMetadata']:
        """
        Parse a PNG stream positioned at its signature.

        Args:
            stream: Readable binary stream
            file_path: Source path, if known

        Returns:
            ParseResult with the metadata, or the FormatError that stopped the parse
        """
        metadata = cls(file_path)
        try:
            metadata._read(stream)
        except FormatError as e:
            logger.debug("PNG parse failed: %s", e.message)
            return ParseResult(error=e)
        return ParseResult(metadata)

    def _read(self, stream: BinaryIO) -> None:
        signature = read_exact(stream, len(PNG_SIGNATURE), "PNG signature")
        if signature != PNG_SIGNATURE:
            raise FormatError("Invalid PNG signature")

        offset = len(PNG_SIGNATURE)
        while True:
            header = read_optional(stream, 8, "chunk header")
            if header is None:
                break

            length, chunk_type = struct.unpack('>I4s', header)
            logger.debug("PNG chunk %s (%d bytes) at %d",
                         chunk_type.decode('latin-1'), length, offset)

            if not self._chunks and chunk_type != b'IHDR':
                raise FormatError(f"First PNG chunk is {chunk_type!r}, expected IHDR")
            self._chunks.append(PNGChunkInfo(chunk_type, offset, length))

            if chunk_type == b'IHDR':
                self._check_size(chunk_type, length, 13)
                self._read_ihdr(read_exact(stream, length, "IHDR chunk"))
            elif chunk_type == b'iCCP':
                self._read_iccp(read_exact(stream, length, "iCCP chunk"))
            elif chunk_type == b'pHYs':
                self._check_size(chunk_type, length, 9)
                self._read_phys(read_exact(stream, length, "pHYs chunk"))
            else:
                # Skip chunk data without reading it
                stream.seek(length, 1)

            read_exact(stream, 4, "chunk CRC")
            offset += length + 12

        if not self._chunks:
            raise FormatError("PNG stream has no IHDR chunk")

    @staticmethod
    def _check_size(chunk_type: bytes, length: int, expected: int) -> None:
        if length != expected:
            raise FormatError(
                f"Invalid {chunk_type.decode('latin-1')} chunk size {length}, expected {expected}"
            )

    def _read_ihdr(self, data: bytes) -> None:
        width, height, bit_depth, color_type = struct.unpack('>IIBB', data[:10])
        self._width = width
        self._height = height
        self._bit_depth = bit_depth
        self._color_type = color_type
        self._greyscale = color_type in (COLOR_TYPE_GREYSCALE, COLOR_TYPE_GREYSCALE_ALPHA)
        self._rgb = color_type in (COLOR_TYPE_RGB, COLOR_TYPE_RGBA)
        self._indexed = color_type == COLOR_TYPE_INDEXED
        self._transparent = color_type in (COLOR_TYPE_GREYSCALE_ALPHA, COLOR_TYPE_RGBA)

    def _read_iccp(self, data: bytes) -> None:
        separator = data.find(b'\x00')
        if separator < 0 or separator + 1 >= len(data):
            raise FormatError("Malformed iCCP chunk")

        name = data[:separator].decode('latin-1')
        compression = data[separator + 1]
        if compression != 0:
            raise FormatError(f"Unsupported iCCP compression method {compression}")

        try:
            self._icc_profile_data = inflate_profile(data[separator + 2:])
            logger.debug("iCCP profile '%s' (%d bytes)", name, len(self._icc_profile_data))
        except CompressionError as e:
            logger.warning("Ignoring iCCP profile '%s': %s", name, e.message)
            self._icc_profile_data = None

    def _read_phys(self, data: bytes) -> None:
        ppu_x, ppu_y, unit = struct.unpack('>IIB', data)
        if unit == 1:
            self._set_resolution(ppu_x / PPM_PER_DPI, ppu_y / PPM_PER_DPI)

    def to_dict(self):
        result = super().to_dict()
        result['PNGColorType'] = self._color_type
        return result
