# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
TIFF structure reader for EXIF data

This module reads the TIFF header and Image File Directories (IFDs)
embedded in EXIF APP1 segments. All offsets inside the TIFF structure
are relative to the start of the TIFF header, which is passed in as an
absolute stream position.

Copyright 2025 DNAi inc.
"""

import struct
from enum import IntEnum
from typing import BinaryIO, List, Tuple

from colormeta.exceptions import FormatError
from colormeta.stream_reader import read_exact


class ExifTagType(IntEnum):
    """EXIF tag data types"""
    BYTE = 1
    ASCII = 2
    SHORT = 3
    LONG = 4
    RATIONAL = 5
    SBYTE = 6
    UNDEFINED = 7
    SSHORT = 8
    SLONG = 9
    SRATIONAL = 10


# EXIF tag sizes in bytes
TAG_SIZES = {
    ExifTagType.BYTE: 1,
    ExifTagType.ASCII: 1,
    ExifTagType.SHORT: 2,
    ExifTagType.LONG: 4,
    ExifTagType.RATIONAL: 8,
    ExifTagType.SBYTE: 1,
    ExifTagType.UNDEFINED: 1,
    ExifTagType.SSHORT: 2,
    ExifTagType.SLONG: 4,
    ExifTagType.SRATIONAL: 8,
}

# Tags read by the JPEG parser
TAG_ORIENTATION = 0x0112
TAG_X_RESOLUTION = 0x011A
TAG_Y_RESOLUTION = 0x011B
TAG_RESOLUTION_UNIT = 0x0128
TAG_WHITE_POINT = 0x013E
TAG_PRIMARY_CHROMATICITIES = 0x013F
TAG_THUMBNAIL_OFFSET = 0x0201
TAG_THUMBNAIL_LENGTH = 0x0202
TAG_EXIF_IFD_POINTER = 0x8769
TAG_COLOR_SPACE = 0xA001

IFD_ENTRY_SIZE = 12


def value_size(tag_type: int, count: int) -> int:
    """Total size in bytes of an entry's data; unknown types count as one 4-byte field."""
    try:
        return TAG_SIZES[ExifTagType(tag_type)] * count
    except ValueError:
        return 4


class IfdEntry:
    """
    A single 12-byte IFD entry.

    `value` holds the inline value when the data fits in the 4-byte
    value field, otherwise the offset (relative to the TIFF header) of
    the data. `position` is the absolute stream position of the value
    field itself.
    """

    def __init__(self, tag: int, tag_type: int, count: int, value: int, position: int):
        self.tag = tag
        self.tag_type = tag_type
        self.count = count
        self.value = value
        self.position = position

    def __repr__(self) -> str:
        return (f"IfdEntry(tag=0x{self.tag:04X}, type={self.tag_type}, "
                f"count={self.count}, value={self.value})")


class TIFFStructure:
    """
    Reader for a TIFF structure inside a seekable stream.
    """

    def __init__(self, stream: BinaryIO, tiff_start: int):
        """
        Initialize the TIFF structure reader.

        Args:
            stream: Seekable binary stream
            tiff_start: Absolute stream position of the TIFF header
        """
        self.stream = stream
        self.tiff_start = tiff_start
        self.endian = '<'
        self.little_endian = True
        self.ifd0_offset = 0

    def read_header(self) -> int:
        """
        Read the 8-byte TIFF header.

        Returns:
            Offset of IFD0, relative to the TIFF header

        Raises:
            FormatError: If the byte order mark is invalid or the header is truncated
        """
        self.stream.seek(self.tiff_start)
        header = read_exact(self.stream, 8, "TIFF header")

        if header[:2] == b'II':
            self.endian = '<'
            self.little_endian = True
        elif header[:2] == b'MM':
            self.endian = '>'
            self.little_endian = False
        else:
            raise FormatError("Invalid TIFF header: bad byte order")

        self.ifd0_offset = struct.unpack(f'{self.endian}I', header[4:8])[0]
        return self.ifd0_offset

    def read_ifd(self, offset: int) -> Tuple[List[IfdEntry], int]:
        """
        Read an IFD and the offset of the IFD that follows it.

        Args:
            offset: IFD offset, relative to the TIFF header

        Returns:
            Tuple of (entries, next IFD offset)

        Raises:
            FormatError: If the directory is truncated
        """
        self.stream.seek(self.tiff_start + offset)
        num_entries = struct.unpack(
            f'{self.endian}H', read_exact(self.stream, 2, "IFD entry count")
        )[0]

        entries = []
        for _ in range(num_entries):
            position = self.stream.tell()
            raw = read_exact(self.stream, IFD_ENTRY_SIZE, "IFD entry")
            tag, tag_type, count = struct.unpack(f'{self.endian}HHI', raw[:8])
            value = self.decode_value(raw[8:12], tag_type, count)
            entries.append(IfdEntry(tag, tag_type, count, value, position + 8))

        next_ifd = struct.unpack(
            f'{self.endian}I', read_exact(self.stream, 4, "next IFD offset")
        )[0]
        return entries, next_ifd

    def decode_value(self, field: bytes, tag_type: int, count: int) -> int:
        """
        Decode the 4-byte value-or-offset field of an IFD entry.

        Data that fits in the field is returned as an integer read with the
        width of its first element(s); anything larger is returned as an
        offset.

        Args:
            field: The 4 value bytes
            tag_type: EXIF tag type
            count: Number of values

        Returns:
            Inline value or data offset
        """
        total_size = value_size(tag_type, count)
        if total_size > 4:
            return struct.unpack(f'{self.endian}I', field)[0]

        if total_size <= 0:
            return 0
        if total_size == 1:
            return field[0]
        if total_size == 2:
            return struct.unpack(f'{self.endian}H', field[:2])[0]
        if total_size == 3:
            chunk = field[:3]
            if self.little_endian:
                return chunk[0] | (chunk[1] << 8) | (chunk[2] << 16)
            return (chunk[0] << 16) | (chunk[1] << 8) | chunk[2]
        return struct.unpack(f'{self.endian}I', field)[0]

    def read_longs(self, offset: int, count: int) -> List[int]:
        """
        Read `count` unsigned 32-bit values at a TIFF-relative offset.

        Raises:
            FormatError: If the data is truncated
        """
        self.stream.seek(self.tiff_start + offset)
        data = read_exact(self.stream, 4 * count, "EXIF values")
        return list(struct.unpack(f'{self.endian}{count}I', data))

    def read_rational(self, offset: int) -> float:
        """
        Read an unsigned rational at a TIFF-relative offset.

        Returns:
            numerator / denominator, or 0.0 when the denominator is zero
        """
        numerator, denominator = self.read_longs(offset, 2)
        if denominator == 0:
            return 0.0
        return numerator / denominator

    def pack_long(self, value: int) -> bytes:
        """Encode an unsigned 32-bit value with this structure's byte order."""
        return struct.pack(f'{self.endian}I', value)

    def pack_short(self, value: int) -> bytes:
        """Encode an unsigned 16-bit value with this structure's byte order."""
        return struct.pack(f'{self.endian}H', value)
