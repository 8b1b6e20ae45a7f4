# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
JPEG file modifier

This module rewrites JPEG files to embed or replace the ICC profile and
the print resolution. The file is streamed to a temporary file: new APP2
ICC segments are written right after SOI, every pre-existing ICC segment
is left out, resolution fields of existing JFIF/EXIF segments are patched
in place, and all other bytes are copied unchanged.

Copyright 2025 DNAi inc.
"""

import logging
import math
import struct
from pathlib import Path
from typing import BinaryIO, List, Optional, Tuple, Union

from colormeta.exceptions import MetadataWriteError
from colormeta.file_utils import atomic_output
from colormeta.icc_profile import IccProfile
from colormeta.jpeg_parser import (
    ICC_IDENTIFIER,
    JFIF_IDENTIFIER,
    JPEGMetadata,
)
from colormeta.png_writer import profile_bytes
from colormeta.stream_reader import copy_range, copy_to_end

logger = logging.getLogger(__name__)

# Largest profile payload per APP2 segment:
# 65535 - 2 (length field) - 12 (identifier) - 2 (index/count)
MAX_FRAGMENT_SIZE = 65519
MAX_FRAGMENTS = 255

# Largest density a JFIF header can store
MAX_JFIF_DENSITY = 0xFFFF


def split_profile(data: bytes, max_size: int = MAX_FRAGMENT_SIZE) -> List[bytes]:
    """
    Split profile bytes into APP2-sized pieces.

    Args:
        data: Profile bytes
        max_size: Largest piece size

    Returns:
        Pieces in order; their concatenation is `data`

    Raises:
        MetadataWriteError: If the profile is empty or needs more than 255 pieces
    """
    if not data:
        raise MetadataWriteError("Cannot embed an empty ICC profile")
    if not 1 <= max_size <= MAX_FRAGMENT_SIZE:
        raise MetadataWriteError(f"Fragment size must be 1..{MAX_FRAGMENT_SIZE}")

    pieces = [data[i:i + max_size] for i in range(0, len(data), max_size)]
    if len(pieces) > MAX_FRAGMENTS:
        raise MetadataWriteError(
            f"ICC profile of {len(data)} bytes needs {len(pieces)} APP2 segments "
            f"(maximum {MAX_FRAGMENTS})"
        )
    return pieces


def build_icc_segments(data: bytes, max_size: int = MAX_FRAGMENT_SIZE) -> List[bytes]:
    """
    Build the APP2 ICC_PROFILE segments carrying a profile.

    Returns:
        Complete segments including marker and length
    """
    pieces = split_profile(data, max_size)
    count = len(pieces)
    segments = []
    for index, piece in enumerate(pieces, 1):
        payload = ICC_IDENTIFIER + bytes((index, count)) + piece
        segments.append(b'\xff\xe2' + struct.pack('>H', len(payload) + 2) + payload)
    return segments


def build_jfif_segment(dpi: float) -> bytes:
    """Build a JFIF 1.01 APP0 segment with the given density in dots per inch."""
    density = _jfif_density(dpi)
    payload = (JFIF_IDENTIFIER + b'\x01\x01' + b'\x01'
               + struct.pack('>HH', density, density) + b'\x00\x00')
    return b'\xff\xe0' + struct.pack('>H', len(payload) + 2) + payload


def _jfif_density(dpi: float) -> int:
    density = int(math.floor(dpi + 0.5))
    if not 1 <= density <= MAX_JFIF_DENSITY:
        raise MetadataWriteError(f"Resolution {dpi} dpi cannot be stored in a JFIF header")
    return density


def _exif_rational(dpi: float) -> Tuple[int, int]:
    if dpi == int(dpi):
        return int(dpi), 1
    return int(math.floor(dpi * 1000 + 0.5)), 1000


class JPEGModifier:
    """
    Modifies JPEG files to update ICC profile and resolution metadata.
    """

    def __init__(self, max_fragment_size: int = MAX_FRAGMENT_SIZE):
        self.max_fragment_size = max_fragment_size

    def embed_metadata(self, file_path: Union[str, Path],
                       profile: Union[IccProfile, bytes, None] = None,
                       dpi: float = 0,
                       output_path: Optional[Union[str, Path]] = None) -> bool:
        """
        Embed an ICC profile and/or resolution into a JPEG file.

        Args:
            file_path: Source JPEG file
            profile: ICC profile to embed, or None to keep the current one
            dpi: Resolution in dots per inch, or 0 to keep the current one
            output_path: Destination file (defaults to replacing the source)

        Returns:
            True if a file was written, False if no change was requested

        Raises:
            FormatError: If the source is not a valid JPEG
            MetadataWriteError: If the metadata cannot be encoded
            OSError: If reading or writing fails
        """
        icc_data = profile_bytes(profile)
        if icc_data is None and dpi <= 0:
            logger.debug("No JPEG metadata change requested for %s", file_path)
            return False

        metadata = JPEGMetadata.parse(file_path).unwrap()

        head: List[bytes] = []
        skips: List[Tuple[int, int]] = []
        patches: List[Tuple[int, bytes]] = []

        if dpi > 0:
            inserted_jfif = self._resolution_changes(metadata, dpi, patches)
            if inserted_jfif is not None:
                head.append(inserted_jfif)

        if icc_data is not None:
            icc_segments = build_icc_segments(icc_data, self.max_fragment_size)
            head.extend(icc_segments)
            skips = [(segment.offset, segment.end) for segment in metadata.icc_segments()]
            logger.debug("Replacing %d ICC segments with %d", len(skips), len(icc_segments))

        target = output_path if output_path is not None else file_path
        with atomic_output(target) as out:
            with open(file_path, 'rb') as src:
                out.write(b'\xff\xd8')
                for segment in head:
                    out.write(segment)
                self._copy_remainder(src, out, skips, patches)

        return True

    def embed_icc_profile(self, file_path: Union[str, Path],
                          profile: Union[IccProfile, bytes],
                          output_path: Optional[Union[str, Path]] = None) -> bool:
        """Embed an ICC profile, replacing any existing ICC APP2 segments."""
        return self.embed_metadata(file_path, profile=profile, output_path=output_path)

    def embed_resolution(self, file_path: Union[str, Path], dpi: float,
                         output_path: Optional[Union[str, Path]] = None) -> bool:
        """Set the JFIF/EXIF resolution, adding a JFIF header if there is none."""
        return self.embed_metadata(file_path, dpi=dpi, output_path=output_path)

    @staticmethod
    def _resolution_changes(metadata: JPEGMetadata, dpi: float,
                            patches: List[Tuple[int, bytes]]) -> Optional[bytes]:
        """
        Collect in-place resolution patches.

        Returns:
            A JFIF APP0 segment to insert after SOI when the file has no
            resolution field to patch, else None
        """
        if metadata.jfif_density_offset is not None:
            density = _jfif_density(dpi)
            patches.append((metadata.jfif_density_offset,
                            struct.pack('>BHH', 1, density, density)))

        numerator, denominator = _exif_rational(dpi)
        for field in metadata.resolution_fields:
            endian = '<' if field.little_endian else '>'
            if field.name == 'unit':
                # Inline SHORT: 2 = inch
                patches.append((field.position, struct.pack(f'{endian}H', 2)))
            else:
                patches.append((field.position,
                                struct.pack(f'{endian}II', numerator, denominator)))

        if not patches:
            return build_jfif_segment(dpi)
        return None

    @staticmethod
    def _copy_remainder(src: BinaryIO, out: BinaryIO,
                        skips: List[Tuple[int, int]],
                        patches: List[Tuple[int, bytes]]) -> None:
        """
        Copy everything after SOI, leaving out `skips` and applying `patches`.

        Raises:
            MetadataWriteError: If patches overlap each other or a skipped range
        """
        events = [(start, end, None) for start, end in skips]
        events += [(position, position + len(data), data) for position, data in patches]
        events.sort(key=lambda event: event[0])

        position = 2
        for start, end, data in events:
            if start < position:
                raise MetadataWriteError(f"Overlapping metadata ranges at offset {start}")
            copy_range(src, out, position, start - position)
            if data is not None:
                out.write(data)
            position = end

        copy_to_end(src, out, position)
