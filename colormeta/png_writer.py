# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
PNG metadata writer

This module rewrites PNG files to embed or replace the ICC profile (iCCP)
and print resolution (pHYs). Every other chunk is copied verbatim,
including its original CRC; the new chunks are inserted right after IHDR.

Copyright 2025 DNAi inc.
"""

import logging
import math
import struct
import zlib
from pathlib import Path
from typing import BinaryIO, Optional, Union

from colormeta.exceptions import FormatError, MetadataWriteError
from colormeta.file_utils import atomic_output
from colormeta.icc_assembler import deflate_profile
from colormeta.icc_profile import IccProfile
from colormeta.png_parser import PNG_SIGNATURE, PPM_PER_DPI
from colormeta.stream_reader import copy_range, read_exact, read_optional

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_NAME = "ICC Profile"


def dpi_to_ppm(dpi: float) -> int:
    """Convert dots per inch to pixels per metre, rounding half up."""
    return int(math.floor(dpi * PPM_PER_DPI + 0.5))


def profile_bytes(profile: Union[IccProfile, bytes, None]) -> Optional[bytes]:
    """Raw bytes of a profile given as an IccProfile or as bytes."""
    if profile is None:
        return None
    if isinstance(profile, IccProfile):
        return profile.raw_bytes()
    return bytes(profile)


class PNGWriter:
    """
    Writes ICC profile and resolution metadata to PNG files.
    """

    # PNG chunk types
    CHUNK_IHDR = b'IHDR'
    CHUNK_ICCP = b'iCCP'
    CHUNK_PHYS = b'pHYs'

    def __init__(self, profile_name: str = DEFAULT_PROFILE_NAME):
        """
        Initialize PNG writer.

        Args:
            profile_name: Profile name stored in new iCCP chunks
        """
        self.profile_name = profile_name

    def embed_metadata(self, file_path: Union[str, Path],
                       profile: Union[IccProfile, bytes, None] = None,
                       dpi: float = 0,
                       output_path: Optional[Union[str, Path]] = None) -> bool:
        """
        Embed an ICC profile and/or resolution into a PNG file.

        Existing iCCP/pHYs chunks are replaced by the new ones. Nothing is
        written when neither a profile nor a positive DPI is given.

        Args:
            file_path: Source PNG file
            profile: ICC profile to embed, or None to keep the current one
            dpi: Resolution in dots per inch, or 0 to keep the current one
            output_path: Destination file (defaults to replacing the source)

        Returns:
            True if a file was written

        Raises:
            FormatError: If the source is not a valid PNG
            MetadataWriteError: If the metadata cannot be encoded
            OSError: If reading or writing fails
        """
        icc_data = profile_bytes(profile)
        if icc_data is None and dpi <= 0:
            logger.debug("No PNG metadata change requested for %s", file_path)
            return False

        new_chunks = []
        if icc_data is not None:
            new_chunks.append((self.CHUNK_ICCP, self._build_iccp(icc_data)))
        if dpi > 0:
            new_chunks.append((self.CHUNK_PHYS, self._build_phys(dpi)))

        skip_types = {chunk_type for chunk_type, _ in new_chunks}
        target = output_path if output_path is not None else file_path

        with atomic_output(target) as out:
            with open(file_path, 'rb') as src:
                self._rewrite(src, out, new_chunks, skip_types)

        logger.debug("Embedded %s into %s",
                     ', '.join(t.decode('latin-1') for t, _ in new_chunks), target)
        return True

    def embed_icc_profile(self, file_path: Union[str, Path],
                          profile: Union[IccProfile, bytes],
                          output_path: Optional[Union[str, Path]] = None) -> bool:
        """Embed an ICC profile, replacing any existing iCCP chunk."""
        return self.embed_metadata(file_path, profile=profile, output_path=output_path)

    def embed_resolution(self, file_path: Union[str, Path], dpi: float,
                         output_path: Optional[Union[str, Path]] = None) -> bool:
        """Embed a resolution, replacing any existing pHYs chunk."""
        return self.embed_metadata(file_path, dpi=dpi, output_path=output_path)

    def _rewrite(self, src: BinaryIO, out: BinaryIO, new_chunks, skip_types) -> None:
        if read_exact(src, len(PNG_SIGNATURE), "PNG signature") != PNG_SIGNATURE:
            raise FormatError("Invalid PNG signature")
        out.write(PNG_SIGNATURE)

        first = True
        offset = len(PNG_SIGNATURE)
        while True:
            header = read_optional(src, 8, "chunk header")
            if header is None:
                break
            length, chunk_type = struct.unpack('>I4s', header)

            if first and chunk_type != self.CHUNK_IHDR:
                raise FormatError(f"First PNG chunk is {chunk_type!r}, expected IHDR")

            if chunk_type in skip_types:
                logger.debug("Dropping existing %s chunk", chunk_type.decode('latin-1'))
            else:
                copy_range(src, out, offset, length + 12)

            if first:
                for new_type, new_data in new_chunks:
                    out.write(self._write_chunk(new_type, new_data))
                first = False

            offset += length + 12
            src.seek(offset)

        if first:
            raise FormatError("PNG stream has no IHDR chunk")

    def _build_iccp(self, icc_data: bytes) -> bytes:
        try:
            name = self.profile_name.encode('latin-1')
        except UnicodeEncodeError as e:
            raise MetadataWriteError(f"Profile name is not Latin-1: {e}") from e
        if not 1 <= len(name) <= 79 or b'\x00' in name:
            raise MetadataWriteError("Profile name must be 1-79 Latin-1 characters without NUL")

        # Name, NUL terminator, compression method 0 (deflate), data
        return name + b'\x00\x00' + deflate_profile(icc_data)

    @staticmethod
    def _build_phys(dpi: float) -> bytes:
        ppm = dpi_to_ppm(dpi)
        if ppm <= 0 or ppm > 0xFFFFFFFF:
            raise MetadataWriteError(f"Resolution {dpi} dpi cannot be stored in pHYs")
        # Same density on both axes, unit 1 = metre
        return struct.pack('>IIB', ppm, ppm, 1)

    @staticmethod
    def _write_chunk(chunk_type: bytes, chunk_data: bytes) -> bytes:
        """
        Write a PNG chunk with CRC.

        Args:
            chunk_type: Chunk type (4 bytes)
            chunk_data: Chunk data

        Returns:
            Complete chunk bytes (length + type + data + CRC)
        """
        crc = zlib.crc32(chunk_type + chunk_data) & 0xFFFFFFFF
        return struct.pack('>I', len(chunk_data)) + chunk_type + chunk_data + struct.pack('>I', crc)
