# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
ICC profile fragment assembler

JPEG files carry ICC profiles split across APP2 "ICC_PROFILE" segments,
each tagged with a 1-based chunk index and the total chunk count. PNG files
carry a single deflate-compressed profile in the iCCP chunk. This module
reassembles both forms into the raw profile bytes.

Copyright 2025 DNAi inc.
"""

import logging
import zlib
from typing import BinaryIO, List

from colormeta.exceptions import CompressionError, FormatError
from colormeta.stream_reader import read_exact

logger = logging.getLogger(__name__)

# Growth increment for the bounded inflate loop
INFLATE_CHUNK_SIZE = 1024


class IccFragment:
    """
    One APP2 ICC fragment located during a JPEG parse.

    Attributes:
        offset: Absolute position of the first profile byte of this fragment
        length: Number of profile bytes in this fragment
        index: 1-based chunk index from the segment header
        count: Total chunk count from the segment header
    """

    def __init__(self, offset: int, length: int, index: int, count: int):
        self.offset = offset
        self.length = length
        self.index = index
        self.count = count

    def __repr__(self) -> str:
        return (f"IccFragment(offset={self.offset}, length={self.length}, "
                f"index={self.index}, count={self.count})")


def validate_fragments(fragments: List[IccFragment]) -> None:
    """
    Check that a fragment set describes exactly one complete profile.

    Every fragment must report the same chunk count, that count must equal
    the number of fragments, and the chunk indices must be exactly 1..count.

    Args:
        fragments: Fragments in stream order

    Raises:
        FormatError: If the fragment set is empty or inconsistent
    """
    if not fragments:
        raise FormatError("No ICC fragments")

    counts = {fragment.count for fragment in fragments}
    if len(counts) != 1:
        raise FormatError(f"ICC fragments disagree on chunk count: {sorted(counts)}")

    count = counts.pop()
    if count != len(fragments):
        raise FormatError(
            f"ICC chunk count {count} does not match {len(fragments)} fragments"
        )

    indices = sorted(fragment.index for fragment in fragments)
    if indices != list(range(1, count + 1)):
        raise FormatError(f"ICC chunk indices are not 1..{count}: {indices}")


def assemble_fragments(stream: BinaryIO, fragments: List[IccFragment]) -> bytes:
    """
    Concatenate fragment byte ranges in ascending chunk-index order.

    Args:
        stream: Seekable stream over the JPEG file
        fragments: Fragments as recorded by the parser (any order)

    Returns:
        Reassembled profile bytes

    Raises:
        FormatError: If the fragments are inconsistent or a range is truncated
    """
    validate_fragments(fragments)

    parts = []
    for fragment in sorted(fragments, key=lambda f: f.index):
        stream.seek(fragment.offset)
        parts.append(read_exact(stream, fragment.length, f"ICC fragment {fragment.index}"))
        logger.debug("Read ICC fragment %d/%d (%d bytes at %d)",
                     fragment.index, fragment.count, fragment.length, fragment.offset)

    return b''.join(parts)


def inflate_profile(data: bytes) -> bytes:
    """
    Inflate a zlib stream using a bounded growth buffer.

    Output is produced at most INFLATE_CHUNK_SIZE bytes at a time until the
    decompressor reports the end of the stream.

    Args:
        data: zlib-compressed profile bytes

    Returns:
        Decompressed profile bytes

    Raises:
        CompressionError: If the data is corrupt or ends before the stream does
    """
    decompressor = zlib.decompressobj()
    output = bytearray()
    pending = data

    try:
        while not decompressor.eof:
            block = decompressor.decompress(pending, INFLATE_CHUNK_SIZE)
            progressed = bool(block) or len(decompressor.unconsumed_tail) < len(pending)
            pending = decompressor.unconsumed_tail
            output.extend(block)
            if not progressed:
                break
    except zlib.error as e:
        raise CompressionError(f"Unable to inflate profile data: {e}") from e

    if not decompressor.eof:
        raise CompressionError("Compressed profile data ended before the end of stream")

    return bytes(output)


def deflate_profile(data: bytes) -> bytes:
    """
    Compress profile bytes for a PNG iCCP chunk.

    Raises:
        CompressionError: If compression fails
    """
    try:
        return zlib.compress(data, 9)
    except zlib.error as e:
        raise CompressionError(f"Unable to deflate profile data: {e}") from e
