# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Binary stream helpers

Exact-length reads and big-endian integer decoding shared by the
container parsers and rewriters.

Copyright 2025 DNAi inc.
"""

import struct
from typing import BinaryIO, Optional

from colormeta.exceptions import FormatError

# Bounded copy size for streaming file copies
COPY_BUFFER_SIZE = 64 * 1024


def read_exact(stream: BinaryIO, count: int, what: str = "data") -> bytes:
    """
    Read exactly `count` bytes from a stream.

    Args:
        stream: Readable binary stream
        count: Number of bytes to read
        what: Description of the structure being read, for error messages

    Returns:
        The bytes read

    Raises:
        FormatError: If the stream ends before `count` bytes are read
    """
    if count < 0:
        raise FormatError(f"Negative length while reading {what}")
    data = stream.read(count)
    if len(data) != count:
        raise FormatError(
            f"End of stream reached while reading {what} "
            f"(read {len(data)}, requested {count})"
        )
    return data


def read_optional(stream: BinaryIO, count: int, what: str = "data") -> Optional[bytes]:
    """
    Read exactly `count` bytes, or nothing at a clean end of stream.

    Args:
        stream: Readable binary stream
        count: Number of bytes to read
        what: Description of the structure being read, for error messages

    Returns:
        The bytes read, or None if the stream was already exhausted

    Raises:
        FormatError: If only part of the requested bytes is available
    """
    data = stream.read(count)
    if not data:
        return None
    if len(data) != count:
        raise FormatError(
            f"Truncated {what} (read {len(data)}, requested {count})"
        )
    return data


def read_u8(stream: BinaryIO, what: str = "byte") -> int:
    return read_exact(stream, 1, what)[0]


def read_u16be(stream: BinaryIO, what: str = "word") -> int:
    return struct.unpack('>H', read_exact(stream, 2, what))[0]


def read_u32be(stream: BinaryIO, what: str = "long") -> int:
    return struct.unpack('>I', read_exact(stream, 4, what))[0]


def copy_range(src: BinaryIO, dst: BinaryIO, start: int, length: int) -> None:
    """
    Copy `length` bytes from `src` at `start` to the current position of `dst`.

    Raises:
        FormatError: If the source ends before the range is copied
    """
    src.seek(start)
    remaining = length
    while remaining > 0:
        block = src.read(min(COPY_BUFFER_SIZE, remaining))
        if not block:
            raise FormatError(
                f"End of stream reached while copying {length} bytes at offset {start}"
            )
        dst.write(block)
        remaining -= len(block)


def copy_to_end(src: BinaryIO, dst: BinaryIO, start: int) -> None:
    """Copy everything from `start` to the end of `src` into `dst`."""
    src.seek(start)
    while True:
        block = src.read(COPY_BUFFER_SIZE)
        if not block:
            break
        dst.write(block)
