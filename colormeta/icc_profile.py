# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
ICC profile object

This module wraps raw ICC profile bytes, validating the 128-byte profile
header and exposing the data colour space, the profile description and a
Pillow ImageCms handle for use by the transform engine.

Copyright 2025 DNAi inc.
"""

import io
import struct
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from PIL import ImageCms

from colormeta.exceptions import UnsupportedProfileError

ICC_HEADER_SIZE = 128
ICC_SIGNATURE = b'acsp'
ICC_SIGNATURE_OFFSET = 36


class ColorSpaceType(Enum):
    """Data colour space classes relevant to the transform pipeline."""
    GRAY = "Gray"
    RGB = "RGB"
    CMYK = "CMYK"
    OTHER = "Other"

    def __str__(self) -> str:
        return self.value


# Header colour space signature -> colour space class
COLOR_SPACE_SIGNATURES: Dict[bytes, ColorSpaceType] = {
    b'GRAY': ColorSpaceType.GRAY,
    b'RGB ': ColorSpaceType.RGB,
    b'CMYK': ColorSpaceType.CMYK,
}

# Number of channels per colour space class
CHANNELS = {
    ColorSpaceType.GRAY: 1,
    ColorSpaceType.RGB: 3,
    ColorSpaceType.CMYK: 4,
}


class IccProfile:
    """
    A validated ICC profile.

    The raw bytes are kept unchanged; the Pillow profile handle is created
    on first use.
    """

    def __init__(self, data: bytes):
        """
        Validate and wrap profile bytes.

        Args:
            data: Raw ICC profile bytes

        Raises:
            UnsupportedProfileError: If the bytes do not form a valid ICC profile
        """
        data = bytes(data)
        if len(data) < ICC_HEADER_SIZE:
            raise UnsupportedProfileError(
                f"ICC profile too short: {len(data)} bytes"
            )

        declared_size = struct.unpack('>I', data[0:4])[0]
        if declared_size < ICC_HEADER_SIZE or declared_size > len(data):
            raise UnsupportedProfileError(
                f"ICC profile declares {declared_size} bytes but {len(data)} are available"
            )

        if data[ICC_SIGNATURE_OFFSET:ICC_SIGNATURE_OFFSET + 4] != ICC_SIGNATURE:
            raise UnsupportedProfileError("Missing 'acsp' profile signature")

        self._data = data
        self._pillow_profile: Optional[ImageCms.ImageCmsProfile] = None

    @classmethod
    def from_file(cls, file_path: Union[str, Path]) -> 'IccProfile':
        """
        Load a profile from an .icc/.icm file.

        Raises:
            OSError: If the file cannot be read
            UnsupportedProfileError: If the file is not a valid ICC profile
        """
        with open(file_path, 'rb') as f:
            return cls(f.read())

    def raw_bytes(self) -> bytes:
        return self._data

    @property
    def size(self) -> int:
        return len(self._data)

    @property
    def color_space_signature(self) -> str:
        return self._data[16:20].decode('latin-1')

    @property
    def connection_space_signature(self) -> str:
        return self._data[20:24].decode('latin-1')

    @property
    def device_class(self) -> str:
        return self._data[12:16].decode('latin-1')

    @property
    def version(self) -> Tuple[int, int]:
        """Profile version as (major, minor)."""
        return self._data[8], self._data[9] >> 4

    def colorspace_type(self) -> ColorSpaceType:
        return COLOR_SPACE_SIGNATURES.get(self._data[16:20], ColorSpaceType.OTHER)

    def channels(self) -> int:
        """Number of channels of the data colour space, 0 for other spaces."""
        return CHANNELS.get(self.colorspace_type(), 0)

    def tag_table(self) -> Dict[bytes, Tuple[int, int]]:
        """
        Read the tag table.

        Returns:
            Dictionary of tag signature -> (offset, size); entries pointing
            outside the profile are left out
        """
        tags = {}
        if len(self._data) < ICC_HEADER_SIZE + 4:
            return tags

        count = struct.unpack('>I', self._data[128:132])[0]
        for i in range(count):
            start = 132 + i * 12
            if start + 12 > len(self._data):
                break
            signature, offset, size = struct.unpack('>4sII', self._data[start:start + 12])
            if offset + size <= len(self._data):
                tags[signature] = (offset, size)
        return tags

    def description(self) -> Optional[str]:
        """
        Get the profile description (desc tag).

        Both the ICC v2 textDescriptionType and the v4
        multiLocalizedUnicodeType encodings are read.

        Returns:
            Description text, or None if absent or unreadable
        """
        entry = self.tag_table().get(b'desc')
        if entry is None:
            return None
        offset, size = entry
        tag = self._data[offset:offset + size]

        if tag[:4] == b'desc' and len(tag) >= 12:
            length = struct.unpack('>I', tag[8:12])[0]
            text = tag[12:12 + length]
            return text.split(b'\x00', 1)[0].decode('latin-1')

        if tag[:4] == b'mluc' and len(tag) >= 16:
            records, record_size = struct.unpack('>II', tag[8:16])
            if records == 0 or len(tag) < 16 + record_size:
                return None
            length, text_offset = struct.unpack('>II', tag[20:28])
            text = tag[text_offset:text_offset + length]
            return text.decode('utf-16-be', errors='replace').rstrip('\x00')

        return None

    def to_pillow(self) -> ImageCms.ImageCmsProfile:
        """
        Get a Pillow ImageCms profile for these bytes.

        Raises:
            UnsupportedProfileError: If LittleCMS rejects the profile
        """
        if self._pillow_profile is None:
            try:
                self._pillow_profile = ImageCms.ImageCmsProfile(io.BytesIO(self._data))
            except (OSError, ImageCms.PyCMSError) as e:
                raise UnsupportedProfileError(f"Unable to open ICC profile: {e}") from e
        return self._pillow_profile

    def save(self, file_path: Union[str, Path]) -> None:
        with open(file_path, 'wb') as f:
            f.write(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IccProfile):
            return NotImplemented
        return self._data == other._data

    def __hash__(self) -> int:
        return hash(self._data)

    def __repr__(self) -> str:
        return (f"IccProfile(space={self.colorspace_type()}, size={len(self._data)}, "
                f"description={self.description()!r})")
