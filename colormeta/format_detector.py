# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Image container type detector

This module identifies the container type of an image from its leading
signature bytes, reading one byte at a time and discarding candidates as
soon as they stop matching.

Copyright 2025 DNAi inc.
"""

import io
import logging
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Dict, Union

logger = logging.getLogger(__name__)


class ImageType(Enum):
    """Image type identifiers."""
    UNKNOWN = "Unknown"
    PNG = "PNG"
    JPEG = "JPEG"
    BMP = "BMP"
    TIFF_LE = "TIFF_LE"
    TIFF_BE = "TIFF_BE"

    def __str__(self) -> str:
        return self.value


class FormatDetector:
    """
    Detects image container types from file signatures.
    """

    # Format signatures (magic numbers)
    FORMAT_SIGNATURES: Dict[ImageType, bytes] = {
        ImageType.PNG: b'\x89PNG\r\n\x1a\n',
        ImageType.JPEG: b'\xff\xd8',
        ImageType.BMP: b'BM',
        ImageType.TIFF_LE: b'II*\x00',
        ImageType.TIFF_BE: b'MM\x00*',
    }

    @classmethod
    def detect_stream(cls, stream: BinaryIO) -> ImageType:
        """
        Detect the image type of a binary stream.

        The stream is consumed from its current position, at most as many
        bytes as the longest signature.

        Args:
            stream: Readable binary stream

        Returns:
            Detected image type, or ImageType.UNKNOWN
        """
        candidates = dict(cls.FORMAT_SIGNATURES)
        longest = max(len(sig) for sig in candidates.values())
        pos = 0

        try:
            while candidates and pos < longest:
                byte = stream.read(1)
                if not byte:
                    break
                value = byte[0]
                for image_type, signature in list(candidates.items()):
                    if signature[pos] != value:
                        del candidates[image_type]
                    elif pos + 1 == len(signature):
                        return image_type
                pos += 1
        except OSError as e:
            logger.debug("Unable to read signature bytes: %s", e)

        return ImageType.UNKNOWN

    @classmethod
    def detect_bytes(cls, data: bytes) -> ImageType:
        """
        Detect the image type from a byte prefix.

        Args:
            data: Leading bytes of a file

        Returns:
            Detected image type, or ImageType.UNKNOWN
        """
        return cls.detect_stream(io.BytesIO(data))

    @classmethod
    def detect_file(cls, file_path: Union[str, Path]) -> ImageType:
        """
        Detect the image type of a file.

        Unreadable files are reported as ImageType.UNKNOWN.

        Args:
            file_path: Path to file

        Returns:
            Detected image type
        """
        try:
            with open(file_path, 'rb') as f:
                return cls.detect_stream(f)
        except OSError as e:
            logger.warning("Unable to read file %s: %s", file_path, e)
            return ImageType.UNKNOWN

    @classmethod
    def is_embedding_supported(cls, image_type: ImageType) -> bool:
        """
        Check if a container type supports ICC/resolution embedding.

        Args:
            image_type: Detected image type

        Returns:
            True for JPEG and PNG
        """
        return image_type in (ImageType.JPEG, ImageType.PNG)


def detect_image_type(stream: BinaryIO) -> ImageType:
    """Detect the image type of a binary stream."""
    return FormatDetector.detect_stream(stream)


def detect_file_type(file_path: Union[str, Path]) -> ImageType:
    """Detect the image type of a file on disk."""
    return FormatDetector.detect_file(file_path)
