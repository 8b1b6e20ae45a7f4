# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""Tests for container type detection."""

import io

import pytest

from colormeta.format_detector import (
    FormatDetector,
    ImageType,
    detect_file_type,
    detect_image_type,
)


class FailingStream(io.RawIOBase):
    def readable(self):
        return True

    def read(self, size=-1):
        raise OSError("device error")


class TestDetectImageType:

    @pytest.mark.parametrize("prefix, expected", [
        (b'\x89PNG\r\n\x1a\n\x00\x00\x00\x0dIHDR', ImageType.PNG),
        (b'\xff\xd8\xff\xe0\x00\x10JFIF', ImageType.JPEG),
        (b'BM\x36\x00\x00\x00', ImageType.BMP),
        (b'II*\x00\x08\x00\x00\x00', ImageType.TIFF_LE),
        (b'MM\x00*\x00\x00\x00\x08', ImageType.TIFF_BE),
    ])
    def test_signatures(self, prefix, expected):
        assert detect_image_type(io.BytesIO(prefix)) == expected

    def test_empty_stream(self):
        assert detect_image_type(io.BytesIO(b'')) == ImageType.UNKNOWN

    def test_unknown_bytes(self):
        assert detect_image_type(io.BytesIO(b'GIF89a')) == ImageType.UNKNOWN

    def test_truncated_png_signature(self):
        assert FormatDetector.detect_bytes(b'\x89PNG\r\n') == ImageType.UNKNOWN

    def test_jpeg_detected_after_two_bytes(self):
        stream = io.BytesIO(b'\xff\xd8rest')
        assert detect_image_type(stream) == ImageType.JPEG
        assert stream.tell() == 2

    def test_read_failure_is_unknown(self):
        assert detect_image_type(FailingStream()) == ImageType.UNKNOWN


class TestDetectFileType:

    def test_file(self, write_file):
        path = write_file('a.png', b'\x89PNG\r\n\x1a\nxxxx')
        assert detect_file_type(path) == ImageType.PNG

    def test_missing_file(self, tmp_path):
        assert detect_file_type(tmp_path / 'missing.jpg') == ImageType.UNKNOWN

    def test_embedding_support(self):
        assert FormatDetector.is_embedding_supported(ImageType.JPEG)
        assert FormatDetector.is_embedding_supported(ImageType.PNG)
        assert not FormatDetector.is_embedding_supported(ImageType.BMP)
