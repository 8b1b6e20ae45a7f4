# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""Tests for metadata loading, dispatch and atomic file output."""

import io
import os
import stat

import pytest
from conftest import build_jpeg, build_png, fake_profile, icc_segments, iccp_chunk, jfif_segment
from PIL import Image

from colormeta.exceptions import FormatError, UnsupportedFormatError
from colormeta.file_utils import atomic_output, staged_file
from colormeta.format_detector import ImageType
from colormeta.image_metadata import (
    ParseResult,
    embed_metadata,
    get_icc_profile,
    load_metadata,
    read_metadata,
)
from colormeta.jpeg_parser import JPEGMetadata
from colormeta.png_parser import PNGMetadata


def bmp_bytes(mode='RGB', size=(6, 2)) -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size).save(buffer, format='BMP', dpi=(150, 150))
    return buffer.getvalue()


class TestParseResult:

    def test_needs_exactly_one(self):
        with pytest.raises(ValueError):
            ParseResult()

    def test_error(self):
        result = ParseResult(error=FormatError("broken"))
        assert not result.ok
        assert "broken" in repr(result)
        with pytest.raises(FormatError):
            result.unwrap()


class TestLoadMetadata:

    def test_jpeg(self, write_file):
        path = write_file('x.dat', build_jpeg(jfif_segment(1, 72, 72)))
        metadata = read_metadata(path)
        assert isinstance(metadata, JPEGMetadata)
        assert metadata.horizontal_dpi == 72

    def test_png(self, write_file):
        path = write_file('x.png', build_png())
        assert isinstance(read_metadata(path), PNGMetadata)

    def test_bmp_dimensions(self, write_file):
        path = write_file('x.bmp', bmp_bytes())
        metadata = read_metadata(path)
        assert metadata.image_type == ImageType.BMP
        assert (metadata.width, metadata.height) == (6, 2)
        assert metadata.is_rgb
        assert not metadata.has_icc_profile()
        assert metadata.horizontal_dpi == pytest.approx(150, abs=1)

    def test_unknown_data(self, write_file):
        path = write_file('x.bin', b'not an image at all')
        result = load_metadata(path)
        assert not result.ok
        assert isinstance(result.error, FormatError)

    def test_parse_error_is_raised_by_read(self, write_file):
        path = write_file('x.jpg', b'\xff\xd8\x12')
        with pytest.raises(FormatError):
            read_metadata(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_metadata(tmp_path / 'none.jpg')

    def test_get_icc_profile(self, write_file):
        profile = fake_profile(333)
        jpeg = write_file('x.jpg', build_jpeg(*icc_segments(profile)))
        png = write_file('x.png', build_png(iccp_chunk(profile)))
        bare = write_file('y.png', build_png())
        assert get_icc_profile(jpeg) == profile
        assert get_icc_profile(png) == profile
        assert get_icc_profile(bare) is None

    def test_to_dict(self, write_file):
        path = write_file('x.png', build_png(iccp_chunk(fake_profile(256))))
        summary = read_metadata(path).to_dict()
        assert summary['ImageType'] == 'PNG'
        assert summary['ICCProfile'] is True
        assert summary['ICCProfileSize'] == 256
        assert summary['Orientation'] == 'TOP'


class TestEmbedMetadata:

    def test_dispatch_jpeg(self, write_file):
        path = write_file('x.jpg', build_jpeg(jfif_segment()))
        assert embed_metadata(path, fake_profile(200), 300)
        metadata = read_metadata(path)
        assert metadata.icc_profile_bytes() == fake_profile(200)
        assert metadata.horizontal_dpi == 300

    def test_dispatch_png(self, write_file):
        path = write_file('x.png', build_png())
        assert embed_metadata(path, dpi=72)
        assert read_metadata(path).horizontal_dpi == pytest.approx(72, abs=0.05)

    def test_unsupported_container(self, write_file):
        path = write_file('x.bmp', bmp_bytes())
        with pytest.raises(UnsupportedFormatError):
            embed_metadata(path, fake_profile())


class TestAtomicOutput:

    def test_replaces_target(self, tmp_path):
        target = tmp_path / 'out.bin'
        target.write_bytes(b'old')
        with atomic_output(target) as out:
            out.write(b'new')
        assert target.read_bytes() == b'new'
        assert [p.name for p in tmp_path.iterdir()] == ['out.bin']

    def test_failure_keeps_target(self, tmp_path):
        target = tmp_path / 'out.bin'
        target.write_bytes(b'old')
        with pytest.raises(RuntimeError):
            with atomic_output(target) as out:
                out.write(b'partial')
                raise RuntimeError("boom")
        assert target.read_bytes() == b'old'
        assert [p.name for p in tmp_path.iterdir()] == ['out.bin']

    def test_creates_new_file(self, tmp_path):
        target = tmp_path / 'fresh.bin'
        with atomic_output(str(target)) as out:
            out.write(b'data')
        assert target.read_bytes() == b'data'

    @pytest.mark.skipif(os.name == 'nt', reason="POSIX permission bits")
    @pytest.mark.parametrize("mode", [0o644, 0o640, 0o600])
    def test_keeps_target_mode(self, tmp_path, mode):
        target = tmp_path / 'out.bin'
        target.write_bytes(b'old')
        target.chmod(mode)
        with atomic_output(target) as out:
            out.write(b'new')
        assert stat.S_IMODE(target.stat().st_mode) == mode

    @pytest.mark.skipif(os.name == 'nt', reason="POSIX permission bits")
    def test_new_file_follows_umask(self, tmp_path):
        umask = os.umask(0o022)
        try:
            target = tmp_path / 'fresh.bin'
            with atomic_output(target) as out:
                out.write(b'data')
        finally:
            os.umask(umask)
        assert stat.S_IMODE(target.stat().st_mode) == 0o644

    @pytest.mark.skipif(os.name == 'nt', reason="POSIX permission bits")
    def test_embedding_keeps_image_mode(self, write_file):
        png = write_file('x.png', build_png())
        jpeg = write_file('x.jpg', build_jpeg(jfif_segment()))
        for path in (png, jpeg):
            path.chmod(0o644)
            assert embed_metadata(path, fake_profile(200), 300)
            assert stat.S_IMODE(path.stat().st_mode) == 0o644

    def test_staged_file_is_removed(self, tmp_path):
        with pytest.raises(RuntimeError):
            with staged_file(tmp_path / 'out.bin') as staged:
                with open(staged, 'wb') as out:
                    out.write(b'partial')
                raise RuntimeError("boom")
        assert list(tmp_path.iterdir()) == []
