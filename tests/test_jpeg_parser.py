# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""Tests for the JPEG metadata parser."""

import io

import pytest
from conftest import (
    RATIONAL,
    SHORT,
    adobe_segment,
    app_segment,
    build_jpeg,
    build_tiff,
    exif_segment,
    fake_profile,
    icc_segments,
    jfif_segment,
    pillow_jpeg,
    sof_segment,
)

from colormeta.exceptions import FormatError
from colormeta.image_metadata import ImageOrientation
from colormeta.jpeg_parser import (
    ADOBE_TRANSFORM_YCCK,
    EXIF_CS_ADOBERGB,
    EXIF_CS_SRGB,
    EXIF_CS_UNKNOWN,
    JPEGMetadata,
)

ADOBE_WHITE = [(313, 1000), (329, 1000)]
ADOBE_PRIMARIES = [(64, 100), (33, 100), (21, 100), (71, 100), (15, 100), (6, 100)]


def parse(data: bytes):
    return JPEGMetadata.parse_stream(io.BytesIO(data))


def parse_ok(data: bytes) -> JPEGMetadata:
    result = parse(data)
    assert result.ok, result.error
    return result.metadata


class TestStructure:

    def test_frame_header(self):
        metadata = parse_ok(build_jpeg(sof=sof_segment(width=320, height=200, components=3)))
        assert (metadata.width, metadata.height) == (320, 200)
        assert metadata.bit_depth == 8
        assert metadata.num_components == 3
        assert metadata.is_rgb and not metadata.is_cmyk

    @pytest.mark.parametrize("components, grey, cmyk", [(1, True, False), (4, False, True)])
    def test_component_flags(self, components, grey, cmyk):
        metadata = parse_ok(build_jpeg(sof=sof_segment(components=components)))
        assert metadata.is_greyscale is grey
        assert metadata.is_cmyk is cmyk

    def test_progressive_frame(self):
        metadata = parse_ok(build_jpeg(sof=sof_segment(width=7, height=5, marker=0xC2)))
        assert (metadata.width, metadata.height) == (7, 5)

    def test_huffman_table_is_not_a_frame(self):
        dht = app_segment(0xC4, b'\x00' + bytes(16))
        metadata = parse_ok(build_jpeg(dht, sof=sof_segment(width=9, height=3)))
        assert (metadata.width, metadata.height) == (9, 3)

    def test_missing_soi(self):
        result = parse(b'\xff\xd9' + build_jpeg()[2:])
        assert not result.ok
        assert isinstance(result.error, FormatError)

    def test_empty_stream(self):
        assert not parse(b'').ok

    def test_invalid_marker_byte(self):
        data = b'\xff\xd8' + jfif_segment() + b'\x00\xe1\x00\x04ab'
        assert not parse(data).ok

    def test_fill_bytes_are_skipped(self):
        data = b'\xff\xd8\xff\xff\xff' + jfif_segment(1, 150, 150)[1:] + build_jpeg()[2:]
        metadata = parse_ok(data)
        assert metadata.jfif_found
        assert metadata.horizontal_dpi == 150

    def test_truncated_segment(self):
        data = b'\xff\xd8' + jfif_segment()[:10]
        assert not parse(data).ok

    def test_segment_length_below_two(self):
        data = b'\xff\xd8\xff\xe1\x00\x01'
        assert not parse(data).ok

    def test_clean_end_after_segments(self):
        metadata = parse_ok(b'\xff\xd8' + jfif_segment(1, 96, 96))
        assert metadata.horizontal_dpi == 96
        assert metadata.width == 0

    def test_segment_ranges(self):
        jfif = jfif_segment()
        icc = icc_segments(fake_profile(300))
        metadata = parse_ok(build_jpeg(jfif, *icc))
        segments = metadata.segments
        assert [s.kind for s in segments] == ['JFIF', 'ICC']
        assert segments[0].offset == 2
        assert segments[0].end == 2 + len(jfif)
        assert segments[1].offset == segments[0].end
        assert segments[1].length == len(icc[0])
        assert metadata.icc_segments() == [segments[1]]

    def test_parse_file(self, write_file):
        path = write_file('photo.jpg', pillow_jpeg(size=(12, 6)))
        metadata = JPEGMetadata.parse(path).unwrap()
        assert (metadata.width, metadata.height) == (12, 6)
        assert metadata.jfif_found
        assert metadata.file_path == path


class TestJFIF:

    def test_dots_per_inch(self):
        metadata = parse_ok(build_jpeg(jfif_segment(1, 300, 200)))
        assert metadata.jfif_found
        assert (metadata.horizontal_dpi, metadata.vertical_dpi) == (300, 200)
        assert metadata.jfif_density_offset == 2 + 4 + 7

    def test_dots_per_cm(self):
        metadata = parse_ok(build_jpeg(jfif_segment(2, 100, 100)))
        assert metadata.horizontal_dpi == pytest.approx(254.0)

    def test_aspect_ratio_only(self):
        metadata = parse_ok(build_jpeg(jfif_segment(0, 1, 1)))
        assert metadata.horizontal_dpi == 0
        assert metadata.jfif_density_offset is not None

    def test_truncated_header(self):
        data = build_jpeg(app_segment(0xE0, b'JFIF\x00\x01\x01\x01'))
        assert not parse(data).ok


class TestExif:

    def test_orientation_little_endian(self):
        tiff = build_tiff([(0x0112, SHORT, 1, 6)])
        metadata = parse_ok(build_jpeg(exif_segment(tiff)))
        assert metadata.exif_found
        assert metadata.exif_orientation == 6
        assert metadata.orientation == ImageOrientation.RIGHT

    def test_orientation_big_endian(self):
        tiff = build_tiff([(0x0112, SHORT, 1, 3)], endian='>')
        metadata = parse_ok(build_jpeg(exif_segment(tiff)))
        assert metadata.orientation == ImageOrientation.DOWN

    @pytest.mark.parametrize("value, expected", [
        (1, ImageOrientation.TOP), (2, ImageOrientation.TOP),
        (4, ImageOrientation.DOWN), (5, ImageOrientation.RIGHT),
        (7, ImageOrientation.LEFT), (8, ImageOrientation.LEFT),
        (0, ImageOrientation.TOP), (42, ImageOrientation.TOP),
    ])
    def test_orientation_mapping(self, value, expected):
        assert ImageOrientation.from_exif(value) == expected

    def test_invalid_byte_order(self):
        tiff = b'XX' + build_tiff([(0x0112, SHORT, 1, 1)])[2:]
        assert not parse(build_jpeg(exif_segment(tiff))).ok

    def test_truncated_ifd(self):
        tiff = build_tiff([(0x0112, SHORT, 1, 1), (0x0128, SHORT, 1, 2)])
        segment = exif_segment(tiff[:14])
        assert not parse(b'\xff\xd8' + segment).ok

    @pytest.mark.parametrize("endian", ['<', '>'])
    def test_resolution_inches(self, endian):
        tiff = build_tiff([
            (0x011A, RATIONAL, 1, [(300, 1)]),
            (0x011B, RATIONAL, 1, [(600, 2)]),
            (0x0128, SHORT, 1, 2),
        ], endian=endian)
        metadata = parse_ok(build_jpeg(exif_segment(tiff)))
        assert metadata.horizontal_dpi == 300
        assert metadata.vertical_dpi == 300
        names = sorted(field.name for field in metadata.resolution_fields)
        assert names == ['unit', 'x', 'y']
        assert all(field.little_endian == (endian == '<') for field in metadata.resolution_fields)

    def test_resolution_centimetres(self):
        tiff = build_tiff([
            (0x011A, RATIONAL, 1, [(100, 1)]),
            (0x011B, RATIONAL, 1, [(100, 1)]),
            (0x0128, SHORT, 1, 3),
        ])
        metadata = parse_ok(build_jpeg(exif_segment(tiff)))
        assert metadata.horizontal_dpi == pytest.approx(254.0)

    def test_missing_unit_means_inches(self):
        tiff = build_tiff([(0x011A, RATIONAL, 1, [(72, 1)]), (0x011B, RATIONAL, 1, [(72, 1)])])
        metadata = parse_ok(build_jpeg(exif_segment(tiff)))
        assert metadata.horizontal_dpi == 72

    def test_zero_denominator(self):
        tiff = build_tiff([(0x011A, RATIONAL, 1, [(72, 0)]), (0x011B, RATIONAL, 1, [(72, 0)])])
        metadata = parse_ok(build_jpeg(exif_segment(tiff)))
        assert metadata.horizontal_dpi == 0

    def test_exif_resolution_overrides_jfif(self):
        tiff = build_tiff([(0x011A, RATIONAL, 1, [(240, 1)]), (0x011B, RATIONAL, 1, [(240, 1)])])
        metadata = parse_ok(build_jpeg(jfif_segment(1, 72, 72), exif_segment(tiff)))
        assert metadata.horizontal_dpi == 240

    def test_resolution_field_positions(self):
        tiff = build_tiff([(0x011A, RATIONAL, 1, [(123, 1)]), (0x011B, RATIONAL, 1, [(123, 1)])])
        data = build_jpeg(exif_segment(tiff))
        metadata = parse_ok(data)
        for field in metadata.resolution_fields:
            assert data[field.position:field.position + 8] == b'\x7b\x00\x00\x00\x01\x00\x00\x00'

    def test_color_space(self):
        tiff = build_tiff([], exif_ifd=[(0xA001, SHORT, 1, 1)])
        metadata = parse_ok(build_jpeg(exif_segment(tiff)))
        assert metadata.exif_color_space == EXIF_CS_SRGB
        assert metadata.is_srgb()
        assert not metadata.adobe_rgb_inferred

    def test_adobe_rgb_inferred_from_chromaticities(self):
        tiff = build_tiff(
            [(0x013E, RATIONAL, 2, ADOBE_WHITE), (0x013F, RATIONAL, 6, ADOBE_PRIMARIES)],
            exif_ifd=[(0xA001, SHORT, 1, EXIF_CS_UNKNOWN)],
        )
        metadata = parse_ok(build_jpeg(exif_segment(tiff)))
        assert metadata.is_adobe_rgb()
        assert metadata.exif_color_space == EXIF_CS_ADOBERGB
        assert metadata.adobe_rgb_inferred

    def test_other_chromaticities_are_not_adobe_rgb(self):
        primaries = list(ADOBE_PRIMARIES)
        primaries[0] = (65, 100)
        tiff = build_tiff(
            [(0x013E, RATIONAL, 2, ADOBE_WHITE), (0x013F, RATIONAL, 6, primaries)],
            exif_ifd=[(0xA001, SHORT, 1, EXIF_CS_UNKNOWN)],
        )
        metadata = parse_ok(build_jpeg(exif_segment(tiff)))
        assert metadata.exif_color_space == EXIF_CS_UNKNOWN
        assert not metadata.adobe_rgb_inferred

    def test_explicit_srgb_is_not_overridden(self):
        tiff = build_tiff(
            [(0x013E, RATIONAL, 2, ADOBE_WHITE), (0x013F, RATIONAL, 6, ADOBE_PRIMARIES)],
            exif_ifd=[(0xA001, SHORT, 1, EXIF_CS_SRGB)],
        )
        metadata = parse_ok(build_jpeg(exif_segment(tiff)))
        assert metadata.is_srgb()

    def test_thumbnail(self):
        thumbnail = pillow_jpeg(size=(4, 4))
        tiff = build_tiff([(0x0112, SHORT, 1, 1)], ifd1=[(0x0103, SHORT, 1, 6)], thumbnail=thumbnail)
        data = build_jpeg(exif_segment(tiff))
        metadata = parse_ok(data)
        assert metadata.has_thumbnail()
        assert metadata.thumbnail_range.length == len(thumbnail)
        assert metadata.thumbnail_bytes(io.BytesIO(data)) == thumbnail

    def test_save_thumbnail(self, write_file, tmp_path):
        thumbnail = pillow_jpeg(size=(4, 4))
        tiff = build_tiff([], ifd1=[], thumbnail=thumbnail)
        path = write_file('thumb_src.jpg', build_jpeg(exif_segment(tiff)))
        metadata = JPEGMetadata.parse(path).unwrap()
        out = tmp_path / 'thumb.jpg'
        assert metadata.save_thumbnail(out)
        assert out.read_bytes() == thumbnail

    def test_no_thumbnail(self, write_file, tmp_path):
        path = write_file('plain.jpg', build_jpeg(jfif_segment()))
        metadata = JPEGMetadata.parse(path).unwrap()
        assert not metadata.has_thumbnail()
        assert metadata.thumbnail_bytes() is None
        assert not metadata.save_thumbnail(tmp_path / 'none.jpg')

    def test_jfif_after_exif_is_not_reported(self):
        tiff = build_tiff([(0x0112, SHORT, 1, 1)])
        metadata = parse_ok(build_jpeg(exif_segment(tiff), jfif_segment()))
        assert metadata.exif_found
        assert not metadata.jfif_found

    def test_non_exif_app1_is_ignored(self):
        xmp = app_segment(0xE1, b'http://ns.adobe.com/xap/1.0/\x00<x/>')
        metadata = parse_ok(build_jpeg(xmp))
        assert not metadata.exif_found
        assert metadata.segments[0].kind == 'APP'


class TestICC:

    def test_single_fragment(self):
        profile = fake_profile(700)
        metadata = parse_ok(build_jpeg(*icc_segments(profile)))
        assert metadata.icc_profile_bytes() == profile
        assert len(metadata.icc_fragments) == 1

    def test_fragments_out_of_order(self):
        profile = fake_profile(1000)
        segments = icc_segments(profile, piece_size=300, order=[2, 0, 3, 1])
        metadata = parse_ok(build_jpeg(jfif_segment(), *segments))
        assert metadata.icc_profile_bytes() == profile

    def test_inconsistent_count_means_no_profile(self):
        segments = icc_segments(fake_profile(1000), piece_size=400, count=5)
        metadata = parse_ok(build_jpeg(*segments))
        assert not metadata.has_icc_profile()
        assert metadata.icc_profile() is None

    def test_duplicate_index_means_no_profile(self):
        segments = icc_segments(fake_profile(1000), piece_size=400, order=[0, 1, 1])
        metadata = parse_ok(build_jpeg(*segments))
        assert metadata.icc_profile_bytes() is None

    def test_truncated_fragment_header(self):
        segment = app_segment(0xE2, b'ICC_PROFILE\x00\x01')
        assert not parse(build_jpeg(segment)).ok


class TestAdobe:

    def test_ycck_transform(self):
        metadata = parse_ok(build_jpeg(adobe_segment(ADOBE_TRANSFORM_YCCK), sof=sof_segment(components=4)))
        assert metadata.adobe_app14_found
        assert metadata.adobe_transform == ADOBE_TRANSFORM_YCCK

    def test_absent(self):
        metadata = parse_ok(build_jpeg())
        assert not metadata.adobe_app14_found
        assert metadata.adobe_transform == 0

    def test_truncated(self):
        segment = app_segment(0xEE, b'Adobe\x00\x64')
        assert not parse(build_jpeg(segment)).ok

    def test_to_dict(self):
        metadata = parse_ok(build_jpeg(adobe_segment(1)))
        summary = metadata.to_dict()
        assert summary['ImageType'] == 'JPEG'
        assert summary['AdobeTransform'] == 1
        assert summary['Components'] == 3
