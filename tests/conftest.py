# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""Builders for synthetic PNG, JPEG, EXIF and ICC test data."""

import io
import struct
import zlib

import pytest
from PIL import Image

PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'

# TIFF types
BYTE, ASCII, SHORT, LONG, RATIONAL = 1, 2, 3, 4, 5

TYPE_SIZES = {BYTE: 1, ASCII: 1, SHORT: 2, LONG: 4, RATIONAL: 8, 7: 1}


# --- PNG ---


def png_chunk(chunk_type: bytes, data: bytes) -> bytes:
    """Build a PNG chunk with a valid CRC."""
    crc = zlib.crc32(chunk_type + data) & 0xFFFFFFFF
    return struct.pack('>I', len(data)) + chunk_type + data + struct.pack('>I', crc)


def ihdr_chunk(width: int = 4, height: int = 3, bit_depth: int = 8, color_type: int = 2) -> bytes:
    return png_chunk(b'IHDR', struct.pack('>IIBBBBB', width, height, bit_depth, color_type, 0, 0, 0))


def iccp_chunk(profile: bytes, name: bytes = b'ICC Profile', method: int = 0) -> bytes:
    return png_chunk(b'iCCP', name + b'\x00' + bytes([method]) + zlib.compress(profile))


def phys_chunk(ppm_x: int, ppm_y: int, unit: int = 1) -> bytes:
    return png_chunk(b'pHYs', struct.pack('>IIB', ppm_x, ppm_y, unit))


def build_png(*chunks: bytes, ihdr: bytes = None, iend: bool = True) -> bytes:
    """PNG signature, IHDR, the given chunks and IEND."""
    data = PNG_SIGNATURE + (ihdr if ihdr is not None else ihdr_chunk())
    data += b''.join(chunks)
    if iend:
        data += png_chunk(b'IEND', b'')
    return data


def iter_png_chunks(data: bytes):
    """Yield (type, data, crc) for each chunk of a PNG byte string."""
    offset = 8
    while offset < len(data):
        length, chunk_type = struct.unpack('>I4s', data[offset:offset + 8])
        body = data[offset + 8:offset + 8 + length]
        crc = struct.unpack('>I', data[offset + 8 + length:offset + 12 + length])[0]
        yield chunk_type, body, crc
        offset += length + 12


# --- ICC ---


def fake_profile(size: int = 512, color_space: bytes = b'RGB ', fill: int = 0x5A) -> bytes:
    """Header-valid ICC profile bytes with a recognizable body."""
    header = bytearray(128)
    struct.pack_into('>I', header, 0, size)
    header[12:16] = b'mntr'
    header[16:20] = color_space
    header[20:24] = b'XYZ '
    header[36:40] = b'acsp'
    body = bytes((fill + i) & 0xFF for i in range(size - 128))
    return bytes(header) + body


# --- JPEG ---


def app_segment(marker: int, payload: bytes) -> bytes:
    """Build an APPn/marker segment with its length field."""
    return bytes((0xFF, marker)) + struct.pack('>H', len(payload) + 2) + payload


def jfif_segment(units: int = 1, x_density: int = 72, y_density: int = 72) -> bytes:
    payload = b'JFIF\x00' + b'\x01\x01' + bytes([units]) + struct.pack('>HH', x_density, y_density) + b'\x00\x00'
    return app_segment(0xE0, payload)


def adobe_segment(transform: int) -> bytes:
    payload = b'Adobe' + struct.pack('>HHHB', 100, 0, 0, transform)
    return app_segment(0xEE, payload)


def icc_segments(profile: bytes, piece_size: int = 65519, order=None, count=None) -> list:
    """APP2 ICC_PROFILE segments, optionally reordered or with a forged count."""
    pieces = [profile[i:i + piece_size] for i in range(0, len(profile), piece_size)]
    total = count if count is not None else len(pieces)
    segments = [
        app_segment(0xE2, b'ICC_PROFILE\x00' + bytes([index, total]) + piece)
        for index, piece in enumerate(pieces, 1)
    ]
    if order is not None:
        segments = [segments[i] for i in order]
    return segments


def sof_segment(width: int = 16, height: int = 8, components: int = 3, marker: int = 0xC0) -> bytes:
    payload = struct.pack('>BHHB', 8, height, width, components)
    payload += b''.join(bytes((i + 1, 0x11, 0)) for i in range(components))
    return app_segment(marker, payload)


def build_jpeg(*segments: bytes, sof: bytes = None) -> bytes:
    """SOI, the given segments, DQT, SOF, SOS, dummy scan data and EOI."""
    dqt = app_segment(0xDB, b'\x00' + bytes(64))
    sos = app_segment(0xDA, b'\x01\x01\x00\x00\x3f\x00')
    frame = sof if sof is not None else sof_segment()
    return b'\xff\xd8' + b''.join(segments) + dqt + frame + sos + b'\x12\x34\x56' + b'\xff\xd9'


def insert_after_soi(jpeg: bytes, *segments: bytes) -> bytes:
    return jpeg[:2] + b''.join(segments) + jpeg[2:]


def iter_jpeg_segments(data: bytes):
    """Yield (marker, payload) for each segment up to SOS."""
    offset = 2
    while offset < len(data):
        marker = data[offset + 1]
        length = struct.unpack('>H', data[offset + 2:offset + 4])[0]
        yield marker, data[offset + 4:offset + 2 + length]
        if marker == 0xDA:
            return
        offset += 2 + length


# --- EXIF ---


def _pack_value(endian: str, tag_type: int, count: int, value) -> bytes:
    if isinstance(value, bytes):
        return value
    if tag_type == SHORT:
        return struct.pack(f'{endian}{count}H', *([value] if count == 1 else value))
    if tag_type in (LONG,):
        return struct.pack(f'{endian}{count}I', *([value] if count == 1 else value))
    if tag_type == RATIONAL:
        flat = []
        for numerator, denominator in value:
            flat += [numerator, denominator]
        return struct.pack(f'{endian}{len(flat)}I', *flat)
    return bytes(value)


def build_tiff(ifd0, exif_ifd=None, ifd1=None, thumbnail: bytes = None, endian: str = '<') -> bytes:
    """
    Build a TIFF structure for an EXIF APP1 segment.

    Entries are (tag, type, count, value); value is an int, a list of ints,
    a list of (numerator, denominator) pairs or raw bytes. Pointer entries
    for the Exif sub-IFD and the thumbnail offset are added automatically.
    """
    ifd0 = list(ifd0)
    if exif_ifd is not None:
        ifd0.append((0x8769, LONG, 1, None))
    ifd1 = list(ifd1) if ifd1 is not None else None
    if thumbnail is not None:
        ifd1 = (ifd1 or []) + [(0x0201, LONG, 1, None), (0x0202, LONG, 1, len(thumbnail))]

    def dir_size(entries):
        return 2 + 12 * len(entries) + 4

    ifd0_offset = 8
    exif_offset = ifd0_offset + dir_size(ifd0)
    ifd1_offset = exif_offset + (dir_size(exif_ifd) if exif_ifd is not None else 0)
    data_offset = ifd1_offset + (dir_size(ifd1) if ifd1 is not None else 0)

    data_area = bytearray()
    thumbnail_offset = 0
    if thumbnail is not None:
        thumbnail_offset = data_offset
        data_area += thumbnail

    def encode_dir(entries, next_offset):
        out = struct.pack(f'{endian}H', len(entries))
        for tag, tag_type, count, value in entries:
            if tag == 0x8769:
                value = exif_offset
            elif tag == 0x0201 and value is None:
                value = thumbnail_offset
            raw = _pack_value(endian, tag_type, count, value)
            if len(raw) <= 4:
                field = raw + b'\x00' * (4 - len(raw))
            else:
                field = struct.pack(f'{endian}I', data_offset + len(data_area))
                data_area.extend(raw)
            out += struct.pack(f'{endian}HHI', tag, tag_type, count) + field
        return out + struct.pack(f'{endian}I', next_offset)

    body = encode_dir(ifd0, ifd1_offset if ifd1 is not None else 0)
    if exif_ifd is not None:
        body += encode_dir(exif_ifd, 0)
    if ifd1 is not None:
        body += encode_dir(ifd1, 0)

    mark = b'II' if endian == '<' else b'MM'
    header = mark + struct.pack(f'{endian}HI', 42, ifd0_offset)
    return header + body + bytes(data_area)


def exif_segment(tiff: bytes) -> bytes:
    return app_segment(0xE1, b'Exif\x00\x00' + tiff)


# --- Real images ---


def pillow_jpeg(mode: str = 'RGB', size=(8, 4), color=(200, 30, 60), **save_args) -> bytes:
    image = Image.new(mode, size, color)
    buffer = io.BytesIO()
    image.save(buffer, format='JPEG', quality=95, **save_args)
    return buffer.getvalue()


def pillow_png(mode: str = 'RGB', size=(8, 4), color=(200, 30, 60)) -> bytes:
    image = Image.new(mode, size, color)
    buffer = io.BytesIO()
    image.save(buffer, format='PNG')
    return buffer.getvalue()


@pytest.fixture
def write_file(tmp_path):
    """Write bytes to a file in the test directory and return its path."""
    def _write(name: str, data: bytes):
        path = tmp_path / name
        path.write_bytes(data)
        return path
    return _write
