# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Standard colour profiles

Default profiles used when an image carries no usable embedded profile:
- sRGB, taken from LittleCMS through Pillow
- Adobe RGB (1998), built as an ICC v2 matrix/TRC profile
- Gray with gamma 2.2 and a D50 white point, built as an ICC v2 gray TRC profile

No CMYK default is bundled; CMYK sources need a configured profile.

Copyright 2025 DNAi inc.
"""

import struct
from typing import Dict, List, Sequence, Tuple

from PIL import ImageCms

from colormeta.exceptions import UnsupportedProfileError
from colormeta.icc_profile import IccProfile

# D50 illuminant (PCS white)
D50_XYZ = (0.9642, 1.0, 0.8249)

# Adobe RGB (1998) colorants, chromatically adapted to D50
ADOBE_RGB_RED = (0.60974, 0.31111, 0.01947)
ADOBE_RGB_GREEN = (0.20528, 0.62567, 0.06087)
ADOBE_RGB_BLUE = (0.14919, 0.06322, 0.74457)
ADOBE_RGB_GAMMA = 563 / 256

DEFAULT_GRAY_GAMMA = 2.2

COPYRIGHT_TEXT = "No copyright, use freely"

_CACHE: Dict[str, IccProfile] = {}


def _s15fixed16(value: float) -> bytes:
    return struct.pack('>i', int(round(value * 65536)))


def _pad4(data: bytes) -> bytes:
    return data + b'\x00' * (-len(data) % 4)


def _xyz_tag(xyz: Sequence[float]) -> bytes:
    return b'XYZ ' + b'\x00' * 4 + b''.join(_s15fixed16(v) for v in xyz)


def _curve_tag(gamma: float) -> bytes:
    # Single u8Fixed8Number entry: pure gamma curve
    return b'curv' + b'\x00' * 4 + struct.pack('>IH', 1, int(round(gamma * 256)))


def _text_tag(text: str) -> bytes:
    return b'text' + b'\x00' * 4 + text.encode('ascii') + b'\x00'


def _desc_tag(text: str) -> bytes:
    ascii_text = text.encode('ascii') + b'\x00'
    return (b'desc' + b'\x00' * 4 + struct.pack('>I', len(ascii_text)) + ascii_text
            + struct.pack('>II', 0, 0)      # Unicode language code and count
            + struct.pack('>HB', 0, 0)      # ScriptCode code and count
            + b'\x00' * 67)


def build_profile(color_space: bytes, tags: List[Tuple[bytes, bytes]],
                  device_class: bytes = b'mntr') -> bytes:
    """
    Assemble an ICC v2.1 profile from tag data.

    Tags with identical data share one copy in the tag data area.

    Args:
        color_space: 4-byte data colour space signature
        tags: (signature, tag data) pairs in tag table order
        device_class: 4-byte profile class signature

    Returns:
        Profile bytes
    """
    table_size = 4 + 12 * len(tags)
    offset = 128 + table_size

    entries = []
    blobs: List[bytes] = []
    placed: Dict[bytes, Tuple[int, int]] = {}
    for signature, data in tags:
        if data not in placed:
            placed[data] = (offset, len(data))
            padded = _pad4(data)
            blobs.append(padded)
            offset += len(padded)
        tag_offset, tag_size = placed[data]
        entries.append(struct.pack('>4sII', signature, tag_offset, tag_size))

    body = struct.pack('>I', len(tags)) + b''.join(entries) + b''.join(blobs)
    size = 128 + len(body)

    header = bytearray(128)
    struct.pack_into('>I', header, 0, size)
    struct.pack_into('>I', header, 8, 0x02100000)
    header[12:16] = device_class
    header[16:20] = color_space
    header[20:24] = b'XYZ '
    struct.pack_into('>6H', header, 24, 2025, 1, 1, 0, 0, 0)
    header[36:40] = b'acsp'
    header[68:80] = b''.join(_s15fixed16(v) for v in D50_XYZ)

    return bytes(header) + body


def srgb_profile() -> IccProfile:
    """The LittleCMS built-in sRGB profile."""
    if 'srgb' not in _CACHE:
        profile = ImageCms.ImageCmsProfile(ImageCms.createProfile("sRGB"))
        _CACHE['srgb'] = IccProfile(profile.tobytes())
    return _CACHE['srgb']


def adobe_rgb_profile() -> IccProfile:
    """Adobe RGB (1998) compatible matrix/TRC profile."""
    if 'adobergb' not in _CACHE:
        trc = _curve_tag(ADOBE_RGB_GAMMA)
        data = build_profile(b'RGB ', [
            (b'desc', _desc_tag("Adobe RGB (1998) compatible")),
            (b'cprt', _text_tag(COPYRIGHT_TEXT)),
            (b'wtpt', _xyz_tag(D50_XYZ)),
            (b'rXYZ', _xyz_tag(ADOBE_RGB_RED)),
            (b'gXYZ', _xyz_tag(ADOBE_RGB_GREEN)),
            (b'bXYZ', _xyz_tag(ADOBE_RGB_BLUE)),
            (b'rTRC', trc),
            (b'gTRC', trc),
            (b'bTRC', trc),
        ])
        _CACHE['adobergb'] = IccProfile(data)
    return _CACHE['adobergb']


def gray_profile(gamma: float = DEFAULT_GRAY_GAMMA) -> IccProfile:
    """
    Gray profile with a pure gamma curve and a D50 white point.

    Args:
        gamma: Tone curve exponent

    Returns:
        IccProfile instance
    """
    key = f'gray-{gamma}'
    if key not in _CACHE:
        data = build_profile(b'GRAY', [
            (b'desc', _desc_tag(f"Gray gamma {gamma:g}")),
            (b'cprt', _text_tag(COPYRIGHT_TEXT)),
            (b'wtpt', _xyz_tag(D50_XYZ)),
            (b'kTRC', _curve_tag(gamma)),
        ])
        _CACHE[key] = IccProfile(data)
    return _CACHE[key]


STANDARD_PROFILES = {
    'srgb': srgb_profile,
    'adobergb': adobe_rgb_profile,
    'gray': gray_profile,
}


def standard_profile(name: str) -> IccProfile:
    """
    Get a standard profile by name.

    Args:
        name: 'srgb', 'adobergb' or 'gray' (case-insensitive)

    Raises:
        UnsupportedProfileError: If the name is unknown
    """
    factory = STANDARD_PROFILES.get(name.lower())
    if factory is None:
        raise UnsupportedProfileError(
            f"Unknown standard profile '{name}'. Known: {', '.join(sorted(STANDARD_PROFILES))}"
        )
    return factory()
