# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Pixel format identifiers

A closed set of raster sample encodings understood by the transform
engines. Each format is described by its channel layout, bit depth,
channel order and planarity; engines map these to their own identifiers.

Copyright 2025 DNAi inc.
"""

from enum import Enum

from colormeta.icc_profile import ColorSpaceType


class ChannelLayout(Enum):
    GRAY = "gray"
    RGB = "rgb"
    CMYK = "cmyk"


class ChannelOrder(Enum):
    """
    Channel ordering and polarity.

    NATURAL is the canonical order (RGB, CMYK). SWAPPED stores channels in
    reverse order (BGR). REVERSED stores samples min-is-white, i.e. every
    sample is complemented (255 - value), as found in Adobe CMYK JPEGs.
    """
    NATURAL = "natural"
    SWAPPED = "swapped"
    REVERSED = "reversed"


class PixelFormat(Enum):
    """Supported pixel formats as (layout, bits per sample, order, planar)."""

    GRAY_8 = (ChannelLayout.GRAY, 8, ChannelOrder.NATURAL, False)
    GRAY_8_REV = (ChannelLayout.GRAY, 8, ChannelOrder.REVERSED, False)
    RGB_8 = (ChannelLayout.RGB, 8, ChannelOrder.NATURAL, False)
    BGR_8 = (ChannelLayout.RGB, 8, ChannelOrder.SWAPPED, False)
    RGB_8_PLANAR = (ChannelLayout.RGB, 8, ChannelOrder.NATURAL, True)
    CMYK_8 = (ChannelLayout.CMYK, 8, ChannelOrder.NATURAL, False)
    CMYK_8_REV = (ChannelLayout.CMYK, 8, ChannelOrder.REVERSED, False)
    CMYK_8_PLANAR = (ChannelLayout.CMYK, 8, ChannelOrder.NATURAL, True)

    @property
    def layout(self) -> ChannelLayout:
        return self.value[0]

    @property
    def bits(self) -> int:
        return self.value[1]

    @property
    def order(self) -> ChannelOrder:
        return self.value[2]

    @property
    def planar(self) -> bool:
        return self.value[3]

    @property
    def channels(self) -> int:
        return LAYOUT_CHANNELS[self.layout]

    @property
    def bytes_per_pixel(self) -> int:
        return self.channels * self.bits // 8

    @property
    def color_space(self) -> ColorSpaceType:
        return LAYOUT_COLOR_SPACES[self.layout]

    @classmethod
    def lookup(cls, layout: ChannelLayout, bits: int = 8,
               order: ChannelOrder = ChannelOrder.NATURAL,
               planar: bool = False) -> 'PixelFormat':
        """
        Find the format with the given properties.

        Raises:
            ValueError: If no such format exists
        """
        return cls((layout, bits, order, planar))


LAYOUT_CHANNELS = {
    ChannelLayout.GRAY: 1,
    ChannelLayout.RGB: 3,
    ChannelLayout.CMYK: 4,
}

LAYOUT_COLOR_SPACES = {
    ChannelLayout.GRAY: ColorSpaceType.GRAY,
    ChannelLayout.RGB: ColorSpaceType.RGB,
    ChannelLayout.CMYK: ColorSpaceType.CMYK,
}
