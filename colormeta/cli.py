# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Command-line interface for colormeta

Provides a CLI for inspecting image metadata, extracting embedded ICC
profiles and thumbnails, embedding profiles/resolution and converting
images into a destination colour space.

Copyright 2025 DNAi inc.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from colormeta import __version__
from colormeta.exceptions import ColorMetaError
from colormeta.icc_profile import IccProfile
from colormeta.image_metadata import embed_metadata, read_metadata
from colormeta.standard_profiles import STANDARD_PROFILES, standard_profile
from colormeta.transform_engine import Intent
from colormeta.transformer import IccTransformer, TransformerConfig

logger = logging.getLogger(__name__)


def format_output(metadata: dict, format_type: str = "text") -> str:
    """
    Format metadata output based on format type.

    Args:
        metadata: Dictionary of metadata
        format_type: Output format ('text' or 'json')

    Returns:
        Formatted output string
    """
    if format_type == "json":
        return json.dumps(metadata, indent=2, ensure_ascii=False)
    lines = []
    for tag, value in sorted(metadata.items()):
        lines.append(f"{tag}: {value}")
    return "\n".join(lines)


def load_profile(value: str) -> IccProfile:
    """
    Load a profile from a standard profile name or an .icc file path.

    Raises:
        UnsupportedProfileError: If the file is not a valid profile
        OSError: If the file cannot be read
    """
    if value.lower() in STANDARD_PROFILES:
        return standard_profile(value)
    return IccProfile.from_file(value)


def cmd_info(args: argparse.Namespace) -> int:
    for file_path in args.files:
        metadata = read_metadata(file_path)
        info = metadata.to_dict()
        profile = metadata.icc_profile()
        if profile is not None:
            info['ICCColorSpace'] = str(profile.colorspace_type())
            info['ICCDescription'] = profile.description()
        if len(args.files) > 1 and args.format == "text":
            print(f"======== {file_path}")
        print(format_output(info, args.format))
    return 0


def cmd_extract_icc(args: argparse.Namespace) -> int:
    metadata = read_metadata(args.file)
    data = metadata.icc_profile_bytes()
    if data is None:
        print(f"No ICC profile in {args.file}", file=sys.stderr)
        return 1
    with open(args.output, 'wb') as f:
        f.write(data)
    print(f"Wrote {len(data)} bytes to {args.output}")
    return 0


def cmd_thumbnail(args: argparse.Namespace) -> int:
    metadata = read_metadata(args.file)
    if not metadata.save_thumbnail(args.output):
        print(f"No thumbnail in {args.file}", file=sys.stderr)
        return 1
    print(f"Thumbnail saved to {args.output}")
    return 0


def cmd_embed(args: argparse.Namespace) -> int:
    profile = load_profile(args.icc) if args.icc else None
    dpi = args.dpi or 0
    if embed_metadata(args.file, profile, dpi, args.output):
        print(f"Metadata written to {args.output or args.file}")
    else:
        print("Nothing to embed; use --icc and/or --dpi", file=sys.stderr)
    return 0


def cmd_convert(args: argparse.Namespace) -> int:
    config = TransformerConfig()
    config.intent = Intent(args.intent)
    config.black_point_compensation = not args.no_bpc
    config.use_embedded_profiles = not args.ignore_embedded
    config.jpeg_quality = args.quality
    if args.default_gray:
        config.set_default_gray(load_profile(args.default_gray))
    if args.default_rgb:
        config.set_default_rgb(load_profile(args.default_rgb))
    if args.default_cmyk:
        config.set_default_cmyk(load_profile(args.default_cmyk))

    transformer = IccTransformer(load_profile(args.profile), config)
    transformer.transform_file_to(args.source, args.destination)
    print(f"Converted {args.source} -> {args.destination}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="colormeta",
        description="colormeta - Inspect and rewrite image colour metadata",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show metadata
  colormeta info image.jpg

  # Extract the embedded profile
  colormeta extract-icc image.jpg profile.icc

  # Embed a profile and set 300 dpi
  colormeta embed image.png --icc adobergb --dpi 300

  # Convert to sRGB
  colormeta convert photo.jpg photo-srgb.jpg --profile srgb
        """
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    parser.add_argument('-V', '--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', required=True)

    info = subparsers.add_parser('info', help='Show image metadata')
    info.add_argument('files', nargs='+', help='Image file(s)')
    info.add_argument('-f', '--format', choices=['text', 'json'], default='text',
                      help='Output format')
    info.set_defaults(func=cmd_info)

    extract = subparsers.add_parser('extract-icc', help='Save the embedded ICC profile')
    extract.add_argument('file', help='Image file')
    extract.add_argument('output', help='Output .icc file')
    extract.set_defaults(func=cmd_extract_icc)

    thumbnail = subparsers.add_parser('thumbnail', help='Save the embedded EXIF thumbnail')
    thumbnail.add_argument('file', help='JPEG file')
    thumbnail.add_argument('output', help='Output file')
    thumbnail.set_defaults(func=cmd_thumbnail)

    embed = subparsers.add_parser('embed', help='Embed an ICC profile and/or resolution')
    embed.add_argument('file', help='JPEG or PNG file')
    embed.add_argument('--icc', help="Profile file or one of: " + ', '.join(sorted(STANDARD_PROFILES)))
    embed.add_argument('--dpi', type=float, help='Resolution in dots per inch')
    embed.add_argument('-o', '--output', help='Write to this file instead of replacing the input')
    embed.set_defaults(func=cmd_embed)

    convert = subparsers.add_parser('convert', help='Convert an image to a destination profile')
    convert.add_argument('source', help='Source image')
    convert.add_argument('destination', help='Destination .jpg or .png file')
    convert.add_argument('--profile', default='srgb',
                         help='Destination profile file or standard name (default: srgb)')
    convert.add_argument('--intent', type=int, choices=[i.value for i in Intent],
                         default=Intent.RELATIVE_COLORIMETRIC.value,
                         help='Rendering intent: 0 perceptual, 1 relative, 2 saturation, 3 absolute')
    convert.add_argument('--no-bpc', action='store_true', help='Disable black point compensation')
    convert.add_argument('--ignore-embedded', action='store_true',
                         help='Ignore embedded profiles and EXIF colour space hints')
    convert.add_argument('--quality', type=float, default=1.0, help='JPEG quality 0..1')
    convert.add_argument('--default-gray', help='Default profile for gray sources')
    convert.add_argument('--default-rgb', help='Default profile for RGB sources')
    convert.add_argument('--default-cmyk', help='Default profile for CMYK sources')
    convert.set_defaults(func=cmd_convert)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the command line interface.

    Returns:
        Process exit status
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    try:
        return args.func(args)
    except ColorMetaError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
