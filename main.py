import argparse
import sys
from pathlib import Path

from src.jpeg_bitdepth.errors import JpegScanError
from src.jpeg_bitdepth.fallback import find_sof
from src.jpeg_bitdepth.primitives import PixelData, ResolverConfig
from src.jpeg_bitdepth.resolver import BitDepthResolver


def add_options(parser, default_fallback="header", default_verbose=False):
    parser.add_argument("--fallback", choices=["header", "opencv"], default=default_fallback,
                        help="Detector used when the marker scan fails")
    parser.add_argument("--verbose", action="store_true", default=default_verbose,
                        help="Print scan diagnostics")


def build_parser():
    parser = argparse.ArgumentParser(description="JPEG bit depth probe")
    parser.add_argument("path", help="Path to a raw JPEG stream (one fragment)")
    add_options(parser)

    # options repeated after the subcommand; SUPPRESS keeps the values given before it
    common = argparse.ArgumentParser(add_help=False)
    add_options(common, argparse.SUPPRESS, argparse.SUPPRESS)

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("depth", parents=[common], help="Print the bit depth of the stream")
    subparsers.add_parser("markers", parents=[common], help="List the markers up to the first SOF")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    jpeg_path = Path(args.path)
    try:
        with open(jpeg_path, "rb") as f:
            if args.command == "markers":
                find_sof(f, verbose=True)
                return 0
            pixel_data = PixelData([f.read()])

        config = ResolverConfig(fallback=args.fallback, verbose=args.verbose)
        print(BitDepthResolver(config=config).resolve(pixel_data))
    except JpegScanError as e:
        print(f"Error ({e.kind}): {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
