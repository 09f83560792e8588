# Copyright (c) 2026 borntohonk
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""
Inspect and extract 3DS RomFS images.

Usage:
    python extract_romfs.py info romfs.bin
    python extract_romfs.py list romfs.bin
    python extract_romfs.py extract romfs.bin out/ -v
"""

import sys
import logging
import argparse

import romfs
import romfs_extract
import util


def build_parser():
    parser = argparse.ArgumentParser(
        prog="ctr-romfs",
        description="Inspect and extract 3DS RomFS (IVFC) images.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s info romfs.bin              # Print header and level layout
  %(prog)s list romfs.bin              # List every file
  %(prog)s extract romfs.bin out/ -v   # Extract with per-file progress
        """
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print verbose progress information"
    )
    parser.add_argument(
        "--max-name-length",
        type=int,
        default=romfs.DEFAULT_MAX_NAME_LENGTH,
        help="Longest file or directory name to read, in UTF-16 code units (default: %(default)s)"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of extraction threads (default: CPU count)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    info_parser = subparsers.add_parser("info", help="Print RomFS header information")
    info_parser.add_argument("image", help="RomFS image")
    list_parser = subparsers.add_parser("list", help="List files in the RomFS")
    list_parser.add_argument("image", help="RomFS image")
    extract_parser = subparsers.add_parser("extract", help="Extract the RomFS to a directory")
    extract_parser.add_argument("image", help="RomFS image")
    extract_parser.add_argument("output", help="Output directory")
    return parser


def main(argv=None):
    """Command-line entry point."""
    args = build_parser().parse_args(argv)

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        util.logging_configuration(root_logger, verbose=args.verbose)
    logger = logging.getLogger('extract_romfs')

    try:
        config = romfs.RomfsConfig(max_name_length=args.max_name_length, max_workers=args.workers)
        if not romfs.RomFs.probe(args.image):
            print(f"Error: {args.image} is not a RomFS image", file=sys.stderr)
            return 1

        with romfs.RomFs.open(args.image, config) as image:
            if args.command == "info":
                romfs.romfs_print(image)
            elif args.command == "list":
                for path, metadata in image.iter_files():
                    print(f"rom:/{path:<60} {metadata.file_data_length:>12,d} B")
            elif args.command == "extract":
                def report(token):
                    if args.verbose and token.extracted_file_count:
                        logger.info('Extracted %d/%d files', token.extracted_file_count, token.total_file_count)

                progress = romfs_extract.ExtractionProgress(on_progress=report)
                image.extract_files(args.output, progress=progress)
                print(f"✓ Extracted {progress.extracted_file_count}/{progress.total_file_count} files to {args.output}")
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
