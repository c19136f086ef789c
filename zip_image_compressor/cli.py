#!/usr/bin/env python3
"""
ZIP Image Compressor - shrink the images inside a ZIP archive to fit a target size.
"""

import argparse
import logging
import math
import os
import sys
from typing import List, Optional

from .compressor import compress_zip_file
from .config import (
    BYTES_PER_MB,
    DEFAULT_MAX_ROUNDS,
    DEFAULT_MAX_SIZE_MB,
    DEFAULT_OUTPUT_NAME,
    DEFAULT_OVERHEAD_FRACTION,
    DEFAULT_TRANSFORM_TIMEOUT,
    CompressionOptions,
)
from .errors import CompressorError
from .models import CompressionStats


def format_file_size(size: float) -> str:
    """Human readable size: Bytes, KB, MB or GB with up to two decimals."""
    if size == 0:
        return '0 Bytes'
    k = 1024
    sizes = ['Bytes', 'KB', 'MB', 'GB']
    i = max(0, min(int(math.floor(math.log(abs(size), k))), len(sizes) - 1))
    value = round(size / math.pow(k, i), 2)
    return f"{value:g} {sizes[i]}"


def print_progress(text: str, percent: float) -> None:
    print(f"[{round(percent):3d}%] {text}")


def print_summary(stats: CompressionStats, output_path: str) -> None:
    print(f"\n{'='*60}")
    print("🎉 COMPRESSION SUMMARY")
    print(f"{'='*60}")
    print(f"🖼️ Images processed: {stats.image_count}")
    print(f"💾 Original size: {format_file_size(stats.original_total)}")
    print(f"📦 Final size: {format_file_size(stats.final_size)}")
    print(f"💵 Space saved: {format_file_size(stats.space_saved)} "
          f"({stats.savings_percent:.1f}%)")

    if stats.converged:
        print(f"🎯 Converged in iteration {stats.selected_round + 1}/{stats.rounds_run}")
    else:
        print(f"⚠️ Target band not reached, using iteration {stats.selected_round + 1}")

    print(f"\n📈 Iterations:")
    for record in stats.history:
        size = format_file_size(record.measured_size) if record.packaged else 'packaging failed'
        line = f"   {record.round_index + 1}. ratio {record.ratio:.3f} -> {size}"
        if record.fallback_count:
            line += f" ({record.fallback_count} kept original)"
        print(line)

    print(f"\n📂 Output: {output_path}")
    print(f"{'='*60}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='ZIP Image Compressor - Fit the images of a ZIP archive under a target size',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s photos.zip
  %(prog)s photos.zip small.zip --max-size 5
  %(prog)s photos.zip small.zip --max-rounds 12 --workers 4
  %(prog)s photos.zip small.zip --timeout 5 --time-budget 120
        """
    )

    parser.add_argument('input_zip', help='ZIP archive containing images')
    parser.add_argument('output_zip', nargs='?', default=DEFAULT_OUTPUT_NAME,
                        help=f'Output archive (default: {DEFAULT_OUTPUT_NAME})')
    parser.add_argument('--max-size', type=float, default=DEFAULT_MAX_SIZE_MB,
                        help=f'Target archive size in MB (default: {DEFAULT_MAX_SIZE_MB})')
    parser.add_argument('--max-rounds', type=int, default=DEFAULT_MAX_ROUNDS,
                        help=f'Maximum compression iterations (default: {DEFAULT_MAX_ROUNDS})')
    parser.add_argument('--overhead', type=float, default=DEFAULT_OVERHEAD_FRACTION,
                        help='Fraction of the target reserved for ZIP structure '
                             f'(default: {DEFAULT_OVERHEAD_FRACTION})')
    parser.add_argument('--timeout', type=float, default=DEFAULT_TRANSFORM_TIMEOUT,
                        help=f'Seconds allowed per image (default: {DEFAULT_TRANSFORM_TIMEOUT:g})')
    parser.add_argument('--workers', type=int, default=1,
                        help='Images processed in parallel per iteration (default: 1)')
    parser.add_argument('--time-budget', type=float,
                        help='Stop iterating after this many seconds')
    parser.add_argument('--quiet', action='store_true',
                        help='Hide progress lines')
    parser.add_argument('--verbose', action='store_true',
                        help='Show debug logging')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main function with command line interface."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(message)s',
    )

    # Validate input
    if not os.path.isfile(args.input_zip):
        print(f"Error: Input file '{args.input_zip}' does not exist")
        return 1

    if not args.input_zip.lower().endswith('.zip'):
        print("Error: Please select a ZIP file.")
        return 1

    if args.max_size <= 0:
        print("Error: Max size must be positive")
        return 1

    try:
        options = CompressionOptions(
            max_rounds=args.max_rounds,
            overhead_fraction=args.overhead,
            transform_timeout=args.timeout,
            workers=args.workers,
            time_budget=args.time_budget,
        )
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    target_bytes = args.max_size * BYTES_PER_MB

    print(f"{'='*60}")
    print("🚀 ZIP IMAGE COMPRESSION")
    print(f"{'='*60}")
    print(f"📂 Input: {args.input_zip} ({format_file_size(os.path.getsize(args.input_zip))})")
    print(f"📂 Output: {args.output_zip}")
    print(f"🎯 Target size: {format_file_size(target_bytes)}")
    print(f"🔁 Max iterations: {options.max_rounds}")
    print(f"{'='*60}")

    try:
        result = compress_zip_file(
            args.input_zip,
            args.output_zip,
            target_bytes,
            options=options,
            progress=None if args.quiet else print_progress,
        )
    except CompressorError as e:
        print(f"Error: {e}")
        return 1
    except OSError as e:
        print(f"Error writing {args.output_zip}: {e}")
        return 1

    print_summary(result.stats, args.output_zip)
    return 0


if __name__ == '__main__':
    sys.exit(main())
