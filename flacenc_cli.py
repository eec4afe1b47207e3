import argparse
import os
import sys

from pyflacenc.common.config import DescriptorStrategy, EncoderConfig
from pyflacenc.common.constants import DEFAULT_BLOCK_SIZE, DEFAULT_MAX_LPC_ORDER
from pyflacenc.common.debug_logger import enable_debug_logging, disable_debug_logging
from pyflacenc.common.errors import FlacEncoderError
from pyflacenc.core.encoder import FlacEncoder
from pyflacenc.io.sample_source import WavSampleSource


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="FLAC lossless encoder CLI tool")
    parser.add_argument(
        "-i",
        "--input",
        type=str,
        required=True,
        help="Path to the input PCM .wav file (8, 16, 24 or 32-bit)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        required=True,
        help="Path to the output .flac file",
    )
    parser.add_argument(
        "--block-size",
        type=int,
        default=DEFAULT_BLOCK_SIZE,
        help=f"Samples per channel in each frame (default: {DEFAULT_BLOCK_SIZE})",
    )
    parser.add_argument(
        "--max-lpc-order",
        type=int,
        default=DEFAULT_MAX_LPC_ORDER,
        help=f"Highest LPC order tried, 0 disables LPC (default: {DEFAULT_MAX_LPC_ORDER})",
    )
    parser.add_argument(
        "--no-mid-side",
        action="store_true",
        help="Encode stereo channels independently",
    )
    parser.add_argument(
        "--fast",
        action="store_true",
        help="Estimate predictor orders instead of trying every one",
    )
    parser.add_argument(
        "--strategy",
        type=str,
        choices=[strategy.value for strategy in DescriptorStrategy],
        default=DescriptorStrategy.SEEK.value,
        help="How STREAMINFO totals are obtained before the frames (default: seek)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Threads encoding blocks in parallel (default: 1)",
    )
    parser.add_argument(
        "--debug-log",
        type=str,
        help="Enable debug logging to specified file (e.g., --debug-log flacenc_debug.log)",
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # Enable debug logging if requested
    if args.debug_log:
        enable_debug_logging(args.debug_log)
        print(f"Debug logging enabled to: {args.debug_log}")

    if not os.path.exists(args.input):
        print(f"Error: Input file not found: {args.input}")
        return 1

    config = EncoderConfig(
        block_size=args.block_size,
        max_lpc_order=args.max_lpc_order,
        mid_side=not args.no_mid_side,
        descriptor_strategy=DescriptorStrategy(args.strategy),
        workers=args.workers,
        exhaustive_search=not args.fast,
    )

    try:
        with WavSampleSource(args.input) as source:
            summary = (
                f"Input WAV: {source.channels()} channels, {source.bit_depth()}-bit, "
                f"{source.sample_rate()} Hz, {source.total_samples()} frames"
            )
            if source.sample_rate() > 0:
                summary += f" ({source.total_samples() / source.sample_rate():.2f}s)"
            print(summary + ".")
            print(f"Outputting to: {args.output}")
            with FlacEncoder(source, args.output, config) as encoder:
                stream_info = encoder.encode()
    except FlacEncoderError as e:
        print(f"Error: {e}")
        return 1
    finally:
        if args.debug_log:
            disable_debug_logging()

    output_size = os.path.getsize(args.output)
    input_size = os.path.getsize(args.input)
    ratio = output_size / input_size if input_size else 0.0
    print(
        f"Encoded {stream_info.total_samples} samples: {output_size} bytes "
        f"({ratio:.1%} of input), MD5 {stream_info.md5_signature.hex()}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
