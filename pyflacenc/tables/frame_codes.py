"""
Frame header code tables for block size, sample rate and sample size.
Each encoder returns the 4-bit (or 3-bit) header code plus the trailing
explicit field, if any, as (value, bit width).
"""

from typing import Dict, Optional, Tuple

from pyflacenc.common.errors import EncodingInvariantError

# Block size codes with an implicit value
BLOCK_SIZE_CODES: Dict[int, int] = {
    192: 0b0001,
    576: 0b0010,
    1152: 0b0011,
    2304: 0b0100,
    4608: 0b0101,
    256: 0b1000,
    512: 0b1001,
    1024: 0b1010,
    2048: 0b1011,
    4096: 0b1100,
    8192: 0b1101,
    16384: 0b1110,
    32768: 0b1111,
}
BLOCK_SIZE_8BIT_FOLLOWS = 0b0110
BLOCK_SIZE_16BIT_FOLLOWS = 0b0111

SAMPLE_RATE_CODES: Dict[int, int] = {
    88200: 0b0001,
    176400: 0b0010,
    192000: 0b0011,
    8000: 0b0100,
    16000: 0b0101,
    22050: 0b0110,
    24000: 0b0111,
    32000: 0b1000,
    44100: 0b1001,
    48000: 0b1010,
    96000: 0b1011,
}
SAMPLE_RATE_FROM_STREAMINFO = 0b0000
SAMPLE_RATE_KHZ_8BIT = 0b1100
SAMPLE_RATE_HZ_16BIT = 0b1101
SAMPLE_RATE_DAHZ_16BIT = 0b1110

SAMPLE_SIZE_CODES: Dict[int, int] = {
    8: 0b001,
    12: 0b010,
    16: 0b100,
    20: 0b101,
    24: 0b110,
    32: 0b111,
}
SAMPLE_SIZE_FROM_STREAMINFO = 0b000

TrailingField = Optional[Tuple[int, int]]


def encode_block_size(block_size: int) -> Tuple[int, TrailingField]:
    """
    Returns the header code for block_size and the explicit field that
    follows the frame number when the size has no enumerated code.
    """
    if block_size in BLOCK_SIZE_CODES:
        return BLOCK_SIZE_CODES[block_size], None
    if 1 <= block_size <= 256:
        return BLOCK_SIZE_8BIT_FOLLOWS, (block_size - 1, 8)
    if 1 <= block_size <= 65536:
        return BLOCK_SIZE_16BIT_FOLLOWS, (block_size - 1, 16)
    raise EncodingInvariantError(
        f"Block size {block_size} cannot be represented in a frame header",
        stage="frame_header",
    )


def encode_sample_rate(sample_rate: int) -> Tuple[int, TrailingField]:
    """
    Returns the header code for sample_rate and its explicit field, if any.
    Rates that fit none of the explicit forms are deferred to STREAMINFO.
    """
    if sample_rate in SAMPLE_RATE_CODES:
        return SAMPLE_RATE_CODES[sample_rate], None
    if sample_rate % 1000 == 0 and sample_rate // 1000 <= 0xFF:
        return SAMPLE_RATE_KHZ_8BIT, (sample_rate // 1000, 8)
    if sample_rate <= 0xFFFF:
        return SAMPLE_RATE_HZ_16BIT, (sample_rate, 16)
    if sample_rate % 10 == 0 and sample_rate // 10 <= 0xFFFF:
        return SAMPLE_RATE_DAHZ_16BIT, (sample_rate // 10, 16)
    return SAMPLE_RATE_FROM_STREAMINFO, None


def encode_sample_size(bits_per_sample: int) -> int:
    return SAMPLE_SIZE_CODES.get(bits_per_sample, SAMPLE_SIZE_FROM_STREAMINFO)
