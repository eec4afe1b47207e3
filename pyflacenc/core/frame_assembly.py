"""
Assembles complete FLAC frames: header, subframes, padding and checksums.
"""

from typing import Optional, Sequence

from pyflacenc.common import constants
from pyflacenc.common.debug_logger import log_bitstream
from pyflacenc.common.errors import EncodingInvariantError
from pyflacenc.core.bitstream import BitWriter
from pyflacenc.core.subframe import ConstantSubframe, Subframe, sample_count, write_subframe
from pyflacenc.tables.crc import crc8, crc16
from pyflacenc.tables.frame_codes import (
    encode_block_size,
    encode_sample_rate,
    encode_sample_size,
)


def encode_frame_number(frame_number: int) -> bytes:
    """
    Codes a frame number with the UTF-8 style variable-length scheme:
    one byte below 0x80, otherwise a lead byte of n one bits and n - 1
    continuation bytes of the form 10xxxxxx.
    """
    if not 0 <= frame_number <= constants.MAX_FRAME_NUMBER:
        raise EncodingInvariantError(
            f"Frame number {frame_number} cannot be represented", stage="frame_header"
        )
    if frame_number < 0x80:
        return bytes([frame_number])

    # Continuation bytes each carry 6 bits; the lead byte 7 - total_bytes bits
    total_bytes = 2
    while frame_number >= 1 << (6 * (total_bytes - 1) + 7 - total_bytes):
        total_bytes += 1

    out = bytearray()
    value = frame_number
    for _ in range(total_bytes - 1):
        out.insert(0, 0x80 | (value & 0x3F))
        value >>= 6
    lead_marker = (0xFF << (8 - total_bytes)) & 0xFF
    out.insert(0, lead_marker | value)
    return bytes(out)


def _channel_count(channel_assignment: int) -> int:
    if 0 <= channel_assignment < constants.MAX_CHANNELS:
        return channel_assignment + 1
    if channel_assignment in (
        constants.CHANNEL_ASSIGNMENT_LEFT_SIDE,
        constants.CHANNEL_ASSIGNMENT_RIGHT_SIDE,
        constants.CHANNEL_ASSIGNMENT_MID_SIDE,
    ):
        return 2
    raise EncodingInvariantError(
        f"Invalid channel assignment {channel_assignment}", stage="frame_header"
    )


def frame_header(frame_index: int, block_size: int, sample_rate: int,
                 bits_per_sample: int, channel_assignment: int) -> bytes:
    """Serializes a frame header, CRC-8 included."""
    _channel_count(channel_assignment)
    block_size_code, block_size_field = encode_block_size(block_size)
    sample_rate_code, sample_rate_field = encode_sample_rate(sample_rate)

    writer = BitWriter()
    writer.write_bits(constants.FRAME_SYNC_CODE, constants.FRAME_SYNC_BITS)
    writer.write_bits(0, 1)  # reserved
    writer.write_bits(0, 1)  # fixed block size stream
    writer.write_bits(block_size_code, 4)
    writer.write_bits(sample_rate_code, 4)
    writer.write_bits(channel_assignment, 4)
    writer.write_bits(encode_sample_size(bits_per_sample), 3)
    writer.write_bits(0, 1)  # reserved
    writer.write_bytes(encode_frame_number(frame_index))
    if block_size_field is not None:
        writer.write_bits(*block_size_field)
    if sample_rate_field is not None:
        writer.write_bits(*sample_rate_field)

    header = writer.get_bytes()
    return header + bytes([crc8(header)])


def _infer_block_size(subframes: Sequence[Subframe]) -> int:
    lengths = {
        sample_count(subframe, 0)
        for subframe in subframes
        if not isinstance(subframe, ConstantSubframe)
    }
    if not lengths:
        raise EncodingInvariantError(
            "A frame of constant subframes needs an explicit block size", stage="frame"
        )
    if len(lengths) > 1:
        raise EncodingInvariantError(
            f"Subframes differ in length: {sorted(lengths)}", stage="frame"
        )
    return lengths.pop()


def assemble_frame(frame_index: int, sample_rate: int, bits_per_sample: int,
                   channel_assignment: int, subframes: Sequence[Subframe],
                   block_size: Optional[int] = None) -> bytes:
    """
    Builds one complete frame.

    Args:
        frame_index: Zero-based frame number.
        sample_rate: Stream sample rate in Hz.
        bits_per_sample: Stream bit depth.
        channel_assignment: 0-7 for independent channels, 8-10 for stereo modes.
        subframes: One subframe per channel in the order the assignment defines.
        block_size: Samples per channel; inferred from the subframes if None,
                    which requires at least one non-constant subframe.

    Returns:
        The frame bytes, ending with the CRC-16 footer.
    """
    channels = _channel_count(channel_assignment)
    if len(subframes) != channels:
        raise EncodingInvariantError(
            f"Channel assignment {channel_assignment} needs {channels} subframes, "
            f"got {len(subframes)}",
            stage="frame",
        )
    if block_size is None:
        block_size = _infer_block_size(subframes)
    for subframe in subframes:
        if sample_count(subframe, block_size) != block_size:
            raise EncodingInvariantError(
                f"Subframe holds {sample_count(subframe, block_size)} samples, "
                f"frame {frame_index} has {block_size}",
                stage="frame",
            )

    writer = BitWriter()
    writer.write_bytes(frame_header(
        frame_index, block_size, sample_rate, bits_per_sample, channel_assignment
    ))
    for subframe in subframes:
        write_subframe(writer, subframe)
    writer.pad_to_byte_boundary(0)

    frame = writer.get_bytes()
    frame += crc16(frame).to_bytes(2, "big")
    log_bitstream("FRAME_OUTPUT", frame, frame=frame_index,
                  block_size=block_size, channel_assignment=channel_assignment)
    return frame
