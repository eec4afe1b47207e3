"""
Handles the FLAC STREAMINFO metadata block: the 4-byte block header
followed by the 34-byte body describing the whole stream.
"""

from dataclasses import dataclass, field
from typing import BinaryIO

from pyflacenc.common import constants
from pyflacenc.common.errors import ConfigurationError

STREAMINFO_BLOCK_BYTES = constants.METADATA_BLOCK_HEADER_SIZE + constants.STREAMINFO_SIZE


@dataclass
class StreamInfo:
    """
    Represents and handles the STREAMINFO block.

    Frame sizes of 0 mean "unknown"; they are only written that way into a
    placeholder that is patched once every frame has been encoded.
    """

    # Body layout, in bits, most significant field first
    MIN_BLOCK_SIZE_BITS = 16
    MAX_BLOCK_SIZE_BITS = 16
    MIN_FRAME_SIZE_BITS = 24
    MAX_FRAME_SIZE_BITS = 24
    SAMPLE_RATE_BITS = 20
    CHANNELS_BITS = 3
    BITS_PER_SAMPLE_BITS = 5
    TOTAL_SAMPLES_BITS = 36

    min_block_size: int = constants.DEFAULT_BLOCK_SIZE
    max_block_size: int = constants.DEFAULT_BLOCK_SIZE
    min_frame_size: int = 0
    max_frame_size: int = 0
    sample_rate: int = 44100
    channels: int = 2
    bits_per_sample: int = 16
    total_samples: int = 0
    md5_signature: bytes = field(default=bytes(constants.MD5_SIZE))
    is_last: bool = True

    def _validate(self):
        checks = (
            ("min block size", self.min_block_size, constants.MIN_BLOCK_SIZE, constants.MAX_BLOCK_SIZE),
            ("max block size", self.max_block_size, constants.MIN_BLOCK_SIZE, constants.MAX_BLOCK_SIZE),
            ("min frame size", self.min_frame_size, 0, constants.MAX_FRAME_SIZE),
            ("max frame size", self.max_frame_size, 0, constants.MAX_FRAME_SIZE),
            ("sample rate", self.sample_rate, 1, constants.MAX_SAMPLE_RATE),
            ("channel count", self.channels, constants.MIN_CHANNELS, constants.MAX_CHANNELS),
            ("bit depth", self.bits_per_sample, constants.MIN_BIT_DEPTH, constants.MAX_BIT_DEPTH),
            ("total samples", self.total_samples, 0, constants.MAX_TOTAL_SAMPLES),
        )
        for name, value, low, high in checks:
            if not low <= value <= high:
                raise ConfigurationError(
                    f"STREAMINFO {name} must be between {low} and {high}, got {value}",
                    stage="streaminfo",
                )
        if self.min_block_size > self.max_block_size:
            raise ConfigurationError(
                f"STREAMINFO min block size {self.min_block_size} exceeds "
                f"max block size {self.max_block_size}",
                stage="streaminfo",
            )
        if len(self.md5_signature) != constants.MD5_SIZE:
            raise ConfigurationError(
                f"MD5 signature must be {constants.MD5_SIZE} bytes, got {len(self.md5_signature)}",
                stage="streaminfo",
            )

    def pack(self) -> bytes:
        """
        Packs the block header and body into 38 bytes.

        Raises:
            ConfigurationError: a field does not fit its width.
        """
        self._validate()

        body = self.min_block_size
        body = (body << self.MAX_BLOCK_SIZE_BITS) | self.max_block_size
        body = (body << self.MIN_FRAME_SIZE_BITS) | self.min_frame_size
        body = (body << self.MAX_FRAME_SIZE_BITS) | self.max_frame_size
        body = (body << self.SAMPLE_RATE_BITS) | self.sample_rate
        body = (body << self.CHANNELS_BITS) | (self.channels - 1)
        body = (body << self.BITS_PER_SAMPLE_BITS) | (self.bits_per_sample - 1)
        body = (body << self.TOTAL_SAMPLES_BITS) | self.total_samples
        body_bytes = body.to_bytes(constants.STREAMINFO_SIZE - constants.MD5_SIZE, "big")

        header = (0x80 if self.is_last else 0x00) | constants.STREAMINFO_BLOCK_TYPE
        return (
            bytes([header])
            + constants.STREAMINFO_SIZE.to_bytes(3, "big")
            + body_bytes
            + bytes(self.md5_signature)
        )

    @classmethod
    def unpack(cls, block_bytes: bytes) -> "StreamInfo":
        """
        Unpacks a 38-byte STREAMINFO block (header included).
        """
        if len(block_bytes) != STREAMINFO_BLOCK_BYTES:
            raise ValueError(
                f"STREAMINFO block must be {STREAMINFO_BLOCK_BYTES} bytes long, got {len(block_bytes)}"
            )
        block_type = block_bytes[0] & 0x7F
        length = int.from_bytes(block_bytes[1:4], "big")
        if block_type != constants.STREAMINFO_BLOCK_TYPE or length != constants.STREAMINFO_SIZE:
            raise ValueError(
                f"Not a STREAMINFO block: type {block_type}, length {length}"
            )

        body_end = STREAMINFO_BLOCK_BYTES - constants.MD5_SIZE
        body = int.from_bytes(block_bytes[4:body_end], "big")

        def take(bits: int) -> int:
            nonlocal body
            value = body & ((1 << bits) - 1)
            body >>= bits
            return value

        total_samples = take(cls.TOTAL_SAMPLES_BITS)
        bits_per_sample = take(cls.BITS_PER_SAMPLE_BITS) + 1
        channels = take(cls.CHANNELS_BITS) + 1
        sample_rate = take(cls.SAMPLE_RATE_BITS)
        max_frame_size = take(cls.MAX_FRAME_SIZE_BITS)
        min_frame_size = take(cls.MIN_FRAME_SIZE_BITS)
        max_block_size = take(cls.MAX_BLOCK_SIZE_BITS)
        min_block_size = take(cls.MIN_BLOCK_SIZE_BITS)

        return cls(
            min_block_size=min_block_size,
            max_block_size=max_block_size,
            min_frame_size=min_frame_size,
            max_frame_size=max_frame_size,
            sample_rate=sample_rate,
            channels=channels,
            bits_per_sample=bits_per_sample,
            total_samples=total_samples,
            md5_signature=bytes(block_bytes[body_end:]),
            is_last=bool(block_bytes[0] & 0x80),
        )

    @classmethod
    def read_from_stream(cls, stream: BinaryIO) -> "StreamInfo":
        """Reads and unpacks a STREAMINFO block from a binary stream."""
        block_bytes = stream.read(STREAMINFO_BLOCK_BYTES)
        if len(block_bytes) != STREAMINFO_BLOCK_BYTES:
            raise EOFError(
                f"Could not read {STREAMINFO_BLOCK_BYTES} bytes for the STREAMINFO block."
            )
        return cls.unpack(block_bytes)

    def write_to_stream(self, stream: BinaryIO):
        """Packs and writes the block to a binary stream."""
        stream.write(self.pack())
