"""
Implements MSB-first bit packing for FLAC frames.
Fields of any width up to 64 bits are packed back to back across byte
boundaries; padding is only introduced by an explicit flush.
"""

from typing import BinaryIO, Callable, Optional, Union

MAX_FIELD_BITS = 64

BitSink = Union[BinaryIO, Callable[[bytes], object]]


class BitWriter:
    """
    Accumulates bit fields and hands whole bytes to an optional sink.
    """

    def __init__(self, sink: Optional[BitSink] = None):
        """
        Initializes the writer.

        Args:
            sink: Binary stream or callable receiving flushed bytes.
                  If None, flushed bytes stay in the buffer for get_bytes().
        """
        self.buffer: bytearray = bytearray()
        self._sink = sink
        self._accumulator: int = 0
        self._pending_bits: int = 0
        self._flushed_bytes: int = 0

    @property
    def bits_written(self) -> int:
        """Total number of bits written since creation, flushed or not."""
        return (self._flushed_bytes + len(self.buffer)) * 8 + self._pending_bits

    @property
    def is_byte_aligned(self) -> bool:
        return self._pending_bits == 0

    def _drain_accumulator(self):
        whole_bytes = self._pending_bits // 8
        if whole_bytes == 0:
            return
        remainder = self._pending_bits % 8
        self.buffer += (self._accumulator >> remainder).to_bytes(whole_bytes, "big")
        self._accumulator &= (1 << remainder) - 1
        self._pending_bits = remainder

    def write_bits(self, value: int, num_bits: int):
        """
        Writes the low 'num_bits' of 'value', most significant bit first.
        """
        if num_bits < 0 or num_bits > MAX_FIELD_BITS:
            raise ValueError(f"Number of bits must be between 0 and {MAX_FIELD_BITS}")
        if num_bits == 0:
            return

        self._accumulator = (self._accumulator << num_bits) | (
            int(value) & ((1 << num_bits) - 1)
        )
        self._pending_bits += num_bits
        if self._pending_bits >= 32:
            self._drain_accumulator()

    def write_signed(self, value: int, num_bits: int):
        """
        Writes a signed integer as two's complement in 'num_bits'.
        The value must fit; truncating a signed value would corrupt the stream.
        """
        if num_bits > 0:
            low, high = -(1 << (num_bits - 1)), (1 << (num_bits - 1)) - 1
            if not low <= value <= high:
                raise ValueError(f"Value {value} does not fit in {num_bits} signed bits")
        self.write_bits(value, num_bits)

    def write_unary(self, quotient: int):
        """Writes 'quotient' zero bits followed by a single one bit."""
        while quotient >= MAX_FIELD_BITS:
            self.write_bits(0, MAX_FIELD_BITS)
            quotient -= MAX_FIELD_BITS
        self.write_bits(1, quotient + 1)

    def write_bytes(self, data: bytes):
        if self.is_byte_aligned:
            self._drain_accumulator()
            self.buffer += data
            return
        for byte in data:
            self.write_bits(byte, 8)

    def pad_to_byte_boundary(self, pad_bit: int = 0):
        """Pads with 'pad_bit' until the next byte boundary if not already aligned."""
        if self._pending_bits % 8 != 0:
            bits_to_pad = 8 - self._pending_bits % 8
            self.write_bits((1 << bits_to_pad) - 1 if pad_bit else 0, bits_to_pad)
        self._drain_accumulator()

    def flush(self, pad_bit: int = 0) -> bytes:
        """
        Aligns to a byte boundary and hands every buffered byte to the sink.

        Returns:
            The bytes that were flushed. Without a sink they remain available
            through get_bytes() as well.
        """
        self.pad_to_byte_boundary(pad_bit)
        flushed = bytes(self.buffer)
        if self._sink is not None:
            if callable(self._sink):
                self._sink(flushed)
            else:
                self._sink.write(flushed)
            self._flushed_bytes += len(self.buffer)
            self.buffer = bytearray()
        return flushed

    def get_bytes(self) -> bytes:
        """
        Returns the unflushed content as bytes; a trailing partial byte is
        included with its unwritten low bits set to zero.
        """
        self._drain_accumulator()
        if self._pending_bits:
            tail = self._accumulator << (8 - self._pending_bits)
            return bytes(self.buffer) + bytes([tail])
        return bytes(self.buffer)
