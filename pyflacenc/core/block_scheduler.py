"""
Splits the source into fixed-size blocks and de-interleaves each one into
per-channel sample arrays.
"""

from dataclasses import dataclass
from typing import Iterator, List

import numpy as np

from pyflacenc.common.debug_logger import log_debug
from pyflacenc.common.errors import ConfigurationError, FlacEncoderError, SourceReadError
from pyflacenc.common.utils import signed_range
from pyflacenc.io.sample_source import SampleSource


@dataclass(frozen=True, eq=False)
class AudioBlock:
    """
    One block of audio.

    frame_index: zero-based index of the frame this block becomes.
    first_sample: absolute index of the first inter-channel sample.
    channels: one int64 array per channel, all of the same length.
    interleaved: the samples as read, shape (frames, channels), for the checksum.
    """

    frame_index: int
    first_sample: int
    channels: List[np.ndarray]
    interleaved: np.ndarray

    @property
    def block_size(self) -> int:
        return len(self.channels[0])


class BlockScheduler:
    """
    Pulls blocks of block_size inter-channel samples from a SampleSource.
    The final block may be shorter; an empty read ends the stream.
    """

    def __init__(self, source: SampleSource, block_size: int, channels: int, bit_depth: int):
        self.source = source
        self.block_size = block_size
        self.channels = channels
        self.bit_depth = bit_depth
        self.low, self.high = signed_range(bit_depth)
        self.samples_read = 0
        self.blocks_read = 0

    def _read(self) -> np.ndarray:
        """Reads up to one full block, retrying short reads until the block fills."""
        pieces = []
        wanted = self.block_size
        while wanted > 0:
            try:
                chunk = self.source.read_samples(wanted)
            except FlacEncoderError:
                raise
            except Exception as e:
                raise SourceReadError(
                    f"Sample source failed after {self.samples_read} samples: {e}", stage="read"
                ) from e
            chunk = np.asarray(chunk)
            if chunk.size == 0:
                break
            if chunk.ndim == 1 and self.channels == 1:
                chunk = chunk.reshape(-1, 1)
            if chunk.ndim != 2 or chunk.shape[1] != self.channels:
                raise SourceReadError(
                    f"Sample source returned shape {chunk.shape}, expected (n, {self.channels})",
                    stage="read",
                )
            if len(chunk) > wanted:
                raise SourceReadError(
                    f"Sample source returned {len(chunk)} frames, at most {wanted} requested",
                    stage="read",
                )
            pieces.append(chunk.astype(np.int64, copy=False))
            wanted -= len(chunk)

        if not pieces:
            return np.zeros((0, self.channels), dtype=np.int64)
        return pieces[0] if len(pieces) == 1 else np.concatenate(pieces)

    def next_block(self):
        """
        Returns the next AudioBlock, or None at the end of the stream.

        Raises:
            ConfigurationError: a sample exceeds the declared bit depth.
            SourceReadError: the source failed or returned malformed data.
        """
        interleaved = self._read()
        if len(interleaved) == 0:
            return None

        low, high = int(interleaved.min()), int(interleaved.max())
        if low < self.low or high > self.high:
            raise ConfigurationError(
                f"Sample values [{low}, {high}] exceed the {self.bit_depth}-bit range "
                f"in block {self.blocks_read}",
                stage="read",
            )

        block = AudioBlock(
            frame_index=self.blocks_read,
            first_sample=self.samples_read,
            channels=[np.ascontiguousarray(interleaved[:, ch]) for ch in range(self.channels)],
            interleaved=interleaved,
        )
        log_debug("BLOCK_INPUT", "samples", interleaved, frame=block.frame_index,
                  first_sample=block.first_sample, block_size=block.block_size)
        self.samples_read += len(interleaved)
        self.blocks_read += 1
        return block

    def __iter__(self) -> Iterator[AudioBlock]:
        while True:
            block = self.next_block()
            if block is None:
                return
            yield block
