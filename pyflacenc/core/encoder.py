"""
Main FLAC encoder class, orchestrating all sub-components.
"""

import hashlib
import shutil
import tempfile
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import BinaryIO, Callable, Iterator, Optional, Tuple, Union

from pyflacenc.common.config import DescriptorStrategy, EncoderConfig, validate_stream_format
from pyflacenc.common.debug_logger import log_debug
from pyflacenc.common.errors import (
    ConfigurationError,
    EncoderStateError,
    SinkWriteError,
    SourceReadError,
)
from pyflacenc.common.utils import pack_samples_le
from pyflacenc.core.block_scheduler import AudioBlock, BlockScheduler
from pyflacenc.core.frame_assembly import assemble_frame
from pyflacenc.core.subframe_encoder import SubframeEncoder
from pyflacenc.io.sample_source import SampleSource, WavSampleSource, is_rewindable
from pyflacenc.metadata.flac_writer import FlacWriter
from pyflacenc.metadata.stream_info import StreamInfo

# Frames held in memory before the buffer strategy spills to disk
SPOOL_MAX_BYTES = 16 * 1024 * 1024
COPY_CHUNK_BYTES = 64 * 1024


class EncoderState(Enum):
    CREATED = "created"
    HEADER_PENDING = "header_pending"
    STREAMING = "streaming"
    FINALIZED = "finalized"
    FAILED = "failed"


class FlacEncoder:
    """
    Orchestrates one encoding session, from a SampleSource to a complete
    FLAC stream on the sink.

    The STREAMINFO block precedes the frames but its checksum, sample count
    and frame sizes are only known after the last frame; how that is
    resolved is set by EncoderConfig.descriptor_strategy.
    """

    def __init__(self, source: SampleSource, sink: Union[str, BinaryIO],
                 config: Optional[EncoderConfig] = None):
        """
        Initializes the encoder. Nothing is read or written yet.

        Args:
            source: Provider of the samples to encode.
            sink: Output path, or a binary stream. The seek strategy needs a
                  seekable stream.
            config: Encoder settings; defaults to EncoderConfig().

        Raises:
            ConfigurationError: invalid settings, unsupported source format,
                                or a sink/source the strategy cannot use.
        """
        self.config = (config or EncoderConfig()).validate()
        self.source = source
        self.sink = sink

        self.sample_rate = source.sample_rate()
        self.channels = source.channels()
        self.bit_depth = source.bit_depth()
        validate_stream_format(self.sample_rate, self.channels, self.bit_depth)

        strategy = self.config.descriptor_strategy
        if strategy == DescriptorStrategy.SEEK and not isinstance(sink, str):
            seekable = getattr(sink, "seekable", None)
            if not (seekable and seekable()):
                raise ConfigurationError(
                    "The seek strategy needs a seekable sink; use 'buffer' or 'pre_pass'",
                    stage="config",
                )
        if strategy == DescriptorStrategy.PRE_PASS and not is_rewindable(source):
            raise ConfigurationError(
                "The pre_pass strategy needs a source with rewind()", stage="config"
            )

        self.subframe_encoder = SubframeEncoder(self.config, self.bit_depth)
        self.stream_info: Optional[StreamInfo] = None
        self.state = EncoderState.CREATED
        self._writer: Optional[FlacWriter] = None
        self._closed = False

    def _set_state(self, state: EncoderState):
        log_debug("ENCODER_STATE", "state", 0, previous=self.state.value, current=state.value)
        self.state = state

    def _new_stream_info(self) -> StreamInfo:
        return StreamInfo(
            min_block_size=self.config.block_size,
            max_block_size=self.config.block_size,
            sample_rate=self.sample_rate,
            channels=self.channels,
            bits_per_sample=self.bit_depth,
        )

    def encode_block(self, block: AudioBlock) -> bytes:
        """Encodes one block into a complete frame."""
        encoded = self.subframe_encoder.encode_block(block.channels, block.frame_index)
        return assemble_frame(
            block.frame_index,
            self.sample_rate,
            self.bit_depth,
            encoded.channel_assignment,
            encoded.subframes,
            block_size=block.block_size,
        )

    def _frames(self, scheduler: BlockScheduler) -> Iterator[Tuple[AudioBlock, bytes]]:
        """Yields (block, frame) pairs strictly in block order."""
        workers = self.config.workers
        if workers == 1:
            for block in scheduler:
                yield block, self.encode_block(block)
            return

        with ThreadPoolExecutor(max_workers=workers) as pool:
            pending = deque()
            for block in scheduler:
                pending.append((block, pool.submit(self.encode_block, block)))
                if len(pending) >= 2 * workers:
                    done_block, future = pending.popleft()
                    yield done_block, future.result()
            while pending:
                done_block, future = pending.popleft()
                yield done_block, future.result()

    def _run_pass(self, emit: Callable[[bytes], None]) -> Tuple[bytes, int]:
        """
        Reads the whole source once, handing every frame to 'emit'.

        Returns:
            (MD5 digest of the samples read, number of samples per channel)
        """
        scheduler = BlockScheduler(
            self.source, self.config.block_size, self.channels, self.bit_depth
        )
        md5 = hashlib.md5()
        for block, frame in self._frames(scheduler):
            md5.update(pack_samples_le(block.interleaved, self.bit_depth))
            emit(frame)
        total = scheduler.samples_read

        declared = self.source.total_samples()
        if declared and declared != total:
            log_debug("TOTAL_SAMPLES_MISMATCH", "samples", total, declared=declared)
        return md5.digest(), total

    def _encode_seek(self, writer: FlacWriter):
        writer.write_header()
        self._set_state(EncoderState.STREAMING)
        digest, total = self._run_pass(writer.write_frame)
        writer.stream_info.md5_signature = digest
        writer.stream_info.total_samples = total
        writer.finalize()

    def _encode_buffer(self, writer: FlacWriter):
        with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_BYTES) as spool:
            def spool_frame(frame: bytes):
                spool.write(frame)
                writer.record_frame_size(len(frame))

            digest, total = self._run_pass(spool_frame)
            writer.stream_info.md5_signature = digest
            writer.stream_info.total_samples = total
            writer.apply_frame_sizes()
            writer.write_header()
            self._set_state(EncoderState.STREAMING)

            spool.seek(0)
            shutil.copyfileobj(spool, _WriterAdapter(writer), COPY_CHUNK_BYTES)

    def _encode_pre_pass(self, writer: FlacWriter):
        digest, total = self._run_pass(lambda frame: writer.record_frame_size(len(frame)))
        writer.stream_info.md5_signature = digest
        writer.stream_info.total_samples = total
        writer.apply_frame_sizes()
        writer.write_header()
        self._set_state(EncoderState.STREAMING)

        self.source.rewind()
        second_digest, second_total = self._run_pass(writer.write_raw)
        if (second_digest, second_total) != (digest, total):
            raise SourceReadError(
                "Source returned different samples after rewind", stage="pre_pass"
            )

    def encode(self) -> StreamInfo:
        """
        Encodes the whole source and releases the sink.

        Returns:
            The final STREAMINFO written to the sink.

        Raises:
            EncoderStateError: encode() was already called, or the encoder is closed.
            FlacEncoderError: any failure while encoding; the encoder is then FAILED.
        """
        if self.state != EncoderState.CREATED or self._closed:
            raise EncoderStateError(
                f"encode() is not allowed in state {self.state.value}", stage="encode"
            )
        self._set_state(EncoderState.HEADER_PENDING)
        try:
            self._writer = FlacWriter(self.sink, self._new_stream_info())
            strategy = self.config.descriptor_strategy
            if strategy == DescriptorStrategy.SEEK:
                self._encode_seek(self._writer)
            elif strategy == DescriptorStrategy.BUFFER:
                self._encode_buffer(self._writer)
            else:
                self._encode_pre_pass(self._writer)
            self.stream_info = self._writer.stream_info
            self.close()
        except OSError as e:
            self._fail()
            raise SinkWriteError(f"I/O failure while encoding: {e}", stage="encode") from e
        except BaseException:
            self._fail()
            raise

        self._set_state(EncoderState.FINALIZED)
        return self.stream_info

    def _fail(self):
        self._set_state(EncoderState.FAILED)
        try:
            self.close()
        except SinkWriteError as e:
            # The error that failed the encode is the one raised
            log_debug("CLOSE_FAILED", "state", 0, error=str(e))

    def close(self):
        """Releases the sink. Safe to call on every path and more than once."""
        if self._closed:
            return
        self._closed = True
        if self._writer is not None:
            self._writer.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class _WriterAdapter:
    """File-like front for FlacWriter.write_raw, for shutil.copyfileobj."""

    def __init__(self, writer: FlacWriter):
        self._writer = writer

    def write(self, data: bytes) -> int:
        self._writer.write_raw(data)
        return len(data)


def encode_file(input_wav: str, output_flac: str,
                config: Optional[EncoderConfig] = None) -> StreamInfo:
    """Encodes a WAV file into a FLAC file and returns the final STREAMINFO."""
    with WavSampleSource(input_wav) as source:
        with FlacEncoder(source, output_flac, config) as encoder:
            return encoder.encode()
