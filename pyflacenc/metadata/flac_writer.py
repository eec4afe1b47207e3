"""
Handles writing of FLAC files: the stream marker, the STREAMINFO block
and the encoded frames, with the block patched in place once the stream
totals are known.
"""

from typing import BinaryIO, Optional, Type, Union
from types import TracebackType

from pyflacenc.common import constants
from pyflacenc.common.debug_logger import log_debug
from pyflacenc.common.errors import SinkWriteError
from pyflacenc.metadata.stream_info import StreamInfo


class FlacWriter:
    """
    Writes the FLAC marker, STREAMINFO and frames to a binary sink and keeps
    the frame size statistics STREAMINFO reports.
    """

    def __init__(self, filepath_or_stream: Union[str, BinaryIO], stream_info: StreamInfo):
        """
        Initializes the writer.

        Args:
            filepath_or_stream: Path of the FLAC file to create/overwrite or an
                                already open binary stream for writing.
            stream_info: Descriptor to write. Its frame size fields are
                         overwritten from the frames passed to write_frame().
        """
        if isinstance(filepath_or_stream, str):
            try:
                self.stream: BinaryIO = open(filepath_or_stream, "wb")
            except OSError as e:
                raise SinkWriteError(
                    f"Failed to open FLAC file for writing: {filepath_or_stream}",
                    stage="open",
                ) from e
            self._close_on_exit = True
        else:
            self.stream: BinaryIO = filepath_or_stream
            self._close_on_exit = False

        self.stream_info = stream_info
        self.frame_count: int = 0
        self.min_frame_size: Optional[int] = None
        self.max_frame_size: int = 0
        self._header_offset: Optional[int] = None
        self._closed = False

    def write_header(self):
        """
        Writes the marker and STREAMINFO as currently known. With the seek
        strategy this is the placeholder that finalize() later patches.
        """
        try:
            seekable = getattr(self.stream, "seekable", None)
            self._header_offset = self.stream.tell() if seekable and seekable() else None
            self.stream.write(constants.FLAC_MARKER)
            self.stream_info.write_to_stream(self.stream)
        except OSError as e:
            raise SinkWriteError("Failed to write FLAC header.", stage="streaminfo") from e
        log_debug("STREAMINFO", "total_samples", self.stream_info.total_samples,
                  sample_rate=self.stream_info.sample_rate,
                  channels=self.stream_info.channels,
                  bits_per_sample=self.stream_info.bits_per_sample,
                  md5=self.stream_info.md5_signature.hex())

    def write_frame(self, frame_bytes: bytes):
        """Writes one encoded frame and records its size."""
        try:
            self.stream.write(frame_bytes)
        except OSError as e:
            raise SinkWriteError(
                f"Failed to write frame {self.frame_count}.", stage="frame"
            ) from e
        self.record_frame_size(len(frame_bytes))

    def write_raw(self, data: bytes):
        """Writes already counted frame bytes, e.g. a spooled frame stream."""
        try:
            self.stream.write(data)
        except OSError as e:
            raise SinkWriteError("Failed to write frame data.", stage="frame") from e

    def record_frame_size(self, size: int):
        self.frame_count += 1
        self.min_frame_size = size if self.min_frame_size is None else min(self.min_frame_size, size)
        self.max_frame_size = max(self.max_frame_size, size)

    def apply_frame_sizes(self):
        """Copies the recorded frame size range into the STREAMINFO fields."""
        self.stream_info.min_frame_size = self.min_frame_size or 0
        self.stream_info.max_frame_size = self.max_frame_size

    def finalize(self):
        """
        Rewrites STREAMINFO at its original offset with the final totals and
        flushes the stream.
        """
        self.apply_frame_sizes()
        if self._header_offset is None:
            raise SinkWriteError(
                "Cannot patch STREAMINFO: the sink is not seekable.", stage="finalize"
            )
        try:
            current_pos = self.stream.tell()
            self.stream.seek(self._header_offset + len(constants.FLAC_MARKER))
            self.stream_info.write_to_stream(self.stream)
            self.stream.flush()
            self.stream.seek(current_pos)
        except OSError as e:
            raise SinkWriteError("Failed to finalize STREAMINFO.", stage="finalize") from e
        log_debug("STREAMINFO", "total_samples", self.stream_info.total_samples,
                  min_frame_size=self.stream_info.min_frame_size,
                  max_frame_size=self.stream_info.max_frame_size,
                  md5=self.stream_info.md5_signature.hex(), patched=True)

    def close(self):
        """
        Flushes and closes the stream if opened by this writer. Safe to call
        more than once; finalizing is the caller's decision.
        """
        if self._closed:
            return
        self._closed = True
        # Sinks may be bare writers without closed/flush
        if getattr(self.stream, "closed", False):
            return
        flush = getattr(self.stream, "flush", None)
        try:
            if flush is not None:
                flush()
        except OSError as e:
            raise SinkWriteError("Failed to flush FLAC output.", stage="close") from e
        finally:
            if self._close_on_exit:
                self.stream.close()

    def __enter__(self):
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> Optional[bool]:
        self.close()
        return False
