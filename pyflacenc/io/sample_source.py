"""
Sample sources feeding the encoder.

A source declares its format up front and hands out interleaved integer
samples on demand as arrays of shape (frames, channels). An empty array
marks the end of the stream.
"""

import wave
from typing import Optional, Protocol, runtime_checkable

import numpy as np

from pyflacenc.common.errors import ConfigurationError, SourceReadError


@runtime_checkable
class SampleSource(Protocol):
    """Pull-based provider of interleaved integer PCM samples."""

    def sample_rate(self) -> int:
        ...

    def channels(self) -> int:
        ...

    def bit_depth(self) -> int:
        ...

    def total_samples(self) -> int:
        """Declared number of inter-channel samples; 0 if unknown."""
        ...

    def read_samples(self, max_frames: int) -> np.ndarray:
        """Returns up to max_frames samples per channel; empty at end of stream."""
        ...


def is_rewindable(source) -> bool:
    return callable(getattr(source, "rewind", None))


class ArraySampleSource:
    """
    Serves samples held in memory.

    Args:
        samples: Integer array of shape (frames, channels), or (frames,) for mono.
        sample_rate: Sample rate in Hz.
        bit_depth: Significant bits per sample.
        declared_total: Total to report from total_samples(); defaults to the
                        actual length.
    """

    def __init__(self, samples: np.ndarray, sample_rate: int, bit_depth: int,
                 declared_total: Optional[int] = None):
        samples = np.asarray(samples)
        if samples.ndim == 1:
            samples = samples.reshape(-1, 1)
        if samples.ndim != 2:
            raise ConfigurationError(
                f"Samples must have shape (frames, channels), got {samples.shape}",
                stage="source",
            )
        if samples.size and not np.issubdtype(samples.dtype, np.integer):
            raise ConfigurationError(
                f"Samples must be integers, got {samples.dtype}", stage="source"
            )
        self._samples = samples.astype(np.int64, copy=False)
        self._sample_rate = sample_rate
        self._bit_depth = bit_depth
        self._declared_total = len(samples) if declared_total is None else declared_total
        self._position = 0

    def sample_rate(self) -> int:
        return self._sample_rate

    def channels(self) -> int:
        return self._samples.shape[1]

    def bit_depth(self) -> int:
        return self._bit_depth

    def total_samples(self) -> int:
        return self._declared_total

    def read_samples(self, max_frames: int) -> np.ndarray:
        end = min(self._position + max_frames, len(self._samples))
        chunk = self._samples[self._position:end]
        self._position = end
        return chunk

    def rewind(self):
        self._position = 0


class WavSampleSource:
    """
    Reads PCM samples from a WAV file with the standard-library wave module.

    8-bit data is unsigned and re-centred on zero; 16, 24 and 32-bit data is
    signed little-endian.
    """

    SUPPORTED_WIDTHS = (1, 2, 3, 4)

    def __init__(self, path: str):
        self.path = path
        try:
            self._wav = wave.open(path, "rb")
        except (OSError, EOFError, wave.Error) as e:
            raise SourceReadError(f"Failed to open WAV file: {path}: {e}", stage="open") from e

        self._sample_width = self._wav.getsampwidth()
        if self._sample_width not in self.SUPPORTED_WIDTHS:
            self._wav.close()
            raise ConfigurationError(
                f"Unsupported WAV sample width: {self._sample_width} bytes", stage="config"
            )
        self._channels = self._wav.getnchannels()
        self._sample_rate = self._wav.getframerate()
        self._total = self._wav.getnframes()

    def sample_rate(self) -> int:
        return self._sample_rate

    def channels(self) -> int:
        return self._channels

    def bit_depth(self) -> int:
        return self._sample_width * 8

    def total_samples(self) -> int:
        return self._total

    def _decode(self, data: bytes) -> np.ndarray:
        width = self._sample_width
        if width == 1:
            values = np.frombuffer(data, dtype=np.uint8).astype(np.int64) - 128
        elif width == 2:
            values = np.frombuffer(data, dtype="<i2").astype(np.int64)
        elif width == 4:
            values = np.frombuffer(data, dtype="<i4").astype(np.int64)
        else:
            raw = np.frombuffer(data, dtype=np.uint8).reshape(-1, 3).astype(np.int64)
            values = raw[:, 0] | (raw[:, 1] << 8) | (raw[:, 2] << 16)
            values = np.where(values & 0x800000, values - (1 << 24), values)
        return values.reshape(-1, self._channels)

    def read_samples(self, max_frames: int) -> np.ndarray:
        try:
            data = self._wav.readframes(max_frames)
        except (OSError, EOFError, wave.Error) as e:
            raise SourceReadError(f"Failed to read WAV data: {e}", stage="read") from e
        # Drop a trailing partial frame of a truncated file
        frame_bytes = self._sample_width * self._channels
        data = data[: len(data) - len(data) % frame_bytes]
        return self._decode(data)

    def rewind(self):
        self._wav.rewind()

    def close(self):
        self._wav.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
