"""
Tests for the in-memory and WAV sample sources.
"""

import wave

import numpy as np
import pytest

from pyflacenc.common.errors import ConfigurationError, SourceReadError
from pyflacenc.io.sample_source import ArraySampleSource, SampleSource, WavSampleSource, is_rewindable


def write_wav(path, frames: bytes, channels: int, sample_width: int, sample_rate: int = 44100):
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(sample_width)
        wav.setframerate(sample_rate)
        wav.writeframes(frames)
    return str(path)


class TestArraySampleSource:
    def test_mono_reshaped(self):
        source = ArraySampleSource(np.arange(10), 8000, 16)
        assert source.channels() == 1
        assert source.total_samples() == 10
        assert source.read_samples(4).shape == (4, 1)

    def test_reads_until_empty(self):
        source = ArraySampleSource(np.arange(10).reshape(5, 2), 44100, 16)
        assert source.read_samples(3).tolist() == [[0, 1], [2, 3], [4, 5]]
        assert source.read_samples(3).tolist() == [[6, 7], [8, 9]]
        assert source.read_samples(3).shape == (0, 2)

    def test_rewind(self):
        source = ArraySampleSource(np.arange(4), 44100, 16)
        first = source.read_samples(4)
        source.rewind()
        assert np.array_equal(source.read_samples(4), first)
        assert is_rewindable(source)

    def test_declared_total(self):
        source = ArraySampleSource(np.zeros(4, dtype=np.int16), 44100, 16, declared_total=0)
        assert source.total_samples() == 0

    def test_satisfies_protocol(self):
        assert isinstance(ArraySampleSource(np.zeros(1, dtype=np.int32), 44100, 16), SampleSource)

    def test_rejects_float_samples(self):
        with pytest.raises(ConfigurationError, match="integers"):
            ArraySampleSource(np.zeros(4, dtype=np.float32), 44100, 16)

    def test_rejects_three_dimensions(self):
        with pytest.raises(ConfigurationError, match="shape"):
            ArraySampleSource(np.zeros((2, 2, 2), dtype=np.int16), 44100, 16)


class TestWavSampleSource:
    def test_16_bit_stereo(self, tmp_path):
        samples = np.array([[1, -1], [32767, -32768], [0, 5]], dtype="<i2")
        path = write_wav(tmp_path / "in.wav", samples.tobytes(), 2, 2, 48000)
        with WavSampleSource(path) as source:
            assert (source.sample_rate(), source.channels(), source.bit_depth()) == (48000, 2, 16)
            assert source.total_samples() == 3
            assert source.read_samples(10).tolist() == samples.tolist()
            assert source.read_samples(10).shape == (0, 2)

    def test_8_bit_is_recentred(self, tmp_path):
        path = write_wav(tmp_path / "in.wav", bytes([0, 128, 255]), 1, 1)
        with WavSampleSource(path) as source:
            assert source.bit_depth() == 8
            assert source.read_samples(3)[:, 0].tolist() == [-128, 0, 127]

    def test_24_bit_sign_extension(self, tmp_path):
        frames = b"\x56\x34\x12" + b"\xfe\xff\xff" + b"\x00\x00\x80"
        path = write_wav(tmp_path / "in.wav", frames, 1, 3)
        with WavSampleSource(path) as source:
            assert source.bit_depth() == 24
            assert source.read_samples(3)[:, 0].tolist() == [0x123456, -2, -(1 << 23)]

    def test_32_bit(self, tmp_path):
        samples = np.array([-(1 << 31), (1 << 31) - 1], dtype="<i4")
        path = write_wav(tmp_path / "in.wav", samples.tobytes(), 1, 4)
        with WavSampleSource(path) as source:
            assert source.read_samples(2)[:, 0].tolist() == samples.tolist()

    def test_rewind(self, tmp_path):
        samples = np.arange(8, dtype="<i2")
        path = write_wav(tmp_path / "in.wav", samples.tobytes(), 2, 2)
        with WavSampleSource(path) as source:
            first = source.read_samples(4)
            source.rewind()
            assert np.array_equal(source.read_samples(4), first)
            assert is_rewindable(source)

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceReadError, match="Failed to open WAV file") as excinfo:
            WavSampleSource(str(tmp_path / "missing.wav"))
        assert excinfo.value.stage == "open"

    def test_not_a_wav_file(self, tmp_path):
        path = tmp_path / "noise.wav"
        path.write_bytes(b"definitely not RIFF data")
        with pytest.raises(SourceReadError):
            WavSampleSource(str(path))
