"""
Lossless round trips through the encoder and the reference decoder across
bit depths, channel layouts and predictor settings.
"""

import io
import wave

import numpy as np
import pytest

from pyflacenc.common.config import EncoderConfig
from pyflacenc.core.encoder import FlacEncoder, encode_file
from pyflacenc.io.sample_source import ArraySampleSource
from flac_reference_decoder import decode_flac


def tone(frames, channels, bit_depth, seed=0, noise=20.0, amplitude=0.5):
    rng = np.random.default_rng(seed)
    t = np.arange(frames)
    peak = (1 << (bit_depth - 1)) - 1
    columns = []
    for ch in range(channels):
        wave_ = amplitude * peak * np.sin(2 * np.pi * (220 + 110 * ch) * t / 44100)
        columns.append(wave_ + rng.normal(0, noise, frames))
    return np.clip(np.stack(columns, axis=1).round(), -peak - 1, peak).astype(np.int64)


def round_trip(samples, bit_depth, config=None, sample_rate=44100):
    sink = io.BytesIO()
    FlacEncoder(ArraySampleSource(samples, sample_rate, bit_depth), sink, config).encode()
    decoded = decode_flac(sink.getvalue())
    assert np.array_equal(decoded.samples, samples.reshape(len(samples), -1))
    return decoded


class TestBitDepths:
    @pytest.mark.parametrize("bit_depth", [4, 8, 12, 16, 20, 24])
    def test_stereo(self, bit_depth):
        samples = tone(3000, 2, bit_depth, noise=min(20.0, (1 << (bit_depth - 1)) / 8))
        decoded = round_trip(samples, bit_depth, EncoderConfig(block_size=1024))
        assert decoded.stream_info.bits_per_sample == bit_depth

    def test_32_bit_skips_stereo_decorrelation(self):
        samples = tone(2000, 2, 32, noise=1000.0)
        decoded = round_trip(samples, 32, EncoderConfig(block_size=1024))
        assert all(frame.channel_assignment == 1 for frame in decoded.frames)

    def test_32_bit_full_scale_noise(self):
        rng = np.random.default_rng(3)
        samples = rng.integers(-(1 << 31), 1 << 31, size=(600, 1))
        decoded = round_trip(samples, 32, EncoderConfig(block_size=256))
        assert all(frame.subframes[0].kind == "verbatim" for frame in decoded.frames)


class TestChannelLayouts:
    @pytest.mark.parametrize("channels", [1, 3, 6, 8])
    def test_multichannel_independent(self, channels):
        samples = tone(2500, channels, 16)
        decoded = round_trip(samples, 16, EncoderConfig(block_size=1024))
        assert all(frame.channel_assignment == channels - 1 for frame in decoded.frames)

    def test_correlated_stereo_uses_decorrelation(self):
        mono = tone(4096, 1, 16, noise=50.0)
        samples = np.concatenate([mono, mono + 1], axis=1)
        decoded = round_trip(samples, 16, EncoderConfig(block_size=4096))
        assert decoded.frames[0].channel_assignment in (8, 9, 10)

    def test_no_mid_side(self):
        mono = tone(4096, 1, 16, noise=50.0)
        samples = np.concatenate([mono, mono], axis=1)
        decoded = round_trip(samples, 16, EncoderConfig(block_size=4096, mid_side=False))
        assert decoded.frames[0].channel_assignment == 1

    def test_extreme_side_values(self):
        samples = np.array([[32767, -32768], [-32768, 32767]] * 64, dtype=np.int64)
        round_trip(samples, 16, EncoderConfig(block_size=128))


class TestBlocking:
    def test_short_final_block(self):
        samples = tone(4096 + 1000, 2, 16)
        decoded = round_trip(samples, 16)
        assert [f.block_size for f in decoded.frames] == [4096, 1000]
        assert decoded.stream_info.max_block_size == 4096

    def test_block_shorter_than_predictor_order(self):
        samples = tone(1024 + 3, 1, 16)
        decoded = round_trip(samples, 16, EncoderConfig(block_size=1024, max_lpc_order=12))
        assert decoded.frames[-1].block_size == 3

    def test_single_sample_stream(self):
        decoded = round_trip(np.array([[123, -45]]), 16)
        assert decoded.frames[0].block_size == 1

    @pytest.mark.parametrize("block_size", [16, 192, 1000, 4608, 16384])
    def test_block_sizes(self, block_size):
        decoded = round_trip(tone(20000, 2, 16), 16, EncoderConfig(block_size=block_size))
        assert decoded.frames[0].block_size == block_size

    @pytest.mark.parametrize("sample_rate", [8000, 11025, 12000, 44100, 352800, 700001])
    def test_sample_rates(self, sample_rate):
        decoded = round_trip(tone(500, 1, 16), 16, sample_rate=sample_rate)
        assert decoded.stream_info.sample_rate == sample_rate
        assert decoded.frames[0].sample_rate == sample_rate


class TestPredictors:
    def test_ramp_uses_fixed_predictor(self):
        samples = (np.arange(4096) * 3 - 6000).reshape(-1, 1)
        decoded = round_trip(samples, 16, EncoderConfig(block_size=4096, max_lpc_order=0))
        subframe = decoded.frames[0].subframes[0]
        assert subframe.kind == "fixed"
        assert subframe.order >= 1

    def test_lpc_chosen_for_tonal_signal(self):
        samples = tone(4096, 1, 16, noise=2.0, amplitude=0.3)
        decoded = round_trip(samples, 16, EncoderConfig(block_size=4096, max_lpc_order=12))
        assert decoded.frames[0].subframes[0].kind in ("fixed", "lpc")

    def test_fast_search(self):
        samples = tone(8192, 2, 16)
        round_trip(samples, 16, EncoderConfig(block_size=4096, exhaustive_search=False))

    def test_wasted_bits(self):
        rng = np.random.default_rng(11)
        samples = (rng.integers(-100, 100, size=(2048, 1)) * 256).astype(np.int64)
        samples[0, 0] = 256
        decoded = round_trip(samples, 16, EncoderConfig(block_size=2048))
        assert decoded.frames[0].subframes[0].wasted_bits == 8

    def test_fixed_qlp_precision(self):
        round_trip(tone(4096, 1, 16), 16, EncoderConfig(block_size=4096, qlp_precision=5))

    def test_rice2_for_wide_residuals(self):
        rng = np.random.default_rng(5)
        samples = np.cumsum(rng.laplace(0, 1 << 18, size=(4096, 1)).round(), axis=0)
        samples = np.clip(samples, -(1 << 23), (1 << 23) - 1).astype(np.int64)
        round_trip(samples, 24, EncoderConfig(block_size=4096))


class TestEncodeFile:
    def test_wav_to_flac(self, tmp_path):
        samples = tone(5000, 2, 16).astype("<i2")
        wav_path = tmp_path / "in.wav"
        with wave.open(str(wav_path), "wb") as wav:
            wav.setnchannels(2)
            wav.setsampwidth(2)
            wav.setframerate(48000)
            wav.writeframes(samples.tobytes())

        flac_path = tmp_path / "out.flac"
        info = encode_file(str(wav_path), str(flac_path))
        decoded = decode_flac(flac_path.read_bytes())
        assert info.total_samples == 5000
        assert decoded.stream_info.sample_rate == 48000
        assert np.array_equal(decoded.samples, samples)
