"""
Tests for the frame header code tables.
"""

import pytest

from pyflacenc.common.errors import EncodingInvariantError
from pyflacenc.tables.frame_codes import (
    BLOCK_SIZE_8BIT_FOLLOWS,
    BLOCK_SIZE_16BIT_FOLLOWS,
    SAMPLE_RATE_DAHZ_16BIT,
    SAMPLE_RATE_FROM_STREAMINFO,
    SAMPLE_RATE_HZ_16BIT,
    SAMPLE_RATE_KHZ_8BIT,
    SAMPLE_SIZE_FROM_STREAMINFO,
    encode_block_size,
    encode_sample_rate,
    encode_sample_size,
)


class TestBlockSizeCodes:
    @pytest.mark.parametrize("size, code", [
        (192, 0b0001), (576, 0b0010), (4608, 0b0101), (256, 0b1000), (4096, 0b1100), (32768, 0b1111),
    ])
    def test_enumerated(self, size, code):
        assert encode_block_size(size) == (code, None)

    def test_eight_bit_field(self):
        assert encode_block_size(16) == (BLOCK_SIZE_8BIT_FOLLOWS, (15, 8))
        assert encode_block_size(1) == (BLOCK_SIZE_8BIT_FOLLOWS, (0, 8))

    def test_sixteen_bit_field(self):
        assert encode_block_size(1000) == (BLOCK_SIZE_16BIT_FOLLOWS, (999, 16))
        assert encode_block_size(65535) == (BLOCK_SIZE_16BIT_FOLLOWS, (65534, 16))

    @pytest.mark.parametrize("size", [0, 65537])
    def test_unrepresentable(self, size):
        with pytest.raises(EncodingInvariantError):
            encode_block_size(size)


class TestSampleRateCodes:
    @pytest.mark.parametrize("rate, code", [
        (44100, 0b1001), (48000, 0b1010), (96000, 0b1011), (8000, 0b0100), (192000, 0b0011),
    ])
    def test_enumerated(self, rate, code):
        assert encode_sample_rate(rate) == (code, None)

    def test_khz_field(self):
        assert encode_sample_rate(12000) == (SAMPLE_RATE_KHZ_8BIT, (12, 8))

    def test_hz_field(self):
        assert encode_sample_rate(11025) == (SAMPLE_RATE_HZ_16BIT, (11025, 16))

    def test_decahertz_field(self):
        assert encode_sample_rate(352800) == (SAMPLE_RATE_DAHZ_16BIT, (35280, 16))

    def test_deferred_to_streaminfo(self):
        assert encode_sample_rate(700001) == (SAMPLE_RATE_FROM_STREAMINFO, None)


class TestSampleSizeCodes:
    @pytest.mark.parametrize("bits, code", [(8, 1), (12, 2), (16, 4), (20, 5), (24, 6), (32, 7)])
    def test_enumerated(self, bits, code):
        assert encode_sample_size(bits) == code

    @pytest.mark.parametrize("bits", [4, 5, 17, 31])
    def test_deferred_to_streaminfo(self, bits):
        assert encode_sample_size(bits) == SAMPLE_SIZE_FROM_STREAMINFO
