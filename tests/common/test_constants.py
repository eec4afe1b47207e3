import unittest
from pyflacenc.common import constants as c


class TestStreamConstants(unittest.TestCase):
    def test_flac_marker(self):
        self.assertEqual(c.FLAC_MARKER, b"fLaC", "Stream marker should be fLaC")

    def test_streaminfo_size(self):
        self.assertEqual(c.STREAMINFO_SIZE, 34, "STREAMINFO body should be 34 bytes")
        self.assertEqual(c.METADATA_BLOCK_HEADER_SIZE, 4)
        self.assertEqual(c.MD5_SIZE, 16)

    def test_block_size_limits(self):
        self.assertEqual(c.MIN_BLOCK_SIZE, 16)
        self.assertEqual(c.MAX_BLOCK_SIZE, 65535)
        self.assertTrue(c.MIN_BLOCK_SIZE <= c.DEFAULT_BLOCK_SIZE <= c.MAX_BLOCK_SIZE)

    def test_format_limits(self):
        self.assertEqual((c.MIN_CHANNELS, c.MAX_CHANNELS), (1, 8))
        self.assertEqual((c.MIN_BIT_DEPTH, c.MAX_BIT_DEPTH), (4, 32))
        self.assertEqual(c.MAX_SAMPLE_RATE, 2 ** 20 - 1)
        self.assertEqual(c.MAX_TOTAL_SAMPLES, 2 ** 36 - 1)
        self.assertEqual(c.MAX_FRAME_SIZE, 2 ** 24 - 1)


class TestFrameConstants(unittest.TestCase):
    def test_sync_code(self):
        self.assertEqual(c.FRAME_SYNC_CODE, 0x3FFE)
        self.assertEqual(c.FRAME_SYNC_BITS, 14)

    def test_channel_assignments(self):
        self.assertEqual(
            (c.CHANNEL_ASSIGNMENT_LEFT_SIDE, c.CHANNEL_ASSIGNMENT_RIGHT_SIDE,
             c.CHANNEL_ASSIGNMENT_MID_SIDE),
            (8, 9, 10),
        )

    def test_subframe_type_codes(self):
        self.assertEqual(c.SUBFRAME_CONSTANT, 0)
        self.assertEqual(c.SUBFRAME_VERBATIM, 1)
        self.assertEqual(c.SUBFRAME_FIXED, 8)
        self.assertEqual(c.SUBFRAME_LPC, 32)

    def test_predictor_limits(self):
        self.assertEqual(c.MAX_FIXED_ORDER, 4)
        self.assertEqual(c.MAX_LPC_ORDER, 32)
        self.assertEqual(c.MAX_QLP_PRECISION, 15)
        self.assertEqual(c.MAX_QLP_SHIFT, 15)


class TestResidualConstants(unittest.TestCase):
    def test_escape_codes(self):
        self.assertEqual(c.RICE_ESCAPE_PARAMETER, (1 << c.RICE_PARAMETER_BITS) - 1)
        self.assertEqual(c.RICE2_ESCAPE_PARAMETER, (1 << c.RICE2_PARAMETER_BITS) - 1)

    def test_partition_order_width(self):
        self.assertEqual(c.MAX_PARTITION_ORDER, (1 << c.PARTITION_ORDER_BITS) - 1)


if __name__ == "__main__":
    unittest.main()
