"""
Global codec constants for the FLAC encoder.
These constants define the fixed parameters of the FLAC stream, metadata
block and frame layout as described by the FLAC format.
"""

FLAC_MARKER = b"fLaC"

# STREAMINFO metadata block
METADATA_BLOCK_HEADER_SIZE = 4
STREAMINFO_BLOCK_TYPE = 0
STREAMINFO_SIZE = 34
MD5_SIZE = 16

MIN_BLOCK_SIZE = 16
MAX_BLOCK_SIZE = 65535
DEFAULT_BLOCK_SIZE = 4096
MIN_CHANNELS = 1
MAX_CHANNELS = 8
MIN_BIT_DEPTH = 4
MAX_BIT_DEPTH = 32
MAX_SAMPLE_RATE = (1 << 20) - 1
MAX_FRAME_SIZE = (1 << 24) - 1
MAX_TOTAL_SAMPLES = (1 << 36) - 1

# Frame header
FRAME_SYNC_CODE = 0x3FFE
FRAME_SYNC_BITS = 14
MAX_FRAME_NUMBER = (1 << 31) - 1

CHANNEL_ASSIGNMENT_LEFT_SIDE = 8
CHANNEL_ASSIGNMENT_RIGHT_SIDE = 9
CHANNEL_ASSIGNMENT_MID_SIDE = 10

# Subframe header type codes
SUBFRAME_CONSTANT = 0b000000
SUBFRAME_VERBATIM = 0b000001
SUBFRAME_FIXED = 0b001000
SUBFRAME_LPC = 0b100000
SUBFRAME_HEADER_BITS = 8

MAX_FIXED_ORDER = 4
MAX_LPC_ORDER = 32
DEFAULT_MAX_LPC_ORDER = 8
QLP_PRECISION_BITS = 4
QLP_SHIFT_BITS = 5
MIN_QLP_PRECISION = 5
MAX_QLP_PRECISION = 15
MAX_QLP_SHIFT = 15
TUKEY_WINDOW_P = 0.5

# Residual coding
RESIDUAL_METHOD_BITS = 2
PARTITION_ORDER_BITS = 4
RICE_METHOD = 0
RICE2_METHOD = 1
RICE_PARAMETER_BITS = 4
RICE2_PARAMETER_BITS = 5
RICE_ESCAPE_PARAMETER = 0b1111
RICE2_ESCAPE_PARAMETER = 0b11111
ESCAPE_WIDTH_BITS = 5
MAX_PARTITION_ORDER = 15
DEFAULT_MAX_PARTITION_ORDER = 6
MAX_RESIDUAL_MAGNITUDE = (1 << 31) - 1
