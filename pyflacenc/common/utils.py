import numpy as np

"""
Common utility functions for the pyflacenc project.
"""


def bytes_per_sample(bit_depth: int) -> int:
    """
    Number of bytes one sample occupies in the MD5 signature input.

    Args:
        bit_depth: Source bit depth (4-32).

    Returns:
        ceil(bit_depth / 8).
    """
    return (bit_depth + 7) // 8


def signed_range(bit_depth: int) -> tuple[int, int]:
    """Returns the inclusive (min, max) of a two's complement value of bit_depth bits."""
    return -(1 << (bit_depth - 1)), (1 << (bit_depth - 1)) - 1


def count_wasted_bits(samples: np.ndarray) -> int:
    """
    Counts the trailing zero bits shared by every sample in the block.
    Matches libFLAC's wasted-bits detection: an all-zero block has none.

    Args:
        samples: Integer samples of one channel block.

    Returns:
        The number of low bits that are zero in every sample.
    """
    combined = int(np.bitwise_or.reduce(samples.astype(np.int64))) if len(samples) else 0
    if combined == 0:
        return 0
    wasted = 0
    while combined & 1 == 0:
        combined >>= 1
        wasted += 1
    return wasted


def pack_samples_le(interleaved: np.ndarray, bit_depth: int) -> bytes:
    """
    Packs interleaved samples as signed little-endian integers of
    ceil(bit_depth / 8) bytes each, the byte order the MD5 signature covers.
    """
    width = bytes_per_sample(bit_depth)
    flat = np.ascontiguousarray(interleaved, dtype=np.int64).reshape(-1)
    if width == 1:
        return flat.astype("<i1").tobytes()
    if width == 2:
        return flat.astype("<i2").tobytes()
    if width == 4:
        return flat.astype("<i4").tobytes()
    # 24-bit: keep the three low bytes of each little-endian int32
    as_bytes = flat.astype("<i4").view(np.uint8).reshape(-1, 4)
    return as_bytes[:, :3].tobytes()
