"""
Encoder configuration.

Holds the runtime settings of one encoding session as an immutable object.
Codec-wide fixed values live in pyflacenc.common.constants.
"""

from dataclasses import dataclass
from enum import Enum

from pyflacenc.common import constants
from pyflacenc.common.errors import ConfigurationError


class DescriptorStrategy(str, Enum):
    """How the STREAMINFO totals are made available before the frame stream."""

    SEEK = "seek"
    BUFFER = "buffer"
    PRE_PASS = "pre_pass"


@dataclass(frozen=True)
class EncoderConfig:
    """
    Immutable encoder settings.

    block_size: fixed number of samples per channel in every frame but the last.
    max_lpc_order: highest LPC order tried; 0 disables LPC subframes.
    qlp_precision: coefficient precision in bits; 0 selects it from block size and depth.
    max_partition_order: highest Rice partition order tried.
    mid_side: try left/side, right/side and mid/side for stereo input.
    descriptor_strategy: see DescriptorStrategy.
    workers: number of threads encoding blocks; 1 encodes inline.
    exhaustive_search: evaluate every LPC order; otherwise the order is
                       estimated from the prediction error.
    """

    block_size: int = constants.DEFAULT_BLOCK_SIZE
    max_lpc_order: int = constants.DEFAULT_MAX_LPC_ORDER
    qlp_precision: int = 0
    max_partition_order: int = constants.DEFAULT_MAX_PARTITION_ORDER
    mid_side: bool = True
    descriptor_strategy: DescriptorStrategy = DescriptorStrategy.SEEK
    workers: int = 1
    exhaustive_search: bool = True

    def validate(self) -> "EncoderConfig":
        if not constants.MIN_BLOCK_SIZE <= self.block_size <= constants.MAX_BLOCK_SIZE:
            raise ConfigurationError(
                f"Block size must be between {constants.MIN_BLOCK_SIZE} and "
                f"{constants.MAX_BLOCK_SIZE}, got {self.block_size}",
                stage="config",
            )
        if not 0 <= self.max_lpc_order <= constants.MAX_LPC_ORDER:
            raise ConfigurationError(
                f"Max LPC order must be between 0 and {constants.MAX_LPC_ORDER}, "
                f"got {self.max_lpc_order}",
                stage="config",
            )
        if self.qlp_precision != 0 and not (
            constants.MIN_QLP_PRECISION <= self.qlp_precision <= constants.MAX_QLP_PRECISION
        ):
            raise ConfigurationError(
                f"QLP precision must be 0 or between {constants.MIN_QLP_PRECISION} and "
                f"{constants.MAX_QLP_PRECISION}, got {self.qlp_precision}",
                stage="config",
            )
        if not 0 <= self.max_partition_order <= constants.MAX_PARTITION_ORDER:
            raise ConfigurationError(
                f"Max partition order must be between 0 and "
                f"{constants.MAX_PARTITION_ORDER}, got {self.max_partition_order}",
                stage="config",
            )
        if not isinstance(self.descriptor_strategy, DescriptorStrategy):
            raise ConfigurationError(
                f"Unknown descriptor strategy: {self.descriptor_strategy!r}",
                stage="config",
            )
        if self.workers < 1:
            raise ConfigurationError(
                f"Worker count must be at least 1, got {self.workers}", stage="config"
            )
        return self


def validate_stream_format(sample_rate: int, channels: int, bit_depth: int):
    """Checks a source's declared format against what STREAMINFO can carry."""
    if not constants.MIN_CHANNELS <= channels <= constants.MAX_CHANNELS:
        raise ConfigurationError(
            f"Channel count must be between {constants.MIN_CHANNELS} and "
            f"{constants.MAX_CHANNELS}, got {channels}",
            stage="config",
        )
    if not constants.MIN_BIT_DEPTH <= bit_depth <= constants.MAX_BIT_DEPTH:
        raise ConfigurationError(
            f"Bit depth must be between {constants.MIN_BIT_DEPTH} and "
            f"{constants.MAX_BIT_DEPTH}, got {bit_depth}",
            stage="config",
        )
    if not 1 <= sample_rate <= constants.MAX_SAMPLE_RATE:
        raise ConfigurationError(
            f"Sample rate must be between 1 and {constants.MAX_SAMPLE_RATE}, got {sample_rate}",
            stage="config",
        )


def default_qlp_precision(block_size: int, bit_depth: int) -> int:
    """
    Coefficient precision used when EncoderConfig.qlp_precision is 0.
    Larger blocks afford more coefficient bits; the sum of sample width,
    precision and order bits stays within 32 for 16-bit material.
    """
    if bit_depth <= 16:
        if block_size <= 192:
            precision = 7
        elif block_size <= 384:
            precision = 8
        elif block_size <= 576:
            precision = 9
        elif block_size <= 1152:
            precision = 10
        elif block_size <= 2304:
            precision = 11
        elif block_size <= 4608:
            precision = 12
        else:
            precision = 13
    else:
        if block_size <= 384:
            precision = 13
        elif block_size <= 1152:
            precision = 14
        else:
            precision = constants.MAX_QLP_PRECISION
    return precision
