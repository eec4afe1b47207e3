"""
Subframe variants and their serialization.

A subframe is exactly one of ConstantSubframe, VerbatimSubframe,
FixedSubframe or LpcSubframe. The variants share no base class;
write_subframe dispatches on the concrete type and rejects anything else.
"""

from dataclasses import dataclass
from typing import Tuple, Union

import numpy as np

from pyflacenc.common import constants
from pyflacenc.common.errors import EncodingInvariantError
from pyflacenc.core.bitstream import BitWriter
from pyflacenc.core.residual_coder import RicePlan, write_residual


def header_bits(wasted_bits: int) -> int:
    """Subframe header size: padding bit, type, wasted flag and unary wasted count."""
    return constants.SUBFRAME_HEADER_BITS + wasted_bits


@dataclass(frozen=True, eq=False)
class ConstantSubframe:
    value: int
    bits_per_sample: int
    wasted_bits: int = 0

    @property
    def bit_cost(self) -> int:
        return header_bits(self.wasted_bits) + self.bits_per_sample


@dataclass(frozen=True, eq=False)
class VerbatimSubframe:
    samples: np.ndarray
    bits_per_sample: int
    wasted_bits: int = 0

    @property
    def bit_cost(self) -> int:
        return header_bits(self.wasted_bits) + len(self.samples) * self.bits_per_sample


@dataclass(frozen=True, eq=False)
class FixedSubframe:
    order: int
    warmup: np.ndarray
    residual: np.ndarray
    plan: RicePlan
    bits_per_sample: int
    wasted_bits: int = 0

    @property
    def bit_cost(self) -> int:
        return (
            header_bits(self.wasted_bits)
            + self.order * self.bits_per_sample
            + self.plan.bit_cost
        )


@dataclass(frozen=True, eq=False)
class LpcSubframe:
    order: int
    precision: int
    shift: int
    coefficients: Tuple[int, ...]
    warmup: np.ndarray
    residual: np.ndarray
    plan: RicePlan
    bits_per_sample: int
    wasted_bits: int = 0

    @property
    def bit_cost(self) -> int:
        return (
            header_bits(self.wasted_bits)
            + self.order * self.bits_per_sample
            + constants.QLP_PRECISION_BITS
            + constants.QLP_SHIFT_BITS
            + self.order * self.precision
            + self.plan.bit_cost
        )


Subframe = Union[ConstantSubframe, VerbatimSubframe, FixedSubframe, LpcSubframe]


def subframe_kind(subframe: Subframe) -> str:
    """Short name of the variant, used in logs and statistics."""
    if isinstance(subframe, ConstantSubframe):
        return "constant"
    if isinstance(subframe, VerbatimSubframe):
        return "verbatim"
    if isinstance(subframe, FixedSubframe):
        return "fixed"
    if isinstance(subframe, LpcSubframe):
        return "lpc"
    raise EncodingInvariantError(f"Unknown subframe type {type(subframe).__name__}", stage="subframe")


def sample_count(subframe: Subframe, block_size: int) -> int:
    """Number of samples a subframe decodes to; constants adopt the frame's block size."""
    if isinstance(subframe, ConstantSubframe):
        return block_size
    if isinstance(subframe, VerbatimSubframe):
        return len(subframe.samples)
    if isinstance(subframe, (FixedSubframe, LpcSubframe)):
        return subframe.order + len(subframe.residual)
    raise EncodingInvariantError(f"Unknown subframe type {type(subframe).__name__}", stage="subframe")


def _write_header(writer: BitWriter, type_code: int, wasted_bits: int):
    writer.write_bits(0, 1)
    writer.write_bits(type_code, 6)
    if wasted_bits:
        writer.write_bits(1, 1)
        writer.write_unary(wasted_bits - 1)
    else:
        writer.write_bits(0, 1)


def _write_samples(writer: BitWriter, samples: np.ndarray, bits_per_sample: int):
    for sample in np.asarray(samples, dtype=np.int64).tolist():
        writer.write_signed(sample, bits_per_sample)


def write_subframe(writer: BitWriter, subframe: Subframe):
    """Serializes one subframe, header included, without byte alignment."""
    bps = getattr(subframe, "bits_per_sample", 0)
    if isinstance(subframe, ConstantSubframe):
        _write_header(writer, constants.SUBFRAME_CONSTANT, subframe.wasted_bits)
        writer.write_signed(subframe.value, bps)
    elif isinstance(subframe, VerbatimSubframe):
        _write_header(writer, constants.SUBFRAME_VERBATIM, subframe.wasted_bits)
        _write_samples(writer, subframe.samples, bps)
    elif isinstance(subframe, FixedSubframe):
        _write_header(writer, constants.SUBFRAME_FIXED | subframe.order, subframe.wasted_bits)
        _write_samples(writer, subframe.warmup, bps)
        write_residual(writer, subframe.residual, subframe.plan, subframe.order)
    elif isinstance(subframe, LpcSubframe):
        _write_header(writer, constants.SUBFRAME_LPC | (subframe.order - 1), subframe.wasted_bits)
        _write_samples(writer, subframe.warmup, bps)
        writer.write_bits(subframe.precision - 1, constants.QLP_PRECISION_BITS)
        writer.write_signed(subframe.shift, constants.QLP_SHIFT_BITS)
        for coefficient in subframe.coefficients:
            writer.write_signed(coefficient, subframe.precision)
        write_residual(writer, subframe.residual, subframe.plan, subframe.order)
    else:
        raise EncodingInvariantError(
            f"Cannot serialize subframe of type {type(subframe).__name__}", stage="subframe"
        )
