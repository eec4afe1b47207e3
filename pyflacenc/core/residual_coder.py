"""
Partitioned Rice coding of prediction residuals.

A residual is folded onto the non-negative integers (zigzag) and each value
u is written as a unary quotient u >> k followed by the k low bits of u.
The block may be split into 2^p equal partitions, each with its own
parameter k, or stored raw ("escaped") when that is cheaper. Parameters are
found by direct cost summation over the whole legal range.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from pyflacenc.common import constants
from pyflacenc.core.bitstream import BitWriter

RICE_MAX_PARAMETER = constants.RICE_ESCAPE_PARAMETER - 1
RICE2_MAX_PARAMETER = constants.RICE2_ESCAPE_PARAMETER - 1
MAX_ESCAPE_WIDTH = (1 << constants.ESCAPE_WIDTH_BITS) - 1
RESIDUAL_HEADER_BITS = constants.RESIDUAL_METHOD_BITS + constants.PARTITION_ORDER_BITS


@dataclass(frozen=True)
class RicePlan:
    """
    The chosen coding of one residual sequence.

    parameters[i] is the Rice parameter of partition i; escape_widths[i] is
    the raw sample width when the partition is escaped, otherwise None.
    """

    method: int
    partition_order: int
    parameters: Tuple[int, ...]
    escape_widths: Tuple[Optional[int], ...]
    bit_cost: int

    @property
    def parameter_bits(self) -> int:
        if self.method == constants.RICE2_METHOD:
            return constants.RICE2_PARAMETER_BITS
        return constants.RICE_PARAMETER_BITS


def zigzag_fold(residual: np.ndarray) -> np.ndarray:
    """Maps v >= 0 to 2v and v < 0 to -2v - 1."""
    r = np.asarray(residual, dtype=np.int64)
    return np.where(r >= 0, 2 * r, -2 * r - 1)


def zigzag_unfold(folded: np.ndarray) -> np.ndarray:
    u = np.asarray(folded, dtype=np.int64)
    return np.where(u & 1 == 0, u >> 1, -((u + 1) >> 1))


def rice_bits(folded: np.ndarray, parameter: int) -> int:
    """Exact code length of a folded sequence under one Rice parameter."""
    return int(np.sum(folded >> parameter)) + len(folded) * (parameter + 1)


def best_rice_parameter(folded: np.ndarray, max_parameter: int = RICE2_MAX_PARAMETER) -> Tuple[int, int]:
    """
    Direct search for the parameter with the smallest code length.

    Returns:
        (parameter, bits); the lowest parameter wins ties.
    """
    best_parameter, best_bits = 0, rice_bits(folded, 0)
    for parameter in range(1, max_parameter + 1):
        bits = rice_bits(folded, parameter)
        if bits < best_bits:
            best_parameter, best_bits = parameter, bits
    return best_parameter, best_bits


def signed_width(residual: np.ndarray) -> int:
    """Smallest two's complement width holding every value; 0 for all zeros."""
    if len(residual) == 0:
        return 0
    low, high = int(np.min(residual)), int(np.max(residual))
    if low == 0 and high == 0:
        return 0
    width = 1
    while not (-(1 << (width - 1)) <= low and high <= (1 << (width - 1)) - 1):
        width += 1
    return width


def max_partition_order(block_size: int, predictor_order: int, limit: int) -> int:
    """
    Highest partition order such that the block splits evenly and the first
    partition still holds at least one residual.
    """
    order = 0
    while (
        order < limit
        and block_size % (1 << (order + 1)) == 0
        and (block_size >> (order + 1)) > predictor_order
    ):
        order += 1
    return order


def _partition_statistics(folded: np.ndarray, residual: np.ndarray, block_size: int,
                          predictor_order: int, partition_order: int):
    """Per-partition quotient sums for every parameter, counts and raw widths."""
    partition_size = block_size >> partition_order
    parameters = np.arange(RICE2_MAX_PARAMETER + 1, dtype=np.int64)
    sums, counts, widths = [], [], []
    for i in range(1 << partition_order):
        start = 0 if i == 0 else i * partition_size - predictor_order
        end = (i + 1) * partition_size - predictor_order
        part = folded[start:end]
        sums.append((part[:, None] >> parameters[None, :]).sum(axis=0))
        counts.append(end - start)
        widths.append(signed_width(residual[start:end]))
    return np.array(sums, dtype=np.int64), np.array(counts, dtype=np.int64), widths


def _plan_for_order(sums: np.ndarray, counts: np.ndarray, widths: List[int],
                    partition_order: int) -> RicePlan:
    best: Optional[RicePlan] = None
    for method, max_parameter, parameter_bits in (
        (constants.RICE_METHOD, RICE_MAX_PARAMETER, constants.RICE_PARAMETER_BITS),
        (constants.RICE2_METHOD, RICE2_MAX_PARAMETER, constants.RICE2_PARAMETER_BITS),
    ):
        parameters: List[int] = []
        escapes: List[Optional[int]] = []
        total = RESIDUAL_HEADER_BITS
        for i in range(len(counts)):
            n = int(counts[i])
            ks = np.arange(max_parameter + 1, dtype=np.int64)
            costs = sums[i, : max_parameter + 1] + n * (ks + 1)
            k = int(np.argmin(costs))
            rice_cost = int(costs[k])
            # All-zero partitions stay Rice coded with k = 0
            escape_cost = (
                constants.ESCAPE_WIDTH_BITS + n * widths[i]
                if 1 <= widths[i] <= MAX_ESCAPE_WIDTH
                else None
            )
            if escape_cost is not None and escape_cost < rice_cost:
                parameters.append(k)
                escapes.append(widths[i])
                total += parameter_bits + escape_cost
            else:
                parameters.append(k)
                escapes.append(None)
                total += parameter_bits + rice_cost
        plan = RicePlan(method, partition_order, tuple(parameters), tuple(escapes), total)
        if best is None or plan.bit_cost < best.bit_cost:
            best = plan
    return best


def plan_residual(residual: np.ndarray, block_size: int, predictor_order: int,
                  max_order: int = constants.DEFAULT_MAX_PARTITION_ORDER) -> Optional[RicePlan]:
    """
    Chooses partition order, coding method and per-partition parameters
    minimizing the encoded size of 'residual'.

    Args:
        residual: The block_size - predictor_order residual values.
        block_size: Samples in the block, warm-up included.
        predictor_order: Number of warm-up samples preceding the residual.
        max_order: Highest partition order to try.

    Returns:
        The cheapest RicePlan (lower partition order on ties), or None if a
        residual exceeds the signed 32-bit range a decoder accepts.
    """
    residual = np.asarray(residual, dtype=np.int64)
    if len(residual) != block_size - predictor_order:
        raise ValueError(
            f"Residual length {len(residual)} does not match block size {block_size} "
            f"minus order {predictor_order}"
        )
    if len(residual) and int(np.max(np.abs(residual))) > constants.MAX_RESIDUAL_MAGNITUDE:
        return None

    folded = zigzag_fold(residual)
    top_order = max_partition_order(block_size, predictor_order, max_order)
    sums, counts, widths = _partition_statistics(
        folded, residual, block_size, predictor_order, top_order
    )

    best: Optional[RicePlan] = None
    for partition_order in range(top_order, -1, -1):
        plan = _plan_for_order(sums, counts, widths, partition_order)
        if best is None or plan.bit_cost <= best.bit_cost:
            best = plan
        if partition_order > 0:
            # Merge neighbouring partitions to get the next coarser order
            sums = sums[0::2] + sums[1::2]
            counts = counts[0::2] + counts[1::2]
            widths = [max(a, b) for a, b in zip(widths[0::2], widths[1::2])]
    return best


def write_residual(writer: BitWriter, residual: np.ndarray, plan: RicePlan, predictor_order: int):
    """Serializes a residual sequence according to 'plan'."""
    residual = np.asarray(residual, dtype=np.int64)
    folded = zigzag_fold(residual)
    writer.write_bits(plan.method, constants.RESIDUAL_METHOD_BITS)
    writer.write_bits(plan.partition_order, constants.PARTITION_ORDER_BITS)

    partition_count = 1 << plan.partition_order
    partition_size = (len(residual) + predictor_order) >> plan.partition_order
    escape_code = (
        constants.RICE2_ESCAPE_PARAMETER
        if plan.method == constants.RICE2_METHOD
        else constants.RICE_ESCAPE_PARAMETER
    )

    for i in range(partition_count):
        start = 0 if i == 0 else i * partition_size - predictor_order
        end = (i + 1) * partition_size - predictor_order
        width = plan.escape_widths[i]
        if width is not None:
            writer.write_bits(escape_code, plan.parameter_bits)
            writer.write_bits(width, constants.ESCAPE_WIDTH_BITS)
            for value in residual[start:end].tolist():
                writer.write_signed(value, width)
            continue

        k = plan.parameters[i]
        writer.write_bits(k, plan.parameter_bits)
        mask = (1 << k) - 1
        for u in folded[start:end].tolist():
            quotient = u >> k
            if quotient + 1 + k <= 64:
                writer.write_bits((1 << k) | (u & mask), quotient + 1 + k)
            else:
                writer.write_unary(quotient)
                writer.write_bits(u & mask, k)
