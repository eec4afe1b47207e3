"""
Tests for partitioned Rice coding of residuals.
"""

import numpy as np
import pytest

from pyflacenc.common import constants
from pyflacenc.core.bitstream import BitWriter
from pyflacenc.core.residual_coder import (
    RESIDUAL_HEADER_BITS,
    best_rice_parameter,
    max_partition_order,
    plan_residual,
    rice_bits,
    signed_width,
    write_residual,
    zigzag_fold,
    zigzag_unfold,
)
from flac_reference_decoder import BitReader, DecodedSubframe, _read_residual


def decode(data: bytes, block_size: int, order: int):
    sub = DecodedSubframe("fixed", order, 0, [])
    return _read_residual(BitReader(data), block_size, order, sub), sub


class TestZigzag:
    """Signed to unsigned folding."""

    def test_fold_values(self):
        folded = zigzag_fold(np.array([0, -1, 1, -2, 2, -3]))
        np.testing.assert_array_equal(folded, [0, 1, 2, 3, 4, 5])

    def test_unfold_inverts_fold(self):
        values = np.array([0, 5, -5, 2 ** 31 - 1, -(2 ** 31)], dtype=np.int64)
        np.testing.assert_array_equal(zigzag_unfold(zigzag_fold(values)), values)


class TestRiceParameter:
    """Exact code lengths and the parameter search."""

    def test_rice_bits_formula(self):
        folded = np.array([0, 3, 8], dtype=np.int64)
        # (0>>1)+2 + (3>>1)+2 + (8>>1)+2
        assert rice_bits(folded, 1) == 2 + 3 + 6

    def test_all_zero_prefers_parameter_zero(self):
        k, bits = best_rice_parameter(np.zeros(100, dtype=np.int64))
        assert k == 0
        assert bits == 100

    def test_search_matches_brute_force(self):
        rng = np.random.default_rng(7)
        folded = zigzag_fold(rng.integers(-500, 500, 300))
        k, bits = best_rice_parameter(folded)
        costs = [rice_bits(folded, p) for p in range(31)]
        assert bits == min(costs)
        assert k == costs.index(min(costs))

    def test_large_values_choose_large_parameter(self):
        folded = np.full(16, 1 << 20, dtype=np.int64)
        k, _ = best_rice_parameter(folded)
        assert k >= 19


class TestPartitioning:
    """Partition orders and escape partitions."""

    def test_signed_width(self):
        assert signed_width(np.array([0, 0])) == 0
        assert signed_width(np.array([0, -1])) == 1
        assert signed_width(np.array([1])) == 2
        assert signed_width(np.array([-128, 127])) == 8
        assert signed_width(np.array([128])) == 9

    def test_max_partition_order_respects_divisibility(self):
        assert max_partition_order(4096, 2, 15) == 10
        assert max_partition_order(4096, 0, 6) == 6
        assert max_partition_order(4095, 0, 6) == 0
        assert max_partition_order(12, 2, 6) == 2

    def test_all_zero_residual(self):
        """A zero residual costs one bit per sample with a single partition."""
        plan = plan_residual(np.zeros(4096, dtype=np.int64), 4096, 0)
        assert plan.partition_order == 0
        assert plan.parameters == (0,)
        assert plan.escape_widths == (None,)
        assert plan.method == constants.RICE_METHOD
        assert plan.bit_cost == RESIDUAL_HEADER_BITS + constants.RICE_PARAMETER_BITS + 4096

    def test_length_mismatch_rejected(self):
        with pytest.raises(ValueError, match="does not match"):
            plan_residual(np.zeros(10, dtype=np.int64), 12, 1)

    def test_oversized_residual_not_coded(self):
        residual = np.array([0, 1 << 31, 0, 0], dtype=np.int64)
        assert plan_residual(residual, 4, 0) is None

    def test_changing_statistics_use_partitions(self):
        quiet = np.random.default_rng(1).integers(-2, 3, 2048)
        loud = np.random.default_rng(2).integers(-20000, 20000, 2048)
        plan = plan_residual(np.concatenate([quiet, loud]), 4096, 0)
        assert plan.partition_order >= 1
        assert plan.parameters[0] < plan.parameters[-1]

    def test_large_parameters_select_rice2(self):
        residual = np.random.default_rng(3).laplace(0, 1 << 20, 256).round().astype(np.int64)
        plan = plan_residual(residual, 256, 0, max_order=0)
        assert plan.method == constants.RICE2_METHOD
        assert plan.parameters[0] > 14

    def test_plan_cost_matches_serialized_size(self):
        rng = np.random.default_rng(4)
        residual = rng.laplace(0, 40, 4092).round().astype(np.int64)
        plan = plan_residual(residual, 4096, 4)
        writer = BitWriter()
        write_residual(writer, residual, plan, 4)
        assert writer.bits_written == plan.bit_cost

    def test_uniform_residual_uses_one_partition(self):
        plan = plan_residual(np.zeros(64, dtype=np.int64), 64, 0, max_order=4)
        assert plan.partition_order == 0


class TestWriteResidual:
    """Serialized residuals decode back to the input."""

    @pytest.mark.parametrize("order", [0, 1, 4, 8])
    def test_round_trip(self, order):
        rng = np.random.default_rng(order)
        residual = rng.laplace(0, 100, 1024 - order).round().astype(np.int64)
        plan = plan_residual(residual, 1024, order)
        writer = BitWriter()
        write_residual(writer, residual, plan, order)
        decoded, sub = decode(writer.get_bytes(), 1024, order)
        assert decoded == residual.tolist()
        assert sub.partition_order == plan.partition_order

    def test_escape_partition_round_trip(self):
        # A spike that needs 31 bits in the first partition
        residual = np.zeros(64, dtype=np.int64)
        residual[:32] = np.random.default_rng(5).integers(-(1 << 14), 1 << 14, 32)
        residual[3] = -(1 << 30)
        plan = plan_residual(residual, 64, 0, max_order=1)
        writer = BitWriter()
        write_residual(writer, residual, plan, 0)
        assert writer.bits_written == plan.bit_cost
        decoded, _ = decode(writer.get_bytes(), 64, 0)
        assert decoded == residual.tolist()

    def test_escape_chosen_for_flat_wide_partition(self):
        residual = np.array([-(1 << 20), (1 << 20) - 1] * 8, dtype=np.int64)
        plan = plan_residual(residual, 16, 0, max_order=0)
        assert plan.escape_widths == (21,)
        writer = BitWriter()
        write_residual(writer, residual, plan, 0)
        decoded, sub = decode(writer.get_bytes(), 16, 0)
        assert decoded == residual.tolist()
        assert sub.rice_parameters == [15]
