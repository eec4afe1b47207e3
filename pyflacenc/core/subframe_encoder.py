"""
Chooses the encoding of every channel of a block.

Each channel is tried as constant, verbatim, fixed (orders 0-4) and LPC
subframe, and the candidate with the smallest exact size is kept. Stereo
blocks are additionally tried in left/side, right/side and mid/side form.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from pyflacenc.common import constants
from pyflacenc.common.config import EncoderConfig, default_qlp_precision
from pyflacenc.common.debug_logger import log_debug
from pyflacenc.common.errors import EncodingInvariantError
from pyflacenc.common.utils import count_wasted_bits
from pyflacenc.core.predictor import best_fixed_order, compute_lpc_candidates, fixed_residual
from pyflacenc.core.residual_coder import plan_residual
from pyflacenc.core.subframe import (
    ConstantSubframe,
    FixedSubframe,
    LpcSubframe,
    Subframe,
    VerbatimSubframe,
    subframe_kind,
)


@dataclass(frozen=True, eq=False)
class EncodedBlock:
    """Subframes of one block, in the order the channel assignment defines."""

    frame_index: int
    block_size: int
    channel_assignment: int
    subframes: Tuple[Subframe, ...]

    @property
    def bit_cost(self) -> int:
        return sum(subframe.bit_cost for subframe in self.subframes)


class SubframeEncoder:
    """
    Stateless per-block encoder; one instance may serve several threads.
    """

    def __init__(self, config: EncoderConfig, bit_depth: int):
        self.config = config
        self.bit_depth = bit_depth
        self.qlp_precision = config.qlp_precision or default_qlp_precision(
            config.block_size, bit_depth
        )

    def _fixed_candidates(self, samples: np.ndarray, bits_per_sample: int,
                          wasted_bits: int) -> List[Subframe]:
        n = len(samples)
        if self.config.exhaustive_search:
            orders = range(min(constants.MAX_FIXED_ORDER, n - 1) + 1)
            residuals = [(order, fixed_residual(samples, order)) for order in orders]
        else:
            residuals = [best_fixed_order(samples)]

        candidates: List[Subframe] = []
        for order, residual in residuals:
            plan = plan_residual(residual, n, order, self.config.max_partition_order)
            if plan is None:
                continue
            candidates.append(
                FixedSubframe(
                    order=order,
                    warmup=samples[:order].copy(),
                    residual=residual,
                    plan=plan,
                    bits_per_sample=bits_per_sample,
                    wasted_bits=wasted_bits,
                )
            )
        return candidates

    def _lpc_candidates(self, samples: np.ndarray, bits_per_sample: int,
                        wasted_bits: int) -> List[Subframe]:
        n = len(samples)
        if self.config.max_lpc_order == 0 or n < 2:
            return []

        candidates: List[Subframe] = []
        for lpc in compute_lpc_candidates(
            samples,
            self.config.max_lpc_order,
            self.qlp_precision,
            exhaustive=self.config.exhaustive_search,
            bits_per_sample=bits_per_sample,
        ):
            plan = plan_residual(lpc.residual, n, lpc.order, self.config.max_partition_order)
            if plan is None:
                continue
            candidates.append(
                LpcSubframe(
                    order=lpc.order,
                    precision=lpc.precision,
                    shift=lpc.shift,
                    coefficients=lpc.coefficients,
                    warmup=samples[: lpc.order].copy(),
                    residual=lpc.residual,
                    plan=plan,
                    bits_per_sample=bits_per_sample,
                    wasted_bits=wasted_bits,
                )
            )
        return candidates

    def encode_channel(self, samples: np.ndarray, bits_per_sample: int,
                       channel: int = 0, frame: int = 0) -> Subframe:
        """
        Returns the smallest subframe for one channel of a block.

        Args:
            samples: Channel samples; not modified.
            bits_per_sample: Sample width, including the extra bit of a side channel.
            channel: Channel index, for logging only.
            frame: Frame index, for logging only.
        """
        samples = np.asarray(samples, dtype=np.int64)
        if len(samples) == 0:
            raise EncodingInvariantError("Cannot encode an empty channel block", stage="subframe")

        if np.all(samples == samples[0]):
            subframe = ConstantSubframe(int(samples[0]), bits_per_sample)
            log_debug("SUBFRAME_CHOICE", "bits", subframe.bit_cost,
                      channel=channel, frame=frame, chosen="constant", value=subframe.value)
            return subframe

        wasted_bits = count_wasted_bits(samples)
        if wasted_bits:
            samples = samples >> wasted_bits
            bits_per_sample -= wasted_bits

        # Candidate order doubles as the tie-break order
        candidates: List[Subframe] = [VerbatimSubframe(samples, bits_per_sample, wasted_bits)]
        candidates += self._fixed_candidates(samples, bits_per_sample, wasted_bits)
        candidates += self._lpc_candidates(samples, bits_per_sample, wasted_bits)

        best: Optional[Subframe] = None
        for candidate in candidates:
            if best is None or candidate.bit_cost < best.bit_cost:
                best = candidate

        log_debug("SUBFRAME_CHOICE", "bits", [c.bit_cost for c in candidates],
                  channel=channel, frame=frame, chosen=subframe_kind(best),
                  order=getattr(best, "order", 0), wasted_bits=wasted_bits,
                  cost=best.bit_cost)
        return best

    def encode_block(self, channels: Sequence[np.ndarray], frame_index: int = 0) -> EncodedBlock:
        """
        Encodes all channels of a block, choosing the stereo decorrelation
        mode with the smallest total size when it applies.
        """
        if not channels:
            raise EncodingInvariantError("Block has no channels", stage="subframe")
        block_size = len(channels[0])
        if any(len(channel) != block_size for channel in channels):
            raise EncodingInvariantError(
                "Channels of a block differ in length", stage="subframe"
            )

        bps = self.bit_depth
        independent = tuple(
            self.encode_channel(samples, bps, channel=i, frame=frame_index)
            for i, samples in enumerate(channels)
        )
        best = EncodedBlock(frame_index, block_size, len(channels) - 1, independent)

        # A 32-bit side channel would need 33 bits
        if len(channels) != 2 or not self.config.mid_side or bps >= constants.MAX_BIT_DEPTH:
            return best

        left = np.asarray(channels[0], dtype=np.int64)
        right = np.asarray(channels[1], dtype=np.int64)
        side = self.encode_channel(left - right, bps + 1, channel=1, frame=frame_index)
        mid = self.encode_channel((left + right) >> 1, bps, channel=0, frame=frame_index)
        left_sub, right_sub = independent

        for assignment, subframes in (
            (constants.CHANNEL_ASSIGNMENT_LEFT_SIDE, (left_sub, side)),
            (constants.CHANNEL_ASSIGNMENT_RIGHT_SIDE, (side, right_sub)),
            (constants.CHANNEL_ASSIGNMENT_MID_SIDE, (mid, side)),
        ):
            candidate = EncodedBlock(frame_index, block_size, assignment, subframes)
            if candidate.bit_cost < best.bit_cost:
                best = candidate

        log_debug("STEREO_CHOICE", "bits", best.bit_cost, frame=frame_index,
                  channel_assignment=best.channel_assignment)
        return best
