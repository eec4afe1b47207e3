"""
Linear prediction for FLAC subframes.

Two predictor families are provided:
- fixed polynomial predictors of order 0-4, whose residual is the k-th
  forward difference of the block;
- adaptive (LPC) predictors: the block is windowed, its autocorrelation is
  fed to the Levinson-Durbin recursion, and the resulting real coefficients
  are quantized to integers with a per-block shift.

Nothing here mutates the input block.
"""

import math
from typing import List, NamedTuple, Optional, Tuple

import numpy as np

from pyflacenc.common import constants
from pyflacenc.common.errors import EncodingInvariantError


class LpcCandidate(NamedTuple):
    """One quantized LPC predictor and the residual it leaves."""

    order: int
    coefficients: Tuple[int, ...]
    shift: int
    precision: int
    residual: np.ndarray


def _check_block(samples: np.ndarray):
    if len(samples) == 0:
        raise EncodingInvariantError("Cannot predict an empty block", stage="predictor")


def fixed_residual(samples: np.ndarray, order: int) -> np.ndarray:
    """
    Residual of the fixed predictor of 'order': the order-th forward
    difference of the block, of length len(samples) - order.
    """
    _check_block(samples)
    if not 0 <= order <= constants.MAX_FIXED_ORDER:
        raise ValueError(f"Fixed predictor order must be 0-{constants.MAX_FIXED_ORDER}, got {order}")
    if order > len(samples) - 1 and order > 0:
        raise ValueError(f"Order {order} needs more than {len(samples)} samples")
    x = np.asarray(samples, dtype=np.int64)
    if order == 0:
        return x.copy()
    return np.diff(x, n=order)


def best_fixed_order(
    samples: np.ndarray, max_order: int = constants.MAX_FIXED_ORDER
) -> Tuple[int, np.ndarray]:
    """
    Picks the fixed predictor order minimizing the sum of absolute residuals.

    Orders above len(samples) - 1 are not considered; on equal sums the
    lower order wins.

    Returns:
        (order, residual)
    """
    _check_block(samples)
    highest = min(max_order, constants.MAX_FIXED_ORDER, len(samples) - 1)
    best_order, best_residual, best_sum = 0, None, None
    for order in range(highest + 1):
        residual = fixed_residual(samples, order)
        total = int(np.abs(residual).sum())
        if best_sum is None or total < best_sum:
            best_order, best_residual, best_sum = order, residual, total
    return best_order, best_residual


def tukey_window(length: int, p: float = constants.TUKEY_WINDOW_P) -> np.ndarray:
    """
    Tapered cosine window: flat in the middle, cosine tapers over p/2 of
    the block at each end. p = 0 gives a rectangle, p = 1 a Hann window.
    """
    window = np.ones(length, dtype=np.float64)
    if length <= 1 or p <= 0.0:
        return window
    taper = int(min(p, 1.0) / 2.0 * length) - 1
    if taper > 0:
        n = np.arange(taper + 1, dtype=np.float64)
        window[: taper + 1] = 0.5 - 0.5 * np.cos(np.pi * n / taper)
        window[length - taper - 1 :] = 0.5 - 0.5 * np.cos(np.pi * (n + taper) / taper)
    return window


def autocorrelation(
    samples: np.ndarray, max_lag: int, window: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    Autocorrelation of the (optionally windowed) block for lags 0..max_lag.
    Lags at or beyond the block length are zero.
    """
    _check_block(samples)
    x = np.asarray(samples, dtype=np.float64)
    if window is not None:
        x = x * window
    autoc = np.zeros(max_lag + 1, dtype=np.float64)
    for lag in range(min(max_lag, len(x) - 1) + 1):
        autoc[lag] = np.dot(x[: len(x) - lag], x[lag:])
    return autoc


def levinson_durbin(autoc: np.ndarray, max_order: int) -> Tuple[List[np.ndarray], List[float]]:
    """
    Levinson-Durbin recursion on an autocorrelation sequence.

    Args:
        autoc: Autocorrelation for lags 0..max_order.
        max_order: Highest predictor order to compute.

    Returns:
        (coefficients, errors): coefficients[i] holds the i+1 prediction
        coefficients a_1..a_{i+1} with x[n] ~ sum_j a_j * x[n - j], and
        errors[i] the remaining prediction error. The lists stop early when
        the error vanishes, and are empty for a silent block.
    """
    coefficients: List[np.ndarray] = []
    errors: List[float] = []
    error = float(autoc[0])
    if error <= 0.0:
        return coefficients, errors

    a = np.zeros(0, dtype=np.float64)
    for i in range(max_order):
        acc = autoc[i + 1] - np.dot(a, autoc[i:0:-1])
        reflection = acc / error
        a = np.concatenate((a - reflection * a[::-1], [reflection]))
        error *= 1.0 - reflection * reflection
        coefficients.append(a.copy())
        errors.append(error)
        if error <= 0.0 or not np.isfinite(error):
            break
    return coefficients, errors


def _lround(value: float) -> int:
    # C lround: halves round away from zero
    if value >= 0:
        return int(math.floor(value + 0.5))
    return -int(math.floor(-value + 0.5))


def quantize_coefficients(
    lp_coefficients: np.ndarray, precision: int
) -> Optional[Tuple[Tuple[int, ...], int]]:
    """
    Quantizes real predictor coefficients to 'precision'-bit signed integers.

    The shift is chosen so the largest coefficient uses the full precision,
    capped at the 15 a frame can signal; a coefficient set too large for any
    non-negative shift is scaled down instead. Rounding error is carried into
    the next coefficient.

    Returns:
        (coefficients, shift), or None when every coefficient is zero.
    """
    if not constants.MIN_QLP_PRECISION <= precision <= constants.MAX_QLP_PRECISION:
        raise ValueError(f"QLP precision must be {constants.MIN_QLP_PRECISION}-{constants.MAX_QLP_PRECISION}, got {precision}")
    magnitude_bits = precision - 1
    qmax = (1 << magnitude_bits) - 1
    qmin = -(1 << magnitude_bits)

    cmax = float(np.max(np.abs(lp_coefficients))) if len(lp_coefficients) else 0.0
    if cmax <= 0.0 or not np.isfinite(cmax):
        return None

    _, log2cmax = math.frexp(cmax)
    shift = magnitude_bits - (log2cmax - 1) - 1
    if shift > constants.MAX_QLP_SHIFT:
        shift = constants.MAX_QLP_SHIFT

    if shift >= 0:
        scale = float(1 << shift)
        shift_out = shift
    else:
        scale = 1.0 / float(1 << -shift)
        shift_out = 0

    quantized: List[int] = []
    error = 0.0
    for coefficient in lp_coefficients:
        error += float(coefficient) * scale
        q = min(max(_lround(error), qmin), qmax)
        error -= q
        quantized.append(q)

    if not any(quantized):
        return None
    return tuple(quantized), shift_out


def lpc_residual(samples: np.ndarray, coefficients: Tuple[int, ...], shift: int) -> np.ndarray:
    """
    Residual of the integer predictor:
    r[i] = x[i] - ((sum_j q[j] * x[i - j - 1]) >> shift) for i >= order.
    """
    _check_block(samples)
    x = np.asarray(samples, dtype=np.int64)
    order = len(coefficients)
    n = len(x)
    if order > n - 1:
        raise ValueError(f"Order {order} needs more than {n} samples")
    prediction = np.zeros(n - order, dtype=np.int64)
    for j, q in enumerate(coefficients):
        prediction += q * x[order - 1 - j : n - 1 - j]
    return x[order:] - (prediction >> shift)


def expected_bits_per_residual(error: float, block_size: int) -> float:
    """Bits per residual sample a Laplacian residual of this prediction error would need."""
    if error <= 0.0:
        return 0.0
    bits = 0.5 * math.log2(0.5 / block_size * error)
    return max(bits, 0.0)


def estimate_lpc_order(errors: List[float], block_size: int, overhead_bits_per_order: int) -> int:
    """
    Predicts the best LPC order from the Levinson-Durbin errors alone,
    trading residual bits against warm-up and coefficient bits.
    Ties keep the lower order.
    """
    best_order, best_bits = 1, None
    for index, error in enumerate(errors):
        order = index + 1
        bits = (
            expected_bits_per_residual(error, block_size) * (block_size - order)
            + order * overhead_bits_per_order
        )
        if best_bits is None or bits < best_bits:
            best_order, best_bits = order, bits
    return best_order


def compute_lpc_candidates(
    samples: np.ndarray, max_order: int, precision: int,
    exhaustive: bool = True, bits_per_sample: int = 16,
) -> List[LpcCandidate]:
    """
    Runs the adaptive predictor pipeline on one block.

    Args:
        samples: Integer samples of the block.
        max_order: Highest order to compute; capped at len(samples) - 1.
        precision: Coefficient precision in bits.
        exhaustive: Return a candidate for every usable order. Otherwise only
                    the order estimate_lpc_order() picks is quantized.
        bits_per_sample: Warm-up sample width, used by the order estimate.

    Returns:
        One LpcCandidate per usable order, lowest order first.
    """
    _check_block(samples)
    max_order = min(max_order, len(samples) - 1)
    if max_order < 1:
        return []

    window = tukey_window(len(samples))
    autoc = autocorrelation(samples, max_order, window)
    coefficient_sets, errors = levinson_durbin(autoc, max_order)
    if not coefficient_sets:
        return []

    if not exhaustive:
        order = estimate_lpc_order(errors, len(samples), precision + bits_per_sample)
        coefficient_sets = [coefficient_sets[order - 1]]

    candidates: List[LpcCandidate] = []
    for lp in coefficient_sets:
        quantized = quantize_coefficients(lp, precision)
        if quantized is None:
            continue
        qlp, shift = quantized
        candidates.append(
            LpcCandidate(
                order=len(qlp),
                coefficients=qlp,
                shift=shift,
                precision=precision,
                residual=lpc_residual(samples, qlp, shift),
            )
        )
    return candidates
