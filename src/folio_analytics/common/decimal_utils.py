"""
Decimal helpers shared by the calculators.

All monetary quantities, rates, weights and volatilities are carried as
``decimal.Decimal``. Binary floats are rejected at the public boundary; the
pandas adapters in :mod:`folio_analytics.common.frames` are the only place
where floats are converted (through their string representation).
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any

from folio_analytics.common.enums import ErrorReason
from folio_analytics.common.errors import AnalyticsCalculationError, AnalyticsValidationError

ZERO = Decimal(0)
ONE = Decimal(1)
TWO = Decimal(2)
HUNDRED = Decimal(100)

PERCENT_QUANTUM = Decimal("0.01")
RATIO_QUANTUM = Decimal("0.000001")
WEIGHT_QUANTUM = Decimal("1e-12")


@contextmanager
def decimal_context(precision: int) -> Iterator[None]:
    """Run a block with a local decimal context of the given precision."""
    with localcontext() as ctx:
        ctx.prec = precision
        yield


def is_decimal(value: Any) -> bool:
    """True for finite ``Decimal`` values and plain integers (never bool/float)."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, Decimal) and value.is_finite()


def require_decimal(value: Any, reason: ErrorReason, message: str | None = None) -> Decimal:
    """Return ``value`` as a Decimal or raise a validation error with ``reason``."""
    if not is_decimal(value):
        raise AnalyticsValidationError(reason, message or f"expected a decimal value, got {value!r}")
    return Decimal(value)


def quantize(value: Decimal, quantum: Decimal) -> Decimal:
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def to_percent(ratio: Decimal) -> Decimal:
    """Convert a ratio to a percentage rounded to two decimal places."""
    return quantize(ratio * HUNDRED, PERCENT_QUANTUM)


def mean(values: Sequence[Decimal]) -> Decimal:
    """Arithmetic mean."""
    if not values:
        return ZERO
    return sum(values, ZERO) / len(values)


def sample_std_dev(values: Sequence[Decimal]) -> Decimal:
    """Sample standard deviation (Bessel-corrected)."""
    if len(values) < 2:
        return ZERO
    m = mean(values)
    variance = sum(((v - m) ** 2 for v in values), ZERO) / (len(values) - 1)
    return max(variance, ZERO).sqrt()


def safe_sqrt(value: Decimal) -> Decimal:
    """Square root that clamps tiny negative rounding residue to zero."""
    return max(value, ZERO).sqrt()


def finalize_weights(weights: Sequence[Decimal]) -> list[Decimal]:
    """
    Clamp, quantize and rebalance weights so they sum to exactly one.

    Negative residue from the solvers is clamped to zero, every weight is
    quantized to ``WEIGHT_QUANTUM`` and the largest weight absorbs whatever
    remains, so ``sum(result) == Decimal(1)`` holds exactly.
    """
    clamped = [max(w, ZERO) for w in weights]
    total = sum(clamped, ZERO)
    if total <= ZERO:
        raise AnalyticsCalculationError(ErrorReason.DEGENERATE_CASE, "weights sum to zero")
    scaled = [quantize(w / total, WEIGHT_QUANTUM) for w in clamped]
    largest = max(range(len(scaled)), key=lambda i: scaled[i])
    scaled[largest] = ONE - (sum(scaled, ZERO) - scaled[largest])
    return scaled


def finalize_target_weights(
    weights: Sequence[Decimal],
    returns: Sequence[Decimal],
    target: Decimal,
) -> list[Decimal]:
    """
    ``finalize_weights`` for a return-constrained portfolio.

    Instead of handing the whole rounding residual to the largest weight, the
    two largest weights with different expected returns are re-solved against
    both constraints (``1ᵀw = 1`` and ``μᵀw = target``) given the already
    quantized remainder. The sum stays exactly one and the return misses the
    target by at most one ``WEIGHT_QUANTUM`` step times the return spread.
    """
    scaled = finalize_weights(weights)
    order = sorted(range(len(scaled)), key=lambda i: scaled[i], reverse=True)
    first = order[0]
    second = next((i for i in order[1:] if returns[i] != returns[first]), None)
    if second is None:
        return scaled

    rest = [i for i in range(len(scaled)) if i not in (first, second)]
    budget = ONE - sum((scaled[i] for i in rest), ZERO)
    carried = target - sum((returns[i] * scaled[i] for i in rest), ZERO)
    weight_first = quantize(
        (carried - returns[second] * budget) / (returns[first] - returns[second]),
        WEIGHT_QUANTUM,
    )
    weight_second = budget - weight_first
    if weight_first < ZERO or weight_second < ZERO:
        return scaled
    scaled[first], scaled[second] = weight_first, weight_second
    return scaled
