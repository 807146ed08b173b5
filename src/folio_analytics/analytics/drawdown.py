"""
Peak-to-trough drawdown analysis over a portfolio value series.

Drawdown at point i is ``(running_peak − value_i) / running_peak``. The
calculator reports the deepest episode, the drawdown at the last point, how
many points sat below their running peak and how long the deepest episode
took to recover. ``calculate_history`` lists every episode deeper than a
threshold.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from folio_analytics.common.decimal_utils import (
    ONE,
    RATIO_QUANTUM,
    ZERO,
    decimal_context,
    is_decimal,
    quantize,
    to_percent,
)
from folio_analytics.common.enums import ErrorReason
from folio_analytics.common.errors import AnalyticsValidationError
from folio_analytics.common.types import DrawdownPeriod, DrawdownResult
from folio_analytics.settings import DEFAULT_SETTINGS, AnalyticsSettings

logger = logging.getLogger(__name__)


class DrawdownCalculator:
    def __init__(self, settings: AnalyticsSettings | None = None) -> None:
        self.settings = settings or DEFAULT_SETTINGS

    def calculate(self, values: Iterable[Any]) -> DrawdownResult:
        series = _validate_values(values)
        logger.debug("Calculating drawdown for %d values", len(series))

        with decimal_context(self.settings.decimal_precision):
            peak, peak_index = series[0], 0
            max_drawdown = ZERO
            max_peak_index = max_trough_index = 0
            max_peak_value = max_trough_value = series[0]
            underwater = 0

            for i, value in enumerate(series):
                if value > peak:
                    peak, peak_index = value, i
                elif value < peak:
                    underwater += 1
                    drawdown = (peak - value) / peak
                    if drawdown > max_drawdown:
                        max_drawdown = drawdown
                        max_peak_index, max_trough_index = peak_index, i
                        max_peak_value, max_trough_value = peak, value

            current = (peak - series[-1]) / peak

            recovery: int | None
            if max_drawdown == ZERO:
                max_peak_index = max_trough_index = peak_index
                max_peak_value = max_trough_value = peak
                recovery = 0
            else:
                recovery = next(
                    (
                        j - max_trough_index
                        for j in range(max_trough_index + 1, len(series))
                        if series[j] >= max_peak_value
                    ),
                    None,
                )

            result = DrawdownResult(
                max_drawdown=quantize(max_drawdown, RATIO_QUANTUM),
                max_drawdown_percentage=to_percent(max_drawdown),
                peak_index=max_peak_index,
                trough_index=max_trough_index,
                peak_value=max_peak_value,
                trough_value=max_trough_value,
                current_drawdown=quantize(current, RATIO_QUANTUM),
                recovery_periods=recovery,
                underwater_periods=underwater,
            )

        logger.debug(
            "Max drawdown %s%% (peak %d, trough %d)",
            result.max_drawdown_percentage,
            max_peak_index,
            max_trough_index,
        )
        return result

    def calculate_history(self, values: Iterable[Any], threshold: Any) -> list[DrawdownPeriod]:
        """Every drawdown episode whose depth exceeds ``threshold`` (a ratio in (0, 1))."""
        series = _validate_values(values)
        if not is_decimal(threshold) or not ZERO < Decimal(threshold) < ONE:
            raise AnalyticsValidationError(ErrorReason.INVALID_THRESHOLD, f"threshold {threshold!r} must lie in (0, 1)")
        limit = Decimal(threshold)
        logger.debug("Calculating drawdown history for %d values with %s threshold", len(series), limit)

        periods: list[DrawdownPeriod] = []
        with decimal_context(self.settings.decimal_precision):
            peak, peak_index = series[0], 0
            trough, trough_index = series[0], 0
            underwater = False

            def close(recovery_index: int | None) -> None:
                depth = (peak - trough) / peak
                if depth > limit:
                    periods.append(
                        DrawdownPeriod(
                            peak_index=peak_index,
                            trough_index=trough_index,
                            recovery_index=recovery_index,
                            peak_value=peak,
                            trough_value=trough,
                            drawdown_percentage=to_percent(depth),
                            duration_periods=trough_index - peak_index,
                            recovery_periods=None if recovery_index is None else recovery_index - trough_index,
                        )
                    )

            for i, value in enumerate(series):
                if value >= peak:
                    if underwater:
                        close(i)
                        underwater = False
                    peak, peak_index = value, i
                elif not underwater or value < trough:
                    underwater = True
                    trough, trough_index = value, i

            if underwater:
                close(None)

        logger.debug("Found %d drawdown periods above threshold", len(periods))
        return periods


def _validate_values(values: Iterable[Any]) -> list[Decimal]:
    if isinstance(values, (str, bytes, Mapping)) or not isinstance(values, Iterable):
        raise AnalyticsValidationError(ErrorReason.INVALID_VALUE_FORMAT, "values must be a sequence of decimals")
    items = list(values)
    if len(items) < 2:
        raise AnalyticsValidationError(ErrorReason.INSUFFICIENT_DATA, "at least two values are required")
    if not all(is_decimal(v) for v in items):
        raise AnalyticsValidationError(ErrorReason.INVALID_VALUE_FORMAT, "all values must be decimals")
    series = [Decimal(v) for v in items]
    if any(v <= ZERO for v in series):
        raise AnalyticsValidationError(ErrorReason.NON_POSITIVE_VALUES, "values must be strictly positive")
    return series
