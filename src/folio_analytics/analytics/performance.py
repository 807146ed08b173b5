"""
Portfolio return measurement.

Time-weighted return (TWR)
    Splits the history into sub-periods at every external cash flow, computes
    each sub-period's return and chain-links them: ``Π(1 + r_i) − 1``.
    Flows that land inside a sub-period (no valuation observed before them)
    are handled with the Modified Dietz day-weighting.

Money-weighted return (MWR)
    The internal rate of return of the dated cash flows: the rate ``r`` with
    ``Σ CF_i · (1 + r)^(−t_i) = 0`` where ``t_i`` is in years (days / 365).
    Newton-Raphson first, bisection when Newton does not converge.

Rolling returns
    Compounded, annualized returns over every contiguous window of a periodic
    return series, plus best/worst/average/volatility summaries.

Sign convention: negative amounts are money into the portfolio (buys,
contributions), positive amounts are money out (sells, withdrawals).
Valuation events carry the portfolio value as a positive amount.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from folio_analytics.common.decimal_utils import (
    HUNDRED,
    ONE,
    PERCENT_QUANTUM,
    TWO,
    ZERO,
    decimal_context,
    is_decimal,
    mean,
    quantize,
    sample_std_dev,
    to_percent,
)
from folio_analytics.common.enums import ErrorReason, FlowType
from folio_analytics.common.errors import AnalyticsCalculationError, AnalyticsValidationError
from folio_analytics.common.types import (
    CashFlowEvent,
    Period,
    ReturnObservation,
    RollingReturn,
    RollingReturnAnalysis,
)
from folio_analytics.settings import DEFAULT_SETTINGS, AnalyticsSettings

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = Decimal(365)
BISECTION_LOWER_BOUND = Decimal("-0.9999")
BISECTION_UPPER_LIMIT = Decimal(10_000)
DERIVATIVE_EPSILON = Decimal("1e-18")


class PerformanceCalculator:
    def __init__(self, settings: AnalyticsSettings | None = None) -> None:
        self.settings = settings or DEFAULT_SETTINGS

    # ------------------------------------------------------------------
    # Time-weighted return
    # ------------------------------------------------------------------

    def calculate_time_weighted_return(self, transactions: Sequence[Any]) -> Decimal:
        """
        Chain-linked TWR in percent, rounded to two decimal places.

        Accepts either a list of dated events (flows and valuations) or a list
        of period records carrying ``start_value``/``end_value`` (and optional
        ``start_date``, ``end_date``, ``cash_flows``).
        """
        items = _require_list(transactions)
        if items and all(_is_period_record(item) for item in items):
            periods = [_coerce_period(item) for item in items]
        else:
            periods = self.break_into_periods(items)
        logger.debug("Calculating TWR over %d periods", len(periods))

        with decimal_context(self.settings.decimal_precision):
            growth = ONE
            for period in periods:
                growth *= ONE + period_return(period)
            result = to_percent(growth - ONE)

        logger.debug("TWR result: %s%%", result)
        return result

    def break_into_periods(self, transactions: Sequence[Any]) -> list[Period]:
        """Split dated events into sub-periods bounded by external cash flows."""
        items = _require_list(transactions)
        if len(items) < 2:
            raise AnalyticsValidationError(ErrorReason.INSUFFICIENT_DATA, "at least two events are required")
        events = sorted(
            (_coerce_event(item, ErrorReason.INVALID_INPUT, require_type=True) for item in items),
            key=lambda e: e.date,
        )

        with decimal_context(self.settings.decimal_precision):
            return _segment(events)

    # ------------------------------------------------------------------
    # Money-weighted return
    # ------------------------------------------------------------------

    def calculate_money_weighted_return(self, cash_flows: Sequence[Any]) -> Decimal:
        """IRR of the cash flows, annualized, in percent rounded to two decimals."""
        items = _require_list(cash_flows)
        flows = sorted(
            (_coerce_event(item, ErrorReason.INVALID_CASH_FLOW_STRUCTURE) for item in items),
            key=lambda e: e.date,
        )
        if len(flows) < 2:
            raise AnalyticsValidationError(ErrorReason.INSUFFICIENT_DATA, "at least two cash flows are required")
        if all(flow.amount <= ZERO for flow in flows):
            raise AnalyticsCalculationError(ErrorReason.NEGATIVE_IRR, "no positive cash flow; return is -100% or worse")
        if flows[0].date == flows[-1].date:
            raise AnalyticsCalculationError(
                ErrorReason.DEGENERATE_CASE,
                "all cash flows share one date; the rate of return is undefined",
            )
        logger.debug("Calculating MWR for %d cash flows", len(flows))

        origin = flows[0].date
        with decimal_context(self.settings.irr_working_precision):
            schedule = [(Decimal((f.date - origin).days) / DAYS_PER_YEAR, f.amount) for f in flows]
            rate = self._newton_raphson(schedule)
            if rate is None:
                logger.debug("Newton-Raphson did not converge; falling back to bisection")
                rate = self._bisection(schedule)

        if rate <= -ONE:
            raise AnalyticsCalculationError(ErrorReason.NEGATIVE_IRR, f"IRR {rate} is at or below -100%")
        with decimal_context(self.settings.decimal_precision):
            result = to_percent(rate)
        logger.debug("MWR result: %s%%", result)
        return result

    def _newton_raphson(self, schedule: list[tuple[Decimal, Decimal]]) -> Decimal | None:
        rate = self.settings.irr_initial_guess
        tolerance = self.settings.irr_tolerance
        for _ in range(self.settings.irr_max_iterations):
            if rate <= -ONE:
                return None
            value, slope = _npv_with_derivative(schedule, rate)
            if abs(slope) <= DERIVATIVE_EPSILON:
                return None
            candidate = rate - value / slope
            if not candidate.is_finite():
                return None
            if abs(candidate - rate) <= tolerance:
                return candidate if candidate > -ONE else None
            rate = candidate
        return None

    def _bisection(self, schedule: list[tuple[Decimal, Decimal]]) -> Decimal:
        low, high = BISECTION_LOWER_BOUND, ONE
        npv_low = _npv(schedule, low)
        npv_high = _npv(schedule, high)
        while (npv_low > ZERO) == (npv_high > ZERO) and high < BISECTION_UPPER_LIMIT:
            high *= TWO
            npv_high = _npv(schedule, high)
        if npv_low == ZERO and npv_high == ZERO:
            raise AnalyticsCalculationError(ErrorReason.IRR_NOT_BRACKETED, "net present value is zero across the bracket")
        if npv_low == ZERO:
            return low
        if npv_high == ZERO:
            return high
        if (npv_low > ZERO) == (npv_high > ZERO):
            raise AnalyticsCalculationError(ErrorReason.IRR_NOT_BRACKETED, "net present value never changes sign")

        tolerance = self.settings.irr_tolerance
        for _ in range(self.settings.bisection_max_iterations):
            mid = (low + high) / TWO
            npv_mid = _npv(schedule, mid)
            if npv_mid == ZERO or (high - low) / TWO <= tolerance:
                return mid
            if (npv_mid > ZERO) == (npv_low > ZERO):
                low, npv_low = mid, npv_mid
            else:
                high = mid
        return (low + high) / TWO

    # ------------------------------------------------------------------
    # Rolling returns
    # ------------------------------------------------------------------

    def iter_rolling_returns(
        self,
        returns: Iterable[Any],
        window_size: int,
        *,
        periods_per_year: int | None = None,
    ) -> Iterator[RollingReturn]:
        """Lazily yield one annualized return per contiguous window.

        Inputs are validated eagerly; only the window computation is deferred.
        """
        observations = _coerce_returns(returns)
        if isinstance(window_size, bool) or not isinstance(window_size, int) or window_size < 1:
            raise AnalyticsValidationError(ErrorReason.INVALID_INPUT, f"invalid window size {window_size!r}")
        if len(observations) < window_size:
            raise AnalyticsValidationError(
                ErrorReason.INSUFFICIENT_PERIODS,
                f"{len(observations)} observations cannot fill a window of {window_size}",
            )
        per_year = self.settings.periods_per_year if periods_per_year is None else periods_per_year
        if isinstance(per_year, bool) or not isinstance(per_year, int) or per_year < 1:
            raise AnalyticsValidationError(ErrorReason.INVALID_INPUT, f"invalid periods per year {per_year!r}")
        return self._windows(observations, window_size, per_year)

    def calculate_rolling_returns(
        self,
        returns: Iterable[Any],
        window_size: int,
        *,
        periods_per_year: int | None = None,
    ) -> list[RollingReturn]:
        return list(self.iter_rolling_returns(returns, window_size, periods_per_year=periods_per_year))

    def analyze_rolling_returns(
        self,
        returns: Iterable[Any],
        window_size: int,
        *,
        periods_per_year: int | None = None,
    ) -> RollingReturnAnalysis:
        periods = self.calculate_rolling_returns(returns, window_size, periods_per_year=periods_per_year)
        with decimal_context(self.settings.decimal_precision):
            annualized = [p.annualized_return for p in periods]
            return RollingReturnAnalysis(
                best_period=max(periods, key=lambda p: p.annualized_return),
                worst_period=min(periods, key=lambda p: p.annualized_return),
                average_return=quantize(mean(annualized), PERCENT_QUANTUM),
                volatility=quantize(sample_std_dev(annualized), PERCENT_QUANTUM),
                periods=periods,
            )

    def _windows(
        self,
        observations: list[ReturnObservation],
        window_size: int,
        periods_per_year: int,
    ) -> Iterator[RollingReturn]:
        exponent_base = Decimal(periods_per_year) / Decimal(window_size)
        for start in range(len(observations) - window_size + 1):
            window = observations[start : start + window_size]
            with decimal_context(self.settings.decimal_precision):
                growth = ONE
                for obs in window:
                    growth *= ONE + obs.value / HUNDRED
                annualized = growth**exponent_base - ONE if growth > ZERO else -ONE
                item = RollingReturn(
                    period_start=window[0].date,
                    period_end=window[-1].date,
                    total_return=to_percent(growth - ONE),
                    annualized_return=to_percent(annualized),
                )
            yield item


# ---------------------------------------------------------------------------
# Period helpers
# ---------------------------------------------------------------------------


def period_return(period: Period) -> Decimal:
    """Simple return of one sub-period, Modified Dietz when it holds flows."""
    if period.start_value <= ZERO:
        raise AnalyticsValidationError(ErrorReason.ZERO_START_VALUE, "period starts with no capital")
    if not period.cash_flows:
        return period.end_value / period.start_value - ONE

    total_days = 0
    if period.start_date is not None and period.end_date is not None:
        total_days = (period.end_date - period.start_date).days

    net_contribution = ZERO
    weighted_contribution = ZERO
    for flow in period.cash_flows:
        contribution = -flow.amount
        net_contribution += contribution
        if total_days > 0 and period.start_date is not None:
            elapsed = min(max((flow.date - period.start_date).days, 0), total_days)
            weight = Decimal(total_days - elapsed) / Decimal(total_days)
        else:
            weight = ONE / TWO
        weighted_contribution += contribution * weight

    denominator = period.start_value + weighted_contribution
    if denominator <= ZERO:
        raise AnalyticsValidationError(ErrorReason.ZERO_START_VALUE, "average invested capital is not positive")
    return (period.end_value - period.start_value - net_contribution) / denominator


def _segment(events: list[CashFlowEvent]) -> list[Period]:
    periods: list[Period] = []
    start_date: date | None = None
    start_value: Decimal | None = None
    mark: CashFlowEvent | None = None
    inner: list[CashFlowEvent] = []

    for event in events:
        if event.type.is_valuation:
            if start_value is None:
                start_date, start_value = event.date, event.amount
            else:
                mark = event
            continue

        contribution = -event.amount
        if start_value is None:
            start_date, start_value = event.date, contribution
        elif mark is None:
            inner.append(event)
        else:
            periods.append(Period(start_date, event.date, start_value, mark.amount, tuple(inner)))
            start_date, start_value = event.date, mark.amount + contribution
            mark, inner = None, []

    if start_value is None:
        raise AnalyticsValidationError(ErrorReason.INSUFFICIENT_DATA, "no measurable period")
    if mark is not None:
        periods.append(Period(start_date, mark.date, start_value, mark.amount, tuple(inner)))
    elif inner and inner[-1].amount > ZERO:
        # a trailing withdrawal with no later valuation liquidates the portfolio
        last = inner[-1]
        periods.append(Period(start_date, last.date, start_value, last.amount, tuple(inner[:-1])))
    elif inner:
        logger.debug("Dropping trailing period with %d unvalued flows", len(inner))

    if not periods:
        raise AnalyticsValidationError(ErrorReason.INSUFFICIENT_DATA, "no valuation closes any period")
    return periods


# ---------------------------------------------------------------------------
# NPV helpers
# ---------------------------------------------------------------------------


def _npv(schedule: list[tuple[Decimal, Decimal]], rate: Decimal) -> Decimal:
    log_base = (ONE + rate).ln()
    return sum((amount * (-years * log_base).exp() for years, amount in schedule), ZERO)


def _npv_with_derivative(schedule: list[tuple[Decimal, Decimal]], rate: Decimal) -> tuple[Decimal, Decimal]:
    base = ONE + rate
    log_base = base.ln()
    value = ZERO
    slope = ZERO
    for years, amount in schedule:
        discounted = amount * (-years * log_base).exp()
        value += discounted
        slope -= years * discounted / base
    return value, slope


# ---------------------------------------------------------------------------
# Input coercion
# ---------------------------------------------------------------------------


def _require_list(items: Any) -> list[Any]:
    if isinstance(items, (str, bytes, Mapping)) or not isinstance(items, Iterable):
        raise AnalyticsValidationError(ErrorReason.INVALID_INPUT, "expected a list of records")
    return list(items)


def _coerce_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


def _coerce_event(item: Any, reason: ErrorReason, *, require_type: bool = False) -> CashFlowEvent:
    if isinstance(item, CashFlowEvent):
        raw_date, raw_amount, raw_type = item.date, item.amount, item.type
    elif isinstance(item, Mapping):
        if "date" not in item or "amount" not in item:
            raise AnalyticsValidationError(reason, f"cash flow needs date and amount: {item!r}")
        raw_date, raw_amount, raw_type = item["date"], item["amount"], item.get("type")
    else:
        raise AnalyticsValidationError(reason, f"unsupported cash flow record: {item!r}")

    event_date = _coerce_date(raw_date)
    if event_date is None or not is_decimal(raw_amount):
        raise AnalyticsValidationError(reason, f"cash flow has an invalid date or amount: {item!r}")
    flow_type = FlowType.coerce(raw_type)
    if flow_type is None:
        if require_type:
            raise AnalyticsValidationError(ErrorReason.INVALID_INPUT, f"unknown event type {raw_type!r}")
        flow_type = FlowType.BUY if Decimal(raw_amount) < ZERO else FlowType.SELL
    return CashFlowEvent(date=event_date, amount=Decimal(raw_amount), type=flow_type)


def _is_period_record(item: Any) -> bool:
    return isinstance(item, Period) or (isinstance(item, Mapping) and "start_value" in item)


def _coerce_period(item: Any) -> Period:
    if isinstance(item, Period):
        return item
    start_value, end_value = item.get("start_value"), item.get("end_value")
    if not is_decimal(start_value) or not is_decimal(end_value):
        raise AnalyticsValidationError(ErrorReason.INVALID_INPUT, f"period values must be decimals: {item!r}")
    flows = tuple(
        _coerce_event(flow, ErrorReason.INVALID_INPUT) for flow in _require_list(item.get("cash_flows") or [])
    )
    return Period(
        start_date=_coerce_date(item.get("start_date")),
        end_date=_coerce_date(item.get("end_date")),
        start_value=Decimal(start_value),
        end_value=Decimal(end_value),
        cash_flows=flows,
    )


def _coerce_returns(returns: Iterable[Any]) -> list[ReturnObservation]:
    observations: list[ReturnObservation] = []
    for item in _require_list(returns):
        if isinstance(item, ReturnObservation):
            obs = item
        elif isinstance(item, Mapping):
            obs_date = _coerce_date(item.get("date"))
            value = item.get("return", item.get("value"))
            if obs_date is None or not is_decimal(value):
                raise AnalyticsValidationError(ErrorReason.INVALID_INPUT, f"invalid return record: {item!r}")
            obs = ReturnObservation(date=obs_date, value=Decimal(value))
        else:
            raise AnalyticsValidationError(ErrorReason.INVALID_INPUT, f"unsupported return record: {item!r}")
        if obs.value < -HUNDRED:
            raise AnalyticsValidationError(ErrorReason.INVALID_INPUT, f"return below -100%: {obs.value}")
        observations.append(obs)
    observations.sort(key=lambda o: o.date)
    return observations
