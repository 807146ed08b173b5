"""
Data classes shared across the analytics engine.

Inputs (cash-flow events, periods, asset statistics) and results (optimizer,
drawdown and return outputs) are immutable records. Every result exposes
``to_dict()`` so it can be stored in the performance cache or rendered as JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date
from decimal import Decimal
from typing import Any

from folio_analytics.common.enums import FlowType


def _render(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, FlowType):
        return value.value
    if isinstance(value, dict):
        return {str(k): _render(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_render(v) for v in value]
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


class _Serializable:
    def to_dict(self) -> dict[str, Any]:
        return {f.name: _render(getattr(self, f.name)) for f in fields(self)}  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CashFlowEvent(_Serializable):
    """A dated flow or valuation; negative amounts are money into the portfolio."""

    date: date
    amount: Decimal
    type: FlowType = FlowType.CURRENT_VALUE


@dataclass(frozen=True)
class Period(_Serializable):
    """A sub-period free of external flows except those listed in ``cash_flows``."""

    start_date: date | None
    end_date: date | None
    start_value: Decimal
    end_value: Decimal
    cash_flows: tuple[CashFlowEvent, ...] = ()


@dataclass(frozen=True)
class AssetStatistics(_Serializable):
    """Per-asset inputs for the optimizers."""

    symbol: str
    volatility: Decimal
    expected_return: Decimal | None = None


@dataclass(frozen=True)
class ReturnObservation(_Serializable):
    """A periodic return, in percent, dated at the end of its period."""

    date: date
    value: Decimal


# ---------------------------------------------------------------------------
# Optimization results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TwoAssetResult(_Serializable):
    weight_a: Decimal
    weight_b: Decimal
    portfolio_volatility: Decimal


@dataclass(frozen=True)
class OptimizationResult(_Serializable):
    """Symbol-keyed weights with the resulting portfolio statistics."""

    weights: dict[str, Decimal]
    portfolio_volatility: Decimal
    expected_return: Decimal | None = None
    sharpe_ratio: Decimal | None = None


@dataclass(frozen=True)
class FrontierResult(_Serializable):
    portfolios: list[OptimizationResult]
    min_variance_portfolio: OptimizationResult
    max_return_portfolio: OptimizationResult
    tangency_portfolio: OptimizationResult


# ---------------------------------------------------------------------------
# Risk and performance results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DrawdownResult(_Serializable):
    max_drawdown: Decimal
    max_drawdown_percentage: Decimal
    peak_index: int
    trough_index: int
    peak_value: Decimal
    trough_value: Decimal
    current_drawdown: Decimal
    recovery_periods: int | None
    underwater_periods: int


@dataclass(frozen=True)
class DrawdownPeriod(_Serializable):
    """One peak-to-trough episode; ``recovery_index`` is None while still underwater."""

    peak_index: int
    trough_index: int
    recovery_index: int | None
    peak_value: Decimal
    trough_value: Decimal
    drawdown_percentage: Decimal
    duration_periods: int
    recovery_periods: int | None


@dataclass(frozen=True)
class RollingReturn(_Serializable):
    period_start: date
    period_end: date
    total_return: Decimal
    annualized_return: Decimal


@dataclass(frozen=True)
class RollingReturnAnalysis(_Serializable):
    best_period: RollingReturn
    worst_period: RollingReturn
    average_return: Decimal
    volatility: Decimal
    periods: list[RollingReturn] = field(default_factory=list)
