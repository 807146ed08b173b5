"""
pandas adapters for the calculators.

Frames are validated with pandera, then converted into the decimal records
the calculators consume. Float cells are converted through their shortest
string representation so ``101.1`` becomes ``Decimal("101.1")`` rather than
the binary expansion. Results can be turned back into frames for reporting.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from decimal import Decimal, InvalidOperation
from typing import Any

import numpy as np
import pandas as pd
import pandera as pa
from pandera import Check, Column

from folio_analytics.common.enums import ErrorReason, FlowType
from folio_analytics.common.errors import AnalyticsValidationError
from folio_analytics.common.types import (
    CashFlowEvent,
    DrawdownPeriod,
    OptimizationResult,
    Period,
    ReturnObservation,
    RollingReturn,
)

FLOW_TYPES = [member.value for member in FlowType]


def to_decimal(value: Any) -> Decimal | None:
    """Convert a scalar cell to Decimal, or None when it is not a finite number."""
    if isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, np.integer)):
        return Decimal(int(value))
    if isinstance(value, (float, np.floating)):
        return Decimal(repr(float(value))) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            parsed = Decimal(value.strip())
        except InvalidOperation:
            return None
        return parsed if parsed.is_finite() else None
    return None


def _is_number(value: Any) -> bool:
    return to_decimal(value) is not None


def _validate(frame: pd.DataFrame, schema: pa.DataFrameSchema, context: str) -> pd.DataFrame:
    if not isinstance(frame, pd.DataFrame):
        raise AnalyticsValidationError(ErrorReason.INVALID_INPUT, f"{context}: expected a DataFrame")
    try:
        return schema.validate(frame)
    except (pa.errors.SchemaError, pa.errors.SchemaErrors) as exc:
        raise AnalyticsValidationError(ErrorReason.INVALID_INPUT, f"{context}: {exc}") from exc


def _dates(column: pd.Series, context: str) -> list[Any]:
    try:
        return list(pd.to_datetime(column).dt.date)
    except (TypeError, ValueError) as exc:
        raise AnalyticsValidationError(ErrorReason.INVALID_INPUT, f"{context}: unparseable dates") from exc


# ---------------------------------------------------------------------------
# Frames -> records
# ---------------------------------------------------------------------------


def cash_flow_schema(date_column: str = "date", amount_column: str = "amount", type_column: str = "type") -> pa.DataFrameSchema:
    return pa.DataFrameSchema(
        {
            date_column: Column(nullable=False),
            amount_column: Column(nullable=False, checks=Check(_is_number, element_wise=True)),
            type_column: Column(nullable=False, required=False, checks=Check.isin(FLOW_TYPES)),
        },
        strict=False,
    )


def cash_flows_from_frame(
    frame: pd.DataFrame,
    *,
    date_column: str = "date",
    amount_column: str = "amount",
    type_column: str = "type",
) -> list[CashFlowEvent]:
    """
    Build date-ordered cash-flow events from a frame.

    Without a type column, negative amounts are read as buys and the rest as
    sells, which is enough for money-weighted returns.
    """
    validated = _validate(frame, cash_flow_schema(date_column, amount_column, type_column), "cash flows")
    dates = _dates(validated[date_column], "cash flows")
    amounts = [to_decimal(v) for v in validated[amount_column]]
    if type_column in validated.columns:
        types = [FlowType(v) for v in validated[type_column]]
    else:
        types = [FlowType.BUY if a < 0 else FlowType.SELL for a in amounts]

    events = [CashFlowEvent(date=d, amount=a, type=t) for d, a, t in zip(dates, amounts, types)]
    return sorted(events, key=lambda e: e.date)


def values_from_series(series: pd.Series | Sequence[Any]) -> list[Decimal]:
    """Decimal portfolio values from a Series (or any sequence of numbers)."""
    values: list[Decimal] = []
    for raw in pd.Series(series, dtype=object):
        value = to_decimal(raw)
        if value is None:
            raise AnalyticsValidationError(ErrorReason.INVALID_VALUE_FORMAT, f"not a finite number: {raw!r}")
        values.append(value)
    return values


def returns_from_frame(
    frame: pd.DataFrame,
    *,
    date_column: str = "date",
    return_column: str = "return",
) -> list[ReturnObservation]:
    schema = pa.DataFrameSchema(
        {
            date_column: Column(nullable=False),
            return_column: Column(nullable=False, checks=Check(_is_number, element_wise=True)),
        },
        strict=False,
    )
    validated = _validate(frame, schema, "returns")
    dates = _dates(validated[date_column], "returns")
    observations = [
        ReturnObservation(date=d, value=to_decimal(v)) for d, v in zip(dates, validated[return_column])
    ]
    return sorted(observations, key=lambda o: o.date)


# ---------------------------------------------------------------------------
# Results -> frames
# ---------------------------------------------------------------------------


def periods_to_frame(periods: Sequence[Period]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "start_date": p.start_date,
                "end_date": p.end_date,
                "start_value": p.start_value,
                "end_value": p.end_value,
                "cash_flows": len(p.cash_flows),
            }
            for p in periods
        ],
        columns=["start_date", "end_date", "start_value", "end_value", "cash_flows"],
    )


def rolling_returns_to_frame(rolling: Sequence[RollingReturn]) -> pd.DataFrame:
    return pd.DataFrame(
        [r.to_dict() for r in rolling],
        columns=["period_start", "period_end", "total_return", "annualized_return"],
    )


def drawdown_history_to_frame(periods: Sequence[DrawdownPeriod]) -> pd.DataFrame:
    columns = [
        "peak_index",
        "trough_index",
        "recovery_index",
        "peak_value",
        "trough_value",
        "drawdown_percentage",
        "duration_periods",
        "recovery_periods",
    ]
    return pd.DataFrame([{c: getattr(p, c) for c in columns} for p in periods], columns=columns)


def weights_to_series(result: OptimizationResult) -> pd.Series:
    return pd.Series(result.weights, name="weight", dtype=object)
