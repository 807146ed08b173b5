from __future__ import annotations

from enum import Enum
from typing import Any


class FlowType(str, Enum):
    BUY = "buy"
    SELL = "sell"
    CONTRIBUTION = "contribution"
    WITHDRAWAL = "withdrawal"
    DEPOSIT = "deposit"
    VALUE = "value"
    CURRENT_VALUE = "current_value"

    def __str__(self) -> str:
        return self.value

    @property
    def is_valuation(self) -> bool:
        return self in (FlowType.VALUE, FlowType.CURRENT_VALUE)

    @classmethod
    def coerce(cls, value: Any) -> "FlowType | None":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if lowered == member.value:
                    return member
        return None


class ErrorReason(str, Enum):
    """Machine-readable failure reasons carried by analytics errors."""

    INSUFFICIENT_DATA = "insufficient_data"
    INSUFFICIENT_ASSETS = "insufficient_assets"
    INSUFFICIENT_PERIODS = "insufficient_periods"
    INSUFFICIENT_POINTS = "insufficient_points"
    NO_ASSETS = "no_assets"
    TOO_MANY_ASSETS = "too_many_assets"
    DUPLICATE_SYMBOL = "duplicate_symbol"
    INVALID_INPUT = "invalid_input"
    INVALID_CASH_FLOW_STRUCTURE = "invalid_cash_flow_structure"
    INVALID_CORRELATION = "invalid_correlation"
    INVALID_CORRELATION_MATRIX = "invalid_correlation_matrix"
    INVALID_VOLATILITY = "invalid_volatility"
    INVALID_VALUE_FORMAT = "invalid_value_format"
    INVALID_THRESHOLD = "invalid_threshold"
    NON_POSITIVE_VALUES = "non_positive_values"
    MISMATCHED_MATRIX_SIZE = "mismatched_matrix_size"
    MISSING_EXPECTED_RETURN = "missing_expected_return"
    UNATTAINABLE_RETURN = "unattainable_return"
    ZERO_START_VALUE = "zero_start_value"
    DEGENERATE_CASE = "degenerate_case"
    NEGATIVE_IRR = "negative_irr"
    IRR_NOT_BRACKETED = "irr_not_bracketed"
    SINGULAR_COVARIANCE_MATRIX = "singular_covariance_matrix"
    OPTIMIZATION_NOT_CONVERGED = "optimization_not_converged"

    def __str__(self) -> str:
        return self.value
