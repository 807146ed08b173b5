"""Coercion and validation of optimizer inputs."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any

from folio_analytics.common.decimal_utils import ONE, ZERO, is_decimal, require_decimal
from folio_analytics.common.enums import ErrorReason
from folio_analytics.common.errors import AnalyticsValidationError
from folio_analytics.common.types import AssetStatistics
from folio_analytics.optimization.linalg import is_positive_semidefinite
from folio_analytics.settings import AnalyticsSettings

AssetLike = AssetStatistics | Mapping[str, Any]


def coerce_asset(asset: AssetLike, position: int = 0) -> AssetStatistics:
    """Normalize an asset record and validate its volatility and expected return."""
    if isinstance(asset, AssetStatistics):
        symbol, volatility, expected = asset.symbol, asset.volatility, asset.expected_return
    elif isinstance(asset, Mapping):
        symbol = asset.get("symbol", f"asset_{position}")
        volatility = asset.get("volatility")
        expected = asset.get("expected_return")
    else:
        raise AnalyticsValidationError(ErrorReason.INVALID_INPUT, f"unsupported asset record: {asset!r}")

    sigma = require_decimal(volatility, ErrorReason.INVALID_VOLATILITY, f"invalid volatility for {symbol}")
    if sigma < ZERO:
        raise AnalyticsValidationError(ErrorReason.INVALID_VOLATILITY, f"negative volatility for {symbol}")
    mu = None
    if expected is not None:
        mu = require_decimal(expected, ErrorReason.INVALID_INPUT, f"invalid expected return for {symbol}")
    return AssetStatistics(symbol=str(symbol), volatility=sigma, expected_return=mu)


def coerce_correlation(value: Any) -> Decimal:
    if not is_decimal(value):
        raise AnalyticsValidationError(ErrorReason.INVALID_CORRELATION, f"invalid correlation {value!r}")
    rho = Decimal(value)
    if rho > ONE or rho < -ONE:
        raise AnalyticsValidationError(ErrorReason.INVALID_CORRELATION, f"correlation {rho} outside [-1, 1]")
    return rho


def validate_asset_count(assets: Any) -> list[Any]:
    if isinstance(assets, (str, bytes)) or not isinstance(assets, Sequence):
        raise AnalyticsValidationError(ErrorReason.INVALID_INPUT, "assets must be a sequence")
    if len(assets) == 0:
        raise AnalyticsValidationError(ErrorReason.NO_ASSETS, "no assets supplied")
    if len(assets) == 1:
        raise AnalyticsValidationError(ErrorReason.INSUFFICIENT_ASSETS, "at least two assets are required")
    return list(assets)


def validate_correlation_matrix(matrix: Any, size: int) -> list[list[Decimal]]:
    """
    Check shape, element types, unit diagonal, symmetry, bounds and PSD-ness.

    Shape problems raise ``mismatched_matrix_size``; everything else raises
    ``invalid_correlation_matrix``.
    """
    if isinstance(matrix, (str, bytes)) or not isinstance(matrix, Sequence) or len(matrix) != size:
        raise AnalyticsValidationError(
            ErrorReason.MISMATCHED_MATRIX_SIZE,
            f"correlation matrix must be {size}x{size}",
        )
    rows: list[list[Decimal]] = []
    for row in matrix:
        if isinstance(row, (str, bytes)) or not isinstance(row, Sequence) or len(row) != size:
            raise AnalyticsValidationError(
                ErrorReason.MISMATCHED_MATRIX_SIZE,
                f"correlation matrix must be {size}x{size}",
            )
        rows.append(
            [
                require_decimal(v, ErrorReason.INVALID_CORRELATION_MATRIX, f"invalid matrix entry {v!r}")
                for v in row
            ]
        )

    for i in range(size):
        if rows[i][i] != ONE:
            raise AnalyticsValidationError(ErrorReason.INVALID_CORRELATION_MATRIX, "diagonal must be 1")
        for j in range(size):
            if rows[i][j] != rows[j][i]:
                raise AnalyticsValidationError(ErrorReason.INVALID_CORRELATION_MATRIX, "matrix is not symmetric")
            if rows[i][j] > ONE or rows[i][j] < -ONE:
                raise AnalyticsValidationError(
                    ErrorReason.INVALID_CORRELATION_MATRIX,
                    f"correlation {rows[i][j]} outside [-1, 1]",
                )
    if size > 2 and not is_positive_semidefinite(rows):
        raise AnalyticsValidationError(
            ErrorReason.INVALID_CORRELATION_MATRIX,
            "correlation matrix is not positive semi-definite",
        )
    return rows


def require_expected_returns(assets: Sequence[AssetStatistics]) -> list[Decimal]:
    returns: list[Decimal] = []
    for asset in assets:
        if asset.expected_return is None:
            raise AnalyticsValidationError(
                ErrorReason.MISSING_EXPECTED_RETURN,
                f"expected return missing for {asset.symbol}",
            )
        returns.append(asset.expected_return)
    return returns


def check_unique_symbols(assets: Sequence[AssetStatistics]) -> None:
    seen: set[str] = set()
    for asset in assets:
        if asset.symbol in seen:
            raise AnalyticsValidationError(ErrorReason.DUPLICATE_SYMBOL, f"duplicate symbol {asset.symbol}")
        seen.add(asset.symbol)


def resolve_risk_free_rate(value: Any, settings: AnalyticsSettings) -> Decimal:
    if value is None:
        return settings.risk_free_rate
    return require_decimal(value, ErrorReason.INVALID_INPUT, f"invalid risk-free rate {value!r}")
