"""
Closed-form optimization for two-asset portfolios.

Minimum variance:

    w_A = (σ_B² − ρσ_Aσ_B) / (σ_A² + σ_B² − 2ρσ_Aσ_B),   w_B = 1 − w_A

with explicit handling of a riskless leg, perfect positive correlation
(all-in on the lower-volatility asset) and perfect negative correlation
(the zero-variance hedge). Weights are long-only: an unconstrained solution
outside [0, 1] is clipped to the nearest corner.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from folio_analytics.common.decimal_utils import (
    ONE,
    TWO,
    WEIGHT_QUANTUM,
    ZERO,
    decimal_context,
    quantize,
    safe_sqrt,
)
from folio_analytics.common.enums import ErrorReason
from folio_analytics.common.errors import AnalyticsCalculationError
from folio_analytics.common.types import AssetStatistics, TwoAssetResult
from folio_analytics.optimization.inputs import (
    AssetLike,
    coerce_asset,
    coerce_correlation,
    require_expected_returns,
    resolve_risk_free_rate,
)
from folio_analytics.settings import DEFAULT_SETTINGS, AnalyticsSettings

logger = logging.getLogger(__name__)


def portfolio_volatility(sigma_a: Decimal, sigma_b: Decimal, correlation: Decimal, weight_a: Decimal) -> Decimal:
    weight_b = ONE - weight_a
    variance = (
        weight_a * weight_a * sigma_a * sigma_a
        + weight_b * weight_b * sigma_b * sigma_b
        + TWO * weight_a * weight_b * correlation * sigma_a * sigma_b
    )
    return safe_sqrt(variance)


def _clip(weight: Decimal) -> Decimal:
    return min(max(weight, ZERO), ONE)


class TwoAssetOptimizer:
    """Two-asset minimum-variance and tangency portfolios."""

    def __init__(self, settings: AnalyticsSettings | None = None) -> None:
        self.settings = settings or DEFAULT_SETTINGS

    def minimum_variance(self, asset_a: AssetLike, asset_b: AssetLike, correlation: Any) -> TwoAssetResult:
        rho = coerce_correlation(correlation)
        a = coerce_asset(asset_a, 0)
        b = coerce_asset(asset_b, 1)
        with decimal_context(self.settings.decimal_precision):
            return self._minimum_variance(a, b, rho)

    def tangency(
        self,
        asset_a: AssetLike,
        asset_b: AssetLike,
        correlation: Any,
        risk_free_rate: Decimal | None = None,
    ) -> TwoAssetResult:
        """
        Maximum-Sharpe weights for two assets.

        The unconstrained closed form is clipped to [0, 1] and compared with
        the two corner portfolios. When neither asset beats the risk-free rate,
        or the denominator vanishes, the minimum-variance portfolio is returned.
        """
        rho = coerce_correlation(correlation)
        a = coerce_asset(asset_a, 0)
        b = coerce_asset(asset_b, 1)
        mu_a, mu_b = require_expected_returns([a, b])
        rf = resolve_risk_free_rate(risk_free_rate, self.settings)

        with decimal_context(self.settings.decimal_precision):
            excess_a = mu_a - rf
            excess_b = mu_b - rf
            if excess_a <= ZERO and excess_b <= ZERO:
                logger.debug("No positive excess return; using minimum variance")
                return self._minimum_variance(a, b, rho)

            var_a = a.volatility * a.volatility
            var_b = b.volatility * b.volatility
            cov = rho * a.volatility * b.volatility
            numerator = excess_a * var_b - excess_b * cov
            denominator = excess_a * var_b + excess_b * var_a - (excess_a + excess_b) * cov
            if denominator == ZERO:
                logger.debug("Degenerate tangency denominator; using minimum variance")
                return self._minimum_variance(a, b, rho)

            def sharpe(weight: Decimal) -> Decimal:
                excess = weight * excess_a + (ONE - weight) * excess_b
                vol = portfolio_volatility(a.volatility, b.volatility, rho, weight)
                if vol == ZERO:
                    return excess.copy_sign(Decimal("Infinity")) if excess else ZERO
                return excess / vol

            candidates = [_clip(numerator / denominator), ONE, ZERO]
            best = max(candidates, key=sharpe)
            return self._result(a, b, rho, best)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _minimum_variance(self, a: AssetStatistics, b: AssetStatistics, rho: Decimal) -> TwoAssetResult:
        sigma_a, sigma_b = a.volatility, b.volatility

        if sigma_a == ZERO and sigma_b == ZERO:
            raise AnalyticsCalculationError(ErrorReason.DEGENERATE_CASE, "both assets have zero volatility")
        if sigma_a == ZERO:
            return TwoAssetResult(weight_a=ONE, weight_b=ZERO, portfolio_volatility=ZERO)
        if sigma_b == ZERO:
            return TwoAssetResult(weight_a=ZERO, weight_b=ONE, portfolio_volatility=ZERO)

        if rho == ONE:
            if sigma_a <= sigma_b:
                return TwoAssetResult(weight_a=ONE, weight_b=ZERO, portfolio_volatility=sigma_a)
            return TwoAssetResult(weight_a=ZERO, weight_b=ONE, portfolio_volatility=sigma_b)

        if rho == -ONE:
            weight_a = quantize(sigma_b / (sigma_a + sigma_b), WEIGHT_QUANTUM)
            return TwoAssetResult(weight_a=weight_a, weight_b=ONE - weight_a, portfolio_volatility=ZERO)

        var_a = sigma_a * sigma_a
        var_b = sigma_b * sigma_b
        cov = rho * sigma_a * sigma_b
        weight_a = _clip((var_b - cov) / (var_a + var_b - TWO * cov))
        return self._result(a, b, rho, weight_a)

    @staticmethod
    def _result(a: AssetStatistics, b: AssetStatistics, rho: Decimal, weight_a: Decimal) -> TwoAssetResult:
        weight_a = quantize(weight_a, WEIGHT_QUANTUM)
        return TwoAssetResult(
            weight_a=weight_a,
            weight_b=ONE - weight_a,
            portfolio_volatility=portfolio_volatility(a.volatility, b.volatility, rho, weight_a),
        )
