"""
Mean-variance portfolio optimization for N assets.

Three objectives are supported, all long-only with weights summing to one:

- minimum variance:  min wᵀΣw           s.t. 1ᵀw = 1
- maximum Sharpe:    min yᵀΣy           s.t. (μ − r_f)ᵀy = 1,   w = y / 1ᵀy
- target return:     min wᵀΣw           s.t. 1ᵀw = 1, μᵀw = target

Two-asset problems go through the closed forms in :mod:`.two_asset`; larger
universes use the decimal active-set solver in :mod:`.linalg`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from folio_analytics.common.decimal_utils import (
    ONE,
    ZERO,
    decimal_context,
    finalize_target_weights,
    finalize_weights,
    require_decimal,
    safe_sqrt,
)
from folio_analytics.common.enums import ErrorReason
from folio_analytics.common.errors import AnalyticsCalculationError, AnalyticsValidationError
from folio_analytics.common.types import AssetStatistics, OptimizationResult, TwoAssetResult
from folio_analytics.optimization.inputs import (
    AssetLike,
    check_unique_symbols,
    coerce_asset,
    require_expected_returns,
    resolve_risk_free_rate,
    validate_asset_count,
    validate_correlation_matrix,
)
from folio_analytics.optimization.linalg import (
    covariance_matrix,
    is_well_conditioned,
    quadratic_form,
    solve_long_only_qp,
    submatrix,
)
from folio_analytics.optimization.two_asset import TwoAssetOptimizer
from folio_analytics.settings import DEFAULT_SETTINGS, AnalyticsSettings

logger = logging.getLogger(__name__)

Matrix = list[list[Decimal]]

# Largest miss of μᵀw against the target that rounding weights can explain.
TARGET_TOLERANCE = Decimal("1e-10")


class PortfolioOptimizer:
    """Long-only mean-variance optimizer over symbol-keyed assets."""

    def __init__(self, settings: AnalyticsSettings | None = None) -> None:
        self.settings = settings or DEFAULT_SETTINGS
        self.two_asset = TwoAssetOptimizer(self.settings)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate_inputs(
        self,
        assets: Sequence[AssetLike],
        correlation_matrix: Sequence[Sequence[Any]],
    ) -> tuple[list[AssetStatistics], Matrix]:
        """Validate asset count, matrix shape and content, then asset statistics."""
        raw = validate_asset_count(assets)
        matrix = validate_correlation_matrix(correlation_matrix, len(raw))
        stats = [coerce_asset(asset, i) for i, asset in enumerate(raw)]
        check_unique_symbols(stats)
        return stats, matrix

    def optimize_two_asset(
        self,
        assets: Sequence[AssetLike],
        correlation_matrix: Sequence[Sequence[Any]],
        risk_free_rate: Decimal | None = None,
    ) -> OptimizationResult:
        """Tangency portfolio of exactly two assets."""
        stats, matrix = self.validate_inputs(assets, correlation_matrix)
        if len(stats) > 2:
            raise AnalyticsValidationError(ErrorReason.TOO_MANY_ASSETS, "exactly two assets are required")
        rf = resolve_risk_free_rate(risk_free_rate, self.settings)
        with decimal_context(self.settings.decimal_precision):
            pair = self.two_asset.tangency(stats[0], stats[1], matrix[0][1], rf)
            return self._from_pair(stats, matrix, pair, rf)

    def find_minimum_variance(
        self,
        assets: Sequence[AssetLike],
        correlation_matrix: Sequence[Sequence[Any]],
        risk_free_rate: Decimal | None = None,
    ) -> OptimizationResult:
        stats, matrix = self.validate_inputs(assets, correlation_matrix)
        rf = resolve_risk_free_rate(risk_free_rate, self.settings)
        logger.debug("Finding minimum-variance portfolio for %d assets", len(stats))
        with decimal_context(self.settings.decimal_precision):
            if len(stats) == 2:
                pair = self.two_asset.minimum_variance(stats[0], stats[1], matrix[0][1])
                return self._from_pair(stats, matrix, pair, rf)
            weights = self._minimum_variance_weights(stats, matrix)
            return self._build_result(stats, matrix, weights, rf)

    def maximize_sharpe(
        self,
        assets: Sequence[AssetLike],
        correlation_matrix: Sequence[Sequence[Any]],
        risk_free_rate: Decimal | None = None,
    ) -> OptimizationResult:
        stats, matrix = self.validate_inputs(assets, correlation_matrix)
        returns = require_expected_returns(stats)
        rf = resolve_risk_free_rate(risk_free_rate, self.settings)
        logger.debug("Maximizing Sharpe ratio for %d assets (rf=%s)", len(stats), rf)
        with decimal_context(self.settings.decimal_precision):
            if len(stats) == 2:
                pair = self.two_asset.tangency(stats[0], stats[1], matrix[0][1], rf)
                return self._from_pair(stats, matrix, pair, rf)
            weights = self._tangency_weights(stats, matrix, returns, rf)
            return self._build_result(stats, matrix, weights, rf)

    def optimize_target_return(
        self,
        assets: Sequence[AssetLike],
        correlation_matrix: Sequence[Sequence[Any]],
        target_return: Decimal,
        risk_free_rate: Decimal | None = None,
    ) -> OptimizationResult:
        """Minimum-variance portfolio whose expected return equals ``target_return``."""
        stats, matrix = self.validate_inputs(assets, correlation_matrix)
        returns = require_expected_returns(stats)
        target = require_decimal(target_return, ErrorReason.INVALID_INPUT, f"invalid target return {target_return!r}")
        rf = resolve_risk_free_rate(risk_free_rate, self.settings)
        if target > max(returns) or target < min(returns):
            raise AnalyticsValidationError(
                ErrorReason.UNATTAINABLE_RETURN,
                f"target {target} outside [{min(returns)}, {max(returns)}]",
            )

        with decimal_context(self.settings.decimal_precision):
            if max(returns) == min(returns):
                logger.debug("All expected returns equal; target return reduces to minimum variance")
                if len(stats) == 2:
                    pair = self.two_asset.minimum_variance(stats[0], stats[1], matrix[0][1])
                    return self._from_pair(stats, matrix, pair, rf)
                return self._build_result(stats, matrix, self._minimum_variance_weights(stats, matrix), rf)

            if len(stats) == 2:
                weight_a = (target - returns[1]) / (returns[0] - returns[1])
                weights = [weight_a, ONE - weight_a]
            else:
                weights = self._target_return_weights(stats, matrix, returns, target)
            weights = finalize_target_weights(weights, returns, target)
            return self._on_target(self._build_result(stats, matrix, weights, rf), target, rf)

    def evaluate_weights(
        self,
        assets: Sequence[AssetLike],
        correlation_matrix: Sequence[Sequence[Any]],
        weights: Sequence[Decimal],
        risk_free_rate: Decimal | None = None,
    ) -> OptimizationResult:
        """Statistics of a given allocation, weights aligned with ``assets``."""
        stats, matrix = self.validate_inputs(assets, correlation_matrix)
        if len(weights) != len(stats):
            raise AnalyticsValidationError(ErrorReason.INVALID_INPUT, "one weight per asset is required")
        values = [require_decimal(w, ErrorReason.INVALID_INPUT) for w in weights]
        rf = resolve_risk_free_rate(risk_free_rate, self.settings)
        with decimal_context(self.settings.decimal_precision):
            return self._build_result(stats, matrix, values, rf)

    # ------------------------------------------------------------------
    # Solvers
    # ------------------------------------------------------------------

    def _minimum_variance_weights(self, stats: list[AssetStatistics], matrix: Matrix) -> list[Decimal]:
        n = len(stats)
        riskless = [i for i, s in enumerate(stats) if s.volatility == ZERO]
        if len(riskless) == n:
            raise AnalyticsCalculationError(ErrorReason.DEGENERATE_CASE, "all assets have zero volatility")
        if riskless:
            return finalize_weights([ONE if i in riskless else ZERO for i in range(n)])

        cov = self._covariance(stats, matrix)
        start = [ONE / n] * n
        return finalize_weights(solve_long_only_qp(cov, [[ONE] * n], start))

    def _tangency_weights(
        self,
        stats: list[AssetStatistics],
        matrix: Matrix,
        returns: list[Decimal],
        rf: Decimal,
    ) -> list[Decimal]:
        n = len(stats)
        excess = [mu - rf for mu in returns]
        if all(e <= ZERO for e in excess):
            logger.debug("No asset beats the risk-free rate; using minimum variance")
            return self._minimum_variance_weights(stats, matrix)

        riskless_winners = [i for i in range(n) if stats[i].volatility == ZERO and excess[i] > ZERO]
        if riskless_winners:
            best = max(riskless_winners, key=lambda i: excess[i])
            return finalize_weights([ONE if i == best else ZERO for i in range(n)])

        universe = [i for i in range(n) if stats[i].volatility > ZERO]
        sub_stats = [stats[i] for i in universe]
        cov = self._covariance(sub_stats, submatrix(matrix, universe))
        sub_excess = [excess[i] for i in universe]
        leader = max(range(len(universe)), key=lambda k: sub_excess[k])
        start = [ONE / sub_excess[k] if k == leader else ZERO for k in range(len(universe))]

        y = solve_long_only_qp(cov, [sub_excess], start)
        full = [ZERO] * n
        for k, i in enumerate(universe):
            full[i] = y[k]
        return finalize_weights(full)

    def _target_return_weights(
        self,
        stats: list[AssetStatistics],
        matrix: Matrix,
        returns: list[Decimal],
        target: Decimal,
    ) -> list[Decimal]:
        n = len(stats)
        cov = covariance_matrix([s.volatility for s in stats], matrix)
        low = min(range(n), key=lambda i: returns[i])
        high = max(range(n), key=lambda i: returns[i])
        theta = (target - returns[low]) / (returns[high] - returns[low])
        start = [ZERO] * n
        start[low] = ONE - theta
        start[high] = theta
        return solve_long_only_qp(cov, [[ONE] * n, returns], start)

    @staticmethod
    def _covariance(stats: list[AssetStatistics], matrix: Matrix) -> Matrix:
        cov = covariance_matrix([s.volatility for s in stats], matrix)
        if not is_well_conditioned(cov):
            raise AnalyticsCalculationError(
                ErrorReason.SINGULAR_COVARIANCE_MATRIX,
                "covariance matrix is singular or ill-conditioned",
            )
        return cov

    # ------------------------------------------------------------------
    # Result assembly
    # ------------------------------------------------------------------

    def _from_pair(
        self,
        stats: list[AssetStatistics],
        matrix: Matrix,
        pair: TwoAssetResult,
        rf: Decimal,
    ) -> OptimizationResult:
        result = self._build_result(stats, matrix, [pair.weight_a, pair.weight_b], rf)
        return OptimizationResult(
            weights=result.weights,
            portfolio_volatility=pair.portfolio_volatility,
            expected_return=result.expected_return,
            sharpe_ratio=_sharpe(result.expected_return, pair.portfolio_volatility, rf),
        )

    @staticmethod
    def _build_result(
        stats: list[AssetStatistics],
        matrix: Matrix,
        weights: list[Decimal],
        rf: Decimal,
    ) -> OptimizationResult:
        cov = covariance_matrix([s.volatility for s in stats], matrix)
        volatility = safe_sqrt(quadratic_form(cov, weights))
        expected: Decimal | None = None
        if all(s.expected_return is not None for s in stats):
            expected = sum((w * s.expected_return for w, s in zip(weights, stats)), ZERO)
        return OptimizationResult(
            weights={s.symbol: w for s, w in zip(stats, weights)},
            portfolio_volatility=volatility,
            expected_return=expected,
            sharpe_ratio=_sharpe(expected, volatility, rf),
        )

    @staticmethod
    def _on_target(result: OptimizationResult, target: Decimal, rf: Decimal) -> OptimizationResult:
        """Report the constrained return once the rounded weights are known to meet it."""
        if result.expected_return is None or abs(result.expected_return - target) > TARGET_TOLERANCE:
            raise AnalyticsCalculationError(
                ErrorReason.DEGENERATE_CASE,
                f"weights reach {result.expected_return}, not the target {target}",
            )
        return OptimizationResult(
            weights=result.weights,
            portfolio_volatility=result.portfolio_volatility,
            expected_return=target,
            sharpe_ratio=_sharpe(target, result.portfolio_volatility, rf),
        )


def _sharpe(expected: Decimal | None, volatility: Decimal, rf: Decimal) -> Decimal | None:
    if expected is None or volatility == ZERO:
        return None
    return (expected - rf) / volatility
