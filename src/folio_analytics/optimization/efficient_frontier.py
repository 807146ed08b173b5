"""
Efficient frontier generation.

Sweeps evenly spaced target returns from the minimum-variance portfolio's
expected return up to the highest single-asset expected return, solving the
long-only target-return problem at each point.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from folio_analytics.common.decimal_utils import ONE, ZERO, decimal_context
from folio_analytics.common.enums import ErrorReason
from folio_analytics.common.errors import AnalyticsValidationError
from folio_analytics.common.types import FrontierResult, OptimizationResult
from folio_analytics.optimization.inputs import AssetLike, require_expected_returns, resolve_risk_free_rate
from folio_analytics.optimization.portfolio_optimizer import PortfolioOptimizer
from folio_analytics.settings import DEFAULT_SETTINGS, AnalyticsSettings

logger = logging.getLogger(__name__)

DEFAULT_POINTS = 50


class EfficientFrontier:
    def __init__(self, settings: AnalyticsSettings | None = None) -> None:
        self.settings = settings or DEFAULT_SETTINGS
        self.optimizer = PortfolioOptimizer(self.settings)

    def generate(
        self,
        assets: Sequence[AssetLike],
        correlation_matrix: Sequence[Sequence[Any]],
        points: int = DEFAULT_POINTS,
        risk_free_rate: Decimal | None = None,
    ) -> FrontierResult:
        stats, matrix = self.optimizer.validate_inputs(assets, correlation_matrix)
        if isinstance(points, bool) or not isinstance(points, int) or points < 2:
            raise AnalyticsValidationError(ErrorReason.INSUFFICIENT_POINTS, "at least two frontier points are required")
        returns = require_expected_returns(stats)
        rf = resolve_risk_free_rate(risk_free_rate, self.settings)

        min_variance = self.optimizer.find_minimum_variance(stats, matrix, rf)
        tangency = self.optimizer.maximize_sharpe(stats, matrix, rf)
        leader = max(range(len(stats)), key=lambda i: returns[i])
        max_return = self.optimizer.evaluate_weights(
            stats,
            matrix,
            [ONE if i == leader else ZERO for i in range(len(stats))],
            rf,
        )

        portfolios: list[OptimizationResult] = []
        with decimal_context(self.settings.decimal_precision):
            low = min_variance.expected_return
            high = returns[leader]
            if low is None or high <= low:
                portfolios.append(min_variance)
            else:
                step = (high - low) / (points - 1)
                for k in range(points):
                    target = high if k == points - 1 else low + step * k
                    portfolios.append(self.optimizer.optimize_target_return(stats, matrix, target, rf))

        logger.debug("Generated efficient frontier with %d portfolios", len(portfolios))
        return FrontierResult(
            portfolios=portfolios,
            min_variance_portfolio=min_variance,
            max_return_portfolio=max_return,
            tangency_portfolio=tangency,
        )
