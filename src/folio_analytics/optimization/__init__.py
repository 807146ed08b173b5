"""Mean-variance optimization: two-asset closed forms, N-asset solver and frontier."""

from .efficient_frontier import EfficientFrontier
from .portfolio_optimizer import PortfolioOptimizer
from .two_asset import TwoAssetOptimizer

__all__ = [
    "EfficientFrontier",
    "PortfolioOptimizer",
    "TwoAssetOptimizer",
]
