"""
Folio Analytics - Portfolio Performance and Risk Analytics.

Exact-decimal calculators for time-weighted and money-weighted returns,
rolling returns, drawdown analysis and long-only mean-variance optimization,
with a TTL cache for computed results.
"""

from __future__ import annotations

__version__ = "0.1.0"
__author__ = "Folio Analytics Team"

# =============================================================================
# PERFORMANCE & RISK
# =============================================================================

from .analytics import DrawdownCalculator, PerformanceCalculator

# =============================================================================
# OPTIMIZATION
# =============================================================================

from .optimization import EfficientFrontier, PortfolioOptimizer, TwoAssetOptimizer

# =============================================================================
# TYPES, ERRORS & INFRASTRUCTURE
# =============================================================================

from .common.enums import ErrorReason, FlowType
from .common.errors import AnalyticsCalculationError, AnalyticsError, AnalyticsValidationError
from .common.performance_cache import CacheStats, PerformanceCache
from .common.types import (
    AssetStatistics,
    CashFlowEvent,
    DrawdownPeriod,
    DrawdownResult,
    FrontierResult,
    OptimizationResult,
    Period,
    ReturnObservation,
    RollingReturn,
    RollingReturnAnalysis,
    TwoAssetResult,
)
from .observability import configure_logging
from .settings import AnalyticsSettings, load_settings

__all__ = [
    "__version__",
    # Performance & risk
    "DrawdownCalculator",
    "PerformanceCalculator",
    # Optimization
    "EfficientFrontier",
    "PortfolioOptimizer",
    "TwoAssetOptimizer",
    # Types
    "AssetStatistics",
    "CashFlowEvent",
    "DrawdownPeriod",
    "DrawdownResult",
    "FrontierResult",
    "OptimizationResult",
    "Period",
    "ReturnObservation",
    "RollingReturn",
    "RollingReturnAnalysis",
    "TwoAssetResult",
    # Errors
    "AnalyticsCalculationError",
    "AnalyticsError",
    "AnalyticsValidationError",
    "ErrorReason",
    "FlowType",
    # Infrastructure
    "AnalyticsSettings",
    "CacheStats",
    "PerformanceCache",
    "configure_logging",
    "load_settings",
]
