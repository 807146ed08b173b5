"""Shared types, errors, decimal helpers, caching and pandas adapters."""

from .enums import ErrorReason, FlowType
from .errors import AnalyticsCalculationError, AnalyticsError, AnalyticsValidationError
from .performance_cache import CacheStats, PerformanceCache
from .cache_config import CacheTTL

__all__ = [
    "AnalyticsCalculationError",
    "AnalyticsError",
    "AnalyticsValidationError",
    "CacheStats",
    "CacheTTL",
    "ErrorReason",
    "FlowType",
    "PerformanceCache",
]
