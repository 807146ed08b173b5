"""Return and risk measurement over portfolio histories."""

from .drawdown import DrawdownCalculator
from .performance import PerformanceCalculator, period_return

__all__ = [
    "DrawdownCalculator",
    "PerformanceCalculator",
    "period_return",
]
