"""Observability helpers for logging."""

from .logging import CalculationLogger, JsonLogFormatter, configure_logging

__all__ = [
    "CalculationLogger",
    "JsonLogFormatter",
    "configure_logging",
]
