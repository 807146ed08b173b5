"""Runtime configuration for the analytics engine."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal

from .environment import EnvReader

DEFAULT_RISK_FREE_RATE = Decimal("0.03")


@dataclass(frozen=True)
class AnalyticsSettings:
    """
    Numeric and logging knobs shared by every calculator.

    Calculators built without explicit settings use ``DEFAULT_SETTINGS`` and
    never read the environment themselves; ``load_settings`` is the single
    place where ``FOLIO_*`` overrides are applied.
    """

    decimal_precision: int = 28
    irr_working_precision: int = 20
    irr_max_iterations: int = 50
    irr_tolerance: Decimal = Decimal("1e-10")
    irr_initial_guess: Decimal = Decimal("0.1")
    bisection_max_iterations: int = 200
    risk_free_rate: Decimal = DEFAULT_RISK_FREE_RATE
    periods_per_year: int = 12
    log_level: str = "INFO"
    log_json: bool = False
    log_file: str | None = None

    @classmethod
    def from_env(cls, *, environ: Mapping[str, str] | None = None) -> "AnalyticsSettings":
        env = EnvReader(environ=environ)
        return cls(
            decimal_precision=env.integer("DECIMAL_PRECISION", cls.decimal_precision, 16, 100),
            irr_working_precision=env.integer("IRR_PRECISION", cls.irr_working_precision, 12, 100),
            irr_max_iterations=env.integer("IRR_MAX_ITERATIONS", cls.irr_max_iterations, 1, 10_000),
            irr_tolerance=env.decimal("IRR_TOLERANCE", cls.irr_tolerance, positive=True),
            irr_initial_guess=env.decimal("IRR_INITIAL_GUESS", cls.irr_initial_guess),
            bisection_max_iterations=env.integer("BISECTION_MAX_ITERATIONS", cls.bisection_max_iterations, 10, 10_000),
            risk_free_rate=env.decimal("RISK_FREE_RATE", cls.risk_free_rate),
            periods_per_year=env.integer("PERIODS_PER_YEAR", cls.periods_per_year, 1, 366),
            log_level=env.text("LOG_LEVEL", cls.log_level).upper(),
            log_json=env.flag("LOG_JSON", cls.log_json),
            log_file=env.text("LOG_FILE") or None,
        )


DEFAULT_SETTINGS = AnalyticsSettings()


def load_settings(*, environ: Mapping[str, str] | None = None) -> AnalyticsSettings:
    return AnalyticsSettings.from_env(environ=environ)
