"""
Cache TTL configuration for computed analytics.

Centralizes TTL defaults with environment variable overrides.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields

from folio_analytics.settings.environment import EnvReader

MAX_TTL_SECONDS = 30 * 86400


@dataclass
class CacheTTL:
    """Per-calculation TTL settings (in seconds).

    Each field can be overridden with ``FOLIO_CACHE_TTL_<FIELD>``, e.g.
    ``FOLIO_CACHE_TTL_DRAWDOWN=600``.

    Attributes:
        default: Anything without a dedicated category.  Default 1 hour.
        twr: Time-weighted returns.  Default 1 hour.
        mwr: Money-weighted returns (IRR).  Default 1 hour.
        drawdown: Drawdown statistics.  Default 30 minutes.
        rolling_returns: Rolling-window returns.  Default 1 hour.
        optimization: Optimizer and frontier outputs.  Default 24 hours.
    """

    default: int = 3600           # 1 hour
    twr: int = 3600               # 1 hour
    mwr: int = 3600               # 1 hour
    drawdown: int = 1800          # 30 minutes
    rolling_returns: int = 3600   # 1 hour
    optimization: int = 86400     # 24 hours

    @classmethod
    def from_env(cls, *, environ: Mapping[str, str] | None = None) -> CacheTTL:
        """Build a ``CacheTTL`` instance, applying environment overrides."""
        env = EnvReader(prefix="FOLIO_CACHE_TTL_", environ=environ)
        defaults = cls()
        return cls(
            **{
                f.name: env.integer(f.name.upper(), getattr(defaults, f.name), 0, MAX_TTL_SECONDS)
                for f in fields(cls)
            }
        )

    def ttl_for(self, category: str) -> int:
        """Return TTL seconds for a calculation type, falling back to ``default``."""
        value = getattr(self, category, None)
        return value if isinstance(value, int) else self.default
