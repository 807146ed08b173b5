"""Typed access to ``FOLIO_*`` environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

TRUTHY = frozenset({"1", "true", "yes", "on", "y"})


@dataclass(frozen=True)
class EnvReader:
    """
    Reads prefixed variables from a mapping (``os.environ`` by default).

    Unset, blank or unparseable values fall back to the caller's default, so a
    bad override never stops the engine from starting.
    """

    prefix: str = "FOLIO_"
    environ: Mapping[str, str] | None = field(default=None, repr=False)

    def raw(self, key: str) -> str:
        source = os.environ if self.environ is None else self.environ
        value = source.get(f"{self.prefix}{key}")
        return "" if value is None else str(value).strip()

    def text(self, key: str, default: str = "") -> str:
        return self.raw(key) or default

    def flag(self, key: str, default: bool = False) -> bool:
        value = self.raw(key)
        if not value:
            return default
        return value.lower() in TRUTHY

    def integer(self, key: str, default: int, minimum: int, maximum: int) -> int:
        """Parsed integer clamped into ``[minimum, maximum]``."""
        try:
            parsed = int(self.raw(key))
        except ValueError:
            return default
        return max(minimum, min(parsed, maximum))

    def decimal(self, key: str, default: Decimal, *, positive: bool = False) -> Decimal:
        try:
            parsed = Decimal(self.raw(key))
        except InvalidOperation:
            return default
        if not parsed.is_finite() or (positive and parsed <= 0):
            return default
        return parsed
