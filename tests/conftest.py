"""Shared pytest fixtures for folio_analytics tests."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import numpy as np
import pandas as pd
import pytest

from folio_analytics import AssetStatistics, CashFlowEvent, FlowType


def _money(value: float) -> Decimal:
    return Decimal(str(round(value, 2)))


@pytest.fixture
def crash_2008_values() -> list[Decimal]:
    """Peak, slide to a 57% trough and full recovery."""
    raw = [1565150, 1400000, 1200000, 1000000, 800000, 676530, 750000, 900000, 1100000, 1300000, 1565150]
    return [Decimal(v) for v in raw]


@pytest.fixture
def covid_values() -> list[Decimal]:
    raw = [3386150, 3200000, 2700000, 2237400, 2800000, 3200000, 3500000]
    return [Decimal(v) for v in raw]


@pytest.fixture
def three_assets() -> list[AssetStatistics]:
    return [
        AssetStatistics(symbol="STOCK", expected_return=Decimal("0.12"), volatility=Decimal("0.20")),
        AssetStatistics(symbol="BOND", expected_return=Decimal("0.04"), volatility=Decimal("0.05")),
        AssetStatistics(symbol="REIT", expected_return=Decimal("0.08"), volatility=Decimal("0.15")),
    ]


@pytest.fixture
def three_asset_correlations() -> list[list[Decimal]]:
    return [
        [Decimal("1"), Decimal("0.2"), Decimal("0.3")],
        [Decimal("0.2"), Decimal("1"), Decimal("0.1")],
        [Decimal("0.3"), Decimal("0.1"), Decimal("1")],
    ]


@pytest.fixture
def large_transaction_set() -> list[CashFlowEvent]:
    """Five years of daily valuations with a contribution every 100 days."""
    rng = np.random.default_rng(seed=2023)
    start = date(2019, 1, 1)
    events: list[CashFlowEvent] = []
    for i in range(1, 1826):
        day = start + timedelta(days=i)
        if i % 100 == 0:
            events.append(CashFlowEvent(date=day, amount=_money(-float(rng.uniform(1000, 1200))), type=FlowType.BUY))
        else:
            value = 10000 + i * 5 + float(rng.uniform(0, 1000))
            events.append(CashFlowEvent(date=day, amount=_money(value), type=FlowType.CURRENT_VALUE))
    return events


@pytest.fixture
def large_cash_flow_set() -> list[dict[str, object]]:
    """500 weekly flows: regular investments, periodic payouts, final liquidation."""
    rng = np.random.default_rng(seed=500)
    start = date(2015, 1, 5)
    flows: list[dict[str, object]] = []
    for i in range(500):
        day = start + timedelta(weeks=i)
        if i == 499:
            amount = _money(float(rng.uniform(600_000, 650_000)))
        elif i % 10 == 0:
            amount = _money(float(rng.uniform(500, 700)))
        else:
            amount = _money(-float(rng.uniform(1000, 1500)))
        flows.append({"date": day, "amount": amount})
    return flows


@pytest.fixture
def monthly_returns() -> list[dict[str, object]]:
    """36 monthly returns in percent."""
    rng = np.random.default_rng(seed=36)
    dates = pd.date_range("2021-01-31", periods=36, freq="ME")
    return [
        {"date": ts.date(), "return": Decimal(str(round(float(r), 2)))}
        for ts, r in zip(dates, rng.uniform(-5.0, 6.0, len(dates)))
    ]
