"""Unit tests for folio_analytics.analytics.performance."""

from __future__ import annotations

import time
from datetime import date
from decimal import Decimal

import pytest

from folio_analytics import (
    AnalyticsCalculationError,
    AnalyticsSettings,
    AnalyticsValidationError,
    CashFlowEvent,
    ErrorReason,
    FlowType,
    PerformanceCalculator,
    Period,
    ReturnObservation,
)
from folio_analytics.analytics import period_return

D = Decimal


def _event(day: date, amount: str, flow_type: FlowType | str) -> dict[str, object]:
    return {"date": day, "amount": D(amount), "type": flow_type}


@pytest.fixture
def calculator() -> PerformanceCalculator:
    return PerformanceCalculator()


class TestTimeWeightedReturn:
    """Chain-linked sub-period returns."""

    def test_simple_growth(self, calculator) -> None:
        events = [
            _event(date(2023, 1, 1), "10000", "current_value"),
            _event(date(2023, 12, 31), "12000", "current_value"),
        ]
        assert calculator.calculate_time_weighted_return(events) == D("20.00")

    def test_single_period_record(self, calculator) -> None:
        periods = [{"start_value": D(10_000), "end_value": D(11_000)}]
        assert calculator.calculate_time_weighted_return(periods) == D("10.00")

    def test_chain_links_period_records(self, calculator) -> None:
        periods = [
            {"start_value": 100, "end_value": 110},
            {"start_value": 110, "end_value": 121},
        ]
        assert calculator.calculate_time_weighted_return(periods) == D("21.00")

    def test_contribution_splits_periods(self, calculator) -> None:
        events = [
            _event(date(2023, 1, 1), "100000", FlowType.VALUE),
            _event(date(2023, 6, 1), "113000", FlowType.VALUE),
            _event(date(2023, 6, 1), "-7000", FlowType.BUY),
            _event(date(2023, 12, 31), "135072", FlowType.VALUE),
        ]

        periods = calculator.break_into_periods(events)

        assert [(p.start_date, p.end_date) for p in periods] == [
            (date(2023, 1, 1), date(2023, 6, 1)),
            (date(2023, 6, 1), date(2023, 12, 31)),
        ]
        assert periods[1].start_value == D(120_000)
        assert calculator.calculate_time_weighted_return(events) == D("27.19")

    def test_splitting_is_idempotent(self, calculator) -> None:
        events = [
            _event(date(2023, 1, 1), "100000", FlowType.VALUE),
            _event(date(2023, 6, 1), "113000", FlowType.VALUE),
            _event(date(2023, 6, 1), "-7000", FlowType.BUY),
            _event(date(2023, 12, 31), "135072", FlowType.VALUE),
        ]
        periods = calculator.break_into_periods(events)

        assert calculator.calculate_time_weighted_return(periods) == calculator.calculate_time_weighted_return(events)

    def test_events_are_sorted_by_date(self, calculator) -> None:
        events = [
            _event(date(2023, 12, 31), "12000", "value"),
            _event(date(2023, 1, 1), "10000", "value"),
        ]
        assert calculator.calculate_time_weighted_return(events) == D("20.00")

    def test_unvalued_flow_uses_modified_dietz(self, calculator) -> None:
        events = [
            _event(date(2023, 1, 1), "100000", FlowType.VALUE),
            _event(date(2023, 7, 2), "-10000", FlowType.CONTRIBUTION),
            _event(date(2023, 12, 31), "115000", FlowType.VALUE),
        ]

        periods = calculator.break_into_periods(events)

        assert len(periods) == 1
        assert len(periods[0].cash_flows) == 1
        # 5000 gain over 100000 + half of the 10000 contribution
        assert calculator.calculate_time_weighted_return(events) == D("4.76")

    def test_first_flow_opens_period(self, calculator) -> None:
        events = [
            _event(date(2023, 1, 1), "-10000", FlowType.BUY),
            _event(date(2023, 12, 31), "11000", FlowType.CURRENT_VALUE),
        ]
        assert calculator.calculate_time_weighted_return(events) == D("10.00")

    def test_trailing_withdrawal_closes_period(self, calculator) -> None:
        events = [
            _event(date(2023, 1, 1), "100000", FlowType.VALUE),
            _event(date(2023, 12, 31), "110000", FlowType.SELL),
        ]
        assert calculator.calculate_time_weighted_return(events) == D("10.00")

    def test_accepts_event_objects(self, calculator) -> None:
        events = [
            CashFlowEvent(date=date(2023, 1, 1), amount=D(50_000)),
            CashFlowEvent(date=date(2023, 12, 31), amount=D(45_000)),
        ]
        assert calculator.calculate_time_weighted_return(events) == D("-10.00")

    def test_zero_start_value(self, calculator) -> None:
        with pytest.raises(AnalyticsValidationError) as exc:
            calculator.calculate_time_weighted_return([{"start_value": D(0), "end_value": D(100)}])
        assert exc.value.reason == ErrorReason.ZERO_START_VALUE

    def test_invalid_input(self, calculator) -> None:
        with pytest.raises(AnalyticsValidationError) as exc:
            calculator.calculate_time_weighted_return("not a list")
        assert exc.value.reason == ErrorReason.INVALID_INPUT

    def test_insufficient_data(self, calculator) -> None:
        with pytest.raises(AnalyticsValidationError) as exc:
            calculator.calculate_time_weighted_return([_event(date(2023, 1, 1), "100", "value")])
        assert exc.value.reason == ErrorReason.INSUFFICIENT_DATA

    def test_flows_without_valuation(self, calculator) -> None:
        events = [
            _event(date(2023, 1, 1), "-1000", FlowType.BUY),
            _event(date(2023, 2, 1), "-500", FlowType.BUY),
        ]
        with pytest.raises(AnalyticsValidationError) as exc:
            calculator.calculate_time_weighted_return(events)
        assert exc.value.reason == ErrorReason.INSUFFICIENT_DATA

    def test_unknown_event_type(self, calculator) -> None:
        events = [
            _event(date(2023, 1, 1), "100", "value"),
            _event(date(2023, 2, 1), "-10", "dividend"),
        ]
        with pytest.raises(AnalyticsValidationError) as exc:
            calculator.calculate_time_weighted_return(events)
        assert exc.value.reason == ErrorReason.INVALID_INPUT


class TestPeriodReturn:
    def test_plain_period(self) -> None:
        period = Period(date(2023, 1, 1), date(2023, 12, 31), D(200), D(250))
        assert period_return(period) == D("0.25")

    def test_same_day_flow_gets_half_weight(self) -> None:
        flow = CashFlowEvent(date=date(2023, 1, 1), amount=D(-100), type=FlowType.DEPOSIT)
        period = Period(date(2023, 1, 1), date(2023, 1, 1), D(1000), D(1150), (flow,))

        assert period_return(period) == D(50) / D(1050)


class TestMoneyWeightedReturn:
    """IRR via Newton-Raphson with bisection fallback."""

    def test_one_year_round_trip(self, calculator) -> None:
        flows = [
            {"date": date(2021, 1, 1), "amount": D(-1000)},
            {"date": date(2022, 1, 1), "amount": D(1100)},
        ]
        assert calculator.calculate_money_weighted_return(flows) == D("10.00")

    def test_reasonable_range(self, calculator) -> None:
        flows = [
            CashFlowEvent(date=date(2020, 1, 1), amount=D(-10_000), type=FlowType.BUY),
            CashFlowEvent(date=date(2020, 6, 1), amount=D(-2_000), type=FlowType.BUY),
            CashFlowEvent(date=date(2021, 1, 1), amount=D(13_900), type=FlowType.SELL),
        ]
        result = calculator.calculate_money_weighted_return(flows)

        assert D(10) <= result <= D(20)

    def test_multiple_sign_changes(self, calculator) -> None:
        flows = [
            {"date": date(2020, 1, 1), "amount": D(-1000)},
            {"date": date(2021, 1, 1), "amount": D(2300)},
            {"date": date(2022, 1, 1), "amount": D(-1320)},
        ]
        result = calculator.calculate_money_weighted_return(flows)

        assert D(-50) < result < D(100)

    def test_contributions_during_the_year(self, calculator) -> None:
        flows = [
            CashFlowEvent(date=date(2023, 1, 1), amount=D(-10_000), type=FlowType.BUY),
            CashFlowEvent(date=date(2023, 6, 1), amount=D(-5_000), type=FlowType.BUY),
            CashFlowEvent(date=date(2023, 12, 31), amount=D(17_000), type=FlowType.SELL),
        ]
        result = calculator.calculate_money_weighted_return(flows)

        assert D(10) < result < D(20)

    def test_bisection_agrees_with_newton(self, calculator) -> None:
        flows = [
            {"date": date(2023, 1, 1), "amount": D(-10_000)},
            {"date": date(2023, 6, 1), "amount": D(-5_000)},
            {"date": date(2023, 12, 31), "amount": D(17_000)},
        ]
        bisection_only = PerformanceCalculator(AnalyticsSettings(irr_max_iterations=1))

        assert bisection_only.calculate_money_weighted_return(flows) == calculator.calculate_money_weighted_return(flows)

    def test_same_day_flows_are_degenerate(self, calculator) -> None:
        flows = [
            {"date": date(2023, 1, 1), "amount": D(-1000)},
            {"date": date(2023, 1, 1), "amount": D(1000)},
        ]
        with pytest.raises(AnalyticsCalculationError) as exc:
            calculator.calculate_money_weighted_return(flows)
        assert exc.value.reason == ErrorReason.DEGENERATE_CASE

    def test_flat_net_present_value_is_not_a_root(self, calculator) -> None:
        schedule = [(D(0), D(-1000)), (D(0), D(1000))]
        with pytest.raises(AnalyticsCalculationError) as exc:
            calculator._bisection(schedule)
        assert exc.value.reason == ErrorReason.IRR_NOT_BRACKETED

    def test_all_outflows_is_negative_irr(self, calculator) -> None:
        flows = [
            {"date": date(2020, 1, 1), "amount": D(-1000)},
            {"date": date(2021, 1, 1), "amount": D(-500)},
        ]
        with pytest.raises(AnalyticsCalculationError) as exc:
            calculator.calculate_money_weighted_return(flows)
        assert exc.value.reason == ErrorReason.NEGATIVE_IRR

    def test_all_inflows_cannot_be_bracketed(self, calculator) -> None:
        flows = [
            {"date": date(2020, 1, 1), "amount": D(100)},
            {"date": date(2021, 1, 1), "amount": D(100)},
        ]
        with pytest.raises(AnalyticsCalculationError) as exc:
            calculator.calculate_money_weighted_return(flows)
        assert exc.value.reason == ErrorReason.IRR_NOT_BRACKETED

    @pytest.mark.parametrize(
        "flows",
        [
            [{"date": "2020-01-01", "amount": D(-100)}, {"date": date(2021, 1, 1), "amount": D(110)}],
            [{"amount": D(-100)}, {"date": date(2021, 1, 1), "amount": D(110)}],
            [{"date": date(2020, 1, 1), "amount": -100.0}, {"date": date(2021, 1, 1), "amount": D(110)}],
            [42, {"date": date(2021, 1, 1), "amount": D(110)}],
        ],
        ids=["string-date", "missing-date", "float-amount", "not-a-record"],
    )
    def test_invalid_structure(self, calculator, flows) -> None:
        with pytest.raises(AnalyticsValidationError) as exc:
            calculator.calculate_money_weighted_return(flows)
        assert exc.value.reason == ErrorReason.INVALID_CASH_FLOW_STRUCTURE

    def test_single_flow(self, calculator) -> None:
        with pytest.raises(AnalyticsValidationError) as exc:
            calculator.calculate_money_weighted_return([{"date": date(2020, 1, 1), "amount": D(100)}])
        assert exc.value.reason == ErrorReason.INSUFFICIENT_DATA


class TestRollingReturns:
    """Compounded returns over sliding windows."""

    def test_window_count(self, calculator, monthly_returns) -> None:
        rolling = calculator.calculate_rolling_returns(monthly_returns, 12)

        assert len(rolling) == 25
        assert rolling[0].period_start == monthly_returns[0]["date"]
        assert rolling[-1].period_end == monthly_returns[-1]["date"]

    def test_constant_returns_compound(self, calculator, monthly_returns) -> None:
        flat = [{"date": r["date"], "return": D(1)} for r in monthly_returns[:12]]

        (only,) = calculator.calculate_rolling_returns(flat, 12)

        assert only.total_return == D("12.68")
        assert only.annualized_return == D("12.68")

    def test_short_window_is_annualized(self, calculator, monthly_returns) -> None:
        flat = [ReturnObservation(date=r["date"], value=D(1)) for r in monthly_returns[:6]]

        (only,) = calculator.calculate_rolling_returns(flat, 6)

        assert only.total_return == D("6.15")
        assert only.annualized_return == D("12.68")

    def test_lazy_iteration(self, calculator, monthly_returns) -> None:
        iterator = calculator.iter_rolling_returns(monthly_returns, 12)

        first = next(iterator)

        assert first.period_start == monthly_returns[0]["date"]
        assert len(list(iterator)) == 24

    def test_insufficient_periods(self, calculator, monthly_returns) -> None:
        with pytest.raises(AnalyticsValidationError) as exc:
            calculator.iter_rolling_returns(monthly_returns, 40)
        assert exc.value.reason == ErrorReason.INSUFFICIENT_PERIODS

    @pytest.mark.parametrize("window", [0, -3, "12", True])
    def test_invalid_window(self, calculator, monthly_returns, window) -> None:
        with pytest.raises(AnalyticsValidationError) as exc:
            calculator.calculate_rolling_returns(monthly_returns, window)
        assert exc.value.reason == ErrorReason.INVALID_INPUT

    @pytest.mark.parametrize("per_year", [0, -12, True])
    def test_invalid_periods_per_year(self, calculator, monthly_returns, per_year) -> None:
        with pytest.raises(AnalyticsValidationError) as exc:
            calculator.calculate_rolling_returns(monthly_returns, 12, periods_per_year=per_year)
        assert exc.value.reason == ErrorReason.INVALID_INPUT

    def test_return_below_total_loss(self, calculator) -> None:
        returns = [{"date": date(2023, 1, 31), "return": D(-150)}, {"date": date(2023, 2, 28), "return": D(1)}]
        with pytest.raises(AnalyticsValidationError) as exc:
            calculator.calculate_rolling_returns(returns, 1)
        assert exc.value.reason == ErrorReason.INVALID_INPUT

    def test_analysis(self, calculator, monthly_returns) -> None:
        analysis = calculator.analyze_rolling_returns(monthly_returns, 12)

        annualized = [p.annualized_return for p in analysis.periods]
        assert len(analysis.periods) == 25
        assert analysis.best_period.annualized_return == max(annualized)
        assert analysis.worst_period.annualized_return == min(annualized)
        assert min(annualized) <= analysis.average_return <= max(annualized)
        assert analysis.volatility >= 0


@pytest.mark.slow
class TestPerformanceBudgets:
    def test_twr_over_five_years_of_events(self, calculator, large_transaction_set) -> None:
        started = time.perf_counter()
        result = calculator.calculate_time_weighted_return(large_transaction_set)
        elapsed = time.perf_counter() - started

        assert elapsed < 0.5
        assert result > D(-100)

    def test_mwr_over_500_flows(self, calculator, large_cash_flow_set) -> None:
        started = time.perf_counter()
        result = calculator.calculate_money_weighted_return(large_cash_flow_set)
        elapsed = time.perf_counter() - started

        assert elapsed < 1.0
        assert D(-100) < result < D(100)
