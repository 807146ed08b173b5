"""
Folio Analytics Command Line Interface.

Usage:
    folio-analytics --help
    folio-analytics info
    folio-analytics twr transactions.csv
    folio-analytics mwr cash_flows.csv
    folio-analytics drawdown values.csv --column value --threshold 0.1
    folio-analytics rolling monthly_returns.csv --window 12
    folio-analytics optimize universe.yaml --objective max-sharpe --risk-free 0.03
    folio-analytics frontier universe.yaml --points 20
"""

from __future__ import annotations

import argparse
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from . import __version__


def _decimal_arg(text: str) -> Decimal:
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a decimal number: {text!r}") from None
    if not value.is_finite():
        raise argparse.ArgumentTypeError(f"not a finite number: {text!r}")
    return value


def _read_csv(path: str):
    import pandas as pd

    return pd.read_csv(Path(path).expanduser())


def load_universe(path: str) -> tuple[list[Any], list[list[Decimal]]]:
    """Read assets and their correlation matrix from a YAML file."""
    import yaml

    from .common.enums import ErrorReason
    from .common.errors import AnalyticsValidationError
    from .common.frames import to_decimal
    from .common.types import AssetStatistics

    with open(Path(path).expanduser(), encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}
    if not isinstance(payload, dict) or "assets" not in payload or "correlation_matrix" not in payload:
        raise AnalyticsValidationError(ErrorReason.INVALID_INPUT, f"{path}: needs 'assets' and 'correlation_matrix'")

    def number(value: Any, field: str) -> Decimal:
        parsed = to_decimal(value)
        if parsed is None:
            raise AnalyticsValidationError(ErrorReason.INVALID_INPUT, f"{path}: invalid {field} {value!r}")
        return parsed

    assets = []
    for position, entry in enumerate(payload["assets"] or []):
        expected = entry.get("expected_return")
        assets.append(
            AssetStatistics(
                symbol=str(entry.get("symbol", f"asset_{position}")),
                volatility=number(entry.get("volatility"), "volatility"),
                expected_return=None if expected is None else number(expected, "expected_return"),
            )
        )
    matrix = [[number(v, "correlation") for v in row] for row in payload["correlation_matrix"] or []]
    return assets, matrix


def _print_portfolio(title: str, result) -> None:
    print(f"{title}:")
    for symbol, weight in result.weights.items():
        print(f"  {symbol}: {weight:.4%}")
    print(f"  Volatility: {result.portfolio_volatility:.4%}")
    if result.expected_return is not None:
        print(f"  Expected Return: {result.expected_return:.4%}")
    if result.sharpe_ratio is not None:
        print(f"  Sharpe Ratio: {result.sharpe_ratio:.4f}")


def cmd_info(args) -> None:
    """Show package and configuration information."""
    settings = args.settings
    print(f"Folio Analytics v{__version__}")
    print(f"\nDecimal Precision: {settings.decimal_precision}")
    print(f"IRR Max Iterations: {settings.irr_max_iterations}")
    print(f"IRR Tolerance: {settings.irr_tolerance}")
    print(f"Default Risk-Free Rate: {settings.risk_free_rate}")
    print(f"Periods Per Year: {settings.periods_per_year}")


def cmd_twr(args) -> None:
    """Time-weighted return of a transaction CSV."""
    from .analytics import PerformanceCalculator
    from .common.frames import cash_flows_from_frame, periods_to_frame

    events = cash_flows_from_frame(_read_csv(args.path))
    calculator = PerformanceCalculator(args.settings)
    if args.periods:
        print(periods_to_frame(calculator.break_into_periods(events)).to_string(index=False))
        print()
    print(f"Time-Weighted Return: {calculator.calculate_time_weighted_return(events)}%")


def cmd_mwr(args) -> None:
    """Money-weighted return (IRR) of a cash-flow CSV."""
    from .analytics import PerformanceCalculator
    from .common.frames import cash_flows_from_frame

    flows = cash_flows_from_frame(_read_csv(args.path))
    result = PerformanceCalculator(args.settings).calculate_money_weighted_return(flows)
    print(f"Money-Weighted Return: {result}%")


def cmd_drawdown(args) -> None:
    """Drawdown statistics for a column of portfolio values."""
    from .analytics import DrawdownCalculator
    from .common.frames import drawdown_history_to_frame, values_from_series

    frame = _read_csv(args.path)
    if args.column not in frame.columns:
        print(f"[X] Column not found: {args.column}", file=sys.stderr)
        sys.exit(1)
    values = values_from_series(frame[args.column])
    calculator = DrawdownCalculator(args.settings)
    result = calculator.calculate(values)

    print(f"Max Drawdown: {result.max_drawdown_percentage}%")
    print(f"  Peak: {result.peak_value} (index {result.peak_index})")
    print(f"  Trough: {result.trough_value} (index {result.trough_index})")
    recovery = "not recovered" if result.recovery_periods is None else f"{result.recovery_periods} periods"
    print(f"  Recovery: {recovery}")
    print(f"Current Drawdown: {result.current_drawdown}")
    print(f"Underwater Periods: {result.underwater_periods}")

    if args.threshold is not None:
        history = calculator.calculate_history(values, args.threshold)
        print(f"\nDrawdowns deeper than {args.threshold} ({len(history)}):")
        if history:
            print(drawdown_history_to_frame(history).to_string(index=False))


def cmd_rolling(args) -> None:
    """Rolling annualized returns over a periodic return CSV."""
    from .analytics import PerformanceCalculator
    from .common.frames import returns_from_frame, rolling_returns_to_frame

    observations = returns_from_frame(_read_csv(args.path))
    analysis = PerformanceCalculator(args.settings).analyze_rolling_returns(
        observations,
        args.window,
        periods_per_year=args.periods_per_year,
    )
    print(rolling_returns_to_frame(analysis.periods).to_string(index=False))
    print(f"\nBest: {analysis.best_period.annualized_return}% ending {analysis.best_period.period_end}")
    print(f"Worst: {analysis.worst_period.annualized_return}% ending {analysis.worst_period.period_end}")
    print(f"Average: {analysis.average_return}%")
    print(f"Volatility: {analysis.volatility}%")


def cmd_optimize(args) -> None:
    """Optimize a universe described in YAML."""
    from .optimization import PortfolioOptimizer

    assets, matrix = load_universe(args.path)
    optimizer = PortfolioOptimizer(args.settings)
    if args.objective == "min-variance":
        result = optimizer.find_minimum_variance(assets, matrix, args.risk_free)
    elif args.objective == "max-sharpe":
        result = optimizer.maximize_sharpe(assets, matrix, args.risk_free)
    else:
        if args.target is None:
            print("[X] --target is required for target-return", file=sys.stderr)
            sys.exit(1)
        result = optimizer.optimize_target_return(assets, matrix, args.target, args.risk_free)
    _print_portfolio(args.objective, result)


def cmd_frontier(args) -> None:
    """Efficient frontier for a universe described in YAML."""
    from .optimization import EfficientFrontier

    assets, matrix = load_universe(args.path)
    frontier = EfficientFrontier(args.settings).generate(assets, matrix, args.points, args.risk_free)
    print(f"{'Return':>10} {'Volatility':>12} {'Sharpe':>8}")
    for portfolio in frontier.portfolios:
        sharpe = "-" if portfolio.sharpe_ratio is None else f"{portfolio.sharpe_ratio:.3f}"
        print(f"{portfolio.expected_return:>10.4%} {portfolio.portfolio_volatility:>12.4%} {sharpe:>8}")
    print()
    _print_portfolio("Minimum Variance", frontier.min_variance_portfolio)
    _print_portfolio("Tangency", frontier.tangency_portfolio)


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    from .common.errors import AnalyticsError
    from .observability import configure_logging
    from .settings import load_settings

    parser = argparse.ArgumentParser(
        prog="folio-analytics",
        description="Folio Analytics - Portfolio Performance and Risk Analytics",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="Override FOLIO_LOG_LEVEL")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    info_parser = subparsers.add_parser("info", help="Show package information")
    info_parser.set_defaults(func=cmd_info)

    twr_parser = subparsers.add_parser("twr", help="Time-weighted return")
    twr_parser.add_argument("path", help="CSV with date, amount, type columns")
    twr_parser.add_argument("--periods", action="store_true", help="Also print the sub-periods")
    twr_parser.set_defaults(func=cmd_twr)

    mwr_parser = subparsers.add_parser("mwr", help="Money-weighted return (IRR)")
    mwr_parser.add_argument("path", help="CSV with date, amount columns")
    mwr_parser.set_defaults(func=cmd_mwr)

    drawdown_parser = subparsers.add_parser("drawdown", help="Drawdown analysis")
    drawdown_parser.add_argument("path", help="CSV with a portfolio value column")
    drawdown_parser.add_argument("--column", default="value", help="Value column name")
    drawdown_parser.add_argument("--threshold", type=_decimal_arg, default=None, help="List episodes deeper than this ratio")
    drawdown_parser.set_defaults(func=cmd_drawdown)

    rolling_parser = subparsers.add_parser("rolling", help="Rolling annualized returns")
    rolling_parser.add_argument("path", help="CSV with date, return (percent) columns")
    rolling_parser.add_argument("--window", type=int, required=True, help="Window size in periods")
    rolling_parser.add_argument("--periods-per-year", type=int, default=None, help="Observations per year")
    rolling_parser.set_defaults(func=cmd_rolling)

    optimize_parser = subparsers.add_parser("optimize", help="Portfolio optimization")
    optimize_parser.add_argument("path", help="YAML with assets and correlation_matrix")
    optimize_parser.add_argument(
        "--objective",
        choices=["min-variance", "max-sharpe", "target-return"],
        default="min-variance",
    )
    optimize_parser.add_argument("--target", type=_decimal_arg, default=None, help="Target expected return")
    optimize_parser.add_argument("--risk-free", type=_decimal_arg, default=None, help="Risk-free rate")
    optimize_parser.set_defaults(func=cmd_optimize)

    frontier_parser = subparsers.add_parser("frontier", help="Efficient frontier")
    frontier_parser.add_argument("path", help="YAML with assets and correlation_matrix")
    frontier_parser.add_argument("--points", type=int, default=50, help="Number of frontier points")
    frontier_parser.add_argument("--risk-free", type=_decimal_arg, default=None, help="Risk-free rate")
    frontier_parser.set_defaults(func=cmd_frontier)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    settings = load_settings()
    configure_logging(args.log_level or settings.log_level, json_format=settings.log_json, log_file=settings.log_file)
    args.settings = settings

    try:
        args.func(args)
    except AnalyticsError as exc:
        print(f"[X] {exc.reason}: {exc.user_message}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
