"""High-level entry points for running signal backtests.

Provides run_backtest() for programmatic use against the SQLite store and
main() for the ``cryptosignal-backtest`` command.

Usage:
    cryptosignal-backtest --symbol BTC --days 14
    cryptosignal-backtest --symbol ETH --start 2024-01-01 --end 2024-02-01
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time

from cryptosignal.backtest.models import BacktestOptions, BacktestReport
from cryptosignal.backtest.service import BacktestService
from cryptosignal.config import AppSettings
from cryptosignal.data.database import SignalDatabase
from cryptosignal.data.store import SqliteSignalSnapshotStore
from cryptosignal.exceptions import InvalidBacktestOptionError
from cryptosignal.logging import get_logger, setup_logging

logger = get_logger(__name__)


async def run_backtest(
    options: BacktestOptions,
    db_path: str | None = None,
    settings: AppSettings | None = None,
) -> BacktestReport:
    """Open the snapshot database and run one backtest.

    Args:
        options: Symbol and window selection.
        db_path: SQLite path. Defaults to ``settings.storage.db_path``.
        settings: Application settings. Defaults to AppSettings().

    Returns:
        BacktestReport for the selected window.
    """
    if settings is None:
        settings = AppSettings()
    db_path = db_path or settings.storage.db_path

    start_time = time.monotonic()
    async with SignalDatabase(db_path) as database:
        service = BacktestService(SqliteSignalSnapshotStore(database), settings.backtest)
        report = await service.run(options)

    logger.info(
        "run_backtest_complete",
        symbol=report.symbol,
        total=report.total,
        db_path=db_path,
        elapsed_seconds=round(time.monotonic() - start_time, 2),
    )
    return report


def format_report(report: BacktestReport) -> str:
    """Render the report header and metric table as plain text."""
    header = (
        f"Backtest {report.symbol} {report.to_dict()['start']} -> "
        f"{report.to_dict()['end']} ({report.total} snapshots)"
    )
    m = report.metrics
    if m is None:
        return header

    rows = [
        ("Win Rate", f"{m.win_rate * 100:,.2f}%"),
        ("Buy Trades", str(m.buy_trades)),
        ("Sell Trades", str(m.sell_trades)),
        ("Neutral Trades", str(m.neutral_trades)),
        ("Avg Return BUY", f"{m.avg_return_buy_pct:,.2f}%"),
        ("Avg Return SELL", f"{m.avg_return_sell_pct:,.2f}%"),
        ("Avg Return ALL", f"{m.avg_return_all_pct:,.2f}%"),
        ("Expectancy", f"{m.expectancy_pct:,.2f}%"),
        ("Max Drawdown", f"{m.max_drawdown_pct:,.2f}%"),
    ]
    label_width = max(len("Metric"), *(len(label) for label, _ in rows))
    value_width = max(len("Value"), *(len(value) for _, value in rows))
    rule = f"+-{'-' * label_width}-+-{'-' * value_width}-+"

    lines = [header, rule, f"| {'Metric':<{label_width}} | {'Value':<{value_width}} |", rule]
    lines.extend(f"| {label:<{label_width}} | {value:<{value_width}} |" for label, value in rows)
    lines.append(rule)
    return "\n".join(lines)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cryptosignal-backtest",
        description="Run the rule-based signal backtest over labelled snapshots",
    )
    parser.add_argument("--symbol", default=None, help="Symbol to evaluate (default BTC)")
    parser.add_argument("--start", default=None, help="ISO start date")
    parser.add_argument("--end", default=None, help="ISO end date")
    parser.add_argument(
        "--days", type=int, default=None, help="Lookback days if start not provided"
    )
    parser.add_argument("--db-path", default=None, help="SQLite database path")
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns the process exit code."""
    args = _build_parser().parse_args(argv)
    settings = AppSettings()
    setup_logging(settings.log_level)

    options = BacktestOptions(
        symbol=args.symbol,
        start=args.start,
        end=args.end,
        lookback_days=args.days,
    )

    try:
        report = asyncio.run(run_backtest(options, db_path=args.db_path, settings=settings))
    except InvalidBacktestOptionError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    if report.total == 0:
        print("No labeled snapshots available for the selected window.", file=sys.stderr)
        return 0

    print(format_report(report))
    return 0


if __name__ == "__main__":
    sys.exit(main())
