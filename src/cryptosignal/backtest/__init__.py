"""Backtest package.

Replays persisted, outcome-labelled signal snapshots into win rate,
returns, expectancy, drawdown and an equity timeline.
"""

from cryptosignal.backtest.models import (
    BacktestMetrics,
    BacktestOptions,
    BacktestReport,
    TimelinePoint,
)
from cryptosignal.backtest.runner import format_report, run_backtest
from cryptosignal.backtest.service import BacktestService, average, max_drawdown

__all__ = [
    "BacktestMetrics",
    "BacktestOptions",
    "BacktestReport",
    "BacktestService",
    "TimelinePoint",
    "average",
    "format_report",
    "max_drawdown",
    "run_backtest",
]
