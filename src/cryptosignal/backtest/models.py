"""Data models for the signal backtest.

BacktestOptions is the caller-facing input; BacktestReport is the output,
made of aggregate BacktestMetrics and a chronological equity timeline.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

from cryptosignal.timeutil import to_iso_zulu


@dataclass(frozen=True)
class BacktestOptions:
    """Backtest window selection.

    ``start``/``end`` accept ISO-8601 strings or datetimes. A missing end
    defaults to now and a missing start to now minus ``lookback_days``;
    malformed strings are rejected by BacktestService rather than replaced
    with defaults.
    """

    symbol: str | None = None
    start: str | datetime | None = None
    end: str | datetime | None = None
    lookback_days: int | None = None

    @classmethod
    def from_mapping(cls, options: Mapping | None) -> BacktestOptions:
        options = options or {}
        return cls(
            symbol=options.get("symbol"),
            start=options.get("start"),
            end=options.get("end"),
            lookback_days=options.get("lookback_days", options.get("days")),
        )


@dataclass(frozen=True)
class BacktestMetrics:
    """Aggregate statistics over labelled snapshots.

    Percent fields are rounded to 3 decimals. ``max_drawdown_pct`` is
    zero or negative.
    """

    win_rate: float
    buy_trades: int
    sell_trades: int
    neutral_trades: int
    avg_return_buy_pct: float
    avg_return_sell_pct: float
    avg_return_all_pct: float
    max_drawdown_pct: float
    expectancy_pct: float

    def to_dict(self) -> dict:
        return {
            "win_rate": self.win_rate,
            "buy_trades": self.buy_trades,
            "sell_trades": self.sell_trades,
            "neutral_trades": self.neutral_trades,
            "avg_return_buy_pct": self.avg_return_buy_pct,
            "avg_return_sell_pct": self.avg_return_sell_pct,
            "avg_return_all_pct": self.avg_return_all_pct,
            "max_drawdown_pct": self.max_drawdown_pct,
            "expectancy_pct": self.expectancy_pct,
        }


@dataclass(frozen=True)
class TimelinePoint:
    """Equity state after one BUY or SELL snapshot."""

    generated_at: datetime
    signal: str
    return_pct: float
    cumulative: float  # (equity - 1) * 100
    drawdown: float  # (equity - peak) / peak * 100

    def to_dict(self) -> dict:
        return {
            "generated_at": to_iso_zulu(self.generated_at),
            "signal": self.signal,
            "return_pct": self.return_pct,
            "cumulative": self.cumulative,
            "drawdown": self.drawdown,
        }


@dataclass(frozen=True)
class BacktestReport:
    """Complete backtest output for one symbol and window.

    ``metrics`` is None when no labelled snapshot falls inside the window.
    """

    symbol: str
    start: datetime
    end: datetime
    total: int
    metrics: BacktestMetrics | None = None
    timeline: list[TimelinePoint] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "start": to_iso_zulu(self.start),
            "end": to_iso_zulu(self.end),
            "total": self.total,
            "metrics": self.metrics.to_dict() if self.metrics is not None else {},
            "timeline": [point.to_dict() for point in self.timeline],
        }
