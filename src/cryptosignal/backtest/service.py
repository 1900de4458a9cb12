"""Historical evaluation of persisted signal snapshots.

BacktestService reads labelled snapshots (those with a realized future
price) and computes:
- win rate of directional (BUY/SELL) calls against the realized label
- average BUY, SELL and combined returns, and expectancy
- maximum drawdown of a unit equity curve
- a chronological equity timeline

BUY snapshots earn ``label_magnitude``; SELL snapshots earn its negation.
NEUTRAL snapshots are counted but never traded.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timedelta

from cryptosignal.backtest.models import (
    BacktestMetrics,
    BacktestOptions,
    BacktestReport,
    TimelinePoint,
)
from cryptosignal.config import BacktestSettings
from cryptosignal.data.models import SignalSnapshotRecord
from cryptosignal.data.repository import SignalSnapshotStore
from cryptosignal.exceptions import InvalidBacktestOptionError
from cryptosignal.features.stats import round_half_up
from cryptosignal.logging import get_logger
from cryptosignal.signals.models import SignalDirection
from cryptosignal.timeutil import ensure_utc, from_ms, now_ms, parse_utc

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return from_ms(now_ms())


def _trade_return(snapshot: SignalSnapshotRecord, direction: SignalDirection) -> float:
    magnitude = snapshot.label_magnitude if snapshot.label_magnitude is not None else 0.0
    return -magnitude if direction is SignalDirection.SELL else magnitude


def average(values: Sequence[float | None]) -> float:
    """Mean of the non-null values rounded to 3 decimals; 0.0 when empty."""
    present = [v for v in values if v is not None]
    if not present:
        return 0.0
    return round_half_up(sum(present) / len(present), 3)


def max_drawdown(returns: Sequence[float]) -> float:
    """Most negative peak-to-trough drawdown (percent) of a compounding unit equity curve."""
    if not returns:
        return 0.0

    equity = 1.0
    peak = 1.0
    worst = 0.0
    for ret in returns:
        equity *= 1 + ret / 100
        peak = max(peak, equity)
        worst = min(worst, (equity - peak) / peak * 100)

    return round_half_up(worst, 3)


class BacktestService:
    """Replays labelled signal snapshots into metrics and an equity timeline.

    Args:
        store: Source of persisted snapshots.
        settings: Default symbol and lookback window.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        store: SignalSnapshotStore,
        settings: BacktestSettings | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._settings = settings or BacktestSettings()
        self._clock = clock

    async def run(self, options: BacktestOptions | Mapping | None = None) -> BacktestReport:
        """Run the backtest over ``[start, end]`` for one symbol.

        Args:
            options: BacktestOptions or a mapping with ``symbol``, ``start``,
                ``end`` and optional ``lookback_days``.

        Returns:
            BacktestReport; ``total == 0`` with empty metrics and timeline
            when no labelled snapshot falls inside the window.

        Raises:
            InvalidBacktestOptionError: If ``start`` or ``end`` cannot be parsed.
        """
        if not isinstance(options, BacktestOptions):
            options = BacktestOptions.from_mapping(options)

        symbol = (options.symbol or self._settings.default_symbol).upper()
        now = self._clock()
        lookback = options.lookback_days
        if lookback is None:
            lookback = self._settings.lookback_days
        end = self._resolve_date(options.end, now, "end")
        start = self._resolve_date(options.start, now - timedelta(days=lookback), "start")

        snapshots = await self._store.get_labeled_snapshots(symbol, start, end)

        if not snapshots:
            logger.warning(
                "backtest_no_labeled_snapshots",
                symbol=symbol,
                start=start.isoformat(),
                end=end.isoformat(),
            )
            return BacktestReport(symbol=symbol, start=start, end=end, total=0)

        metrics = self.calculate_metrics(snapshots)
        report = BacktestReport(
            symbol=symbol,
            start=start,
            end=end,
            total=len(snapshots),
            metrics=metrics,
            timeline=self.build_timeline(snapshots),
        )

        logger.info(
            "backtest_complete",
            symbol=symbol,
            total=report.total,
            win_rate=metrics.win_rate,
            expectancy_pct=metrics.expectancy_pct,
            max_drawdown_pct=metrics.max_drawdown_pct,
        )
        return report

    def calculate_metrics(self, snapshots: Sequence[SignalSnapshotRecord]) -> BacktestMetrics:
        """Aggregate metrics over snapshots ordered by ``generated_at``.

        The drawdown path used here compounds all BUY returns first and then
        all SELL returns; the timeline replays them chronologically instead.
        """
        buys: list[SignalSnapshotRecord] = []
        sells: list[SignalSnapshotRecord] = []
        neutral = 0
        for snapshot in snapshots:
            direction = SignalDirection.parse(snapshot.signal_rule)
            if direction is SignalDirection.BUY:
                buys.append(snapshot)
            elif direction is SignalDirection.SELL:
                sells.append(snapshot)
            elif direction is SignalDirection.NEUTRAL:
                neutral += 1

        correct = sum(1 for s in buys if (s.label_direction or "").upper() == "UP")
        correct += sum(1 for s in sells if (s.label_direction or "").upper() == "DOWN")

        buy_returns = [_trade_return(s, SignalDirection.BUY) for s in buys]
        sell_returns = [_trade_return(s, SignalDirection.SELL) for s in sells]
        all_returns = buy_returns + sell_returns

        directional = max(len(buys) + len(sells), 1)
        expectancy = average(all_returns)

        return BacktestMetrics(
            win_rate=round_half_up(correct / directional, 3),
            buy_trades=len(buys),
            sell_trades=len(sells),
            neutral_trades=neutral,
            avg_return_buy_pct=average(buy_returns),
            avg_return_sell_pct=average(sell_returns),
            avg_return_all_pct=expectancy,
            max_drawdown_pct=max_drawdown(all_returns),
            expectancy_pct=expectancy,
        )

    def build_timeline(self, snapshots: Sequence[SignalSnapshotRecord]) -> list[TimelinePoint]:
        """Chronological equity curve over BUY and SELL snapshots."""
        equity = 1.0
        peak = 1.0
        timeline: list[TimelinePoint] = []

        for snapshot in snapshots:
            direction = SignalDirection.parse(snapshot.signal_rule)
            if direction not in (SignalDirection.BUY, SignalDirection.SELL):
                continue

            ret = _trade_return(snapshot, direction)
            equity *= 1 + ret / 100
            peak = max(peak, equity)

            timeline.append(
                TimelinePoint(
                    generated_at=snapshot.generated_at,
                    signal=direction.value,
                    return_pct=round_half_up(ret, 3),
                    cumulative=round_half_up((equity - 1) * 100, 3),
                    drawdown=round_half_up((equity - peak) / peak * 100, 3),
                )
            )

        return timeline

    @staticmethod
    def _resolve_date(value: str | datetime | None, fallback: datetime, field_name: str) -> datetime:
        if isinstance(value, datetime):
            return ensure_utc(value)
        if not value:
            return ensure_utc(fallback)
        try:
            return parse_utc(value)
        except (AttributeError, TypeError, ValueError) as e:
            raise InvalidBacktestOptionError(
                f"Invalid {field_name} date {value!r}. Expected ISO-8601. Error: {e}"
            ) from e
