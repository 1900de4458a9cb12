"""Signal snapshot lifecycle: generate, persist, and label outcomes.

generate() builds features, scores them and stores a pending
SignalSnapshotRecord with the price at generation time. backfill() later
looks up the price ``horizon_hours`` after each pending snapshot and writes
the realized direction and magnitude, which is what BacktestService reads.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from cryptosignal.data.models import SignalSnapshotRecord
from cryptosignal.data.repository import MarketDataRepository, SignalSnapshotStore
from cryptosignal.features.builder import FeatureBuilder
from cryptosignal.features.models import FeatureSnapshot
from cryptosignal.features.stats import percent_change
from cryptosignal.logging import get_logger
from cryptosignal.signals.ai import AiSignalService
from cryptosignal.signals.engine import SignalEngine
from cryptosignal.signals.models import AiPrediction, SignalResult
from cryptosignal.timeutil import from_ms, now_ms, to_ms

logger = get_logger(__name__)


def label_outcome(
    price_now: float | None, price_future: float | None
) -> tuple[str, float] | None:
    """Direction and signed percent move between two prices.

    Returns:
        ("UP", pct) when the future price is at or above the current one,
        ("DOWN", pct) otherwise, or None if either price is unknown or the
        current price is zero.
    """
    magnitude = percent_change(price_future, price_now)
    if magnitude is None or price_now is None or price_future is None:
        return None
    direction = "UP" if price_future >= price_now else "DOWN"
    return direction, magnitude


@dataclass(frozen=True)
class GeneratedSignal:
    """Everything produced for one generation step."""

    features: FeatureSnapshot
    rule: SignalResult
    ai: AiPrediction | None = None
    snapshot_id: int | None = None

    def to_dict(self) -> dict:
        return {
            "features": self.features.to_dict(),
            "rule": self.rule.to_dict(),
            "ai": self.ai.to_dict() if self.ai is not None else None,
            "snapshot_id": self.snapshot_id,
        }


class SignalPipeline:
    """Wires FeatureBuilder, SignalEngine and the snapshot store together.

    Args:
        builder: Feature snapshot builder.
        engine: Rule-based scorer.
        store: Snapshot persistence. None disables persistence.
        ai_service: Optional model-backed second opinion.
        market_data: Repository used to look up realized prices in backfill().
            Defaults to none, in which case backfill() is unavailable.
    """

    def __init__(
        self,
        builder: FeatureBuilder,
        engine: SignalEngine,
        store: SignalSnapshotStore | None = None,
        ai_service: AiSignalService | None = None,
        market_data: MarketDataRepository | None = None,
    ) -> None:
        self._builder = builder
        self._engine = engine
        self._store = store
        self._ai_service = ai_service
        self._market_data = market_data

    async def generate(
        self,
        symbol: str = "BTC",
        pair: str = "BTCUSDT",
        interval: str = "1h",
        timestamp_ms: int | None = None,
        persist: bool = True,
    ) -> GeneratedSignal:
        """Build, score and (optionally) persist one signal snapshot."""
        features = await self._builder.build(symbol, pair, interval, timestamp_ms)
        payload = features.to_dict()
        rule = self._engine.score(features)
        ai = self._ai_service.predict(payload) if self._ai_service is not None else None

        snapshot_id = None
        if persist and self._store is not None:
            snapshot_id = await self._store.insert_snapshot(
                SignalSnapshotRecord(
                    symbol=features.symbol,
                    generated_at=features.generated_at,
                    signal_rule=rule.signal.value,
                    score=rule.score,
                    confidence=rule.confidence,
                    price_now=features.microstructure.price.last_close,
                    features=payload,
                )
            )

        logger.info(
            "signal_generated",
            symbol=features.symbol,
            signal=rule.signal.value,
            score=rule.score,
            confidence=rule.confidence,
            reasons=rule.reasons,
            ai_decision=ai.decision.value if ai is not None else None,
            snapshot_id=snapshot_id,
        )
        return GeneratedSignal(features=features, rule=rule, ai=ai, snapshot_id=snapshot_id)

    async def backfill(
        self,
        symbol: str,
        pair: str,
        interval: str = "1h",
        horizon_hours: int = 24,
        as_of_ms: int | None = None,
    ) -> int:
        """Label pending snapshots whose horizon has elapsed.

        Args:
            symbol: Snapshot symbol.
            pair: Spot pair used for the realized price lookup.
            interval: Spot price interval.
            horizon_hours: Distance between generation and the realized price.
            as_of_ms: Reference "now" in epoch ms. Defaults to the current time.

        Returns:
            Number of snapshots labelled.
        """
        if self._store is None or self._market_data is None:
            raise RuntimeError("backfill() requires both a snapshot store and market data")

        horizon = timedelta(hours=horizon_hours)
        reference = from_ms(as_of_ms if as_of_ms is not None else now_ms())
        pending = await self._store.get_pending_snapshots(symbol.upper(), reference - horizon)

        labelled = 0
        for snapshot in pending:
            target_ms = to_ms(snapshot.generated_at + horizon)
            rows = await self._market_data.latest_spot_prices(pair, interval, 1, target_ms)
            price_future = rows[0].close if rows else None
            outcome = label_outcome(snapshot.price_now, price_future)
            if outcome is None or snapshot.id is None or price_future is None:
                logger.debug(
                    "snapshot_outcome_unavailable",
                    snapshot_id=snapshot.id,
                    price_now=snapshot.price_now,
                    price_future=price_future,
                )
                continue

            direction, magnitude = outcome
            await self._store.backfill_outcome(snapshot.id, price_future, direction, magnitude)
            labelled += 1

        logger.info(
            "snapshot_backfill_complete",
            symbol=symbol.upper(),
            pending=len(pending),
            labelled=labelled,
        )
        return labelled
