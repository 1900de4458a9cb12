"""Shared test fixtures: in-memory market data and snapshot store fakes."""

from datetime import datetime, timezone

import pytest

from cryptosignal.config import AppSettings, BacktestSettings, FeatureSettings, SignalSettings
from cryptosignal.data.models import (
    EtfFlowRow,
    FearGreedRow,
    FundingRateRow,
    LiquidationRow,
    OpenInterestRow,
    OrderbookRow,
    SignalSnapshotRecord,
    SpotPriceRow,
    TakerVolumeRow,
    WhaleTransferRow,
)
from cryptosignal.data.repository import MarketDataRepository, SignalSnapshotStore

#: 2024-03-01T12:00:00Z
REFERENCE_MS = 1_709_294_400_000
HOUR_MS = 3_600_000


def _bounded(rows: list, as_of_ms: int | None, limit: int) -> list:
    if as_of_ms is not None:
        rows = [r for r in rows if (r.time or 0) <= as_of_ms]
    return sorted(rows, key=lambda r: r.time or 0, reverse=True)[:limit]


class FakeMarketData(MarketDataRepository):
    """In-memory MarketDataRepository.

    Each attribute holds rows in any order; reads sort newest first, apply
    the as-of bound and the limit, and record the call arguments.
    """

    def __init__(self) -> None:
        self.funding: dict[str, list[FundingRateRow]] = {}  # keyed by interval
        self.open_interest: list[OpenInterestRow] = []
        self.whales: list[WhaleTransferRow] = []
        self.etf: list[EtfFlowRow] = []
        self.fear_greed: list[FearGreedRow] = []
        self.orderbook: list[OrderbookRow] = []
        self.taker: list[TakerVolumeRow] = []
        self.prices: list[SpotPriceRow] = []
        self.liquidations: list[LiquidationRow] = []
        self.calls: list[tuple] = []

    async def latest_funding_rates(self, pair, interval, filters, limit, as_of_ms=None):
        self.calls.append(("funding", pair, interval, limit, as_of_ms))
        return _bounded(self.funding.get(interval, []), as_of_ms, limit)

    async def latest_open_interest(self, symbol, interval, unit, limit, as_of_ms):
        self.calls.append(("open_interest", symbol, interval, unit, limit, as_of_ms))
        return _bounded(self.open_interest, as_of_ms, limit)

    async def latest_whale_transfers(self, symbol, since_ts, limit, before_ts):
        self.calls.append(("whales", symbol, since_ts, limit, before_ts))
        rows = [
            r
            for r in self.whales
            if (since_ts is None or (r.block_timestamp or 0) >= since_ts)
            and (before_ts is None or (r.block_timestamp or 0) <= before_ts)
        ]
        return sorted(rows, key=lambda r: r.block_timestamp or 0, reverse=True)[:limit]

    async def latest_etf_flows(self, limit, as_of_ms):
        self.calls.append(("etf", limit, as_of_ms))
        return _bounded(self.etf, as_of_ms, limit)

    async def fear_greed_history(self, limit, as_of_ms):
        self.calls.append(("fear_greed", limit, as_of_ms))
        return _bounded(self.fear_greed, as_of_ms, limit)

    async def latest_spot_orderbook(self, symbol, interval, limit, as_of_ms):
        self.calls.append(("orderbook", symbol, interval, limit, as_of_ms))
        return _bounded(self.orderbook, as_of_ms, limit)

    async def latest_spot_taker_volume(self, symbol, interval, filters, limit, as_of_ms):
        self.calls.append(("taker", symbol, interval, limit, as_of_ms))
        return _bounded(self.taker, as_of_ms, limit)

    async def latest_spot_prices(self, pair, interval, limit, as_of_ms):
        self.calls.append(("prices", pair, interval, limit, as_of_ms))
        return _bounded(self.prices, as_of_ms, limit)

    async def latest_liquidations(self, symbol, interval, limit, as_of_ms):
        self.calls.append(("liquidations", symbol, interval, limit, as_of_ms))
        return _bounded(self.liquidations, as_of_ms, limit)


class FakeSnapshotStore(SignalSnapshotStore):
    """In-memory SignalSnapshotStore with the same filtering as the SQLite store."""

    def __init__(self, records: list[SignalSnapshotRecord] | None = None) -> None:
        self.records: list[SignalSnapshotRecord] = []
        self.queries: list[tuple] = []
        for record in records or []:
            self._append(record)

    def _append(self, record: SignalSnapshotRecord) -> int:
        record.id = len(self.records) + 1
        self.records.append(record)
        return record.id

    async def get_labeled_snapshots(self, symbol, start, end):
        self.queries.append((symbol, start, end))
        rows = [
            r
            for r in self.records
            if r.symbol == symbol and r.price_future is not None and start <= r.generated_at <= end
        ]
        return sorted(rows, key=lambda r: r.generated_at)

    async def insert_snapshot(self, record):
        return self._append(record)

    async def get_pending_snapshots(self, symbol, before):
        return [
            r
            for r in self.records
            if r.symbol == symbol and r.price_future is None and r.generated_at <= before
        ]

    async def backfill_outcome(self, snapshot_id, price_future, label_direction, label_magnitude):
        record = self.records[snapshot_id - 1]
        record.price_future = price_future
        record.label_direction = label_direction
        record.label_magnitude = label_magnitude


def utc(*args: int) -> datetime:
    """Shorthand for an aware UTC datetime."""
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def market_data() -> FakeMarketData:
    return FakeMarketData()


@pytest.fixture
def feature_settings() -> FeatureSettings:
    return FeatureSettings()


@pytest.fixture
def signal_settings() -> SignalSettings:
    return SignalSettings()


@pytest.fixture
def backtest_settings() -> BacktestSettings:
    return BacktestSettings()


@pytest.fixture
def mock_settings(tmp_path) -> AppSettings:
    """AppSettings with a temporary database path."""
    settings = AppSettings(log_level="DEBUG")
    settings.storage.db_path = str(tmp_path / "signals.db")
    return settings
