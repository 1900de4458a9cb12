"""Tests for the SQLite market data and snapshot stores."""

import pytest

from conftest import HOUR_MS, REFERENCE_MS, utc
from cryptosignal.data.database import SignalDatabase
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
from cryptosignal.data.store import SqliteMarketDataStore, SqliteSignalSnapshotStore
from cryptosignal.exceptions import StoreNotConnectedError


@pytest.fixture
def db_path(tmp_path) -> str:
    """Database path inside a directory that does not exist yet."""
    return str(tmp_path / "nested" / "signals.db")


class TestSignalDatabase:
    """Tests for connection lifecycle."""

    def test_db_before_connect(self, db_path: str) -> None:
        with pytest.raises(StoreNotConnectedError):
            _ = SignalDatabase(db_path).db

    @pytest.mark.asyncio
    async def test_db_after_close(self, db_path: str) -> None:
        database = SignalDatabase(db_path)
        await database.connect()
        await database.close()

        with pytest.raises(StoreNotConnectedError):
            _ = database.db

    @pytest.mark.asyncio
    async def test_reconnect_keeps_rows(self, db_path: str) -> None:
        async with SignalDatabase(db_path) as database:
            await SqliteMarketDataStore(database).insert_etf_flows([EtfFlowRow(1.0, REFERENCE_MS)])

        async with SignalDatabase(db_path) as database:
            rows = await SqliteMarketDataStore(database).latest_etf_flows(10, None)

        assert rows == [EtfFlowRow(1.0, REFERENCE_MS)]


class TestMarketDataReads:
    """Tests for newest-first reads with limits and as-of bounds."""

    @pytest.mark.asyncio
    async def test_funding_filters(self, db_path: str) -> None:
        async with SignalDatabase(db_path) as database:
            store = SqliteMarketDataStore(database)
            await store.insert_funding_rates(
                "BTCUSDT",
                "1h",
                [
                    FundingRateRow("Binance", 0.01, REFERENCE_MS - HOUR_MS),
                    FundingRateRow("Binance", 0.02, REFERENCE_MS),
                    FundingRateRow("OKX", 0.03, REFERENCE_MS),
                    FundingRateRow("OKX", 0.04, REFERENCE_MS + HOUR_MS),
                ],
            )

            rows = await store.latest_funding_rates("BTCUSDT", "1h", {}, 10, REFERENCE_MS)
            binance = await store.latest_funding_rates("BTCUSDT", "1h", {"exchange": "Binance"}, 1)
            minute = await store.latest_funding_rates("BTCUSDT", "1m", {}, 10)

        assert [r.time for r in rows] == [REFERENCE_MS, REFERENCE_MS, REFERENCE_MS - HOUR_MS]
        assert binance == [FundingRateRow("Binance", 0.02, REFERENCE_MS)]
        assert minute == []

    @pytest.mark.asyncio
    async def test_insert_replaces_same_key(self, db_path: str) -> None:
        async with SignalDatabase(db_path) as database:
            store = SqliteMarketDataStore(database)
            await store.insert_spot_prices("BTCUSDT", "1h", [SpotPriceRow(100.0, REFERENCE_MS)])
            await store.insert_spot_prices("BTCUSDT", "1h", [SpotPriceRow(101.0, REFERENCE_MS)])
            rows = await store.latest_spot_prices("BTCUSDT", "1h", 10, None)

        assert rows == [SpotPriceRow(101.0, REFERENCE_MS)]

    @pytest.mark.asyncio
    async def test_open_interest_unit(self, db_path: str) -> None:
        async with SignalDatabase(db_path) as database:
            store = SqliteMarketDataStore(database)
            await store.insert_open_interest("BTC", "1h", "usd", [OpenInterestRow(5.0, REFERENCE_MS)])
            await store.insert_open_interest("BTC", "1h", "coin", [OpenInterestRow(1.0, REFERENCE_MS)])
            rows = await store.latest_open_interest("BTC", "1h", "usd", 10, None)

        assert rows == [OpenInterestRow(5.0, REFERENCE_MS)]

    @pytest.mark.asyncio
    async def test_whale_bounds(self, db_path: str) -> None:
        transfers = [
            WhaleTransferRow(1.0, "Binance", None, 100),
            WhaleTransferRow(2.0, None, "Kraken", 200),
            WhaleTransferRow(3.0, None, None, 300),
        ]
        async with SignalDatabase(db_path) as database:
            store = SqliteMarketDataStore(database)
            await store.insert_whale_transfers("BTC", transfers)
            bounded = await store.latest_whale_transfers("BTC", 150, 10, 250)
            everything = await store.latest_whale_transfers("BTC", None, 10, None)

        assert bounded == [transfers[1]]
        assert [r.block_timestamp for r in everything] == [300, 200, 100]

    @pytest.mark.asyncio
    async def test_daily_series(self, db_path: str) -> None:
        async with SignalDatabase(db_path) as database:
            store = SqliteMarketDataStore(database)
            await store.insert_fear_greed(
                [
                    FearGreedRow(40, "Fear", REFERENCE_MS - 24 * HOUR_MS),
                    FearGreedRow(None, None, REFERENCE_MS),
                ]
            )
            rows = await store.fear_greed_history(10, None)

        assert rows[0] == FearGreedRow(None, None, REFERENCE_MS)
        assert rows[1].value == 40

    @pytest.mark.asyncio
    async def test_microstructure_series(self, db_path: str) -> None:
        async with SignalDatabase(db_path) as database:
            store = SqliteMarketDataStore(database)
            await store.insert_spot_orderbook(
                "BTC", "1m", [OrderbookRow(10.0, 5.0, 1.0, 0.5, REFERENCE_MS)]
            )
            await store.insert_spot_taker_volume("BTC", "1h", [TakerVolumeRow(3.0, 1.0, REFERENCE_MS)])
            await store.insert_spot_taker_volume(
                "BTC", "1h", [TakerVolumeRow(9.0, 9.0, REFERENCE_MS)], exchange="Binance"
            )
            await store.insert_liquidations("BTC", "1h", [LiquidationRow(7.0, None, REFERENCE_MS)])

            book = await store.latest_spot_orderbook("BTC", "1m", 1, REFERENCE_MS)
            taker = await store.latest_spot_taker_volume("BTC", "1h", {"exchange": "all"}, 10, None)
            liq = await store.latest_liquidations("BTC", "1h", 10, None)

        assert book == [OrderbookRow(10.0, 5.0, 1.0, 0.5, REFERENCE_MS)]
        assert taker == [TakerVolumeRow(3.0, 1.0, REFERENCE_MS)]
        assert liq == [LiquidationRow(7.0, None, REFERENCE_MS)]


class TestSnapshotStore:
    """Tests for snapshot persistence and outcome back-filling."""

    @pytest.mark.asyncio
    async def test_insert_and_backfill(self, db_path: str) -> None:
        window = (utc(2024, 1, 1), utc(2024, 3, 1))
        async with SignalDatabase(db_path) as database:
            store = SqliteSignalSnapshotStore(database)
            snapshot_id = await store.insert_snapshot(
                SignalSnapshotRecord(
                    symbol="btc",
                    generated_at=utc(2024, 2, 1, 8),
                    signal_rule="BUY",
                    score=2.3,
                    confidence=0.46,
                    price_now=100.0,
                    features={"symbol": "BTC", "etf": {}},
                )
            )

            pending = await store.get_pending_snapshots("BTC", utc(2024, 2, 2))
            unlabelled = await store.get_labeled_snapshots("BTC", *window)
            await store.backfill_outcome(snapshot_id, 110.0, "UP", 10.0)
            labelled = await store.get_labeled_snapshots("BTC", *window)
            still_pending = await store.get_pending_snapshots("BTC", utc(2024, 2, 2))

        assert [s.id for s in pending] == [snapshot_id]
        assert pending[0].features == {"symbol": "BTC", "etf": {}}
        assert pending[0].generated_at == utc(2024, 2, 1, 8)
        assert unlabelled == []
        assert len(labelled) == 1
        assert labelled[0].symbol == "BTC"
        assert labelled[0].price_future == 110.0
        assert labelled[0].label_direction == "UP"
        assert labelled[0].label_magnitude == 10.0
        assert still_pending == []

    @pytest.mark.asyncio
    async def test_labelled_window_is_inclusive_and_ordered(self, db_path: str) -> None:
        async with SignalDatabase(db_path) as database:
            store = SqliteSignalSnapshotStore(database)
            for day in (3, 1, 2, 5):
                await store.insert_snapshot(
                    SignalSnapshotRecord(
                        symbol="BTC",
                        generated_at=utc(2024, 2, day),
                        signal_rule="SELL",
                        price_now=100.0,
                        price_future=99.0,
                        label_direction="DOWN",
                        label_magnitude=-1.0,
                    )
                )
            rows = await store.get_labeled_snapshots("BTC", utc(2024, 2, 1), utc(2024, 2, 3))

        assert [r.generated_at.day for r in rows] == [1, 2, 3]
