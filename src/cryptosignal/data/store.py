"""Typed SQLite read/write abstraction for market rows and signal snapshots.

SqliteMarketDataStore implements MarketDataRepository and
SqliteSignalSnapshotStore implements SignalSnapshotStore. All SQL is
isolated behind these two classes.
"""

import json
from collections.abc import Iterable, Sequence
from datetime import datetime

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
from cryptosignal.data.repository import MarketDataRepository, SignalSnapshotStore
from cryptosignal.logging import get_logger
from cryptosignal.timeutil import from_ms, to_ms

logger = get_logger(__name__)


def _exchange_filter(filters: dict | None) -> list[str]:
    """Normalize an ``{"exchange": ...}`` filter into a list of names."""
    if not filters or not filters.get("exchange"):
        return []
    value = filters["exchange"]
    if isinstance(value, str):
        return [value]
    return list(value)


class SqliteMarketDataStore(MarketDataRepository):
    """Market data rows stored in SQLite, read newest first.

    Usage:
        async with SignalDatabase("data/signals.db") as database:
            store = SqliteMarketDataStore(database)
            rows = await store.latest_spot_prices("BTCUSDT", "1h", 120, None)
    """

    def __init__(self, database: SignalDatabase) -> None:
        self._database = database

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def _insert(self, table: str, columns: Sequence[str], data: list[tuple]) -> int:
        if not data:
            return 0
        placeholders = ", ".join("?" for _ in columns)
        cursor = await self._database.db.executemany(
            f"INSERT OR REPLACE INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
            data,
        )
        await self._database.db.commit()
        logger.debug("inserted_rows", table=table, total=len(data), inserted=cursor.rowcount)
        return cursor.rowcount

    async def insert_funding_rates(
        self, pair: str, interval: str, rows: Iterable[FundingRateRow]
    ) -> int:
        return await self._insert(
            "funding_rates",
            ("pair", "exchange", "interval", "time_ms", "close"),
            [(pair, r.exchange, interval, r.time, r.close) for r in rows],
        )

    async def insert_open_interest(
        self, symbol: str, interval: str, unit: str, rows: Iterable[OpenInterestRow]
    ) -> int:
        return await self._insert(
            "open_interest",
            ("symbol", "interval", "unit", "time_ms", "close"),
            [(symbol, interval, unit, r.time, r.close) for r in rows],
        )

    async def insert_whale_transfers(self, symbol: str, rows: Iterable[WhaleTransferRow]) -> int:
        return await self._insert(
            "whale_transfers",
            ("symbol", "block_timestamp", "amount_usd", "from_address", "to_address"),
            [
                (symbol, r.block_timestamp, r.amount_usd, r.from_address, r.to_address)
                for r in rows
            ],
        )

    async def insert_etf_flows(self, rows: Iterable[EtfFlowRow]) -> int:
        return await self._insert(
            "etf_flows", ("time_ms", "flow_usd"), [(r.time, r.flow_usd) for r in rows]
        )

    async def insert_fear_greed(self, rows: Iterable[FearGreedRow]) -> int:
        return await self._insert(
            "fear_greed",
            ("time_ms", "value", "value_classification"),
            [(r.time, r.value, r.value_classification) for r in rows],
        )

    async def insert_spot_orderbook(
        self, symbol: str, interval: str, rows: Iterable[OrderbookRow]
    ) -> int:
        return await self._insert(
            "spot_orderbook",
            (
                "symbol",
                "interval",
                "time_ms",
                "aggregated_bids_usd",
                "aggregated_asks_usd",
                "aggregated_bids_quantity",
                "aggregated_asks_quantity",
            ),
            [
                (
                    symbol,
                    interval,
                    r.time,
                    r.aggregated_bids_usd,
                    r.aggregated_asks_usd,
                    r.aggregated_bids_quantity,
                    r.aggregated_asks_quantity,
                )
                for r in rows
            ],
        )

    async def insert_spot_taker_volume(
        self,
        symbol: str,
        interval: str,
        rows: Iterable[TakerVolumeRow],
        exchange: str = "all",
    ) -> int:
        return await self._insert(
            "spot_taker_volume",
            (
                "symbol",
                "interval",
                "exchange",
                "time_ms",
                "aggregated_buy_volume_usd",
                "aggregated_sell_volume_usd",
            ),
            [
                (
                    symbol,
                    interval,
                    exchange,
                    r.time,
                    r.aggregated_buy_volume_usd,
                    r.aggregated_sell_volume_usd,
                )
                for r in rows
            ],
        )

    async def insert_spot_prices(self, pair: str, interval: str, rows: Iterable[SpotPriceRow]) -> int:
        return await self._insert(
            "spot_prices",
            ("pair", "interval", "time_ms", "close"),
            [(pair, interval, r.time, r.close) for r in rows],
        )

    async def insert_liquidations(
        self, symbol: str, interval: str, rows: Iterable[LiquidationRow]
    ) -> int:
        return await self._insert(
            "liquidations",
            (
                "symbol",
                "interval",
                "time_ms",
                "aggregated_long_liquidation_usd",
                "aggregated_short_liquidation_usd",
            ),
            [
                (
                    symbol,
                    interval,
                    r.time,
                    r.aggregated_long_liquidation_usd,
                    r.aggregated_short_liquidation_usd,
                )
                for r in rows
            ],
        )

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def _select(
        self,
        columns: str,
        table: str,
        conditions: list[str],
        params: list,
        limit: int,
        order_column: str = "time_ms",
    ) -> list[tuple]:
        where = " AND ".join(conditions) if conditions else "1 = 1"
        cursor = await self._database.db.execute(
            f"SELECT {columns} FROM {table} WHERE {where} "
            f"ORDER BY {order_column} DESC LIMIT ?",
            [*params, limit],
        )
        return list(await cursor.fetchall())

    async def latest_funding_rates(
        self,
        pair: str,
        interval: str,
        filters: dict | None,
        limit: int,
        as_of_ms: int | None = None,
    ) -> list[FundingRateRow]:
        conditions = ["pair = ?", "interval = ?"]
        params: list = [pair, interval]
        exchanges = _exchange_filter(filters)
        if exchanges:
            conditions.append(f"exchange IN ({', '.join('?' for _ in exchanges)})")
            params.extend(exchanges)
        if as_of_ms is not None:
            conditions.append("time_ms <= ?")
            params.append(as_of_ms)

        rows = await self._select(
            "exchange, close, time_ms", "funding_rates", conditions, params, limit
        )
        return [FundingRateRow(exchange=r[0], close=r[1], time=r[2]) for r in rows]

    async def latest_open_interest(
        self,
        symbol: str,
        interval: str,
        unit: str,
        limit: int,
        as_of_ms: int | None,
    ) -> list[OpenInterestRow]:
        conditions = ["symbol = ?", "interval = ?", "unit = ?"]
        params: list = [symbol, interval, unit]
        if as_of_ms is not None:
            conditions.append("time_ms <= ?")
            params.append(as_of_ms)

        rows = await self._select("close, time_ms", "open_interest", conditions, params, limit)
        return [OpenInterestRow(close=r[0], time=r[1]) for r in rows]

    async def latest_whale_transfers(
        self,
        symbol: str,
        since_ts: int | None,
        limit: int,
        before_ts: int | None,
    ) -> list[WhaleTransferRow]:
        conditions = ["symbol = ?"]
        params: list = [symbol]
        if since_ts is not None:
            conditions.append("block_timestamp >= ?")
            params.append(since_ts)
        if before_ts is not None:
            conditions.append("block_timestamp <= ?")
            params.append(before_ts)

        rows = await self._select(
            "amount_usd, to_address, from_address, block_timestamp",
            "whale_transfers",
            conditions,
            params,
            limit,
            order_column="block_timestamp",
        )
        return [
            WhaleTransferRow(
                amount_usd=r[0], to_address=r[1], from_address=r[2], block_timestamp=r[3]
            )
            for r in rows
        ]

    async def latest_etf_flows(self, limit: int, as_of_ms: int | None) -> list[EtfFlowRow]:
        conditions: list[str] = []
        params: list = []
        if as_of_ms is not None:
            conditions.append("time_ms <= ?")
            params.append(as_of_ms)

        rows = await self._select("flow_usd, time_ms", "etf_flows", conditions, params, limit)
        return [EtfFlowRow(flow_usd=r[0], time=r[1]) for r in rows]

    async def fear_greed_history(self, limit: int, as_of_ms: int | None) -> list[FearGreedRow]:
        conditions: list[str] = []
        params: list = []
        if as_of_ms is not None:
            conditions.append("time_ms <= ?")
            params.append(as_of_ms)

        rows = await self._select(
            "value, value_classification, time_ms", "fear_greed", conditions, params, limit
        )
        return [FearGreedRow(value=r[0], value_classification=r[1], time=r[2]) for r in rows]

    async def latest_spot_orderbook(
        self,
        symbol: str,
        interval: str,
        limit: int,
        as_of_ms: int | None,
    ) -> list[OrderbookRow]:
        conditions = ["symbol = ?", "interval = ?"]
        params: list = [symbol, interval]
        if as_of_ms is not None:
            conditions.append("time_ms <= ?")
            params.append(as_of_ms)

        rows = await self._select(
            "aggregated_bids_usd, aggregated_asks_usd, aggregated_bids_quantity, "
            "aggregated_asks_quantity, time_ms",
            "spot_orderbook",
            conditions,
            params,
            limit,
        )
        return [
            OrderbookRow(
                aggregated_bids_usd=r[0],
                aggregated_asks_usd=r[1],
                aggregated_bids_quantity=r[2],
                aggregated_asks_quantity=r[3],
                time=r[4],
            )
            for r in rows
        ]

    async def latest_spot_taker_volume(
        self,
        symbol: str,
        interval: str,
        filters: dict | None,
        limit: int,
        as_of_ms: int | None,
    ) -> list[TakerVolumeRow]:
        conditions = ["symbol = ?", "interval = ?"]
        params: list = [symbol, interval]
        exchanges = _exchange_filter(filters)
        if exchanges:
            conditions.append(f"exchange IN ({', '.join('?' for _ in exchanges)})")
            params.extend(exchanges)
        if as_of_ms is not None:
            conditions.append("time_ms <= ?")
            params.append(as_of_ms)

        rows = await self._select(
            "aggregated_buy_volume_usd, aggregated_sell_volume_usd, time_ms",
            "spot_taker_volume",
            conditions,
            params,
            limit,
        )
        return [
            TakerVolumeRow(
                aggregated_buy_volume_usd=r[0], aggregated_sell_volume_usd=r[1], time=r[2]
            )
            for r in rows
        ]

    async def latest_spot_prices(
        self,
        pair: str,
        interval: str,
        limit: int,
        as_of_ms: int | None,
    ) -> list[SpotPriceRow]:
        conditions = ["pair = ?", "interval = ?"]
        params: list = [pair, interval]
        if as_of_ms is not None:
            conditions.append("time_ms <= ?")
            params.append(as_of_ms)

        rows = await self._select("close, time_ms", "spot_prices", conditions, params, limit)
        return [SpotPriceRow(close=r[0], time=r[1]) for r in rows]

    async def latest_liquidations(
        self,
        symbol: str,
        interval: str,
        limit: int,
        as_of_ms: int | None,
    ) -> list[LiquidationRow]:
        conditions = ["symbol = ?", "interval = ?"]
        params: list = [symbol, interval]
        if as_of_ms is not None:
            conditions.append("time_ms <= ?")
            params.append(as_of_ms)

        rows = await self._select(
            "aggregated_long_liquidation_usd, aggregated_short_liquidation_usd, time_ms",
            "liquidations",
            conditions,
            params,
            limit,
        )
        return [
            LiquidationRow(
                aggregated_long_liquidation_usd=r[0],
                aggregated_short_liquidation_usd=r[1],
                time=r[2],
            )
            for r in rows
        ]


_SNAPSHOT_COLUMNS = (
    "id, symbol, generated_at_ms, signal_rule, score, confidence, "
    "price_now, price_future, label_direction, label_magnitude, features"
)


def _snapshot_from_row(row: tuple) -> SignalSnapshotRecord:
    return SignalSnapshotRecord(
        id=row[0],
        symbol=row[1],
        generated_at=from_ms(row[2]),
        signal_rule=row[3],
        score=row[4],
        confidence=row[5],
        price_now=row[6],
        price_future=row[7],
        label_direction=row[8],
        label_magnitude=row[9],
        features=json.loads(row[10]) if row[10] else None,
    )


class SqliteSignalSnapshotStore(SignalSnapshotStore):
    """Signal snapshots persisted in the ``signal_snapshots`` table."""

    def __init__(self, database: SignalDatabase) -> None:
        self._database = database

    async def insert_snapshot(self, record: SignalSnapshotRecord) -> int:
        """Insert a snapshot and return its row id."""
        cursor = await self._database.db.execute(
            "INSERT INTO signal_snapshots "
            "(symbol, generated_at_ms, signal_rule, score, confidence, price_now, "
            "price_future, label_direction, label_magnitude, features) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.symbol.upper(),
                to_ms(record.generated_at),
                record.signal_rule,
                record.score,
                record.confidence,
                record.price_now,
                record.price_future,
                record.label_direction,
                record.label_magnitude,
                json.dumps(record.features, sort_keys=True) if record.features else None,
            ),
        )
        await self._database.db.commit()
        snapshot_id = cursor.lastrowid
        logger.debug(
            "inserted_signal_snapshot",
            snapshot_id=snapshot_id,
            symbol=record.symbol,
            signal=record.signal_rule,
        )
        return snapshot_id

    async def backfill_outcome(
        self,
        snapshot_id: int,
        price_future: float,
        label_direction: str,
        label_magnitude: float,
    ) -> None:
        """Record the realized future price and its label."""
        await self._database.db.execute(
            "UPDATE signal_snapshots SET price_future = ?, label_direction = ?, "
            "label_magnitude = ? WHERE id = ?",
            (price_future, label_direction, label_magnitude, snapshot_id),
        )
        await self._database.db.commit()

    async def get_labeled_snapshots(
        self,
        symbol: str,
        start: datetime,
        end: datetime,
    ) -> list[SignalSnapshotRecord]:
        cursor = await self._database.db.execute(
            f"SELECT {_SNAPSHOT_COLUMNS} FROM signal_snapshots "
            "WHERE symbol = ? AND price_future IS NOT NULL "
            "AND generated_at_ms BETWEEN ? AND ? "
            "ORDER BY generated_at_ms ASC, id ASC",
            (symbol, to_ms(start), to_ms(end)),
        )
        rows = await cursor.fetchall()
        return [_snapshot_from_row(row) for row in rows]

    async def get_pending_snapshots(
        self,
        symbol: str,
        before: datetime,
    ) -> list[SignalSnapshotRecord]:
        cursor = await self._database.db.execute(
            f"SELECT {_SNAPSHOT_COLUMNS} FROM signal_snapshots "
            "WHERE symbol = ? AND price_future IS NULL AND generated_at_ms <= ? "
            "ORDER BY generated_at_ms ASC, id ASC",
            (symbol, to_ms(before)),
        )
        rows = await cursor.fetchall()
        return [_snapshot_from_row(row) for row in rows]
