"""Async SQLite connection manager for market rows and signal snapshots.

Uses aiosqlite for non-blocking database operations with WAL mode
for concurrent read/write performance. Tables are bootstrapped with
CREATE IF NOT EXISTS; there is no migration machinery.
"""

import os
from typing import Self

import aiosqlite

from cryptosignal.exceptions import StoreNotConnectedError
from cryptosignal.logging import get_logger

logger = get_logger(__name__)

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS funding_rates (
    pair TEXT NOT NULL,
    exchange TEXT NOT NULL,
    interval TEXT NOT NULL,
    time_ms INTEGER NOT NULL,
    close REAL,
    PRIMARY KEY (pair, exchange, interval, time_ms)
);

CREATE TABLE IF NOT EXISTS open_interest (
    symbol TEXT NOT NULL,
    interval TEXT NOT NULL,
    unit TEXT NOT NULL,
    time_ms INTEGER NOT NULL,
    close REAL,
    PRIMARY KEY (symbol, interval, unit, time_ms)
);

CREATE TABLE IF NOT EXISTS whale_transfers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    symbol TEXT NOT NULL,
    block_timestamp INTEGER NOT NULL,
    amount_usd REAL,
    from_address TEXT,
    to_address TEXT
);

CREATE TABLE IF NOT EXISTS etf_flows (
    time_ms INTEGER PRIMARY KEY,
    flow_usd REAL
);

CREATE TABLE IF NOT EXISTS fear_greed (
    time_ms INTEGER PRIMARY KEY,
    value INTEGER,
    value_classification TEXT
);

CREATE TABLE IF NOT EXISTS spot_orderbook (
    symbol TEXT NOT NULL,
    interval TEXT NOT NULL,
    time_ms INTEGER NOT NULL,
    aggregated_bids_usd REAL,
    aggregated_asks_usd REAL,
    aggregated_bids_quantity REAL,
    aggregated_asks_quantity REAL,
    PRIMARY KEY (symbol, interval, time_ms)
);

CREATE TABLE IF NOT EXISTS spot_taker_volume (
    symbol TEXT NOT NULL,
    interval TEXT NOT NULL,
    exchange TEXT NOT NULL DEFAULT 'all',
    time_ms INTEGER NOT NULL,
    aggregated_buy_volume_usd REAL,
    aggregated_sell_volume_usd REAL,
    PRIMARY KEY (symbol, interval, exchange, time_ms)
);

CREATE TABLE IF NOT EXISTS spot_prices (
    pair TEXT NOT NULL,
    interval TEXT NOT NULL,
    time_ms INTEGER NOT NULL,
    close REAL,
    PRIMARY KEY (pair, interval, time_ms)
);

CREATE TABLE IF NOT EXISTS liquidations (
    symbol TEXT NOT NULL,
    interval TEXT NOT NULL,
    time_ms INTEGER NOT NULL,
    aggregated_long_liquidation_usd REAL,
    aggregated_short_liquidation_usd REAL,
    PRIMARY KEY (symbol, interval, time_ms)
);

CREATE TABLE IF NOT EXISTS signal_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    symbol TEXT NOT NULL,
    generated_at_ms INTEGER NOT NULL,
    signal_rule TEXT NOT NULL,
    score REAL,
    confidence REAL,
    price_now REAL,
    price_future REAL,
    label_direction TEXT,
    label_magnitude REAL,
    features TEXT
);
"""

_CREATE_INDEXES_SQL = """
CREATE INDEX IF NOT EXISTS idx_whale_symbol_ts
    ON whale_transfers(symbol, block_timestamp);

CREATE INDEX IF NOT EXISTS idx_snapshots_symbol_ts
    ON signal_snapshots(symbol, generated_at_ms);
"""


class SignalDatabase:
    """Async SQLite connection manager.

    Usage:
        async with SignalDatabase("data/signals.db") as database:
            store = SqliteSignalSnapshotStore(database)
            report = await BacktestService(store).run({"symbol": "BTC"})
    """

    def __init__(self, db_path: str = "data/signals.db") -> None:
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    @property
    def db(self) -> aiosqlite.Connection:
        """Access the raw aiosqlite connection.

        Raises StoreNotConnectedError if not connected.
        """
        if self._connection is None:
            raise StoreNotConnectedError("Database not connected. Call connect() first.")
        return self._connection

    async def connect(self) -> None:
        """Open the connection, configure pragmas, and create tables.

        Creates the parent directory if it does not exist.
        """
        db_dir = os.path.dirname(self._db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)

        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")

        await self._connection.executescript(_CREATE_TABLES_SQL)
        await self._connection.executescript(_CREATE_INDEXES_SQL)
        await self._connection.commit()

        logger.info("signal_db_connected", db_path=self._db_path)

    async def close(self) -> None:
        """Close the database connection if open."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("signal_db_closed", db_path=self._db_path)

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        """Async context manager exit."""
        await self.close()
