"""Abstract read contracts consumed by the signal core.

FeatureBuilder depends ONLY on MarketDataRepository and BacktestService
ONLY on SignalSnapshotStore. The SQLite implementations live in
cryptosignal.data.store; tests inject in-memory fakes.

Every ``latest_*`` method returns rows ordered newest first. Empty lists are
a normal result; implementations should raise only for genuine I/O failure,
which the core lets propagate.
"""

from abc import ABC, abstractmethod
from datetime import datetime

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


class MarketDataRepository(ABC):
    """Point-in-time read access to historical market and on-chain rows."""

    @abstractmethod
    async def latest_funding_rates(
        self,
        pair: str,
        interval: str,
        filters: dict | None,
        limit: int,
        as_of_ms: int | None = None,
    ) -> list[FundingRateRow]:
        """Funding-rate candles for ``pair`` across all exchanges."""
        ...

    @abstractmethod
    async def latest_open_interest(
        self,
        symbol: str,
        interval: str,
        unit: str,
        limit: int,
        as_of_ms: int | None,
    ) -> list[OpenInterestRow]:
        """Aggregated open interest candles."""
        ...

    @abstractmethod
    async def latest_whale_transfers(
        self,
        symbol: str,
        since_ts: int | None,
        limit: int,
        before_ts: int | None,
    ) -> list[WhaleTransferRow]:
        """Whale transfers with ``since_ts <= block_timestamp <= before_ts`` (epoch seconds)."""
        ...

    @abstractmethod
    async def latest_etf_flows(self, limit: int, as_of_ms: int | None) -> list[EtfFlowRow]:
        """Daily ETF net flows."""
        ...

    @abstractmethod
    async def fear_greed_history(self, limit: int, as_of_ms: int | None) -> list[FearGreedRow]:
        """Daily fear & greed readings."""
        ...

    @abstractmethod
    async def latest_spot_orderbook(
        self,
        symbol: str,
        interval: str,
        limit: int,
        as_of_ms: int | None,
    ) -> list[OrderbookRow]:
        """Aggregated spot orderbook depth snapshots."""
        ...

    @abstractmethod
    async def latest_spot_taker_volume(
        self,
        symbol: str,
        interval: str,
        filters: dict | None,
        limit: int,
        as_of_ms: int | None,
    ) -> list[TakerVolumeRow]:
        """Aggregated spot taker buy/sell volume."""
        ...

    @abstractmethod
    async def latest_spot_prices(
        self,
        pair: str,
        interval: str,
        limit: int,
        as_of_ms: int | None,
    ) -> list[SpotPriceRow]:
        """Spot price candles."""
        ...

    @abstractmethod
    async def latest_liquidations(
        self,
        symbol: str,
        interval: str,
        limit: int,
        as_of_ms: int | None,
    ) -> list[LiquidationRow]:
        """Aggregated long/short liquidation totals."""
        ...


class SignalSnapshotStore(ABC):
    """Persistence for generated signal snapshots and their realized outcomes."""

    @abstractmethod
    async def get_labeled_snapshots(
        self,
        symbol: str,
        start: datetime,
        end: datetime,
    ) -> list[SignalSnapshotRecord]:
        """Snapshots with a realized future price, ``start <= generated_at <= end``, oldest first."""
        ...

    @abstractmethod
    async def insert_snapshot(self, record: SignalSnapshotRecord) -> int:
        """Persist a freshly generated snapshot and return its id."""
        ...

    @abstractmethod
    async def get_pending_snapshots(
        self,
        symbol: str,
        before: datetime,
    ) -> list[SignalSnapshotRecord]:
        """Snapshots generated at or before ``before`` whose outcome is not yet known."""
        ...

    @abstractmethod
    async def backfill_outcome(
        self,
        snapshot_id: int,
        price_future: float,
        label_direction: str,
        label_magnitude: float,
    ) -> None:
        """Record the realized outcome of a pending snapshot."""
        ...
