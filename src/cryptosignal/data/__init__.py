"""Market data access layer.

Provides typed row models, the abstract read contracts the signal core
depends on, and their SQLite implementations.
"""

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
from cryptosignal.data.store import SqliteMarketDataStore, SqliteSignalSnapshotStore

__all__ = [
    "EtfFlowRow",
    "FearGreedRow",
    "FundingRateRow",
    "LiquidationRow",
    "MarketDataRepository",
    "OpenInterestRow",
    "OrderbookRow",
    "SignalDatabase",
    "SignalSnapshotRecord",
    "SignalSnapshotStore",
    "SpotPriceRow",
    "SqliteMarketDataStore",
    "SqliteSignalSnapshotStore",
    "TakerVolumeRow",
    "WhaleTransferRow",
]
