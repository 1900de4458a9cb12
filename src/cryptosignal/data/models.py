"""Typed rows returned by the market data and signal snapshot stores.

Every numeric field is nullable: upstream gaps are carried as None and the
feature layer decides how each gap propagates.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class FundingRateRow:
    """One funding-rate candle for a single exchange."""

    exchange: str
    close: float | None
    time: int  # epoch ms


@dataclass(frozen=True)
class OpenInterestRow:
    """Aggregated open interest candle (USD or coin units)."""

    close: float | None
    time: int | None  # epoch ms


@dataclass(frozen=True)
class WhaleTransferRow:
    """A large on-chain transfer with labelled source and destination."""

    amount_usd: float | None
    to_address: str | None
    from_address: str | None
    block_timestamp: int | None  # epoch seconds


@dataclass(frozen=True)
class EtfFlowRow:
    """Daily net ETF flow in USD."""

    flow_usd: float | None
    time: int = 0


@dataclass(frozen=True)
class FearGreedRow:
    """Daily fear & greed index reading."""

    value: int | None
    value_classification: str | None
    time: int = 0


@dataclass(frozen=True)
class OrderbookRow:
    """Aggregated spot orderbook depth snapshot."""

    aggregated_bids_usd: float | None
    aggregated_asks_usd: float | None
    aggregated_bids_quantity: float | None
    aggregated_asks_quantity: float | None
    time: int = 0


@dataclass(frozen=True)
class TakerVolumeRow:
    """Aggregated spot taker buy/sell volume for one interval."""

    aggregated_buy_volume_usd: float | None
    aggregated_sell_volume_usd: float | None
    time: int = 0


@dataclass(frozen=True)
class SpotPriceRow:
    """Spot price candle close."""

    close: float | None
    time: int = 0


@dataclass(frozen=True)
class LiquidationRow:
    """Aggregated long/short liquidations for one interval."""

    aggregated_long_liquidation_usd: float | None
    aggregated_short_liquidation_usd: float | None
    time: int = 0


@dataclass
class SignalSnapshotRecord:
    """A persisted signal decision and, once realized, its outcome.

    Written at generation time with the outcome fields empty; back-filled
    when the future price is known. ``signal_rule`` is compared
    case-insensitively by readers.
    """

    symbol: str
    generated_at: datetime
    signal_rule: str
    score: float | None = None
    confidence: float | None = None
    price_now: float | None = None
    price_future: float | None = None
    label_direction: str | None = None  # "UP" / "DOWN"
    label_magnitude: float | None = None  # signed percent
    features: dict | None = None
    id: int | None = None
