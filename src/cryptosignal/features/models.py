"""Feature snapshot data models.

A FeatureSnapshot is an immutable point-in-time view built from upstream
rows. Sections that depend on a single upstream series (open interest,
ETF, sentiment, liquidations) are Optional: None means the series had no
rows and serializes to an empty dict. Funding, whales and microstructure
are always present but their numeric leaves may individually be None.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from cryptosignal.timeutil import to_iso_zulu


@dataclass(frozen=True)
class ExchangeFunding:
    """Funding statistics for one exchange over the rolling window."""

    latest: float | None
    mean: float | None
    std: float | None
    z_score: float | None

    def to_dict(self) -> dict:
        return {
            "latest": self.latest,
            "mean": self.mean,
            "std": self.std,
            "z_score": self.z_score,
        }


@dataclass(frozen=True)
class FundingFeatures:
    """Cross-exchange funding heat.

    Attributes:
        interval: Interval actually used ("1h", or "1m" on fallback).
        heat_score: Mean of per-exchange z-scores (unknown z-scores excluded).
        consensus: Mean of the per-exchange latest rates.
        trend_pct: Mean per-exchange percent change of the funding EMA.
        exchanges: Per-exchange statistics keyed by exchange name.
    """

    interval: str
    heat_score: float | None
    consensus: float | None
    trend_pct: float | None = None
    exchanges: dict[str, ExchangeFunding] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "interval": self.interval,
            "heat_score": self.heat_score,
            "consensus": self.consensus,
            "trend_pct": self.trend_pct,
            "exchanges": {name: snap.to_dict() for name, snap in self.exchanges.items()},
        }


@dataclass(frozen=True)
class OpenInterestFeatures:
    latest: float | None
    pct_change_6h: float | None
    pct_change_24h: float | None
    ema_6: float | None

    def to_dict(self) -> dict:
        return {
            "latest": self.latest,
            "pct_change_6h": self.pct_change_6h,
            "pct_change_24h": self.pct_change_24h,
            "ema_6": self.ema_6,
        }


@dataclass(frozen=True)
class WhaleWindow:
    """Exchange-labelled whale flow totals for one time window."""

    inflow_usd: float = 0.0
    outflow_usd: float = 0.0
    count_inflow: int = 0
    count_outflow: int = 0

    @property
    def net_usd(self) -> float:
        return self.inflow_usd - self.outflow_usd

    def to_dict(self) -> dict:
        return {
            "inflow_usd": self.inflow_usd,
            "outflow_usd": self.outflow_usd,
            "count_inflow": self.count_inflow,
            "count_outflow": self.count_outflow,
            "net_usd": self.net_usd,
        }


@dataclass(frozen=True)
class WhaleFeatures:
    """Whale exchange-flow pressure.

    ``pressure_score`` is the 24h net flow scaled by the average daily gross
    flow of the 7-day window. ``is_stale`` flags that the windows were built
    from fallback data or that the last day had no transfers.
    """

    window_24h: WhaleWindow
    window_7d: WhaleWindow
    pressure_score: float | None
    cex_ratio: float | None
    sample_size_24h: int
    sample_size_7d: int
    is_stale: bool

    @classmethod
    def stale_empty(cls) -> WhaleFeatures:
        """Snapshot used when no transfers exist at all."""
        return cls(
            window_24h=WhaleWindow(),
            window_7d=WhaleWindow(),
            pressure_score=None,
            cex_ratio=None,
            sample_size_24h=0,
            sample_size_7d=0,
            is_stale=True,
        )

    def to_dict(self) -> dict:
        return {
            "window_24h": self.window_24h.to_dict(),
            "window_7d": self.window_7d.to_dict(),
            "pressure_score": self.pressure_score,
            "cex_ratio": self.cex_ratio,
            "sample_size": {"d24": self.sample_size_24h, "d7": self.sample_size_7d},
            "is_stale": self.is_stale,
        }


@dataclass(frozen=True)
class EtfFeatures:
    latest_flow: float | None
    ma7: float | None
    ma30: float | None
    streak: int = 0  # signed run of same-direction flow days

    def to_dict(self) -> dict:
        return {
            "latest_flow": self.latest_flow,
            "ma7": self.ma7,
            "ma30": self.ma30,
            "streak": self.streak,
        }


@dataclass(frozen=True)
class SentimentFeatures:
    value: int | None
    classification: str | None
    ma7: float | None
    ma30: float | None

    def to_dict(self) -> dict:
        return {
            "value": self.value,
            "classification": self.classification,
            "ma7": self.ma7,
            "ma30": self.ma30,
        }


@dataclass(frozen=True)
class OrderbookFeatures:
    bid_depth: float | None = None
    ask_depth: float | None = None
    imbalance: float | None = None
    bid_quantity: float | None = None
    ask_quantity: float | None = None

    def to_dict(self) -> dict:
        return {
            "bid_depth": self.bid_depth,
            "ask_depth": self.ask_depth,
            "imbalance": self.imbalance,
            "bid_quantity": self.bid_quantity,
            "ask_quantity": self.ask_quantity,
        }


@dataclass(frozen=True)
class TakerFlowFeatures:
    buy_volume: float = 0.0
    sell_volume: float = 0.0
    buy_ratio: float | None = None

    def to_dict(self) -> dict:
        return {
            "buy_volume": self.buy_volume,
            "sell_volume": self.sell_volume,
            "buy_ratio": self.buy_ratio,
        }


@dataclass(frozen=True)
class PriceFeatures:
    last_close: float | None = None
    pct_change_24h: float | None = None
    volatility_24h: float | None = None

    def to_dict(self) -> dict:
        return {
            "last_close": self.last_close,
            "pct_change_24h": self.pct_change_24h,
            "volatility_24h": self.volatility_24h,
        }


@dataclass(frozen=True)
class MicrostructureFeatures:
    orderbook: OrderbookFeatures = field(default_factory=OrderbookFeatures)
    taker_flow: TakerFlowFeatures = field(default_factory=TakerFlowFeatures)
    price: PriceFeatures = field(default_factory=PriceFeatures)

    def to_dict(self) -> dict:
        return {
            "orderbook": self.orderbook.to_dict(),
            "taker_flow": self.taker_flow.to_dict(),
            "price": self.price.to_dict(),
        }


@dataclass(frozen=True)
class LiquidationSides:
    longs: float | None
    shorts: float | None

    def to_dict(self) -> dict:
        return {"longs": self.longs, "shorts": self.shorts}


@dataclass(frozen=True)
class LiquidationFeatures:
    latest: LiquidationSides
    sum_24h: LiquidationSides

    def to_dict(self) -> dict:
        return {"latest": self.latest.to_dict(), "sum_24h": self.sum_24h.to_dict()}


def _section(section: object | None) -> dict:
    return section.to_dict() if section is not None else {}  # type: ignore[attr-defined]


@dataclass(frozen=True)
class FeatureSnapshot:
    """Complete feature snapshot for one (symbol, pair, interval, instant)."""

    symbol: str
    pair: str
    interval: str
    generated_at: datetime
    funding: FundingFeatures
    open_interest: OpenInterestFeatures | None
    whales: WhaleFeatures
    etf: EtfFeatures | None
    sentiment: SentimentFeatures | None
    microstructure: MicrostructureFeatures
    liquidations: LiquidationFeatures | None

    def to_dict(self) -> dict:
        """Serialize to plain nested dicts; absent sections become ``{}``."""
        return {
            "symbol": self.symbol,
            "pair": self.pair,
            "interval": self.interval,
            "generated_at": to_iso_zulu(self.generated_at),
            "funding": self.funding.to_dict(),
            "open_interest": _section(self.open_interest),
            "whales": self.whales.to_dict(),
            "etf": _section(self.etf),
            "sentiment": _section(self.sentiment),
            "microstructure": self.microstructure.to_dict(),
            "liquidations": _section(self.liquidations),
        }
