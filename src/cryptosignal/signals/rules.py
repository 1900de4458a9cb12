"""Weighted scoring rules evaluated by the SignalEngine.

Each rule is an independent pure function of SignalInputs. A rule fires
only when every input it references is known and its condition holds; it
then yields a SignalFactor carrying its fixed weight, a human-readable
reason and the numeric inputs it used. RULES is evaluated in order and that
order is the order of reasons in the result.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass

from cryptosignal.features.models import FeatureSnapshot
from cryptosignal.signals.models import SignalFactor

Number = float | int | None


def _dig(source: Mapping, *path: str) -> Number:
    """Walk nested mappings; None as soon as a level is missing or not a mapping."""
    node: object = source
    for key in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    if node is None or isinstance(node, bool):
        return None
    if isinstance(node, (int, float)):
        return node
    return None


@dataclass(frozen=True)
class SignalInputs:
    """The scalar feature values the rule table reads. Any of them may be None."""

    funding_heat: Number = None
    funding_consensus: Number = None
    funding_trend_pct: Number = None
    oi_pct_6h: Number = None
    oi_pct_24h: Number = None
    whale_pressure: Number = None
    whale_cex_ratio: Number = None
    etf_flow: Number = None
    etf_ma7: Number = None
    etf_streak: Number = None
    sentiment: Number = None
    taker_buy_ratio: Number = None
    order_imbalance: Number = None
    volatility_24h: Number = None
    long_liq_24h: Number = None
    short_liq_24h: Number = None

    @classmethod
    def from_features(cls, features: FeatureSnapshot | Mapping) -> SignalInputs:
        """Extract inputs from a snapshot or a (possibly partial) mapping of the same shape."""
        data = features.to_dict() if isinstance(features, FeatureSnapshot) else features
        return cls(
            funding_heat=_dig(data, "funding", "heat_score"),
            funding_consensus=_dig(data, "funding", "consensus"),
            funding_trend_pct=_dig(data, "funding", "trend_pct"),
            oi_pct_6h=_dig(data, "open_interest", "pct_change_6h"),
            oi_pct_24h=_dig(data, "open_interest", "pct_change_24h"),
            whale_pressure=_dig(data, "whales", "pressure_score"),
            whale_cex_ratio=_dig(data, "whales", "cex_ratio"),
            etf_flow=_dig(data, "etf", "latest_flow"),
            etf_ma7=_dig(data, "etf", "ma7"),
            etf_streak=_dig(data, "etf", "streak"),
            sentiment=_dig(data, "sentiment", "value"),
            taker_buy_ratio=_dig(data, "microstructure", "taker_flow", "buy_ratio"),
            order_imbalance=_dig(data, "microstructure", "orderbook", "imbalance"),
            volatility_24h=_dig(data, "microstructure", "price", "volatility_24h"),
            long_liq_24h=_dig(data, "liquidations", "sum_24h", "longs"),
            short_liq_24h=_dig(data, "liquidations", "sum_24h", "shorts"),
        )


def format_float(value: Number) -> str:
    """Two-decimal display with thousands separators; "n/a" for unknown."""
    return "n/a" if value is None else f"{value:,.2f}"


@dataclass(frozen=True)
class Rule:
    """A single weighted rule.

    Attributes:
        condition: Predicate over the inputs; must return False when any
            referenced input is None.
        weight: Score contribution when the rule fires.
        reason: Static label, or a callable producing one from the inputs.
        context: Callable returning the inputs the rule looked at.
    """

    condition: Callable[[SignalInputs], bool]
    weight: float
    reason: str | Callable[[SignalInputs], str]
    context: Callable[[SignalInputs], dict[str, Number]]

    def evaluate(self, inputs: SignalInputs) -> SignalFactor | None:
        if not self.condition(inputs):
            return None
        reason = self.reason(inputs) if callable(self.reason) else self.reason
        return SignalFactor(reason=reason, weight=self.weight, context=self.context(inputs))


def _above(value: Number, threshold: float) -> bool:
    return value is not None and value > threshold


def _below(value: Number, threshold: float) -> bool:
    return value is not None and value < threshold


def _funding_ctx(i: SignalInputs) -> dict[str, Number]:
    return {"heat": i.funding_heat, "consensus": i.funding_consensus}


def _trend_ctx(i: SignalInputs) -> dict[str, Number]:
    return {"trend_pct": i.funding_trend_pct}


def _whale_ctx(i: SignalInputs) -> dict[str, Number]:
    return {"pressure_score": i.whale_pressure}


def _cex_ctx(i: SignalInputs) -> dict[str, Number]:
    return {"cex_ratio": i.whale_cex_ratio}


def _etf_ctx(i: SignalInputs) -> dict[str, Number]:
    return {"latest_flow": i.etf_flow, "ma7": i.etf_ma7}


def _streak_ctx(i: SignalInputs) -> dict[str, Number]:
    return {"streak": i.etf_streak}


def _sentiment_ctx(i: SignalInputs) -> dict[str, Number]:
    return {"sentiment": i.sentiment}


def _taker_ctx(i: SignalInputs) -> dict[str, Number]:
    return {"taker_buy_ratio": i.taker_buy_ratio}


def _book_ctx(i: SignalInputs) -> dict[str, Number]:
    return {"orderbook_imbalance": i.order_imbalance}


def _vol_ctx(i: SignalInputs) -> dict[str, Number]:
    return {"volatility_24h": i.volatility_24h, "taker_buy_ratio": i.taker_buy_ratio}


def _liq_ctx(i: SignalInputs) -> dict[str, Number]:
    return {"long_liq_24h": i.long_liq_24h, "short_liq_24h": i.short_liq_24h}


def _liq_dominates(larger: Number, smaller: Number) -> bool:
    return larger is not None and smaller is not None and larger > smaller * 1.5


RULES: tuple[Rule, ...] = (
    # Funding
    Rule(
        lambda i: _above(i.funding_heat, 1.5),
        -2.0,
        lambda i: f"Funding overheated (z {format_float(i.funding_heat)})",
        _funding_ctx,
    ),
    Rule(
        lambda i: _below(i.funding_heat, -1.5),
        2.0,
        lambda i: f"Funding deeply discounted (z {format_float(i.funding_heat)})",
        _funding_ctx,
    ),
    Rule(lambda i: _above(i.funding_trend_pct, 15), 0.6, "Funding momentum turning higher", _trend_ctx),
    Rule(lambda i: _below(i.funding_trend_pct, -15), -0.6, "Funding momentum rolling over", _trend_ctx),
    # Open interest
    Rule(
        lambda i: _above(i.oi_pct_24h, 2) and _above(i.funding_heat, 0.5),
        -1.5,
        "Leverage build-up with positive funding",
        lambda i: {"oi_pct_24h": i.oi_pct_24h, "funding_heat": i.funding_heat},
    ),
    Rule(
        lambda i: _below(i.oi_pct_24h, -2),
        1.0,
        "Open interest flushing (de-leverage)",
        lambda i: {"oi_pct_24h": i.oi_pct_24h},
    ),
    # Whales
    Rule(lambda i: _above(i.whale_pressure, 1.2), -1.5, "Whale inflow into exchanges", _whale_ctx),
    Rule(lambda i: _below(i.whale_pressure, -1.2), 1.5, "Whale accumulation off-exchange", _whale_ctx),
    Rule(
        lambda i: _above(i.whale_cex_ratio, 0.65),
        -0.6,
        "Whale inflow concentrated on exchanges",
        _cex_ctx,
    ),
    Rule(
        lambda i: _below(i.whale_cex_ratio, 0.35),
        0.6,
        "Whales distributing to cold storage",
        _cex_ctx,
    ),
    # ETF
    Rule(
        lambda i: _above(i.etf_flow, 0) and i.etf_ma7 is not None and i.etf_flow > i.etf_ma7,
        1.2,
        "ETF net inflow above weekly average",
        _etf_ctx,
    ),
    Rule(
        lambda i: _below(i.etf_flow, 0) and i.etf_ma7 is not None and i.etf_flow < i.etf_ma7,
        -1.2,
        "ETF outflow pressure",
        _etf_ctx,
    ),
    Rule(lambda i: i.etf_streak is not None and i.etf_streak >= 3, 0.9, "ETF inflow streak", _streak_ctx),
    Rule(lambda i: i.etf_streak is not None and i.etf_streak <= -3, -0.9, "ETF outflow streak", _streak_ctx),
    # Sentiment
    Rule(lambda i: i.sentiment is not None and i.sentiment >= 70, -1.0, "Extreme greed zone", _sentiment_ctx),
    Rule(
        lambda i: i.sentiment is not None and i.sentiment <= 30,
        1.0,
        "Fear zone (contrarian bullish)",
        _sentiment_ctx,
    ),
    # Microstructure
    Rule(
        lambda i: _above(i.taker_buy_ratio, 0.55),
        0.8,
        "Aggressive buyers dominating order flow",
        _taker_ctx,
    ),
    Rule(
        lambda i: _below(i.taker_buy_ratio, 0.45),
        -0.8,
        "Aggressive sellers dominating order flow",
        _taker_ctx,
    ),
    Rule(lambda i: _above(i.order_imbalance, 0.1), 0.5, "Bid-side liquidity stacked", _book_ctx),
    Rule(lambda i: _below(i.order_imbalance, -0.1), -0.5, "Ask-side liquidity stacked", _book_ctx),
    Rule(
        lambda i: _above(i.volatility_24h, 5) and _below(i.taker_buy_ratio, 0.45),
        -0.6,
        "High volatility with aggressive sellers",
        _vol_ctx,
    ),
    Rule(
        lambda i: _below(i.volatility_24h, 1.5) and _above(i.taker_buy_ratio, 0.55),
        0.5,
        "Calm flow with buyers in control",
        _vol_ctx,
    ),
    # Liquidations
    Rule(
        lambda i: _liq_dominates(i.long_liq_24h, i.short_liq_24h),
        0.8,
        "Long liquidation flush (potential rebound)",
        _liq_ctx,
    ),
    Rule(
        lambda i: _liq_dominates(i.short_liq_24h, i.long_liq_24h),
        -0.8,
        "Short liquidation spike (potential exhaustion)",
        _liq_ctx,
    ),
)
