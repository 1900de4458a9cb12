"""Tests for the rule-based SignalEngine.

Tests verify:
- Empty input scores NEUTRAL with no reasons
- Score is the sum of triggered weights, reasons in rule order
- BUY/SELL thresholds are inclusive
- Confidence scales with |score| and caps at 1
- Custom settings and rule tables
"""

import pytest

from cryptosignal.config import SignalSettings
from cryptosignal.signals.engine import SignalEngine
from cryptosignal.signals.models import SignalDirection
from cryptosignal.signals.rules import Rule


@pytest.fixture
def engine(signal_settings: SignalSettings) -> SignalEngine:
    return SignalEngine(signal_settings)


class TestEmptyInput:
    """Tests for scoring with nothing known."""

    def test_empty_mapping(self, engine: SignalEngine) -> None:
        result = engine.score({})

        assert result.signal is SignalDirection.NEUTRAL
        assert result.score == 0.0
        assert result.confidence == 0.0
        assert result.reasons == []

    def test_empty_sections(self, engine: SignalEngine) -> None:
        result = engine.score(
            {"funding": {"heat_score": None}, "etf": {}, "sentiment": {}, "liquidations": {}}
        )
        assert result.signal is SignalDirection.NEUTRAL


class TestScoring:
    """Tests for score aggregation and decision mapping."""

    def test_overheated_funding_sells(self, engine: SignalEngine) -> None:
        result = engine.score({"funding": {"heat_score": 2.0}})

        assert result.signal is SignalDirection.SELL
        assert result.score == -2.0
        assert result.confidence == 0.4
        assert result.reasons == ["Funding overheated (z 2.00)"]

    def test_weights_accumulate(self, engine: SignalEngine) -> None:
        result = engine.score(
            {"funding": {"heat_score": 2.0}, "open_interest": {"pct_change_24h": 3.0}}
        )

        assert result.score == -3.5
        assert result.confidence == 0.7
        assert result.reasons == [
            "Funding overheated (z 2.00)",
            "Leverage build-up with positive funding",
        ]

    def test_reasons_follow_rule_order(self, engine: SignalEngine) -> None:
        result = engine.score(
            {
                "microstructure": {"taker_flow": {"buy_ratio": 0.7}},
                "sentiment": {"value": 20},
                "funding": {"heat_score": -1.8},
            }
        )

        assert result.reasons == [
            "Funding deeply discounted (z -1.80)",
            "Fear zone (contrarian bullish)",
            "Aggressive buyers dominating order flow",
        ]
        assert result.signal is SignalDirection.BUY
        assert result.score == 3.8

    def test_confidence_caps_at_one(self, engine: SignalEngine) -> None:
        result = engine.score(
            {
                "funding": {"heat_score": -2.0},
                "whales": {"pressure_score": -1.5},
                "sentiment": {"value": 20},
                "microstructure": {
                    "taker_flow": {"buy_ratio": 0.6},
                    "orderbook": {"imbalance": 0.2},
                },
            }
        )

        assert result.score == 5.8
        assert result.confidence == 1.0

    def test_buy_threshold_inclusive(self, engine: SignalEngine) -> None:
        result = engine.score({"whales": {"pressure_score": -1.3}})
        assert result.score == 1.5
        assert result.signal is SignalDirection.BUY

    def test_sell_threshold_inclusive(self, engine: SignalEngine) -> None:
        result = engine.score({"whales": {"pressure_score": 1.3}})
        assert result.score == -1.5
        assert result.signal is SignalDirection.SELL

    def test_below_threshold_is_neutral(self, engine: SignalEngine) -> None:
        result = engine.score({"microstructure": {"taker_flow": {"buy_ratio": 0.6}}})
        assert result.score == 0.8
        assert result.confidence == 0.16
        assert result.signal is SignalDirection.NEUTRAL

    def test_factor_context(self, engine: SignalEngine) -> None:
        result = engine.score({"open_interest": {"pct_change_24h": -3.0}})
        assert result.factors[0].context == {"oi_pct_24h": -3.0}


class TestSerialization:
    """Tests for SignalResult.to_dict()."""

    def test_to_dict(self, engine: SignalEngine) -> None:
        payload = engine.score({"sentiment": {"value": 80}}).to_dict()

        assert payload["signal"] == "NEUTRAL"
        assert payload["score"] == -1.0
        assert payload["confidence"] == 0.2
        assert payload["reasons"] == ["Extreme greed zone"]
        assert payload["factors"] == [
            {"reason": "Extreme greed zone", "weight": -1.0, "context": {"sentiment": 80}}
        ]


class TestConfiguration:
    """Tests for custom thresholds and rule tables."""

    def test_custom_thresholds(self) -> None:
        engine = SignalEngine(SignalSettings(buy_threshold=0.5, confidence_divisor=2.0))
        result = engine.score({"microstructure": {"taker_flow": {"buy_ratio": 0.6}}})

        assert result.signal is SignalDirection.BUY
        assert result.confidence == 0.4

    def test_custom_rules(self) -> None:
        always = Rule(lambda i: True, 4.0, "Always", lambda i: {})
        result = SignalEngine(rules=[always]).score({})

        assert result.reasons == ["Always"]
        assert result.signal is SignalDirection.BUY

    def test_determine_signal(self, engine: SignalEngine) -> None:
        assert engine.determine_signal(1.49) is SignalDirection.NEUTRAL
        assert engine.determine_signal(-1.51) is SignalDirection.SELL
