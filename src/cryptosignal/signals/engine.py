"""Rule-based signal engine.

Scores a feature snapshot (or a partial mapping of the same shape) by
folding the ordered RULES table:
1. Extract the scalar SignalInputs
2. Evaluate every rule independently
3. Sum the weights of the rules that fired
4. Map the score onto BUY / SELL / NEUTRAL and a confidence

The engine holds only its settings, so one instance can score independent
inputs concurrently.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from cryptosignal.config import SignalSettings
from cryptosignal.features.models import FeatureSnapshot
from cryptosignal.features.stats import round_half_up
from cryptosignal.logging import get_logger
from cryptosignal.signals.models import SignalDirection, SignalFactor, SignalResult
from cryptosignal.signals.rules import RULES, Rule, SignalInputs

logger = get_logger(__name__)


class SignalEngine:
    """Deterministic weighted-rule scorer.

    Args:
        settings: BUY/SELL thresholds and confidence divisor.
        rules: Ordered rule table. Defaults to RULES.
    """

    def __init__(
        self,
        settings: SignalSettings | None = None,
        rules: Sequence[Rule] = RULES,
    ) -> None:
        self._settings = settings or SignalSettings()
        self._rules = tuple(rules)

    def score(self, features: FeatureSnapshot | Mapping) -> SignalResult:
        """Score a feature snapshot.

        Args:
            features: A FeatureSnapshot or a nested mapping with the same
                keys as FeatureSnapshot.to_dict(). Missing keys are unknown.

        Returns:
            SignalResult with the decision and the triggered factors in rule order.
        """
        inputs = SignalInputs.from_features(features)
        factors: tuple[SignalFactor, ...] = tuple(
            factor
            for factor in (rule.evaluate(inputs) for rule in self._rules)
            if factor is not None
        )

        raw_score = 0.0
        for factor in factors:
            raw_score += factor.weight

        confidence = min(abs(raw_score) / self._settings.confidence_divisor, 1.0)
        result = SignalResult(
            signal=self.determine_signal(raw_score),
            score=round_half_up(raw_score, 2),
            confidence=round_half_up(confidence, 3),
            factors=factors,
        )

        logger.debug(
            "signal_scored",
            signal=result.signal.value,
            score=result.score,
            confidence=result.confidence,
            triggered=len(factors),
        )
        return result

    def determine_signal(self, score: float) -> SignalDirection:
        if score >= self._settings.buy_threshold:
            return SignalDirection.BUY
        if score <= self._settings.sell_threshold:
            return SignalDirection.SELL
        return SignalDirection.NEUTRAL
