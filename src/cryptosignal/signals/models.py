"""Signal data models for the rule-based and model-backed scorers."""

from dataclasses import dataclass, field
from enum import Enum


class SignalDirection(str, Enum):
    """Directional decision emitted by the scorers."""

    BUY = "BUY"
    SELL = "SELL"
    NEUTRAL = "NEUTRAL"

    @classmethod
    def parse(cls, value: str | None) -> "SignalDirection | None":
        """Case-insensitive lookup; None for unknown or missing values."""
        if not value:
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


@dataclass(frozen=True)
class SignalFactor:
    """One triggered rule: its weight, label and the inputs it looked at."""

    reason: str
    weight: float
    context: dict[str, float | int | None] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"reason": self.reason, "weight": self.weight, "context": dict(self.context)}


@dataclass(frozen=True)
class SignalResult:
    """Outcome of scoring one feature snapshot.

    Attributes:
        signal: BUY / SELL / NEUTRAL.
        score: Sum of triggered rule weights, rounded to 2 decimals.
        confidence: min(|score| / divisor, 1), rounded to 3 decimals.
        factors: Triggered rules in evaluation order.
    """

    signal: SignalDirection
    score: float
    confidence: float
    factors: tuple[SignalFactor, ...] = ()

    @property
    def reasons(self) -> list[str]:
        return [f.reason for f in self.factors]

    def to_dict(self) -> dict:
        return {
            "signal": self.signal.value,
            "score": self.score,
            "confidence": self.confidence,
            "reasons": self.reasons,
            "factors": [f.to_dict() for f in self.factors],
        }


@dataclass(frozen=True)
class AiPrediction:
    """Model probability mapped onto a directional decision."""

    probability: float
    decision: SignalDirection

    def to_dict(self) -> dict:
        return {"probability": self.probability, "decision": self.decision.value}
