"""Model-backed signal adapter.

Wraps a probability-producing ModelTrainer. A model that cannot answer
(untrained, unavailable) returns None and the adapter passes that through
as "unknown" rather than raising.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping

from cryptosignal.config import AiSettings
from cryptosignal.logging import get_logger
from cryptosignal.signals.models import AiPrediction, SignalDirection

logger = get_logger(__name__)


class ModelTrainer(ABC):
    """Probability model over a feature payload."""

    @abstractmethod
    def predict(self, features_payload: Mapping) -> float | None:
        """Probability that price moves up, or None when the model cannot predict."""
        ...


class AiSignalService:
    """Maps a model probability onto BUY / SELL / NEUTRAL via threshold bands."""

    def __init__(self, trainer: ModelTrainer, settings: AiSettings | None = None) -> None:
        self._trainer = trainer
        self._settings = settings or AiSettings()

    def predict(self, features_payload: Mapping) -> AiPrediction | None:
        probability = self._trainer.predict(features_payload)
        if probability is None:
            logger.debug("ai_prediction_unavailable")
            return None

        return AiPrediction(probability=probability, decision=self.decide(probability))

    def decide(self, probability: float) -> SignalDirection:
        if probability >= self._settings.buy_probability:
            return SignalDirection.BUY
        if probability <= self._settings.sell_probability:
            return SignalDirection.SELL
        return SignalDirection.NEUTRAL
