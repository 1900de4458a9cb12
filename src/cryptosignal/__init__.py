"""Signal-generation core for a crypto market dashboard.

FeatureBuilder aggregates market, derivatives and on-chain series into a
FeatureSnapshot; SignalEngine scores it with a weighted rule table;
AiSignalService adapts a probability model; BacktestService evaluates
persisted, outcome-labelled signal snapshots.
"""

from cryptosignal.backtest import BacktestOptions, BacktestReport, BacktestService
from cryptosignal.features import FeatureBuilder, FeatureSnapshot
from cryptosignal.signals import (
    AiSignalService,
    ModelTrainer,
    SignalDirection,
    SignalEngine,
    SignalPipeline,
    SignalResult,
)

__version__ = "0.1.0"

__all__ = [
    "AiSignalService",
    "BacktestOptions",
    "BacktestReport",
    "BacktestService",
    "FeatureBuilder",
    "FeatureSnapshot",
    "ModelTrainer",
    "SignalDirection",
    "SignalEngine",
    "SignalPipeline",
    "SignalResult",
    "__version__",
]
