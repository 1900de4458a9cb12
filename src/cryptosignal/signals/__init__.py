"""Signal generation.

Provides the rule-based SignalEngine and its rule table, the model-backed
AiSignalService, and the SignalPipeline that persists and labels snapshots.
"""

from cryptosignal.signals.ai import AiSignalService, ModelTrainer
from cryptosignal.signals.engine import SignalEngine
from cryptosignal.signals.models import AiPrediction, SignalDirection, SignalFactor, SignalResult
from cryptosignal.signals.pipeline import GeneratedSignal, SignalPipeline, label_outcome
from cryptosignal.signals.rules import RULES, Rule, SignalInputs

__all__ = [
    "AiPrediction",
    "AiSignalService",
    "GeneratedSignal",
    "ModelTrainer",
    "RULES",
    "Rule",
    "SignalDirection",
    "SignalEngine",
    "SignalFactor",
    "SignalInputs",
    "SignalPipeline",
    "SignalResult",
    "label_outcome",
]
