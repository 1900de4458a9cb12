"""Feature aggregation layer.

Turns raw market, derivatives and on-chain series into a normalized
FeatureSnapshot consumed by the SignalEngine and AiSignalService.
"""

from cryptosignal.features.builder import FeatureBuilder
from cryptosignal.features.models import (
    EtfFeatures,
    ExchangeFunding,
    FeatureSnapshot,
    FundingFeatures,
    LiquidationFeatures,
    LiquidationSides,
    MicrostructureFeatures,
    OpenInterestFeatures,
    OrderbookFeatures,
    PriceFeatures,
    SentimentFeatures,
    TakerFlowFeatures,
    WhaleFeatures,
    WhaleWindow,
)
from cryptosignal.features.whales import ExchangeLabelMatcher, aggregate_whale_flows

__all__ = [
    "EtfFeatures",
    "ExchangeFunding",
    "ExchangeLabelMatcher",
    "FeatureBuilder",
    "FeatureSnapshot",
    "FundingFeatures",
    "LiquidationFeatures",
    "LiquidationSides",
    "MicrostructureFeatures",
    "OpenInterestFeatures",
    "OrderbookFeatures",
    "PriceFeatures",
    "SentimentFeatures",
    "TakerFlowFeatures",
    "WhaleFeatures",
    "WhaleWindow",
    "aggregate_whale_flows",
]
