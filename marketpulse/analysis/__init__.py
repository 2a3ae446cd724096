"""
Event/price correlation mining and signal generation.
"""

from marketpulse.analysis.types import (
    CorrelationPattern,
    EventCategory,
    ImpactPrediction,
    MarketIndexSnapshot,
    MiningStats,
    NewsEvent,
    PatternFilter,
    PatternKey,
    PriceTick,
    Recommendation,
    RecommendationAction,
    RecommendationInput,
    TrendPrediction,
)
from marketpulse.analysis.correlation import CorrelationEngine
from marketpulse.analysis.recommendation import RecommendationEngine
from marketpulse.analysis.trend import MarketTrendPredictor
from marketpulse.analysis.sentiment import SentimentAnalyzer, SentimentResult

__all__ = [
    # Types
    "CorrelationPattern",
    "EventCategory",
    "ImpactPrediction",
    "MarketIndexSnapshot",
    "MiningStats",
    "NewsEvent",
    "PatternFilter",
    "PatternKey",
    "PriceTick",
    "Recommendation",
    "RecommendationAction",
    "RecommendationInput",
    "TrendPrediction",
    # Engines
    "CorrelationEngine",
    "RecommendationEngine",
    "MarketTrendPredictor",
    # Classifier
    "SentimentAnalyzer",
    "SentimentResult",
]
