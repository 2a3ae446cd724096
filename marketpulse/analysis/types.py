"""
Analysis record types using Pydantic models.
"""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from marketpulse.analysis.config import TIME_WINDOWS

ImpactLevel = Literal["low", "medium", "high"]
PredictionType = Literal["positive", "neutral", "negative"]


class EventCategory(str, Enum):
    """News/macro event categories."""

    TARIFF = "tariff"
    REGULATION = "regulation"
    ADOPTION = "adoption"
    SECURITY = "security"
    FED_POLICY = "fed_policy"
    POLITICAL = "political"
    TECH = "tech"
    MARKET = "market"


class RecommendationAction(str, Enum):
    """Discrete recommendation actions."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class PriceTick(BaseModel):
    """Asset price at a point in time."""

    model_config = {"frozen": True}

    asset_symbol: str
    timestamp: datetime
    price: float = Field(gt=0)
    volume: float = 0.0
    market_cap: float = 0.0


class NewsEvent(BaseModel):
    """Categorized news or macro event."""

    model_config = {"frozen": True}

    id: str
    title: str
    category: EventCategory
    sentiment_score: float = Field(default=0.0, ge=-1.0, le=1.0)
    impact_level: ImpactLevel = "medium"
    published_at: datetime
    description: str | None = None
    source: str = ""
    url: str | None = None


class MarketIndexSnapshot(BaseModel):
    """Reference index reading (e.g. SP500) used as the market trend."""

    index_name: str
    value: float
    change_percent: float
    timestamp: datetime


class PatternKey(BaseModel):
    """Unique key of a correlation pattern."""

    model_config = {"frozen": True}

    event_id: str
    asset_symbol: str
    time_lag_hours: int

    def __str__(self) -> str:
        return f"{self.event_id}/{self.asset_symbol}/{self.time_lag_hours}h"


class CorrelationPattern(BaseModel):
    """Learned (event, asset, delay) -> price change association."""

    event_type: EventCategory
    event_id: str
    asset_symbol: str
    price_change_percent: float
    time_lag_hours: int
    confidence_score: float = Field(ge=0.5, le=0.95)
    occurrence_count: int = Field(default=1, ge=1)
    event_timestamp: datetime

    @field_validator("time_lag_hours")
    @classmethod
    def _check_lag(cls, value: int) -> int:
        if value not in TIME_WINDOWS:
            raise ValueError(f"time_lag_hours must be one of {TIME_WINDOWS}")
        return value

    @property
    def key(self) -> PatternKey:
        return PatternKey(
            event_id=self.event_id,
            asset_symbol=self.asset_symbol,
            time_lag_hours=self.time_lag_hours,
        )


class PatternFilter(BaseModel):
    """Query filter for stored correlation patterns."""

    event_type: EventCategory | None = None
    asset_symbol: str | None = None
    min_confidence: float | None = None
    limit: int | None = None


class UpsertOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


class ImpactPrediction(BaseModel):
    """Predicted sentiment-adjusted price impact for one asset."""

    prediction: float
    confidence: float = Field(ge=0.0, le=1.0)


class MiningStats(BaseModel):
    """Aggregate outcome of one mining pass."""

    events_processed: int = 0
    pairs_without_baseline: int = 0
    lags_without_data: int = 0
    immaterial_moves: int = 0
    patterns_created: int = 0
    patterns_updated: int = 0
    failures: int = 0

    @property
    def patterns_recorded(self) -> int:
        return self.patterns_created + self.patterns_updated


class NewsSignalInput(BaseModel):
    """News item as seen by the recommendation engine."""

    sentiment: float
    category: EventCategory
    impact_level: ImpactLevel = "medium"
    published_at: datetime


class RecommendationInput(BaseModel):
    """Explicit inputs of a single recommendation decision."""

    asset_symbol: str
    recent_news: list[NewsSignalInput] = Field(default_factory=list)
    # Most recent first
    price_history: list[PriceTick] = Field(default_factory=list)
    market_trend: float = 0.0


class Signal(BaseModel):
    """One triggered contributor to the recommendation score."""

    weight: float
    direction: Literal[1, -1]
    reason: str


class Recommendation(BaseModel):
    """Per-asset BUY/SELL/HOLD decision with risk levels."""

    asset_symbol: str
    action: RecommendationAction
    confidence_percent: float = Field(ge=50, le=95)
    reasoning: str
    target_price: float | None = None
    stop_loss: float | None = None
    generated_at: datetime | None = None
    expires_at: datetime | None = None
    is_active: bool = True

    @model_validator(mode="after")
    def _check_risk_levels(self) -> "Recommendation":
        if self.action == RecommendationAction.BUY:
            if self.target_price is None or self.stop_loss is None:
                raise ValueError("BUY requires target_price and stop_loss")
        elif self.action == RecommendationAction.SELL:
            if self.target_price is not None or self.stop_loss is None:
                raise ValueError("SELL requires stop_loss and no target_price")
        elif self.target_price is not None or self.stop_loss is not None:
            raise ValueError("HOLD carries no target_price or stop_loss")
        return self


class TrendPrediction(BaseModel):
    """Market-wide directional call."""

    prediction_type: PredictionType
    confidence_percent: float = Field(ge=50, le=95)
    reasoning: str
    average_price_change: float = 0.0
    bullish_count: int = 0
    bearish_count: int = 0
    neutral_count: int = 0
    news_sentiment_score: float = 0.0
    macro_events_summary: str = ""
    predicted_at: datetime | None = None
