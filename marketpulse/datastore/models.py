"""
Database model definitions.
Uses SQLAlchemy 2.0+ declarative mapping.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from marketpulse.utils import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all models"""

    pass


class PriceTickDB(Base):
    """Asset price ticks"""

    __tablename__ = "price_ticks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    asset_symbol: Mapped[str] = mapped_column(String(20), nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    volume: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    market_cap: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )

    __table_args__ = (Index("idx_price_symbol_timestamp", "asset_symbol", "timestamp"),)

    def __repr__(self) -> str:
        return f"<PriceTick(symbol={self.asset_symbol}, price={self.price}, at={self.timestamp})>"


class NewsEventDB(Base):
    """Categorized news events"""

    __tablename__ = "news_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(1000), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    sentiment_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    impact_level: Mapped[str] = mapped_column(
        String(20), default="medium", nullable=False
    )
    published_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<NewsEvent(category={self.category}, title={self.title[:50]})>"


class MarketIndexDB(Base):
    """Reference market index readings"""

    __tablename__ = "market_indices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    index_name: Mapped[str] = mapped_column(String(50), nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    change_percent: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (Index("idx_index_name_timestamp", "index_name", "timestamp"),)


class CorrelationPatternDB(Base):
    """Learned event -> price change patterns"""

    __tablename__ = "correlation_patterns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    event_id: Mapped[str] = mapped_column(String(36), nullable=False)
    asset_symbol: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    price_change_percent: Mapped[float] = mapped_column(Float, nullable=False)
    time_lag_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    confidence_score: Mapped[float] = mapped_column(Float, default=0.5, nullable=False)
    occurrence_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    event_timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "event_id", "asset_symbol", "time_lag_hours", name="uq_pattern_key"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<CorrelationPattern(event={self.event_id}, symbol={self.asset_symbol}, "
            f"lag={self.time_lag_hours}h, confidence={self.confidence_score})>"
        )


class RecommendationDB(Base):
    """Per-asset recommendations"""

    __tablename__ = "recommendations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    asset_symbol: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(10), nullable=False)
    confidence_percent: Mapped[float] = mapped_column(Float, nullable=False)
    reasoning: Mapped[str] = mapped_column(Text, nullable=False, default="")
    target_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    stop_loss: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False, index=True
    )
    generated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class TrendPredictionDB(Base):
    """Market-wide trend prediction history"""

    __tablename__ = "market_trend_predictions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    prediction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    confidence_percent: Mapped[float] = mapped_column(Float, nullable=False)
    reasoning: Mapped[str] = mapped_column(Text, nullable=False)
    average_price_change: Mapped[float] = mapped_column(
        Float, default=0.0, nullable=False
    )
    bullish_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    bearish_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    neutral_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    news_sentiment_score: Mapped[float] = mapped_column(Float, default=0.0)
    macro_events_summary: Mapped[str] = mapped_column(Text, default="")
    predicted_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False, index=True
    )
