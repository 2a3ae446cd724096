"""
SQL-backed MarketStore.

Each call runs in its own session and transaction, so one failed write never
affects the next. SQLAlchemy errors are translated into UpstreamUnavailable
(reads) and PersistenceFailure (writes).
"""

import uuid
from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketpulse.analysis.config import RECOMMENDATION_TTL
from marketpulse.analysis.sentiment import EventClassifier, SentimentAnalyzer
from marketpulse.analysis.types import (
    CorrelationPattern,
    EventCategory,
    ImpactLevel,
    MarketIndexSnapshot,
    NewsEvent,
    PatternFilter,
    PatternKey,
    PriceTick,
    Recommendation,
    TrendPrediction,
    UpsertOutcome,
)
from marketpulse.datastore.base import MarketStore
from marketpulse.datastore.repositories import (
    CorrelationPatternRepository,
    MarketIndexRepository,
    NewsEventRepository,
    PriceTickRepository,
    RecommendationRepository,
    TrendPredictionRepository,
)
from marketpulse.exceptions import PersistenceFailure, UpstreamUnavailable
from marketpulse.settings import global_settings
from marketpulse.utils import to_naive_utc, utcnow


class SQLMarketStore(MarketStore):
    """MarketStore over the async SQLAlchemy session factory."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        market_index_name: str | None = None,
        classifier: EventClassifier | None = None,
    ):
        self._session_factory = session_factory
        self.market_index_name = market_index_name or global_settings.market_index_name
        self.classifier = classifier or SentimentAnalyzer()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_price(
        self, asset_symbol: str, timestamp: datetime, tolerance: timedelta
    ) -> PriceTick | None:
        try:
            async with self._session_factory() as session:
                return await PriceTickRepository(session).get_at(
                    asset_symbol, to_naive_utc(timestamp), tolerance
                )
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(
                f"Price lookup failed for {asset_symbol} at {timestamp}: {e}",
                operation="get_price",
            ) from e

    async def get_price_history(
        self, asset_symbol: str, since: datetime, until: datetime
    ) -> list[PriceTick]:
        try:
            async with self._session_factory() as session:
                return await PriceTickRepository(session).get_range(
                    asset_symbol, to_naive_utc(since), to_naive_utc(until)
                )
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(
                f"Price history failed for {asset_symbol}: {e}",
                operation="get_price_history",
            ) from e

    async def get_events(
        self, since: datetime, until: datetime, limit: int | None = None
    ) -> list[NewsEvent]:
        try:
            async with self._session_factory() as session:
                return await NewsEventRepository(session).get_range(
                    to_naive_utc(since), to_naive_utc(until), limit
                )
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(
                f"Event query failed: {e}", operation="get_events"
            ) from e

    async def get_latest_market_index(
        self, since: datetime | None = None
    ) -> MarketIndexSnapshot | None:
        try:
            async with self._session_factory() as session:
                return await MarketIndexRepository(session).get_latest(
                    self.market_index_name,
                    to_naive_utc(since) if since is not None else None,
                )
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(
                f"Market index lookup failed: {e}",
                operation="get_latest_market_index",
            ) from e

    async def get_market_trend(self) -> float:
        snapshot = await self.get_latest_market_index()
        return snapshot.change_percent if snapshot else 0.0

    async def query_correlation_patterns(
        self, pattern_filter: PatternFilter
    ) -> list[CorrelationPattern]:
        try:
            async with self._session_factory() as session:
                return await CorrelationPatternRepository(session).query(
                    pattern_filter
                )
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(
                f"Pattern query failed: {e}", operation="query_correlation_patterns"
            ) from e

    async def get_active_recommendations(self) -> list[Recommendation]:
        try:
            async with self._session_factory() as session:
                return await RecommendationRepository(session).get_active()
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(
                f"Recommendation query failed: {e}",
                operation="get_active_recommendations",
            ) from e

    async def get_trend_predictions(self, limit: int = 24) -> list[TrendPrediction]:
        try:
            async with self._session_factory() as session:
                return await TrendPredictionRepository(session).get_history(limit)
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(
                f"Prediction history failed: {e}", operation="get_trend_predictions"
            ) from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert_correlation_pattern(
        self, pattern_key: PatternKey, pattern: CorrelationPattern
    ) -> UpsertOutcome:
        pattern = pattern.model_copy(
            update={"event_timestamp": to_naive_utc(pattern.event_timestamp)}
        )
        try:
            async with self._session_factory() as session, session.begin():
                return await CorrelationPatternRepository(session).upsert(
                    pattern_key, pattern
                )
        except SQLAlchemyError as e:
            raise PersistenceFailure(
                "upsert_correlation_pattern", key=pattern_key, cause=str(e)
            ) from e

    async def replace_active_recommendations(
        self, new_batch: list[Recommendation]
    ) -> None:
        now = utcnow()
        stamped = []
        for rec in new_batch:
            generated_at = to_naive_utc(rec.generated_at) if rec.generated_at else now
            expires_at = (
                to_naive_utc(rec.expires_at)
                if rec.expires_at
                else generated_at + RECOMMENDATION_TTL
            )
            stamped.append(
                rec.model_copy(
                    update={
                        "generated_at": generated_at,
                        "expires_at": expires_at,
                        "is_active": True,
                    }
                )
            )

        try:
            async with self._session_factory() as session, session.begin():
                await RecommendationRepository(session).replace_active(stamped)
        except SQLAlchemyError as e:
            raise PersistenceFailure(
                "replace_active_recommendations", cause=str(e)
            ) from e
        logger.info(f"Replaced active recommendations with {len(stamped)} new")

    async def append_trend_prediction(self, prediction: TrendPrediction) -> None:
        if prediction.predicted_at is not None:
            prediction = prediction.model_copy(
                update={"predicted_at": to_naive_utc(prediction.predicted_at)}
            )
        try:
            async with self._session_factory() as session, session.begin():
                await TrendPredictionRepository(session).append(prediction)
        except SQLAlchemyError as e:
            raise PersistenceFailure("append_trend_prediction", cause=str(e)) from e

    # ------------------------------------------------------------------
    # Ingestion helpers for upstream collaborators
    # ------------------------------------------------------------------

    async def add_price_ticks(self, ticks: list[PriceTick]) -> None:
        normalized = [
            t.model_copy(update={"timestamp": to_naive_utc(t.timestamp)}) for t in ticks
        ]
        try:
            async with self._session_factory() as session, session.begin():
                await PriceTickRepository(session).add_many(normalized)
        except SQLAlchemyError as e:
            raise PersistenceFailure("add_price_ticks", cause=str(e)) from e

    async def add_news_event(
        self,
        title: str,
        published_at: datetime,
        description: str | None = None,
        source: str = "",
        url: str | None = None,
        category: EventCategory | None = None,
        sentiment_score: float | None = None,
        impact_level: ImpactLevel | None = None,
        event_id: str | None = None,
    ) -> NewsEvent:
        """Store a news event, classifying any field the caller left out."""
        if category is None or sentiment_score is None or impact_level is None:
            result = self.classifier.analyze(f"{title} {description or ''}")
            category = category or result.category
            sentiment_score = (
                result.score if sentiment_score is None else sentiment_score
            )
            impact_level = impact_level or result.impact_level

        event = NewsEvent(
            id=event_id or str(uuid.uuid4()),
            title=title,
            category=category,
            sentiment_score=sentiment_score,
            impact_level=impact_level,
            published_at=to_naive_utc(published_at),
            description=description,
            source=source,
            url=url,
        )
        try:
            async with self._session_factory() as session, session.begin():
                await NewsEventRepository(session).add(event)
        except SQLAlchemyError as e:
            raise PersistenceFailure("add_news_event", key=event.id, cause=str(e)) from e
        return event

    async def add_market_index(self, snapshot: MarketIndexSnapshot) -> None:
        snapshot = snapshot.model_copy(
            update={"timestamp": to_naive_utc(snapshot.timestamp)}
        )
        try:
            async with self._session_factory() as session, session.begin():
                await MarketIndexRepository(session).add(snapshot)
        except SQLAlchemyError as e:
            raise PersistenceFailure("add_market_index", cause=str(e)) from e
