"""
Repository layer - wraps per-table data access
"""

from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketpulse.analysis.correlation import accumulate_confidence
from marketpulse.analysis.types import (
    CorrelationPattern,
    EventCategory,
    MarketIndexSnapshot,
    NewsEvent,
    PatternFilter,
    PatternKey,
    PriceTick,
    Recommendation,
    RecommendationAction,
    TrendPrediction,
    UpsertOutcome,
)
from marketpulse.datastore.models import (
    CorrelationPatternDB,
    MarketIndexDB,
    NewsEventDB,
    PriceTickDB,
    RecommendationDB,
    TrendPredictionDB,
)


class PriceTickRepository:
    """Price tick repository"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_model(row: PriceTickDB) -> PriceTick:
        return PriceTick(
            asset_symbol=row.asset_symbol,
            timestamp=row.timestamp,
            price=row.price,
            volume=row.volume,
            market_cap=row.market_cap,
        )

    async def add_many(self, ticks: list[PriceTick]) -> None:
        self.session.add_all(
            PriceTickDB(
                asset_symbol=t.asset_symbol,
                price=t.price,
                volume=t.volume,
                market_cap=t.market_cap,
                timestamp=t.timestamp,
            )
            for t in ticks
        )

    async def get_at(
        self, asset_symbol: str, timestamp: datetime, tolerance: timedelta
    ) -> PriceTick | None:
        """Earliest positive tick inside the tolerance window"""
        result = await self.session.execute(
            select(PriceTickDB)
            .where(
                PriceTickDB.asset_symbol == asset_symbol,
                PriceTickDB.timestamp >= timestamp - tolerance,
                PriceTickDB.timestamp <= timestamp + tolerance,
                PriceTickDB.price > 0,
            )
            .order_by(PriceTickDB.timestamp.asc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return self._to_model(row) if row else None

    async def get_range(
        self, asset_symbol: str, since: datetime, until: datetime
    ) -> list[PriceTick]:
        result = await self.session.execute(
            select(PriceTickDB)
            .where(
                PriceTickDB.asset_symbol == asset_symbol,
                PriceTickDB.timestamp >= since,
                PriceTickDB.timestamp <= until,
                PriceTickDB.price > 0,
            )
            .order_by(PriceTickDB.timestamp.asc())
        )
        return [self._to_model(row) for row in result.scalars().all()]


class NewsEventRepository:
    """News event repository"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_model(row: NewsEventDB) -> NewsEvent:
        return NewsEvent(
            id=row.id,
            title=row.title,
            category=EventCategory(row.category),
            sentiment_score=row.sentiment_score,
            impact_level=row.impact_level,
            published_at=row.published_at,
            description=row.description,
            source=row.source,
            url=row.url,
        )

    async def add(self, event: NewsEvent) -> None:
        self.session.add(
            NewsEventDB(
                id=event.id,
                title=event.title,
                description=event.description,
                source=event.source,
                url=event.url,
                category=event.category.value,
                sentiment_score=event.sentiment_score,
                impact_level=event.impact_level,
                published_at=event.published_at,
            )
        )

    async def get_range(
        self, since: datetime, until: datetime, limit: int | None = None
    ) -> list[NewsEvent]:
        stmt = (
            select(NewsEventDB)
            .where(NewsEventDB.published_at >= since, NewsEventDB.published_at <= until)
            .order_by(NewsEventDB.published_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [self._to_model(row) for row in result.scalars().all()]


class MarketIndexRepository:
    """Market index repository"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, snapshot: MarketIndexSnapshot) -> None:
        self.session.add(
            MarketIndexDB(
                index_name=snapshot.index_name,
                value=snapshot.value,
                change_percent=snapshot.change_percent,
                timestamp=snapshot.timestamp,
            )
        )

    async def get_latest(
        self, index_name: str, since: datetime | None = None
    ) -> MarketIndexSnapshot | None:
        stmt = select(MarketIndexDB).where(MarketIndexDB.index_name == index_name)
        if since is not None:
            stmt = stmt.where(MarketIndexDB.timestamp >= since)
        result = await self.session.execute(
            stmt.order_by(MarketIndexDB.timestamp.desc()).limit(1)
        )
        row = result.scalar_one_or_none()
        if not row:
            return None
        return MarketIndexSnapshot(
            index_name=row.index_name,
            value=row.value,
            change_percent=row.change_percent,
            timestamp=row.timestamp,
        )


class CorrelationPatternRepository:
    """Correlation pattern repository"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_model(row: CorrelationPatternDB) -> CorrelationPattern:
        return CorrelationPattern(
            event_type=EventCategory(row.event_type),
            event_id=row.event_id,
            asset_symbol=row.asset_symbol,
            price_change_percent=row.price_change_percent,
            time_lag_hours=row.time_lag_hours,
            confidence_score=row.confidence_score,
            occurrence_count=row.occurrence_count,
            event_timestamp=row.event_timestamp,
        )

    async def get(self, key: PatternKey) -> CorrelationPatternDB | None:
        result = await self.session.execute(
            select(CorrelationPatternDB).where(
                CorrelationPatternDB.event_id == key.event_id,
                CorrelationPatternDB.asset_symbol == key.asset_symbol,
                CorrelationPatternDB.time_lag_hours == key.time_lag_hours,
            )
        )
        return result.scalar_one_or_none()

    async def upsert(self, key: PatternKey, pattern: CorrelationPattern) -> UpsertOutcome:
        """Insert, or bump the occurrence count and re-derive confidence"""
        existing = await self.get(key)

        if existing:
            previous_count = existing.occurrence_count
            existing.occurrence_count = previous_count + 1
            existing.confidence_score = accumulate_confidence(
                previous_count, pattern.confidence_score
            )
            logger.debug(
                f"Pattern {key} seen again: count={existing.occurrence_count}, "
                f"confidence={existing.confidence_score:.2f}"
            )
            return UpsertOutcome.UPDATED

        self.session.add(
            CorrelationPatternDB(
                event_type=pattern.event_type.value,
                event_id=key.event_id,
                asset_symbol=key.asset_symbol,
                price_change_percent=pattern.price_change_percent,
                time_lag_hours=key.time_lag_hours,
                confidence_score=pattern.confidence_score,
                occurrence_count=1,
                event_timestamp=pattern.event_timestamp,
            )
        )
        return UpsertOutcome.CREATED

    async def query(self, pattern_filter: PatternFilter) -> list[CorrelationPattern]:
        stmt = select(CorrelationPatternDB)
        if pattern_filter.event_type is not None:
            stmt = stmt.where(
                CorrelationPatternDB.event_type == pattern_filter.event_type.value
            )
        if pattern_filter.asset_symbol is not None:
            stmt = stmt.where(
                CorrelationPatternDB.asset_symbol == pattern_filter.asset_symbol
            )
        if pattern_filter.min_confidence is not None:
            stmt = stmt.where(
                CorrelationPatternDB.confidence_score >= pattern_filter.min_confidence
            )
        stmt = stmt.order_by(
            CorrelationPatternDB.confidence_score.desc(), CorrelationPatternDB.id.asc()
        )
        if pattern_filter.limit is not None:
            stmt = stmt.limit(pattern_filter.limit)

        result = await self.session.execute(stmt)
        return [self._to_model(row) for row in result.scalars().all()]


class RecommendationRepository:
    """Recommendation repository"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def replace_active(self, batch: list[Recommendation]) -> None:
        """Deactivate every active row and insert the batch; caller owns the transaction"""
        await self.session.execute(
            update(RecommendationDB)
            .where(RecommendationDB.is_active.is_(True))
            .values(is_active=False)
        )
        self.session.add_all(
            RecommendationDB(
                asset_symbol=rec.asset_symbol,
                action=rec.action.value,
                confidence_percent=rec.confidence_percent,
                reasoning=rec.reasoning,
                target_price=rec.target_price,
                stop_loss=rec.stop_loss,
                is_active=True,
                generated_at=rec.generated_at,
                expires_at=rec.expires_at,
            )
            for rec in batch
        )

    async def get_active(self) -> list[Recommendation]:
        result = await self.session.execute(
            select(RecommendationDB)
            .where(RecommendationDB.is_active.is_(True))
            .order_by(RecommendationDB.asset_symbol.asc())
        )
        return [
            Recommendation(
                asset_symbol=row.asset_symbol,
                action=RecommendationAction(row.action),
                confidence_percent=row.confidence_percent,
                reasoning=row.reasoning,
                target_price=row.target_price,
                stop_loss=row.stop_loss,
                generated_at=row.generated_at,
                expires_at=row.expires_at,
                is_active=row.is_active,
            )
            for row in result.scalars().all()
        ]


class TrendPredictionRepository:
    """Market trend prediction repository"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, prediction: TrendPrediction) -> None:
        row = TrendPredictionDB(
            prediction_type=prediction.prediction_type,
            confidence_percent=prediction.confidence_percent,
            reasoning=prediction.reasoning,
            average_price_change=prediction.average_price_change,
            bullish_count=prediction.bullish_count,
            bearish_count=prediction.bearish_count,
            neutral_count=prediction.neutral_count,
            news_sentiment_score=prediction.news_sentiment_score,
            macro_events_summary=prediction.macro_events_summary,
        )
        if prediction.predicted_at is not None:
            row.predicted_at = prediction.predicted_at
        self.session.add(row)

    async def get_history(self, limit: int = 24) -> list[TrendPrediction]:
        result = await self.session.execute(
            select(TrendPredictionDB)
            .order_by(TrendPredictionDB.predicted_at.desc(), TrendPredictionDB.id.desc())
            .limit(limit)
        )
        return [
            TrendPrediction(
                prediction_type=row.prediction_type,
                confidence_percent=row.confidence_percent,
                reasoning=row.reasoning,
                average_price_change=row.average_price_change,
                bullish_count=row.bullish_count,
                bearish_count=row.bearish_count,
                neutral_count=row.neutral_count,
                news_sentiment_score=row.news_sentiment_score,
                macro_events_summary=row.macro_events_summary,
                predicted_at=row.predicted_at,
            )
            for row in result.scalars().all()
        ]
