"""
Correlation engine - learns how asset prices move after categorized events.

Mining:
- For every event and tracked asset, sample the price at fixed lags after
  the event and record material moves as correlation patterns
- Re-discovering a pattern bumps its occurrence count and confidence

Queries:
- Strongest patterns per event category
- Sentiment-adjusted price impact prediction for a hypothetical event
"""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable

from loguru import logger

from marketpulse.analysis.config import (
    BASE_CONFIDENCE,
    DIRECTION_MATCH_BONUS,
    IMPACT_CONFIDENCE_BONUS,
    MAGNITUDE_BONUS_STEPS,
    MATERIALITY_THRESHOLD_PERCENT,
    MAX_PATTERN_CONFIDENCE,
    PREDICTION_MIN_CONFIDENCE,
    PRICE_LOOKUP_TOLERANCE,
    REDISCOVERY_BONUS_PER_OCCURRENCE,
    STRONG_CORRELATION_MIN_CONFIDENCE,
    STRONGEST_CORRELATIONS_LIMIT,
    TIME_WINDOWS,
)
from marketpulse.analysis.types import (
    CorrelationPattern,
    EventCategory,
    ImpactLevel,
    ImpactPrediction,
    MiningStats,
    NewsEvent,
    PatternFilter,
    PriceTick,
    UpsertOutcome,
)
from marketpulse.exceptions import PersistenceFailure, UpstreamUnavailable
from marketpulse.settings import global_settings
from marketpulse.utils import clamp, sign, utcnow

if TYPE_CHECKING:
    from marketpulse.datastore.base import MarketStore


def percent_change(before: float, after: float) -> float:
    return (after - before) / before * 100


def calculate_confidence(
    price_change_percent: float, sentiment_score: float, impact_level: str
) -> float:
    """Heuristic confidence that an event explains a price move."""
    confidence = BASE_CONFIDENCE

    if sign(price_change_percent) == sign(sentiment_score):
        confidence += DIRECTION_MATCH_BONUS

    magnitude = abs(price_change_percent)
    for threshold, bonus in MAGNITUDE_BONUS_STEPS:
        if magnitude > threshold:
            confidence += bonus

    confidence += IMPACT_CONFIDENCE_BONUS.get(impact_level, 0.0)

    return clamp(
        confidence, BASE_CONFIDENCE, MAX_PATTERN_CONFIDENCE, name="confidence_score"
    )


def accumulate_confidence(previous_count: int, new_confidence: float) -> float:
    """Confidence of a re-discovered pattern, from its count before this sighting."""
    return clamp(
        previous_count * REDISCOVERY_BONUS_PER_OCCURRENCE + new_confidence,
        BASE_CONFIDENCE,
        MAX_PATTERN_CONFIDENCE,
        name="confidence_score",
    )


class CorrelationEngine:
    """
    Mines and queries event -> price correlation patterns.
    """

    def __init__(
        self,
        store: "MarketStore",
        assets: list[str] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.assets = (
            list(global_settings.tracked_assets) if assets is None else list(assets)
        )
        self.default_lookback_days = global_settings.correlation_lookback_days
        self._clock = clock

    async def analyze_all_correlations(
        self, lookback_days: int | None = None
    ) -> MiningStats:
        """Fetch the recent event window and mine it."""
        if lookback_days is None:
            lookback_days = self.default_lookback_days
        now = self._clock()
        try:
            events = await self.store.get_events(now - timedelta(days=lookback_days), now)
        except UpstreamUnavailable as e:
            logger.error(f"Correlation analysis skipped, events unavailable: {e}")
            return MiningStats(failures=1)
        return await self.mine(events, lookback_days)

    async def mine(
        self, events: list[NewsEvent], lookback_days: int | None = None
    ) -> MiningStats:
        """
        Measure price moves after each event and upsert material ones.

        Args:
            events: Events to analyze; the window is the caller's choice
            lookback_days: Width of that window, for logging only

        Returns:
            MiningStats with per-outcome counts
        """
        stats = MiningStats()
        logger.info(
            f"Starting correlation mining over {len(events)} events"
            + (f" ({lookback_days}d window)" if lookback_days is not None else "")
        )

        for event in events:
            for symbol in self.assets:
                await self._analyze_event_impact(event, symbol, stats)
            stats.events_processed += 1

        logger.info(
            f"Correlation mining: {stats.events_processed} events, "
            f"{stats.patterns_created} new patterns, "
            f"{stats.patterns_updated} updated, {stats.failures} failures"
        )
        return stats

    async def _analyze_event_impact(
        self, event: NewsEvent, symbol: str, stats: MiningStats
    ) -> None:
        baseline = await self._price_at(symbol, event.published_at, stats)
        if baseline is None:
            stats.pairs_without_baseline += 1
            return

        for hours_after in TIME_WINDOWS:
            after = await self._price_at(
                symbol, event.published_at + timedelta(hours=hours_after), stats
            )
            if after is None:
                stats.lags_without_data += 1
                continue

            change = percent_change(baseline.price, after.price)
            if abs(change) <= MATERIALITY_THRESHOLD_PERCENT:
                stats.immaterial_moves += 1
                continue

            pattern = CorrelationPattern(
                event_type=event.category,
                event_id=event.id,
                asset_symbol=symbol,
                price_change_percent=change,
                time_lag_hours=hours_after,
                confidence_score=calculate_confidence(
                    change, event.sentiment_score, event.impact_level
                ),
                occurrence_count=1,
                event_timestamp=event.published_at,
            )
            await self._record_correlation(pattern, stats)

    async def _price_at(
        self, symbol: str, at: datetime, stats: MiningStats
    ) -> PriceTick | None:
        try:
            return await self.store.get_price(symbol, at, PRICE_LOOKUP_TOLERANCE)
        except UpstreamUnavailable as e:
            stats.failures += 1
            logger.warning(f"Price for {symbol} at {at} unavailable: {e}")
            return None

    async def _record_correlation(
        self, pattern: CorrelationPattern, stats: MiningStats
    ) -> None:
        try:
            outcome = await self.store.upsert_correlation_pattern(pattern.key, pattern)
        except PersistenceFailure as e:
            stats.failures += 1
            logger.warning(f"Skipping pattern {pattern.key}: {e}")
            return

        if outcome == UpsertOutcome.CREATED:
            stats.patterns_created += 1
        else:
            stats.patterns_updated += 1

    async def strongest_correlations(
        self,
        event_category: EventCategory,
        min_confidence: float = STRONG_CORRELATION_MIN_CONFIDENCE,
        limit: int = STRONGEST_CORRELATIONS_LIMIT,
    ) -> list[CorrelationPattern]:
        """Patterns of a category at or above min_confidence, strongest first."""
        try:
            patterns = await self.store.query_correlation_patterns(
                PatternFilter(
                    event_type=EventCategory(event_category),
                    min_confidence=min_confidence,
                    limit=limit,
                )
            )
        except UpstreamUnavailable as e:
            logger.error(f"Error fetching correlations: {e}")
            return []

        patterns.sort(key=lambda p: p.confidence_score, reverse=True)
        return patterns[:limit]

    async def predict_price_impact(
        self,
        event_category: EventCategory,
        sentiment_score: float,
        impact_level: ImpactLevel = "medium",
    ) -> dict[str, ImpactPrediction]:
        """
        Predict per-asset price impact of a hypothetical event.

        impact_level is accepted for interface stability; the prediction is
        driven by sentiment and the learned patterns only.
        """
        correlations = await self.strongest_correlations(
            event_category, PREDICTION_MIN_CONFIDENCE
        )

        predictions: dict[str, float] = defaultdict(float)
        confidences: dict[str, float] = defaultdict(float)
        counts: dict[str, int] = defaultdict(int)

        for correlation in correlations:
            symbol = correlation.asset_symbol
            multiplier = sentiment_score / sign(correlation.price_change_percent)
            adjusted = correlation.price_change_percent * multiplier

            predictions[symbol] += adjusted * correlation.confidence_score
            confidences[symbol] += correlation.confidence_score
            counts[symbol] += 1

        return {
            symbol: ImpactPrediction(
                prediction=predictions[symbol],
                confidence=clamp(
                    confidences[symbol] / counts[symbol], 0.0, 1.0, name="confidence"
                ),
            )
            for symbol in counts
        }
