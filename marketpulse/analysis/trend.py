"""
Market trend predictor - one market-wide bullish/neutral/bearish call from
per-asset 24h moves, recent news sentiment and the reference index.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Callable

from loguru import logger
from pydantic import BaseModel

from marketpulse.analysis.config import (
    MAX_CONFIDENCE_PERCENT,
    MIN_CONFIDENCE_PERCENT,
    TREND_ASSET_THRESHOLD,
    TREND_CONSENSUS_FRACTION,
    TREND_NEWS_LIMIT,
    TREND_NEWS_SCALE,
    TREND_NEWS_WEIGHT,
    TREND_PRICE_WEIGHT,
    TREND_SCORE_THRESHOLD,
    TREND_VOLATILITY_SCALE,
    TREND_WINDOW,
)
from marketpulse.analysis.correlation import percent_change
from marketpulse.analysis.types import PredictionType, TrendPrediction
from marketpulse.exceptions import PersistenceFailure, UpstreamUnavailable
from marketpulse.settings import global_settings
from marketpulse.utils import clamp, utcnow

if TYPE_CHECKING:
    from marketpulse.datastore.base import MarketStore


class PriceTrendBreakdown(BaseModel):
    bullish: int = 0
    bearish: int = 0
    neutral: int = 0
    avg_change: float = 0.0

    @property
    def total(self) -> int:
        return self.bullish + self.bearish + self.neutral


class NewsSentimentSummary(BaseModel):
    sentiment: float = 0.0
    count: int = 0
    summary: str = "No recent news available"


def analyze_price_trends(changes: dict[str, float]) -> PriceTrendBreakdown:
    breakdown = PriceTrendBreakdown()
    for change in changes.values():
        if change > TREND_ASSET_THRESHOLD:
            breakdown.bullish += 1
        elif change < -TREND_ASSET_THRESHOLD:
            breakdown.bearish += 1
        else:
            breakdown.neutral += 1
    if changes:
        breakdown.avg_change = sum(changes.values()) / len(changes)
    return breakdown


def determine_prediction_type(
    breakdown: PriceTrendBreakdown, news_sentiment: float
) -> PredictionType:
    total = breakdown.total
    if total == 0:
        return "neutral"

    weighted_score = (
        breakdown.avg_change * TREND_PRICE_WEIGHT + news_sentiment * TREND_NEWS_WEIGHT
    )

    if (
        breakdown.bullish / total >= TREND_CONSENSUS_FRACTION
        and weighted_score > TREND_SCORE_THRESHOLD
    ):
        return "positive"
    if (
        breakdown.bearish / total >= TREND_CONSENSUS_FRACTION
        and weighted_score < -TREND_SCORE_THRESHOLD
    ):
        return "negative"
    return "neutral"


def calculate_trend_confidence(
    breakdown: PriceTrendBreakdown, news_count: int
) -> float:
    total = breakdown.total
    if total == 0:
        return MIN_CONFIDENCE_PERCENT

    consensus_fraction = max(breakdown.bullish, breakdown.bearish, breakdown.neutral) / total
    volatility_factor = min(abs(breakdown.avg_change) / TREND_VOLATILITY_SCALE, 1)
    news_confidence_factor = min(news_count / TREND_NEWS_SCALE, 1)

    confidence = (
        consensus_fraction * 50 + volatility_factor * 20 + news_confidence_factor * 15
    )
    return clamp(
        confidence,
        MIN_CONFIDENCE_PERCENT,
        MAX_CONFIDENCE_PERCENT,
        name="trend_confidence",
    )


def generate_reasoning(
    prediction_type: PredictionType,
    breakdown: PriceTrendBreakdown,
    news: NewsSentimentSummary,
    macro_summary: str,
) -> str:
    direction = {"positive": "upward", "negative": "downward"}.get(
        prediction_type, "sideways"
    )
    avg = breakdown.avg_change

    parts = [
        f"Overall market shows {direction} trend.",
        f"{breakdown.bullish} of {breakdown.total} tracked assets are bullish "
        f"(+{TREND_ASSET_THRESHOLD:g}%+), {breakdown.bearish} are bearish "
        f"(-{TREND_ASSET_THRESHOLD:g}%+), and {breakdown.neutral} are neutral.",
        f"Average price change: {'+' if avg > 0 else ''}{avg:.2f}%.",
    ]

    if news.count > 0:
        if news.sentiment > 0.5:
            label = "positive"
        elif news.sentiment < -0.5:
            label = "negative"
        else:
            label = "neutral"
        parts.append(f"News sentiment is {label} ({news.summary}).")

    parts.append(f"{macro_summary}.")

    if prediction_type == "positive":
        parts.append("Market conditions favor bullish momentum in the near term.")
    elif prediction_type == "negative":
        parts.append("Market conditions suggest caution and potential downside risk.")
    else:
        parts.append("Market shows mixed signals; consolidation likely.")

    return " ".join(parts)


class MarketTrendPredictor:
    """
    Produces and records market-wide trend predictions.
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
        self._clock = clock

    async def generate_market_trend_prediction(self) -> TrendPrediction:
        now = self._clock()

        changes = await self._price_changes(now)
        news = await self._news_sentiment(now)
        macro_summary = await self._macro_summary(now)

        breakdown = analyze_price_trends(changes)
        prediction_type = determine_prediction_type(breakdown, news.sentiment)

        prediction = TrendPrediction(
            prediction_type=prediction_type,
            confidence_percent=calculate_trend_confidence(breakdown, news.count),
            reasoning=generate_reasoning(
                prediction_type, breakdown, news, macro_summary
            ),
            average_price_change=breakdown.avg_change,
            bullish_count=breakdown.bullish,
            bearish_count=breakdown.bearish,
            neutral_count=breakdown.neutral,
            news_sentiment_score=news.sentiment,
            macro_events_summary=macro_summary,
            predicted_at=now,
        )
        logger.info(
            f"Market trend: {prediction.prediction_type} "
            f"({prediction.confidence_percent:.0f}% confidence)"
        )
        return prediction

    async def _price_changes(self, now: datetime) -> dict[str, float]:
        changes: dict[str, float] = {}
        for symbol in self.assets:
            try:
                ticks = await self.store.get_price_history(symbol, now - TREND_WINDOW, now)
            except UpstreamUnavailable as e:
                logger.warning(f"Skipping {symbol} in trend: {e}")
                continue
            if len(ticks) >= 2:
                changes[symbol] = percent_change(ticks[0].price, ticks[-1].price)
        return changes

    async def _news_sentiment(self, now: datetime) -> NewsSentimentSummary:
        try:
            events = await self.store.get_events(
                now - TREND_WINDOW, now, limit=TREND_NEWS_LIMIT
            )
        except UpstreamUnavailable as e:
            logger.warning(f"Recent news unavailable for trend: {e}")
            return NewsSentimentSummary()

        if not events:
            return NewsSentimentSummary()

        high_impact = sum(1 for e in events if e.impact_level == "high")
        return NewsSentimentSummary(
            sentiment=sum(e.sentiment_score for e in events) / len(events),
            count=len(events),
            summary=f"{len(events)} news articles analyzed ({high_impact} high-impact)",
        )

    async def _macro_summary(self, now: datetime) -> str:
        try:
            snapshot = await self.store.get_latest_market_index(since=now - TREND_WINDOW)
        except UpstreamUnavailable as e:
            logger.warning(f"Market index unavailable: {e}")
            snapshot = None

        if snapshot is None:
            return "Limited macro data available"
        change = snapshot.change_percent
        return f"S&P 500: {'+' if change > 0 else ''}{change:.2f}% (24h)"

    async def save_prediction(self, prediction: TrendPrediction) -> bool:
        try:
            await self.store.append_trend_prediction(prediction)
        except PersistenceFailure as e:
            logger.error(f"Error saving market trend prediction: {e}")
            return False
        logger.info(
            f"Market trend prediction saved: {prediction.prediction_type} "
            f"({prediction.confidence_percent:.0f}% confidence)"
        )
        return True

    async def latest_prediction(self) -> TrendPrediction | None:
        history = await self.prediction_history(limit=1)
        return history[0] if history else None

    async def prediction_history(self, limit: int = 24) -> list[TrendPrediction]:
        try:
            return await self.store.get_trend_predictions(limit)
        except UpstreamUnavailable as e:
            logger.error(f"Error fetching prediction history: {e}")
            return []
