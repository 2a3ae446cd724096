"""
Recommendation engine - per-asset BUY/SELL/HOLD decisions.

Each asset is scored from independent weighted signals (news sentiment, 24h
and 7d momentum, broader market trend, high-impact negative news). The
normalized score picks the action; the latest price sets target/stop levels.
"""

import asyncio
import math
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable

from loguru import logger

from marketpulse.analysis.config import (
    ACTION_SCORE_THRESHOLD,
    BUY_STOP_MULTIPLIER,
    BUY_TARGET_MULTIPLIER,
    HIGH_IMPACT_NEGATIVE_SENTIMENT,
    HIGH_IMPACT_NEGATIVE_WEIGHT,
    HOLD_BASE_CONFIDENCE,
    IMPACT_SENTIMENT_WEIGHTS,
    MARKET_TREND_THRESHOLD,
    MARKET_TREND_WEIGHT,
    MAX_CONFIDENCE_PERCENT,
    MIN_CONFIDENCE_PERCENT,
    MOMENTUM_7D_DOWN_WEIGHT,
    MOMENTUM_7D_THRESHOLD,
    MOMENTUM_7D_UP_WEIGHT,
    MOMENTUM_24H_DOWN_WEIGHT,
    MOMENTUM_24H_THRESHOLD,
    MOMENTUM_24H_UP_WEIGHT,
    RECOMMENDATION_NEWS_LIMIT,
    RECOMMENDATION_NEWS_WINDOW,
    RECOMMENDATION_PRICE_WINDOW,
    RECOMMENDATION_TTL,
    SELL_STOP_MULTIPLIER,
    SENTIMENT_THRESHOLD,
    SENTIMENT_WEIGHT,
)
from marketpulse.analysis.correlation import CorrelationEngine, percent_change
from marketpulse.analysis.types import (
    NewsEvent,
    NewsSignalInput,
    PriceTick,
    Recommendation,
    RecommendationAction,
    RecommendationInput,
    Signal,
)
from marketpulse.exceptions import PersistenceFailure, UpstreamUnavailable
from marketpulse.settings import global_settings
from marketpulse.utils import clamp, utcnow

if TYPE_CHECKING:
    from marketpulse.datastore.base import MarketStore


def window_change(history: list[PriceTick], window: timedelta) -> float:
    """Percent change across `window`, for history ordered most recent first."""
    if len(history) < 2:
        return 0.0
    latest = history[0]
    in_window = [t for t in history if t.timestamp >= latest.timestamp - window]
    if len(in_window) < 2:
        return 0.0
    return percent_change(in_window[-1].price, latest.price)


def weighted_sentiment(news: list[NewsSignalInput]) -> float:
    """Average sentiment, weighted by impact level."""
    total_weight = 0
    weighted_sum = 0.0
    for item in news:
        weight = IMPACT_SENTIMENT_WEIGHTS.get(item.impact_level, 1)
        weighted_sum += item.sentiment * weight
        total_weight += weight
    return weighted_sum / total_weight if total_weight > 0 else 0.0


class RecommendationEngine:
    """
    Generates and persists per-asset recommendations.
    """

    def __init__(
        self,
        store: "MarketStore",
        correlation_engine: CorrelationEngine | None = None,
        assets: list[str] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.assets = (
            list(global_settings.tracked_assets) if assets is None else list(assets)
        )
        self.correlation_engine = correlation_engine or CorrelationEngine(
            store, assets=self.assets, clock=clock
        )
        self._clock = clock
        self._refresh_lock = asyncio.Lock()

    def _collect_signals(
        self,
        avg_sentiment: float,
        change_24h: float,
        change_7d: float,
        market_trend: float,
        news: list[NewsSignalInput],
    ) -> list[Signal]:
        signals: list[Signal] = []

        if avg_sentiment > SENTIMENT_THRESHOLD:
            signals.append(
                Signal(
                    weight=SENTIMENT_WEIGHT,
                    direction=1,
                    reason=f"Positive news sentiment ({avg_sentiment * 100:.0f}%)",
                )
            )
        elif avg_sentiment < -SENTIMENT_THRESHOLD:
            signals.append(
                Signal(
                    weight=SENTIMENT_WEIGHT,
                    direction=-1,
                    reason=f"Negative news sentiment ({avg_sentiment * 100:.0f}%)",
                )
            )

        if change_24h > MOMENTUM_24H_THRESHOLD:
            signals.append(
                Signal(
                    weight=MOMENTUM_24H_UP_WEIGHT,
                    direction=1,
                    reason=f"Strong 24h price increase (+{change_24h:.1f}%)",
                )
            )
        elif change_24h < -MOMENTUM_24H_THRESHOLD:
            signals.append(
                Signal(
                    weight=MOMENTUM_24H_DOWN_WEIGHT,
                    direction=-1,
                    reason=f"Significant 24h price drop ({change_24h:.1f}%)",
                )
            )

        if change_7d > MOMENTUM_7D_THRESHOLD:
            signals.append(
                Signal(
                    weight=MOMENTUM_7D_UP_WEIGHT,
                    direction=1,
                    reason=f"Strong weekly momentum (+{change_7d:.1f}%)",
                )
            )
        elif change_7d < -MOMENTUM_7D_THRESHOLD:
            signals.append(
                Signal(
                    weight=MOMENTUM_7D_DOWN_WEIGHT,
                    direction=-1,
                    reason=f"Weak weekly performance ({change_7d:.1f}%)",
                )
            )

        if market_trend > MARKET_TREND_THRESHOLD:
            signals.append(
                Signal(
                    weight=MARKET_TREND_WEIGHT,
                    direction=1,
                    reason=f"Positive market conditions (S&P +{market_trend:.1f}%)",
                )
            )
        elif market_trend < -MARKET_TREND_THRESHOLD:
            signals.append(
                Signal(
                    weight=MARKET_TREND_WEIGHT,
                    direction=-1,
                    reason=f"Negative market conditions (S&P {market_trend:.1f}%)",
                )
            )

        high_impact_negative = [
            n
            for n in news
            if n.impact_level == "high" and n.sentiment < HIGH_IMPACT_NEGATIVE_SENTIMENT
        ]
        if high_impact_negative:
            signals.append(
                Signal(
                    weight=HIGH_IMPACT_NEGATIVE_WEIGHT,
                    direction=-1,
                    reason=f"{len(high_impact_negative)} high-impact negative event(s)",
                )
            )

        return signals

    def generate_recommendation(self, data: RecommendationInput) -> Recommendation:
        """Decide BUY/SELL/HOLD for one asset from its explicit inputs only."""
        history = sorted(data.price_history, key=lambda t: t.timestamp, reverse=True)

        signals = self._collect_signals(
            avg_sentiment=weighted_sentiment(data.recent_news),
            change_24h=window_change(history, timedelta(hours=24)),
            change_7d=window_change(history, RECOMMENDATION_PRICE_WINDOW),
            market_trend=data.market_trend,
            news=data.recent_news,
        )

        total_weight = sum(s.weight for s in signals)
        total_score = sum(s.weight * s.direction for s in signals)
        score = total_score / total_weight if total_weight > 0 else 0.0

        if score > ACTION_SCORE_THRESHOLD:
            action = RecommendationAction.BUY
            confidence = min(MAX_CONFIDENCE_PERCENT, 50 + score * 100)
        elif score < -ACTION_SCORE_THRESHOLD:
            action = RecommendationAction.SELL
            confidence = min(MAX_CONFIDENCE_PERCENT, 50 + abs(score) * 100)
        else:
            action = RecommendationAction.HOLD
            confidence = max(
                MIN_CONFIDENCE_PERCENT, HOLD_BASE_CONFIDENCE - abs(score) * 100
            )

        current_price = history[0].price if history else 0.0
        target_price: float | None = None
        stop_loss: float | None = None
        if action == RecommendationAction.BUY:
            target_price = current_price * BUY_TARGET_MULTIPLIER
            stop_loss = current_price * BUY_STOP_MULTIPLIER
        elif action == RecommendationAction.SELL:
            stop_loss = current_price * SELL_STOP_MULTIPLIER

        return Recommendation(
            asset_symbol=data.asset_symbol,
            action=action,
            # Round half up to a whole percent
            confidence_percent=clamp(
                math.floor(confidence + 0.5),
                MIN_CONFIDENCE_PERCENT,
                MAX_CONFIDENCE_PERCENT,
                name="confidence_percent",
            ),
            reasoning="; ".join(s.reason for s in signals),
            target_price=target_price,
            stop_loss=stop_loss,
        )

    async def generate_all_recommendations(self) -> list[Recommendation]:
        """Mine correlations, then build one recommendation per tracked asset."""
        await self.correlation_engine.analyze_all_correlations()

        now = self._clock()
        market_trend = await self._market_trend()
        news = await self._recent_news(now)

        recommendations: list[Recommendation] = []
        for symbol in self.assets:
            try:
                history = await self.store.get_price_history(
                    symbol, now - RECOMMENDATION_PRICE_WINDOW, now
                )
            except UpstreamUnavailable as e:
                logger.warning(f"Skipping {symbol}, price history unavailable: {e}")
                continue

            if not history:
                logger.debug(f"Skipping {symbol}: no price history")
                continue

            recommendation = self.generate_recommendation(
                RecommendationInput(
                    asset_symbol=symbol,
                    recent_news=news,
                    price_history=list(reversed(history)),
                    market_trend=market_trend,
                )
            )
            recommendations.append(
                recommendation.model_copy(
                    update={"generated_at": now, "expires_at": now + RECOMMENDATION_TTL}
                )
            )

        logger.info(
            f"Generated {len(recommendations)} recommendations: "
            + ", ".join(f"{r.asset_symbol}={r.action.value}" for r in recommendations)
        )
        return recommendations

    async def _market_trend(self) -> float:
        try:
            return await self.store.get_market_trend()
        except UpstreamUnavailable as e:
            logger.warning(f"Market trend unavailable, assuming flat: {e}")
            return 0.0

    async def _recent_news(self, now: datetime) -> list[NewsSignalInput]:
        try:
            events: list[NewsEvent] = await self.store.get_events(
                now - RECOMMENDATION_NEWS_WINDOW, now, limit=RECOMMENDATION_NEWS_LIMIT
            )
        except UpstreamUnavailable as e:
            logger.warning(f"Recent news unavailable: {e}")
            return []
        return [
            NewsSignalInput(
                sentiment=event.sentiment_score,
                category=event.category,
                impact_level=event.impact_level,
                published_at=event.published_at,
            )
            for event in events
        ]

    async def save_recommendations(self, recommendations: list[Recommendation]) -> bool:
        """Swap the active set for this batch in one atomic store write."""
        try:
            await self.store.replace_active_recommendations(recommendations)
        except PersistenceFailure as e:
            logger.error(f"Error saving recommendations: {e}")
            return False
        return True

    async def refresh_recommendations(self) -> list[Recommendation]:
        """Generate and save a batch; overlapping refreshes run one at a time."""
        async with self._refresh_lock:
            recommendations = await self.generate_all_recommendations()
            await self.save_recommendations(recommendations)
            return recommendations

    async def active_recommendations(self) -> list[Recommendation]:
        try:
            return await self.store.get_active_recommendations()
        except UpstreamUnavailable as e:
            logger.error(f"Error fetching active recommendations: {e}")
            return []
