import asyncio
from datetime import timedelta

import pytest

from marketpulse.analysis.recommendation import (
    RecommendationEngine,
    weighted_sentiment,
    window_change,
)
from marketpulse.analysis.types import (
    EventCategory,
    NewsSignalInput,
    Recommendation,
    RecommendationAction,
    RecommendationInput,
)
from tests.conftest import NOW, fixed_clock, tick


def signal_news(sentiment: float, impact: str = "medium") -> NewsSignalInput:
    return NewsSignalInput(
        sentiment=sentiment,
        category=EventCategory.MARKET,
        impact_level=impact,
        published_at=NOW - timedelta(hours=3),
    )


@pytest.fixture
def engine():
    return RecommendationEngine(store=None, assets=["BTC"], clock=fixed_clock())


class TestHelpers:
    def test_weighted_sentiment_by_impact(self):
        items = [signal_news(0.9, "high"), signal_news(-0.3, "low")]
        assert weighted_sentiment(items) == pytest.approx(0.6)

    def test_weighted_sentiment_empty(self):
        assert weighted_sentiment([]) == 0.0

    def test_window_change_uses_time_window(self):
        history = [
            tick("BTC", NOW, 110.0),
            tick("BTC", NOW - timedelta(hours=12), 105.0),
            tick("BTC", NOW - timedelta(hours=24), 100.0),
            tick("BTC", NOW - timedelta(hours=48), 50.0),
        ]
        assert window_change(history, timedelta(hours=24)) == pytest.approx(10.0)
        assert window_change(history, timedelta(hours=168)) == pytest.approx(120.0)

    def test_window_change_needs_two_ticks(self):
        assert window_change([tick("BTC", NOW, 100.0)], timedelta(hours=24)) == 0.0


class TestGenerateRecommendation:
    def test_no_signals_holds(self, engine):
        rec = engine.generate_recommendation(
            RecommendationInput(asset_symbol="BTC", price_history=[tick("BTC", NOW, 100.0)])
        )

        assert rec.action == RecommendationAction.HOLD
        assert rec.confidence_percent == 75
        assert rec.reasoning == ""
        assert rec.target_price is None
        assert rec.stop_loss is None

    def test_all_positive_signals_buy(self, engine):
        data = RecommendationInput(
            asset_symbol="BTC",
            recent_news=[signal_news(0.8, "high")],
            price_history=[
                tick("BTC", NOW, 125.0),
                tick("BTC", NOW - timedelta(hours=24), 108.0),
                tick("BTC", NOW - timedelta(hours=168), 100.0),
            ],
            market_trend=3.0,
        )

        rec = engine.generate_recommendation(data)

        assert rec.action == RecommendationAction.BUY
        assert rec.confidence_percent >= 90
        assert rec.target_price == pytest.approx(125.0 * 1.15)
        assert rec.stop_loss == pytest.approx(125.0 * 0.92)
        assert "Positive news sentiment (80%)" in rec.reasoning
        assert "Strong weekly momentum (+25.0%)" in rec.reasoning
        assert "Positive market conditions (S&P +3.0%)" in rec.reasoning

    def test_high_impact_negative_news_sells(self, engine):
        data = RecommendationInput(
            asset_symbol="BTC",
            recent_news=[signal_news(-0.7, "high")],
            price_history=[tick("BTC", NOW, 200.0)],
        )

        rec = engine.generate_recommendation(data)

        assert rec.action == RecommendationAction.SELL
        assert rec.confidence_percent == 95
        assert rec.stop_loss == pytest.approx(216.0)
        assert rec.target_price is None
        assert "1 high-impact negative event(s)" in rec.reasoning

    def test_mixed_signals_hold_with_reduced_confidence(self, engine):
        data = RecommendationInput(
            asset_symbol="BTC",
            recent_news=[signal_news(0.5)],
            price_history=[
                tick("BTC", NOW, 88.0),
                tick("BTC", NOW - timedelta(hours=24), 100.0),
            ],
        )

        rec = engine.generate_recommendation(data)

        assert rec.action == RecommendationAction.HOLD
        assert rec.confidence_percent == 66
        assert "Significant 24h price drop (-12.0%)" in rec.reasoning

    def test_history_order_does_not_matter(self, engine):
        ticks = [
            tick("BTC", NOW - timedelta(hours=24), 100.0),
            tick("BTC", NOW, 115.0),
        ]
        ascending = engine.generate_recommendation(
            RecommendationInput(asset_symbol="BTC", price_history=ticks)
        )
        descending = engine.generate_recommendation(
            RecommendationInput(asset_symbol="BTC", price_history=list(reversed(ticks)))
        )

        assert ascending == descending
        assert ascending.action == RecommendationAction.BUY

    def test_deterministic(self, engine):
        data = RecommendationInput(
            asset_symbol="BTC",
            recent_news=[signal_news(-0.4), signal_news(0.1, "low")],
            price_history=[tick("BTC", NOW, 50.0)],
            market_trend=-2.5,
        )

        assert engine.generate_recommendation(data) == engine.generate_recommendation(data)

    def test_invalid_risk_levels_rejected(self):
        with pytest.raises(ValueError):
            Recommendation(
                asset_symbol="BTC",
                action=RecommendationAction.SELL,
                confidence_percent=80,
                reasoning="",
                target_price=10.0,
                stop_loss=12.0,
            )


class TestPersistence:
    async def test_generate_all_skips_assets_without_history(self, store):
        await store.add_price_ticks(
            [
                tick("BTC", NOW - timedelta(hours=24), 100.0),
                tick("BTC", NOW - timedelta(hours=1), 101.0),
            ]
        )
        engine = RecommendationEngine(store, assets=["BTC", "ETH"], clock=fixed_clock())

        recs = await engine.generate_all_recommendations()

        assert [r.asset_symbol for r in recs] == ["BTC"]
        assert recs[0].generated_at == NOW
        assert recs[0].expires_at == NOW + timedelta(hours=24)

    async def test_market_trend_comes_from_index(self, store, seed_index):
        await store.add_price_ticks([tick("BTC", NOW - timedelta(hours=1), 100.0)])
        await seed_index(-4.0)
        engine = RecommendationEngine(store, assets=["BTC"], clock=fixed_clock())

        recs = await engine.generate_all_recommendations()

        assert recs[0].action == RecommendationAction.SELL
        assert "Negative market conditions (S&P -4.0%)" in recs[0].reasoning

    async def test_save_replaces_active_set(self, store):
        engine = RecommendationEngine(store, assets=["BTC", "ETH"], clock=fixed_clock())
        hold = dict(action=RecommendationAction.HOLD, confidence_percent=75, reasoning="")

        assert await engine.save_recommendations(
            [
                Recommendation(asset_symbol="BTC", **hold),
                Recommendation(asset_symbol="ETH", **hold),
            ]
        )
        assert await engine.save_recommendations(
            [
                Recommendation(
                    asset_symbol="BTC",
                    action=RecommendationAction.BUY,
                    confidence_percent=80,
                    reasoning="Strong 24h price increase (+12.0%)",
                    target_price=115.0,
                    stop_loss=92.0,
                )
            ]
        )

        active = await engine.active_recommendations()
        assert len(active) == 1
        assert active[0].asset_symbol == "BTC"
        assert active[0].action == RecommendationAction.BUY
        assert active[0].is_active

    async def test_refresh_generates_and_saves(self, store):
        await store.add_price_ticks(
            [
                tick("ETH", NOW - timedelta(hours=20), 100.0),
                tick("ETH", NOW - timedelta(hours=2), 85.0),
            ]
        )
        engine = RecommendationEngine(store, assets=["ETH"], clock=fixed_clock())

        recs = await engine.refresh_recommendations()
        active = await engine.active_recommendations()

        assert len(recs) == 1
        assert recs[0].action == RecommendationAction.SELL
        assert [r.asset_symbol for r in active] == ["ETH"]
        assert active[0].stop_loss == pytest.approx(85.0 * 1.08)

    async def test_overlapping_refreshes_leave_one_active_set(self, store):
        await store.add_price_ticks(
            [
                tick("BTC", NOW - timedelta(hours=20), 100.0),
                tick("BTC", NOW - timedelta(hours=1), 101.0),
                tick("ETH", NOW - timedelta(hours=1), 2000.0),
            ]
        )
        engine = RecommendationEngine(store, assets=["BTC", "ETH"], clock=fixed_clock())

        first, second = await asyncio.gather(
            engine.refresh_recommendations(), engine.refresh_recommendations()
        )
        active = await engine.active_recommendations()

        assert len(first) == len(second) == 2
        assert [r.asset_symbol for r in active] == ["BTC", "ETH"]

    async def test_empty_asset_list_is_respected(self, store):
        await store.add_price_ticks([tick("BTC", NOW - timedelta(hours=1), 100.0)])
        engine = RecommendationEngine(store, assets=[], clock=fixed_clock())

        assert engine.assets == []
        assert engine.correlation_engine.assets == []
        assert await engine.generate_all_recommendations() == []
