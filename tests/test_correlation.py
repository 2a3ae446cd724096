from datetime import timedelta

import pytest

from marketpulse.analysis.correlation import (
    CorrelationEngine,
    accumulate_confidence,
    calculate_confidence,
    percent_change,
)
from marketpulse.analysis.types import (
    CorrelationPattern,
    EventCategory,
    PatternFilter,
    PriceTick,
    UpsertOutcome,
)
from marketpulse.exceptions import PersistenceFailure, UpstreamUnavailable
from tests.conftest import NOW, fixed_clock, news, tick

EVENT_AT = NOW - timedelta(days=10)


def pattern(
    event_id: str,
    symbol: str,
    change: float,
    confidence: float,
    category: EventCategory = EventCategory.TARIFF,
    lag: int = 24,
) -> CorrelationPattern:
    return CorrelationPattern(
        event_type=category,
        event_id=event_id,
        asset_symbol=symbol,
        price_change_percent=change,
        time_lag_hours=lag,
        confidence_score=confidence,
        event_timestamp=EVENT_AT,
    )


class TestConfidence:
    def test_strong_aligned_move_is_capped(self):
        assert calculate_confidence(8.0, 0.6, "high") == pytest.approx(0.95)

    def test_unaligned_small_move_gets_base(self):
        assert calculate_confidence(-3.0, 0.4, "low") == pytest.approx(0.5)

    def test_magnitude_steps_accumulate(self):
        assert calculate_confidence(6.0, -0.2, "medium") == pytest.approx(0.7)
        assert calculate_confidence(-25.0, 0.3, "low") == pytest.approx(0.8)

    def test_zero_sentiment_counts_as_negative(self):
        assert calculate_confidence(-2.0, 0.0, "low") == pytest.approx(0.7)
        assert calculate_confidence(2.0, 0.0, "low") == pytest.approx(0.5)

    def test_accumulate_uses_previous_count(self):
        assert accumulate_confidence(1, 0.7) == pytest.approx(0.75)
        assert accumulate_confidence(10, 0.9) == pytest.approx(0.95)

    def test_percent_change(self):
        assert percent_change(100.0, 103.0) == pytest.approx(3.0)
        assert percent_change(200.0, 150.0) == pytest.approx(-25.0)


class TestMining:
    async def _seed_btc(self, store):
        await store.add_price_ticks(
            [
                tick("BTC", EVENT_AT - timedelta(minutes=50), 100.0),
                tick("BTC", EVENT_AT + timedelta(hours=1), 103.0),
                tick("BTC", EVENT_AT + timedelta(hours=4), 100.5),
            ]
        )

    async def test_mine_records_material_moves(self, store):
        await self._seed_btc(store)
        engine = CorrelationEngine(store, assets=["BTC", "ETH"], clock=fixed_clock())
        event = news(EVENT_AT, sentiment=0.6, impact="high", category=EventCategory.FED_POLICY)

        stats = await engine.mine([event])

        assert stats.events_processed == 1
        assert stats.patterns_created == 1
        assert stats.patterns_updated == 0
        assert stats.immaterial_moves == 1
        assert stats.lags_without_data == 5
        assert stats.pairs_without_baseline == 1
        assert stats.failures == 0

        patterns = await engine.strongest_correlations(EventCategory.FED_POLICY)
        assert len(patterns) == 1
        found = patterns[0]
        assert found.asset_symbol == "BTC"
        assert found.time_lag_hours == 1
        assert found.price_change_percent == pytest.approx(3.0)
        assert found.confidence_score == pytest.approx(0.9)
        assert found.occurrence_count == 1

    async def test_remining_updates_existing_pattern(self, store):
        await self._seed_btc(store)
        await store.add_news_event(
            "Fed holds rates",
            EVENT_AT,
            category=EventCategory.FED_POLICY,
            sentiment_score=0.6,
            impact_level="high",
            event_id="evt-fed",
        )
        engine = CorrelationEngine(store, assets=["BTC"], clock=fixed_clock())

        first = await engine.analyze_all_correlations()
        second = await engine.analyze_all_correlations()

        assert first.patterns_created == 1
        assert second.patterns_created == 0
        assert second.patterns_updated == 1

        patterns = await store.query_correlation_patterns(PatternFilter())
        assert len(patterns) == 1
        assert patterns[0].occurrence_count == 2
        assert patterns[0].confidence_score == pytest.approx(0.95)

    async def test_events_outside_lookback_are_ignored(self, store):
        await self._seed_btc(store)
        await store.add_news_event(
            "Old news",
            EVENT_AT,
            category=EventCategory.MARKET,
            sentiment_score=0.2,
            impact_level="low",
        )
        engine = CorrelationEngine(store, assets=["BTC"], clock=fixed_clock())

        stats = await engine.analyze_all_correlations(lookback_days=5)

        assert stats.events_processed == 0
        assert stats.patterns_recorded == 0

    async def test_persistence_failure_skips_pattern(self):
        class FailingStore:
            async def get_price(self, symbol, at, tolerance):
                price = 100.0 if at == EVENT_AT else 110.0
                return PriceTick(asset_symbol=symbol, timestamp=at, price=price)

            async def upsert_correlation_pattern(self, key, value):
                raise PersistenceFailure("upsert_correlation_pattern", key=key, cause="disk full")

        engine = CorrelationEngine(FailingStore(), assets=["BTC"], clock=fixed_clock())

        stats = await engine.mine([news(EVENT_AT, sentiment=0.5)])

        assert stats.events_processed == 1
        assert stats.failures == 7
        assert stats.patterns_recorded == 0

    async def test_unavailable_lag_skips_only_that_lag(self):
        class PartialStore:
            def __init__(self):
                self.recorded = []

            async def get_price(self, symbol, at, tolerance):
                if at == EVENT_AT + timedelta(hours=4):
                    raise UpstreamUnavailable("timeout", operation="get_price")
                price = 100.0 if at == EVENT_AT else 110.0
                return PriceTick(asset_symbol=symbol, timestamp=at, price=price)

            async def upsert_correlation_pattern(self, key, value):
                self.recorded.append(key.time_lag_hours)
                return UpsertOutcome.CREATED

        partial = PartialStore()
        engine = CorrelationEngine(partial, assets=["BTC"], clock=fixed_clock())

        stats = await engine.mine([news(EVENT_AT, sentiment=0.5)])

        assert partial.recorded == [1, 12, 24, 48, 72, 168]
        assert stats.patterns_created == 6
        assert stats.failures == 1
        assert stats.lags_without_data == 1
        assert stats.pairs_without_baseline == 0

    async def test_empty_asset_list_mines_nothing(self, store):
        await self._seed_btc(store)
        engine = CorrelationEngine(store, assets=[], clock=fixed_clock())

        stats = await engine.mine([news(EVENT_AT, sentiment=0.6)])

        assert engine.assets == []
        assert stats.events_processed == 1
        assert stats.patterns_recorded == 0
        assert stats.pairs_without_baseline == 0

    async def test_zero_day_lookback_is_respected(self, store):
        await store.add_news_event(
            "Recent news",
            NOW - timedelta(hours=1),
            category=EventCategory.MARKET,
            sentiment_score=0.2,
            impact_level="low",
        )
        engine = CorrelationEngine(store, assets=["BTC"], clock=fixed_clock())

        stats = await engine.analyze_all_correlations(lookback_days=0)

        assert stats.events_processed == 0

    async def test_unavailable_events_abort_the_pass(self):
        class DownStore:
            async def get_events(self, since, until, limit=None):
                raise UpstreamUnavailable("timeout", operation="get_events")

        engine = CorrelationEngine(DownStore(), assets=["BTC"], clock=fixed_clock())

        stats = await engine.analyze_all_correlations()

        assert stats.failures == 1
        assert stats.events_processed == 0


class TestQueries:
    async def _seed_patterns(self, store):
        for p in [
            pattern("e1", "BTC", 4.0, 0.6, EventCategory.REGULATION),
            pattern("e2", "BTC", -6.0, 0.8, EventCategory.REGULATION),
            pattern("e3", "ETH", 12.0, 0.9, EventCategory.REGULATION),
            pattern("e4", "SOL", 15.0, 0.95, EventCategory.SECURITY),
        ]:
            await store.upsert_correlation_pattern(p.key, p)

    async def test_strongest_filters_and_orders(self, store):
        await self._seed_patterns(store)
        engine = CorrelationEngine(store, assets=["BTC"], clock=fixed_clock())

        patterns = await engine.strongest_correlations(EventCategory.REGULATION)

        assert [p.confidence_score for p in patterns] == pytest.approx([0.9, 0.8])
        assert all(p.event_type == EventCategory.REGULATION for p in patterns)

    async def test_strongest_respects_limit(self, store):
        await self._seed_patterns(store)
        engine = CorrelationEngine(store, assets=["BTC"], clock=fixed_clock())

        patterns = await engine.strongest_correlations(
            EventCategory.REGULATION, min_confidence=0.5, limit=1
        )

        assert len(patterns) == 1
        assert patterns[0].event_id == "e3"

    async def test_predict_price_impact(self, store):
        for p in [
            pattern("t1", "BTC", -5.0, 0.8),
            pattern("t2", "BTC", 2.0, 0.6),
            pattern("t3", "ETH", -10.0, 0.9),
            pattern("t4", "SOL", 8.0, 0.55),
        ]:
            await store.upsert_correlation_pattern(p.key, p)
        engine = CorrelationEngine(store, assets=["BTC"], clock=fixed_clock())

        predictions = await engine.predict_price_impact(EventCategory.TARIFF, -0.5)

        assert set(predictions) == {"BTC", "ETH"}
        assert predictions["BTC"].prediction == pytest.approx(-2.6)
        assert predictions["BTC"].confidence == pytest.approx(0.7)
        assert predictions["ETH"].prediction == pytest.approx(-4.5)
        assert predictions["ETH"].confidence == pytest.approx(0.9)

    async def test_predict_without_patterns_is_empty(self, store):
        engine = CorrelationEngine(store, assets=["BTC"], clock=fixed_clock())

        assert await engine.predict_price_impact(EventCategory.ADOPTION, 0.5) == {}
