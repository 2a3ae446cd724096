from datetime import datetime, timedelta

import pytest

from marketpulse.analysis.types import (
    EventCategory,
    MarketIndexSnapshot,
    NewsEvent,
    PriceTick,
)
from marketpulse.datastore.engine import close_db, init_db
from marketpulse.datastore.store import SQLMarketStore

NOW = datetime(2025, 3, 10, 12, 0, 0)


def fixed_clock(at: datetime = NOW):
    return lambda: at


def tick(symbol: str, at: datetime, price: float) -> PriceTick:
    return PriceTick(asset_symbol=symbol, timestamp=at, price=price)


def news(
    at: datetime,
    sentiment: float = 0.0,
    impact: str = "medium",
    category: EventCategory = EventCategory.MARKET,
    event_id: str = "evt-1",
) -> NewsEvent:
    return NewsEvent(
        id=event_id,
        title=f"Event {event_id}",
        category=category,
        sentiment_score=sentiment,
        impact_level=impact,
        published_at=at,
    )


@pytest.fixture
async def store():
    factory = await init_db("sqlite+aiosqlite:///:memory:")
    yield SQLMarketStore(factory, market_index_name="SP500")
    await close_db()


@pytest.fixture
def seed_index(store):
    async def _seed(change_percent: float, at: datetime = NOW - timedelta(hours=1)):
        await store.add_market_index(
            MarketIndexSnapshot(
                index_name="SP500",
                value=5000.0,
                change_percent=change_percent,
                timestamp=at,
            )
        )

    return _seed
