"""
Market store interface.

Every collaborator the analysis engines talk to goes through this contract.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from marketpulse.analysis.types import (
    CorrelationPattern,
    MarketIndexSnapshot,
    NewsEvent,
    PatternFilter,
    PatternKey,
    PriceTick,
    Recommendation,
    TrendPrediction,
    UpsertOutcome,
)


class MarketStore(ABC):
    """
    Abstract base class for price/event accessors and analysis output stores.

    Implementations should:
    - Return None / [] when no data exists in the requested window
    - Raise UpstreamUnavailable when a read fails
    - Raise PersistenceFailure when a write fails
    """

    @abstractmethod
    async def get_price(
        self, asset_symbol: str, timestamp: datetime, tolerance: timedelta
    ) -> PriceTick | None:
        """Earliest tick within [timestamp - tolerance, timestamp + tolerance]."""
        ...

    @abstractmethod
    async def get_price_history(
        self, asset_symbol: str, since: datetime, until: datetime
    ) -> list[PriceTick]:
        """Ticks in [since, until], oldest first."""
        ...

    @abstractmethod
    async def get_events(
        self, since: datetime, until: datetime, limit: int | None = None
    ) -> list[NewsEvent]:
        """Events published in [since, until], newest first."""
        ...

    @abstractmethod
    async def get_market_trend(self) -> float:
        """Latest percent change of the reference index, 0.0 if unknown."""
        ...

    @abstractmethod
    async def get_latest_market_index(
        self, since: datetime | None = None
    ) -> MarketIndexSnapshot | None:
        ...

    @abstractmethod
    async def upsert_correlation_pattern(
        self, pattern_key: PatternKey, pattern: CorrelationPattern
    ) -> UpsertOutcome:
        """Insert a new pattern or accumulate onto the existing one."""
        ...

    @abstractmethod
    async def query_correlation_patterns(
        self, pattern_filter: PatternFilter
    ) -> list[CorrelationPattern]:
        """Matching patterns sorted by confidence, highest first."""
        ...

    @abstractmethod
    async def replace_active_recommendations(
        self, new_batch: list[Recommendation]
    ) -> None:
        """Atomically deactivate the active set and insert new_batch as active."""
        ...

    @abstractmethod
    async def get_active_recommendations(self) -> list[Recommendation]:
        ...

    @abstractmethod
    async def append_trend_prediction(self, prediction: TrendPrediction) -> None:
        ...

    @abstractmethod
    async def get_trend_predictions(self, limit: int = 24) -> list[TrendPrediction]:
        """Prediction history, newest first."""
        ...
