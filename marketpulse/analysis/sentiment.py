"""
Keyword-based event classifier.

Derives sentiment score, category and impact level for a headline. Anything
implementing EventClassifier can replace it.
"""

from typing import Protocol

from pydantic import BaseModel, Field

from marketpulse.analysis.config import (
    CATEGORY_TOPICS,
    HIGH_IMPACT_KEYWORD_COUNT,
    HIGH_IMPACT_KEYWORDS,
    LOW_IMPACT_KEYWORD_COUNT,
    NEGATIVE_KEYWORDS,
    POSITIVE_KEYWORDS,
    SENTIMENT_KEYWORD_STEP,
)
from marketpulse.analysis.types import EventCategory, ImpactLevel
from marketpulse.utils import clamp


class SentimentResult(BaseModel):
    """Classifier output for one piece of text."""

    score: float = Field(ge=-1.0, le=1.0)
    category: EventCategory
    impact_level: ImpactLevel


class EventClassifier(Protocol):
    def analyze(self, text: str) -> SentimentResult: ...


class SentimentAnalyzer:
    """Scores text by counting sentiment, category and impact keywords."""

    def analyze(self, text: str) -> SentimentResult:
        lower_text = text.lower()

        positive_count = sum(1 for k in POSITIVE_KEYWORDS if k in lower_text)
        negative_count = sum(1 for k in NEGATIVE_KEYWORDS if k in lower_text)
        score = clamp(
            round((positive_count - negative_count) * SENTIMENT_KEYWORD_STEP, 10),
            -1.0,
            1.0,
            name="sentiment_score",
        )

        return SentimentResult(
            score=score,
            category=self._detect_category(text),
            impact_level=self._detect_impact(lower_text, positive_count + negative_count),
        )

    @staticmethod
    def _detect_category(text: str) -> EventCategory:
        category = EventCategory.MARKET
        max_matches = 0
        for topic in CATEGORY_TOPICS:
            matches = sum(1 for p in topic.patterns if p.search(text))
            # Ties keep the earlier category
            if matches > max_matches:
                max_matches = matches
                category = EventCategory(topic.id)
        return category

    @staticmethod
    def _detect_impact(lower_text: str, keyword_count: int) -> ImpactLevel:
        if keyword_count >= HIGH_IMPACT_KEYWORD_COUNT:
            return "high"
        if keyword_count <= LOW_IMPACT_KEYWORD_COUNT:
            return "low"
        if any(k in lower_text for k in HIGH_IMPACT_KEYWORDS):
            return "high"
        return "medium"

    def categorize(
        self, title: str, description: str | None = None
    ) -> tuple[EventCategory, list[str]]:
        """First category with a matching keyword, plus that keyword."""
        text = f"{title} {description or ''}"
        for topic in CATEGORY_TOPICS:
            for keyword, pattern in zip(topic.keywords, topic.patterns):
                if pattern.search(text):
                    return EventCategory(topic.id), [keyword]
        return EventCategory.MARKET, []

    def analyze_bulk(
        self, news_items: list[dict[str, str | None]]
    ) -> list[SentimentResult]:
        """Classify items with 'title' and optional 'description' keys."""
        return [
            self.analyze(f"{item.get('title', '')} {item.get('description') or ''}")
            for item in news_items
        ]
