import pytest

from marketpulse.analysis.sentiment import SentimentAnalyzer
from marketpulse.analysis.types import EventCategory


@pytest.fixture
def analyzer():
    return SentimentAnalyzer()


def test_negative_security_headline(analyzer):
    result = analyzer.analyze("Exchange hack leads to crash and panic")

    assert result.score == pytest.approx(-0.3)
    assert result.category == EventCategory.SECURITY
    assert result.impact_level == "medium"


def test_neutral_text_defaults(analyzer):
    result = analyzer.analyze("Quiet day")

    assert result.score == 0.0
    assert result.category == EventCategory.MARKET
    assert result.impact_level == "low"


def test_many_keywords_are_high_impact(analyzer):
    result = analyzer.analyze("Surge rally gain soar bullish")

    assert result.score == pytest.approx(0.5)
    assert result.impact_level == "high"


def test_score_is_clamped(analyzer):
    result = analyzer.analyze(
        "surge rally gain rise soar bullish adoption breakthrough "
        "partnership invest growth profit"
    )
    assert result.score == 1.0


def test_high_impact_keyword_and_category_tie(analyzer):
    # fed_policy and market both match once; the earlier category wins
    result = analyzer.analyze("Fed signals rate cut, markets rally and gain")

    assert result.score == pytest.approx(0.2)
    assert result.impact_level == "high"
    assert result.category == EventCategory.FED_POLICY


def test_categorize_returns_first_keyword(analyzer):
    assert analyzer.categorize("SEC sues exchange") == (EventCategory.REGULATION, ["sec"])
    assert analyzer.categorize("Nothing here") == (EventCategory.MARKET, [])


def test_analyze_bulk(analyzer):
    results = analyzer.analyze_bulk(
        [
            {"title": "Exchange hack leads to crash and panic"},
            {"title": "Quiet day", "description": None},
        ]
    )

    assert [r.category for r in results] == [EventCategory.SECURITY, EventCategory.MARKET]
