"""
Analysis configuration - time windows, thresholds, signal weights, and
keyword tables for event classification.
"""

import re
from dataclasses import dataclass, field
from datetime import timedelta


# Hours after an event at which price impact is sampled
TIME_WINDOWS: tuple[int, ...] = (1, 4, 12, 24, 48, 72, 168)

# Tolerance for "price at time t" lookups
PRICE_LOOKUP_TOLERANCE = timedelta(hours=1)

# Moves at or below this absolute percentage are not material
MATERIALITY_THRESHOLD_PERCENT = 1.0

# Correlation confidence
BASE_CONFIDENCE = 0.5
MAX_PATTERN_CONFIDENCE = 0.95
DIRECTION_MATCH_BONUS = 0.2
MAGNITUDE_BONUS_STEPS: tuple[tuple[float, float], ...] = (
    (5.0, 0.1),
    (10.0, 0.1),
    (20.0, 0.1),
)
IMPACT_CONFIDENCE_BONUS: dict[str, float] = {"high": 0.2, "medium": 0.1, "low": 0.0}
REDISCOVERY_BONUS_PER_OCCURRENCE = 0.05

# Correlation queries
STRONG_CORRELATION_MIN_CONFIDENCE = 0.7
PREDICTION_MIN_CONFIDENCE = 0.6
STRONGEST_CORRELATIONS_LIMIT = 20

# Recommendation signals
IMPACT_SENTIMENT_WEIGHTS: dict[str, int] = {"high": 3, "medium": 2, "low": 1}
SENTIMENT_THRESHOLD = 0.3
SENTIMENT_WEIGHT = 0.3
MOMENTUM_24H_THRESHOLD = 10.0
MOMENTUM_24H_UP_WEIGHT = 0.2
MOMENTUM_24H_DOWN_WEIGHT = 0.25
MOMENTUM_7D_THRESHOLD = 20.0
MOMENTUM_7D_UP_WEIGHT = 0.15
MOMENTUM_7D_DOWN_WEIGHT = 0.2
MARKET_TREND_THRESHOLD = 2.0
MARKET_TREND_WEIGHT = 0.15
HIGH_IMPACT_NEGATIVE_SENTIMENT = -0.5
HIGH_IMPACT_NEGATIVE_WEIGHT = 0.35

ACTION_SCORE_THRESHOLD = 0.25
MIN_CONFIDENCE_PERCENT = 50.0
MAX_CONFIDENCE_PERCENT = 95.0
HOLD_BASE_CONFIDENCE = 75.0

BUY_TARGET_MULTIPLIER = 1.15
BUY_STOP_MULTIPLIER = 0.92
SELL_STOP_MULTIPLIER = 1.08

RECOMMENDATION_NEWS_WINDOW = timedelta(days=7)
RECOMMENDATION_NEWS_LIMIT = 50
RECOMMENDATION_PRICE_WINDOW = timedelta(hours=168)
RECOMMENDATION_TTL = timedelta(hours=24)

# Market trend prediction
TREND_WINDOW = timedelta(hours=24)
TREND_NEWS_LIMIT = 50
TREND_ASSET_THRESHOLD = 2.0
TREND_CONSENSUS_FRACTION = 0.6
TREND_SCORE_THRESHOLD = 1.0
TREND_PRICE_WEIGHT = 0.6
TREND_NEWS_WEIGHT = 0.4
TREND_VOLATILITY_SCALE = 5.0
TREND_NEWS_SCALE = 10


@dataclass
class CategoryTopic:
    """Event category definition with compiled keyword patterns."""

    id: str
    keywords: list[str]
    patterns: list[re.Pattern] = field(init=False)

    def __post_init__(self) -> None:
        self.patterns = [re.compile(re.escape(k), re.IGNORECASE) for k in self.keywords]


# Event categories in match-priority order
CATEGORY_TOPICS: list[CategoryTopic] = [
    CategoryTopic(
        id="tariff",
        keywords=["tariff", "trade war", "import tax", "customs", "trade policy"],
    ),
    CategoryTopic(
        id="regulation",
        keywords=["regulation", "sec", "regulatory", "compliance", "law", "legal"],
    ),
    CategoryTopic(
        id="adoption",
        keywords=["adoption", "accept", "integrate", "partnership", "announce"],
    ),
    CategoryTopic(
        id="security",
        keywords=["hack", "breach", "security", "stolen", "vulnerability", "exploit"],
    ),
    CategoryTopic(
        id="fed_policy",
        keywords=["fed", "federal reserve", "interest rate", "monetary policy", "powell"],
    ),
    CategoryTopic(
        id="political",
        keywords=["trump", "president", "government", "congress", "senate", "election"],
    ),
    CategoryTopic(
        id="tech",
        keywords=["upgrade", "protocol", "fork", "update", "technology", "blockchain"],
    ),
    CategoryTopic(
        id="market",
        keywords=["market", "price", "trading", "volume", "market cap", "stock"],
    ),
]

POSITIVE_KEYWORDS: tuple[str, ...] = (
    "surge",
    "rally",
    "gain",
    "rise",
    "soar",
    "bullish",
    "adoption",
    "breakthrough",
    "partnership",
    "invest",
    "growth",
    "profit",
    "success",
    "approve",
    "launch",
    "innovation",
    "record",
    "high",
    "opportunity",
    "optimism",
    "upgrade",
    "milestone",
)

NEGATIVE_KEYWORDS: tuple[str, ...] = (
    "crash",
    "fall",
    "drop",
    "decline",
    "plunge",
    "collapse",
    "crisis",
    "ban",
    "regulation",
    "crackdown",
    "hack",
    "breach",
    "scam",
    "fraud",
    "lawsuit",
    "sell-off",
    "bearish",
    "tariff",
    "war",
    "uncertainty",
    "fear",
    "panic",
    "investigation",
    "fine",
    "penalty",
    "restrict",
    "prohibit",
)

HIGH_IMPACT_KEYWORDS: tuple[str, ...] = (
    "trump",
    "president",
    "fed",
    "federal reserve",
    "ban",
    "approve",
    "major",
    "significant",
    "massive",
    "unprecedented",
    "historic",
)

SENTIMENT_KEYWORD_STEP = 0.1
HIGH_IMPACT_KEYWORD_COUNT = 5
LOW_IMPACT_KEYWORD_COUNT = 1
