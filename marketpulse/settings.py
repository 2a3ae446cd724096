import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()


class Settings(BaseModel):
    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./marketpulse.db", alias="DATABASE_URL"
    )
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # Tracked assets
    tracked_assets: list[str] = Field(
        default=[
            "BTC",
            "ETH",
            "BNB",
            "SOL",
            "XRP",
            "ADA",
            "DOGE",
            "MATIC",
            "AVAX",
            "DOT",
        ],
        alias="TRACKED_ASSETS",
    )
    market_index_name: str = Field(default="SP500", alias="MARKET_INDEX_NAME")

    # Analysis Configuration
    correlation_lookback_days: int = Field(
        default=30, alias="CORRELATION_LOOKBACK_DAYS"
    )
    recommendation_interval_minutes: int = Field(
        default=60, alias="RECOMMENDATION_INTERVAL_MINUTES"
    )
    trend_interval_minutes: int = Field(default=60, alias="TREND_INTERVAL_MINUTES")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("tracked_assets", mode="before")
    @classmethod
    def _split_assets(cls, value):
        if isinstance(value, str):
            return [s.strip().upper() for s in value.split(",") if s.strip()]
        return value


def load_settings() -> Settings:
    """Build settings from the process environment (after .env is loaded)."""
    fields = {
        field.alias: os.environ[field.alias]
        for field in Settings.model_fields.values()
        if field.alias and field.alias in os.environ
    }
    return Settings(**fields)


global_settings = load_settings()
