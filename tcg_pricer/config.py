"""
Card Pricer - Configuration & Constants

Every tunable used by the pricing run lives here. Values load from
environment variables (or a local .env file) with fallback defaults.

Usage:
    from tcg_pricer.config import settings
"""

from __future__ import annotations

from enum import Enum

from pydantic import field_validator
from pydantic_settings import BaseSettings


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ArbitrationStrategy(str, Enum):
    """Rule used to collapse several quoted prices into one."""
    MIN_VALUE = "MinValue"
    MAX_VALUE = "MaxValue"


_STRATEGY_ALIASES: dict[str, ArbitrationStrategy] = {
    "min": ArbitrationStrategy.MIN_VALUE,
    "minvalue": ArbitrationStrategy.MIN_VALUE,
    "max": ArbitrationStrategy.MAX_VALUE,
    "maxvalue": ArbitrationStrategy.MAX_VALUE,
}

STRATEGY_CHOICES = ("Min", "MinValue", "Max", "MaxValue")


def parse_strategy(value: str | ArbitrationStrategy) -> ArbitrationStrategy:
    """
    Parse a user-supplied strategy name.

    Accepts 'Min'/'MinValue' and 'Max'/'MaxValue' in any case.

    Raises:
        ValueError: If the name is not a known strategy.
    """
    if isinstance(value, ArbitrationStrategy):
        return value
    strategy = _STRATEGY_ALIASES.get(str(value).strip().lower())
    if strategy is None:
        raise ValueError(
            f"unknown arbitration strategy {value!r}, "
            f"expected one of: {', '.join(STRATEGY_CHOICES)}"
        )
    return strategy


# Price keys Scryfall exposes under card["prices"]
SCRYFALL_PRICE_FIELDS = frozenset(
    {"usd", "usd_foil", "usd_etched", "eur", "eur_foil", "tix"}
)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Central configuration for Card Pricer.

    Loads from environment variables with fallback defaults.
    """

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # -----------------------------------------------------------------------
    # Scryfall pricing service
    # -----------------------------------------------------------------------
    SCRYFALL_BASE_URL: str = "https://api.scryfall.com"
    SCRYFALL_PRICE_FIELD: str = "usd"
    USER_AGENT: str = "tcg-pricer/0.1.0"
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # -----------------------------------------------------------------------
    # Reconciliation pipeline
    # -----------------------------------------------------------------------
    ARBITRATION_STRATEGY: ArbitrationStrategy = ArbitrationStrategy.MIN_VALUE
    MAX_CONCURRENT_LOOKUPS: int = 8
    LOOKUP_TIMEOUT_SECONDS: float = 30.0

    # -----------------------------------------------------------------------
    # Logging
    # -----------------------------------------------------------------------
    LOG_LEVEL: str = "WARNING"

    @field_validator("ARBITRATION_STRATEGY", mode="before")
    @classmethod
    def parse_arbitration_strategy(cls, v: object) -> ArbitrationStrategy:
        return parse_strategy(v)  # type: ignore[arg-type]

    @field_validator("SCRYFALL_PRICE_FIELD")
    @classmethod
    def check_price_field(cls, v: str) -> str:
        if v not in SCRYFALL_PRICE_FIELDS:
            raise ValueError(
                f"SCRYFALL_PRICE_FIELD must be one of {sorted(SCRYFALL_PRICE_FIELDS)}"
            )
        return v

    @field_validator("MAX_CONCURRENT_LOOKUPS")
    @classmethod
    def check_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("MAX_CONCURRENT_LOOKUPS must be at least 1")
        return v

    @field_validator("LOOKUP_TIMEOUT_SECONDS", "HTTP_TIMEOUT_SECONDS")
    @classmethod
    def check_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v


# Singleton instance
settings = Settings()
