import os
from functools import lru_cache

from pydantic import BaseModel

DEFAULT_WATCHLIST = [
    "SPY",
    "QQQ",
    "DIA",
    "AAPL",
    "MSFT",
    "NVDA",
    "AMZN",
    "GOOGL",
    "META",
    "TSLA",
    "JPM",
    "V",
]


def _optional_env(name: str) -> str | None:
    value = (os.getenv(name) or "").strip()
    return value or None


class Settings(BaseModel):
    FINNHUB_API_KEY: str
    FINNHUB_BASE_URL: str = "https://finnhub.io/api/v1"
    QUOTE_CACHE_TTL_SEC: int = 15
    QUOTE_MAX_SYMBOLS: int = 25
    UPSTREAM_TIMEOUT_SEC: float = 5.0

    @classmethod
    def from_env(cls) -> "Settings":
        raw = {
            "FINNHUB_API_KEY": _optional_env("FINNHUB_API_KEY"),
            "FINNHUB_BASE_URL": _optional_env("FINNHUB_BASE_URL"),
            "QUOTE_CACHE_TTL_SEC": _optional_env("QUOTE_CACHE_TTL_SEC"),
            "QUOTE_MAX_SYMBOLS": _optional_env("QUOTE_MAX_SYMBOLS"),
            "UPSTREAM_TIMEOUT_SEC": _optional_env("UPSTREAM_TIMEOUT_SEC"),
        }
        # unset optionals fall back to model defaults; the api key stays required
        return cls.model_validate(
            {k: v for k, v in raw.items() if v is not None or k == "FINNHUB_API_KEY"}
        )


class ClientSettings(BaseModel):
    MARKET_TAPE_URL: str | None = None
    MARKET_TAPE_ORIGIN: str | None = None
    MARKET_TAPE_SYMBOLS: list[str]
    MARKET_TAPE_POLL_SEC: float = 30.0
    MARKET_TAPE_TIMEOUT_SEC: float = 10.0

    @classmethod
    def from_env(cls) -> "ClientSettings":
        raw_symbols = os.getenv("MARKET_TAPE_SYMBOLS", "")
        symbols = [s.strip().upper() for s in raw_symbols.split(",") if s.strip()]
        if not symbols:
            symbols = list(DEFAULT_WATCHLIST)

        raw = {
            "MARKET_TAPE_URL": _optional_env("MARKET_TAPE_URL"),
            "MARKET_TAPE_ORIGIN": _optional_env("MARKET_TAPE_ORIGIN"),
            "MARKET_TAPE_SYMBOLS": symbols,
            "MARKET_TAPE_POLL_SEC": _optional_env("MARKET_TAPE_POLL_SEC"),
            "MARKET_TAPE_TIMEOUT_SEC": _optional_env("MARKET_TAPE_TIMEOUT_SEC"),
        }
        return cls.model_validate({k: v for k, v in raw.items() if v is not None})


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache
def get_client_settings() -> ClientSettings:
    return ClientSettings.from_env()
