"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic_settings import BaseSettings, SettingsConfigDict

#: Substrings that identify a centralized-exchange wallet label.
DEFAULT_EXCHANGE_KEYWORDS: tuple[str, ...] = (
    "binance",
    "coinbase",
    "kraken",
    "bitfinex",
    "bitstamp",
    "bybit",
    "okx",
    "okex",
    "deribit",
    "kucoin",
    "mexc",
    "huobi",
    "gate",
    "gemini",
)


class FeatureSettings(BaseSettings):
    """Row limits and windows used by the FeatureBuilder.

    All fields configurable via FEATURES_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="FEATURES_")

    # Funding
    funding_interval: str = "1h"
    funding_fallback_interval: str = "1m"
    funding_limit: int = 200
    funding_fallback_limit: int = 500
    funding_window: int = 60
    funding_trend_period: int = 6

    # Open interest
    open_interest_unit: str = "usd"
    open_interest_limit: int = 240
    open_interest_ema_period: int = 6

    # Whales
    whale_limit: int = 2000
    whale_lookback_days: int = 7
    exchange_keywords: tuple[str, ...] = DEFAULT_EXCHANGE_KEYWORDS

    # ETF / sentiment
    etf_limit: int = 60
    sentiment_limit: int = 60

    # Microstructure / liquidations
    orderbook_interval: str = "1m"
    microstructure_limit: int = 120
    liquidation_limit: int = 120
    rolling_window: int = 24  # rows summed for 24h aggregates


class SignalSettings(BaseSettings):
    """Decision thresholds for the rule-based SignalEngine.

    All fields configurable via SIGNAL_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="SIGNAL_")

    buy_threshold: float = 1.5  # score >= this -> BUY
    sell_threshold: float = -1.5  # score <= this -> SELL
    confidence_divisor: float = 5.0  # |score| at which confidence saturates


class AiSettings(BaseSettings):
    """Probability bands for the model-backed AiSignalService."""

    model_config = SettingsConfigDict(env_prefix="AI_")

    buy_probability: float = 0.55
    sell_probability: float = 0.45


class BacktestSettings(BaseSettings):
    """Backtest defaults.

    All fields configurable via BACKTEST_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="BACKTEST_")

    default_symbol: str = "BTC"
    lookback_days: int = 30


class StorageSettings(BaseSettings):
    """SQLite location for market rows and persisted signal snapshots."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    db_path: str = "data/signals.db"


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    features: FeatureSettings = FeatureSettings()
    signal: SignalSettings = SignalSettings()
    ai: AiSettings = AiSettings()
    backtest: BacktestSettings = BacktestSettings()
    storage: StorageSettings = StorageSettings()
