"""Application configuration."""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Cycle cadences (seconds)
    data_refresh_interval: float = 120.0
    signal_interval: float = 600.0
    trade_interval: float = 900.0
    exit_check_interval: float = 60.0

    # Upper bound for one instrument's step within a cycle
    store_timeout: float = 10.0

    # Paper account
    default_user_id: int = 1
    account_balance: float = 10000.0
    pip_value: float = 100000.0

    # Only signals above this confidence are auto-traded
    auto_trade_confidence: float = 70.0

    # Seed for the market simulator (None = nondeterministic)
    simulator_seed: int | None = None
    # Simulated refreshes generated at bootstrap so indicators have history
    warmup_bars: int = 60

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
