"""Strategy, risk and trade configuration models."""

from __future__ import annotations

from decimal import Decimal
from pydantic import BaseModel, model_validator


class FusionConfig(BaseModel):
    """Signal fusion parameters."""

    timeframes: list[str] = ["1h", "4h", "1d"]

    # Source weights, must sum to 1.0
    technical_weight: float = 0.40
    fundamental_weight: float = 0.25
    sentiment_weight: float = 0.20
    cot_weight: float = 0.15

    # combined_score above +threshold is a buy, below -threshold a sell
    direction_threshold: float = 30.0
    # Signals below this confidence are not recorded
    min_confidence: float = 50.0

    # ATR used when no indicators exist for the timeframe
    default_atr: float = 0.001
    # Entry is placed this fraction away from the last close
    entry_offset: float = 0.001
    stop_atr_mult: float = 1.5
    target_atr_base: float = 2.0

    @model_validator(mode="after")
    def _check_weights(self):
        total = (
            self.technical_weight
            + self.fundamental_weight
            + self.sentiment_weight
            + self.cot_weight
        )
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"fusion weights must sum to 1.0, got {total}")
        return self


class RiskConfig(BaseModel):
    """Account-level risk constants."""

    account_balance: Decimal = Decimal("10000")
    risk_percent: Decimal = Decimal("1")
    max_trades_per_instrument: int = 3
    max_open_trades: int = 10


class TradeConfig(BaseModel):
    """Paper trading constants."""

    pip_value: Decimal = Decimal("100000")
    price_timeframe: str = "1m"
    trailing_atr_mult: Decimal = Decimal("2")
    # 'indicator' reads ATR from the latest indicator set, 'fixed' uses fixed_atr
    trailing_atr_source: str = "indicator"
    trailing_atr_timeframe: str = "1h"
    fixed_atr: Decimal = Decimal("0.001")
    starting_balance: Decimal = Decimal("10000")

    @model_validator(mode="after")
    def _check_source(self):
        if self.trailing_atr_source not in ("indicator", "fixed"):
            raise ValueError(
                f"trailing_atr_source must be 'indicator' or 'fixed', got '{self.trailing_atr_source}'"
            )
        return self
