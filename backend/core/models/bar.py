"""Price bar (candlestick) data model."""

from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, field_validator

# Supported bar aggregation intervals, shortest first
TIMEFRAMES = ("1m", "5m", "15m", "1h", "4h", "1d")


class Bar(BaseModel):
    """OHLCV bar for one instrument and timeframe. Immutable once stored."""

    model_config = ConfigDict(frozen=True)

    instrument_id: int
    timeframe: str
    timestamp: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal = Decimal("0")

    @field_validator("timeframe")
    @classmethod
    def _check_timeframe(cls, value: str) -> str:
        if value not in TIMEFRAMES:
            raise ValueError(f"timeframe must be one of {TIMEFRAMES}, got '{value}'")
        return value
