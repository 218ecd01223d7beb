"""Indicator snapshot model."""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, model_validator


class IndicatorSet(BaseModel):
    """Indicators for one (instrument, timeframe) at the time of the last bar.

    Recomputed wholesale on every analysis pass; never partially updated.
    """

    model_config = ConfigDict(frozen=True)

    instrument_id: int
    timeframe: str
    timestamp: datetime
    rsi: float = Field(ge=0.0, le=100.0)
    macd: float
    macd_signal: float
    ma50: float
    ma200: float
    bollinger_upper: float
    bollinger_lower: float
    atr: float = Field(ge=0.0)
    support_level: float
    resistance_level: float

    @model_validator(mode="after")
    def _check_levels(self):
        if self.support_level > self.resistance_level:
            raise ValueError(
                f"support {self.support_level} above resistance {self.resistance_level}"
            )
        return self
