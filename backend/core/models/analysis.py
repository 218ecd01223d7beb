"""Instrument and upstream analysis data models.

These records are produced outside the core (economic calendar, news and
social sentiment, COT reports); the component signal sources only read them.
"""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class Instrument(BaseModel):
    """Tradable instrument."""

    id: int | None = None
    symbol: str
    name: str
    type: str = "forex"  # 'forex' | 'metals'
    is_active: bool = True


class EconomicEvent(BaseModel):
    """Scored economic calendar event."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    event: str
    currency: str
    impact: str = "low"  # 'high' | 'medium' | 'low'
    score: float = Field(default=0.0, ge=-100.0, le=100.0)


class SentimentReading(BaseModel):
    """Sentiment score attached to an instrument by an upstream source."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    source: str  # 'news' | 'twitter' | 'reddit'
    instrument_id: int | None = None
    sentiment: float = Field(ge=-100.0, le=100.0)
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)


class CotReport(BaseModel):
    """Commitment of Traders positioning snapshot."""

    model_config = ConfigDict(frozen=True)

    instrument_id: int
    report_date: datetime
    commercial_long: int = 0
    commercial_short: int = 0
    non_commercial_long: int = 0
    non_commercial_short: int = 0
    net_non_commercial: int = 0
    weekly_change: int = 0
