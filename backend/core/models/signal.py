"""Component and fused trading signal models."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


class SignalType(str, Enum):
    """Trade direction opinion."""

    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"

    @property
    def sign(self) -> int:
        """+1 for buy, -1 for sell, 0 for hold."""
        if self is SignalType.BUY:
            return 1
        if self is SignalType.SELL:
            return -1
        return 0


class ComponentSignal(BaseModel):
    """Opinion from a single analysis source (technical, fundamental, ...)."""

    model_config = ConfigDict(frozen=True)

    direction: SignalType = SignalType.HOLD
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)

    @property
    def score(self) -> float:
        """Signed score in [-100, 100]."""
        return self.direction.sign * self.confidence


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TradingSignal(BaseModel):
    """Fused signal for one instrument and timeframe.

    Only ``is_active`` changes after creation; stores replace the record
    with ``model_copy(update={"is_active": False})``.
    """

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    instrument_id: int
    timeframe: str
    signal_type: SignalType
    confidence: Decimal
    entry_price: Decimal
    target_price: Decimal
    stop_loss: Decimal
    technical_score: Decimal = Decimal("0")
    fundamental_score: Decimal = Decimal("0")
    sentiment_score: Decimal = Decimal("0")
    cot_score: Decimal = Decimal("0")
    combined_score: Decimal = Decimal("0")
    is_active: bool = True
    timestamp: datetime = Field(default_factory=_utcnow)

    def to_event_dict(self) -> dict:
        """Plain dict for broadcasting to subscribers."""
        return {
            "id": self.id,
            "instrument_id": self.instrument_id,
            "timeframe": self.timeframe,
            "signal_type": self.signal_type.value,
            "confidence": float(self.confidence),
            "entry_price": float(self.entry_price),
            "target_price": float(self.target_price),
            "stop_loss": float(self.stop_loss),
            "combined_score": float(self.combined_score),
            "timestamp": self.timestamp.isoformat(),
        }
