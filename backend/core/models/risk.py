"""Risk profile and validation result models."""

from datetime import datetime, timezone
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field

from core.models.trade import TradeType


class RiskProfile(BaseModel):
    """Per-user risk limits. Created with these defaults on first validation."""

    user_id: int
    max_daily_risk: Decimal = Decimal("500.00")
    max_position_size: Decimal = Decimal("0.10")
    max_drawdown: Decimal = Decimal("5.00")  # Percent of account balance
    auto_stop_loss: bool = True
    risk_scaling: bool = True
    weekend_trading: bool = False
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TradeProposal(BaseModel):
    """A trade about to be opened, as seen by the risk validator."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    instrument_id: int
    trade_type: TradeType
    position_size: Decimal
    entry_price: Decimal
    stop_loss: Decimal

    @property
    def risk_amount(self) -> Decimal:
        return abs(self.entry_price - self.stop_loss) * self.position_size


class ValidationResult(BaseModel):
    """Outcome of risk validation.

    ``reason`` is set on rejection, and also on acceptance when the
    position size was scaled down (``adjusted_position_size``).
    """

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    reason: str | None = None
    adjusted_position_size: Decimal | None = None

    @classmethod
    def accept(cls) -> "ValidationResult":
        return cls(is_valid=True)

    @classmethod
    def reject(cls, reason: str) -> "ValidationResult":
        return cls(is_valid=False, reason=reason)


class RiskMetrics(BaseModel):
    """Read-only snapshot of a user's risk usage."""

    daily_risk_used: Decimal
    max_daily_risk: Decimal
    current_drawdown: Decimal
    max_drawdown: Decimal
    active_trades: int
    risk_score: float
