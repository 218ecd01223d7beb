"""Paper trade model and its status state machine."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, Field


class TradeType(str, Enum):
    """Position side."""

    BUY = "buy"
    SELL = "sell"


class TradeStatus(str, Enum):
    """Trade status. Every status other than OPEN is terminal."""

    OPEN = "open"
    CLOSED = "closed"  # Manual close
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"

    @property
    def is_terminal(self) -> bool:
        return self is not TradeStatus.OPEN


class PaperTrade(BaseModel):
    """Simulated position opened from a trading signal."""

    id: int | None = None
    user_id: int
    signal_id: int | None = None
    instrument_id: int
    trade_type: TradeType
    position_size: Decimal
    entry_price: Decimal
    stop_loss: Decimal
    take_profit: Decimal
    exit_price: Decimal | None = None
    pnl: Decimal | None = None
    status: TradeStatus = TradeStatus.OPEN
    opened_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    closed_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status is TradeStatus.OPEN

    @property
    def risk_amount(self) -> Decimal:
        """Amount at risk: distance to stop loss times position size."""
        return abs(self.entry_price - self.stop_loss) * self.position_size
