"""Risk manager: trade validation, position sizing and risk metrics."""

import logging
from datetime import datetime, time, timezone
from decimal import Decimal

from app.storage.locks import KeyedLock
from core.models import (
    RiskConfig,
    RiskMetrics,
    RiskProfile,
    TradeProposal,
    ValidationResult,
)
from core.protocols import RiskProfileStore, TradeStore
from core.risk import (
    calculate_position_size,
    check_daily_risk,
    check_drawdown,
    check_exposure,
    check_position_size,
    current_drawdown,
    daily_risk_used,
    risk_score,
)

logger = logging.getLogger(__name__)


def start_of_day(now: datetime | None = None) -> datetime:
    """Midnight UTC of the given (or current) day."""
    now = now or datetime.now(timezone.utc)
    return datetime.combine(now.date(), time.min, tzinfo=timezone.utc)


class RiskManager:
    """
    Validate proposed trades against a user's risk profile.

    Checks run in order and stop at the first failure:
    1. Daily risk: today's open risk plus the new trade within the limit
    2. Position size: oversized trades are scaled down or rejected
    3. Drawdown: realized losses within the limit
    4. Exposure: at most 3 open trades per instrument and 10 in total

    A user without a profile gets the default profile on first validation
    and that first trade is accepted without further checks.
    """

    def __init__(
        self,
        profiles: RiskProfileStore,
        trades: TradeStore,
        config: RiskConfig | None = None,
        default_profile: RiskProfile | None = None,
    ):
        self.profiles = profiles
        self.trades = trades
        self.config = config or RiskConfig()
        self._default_profile = default_profile or RiskProfile(user_id=0)
        self._user_locks = KeyedLock()

    def default_profile(self, user_id: int) -> RiskProfile:
        return self._default_profile.model_copy(
            update={"user_id": user_id, "updated_at": datetime.now(timezone.utc)}
        )

    async def calculate_position_size(
        self,
        user_id: int,
        entry_price: Decimal,
        stop_loss: Decimal,
        risk_percent: Decimal | None = None,
    ) -> Decimal:
        """Position size risking ``risk_percent`` of the account on the stop distance."""
        profile = await self.profiles.get(user_id)
        max_size = (
            profile.max_position_size
            if profile is not None
            else self._default_profile.max_position_size
        )
        return calculate_position_size(
            entry_price,
            stop_loss,
            max_size,
            account_balance=self.config.account_balance,
            risk_percent=risk_percent if risk_percent is not None else self.config.risk_percent,
        )

    async def validate_trade(
        self,
        proposal: TradeProposal,
        now: datetime | None = None,
    ) -> ValidationResult:
        """Run all risk checks for a proposed trade."""
        async with self._user_locks.acquire(proposal.user_id):
            profile = await self.profiles.get(proposal.user_id)
            if profile is None:
                await self.profiles.upsert(
                    proposal.user_id, self.default_profile(proposal.user_id)
                )
                logger.info("Created default risk profile for user %s", proposal.user_id)
                return ValidationResult.accept()

        open_trades = await self.trades.open_trades(proposal.user_id)

        used = daily_risk_used(open_trades, start_of_day(now))
        result = check_daily_risk(proposal, used, profile)
        if not result.is_valid:
            return result

        size_result = check_position_size(proposal, profile)
        if not size_result.is_valid:
            return size_result

        realized = await self.trades.realized_pnl(proposal.user_id)
        result = check_drawdown(
            current_drawdown(realized, self.config.account_balance), profile
        )
        if not result.is_valid:
            return result

        result = check_exposure(
            open_trades,
            proposal.instrument_id,
            max_per_instrument=self.config.max_trades_per_instrument,
            max_total=self.config.max_open_trades,
        )
        if not result.is_valid:
            return result

        # Carries the size adjustment note, if any
        return size_result

    async def get_risk_metrics(
        self,
        user_id: int,
        now: datetime | None = None,
    ) -> RiskMetrics:
        """Current risk usage against the user's limits."""
        profile = await self.profiles.get(user_id) or self.default_profile(user_id)
        open_trades = await self.trades.open_trades(user_id)
        realized = await self.trades.realized_pnl(user_id)

        used = daily_risk_used(open_trades, start_of_day(now))
        drawdown = current_drawdown(realized, self.config.account_balance)

        return RiskMetrics(
            daily_risk_used=used,
            max_daily_risk=profile.max_daily_risk,
            current_drawdown=drawdown,
            max_drawdown=profile.max_drawdown,
            active_trades=len(open_trades),
            risk_score=risk_score(
                used,
                profile.max_daily_risk,
                drawdown,
                profile.max_drawdown,
                len(open_trades),
                self.config.max_open_trades,
            ),
        )
