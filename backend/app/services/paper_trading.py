"""Paper trading: opens positions from signals and manages their exits."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from app.services.risk_manager import RiskManager
from app.storage.locks import KeyedLock
from core.lifecycle import calculate_pnl, exit_reason, trailing_stop
from core.models import (
    PaperTrade,
    SignalType,
    TradeConfig,
    TradeProposal,
    TradeStatus,
    TradeType,
)
from core.protocols import IndicatorStore, MarketDataStore, SignalStore, TradeStore
from core.stats import TradingStatistics, compute_statistics

logger = logging.getLogger(__name__)

_PRICE_QUANT = Decimal("0.00001")
_STATS_WINDOW = 1000


class ExecutionStatus(str, Enum):
    EXECUTED = "executed"
    REJECTED = "rejected"
    SIGNAL_NOT_FOUND = "signal_not_found"


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of executing a signal as a paper trade."""

    status: ExecutionStatus
    trade: PaperTrade | None = None
    reason: str | None = None

    @property
    def success(self) -> bool:
        return self.status is ExecutionStatus.EXECUTED


class CloseStatus(str, Enum):
    CLOSED = "closed"
    NOT_FOUND = "not_found"
    NOT_OPEN = "not_open"


@dataclass(frozen=True)
class CloseResult:
    """Outcome of closing a paper trade."""

    status: CloseStatus
    trade: PaperTrade | None = None

    @property
    def success(self) -> bool:
        return self.status is CloseStatus.CLOSED

    @property
    def pnl(self) -> Decimal | None:
        return self.trade.pnl if self.trade is not None else None


class ExitAction(str, Enum):
    NO_PRICE = "no_price"
    CLOSED = "closed"
    TRAILED = "trailed"
    HELD = "held"


@dataclass(frozen=True)
class ExitCheck:
    """What an exit check did to one trade."""

    trade_id: int
    action: ExitAction
    price: Decimal | None = None
    status: TradeStatus | None = None
    new_stop: Decimal | None = None


@dataclass(frozen=True)
class PortfolioValue:
    total_value: Decimal
    cash_balance: Decimal
    unrealized_pnl: Decimal
    realized_pnl: Decimal


class PaperTradingService:
    """
    Manage the lifecycle of simulated positions.

    Trades open from active buy/sell signals after risk sizing and
    validation, then close on stop loss, take profit or by hand. Open
    trades that are not closed on a check get their stop trailed toward
    the price, never away from it.
    """

    def __init__(
        self,
        signals: SignalStore,
        trades: TradeStore,
        market_data: MarketDataStore,
        indicators: IndicatorStore,
        risk_manager: RiskManager,
        config: TradeConfig | None = None,
    ):
        self.signals = signals
        self.trades = trades
        self.market_data = market_data
        self.indicators = indicators
        self.risk_manager = risk_manager
        self.config = config or TradeConfig()
        self._user_locks = KeyedLock()

    async def execute_trade(self, signal_id: int, user_id: int) -> ExecutionResult:
        """Open a paper trade for an active signal.

        Returns:
            ExecutionResult; no trade is created unless status is EXECUTED
        """
        # Validate-then-insert is serialized per user
        async with self._user_locks.acquire(user_id):
            return await self._execute_trade(signal_id, user_id)

    async def _execute_trade(self, signal_id: int, user_id: int) -> ExecutionResult:
        active = await self.signals.active_signals()
        signal = next((s for s in active if s.id == signal_id), None)
        if signal is None:
            return ExecutionResult(ExecutionStatus.SIGNAL_NOT_FOUND, reason="Signal not found")

        if signal.signal_type is SignalType.HOLD:
            return ExecutionResult(
                ExecutionStatus.REJECTED, reason="Hold signals are not tradable"
            )

        size = await self.risk_manager.calculate_position_size(
            user_id, signal.entry_price, signal.stop_loss
        )
        if size <= 0:
            return ExecutionResult(
                ExecutionStatus.REJECTED, reason="Position size is zero (stop equals entry)"
            )

        trade_type = TradeType(signal.signal_type.value)
        validation = await self.risk_manager.validate_trade(
            TradeProposal(
                user_id=user_id,
                instrument_id=signal.instrument_id,
                trade_type=trade_type,
                position_size=size,
                entry_price=signal.entry_price,
                stop_loss=signal.stop_loss,
            )
        )
        if not validation.is_valid:
            return ExecutionResult(ExecutionStatus.REJECTED, reason=validation.reason)

        final_size = validation.adjusted_position_size or size

        trade = await self.trades.create(
            PaperTrade(
                user_id=user_id,
                signal_id=signal.id,
                instrument_id=signal.instrument_id,
                trade_type=trade_type,
                position_size=final_size,
                entry_price=signal.entry_price,
                stop_loss=signal.stop_loss,
                take_profit=signal.target_price,
            )
        )
        return ExecutionResult(ExecutionStatus.EXECUTED, trade=trade, reason=validation.reason)

    async def close_trade(
        self,
        trade_id: int,
        exit_price: Decimal,
        reason: TradeStatus = TradeStatus.CLOSED,
    ) -> CloseResult:
        """Close an open trade at ``exit_price`` and record its P&L."""
        if not reason.is_terminal:
            raise ValueError(f"Cannot close a trade with status '{reason.value}'")

        trade = await self.trades.get(trade_id)
        if trade is None:
            return CloseResult(CloseStatus.NOT_FOUND)
        if not trade.is_open:
            return CloseResult(CloseStatus.NOT_OPEN, trade=trade)

        pnl = calculate_pnl(
            trade.trade_type,
            trade.entry_price,
            exit_price,
            trade.position_size,
            self.config.pip_value,
        )
        closed = await self.trades.update(
            trade_id,
            {
                "exit_price": exit_price,
                "pnl": pnl,
                "status": reason,
                "closed_at": datetime.now(timezone.utc),
            },
        )
        return CloseResult(CloseStatus.CLOSED, trade=closed)

    async def current_price(self, instrument_id: int) -> Decimal | None:
        """Latest close on the pricing timeframe, or None without data."""
        bar = await self.market_data.latest_bar(instrument_id, self.config.price_timeframe)
        return bar.close if bar is not None else None

    async def trailing_atr(self, instrument_id: int) -> Decimal:
        """ATR used for trailing stops."""
        if self.config.trailing_atr_source == "indicator":
            latest = await self.indicators.latest_indicators(
                instrument_id, self.config.trailing_atr_timeframe
            )
            if latest is not None and latest.atr > 0:
                return Decimal(str(latest.atr))
        return self.config.fixed_atr

    async def update_stop_loss(self, trade_id: int, new_stop: Decimal) -> PaperTrade:
        return await self.trades.update(
            trade_id, {"stop_loss": new_stop.quantize(_PRICE_QUANT)}
        )

    async def apply_trailing_stop(
        self, trade: PaperTrade, price: Decimal
    ) -> Decimal | None:
        """Move the stop toward ``price`` if it tightens; returns the stored stop or None."""
        atr = await self.trailing_atr(trade.instrument_id)
        new_stop = trailing_stop(trade, price, atr, self.config.trailing_atr_mult)
        if new_stop is None:
            return None
        updated = await self.update_stop_loss(trade.id, new_stop)
        return updated.stop_loss

    async def check_trade(self, trade: PaperTrade) -> ExitCheck:
        """Close the trade on stop/target, otherwise try to trail its stop."""
        price = await self.current_price(trade.instrument_id)
        if price is None:
            return ExitCheck(trade.id, ExitAction.NO_PRICE)

        reason = exit_reason(trade, price)
        if reason is not None:
            await self.close_trade(trade.id, price, reason)
            return ExitCheck(trade.id, ExitAction.CLOSED, price=price, status=reason)

        new_stop = await self.apply_trailing_stop(trade, price)
        if new_stop is not None:
            return ExitCheck(trade.id, ExitAction.TRAILED, price=price, new_stop=new_stop)
        return ExitCheck(trade.id, ExitAction.HELD, price=price)

    async def check_stop_loss_and_take_profit(
        self, user_id: int | None = None
    ) -> list[ExitCheck]:
        """Run exit checks over every open trade (all users when user_id is None)."""
        results = []
        for trade in await self.trades.open_trades(user_id):
            results.append(await self.check_trade(trade))
        return results

    async def get_trading_statistics(self, user_id: int) -> TradingStatistics:
        """Performance statistics over the user's closed trades, oldest first."""
        history = await self.trades.history(user_id, _STATS_WINDOW)
        return compute_statistics(reversed(history), self.config.starting_balance)

    async def get_portfolio_value(self, user_id: int) -> PortfolioValue:
        """Starting balance plus realized and mark-to-market unrealized P&L."""
        realized = await self.trades.realized_pnl(user_id)
        unrealized = Decimal("0")
        for trade in await self.trades.open_trades(user_id):
            price = await self.current_price(trade.instrument_id)
            if price is None:
                continue
            unrealized += calculate_pnl(
                trade.trade_type,
                trade.entry_price,
                price,
                trade.position_size,
                self.config.pip_value,
            )

        cash = self.config.starting_balance + realized
        return PortfolioValue(
            total_value=cash + unrealized,
            cash_balance=cash,
            unrealized_pnl=unrealized,
            realized_pnl=realized,
        )
