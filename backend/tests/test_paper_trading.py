"""Tests for paper trade execution and lifecycle."""

import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from app.services.paper_trading import (
    CloseStatus,
    ExecutionStatus,
    ExitAction,
    PaperTradingService,
)
from app.services.risk_manager import RiskManager
from app.storage import Storage
from core.models import (
    Bar,
    IndicatorSet,
    PaperTrade,
    RiskProfile,
    SignalType,
    TradeConfig,
    TradeStatus,
    TradeType,
    TradingSignal,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def trading_signal(signal_type=SignalType.BUY, entry="1.1000", stop="1.0950", target="1.1100"):
    return TradingSignal(
        instrument_id=1,
        timeframe="1h",
        signal_type=signal_type,
        confidence=Decimal("80"),
        entry_price=Decimal(entry),
        target_price=Decimal(target),
        stop_loss=Decimal(stop),
    )


def paper_trade(trade_type=TradeType.BUY, entry="1.1000", stop="1.0950", target="1.1100", size="0.05"):
    return PaperTrade(
        user_id=1,
        instrument_id=1,
        trade_type=trade_type,
        position_size=Decimal(size),
        entry_price=Decimal(entry),
        stop_loss=Decimal(stop),
        take_profit=Decimal(target),
    )


class PriceFeed:
    """Writes successive 1m bars for instrument 1."""

    def __init__(self, storage):
        self.storage = storage
        self.minute = 0

    async def set(self, price):
        p = Decimal(price)
        self.minute += 1
        await self.storage.market_data.insert(
            Bar(
                instrument_id=1,
                timeframe="1m",
                timestamp=T0 + timedelta(minutes=self.minute),
                open=p,
                high=p,
                low=p,
                close=p,
            )
        )


class TestPaperTrading:
    """Tests for PaperTradingService."""

    @pytest.fixture
    def storage(self):
        return Storage()

    @pytest.fixture
    def risk_manager(self, storage):
        return RiskManager(storage.risk_profiles, storage.trades)

    def make_service(self, storage, risk_manager, **config):
        return PaperTradingService(
            signals=storage.signals,
            trades=storage.trades,
            market_data=storage.market_data,
            indicators=storage.indicators,
            risk_manager=risk_manager,
            config=TradeConfig(**config),
        )

    @pytest.fixture
    def service(self, storage, risk_manager):
        return self.make_service(storage, risk_manager, trailing_atr_source="fixed")

    @pytest.fixture
    def prices(self, storage):
        return PriceFeed(storage)

    # -- execution ------------------------------------------------------

    @pytest.mark.asyncio
    async def test_execute_signal_not_found(self, service, storage):
        result = await service.execute_trade(999, user_id=1)

        assert result.status is ExecutionStatus.SIGNAL_NOT_FOUND
        assert not result.success
        assert await storage.trades.open_trades() == []

    @pytest.mark.asyncio
    async def test_execute_inactive_signal_not_found(self, service, storage):
        signal = await storage.signals.create(trading_signal())
        await storage.signals.deactivate(signal.id)

        result = await service.execute_trade(signal.id, user_id=1)
        assert result.status is ExecutionStatus.SIGNAL_NOT_FOUND

    @pytest.mark.asyncio
    async def test_execute_opens_trade(self, service, storage):
        signal = await storage.signals.create(trading_signal())

        result = await service.execute_trade(signal.id, user_id=1)

        assert result.success
        trade = result.trade
        assert trade.id is not None
        assert trade.status is TradeStatus.OPEN
        assert trade.trade_type is TradeType.BUY
        assert trade.signal_id == signal.id
        assert trade.entry_price == Decimal("1.1000")
        assert trade.stop_loss == Decimal("1.0950")
        assert trade.take_profit == Decimal("1.1100")
        # $100 risk over 0.005 would be 20000, clamped to the default max
        assert trade.position_size == Decimal("0.10")
        assert await storage.risk_profiles.get(1) is not None

    @pytest.mark.asyncio
    async def test_execute_sell_signal(self, service, storage):
        signal = await storage.signals.create(
            trading_signal(SignalType.SELL, entry="1.1000", stop="1.1050", target="1.0900")
        )
        result = await service.execute_trade(signal.id, user_id=1)

        assert result.success
        assert result.trade.trade_type is TradeType.SELL

    @pytest.mark.asyncio
    async def test_execute_zero_size_rejected(self, service, storage):
        signal = await storage.signals.create(trading_signal(stop="1.1000"))

        result = await service.execute_trade(signal.id, user_id=1)

        assert result.status is ExecutionStatus.REJECTED
        assert "zero" in result.reason
        assert await storage.trades.open_trades() == []

    @pytest.mark.asyncio
    async def test_execute_hold_rejected(self, service, storage):
        signal = await storage.signals.create(
            trading_signal(SignalType.HOLD, entry="1.1", stop="1.1", target="1.1")
        )
        result = await service.execute_trade(signal.id, user_id=1)
        assert result.status is ExecutionStatus.REJECTED

    @pytest.mark.asyncio
    async def test_execute_risk_rejection(self, service, storage):
        await storage.risk_profiles.upsert(1, RiskProfile(user_id=1))
        for _ in range(3):
            await storage.trades.create(paper_trade(stop="1.0999", size="0.01"))
        signal = await storage.signals.create(trading_signal())

        result = await service.execute_trade(signal.id, user_id=1)

        assert result.status is ExecutionStatus.REJECTED
        assert "per instrument" in result.reason
        assert len(await storage.trades.open_trades(1)) == 3

    @pytest.mark.asyncio
    async def test_execute_uses_adjusted_size(self, storage):
        class FixedSizer(RiskManager):
            async def calculate_position_size(self, user_id, entry_price, stop_loss, risk_percent=None):
                return Decimal("0.5")

        risk_manager = FixedSizer(storage.risk_profiles, storage.trades)
        service = self.make_service(storage, risk_manager)
        await storage.risk_profiles.upsert(1, RiskProfile(user_id=1))
        signal = await storage.signals.create(trading_signal())

        result = await service.execute_trade(signal.id, user_id=1)

        assert result.success
        assert result.trade.position_size == Decimal("0.10")

    @pytest.mark.asyncio
    async def test_concurrent_executions_respect_exposure(self, service, storage):
        await storage.risk_profiles.upsert(1, RiskProfile(user_id=1))
        for _ in range(2):
            await storage.trades.create(paper_trade())
        first = await storage.signals.create(trading_signal())
        second = await storage.signals.create(trading_signal())
        real = storage.trades.open_trades

        async def slow_open_trades(user_id=None):
            await asyncio.sleep(0.01)
            return await real(user_id)

        storage.trades.open_trades = slow_open_trades

        results = await asyncio.gather(
            service.execute_trade(first.id, user_id=1),
            service.execute_trade(second.id, user_id=1),
        )

        assert sorted(r.status.value for r in results) == ["executed", "rejected"]
        assert len(await real(1)) == 3

    # -- closing --------------------------------------------------------

    @pytest.mark.asyncio
    async def test_close_trade_pnl(self, service, storage):
        trade = await storage.trades.create(paper_trade(size="0.05"))

        result = await service.close_trade(trade.id, Decimal("1.1050"))

        assert result.success
        assert result.pnl == Decimal("25.00")
        closed = await storage.trades.get(trade.id)
        assert closed.status is TradeStatus.CLOSED
        assert closed.exit_price == Decimal("1.1050")
        assert closed.closed_at is not None

    @pytest.mark.asyncio
    async def test_close_sell_trade_pnl(self, service, storage):
        trade = await storage.trades.create(
            paper_trade(TradeType.SELL, stop="1.1050", target="1.0900", size="0.05")
        )
        result = await service.close_trade(trade.id, Decimal("1.1050"))
        assert result.pnl == Decimal("-25.00")

    @pytest.mark.asyncio
    async def test_close_missing_trade(self, service):
        result = await service.close_trade(42, Decimal("1.1"))
        assert result.status is CloseStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_close_twice(self, service, storage):
        trade = await storage.trades.create(paper_trade())
        await service.close_trade(trade.id, Decimal("1.1010"))

        result = await service.close_trade(trade.id, Decimal("1.1020"))

        assert result.status is CloseStatus.NOT_OPEN
        assert (await storage.trades.get(trade.id)).exit_price == Decimal("1.1010")

    @pytest.mark.asyncio
    async def test_close_with_open_status_is_error(self, service, storage):
        trade = await storage.trades.create(paper_trade())
        with pytest.raises(ValueError):
            await service.close_trade(trade.id, Decimal("1.1"), TradeStatus.OPEN)

    # -- exit checks ----------------------------------------------------

    @pytest.mark.asyncio
    async def test_check_without_price(self, service, storage):
        trade = await storage.trades.create(paper_trade())
        check = await service.check_trade(trade)
        assert check.action is ExitAction.NO_PRICE

    @pytest.mark.asyncio
    async def test_stop_loss_hit(self, service, storage, prices):
        trade = await storage.trades.create(paper_trade())
        await prices.set("1.0940")

        check = await service.check_trade(trade)

        assert check.action is ExitAction.CLOSED
        assert check.status is TradeStatus.STOP_LOSS
        closed = await storage.trades.get(trade.id)
        assert closed.status is TradeStatus.STOP_LOSS
        assert closed.pnl == Decimal("-30.00")

    @pytest.mark.asyncio
    async def test_take_profit_hit_for_sell(self, service, storage, prices):
        trade = await storage.trades.create(
            paper_trade(TradeType.SELL, stop="1.1050", target="1.0900")
        )
        await prices.set("1.0895")

        check = await service.check_trade(trade)

        assert check.status is TradeStatus.TAKE_PROFIT
        assert (await storage.trades.get(trade.id)).pnl == Decimal("52.50")

    @pytest.mark.asyncio
    async def test_trailing_stop_only_tightens(self, service, storage, prices):
        """Buy stop trails to 1.1010 at 1.1030 and stays there on a pullback."""
        trade = await storage.trades.create(paper_trade(target="1.1200"))
        await prices.set("1.1030")

        check = await service.check_trade(trade)

        assert check.action is ExitAction.TRAILED
        assert check.new_stop == Decimal("1.1010")
        trade = await storage.trades.get(trade.id)
        assert trade.stop_loss == Decimal("1.1010")

        assert await service.apply_trailing_stop(trade, Decimal("1.1025")) is None
        assert (await storage.trades.get(trade.id)).stop_loss == Decimal("1.1010")

    @pytest.mark.asyncio
    async def test_pullback_below_trailed_stop_closes(self, service, storage, prices):
        trade = await storage.trades.create(paper_trade(target="1.1200"))
        await prices.set("1.1030")
        await service.check_trade(trade)

        await prices.set("1.1005")
        check = await service.check_trade(await storage.trades.get(trade.id))

        assert check.status is TradeStatus.STOP_LOSS
        closed = await storage.trades.get(trade.id)
        assert closed.stop_loss == Decimal("1.1010")
        assert closed.pnl == Decimal("2.50")

    @pytest.mark.asyncio
    async def test_sell_trailing_stop(self, service, storage, prices):
        trade = await storage.trades.create(
            paper_trade(TradeType.SELL, stop="1.1050", target="1.0800")
        )
        await prices.set("1.0970")

        check = await service.check_trade(trade)

        assert check.action is ExitAction.TRAILED
        assert check.new_stop == Decimal("1.0990")

    @pytest.mark.asyncio
    async def test_trailing_uses_indicator_atr(self, storage, risk_manager, prices):
        service = self.make_service(storage, risk_manager, trailing_atr_source="indicator")
        await storage.indicators.save(
            IndicatorSet(
                instrument_id=1,
                timeframe="1h",
                timestamp=T0,
                rsi=50,
                macd=0,
                macd_signal=0,
                ma50=1.1,
                ma200=1.1,
                bollinger_upper=1.11,
                bollinger_lower=1.09,
                atr=0.002,
                support_level=1.09,
                resistance_level=1.11,
            )
        )
        trade = await storage.trades.create(paper_trade(target="1.1200"))
        await prices.set("1.1030")

        check = await service.check_trade(trade)
        assert check.new_stop == Decimal("1.0990")

    @pytest.mark.asyncio
    async def test_trailing_indicator_atr_falls_back(self, storage, risk_manager, prices):
        service = self.make_service(storage, risk_manager, trailing_atr_source="indicator")
        trade = await storage.trades.create(paper_trade(target="1.1200"))
        await prices.set("1.1030")

        check = await service.check_trade(trade)
        assert check.new_stop == Decimal("1.1010")

    @pytest.mark.asyncio
    async def test_check_all_open_trades(self, service, storage, prices):
        await storage.trades.create(paper_trade())
        await storage.trades.create(paper_trade(TradeType.SELL, stop="1.1050", target="1.0900"))
        await prices.set("1.0940")

        checks = await service.check_stop_loss_and_take_profit()

        assert len(checks) == 2
        assert checks[0].status is TradeStatus.STOP_LOSS
        assert checks[1].action is ExitAction.TRAILED

    # -- reporting ------------------------------------------------------

    @pytest.mark.asyncio
    async def test_trading_statistics(self, service, storage):
        for exit_price in ("1.1050", "1.0980", "1.1020"):
            trade = await storage.trades.create(paper_trade(size="0.05"))
            await service.close_trade(trade.id, Decimal(exit_price))
        await storage.trades.create(paper_trade())

        stats = await service.get_trading_statistics(1)

        assert stats.total_trades == 3
        assert stats.winning_trades == 2
        assert stats.losing_trades == 1
        # 25 - 10 + 10
        assert stats.total_pnl == pytest.approx(25.0)
        assert stats.win_rate == pytest.approx(200 / 3)
        assert stats.profit_factor == pytest.approx(3.5)

    @pytest.mark.asyncio
    async def test_portfolio_value(self, service, storage, prices):
        closed = await storage.trades.create(paper_trade(size="0.05"))
        await service.close_trade(closed.id, Decimal("1.1050"))
        await storage.trades.create(paper_trade(size="0.05"))
        await prices.set("1.0980")

        value = await service.get_portfolio_value(1)

        assert value.realized_pnl == Decimal("25.00")
        assert value.unrealized_pnl == Decimal("-10.00")
        assert value.cash_balance == Decimal("10025.00")
        assert value.total_value == Decimal("10015.00")
