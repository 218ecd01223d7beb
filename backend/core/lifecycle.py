"""Paper position lifecycle rules (pure, no I/O).

A trade is OPEN until it hits its stop, its target, or is closed by hand.
Every other status is terminal.
"""

from __future__ import annotations

from decimal import Decimal

from core.models.trade import PaperTrade, TradeStatus, TradeType

_PNL_QUANT = Decimal("0.01")


def exit_reason(trade: PaperTrade, price: Decimal) -> TradeStatus | None:
    """
    Check whether ``price`` triggers the trade's stop or target.

    A zero stop or target is treated as unset.

    Returns:
        STOP_LOSS or TAKE_PROFIT, or None if neither level is hit
    """
    if not trade.is_open:
        return None

    stop = trade.stop_loss
    target = trade.take_profit

    if trade.trade_type is TradeType.BUY:
        if stop > 0 and price <= stop:
            return TradeStatus.STOP_LOSS
        if target > 0 and price >= target:
            return TradeStatus.TAKE_PROFIT
    else:
        if stop > 0 and price >= stop:
            return TradeStatus.STOP_LOSS
        if target > 0 and price <= target:
            return TradeStatus.TAKE_PROFIT
    return None


def trailing_stop(
    trade: PaperTrade,
    price: Decimal,
    atr: Decimal,
    atr_mult: Decimal = Decimal("2"),
) -> Decimal | None:
    """
    New stop for a trailing position, if it should move.

    Buy stops only move up to ``price - atr * atr_mult``; sell stops only
    move down to ``price + atr * atr_mult``.

    Returns:
        The new stop, or None to keep the current one
    """
    if not trade.is_open:
        return None

    distance = atr * atr_mult
    if trade.trade_type is TradeType.BUY:
        candidate = price - distance
        if candidate > trade.stop_loss:
            return candidate
    else:
        candidate = price + distance
        if candidate < trade.stop_loss:
            return candidate
    return None


def calculate_pnl(
    trade_type: TradeType,
    entry_price: Decimal,
    exit_price: Decimal,
    position_size: Decimal,
    pip_value: Decimal = Decimal("100000"),
) -> Decimal:
    """P&L in account currency: price move times size times pip value, negated for sells."""
    move = exit_price - entry_price
    if trade_type is TradeType.SELL:
        move = -move
    return (move * position_size * pip_value).quantize(_PNL_QUANT)
