"""Statistics over closed paper trades.

Read-only views: nothing here mutates trades, and every figure can be
recomputed on demand from the trade history.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from core.models.trade import PaperTrade

TRADING_DAYS = 252


@dataclass
class TradingStatistics:
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    total_pnl: float = 0.0
    average_pnl: float = 0.0
    win_rate: float = 0.0  # Percent
    profit_factor: float = 0.0
    max_drawdown: float = 0.0  # Currency units, from the running P&L curve
    sharpe_ratio: float = 0.0


def max_drawdown(pnls: Iterable[float]) -> float:
    """Largest peak-to-trough drop of the cumulative P&L curve (peak starts at 0)."""
    peak = 0.0
    running = 0.0
    worst = 0.0
    for pnl in pnls:
        running += pnl
        if running > peak:
            peak = running
        worst = max(worst, peak - running)
    return worst


def sharpe_ratio(pnls: list[float], account_balance: float = 10000.0) -> float:
    """Annualized Sharpe of per-trade returns (pnl / balance), population std."""
    if not pnls:
        return 0.0
    returns = [p / account_balance for p in pnls]
    mean = sum(returns) / len(returns)
    variance = sum((r - mean) ** 2 for r in returns) / len(returns)
    std = math.sqrt(variance)
    if std == 0:
        return 0.0
    return mean / std * math.sqrt(TRADING_DAYS)


def compute_statistics(
    trades: Iterable[PaperTrade],
    account_balance: Decimal = Decimal("10000"),
) -> TradingStatistics:
    """
    Compute performance statistics over closed trades.

    Trades are taken in the order given; open trades and trades without
    P&L are ignored.
    """
    closed = [t for t in trades if not t.is_open and t.pnl is not None]
    if not closed:
        return TradingStatistics()

    pnls = [float(t.pnl) for t in closed]
    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p < 0]

    total = sum(pnls)
    gross_profit = sum(wins)
    gross_loss = abs(sum(losses))

    return TradingStatistics(
        total_trades=len(closed),
        winning_trades=len(wins),
        losing_trades=len(losses),
        total_pnl=total,
        average_pnl=total / len(closed),
        win_rate=len(wins) / len(closed) * 100,
        profit_factor=gross_profit / gross_loss if gross_loss > 0 else 0.0,
        max_drawdown=max_drawdown(pnls),
        sharpe_ratio=sharpe_ratio(pnls, float(account_balance)),
    )
