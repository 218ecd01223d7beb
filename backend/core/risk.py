"""Risk rules and position sizing (pure math, no I/O)."""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_DOWN, Decimal
from typing import Iterable

from core.models.risk import RiskProfile, TradeProposal, ValidationResult
from core.models.trade import PaperTrade

_SIZE_QUANT = Decimal("0.0001")
_HUNDRED = Decimal("100")


def calculate_position_size(
    entry_price: Decimal,
    stop_loss: Decimal,
    max_position_size: Decimal,
    account_balance: Decimal = Decimal("10000"),
    risk_percent: Decimal = Decimal("1"),
) -> Decimal:
    """
    Size a position so that hitting the stop loses ``risk_percent`` of balance.

    size = (balance * risk% / 100) / |entry - stop|, clamped to
    ``max_position_size`` and rounded down to 4 decimals.

    Returns:
        Position size, 0 when entry equals stop
    """
    pip_risk = abs(entry_price - stop_loss)
    if pip_risk == 0:
        return Decimal("0")

    risk_amount = account_balance * risk_percent / _HUNDRED
    size = min(risk_amount / pip_risk, max_position_size)
    return size.quantize(_SIZE_QUANT, rounding=ROUND_DOWN)


def daily_risk_used(trades: Iterable[PaperTrade], since: datetime) -> Decimal:
    """Sum of risk over open trades opened at or after ``since``."""
    return sum(
        (t.risk_amount for t in trades if t.is_open and t.opened_at >= since),
        Decimal("0"),
    )


def current_drawdown(realized_pnl: Decimal, account_balance: Decimal) -> Decimal:
    """Drawdown as percent of balance: only realized losses count."""
    return abs(min(realized_pnl, Decimal("0"))) / account_balance * _HUNDRED


def check_daily_risk(
    proposal: TradeProposal,
    used: Decimal,
    profile: RiskProfile,
) -> ValidationResult:
    """Reject when today's open risk plus the new trade exceeds the daily limit."""
    new_risk = proposal.risk_amount
    if used + new_risk > profile.max_daily_risk:
        return ValidationResult.reject(
            f"Daily risk limit exceeded. Current: ${used:.2f}, "
            f"New trade: ${new_risk:.2f}, Limit: ${profile.max_daily_risk:.2f}"
        )
    return ValidationResult.accept()


def check_position_size(proposal: TradeProposal, profile: RiskProfile) -> ValidationResult:
    """Scale oversized positions down when risk scaling is on, reject otherwise."""
    if proposal.position_size <= profile.max_position_size:
        return ValidationResult.accept()

    if profile.risk_scaling:
        return ValidationResult(
            is_valid=True,
            adjusted_position_size=profile.max_position_size,
            reason=(
                f"Position size adjusted from {proposal.position_size} "
                f"to {profile.max_position_size}"
            ),
        )
    return ValidationResult.reject(
        f"Position size {proposal.position_size} exceeds maximum {profile.max_position_size}"
    )


def check_drawdown(drawdown: Decimal, profile: RiskProfile) -> ValidationResult:
    """Reject when realized drawdown is above the profile limit."""
    if drawdown > profile.max_drawdown:
        return ValidationResult.reject(
            f"Maximum drawdown exceeded. Current: {drawdown:.2f}%, "
            f"Limit: {profile.max_drawdown}%"
        )
    return ValidationResult.accept()


def check_exposure(
    open_trades: list[PaperTrade],
    instrument_id: int,
    max_per_instrument: int = 3,
    max_total: int = 10,
) -> ValidationResult:
    """Limit open trades per instrument and in total."""
    same_instrument = sum(1 for t in open_trades if t.instrument_id == instrument_id)
    if same_instrument >= max_per_instrument:
        return ValidationResult.reject(
            f"Maximum trades per instrument exceeded "
            f"(limit: {max_per_instrument}, current: {same_instrument})"
        )
    if len(open_trades) >= max_total:
        return ValidationResult.reject(
            f"Maximum total open trades exceeded "
            f"(limit: {max_total}, current: {len(open_trades)})"
        )
    return ValidationResult.accept()


def risk_score(
    used: Decimal,
    max_daily_risk: Decimal,
    drawdown: Decimal,
    max_drawdown: Decimal,
    open_count: int,
    max_open: int = 10,
) -> float:
    """Composite 0-100 score, higher is riskier (50% daily risk, 30% drawdown, 20% open trades)."""
    daily_part = float(used / max_daily_risk) * 50 if max_daily_risk else 0.0
    drawdown_part = float(drawdown / max_drawdown) * 30 if max_drawdown else 0.0
    open_part = open_count / max_open * 20 if max_open else 0.0
    return min(daily_part + drawdown_part + open_part, 100.0)
