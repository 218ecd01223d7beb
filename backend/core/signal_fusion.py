"""Multi-factor signal fusion (pure math, no I/O).

Four component opinions are turned into signed scores, combined with fixed
weights, and classified into buy/sell/hold. Price levels are derived from
the last close and the timeframe's ATR.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from core.models.config import FusionConfig
from core.models.signal import ComponentSignal, SignalType, TradingSignal

_SCORE_QUANT = Decimal("0.01")
_PRICE_QUANT = Decimal("0.00001")

_METAL_PREFIXES = ("XAU", "XAG")


@dataclass(frozen=True)
class FusionScores:
    """Signed component scores and their weighted combination."""

    technical: float
    fundamental: float
    sentiment: float
    cot: float
    combined: float

    @property
    def confidence(self) -> float:
        return abs(self.combined)


@dataclass(frozen=True)
class PriceLevels:
    """Entry, target and stop for a signal."""

    entry: float
    target: float
    stop: float


def fuse(
    technical: ComponentSignal,
    fundamental: ComponentSignal,
    sentiment: ComponentSignal,
    cot: ComponentSignal,
    config: FusionConfig | None = None,
) -> FusionScores:
    """
    Combine four component signals into one weighted score.

    Each component contributes direction (+1/-1/0) times its confidence.

    Returns:
        FusionScores with the signed component scores and combined score
    """
    cfg = config or FusionConfig()
    t, f, s, c = technical.score, fundamental.score, sentiment.score, cot.score
    combined = (
        t * cfg.technical_weight
        + f * cfg.fundamental_weight
        + s * cfg.sentiment_weight
        + c * cfg.cot_weight
    )
    return FusionScores(technical=t, fundamental=f, sentiment=s, cot=c, combined=combined)


def classify(combined_score: float, threshold: float = 30.0) -> SignalType:
    """Buy above +threshold, sell below -threshold, hold otherwise."""
    if combined_score > threshold:
        return SignalType.BUY
    if combined_score < -threshold:
        return SignalType.SELL
    return SignalType.HOLD


def calculate_price_levels(
    price: float,
    signal_type: SignalType,
    atr: float,
    confidence: float,
    config: FusionConfig | None = None,
) -> PriceLevels:
    """
    Calculate entry, target and stop from the last close.

    ATR is applied as a fraction of the current price:
    target = P * (1 ± ATR * (2 + confidence/100) / P),
    stop = P * (1 ∓ ATR * 1.5 / P).
    Hold signals get all three levels at the current price.
    """
    cfg = config or FusionConfig()
    if price == 0 or signal_type is SignalType.HOLD:
        return PriceLevels(entry=price, target=price, stop=price)

    atr_mult = cfg.target_atr_base + confidence / 100
    target_move = atr * atr_mult / price
    stop_move = atr * cfg.stop_atr_mult / price

    if signal_type is SignalType.BUY:
        return PriceLevels(
            entry=price * (1 + cfg.entry_offset),
            target=price * (1 + target_move),
            stop=price * (1 - stop_move),
        )
    return PriceLevels(
        entry=price * (1 - cfg.entry_offset),
        target=price * (1 - target_move),
        stop=price * (1 + stop_move),
    )


def extract_currency(symbol: str) -> str:
    """Currency whose fundamentals drive a symbol.

    Metals are priced in USD; forex pairs use their base currency.
    """
    if symbol.startswith(_METAL_PREFIXES):
        return "USD"
    return symbol[:3]


def _score(value: float) -> Decimal:
    return Decimal(str(value)).quantize(_SCORE_QUANT, rounding=ROUND_HALF_UP)


def _price(value: float) -> Decimal:
    return Decimal(str(value)).quantize(_PRICE_QUANT, rounding=ROUND_HALF_UP)


def build_signal(
    instrument_id: int,
    timeframe: str,
    scores: FusionScores,
    price: float,
    atr: float,
    config: FusionConfig | None = None,
) -> TradingSignal | None:
    """
    Turn fused scores into a TradingSignal.

    Returns:
        The signal, or None when confidence is below the emit threshold
    """
    cfg = config or FusionConfig()
    confidence = scores.confidence
    if confidence < cfg.min_confidence:
        return None

    signal_type = classify(scores.combined, cfg.direction_threshold)
    levels = calculate_price_levels(price, signal_type, atr, confidence, cfg)

    return TradingSignal(
        instrument_id=instrument_id,
        timeframe=timeframe,
        signal_type=signal_type,
        confidence=_score(confidence),
        entry_price=_price(levels.entry),
        target_price=_price(levels.target),
        stop_loss=_price(levels.stop),
        technical_score=_score(scores.technical),
        fundamental_score=_score(scores.fundamental),
        sentiment_score=_score(scores.sentiment),
        cot_score=_score(scores.cot),
        combined_score=_score(scores.combined),
    )
