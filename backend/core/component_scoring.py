"""Scoring rules for the four component signal sources (pure, no I/O).

Each function maps already-produced analysis data to a ComponentSignal.
How the upstream scores were produced (news, social feeds, COT reports)
does not matter here.
"""

from __future__ import annotations

from typing import Iterable

from core.models.analysis import CotReport, EconomicEvent, SentimentReading
from core.models.indicator import IndicatorSet
from core.models.signal import ComponentSignal, SignalType

HOLD = ComponentSignal()

# Technical rule weights
RSI_WEIGHT = 2.0
MACD_WEIGHT = 1.5
MA_WEIGHT = 1.0
RSI_OVERSOLD = 30.0
RSI_OVERBOUGHT = 70.0
TECHNICAL_THRESHOLD = 0.3

IMPACT_WEIGHTS = {"high": 3.0, "medium": 2.0, "low": 1.0}
FUNDAMENTAL_THRESHOLD = 25.0

SOURCE_WEIGHTS = {"news": 3.0, "twitter": 2.0, "reddit": 1.5}
SENTIMENT_THRESHOLD = 30.0

# Net non-commercial contracts considered an extreme position
COT_EXTREME = 50_000
COT_REVERSAL_CAP = 90.0
COT_MOMENTUM_CAP = 70.0


def _directional(score: float, threshold: float) -> SignalType:
    if score > threshold:
        return SignalType.BUY
    if score < -threshold:
        return SignalType.SELL
    return SignalType.HOLD


def technical_signal(indicators: IndicatorSet | None) -> ComponentSignal:
    """
    Score RSI, MACD and moving-average trend.

    RSI < 30 adds +2 (oversold), RSI > 70 adds -2. MACD above its signal
    line adds +1.5, otherwise -1.5. MA50 above MA200 adds +1, otherwise -1.
    The sum is normalized by the total weight (4.5).
    """
    if indicators is None:
        return HOLD

    score = 0.0
    if indicators.rsi < RSI_OVERSOLD:
        score += RSI_WEIGHT
    elif indicators.rsi > RSI_OVERBOUGHT:
        score -= RSI_WEIGHT

    score += MACD_WEIGHT if indicators.macd > indicators.macd_signal else -MACD_WEIGHT
    score += MA_WEIGHT if indicators.ma50 > indicators.ma200 else -MA_WEIGHT

    normalized = score / (RSI_WEIGHT + MACD_WEIGHT + MA_WEIGHT)
    confidence = min(abs(normalized) * 100, 100.0)
    return ComponentSignal(
        direction=_directional(normalized, TECHNICAL_THRESHOLD),
        confidence=confidence,
    )


def fundamental_signal(events: Iterable[EconomicEvent], currency: str) -> ComponentSignal:
    """Impact-weighted mean of event scores for one currency."""
    total = 0.0
    weight_sum = 0.0
    for event in events:
        if event.currency != currency:
            continue
        weight = IMPACT_WEIGHTS.get(event.impact, 1.0)
        total += event.score * weight
        weight_sum += weight

    if weight_sum == 0:
        return HOLD

    average = total / weight_sum
    return ComponentSignal(
        direction=_directional(average, FUNDAMENTAL_THRESHOLD),
        confidence=min(abs(average), 100.0),
    )


def sentiment_signal(readings: Iterable[SentimentReading]) -> ComponentSignal:
    """Mean sentiment weighted by source reliability and reading confidence."""
    total = 0.0
    weight_sum = 0.0
    for reading in readings:
        weight = SOURCE_WEIGHTS.get(reading.source, 1.0) * (reading.confidence / 100)
        total += reading.sentiment * weight
        weight_sum += weight

    if weight_sum == 0:
        return HOLD

    average = total / weight_sum
    return ComponentSignal(
        direction=_directional(average, SENTIMENT_THRESHOLD),
        confidence=min(abs(average), 100.0),
    )


def cot_signal(report: CotReport | None) -> ComponentSignal:
    """
    Contrarian read of speculative positioning.

    Extreme positioning that starts to unwind signals a reversal; otherwise
    a large weekly change is followed as momentum.
    """
    if report is None:
        return HOLD

    net = report.net_non_commercial
    change = report.weekly_change
    momentum_threshold = COT_EXTREME * 0.1

    if net > COT_EXTREME and change < 0:
        return ComponentSignal(
            direction=SignalType.SELL,
            confidence=min(abs(net) / COT_EXTREME * 60, COT_REVERSAL_CAP),
        )
    if net < -COT_EXTREME and change > 0:
        return ComponentSignal(
            direction=SignalType.BUY,
            confidence=min(abs(net) / COT_EXTREME * 60, COT_REVERSAL_CAP),
        )
    if abs(change) > momentum_threshold:
        return ComponentSignal(
            direction=SignalType.BUY if change > 0 else SignalType.SELL,
            confidence=min(abs(change) / momentum_threshold * 40, COT_MOMENTUM_CAP),
        )
    return HOLD
