"""Technical indicators (pure math, no I/O)."""

from core.indicators.indicators import (
    ema,
    sma,
    rsi,
    macd,
    bollinger_bands,
    true_range,
    atr,
    support_resistance,
    IndicatorCalculator,
)

__all__ = [
    "ema",
    "sma",
    "rsi",
    "macd",
    "bollinger_bands",
    "true_range",
    "atr",
    "support_resistance",
    "IndicatorCalculator",
]
