"""Technical indicators for signal generation (pure math, no I/O).

All functions take plain price sequences and return the value for the most
recent bar. Nothing is carried between calls: every analysis pass recomputes
the full set from the bar history it is given.
"""

from typing import Sequence

import numpy as np

from core.models.bar import Bar
from core.models.indicator import IndicatorSet

RSI_PERIOD = 14
MACD_FAST = 12
MACD_SLOW = 26
# Signal line is a fixed fraction of MACD, not an EMA of it
MACD_SIGNAL_RATIO = 0.9
BOLLINGER_PERIOD = 20
BOLLINGER_STD = 2.0
ATR_PERIOD = 14
LEVELS_LOOKBACK = 20


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


def ema(values: Sequence[float], period: int) -> np.ndarray:
    """
    Calculate Exponential Moving Average series.

    Seeded with the first value (not an SMA), then
    ``ema = value * k + ema * (1 - k)`` with ``k = 2 / (period + 1)``.

    Args:
        values: Sequence of price values
        period: EMA period

    Returns:
        Array of EMA values, same length as input
    """
    arr = _as_array(values)
    result = np.empty_like(arr)
    if len(arr) == 0:
        return result

    k = 2.0 / (period + 1)
    result[0] = arr[0]
    for i in range(1, len(arr)):
        result[i] = arr[i] * k + result[i - 1] * (1 - k)
    return result


def sma(values: Sequence[float], period: int) -> float:
    """Mean of the last ``period`` values, or of all values if fewer."""
    arr = _as_array(values)
    if len(arr) == 0:
        return 0.0
    return float(np.mean(arr[-period:]))


def rsi(closes: Sequence[float], period: int = RSI_PERIOD) -> float:
    """
    Calculate Relative Strength Index with Wilder smoothing.

    Average gain/loss are seeded from the first ``period`` deltas (or all
    deltas when fewer are available), then rolled forward as
    ``avg = (avg * (period - 1) + current) / period``.

    Returns:
        RSI in [0, 100]. 100 when there are no losses, 50 with no deltas.
    """
    arr = _as_array(closes)
    deltas = np.diff(arr)
    if len(deltas) == 0:
        return 50.0

    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)

    seed = min(period, len(deltas))
    avg_gain = float(np.sum(gains[:seed])) / seed
    avg_loss = float(np.sum(losses[:seed])) / seed

    for i in range(seed, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def macd(
    closes: Sequence[float],
    fast: int = MACD_FAST,
    slow: int = MACD_SLOW,
) -> tuple[float, float]:
    """
    Calculate MACD line and its simplified signal line.

    Returns:
        Tuple of (macd, signal) where macd = EMA(fast) - EMA(slow)
        and signal = macd * 0.9
    """
    if len(closes) == 0:
        return 0.0, 0.0
    line = float(ema(closes, fast)[-1] - ema(closes, slow)[-1])
    return line, line * MACD_SIGNAL_RATIO


def bollinger_bands(
    closes: Sequence[float],
    period: int = BOLLINGER_PERIOD,
    num_std: float = BOLLINGER_STD,
) -> tuple[float, float]:
    """
    Calculate Bollinger Bands around SMA(period).

    Uses the population standard deviation of the last ``period`` closes.

    Returns:
        Tuple of (upper, lower)
    """
    arr = _as_array(closes)
    if len(arr) == 0:
        return 0.0, 0.0
    window = arr[-period:]
    mid = float(np.mean(window))
    std = float(np.std(window))
    return mid + std * num_std, mid - std * num_std


def true_range(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
) -> np.ndarray:
    """
    True range for every bar that has a previous close (length n - 1).

    TR = max(high - low, |high - prev_close|, |low - prev_close|)
    """
    h = _as_array(highs)
    l = _as_array(lows)
    c = _as_array(closes)
    if len(h) < 2:
        return np.empty(0, dtype=np.float64)

    prev_close = c[:-1]
    hl = h[1:] - l[1:]
    hc = np.abs(h[1:] - prev_close)
    lc = np.abs(l[1:] - prev_close)
    return np.maximum(hl, np.maximum(hc, lc))


def atr(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = ATR_PERIOD,
) -> float:
    """Average True Range: SMA(period) of the true range. 0 with fewer than 2 bars."""
    tr = true_range(highs, lows, closes)
    if len(tr) == 0:
        return 0.0
    return sma(tr, period)


def support_resistance(
    highs: Sequence[float],
    lows: Sequence[float],
    lookback: int = LEVELS_LOOKBACK,
) -> tuple[float, float]:
    """
    Support and resistance from recent extremes.

    Returns:
        Tuple of (support, resistance): lowest low and highest high
        over the last ``lookback`` bars
    """
    if len(highs) == 0 or len(lows) == 0:
        return 0.0, 0.0
    support = float(np.min(_as_array(lows)[-lookback:]))
    resistance = float(np.max(_as_array(highs)[-lookback:]))
    return support, resistance


class IndicatorCalculator:
    """Computes a full IndicatorSet from a bar history."""

    def __init__(self, min_bars: int = 20):
        self.min_bars = min_bars

    def calculate(self, bars: Sequence[Bar]) -> IndicatorSet | None:
        """
        Calculate all indicators for an ordered bar history.

        Args:
            bars: Bars for one (instrument, timeframe), oldest first

        Returns:
            IndicatorSet stamped with the last bar's timestamp, or None
            when fewer than ``min_bars`` bars are available
        """
        if len(bars) < self.min_bars:
            return None

        closes = [float(b.close) for b in bars]
        highs = [float(b.high) for b in bars]
        lows = [float(b.low) for b in bars]

        macd_line, macd_signal = macd(closes)
        upper, lower = bollinger_bands(closes)
        support, resistance = support_resistance(highs, lows)
        last = bars[-1]

        return IndicatorSet(
            instrument_id=last.instrument_id,
            timeframe=last.timeframe,
            timestamp=last.timestamp,
            rsi=rsi(closes),
            macd=macd_line,
            macd_signal=macd_signal,
            ma50=sma(closes, 50),
            ma200=sma(closes, 200),
            bollinger_upper=upper,
            bollinger_lower=lower,
            atr=atr(highs, lows, closes),
            support_level=support,
            resistance_level=resistance,
        )
