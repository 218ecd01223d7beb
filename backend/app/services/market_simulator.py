"""Market simulator: synthetic bars, economic events, sentiment and COT positioning.

Each instrument carries a rolling ``{price, trend, volatility}`` state.
One step moves the price with a persistent trend, mean-reverting
volatility and occasional news shocks, then writes the same move as one
bar per timeframe with the range scaled by timeframe.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

import numpy as np

from app.storage.locks import KeyedLock
from core.models import (
    Bar,
    CotReport,
    EconomicEvent,
    Instrument,
    SentimentReading,
    TIMEFRAMES,
)

logger = logging.getLogger(__name__)

TREND_PERSISTENCE = 0.7
VOLATILITY_REVERSION = 0.95
NEWS_PROBABILITY = 0.05
EVENT_PROBABILITY = 0.1

# Higher timeframes have more range and volume
TIMEFRAME_MULTIPLIERS = {
    "1m": 0.3,
    "5m": 0.5,
    "15m": 0.7,
    "1h": 1.0,
    "4h": 1.5,
    "1d": 2.0,
}

BASE_PRICES = {
    "EURUSD": 1.0850,
    "GBPUSD": 1.2650,
    "USDJPY": 149.50,
    "AUDUSD": 0.6750,
    "XAUUSD": 2650.00,
    "XAGUSD": 30.50,
}

BASE_VOLATILITY = {
    "EURUSD": 0.008,
    "GBPUSD": 0.012,
    "USDJPY": 0.010,
    "AUDUSD": 0.015,
    "XAUUSD": 0.020,
    "XAGUSD": 0.035,
}

BASE_VOLUME = {
    "EURUSD": 5_000_000,
    "GBPUSD": 3_000_000,
    "USDJPY": 4_000_000,
    "AUDUSD": 2_000_000,
    "XAUUSD": 1_500_000,
    "XAGUSD": 800_000,
}

CALENDAR = [
    ("Non-Farm Payrolls", "USD", "high"),
    ("ECB Interest Rate Decision", "EUR", "high"),
    ("Consumer Price Index", "USD", "medium"),
    ("Manufacturing PMI", "GBP", "medium"),
    ("Retail Sales", "AUD", "medium"),
    ("Bank of Japan Rate Decision", "JPY", "high"),
]

_EVENT_BASE_VALUES = {
    "Non-Farm Payrolls": 200000.0,
    "Consumer Price Index": 3.2,
    "Manufacturing PMI": 52.5,
    "Retail Sales": 0.3,
}

_IMPACT_MULTIPLIER = {"high": 3, "medium": 2, "low": 1}

# Readings per source on each refresh
SENTIMENT_SOURCES = {"news": 2, "twitter": 3, "reddit": 2}

# (base open interest, dispersion) per instrument for COT positioning
COT_BASE = {
    "EURUSD": (150_000, 0.10),
    "GBPUSD": (80_000, 0.15),
    "USDJPY": (120_000, 0.12),
    "XAUUSD": (200_000, 0.08),
    "XAGUSD": (50_000, 0.20),
}
_PRICE_QUANT = Decimal("0.00001")
_VOLUME_QUANT = Decimal("0.01")


@dataclass
class PriceState:
    price: float
    trend: float
    volatility: float


@dataclass(frozen=True)
class PriceMove:
    open: float
    high: float
    low: float
    close: float
    volume: float


def _dec(value: float, quant: Decimal = _PRICE_QUANT) -> Decimal:
    return Decimal(str(value)).quantize(quant)


class MarketSimulator:
    """
    Synthetic market data producer.

    State is keyed by instrument id; each key has its own lock so steps
    for one instrument never interleave while different instruments can
    advance concurrently.
    """

    def __init__(self, seed: int | None = None):
        self._rng = np.random.default_rng(seed)
        self._states: dict[int, PriceState] = {}
        self._locks = KeyedLock()

    def state(self, instrument_id: int) -> PriceState | None:
        return self._states.get(instrument_id)

    def _news_impact(self) -> float:
        if self._rng.random() < NEWS_PROBABILITY:
            return (self._rng.random() - 0.5) * 2
        return 0.0

    def _step(self, state: PriceState, symbol: str) -> tuple[PriceMove, PriceState]:
        news = self._news_impact()

        trend = state.trend * TREND_PERSISTENCE + (self._rng.random() - 0.5) * 0.2
        trend += news * 0.5
        trend = max(-1.0, min(1.0, trend))

        base_vol = BASE_VOLATILITY.get(symbol, 0.010)
        volatility = (
            state.volatility * VOLATILITY_REVERSION
            + base_vol * (1 - VOLATILITY_REVERSION)
        )
        volatility += abs(news) * base_vol * 0.5

        change = trend * volatility * 0.3 + (self._rng.random() - 0.5) * volatility

        open_ = state.price
        close = open_ * (1 + change)

        intrabar = volatility * 0.6
        high = max(open_, close) * (1 + self._rng.random() * intrabar)
        low = min(open_, close) * (1 - self._rng.random() * intrabar)

        volume_mult = 1 + abs(change) * 5 + abs(news) * 2
        volume = BASE_VOLUME.get(symbol, 1_000_000) * volume_mult * (0.8 + self._rng.random() * 0.4)

        move = PriceMove(open=open_, high=high, low=low, close=close, volume=volume)
        return move, PriceState(price=close, trend=trend, volatility=volatility)

    @staticmethod
    def scale_for_timeframe(move: PriceMove, timeframe: str) -> PriceMove:
        """Widen or narrow the bar's range around its midpoint for ``timeframe``.

        The range never shrinks past the open and close.
        """
        mult = TIMEFRAME_MULTIPLIERS.get(timeframe, 1.0)
        center = (move.high + move.low) / 2
        half_range = (move.high - move.low) * mult / 2
        return PriceMove(
            open=move.open,
            high=max(center + half_range, move.open, move.close),
            low=min(center - half_range, move.open, move.close),
            close=move.close,
            volume=move.volume * mult,
        )

    async def refresh(self, instrument: Instrument, timestamp: datetime) -> list[Bar]:
        """Advance the instrument one step and return one bar per timeframe."""
        async with self._locks.acquire(instrument.id):
            state = self._states.get(instrument.id)
            if state is None:
                state = PriceState(
                    price=BASE_PRICES.get(instrument.symbol, 1.0),
                    trend=0.0,
                    volatility=BASE_VOLATILITY.get(instrument.symbol, 0.010),
                )
            move, self._states[instrument.id] = self._step(state, instrument.symbol)

        bars = []
        for timeframe in TIMEFRAMES:
            scaled = self.scale_for_timeframe(move, timeframe)
            bars.append(
                Bar(
                    instrument_id=instrument.id,
                    timeframe=timeframe,
                    timestamp=timestamp,
                    open=_dec(scaled.open),
                    high=_dec(scaled.high),
                    low=_dec(scaled.low),
                    close=_dec(scaled.close),
                    volume=_dec(scaled.volume, _VOLUME_QUANT),
                )
            )
        return bars

    async def history(
        self,
        instrument: Instrument,
        end: datetime,
        steps: int,
        interval: timedelta,
    ) -> list[Bar]:
        """Generate ``steps`` refreshes spaced ``interval`` apart, ending at ``end``."""
        bars = []
        for i in range(steps - 1, -1, -1):
            bars.extend(await self.refresh(instrument, end - interval * i))
        return bars

    def economic_events(self, timestamp: datetime) -> list[EconomicEvent]:
        """Randomly release calendar events, each scored by its surprise."""
        events = []
        for name, currency, impact in CALENDAR:
            if self._rng.random() >= EVENT_PROBABILITY:
                continue
            forecast = _EVENT_BASE_VALUES.get(name, 50.0) * (0.9 + self._rng.random() * 0.2)
            actual = forecast + (self._rng.random() - 0.5) * forecast * 0.3
            surprise = (actual - forecast) / abs(forecast)
            score = max(-100.0, min(100.0, surprise * 100 * _IMPACT_MULTIPLIER[impact]))
            events.append(
                EconomicEvent(
                    timestamp=timestamp,
                    event=name,
                    currency=currency,
                    impact=impact,
                    score=round(score, 2),
                )
            )
        return events

    def _trend(self, instrument_id: int) -> float:
        state = self._states.get(instrument_id)
        return state.trend if state is not None else 0.0

    def sentiment(self, instrument: Instrument, timestamp: datetime) -> list[SentimentReading]:
        """Crowd sentiment readings that lean with the instrument's current trend."""
        trend = self._trend(instrument.id)
        readings = []
        for source, count in SENTIMENT_SOURCES.items():
            for _ in range(count):
                score = trend * 100 + (self._rng.random() - 0.5) * 120
                readings.append(
                    SentimentReading(
                        timestamp=timestamp,
                        source=source,
                        instrument_id=instrument.id,
                        sentiment=round(max(-100.0, min(100.0, score)), 2),
                        confidence=round(20 + self._rng.random() * 80, 2),
                    )
                )
        return readings

    def cot_report(self, instrument: Instrument, timestamp: datetime) -> CotReport:
        """Positioning snapshot; speculators add to positions in the trend direction."""
        base, dispersion = COT_BASE.get(instrument.symbol, (100_000, 0.10))
        trend = self._trend(instrument.id)

        commercial_long = int(base * (1 + (self._rng.random() - 0.5) * dispersion))
        commercial_short = int(base * 0.9 * (1 + (self._rng.random() - 0.5) * dispersion))
        non_commercial_long = int(
            base * 0.3 * (1 + (self._rng.random() - 0.5) * dispersion * 2 + max(trend, 0.0) * 0.5)
        )
        non_commercial_short = int(
            base * 0.25 * (1 + (self._rng.random() - 0.5) * dispersion * 2 + max(-trend, 0.0) * 0.5)
        )
        weekly_change = int((trend * 0.1 + (self._rng.random() - 0.5) * 0.05) * base)

        return CotReport(
            instrument_id=instrument.id,
            report_date=timestamp,
            commercial_long=commercial_long,
            commercial_short=commercial_short,
            non_commercial_long=non_commercial_long,
            non_commercial_short=non_commercial_short,
            net_non_commercial=non_commercial_long - non_commercial_short,
            weekly_change=weekly_change,
        )
