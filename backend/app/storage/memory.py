"""In-memory repositories implementing the core storage protocols.

Used by the standalone scheduler and the test suite. Records are kept as
immutable models where the domain says so; updates replace the record.
"""

from __future__ import annotations

import bisect
import itertools
from collections import defaultdict, deque
from datetime import datetime
from decimal import Decimal
from typing import Any

from core.models import (
    Bar,
    CotReport,
    EconomicEvent,
    IndicatorSet,
    Instrument,
    PaperTrade,
    RiskProfile,
    SentimentReading,
    TradingSignal,
)


class InstrumentRepository:
    """Instrument universe."""

    def __init__(self):
        self._by_id: dict[int, Instrument] = {}
        self._ids = itertools.count(1)

    async def all(self) -> list[Instrument]:
        return [i for i in self._by_id.values() if i.is_active]

    async def get(self, instrument_id: int) -> Instrument | None:
        return self._by_id.get(instrument_id)

    async def get_by_symbol(self, symbol: str) -> Instrument | None:
        for instrument in self._by_id.values():
            if instrument.symbol == symbol:
                return instrument
        return None

    async def create(self, instrument: Instrument) -> Instrument:
        existing = await self.get_by_symbol(instrument.symbol)
        if existing is not None:
            raise ValueError(f"Instrument already exists: {instrument.symbol}")
        created = instrument.model_copy(update={"id": next(self._ids)})
        self._by_id[created.id] = created
        return created


class MarketDataRepository:
    """Bars kept sorted by timestamp per (instrument, timeframe).

    A bar with an existing timestamp replaces the stored one.
    """

    def __init__(self, max_bars: int = 5000):
        self.max_bars = max_bars
        self._bars: dict[tuple[int, str], list[Bar]] = defaultdict(list)

    async def insert(self, bar: Bar) -> None:
        series = self._bars[(bar.instrument_id, bar.timeframe)]
        timestamps = [b.timestamp for b in series]
        idx = bisect.bisect_left(timestamps, bar.timestamp)
        if idx < len(series) and series[idx].timestamp == bar.timestamp:
            series[idx] = bar
        else:
            series.insert(idx, bar)
        if len(series) > self.max_bars:
            del series[: len(series) - self.max_bars]

    async def insert_many(self, bars: list[Bar]) -> None:
        for bar in bars:
            await self.insert(bar)

    async def latest_bar(self, instrument_id: int, timeframe: str) -> Bar | None:
        series = self._bars.get((instrument_id, timeframe))
        return series[-1] if series else None

    async def bars_in_range(
        self,
        instrument_id: int,
        timeframe: str,
        start: datetime,
        end: datetime,
    ) -> list[Bar]:
        series = self._bars.get((instrument_id, timeframe), [])
        return [b for b in series if start <= b.timestamp <= end]


class IndicatorRepository:
    """Indicator snapshots; the newest per (instrument, timeframe) is 'latest'."""

    def __init__(self, history_size: int = 100):
        self.history_size = history_size
        self._history: dict[tuple[int, str], list[IndicatorSet]] = defaultdict(list)

    async def save(self, indicators: IndicatorSet) -> None:
        history = self._history[(indicators.instrument_id, indicators.timeframe)]
        history.append(indicators)
        if len(history) > self.history_size:
            del history[0]

    async def latest_indicators(
        self, instrument_id: int, timeframe: str
    ) -> IndicatorSet | None:
        history = self._history.get((instrument_id, timeframe))
        return history[-1] if history else None


class SignalRepository:
    """Trading signals. Only the is_active flag ever changes."""

    def __init__(self):
        self._signals: dict[int, TradingSignal] = {}
        self._ids = itertools.count(1)

    async def create(self, signal: TradingSignal) -> TradingSignal:
        created = signal.model_copy(update={"id": next(self._ids)})
        self._signals[created.id] = created
        return created

    async def deactivate(self, signal_id: int) -> None:
        signal = self._signals.get(signal_id)
        if signal is not None and signal.is_active:
            self._signals[signal_id] = signal.model_copy(update={"is_active": False})

    async def active_signals(self) -> list[TradingSignal]:
        return [s for s in self._signals.values() if s.is_active]

    async def signals_for(self, instrument_id: int) -> list[TradingSignal]:
        return [s for s in self._signals.values() if s.instrument_id == instrument_id]

    async def get(self, signal_id: int) -> TradingSignal | None:
        return self._signals.get(signal_id)


class TradeRepository:
    """Paper trades."""

    def __init__(self):
        self._trades: dict[int, PaperTrade] = {}
        self._ids = itertools.count(1)

    async def create(self, trade: PaperTrade) -> PaperTrade:
        created = trade.model_copy(update={"id": next(self._ids)})
        self._trades[created.id] = created
        return created

    async def update(self, trade_id: int, patch: dict[str, Any]) -> PaperTrade:
        trade = self._trades.get(trade_id)
        if trade is None:
            raise KeyError(f"Trade not found: {trade_id}")
        updated = trade.model_copy(update=patch)
        self._trades[trade_id] = updated
        return updated

    async def get(self, trade_id: int) -> PaperTrade | None:
        return self._trades.get(trade_id)

    async def open_trades(self, user_id: int | None = None) -> list[PaperTrade]:
        return [
            t
            for t in self._trades.values()
            if t.is_open and (user_id is None or t.user_id == user_id)
        ]

    async def history(self, user_id: int, limit: int) -> list[PaperTrade]:
        trades = [t for t in self._trades.values() if t.user_id == user_id]
        trades.sort(key=lambda t: (t.opened_at, t.id), reverse=True)
        return trades[:limit]

    async def realized_pnl(self, user_id: int) -> Decimal:
        return sum(
            (
                t.pnl
                for t in self._trades.values()
                if t.user_id == user_id and not t.is_open and t.pnl is not None
            ),
            Decimal("0"),
        )


class RiskProfileRepository:
    """Per-user risk profiles."""

    def __init__(self):
        self._profiles: dict[int, RiskProfile] = {}

    async def get(self, user_id: int) -> RiskProfile | None:
        return self._profiles.get(user_id)

    async def upsert(self, user_id: int, profile: RiskProfile) -> RiskProfile:
        stored = profile.model_copy(update={"user_id": user_id})
        self._profiles[user_id] = stored
        return stored


class AnalysisDataRepository:
    """Economic events, sentiment readings and COT reports."""

    def __init__(self, sentiment_window: int = 50, event_window: int = 500):
        self.sentiment_window = sentiment_window
        # Oldest events fall off once the window is full
        self._events: deque[EconomicEvent] = deque(maxlen=event_window)
        self._sentiment: dict[int, list[SentimentReading]] = defaultdict(list)
        self._cot: dict[int, CotReport] = {}

    async def add_event(self, event: EconomicEvent) -> None:
        self._events.append(event)

    async def add_sentiment(self, reading: SentimentReading) -> None:
        if reading.instrument_id is None:
            raise ValueError("sentiment reading has no instrument")
        readings = self._sentiment[reading.instrument_id]
        readings.append(reading)
        if len(readings) > self.sentiment_window:
            del readings[0]

    async def add_cot(self, report: CotReport) -> None:
        current = self._cot.get(report.instrument_id)
        if current is None or report.report_date >= current.report_date:
            self._cot[report.instrument_id] = report

    async def recent_events(self, limit: int) -> list[EconomicEvent]:
        ordered = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return ordered[:limit]

    async def latest_sentiment(self, instrument_id: int) -> list[SentimentReading]:
        return list(self._sentiment.get(instrument_id, []))

    async def latest_cot(self, instrument_id: int) -> CotReport | None:
        return self._cot.get(instrument_id)


class Storage:
    """All repositories behind one handle, for wiring."""

    def __init__(self):
        self.instruments = InstrumentRepository()
        self.market_data = MarketDataRepository()
        self.indicators = IndicatorRepository()
        self.signals = SignalRepository()
        self.trades = TradeRepository()
        self.risk_profiles = RiskProfileRepository()
        self.analysis = AnalysisDataRepository()
