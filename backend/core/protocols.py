"""Collaborator protocols consumed by the services.

Any storage backend (in-memory, database, remote API) can implement these
protocols. The services only depend on the method shapes below.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

from core.models import (
    Bar,
    ComponentSignal,
    CotReport,
    EconomicEvent,
    IndicatorSet,
    Instrument,
    PaperTrade,
    RiskProfile,
    SentimentReading,
    TradingSignal,
)


@runtime_checkable
class InstrumentStore(Protocol):
    """Instrument universe."""

    async def all(self) -> list[Instrument]:
        ...

    async def get(self, instrument_id: int) -> Instrument | None:
        ...

    async def get_by_symbol(self, symbol: str) -> Instrument | None:
        ...

    async def create(self, instrument: Instrument) -> Instrument:
        ...


@runtime_checkable
class MarketDataStore(Protocol):
    """Bar history."""

    async def latest_bar(self, instrument_id: int, timeframe: str) -> Bar | None:
        ...

    async def bars_in_range(
        self,
        instrument_id: int,
        timeframe: str,
        start: datetime,
        end: datetime,
    ) -> list[Bar]:
        """Bars with start <= timestamp <= end, oldest first."""
        ...

    async def insert(self, bar: Bar) -> None:
        ...


@runtime_checkable
class IndicatorStore(Protocol):
    """Computed indicator snapshots."""

    async def latest_indicators(
        self, instrument_id: int, timeframe: str
    ) -> IndicatorSet | None:
        ...

    async def save(self, indicators: IndicatorSet) -> None:
        ...


@runtime_checkable
class SignalStore(Protocol):
    """Fused trading signals."""

    async def active_signals(self) -> list[TradingSignal]:
        ...

    async def signals_for(self, instrument_id: int) -> list[TradingSignal]:
        ...

    async def create(self, signal: TradingSignal) -> TradingSignal:
        """Persist a signal and return it with its assigned id."""
        ...

    async def deactivate(self, signal_id: int) -> None:
        ...


@runtime_checkable
class RiskProfileStore(Protocol):
    """Per-user risk limits."""

    async def get(self, user_id: int) -> RiskProfile | None:
        ...

    async def upsert(self, user_id: int, profile: RiskProfile) -> RiskProfile:
        ...


@runtime_checkable
class TradeStore(Protocol):
    """Paper trades."""

    async def get(self, trade_id: int) -> PaperTrade | None:
        ...

    async def open_trades(self, user_id: int | None = None) -> list[PaperTrade]:
        """Open trades for a user, or for every user when user_id is None."""
        ...

    async def history(self, user_id: int, limit: int) -> list[PaperTrade]:
        """Most recent trades first."""
        ...

    async def realized_pnl(self, user_id: int) -> Decimal:
        """Sum of P&L over the user's closed trades."""
        ...

    async def create(self, trade: PaperTrade) -> PaperTrade:
        ...

    async def update(self, trade_id: int, patch: dict[str, Any]) -> PaperTrade:
        ...


@runtime_checkable
class AnalysisDataStore(Protocol):
    """Upstream analysis inputs read by the component signal sources."""

    async def recent_events(self, limit: int) -> list[EconomicEvent]:
        ...

    async def latest_sentiment(self, instrument_id: int) -> list[SentimentReading]:
        ...

    async def latest_cot(self, instrument_id: int) -> CotReport | None:
        ...


@runtime_checkable
class EventSink(Protocol):
    """Fire-and-forget notifications to external subscribers."""

    async def publish(self, event: dict[str, Any]) -> None:
        ...


@runtime_checkable
class ComponentSignalSource(Protocol):
    """One opinion source for signal fusion.

    The scope depends on the source: (instrument_id, timeframe) for
    technical, a currency code for fundamental, an instrument id for
    sentiment and positioning.
    """

    async def signal(self, scope: Any) -> ComponentSignal:
        ...


@runtime_checkable
class MarketDataFeed(Protocol):
    """Producer of bars, calendar events, sentiment and positioning for the data-refresh cycle."""

    async def refresh(self, instrument: Instrument, timestamp: datetime) -> list[Bar]:
        ...

    async def history(
        self,
        instrument: Instrument,
        end: datetime,
        steps: int,
        interval: timedelta,
    ) -> list[Bar]:
        ...

    def economic_events(self, timestamp: datetime) -> list[EconomicEvent]:
        ...

    def sentiment(self, instrument: Instrument, timestamp: datetime) -> list[SentimentReading]:
        ...

    def cot_report(self, instrument: Instrument, timestamp: datetime) -> CotReport:
        ...
