"""Store-backed component signal sources.

Each source reads its own upstream data and reduces it to a
(direction, confidence) opinion using the rules in core.component_scoring.
"""

from core.component_scoring import (
    cot_signal,
    fundamental_signal,
    sentiment_signal,
    technical_signal,
)
from core.models import ComponentSignal
from core.protocols import AnalysisDataStore, IndicatorStore


class TechnicalSignalSource:
    """Opinion from the latest indicator set. Scope: (instrument_id, timeframe)."""

    def __init__(self, indicators: IndicatorStore):
        self.indicators = indicators

    async def signal(self, scope: tuple[int, str]) -> ComponentSignal:
        instrument_id, timeframe = scope
        latest = await self.indicators.latest_indicators(instrument_id, timeframe)
        return technical_signal(latest)


class FundamentalSignalSource:
    """Opinion from recent economic events. Scope: currency code."""

    def __init__(self, data: AnalysisDataStore, event_window: int = 10):
        self.data = data
        self.event_window = event_window

    async def signal(self, scope: str) -> ComponentSignal:
        events = await self.data.recent_events(self.event_window)
        return fundamental_signal(events, scope)


class SentimentSignalSource:
    """Opinion from news and social sentiment. Scope: instrument id."""

    def __init__(self, data: AnalysisDataStore):
        self.data = data

    async def signal(self, scope: int) -> ComponentSignal:
        readings = await self.data.latest_sentiment(scope)
        return sentiment_signal(readings)


class PositioningSignalSource:
    """Contrarian opinion from COT positioning. Scope: instrument id."""

    def __init__(self, data: AnalysisDataStore):
        self.data = data

    async def signal(self, scope: int) -> ComponentSignal:
        report = await self.data.latest_cot(scope)
        return cot_signal(report)
