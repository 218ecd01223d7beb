"""Signal engine: fuses component opinions into persisted trading signals."""

import logging

from core.models import FusionConfig, TradingSignal
from core.protocols import (
    ComponentSignalSource,
    IndicatorStore,
    InstrumentStore,
    MarketDataStore,
    SignalStore,
)
from core.signal_fusion import build_signal, extract_currency, fuse

logger = logging.getLogger(__name__)


class SignalEngine:
    """
    Generate fused signals for an instrument.

    For each configured timeframe the engine:
    1. Collects the technical, fundamental, sentiment and positioning opinions
    2. Combines them with fixed weights
    3. Drops results below the confidence threshold
    4. Prices entry/target/stop off the last close and ATR
    5. Persists the signal

    Previously active signals for the instrument are deactivated once per
    call, before any new signal is created. Callers that run generation
    and trade execution concurrently must serialize them per instrument.
    """

    def __init__(
        self,
        instruments: InstrumentStore,
        market_data: MarketDataStore,
        indicators: IndicatorStore,
        signals: SignalStore,
        technical: ComponentSignalSource,
        fundamental: ComponentSignalSource,
        sentiment: ComponentSignalSource,
        positioning: ComponentSignalSource,
        config: FusionConfig | None = None,
    ):
        self.instruments = instruments
        self.market_data = market_data
        self.indicators = indicators
        self.signals = signals
        self.technical = technical
        self.fundamental = fundamental
        self.sentiment = sentiment
        self.positioning = positioning
        self.config = config or FusionConfig()

    async def deactivate_signals(self, instrument_id: int) -> int:
        """Deactivate every active signal for an instrument.

        Returns:
            Number of signals deactivated
        """
        count = 0
        for signal in await self.signals.signals_for(instrument_id):
            if signal.is_active:
                await self.signals.deactivate(signal.id)
                count += 1
        return count

    async def generate_signals(self, instrument_id: int) -> list[TradingSignal]:
        """Replace the instrument's active signals with a fresh batch.

        Returns:
            The newly created signals (possibly empty)
        """
        instrument = await self.instruments.get(instrument_id)
        if instrument is None:
            logger.debug("Instrument not found: %s", instrument_id)
            return []

        await self.deactivate_signals(instrument_id)

        # Timeframe-agnostic opinions are fetched once per batch
        fundamental = await self.fundamental.signal(extract_currency(instrument.symbol))
        sentiment = await self.sentiment.signal(instrument_id)
        positioning = await self.positioning.signal(instrument_id)

        created = []
        for timeframe in self.config.timeframes:
            technical = await self.technical.signal((instrument_id, timeframe))
            scores = fuse(technical, fundamental, sentiment, positioning, self.config)

            if scores.confidence < self.config.min_confidence:
                continue

            bar = await self.market_data.latest_bar(instrument_id, timeframe)
            if bar is None:
                continue

            latest = await self.indicators.latest_indicators(instrument_id, timeframe)
            atr = latest.atr if latest is not None else self.config.default_atr

            signal = build_signal(
                instrument_id=instrument_id,
                timeframe=timeframe,
                scores=scores,
                price=float(bar.close),
                atr=atr,
                config=self.config,
            )
            if signal is None:
                continue

            created.append(await self.signals.create(signal))

        return created
