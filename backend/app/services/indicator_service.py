"""Indicator service: loads bar history and stores fresh indicator sets."""

import logging
from datetime import datetime, timedelta, timezone

from core.indicators import IndicatorCalculator
from core.models import IndicatorSet
from core.protocols import IndicatorStore, MarketDataStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEFRAMES = ("15m", "1h", "4h", "1d")


class IndicatorService:
    """
    Recompute indicators for an instrument across timeframes.

    Each pass reads the last ``lookback_days`` of bars and writes a complete
    IndicatorSet per timeframe. Timeframes with too little history are
    skipped without error.
    """

    def __init__(
        self,
        market_data: MarketDataStore,
        indicators: IndicatorStore,
        timeframes: tuple[str, ...] | list[str] = DEFAULT_TIMEFRAMES,
        lookback_days: int = 50,
        calculator: IndicatorCalculator | None = None,
    ):
        self.market_data = market_data
        self.indicators = indicators
        self.timeframes = tuple(timeframes)
        self.lookback = timedelta(days=lookback_days)
        self.calculator = calculator or IndicatorCalculator()

    async def calculate(
        self,
        instrument_id: int,
        timeframe: str,
        now: datetime | None = None,
    ) -> IndicatorSet | None:
        """Compute and save indicators for one timeframe.

        Returns:
            The saved IndicatorSet, or None when there is not enough history
        """
        end = now or datetime.now(timezone.utc)
        bars = await self.market_data.bars_in_range(
            instrument_id, timeframe, end - self.lookback, end
        )
        result = self.calculator.calculate(bars)
        if result is None:
            logger.debug(
                "Instrument %s %s: %d bars, need %d, skipping",
                instrument_id, timeframe, len(bars), self.calculator.min_bars,
            )
            return None

        await self.indicators.save(result)
        return result

    async def analyze_instrument(
        self,
        instrument_id: int,
        now: datetime | None = None,
    ) -> list[IndicatorSet]:
        """Compute indicators for every configured timeframe."""
        results = []
        for timeframe in self.timeframes:
            result = await self.calculate(instrument_id, timeframe, now)
            if result is not None:
                results.append(result)
        return results
