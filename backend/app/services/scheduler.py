"""Trading scheduler: bootstrap plus the periodic data, signal, trade and exit cycles."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TypeVar

from app.services.indicator_service import IndicatorService
from app.services.paper_trading import (
    ExecutionResult,
    ExitAction,
    ExitCheck,
    PaperTradingService,
)
from app.services.signal_engine import SignalEngine
from app.storage.locks import KeyedLock
from app.storage.memory import AnalysisDataRepository
from app.trading_config import InstrumentEntry
from core.errors import StoreError
from core.models import Instrument, TradingSignal
from core.protocols import (
    EventSink,
    InstrumentStore,
    MarketDataFeed,
    MarketDataStore,
    SignalStore,
    TradeStore,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DATA_CYCLE = "data_refresh"
SIGNAL_CYCLE = "signal_generation"
TRADE_CYCLE = "trade_execution"
EXIT_CYCLE = "exit_check"


@dataclass
class CycleReport:
    """Aggregate outcome of one cycle tick.

    processed: items handled without error
    failed: items whose step raised or timed out
    skipped: items passed over (below threshold, rejected, no price)
    produced: bars written, signals created, trades opened or closed
    """

    cycle: str
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    produced: int = 0


class TradingScheduler:
    """
    Drive the trading pipeline on four independent timers.

    - data refresh: simulate and store bars, sentiment, COT and calendar events
    - signal generation: recompute indicators, then fuse fresh signals
    - trade execution: open trades for high-confidence signals
    - exit check: stop loss / take profit / trailing stop on open trades

    Each cycle is single-flight: a tick that fires while the previous tick
    of the same cycle is still running is skipped. Work for one instrument
    is serialized across cycles with a per-instrument lock, and every
    per-instrument step is bounded by ``store_timeout``. A failing
    instrument is logged and counted; the rest of the tick continues.
    """

    def __init__(
        self,
        instruments: InstrumentStore,
        market_data: MarketDataStore,
        analysis: AnalysisDataRepository,
        signals: SignalStore,
        trades: TradeStore,
        feed: MarketDataFeed,
        indicator_service: IndicatorService,
        signal_engine: SignalEngine,
        paper_trading: PaperTradingService,
        sink: EventSink,
        universe: Iterable[InstrumentEntry] = (),
        user_id: int = 1,
        auto_trade_confidence: float = 70.0,
        store_timeout: float = 10.0,
        data_refresh_interval: float = 120.0,
        signal_interval: float = 600.0,
        trade_interval: float = 900.0,
        exit_check_interval: float = 60.0,
        warmup_bars: int = 0,
    ):
        self.instruments = instruments
        self.market_data = market_data
        self.analysis = analysis
        self.signals = signals
        self.trades = trades
        self.feed = feed
        self.indicator_service = indicator_service
        self.signal_engine = signal_engine
        self.paper_trading = paper_trading
        self.sink = sink
        self.universe = list(universe)
        self.user_id = user_id
        self.auto_trade_confidence = auto_trade_confidence
        self.store_timeout = store_timeout
        self.warmup_bars = warmup_bars
        self.intervals = {
            DATA_CYCLE: data_refresh_interval,
            SIGNAL_CYCLE: signal_interval,
            TRADE_CYCLE: trade_interval,
            EXIT_CYCLE: exit_check_interval,
        }

        self._instrument_locks = KeyedLock()
        self._in_flight: set[str] = set()
        self._timers: list[asyncio.Task] = []
        self._ticks: set[asyncio.Task] = set()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _bounded(self, operation: str, work: Awaitable[T]) -> T:
        """Await ``work`` with the store timeout; a timeout becomes StoreError."""
        try:
            return await asyncio.wait_for(work, timeout=self.store_timeout)
        except asyncio.TimeoutError as e:
            raise StoreError(operation, f"timed out after {self.store_timeout}s") from e

    async def _single_flight(
        self, cycle: str, run: Callable[[], Awaitable[CycleReport]]
    ) -> CycleReport | None:
        if cycle in self._in_flight:
            logger.warning("%s still running, skipping tick", cycle)
            return None

        self._in_flight.add(cycle)
        try:
            report = await run()
        finally:
            self._in_flight.discard(cycle)

        logger.info(
            "%s: processed=%d failed=%d skipped=%d produced=%d",
            cycle, report.processed, report.failed, report.skipped, report.produced,
        )
        return report

    async def _active_instruments(self, report: CycleReport) -> list[Instrument]:
        try:
            instruments = await self._bounded("list_instruments", self.instruments.all())
        except Exception as e:
            logger.error("%s: failed to list instruments: %s", report.cycle, e)
            report.failed += 1
            return []
        return [i for i in instruments if i.is_active]

    async def _publish(self, event: dict) -> None:
        try:
            await self._bounded("publish", self.sink.publish(event))
        except Exception as e:
            logger.error("Failed to publish %s event: %s", event.get("type"), e)

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def ensure_instruments(self) -> int:
        """Create any configured instrument missing from the store.

        Returns:
            Number of instruments created
        """
        created = 0
        for entry in self.universe:
            try:
                existing = await self._bounded(
                    "get_instrument", self.instruments.get_by_symbol(entry.symbol)
                )
                if existing is None:
                    await self._bounded(
                        "create_instrument",
                        self.instruments.create(
                            Instrument(symbol=entry.symbol, name=entry.name, type=entry.type)
                        ),
                    )
                    logger.info("Created instrument: %s", entry.symbol)
                    created += 1
            except Exception as e:
                logger.error("Error creating instrument %s: %s", entry.symbol, e)
        return created

    async def warm_up(self, now: datetime | None = None) -> int:
        """Backfill simulated history so indicators can compute on the first pass.

        Returns:
            Number of bars written
        """
        if self.warmup_bars <= 0:
            return 0

        now = now or datetime.now(timezone.utc)
        interval = timedelta(seconds=self.intervals[DATA_CYCLE])
        end = now - interval
        written = 0

        report = CycleReport(cycle="warm_up")
        for instrument in await self._active_instruments(report):
            try:
                bars = await self.feed.history(instrument, end, self.warmup_bars, interval)
                for bar in bars:
                    await self._bounded("insert_bar", self.market_data.insert(bar))
                written += len(bars)
            except Exception as e:
                logger.error("Warm-up failed for %s: %s", instrument.symbol, e)
        logger.info("Warm-up complete: %d bars", written)
        return written

    async def bootstrap(self) -> None:
        """Ensure instruments exist, then run one data pass and one signal pass."""
        logger.info("Running initial setup...")
        await self.ensure_instruments()
        await self.warm_up()
        await self.run_data_refresh()
        await self.run_signal_generation()
        logger.info("Initial setup completed")

    # ------------------------------------------------------------------
    # Data refresh
    # ------------------------------------------------------------------

    async def _refresh_instrument(self, instrument: Instrument, now: datetime) -> int:
        async with self._instrument_locks.acquire(instrument.id):
            bars = await self.feed.refresh(instrument, now)
            for bar in bars:
                await self.market_data.insert(bar)
            for reading in self.feed.sentiment(instrument, now):
                await self.analysis.add_sentiment(reading)
            await self.analysis.add_cot(self.feed.cot_report(instrument, now))
        return len(bars)

    async def _data_refresh(self) -> CycleReport:
        report = CycleReport(cycle=DATA_CYCLE)
        now = datetime.now(timezone.utc)

        for instrument in await self._active_instruments(report):
            try:
                written = await self._bounded(
                    "refresh_market_data", self._refresh_instrument(instrument, now)
                )
            except Exception as e:
                logger.error(
                    "Market data refresh failed for %s (instrument %s): %s",
                    instrument.symbol, instrument.id, e,
                )
                report.failed += 1
                continue
            report.processed += 1
            report.produced += written

        for event in self.feed.economic_events(now):
            try:
                await self._bounded("add_event", self.analysis.add_event(event))
            except Exception as e:
                logger.error("Failed to store economic event %s: %s", event.event, e)
        return report

    async def run_data_refresh(self) -> CycleReport | None:
        return await self._single_flight(DATA_CYCLE, self._data_refresh)

    # ------------------------------------------------------------------
    # Signal generation
    # ------------------------------------------------------------------

    async def _generate_for(self, instrument: Instrument) -> list[TradingSignal]:
        async with self._instrument_locks.acquire(instrument.id):
            await self.indicator_service.analyze_instrument(instrument.id)
            return await self.signal_engine.generate_signals(instrument.id)

    async def _signal_generation(self) -> CycleReport:
        report = CycleReport(cycle=SIGNAL_CYCLE)
        created: list[TradingSignal] = []

        for instrument in await self._active_instruments(report):
            try:
                signals = await self._bounded(
                    "generate_signals", self._generate_for(instrument)
                )
            except Exception as e:
                logger.error(
                    "Signal generation failed for %s (instrument %s): %s",
                    instrument.symbol, instrument.id, e,
                )
                report.failed += 1
                continue
            logger.info("Generated %d signals for %s", len(signals), instrument.symbol)
            report.processed += 1
            report.produced += len(signals)
            created.extend(signals)

        if created:
            await self._publish(
                {"type": "new_signals", "data": [s.to_event_dict() for s in created]}
            )
        return report

    async def run_signal_generation(self) -> CycleReport | None:
        return await self._single_flight(SIGNAL_CYCLE, self._signal_generation)

    # ------------------------------------------------------------------
    # Trade execution
    # ------------------------------------------------------------------

    async def _execute(self, signal: TradingSignal) -> ExecutionResult:
        async with self._instrument_locks.acquire(signal.instrument_id):
            result = await self.paper_trading.execute_trade(signal.id, self.user_id)
            if result.success:
                # Shielded: a timeout here must not leave a traded signal active
                await asyncio.shield(self.signals.deactivate(signal.id))
        return result

    async def _trade_execution(self) -> CycleReport:
        report = CycleReport(cycle=TRADE_CYCLE)
        try:
            active = await self._bounded("active_signals", self.signals.active_signals())
        except Exception as e:
            logger.error("%s: failed to load active signals: %s", TRADE_CYCLE, e)
            report.failed += 1
            return report

        for signal in active:
            if float(signal.confidence) <= self.auto_trade_confidence:
                report.skipped += 1
                continue

            try:
                result = await self._bounded("execute_trade", self._execute(signal))
            except Exception as e:
                logger.error(
                    "Trade execution failed for signal %s (instrument %s, user %s): %s",
                    signal.id, signal.instrument_id, self.user_id, e,
                )
                report.failed += 1
                continue

            report.processed += 1
            if result.success:
                logger.info(
                    "Executed trade %s for signal %s on instrument %s",
                    result.trade.id, signal.id, signal.instrument_id,
                )
                report.produced += 1
            else:
                logger.info("Signal %s not traded: %s", signal.id, result.reason)
                report.skipped += 1
        return report

    async def run_trade_execution(self) -> CycleReport | None:
        return await self._single_flight(TRADE_CYCLE, self._trade_execution)

    # ------------------------------------------------------------------
    # Exit checks
    # ------------------------------------------------------------------

    async def _check(self, trade_id: int, instrument_id: int) -> ExitCheck | None:
        async with self._instrument_locks.acquire(instrument_id):
            # Re-read under the lock, the trade may have closed since listing
            trade = await self.trades.get(trade_id)
            if trade is None or not trade.is_open:
                return None
            return await self.paper_trading.check_trade(trade)

    async def _exit_check(self) -> CycleReport:
        report = CycleReport(cycle=EXIT_CYCLE)
        try:
            open_trades = await self._bounded("open_trades", self.trades.open_trades())
        except Exception as e:
            logger.error("%s: failed to load open trades: %s", EXIT_CYCLE, e)
            report.failed += 1
            return report

        for trade in open_trades:
            try:
                check = await self._bounded(
                    "check_trade", self._check(trade.id, trade.instrument_id)
                )
            except Exception as e:
                logger.error(
                    "Exit check failed for trade %s (instrument %s, user %s): %s",
                    trade.id, trade.instrument_id, trade.user_id, e,
                )
                report.failed += 1
                continue

            if check is None or check.action is ExitAction.NO_PRICE:
                report.skipped += 1
                continue

            report.processed += 1
            if check.action is ExitAction.CLOSED:
                logger.info(
                    "Closed trade %s at %s (%s)", trade.id, check.price, check.status.value
                )
                report.produced += 1
                await self._publish(
                    {
                        "type": "trade_closed",
                        "data": {
                            "trade_id": trade.id,
                            "instrument_id": trade.instrument_id,
                            "status": check.status.value,
                            "exit_price": float(check.price),
                        },
                    }
                )
            elif check.action is ExitAction.TRAILED:
                logger.debug("Trailed stop for trade %s to %s", trade.id, check.new_stop)
        return report

    async def run_exit_checks(self) -> CycleReport | None:
        return await self._single_flight(EXIT_CYCLE, self._exit_check)

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    async def _tick(self, cycle: str, run: Callable[[], Awaitable[CycleReport | None]]) -> None:
        try:
            await run()
        except Exception as e:
            logger.exception("%s tick failed: %s", cycle, e)

    async def _timer(
        self, cycle: str, run: Callable[[], Awaitable[CycleReport | None]]
    ) -> None:
        """Fire a tick every interval without waiting for the previous one."""
        interval = self.intervals[cycle]
        while True:
            await asyncio.sleep(interval)
            task = asyncio.create_task(self._tick(cycle, run))
            self._ticks.add(task)
            task.add_done_callback(self._ticks.discard)

    def start(self) -> None:
        """Start the four timers. Bootstrap is run separately."""
        if self._running:
            logger.info("Trading scheduler is already running")
            return

        self._running = True
        cycles = {
            DATA_CYCLE: self.run_data_refresh,
            SIGNAL_CYCLE: self.run_signal_generation,
            TRADE_CYCLE: self.run_trade_execution,
            EXIT_CYCLE: self.run_exit_checks,
        }
        for cycle, run in cycles.items():
            self._timers.append(asyncio.create_task(self._timer(cycle, run)))
        logger.info(
            "Trading scheduler started (data=%ss, signals=%ss, trades=%ss, exits=%ss)",
            *(self.intervals[c] for c in cycles),
        )

    async def stop(self) -> None:
        """Cancel future ticks and wait for in-flight ticks to finish."""
        if not self._running:
            return

        self._running = False
        logger.info("Stopping trading scheduler...")
        for timer in self._timers:
            timer.cancel()
        await asyncio.gather(*self._timers, return_exceptions=True)
        self._timers.clear()

        if self._ticks:
            await asyncio.gather(*list(self._ticks), return_exceptions=True)
        logger.info("Trading scheduler stopped")
