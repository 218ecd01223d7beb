"""Main application entry point."""

import asyncio
import logging
import signal
import sys
from decimal import Decimal

# Configure logging FIRST, before any other imports
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)

# Reduce noise from third-party libraries
logging.getLogger("asyncio").setLevel(logging.WARNING)

from app.config import Settings, get_settings
from app.services import (
    FundamentalSignalSource,
    IndicatorService,
    MarketSimulator,
    PaperTradingService,
    PositioningSignalSource,
    RiskManager,
    SentimentSignalSource,
    SignalBroadcaster,
    SignalEngine,
    TechnicalSignalSource,
    TradingScheduler,
)
from app.storage import Storage
from app.trading_config import TradingConfig, load_trading_config
from core.models import RiskConfig, RiskProfile

logger = logging.getLogger(__name__)


def build_scheduler(
    settings: Settings,
    trading: TradingConfig,
    storage: Storage | None = None,
    sink: SignalBroadcaster | None = None,
) -> TradingScheduler:
    """Wire stores and services into a scheduler."""
    storage = storage or Storage()
    sink = sink or SignalBroadcaster()

    indicator_service = IndicatorService(
        storage.market_data,
        storage.indicators,
        timeframes=trading.indicator_timeframes,
    )
    signal_engine = SignalEngine(
        instruments=storage.instruments,
        market_data=storage.market_data,
        indicators=storage.indicators,
        signals=storage.signals,
        technical=TechnicalSignalSource(storage.indicators),
        fundamental=FundamentalSignalSource(storage.analysis),
        sentiment=SentimentSignalSource(storage.analysis),
        positioning=PositioningSignalSource(storage.analysis),
        config=trading.fusion_config(),
    )

    balance = Decimal(str(settings.account_balance))
    risk_manager = RiskManager(
        storage.risk_profiles,
        storage.trades,
        config=RiskConfig(account_balance=balance),
        default_profile=RiskProfile(user_id=0, **trading.risk_defaults.model_dump()),
    )
    trade_config = trading.trade_config(pip_value=Decimal(str(settings.pip_value)))
    paper_trading = PaperTradingService(
        signals=storage.signals,
        trades=storage.trades,
        market_data=storage.market_data,
        indicators=storage.indicators,
        risk_manager=risk_manager,
        config=trade_config.model_copy(update={"starting_balance": balance}),
    )

    return TradingScheduler(
        instruments=storage.instruments,
        market_data=storage.market_data,
        analysis=storage.analysis,
        signals=storage.signals,
        trades=storage.trades,
        feed=MarketSimulator(seed=settings.simulator_seed),
        indicator_service=indicator_service,
        signal_engine=signal_engine,
        paper_trading=paper_trading,
        sink=sink,
        universe=trading.instruments,
        user_id=settings.default_user_id,
        auto_trade_confidence=settings.auto_trade_confidence,
        store_timeout=settings.store_timeout,
        data_refresh_interval=settings.data_refresh_interval,
        signal_interval=settings.signal_interval,
        trade_interval=settings.trade_interval,
        exit_check_interval=settings.exit_check_interval,
        warmup_bars=settings.warmup_bars,
    )


async def run() -> None:
    """Bootstrap, start the timers and run until SIGINT/SIGTERM."""
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    logger.info("Starting signal fusion trading system...")
    trading = load_trading_config()
    scheduler = build_scheduler(settings, trading)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_event.set))

    await scheduler.bootstrap()
    scheduler.start()

    await stop_event.wait()

    logger.info("Shutting down...")
    await scheduler.stop()
    logger.info("Shutdown complete")


def main():
    """Run the application."""
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
