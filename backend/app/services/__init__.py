"""Business services."""

from app.services.component_sources import (
    FundamentalSignalSource,
    PositioningSignalSource,
    SentimentSignalSource,
    TechnicalSignalSource,
)
from app.services.event_sink import EventMessage, SignalBroadcaster
from app.services.indicator_service import IndicatorService
from app.services.market_simulator import MarketSimulator
from app.services.paper_trading import (
    CloseResult,
    CloseStatus,
    ExecutionResult,
    ExecutionStatus,
    PaperTradingService,
    PortfolioValue,
)
from app.services.risk_manager import RiskManager
from app.services.scheduler import CycleReport, TradingScheduler
from app.services.signal_engine import SignalEngine

__all__ = [
    "FundamentalSignalSource",
    "PositioningSignalSource",
    "SentimentSignalSource",
    "TechnicalSignalSource",
    "EventMessage",
    "SignalBroadcaster",
    "IndicatorService",
    "MarketSimulator",
    "CloseResult",
    "CloseStatus",
    "ExecutionResult",
    "ExecutionStatus",
    "PaperTradingService",
    "PortfolioValue",
    "RiskManager",
    "CycleReport",
    "TradingScheduler",
    "SignalEngine",
]
