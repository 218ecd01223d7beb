"""Data storage layer."""

from app.storage.locks import KeyedLock
from app.storage.memory import (
    AnalysisDataRepository,
    IndicatorRepository,
    InstrumentRepository,
    MarketDataRepository,
    RiskProfileRepository,
    SignalRepository,
    Storage,
    TradeRepository,
)

__all__ = [
    "KeyedLock",
    "AnalysisDataRepository",
    "IndicatorRepository",
    "InstrumentRepository",
    "MarketDataRepository",
    "RiskProfileRepository",
    "SignalRepository",
    "Storage",
    "TradeRepository",
]
