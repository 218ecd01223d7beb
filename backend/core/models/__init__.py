"""Domain models shared by the live scheduler and the services."""

from core.models.bar import Bar, TIMEFRAMES
from core.models.indicator import IndicatorSet
from core.models.signal import ComponentSignal, SignalType, TradingSignal
from core.models.trade import PaperTrade, TradeStatus, TradeType
from core.models.risk import RiskMetrics, RiskProfile, TradeProposal, ValidationResult
from core.models.analysis import CotReport, EconomicEvent, Instrument, SentimentReading
from core.models.config import FusionConfig, RiskConfig, TradeConfig

__all__ = [
    "Bar",
    "TIMEFRAMES",
    "IndicatorSet",
    "ComponentSignal",
    "SignalType",
    "TradingSignal",
    "PaperTrade",
    "TradeStatus",
    "TradeType",
    "RiskMetrics",
    "RiskProfile",
    "TradeProposal",
    "ValidationResult",
    "CotReport",
    "EconomicEvent",
    "Instrument",
    "SentimentReading",
    "FusionConfig",
    "RiskConfig",
    "TradeConfig",
]
