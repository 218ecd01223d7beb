"""Trading configuration loaded from trading.yaml.

Supports:
- Instrument universe created at bootstrap
- Signal timeframes and fusion weights
- Default risk profile for new users
- Trailing-stop ATR source
- No YAML file = built-in forex/metals universe with default weights
"""

import logging
from decimal import Decimal
from pathlib import Path

import yaml
from pydantic import BaseModel, model_validator

from core.models import FusionConfig, TIMEFRAMES, TradeConfig

logger = logging.getLogger(__name__)


class InstrumentEntry(BaseModel):
    """A single instrument in the YAML config."""

    symbol: str
    name: str
    type: str = "forex"

    @model_validator(mode="after")
    def _validate(self):
        if self.type not in ("forex", "metals"):
            raise ValueError(f"instrument type must be 'forex' or 'metals', got '{self.type}'")
        return self


class RiskDefaults(BaseModel):
    """Risk profile values used when a user has none yet."""

    max_daily_risk: Decimal = Decimal("500.00")
    max_position_size: Decimal = Decimal("0.10")
    max_drawdown: Decimal = Decimal("5.00")
    auto_stop_loss: bool = True
    risk_scaling: bool = True
    weekend_trading: bool = False


class WeightsEntry(BaseModel):
    technical: float = 0.40
    fundamental: float = 0.25
    sentiment: float = 0.20
    cot: float = 0.15


DEFAULT_INSTRUMENTS = [
    InstrumentEntry(symbol="EURUSD", name="Euro/US Dollar", type="forex"),
    InstrumentEntry(symbol="GBPUSD", name="British Pound/US Dollar", type="forex"),
    InstrumentEntry(symbol="USDJPY", name="US Dollar/Japanese Yen", type="forex"),
    InstrumentEntry(symbol="AUDUSD", name="Australian Dollar/US Dollar", type="forex"),
    InstrumentEntry(symbol="XAUUSD", name="Gold/US Dollar", type="metals"),
    InstrumentEntry(symbol="XAGUSD", name="Silver/US Dollar", type="metals"),
]


class TradingConfig(BaseModel):
    """Top-level trading.yaml configuration."""

    instruments: list[InstrumentEntry] = DEFAULT_INSTRUMENTS
    signal_timeframes: list[str] = ["1h", "4h", "1d"]
    indicator_timeframes: list[str] = ["15m", "1h", "4h", "1d"]
    weights: WeightsEntry = WeightsEntry()
    risk_defaults: RiskDefaults = RiskDefaults()
    trailing_atr_source: str = "indicator"

    @model_validator(mode="after")
    def _validate(self):
        for tf in self.signal_timeframes + self.indicator_timeframes:
            if tf not in TIMEFRAMES:
                raise ValueError(f"timeframe must be one of {TIMEFRAMES}, got '{tf}'")
        if not self.instruments:
            raise ValueError("at least one instrument is required")
        # Builds and validates weight sum / ATR source
        self.fusion_config()
        self.trade_config()
        return self

    def fusion_config(self) -> FusionConfig:
        return FusionConfig(
            timeframes=list(self.signal_timeframes),
            technical_weight=self.weights.technical,
            fundamental_weight=self.weights.fundamental,
            sentiment_weight=self.weights.sentiment,
            cot_weight=self.weights.cot,
        )

    def trade_config(self, pip_value: Decimal | None = None) -> TradeConfig:
        if pip_value is None:
            return TradeConfig(trailing_atr_source=self.trailing_atr_source)
        return TradeConfig(trailing_atr_source=self.trailing_atr_source, pip_value=pip_value)


_DEFAULT_PATH = Path(__file__).parent.parent / "trading.yaml"


def load_trading_config(path: Path | None = None) -> TradingConfig:
    """Load trading config from YAML file.

    Falls back to defaults (built-in universe) if file doesn't exist.
    """
    config_path = path or _DEFAULT_PATH

    if not config_path.exists():
        logger.info("No trading.yaml found at %s, using defaults", config_path)
        return TradingConfig()

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    config = TradingConfig(**raw)
    logger.info(
        "Loaded trading config: %d instruments, timeframes=%s, trailing ATR=%s",
        len(config.instruments),
        ",".join(config.signal_timeframes),
        config.trailing_atr_source,
    )
    return config
