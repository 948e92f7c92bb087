"""Data models."""

from signal_core.models.candle import Candle, CandleSeries
from signal_core.models.signal import (
    AccuracyReport,
    AdxValues,
    BollingerValues,
    Direction,
    EmaValues,
    IndicatorSnapshot,
    MacdValues,
    Regime,
    Signal,
    StochasticValues,
)
from signal_core.models.config import (
    DEFAULT_PROFILES,
    INDICATOR_NAMES,
    EngineConfig,
    TimeframeProfile,
)

__all__ = [
    "Candle",
    "CandleSeries",
    "AccuracyReport",
    "AdxValues",
    "BollingerValues",
    "Direction",
    "EmaValues",
    "IndicatorSnapshot",
    "MacdValues",
    "Regime",
    "Signal",
    "StochasticValues",
    "DEFAULT_PROFILES",
    "INDICATOR_NAMES",
    "EngineConfig",
    "TimeframeProfile",
]
