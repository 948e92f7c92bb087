"""Technical indicators (pure math, no I/O)."""

from signal_core.indicators.indicators import (
    adx,
    atr,
    bollinger_bands,
    ema,
    ema_series,
    macd,
    macd_series,
    rsi,
    rsi_averages,
    sma,
    stochastic,
    true_range,
    volatility,
)
from signal_core.indicators.levels import LevelDetector, merge_levels
from signal_core.indicators.calculator import IndicatorCalculator

__all__ = [
    "adx",
    "atr",
    "bollinger_bands",
    "ema",
    "ema_series",
    "macd",
    "macd_series",
    "rsi",
    "rsi_averages",
    "sma",
    "stochastic",
    "true_range",
    "volatility",
    "LevelDetector",
    "merge_levels",
    "IndicatorCalculator",
]
