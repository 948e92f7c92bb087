"""Signal, indicator snapshot and feedback data models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Direction(str, Enum):
    """Trade direction."""

    LONG = "LONG"
    SHORT = "SHORT"
    NEUTRAL = "NEUTRAL"


class Regime(str, Enum):
    """Coarse market regime."""

    TRENDING_UP = "TRENDING_UP"
    TRENDING_DOWN = "TRENDING_DOWN"
    RANGING = "RANGING"
    HIGH_VOLATILITY = "HIGH_VOLATILITY"
    LOW_VOLATILITY = "LOW_VOLATILITY"


class MacdValues(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: float = 0.0
    signal: float = 0.0
    histogram: float = 0.0


class EmaValues(BaseModel):
    model_config = ConfigDict(frozen=True)

    short: float
    medium: float
    long: float


class StochasticValues(BaseModel):
    model_config = ConfigDict(frozen=True)

    k: float = 50.0
    d: float = 50.0


class BollingerValues(BaseModel):
    model_config = ConfigDict(frozen=True)

    upper: float
    middle: float
    lower: float
    width: float = 0.0
    percent_b: float = 50.0


class AdxValues(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: float = 0.0
    pdi: float = 0.0
    ndi: float = 0.0


class IndicatorSnapshot(BaseModel):
    """Read-only bundle of every indicator computed for one candle window."""

    model_config = ConfigDict(frozen=True)

    rsi: float
    macd: MacdValues
    ema: EmaValues
    stochastic: StochasticValues
    bollinger: BollingerValues
    adx: AdxValues
    atr: float
    supports: tuple[float, ...] = ()
    resistances: tuple[float, ...] = ()
    volatility: float = 0.0
    regime: Regime = Regime.RANGING

    @classmethod
    def neutral(cls, price: float) -> IndicatorSnapshot:
        """Default snapshot used when there is not enough history."""
        return cls(
            rsi=50.0,
            macd=MacdValues(),
            ema=EmaValues(short=price, medium=price, long=price),
            stochastic=StochasticValues(),
            bollinger=BollingerValues(upper=price, middle=price, lower=price),
            adx=AdxValues(),
            atr=0.0,
            supports=tuple(price * (1 - pct) for pct in (0.015, 0.03, 0.045)),
            resistances=tuple(price * (1 + pct) for pct in (0.015, 0.03, 0.045)),
            volatility=0.0,
            regime=Regime.RANGING,
        )


class Signal(BaseModel):
    """Directional trading signal for one (symbol, timeframe)."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    timeframe: str
    direction: Direction
    confidence: float = Field(ge=0, le=100)
    entry_price: float
    stop_loss: float
    take_profit: float
    risk_reward: float = 1.0
    leverage: float = 1.0
    success_probability: float = 50.0
    timestamp: datetime
    indicators: IndicatorSnapshot
    bullish_score: float = 0.0
    bearish_score: float = 0.0
    reasons: tuple[str, ...] = ()

    @property
    def key(self) -> str:
        """Unique key for this signal's stream: 'SYMBOL_TIMEFRAME'."""
        return f"{self.symbol}_{self.timeframe}"

    @property
    def regime(self) -> Regime:
        return self.indicators.regime


class AccuracyReport(BaseModel):
    """Realized outcome statistics reported by an external accuracy tracker.

    Accuracies and win rate are percentages in [0, 100].
    """

    symbol: str
    timeframe: str
    indicator_accuracy: dict[str, float] = Field(default_factory=dict)
    overall_win_rate: float = Field(ge=0, le=100)
    sample_count: int = Field(ge=0)
