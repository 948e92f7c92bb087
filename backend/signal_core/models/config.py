"""Engine configuration models and per-timeframe profiles."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


# Indicator names used as keys of every weight vector
INDICATOR_NAMES: tuple[str, ...] = (
    "rsi",
    "macd",
    "ema",
    "bollinger",
    "adx",
    "stochastic",
    "support_resistance",
)


class TimeframeProfile(BaseModel):
    """Every timeframe-dependent constant used by the engine.

    Stabilizer thresholds grow with timeframe duration: short timeframes
    flip easily, long timeframes need strong and persistent evidence.
    """

    # Synthesizer
    direction_margin: float = 20.0  # bull/bear score gap required for a direction
    confidence_multiplier: float = 1.0
    risk_multiplier: float = 1.5  # ATR multiple used for the stop distance
    leverage_scale: float = 1.0
    success_multiplier: float = 0.75
    success_adjustment: float = 8.0
    long_horizon: bool = False  # LONG bias bonus on success probability

    # Stabilizer
    confidence_threshold: float = Field(default=70.0, ge=0, le=100)
    fallback_period: int = Field(default=3, ge=1)
    override_threshold: float = Field(default=96.0, ge=0, le=100)


def _profile(
    margin: float,
    conf_mult: float,
    risk_mult: float,
    lev_scale: float,
    succ_mult: float,
    succ_adj: float,
    threshold: float,
    fallback: int,
    override: float,
    long_horizon: bool = False,
) -> TimeframeProfile:
    return TimeframeProfile(
        direction_margin=margin,
        confidence_multiplier=conf_mult,
        risk_multiplier=risk_mult,
        leverage_scale=lev_scale,
        success_multiplier=succ_mult,
        success_adjustment=succ_adj,
        confidence_threshold=threshold,
        fallback_period=fallback,
        override_threshold=override,
        long_horizon=long_horizon,
    )


# =============================================================================
# Default profiles, shortest to longest timeframe
# margin, conf mult, ATR mult, leverage scale, success mult/adj,
# flip threshold, fallback evaluations, override threshold
# =============================================================================
DEFAULT_PROFILES: dict[str, TimeframeProfile] = {
    "1m": _profile(15, 0.85, 1.0, 0.6, 0.65, 0, 60, 1, 95),
    "5m": _profile(15, 0.90, 1.2, 0.7, 0.68, 2, 62, 1, 95),
    "15m": _profile(18, 0.95, 1.4, 0.8, 0.70, 4, 65, 2, 95),
    "30m": _profile(18, 1.00, 1.5, 0.9, 0.72, 6, 68, 2, 96),
    "1h": _profile(20, 1.00, 1.8, 1.0, 0.75, 8, 70, 3, 96),
    "4h": _profile(20, 1.05, 2.0, 1.0, 0.78, 10, 75, 4, 96),
    "1d": _profile(22, 1.10, 2.2, 1.0, 0.80, 12, 80, 5, 97, long_horizon=True),
    "3d": _profile(22, 1.10, 2.5, 1.0, 0.82, 14, 83, 6, 97, long_horizon=True),
    "1w": _profile(25, 1.15, 2.8, 1.0, 0.84, 16, 86, 7, 98, long_horizon=True),
    "1M": _profile(25, 1.20, 3.0, 1.0, 0.85, 18, 90, 8, 98, long_horizon=True),
}

FALLBACK_TIMEFRAME = "1h"


class IndicatorPeriods(BaseModel):
    """Lookback periods of the indicator library."""

    rsi: int = Field(default=14, ge=2)
    ema_short: int = Field(default=9, ge=1)
    ema_medium: int = Field(default=21, ge=1)
    ema_long: int = Field(default=50, ge=1)
    macd_fast: int = Field(default=12, ge=1)
    macd_slow: int = Field(default=26, ge=2)
    macd_signal: int = Field(default=9, ge=1)
    stochastic_k: int = Field(default=14, ge=1)
    stochastic_d: int = Field(default=3, ge=1)
    bollinger: int = Field(default=20, ge=2)
    bollinger_std: float = Field(default=2.0, gt=0)
    adx: int = Field(default=14, ge=2)
    atr: int = Field(default=14, ge=1)
    volatility: int = Field(default=20, ge=2)
    pivot_lookback: int = Field(default=12, ge=2)

    @model_validator(mode="after")
    def _validate(self):
        if self.macd_fast >= self.macd_slow:
            raise ValueError("macd_fast must be shorter than macd_slow")
        if not self.ema_short < self.ema_medium < self.ema_long:
            raise ValueError("EMA periods must satisfy short < medium < long")
        return self


class EngineConfig(BaseModel):
    """Top-level engine configuration."""

    periods: IndicatorPeriods = Field(default_factory=IndicatorPeriods)
    min_candles: int = Field(default=50, ge=2)

    # Synthesizer
    score_floor: float = 45.0

    # Regime classifier
    high_volatility: float = 0.04
    low_volatility: float = 0.015
    trend_adx: float = 25.0
    trend_rsi_up: float = 60.0
    trend_rsi_down: float = 40.0

    # Computation cache
    cache_max_entries: int = Field(default=80, ge=1)
    cache_evict_fraction: float = Field(default=0.25, gt=0, le=1)

    # Adaptive weights
    learning_rate: float = Field(default=0.1, gt=0)
    min_learning_samples: int = Field(default=10, ge=1)
    min_learning_win_rate: float = 30.0
    boost_win_rate: float = 70.0
    boost_factor: float = 1.10
    min_weight: float = 0.1
    max_weight: float = 2.0

    profiles: dict[str, TimeframeProfile] = Field(
        default_factory=lambda: dict(DEFAULT_PROFILES)
    )

    @model_validator(mode="after")
    def _validate(self):
        if self.min_weight > self.max_weight:
            raise ValueError("min_weight must not exceed max_weight")
        if self.low_volatility > self.high_volatility:
            raise ValueError("low_volatility must not exceed high_volatility")
        return self

    def profile_for(self, timeframe: str) -> TimeframeProfile:
        """Return the profile for a timeframe (1h profile if unknown)."""
        profile = self.profiles.get(timeframe)
        if profile is None:
            profile = self.profiles.get(FALLBACK_TIMEFRAME) or TimeframeProfile()
        return profile
