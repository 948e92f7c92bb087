"""Market regime classification."""

from __future__ import annotations

from signal_core.models.signal import Regime


def classify_regime(
    volatility: float,
    adx_value: float,
    rsi_value: float,
    *,
    high_volatility: float = 0.04,
    low_volatility: float = 0.015,
    trend_adx: float = 25.0,
    trend_rsi_up: float = 60.0,
    trend_rsi_down: float = 40.0,
) -> Regime:
    """
    Map indicator readings to exactly one regime.

    Rules are checked in order and the first match wins:
    volatility above ``high_volatility``, volatility below
    ``low_volatility``, strong ADX with high RSI, strong ADX with low RSI,
    otherwise ranging.
    """
    if volatility > high_volatility:
        return Regime.HIGH_VOLATILITY
    if volatility < low_volatility:
        return Regime.LOW_VOLATILITY
    if adx_value > trend_adx and rsi_value > trend_rsi_up:
        return Regime.TRENDING_UP
    if adx_value > trend_adx and rsi_value < trend_rsi_down:
        return Regime.TRENDING_DOWN
    return Regime.RANGING
