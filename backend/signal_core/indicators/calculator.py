"""Indicator snapshot calculator."""

from __future__ import annotations

from signal_core.indicators import indicators as ind
from signal_core.indicators.levels import LevelDetector
from signal_core.models.candle import CandleSeries
from signal_core.models.config import EngineConfig
from signal_core.models.signal import (
    AdxValues,
    BollingerValues,
    EmaValues,
    IndicatorSnapshot,
    MacdValues,
    StochasticValues,
)
from signal_core.regime import classify_regime


class IndicatorCalculator:
    """Calculator for every indicator the signal synthesizer consumes."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        level_detector: LevelDetector | None = None,
    ):
        self.config = config or EngineConfig()
        self.periods = self.config.periods
        self.level_detector = level_detector or LevelDetector(
            pivot_lookback=self.periods.pivot_lookback,
        )

    def calculate(self, series: CandleSeries, price: float) -> IndicatorSnapshot:
        """
        Calculate the full indicator snapshot for a candle window.

        Args:
            series: Candle history, oldest first
            price: Current price used to split supports from resistances

        Returns:
            IndicatorSnapshot (never contains NaN or Infinity)
        """
        p = self.periods
        cfg = self.config

        highs = series.highs()
        lows = series.lows()
        closes = series.closes()
        volumes = series.volumes()

        rsi_value = ind.rsi(closes, p.rsi)
        macd_value, macd_signal, macd_hist = ind.macd(
            closes, p.macd_fast, p.macd_slow, p.macd_signal
        )
        k, d = ind.stochastic(highs, lows, closes, p.stochastic_k, p.stochastic_d)
        upper, middle, lower, width, percent_b = ind.bollinger_bands(
            closes, p.bollinger, p.bollinger_std
        )
        adx_value, pdi, ndi = ind.adx(highs, lows, closes, p.adx)
        atr_value = ind.atr(highs, lows, closes, p.atr)
        vol = ind.volatility(closes, p.volatility)
        supports, resistances = self.level_detector.find_levels(
            highs, lows, closes, volumes, price
        )

        regime = classify_regime(
            vol,
            adx_value,
            rsi_value,
            high_volatility=cfg.high_volatility,
            low_volatility=cfg.low_volatility,
            trend_adx=cfg.trend_adx,
            trend_rsi_up=cfg.trend_rsi_up,
            trend_rsi_down=cfg.trend_rsi_down,
        )

        return IndicatorSnapshot(
            rsi=rsi_value,
            macd=MacdValues(value=macd_value, signal=macd_signal, histogram=macd_hist),
            ema=EmaValues(
                short=ind.ema(closes, p.ema_short),
                medium=ind.ema(closes, p.ema_medium),
                long=ind.ema(closes, p.ema_long),
            ),
            stochastic=StochasticValues(k=k, d=d),
            bollinger=BollingerValues(
                upper=upper, middle=middle, lower=lower, width=width, percent_b=percent_b
            ),
            adx=AdxValues(value=adx_value, pdi=pdi, ndi=ndi),
            atr=atr_value,
            supports=tuple(supports),
            resistances=tuple(resistances),
            volatility=vol,
            regime=regime,
        )
