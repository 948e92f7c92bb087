"""Signal synthesizer: weighted multi-factor scoring of an indicator snapshot.

This module is pure business logic with no I/O dependencies. It turns an
IndicatorSnapshot into a Signal with direction, confidence, risk levels,
leverage and success probability.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping

from signal_core.indicators.levels import LevelDetector
from signal_core.models.config import EngineConfig, TimeframeProfile
from signal_core.models.signal import Direction, IndicatorSnapshot, Signal

logger = logging.getLogger(__name__)

# Relative tolerance below which two prices are treated as equal
_PRICE_EPSILON = 1e-9


def _above(a: float, b: float, scale: float) -> bool:
    return a - b > _PRICE_EPSILON * max(abs(scale), 1.0)


@dataclass
class ScoreCard:
    """Accumulated weighted bullish/bearish points for one evaluation."""

    bullish: float = 0.0
    bearish: float = 0.0
    bullish_votes: set[str] = field(default_factory=set)
    bearish_votes: set[str] = field(default_factory=set)
    reasons: list[str] = field(default_factory=list)

    def add(self, direction: Direction, points: float, indicator: str, reason: str) -> None:
        if points <= 0:
            return
        if direction == Direction.LONG:
            self.bullish += points
            self.bullish_votes.add(indicator)
        else:
            self.bearish += points
            self.bearish_votes.add(indicator)
        self.reasons.append(reason)

    @property
    def delta(self) -> float:
        return self.bullish - self.bearish


class SignalSynthesizer:
    """
    Score an indicator snapshot and build a Signal.

    Scoring rules (raw points, each multiplied by the indicator's weight):
    - RSI: oversold/overbought bands, read as momentum when the trend is
      confirmed in the same direction
    - MACD: histogram sign plus a magnitude bonus relative to ATR
    - EMA: short > medium > long ordering (or inverse)
    - Bollinger: percent B extremes
    - ADX: +DI/-DI dominance when ADX > 25
    - Stochastic: %K extremes, with %K/%D cross confirmation
    - Support/resistance: price within 1% of the nearest level

    Direction needs a timeframe-dependent score margin and an absolute
    score floor. Confidence, risk levels, leverage and success probability
    all scale with the timeframe profile.
    """

    RSI_POINTS = 20.0
    RSI_MOMENTUM_POINTS = 10.0
    MACD_POINTS = 15.0
    MACD_MAGNITUDE_POINTS = 10.0
    EMA_POINTS = 20.0
    BOLLINGER_POINTS = 15.0
    BOLLINGER_TREND_POINTS = 8.0
    ADX_POINTS = 20.0
    STOCHASTIC_POINTS = 10.0
    STOCHASTIC_CROSS_POINTS = 5.0
    LEVEL_POINTS = 10.0

    ADX_TREND = 25.0
    LEVEL_PROXIMITY = 0.01  # 1% of price
    STRUCTURE_BUFFER = 0.001  # stops sit 0.1% beyond support/resistance

    MIN_CONFIDENCE = 30.0
    MAX_CONFIDENCE = 98.0
    MAX_SPREAD_POINTS = 35.0
    FULL_CONSENSUS_BONUS = 10.0
    NEUTRAL_PROBABILITY_CAP = 60.0

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def score(
        self,
        snapshot: IndicatorSnapshot,
        price: float,
        weights: Mapping[str, float],
    ) -> ScoreCard:
        """Apply every scoring rule and return the weighted score card."""
        card = ScoreCard()

        def w(name: str) -> float:
            return weights.get(name, 1.0)

        ema_vals = snapshot.ema
        bullish_stack = _above(ema_vals.short, ema_vals.medium, price) and _above(
            ema_vals.medium, ema_vals.long, price
        )
        bearish_stack = _above(ema_vals.long, ema_vals.medium, price) and _above(
            ema_vals.medium, ema_vals.short, price
        )
        trending = snapshot.adx.value > self.ADX_TREND
        uptrend = bullish_stack and trending and snapshot.adx.pdi > snapshot.adx.ndi
        downtrend = bearish_stack and trending and snapshot.adx.ndi > snapshot.adx.pdi

        # RSI
        rsi = snapshot.rsi
        if rsi < 30:
            if downtrend:
                card.add(Direction.SHORT, self.RSI_MOMENTUM_POINTS * w("rsi"), "rsi",
                         f"RSI {rsi:.1f} oversold inside a confirmed downtrend")
            else:
                card.add(Direction.LONG, self.RSI_POINTS * w("rsi"), "rsi",
                         f"RSI {rsi:.1f} oversold")
        elif rsi > 70:
            if uptrend:
                card.add(Direction.LONG, self.RSI_MOMENTUM_POINTS * w("rsi"), "rsi",
                         f"RSI {rsi:.1f} overbought inside a confirmed uptrend")
            else:
                card.add(Direction.SHORT, self.RSI_POINTS * w("rsi"), "rsi",
                         f"RSI {rsi:.1f} overbought")
        elif rsi >= 55:
            card.add(Direction.LONG, self.RSI_MOMENTUM_POINTS * w("rsi"), "rsi",
                     f"RSI {rsi:.1f} bullish momentum")
        elif rsi <= 45:
            card.add(Direction.SHORT, self.RSI_MOMENTUM_POINTS * w("rsi"), "rsi",
                     f"RSI {rsi:.1f} bearish momentum")

        # MACD
        hist = snapshot.macd.histogram
        if abs(hist) > _PRICE_EPSILON * max(price, 1.0):
            magnitude = 0.0
            if snapshot.atr > 0:
                magnitude = min(1.0, abs(hist) / (snapshot.atr * 0.25))
            points = (self.MACD_POINTS + self.MACD_MAGNITUDE_POINTS * magnitude) * w("macd")
            if hist > 0:
                card.add(Direction.LONG, points, "macd", "MACD histogram positive")
            else:
                card.add(Direction.SHORT, points, "macd", "MACD histogram negative")

        # EMA ordering
        if bullish_stack:
            card.add(Direction.LONG, self.EMA_POINTS * w("ema"), "ema",
                     "EMA short > medium > long")
        elif bearish_stack:
            card.add(Direction.SHORT, self.EMA_POINTS * w("ema"), "ema",
                     "EMA short < medium < long")

        # Bollinger percent B
        percent_b = snapshot.bollinger.percent_b
        if percent_b < 10:
            if downtrend:
                card.add(Direction.SHORT, self.BOLLINGER_TREND_POINTS * w("bollinger"),
                         "bollinger", "Riding the lower Bollinger band")
            else:
                card.add(Direction.LONG, self.BOLLINGER_POINTS * w("bollinger"),
                         "bollinger", f"Bollinger %B {percent_b:.1f} near lower band")
        elif percent_b > 90:
            if uptrend:
                card.add(Direction.LONG, self.BOLLINGER_TREND_POINTS * w("bollinger"),
                         "bollinger", "Riding the upper Bollinger band")
            else:
                card.add(Direction.SHORT, self.BOLLINGER_POINTS * w("bollinger"),
                         "bollinger", f"Bollinger %B {percent_b:.1f} near upper band")

        # ADX directional dominance
        if trending:
            if snapshot.adx.pdi > snapshot.adx.ndi:
                card.add(Direction.LONG, self.ADX_POINTS * w("adx"), "adx",
                         f"ADX {snapshot.adx.value:.1f} with +DI dominant")
            elif snapshot.adx.ndi > snapshot.adx.pdi:
                card.add(Direction.SHORT, self.ADX_POINTS * w("adx"), "adx",
                         f"ADX {snapshot.adx.value:.1f} with -DI dominant")

        # Stochastic
        k, d = snapshot.stochastic.k, snapshot.stochastic.d
        if k < 20:
            if downtrend:
                card.add(Direction.SHORT, self.STOCHASTIC_CROSS_POINTS * w("stochastic"),
                         "stochastic", "Stochastic pinned low in a downtrend")
            else:
                points = self.STOCHASTIC_POINTS + (self.STOCHASTIC_CROSS_POINTS if k > d else 0)
                card.add(Direction.LONG, points * w("stochastic"), "stochastic",
                         f"Stochastic %K {k:.1f} oversold")
        elif k > 80:
            if uptrend:
                card.add(Direction.LONG, self.STOCHASTIC_CROSS_POINTS * w("stochastic"),
                         "stochastic", "Stochastic pinned high in an uptrend")
            else:
                points = self.STOCHASTIC_POINTS + (self.STOCHASTIC_CROSS_POINTS if k < d else 0)
                card.add(Direction.SHORT, points * w("stochastic"), "stochastic",
                         f"Stochastic %K {k:.1f} overbought")

        # Proximity to structure
        if price > 0:
            support, resistance = LevelDetector.nearest_levels(
                price, snapshot.supports, snapshot.resistances
            )
            if support is not None and (price - support) / price <= self.LEVEL_PROXIMITY:
                card.add(Direction.LONG, self.LEVEL_POINTS * w("support_resistance"),
                         "support_resistance", f"Price near support {support:.6g}")
            if resistance is not None and (resistance - price) / price <= self.LEVEL_PROXIMITY:
                card.add(Direction.SHORT, self.LEVEL_POINTS * w("support_resistance"),
                         "support_resistance", f"Price near resistance {resistance:.6g}")

        return card

    def decide_direction(self, card: ScoreCard, profile: TimeframeProfile) -> Direction:
        """LONG/SHORT need a margin over the other side and a minimum score."""
        floor = self.config.score_floor
        if card.delta >= profile.direction_margin and card.bullish >= floor:
            return Direction.LONG
        if -card.delta >= profile.direction_margin and card.bearish >= floor:
            return Direction.SHORT
        return Direction.NEUTRAL

    # ------------------------------------------------------------------
    # Confidence and risk
    # ------------------------------------------------------------------

    def confidence(
        self, card: ScoreCard, direction: Direction, profile: TimeframeProfile
    ) -> float:
        """Base 50 plus score delta and consensus bonus, scaled per timeframe."""
        spread = abs(card.delta)
        if direction == Direction.NEUTRAL:
            # balanced scores mean a more certain neutral reading
            raw = 50.0 + min(15.0, max(0.0, profile.direction_margin - spread) * 0.5)
        else:
            if direction == Direction.LONG:
                agreeing, opposing = len(card.bullish_votes), len(card.bearish_votes)
            else:
                agreeing, opposing = len(card.bearish_votes), len(card.bullish_votes)

            bonus = 0.0
            if agreeing >= 5 and opposing == 0:
                bonus = self.FULL_CONSENSUS_BONUS
            elif agreeing >= 4 and opposing <= 1:
                bonus = 5.0
            raw = 50.0 + min(self.MAX_SPREAD_POINTS, spread * 0.35) + bonus

        scaled = raw * profile.confidence_multiplier
        return max(self.MIN_CONFIDENCE, min(self.MAX_CONFIDENCE, scaled))

    @classmethod
    def max_confidence(cls, profile: TimeframeProfile) -> float:
        """Highest directional confidence reachable under ``profile``."""
        raw = 50.0 + cls.MAX_SPREAD_POINTS + cls.FULL_CONSENSUS_BONUS
        return min(cls.MAX_CONFIDENCE, raw * profile.confidence_multiplier)

    def risk_levels(
        self,
        direction: Direction,
        entry: float,
        snapshot: IndicatorSnapshot,
        profile: TimeframeProfile,
    ) -> tuple[float, float]:
        """
        Calculate stop loss and take profit prices.

        risk = ATR * timeframe risk multiplier; stop sits one risk away and
        take profit two risks away. The stop is then moved just beyond a
        nearby support (LONG) or resistance (SHORT) and the take profit just
        before the opposing level when one lies within a reasonable band.

        Returns:
            Tuple of (stop_loss, take_profit)
        """
        risk = max(0.0, snapshot.atr * profile.risk_multiplier)

        if direction == Direction.SHORT:
            stop = entry + risk
            target = entry - risk * 2
        else:
            stop = entry - risk
            target = entry + risk * 2

        if risk <= 0 or direction == Direction.NEUTRAL:
            return stop, target

        buf = self.STRUCTURE_BUFFER
        if direction == Direction.LONG:
            support = self._closest(snapshot.supports, stop, entry, 0.5 * risk, 1.5 * risk)
            if support is not None and support * (1 - buf) < entry:
                stop = support * (1 - buf)
            resistance = self._closest(snapshot.resistances, target, entry, risk, 3 * risk)
            if resistance is not None and resistance * (1 - buf) > entry:
                target = resistance * (1 - buf)
        else:
            resistance = self._closest(snapshot.resistances, stop, entry, 0.5 * risk, 1.5 * risk)
            if resistance is not None and resistance * (1 + buf) > entry:
                stop = resistance * (1 + buf)
            support = self._closest(snapshot.supports, target, entry, risk, 3 * risk)
            if support is not None and support * (1 + buf) < entry:
                target = support * (1 + buf)

        return stop, target

    @staticmethod
    def _closest(
        levels: tuple[float, ...],
        anchor: float,
        entry: float,
        min_distance: float,
        max_distance: float,
    ) -> float | None:
        """Level closest to ``anchor`` whose distance from entry is within the band."""
        in_band = [x for x in levels if min_distance <= abs(x - entry) <= max_distance]
        if not in_band:
            return None
        return min(in_band, key=lambda x: abs(x - anchor))

    @staticmethod
    def risk_reward(entry: float, stop: float, target: float) -> float:
        """|take profit - entry| / |entry - stop| (1.0 when the stop equals entry)."""
        risk = abs(entry - stop)
        if risk == 0:
            return 1.0
        return abs(target - entry) / risk

    @staticmethod
    def leverage(
        confidence: float,
        risk_reward: float,
        direction: Direction,
        profile: TimeframeProfile,
    ) -> float:
        """Confidence-tier leverage adjusted by risk-reward and timeframe, in [1, 5]."""
        if direction == Direction.NEUTRAL:
            return 1.0

        if confidence > 80:
            base = 3.0
        elif confidence > 70:
            base = 2.0
        elif confidence > 60:
            base = 1.5
        else:
            base = 1.0

        if risk_reward > 2:
            base *= 1.25
        elif risk_reward < 1:
            base *= 0.75

        base *= profile.leverage_scale
        return round(max(1.0, min(5.0, base)), 1)

    def success_probability(
        self, confidence: float, direction: Direction, profile: TimeframeProfile
    ) -> float:
        """Confidence-derived probability with timeframe adjustments, in [25, 98]."""
        probability = confidence * profile.success_multiplier + profile.success_adjustment
        if direction == Direction.LONG and profile.long_horizon:
            probability += 3.0

        probability = max(25.0, min(98.0, probability))
        if direction == Direction.NEUTRAL:
            probability = min(probability, self.NEUTRAL_PROBABILITY_CAP)
        return probability

    # ------------------------------------------------------------------
    # Signal construction
    # ------------------------------------------------------------------

    def synthesize(
        self,
        symbol: str,
        timeframe: str,
        snapshot: IndicatorSnapshot,
        price: float,
        weights: Mapping[str, float],
        timestamp: datetime,
    ) -> Signal:
        """Build the raw (unstabilized) signal for one evaluation."""
        profile = self.config.profile_for(timeframe)

        card = self.score(snapshot, price, weights)
        direction = self.decide_direction(card, profile)
        confidence = self.confidence(card, direction, profile)
        stop, target = self.risk_levels(direction, price, snapshot, profile)
        rr = self.risk_reward(price, stop, target)

        logger.debug(
            "%s %s scored bull=%.1f bear=%.1f -> %s (%.1f)",
            symbol, timeframe, card.bullish, card.bearish, direction.value, confidence,
        )

        return Signal(
            symbol=symbol,
            timeframe=timeframe,
            direction=direction,
            confidence=confidence,
            entry_price=price,
            stop_loss=stop,
            take_profit=target,
            risk_reward=rr,
            leverage=self.leverage(confidence, rr, direction, profile),
            success_probability=self.success_probability(confidence, direction, profile),
            timestamp=timestamp,
            indicators=snapshot,
            bullish_score=card.bullish,
            bearish_score=card.bearish,
            reasons=tuple(card.reasons),
        )

    @staticmethod
    def neutral_signal(
        symbol: str,
        timeframe: str,
        price: float,
        timestamp: datetime,
        reason: str = "Insufficient candle history",
    ) -> Signal:
        """Canonical NEUTRAL signal: confidence 50, stop/take profit at -/+2%."""
        return Signal(
            symbol=symbol,
            timeframe=timeframe,
            direction=Direction.NEUTRAL,
            confidence=50.0,
            entry_price=price,
            stop_loss=price * 0.98,
            take_profit=price * 1.02,
            risk_reward=1.0,
            leverage=1.0,
            success_probability=50.0,
            timestamp=timestamp,
            indicators=IndicatorSnapshot.neutral(price),
            reasons=(reason,),
        )
