"""Tests for weighted scoring and signal construction."""

from datetime import datetime, timezone

import pytest

from signal_core.models import (
    AdxValues,
    BollingerValues,
    DEFAULT_PROFILES,
    Direction,
    EmaValues,
    IndicatorSnapshot,
    MacdValues,
    StochasticValues,
    TimeframeProfile,
)
from signal_core.synthesizer import ScoreCard, SignalSynthesizer

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)
HOURLY = DEFAULT_PROFILES["1h"]


def _bullish_snapshot() -> IndicatorSnapshot:
    return IndicatorSnapshot(
        rsi=25.0,
        macd=MacdValues(value=2.0, signal=1.0, histogram=1.0),
        ema=EmaValues(short=105.0, medium=103.0, long=100.0),
        stochastic=StochasticValues(k=15.0, d=10.0),
        bollinger=BollingerValues(upper=110.0, middle=105.0, lower=100.0, width=0.1, percent_b=5.0),
        adx=AdxValues(value=30.0, pdi=30.0, ndi=10.0),
        atr=2.0,
        supports=(99.5, 95.0),
        resistances=(110.0, 115.0),
    )


def _bearish_snapshot() -> IndicatorSnapshot:
    return IndicatorSnapshot(
        rsi=75.0,
        macd=MacdValues(value=-2.0, signal=-1.0, histogram=-1.0),
        ema=EmaValues(short=95.0, medium=97.0, long=100.0),
        stochastic=StochasticValues(k=85.0, d=90.0),
        bollinger=BollingerValues(upper=100.0, middle=95.0, lower=90.0, width=0.1, percent_b=95.0),
        adx=AdxValues(value=30.0, pdi=10.0, ndi=30.0),
        atr=2.0,
        supports=(90.0, 85.0),
        resistances=(100.5, 105.0),
    )


class TestScoring:
    """Tests for SignalSynthesizer.score."""

    def test_bullish_snapshot_scores_only_long(self):
        card = SignalSynthesizer().score(_bullish_snapshot(), 100.0, {})

        assert card.bearish == 0.0
        # rsi 20, macd 25, ema 20, bollinger 15, adx 20, stochastic 15, support 10
        assert card.bullish == pytest.approx(125.0)
        assert len(card.bullish_votes) == 7
        assert card.reasons

    def test_bearish_snapshot_scores_only_short(self):
        card = SignalSynthesizer().score(_bearish_snapshot(), 100.0, {})

        assert card.bullish == 0.0
        assert card.bearish > 100.0

    def test_weights_scale_points(self):
        synth = SignalSynthesizer()
        base = synth.score(_bullish_snapshot(), 100.0, {})
        boosted = synth.score(_bullish_snapshot(), 100.0, {"rsi": 2.0})

        assert boosted.bullish - base.bullish == pytest.approx(20.0)

    def test_neutral_snapshot_scores_nothing(self):
        card = SignalSynthesizer().score(IndicatorSnapshot.neutral(100.0), 100.0, {})
        assert card.bullish == card.bearish == 0.0

    def test_overbought_inside_uptrend_reads_as_momentum(self):
        snapshot = _bullish_snapshot().model_copy(
            update={
                "rsi": 80.0,
                "bollinger": BollingerValues(upper=106, middle=103, lower=100, percent_b=95.0),
                "stochastic": StochasticValues(k=95.0, d=90.0),
            }
        )
        card = SignalSynthesizer().score(snapshot, 100.0, {})
        assert card.bearish == 0.0
        assert {"rsi", "bollinger", "stochastic"} <= card.bullish_votes


class TestDirection:
    """Tests for margin and floor rules."""

    def test_margin_and_floor_satisfied(self):
        card = ScoreCard(bullish=60.0, bearish=10.0)
        assert SignalSynthesizer().decide_direction(card, HOURLY) == Direction.LONG

    def test_below_score_floor_is_neutral(self):
        card = ScoreCard(bullish=40.0, bearish=0.0)
        assert SignalSynthesizer().decide_direction(card, HOURLY) == Direction.NEUTRAL

    def test_insufficient_margin_is_neutral(self):
        card = ScoreCard(bullish=70.0, bearish=55.0)
        assert SignalSynthesizer().decide_direction(card, HOURLY) == Direction.NEUTRAL

    def test_short(self):
        card = ScoreCard(bullish=5.0, bearish=80.0)
        assert SignalSynthesizer().decide_direction(card, HOURLY) == Direction.SHORT


class TestConfidence:
    def test_consensus_bonus_and_cap(self):
        synth = SignalSynthesizer()
        card = synth.score(_bullish_snapshot(), 100.0, {})
        # 50 + 35 (capped spread) + 10 consensus bonus
        assert synth.confidence(card, Direction.LONG, HOURLY) == pytest.approx(95.0)

    def test_neutral_confidence_reflects_balance(self):
        synth = SignalSynthesizer()
        assert synth.confidence(ScoreCard(), Direction.NEUTRAL, HOURLY) == pytest.approx(60.0)

    def test_clamped_to_minimum(self):
        profile = TimeframeProfile(confidence_multiplier=0.1)
        assert SignalSynthesizer().confidence(ScoreCard(), Direction.NEUTRAL, profile) == 30.0

    def test_clamped_to_maximum(self):
        profile = TimeframeProfile(confidence_multiplier=2.0)
        card = ScoreCard(bullish=200.0)
        assert SignalSynthesizer().confidence(card, Direction.LONG, profile) == 98.0


class TestRiskLevels:
    def test_long_levels_bracket_entry(self):
        synth = SignalSynthesizer()
        stop, target = synth.risk_levels(Direction.LONG, 100.0, _bullish_snapshot(), HOURLY)

        assert stop < 100.0 < target
        # target pulled in just before the 110 resistance
        assert target == pytest.approx(110.0 * 0.999)

    def test_short_levels_bracket_entry(self):
        synth = SignalSynthesizer()
        stop, target = synth.risk_levels(Direction.SHORT, 100.0, _bearish_snapshot(), HOURLY)
        assert target < 100.0 < stop

    def test_zero_atr_collapses_to_entry(self):
        synth = SignalSynthesizer()
        snapshot = IndicatorSnapshot.neutral(100.0)
        assert synth.risk_levels(Direction.LONG, 100.0, snapshot, HOURLY) == (100.0, 100.0)

    def test_risk_reward(self):
        assert SignalSynthesizer.risk_reward(100.0, 95.0, 110.0) == pytest.approx(2.0)
        assert SignalSynthesizer.risk_reward(100.0, 100.0, 100.0) == 1.0


class TestLeverage:
    @pytest.mark.parametrize(
        "confidence, rr, expected",
        [
            (85.0, 1.5, 3.0),
            (75.0, 1.5, 2.0),
            (65.0, 0.5, 1.1),
            (50.0, 1.5, 1.0),
        ],
    )
    def test_confidence_tiers(self, confidence, rr, expected):
        assert SignalSynthesizer.leverage(confidence, rr, Direction.LONG, HOURLY) == expected

    def test_neutral_is_one(self):
        assert SignalSynthesizer.leverage(95.0, 3.0, Direction.NEUTRAL, HOURLY) == 1.0

    def test_timeframe_scale(self):
        assert SignalSynthesizer.leverage(85.0, 1.5, Direction.LONG, DEFAULT_PROFILES["1m"]) == 1.8

    def test_capped_at_five(self):
        profile = TimeframeProfile(leverage_scale=2.0)
        assert SignalSynthesizer.leverage(90.0, 3.0, Direction.SHORT, profile) == 5.0


class TestSuccessProbability:
    def test_hourly(self):
        synth = SignalSynthesizer()
        assert synth.success_probability(80.0, Direction.LONG, HOURLY) == pytest.approx(68.0)

    def test_long_horizon_favors_long(self):
        synth = SignalSynthesizer()
        daily = DEFAULT_PROFILES["1d"]
        long_p = synth.success_probability(80.0, Direction.LONG, daily)
        short_p = synth.success_probability(80.0, Direction.SHORT, daily)
        assert long_p - short_p == pytest.approx(3.0)

    def test_neutral_capped(self):
        synth = SignalSynthesizer()
        assert synth.success_probability(95.0, Direction.NEUTRAL, HOURLY) == 60.0

    def test_floor(self):
        synth = SignalSynthesizer()
        assert synth.success_probability(30.0, Direction.LONG, DEFAULT_PROFILES["1m"]) == 25.0


class TestSynthesize:
    def test_builds_long_signal(self):
        signal = SignalSynthesizer().synthesize(
            "BTCUSDT", "1h", _bullish_snapshot(), 100.0, {}, NOW
        )

        assert signal.direction == Direction.LONG
        assert signal.confidence == pytest.approx(95.0)
        assert signal.stop_loss < signal.entry_price < signal.take_profit
        assert 1.0 <= signal.leverage <= 5.0
        assert signal.bullish_score == pytest.approx(125.0)
        assert signal.timestamp == NOW
        assert signal.key == "BTCUSDT_1h"

    def test_neutral_signal_defaults(self):
        signal = SignalSynthesizer.neutral_signal("ETHUSDT", "4h", 200.0, NOW)

        assert signal.direction == Direction.NEUTRAL
        assert signal.confidence == 50.0
        assert signal.stop_loss == pytest.approx(196.0)
        assert signal.take_profit == pytest.approx(204.0)
        assert signal.risk_reward == 1.0
        assert signal.leverage == 1.0
        assert signal.success_probability == 50.0
        assert signal.indicators.rsi == 50.0
