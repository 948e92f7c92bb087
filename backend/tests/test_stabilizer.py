"""Tests for the signal stabilizer state machine."""

import threading
from datetime import datetime, timezone

import pytest

from signal_core.models import DEFAULT_PROFILES, Direction, IndicatorSnapshot, Signal, TimeframeProfile
from signal_core.stabilizer import Decision, SignalStabilizer

HOURLY = DEFAULT_PROFILES["1h"]  # threshold 70, fallback 3, override 96


def _signal(direction: Direction, confidence: float, timeframe: str = "1h") -> Signal:
    return Signal(
        symbol="BTCUSDT",
        timeframe=timeframe,
        direction=direction,
        confidence=confidence,
        entry_price=100.0,
        stop_loss=98.0,
        take_profit=104.0,
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        indicators=IndicatorSnapshot.neutral(100.0),
    )


class TestSignalStabilizer:
    """Tests for SignalStabilizer.stabilize."""

    def test_first_signal_accepted(self):
        stab = SignalStabilizer()
        surfaced, decision = stab.stabilize(_signal(Direction.LONG, 72), HOURLY)

        assert decision == Decision.FIRST
        assert surfaced.confidence == 72
        assert stab.get_state("BTCUSDT", "1h").stable_count == 1

    def test_same_direction_blends_confidence(self):
        stab = SignalStabilizer()
        stab.stabilize(_signal(Direction.LONG, 80), HOURLY)
        surfaced, decision = stab.stabilize(_signal(Direction.LONG, 60), HOURLY)

        assert decision == Decision.REINFORCED
        assert surfaced.confidence == pytest.approx(60 * 0.7 + 80 * 0.3)
        assert stab.get_state("BTCUSDT", "1h").stable_count == 2

    def test_repeated_signal_converges_monotonically(self):
        stab = SignalStabilizer()
        stab.stabilize(_signal(Direction.LONG, 60), HOURLY)

        history = []
        for _ in range(10):
            surfaced, _ = stab.stabilize(_signal(Direction.LONG, 90), HOURLY)
            history.append(surfaced.confidence)

        assert history == sorted(history)
        assert all(c <= 90 for c in history)
        assert history[-1] == pytest.approx(90, abs=0.01)

    def test_override_always_flips(self):
        stab = SignalStabilizer()
        for _ in range(5):
            stab.stabilize(_signal(Direction.LONG, 90), HOURLY)

        surfaced, decision = stab.stabilize(_signal(Direction.SHORT, 97), HOURLY)

        assert decision == Decision.OVERRIDE
        assert surfaced.direction == Direction.SHORT
        assert surfaced.confidence == 97
        assert stab.get_state("BTCUSDT", "1h").stable_count == 1

    def test_weak_reversal_rejected(self):
        stab = SignalStabilizer()
        first, _ = stab.stabilize(_signal(Direction.LONG, 80), HOURLY)
        surfaced, decision = stab.stabilize(_signal(Direction.SHORT, 65), HOURLY)

        assert decision == Decision.REJECTED_CONFIDENCE
        assert surfaced == first
        # rejections count toward the fallback period
        assert stab.get_state("BTCUSDT", "1h").stable_count == 2

    def test_premature_reversal_rejected_until_fallback_period(self):
        stab = SignalStabilizer()
        stab.stabilize(_signal(Direction.LONG, 80), HOURLY)

        decisions = [stab.stabilize(_signal(Direction.SHORT, 85), HOURLY)[1] for _ in range(3)]

        assert decisions == [Decision.REJECTED_PENDING, Decision.REJECTED_PENDING, Decision.FLIPPED]
        state = stab.get_state("BTCUSDT", "1h")
        assert state.last_signal.direction == Direction.SHORT
        assert state.last_signal.confidence == pytest.approx(80)
        assert state.stable_count == 1

    def test_weak_rejections_unlock_fallback(self):
        stab = SignalStabilizer()
        stab.stabilize(_signal(Direction.LONG, 80), HOURLY)
        stab.stabilize(_signal(Direction.SHORT, 60), HOURLY)
        stab.stabilize(_signal(Direction.SHORT, 60), HOURLY)

        surfaced, decision = stab.stabilize(_signal(Direction.SHORT, 85), HOURLY)

        assert decision == Decision.FLIPPED
        assert surfaced.direction == Direction.SHORT

    def test_flip_penalty_floored(self):
        profile = TimeframeProfile(confidence_threshold=40, fallback_period=1)
        stab = SignalStabilizer()
        stab.stabilize(_signal(Direction.LONG, 60), profile)
        surfaced, decision = stab.stabilize(_signal(Direction.SHORT, 52), profile)

        assert decision == Decision.FLIPPED
        assert surfaced.confidence == 50.0

    def test_keys_are_independent(self):
        stab = SignalStabilizer()
        stab.stabilize(_signal(Direction.LONG, 80, "1h"), HOURLY)
        _, decision = stab.stabilize(_signal(Direction.SHORT, 80, "4h"), DEFAULT_PROFILES["4h"])

        assert decision == Decision.FIRST

    def test_reset(self):
        stab = SignalStabilizer()
        stab.stabilize(_signal(Direction.LONG, 80), HOURLY)
        stab.reset("BTCUSDT", "1h")
        assert stab.get_state("BTCUSDT", "1h") is None

    def test_override_capped_at_reachable_confidence(self):
        profile = DEFAULT_PROFILES["15m"]  # multiplier 0.95 caps confidence at 90.25
        stab = SignalStabilizer()
        stab.stabilize(_signal(Direction.LONG, 80, "15m"), profile)

        ceiling = SignalStabilizer.override_threshold(profile)
        surfaced, decision = stab.stabilize(_signal(Direction.SHORT, ceiling, "15m"), profile)

        assert ceiling == pytest.approx(90.25)
        assert decision == Decision.OVERRIDE
        assert surfaced.direction == Direction.SHORT

    def test_neutral_stands_down_after_fallback_period(self):
        stab = SignalStabilizer()
        stab.stabilize(_signal(Direction.LONG, 80), HOURLY)

        decisions = [stab.stabilize(_signal(Direction.NEUTRAL, 60), HOURLY)[1] for _ in range(3)]

        assert decisions == [
            Decision.REJECTED_CONFIDENCE,
            Decision.REJECTED_CONFIDENCE,
            Decision.FLIPPED,
        ]
        state = stab.get_state("BTCUSDT", "1h")
        assert state.last_signal.direction == Direction.NEUTRAL
        assert state.last_signal.confidence == 55.0
        assert state.stable_count == 1

    def test_weak_directional_reversal_still_rejected_after_fallback(self):
        stab = SignalStabilizer()
        stab.stabilize(_signal(Direction.LONG, 80), HOURLY)

        decisions = [stab.stabilize(_signal(Direction.SHORT, 60), HOURLY)[1] for _ in range(5)]

        assert set(decisions) == {Decision.REJECTED_CONFIDENCE}
        assert stab.get_state("BTCUSDT", "1h").last_signal.direction == Direction.LONG

    def test_shared_instance_counts_every_evaluation(self):
        stab = SignalStabilizer()
        stab.stabilize(_signal(Direction.LONG, 80), HOURLY)

        def run():
            for _ in range(250):
                stab.stabilize(_signal(Direction.LONG, 80), HOURLY)

        threads = [threading.Thread(target=run) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert stab.get_state("BTCUSDT", "1h").stable_count == 1001
