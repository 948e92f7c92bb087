"""Signal stabilizer: per (symbol, timeframe) hysteresis against flip-flopping.

Each evaluation's raw signal is compared against the last surfaced signal
for the same key. Weak or premature reversals are rejected and the prior
signal is surfaced again; the thresholds come from the timeframe profile
and grow with timeframe duration.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum

from signal_core.models.config import TimeframeProfile
from signal_core.models.signal import Direction, Signal
from signal_core.synthesizer import SignalSynthesizer

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    """Outcome of one stabilization step."""

    FIRST = "first"  # no prior signal
    OVERRIDE = "override"  # confidence above the override threshold
    REINFORCED = "reinforced"  # same direction, confidence blended
    REJECTED_CONFIDENCE = "rejected_confidence"  # reversal too weak
    REJECTED_PENDING = "rejected_pending"  # reversal before the fallback period
    FLIPPED = "flipped"  # reversal accepted


@dataclass(slots=True)
class StabilizationState:
    """Last surfaced signal and how many evaluations it has held."""

    last_signal: Signal
    stable_count: int = 1


class SignalStabilizer:
    """
    Hysteresis state machine over surfaced signals.

    Transition rules, checked in order:
    1. No prior signal: accept, stable_count = 1.
    2. Confidence >= override threshold: accept, stable_count = 1. The
       threshold is capped at the highest confidence the timeframe can
       produce, so a maximal-strength signal always qualifies.
    3. Same direction: accept with confidence blended
       ``new * NEW_WEIGHT + prior * (1 - NEW_WEIGHT)``, stable_count += 1.
    4. Different direction below the confidence threshold: surface the
       prior signal, stable_count += 1. A NEUTRAL reversal is exempt once
       the prior has held for ``fallback_period`` evaluations.
    5. Different direction before ``fallback_period`` evaluations: surface
       the prior signal, stable_count += 1.
    6. Otherwise flip with confidence reduced by FLIP_PENALTY (floored at
       50), stable_count = 1.

    Rejections in rule 4 count toward the fallback period, so a directional
    reversal that persists long enough is judged on confidence alone, and a
    market that has gone quiet returns to NEUTRAL.
    """

    NEW_WEIGHT = 0.7
    FLIP_PENALTY = 5.0
    FLIP_FLOOR = 50.0

    def __init__(self):
        self._states: dict[str, StabilizationState] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(symbol: str, timeframe: str) -> str:
        return f"{symbol}_{timeframe}"

    @staticmethod
    def override_threshold(profile: TimeframeProfile) -> float:
        """Effective override threshold for ``profile``."""
        return min(profile.override_threshold, SignalSynthesizer.max_confidence(profile))

    def get_state(self, symbol: str, timeframe: str) -> StabilizationState | None:
        with self._lock:
            return self._states.get(self._key(symbol, timeframe))

    def reset(self, symbol: str, timeframe: str) -> None:
        """Forget the surfaced signal for a symbol/timeframe pair."""
        with self._lock:
            self._states.pop(self._key(symbol, timeframe), None)

    def _store(self, key: str, signal: Signal, stable_count: int) -> None:
        """Note: Must be called while holding _lock."""
        self._states[key] = StabilizationState(last_signal=signal, stable_count=stable_count)

    def stabilize(
        self, signal: Signal, profile: TimeframeProfile
    ) -> tuple[Signal, Decision]:
        """
        Apply the transition rules to a raw signal.

        The whole read-modify-write of the key's state happens under the
        stabilizer lock, so one instance may be shared between engines.

        Args:
            signal: Raw signal from the synthesizer
            profile: Timeframe profile holding the thresholds

        Returns:
            Tuple of (surfaced signal, decision)
        """
        key = self._key(signal.symbol, signal.timeframe)
        with self._lock:
            state = self._states.get(key)

            if state is None:
                self._store(key, signal, 1)
                return signal, Decision.FIRST

            prior = state.last_signal

            if signal.confidence >= self.override_threshold(profile):
                self._store(key, signal, 1)
                if signal.direction != prior.direction:
                    logger.info(
                        "%s override flip %s -> %s (confidence %.1f)",
                        key, prior.direction.value, signal.direction.value,
                        signal.confidence,
                    )
                return signal, Decision.OVERRIDE

            if signal.direction == prior.direction:
                blended = (
                    signal.confidence * self.NEW_WEIGHT
                    + prior.confidence * (1 - self.NEW_WEIGHT)
                )
                surfaced = signal.model_copy(update={"confidence": blended})
                self._store(key, surfaced, state.stable_count + 1)
                return surfaced, Decision.REINFORCED

            held = state.stable_count >= profile.fallback_period
            # neutral confidence stays below every threshold; it only needs to outlast the prior
            stands_down = signal.direction == Direction.NEUTRAL and held
            if signal.confidence < profile.confidence_threshold and not stands_down:
                state.stable_count += 1
                logger.debug(
                    "%s rejected %s reversal: confidence %.1f < %.1f",
                    key, signal.direction.value, signal.confidence,
                    profile.confidence_threshold,
                )
                return prior, Decision.REJECTED_CONFIDENCE

            if not held:
                state.stable_count += 1
                logger.debug(
                    "%s rejected %s reversal: held %d of %d evaluations",
                    key, signal.direction.value, state.stable_count - 1,
                    profile.fallback_period,
                )
                return prior, Decision.REJECTED_PENDING

            discounted = max(self.FLIP_FLOOR, signal.confidence - self.FLIP_PENALTY)
            surfaced = signal.model_copy(update={"confidence": discounted})
            self._store(key, surfaced, 1)
            logger.info(
                "%s flipped %s -> %s (confidence %.1f)",
                key, prior.direction.value, signal.direction.value, discounted,
            )
            return surfaced, Decision.FLIPPED
