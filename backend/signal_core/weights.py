"""Adaptive indicator weights driven by realized accuracy feedback.

Maintains a per-(symbol, timeframe) weight vector over the synthesizer's
indicators. Weights start at 1.0 and are nudged online by each accuracy
report that clears the minimum sample and win-rate preconditions.
"""

from __future__ import annotations

import logging
import threading

from signal_core.models.config import INDICATOR_NAMES, EngineConfig
from signal_core.models.signal import AccuracyReport

logger = logging.getLogger(__name__)


def _normalize(percent: float) -> float:
    return max(0.0, min(1.0, percent / 100.0))


class AdaptiveWeightStore:
    """Per symbol/timeframe indicator weights in [min_weight, max_weight].

    Parameters
    ----------
    config : EngineConfig
        Supplies the learning rate, weight bounds, minimum sample count,
        minimum win rate for learning and the best-indicator boost.
    """

    ACCURACY_SHARE = 0.7
    WIN_RATE_SHARE = 0.3

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()
        self._weights: dict[str, dict[str, float]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(symbol: str, timeframe: str) -> str:
        return f"{symbol}_{timeframe}"

    def _clamp(self, weight: float) -> float:
        return max(self.config.min_weight, min(self.config.max_weight, weight))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, symbol: str, timeframe: str) -> dict[str, float]:
        """Return a copy of the weight vector (all 1.0 until first update)."""
        with self._lock:
            weights = self._weights.get(self._key(symbol, timeframe))
            if weights is None:
                return {name: 1.0 for name in INDICATOR_NAMES}
            return dict(weights)

    def set(self, symbol: str, timeframe: str, weights: dict[str, float]) -> None:
        """Replace the weight vector (values are clamped; unknown names dropped)."""
        merged = {name: 1.0 for name in INDICATOR_NAMES}
        for name, value in weights.items():
            if name in merged:
                merged[name] = self._clamp(float(value))
        with self._lock:
            self._weights[self._key(symbol, timeframe)] = merged

    def reset(self, symbol: str, timeframe: str) -> None:
        with self._lock:
            self._weights.pop(self._key(symbol, timeframe), None)

    def update(self, report: AccuracyReport) -> bool:
        """
        Nudge weights from one accuracy report.

        For every reported indicator:
        ``score = 0.7 * accuracy + 0.3 * win_rate`` (both normalized to
        [0, 1]) and ``weight += learning_rate * (score - 0.5)``, clamped.
        When the overall win rate exceeds ``boost_win_rate`` the best
        scoring indicator is additionally boosted by ``boost_factor``.

        Returns:
            True if weights changed; False when a precondition skipped the update
        """
        cfg = self.config
        key = self._key(report.symbol, report.timeframe)

        if report.sample_count < cfg.min_learning_samples:
            logger.debug(
                "Skipping weight update for %s: %d samples < %d",
                key, report.sample_count, cfg.min_learning_samples,
            )
            return False

        if report.overall_win_rate < cfg.min_learning_win_rate:
            logger.debug(
                "Skipping weight update for %s: win rate %.1f%% < %.1f%%",
                key, report.overall_win_rate, cfg.min_learning_win_rate,
            )
            return False

        unknown = set(report.indicator_accuracy) - set(INDICATOR_NAMES)
        if unknown:
            logger.warning("Ignoring accuracy for unknown indicators: %s", sorted(unknown))

        win_rate = _normalize(report.overall_win_rate)
        scores = {
            name: self.ACCURACY_SHARE * _normalize(accuracy) + self.WIN_RATE_SHARE * win_rate
            for name, accuracy in report.indicator_accuracy.items()
            if name in INDICATOR_NAMES
        }
        if not scores:
            return False

        weights = self.get(report.symbol, report.timeframe)
        for name, score in scores.items():
            weights[name] = self._clamp(weights[name] + cfg.learning_rate * (score - 0.5))

        if report.overall_win_rate > cfg.boost_win_rate:
            best = max(sorted(scores), key=lambda name: scores[name])
            weights[best] = self._clamp(weights[best] * cfg.boost_factor)

        with self._lock:
            self._weights[key] = weights

        logger.debug(
            "Updated weights for %s from %d samples (win rate %.1f%%): %s",
            key, report.sample_count, report.overall_win_rate,
            ", ".join(f"{k}={v:.3f}" for k, v in weights.items()),
        )
        return True
