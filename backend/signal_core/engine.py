"""Signal engine: the evaluate/learn boundary of the core.

``evaluate`` runs candles -> indicators (cached) -> regime -> weighted
scoring -> stabilization and always returns a Signal. ``learn`` feeds
realized accuracy back into the adaptive weights. Neither lets an
exception escape: failures are logged and resolved to documented
defaults.

Evaluations for the same (symbol, timeframe) are serialized with a
per-key lock because stabilization is a read-modify-write of that key's
state. Different keys never contend.
"""

from __future__ import annotations

import logging
import math
import threading
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from signal_core.cache import ComputationCache
from signal_core.indicators.calculator import IndicatorCalculator
from signal_core.models.candle import Candle, CandleSeries
from signal_core.models.config import EngineConfig
from signal_core.models.signal import AccuracyReport, IndicatorSnapshot, Signal
from signal_core.stabilizer import SignalStabilizer, StabilizationState
from signal_core.synthesizer import SignalSynthesizer
from signal_core.weights import AdaptiveWeightStore

logger = logging.getLogger(__name__)


class SignalEngine:
    """
    Multi-timeframe signal engine.

    All mutable state (stabilization history, adaptive weights, snapshot
    cache) is held by injected collaborators keyed by symbol/timeframe,
    so one engine can serve many symbols in parallel.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        cache: ComputationCache | None = None,
        stabilizer: SignalStabilizer | None = None,
        weights: AdaptiveWeightStore | None = None,
    ):
        self.config = config or EngineConfig()
        self.calculator = IndicatorCalculator(self.config)
        self.synthesizer = SignalSynthesizer(self.config)
        self.cache = cache or ComputationCache(
            max_entries=self.config.cache_max_entries,
            evict_fraction=self.config.cache_evict_fraction,
        )
        self.stabilizer = stabilizer or SignalStabilizer()
        self.weights = weights or AdaptiveWeightStore(self.config)

        self._key_locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, symbol: str, timeframe: str) -> threading.Lock:
        key = f"{symbol}_{timeframe}"
        with self._locks_guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def evaluate(
        self,
        symbol: str,
        timeframe: str,
        candles: CandleSeries | Sequence[Candle],
        current_price: float,
    ) -> Signal:
        """
        Evaluate one symbol/timeframe and return the surfaced signal.

        Args:
            symbol: Trading symbol (e.g. BTCUSDT)
            timeframe: Timeframe (e.g. 1m, 1h, 1d)
            candles: Candle history, oldest first
            current_price: Latest traded price (falls back to the last close
                when not a finite positive number)

        Returns:
            The stabilized signal, or the canonical NEUTRAL signal when the
            history is shorter than ``config.min_candles`` or evaluation fails
        """
        with self._lock_for(symbol, timeframe):
            try:
                return self._evaluate(symbol, timeframe, candles, current_price)
            except Exception:
                logger.exception("Signal evaluation failed for %s %s", symbol, timeframe)
                price = self._resolve_price(current_price, None)
                return self.synthesizer.neutral_signal(
                    symbol, timeframe, price, datetime.now(timezone.utc),
                    reason="Evaluation failed",
                )

    def learn(
        self,
        symbol: str,
        timeframe: str,
        report: AccuracyReport | Mapping[str, Any],
    ) -> None:
        """Feed a realized accuracy report into the adaptive weights."""
        with self._lock_for(symbol, timeframe):
            try:
                data = report.model_dump() if isinstance(report, AccuracyReport) else dict(report)
                data.update(symbol=symbol, timeframe=timeframe)
                self.weights.update(AccuracyReport.model_validate(data))
            except Exception:
                logger.exception("Weight update failed for %s %s", symbol, timeframe)

    def weights_for(self, symbol: str, timeframe: str) -> dict[str, float]:
        return self.weights.get(symbol, timeframe)

    def stabilization_state(self, symbol: str, timeframe: str) -> StabilizationState | None:
        return self.stabilizer.get_state(symbol, timeframe)

    def reset(self, symbol: str, timeframe: str) -> None:
        """Forget stabilization history, weights and cached snapshots for a key."""
        with self._lock_for(symbol, timeframe):
            self.stabilizer.reset(symbol, timeframe)
            self.weights.reset(symbol, timeframe)
            self.cache.invalidate(symbol, timeframe)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _evaluate(
        self,
        symbol: str,
        timeframe: str,
        candles: CandleSeries | Sequence[Candle],
        current_price: float,
    ) -> Signal:
        if isinstance(candles, CandleSeries):
            series = candles
        else:
            items = list(candles)
            series = CandleSeries.from_candles(
                symbol, timeframe, items, max_size=max(len(items), 1)
            )

        price = self._resolve_price(current_price, series)
        last = series.last
        timestamp = last.timestamp if last else datetime.now(timezone.utc)

        if len(series) < self.config.min_candles:
            logger.debug(
                "%s %s: %d candles < %d, returning neutral",
                symbol, timeframe, len(series), self.config.min_candles,
            )
            return self.synthesizer.neutral_signal(symbol, timeframe, price, timestamp)

        snapshot = self._snapshot(symbol, timeframe, series, price)
        weights = self.weights.get(symbol, timeframe)
        raw = self.synthesizer.synthesize(symbol, timeframe, snapshot, price, weights, timestamp)

        profile = self.config.profile_for(timeframe)
        surfaced, decision = self.stabilizer.stabilize(raw, profile)
        logger.debug(
            "%s %s raw %s %.1f -> surfaced %s %.1f (%s)",
            symbol, timeframe, raw.direction.value, raw.confidence,
            surfaced.direction.value, surfaced.confidence, decision.value,
        )
        return surfaced

    def _snapshot(
        self, symbol: str, timeframe: str, series: CandleSeries, price: float
    ) -> IndicatorSnapshot:
        """Cached snapshot at the last close, with levels re-split at ``price``."""
        reference = series.candles[-1].close
        key = self.cache.make_key(symbol, timeframe, series)
        snapshot = self.cache.get_or_compute(
            key, lambda: self.calculator.calculate(series, reference)
        )
        if price == reference:
            return snapshot

        supports, resistances = self.calculator.level_detector.find_levels(
            series.highs(), series.lows(), series.closes(), series.volumes(), price
        )
        return snapshot.model_copy(
            update={"supports": tuple(supports), "resistances": tuple(resistances)}
        )

    @staticmethod
    def _resolve_price(current_price: Any, series: CandleSeries | None) -> float:
        try:
            price = float(current_price)
        except (TypeError, ValueError):
            price = math.nan

        if math.isfinite(price) and price > 0:
            return price

        if series is not None and series.last is not None:
            logger.warning(
                "Invalid current price %r for %s %s, using last close",
                current_price, series.symbol, series.timeframe,
            )
            return series.last.close
        return 0.0
