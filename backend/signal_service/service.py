"""Async signal service.

Runs the synchronous engine in worker threads so an event loop can evaluate
many symbols concurrently, and notifies subscribers when the surfaced
direction for a (symbol, timeframe) changes.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Mapping, Sequence

from signal_core.confluence import ConfluenceResult, calculate_confluence
from signal_core.engine import SignalEngine
from signal_core.models.candle import Candle, CandleSeries
from signal_core.models.signal import AccuracyReport, Signal

logger = logging.getLogger(__name__)

# Receives (new signal, previously surfaced signal or None)
SignalChangeCallback = Callable[[Signal, Signal | None], Awaitable[None]]


@dataclass
class MultiTimeframeResult:
    """Signals for one symbol across timeframes, plus their confluence."""

    symbol: str
    signals: dict[str, Signal] = field(default_factory=dict)
    confluence: ConfluenceResult | None = None


class SignalService:
    """
    Async facade over SignalEngine.

    Same-key calls are serialized on an asyncio.Lock before entering the
    worker thread, so the event loop never blocks on the engine's own lock.
    """

    def __init__(self, engine: SignalEngine | None = None):
        self.engine = engine or SignalEngine()

        self._locks: dict[str, asyncio.Lock] = {}
        self._last_surfaced: dict[str, Signal] = {}
        self._callbacks: list[SignalChangeCallback] = []

    def on_signal_change(self, callback: SignalChangeCallback) -> None:
        """Register callback for surfaced direction changes.

        Note: Duplicate callbacks are ignored.
        """
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def off_signal_change(self, callback: SignalChangeCallback) -> None:
        """Unregister callback for surfaced direction changes."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def last_signal(self, symbol: str, timeframe: str) -> Signal | None:
        return self._last_surfaced.get(f"{symbol}_{timeframe}")

    async def evaluate(
        self,
        symbol: str,
        timeframe: str,
        candles: CandleSeries | Sequence[Candle],
        current_price: float,
    ) -> Signal:
        key = f"{symbol}_{timeframe}"
        async with self._lock_for(key):
            signal = await asyncio.to_thread(
                self.engine.evaluate, symbol, timeframe, candles, current_price
            )
            previous = self._last_surfaced.get(key)
            self._last_surfaced[key] = signal

        if previous is None or previous.direction != signal.direction:
            if previous is not None:
                logger.info(
                    "%s %s direction changed: %s -> %s (confidence %.1f)",
                    symbol, timeframe, previous.direction.value,
                    signal.direction.value, signal.confidence,
                )
            await self._notify(signal, previous)
        return signal

    async def learn(self, symbol: str, timeframe: str, report: AccuracyReport) -> None:
        async with self._lock_for(f"{symbol}_{timeframe}"):
            await asyncio.to_thread(self.engine.learn, symbol, timeframe, report)

    async def evaluate_timeframes(
        self,
        symbol: str,
        series_by_timeframe: Mapping[str, CandleSeries | Sequence[Candle]],
        current_price: float,
    ) -> MultiTimeframeResult:
        """Evaluate all timeframes concurrently and compute their confluence."""
        timeframes = list(series_by_timeframe)
        signals = await asyncio.gather(
            *(
                self.evaluate(symbol, tf, series_by_timeframe[tf], current_price)
                for tf in timeframes
            )
        )
        confluence = calculate_confluence(signals)
        logger.debug(
            "%s confluence %.1f %s (%s)",
            symbol, confluence.score, confluence.dominant_direction.value,
            confluence.agreement.value,
        )
        return MultiTimeframeResult(
            symbol=symbol,
            signals=dict(zip(timeframes, signals)),
            confluence=confluence,
        )

    async def _notify(self, signal: Signal, previous: Signal | None) -> None:
        for callback in list(self._callbacks):
            try:
                await callback(signal, previous)
            except Exception:
                logger.exception("Signal change callback failed for %s", signal.key)
