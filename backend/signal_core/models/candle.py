"""Candle (OHLCV) data models."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Candle(BaseModel):
    """One time-bucketed OHLCV observation. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @field_validator("open", "high", "low", "close", "volume")
    @classmethod
    def _finite_non_negative(cls, value: float) -> float:
        if not math.isfinite(value) or value < 0:
            raise ValueError(f"candle values must be finite and non-negative, got {value}")
        return value


class CandleSeries(BaseModel):
    """Ordered candle history for one (symbol, timeframe).

    Insertion order is chronological order: every appended candle must be
    strictly newer than the last one.
    """

    symbol: str
    timeframe: str
    candles: list[Candle] = Field(default_factory=list)
    max_size: int = 1000

    @field_validator("candles")
    @classmethod
    def _strictly_increasing(cls, candles: list[Candle]) -> list[Candle]:
        for prev, cur in zip(candles, candles[1:]):
            if cur.timestamp <= prev.timestamp:
                raise ValueError(
                    f"candle timestamps must be strictly increasing "
                    f"({cur.timestamp} follows {prev.timestamp})"
                )
        return candles

    @classmethod
    def from_candles(
        cls, symbol: str, timeframe: str, candles: Iterable[Candle], max_size: int = 1000
    ) -> CandleSeries:
        """Build a series from an iterable, keeping only the newest ``max_size``."""
        items = list(candles)[-max_size:]
        return cls(symbol=symbol, timeframe=timeframe, candles=items, max_size=max_size)

    def add(self, candle: Candle) -> None:
        """Append a candle, maintaining max size.

        Raises:
            ValueError: If the candle is not newer than the last one.
        """
        if self.candles and candle.timestamp <= self.candles[-1].timestamp:
            raise ValueError(
                f"{self.symbol} {self.timeframe}: candle at {candle.timestamp} "
                f"is not newer than {self.candles[-1].timestamp}"
            )
        self.candles.append(candle)
        if len(self.candles) > self.max_size:
            self.candles = self.candles[-self.max_size :]

    def highs(self) -> np.ndarray:
        return np.array([c.high for c in self.candles], dtype=np.float64)

    def lows(self) -> np.ndarray:
        return np.array([c.low for c in self.candles], dtype=np.float64)

    def closes(self) -> np.ndarray:
        return np.array([c.close for c in self.candles], dtype=np.float64)

    def volumes(self) -> np.ndarray:
        return np.array([c.volume for c in self.candles], dtype=np.float64)

    @property
    def last(self) -> Candle | None:
        return self.candles[-1] if self.candles else None

    def __len__(self) -> int:
        return len(self.candles)
