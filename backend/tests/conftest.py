"""Shared fixtures: synthetic candle series."""

from datetime import datetime, timedelta, timezone

import pytest

from signal_core.models.candle import Candle, CandleSeries

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def build_series(
    closes: list[float],
    symbol: str = "BTCUSDT",
    timeframe: str = "1h",
    volume: float = 1000.0,
    spread: float = 0.001,
) -> CandleSeries:
    """Series where each bar opens at the prior close and wicks ``spread`` beyond the body."""
    candles = []
    prev = closes[0]
    for i, close in enumerate(closes):
        open_ = prev
        candles.append(
            Candle(
                timestamp=START + timedelta(hours=i),
                open=open_,
                high=max(open_, close) * (1 + spread),
                low=min(open_, close) * (1 - spread),
                close=close,
                volume=volume,
            )
        )
        prev = close
    return CandleSeries.from_candles(symbol, timeframe, candles, max_size=max(len(candles), 1))


def geometric_closes(n: int, start: float = 100.0, ratio: float = 1.002) -> list[float]:
    closes = [start]
    for _ in range(n - 1):
        closes.append(closes[-1] * ratio)
    return closes


@pytest.fixture
def make_series():
    return build_series


@pytest.fixture
def uptrend_series() -> CandleSeries:
    """200 bars, each close = prior close * 1.002, constant volume."""
    return build_series(geometric_closes(200, ratio=1.002))


@pytest.fixture
def downtrend_series() -> CandleSeries:
    return build_series(geometric_closes(200, ratio=0.998))


@pytest.fixture
def flat_series() -> CandleSeries:
    """200 bars with every OHLC value equal."""
    return build_series([100.0] * 200, spread=0.0)


@pytest.fixture
def short_series() -> CandleSeries:
    """49 bars, one below the minimum history."""
    return build_series(geometric_closes(49))
