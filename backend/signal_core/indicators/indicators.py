"""Technical indicators for signal generation (pure NumPy).

Every function is deterministic and side-effect free. Short input never
raises: each indicator falls back to a documented neutral default, and
every ratio guards its denominator so no NaN or Infinity escapes.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

# Trading days per year used to annualize volatility
ANNUALIZATION_DAYS = 252


def _as_array(values: Sequence[float] | np.ndarray) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


def _clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    if not math.isfinite(value):
        return lo
    return max(lo, min(hi, value))


# =============================================================================
# Moving averages
# =============================================================================

def sma(values: Sequence[float], period: int) -> float:
    """
    Simple moving average of the last ``period`` values.

    Returns the mean of all values when fewer than ``period`` exist,
    and 0.0 for empty input.
    """
    arr = _as_array(values)
    if len(arr) == 0:
        return 0.0
    window = arr[-period:]
    if np.ptp(window) == 0:
        return float(window[-1])
    return float(np.mean(window))


def ema_series(values: Sequence[float], period: int) -> np.ndarray:
    """
    Calculate the Exponential Moving Average at every index.

    The EMA is seeded with the simple average of the first ``period``
    values (or with the first value when the input is shorter than
    ``period``), then follows ``ema = price * k + ema * (1 - k)`` with
    ``k = 2 / (period + 1)``, applied as ``ema += k * (price - ema)`` so a
    constant input stays exactly constant.

    Args:
        values: Sequence of price values
        period: EMA period

    Returns:
        Array of the same length as the input, NaN before the seed index
    """
    arr = _as_array(values)
    n = len(arr)
    result = np.full(n, np.nan)
    if n == 0:
        return result

    multiplier = 2.0 / (period + 1)

    if n < period:
        start = 0
        result[0] = arr[0]
    else:
        start = period - 1
        seed_window = arr[:period]
        result[start] = seed_window[0] if np.ptp(seed_window) == 0 else np.mean(seed_window)

    for i in range(start + 1, n):
        result[i] = result[i - 1] + multiplier * (arr[i] - result[i - 1])

    return result


def ema(values: Sequence[float], period: int) -> float:
    """Latest EMA value (0.0 for empty input)."""
    series = ema_series(values, period)
    if len(series) == 0:
        return 0.0
    return float(series[-1])


# =============================================================================
# Oscillators
# =============================================================================

def rsi_averages(closes: Sequence[float], period: int = 14) -> tuple[float, float] | None:
    """
    Wilder-smoothed average gain and average loss.

    The first ``period`` close-to-close changes seed both averages as simple
    means; each later change updates them with
    ``avg = (avg * (period - 1) + value) / period``.

    Returns:
        Tuple of (avg_gain, avg_loss), or None with fewer than period + 1 closes
    """
    arr = _as_array(closes)
    if len(arr) < period + 1:
        return None

    deltas = np.diff(arr)
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)

    avg_gain = float(np.mean(gains[:period]))
    avg_loss = float(np.mean(losses[:period]))

    for gain, loss in zip(gains[period:], losses[period:]):
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period

    return avg_gain, avg_loss


def rsi(closes: Sequence[float], period: int = 14) -> float:
    """
    Relative Strength Index with Wilder's smoothing.

    Returns 50 with insufficient data or when there were neither gains nor
    losses, and 100 when there were gains but no losses.
    """
    averages = rsi_averages(closes, period)
    if averages is None:
        return 50.0

    avg_gain, avg_loss = averages
    if avg_loss == 0:
        return 50.0 if avg_gain == 0 else 100.0

    rs = avg_gain / avg_loss
    return _clamp(100.0 - 100.0 / (1.0 + rs))


def macd_series(
    closes: Sequence[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Calculate the realized MACD, signal and histogram sequences.

    The MACD line is evaluated at every bar once both EMAs are seeded.
    The signal line is a true EMA of that MACD sequence.

    Returns:
        Tuple of (macd_line, signal_line, histogram) arrays of equal length
    """
    arr = _as_array(closes)
    n = len(arr)
    if n == 0:
        empty = np.array([], dtype=np.float64)
        return empty, empty, empty

    fast_ema = ema_series(arr, fast)
    slow_ema = ema_series(arr, slow)

    start = max(
        fast - 1 if n >= fast else 0,
        slow - 1 if n >= slow else 0,
    )
    macd_line = fast_ema[start:] - slow_ema[start:]
    signal_line = ema_series(macd_line, signal)
    histogram = macd_line - signal_line

    return macd_line, signal_line, histogram


def macd(
    closes: Sequence[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> tuple[float, float, float]:
    """
    Latest MACD values.

    Returns:
        Tuple of (macd, signal, histogram); histogram == macd - signal
    """
    macd_line, signal_line, _ = macd_series(closes, fast, slow, signal)
    if len(macd_line) == 0:
        return 0.0, 0.0, 0.0

    value = float(macd_line[-1])
    signal_value = float(signal_line[-1])
    return value, signal_value, value - signal_value


def stochastic(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    k_period: int = 14,
    d_period: int = 3,
) -> tuple[float, float]:
    """
    Stochastic oscillator.

    %K = (close - lowest low) / (highest high - lowest low) * 100 over the
    last ``k_period`` bars (50 when the range is zero). %D is the simple
    average of the last ``d_period`` %K values.

    Returns:
        Tuple of (k, d)
    """
    h = _as_array(highs)
    l = _as_array(lows)
    c = _as_array(closes)
    n = len(c)
    if n == 0:
        return 50.0, 50.0

    k_values = []
    for offset in range(d_period - 1, -1, -1):
        end = n - offset
        if end <= 0:
            continue
        start = max(0, end - k_period)
        highest_high = float(np.max(h[start:end]))
        lowest_low = float(np.min(l[start:end]))
        price_range = highest_high - lowest_low
        if price_range <= 0:
            k_values.append(50.0)
        else:
            k_values.append(_clamp((c[end - 1] - lowest_low) / price_range * 100))

    return k_values[-1], _clamp(float(np.mean(k_values)))


# =============================================================================
# Volatility
# =============================================================================

def bollinger_bands(
    closes: Sequence[float],
    period: int = 20,
    std_mult: float = 2.0,
) -> tuple[float, float, float, float, float]:
    """
    Bollinger Bands over the last ``period`` closes.

    middle = SMA(close), upper/lower = middle +/- std_mult * stddev,
    width = (upper - lower) / middle, percent_b = (close - lower) /
    (upper - lower) * 100 clamped to [0, 100] (50 for a zero-width band).

    Returns:
        Tuple of (upper, middle, lower, width, percent_b)
    """
    arr = _as_array(closes)
    if len(arr) == 0:
        return 0.0, 0.0, 0.0, 0.0, 50.0

    window = arr[-period:]
    middle = sma(window, period)
    std = 0.0 if np.ptp(window) == 0 else float(np.std(window))

    upper = middle + std_mult * std
    lower = middle - std_mult * std
    width = (upper - lower) / middle if middle > 0 else 0.0

    band = upper - lower
    if band <= 0:
        percent_b = 50.0
    else:
        percent_b = _clamp((float(arr[-1]) - lower) / band * 100)

    return upper, middle, lower, max(0.0, width), percent_b


def true_range(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
) -> np.ndarray:
    """
    Calculate True Range.

    TR = max(high - low, abs(high - prev_close), abs(low - prev_close));
    the first bar has no previous close and uses high - low.
    """
    h = _as_array(highs)
    l = _as_array(lows)
    c = _as_array(closes)
    if len(h) == 0:
        return np.array([], dtype=np.float64)

    result = h - l
    if len(h) > 1:
        prev_close = c[:-1]
        result[1:] = np.maximum.reduce([
            h[1:] - l[1:],
            np.abs(h[1:] - prev_close),
            np.abs(l[1:] - prev_close),
        ])
    return result


def atr(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> float:
    """
    Average True Range using Wilder's smoothing.

    Seeded with the simple average of the first ``period`` true ranges.
    With fewer bars the mean of the available true ranges is returned
    (0.0 for empty input).
    """
    tr = true_range(highs, lows, closes)
    if len(tr) == 0:
        return 0.0
    if len(tr) < period:
        return float(np.mean(tr))

    value = float(np.mean(tr[:period]))
    for x in tr[period:]:
        value = (value * (period - 1) + x) / period
    return value


def volatility(closes: Sequence[float], window: int = 20) -> float:
    """
    Annualized standard deviation of log returns over the last ``window`` returns.

    Returns 0.0 with fewer than two usable returns. Returns involving a
    zero price are skipped.
    """
    arr = _as_array(closes)[-(window + 1):]
    if len(arr) < 3:
        return 0.0

    prev, cur = arr[:-1], arr[1:]
    mask = (prev > 0) & (cur > 0)
    if int(mask.sum()) < 2:
        return 0.0

    returns = np.log(cur[mask] / prev[mask])
    if np.ptp(returns) == 0:
        return 0.0
    return float(np.std(returns, ddof=1) * math.sqrt(ANNUALIZATION_DAYS))


# =============================================================================
# Trend strength
# =============================================================================

def _directional_indicators(plus_dm: float, minus_dm: float, tr: float) -> tuple[float, float]:
    if tr <= 0:
        return 0.0, 0.0
    return _clamp(plus_dm / tr * 100), _clamp(minus_dm / tr * 100)


def _dx(pdi: float, ndi: float) -> float:
    total = pdi + ndi
    if total <= 0:
        return 0.0
    return _clamp(abs(pdi - ndi) / total * 100)


def adx(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> tuple[float, float, float]:
    """
    Average Directional Index with +DI and -DI.

    True range, +DM and -DM are seeded as simple sums of the first
    ``period`` values and then smoothed as running Wilder sums
    (``smoothed - smoothed / period + value``). The division by ``period``
    cancels when deriving +DI/-DI = smoothed DM / smoothed TR * 100.
    ADX is the Wilder average of DX once ``period`` DX values exist,
    otherwise the simple average of the available DX values.

    Returns:
        Tuple of (adx, pdi, ndi), each in [0, 100]; (0, 0, 0) with fewer
        than period + 1 bars or no price movement
    """
    h = _as_array(highs)
    l = _as_array(lows)
    c = _as_array(closes)
    if len(h) < period + 1:
        return 0.0, 0.0, 0.0

    up_move = h[1:] - h[:-1]
    down_move = l[:-1] - l[1:]
    plus_dm = np.where((up_move > down_move) & (up_move > 0), up_move, 0.0)
    minus_dm = np.where((down_move > up_move) & (down_move > 0), down_move, 0.0)
    tr = true_range(h, l, c)[1:]

    smoothed_tr = float(np.sum(tr[:period]))
    smoothed_plus = float(np.sum(plus_dm[:period]))
    smoothed_minus = float(np.sum(minus_dm[:period]))

    pdi, ndi = _directional_indicators(smoothed_plus, smoothed_minus, smoothed_tr)
    dx_values = [_dx(pdi, ndi)]

    for i in range(period, len(tr)):
        smoothed_tr = smoothed_tr - smoothed_tr / period + tr[i]
        smoothed_plus = smoothed_plus - smoothed_plus / period + plus_dm[i]
        smoothed_minus = smoothed_minus - smoothed_minus / period + minus_dm[i]
        pdi, ndi = _directional_indicators(smoothed_plus, smoothed_minus, smoothed_tr)
        dx_values.append(_dx(pdi, ndi))

    if len(dx_values) >= period:
        adx_value = float(np.mean(dx_values[:period]))
        for dx in dx_values[period:]:
            adx_value = (adx_value * (period - 1) + dx) / period
    else:
        adx_value = float(np.mean(dx_values))

    return _clamp(adx_value), pdi, ndi
