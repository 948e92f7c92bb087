"""Support and resistance level detection."""

from __future__ import annotations

from typing import Sequence

import numpy as np


def merge_levels(levels: Sequence[float], tolerance: float) -> list[float]:
    """Group nearby levels (relative ``tolerance``) and return each group's mean."""
    if not levels:
        return []

    ordered = sorted(levels)
    merged: list[float] = []
    group = [ordered[0]]

    for level in ordered[1:]:
        last = group[-1]
        if last > 0 and (level - last) / last <= tolerance:
            group.append(level)
        else:
            merged.append(float(np.mean(group)))
            group = [level]
    merged.append(float(np.mean(group)))

    return merged


class LevelDetector:
    """Find support and resistance levels around the current price.

    Levels come from three sources:
    - pivots: a bar whose high (low) is strictly above (below) every high
      (low) within ``pivot_lookback`` bars on both sides
    - recent extremes: the highest high / lowest low of the last
      ``extreme_window`` bars, when at least ``significance`` away from price
    - volume clusters: closes bucketed over the last ``cluster_window`` bars,
      the heaviest buckets by summed volume

    With fewer than ``min_bars`` bars, or when a side ends up empty, levels
    are placed at fixed percentage offsets from the current price.
    """

    def __init__(
        self,
        pivot_lookback: int = 12,
        extreme_window: int = 80,
        significance: float = 0.005,
        cluster_window: int = 100,
        cluster_buckets: int = 20,
        top_clusters: int = 3,
        merge_tolerance: float = 0.002,
        max_levels: int = 3,
        min_bars: int = 20,
        fallback_offsets: tuple[float, ...] = (0.015, 0.03, 0.045),
    ):
        self.pivot_lookback = pivot_lookback
        self.extreme_window = extreme_window
        self.significance = significance
        self.cluster_window = cluster_window
        self.cluster_buckets = cluster_buckets
        self.top_clusters = top_clusters
        self.merge_tolerance = merge_tolerance
        self.max_levels = max_levels
        self.min_bars = min_bars
        self.fallback_offsets = fallback_offsets

    def fallback_supports(self, price: float) -> list[float]:
        return [price * (1 - pct) for pct in self.fallback_offsets[: self.max_levels]]

    def fallback_resistances(self, price: float) -> list[float]:
        return [price * (1 + pct) for pct in self.fallback_offsets[: self.max_levels]]

    def pivot_levels(
        self, highs: np.ndarray, lows: np.ndarray
    ) -> tuple[list[float], list[float]]:
        """Return (pivot_lows, pivot_highs)."""
        lb = self.pivot_lookback
        pivot_lows: list[float] = []
        pivot_highs: list[float] = []

        for i in range(lb, len(highs) - lb):
            left_h, right_h = highs[i - lb : i], highs[i + 1 : i + lb + 1]
            left_l, right_l = lows[i - lb : i], lows[i + 1 : i + lb + 1]
            if highs[i] > left_h.max() and highs[i] > right_h.max():
                pivot_highs.append(float(highs[i]))
            if lows[i] < left_l.min() and lows[i] < right_l.min():
                pivot_lows.append(float(lows[i]))

        return pivot_lows, pivot_highs

    def extreme_levels(
        self, highs: np.ndarray, lows: np.ndarray, price: float
    ) -> tuple[list[float], list[float]]:
        """Return significant recent (lows, highs)."""
        if price <= 0:
            return [], []

        recent_high = float(highs[-self.extreme_window :].max())
        recent_low = float(lows[-self.extreme_window :].min())

        supports = []
        resistances = []
        if (price - recent_low) / price >= self.significance:
            supports.append(recent_low)
        if (recent_high - price) / price >= self.significance:
            resistances.append(recent_high)

        return supports, resistances

    def volume_clusters(self, closes: np.ndarray, volumes: np.ndarray) -> list[float]:
        """Volume-weighted prices of the heaviest close-price buckets."""
        closes = closes[-self.cluster_window :]
        volumes = volumes[-self.cluster_window :]
        if len(closes) == 0:
            return []

        lo, hi = float(closes.min()), float(closes.max())
        if hi <= lo:
            return [lo]

        edges = np.linspace(lo, hi, self.cluster_buckets + 1)
        buckets = np.clip(np.digitize(closes, edges) - 1, 0, self.cluster_buckets - 1)

        totals = np.zeros(self.cluster_buckets)
        np.add.at(totals, buckets, volumes)

        clusters = []
        for bucket in np.argsort(-totals, kind="stable")[: self.top_clusters]:
            mask = buckets == bucket
            if not mask.any():
                continue
            bucket_volume = float(volumes[mask].sum())
            if bucket_volume > 0:
                clusters.append(float(np.dot(closes[mask], volumes[mask]) / bucket_volume))
            else:
                clusters.append(float(closes[mask].mean()))

        return clusters

    def find_levels(
        self,
        highs: Sequence[float],
        lows: Sequence[float],
        closes: Sequence[float],
        volumes: Sequence[float],
        price: float,
    ) -> tuple[list[float], list[float]]:
        """
        Find up to ``max_levels`` supports and resistances.

        Returns:
            Tuple of (supports sorted descending, resistances sorted ascending);
            supports are strictly below price, resistances strictly above
        """
        h = np.asarray(highs, dtype=np.float64)
        l = np.asarray(lows, dtype=np.float64)
        c = np.asarray(closes, dtype=np.float64)
        v = np.asarray(volumes, dtype=np.float64)

        if len(c) < self.min_bars:
            return self.fallback_supports(price), self.fallback_resistances(price)

        pivot_lows, pivot_highs = self.pivot_levels(h, l)
        extreme_lows, extreme_highs = self.extreme_levels(h, l, price)
        clusters = self.volume_clusters(c, v)

        candidates = pivot_lows + pivot_highs + extreme_lows + extreme_highs + clusters

        supports = merge_levels([x for x in candidates if x < price], self.merge_tolerance)
        resistances = merge_levels([x for x in candidates if x > price], self.merge_tolerance)

        supports = sorted((x for x in supports if x < price), reverse=True)[: self.max_levels]
        resistances = sorted(x for x in resistances if x > price)[: self.max_levels]

        if not supports:
            supports = self.fallback_supports(price)
        if not resistances:
            resistances = self.fallback_resistances(price)

        return supports, resistances

    @staticmethod
    def nearest_levels(
        price: float,
        supports: Sequence[float],
        resistances: Sequence[float],
    ) -> tuple[float | None, float | None]:
        """
        Get the nearest support below and resistance above ``price``.

        Returns:
            Tuple of (nearest_support, nearest_resistance)
        """
        nearest_support = max((x for x in supports if x < price), default=None)
        nearest_resistance = min((x for x in resistances if x > price), default=None)
        return nearest_support, nearest_resistance
