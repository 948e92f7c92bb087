"""Multi-timeframe confluence across signals for the same symbol.

Signals are grouped into short, medium and long timeframe clusters. The
result scores how strongly the timeframes agree and flags conflicts,
weighting longer timeframes more heavily.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from signal_core.models.signal import Direction, Signal

CLUSTERS: dict[str, tuple[str, ...]] = {
    "short": ("1m", "5m", "15m"),
    "medium": ("30m", "1h", "4h"),
    "long": ("1d", "3d", "1w", "1M"),
}

TIMEFRAME_WEIGHTS: dict[str, float] = {
    "1m": 0.5,
    "5m": 0.7,
    "15m": 0.8,
    "30m": 1.0,
    "1h": 1.3,
    "4h": 1.6,
    "1d": 2.0,
    "3d": 1.8,
    "1w": 1.5,
    "1M": 1.2,
}

# Penalty per opposing signal in each cluster
_OPPOSITION_PENALTY = {"short": 3.0, "medium": 8.0, "long": 15.0}
_CLUSTER_DISAGREEMENT_PENALTY = 10.0
_MAX_PENALTY = 50.0
_MAX_BONUS = 35.0
_DOMINANCE_THRESHOLD = 15.0


class Agreement(str, Enum):
    STRONG = "STRONG"
    MODERATE = "MODERATE"
    WEAK = "WEAK"
    CONFLICTED = "CONFLICTED"


@dataclass
class ClusterConsensus:
    direction: Direction = Direction.NEUTRAL
    consensus: float = 0.0  # percent


@dataclass
class ConfluenceResult:
    score: float
    dominant_direction: Direction
    agreement: Agreement
    agreement_pct: float
    conflict_penalty: float
    consensus_bonus: float
    clusters: dict[str, list[Signal]] = field(default_factory=dict)
    consensus: dict[str, ClusterConsensus] = field(default_factory=dict)


def timeframe_weight(timeframe: str) -> float:
    return TIMEFRAME_WEIGHTS.get(timeframe, 1.0)


def group_by_cluster(signals: Sequence[Signal]) -> dict[str, list[Signal]]:
    clusters: dict[str, list[Signal]] = {name: [] for name in CLUSTERS}
    for signal in signals:
        for name, timeframes in CLUSTERS.items():
            if signal.timeframe in timeframes:
                clusters[name].append(signal)
                break
    return clusters


def cluster_consensus(signals: Sequence[Signal]) -> ClusterConsensus:
    """Confidence-weighted share of the cluster's dominant direction."""
    if not signals:
        return ClusterConsensus()

    totals: dict[Direction, float] = {}
    for signal in signals:
        totals[signal.direction] = totals.get(signal.direction, 0.0) + signal.confidence

    total = sum(totals.values())
    # ties resolve to the first direction seen
    dominant = max(totals, key=lambda d: totals[d])
    consensus = totals[dominant] / total * 100 if total > 0 else 0.0
    return ClusterConsensus(direction=dominant, consensus=consensus)


def dominant_direction(signals: Sequence[Signal]) -> Direction:
    """Timeframe-weighted mean of signed confidence, thresholded at +/-15."""
    sign = {Direction.LONG: 1.0, Direction.SHORT: -1.0, Direction.NEUTRAL: 0.0}
    total = 0.0
    weight_sum = 0.0
    for signal in signals:
        weight = timeframe_weight(signal.timeframe)
        total += signal.confidence * weight * sign[signal.direction]
        weight_sum += weight

    if weight_sum == 0:
        return Direction.NEUTRAL

    average = total / weight_sum
    if average > _DOMINANCE_THRESHOLD:
        return Direction.LONG
    if average < -_DOMINANCE_THRESHOLD:
        return Direction.SHORT
    return Direction.NEUTRAL


def _agreement(signals: Sequence[Signal], dominant: Direction) -> tuple[Agreement, float]:
    if not signals:
        return Agreement.WEAK, 0.0

    pct = sum(1 for s in signals if s.direction == dominant) / len(signals) * 100
    if pct >= 80:
        return Agreement.STRONG, pct
    if pct >= 60:
        return Agreement.MODERATE, pct
    if pct >= 40:
        return Agreement.WEAK, pct
    return Agreement.CONFLICTED, pct


def _conflict_penalty(
    clusters: dict[str, list[Signal]],
    consensus: dict[str, ClusterConsensus],
    dominant: Direction,
) -> float:
    penalty = 0.0
    for name, signals in clusters.items():
        opposing = [
            s for s in signals
            if s.direction != dominant and s.direction != Direction.NEUTRAL
        ]
        penalty += len(opposing) * _OPPOSITION_PENALTY[name]

    directions = {c.direction for c in consensus.values() if c.direction != Direction.NEUTRAL}
    if len(directions) >= 2:
        penalty += _CLUSTER_DISAGREEMENT_PENALTY

    return min(penalty, _MAX_PENALTY)


def _consensus_bonus(consensus: dict[str, ClusterConsensus]) -> float:
    bonus = 0.0
    for cluster in consensus.values():
        if cluster.consensus >= 80:
            bonus += 8.0
        elif cluster.consensus >= 60:
            bonus += 4.0

    directions = [c.direction for c in consensus.values() if c.direction != Direction.NEUTRAL]
    if len(set(directions)) == 1 and len(directions) >= 2:
        bonus += 15.0

    return min(bonus, _MAX_BONUS)


def calculate_confluence(signals: Sequence[Signal]) -> ConfluenceResult:
    """
    Score cross-timeframe agreement for one symbol.

    score = timeframe-weighted mean confidence + consensus bonus - conflict
    penalty, clamped to [0, 100].
    """
    clusters = group_by_cluster(signals)
    consensus = {name: cluster_consensus(members) for name, members in clusters.items()}
    dominant = dominant_direction(signals)
    agreement, agreement_pct = _agreement(signals, dominant)
    penalty = _conflict_penalty(clusters, consensus, dominant)
    bonus = _consensus_bonus(consensus)

    weight_sum = sum(timeframe_weight(s.timeframe) for s in signals)
    base = (
        sum(s.confidence * timeframe_weight(s.timeframe) for s in signals) / weight_sum
        if weight_sum > 0
        else 0.0
    )

    return ConfluenceResult(
        score=max(0.0, min(100.0, base + bonus - penalty)),
        dominant_direction=dominant,
        agreement=agreement,
        agreement_pct=agreement_pct,
        conflict_penalty=penalty,
        consensus_bonus=bonus,
        clusters=clusters,
        consensus=consensus,
    )


def confluence_adjustment(result: ConfluenceResult, direction: Direction) -> float:
    """Confidence adjustment in [-15, 15] for a signal in ``direction``."""
    adjustment = 0.0
    if result.dominant_direction == direction:
        if result.agreement == Agreement.STRONG:
            adjustment += 10.0
        elif result.agreement == Agreement.MODERATE:
            adjustment += 5.0
    if result.agreement == Agreement.CONFLICTED:
        adjustment -= 8.0

    adjustment += result.consensus_bonus * 0.3
    adjustment -= result.conflict_penalty * 0.4
    return max(-15.0, min(15.0, adjustment))


def reasoning(result: ConfluenceResult) -> list[str]:
    """Human-readable summary of a confluence result."""
    lines = [
        f"{result.agreement.value.lower()} cross-timeframe agreement "
        f"({result.score:.1f}% confluence)"
    ]
    labels = {"long": "Long-term trend", "medium": "Medium-term momentum"}
    for name, label in labels.items():
        if result.clusters.get(name):
            c = result.consensus[name]
            lines.append(f"{label}: {c.direction.value} ({c.consensus:.1f}% consensus)")
    if result.conflict_penalty > 10:
        lines.append(f"Timeframe conflicts detected ({result.conflict_penalty:.0f} point penalty)")
    if result.consensus_bonus > 10:
        lines.append(f"Strong timeframe alignment (+{result.consensus_bonus:.0f} bonus points)")
    return lines
