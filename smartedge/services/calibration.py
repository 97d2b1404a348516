"""
Algorithm calibration from settled track records.

Two uses:

    algorithm weights
        How much each predictor counts in the weighted vote behind the
        SmartScore ``bet_on`` pick.  Built from win rate shrunk toward a
        coin flip and a bonus for stated confidence matching results.

    confidence calibration
        Nudges a predictor's stated confidence by its observed bias
        (win rate minus average stated confidence), in proportion to how
        many settled picks back the estimate.

All corrections are bounded by sample reliability, ``min(1, picks / 30)``:
an algorithm with no history is left exactly as it is.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from smartedge.core.types import AlgorithmId, AlgorithmPerformance

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tuning constants
# ---------------------------------------------------------------------------

# Settled picks needed for full reliability
_FULL_RELIABILITY_PICKS = 30

# Length of the recent W/L window kept on AlgorithmPerformance
_RECENT_WINDOW = 10

# Share of the raw weight that is base vs. calibration bonus
_BASE_SHARE, _BONUS_SHARE = 0.7, 0.3

# |win rate - avg confidence| at which the calibration bonus reaches zero
_BONUS_SCALE = 50.0

# Without an avg confidence, share of the gap to win rate closed at full reliability
_WIN_RATE_PULL = 0.5


@dataclass(frozen=True)
class SettledPrediction:
    """One settled pick from the caller's history (oldest first in lists)."""

    algorithm: AlgorithmId
    won: bool
    confidence: Optional[float] = None


def reliability(total_picks: int) -> float:
    return min(1.0, max(0, total_picks) / _FULL_RELIABILITY_PICKS)


# ---------------------------------------------------------------------------
# Building performance summaries
# ---------------------------------------------------------------------------

def build_performance(
    settled: Iterable[SettledPrediction],
) -> Dict[AlgorithmId, AlgorithmPerformance]:
    """Summarise settled picks into one :class:`AlgorithmPerformance` each.

    Algorithms with no settled picks are absent from the result.
    """
    grouped: Dict[AlgorithmId, List[SettledPrediction]] = defaultdict(list)
    for record in settled:
        grouped[record.algorithm].append(record)

    out: Dict[AlgorithmId, AlgorithmPerformance] = {}
    for algo, records in grouped.items():
        wins = sum(1 for r in records if r.won)
        confidences = [r.confidence for r in records if r.confidence is not None]
        out[algo] = AlgorithmPerformance(
            algorithm=algo,
            win_rate=wins / len(records) * 100.0,
            recent=tuple("W" if r.won else "L" for r in records[-_RECENT_WINDOW:]),
            total_picks=len(records),
            avg_confidence=(sum(confidences) / len(confidences)) if confidences else None,
        )
    return out


# ---------------------------------------------------------------------------
# Weights
# ---------------------------------------------------------------------------

def _raw_weight(perf: AlgorithmPerformance) -> float:
    r = reliability(perf.total_picks)
    shrunk = 50.0 + (perf.win_rate - 50.0) * r
    bonus = 0.0
    if perf.avg_confidence is not None:
        bonus = max(0.0, 1.0 - abs(perf.win_rate - perf.avg_confidence) / _BONUS_SCALE)
    return shrunk / 100.0 * (_BASE_SHARE + _BONUS_SHARE * bonus)


def algorithm_weights(
    performances: Optional[Mapping[AlgorithmId, AlgorithmPerformance]] = None,
    algorithms: Iterable[AlgorithmId] = tuple(AlgorithmId),
) -> Dict[AlgorithmId, float]:
    """Normalised voting weight per algorithm (sums to 1).

    Algorithms without a performance record get the neutral raw weight of a
    50% win rate with no bonus.  Equal weights when no history is supplied.
    """
    algorithms = tuple(algorithms)
    if not algorithms:
        return {}
    if not performances:
        return {a: 1.0 / len(algorithms) for a in algorithms}

    neutral = 0.5 * _BASE_SHARE
    raw = {
        a: _raw_weight(performances[a]) if a in performances else neutral
        for a in algorithms
    }
    total = sum(raw.values())
    if total <= 0:
        return {a: 1.0 / len(algorithms) for a in algorithms}
    return {a: w / total for a, w in raw.items()}


# ---------------------------------------------------------------------------
# Confidence calibration
# ---------------------------------------------------------------------------

def calibrate_confidence(
    confidence: float, performance: Optional[AlgorithmPerformance]
) -> float:
    """Shift ``confidence`` by the algorithm's observed bias.

    With an average stated confidence on file the full bias
    ``win_rate - avg_confidence`` is applied, scaled by reliability.
    Without one, confidence is pulled part of the way toward the win rate.
    The result is clamped to [0, 100].
    """
    if performance is None or performance.total_picks <= 0:
        return confidence
    r = reliability(performance.total_picks)
    if performance.avg_confidence is not None:
        adjusted = confidence + (performance.win_rate - performance.avg_confidence) * r
    else:
        pull = _WIN_RATE_PULL * r
        adjusted = confidence * (1.0 - pull) + performance.win_rate * pull
    return max(0.0, min(100.0, adjusted))
