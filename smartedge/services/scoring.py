"""
Batch scoring pass.

For every match, in input order::

    predict → consensus → arbitrage → betting metrics → SmartScore

Per-match failures are isolated: the exception is logged with its
traceback, recorded as a :class:`ScoringFailure`, and the pass moves on to
the next match.  A :class:`~smartedge.core.errors.ConfigurationError` is a
programmer error shared by every match, so it is re-raised instead.

Usage::

    report = score_matches(matches, features_by_match)
    for result in report.top_by_smart_score(5):
        print(result.match.match_id, result.smart_score.overall)
"""

import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence, Tuple

from smartedge.core.errors import ConfigurationError
from smartedge.core.policy import ScoringPolicy
from smartedge.core.types import (
    AlgorithmId,
    AlgorithmPerformance,
    BettingMetrics,
    Match,
    MatchFeatures,
    Prediction,
)
from smartedge.services.arbitrage import ArbitrageResult, detect_arbitrage
from smartedge.services.ensemble import Consensus, consensus, predict
from smartedge.services.metrics import metrics_for_match, pick_metrics
from smartedge.services.smart_score import SmartScore, smart_score

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MatchScoring:
    """Everything the core computes for one match."""

    match: Match
    predictions: Tuple[Prediction, ...]
    consensus: Consensus
    consensus_metrics: Optional[BettingMetrics]
    arbitrage: ArbitrageResult
    smart_score: SmartScore

    def to_dict(self) -> dict:
        return {
            "match_id": self.match.match_id,
            "predictions": [
                {
                    "algorithm": p.algorithm.value,
                    "recommended": p.recommended.value,
                    "confidence": p.confidence,
                    "projected_score": {"home": p.projected_score.home, "away": p.projected_score.away},
                    "metrics": p.metrics.to_dict() if p.metrics else None,
                    "notes": list(p.notes),
                }
                for p in self.predictions
            ],
            "consensus": self.consensus.to_dict(),
            "consensus_metrics": self.consensus_metrics.to_dict() if self.consensus_metrics else None,
            "arbitrage": self.arbitrage.to_dict(),
            "smart_score": self.smart_score.to_dict(),
        }


@dataclass(frozen=True)
class ScoringFailure:
    match_id: str
    error: str


@dataclass(frozen=True)
class ScoringReport:
    results: Tuple[MatchScoring, ...] = field(default_factory=tuple)
    failures: Tuple[ScoringFailure, ...] = field(default_factory=tuple)

    def top_by_smart_score(self, n: int = 10) -> List[MatchScoring]:
        """Best ``n`` results by overall SmartScore; ties keep input order."""
        ranked = sorted(self.results, key=lambda r: -r.smart_score.overall)
        return ranked[: max(0, n)]

    @property
    def arbitrage_opportunities(self) -> List[ArbitrageResult]:
        return _by_margin(r.arbitrage for r in self.results)


# ---------------------------------------------------------------------------
# Single match
# ---------------------------------------------------------------------------

def score_match(
    match: Match,
    features: Optional[MatchFeatures] = None,
    performances: Optional[Mapping[AlgorithmId, AlgorithmPerformance]] = None,
    policy: Optional[ScoringPolicy] = None,
) -> MatchScoring:
    """Run the full pipeline for one match.  Exceptions propagate."""
    policy = policy or ScoringPolicy()
    predictions = [
        metrics_for_match(p, match, policy=policy)
        for p in predict(match, features, performances)
    ]
    verdict = consensus(predictions)
    arb = detect_arbitrage(match)
    score = smart_score(match, predictions, arb, features, performances, policy)
    return MatchScoring(
        match=match,
        predictions=tuple(predictions),
        consensus=verdict,
        consensus_metrics=pick_metrics(verdict.pick.outcome, verdict.confidence, match, policy),
        arbitrage=arb,
        smart_score=score,
    )


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------

def score_matches(
    matches: Sequence[Match],
    features_by_match: Optional[Mapping[str, MatchFeatures]] = None,
    performances: Optional[Mapping[AlgorithmId, AlgorithmPerformance]] = None,
    policy: Optional[ScoringPolicy] = None,
) -> ScoringReport:
    """Score every match, isolating per-match failures.

    Args:
        matches: Matches to score; results keep this order.
        features_by_match: Supplementary feeds keyed by ``match_id``.
        performances: Algorithm track records for calibration and weighting.
        policy: Scoring policy; defaults to :class:`ScoringPolicy`.

    Raises:
        ConfigurationError: Re-raised from any match; it is not data-specific.
    """
    policy = policy or ScoringPolicy()
    features_by_match = features_by_match or {}
    results: List[MatchScoring] = []
    failures: List[ScoringFailure] = []

    for match in matches:
        try:
            results.append(
                score_match(match, features_by_match.get(match.match_id), performances, policy)
            )
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.error("Scoring failed for match %s: %s", match.match_id, exc, exc_info=True)
            failures.append(ScoringFailure(match.match_id, f"{type(exc).__name__}: {exc}"))

    arbs = sum(1 for r in results if r.arbitrage.has_opportunity)
    logger.info(
        "Scored %d/%d matches (%d failed, %d arbitrage)",
        len(results), len(matches), len(failures), arbs,
    )
    return ScoringReport(results=tuple(results), failures=tuple(failures))


def _by_margin(results) -> List[ArbitrageResult]:
    found = [r for r in results if r.has_opportunity]
    return sorted(found, key=lambda r: -r.margin_percent)


def scan_arbitrage(matches: Sequence[Match], total_stake: float = 100.0) -> List[ArbitrageResult]:
    """All arbitrage opportunities across ``matches``, best margin first.

    A match whose quotes cannot be evaluated is logged and skipped.
    """
    found: List[ArbitrageResult] = []
    for match in matches:
        try:
            found.append(detect_arbitrage(match, total_stake))
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.error("Arbitrage scan failed for match %s: %s", match.match_id, exc, exc_info=True)
    return _by_margin(found)
