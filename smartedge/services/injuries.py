"""
Injury impact and roster availability scoring.

Turns per-player injury reports supplied by the data collaborator into a
strength penalty for the situational predictor and a 0-100 "health" score
for the SmartScore injuries component.

Impact tiers quantify the expected strength swing when a player is out,
scaled by usage rate and weighted by how likely the player is to miss.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from smartedge.core.types import InjuryReport, Match, MatchFeatures

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Impact estimation
# ---------------------------------------------------------------------------

# Strength-point swing by tier when the player is fully OUT.
TIER_IMPACT = {
    "star": 3.5,       # > 28% usage, primary creator
    "starter": 1.8,    # Regular starter, 18-28% usage
    "role": 0.7,       # Rotation player, 10-18% usage
    "bench": 0.2,      # Deep bench, < 10% usage
}

# Probability-of-missing weight by listed status.
STATUS_WEIGHTS = {
    "out": 1.0,
    "doubtful": 0.75,
    "questionable": 0.40,
    "probable": 0.10,
}

DEFAULT_STATUS_WEIGHT = 0.5
STARTER_USAGE = 22.0

# Health score: 100 minus this many points per unit of weighted impact.
HEALTH_PENALTY_PER_POINT = 15.0
HEALTH_FLOOR = 25.0
# Neutral injuries component when no report was supplied.
NO_REPORT_SCORE = 75.0


def estimate_impact(tier: str, usage_rate: Optional[float] = None) -> float:
    """Estimate the strength swing from a player being out.

    When usage_rate is provided, scales the tier base by the player's usage
    relative to a typical starter (~22%).  The multiplier is clamped to
    [0.5, 1.8] so outlier usage rates never produce absurd swings.

    Examples:
        star (3.5 base) at 22% usage  → 3.5 * 1.00 = 3.50
        star (3.5 base) at 44%+ usage → 3.5 * 1.80 = 6.30  (capped)
        star (3.5 base) at 10% usage  → 3.5 * 0.50 = 1.75  (floored)
    """
    base = TIER_IMPACT.get(tier, TIER_IMPACT["bench"])
    if usage_rate is not None and usage_rate > 0:
        multiplier = min(1.8, max(0.5, usage_rate / STARTER_USAGE))
        return base * multiplier
    return base


def classify_tier(usage_rate: Optional[float] = None) -> str:
    """Auto-classify injury tier from usage rate."""
    if usage_rate is None:
        return "role"
    if usage_rate >= 28:
        return "star"
    if usage_rate >= 18:
        return "starter"
    if usage_rate >= 10:
        return "role"
    return "bench"


def status_weight(status: str) -> float:
    return STATUS_WEIGHTS.get((status or "").strip().lower(), DEFAULT_STATUS_WEIGHT)


# ---------------------------------------------------------------------------
# Team matrix
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TeamInjuryMatrix:
    """Aggregate injury state for a single team."""

    team: str
    injuries: Tuple[InjuryReport, ...] = field(default_factory=tuple)

    @property
    def total_impact(self) -> float:
        """Sum of per-player impacts weighted by status probability."""
        total = 0.0
        for inj in self.injuries:
            tier = inj.impact_tier or classify_tier(inj.usage_rate)
            total += estimate_impact(tier, inj.usage_rate) * status_weight(inj.status)
        return total

    @property
    def health_score(self) -> float:
        return injury_health_score(self.total_impact)

    def key_absences(self, min_weight: float = 0.75) -> List[str]:
        """Players at least Doubtful, formatted for reasoning text."""
        return [
            f"{inj.player} ({inj.status})"
            for inj in self.injuries
            if status_weight(inj.status) >= min_weight
        ]


def injury_health_score(total_impact: float) -> float:
    """0-100 health score for a team; 100 is a full-strength roster."""
    return max(HEALTH_FLOOR, 100.0 - total_impact * HEALTH_PENALTY_PER_POINT)


def build_matrices(
    match: Match, features: Optional[MatchFeatures]
) -> Optional[Tuple[TeamInjuryMatrix, TeamInjuryMatrix]]:
    """Home and away matrices, or ``None`` when no report was supplied.

    A report for only one side treats the other side as fully healthy.
    """
    if features is None or not features.has_injury_report:
        return None
    home = TeamInjuryMatrix(match.home.name, tuple(features.home_injuries or ()))
    away = TeamInjuryMatrix(match.away.name, tuple(features.away_injuries or ()))
    return home, away


def injury_component(
    match: Match, features: Optional[MatchFeatures]
) -> Tuple[float, List[str]]:
    """SmartScore injuries component: mean of both teams' health scores.

    Returns:
        ``(score, notes)``.  Without a report the score is the neutral
        :data:`NO_REPORT_SCORE`.
    """
    matrices = build_matrices(match, features)
    if matrices is None:
        return NO_REPORT_SCORE, ["No injury report supplied"]

    home, away = matrices
    score = (home.health_score + away.health_score) / 2.0
    notes: List[str] = []
    for team, matrix in ((match.home, home), (match.away, away)):
        absences = matrix.key_absences()
        if absences:
            notes.append(f"{team.label}: {', '.join(absences[:2])}")
    if not notes:
        notes.append("Both teams at full strength")
    logger.debug(
        "Injury impact %s: home=%.2f away=%.2f score=%.1f",
        match.match_id, home.total_impact, away.total_impact, score,
    )
    return score, notes
