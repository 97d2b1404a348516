"""
SmartScore: one 0-100 quality rating per match.

Six component sub-scores, each 0-100, are combined linearly::

    overall = Σ weight_i · component_i        (weights sum to 1)

=============  ===========================================================
Component      Rule
=============  ===========================================================
momentum       50, plus the Momentum predictor's confidence band when it
               backs the pick, plus the picked team's recent form
value          50, plus the ensemble's edge over the no-vig market on the
               pick, plus an odds-shopping bonus when books disagree
odds_movement  50, plus or minus the pick's price drift, plus a bonus for
               reverse line movement toward the pick
weather        95 indoors, 70 outdoors without data, else condition rules
injuries       Mean of both teams' health scores, 75 without a report
arbitrage      100 for an opportunity, else decays from 90 as the book
               sum rises above 1
=============  ===========================================================

Components are not rounded, so raising any one of them (with a non-zero
weight) strictly raises ``overall``.  ``overall`` is summed with
:func:`math.fsum`, which is correctly rounded and therefore independent of
component order.

The arbitrage flag is copied from the arbitrage detector, never inferred
from confidence.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Tuple

from smartedge.core.league_config import league_config
from smartedge.core.odds_math import best_available_price, implied_probability, odds_spread, remove_vig
from smartedge.core.policy import COMPONENTS, ScoringPolicy, SmartScoreWeights
from smartedge.core.types import (
    AlgorithmId,
    AlgorithmPerformance,
    ConfidenceTier,
    Match,
    MatchFeatures,
    Outcome,
    Prediction,
)
from smartedge.services.arbitrage import ArbitrageResult
from smartedge.services.calibration import algorithm_weights
from smartedge.services.ensemble import blend_pick
from smartedge.services.injuries import injury_component
from smartedge.services.line_movement import analyze_line_movement, reverse_line_movement
from smartedge.services.weather import weather_component

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 50.0

# Arbitrage component
ARB_NEAR_MISS_CEILING = 90.0
ARB_DECAY = 20.0                # per unit of overround
UNKNOWN_ARB_SCORE = 30.0        # roughly a 6% overround market

_DEFAULT_POLICY = ScoringPolicy()


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SmartScoreComponents:
    momentum: float = NEUTRAL_SCORE
    value: float = NEUTRAL_SCORE
    odds_movement: float = NEUTRAL_SCORE
    weather: float = NEUTRAL_SCORE
    injuries: float = NEUTRAL_SCORE
    arbitrage: float = NEUTRAL_SCORE

    def as_dict(self) -> dict:
        return {name: getattr(self, name) for name in COMPONENTS}


@dataclass(frozen=True)
class Recommendation:
    bet_on: Optional[Outcome]
    tier: ConfidenceTier
    reasoning: str


@dataclass(frozen=True)
class SmartScore:
    match_id: str
    overall: float
    components: SmartScoreComponents
    recommendation: Recommendation
    has_arbitrage_opportunity: bool
    factors: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "match_id": self.match_id,
            "overall": self.overall,
            "components": self.components.as_dict(),
            "recommendation": {
                "bet_on": self.recommendation.bet_on.value if self.recommendation.bet_on else None,
                "tier": self.recommendation.tier.value,
                "reasoning": self.recommendation.reasoning,
            },
            "has_arbitrage_opportunity": self.has_arbitrage_opportunity,
            "factors": list(self.factors),
        }


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def overall_score(components: SmartScoreComponents, weights: SmartScoreWeights) -> float:
    """Weighted sum of the six components."""
    w = weights.as_dict()
    c = components.as_dict()
    return math.fsum(w[name] * c[name] for name in COMPONENTS)


def confidence_tier(overall: float, policy: ScoringPolicy = _DEFAULT_POLICY) -> ConfidenceTier:
    if overall >= policy.tier_high:
        return ConfidenceTier.HIGH
    if overall >= policy.tier_medium:
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


def _clamp(score: float) -> float:
    return max(0.0, min(100.0, score))


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------

def momentum_component(
    match: Match, predictions: Sequence[Prediction], bet_on: Optional[Outcome]
) -> Tuple[float, List[str]]:
    score = NEUTRAL_SCORE
    notes: List[str] = []

    momentum = next((p for p in predictions if p.algorithm is AlgorithmId.MOMENTUM), None)
    if momentum is not None and bet_on is not None:
        if momentum.recommended is bet_on:
            if momentum.confidence >= 75:
                score += 15
                notes.append("High-confidence momentum signal")
            elif momentum.confidence >= 60:
                score += 10
                notes.append("Moderate momentum signal")
        else:
            score -= 10
            notes.append("Momentum model disagrees with pick")

    team = match.team_for(bet_on) if bet_on is not None else None
    if team is not None and team.recent_form:
        results = [r.strip().upper() for r in team.recent_form if r and r.strip()]
        if results:
            win_rate = sum(1 for r in results if r == "W") / len(results)
            if win_rate >= 0.8:
                score += 15
                notes.append(f"{team.label} on a hot streak")
            elif win_rate >= 0.6:
                score += 10
                notes.append(f"{team.label} in good form")
            elif win_rate <= 0.2:
                score -= 15
                notes.append(f"{team.label} on a cold streak")
            elif win_rate <= 0.3:
                score -= 10
                notes.append(f"{team.label} in poor form")
            last_three = results[:3]
            if len(last_three) == 3 and all(r == "W" for r in last_three):
                score += 8
            elif len(last_three) == 3 and all(r == "L" for r in last_three):
                score -= 8
    return _clamp(score), notes


def value_component(
    match: Match, predictions: Sequence[Prediction], bet_on: Optional[Outcome]
) -> Tuple[float, List[str]]:
    if bet_on is None:
        return NEUTRAL_SCORE, []

    implied = {}
    for outcome in match.outcomes:
        price = best_available_price(match, outcome)
        implied[outcome] = implied_probability(price.odds) if price else None
    market = remove_vig(implied)
    backing = [p.confidence for p in predictions if p.recommended is bet_on]
    if market is None or not backing:
        return NEUTRAL_SCORE, ["No market price to value"]

    score = NEUTRAL_SCORE
    notes: List[str] = []
    edge_pct = sum(backing) / len(backing) - market[bet_on] * 100.0
    if edge_pct > 7:
        score += 25
        notes.append(f"Significant edge ({edge_pct:.1f}%)")
    elif edge_pct > 4:
        score += 15
        notes.append(f"Moderate edge ({edge_pct:.1f}%)")
    elif edge_pct > 2:
        score += 5
        notes.append(f"Small edge ({edge_pct:.1f}%)")
    elif edge_pct < -2:
        score -= 10
        notes.append(f"Market prices the pick above the model ({edge_pct:.1f}%)")

    spread = odds_spread(match.quotes, bet_on)
    if spread is not None and spread > 0.2:
        score += 15
        notes.append(f"Books disagree by {spread:.2f}; shop the line")
    return _clamp(score), notes


def odds_movement_component(
    match: Match, bet_on: Optional[Outcome]
) -> Tuple[float, List[str]]:
    if bet_on is None:
        return NEUTRAL_SCORE, []
    movement = analyze_line_movement(match.quotes, bet_on)
    if movement is None:
        return NEUTRAL_SCORE, ["No line history"]

    score = NEUTRAL_SCORE
    notes: List[str] = []
    drift = movement.movement
    if drift <= -0.2:
        score -= 15
        notes.append("Price shortening sharply on the pick")
    elif drift < 0:
        score -= 5
        notes.append("Price shortening on the pick")
    elif drift >= 0.2:
        score += 15
        notes.append("Price lengthening sharply on the pick")
    elif drift > 0:
        score += 5
        notes.append("Price lengthening on the pick")

    rlm = reverse_line_movement(match.quotes)
    if rlm is not None and rlm.favours is bet_on:
        score += 20
        notes.append("Reverse line movement toward the pick")
    return _clamp(score), notes


def arbitrage_component(arbitrage: Optional[ArbitrageResult]) -> float:
    if arbitrage is None or arbitrage.implied_sum is None:
        return UNKNOWN_ARB_SCORE
    if arbitrage.has_opportunity:
        return 100.0
    return ARB_NEAR_MISS_CEILING * math.exp(-ARB_DECAY * (arbitrage.implied_sum - 1.0))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def smart_score(
    match: Match,
    predictions: Sequence[Prediction],
    arbitrage: Optional[ArbitrageResult],
    features: Optional[MatchFeatures] = None,
    performances: Optional[Mapping[AlgorithmId, AlgorithmPerformance]] = None,
    policy: ScoringPolicy = _DEFAULT_POLICY,
) -> SmartScore:
    """Score one match from its predictions and arbitrage verdict.

    Args:
        match: The match being scored.
        predictions: Output of :func:`smartedge.services.ensemble.predict`.
        arbitrage: Output of
            :func:`smartedge.services.arbitrage.detect_arbitrage`, or
            ``None`` if not evaluated.
        features: Injury and weather feeds, if any.
        performances: Track records used to weight the ``bet_on`` vote.
        policy: Component weights and tier thresholds.
    """
    cfg = league_config(match.league)
    bet_on = blend_pick(predictions, algorithm_weights(performances))

    momentum, momentum_notes = momentum_component(match, predictions, bet_on)
    value, value_notes = value_component(match, predictions, bet_on)
    movement, movement_notes = odds_movement_component(match, bet_on)
    weather, weather_notes = weather_component(cfg, features)
    injuries, injury_notes = injury_component(match, features)
    has_arb = bool(arbitrage is not None and arbitrage.has_opportunity)

    components = SmartScoreComponents(
        momentum=momentum,
        value=value,
        odds_movement=movement,
        weather=weather,
        injuries=injuries,
        arbitrage=arbitrage_component(arbitrage),
    )
    overall = overall_score(components, policy.weights)
    tier = confidence_tier(overall, policy)

    factors = tuple(momentum_notes + value_notes + movement_notes + weather_notes + injury_notes)
    reasoning = _reasoning(match, bet_on, tier, overall, factors, has_arb)

    logger.debug("SmartScore %s: overall=%.1f tier=%s", match.match_id, overall, tier.value)
    return SmartScore(
        match_id=match.match_id,
        overall=overall,
        components=components,
        recommendation=Recommendation(bet_on=bet_on, tier=tier, reasoning=reasoning),
        has_arbitrage_opportunity=has_arb,
        factors=factors,
    )


def _reasoning(
    match: Match,
    bet_on: Optional[Outcome],
    tier: ConfidenceTier,
    overall: float,
    factors: Tuple[str, ...],
    has_arb: bool,
) -> str:
    if bet_on is None:
        return "Low conviction: no predictions available for this match."
    team = match.team_for(bet_on)
    side = team.label if team is not None else "Draw"
    parts = [f"{side} rated {overall:.0f}/100 ({tier.value})."]
    if tier is ConfidenceTier.LOW:
        parts.insert(0, "Low conviction:")
    if has_arb:
        parts.append("Arbitrage available across books.")
    if factors:
        parts.append("; ".join(factors[:3]) + ".")
    return " ".join(parts)
