"""
Three-predictor ensemble and consensus vote.

Predictors
----------
Each predictor is a named pure function with the same contract::

    fn(match, features, league_cfg) -> Optional[Prediction]

returning ``None`` when it lacks the data it needs.  They are held in the
ordered :data:`PREDICTORS` registry; :func:`predict` runs them in registry
order, so output order is stable.

All three map a home-minus-away *strength edge* (0-100 rating points) to
outcome probabilities with a normal CDF, the same margin → probability
step used for point spreads::

    P(home) = Φ(edge / prob_scale)

For leagues with a draw market a draw share is carved out, largest for an
even matchup and vanishing as the edge grows::

    P(draw) = draw_rate · (1 − |2·P(home) − 1|)

The pick is the most probable outcome (or, for the value predictor, the
largest model-minus-market divergence) and ``confidence`` is the model
probability of that pick in percent.

Consensus
---------
Two or more predictions agreeing on one outcome make a consensus with
``strength`` equal to the agreement count.  Anything else is ``SPLIT``
with strength 0.  Missing predictions never vote.
"""

import logging
from collections import Counter
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from scipy.stats import norm

from smartedge.core.league_config import LeagueConfig, league_config
from smartedge.core.odds_math import best_available_price, implied_probability, remove_vig
from smartedge.core.types import (
    AlgorithmId,
    AlgorithmPerformance,
    ConsensusPick,
    Match,
    MatchFeatures,
    Outcome,
    Prediction,
)
from smartedge.services.calibration import calibrate_confidence
from smartedge.services.injuries import build_matrices
from smartedge.services.line_movement import analyze_line_movement
from smartedge.services.team_strength import TeamStrength, project_score, team_strength
from smartedge.services.weather import weather_severity

logger = logging.getLogger(__name__)

PredictorFn = Callable[[Match, MatchFeatures, LeagueConfig], Optional[Prediction]]


# ---------------------------------------------------------------------------
# Tuning constants
# ---------------------------------------------------------------------------

# Momentum predictor
MOMENTUM_EMPHASIS = 0.5        # Extra weight on the momentum rating gap
H2H_SCALE = 10.0               # Edge points for a clean head-to-head sweep
H2H_FULL_SAMPLE = 10           # Meetings needed for the full H2H effect
SHRINK_PSEUDO_GAMES = 10       # k in n / (n + k) confidence shrinkage

# Value predictor
MOVE_ADJUSTMENT = 3.0          # Confidence points for a line moving our way
SHARP_MULTIPLIER = 2.0         # Applied to MOVE_ADJUSTMENT on sharp moves

# Situational predictor
REST_POINTS_PER_DAY = 1.5
MAX_REST_DIFF = 3
WEATHER_COMPRESSION = 0.5      # Share of the edge removed by the worst weather

# Draw share used when a league has no configured draw rate but the
# match nevertheless lists a draw price.
FALLBACK_DRAW_RATE = 0.25


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def outcome_probabilities(
    edge: float, cfg: LeagueConfig, has_draw: bool
) -> Dict[Outcome, float]:
    """Outcome probabilities from a home-minus-away strength edge."""
    p_home = float(norm.cdf(edge / cfg.prob_scale))
    if not has_draw:
        return {Outcome.HOME: p_home, Outcome.AWAY: 1.0 - p_home}
    draw_rate = cfg.draw_rate if cfg.has_draws else FALLBACK_DRAW_RATE
    p_draw = draw_rate * (1.0 - abs(2.0 * p_home - 1.0))
    return {
        Outcome.HOME: p_home * (1.0 - p_draw),
        Outcome.AWAY: (1.0 - p_home) * (1.0 - p_draw),
        Outcome.DRAW: p_draw,
    }


def _argmax(scores: Mapping[Outcome, float]) -> Outcome:
    # max() keeps the first of equal keys, so ties go HOME, AWAY, DRAW
    return max(scores, key=lambda o: scores[o])


def _strengths(match: Match) -> Tuple[TeamStrength, TeamStrength]:
    return team_strength(match.home), team_strength(match.away)


def _strength_edge(home: TeamStrength, away: TeamStrength, cfg: LeagueConfig) -> float:
    return home.overall - away.overall + cfg.home_advantage


def _clamp_confidence(value: float) -> float:
    return max(0.0, min(100.0, value))


# ---------------------------------------------------------------------------
# Predictors
# ---------------------------------------------------------------------------

def momentum_predictor(
    match: Match, features: MatchFeatures, cfg: LeagueConfig
) -> Optional[Prediction]:
    """Recent-form trend plus head-to-head regression.

    Confidence is shrunk toward the uniform baseline (50 for a two-way
    market) by ``n / (n + k)`` where ``n`` is the combined sample behind
    both teams' ratings, so thin records cannot produce extreme picks.
    """
    home, away = _strengths(match)
    if not (home.has_data or away.has_data):
        return None

    edge = _strength_edge(home, away, cfg)
    edge += MOMENTUM_EMPHASIS * (home.momentum - away.momentum)

    notes: List[str] = []
    h2h = features.head_to_head
    if h2h is not None and h2h.total_games > 0:
        share = (h2h.home_wins + 0.5 * h2h.draws) / h2h.total_games
        weight = min(1.0, h2h.total_games / H2H_FULL_SAMPLE)
        edge += (share - 0.5) * 2.0 * H2H_SCALE * weight
        notes.append(
            f"Head-to-head {h2h.home_wins}-{h2h.away_wins}-{h2h.draws} over {h2h.total_games}"
        )

    probs = outcome_probabilities(edge, cfg, match.has_draw_market)
    pick = _argmax(probs)

    baseline = 100.0 / len(probs)
    n = home.sample_size + away.sample_size
    shrink = n / (n + SHRINK_PSEUDO_GAMES)
    confidence = baseline + (probs[pick] * 100.0 - baseline) * shrink
    notes.append(f"Sample {n} games, shrinkage {shrink:.2f}")

    return Prediction(
        match_id=match.match_id,
        algorithm=AlgorithmId.MOMENTUM,
        recommended=pick,
        confidence=_clamp_confidence(confidence),
        projected_score=project_score(home, away, cfg),
        notes=tuple(notes),
    )


def value_predictor(
    match: Match, features: MatchFeatures, cfg: LeagueConfig
) -> Optional[Prediction]:
    """Divergence between the model's fair price and the no-vig market.

    Needs a valid price for every outcome of the match.  The pick is the
    outcome the market underrates most; confidence is the model's fair
    probability for it, nudged toward the side the line is moving to.
    """
    outcomes = match.outcomes
    implied = {}
    for outcome in outcomes:
        price = best_available_price(match, outcome)
        implied[outcome] = implied_probability(price.odds) if price is not None else None
    market = remove_vig(implied)
    if market is None:
        return None

    home, away = _strengths(match)
    fair = outcome_probabilities(_strength_edge(home, away, cfg), cfg, match.has_draw_market)
    divergence = {o: fair[o] - market[o] for o in outcomes}
    pick = _argmax(divergence)

    confidence = fair[pick] * 100.0
    notes = [f"Fair {fair[pick]:.3f} vs market {market[pick]:.3f}"]

    movement = analyze_line_movement(match.quotes, pick)
    if movement is not None and movement.direction != "stable":
        adj = MOVE_ADJUSTMENT * (SHARP_MULTIPLIER if movement.sharp_money else 1.0)
        # A shortening price means the market is moving toward our pick
        if movement.direction == "down":
            confidence += adj
        else:
            confidence -= adj
        notes.append(
            f"Line {movement.direction} {movement.movement_pct:.1f}%"
            + (" (sharp)" if movement.sharp_money else "")
        )

    return Prediction(
        match_id=match.match_id,
        algorithm=AlgorithmId.VALUE,
        recommended=pick,
        confidence=_clamp_confidence(confidence),
        projected_score=project_score(home, away, cfg),
        notes=tuple(notes),
    )


def situational_predictor(
    match: Match, features: MatchFeatures, cfg: LeagueConfig
) -> Optional[Prediction]:
    """Rest differential, injury-adjusted strength and outdoor weather.

    Returns ``None`` unless at least one situational feed is present.
    """
    rest_diff = features.schedule.rest_differential if features.schedule else None
    matrices = build_matrices(match, features)
    severity = weather_severity(cfg, features)
    if rest_diff is None and matrices is None and severity is None:
        return None

    home, away = _strengths(match)
    notes: List[str] = []

    if matrices is not None:
        home_impact = matrices[0].total_impact
        away_impact = matrices[1].total_impact
        home = replace(home, offense=home.offense - home_impact, defense=home.defense - home_impact)
        away = replace(away, offense=away.offense - away_impact, defense=away.defense - away_impact)
        notes.append(f"Injury impact home {home_impact:.1f}, away {away_impact:.1f}")

    edge = _strength_edge(home, away, cfg)

    if rest_diff is not None:
        clipped = max(-MAX_REST_DIFF, min(MAX_REST_DIFF, rest_diff))
        edge += clipped * REST_POINTS_PER_DAY
        notes.append(f"Rest differential {rest_diff:+d} days")

    if severity is not None:
        edge *= 1.0 - WEATHER_COMPRESSION * severity
        notes.append(f"Weather severity {severity:.2f}")

    probs = outcome_probabilities(edge, cfg, match.has_draw_market)
    pick = _argmax(probs)

    return Prediction(
        match_id=match.match_id,
        algorithm=AlgorithmId.SITUATIONAL,
        recommended=pick,
        confidence=_clamp_confidence(probs[pick] * 100.0),
        projected_score=project_score(home, away, cfg),
        notes=tuple(notes),
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PredictorSpec:
    algorithm: AlgorithmId
    name: str
    description: str
    fn: PredictorFn


PREDICTORS: Tuple[PredictorSpec, ...] = (
    PredictorSpec(
        AlgorithmId.MOMENTUM,
        "Momentum",
        "Recent-form trend and head-to-head regression",
        momentum_predictor,
    ),
    PredictorSpec(
        AlgorithmId.VALUE,
        "Value",
        "Model fair price against the no-vig market and line movement",
        value_predictor,
    ),
    PredictorSpec(
        AlgorithmId.SITUATIONAL,
        "Situational",
        "Rest, injuries and weather",
        situational_predictor,
    ),
)


def predict(
    match: Match,
    features: Optional[MatchFeatures] = None,
    performances: Optional[Mapping[AlgorithmId, AlgorithmPerformance]] = None,
    predictors: Sequence[PredictorSpec] = PREDICTORS,
) -> List[Prediction]:
    """Run every registered predictor over one match.

    A predictor that raises is logged and excluded; the others still run.
    With ``performances`` each confidence is calibrated against that
    algorithm's track record.

    Returns:
        Predictions in registry order, skipping predictors that produced
        nothing.
    """
    features = features or MatchFeatures()
    cfg = league_config(match.league)
    out: List[Prediction] = []

    for spec in predictors:
        try:
            pred = spec.fn(match, features, cfg)
        except Exception:
            logger.warning(
                "Predictor %s failed for match %s", spec.name, match.match_id, exc_info=True,
            )
            continue
        if pred is None:
            logger.debug("Predictor %s had no data for match %s", spec.name, match.match_id)
            continue
        if pred.recommended is Outcome.DRAW and not match.has_draw_market:
            logger.warning(
                "Predictor %s picked a draw for %s without a draw market; dropped",
                spec.name, match.match_id,
            )
            continue
        if performances and spec.algorithm in performances:
            calibrated = calibrate_confidence(pred.confidence, performances[spec.algorithm])
            pred = replace(pred, confidence=calibrated)
        out.append(pred)

    return out


# ---------------------------------------------------------------------------
# Consensus
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Consensus:
    """Result of the agreement vote over one match's predictions."""

    pick: ConsensusPick
    strength: int
    confidence: float = 0.0
    available: int = 0

    @property
    def is_split(self) -> bool:
        return self.pick is ConsensusPick.SPLIT

    @property
    def unanimous(self) -> bool:
        return not self.is_split and self.strength == self.available

    @property
    def agreement(self) -> float:
        return self.strength / self.available if self.available else 0.0

    def to_dict(self) -> dict:
        return {
            "pick": self.pick.value,
            "strength": self.strength,
            "confidence": self.confidence,
            "available": self.available,
            "unanimous": self.unanimous,
            "agreement": self.agreement,
        }


def consensus(predictions: Iterable[Optional[Prediction]]) -> Consensus:
    """Agreement vote.

    Examples::

        [home, home, away] → Consensus(HOME, strength=2)
        [home, away, draw] → Consensus(SPLIT, strength=0)
        [home, None, None] → Consensus(SPLIT, strength=0)
    """
    preds = [p for p in predictions if p is not None]
    available = len(preds)
    if available < 2:
        return Consensus(ConsensusPick.SPLIT, 0, 0.0, available)

    counts = Counter(p.recommended for p in preds)
    ranked = counts.most_common()
    top_outcome, top_count = ranked[0]
    tied = len(ranked) > 1 and ranked[1][1] == top_count
    if top_count < 2 or tied:
        return Consensus(ConsensusPick.SPLIT, 0, 0.0, available)

    agreeing = [p.confidence for p in preds if p.recommended is top_outcome]
    return Consensus(
        pick=ConsensusPick.from_outcome(top_outcome),
        strength=top_count,
        confidence=sum(agreeing) / len(agreeing),
        available=available,
    )


def blend_pick(
    predictions: Iterable[Prediction],
    weights: Optional[Mapping[AlgorithmId, float]] = None,
) -> Optional[Outcome]:
    """Weighted vote per outcome; ties go to the highest single confidence.

    Returns ``None`` when there are no predictions.
    """
    preds = list(predictions)
    if not preds:
        return None

    totals: Dict[Outcome, float] = {}
    best_conf: Dict[Outcome, float] = {}
    for p in preds:
        w = 1.0 if weights is None else weights.get(p.algorithm, 0.0)
        totals[p.recommended] = totals.get(p.recommended, 0.0) + w
        best_conf[p.recommended] = max(best_conf.get(p.recommended, 0.0), p.confidence)

    top = max(totals.values())
    tied = [o for o, t in totals.items() if t == top]
    return max(tied, key=lambda o: best_conf[o])
