"""
Sharp-betting metrics: true probability, EV, Kelly stake and CLV.

True probability
    Raw algorithm confidence is never used as a probability on its own.
    It is blended with the market-implied probability of the price being
    taken::

        p_true = w · confidence / 100  +  (1 − w) · 1 / odds

    with ``w = ScoringPolicy.model_prob_weight`` (0.5 by default).

Closing Line Value
    Percentage by which the placement price beats the closing price for
    the same outcome::

        CLV% = (placement_odds − closing_odds) / closing_odds · 100

    Equivalently, ``(p_close / p_place − 1) · 100`` in implied-probability
    terms.  Positive CLV means the bettor got a better number than the
    market's final assessment.

Every metric needing a price is ``None`` when that price is unknown.
"""

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Tuple

import numpy as np

from smartedge.core.kelly import expected_growth, expected_value_pct, kelly_fraction, kelly_to_units
from smartedge.core.odds_math import best_available_price, implied_probability, is_valid_odds
from smartedge.core.policy import ScoringPolicy
from smartedge.core.types import BettingMetrics, Match, Outcome, Prediction

logger = logging.getLogger(__name__)

# CLV category thresholds (percent)
CLV_EXCELLENT = 5.0
CLV_GOOD = 2.0
CLV_NEUTRAL_FLOOR = -2.0

_DEFAULT_POLICY = ScoringPolicy()


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------

def true_probability(
    confidence: float, decimal_odds: Optional[float], model_weight: float = 0.5
) -> Optional[float]:
    """Blend model confidence (0-100) with the market-implied probability."""
    market = implied_probability(decimal_odds)
    if market is None:
        return None
    return model_weight * confidence / 100.0 + (1.0 - model_weight) * market


def clv_percent(placement_odds: Optional[float], closing_odds: Optional[float]) -> Optional[float]:
    """CLV in percent, or ``None`` if either price is unknown."""
    if not (is_valid_odds(placement_odds) and is_valid_odds(closing_odds)):
        return None
    return (placement_odds - closing_odds) / closing_odds * 100.0


def clv_category(clv_pct: Optional[float]) -> Optional[str]:
    """``excellent`` (> 5%), ``good`` (> 2%), ``neutral`` (> -2%) or ``poor``."""
    if clv_pct is None:
        return None
    if clv_pct > CLV_EXCELLENT:
        return "excellent"
    if clv_pct > CLV_GOOD:
        return "good"
    if clv_pct > CLV_NEUTRAL_FLOOR:
        return "neutral"
    return "poor"


# ---------------------------------------------------------------------------
# Bet gate
# ---------------------------------------------------------------------------

# Minimum CLV and EV (percent) for should_place_bet
MIN_BET_CLV = 2.0
MIN_BET_EV = 3.0


@dataclass(frozen=True)
class BetDecision:
    should_bet: bool
    clv_ok: bool
    ev_ok: bool
    reason: str

    def to_dict(self) -> dict:
        return {
            "should_bet": self.should_bet,
            "clv_ok": self.clv_ok,
            "ev_ok": self.ev_ok,
            "reason": self.reason,
        }


def _pct(value: Optional[float]) -> str:
    return "unknown" if value is None else f"{value:.2f}%"


def should_place_bet(
    metrics: BettingMetrics, min_clv: float = MIN_BET_CLV, min_ev: float = MIN_BET_EV
) -> BetDecision:
    """Place a pick only when it clears both the CLV and the EV threshold.

    An unknown CLV (no closing or reference price) fails its check; a
    bet is never approved on EV alone.
    """
    clv, ev = metrics.clv_percent, metrics.ev_percent
    clv_ok = clv is not None and clv >= min_clv
    ev_ok = ev is not None and ev >= min_ev

    if clv_ok and ev_ok:
        reason = f"Good bet: CLV {_pct(clv)}, EV {_pct(ev)}"
    elif not clv_ok and not ev_ok:
        reason = f"CLV ({_pct(clv)}) and EV ({_pct(ev)}) both below thresholds"
    elif not clv_ok:
        reason = f"CLV ({_pct(clv)}) below {min_clv}% threshold"
    else:
        reason = f"EV ({_pct(ev)}) below {min_ev}% threshold"
    return BetDecision(clv_ok and ev_ok, clv_ok, ev_ok, reason)


# ---------------------------------------------------------------------------
# Per-pick metrics
# ---------------------------------------------------------------------------

def compute_metrics(
    confidence: float,
    decimal_odds: Optional[float],
    closing_odds: Optional[float] = None,
    policy: ScoringPolicy = _DEFAULT_POLICY,
) -> BettingMetrics:
    """All metrics for one pick at ``decimal_odds`` given model ``confidence``.

    Returns an all-``None`` :class:`BettingMetrics` when the price is
    unknown.  CLV fields are ``None`` unless ``closing_odds`` is valid too.
    """
    if not is_valid_odds(decimal_odds):
        return BettingMetrics()

    p = true_probability(confidence, decimal_odds, policy.model_prob_weight)
    fraction = kelly_fraction(
        p,
        decimal_odds,
        multiplier=policy.kelly_multiplier,
        max_fraction=policy.max_kelly_fraction,
    )
    clv = clv_percent(decimal_odds, closing_odds)
    return BettingMetrics(
        decimal_odds=decimal_odds,
        implied_probability=implied_probability(decimal_odds),
        true_probability=p,
        ev_percent=expected_value_pct(p, decimal_odds),
        kelly_fraction=fraction,
        kelly_stake_units=kelly_to_units(fraction),
        expected_growth=expected_growth(p, decimal_odds, fraction),
        clv_percent=clv,
        clv_category=clv_category(clv),
        beat_closing_line=None if clv is None else clv > 0,
    )


def betting_metrics(
    prediction: Prediction,
    decimal_odds: Optional[float],
    closing_odds: Optional[float] = None,
    policy: ScoringPolicy = _DEFAULT_POLICY,
) -> Prediction:
    """Return a copy of ``prediction`` with its ``metrics`` filled in."""
    metrics = compute_metrics(prediction.confidence, decimal_odds, closing_odds, policy)
    return _with_metrics(prediction, metrics)


def metrics_for_match(
    prediction: Prediction,
    match: Match,
    closing_odds: Optional[float] = None,
    policy: ScoringPolicy = _DEFAULT_POLICY,
) -> Prediction:
    """Like :func:`betting_metrics`, pricing the pick at the best available odds."""
    price = best_available_price(match, prediction.recommended)
    return betting_metrics(prediction, price.odds if price else None, closing_odds, policy)


def pick_metrics(
    outcome: Optional[Outcome],
    confidence: float,
    match: Match,
    policy: ScoringPolicy = _DEFAULT_POLICY,
) -> Optional[BettingMetrics]:
    """Metrics for an arbitrary pick (e.g. the consensus) on ``match``.

    ``None`` when there is no pick.
    """
    if outcome is None:
        return None
    price = best_available_price(match, outcome)
    return compute_metrics(confidence, price.odds if price else None, None, policy)


def _with_metrics(prediction: Prediction, metrics: BettingMetrics) -> Prediction:
    return replace(prediction, metrics=metrics)


# ---------------------------------------------------------------------------
# Aggregate CLV
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ClvSummary:
    """CLV performance over many bets."""

    count: int
    average: float
    median: float
    positive_pct: float
    total: float
    std_dev: float

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "average": self.average,
            "median": self.median,
            "positive_pct": self.positive_pct,
            "total": self.total,
            "std_dev": self.std_dev,
        }


def aggregate_clv(pairs: Iterable[Tuple[float, float]]) -> ClvSummary:
    """Summarise CLV over ``(placement_odds, closing_odds)`` pairs.

    Pairs with an unknown or invalid price are skipped.  With no valid pair
    every statistic is 0.
    """
    values = [clv_percent(placed, closed) for placed, closed in pairs]
    clean = np.array([v for v in values if v is not None], dtype=float)
    skipped = len(values) - clean.size
    if skipped:
        logger.warning("aggregate_clv: skipped %d pair(s) with invalid odds", skipped)
    if clean.size == 0:
        return ClvSummary(0, 0.0, 0.0, 0.0, 0.0, 0.0)
    return ClvSummary(
        count=int(clean.size),
        average=float(clean.mean()),
        median=float(np.median(clean)),
        positive_pct=float((clean > 0).mean() * 100.0),
        total=float(clean.sum()),
        std_dev=float(clean.std()),
    )
