"""Value objects shared by every scoring module.

Every class here is a frozen, slotted dataclass: produced by a pure function
of its inputs, never mutated after construction, and safe to share across
threads without synchronisation.  "Changing" a value means building a new one
with :func:`dataclasses.replace`.

Design choices
--------------
* Absent odds are ``None`` ("unknown"), never ``0``.  The ``from_raw``
  constructors on :class:`MarketOdds` and :class:`BookQuote` normalise any
  non-finite or ``<= 1.0`` price to ``None`` so downstream code only ever
  sees valid decimal odds or the unknown sentinel.
* A :class:`Prediction` may only recommend :attr:`Outcome.DRAW` when the
  match it was produced for offers a draw market.  That check needs the
  match, so it is enforced by the ensemble, not by ``Prediction`` itself.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from smartedge.core.odds_math import is_valid_odds


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class MatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    FINISHED = "finished"


class Outcome(str, Enum):
    """A bettable result of a match."""

    HOME = "home"
    AWAY = "away"
    DRAW = "draw"


class ConsensusPick(str, Enum):
    """Consensus verdict: an outcome, or ``SPLIT`` when no majority exists."""

    HOME = "home"
    AWAY = "away"
    DRAW = "draw"
    SPLIT = "SPLIT"

    @classmethod
    def from_outcome(cls, outcome: Outcome) -> "ConsensusPick":
        return cls(outcome.value)

    @property
    def outcome(self) -> Optional[Outcome]:
        return None if self is ConsensusPick.SPLIT else Outcome(self.value)


class AlgorithmId(str, Enum):
    MOMENTUM = "momentum"
    VALUE = "value"
    SITUATIONAL = "situational"


class ConfidenceTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def _clean_odds(value: object) -> Optional[float]:
    """Return ``value`` as a float when it is a valid decimal price, else ``None``."""
    return float(value) if is_valid_odds(value) else None


def as_utc(moment: Optional[datetime]) -> Optional[datetime]:
    """Return ``moment`` as an aware UTC datetime.  Naive values are taken as UTC."""
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Match records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TeamInfo:
    """One side of a match.

    Attributes:
        name: Full team name.
        short_name: Abbreviation used in reasoning text.
        record: Season record as ``"W-L"`` or ``"W-L-D"``.  ``None`` if unknown.
        recent_form: Recent results, **newest first**, each ``"W"``, ``"L"``
            or ``"D"``.
    """

    name: str
    short_name: str = ""
    record: Optional[str] = None
    recent_form: Tuple[str, ...] = ()

    @property
    def label(self) -> str:
        return self.short_name or self.name


@dataclass(frozen=True, slots=True)
class ScoreLine:
    home: int
    away: int
    period: Optional[str] = None


@dataclass(frozen=True, slots=True)
class MarketOdds:
    """Moneyline prices in decimal odds; ``None`` means unknown."""

    home_win: Optional[float] = None
    away_win: Optional[float] = None
    draw: Optional[float] = None

    @classmethod
    def from_raw(cls, home_win=None, away_win=None, draw=None) -> "MarketOdds":
        return cls(_clean_odds(home_win), _clean_odds(away_win), _clean_odds(draw))

    def price_for(self, outcome: Outcome) -> Optional[float]:
        if outcome is Outcome.HOME:
            return self.home_win
        if outcome is Outcome.AWAY:
            return self.away_win
        return self.draw


@dataclass(frozen=True, slots=True)
class SpreadMarket:
    home_line: float
    away_line: float
    home_odds: Optional[float] = None
    away_odds: Optional[float] = None


@dataclass(frozen=True, slots=True)
class TotalMarket:
    line: float
    over_odds: Optional[float] = None
    under_odds: Optional[float] = None


@dataclass(frozen=True, slots=True)
class BookQuote:
    """A single sportsbook's prices for a match at a point in time."""

    book_id: str
    home_win: Optional[float] = None
    away_win: Optional[float] = None
    draw: Optional[float] = None
    spread: Optional[SpreadMarket] = None
    total: Optional[TotalMarket] = None
    timestamp: Optional[datetime] = None

    @classmethod
    def from_raw(
        cls,
        book_id: str,
        home_win=None,
        away_win=None,
        draw=None,
        *,
        spread: Optional[SpreadMarket] = None,
        total: Optional[TotalMarket] = None,
        timestamp: Optional[datetime] = None,
    ) -> "BookQuote":
        return cls(
            book_id=book_id,
            home_win=_clean_odds(home_win),
            away_win=_clean_odds(away_win),
            draw=_clean_odds(draw),
            spread=spread,
            total=total,
            timestamp=as_utc(timestamp),
        )

    def price_for(self, outcome: Outcome) -> Optional[float]:
        if outcome is Outcome.HOME:
            return self.home_win
        if outcome is Outcome.AWAY:
            return self.away_win
        return self.draw


@dataclass(frozen=True, slots=True)
class Match:
    """A scheduled, live or finished fixture with its market prices."""

    match_id: str
    league: str
    start_time: datetime
    home: TeamInfo
    away: TeamInfo
    status: MatchStatus = MatchStatus.SCHEDULED
    score: Optional[ScoreLine] = None
    opening_odds: Optional[MarketOdds] = None
    quotes: Tuple[BookQuote, ...] = ()

    @property
    def has_draw_market(self) -> bool:
        """True if any price source lists a draw line."""
        if self.opening_odds is not None and self.opening_odds.draw is not None:
            return True
        return any(q.draw is not None for q in self.quotes)

    @property
    def outcomes(self) -> Tuple[Outcome, ...]:
        if self.has_draw_market:
            return (Outcome.HOME, Outcome.AWAY, Outcome.DRAW)
        return (Outcome.HOME, Outcome.AWAY)

    def team_for(self, outcome: Outcome) -> Optional[TeamInfo]:
        if outcome is Outcome.HOME:
            return self.home
        if outcome is Outcome.AWAY:
            return self.away
        return None


# ---------------------------------------------------------------------------
# Feature inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class HeadToHead:
    home_wins: int = 0
    away_wins: int = 0
    draws: int = 0

    @property
    def total_games(self) -> int:
        return self.home_wins + self.away_wins + self.draws


@dataclass(frozen=True, slots=True)
class InjuryReport:
    """Single player availability entry.

    Attributes:
        player: Player name.
        status: ``"Out"``, ``"Doubtful"``, ``"Questionable"`` or ``"Probable"``.
        impact_tier: ``"star"``, ``"starter"``, ``"role"`` or ``"bench"``.
            ``None`` lets the injury service classify from ``usage_rate``.
        usage_rate: Share of team usage on a 0-100 scale, if known.
    """

    player: str
    status: str
    impact_tier: Optional[str] = None
    usage_rate: Optional[float] = None


@dataclass(frozen=True, slots=True)
class WeatherConditions:
    temperature_f: Optional[float] = None
    wind_mph: Optional[float] = None
    precipitation_chance: Optional[float] = None  # 0-1
    condition: str = ""
    is_indoor: bool = False


@dataclass(frozen=True, slots=True)
class ScheduleContext:
    home_rest_days: Optional[int] = None
    away_rest_days: Optional[int] = None

    @property
    def rest_differential(self) -> Optional[int]:
        if self.home_rest_days is None or self.away_rest_days is None:
            return None
        return self.home_rest_days - self.away_rest_days


@dataclass(frozen=True, slots=True)
class MatchFeatures:
    """Supplementary feeds for one match.  Every field is optional."""

    head_to_head: Optional[HeadToHead] = None
    home_injuries: Optional[Tuple[InjuryReport, ...]] = None
    away_injuries: Optional[Tuple[InjuryReport, ...]] = None
    weather: Optional[WeatherConditions] = None
    schedule: Optional[ScheduleContext] = None

    @property
    def has_injury_report(self) -> bool:
        return self.home_injuries is not None or self.away_injuries is not None


# ---------------------------------------------------------------------------
# Predictions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ProjectedScore:
    home: float
    away: float


@dataclass(frozen=True, slots=True)
class Prediction:
    """One algorithm's verdict on one match.

    ``confidence`` is on a 0-100 scale and is read downstream as the
    algorithm's probability (in percent) that ``recommended`` happens.
    ``metrics`` is filled in by :func:`dataclasses.replace` once betting
    metrics have been computed; the original object is never touched.
    """

    match_id: str
    algorithm: AlgorithmId
    recommended: Outcome
    confidence: float
    projected_score: ProjectedScore
    metrics: Optional["BettingMetrics"] = None
    notes: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not math.isfinite(self.confidence) or not (0.0 <= self.confidence <= 100.0):
            raise ValueError(
                f"confidence must be in [0, 100], got {self.confidence!r}."
            )


@dataclass(frozen=True, slots=True)
class BettingMetrics:
    """Sharp-betting numbers for one pick at one price.

    Every field is ``None`` when the odds it needs are unknown.
    """

    decimal_odds: Optional[float] = None
    implied_probability: Optional[float] = None
    true_probability: Optional[float] = None
    ev_percent: Optional[float] = None
    kelly_fraction: Optional[float] = None
    kelly_stake_units: Optional[float] = None
    expected_growth: Optional[float] = None
    clv_percent: Optional[float] = None
    clv_category: Optional[str] = None
    beat_closing_line: Optional[bool] = None

    def to_dict(self) -> dict:
        return {
            "decimal_odds": self.decimal_odds,
            "implied_probability": self.implied_probability,
            "true_probability": self.true_probability,
            "ev_percent": self.ev_percent,
            "kelly_fraction": self.kelly_fraction,
            "kelly_stake_units": self.kelly_stake_units,
            "expected_growth": self.expected_growth,
            "clv_percent": self.clv_percent,
            "clv_category": self.clv_category,
            "beat_closing_line": self.beat_closing_line,
        }


# ---------------------------------------------------------------------------
# Historical performance
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AlgorithmPerformance:
    """Read-only track record of one algorithm, supplied by the caller.

    Attributes:
        algorithm: Which predictor this summary describes.
        win_rate: Cumulative win rate in percent (0-100).
        recent: Settled results, oldest first, each ``"W"`` or ``"L"``.
        total_picks: Number of settled picks behind ``win_rate``.
        avg_confidence: Mean stated confidence of those picks, if known.
    """

    algorithm: AlgorithmId
    win_rate: float
    recent: Tuple[str, ...] = ()
    total_picks: int = 0
    avg_confidence: Optional[float] = None
