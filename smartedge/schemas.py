"""
Pydantic request/response schemas for the SmartEdge API.

Request models describe the JSON a caller sends and convert themselves into
the frozen domain dataclasses via ``to_domain()``.  Prices are accepted as
raw numbers and pass through the ``from_raw`` constructors, so an invalid
price (≤ 1.0) becomes "unknown" instead of failing the request.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from smartedge.core.errors import ConfigurationError
from smartedge.core.types import (
    AlgorithmId,
    AlgorithmPerformance,
    BookQuote,
    HeadToHead,
    InjuryReport,
    MarketOdds,
    Match,
    MatchFeatures,
    MatchStatus,
    Outcome,
    Prediction,
    ProjectedScore,
    ScheduleContext,
    ScoreLine,
    SpreadMarket,
    TeamInfo,
    TotalMarket,
    WeatherConditions,
)
from smartedge.services.bankroll_sim import (
    SettledBet,
    SimulationConfig,
    StakeRule,
    WinProbSource,
)


# ---------------------------------------------------------------------------
# Match records
# ---------------------------------------------------------------------------

class TeamIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    short_name: str = Field("", max_length=20)
    record: Optional[str] = Field(None, description='Season record, "W-L" or "W-L-D"')
    recent_form: List[str] = Field(
        default_factory=list, description="Recent results newest first, e.g. [\"W\", \"L\"]"
    )

    @field_validator("recent_form")
    @classmethod
    def validate_form(cls, v: List[str]) -> List[str]:
        cleaned = [r.strip().upper() for r in v]
        bad = [r for r in cleaned if r not in ("W", "L", "D")]
        if bad:
            raise ValueError(f"recent_form entries must be W, L or D; got {bad}")
        return cleaned

    def to_domain(self) -> TeamInfo:
        return TeamInfo(
            name=self.name,
            short_name=self.short_name,
            record=self.record,
            recent_form=tuple(self.recent_form),
        )


class SpreadIn(BaseModel):
    home_line: float
    away_line: float
    home_odds: Optional[float] = None
    away_odds: Optional[float] = None


class TotalIn(BaseModel):
    line: float
    over_odds: Optional[float] = None
    under_odds: Optional[float] = None


class QuoteIn(BaseModel):
    """One sportsbook's decimal prices at ``timestamp``."""

    book_id: str = Field(..., min_length=1, max_length=60)
    home_win: Optional[float] = None
    away_win: Optional[float] = None
    draw: Optional[float] = None
    spread: Optional[SpreadIn] = None
    total: Optional[TotalIn] = None
    timestamp: Optional[datetime] = None

    def to_domain(self) -> BookQuote:
        return BookQuote.from_raw(
            self.book_id,
            self.home_win,
            self.away_win,
            self.draw,
            spread=SpreadMarket(**self.spread.model_dump()) if self.spread else None,
            total=TotalMarket(**self.total.model_dump()) if self.total else None,
            timestamp=self.timestamp,
        )


class OddsIn(BaseModel):
    home_win: Optional[float] = None
    away_win: Optional[float] = None
    draw: Optional[float] = None

    def to_domain(self) -> MarketOdds:
        return MarketOdds.from_raw(self.home_win, self.away_win, self.draw)


class MatchIn(BaseModel):
    match_id: str = Field(..., min_length=1)
    league: str = Field(..., min_length=1, description="League code, e.g. NBA, EPL")
    start_time: datetime
    home: TeamIn
    away: TeamIn
    status: MatchStatus = MatchStatus.SCHEDULED
    score: Optional[Dict[str, int]] = Field(None, description='{"home": 0, "away": 0}')
    opening_odds: Optional[OddsIn] = None
    quotes: List[QuoteIn] = Field(default_factory=list)

    def to_domain(self) -> Match:
        score = None
        if self.score is not None:
            score = ScoreLine(home=self.score.get("home", 0), away=self.score.get("away", 0))
        return Match(
            match_id=self.match_id,
            league=self.league,
            start_time=self.start_time,
            home=self.home.to_domain(),
            away=self.away.to_domain(),
            status=self.status,
            score=score,
            opening_odds=self.opening_odds.to_domain() if self.opening_odds else None,
            quotes=tuple(q.to_domain() for q in self.quotes),
        )

    model_config = {
        "json_schema_extra": {
            "example": {
                "match_id": "nba-2026-10-21-bos-nyk",
                "league": "NBA",
                "start_time": "2026-10-21T23:30:00Z",
                "home": {"name": "Boston Celtics", "short_name": "BOS", "record": "3-1",
                         "recent_form": ["W", "W", "L", "W"]},
                "away": {"name": "New York Knicks", "short_name": "NYK", "record": "2-2",
                         "recent_form": ["L", "W", "W", "L"]},
                "quotes": [
                    {"book_id": "draftkings", "home_win": 1.95, "away_win": 1.95,
                     "timestamp": "2026-10-21T12:00:00Z"},
                    {"book_id": "fanduel", "home_win": 2.05, "away_win": 1.85,
                     "timestamp": "2026-10-21T18:00:00Z"},
                ],
            }
        }
    }


# ---------------------------------------------------------------------------
# Feature feeds
# ---------------------------------------------------------------------------

class InjuryIn(BaseModel):
    player: str = Field(..., min_length=1)
    status: str = Field(..., description="Out, Doubtful, Questionable or Probable")
    impact_tier: Optional[Literal["star", "starter", "role", "bench"]] = None
    usage_rate: Optional[float] = Field(None, ge=0.0, le=100.0)


class WeatherIn(BaseModel):
    temperature_f: Optional[float] = None
    wind_mph: Optional[float] = Field(None, ge=0.0)
    precipitation_chance: Optional[float] = Field(None, ge=0.0, le=1.0)
    condition: str = ""
    is_indoor: bool = False


class FeaturesIn(BaseModel):
    head_to_head: Optional[Dict[str, int]] = Field(
        None, description='{"home_wins": 3, "away_wins": 1, "draws": 0}'
    )
    home_injuries: Optional[List[InjuryIn]] = None
    away_injuries: Optional[List[InjuryIn]] = None
    weather: Optional[WeatherIn] = None
    home_rest_days: Optional[int] = Field(None, ge=0)
    away_rest_days: Optional[int] = Field(None, ge=0)

    def to_domain(self) -> MatchFeatures:
        h2h = None
        if self.head_to_head is not None:
            h2h = HeadToHead(
                home_wins=self.head_to_head.get("home_wins", 0),
                away_wins=self.head_to_head.get("away_wins", 0),
                draws=self.head_to_head.get("draws", 0),
            )
        schedule = None
        if self.home_rest_days is not None or self.away_rest_days is not None:
            schedule = ScheduleContext(self.home_rest_days, self.away_rest_days)
        return MatchFeatures(
            head_to_head=h2h,
            home_injuries=_injuries(self.home_injuries),
            away_injuries=_injuries(self.away_injuries),
            weather=WeatherConditions(**self.weather.model_dump()) if self.weather else None,
            schedule=schedule,
        )


def _injuries(items: Optional[List[InjuryIn]]):
    if items is None:
        return None
    return tuple(InjuryReport(**i.model_dump()) for i in items)


class PerformanceIn(BaseModel):
    algorithm: AlgorithmId
    win_rate: float = Field(..., ge=0.0, le=100.0)
    recent: List[Literal["W", "L"]] = Field(default_factory=list, description="Oldest first")
    total_picks: int = Field(0, ge=0)
    avg_confidence: Optional[float] = Field(None, ge=0.0, le=100.0)

    def to_domain(self) -> AlgorithmPerformance:
        return AlgorithmPerformance(
            algorithm=self.algorithm,
            win_rate=self.win_rate,
            recent=tuple(self.recent),
            total_picks=self.total_picks,
            avg_confidence=self.avg_confidence,
        )


def performances_to_domain(
    items: Optional[List[PerformanceIn]],
) -> Optional[Dict[AlgorithmId, AlgorithmPerformance]]:
    if not items:
        return None
    return {p.algorithm: p.to_domain() for p in items}


# ---------------------------------------------------------------------------
# Predictions
# ---------------------------------------------------------------------------

class PredictionIn(BaseModel):
    """A prediction supplied by the caller (e.g. replayed from history)."""

    match_id: str
    algorithm: AlgorithmId
    recommended: Outcome
    confidence: float = Field(..., ge=0.0, le=100.0)
    projected_home: float = 0.0
    projected_away: float = 0.0

    def to_domain(self) -> Prediction:
        return Prediction(
            match_id=self.match_id,
            algorithm=self.algorithm,
            recommended=self.recommended,
            confidence=self.confidence,
            projected_score=ProjectedScore(self.projected_home, self.projected_away),
        )


def prediction_to_dict(p: Prediction) -> dict:
    return {
        "match_id": p.match_id,
        "algorithm": p.algorithm.value,
        "recommended": p.recommended.value,
        "confidence": p.confidence,
        "projected_score": {"home": p.projected_score.home, "away": p.projected_score.away},
        "metrics": p.metrics.to_dict() if p.metrics else None,
        "notes": list(p.notes),
    }


# ---------------------------------------------------------------------------
# Endpoint payloads
# ---------------------------------------------------------------------------

class PredictRequest(BaseModel):
    """Payload for POST /api/predict."""

    match: MatchIn
    features: Optional[FeaturesIn] = None
    performances: Optional[List[PerformanceIn]] = None


class PredictResponse(BaseModel):
    match_id: str
    predictions: List[dict]
    consensus: dict


class ArbitrageRequest(BaseModel):
    """Payload for POST /api/arbitrage."""

    match: MatchIn
    total_stake: float = Field(100.0, description="Amount split across the legs")


class SmartScoreRequest(BaseModel):
    """
    Payload for POST /api/smart-score.

    When ``predictions`` is omitted the ensemble is run on ``match`` first.
    """

    match: MatchIn
    predictions: Optional[List[PredictionIn]] = None
    features: Optional[FeaturesIn] = None
    performances: Optional[List[PerformanceIn]] = None


class MetricsRequest(BaseModel):
    """
    Payload for POST /api/metrics.

    Pass ``decimal_odds`` directly, or ``american_odds`` for feeds that quote
    American prices.  Omitting both yields all-null metrics.
    """

    prediction: PredictionIn
    decimal_odds: Optional[float] = None
    american_odds: Optional[float] = None
    closing_odds: Optional[float] = None
    min_clv: float = Field(2.0, description="CLV percent a pick must reach to be placed")
    min_ev: float = Field(3.0, description="EV percent a pick must reach to be placed")


class StakeRuleIn(BaseModel):
    kind: Literal["flat", "percentage", "kelly"]
    amount: float = 0.0
    kelly_multiplier: float = 0.25
    max_fraction: float = 0.05

    def to_domain(self) -> StakeRule:
        return StakeRule(
            kind=self.kind,
            amount=self.amount,
            kelly_multiplier=self.kelly_multiplier,
            max_fraction=self.max_fraction,
        )


class SettledBetIn(BaseModel):
    decimal_odds: float
    won: bool


class SimulateRequest(BaseModel):
    """
    Payload for POST /api/simulate.

    Exactly one win-probability source: ``win_prob`` with ``decimal_odds``,
    ``samples`` of ``[win_prob, decimal_odds]`` pairs, or ``settled_bets``.
    """

    starting_bankroll: float
    paths: int
    bets_per_path: int
    stake_rule: StakeRuleIn
    win_prob: Optional[float] = None
    decimal_odds: Optional[float] = None
    samples: Optional[List[List[float]]] = None
    settled_bets: Optional[List[SettledBetIn]] = None
    seed: Optional[int] = None
    workers: Optional[int] = None
    histogram_bins: int = 10
    scenarios: bool = Field(False, description="Also run bull and bear win-probability scenarios")

    @field_validator("samples")
    @classmethod
    def validate_samples(cls, v: Optional[List[List[float]]]) -> Optional[List[List[float]]]:
        if v is not None and any(len(pair) != 2 for pair in v):
            raise ValueError("each sample must be a [win_prob, decimal_odds] pair")
        return v

    def win_prob_source(self) -> WinProbSource:
        given = [
            self.win_prob is not None,
            self.samples is not None,
            self.settled_bets is not None,
        ]
        if sum(given) != 1:
            raise ConfigurationError("Provide exactly one of win_prob, samples or settled_bets.")
        if self.win_prob is not None:
            if self.decimal_odds is None:
                raise ConfigurationError("win_prob requires decimal_odds.")
            return WinProbSource.fixed(self.win_prob, self.decimal_odds)
        if self.samples is not None:
            return WinProbSource.from_samples(self.samples)
        return WinProbSource.from_settled_bets(
            SettledBet(b.decimal_odds, b.won) for b in self.settled_bets
        )

    def to_domain(self) -> SimulationConfig:
        return SimulationConfig(
            starting_bankroll=self.starting_bankroll,
            paths=self.paths,
            bets_per_path=self.bets_per_path,
            stake_rule=self.stake_rule.to_domain(),
            win_prob_source=self.win_prob_source(),
            seed=self.seed,
            workers=self.workers,
            histogram_bins=self.histogram_bins,
        )

    model_config = {
        "json_schema_extra": {
            "example": {
                "starting_bankroll": 1000.0,
                "paths": 1000,
                "bets_per_path": 200,
                "stake_rule": {"kind": "kelly", "kelly_multiplier": 0.25},
                "win_prob": 0.55,
                "decimal_odds": 1.95,
                "seed": 42,
            }
        }
    }


class BankrollRiskRequest(BaseModel):
    """
    Payload for POST /api/bankroll/risk.

    ``unit_size`` defaults to the fractional-Kelly unit for the given edge.
    """

    bankroll: float = Field(..., gt=0)
    win_prob: float = Field(..., gt=0, lt=1)
    decimal_odds: float = Field(..., gt=1)
    unit_size: Optional[float] = Field(None, gt=0)
    kelly_multiplier: float = Field(0.25, gt=0, le=1)


class ScoreRequest(BaseModel):
    """Payload for POST /api/score (batch pass)."""

    matches: List[MatchIn]
    features: Dict[str, FeaturesIn] = Field(
        default_factory=dict, description="Feature feeds keyed by match_id"
    )
    performances: Optional[List[PerformanceIn]] = None
    top: int = Field(10, ge=0, le=500, description="How many matches to rank by SmartScore")


class ScoreResponse(BaseModel):
    scored: int
    failed: int
    results: List[dict]
    failures: List[dict]
    top_match_ids: List[str]
    arbitrage: List[dict]
