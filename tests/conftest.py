"""
Shared match builders for the SmartEdge test suite.
"""

from datetime import datetime, timedelta, timezone

import pytest

from smartedge.core.types import (
    AlgorithmId,
    BookQuote,
    MarketOdds,
    Match,
    Outcome,
    Prediction,
    ProjectedScore,
    TeamInfo,
)

T0 = datetime(2026, 10, 21, 12, 0, tzinfo=timezone.utc)


def quote(book, home=None, away=None, draw=None, hours=0.0):
    return BookQuote.from_raw(book, home, away, draw, timestamp=T0 + timedelta(hours=hours))


def make_match(
    match_id="m1",
    league="NBA",
    home_record="9-6",
    away_record="6-9",
    home_form=("W", "L", "W"),
    away_form=("L", "W", "L"),
    quotes=(),
    opening=None,
):
    return Match(
        match_id=match_id,
        league=league,
        start_time=T0 + timedelta(hours=8),
        home=TeamInfo("Home Team", "HOM", home_record, tuple(home_form)),
        away=TeamInfo("Away Team", "AWY", away_record, tuple(away_form)),
        opening_odds=MarketOdds.from_raw(*opening) if opening else None,
        quotes=tuple(quotes),
    )


def make_prediction(outcome=Outcome.HOME, confidence=60.0, algorithm=AlgorithmId.MOMENTUM, match_id="m1"):
    return Prediction(
        match_id=match_id,
        algorithm=algorithm,
        recommended=outcome,
        confidence=confidence,
        projected_score=ProjectedScore(100.0, 98.0),
    )


@pytest.fixture
def two_way_match():
    """NBA match, home slightly stronger, two books quoting."""
    return make_match(
        quotes=(quote("bookA", 1.95, 1.95), quote("bookB", 2.05, 1.85)),
    )


@pytest.fixture
def soccer_match():
    """EPL match with a draw market."""
    return make_match(
        match_id="epl1",
        league="EPL",
        home_record="6-2-2",
        away_record="3-4-3",
        home_form=("W", "D", "W"),
        away_form=("L", "D", "W"),
        quotes=(quote("bookA", 2.10, 3.60, 3.40), quote("bookB", 2.05, 3.75, 3.30)),
    )
