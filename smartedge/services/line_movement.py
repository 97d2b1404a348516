"""
Line movement analysis over timestamped book quotes.

Feeds two consumers:

    1. The value predictor, which nudges its confidence toward the side
       the market is moving to.
    2. The SmartScore odds-movement component, which rewards a price that
       is lengthening on our pick and penalises one that is shortening.

Quotes without a timestamp or without a valid price for the outcome are
ignored.  Movement is measured within each book, never between books, and
the per-book figures are combined by median.  A book needs quotes at two
distinct times to count; every function returns ``None`` when no book
qualifies.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from smartedge.core.odds_math import is_valid_odds
from smartedge.core.types import BookQuote, Outcome, as_utc

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

STABLE_MOVE_PCT = 1.0       # Below this percentage the line is "stable"
SHARP_MOVE_PCT = 3.0        # Movement percentage for a sharp-money flag
SHARP_VELOCITY = 0.5        # Decimal-odds change per hour for the same flag
MIN_SPAN_HOURS = 0.1        # Floor on elapsed time for velocity


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LineMovement:
    """Opening-to-latest price change for one outcome."""

    outcome: Outcome
    opening_odds: float
    latest_odds: float
    high_odds: float
    low_odds: float
    movement: float             # latest - opening (signed)
    movement_pct: float         # |movement| / opening * 100
    direction: str              # "up", "down" or "stable"
    velocity_per_hour: float
    sharp_money: bool
    samples: int
    books: int = 1

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "opening_odds": self.opening_odds,
            "latest_odds": self.latest_odds,
            "high_odds": self.high_odds,
            "low_odds": self.low_odds,
            "movement": self.movement,
            "movement_pct": self.movement_pct,
            "direction": self.direction,
            "velocity_per_hour": self.velocity_per_hour,
            "sharp_money": self.sharp_money,
            "samples": self.samples,
            "books": self.books,
        }


@dataclass(frozen=True)
class ReverseLineMovement:
    """Home and away prices moving in opposite directions.

    ``favours`` is the side whose price lengthened while the other side
    shortened.
    """

    favours: Outcome
    home_movement: float
    away_movement: float


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------

def _median(values: List[float]) -> float:
    s = sorted(values)
    n = len(s)
    mid = n // 2
    return s[mid] if n % 2 else (s[mid - 1] + s[mid]) / 2.0


def _book_histories(
    quotes: Iterable[BookQuote], outcome: Outcome
) -> Dict[str, List[Tuple[datetime, float]]]:
    """Usable price points per book, oldest first.

    Books with fewer than two distinct timestamps are dropped: the gap
    between two books quoting at once is a price difference, not a move.
    """
    by_book: Dict[str, List[Tuple[datetime, float]]] = defaultdict(list)
    for q in quotes:
        price = q.price_for(outcome)
        if q.timestamp is None or not is_valid_odds(price):
            continue
        by_book[q.book_id].append((as_utc(q.timestamp), price))

    histories = {}
    for book_id, points in by_book.items():
        # Price breaks timestamp ties so caller order never matters
        points.sort()
        if points[0][0] == points[-1][0]:
            continue
        histories[book_id] = points
    return histories


def analyze_line_movement(
    quotes: Iterable[BookQuote], outcome: Outcome
) -> Optional[LineMovement]:
    """Summarise how the price on ``outcome`` moved across ``quotes``.

    Each book's opening and latest price are taken from that book's own
    quotes; the market figure is the median across books.

    Args:
        quotes: Book quotes, any order.
        outcome: Which outcome's price to follow.

    Returns:
        :class:`LineMovement`, or ``None`` when no book quoted the outcome
        at two distinct times.
    """
    histories = _book_histories(quotes, outcome)
    if not histories:
        return None

    books = sorted(histories)
    opening = _median([histories[b][0][1] for b in books])
    latest = _median([histories[b][-1][1] for b in books])
    span_hours = _median(
        [(histories[b][-1][0] - histories[b][0][0]).total_seconds() / 3600.0 for b in books]
    )
    prices = [p for b in books for _, p in histories[b]]

    movement = latest - opening
    movement_pct = abs(movement) / opening * 100.0

    if movement_pct < STABLE_MOVE_PCT:
        direction = "stable"
    elif movement > 0:
        direction = "up"
    else:
        direction = "down"

    velocity = abs(movement) / max(span_hours, MIN_SPAN_HOURS)
    sharp = movement_pct > SHARP_MOVE_PCT and velocity > SHARP_VELOCITY

    return LineMovement(
        outcome=outcome,
        opening_odds=opening,
        latest_odds=latest,
        high_odds=max(prices),
        low_odds=min(prices),
        movement=movement,
        movement_pct=movement_pct,
        direction=direction,
        velocity_per_hour=velocity,
        sharp_money=sharp,
        samples=len(prices),
        books=len(books),
    )


def reverse_line_movement(quotes: Iterable[BookQuote]) -> Optional[ReverseLineMovement]:
    """Detect home and away prices moving in opposite directions.

    Returns ``None`` when either side lacks a movement or both moved the
    same way (or not at all).
    """
    quotes = tuple(quotes)
    home = analyze_line_movement(quotes, Outcome.HOME)
    away = analyze_line_movement(quotes, Outcome.AWAY)
    if home is None or away is None:
        return None
    if home.movement > 0 and away.movement < 0:
        favours = Outcome.HOME
    elif home.movement < 0 and away.movement > 0:
        favours = Outcome.AWAY
    else:
        return None
    logger.debug(
        "Reverse line movement toward %s (home %+.2f, away %+.2f)",
        favours.value, home.movement, away.movement,
    )
    return ReverseLineMovement(favours, home.movement, away.movement)
