"""Decimal-odds mathematics - the single source of truth.

Every function here is **pure**: no I/O, no logging, no side effects.
Import from this module; never reimplement locally in services.

The pillars exposed are:

1. **Validation** - what counts as a usable decimal price.
2. **Conversion** - decimal ↔ implied probability, American ↔ decimal.
3. **Price shopping** - best price per outcome across books, and the
   spread between the best and worst quote.
4. **Vig removal** - proportional normalisation to a no-vig distribution.

Design decisions
----------------
* The "unknown" sentinel is ``None``.  Functions that read market data
  (:func:`implied_probability`, :func:`best_odds`, :func:`remove_vig`) never
  raise on malformed input; they return ``None`` and the caller checks.
  Only the explicit format converters raise, because feeding them garbage is
  a programmer error.
* Decimal odds of exactly 1.0 are rejected as well as anything below: a
  price of 1.0 returns the stake and nothing else, so its implied
  probability of 1 would poison every arbitrage sum it entered.
* :func:`best_odds` breaks ties by first-seen order so the same quote list
  always yields the same book, regardless of dict or set iteration order
  elsewhere in the pipeline.

Run tests with::

    pytest tests/test_odds_math.py -v
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Iterable, Mapping, Optional, Sequence

if TYPE_CHECKING:
    from smartedge.core.types import BookQuote, Match, Outcome

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

#: Decimal odds must be strictly greater than this to be a usable price.
MIN_DECIMAL_ODDS: Final[float] = 1.0

#: American-odds magnitude floor.  |odds| < 100 is not representable.
_MIN_AMERICAN_MAGNITUDE: Final[int] = 100


@dataclass(frozen=True, slots=True)
class BestPrice:
    """Best decimal price for one outcome and the book that offers it."""

    odds: float
    book_id: str


# ---------------------------------------------------------------------------
# Validation and conversion
# ---------------------------------------------------------------------------


def is_valid_odds(value: object) -> bool:
    """Return True if ``value`` is a finite number strictly greater than 1.0.

    Booleans are rejected even though ``bool`` subclasses ``int``.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > MIN_DECIMAL_ODDS


def implied_probability(decimal_odds: Optional[float]) -> Optional[float]:
    """Implied probability ``1 / decimal_odds`` (vig-inclusive).

    Args:
        decimal_odds: Decimal price, or ``None`` when unknown.

    Returns:
        Probability strictly inside ``(0, 1)``, or ``None`` when the price is
        unknown or invalid (≤ 1.0, NaN, infinite).

    Examples::

        implied_probability(2.0)  → 0.5
        implied_probability(1.25) → 0.8
        implied_probability(0.9)  → None
    """
    if not is_valid_odds(decimal_odds):
        return None
    return 1.0 / decimal_odds


def american_to_decimal(american: int | float) -> float:
    """Convert American odds to decimal odds.

    Examples::

        american_to_decimal(-110) → 1.9091
        american_to_decimal(+150) → 2.5000

    Raises:
        ValueError: If ``|american| < 100`` or the value is not finite.
    """
    if not math.isfinite(american) or abs(american) < _MIN_AMERICAN_MAGNITUDE:
        raise ValueError(
            f"Invalid American odds {american!r}: magnitude must be ≥ 100."
        )
    if american > 0:
        return american / 100.0 + 1.0
    return 100.0 / abs(american) + 1.0


def decimal_to_american(decimal_odds: float) -> int:
    """Convert decimal odds to the nearest American integer.

    Raises:
        ValueError: If ``decimal_odds`` is not a valid decimal price.
    """
    if not is_valid_odds(decimal_odds):
        raise ValueError(f"Decimal odds {decimal_odds!r} must be finite and > 1.0.")
    if decimal_odds >= 2.0:
        return round((decimal_odds - 1.0) * 100)
    return round(-100.0 / (decimal_odds - 1.0))


# ---------------------------------------------------------------------------
# Price shopping
# ---------------------------------------------------------------------------


def best_odds(quotes: Iterable["BookQuote"], outcome: "Outcome") -> Optional[BestPrice]:
    """Highest decimal price for ``outcome`` across ``quotes``.

    Quotes whose price for the outcome is missing or invalid are skipped.
    When two books quote the same best price the one seen first wins.

    Args:
        quotes: Book quotes in caller order.
        outcome: Which outcome to price.

    Returns:
        :class:`BestPrice`, or ``None`` if no quote carries a valid price.
    """
    best: Optional[BestPrice] = None
    for quote in quotes:
        price = getattr(quote, "price_for", None)
        if price is None:
            continue
        odds = price(outcome)
        if not is_valid_odds(odds):
            continue
        if best is None or odds > best.odds:
            best = BestPrice(odds=float(odds), book_id=quote.book_id)
    return best


def best_available_price(match: "Match", outcome: "Outcome") -> Optional[BestPrice]:
    """Best live quote for ``outcome``, falling back to the opening line.

    The opening line is reported with book id ``"opening"``.
    """
    best = best_odds(match.quotes, outcome)
    if best is not None or match.opening_odds is None:
        return best
    odds = match.opening_odds.price_for(outcome)
    if not is_valid_odds(odds):
        return None
    return BestPrice(odds=float(odds), book_id="opening")


def best_prices(
    quotes: Sequence["BookQuote"], outcomes: Iterable["Outcome"]
) -> dict["Outcome", Optional[BestPrice]]:
    """Best price per outcome in one call (``None`` values for unknown)."""
    return {outcome: best_odds(quotes, outcome) for outcome in outcomes}


def odds_spread(quotes: Iterable["BookQuote"], outcome: "Outcome") -> Optional[float]:
    """Max minus min valid price quoted for ``outcome``.

    Returns ``None`` with fewer than two valid prices; a single book gives
    no shopping signal.
    """
    prices = [q.price_for(outcome) for q in quotes]
    valid = [p for p in prices if is_valid_odds(p)]
    if len(valid) < 2:
        return None
    return max(valid) - min(valid)


# ---------------------------------------------------------------------------
# Vig removal
# ---------------------------------------------------------------------------


def overround(decimal_odds: Sequence[Optional[float]]) -> Optional[float]:
    """Sum of implied probabilities, or ``None`` if any price is unknown."""
    probs = [implied_probability(o) for o in decimal_odds]
    if not probs or any(p is None for p in probs):
        return None
    return math.fsum(probs)


def remove_vig(
    probabilities: Mapping["Outcome", Optional[float]],
) -> Optional[dict["Outcome", float]]:
    """Proportionally normalise raw implied probabilities to sum to 1.

    Proportional normalisation is exact when every outcome carries equal
    margin.  It is used here only as the market reference for the value
    predictor, where the favourite-longshot bias is second-order.

    Args:
        probabilities: Raw implied probability per outcome.

    Returns:
        No-vig probabilities keyed like the input, or ``None`` if any entry
        is unknown or non-positive.
    """
    if not probabilities:
        return None
    values = list(probabilities.values())
    if any(v is None or not math.isfinite(v) or v <= 0.0 for v in values):
        return None
    total = math.fsum(values)
    return {k: v / total for k, v in probabilities.items()}
