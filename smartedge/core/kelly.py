"""Expected value and Kelly sizing - the single source of truth for stake math.

All functions here are **pure**: no I/O, no logging.
Import from this module; never reimplement Kelly locally in services.

The functions cover the sizing contexts in the pipeline:

1. :func:`expected_value_pct` - percentage EV of a bet at a price.
2. :func:`full_kelly` - unscaled Kelly fraction, may be negative.
3. :func:`kelly_fraction` - fractional, capped, floored-at-zero Kelly.
4. :func:`kelly_to_units` - bankroll fraction to stake units
   (1 unit = 1% of bankroll).
5. :func:`expected_growth` - expected log-growth of bankroll at a fraction.

Design decisions
----------------
* **Fractional Kelly** (quarter Kelly by default) because the ensemble's
  true-probability estimate carries real estimation error and overbetting is
  punished asymmetrically (geometric ruin vs. forgone EV).
* The multiplier and the hard cap are policy constants owned by
  :class:`~smartedge.core.policy.ScoringPolicy`; the defaults here only exist
  so the math is usable standalone.

Run tests with::

    pytest tests/test_kelly.py -v
"""

from __future__ import annotations

import math
from typing import Final

from smartedge.core.errors import InvalidInputError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Default fractional multiplier applied to full Kelly (quarter Kelly).
DEFAULT_KELLY_MULTIPLIER: Final[float] = 0.25

#: Default hard cap on any single fractional Kelly output (5% of bankroll).
DEFAULT_MAX_KELLY_FRACTION: Final[float] = 0.05

#: Units per whole bankroll.  1 unit = 1% of bankroll.
UNITS_PER_BANKROLL: Final[float] = 100.0


def _check(win_prob: float, decimal_odds: float) -> None:
    if not (math.isfinite(win_prob) and math.isfinite(decimal_odds)):
        raise InvalidInputError(
            f"win_prob and decimal_odds must be finite, got {win_prob!r}, {decimal_odds!r}."
        )
    if not (0.0 <= win_prob <= 1.0):
        raise InvalidInputError(f"win_prob must be in [0, 1], got {win_prob!r}.")
    if decimal_odds <= 1.0:
        raise InvalidInputError(f"decimal_odds must be > 1.0, got {decimal_odds!r}.")


# ---------------------------------------------------------------------------
# Expected value
# ---------------------------------------------------------------------------


def expected_value_pct(win_prob: float, decimal_odds: float) -> float:
    """Percentage expected return per unit staked.

    ``EV% = (p · odds − 1) · 100``

    Examples::

        expected_value_pct(0.55, 2.0)  →  10.0
        expected_value_pct(0.50, 1.91) →  -4.5
    """
    _check(win_prob, decimal_odds)
    return (win_prob * decimal_odds - 1.0) * 100.0


# ---------------------------------------------------------------------------
# Kelly
# ---------------------------------------------------------------------------


def full_kelly(win_prob: float, decimal_odds: float) -> float:
    """Unscaled Kelly fraction ``f* = (b·p − q) / b``.

    ``b = decimal_odds − 1`` is the profit per unit staked.  The result is
    negative for negative-EV bets; callers that size stakes want
    :func:`kelly_fraction`.

    References:
        Kelly, J. L. (1956). A New Interpretation of Information Rate.
        *Bell System Technical Journal*, 35(4), 917–926.
    """
    _check(win_prob, decimal_odds)
    b = decimal_odds - 1.0
    return (b * win_prob - (1.0 - win_prob)) / b


def kelly_fraction(
    win_prob: float,
    decimal_odds: float,
    *,
    multiplier: float = DEFAULT_KELLY_MULTIPLIER,
    max_fraction: float = DEFAULT_MAX_KELLY_FRACTION,
) -> float:
    """Fractional Kelly bet size for a simple win/loss outcome.

    The edge test is done on ``p · odds`` directly rather than on the sign
    of :func:`full_kelly`, so ``p · odds ≤ 1`` returns exactly 0.0 with no
    floating-point noise at the break-even boundary.

    Args:
        win_prob: Estimated true probability of winning, in ``[0, 1]``.
        decimal_odds: Decimal odds for the bet, ``> 1``.
        multiplier: Fraction of full Kelly to stake (0.25 = quarter Kelly).
        max_fraction: Hard cap on the output fraction.

    Returns:
        Bankroll fraction in ``[0, max_fraction]``.

    Raises:
        InvalidInputError: On NaN/infinite input, ``win_prob`` outside
            ``[0, 1]`` or ``decimal_odds ≤ 1``.

    Examples::

        kelly_fraction(0.55, 2.0)  →  0.025   (full Kelly 0.10 × 0.25)
        kelly_fraction(0.45, 2.0)  →  0.0     (negative EV → 0)
    """
    _check(win_prob, decimal_odds)
    if win_prob * decimal_odds <= 1.0:
        return 0.0
    fractional = full_kelly(win_prob, decimal_odds) * multiplier
    return max(0.0, min(fractional, max_fraction))


def kelly_to_units(fraction: float) -> float:
    """Convert a bankroll fraction to stake units (1 unit = 1% of bankroll)."""
    return fraction * UNITS_PER_BANKROLL


def expected_growth(win_prob: float, decimal_odds: float, fraction: float) -> float:
    """Expected log-growth of bankroll per bet when staking ``fraction``.

    ``G(f) = p · ln(1 + f·b) + q · ln(1 − f)``

    Returns 0.0 for ``fraction == 0`` and ``-inf`` when ``fraction ≥ 1``
    with a non-zero loss probability (certain ruin on a loss).
    """
    _check(win_prob, decimal_odds)
    if fraction <= 0.0:
        return 0.0
    b = decimal_odds - 1.0
    q = 1.0 - win_prob
    if fraction >= 1.0:
        return -math.inf if q > 0.0 else win_prob * math.log1p(fraction * b)
    return win_prob * math.log1p(fraction * b) + q * math.log1p(-fraction)
