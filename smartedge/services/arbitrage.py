"""
Cross-book arbitrage detection.

For each outcome take the best decimal price across all live book quotes
and sum the implied probabilities::

    S = Σ 1 / best_odds(o)

``S < 1`` means backing every outcome at its best price locks in a profit.
Staking ``stake_o = total · (1 / best_odds(o)) / S`` on each outcome pays
``total / S`` whichever outcome happens.  ``margin_percent`` is the
arbitrage percentage below 100, ``(1 − S) · 100``; the return on the total
stake, ``(1 − S) / S``, is :attr:`ArbitrageResult.guaranteed_profit`.

Only live quotes count: the opening line is history, not a bettable price.
If any outcome (including the draw, when the match has a draw market) has
no valid price the sum is unknown and no opportunity is reported.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from smartedge.core.errors import ConfigurationError
from smartedge.core.odds_math import best_odds
from smartedge.core.types import Match, Outcome

logger = logging.getLogger(__name__)

DEFAULT_TOTAL_STAKE = 100.0


@dataclass(frozen=True)
class ArbitrageLeg:
    outcome: Outcome
    book_id: str
    odds: float
    stake: float

    @property
    def payout(self) -> float:
        return self.stake * self.odds


@dataclass(frozen=True)
class ArbitrageResult:
    """Arbitrage verdict for one match.

    ``implied_sum`` is ``None`` when some outcome has no valid price.
    ``margin_percent`` and ``legs`` are only populated for an opportunity.
    """

    match_id: str
    has_opportunity: bool
    implied_sum: Optional[float] = None
    margin_percent: Optional[float] = None
    legs: Tuple[ArbitrageLeg, ...] = ()
    total_stake: Optional[float] = None

    @property
    def guaranteed_payout(self) -> Optional[float]:
        if not self.has_opportunity or self.implied_sum is None or self.total_stake is None:
            return None
        return self.total_stake / self.implied_sum

    @property
    def guaranteed_profit(self) -> Optional[float]:
        payout = self.guaranteed_payout
        return None if payout is None else payout - self.total_stake

    def to_dict(self) -> dict:
        return {
            "match_id": self.match_id,
            "has_opportunity": self.has_opportunity,
            "implied_sum": self.implied_sum,
            "margin_percent": self.margin_percent,
            "total_stake": self.total_stake,
            "guaranteed_payout": self.guaranteed_payout,
            "guaranteed_profit": self.guaranteed_profit,
            "legs": [
                {"outcome": l.outcome.value, "book_id": l.book_id, "odds": l.odds, "stake": l.stake}
                for l in self.legs
            ],
        }


def detect_arbitrage(match: Match, total_stake: float = DEFAULT_TOTAL_STAKE) -> ArbitrageResult:
    """Test ``match`` for a cross-book arbitrage.

    Args:
        match: Match whose live quotes are searched.
        total_stake: Amount to split across the legs of an opportunity.

    Returns:
        :class:`ArbitrageResult`; ``has_opportunity`` is True iff the best
        price per outcome gives an implied sum strictly below 1.

    Raises:
        ConfigurationError: If ``total_stake`` is not a positive finite number.
    """
    if not math.isfinite(total_stake) or total_stake <= 0:
        raise ConfigurationError(f"total_stake must be positive and finite, got {total_stake!r}.")

    best = {o: best_odds(match.quotes, o) for o in match.outcomes}
    missing = [o.value for o, price in best.items() if price is None]
    if missing:
        logger.debug("Arbitrage %s: no valid price for %s", match.match_id, ", ".join(missing))
        return ArbitrageResult(match.match_id, has_opportunity=False)

    implied = {o: 1.0 / price.odds for o, price in best.items()}
    total = math.fsum(implied.values())
    if total >= 1.0:
        return ArbitrageResult(match.match_id, has_opportunity=False, implied_sum=total)

    legs = tuple(
        ArbitrageLeg(
            outcome=o,
            book_id=best[o].book_id,
            odds=best[o].odds,
            stake=total_stake * implied[o] / total,
        )
        for o in match.outcomes
    )
    margin = (1.0 - total) * 100.0
    logger.info("Arbitrage found on %s: sum=%.4f margin=%.2f%%", match.match_id, total, margin)
    return ArbitrageResult(
        match_id=match.match_id,
        has_opportunity=True,
        implied_sum=total,
        margin_percent=margin,
        legs=legs,
        total_stake=total_stake,
    )
