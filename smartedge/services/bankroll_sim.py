"""
Monte Carlo bankroll simulator.

Projects the long-run consequence of following a staking rule: N
independent paths of M sequential bets each, starting from the same
bankroll.  Each bet draws a ``(win_prob, decimal_odds)`` pair from a
:class:`WinProbSource`, sizes the stake with a :class:`StakeRule`, and
settles as a Bernoulli trial::

    win  → bankroll += stake · (odds − 1)
    loss → bankroll -= stake

Reproducibility
---------------
Path ``i`` uses its own generator ``np.random.default_rng(seed + i)`` and
draws all of its random numbers up front, so a path's trajectory depends
only on the seed and its index.  Sequential and thread-parallel runs
therefore produce bit-identical statistics.

Cancellation
------------
A :class:`CancellationToken` is checked before every path.  A cancelled
run raises :class:`~smartedge.core.errors.SimulationCancelled` and returns
nothing; partial paths are discarded.

Scenarios
---------
:func:`simulate_scenarios` reruns a configuration with every win
probability shifted up (bull) and down (bear) on the same seed.
:func:`risk_of_ruin` and :func:`optimal_unit_size` are closed-form
companions for sizing a betting unit.

Usage::

    cfg = SimulationConfig(
        starting_bankroll=1000.0,
        paths=2000,
        bets_per_path=250,
        stake_rule=StakeRule.kelly(multiplier=0.25),
        win_prob_source=WinProbSource.fixed(0.55, 1.95),
        seed=42,
    )
    result = simulate_bankroll(cfg)
    print(result.profit_probability, result.bands[-1].p50)
"""

import logging
import math
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Optional, Tuple

import numpy as np

from smartedge.core.errors import ConfigurationError, InvalidInputError, SimulationCancelled
from smartedge.core.kelly import (
    DEFAULT_KELLY_MULTIPLIER,
    DEFAULT_MAX_KELLY_FRACTION,
    full_kelly,
    kelly_fraction,
)
from smartedge.core.odds_math import is_valid_odds

logger = logging.getLogger(__name__)

PERCENTILES: Tuple[int, ...] = (5, 25, 50, 75, 95)
DRAWDOWN_BIN_EDGES = np.linspace(0.0, 100.0, 11)   # 10-point bins, in percent
DEFAULT_HISTOGRAM_BINS = 10

# Scenario runs shift every win probability by this much, but never push it
# past the ceiling (bull) or floor (bear) unless it already sits beyond it.
SCENARIO_SHIFT = 0.05
BULL_CEILING = 0.65
BEAR_FLOOR = 0.45

# Unit size suggested when there is no edge: 1% of bankroll
NO_EDGE_UNIT_FRACTION = 0.01


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StakeRule:
    """How much to stake on each bet.

    kind:
        ``flat``       - ``amount`` in currency, capped at the bankroll.
        ``percentage`` - ``amount`` percent of the current bankroll.
        ``kelly``      - fractional Kelly of the current bankroll.
    """

    kind: str
    amount: float = 0.0
    kelly_multiplier: float = DEFAULT_KELLY_MULTIPLIER
    max_fraction: float = DEFAULT_MAX_KELLY_FRACTION

    def __post_init__(self) -> None:
        if self.kind not in ("flat", "percentage", "kelly"):
            raise ConfigurationError(f"Unknown stake rule {self.kind!r}.")
        if self.kind == "flat" and not (math.isfinite(self.amount) and self.amount > 0):
            raise ConfigurationError(f"Flat stake must be positive, got {self.amount!r}.")
        if self.kind == "percentage" and not (
            math.isfinite(self.amount) and 0 < self.amount <= 100
        ):
            raise ConfigurationError(f"Percentage stake must be in (0, 100], got {self.amount!r}.")
        if self.kind == "kelly":
            if not (math.isfinite(self.kelly_multiplier) and 0 < self.kelly_multiplier <= 1):
                raise ConfigurationError(
                    f"kelly_multiplier must be in (0, 1], got {self.kelly_multiplier!r}."
                )
            if not (math.isfinite(self.max_fraction) and 0 < self.max_fraction <= 1):
                raise ConfigurationError(
                    f"max_fraction must be in (0, 1], got {self.max_fraction!r}."
                )

    @classmethod
    def flat(cls, amount: float) -> "StakeRule":
        return cls("flat", amount=amount)

    @classmethod
    def percentage(cls, percent: float) -> "StakeRule":
        return cls("percentage", amount=percent)

    @classmethod
    def kelly(
        cls,
        multiplier: float = DEFAULT_KELLY_MULTIPLIER,
        max_fraction: float = DEFAULT_MAX_KELLY_FRACTION,
    ) -> "StakeRule":
        return cls("kelly", kelly_multiplier=multiplier, max_fraction=max_fraction)

    def stake(self, bankroll: float, win_prob: float, decimal_odds: float) -> float:
        if bankroll <= 0:
            return 0.0
        if self.kind == "flat":
            return min(self.amount, bankroll)
        if self.kind == "percentage":
            return bankroll * self.amount / 100.0
        fraction = kelly_fraction(
            win_prob,
            decimal_odds,
            multiplier=self.kelly_multiplier,
            max_fraction=self.max_fraction,
        )
        return bankroll * fraction

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "amount": self.amount,
            "kelly_multiplier": self.kelly_multiplier,
            "max_fraction": self.max_fraction,
        }


@dataclass(frozen=True)
class SettledBet:
    decimal_odds: float
    won: bool


@dataclass(frozen=True)
class WinProbSource:
    """Distribution of ``(win_prob, decimal_odds)`` pairs, sampled uniformly."""

    samples: Tuple[Tuple[float, float], ...]

    def __post_init__(self) -> None:
        if not self.samples:
            raise ConfigurationError("WinProbSource needs at least one (win_prob, odds) sample.")
        for p, odds in self.samples:
            if not (isinstance(p, (int, float)) and math.isfinite(p) and 0.0 < p < 1.0):
                raise ConfigurationError(f"win_prob must be in (0, 1), got {p!r}.")
            if not is_valid_odds(odds):
                raise ConfigurationError(f"decimal odds must be finite and > 1.0, got {odds!r}.")

    @classmethod
    def fixed(cls, win_prob: float, decimal_odds: float) -> "WinProbSource":
        return cls(((win_prob, decimal_odds),))

    @classmethod
    def from_samples(cls, pairs: Iterable[Tuple[float, float]]) -> "WinProbSource":
        return cls(tuple((float(p), float(o)) for p, o in pairs))

    @classmethod
    def from_settled_bets(cls, bets: Iterable[SettledBet]) -> "WinProbSource":
        """Empirical win rate paired with each settled bet's odds."""
        bets = list(bets)
        if not bets:
            raise ConfigurationError("from_settled_bets needs at least one settled bet.")
        win_rate = sum(1 for b in bets if b.won) / len(bets)
        return cls(tuple((win_rate, float(b.decimal_odds)) for b in bets))

    def as_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        probs = np.array([p for p, _ in self.samples], dtype=float)
        odds = np.array([o for _, o in self.samples], dtype=float)
        return probs, odds

    def shifted(self, delta: float) -> "WinProbSource":
        """Every win probability moved by ``delta``, bounded as in scenario runs."""
        return WinProbSource(tuple((_shift_prob(p, delta), o) for p, o in self.samples))


def _shift_prob(p: float, delta: float) -> float:
    if delta > 0:
        return min(p + delta, max(p, BULL_CEILING))
    return max(p + delta, min(p, BEAR_FLOOR))


@dataclass(frozen=True)
class SimulationConfig:
    starting_bankroll: float
    paths: int
    bets_per_path: int
    stake_rule: StakeRule
    win_prob_source: WinProbSource
    seed: Optional[int] = None
    workers: Optional[int] = None
    histogram_bins: int = DEFAULT_HISTOGRAM_BINS

    def __post_init__(self) -> None:
        if not (isinstance(self.starting_bankroll, (int, float))
                and math.isfinite(self.starting_bankroll) and self.starting_bankroll > 0):
            raise ConfigurationError(
                f"starting_bankroll must be positive and finite, got {self.starting_bankroll!r}."
            )
        for name in ("paths", "bets_per_path", "histogram_bins"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}.")
        if self.workers is not None and (not isinstance(self.workers, int) or self.workers < 1):
            raise ConfigurationError(f"workers must be None or ≥ 1, got {self.workers!r}.")
        if self.seed is not None and (not isinstance(self.seed, int) or self.seed < 0):
            raise ConfigurationError(f"seed must be a non-negative integer, got {self.seed!r}.")


class CancellationToken:
    """Thread-safe flag checked by the simulator between paths."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PercentileBand:
    step: int
    p5: float
    p25: float
    p50: float
    p75: float
    p95: float

    def is_ordered(self) -> bool:
        return self.p5 <= self.p25 <= self.p50 <= self.p75 <= self.p95


@dataclass(frozen=True)
class HistogramBin:
    lower: float
    upper: float
    count: int


@dataclass(frozen=True)
class MonteCarloResult:
    """Aggregate statistics over every simulated path."""

    seed: int
    paths: int
    bets_per_path: int
    starting_bankroll: float
    bands: Tuple[PercentileBand, ...]
    profit_percentiles: Dict[int, float]
    final_bankroll_percentiles: Dict[int, float]
    profit_probability: float
    bust_probability: float
    avg_max_drawdown: float
    avg_final_bankroll: float
    avg_profit: float
    pl_histogram: Tuple[HistogramBin, ...] = field(default_factory=tuple)
    drawdown_histogram: Tuple[HistogramBin, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict:
        return {
            "seed": self.seed,
            "paths": self.paths,
            "bets_per_path": self.bets_per_path,
            "starting_bankroll": self.starting_bankroll,
            "bands": [
                {"step": b.step, "p5": b.p5, "p25": b.p25, "p50": b.p50, "p75": b.p75, "p95": b.p95}
                for b in self.bands
            ],
            "profit_percentiles": {str(k): v for k, v in self.profit_percentiles.items()},
            "final_bankroll_percentiles": {
                str(k): v for k, v in self.final_bankroll_percentiles.items()
            },
            "profit_probability": self.profit_probability,
            "bust_probability": self.bust_probability,
            "avg_max_drawdown": self.avg_max_drawdown,
            "avg_final_bankroll": self.avg_final_bankroll,
            "avg_profit": self.avg_profit,
            "pl_histogram": [
                {"lower": h.lower, "upper": h.upper, "count": h.count} for h in self.pl_histogram
            ],
            "drawdown_histogram": [
                {"lower": h.lower, "upper": h.upper, "count": h.count}
                for h in self.drawdown_histogram
            ],
        }


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------

def _simulate_path(
    cfg: SimulationConfig, seed: int, index: int, probs: np.ndarray, odds: np.ndarray
) -> Tuple[np.ndarray, float, bool]:
    """One path: bankroll trajectory (M + 1 values), max drawdown, busted flag."""
    rng = np.random.default_rng(seed + index)
    m = cfg.bets_per_path
    picks = rng.integers(0, len(probs), size=m)
    draws = rng.random(m)

    trajectory = np.empty(m + 1, dtype=float)
    bankroll = float(cfg.starting_bankroll)
    trajectory[0] = bankroll
    running_max = bankroll
    max_drawdown = 0.0
    busted = False

    for step in range(m):
        if not busted:
            p = float(probs[picks[step]])
            o = float(odds[picks[step]])
            stake = cfg.stake_rule.stake(bankroll, p, o)
            if draws[step] < p:
                bankroll += stake * (o - 1.0)
            else:
                bankroll -= stake
            if bankroll <= 0.0:
                bankroll = max(bankroll, 0.0)
                busted = True
        trajectory[step + 1] = bankroll
        running_max = max(running_max, bankroll)
        drawdown = (running_max - bankroll) / running_max
        max_drawdown = max(max_drawdown, drawdown)

    return trajectory, max_drawdown, busted


def _histogram(values: np.ndarray, bins) -> Tuple[HistogramBin, ...]:
    counts, edges = np.histogram(values, bins=bins)
    return tuple(
        HistogramBin(lower=float(edges[i]), upper=float(edges[i + 1]), count=int(counts[i]))
        for i in range(len(counts))
    )


def _bands(matrix: np.ndarray) -> Tuple[PercentileBand, ...]:
    pct = np.percentile(matrix, PERCENTILES, axis=0)
    bands = tuple(
        PercentileBand(step, *(float(v) for v in pct[:, step])) for step in range(matrix.shape[1])
    )
    bad = [b.step for b in bands if not b.is_ordered()]
    if bad:
        raise ArithmeticError(f"Percentile bands out of order at steps {bad[:5]}")
    return bands


def simulate_bankroll(
    cfg: SimulationConfig, token: Optional[CancellationToken] = None
) -> MonteCarloResult:
    """Run the Monte Carlo projection described by ``cfg``.

    Args:
        cfg: Validated simulation configuration.  When ``cfg.seed`` is
            ``None`` a seed is drawn from OS entropy and reported on the
            result so the run can be replayed.
        token: Optional cancellation token, checked before each path.

    Returns:
        :class:`MonteCarloResult`.

    Raises:
        SimulationCancelled: If ``token`` was cancelled before all paths ran.
    """
    seed = cfg.seed
    if seed is None:
        seed = int(np.random.SeedSequence().entropy % (2 ** 32))
    probs, odds = cfg.win_prob_source.as_arrays()
    n = cfg.paths
    t0 = time.perf_counter()

    matrix = np.empty((n, cfg.bets_per_path + 1), dtype=float)
    max_drawdowns = np.empty(n, dtype=float)
    busted = np.zeros(n, dtype=bool)
    completed = 0
    lock = threading.Lock()

    def run(index: int) -> None:
        nonlocal completed
        if token is not None and token.cancelled:
            return
        trajectory, dd, bust = _simulate_path(cfg, seed, index, probs, odds)
        matrix[index] = trajectory
        max_drawdowns[index] = dd
        busted[index] = bust
        with lock:
            completed += 1

    if cfg.workers and cfg.workers > 1:
        with ThreadPoolExecutor(max_workers=cfg.workers) as pool:
            list(pool.map(run, range(n)))
    else:
        for index in range(n):
            if token is not None and token.cancelled:
                break
            run(index)

    if completed < n:
        logger.info("Monte Carlo cancelled after %d/%d paths", completed, n)
        raise SimulationCancelled(completed, n)

    finals = matrix[:, -1]
    profits = finals - cfg.starting_bankroll

    result = MonteCarloResult(
        seed=seed,
        paths=n,
        bets_per_path=cfg.bets_per_path,
        starting_bankroll=float(cfg.starting_bankroll),
        bands=_bands(matrix),
        profit_percentiles={q: float(v) for q, v in zip(PERCENTILES, np.percentile(profits, PERCENTILES))},
        final_bankroll_percentiles={
            q: float(v) for q, v in zip(PERCENTILES, np.percentile(finals, PERCENTILES))
        },
        profit_probability=float(np.mean(finals > cfg.starting_bankroll)),
        bust_probability=float(np.mean(busted)),
        avg_max_drawdown=float(np.mean(max_drawdowns)),
        avg_final_bankroll=float(np.mean(finals)),
        avg_profit=float(np.mean(profits)),
        pl_histogram=_histogram(profits, cfg.histogram_bins),
        drawdown_histogram=_histogram(max_drawdowns * 100.0, DRAWDOWN_BIN_EDGES),
    )
    logger.info(
        "Monte Carlo: %d paths x %d bets in %.2fs (seed=%d, profit_prob=%.3f, bust_prob=%.3f)",
        n, cfg.bets_per_path, time.perf_counter() - t0, seed,
        result.profit_probability, result.bust_probability,
    )
    return result


@dataclass(frozen=True)
class ScenarioResults:
    """Bull, realistic and bear runs of one configuration on a shared seed."""

    bull: MonteCarloResult
    realistic: MonteCarloResult
    bear: MonteCarloResult

    def to_dict(self) -> Dict:
        return {
            "bull": self.bull.to_dict(),
            "realistic": self.realistic.to_dict(),
            "bear": self.bear.to_dict(),
        }


def simulate_scenarios(
    cfg: SimulationConfig, token: Optional[CancellationToken] = None
) -> ScenarioResults:
    """Run ``cfg`` three times: as given, and with win probabilities shifted.

    The bull run adds :data:`SCENARIO_SHIFT` to every win probability and
    the bear run subtracts it.  All three runs share one seed, so path ``i``
    sees the same random draws in each and the spread between scenarios
    comes from the probability shift alone.
    """
    if cfg.seed is None:
        cfg = replace(cfg, seed=int(np.random.SeedSequence().entropy % (2 ** 32)))
    source = cfg.win_prob_source
    return ScenarioResults(
        bull=simulate_bankroll(replace(cfg, win_prob_source=source.shifted(SCENARIO_SHIFT)), token),
        realistic=simulate_bankroll(cfg, token),
        bear=simulate_bankroll(replace(cfg, win_prob_source=source.shifted(-SCENARIO_SHIFT)), token),
    )


# ---------------------------------------------------------------------------
# Sizing and ruin
# ---------------------------------------------------------------------------

def _check_sizing(bankroll: float, win_prob: float, decimal_odds: float) -> None:
    if not (math.isfinite(bankroll) and bankroll > 0):
        raise InvalidInputError(f"bankroll must be positive and finite, got {bankroll!r}.")
    if not (math.isfinite(win_prob) and 0.0 < win_prob < 1.0):
        raise InvalidInputError(f"win_prob must be in (0, 1), got {win_prob!r}.")
    if not is_valid_odds(decimal_odds):
        raise InvalidInputError(f"decimal_odds must be finite and > 1.0, got {decimal_odds!r}.")


def risk_of_ruin(bankroll: float, unit_size: float, win_prob: float, decimal_odds: float) -> float:
    """Gambler's-ruin estimate ``(q / p) ** (bankroll / unit_size)``.

    Treats the bankroll as ``bankroll / unit_size`` units risked one unit at
    a time.  Returns 1.0 when the bet has no edge (``p · odds ≤ 1``).

    Examples::

        risk_of_ruin(1000, 50, 0.55, 1.95)  →  0.018   ((0.45/0.55) ** 20)
        risk_of_ruin(1000, 50, 0.50, 1.90)  →  1.0
    """
    _check_sizing(bankroll, win_prob, decimal_odds)
    if not (math.isfinite(unit_size) and unit_size > 0):
        raise InvalidInputError(f"unit_size must be positive and finite, got {unit_size!r}.")
    if win_prob * decimal_odds <= 1.0:
        return 1.0
    ruin = ((1.0 - win_prob) / win_prob) ** (bankroll / unit_size)
    return min(1.0, max(0.0, ruin))


def optimal_unit_size(
    bankroll: float,
    win_prob: float,
    decimal_odds: float,
    kelly_multiplier: float = DEFAULT_KELLY_MULTIPLIER,
) -> float:
    """Fractional-Kelly stake in currency, rounded to cents.

    Falls back to 1% of bankroll when there is no edge, so a unit is
    always defined for record keeping.  Unlike :func:`kelly_fraction` no
    cap is applied; this sizes a unit, not a single bet.
    """
    _check_sizing(bankroll, win_prob, decimal_odds)
    if not (math.isfinite(kelly_multiplier) and 0 < kelly_multiplier <= 1):
        raise ConfigurationError(f"kelly_multiplier must be in (0, 1], got {kelly_multiplier!r}.")
    if win_prob * decimal_odds <= 1.0:
        return round(bankroll * NO_EDGE_UNIT_FRACTION, 2)
    return round(bankroll * full_kelly(win_prob, decimal_odds) * kelly_multiplier, 2)
