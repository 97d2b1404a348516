"""Scoring policy - SmartScore weights and staking constants.

All tunable numbers that are *policy* rather than *math* live here, in
frozen dataclasses validated at construction.  A bad value raises
:class:`~smartedge.core.errors.ConfigurationError` immediately; nothing is
ever clamped or renormalised behind the caller's back.

Typical usage::

    from smartedge.core.policy import ScoringPolicy

    policy = ScoringPolicy()                 # built-in defaults
    policy = ScoringPolicy.from_env()        # .env / environment overrides

    from dataclasses import replace
    aggressive = replace(policy, kelly_multiplier=0.5)

Environment variables read by :meth:`ScoringPolicy.from_env`:

=============================  =========  ==================================
Variable                       Default    Meaning
=============================  =========  ==================================
``SMART_WEIGHT_MOMENTUM``      0.20       SmartScore momentum weight
``SMART_WEIGHT_VALUE``         0.25       SmartScore value weight
``SMART_WEIGHT_ODDS_MOVEMENT`` 0.15       SmartScore odds-movement weight
``SMART_WEIGHT_WEATHER``       0.10       SmartScore weather weight
``SMART_WEIGHT_INJURIES``      0.15       SmartScore injuries weight
``SMART_WEIGHT_ARBITRAGE``     0.15       SmartScore arbitrage weight
``KELLY_MULTIPLIER``           0.25       Fraction of full Kelly staked
``MAX_KELLY_FRACTION``         0.05       Hard cap on bankroll fraction
``MODEL_PROB_WEIGHT``          0.50       Ensemble share of true probability
``TIER_HIGH_THRESHOLD``        80         Overall score for ``high`` tier
``TIER_MEDIUM_THRESHOLD``      65         Overall score for ``medium`` tier
=============================  =========  ==================================
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field, fields
from typing import Final, Mapping

from dotenv import load_dotenv

from smartedge.core.errors import ConfigurationError

#: Tolerance on the weight sum.  Weights are decimal literals, so the float
#: sum of the defaults is not exactly 1.0.
WEIGHT_SUM_TOL: Final[float] = 1e-9

COMPONENTS: Final[tuple[str, ...]] = (
    "momentum",
    "value",
    "odds_movement",
    "weather",
    "injuries",
    "arbitrage",
)


@dataclass(frozen=True)
class SmartScoreWeights:
    """Linear weights of the six SmartScore components.

    Raises:
        ConfigurationError: If any weight is negative or non-finite, or the
            weights do not sum to 1.
    """

    momentum: float = 0.20
    value: float = 0.25
    odds_movement: float = 0.15
    weather: float = 0.10
    injuries: float = 0.15
    arbitrage: float = 0.15

    def __post_init__(self) -> None:
        for f in fields(self):
            w = getattr(self, f.name)
            if not isinstance(w, (int, float)) or not math.isfinite(w) or w < 0.0:
                raise ConfigurationError(
                    f"SmartScore weight {f.name!r} must be a finite number ≥ 0, got {w!r}."
                )
        total = math.fsum(self.as_dict().values())
        if abs(total - 1.0) > WEIGHT_SUM_TOL:
            raise ConfigurationError(
                f"SmartScore weights must sum to 1.0, got {total!r}."
            )

    def as_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in COMPONENTS}


@dataclass(frozen=True)
class ScoringPolicy:
    """Policy constants for one scoring pass.

    Attributes:
        weights: SmartScore component weights.
        kelly_multiplier: Fraction of full Kelly to stake, in ``(0, 1]``.
        max_kelly_fraction: Hard cap on the staked bankroll fraction,
            in ``(0, 1]``.
        model_prob_weight: Share of the ensemble's confidence in the
            true-probability blend; the remainder is the market-implied
            probability.  In ``[0, 1]``.
        tier_high: Overall score at or above which the tier is ``high``.
        tier_medium: Overall score at or above which the tier is ``medium``.
    """

    weights: SmartScoreWeights = field(default_factory=SmartScoreWeights)
    kelly_multiplier: float = 0.25
    max_kelly_fraction: float = 0.05
    model_prob_weight: float = 0.5
    tier_high: float = 80.0
    tier_medium: float = 65.0

    def __post_init__(self) -> None:
        if not isinstance(self.weights, SmartScoreWeights):
            raise ConfigurationError(
                f"weights must be SmartScoreWeights, got {type(self.weights).__name__}."
            )
        _check_range("kelly_multiplier", self.kelly_multiplier, 0.0, 1.0, lo_open=True)
        _check_range("max_kelly_fraction", self.max_kelly_fraction, 0.0, 1.0, lo_open=True)
        _check_range("model_prob_weight", self.model_prob_weight, 0.0, 1.0)
        _check_range("tier_high", self.tier_high, 0.0, 100.0)
        _check_range("tier_medium", self.tier_medium, 0.0, 100.0)
        if self.tier_medium > self.tier_high:
            raise ConfigurationError(
                f"tier_medium ({self.tier_medium}) must not exceed tier_high ({self.tier_high})."
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ScoringPolicy":
        """Build a policy from environment variables, falling back to defaults.

        Args:
            environ: Mapping to read instead of ``os.environ`` (tests).  When
                omitted, ``.env`` is loaded first via ``load_dotenv``.

        Raises:
            ConfigurationError: If a variable is not a number or the
                resulting policy is invalid.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ
        defaults = cls()
        dw = defaults.weights
        weights = SmartScoreWeights(
            momentum=_env_float(environ, "SMART_WEIGHT_MOMENTUM", dw.momentum),
            value=_env_float(environ, "SMART_WEIGHT_VALUE", dw.value),
            odds_movement=_env_float(environ, "SMART_WEIGHT_ODDS_MOVEMENT", dw.odds_movement),
            weather=_env_float(environ, "SMART_WEIGHT_WEATHER", dw.weather),
            injuries=_env_float(environ, "SMART_WEIGHT_INJURIES", dw.injuries),
            arbitrage=_env_float(environ, "SMART_WEIGHT_ARBITRAGE", dw.arbitrage),
        )
        return cls(
            weights=weights,
            kelly_multiplier=_env_float(environ, "KELLY_MULTIPLIER", defaults.kelly_multiplier),
            max_kelly_fraction=_env_float(environ, "MAX_KELLY_FRACTION", defaults.max_kelly_fraction),
            model_prob_weight=_env_float(environ, "MODEL_PROB_WEIGHT", defaults.model_prob_weight),
            tier_high=_env_float(environ, "TIER_HIGH_THRESHOLD", defaults.tier_high),
            tier_medium=_env_float(environ, "TIER_MEDIUM_THRESHOLD", defaults.tier_medium),
        )


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name}={raw!r} is not a number.") from exc


def _check_range(
    name: str, value: float, lo: float, hi: float, *, lo_open: bool = False
) -> None:
    ok = isinstance(value, (int, float)) and math.isfinite(value)
    if ok:
        ok = (value > lo if lo_open else value >= lo) and value <= hi
    if not ok:
        bracket = "(" if lo_open else "["
        raise ConfigurationError(
            f"{name} must be in {bracket}{lo}, {hi}], got {value!r}."
        )
