"""
Team strength ratings from season record and recent form.

All ratings are on a 0-100 scale centred at 50 (a .500 team in neutral
form).  The season record shifts offense and defense together; recent form
drives momentum, with the newest result weighted most.

Also projects a score for each side, anchored on the league scoring base
from :mod:`smartedge.core.league_config`.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from smartedge.core.league_config import LeagueConfig
from smartedge.core.types import ProjectedScore, TeamInfo

NEUTRAL = 50.0
RECORD_SCALE = 40.0         # (win% - 0.5) * 40 on offense and defense
FORM_SCALE = 50.0           # (weighted form win% - 0.5) * 50 on momentum
OFF_DEF_BOUNDS = (25.0, 95.0)
MOMENTUM_BOUNDS = (20.0, 95.0)
HOME_SCORE_FACTOR = 1.02


@dataclass(frozen=True)
class TeamStrength:
    """Strength ratings for one team plus the sample behind them."""

    offense: float = NEUTRAL
    defense: float = NEUTRAL
    momentum: float = NEUTRAL
    games_played: int = 0
    form_games: int = 0

    @property
    def overall(self) -> float:
        return (self.offense + self.defense + self.momentum) / 3.0

    @property
    def sample_size(self) -> int:
        return self.games_played + self.form_games

    @property
    def has_data(self) -> bool:
        return self.sample_size > 0


def parse_record(record: Optional[str]) -> Optional[Tuple[int, int, int]]:
    """Parse ``"W-L"`` or ``"W-L-D"`` into ``(wins, losses, draws)``.

    Returns ``None`` for missing, malformed or all-zero records.
    """
    if not record:
        return None
    parts = record.strip().split("-")
    if len(parts) < 2:
        return None
    try:
        nums = [int(p) for p in parts[:3]]
    except ValueError:
        return None
    wins, losses = nums[0], nums[1]
    draws = nums[2] if len(nums) > 2 else 0
    if min(wins, losses, draws) < 0 or wins + losses + draws == 0:
        return None
    return wins, losses, draws


def weighted_form(recent_form: Tuple[str, ...]) -> Optional[float]:
    """Recency-weighted win share of ``recent_form`` (newest first).

    The newest result carries weight ``n``, the oldest weight ``1``.  Draws
    count as half a win.
    """
    results = [r.strip().upper() for r in recent_form if r and r.strip()]
    if not results:
        return None
    n = len(results)
    score = 0.0
    total = 0.0
    for index, result in enumerate(results):
        weight = n - index
        if result == "W":
            score += weight
        elif result == "D":
            score += weight * 0.5
        total += weight
    return score / total


def _clamp(value: float, bounds: Tuple[float, float]) -> float:
    lo, hi = bounds
    return max(lo, min(hi, value))


def team_strength(team: TeamInfo) -> TeamStrength:
    """Rate ``team`` from its record and recent form.

    A team with neither returns the neutral 50/50/50 rating with a zero
    sample size; callers use :attr:`TeamStrength.has_data` to tell "average"
    from "unknown".
    """
    offense = defense = momentum = NEUTRAL
    games = 0

    parsed = parse_record(team.record)
    if parsed is not None:
        wins, losses, draws = parsed
        games = wins + losses + draws
        win_pct = (wins + 0.5 * draws) / games
        adjustment = (win_pct - 0.5) * RECORD_SCALE
        offense += adjustment
        defense += adjustment

    form = weighted_form(team.recent_form)
    if form is not None:
        momentum += (form - 0.5) * FORM_SCALE

    return TeamStrength(
        offense=_clamp(offense, OFF_DEF_BOUNDS),
        defense=_clamp(defense, OFF_DEF_BOUNDS),
        momentum=_clamp(momentum, MOMENTUM_BOUNDS),
        games_played=games,
        form_games=len(team.recent_form) if form is not None else 0,
    )


def project_side(
    team: TeamStrength, opponent: TeamStrength, is_home: bool, cfg: LeagueConfig
) -> float:
    """Projected points (or goals/runs) for one side, never negative."""
    offense_impact = (team.offense - NEUTRAL) / 100.0
    defense_impact = (NEUTRAL - opponent.defense) / 100.0
    momentum_impact = (team.momentum - NEUTRAL) / 200.0
    projected = cfg.scoring_base * (1.0 + offense_impact + defense_impact + momentum_impact)
    if is_home:
        projected *= HOME_SCORE_FACTOR
    return max(0.0, round(projected, 1))


def project_score(
    home: TeamStrength, away: TeamStrength, cfg: LeagueConfig
) -> ProjectedScore:
    return ProjectedScore(
        home=project_side(home, away, True, cfg),
        away=project_side(away, home, False, cfg),
    )
