"""
Weather impact for outdoor leagues.

Scores conditions on a 0-100 "playability" scale: 100 is ideal, 0 is a
washout.  Indoor leagues and domed venues score a fixed high value.  The
situational predictor turns the shortfall from ideal into a severity in
[0, 1] that compresses its strength edge toward a coin flip.
"""

import logging
from typing import List, Optional, Tuple

from smartedge.core.league_config import LeagueConfig
from smartedge.core.types import MatchFeatures, WeatherConditions

logger = logging.getLogger(__name__)

INDOOR_SCORE = 95.0
REPORTED_BASE_SCORE = 80.0
NO_DATA_SCORE = 70.0

_RAIN_WORDS = ("rain", "thunderstorm", "storm")
_SNOW_WORDS = ("snow", "sleet", "blizzard")


def weather_score(weather: WeatherConditions) -> Tuple[float, List[str]]:
    """Playability score and the notes behind it, from reported conditions."""
    score = REPORTED_BASE_SCORE
    notes: List[str] = []
    condition = (weather.condition or "").lower()

    wind = weather.wind_mph
    if wind is not None:
        if wind >= 20:
            score -= 25
            notes.append(f"High winds ({wind:.0f} mph)")
        elif wind >= 12:
            score -= 12
            notes.append(f"Moderate winds ({wind:.0f} mph)")

    precip = weather.precipitation_chance
    if any(w in condition for w in _SNOW_WORDS):
        score -= 30
        notes.append("Snow")
    elif any(w in condition for w in _RAIN_WORDS) or (precip is not None and precip >= 0.6):
        score -= 30
        notes.append("Rain likely")
    elif "drizzle" in condition or (precip is not None and precip >= 0.3):
        score -= 15
        notes.append("Light rain possible")

    temp = weather.temperature_f
    if temp is not None:
        if temp < 40:
            score -= 15
            notes.append(f"Cold ({temp:.0f}°F)")
        elif temp > 90:
            score -= 10
            notes.append(f"Hot ({temp:.0f}°F)")

    if not notes:
        notes.append("Favourable conditions")
    return max(0.0, min(100.0, score)), notes


def weather_component(
    cfg: LeagueConfig, features: Optional[MatchFeatures]
) -> Tuple[float, List[str]]:
    """SmartScore weather component for a match in ``cfg``'s league."""
    weather = features.weather if features is not None else None
    if not cfg.outdoor or (weather is not None and weather.is_indoor):
        return INDOOR_SCORE, ["Indoor, climate-controlled"]
    if weather is None:
        return NO_DATA_SCORE, ["No weather data"]
    return weather_score(weather)


def weather_severity(cfg: LeagueConfig, features: Optional[MatchFeatures]) -> Optional[float]:
    """Severity in [0, 1] of reported outdoor weather, ``None`` if not applicable."""
    weather = features.weather if features is not None else None
    if not cfg.outdoor or weather is None or weather.is_indoor:
        return None
    score, _ = weather_score(weather)
    return max(0.0, min(1.0, (REPORTED_BASE_SCORE - score) / REPORTED_BASE_SCORE))
