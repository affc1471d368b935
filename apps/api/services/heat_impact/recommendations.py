"""Personalized heat recommendations for one analyzed activity.

Tailors hydration, pacing, cooling, clothing and acclimation advice to the
athlete: body weight sets fluid and sodium targets, the heat acclimation
index sets the pacing adjustment. Every profile input that changed the
advice is reported back in ``personalization_factors``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union

from services.heat_impact.heat_metrics import EnvironmentalStats
from services.heat_impact.impact_scoring import SeverityLevel

LOW_ACCLIMATION_INDEX = 60
HIGH_ACCLIMATION_INDEX = 75
FLUID_ML_PER_KG_HOUR = 8
SODIUM_MG_PER_KG_HOUR = 8
DEFAULT_SODIUM_MG = 400
ELECTROLYTE_HUMIDITY_PCT = 70.0
EVAPORATION_HUMIDITY_PCT = 80.0
COOLING_GEAR_HEAT_INDEX_C = 35.0
SUNSCREEN_TEMPERATURE_C = 30.0

PACE_REDUCTION_PCT = {
    SeverityLevel.EXTREME: 20,
    SeverityLevel.HIGH: 15,
}
DEFAULT_PACE_REDUCTION_PCT = 10


@dataclass(frozen=True)
class AthleteHeatProfile:
    heat_acclimation_index: int
    body_weight_kg: Optional[float] = None


@dataclass
class PersonalizedRecommendations:
    hydration: List[str] = field(default_factory=list)
    pacing: List[str] = field(default_factory=list)
    cooling: List[str] = field(default_factory=list)
    clothing: List[str] = field(default_factory=list)
    acclimation: List[str] = field(default_factory=list)
    personalization_factors: List[str] = field(default_factory=list)


class _Factors:
    """Ordered, de-duplicated personalization factor list."""

    def __init__(self) -> None:
        self.items: List[str] = []

    def add(self, factor: str) -> None:
        if factor not in self.items:
            self.items.append(factor)


def _is_hot_severity(severity: SeverityLevel) -> bool:
    return severity in (SeverityLevel.HIGH, SeverityLevel.EXTREME)


def _hydration(
    profile: AthleteHeatProfile,
    severity: SeverityLevel,
    stats: EnvironmentalStats,
    factors: _Factors,
) -> List[str]:
    advice = []
    weight = profile.body_weight_kg
    if weight:
        fluid_ml = round(weight * FLUID_ML_PER_KG_HOUR)
        factors.add(f"body_weight:{weight:g}kg")
        advice.append(
            f"Based on your weight ({weight:g}kg), aim for {fluid_ml}-{fluid_ml + 100}ml per hour")
    else:
        advice.append("Maintain hydration at 500-700ml per hour in these conditions")

    humidity = stats.avg_humidity_percent
    if humidity > ELECTROLYTE_HUMIDITY_PCT or _is_hot_severity(severity):
        sodium_mg = round(weight * SODIUM_MG_PER_KG_HOUR) if weight else DEFAULT_SODIUM_MG
        advice.append(
            f"Increase sodium intake to {sodium_mg}-{sodium_mg + 200}mg per hour in high humidity")
        factors.add(f"high_humidity:{humidity:.0f}%")

    if _is_hot_severity(severity):
        advice.append(
            "Pre-hydrate with 500-750ml 2 hours before activity, plus 250ml 15 minutes before start")
    return advice


def _pacing(
    profile: AthleteHeatProfile,
    severity: SeverityLevel,
    pace_degradation_percent: float,
    factors: _Factors,
) -> List[str]:
    advice = []
    index = profile.heat_acclimation_index
    if index < LOW_ACCLIMATION_INDEX:
        reduction = PACE_REDUCTION_PCT.get(severity, DEFAULT_PACE_REDUCTION_PCT)
        advice.append(
            f"Your heat acclimation is {index}/100. Reduce pace by {reduction}% to compensate")
        factors.add(f"heat_acclimation:{index}")
    elif index > HIGH_ACCLIMATION_INDEX:
        advice.append(
            f"Your high heat acclimation ({index}/100) allows for more aggressive pacing")
        factors.add(f"heat_acclimation:{index}")

    if pace_degradation_percent > 0:
        advice.append(
            f"You slowed {pace_degradation_percent:.0f}% during this activity - typical for these conditions")

    if _is_hot_severity(severity):
        advice.append(
            "Start conservatively - first 25% at 85-90% target pace to preserve glycogen "
            "and reduce early heat stress")
    return advice


def _cooling(severity: SeverityLevel, stats: EnvironmentalStats, factors: _Factors) -> List[str]:
    advice = []
    if stats.max_heat_index_c > COOLING_GEAR_HEAT_INDEX_C:
        advice.append("Ice vest or cooling towel highly recommended when heat index exceeds 35°C")

    if _is_hot_severity(severity):
        advice.append("Seek shade every 30-45 minutes for 2-3 minute cooling breaks")
        advice.append("Pour water over head, neck, and forearms at aid stations for evaporative cooling")

    humidity = stats.avg_humidity_percent
    if humidity > EVAPORATION_HUMIDITY_PCT:
        advice.append(
            f"High humidity ({humidity:.0f}%) reduces sweat evaporation - active cooling more important")
        factors.add(f"high_humidity:{humidity:.0f}%")
    return advice


def _clothing(severity: SeverityLevel, stats: EnvironmentalStats) -> List[str]:
    advice = []
    if _is_hot_severity(severity):
        advice.append("Wear light-colored, loose-fitting, moisture-wicking fabrics")
        advice.append("Consider a breathable cap or visor for sun protection without trapping heat")
    if stats.max_temperature_c > SUNSCREEN_TEMPERATURE_C:
        advice.append("Apply sunscreen SPF 30+ to reduce skin temperature from direct radiation")
    return advice


def _acclimation(profile: AthleteHeatProfile, factors: _Factors) -> List[str]:
    index = profile.heat_acclimation_index
    if index < LOW_ACCLIMATION_INDEX:
        factors.add("needs_acclimation:true")
        return [
            f"Your heat acclimation is below optimal ({index}/100)",
            "Build tolerance with 7-10 days of controlled heat exposure (sauna, warm treadmill, hot yoga)",
            "Start with 20 minutes per session and gradually increase to 45-60 minutes",
        ]
    if index > HIGH_ACCLIMATION_INDEX:
        factors.add("well_acclimated:true")
        return [
            f"Excellent heat adaptation ({index}/100) - maintain with 1-2 heat sessions per week",
        ]
    return []


def generate_personalized_recommendations(
    profile: AthleteHeatProfile,
    severity: Union[SeverityLevel, str],
    environmental_stats: EnvironmentalStats,
    pace_degradation_percent: Optional[float] = None,
) -> PersonalizedRecommendations:
    """Advice for one activity, tailored to the athlete's weight and acclimation.

    Args:
        profile: Acclimation index (0-100) and optional body weight.
        severity: Severity tier of the activity's heat impact score.
        environmental_stats: Conditions over the activity.
        pace_degradation_percent: Detected pace fade, None when not detected.
    """
    severity = SeverityLevel(severity)
    factors = _Factors()
    result = PersonalizedRecommendations(
        hydration=_hydration(profile, severity, environmental_stats, factors),
        pacing=_pacing(profile, severity, pace_degradation_percent or 0.0, factors),
        cooling=_cooling(severity, environmental_stats, factors),
        clothing=_clothing(severity, environmental_stats),
        acclimation=_acclimation(profile, factors),
    )
    result.personalization_factors = factors.items
    return result
