"""Heat impact scoring.

Combines physiological, heat, humidity and cooling sub-scores into one
0-100 composite with a severity tier, plus distance normalization,
historical comparison and a rule-table of recommendations.

The physiological weights sum to 0.80 and the composite weights to
0.4 + 0.4 + 0.2 - 0.1; both are pinned as-is.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Union

from services.heat_impact.config import DEFAULT_CONFIG, HeatAnalysisConfig
from services.heat_impact.heat_metrics import CoolingBenefit, HumidityStrain, TimeInZone
from services.heat_impact.stress_detection import PhysiologicalStress

logger = logging.getLogger(__name__)


class SeverityLevel(str, Enum):
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"
    EXTREME = "EXTREME"


@dataclass(frozen=True)
class HeatImpactScore:
    overall_score: int
    severity: SeverityLevel
    heat_stress_component: int
    physiological_stress_component: int
    humidity_strain_score: int
    cooling_benefit_score: int


@dataclass(frozen=True)
class HistoricalComparison:
    percentile: float
    interpretation: str


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _fraction(minutes: float, duration_minutes: float) -> float:
    if duration_minutes <= 0:
        return 0.0
    return minutes / duration_minutes


def determine_severity(overall_score: float, config: Optional[HeatAnalysisConfig] = None) -> SeverityLevel:
    cfg = config or DEFAULT_CONFIG
    if overall_score >= cfg.extreme_score:
        return SeverityLevel.EXTREME
    if overall_score >= cfg.high_score:
        return SeverityLevel.HIGH
    if overall_score >= cfg.moderate_score:
        return SeverityLevel.MODERATE
    return SeverityLevel.LOW


def calculate_physiological_score(
    stress: PhysiologicalStress,
    config: Optional[HeatAnalysisConfig] = None,
) -> float:
    cfg = config or DEFAULT_CONFIG
    score = 0.0

    if stress.hr_drift.detected:
        drift = min(100.0, stress.hr_drift.magnitude_bpm / cfg.hr_drift_full_scale_bpm * 100.0)
        multiplier = cfg.sustained_multiplier if stress.hr_drift.sustained else 1.0
        score += drift * cfg.hr_drift_weight * multiplier

    if stress.pace_degradation.detected:
        pace = min(100.0, stress.pace_degradation.degradation_percent * cfg.pace_score_per_pct)
        multiplier = cfg.grade_controlled_multiplier if stress.pace_degradation.controlled_for_grade else 1.0
        score += pace * cfg.pace_degradation_weight * multiplier

    if stress.vam_decline.detected:
        vam = min(100.0, stress.vam_decline.decline_percent * cfg.vam_score_per_pct)
        score += vam * cfg.vam_decline_weight

    if stress.cadence_drop.detected:
        cadence = min(100.0, stress.cadence_drop.drop_percent * cfg.cadence_score_per_pct)
        score += cadence * cfg.cadence_drop_weight

    return min(100.0, score)


def calculate_heat_stress_score(
    time_in_zone: TimeInZone,
    duration_minutes: float,
    config: Optional[HeatAnalysisConfig] = None,
) -> float:
    cfg = config or DEFAULT_CONFIG
    danger = _fraction(time_in_zone.danger_minutes + time_in_zone.extreme_danger_minutes, duration_minutes)
    caution = _fraction(time_in_zone.caution_minutes + time_in_zone.extreme_caution_minutes, duration_minutes)
    score = danger * 100.0 * cfg.danger_zone_multiplier + caution * 100.0 * cfg.caution_zone_multiplier
    return max(0.0, min(100.0, score))


def calculate_humidity_score(
    strain: HumidityStrain,
    duration_minutes: float,
    config: Optional[HeatAnalysisConfig] = None,
) -> float:
    cfg = config or DEFAULT_CONFIG
    score = _fraction(strain.time_above_80_minutes, duration_minutes) * 100.0
    if strain.peak_humidity_percent > cfg.extreme_humidity_pct:
        score += cfg.extreme_humidity_bonus
    return max(0.0, min(100.0, score))


def calculate_cooling_score(
    cooling: CoolingBenefit,
    duration_minutes: float,
    config: Optional[HeatAnalysisConfig] = None,
) -> float:
    cfg = config or DEFAULT_CONFIG
    if not cooling.detected:
        return 0.0
    score = _fraction(cooling.total_cooling_time_minutes, duration_minutes) * 100.0
    score += cooling.significant_count * cfg.significant_cooling_bonus
    return max(0.0, min(100.0, score))


def calculate_heat_impact_score(
    stress: PhysiologicalStress,
    time_in_zone: TimeInZone,
    humidity_strain: HumidityStrain,
    cooling_benefit: CoolingBenefit,
    duration_minutes: float,
    config: Optional[HeatAnalysisConfig] = None,
) -> HeatImpactScore:
    cfg = config or DEFAULT_CONFIG
    physio = calculate_physiological_score(stress, cfg)
    heat = calculate_heat_stress_score(time_in_zone, duration_minutes, cfg)
    humidity = calculate_humidity_score(humidity_strain, duration_minutes, cfg)
    cooling = calculate_cooling_score(cooling_benefit, duration_minutes, cfg)

    overall = max(
        0.0,
        physio * cfg.physiological_overall_weight
        + heat * cfg.heat_overall_weight
        + humidity * cfg.humidity_overall_weight
        - cooling * cfg.cooling_overall_weight,
    )
    overall_score = min(100, _round_half_up(overall))

    return HeatImpactScore(
        overall_score=overall_score,
        severity=determine_severity(overall_score, cfg),
        heat_stress_component=_round_half_up(heat),
        physiological_stress_component=_round_half_up(physio),
        humidity_strain_score=_round_half_up(humidity),
        cooling_benefit_score=_round_half_up(cooling),
    )


def normalize_score_by_distance(
    score: HeatImpactScore,
    distance_km: float,
    config: Optional[HeatAnalysisConfig] = None,
) -> float:
    """Deflate the score relative to a 50 km reference effort."""
    cfg = config or DEFAULT_CONFIG
    if distance_km <= 0:
        return float(score.overall_score)
    return score.overall_score / math.sqrt(distance_km / cfg.reference_distance_km)


def compare_to_historical_tolerance(
    current: HeatImpactScore,
    historical: Sequence[Union[HeatImpactScore, int, float]],
) -> HistoricalComparison:
    """Where this score ranks among the athlete's prior scores."""
    if not historical:
        return HistoricalComparison(
            percentile=50.0,
            interpretation="No historical data available for comparison",
        )

    scores = [h.overall_score if isinstance(h, HeatImpactScore) else h for h in historical]
    lower = sum(1 for s in scores if s < current.overall_score)
    percentile = lower / len(scores) * 100.0

    if percentile < 25:
        interpretation = "Minimal heat stress compared to your typical activities"
    elif percentile < 50:
        interpretation = "Below average heat stress for you"
    elif percentile < 75:
        interpretation = "Above average heat stress for you"
    else:
        interpretation = "Among your most challenging heat conditions"
    return HistoricalComparison(percentile=percentile, interpretation=interpretation)


def generate_recommendations(
    score: HeatImpactScore,
    config: Optional[HeatAnalysisConfig] = None,
) -> List[str]:
    cfg = config or DEFAULT_CONFIG
    recommendations: List[str] = []

    if score.severity in (SeverityLevel.EXTREME, SeverityLevel.HIGH):
        recommendations.append("Consider heat acclimation training before similar events")
        recommendations.append("Start activities earlier in the day when possible")
        recommendations.append("Increase fluid and electrolyte intake strategy")

    if score.humidity_strain_score > cfg.humidity_advice_score:
        recommendations.append("Focus on hydration pacing - humidity impairs cooling")
        recommendations.append("Consider ice vests or cooling towels for pre-cooling")

    if score.cooling_benefit_score > cfg.cooling_advice_score:
        recommendations.append("Leverage elevation gains for active cooling and recovery")
        recommendations.append("Plan aid station stops after major climbs to capitalize on cooling")

    if score.physiological_stress_component > cfg.physiological_advice_score:
        recommendations.append("Adjust pace expectations in similar conditions")
        recommendations.append("Monitor HR more closely in hot/humid conditions")

    if not recommendations:
        recommendations.append("Continue current heat management strategies")
    return recommendations
