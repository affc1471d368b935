"""
Heat Impact Analysis Pipeline

Single entry point for the engine: takes one activity's streams plus the
hourly weather around it and returns the full heat impact bundle.

Stages run strictly in dependency order:
    1. Elevation-corrected weather for every sample
    2. Physiological stress detection
    3. Environmental risk metrics (zones, time in zone, humidity, cooling)
    4. Environment/physiology correlation
    5. Composite score, normalization, history, recommendations

Pure computation: no I/O, no DB, no shared state between calls.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from services.heat_impact.config import DEFAULT_CONFIG, HeatAnalysisConfig
from services.heat_impact.correlation import (
    EnvironmentalCorrelation,
    correlate_environment_with_stress,
)
from services.heat_impact.heat_metrics import (
    CoolingBenefit,
    EnvironmentalStats,
    HumidityStrain,
    PeakHeatPeriod,
    RiskZone,
    TimeInZone,
    analyze_humidity_strain,
    calculate_environmental_stats,
    calculate_time_in_zones,
    detect_cooling_benefits,
    identify_peak_heat_period,
    identify_risk_zones,
)
from services.heat_impact.impact_scoring import (
    HeatImpactScore,
    HistoricalComparison,
    calculate_heat_impact_score,
    compare_to_historical_tolerance,
    generate_recommendations,
    normalize_score_by_distance,
)
from services.heat_impact.lapse_rate import AdjustedWeatherPoint, generate_point_by_point_weather
from services.heat_impact.stress_detection import PhysiologicalStress, analyze_physiological_stress
from services.heat_impact.streams import StreamBundle, WeatherObservation
from services.heat_impact.timeline import HeatStressTimelinePoint, generate_heat_stress_timeline

logger = logging.getLogger(__name__)

# Narrative context carries a sparse weather sample, not every point.
NARRATIVE_WEATHER_SAMPLES = 10


def _jsonable(value: Any) -> Any:
    """Recursively convert enums and datetimes inside asdict() output."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if is_dataclass(value):
        return _jsonable(asdict(value))
    return value


@dataclass
class HeatImpactAnalysis:
    """Everything one activity's heat analysis produces."""
    heat_impact_score: HeatImpactScore
    correlation: EnvironmentalCorrelation
    physiological_stress: PhysiologicalStress
    time_in_zone: TimeInZone
    humidity_strain: HumidityStrain
    cooling_benefit: CoolingBenefit
    risk_zones: List[RiskZone] = field(default_factory=list)
    peak_heat_period: Optional[PeakHeatPeriod] = None
    environmental_stats: EnvironmentalStats = field(default_factory=EnvironmentalStats)
    normalized_score: Optional[float] = None
    historical_comparison: Optional[HistoricalComparison] = None
    recommendations: List[str] = field(default_factory=list)
    timeline: List[HeatStressTimelinePoint] = field(default_factory=list)
    weather_stream: List[AdjustedWeatherPoint] = field(default_factory=list)
    distance_km: float = 0.0
    duration_minutes: float = 0.0

    def to_dict(self, include_weather: bool = False) -> Dict[str, Any]:
        """JSON-safe dict. The per-sample weather stream is opt-in."""
        stress = _jsonable(self.physiological_stress)
        stress["overall_stress_detected"] = self.physiological_stress.overall_stress_detected
        stress["indicator_count"] = self.physiological_stress.indicator_count

        time_in_zone = _jsonable(self.time_in_zone)
        time_in_zone["total_minutes"] = self.time_in_zone.total_minutes

        cooling = _jsonable(self.cooling_benefit)
        cooling["significant_count"] = self.cooling_benefit.significant_count

        result = {
            "heat_impact_score": _jsonable(self.heat_impact_score),
            "correlation": _jsonable(self.correlation),
            "physiological_stress": stress,
            "time_in_zone": time_in_zone,
            "humidity_strain": _jsonable(self.humidity_strain),
            "cooling_benefit": cooling,
            "risk_zones": _jsonable(self.risk_zones),
            "peak_heat_period": _jsonable(self.peak_heat_period) if self.peak_heat_period else None,
            "environmental_stats": _jsonable(self.environmental_stats),
            "normalized_score": self.normalized_score,
            "historical_comparison": (
                _jsonable(self.historical_comparison) if self.historical_comparison else None
            ),
            "recommendations": list(self.recommendations),
            "timeline": _jsonable(self.timeline),
            "distance_km": self.distance_km,
            "duration_minutes": self.duration_minutes,
        }
        if include_weather:
            result["weather_stream"] = _jsonable(self.weather_stream)
        return result

    def to_narrative_context(
        self,
        activity_name: str = "",
        athlete_context: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Input for the narrative insight generator.

        Shape: activity summary, a sparse weather sample along the route,
        stress, correlation and score.
        """
        full = self.to_dict()
        return {
            "activity_name": activity_name,
            "distance_km": round(self.distance_km, 2),
            "duration_minutes": round(self.duration_minutes, 1),
            "weather_samples": self._weather_samples(),
            "physiological_stress": full["physiological_stress"],
            "correlation": full["correlation"],
            "heat_impact_score": full["heat_impact_score"],
            "athlete_context": dict(athlete_context or {}),
        }

    def _weather_samples(self) -> List[Dict[str, Any]]:
        n = len(self.weather_stream)
        if n == 0:
            return []
        step = max(1, n // NARRATIVE_WEATHER_SAMPLES)
        samples = []
        for i in range(0, n, step):
            point = self.weather_stream[i]
            samples.append({
                "elapsed_fraction": round(i / n, 3),
                "temperature_c": round(point.temperature_c, 1),
                "humidity_percent": round(point.humidity_percent, 0),
                "heat_index_c": round(point.heat_index_c, 1),
            })
        return samples


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def analyze(
    stream_bundle: StreamBundle,
    hourly_weather: Sequence[WeatherObservation],
    activity_duration_minutes: float,
    base_elevation: float = 0.0,
    config: Optional[HeatAnalysisConfig] = None,
    historical_scores: Optional[Sequence[Union[HeatImpactScore, int, float]]] = None,
) -> HeatImpactAnalysis:
    """Run the full heat impact pipeline for one activity.

    Args:
        stream_bundle: The activity's aligned sample streams.
        hourly_weather: Chronological hourly observations around the activity.
        activity_duration_minutes: Moving/elapsed duration used for zone fractions.
        base_elevation: Elevation (m) the weather observations refer to.
        config: Threshold overrides. None means defaults.
        historical_scores: The athlete's prior overall scores, if any.

    Raises:
        StreamStructureError: empty hourly weather.
    """
    cfg = config or DEFAULT_CONFIG
    distance = stream_bundle.distance_m

    elevation = stream_bundle.channel("elevation_m")
    if elevation is None:
        elevation = [None] * len(stream_bundle)
    weather_stream = generate_point_by_point_weather(
        hourly_weather, elevation, stream_bundle.timestamps(), base_elevation, cfg)

    stress = analyze_physiological_stress(stream_bundle, cfg)

    risk_zones = identify_risk_zones(weather_stream, distance, cfg)
    time_in_zone = calculate_time_in_zones(weather_stream, cfg)
    humidity_strain = analyze_humidity_strain(weather_stream, distance, cfg)
    cooling_benefit = detect_cooling_benefits(weather_stream, distance, cfg)
    peak_heat = identify_peak_heat_period(weather_stream, distance, cfg)
    env_stats = calculate_environmental_stats(weather_stream)

    correlation = correlate_environment_with_stress(
        weather_stream, distance, stress, stream_bundle.channel("heart_rate"), cfg)

    score = calculate_heat_impact_score(
        stress, time_in_zone, humidity_strain, cooling_benefit, activity_duration_minutes, cfg)

    distance_km = stream_bundle.total_distance_km
    normalized = normalize_score_by_distance(score, distance_km, cfg) if distance_km > 0 else None
    comparison = compare_to_historical_tolerance(score, historical_scores or [])

    analysis = HeatImpactAnalysis(
        heat_impact_score=score,
        correlation=correlation,
        physiological_stress=stress,
        time_in_zone=time_in_zone,
        humidity_strain=humidity_strain,
        cooling_benefit=cooling_benefit,
        risk_zones=risk_zones,
        peak_heat_period=peak_heat,
        environmental_stats=env_stats,
        normalized_score=normalized,
        historical_comparison=comparison,
        recommendations=generate_recommendations(score, cfg),
        timeline=generate_heat_stress_timeline(weather_stream, distance),
        weather_stream=weather_stream,
        distance_km=distance_km,
        duration_minutes=activity_duration_minutes,
    )

    logger.info(
        f"Heat impact analysis complete: score={score.overall_score} "
        f"severity={score.severity.value} factor={correlation.primary_factor.value} "
        f"indicators={stress.indicator_count}",
        extra={"extra_fields": {
            "heat_impact_score": score.overall_score,
            "samples": len(stream_bundle),
            "risk_zones": len(risk_zones),
        }},
    )
    return analysis
