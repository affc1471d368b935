"""Environmental correlation engine.

Aligns physiological stress onsets with environmental spikes that occur in
the preceding few kilometres, attributes a primary factor, and scores the
confidence of the attribution.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from services.heat_impact.config import DEFAULT_CONFIG, HeatAnalysisConfig
from services.heat_impact.heat_metrics import calculate_environmental_stats
from services.heat_impact.lapse_rate import AdjustedWeatherPoint
from services.heat_impact.stress_detection import PhysiologicalStress

logger = logging.getLogger(__name__)


class CorrelationEventType(str, Enum):
    HR_DRIFT_START = "HR_DRIFT_START"
    PACE_FADE_START = "PACE_FADE_START"
    VAM_DECLINE = "VAM_DECLINE"
    CADENCE_DROP = "CADENCE_DROP"
    HEAT_SPIKE = "HEAT_SPIKE"
    HUMIDITY_SPIKE = "HUMIDITY_SPIKE"


PHYSIOLOGICAL_EVENTS = frozenset({
    CorrelationEventType.HR_DRIFT_START,
    CorrelationEventType.PACE_FADE_START,
    CorrelationEventType.VAM_DECLINE,
    CorrelationEventType.CADENCE_DROP,
})
ENVIRONMENTAL_EVENTS = frozenset({
    CorrelationEventType.HEAT_SPIKE,
    CorrelationEventType.HUMIDITY_SPIKE,
})


class PrimaryFactor(str, Enum):
    HEAT = "HEAT"
    HUMIDITY = "HUMIDITY"
    COMBINED = "COMBINED"
    NONE = "NONE"


@dataclass(frozen=True)
class EnvironmentalContext:
    temperature_c: float
    humidity_percent: float
    heat_index_c: float


@dataclass(frozen=True)
class PhysiologicalContext:
    hr_bpm: Optional[float] = None
    pace_min_km: Optional[float] = None
    cadence: Optional[float] = None


@dataclass(frozen=True)
class CorrelationEvent:
    km: float
    timestamp: datetime
    event_type: CorrelationEventType
    description: str
    environmental_context: EnvironmentalContext
    physiological_context: Optional[PhysiologicalContext] = None

    @property
    def is_physiological(self) -> bool:
        return self.event_type in PHYSIOLOGICAL_EVENTS

    @property
    def is_environmental(self) -> bool:
        return self.event_type in ENVIRONMENTAL_EVENTS


@dataclass
class EnvironmentalCorrelation:
    correlation_strength: float = 0.0
    primary_factor: PrimaryFactor = PrimaryFactor.NONE
    events: List[CorrelationEvent] = field(default_factory=list)
    confidence_score: float = 0.0
    summary: str = ""


class SpikeDetector:
    """Emits at most one spike per excursion window.

    States: outside a spike (``cooldown_remaining == 0``) or cooling down
    for N more samples after an emission. While cooling down, triggers are
    ignored.
    """

    def __init__(self, cooldown_samples: int):
        self.cooldown_samples = cooldown_samples
        self.cooldown_remaining = 0

    @property
    def cooling_down(self) -> bool:
        return self.cooldown_remaining > 0

    def step(self, triggered: bool) -> bool:
        """Advance one sample; True when a spike is emitted at this sample."""
        if self.cooldown_remaining > 0:
            self.cooldown_remaining -= 1
            return False
        if triggered:
            self.cooldown_remaining = self.cooldown_samples
            return True
        return False


def _environmental_context(point: AdjustedWeatherPoint) -> EnvironmentalContext:
    return EnvironmentalContext(
        temperature_c=point.temperature_c,
        humidity_percent=point.humidity_percent,
        heat_index_c=point.heat_index_c,
    )


def identify_heat_spikes(
    weather_stream: Sequence[AdjustedWeatherPoint],
    distance_stream: Sequence[float],
    config: Optional[HeatAnalysisConfig] = None,
) -> List[CorrelationEvent]:
    """Points after the baseline window whose heat index exceeds it by >5°C."""
    cfg = config or DEFAULT_CONFIG
    baseline_end = int(len(weather_stream) * cfg.spike_baseline_fraction)
    if baseline_end == 0:
        return []
    baseline = sum(p.heat_index_c for p in weather_stream[:baseline_end]) / baseline_end

    detector = SpikeDetector(cfg.spike_cooldown_samples)
    spikes: List[CorrelationEvent] = []
    for i in range(baseline_end, len(weather_stream)):
        point = weather_stream[i]
        increase = point.heat_index_c - baseline
        if detector.step(increase > cfg.heat_spike_delta_c):
            spikes.append(CorrelationEvent(
                km=distance_stream[i] / 1000.0,
                timestamp=point.timestamp,
                event_type=CorrelationEventType.HEAT_SPIKE,
                description=f"Heat index increased by {increase:.1f}°C",
                environmental_context=_environmental_context(point),
            ))
    return spikes


def identify_humidity_spikes(
    weather_stream: Sequence[AdjustedWeatherPoint],
    distance_stream: Sequence[float],
    config: Optional[HeatAnalysisConfig] = None,
) -> List[CorrelationEvent]:
    """Crossings from below to at-or-above the high-humidity threshold."""
    cfg = config or DEFAULT_CONFIG
    detector = SpikeDetector(cfg.spike_cooldown_samples)
    spikes: List[CorrelationEvent] = []
    for i in range(1, len(weather_stream)):
        prev, point = weather_stream[i - 1], weather_stream[i]
        crossed = prev.humidity_percent < cfg.high_humidity_pct <= point.humidity_percent
        if detector.step(crossed):
            spikes.append(CorrelationEvent(
                km=distance_stream[i] / 1000.0,
                timestamp=point.timestamp,
                event_type=CorrelationEventType.HUMIDITY_SPIKE,
                description=f"Humidity reached {point.humidity_percent:.0f}%",
                environmental_context=_environmental_context(point),
            ))
    return spikes


def _physiological_events(
    weather_stream: Sequence[AdjustedWeatherPoint],
    distance_stream: Sequence[float],
    stress: PhysiologicalStress,
    heart_rate: Optional[Sequence[Optional[float]]] = None,
) -> List[CorrelationEvent]:
    n = min(len(weather_stream), len(distance_stream))
    candidates = []

    if stress.hr_drift.detected:
        idx = stress.hr_drift.start_index
        hr = heart_rate[idx] if heart_rate is not None and idx < len(heart_rate) else None
        candidates.append((
            idx, CorrelationEventType.HR_DRIFT_START,
            f"HR drift of {stress.hr_drift.magnitude_bpm:.1f} bpm detected",
            PhysiologicalContext(hr_bpm=hr),
        ))
    if stress.pace_degradation.detected:
        candidates.append((
            stress.pace_degradation.start_index, CorrelationEventType.PACE_FADE_START,
            f"Pace degradation of {stress.pace_degradation.degradation_percent:.1f}% detected",
            PhysiologicalContext(pace_min_km=stress.pace_degradation.degraded_pace_min_km),
        ))
    if stress.vam_decline.detected:
        candidates.append((
            stress.vam_decline.start_index, CorrelationEventType.VAM_DECLINE,
            f"VAM decline of {stress.vam_decline.decline_percent:.1f}% detected",
            None,
        ))
    if stress.cadence_drop.detected:
        candidates.append((
            stress.cadence_drop.start_index, CorrelationEventType.CADENCE_DROP,
            f"Cadence drop of {stress.cadence_drop.drop_percent:.1f}% detected",
            PhysiologicalContext(cadence=stress.cadence_drop.dropped_cadence),
        ))

    events = []
    for idx, event_type, description, physio in candidates:
        if idx >= n:
            continue
        point = weather_stream[idx]
        events.append(CorrelationEvent(
            km=distance_stream[idx] / 1000.0,
            timestamp=point.timestamp,
            event_type=event_type,
            description=description,
            environmental_context=_environmental_context(point),
            physiological_context=physio,
        ))
    return events


def calculate_correlation_strength(
    events: Iterable[CorrelationEvent],
    weather_stream: Sequence[AdjustedWeatherPoint],
    stress: PhysiologicalStress,
    config: Optional[HeatAnalysisConfig] = None,
) -> float:
    """Fraction of stress onsets preceded by a spike within 5 km, plus a heat bonus."""
    cfg = config or DEFAULT_CONFIG
    if not stress.overall_stress_detected or not weather_stream:
        return 0.0

    events = list(events)
    physio = [e for e in events if e.is_physiological]
    env = [e for e in events if e.is_environmental]

    score = 0.0
    checks = 0
    for onset in physio:
        checks += 1
        if any(onset.km - cfg.preceding_spike_window_km <= e.km <= onset.km for e in env):
            score += 1

    avg_heat_index = sum(p.heat_index_c for p in weather_stream) / len(weather_stream)
    if avg_heat_index > cfg.sustained_heat_index_c:
        score += cfg.sustained_heat_bonus
    if avg_heat_index > cfg.high_heat_index_c:
        score += cfg.sustained_heat_bonus
    checks += 1

    return min(1.0, score / checks)


def determine_primary_factor(
    weather_stream: Sequence[AdjustedWeatherPoint],
    config: Optional[HeatAnalysisConfig] = None,
) -> PrimaryFactor:
    cfg = config or DEFAULT_CONFIG
    if not weather_stream:
        return PrimaryFactor.NONE
    stats = calculate_environmental_stats(weather_stream)
    high_heat = stats.avg_heat_index_c > cfg.high_heat_index_c
    high_humidity = stats.avg_humidity_percent > cfg.high_humidity_mean_pct
    high_temp = stats.avg_temperature_c > cfg.high_temperature_mean_c

    if high_heat and high_humidity:
        return PrimaryFactor.COMBINED
    if high_heat or high_temp:
        return PrimaryFactor.HEAT
    if high_humidity:
        return PrimaryFactor.HUMIDITY
    return PrimaryFactor.NONE


def calculate_confidence_score(
    events: Iterable[CorrelationEvent],
    weather_stream: Sequence[AdjustedWeatherPoint],
    stress: PhysiologicalStress,
    config: Optional[HeatAnalysisConfig] = None,
) -> float:
    cfg = config or DEFAULT_CONFIG
    confidence = cfg.confidence_base
    if len(weather_stream) > cfg.confidence_min_weather_points:
        confidence += cfg.confidence_step
    confidence += stress.indicator_count * cfg.confidence_step
    if stress.hr_drift.sustained:
        confidence += cfg.confidence_step
    if not any(e.is_environmental for e in events):
        confidence -= cfg.confidence_no_spike_penalty
    return max(0.0, min(1.0, confidence))


def generate_correlation_summary(
    events: Sequence[CorrelationEvent],
    correlation_strength: float,
    primary_factor: PrimaryFactor,
    config: Optional[HeatAnalysisConfig] = None,
) -> str:
    cfg = config or DEFAULT_CONFIG
    if correlation_strength < cfg.weak_correlation_threshold:
        return "Limited evidence of environmental impact on performance"

    physio_count = sum(1 for e in events if e.is_physiological)
    env_count = sum(1 for e in events if e.is_environmental)

    parts = [
        f"Strong correlation detected between {primary_factor.value.lower()} stress "
        f"and performance degradation."
    ]
    if physio_count:
        parts.append(
            f"{physio_count} physiological stress indicator{'s' if physio_count > 1 else ''} identified."
        )
    if env_count:
        parts.append(
            f"{env_count} environmental stress event{'s' if env_count > 1 else ''} detected."
        )
    return " ".join(parts)


def correlate_environment_with_stress(
    weather_stream: Sequence[AdjustedWeatherPoint],
    distance_stream: Sequence[float],
    stress: PhysiologicalStress,
    heart_rate: Optional[Sequence[Optional[float]]] = None,
    config: Optional[HeatAnalysisConfig] = None,
) -> EnvironmentalCorrelation:
    cfg = config or DEFAULT_CONFIG
    events = _physiological_events(weather_stream, distance_stream, stress, heart_rate)
    events.extend(identify_heat_spikes(weather_stream, distance_stream, cfg))
    events.extend(identify_humidity_spikes(weather_stream, distance_stream, cfg))

    strength = calculate_correlation_strength(events, weather_stream, stress, cfg)
    factor = determine_primary_factor(weather_stream, cfg)
    confidence = calculate_confidence_score(events, weather_stream, stress, cfg)
    summary = generate_correlation_summary(events, strength, factor, cfg)

    logger.debug(f"Correlation strength {strength:.2f}, factor {factor.value}, {len(events)} events")
    return EnvironmentalCorrelation(
        correlation_strength=strength,
        primary_factor=factor,
        events=sorted(events, key=lambda e: e.km),
        confidence_score=confidence,
        summary=summary,
    )
