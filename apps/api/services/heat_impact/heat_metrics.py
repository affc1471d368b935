"""Environmental risk classification over the adjusted weather stream.

Risk tiers are a step function of heat index. Zones, dwell time, humidity
strain, elevation cooling and the peak-heat window are all derived from
the per-sample ``AdjustedWeatherPoint`` list.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from services.heat_impact.config import DEFAULT_CONFIG, HeatAnalysisConfig
from services.heat_impact.lapse_rate import AdjustedWeatherPoint

logger = logging.getLogger(__name__)


class HeatRiskLevel(str, Enum):
    SAFE = "SAFE"
    CAUTION = "CAUTION"
    EXTREME_CAUTION = "EXTREME_CAUTION"
    DANGER = "DANGER"
    EXTREME_DANGER = "EXTREME_DANGER"


@dataclass
class RiskZone:
    start_index: int
    end_index: int
    start_km: float
    end_km: float
    risk_level: HeatRiskLevel
    avg_heat_index: float
    max_heat_index: float
    duration_minutes: float


@dataclass
class TimeInZone:
    safe_minutes: float = 0.0
    caution_minutes: float = 0.0
    extreme_caution_minutes: float = 0.0
    danger_minutes: float = 0.0
    extreme_danger_minutes: float = 0.0

    @property
    def total_minutes(self) -> float:
        return (self.safe_minutes + self.caution_minutes + self.extreme_caution_minutes
                + self.danger_minutes + self.extreme_danger_minutes)

    def add(self, level: HeatRiskLevel, minutes: float) -> None:
        attr = f"{level.value.lower()}_minutes"
        setattr(self, attr, getattr(self, attr) + minutes)


@dataclass
class HumidityStrain:
    time_above_80_minutes: float = 0.0
    avg_humidity_in_high_zones: float = 0.0
    peak_humidity_percent: float = 0.0
    peak_humidity_km: float = 0.0


@dataclass
class CoolingSegment:
    start_index: int
    end_index: int
    start_km: float
    end_km: float
    elevation_gain_m: float
    temperature_drop_c: float
    duration_minutes: float
    performance_benefit_estimated: bool


@dataclass
class CoolingBenefit:
    detected: bool = False
    elevation_gains: List[CoolingSegment] = field(default_factory=list)
    total_cooling_time_minutes: float = 0.0

    @property
    def significant_count(self) -> int:
        return sum(1 for g in self.elevation_gains if g.performance_benefit_estimated)


@dataclass
class PeakHeatPeriod:
    start_index: int
    end_index: int
    start_km: float
    end_km: float
    avg_heat_index: float


@dataclass
class EnvironmentalStats:
    avg_temperature_c: float = 0.0
    max_temperature_c: float = 0.0
    min_temperature_c: float = 0.0
    avg_humidity_percent: float = 0.0
    max_humidity_percent: float = 0.0
    avg_heat_index_c: float = 0.0
    max_heat_index_c: float = 0.0


def _minutes_between(a: AdjustedWeatherPoint, b: AdjustedWeatherPoint) -> float:
    return (b.timestamp - a.timestamp).total_seconds() / 60.0


def _km(distance_stream: Sequence[float], index: int) -> float:
    return distance_stream[index] / 1000.0


def classify_heat_risk(heat_index_c: float, config: Optional[HeatAnalysisConfig] = None) -> HeatRiskLevel:
    cfg = config or DEFAULT_CONFIG
    if heat_index_c >= cfg.extreme_danger_heat_index_c:
        return HeatRiskLevel.EXTREME_DANGER
    if heat_index_c >= cfg.danger_heat_index_c:
        return HeatRiskLevel.DANGER
    if heat_index_c >= cfg.extreme_caution_heat_index_c:
        return HeatRiskLevel.EXTREME_CAUTION
    if heat_index_c >= cfg.caution_heat_index_c:
        return HeatRiskLevel.CAUTION
    return HeatRiskLevel.SAFE


def identify_risk_zones(
    weather_stream: Sequence[AdjustedWeatherPoint],
    distance_stream: Sequence[float],
    config: Optional[HeatAnalysisConfig] = None,
) -> List[RiskZone]:
    """Contiguous spans sharing one elevated risk tier.

    SAFE spans close the current zone and are not materialized.
    """
    zones: List[RiskZone] = []
    start: Optional[int] = None
    level: Optional[HeatRiskLevel] = None

    def close(end: int) -> None:
        segment = weather_stream[start:end + 1]
        heat = [p.heat_index_c for p in segment]
        zones.append(RiskZone(
            start_index=start,
            end_index=end,
            start_km=_km(distance_stream, start),
            end_km=_km(distance_stream, end),
            risk_level=level,
            avg_heat_index=sum(heat) / len(heat),
            max_heat_index=max(heat),
            duration_minutes=_minutes_between(weather_stream[start], weather_stream[end]),
        ))

    for i, point in enumerate(weather_stream):
        current = classify_heat_risk(point.heat_index_c, config)
        if current != level:
            if start is not None:
                close(i - 1)
            if current == HeatRiskLevel.SAFE:
                start, level = None, current
            else:
                start, level = i, current

    if start is not None:
        close(len(weather_stream) - 1)
    return zones


def calculate_time_in_zones(
    weather_stream: Sequence[AdjustedWeatherPoint],
    config: Optional[HeatAnalysisConfig] = None,
) -> TimeInZone:
    """Dwell time per tier; each interval counts toward the later sample's tier."""
    time_in_zone = TimeInZone()
    for prev, current in zip(weather_stream, weather_stream[1:]):
        time_in_zone.add(classify_heat_risk(current.heat_index_c, config), _minutes_between(prev, current))
    return time_in_zone


def analyze_humidity_strain(
    weather_stream: Sequence[AdjustedWeatherPoint],
    distance_stream: Sequence[float],
    config: Optional[HeatAnalysisConfig] = None,
) -> HumidityStrain:
    cfg = config or DEFAULT_CONFIG
    strain = HumidityStrain()
    if not weather_stream:
        return strain

    peak_index = max(range(len(weather_stream)), key=lambda i: weather_stream[i].humidity_percent)
    strain.peak_humidity_percent = weather_stream[peak_index].humidity_percent
    strain.peak_humidity_km = _km(distance_stream, peak_index)

    high: List[float] = []
    for prev, current in zip(weather_stream, weather_stream[1:]):
        if current.humidity_percent >= cfg.high_humidity_pct:
            strain.time_above_80_minutes += _minutes_between(prev, current)
            high.append(current.humidity_percent)
    if high:
        strain.avg_humidity_in_high_zones = sum(high) / len(high)
    return strain


def detect_cooling_benefits(
    weather_stream: Sequence[AdjustedWeatherPoint],
    distance_stream: Sequence[float],
    config: Optional[HeatAnalysisConfig] = None,
) -> CoolingBenefit:
    """Climbs whose summit is measurably cooler than their base."""
    cfg = config or DEFAULT_CONFIG
    gains: List[CoolingSegment] = []
    climb_start: Optional[int] = None
    last = len(weather_stream) - 1

    for i in range(1, len(weather_stream)):
        delta = weather_stream[i].elevation_m - weather_stream[i - 1].elevation_m

        if climb_start is None:
            if delta > cfg.cooling_climb_start_gain_m:
                climb_start = i - 1
            continue

        if delta < cfg.cooling_climb_end_gain_m or i == last:
            base, summit = weather_stream[climb_start], weather_stream[i]
            total_gain = summit.elevation_m - base.elevation_m
            drop = base.temperature_c - summit.temperature_c
            if total_gain > cfg.cooling_min_gain_m and drop >= cfg.cooling_min_temp_drop_c:
                gains.append(CoolingSegment(
                    start_index=climb_start,
                    end_index=i,
                    start_km=_km(distance_stream, climb_start),
                    end_km=_km(distance_stream, i),
                    elevation_gain_m=total_gain,
                    temperature_drop_c=drop,
                    duration_minutes=_minutes_between(base, summit),
                    performance_benefit_estimated=drop > cfg.cooling_significant_drop_c,
                ))
            climb_start = None

    return CoolingBenefit(
        detected=bool(gains),
        elevation_gains=gains,
        total_cooling_time_minutes=sum(g.duration_minutes for g in gains),
    )


def identify_peak_heat_period(
    weather_stream: Sequence[AdjustedWeatherPoint],
    distance_stream: Sequence[float],
    config: Optional[HeatAnalysisConfig] = None,
) -> Optional[PeakHeatPeriod]:
    """Window (capped by elapsed time, not samples) with the highest mean heat index."""
    cfg = config or DEFAULT_CONFIG
    n = len(weather_stream)
    if n < 2:
        return None

    prefix = [0.0]
    for p in weather_stream:
        prefix.append(prefix[-1] + p.heat_index_c)

    best: Optional[PeakHeatPeriod] = None
    end = 0
    for start in range(n):
        end = max(end, start)
        while end + 1 < n and _minutes_between(weather_stream[start], weather_stream[end + 1]) <= cfg.peak_heat_window_minutes:
            end += 1
        avg = (prefix[end + 1] - prefix[start]) / (end - start + 1)
        if best is None or avg > best.avg_heat_index:
            best = PeakHeatPeriod(
                start_index=start,
                end_index=end,
                start_km=_km(distance_stream, start),
                end_km=_km(distance_stream, end),
                avg_heat_index=avg,
            )
    return best


def calculate_environmental_stats(weather_stream: Sequence[AdjustedWeatherPoint]) -> EnvironmentalStats:
    if not weather_stream:
        return EnvironmentalStats()
    temps = [p.temperature_c for p in weather_stream]
    humidities = [p.humidity_percent for p in weather_stream]
    heat = [p.heat_index_c for p in weather_stream]
    return EnvironmentalStats(
        avg_temperature_c=sum(temps) / len(temps),
        max_temperature_c=max(temps),
        min_temperature_c=min(temps),
        avg_humidity_percent=sum(humidities) / len(humidities),
        max_humidity_percent=max(humidities),
        avg_heat_index_c=sum(heat) / len(heat),
        max_heat_index_c=max(heat),
    )


def calculate_segment_averages(
    weather_stream: Sequence[AdjustedWeatherPoint],
    start_index: int,
    end_index: int,
) -> dict:
    """Averages over an inclusive index range; zeros when the range is empty."""
    segment = list(weather_stream[start_index:end_index + 1])
    if not segment:
        return {
            "avg_temperature": 0.0,
            "avg_humidity": 0.0,
            "avg_heat_index": 0.0,
            "max_heat_index": 0.0,
            "min_temperature": 0.0,
            "max_temperature": 0.0,
        }
    stats = calculate_environmental_stats(segment)
    return {
        "avg_temperature": stats.avg_temperature_c,
        "avg_humidity": stats.avg_humidity_percent,
        "avg_heat_index": stats.avg_heat_index_c,
        "max_heat_index": stats.max_heat_index_c,
        "min_temperature": stats.min_temperature_c,
        "max_temperature": stats.max_temperature_c,
    }
