"""Heat stress timeline: chart-ready 0-100 samples along the route."""
from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import List, Sequence

from services.heat_impact.lapse_rate import AdjustedWeatherPoint

DEFAULT_INTERVAL_KM = 0.5
SHORT_ACTIVITY_INTERVAL_KM = 0.25
SHORT_ACTIVITY_KM = 10.0
SMOOTHING_WINDOW = 5

# (heat index floor, ceiling, score at floor, score at ceiling)
_HEAT_INDEX_BANDS = (
    (20.0, 27.0, 0.0, 20.0),
    (27.0, 32.0, 20.0, 40.0),
    (32.0, 41.0, 40.0, 70.0),
    (41.0, 54.0, 70.0, 90.0),
)


@dataclass(frozen=True)
class HeatStressTimelinePoint:
    km: float
    heat_stress: int


def _map_range(value: float, in_min: float, in_max: float, out_min: float, out_max: float) -> float:
    return (value - in_min) * (out_max - out_min) / (in_max - in_min) + out_min


def point_heat_stress(point: AdjustedWeatherPoint) -> float:
    """Composite heat stress for one sample, clamped to [0, 100]."""
    heat_index = point.heat_index_c
    if heat_index < _HEAT_INDEX_BANDS[0][0]:
        score = 0.0
    elif heat_index >= _HEAT_INDEX_BANDS[-1][1]:
        score = 95.0
    else:
        score = 0.0
        for lo, hi, out_lo, out_hi in _HEAT_INDEX_BANDS:
            if lo <= heat_index < hi:
                score = _map_range(heat_index, lo, hi, out_lo, out_hi)
                break

    if point.humidity_percent > 80:
        score += 5
    elif point.humidity_percent > 70:
        score += 2
    if point.temperature_c > 35:
        score += 5
    return max(0.0, min(100.0, score))


def _nearest_index(values: Sequence[float], target: float) -> int:
    """First index of the value closest to target. values must be non-decreasing."""
    hi = bisect.bisect_left(values, target)
    if hi == 0:
        return 0
    if hi == len(values):
        return bisect.bisect_left(values, values[-1])
    below = values[hi - 1]
    if target - below <= values[hi] - target:
        return bisect.bisect_left(values, below)
    return hi


def _smooth(timeline: List[HeatStressTimelinePoint], window: int = SMOOTHING_WINDOW) -> List[HeatStressTimelinePoint]:
    if len(timeline) < window:
        return timeline
    half = window // 2
    smoothed = []
    for i, point in enumerate(timeline):
        chunk = timeline[max(0, i - half):min(len(timeline), i + half + 1)]
        avg = sum(p.heat_stress for p in chunk) / len(chunk)
        smoothed.append(HeatStressTimelinePoint(km=point.km, heat_stress=int(round(avg))))
    return smoothed


def generate_heat_stress_timeline(
    weather_stream: Sequence[AdjustedWeatherPoint],
    distance_stream: Sequence[float],
    interval_km: float = DEFAULT_INTERVAL_KM,
) -> List[HeatStressTimelinePoint]:
    if not weather_stream or not distance_stream:
        return []

    total_km = distance_stream[-1] / 1000.0
    step = SHORT_ACTIVITY_INTERVAL_KM if total_km < SHORT_ACTIVITY_KM else interval_km

    timeline: List[HeatStressTimelinePoint] = []
    k = 0
    while k * step <= total_km:
        km = k * step
        idx = _nearest_index(distance_stream, km * 1000.0)
        if idx < len(weather_stream):
            timeline.append(HeatStressTimelinePoint(
                km=round(km, 1),
                heat_stress=int(round(point_heat_stress(weather_stream[idx]))),
            ))
        k += 1
    return _smooth(timeline)
