"""Heat acclimation index from an athlete's prior heat impact analyses.

Pure function over history rows; the store layer supplies them. With no
qualifying heat exposure the index is a neutral 50.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

LOOKBACK_DAYS = 90
RECENT_DAYS = 30
HEAT_EXPOSURE_TEMP_C = 20.0
HEAT_EXPOSURE_HUMIDITY_PCT = 60.0
FULL_FREQUENCY_EXPOSURES = 7
FULL_DEGRADATION_PCT = 20.0
NEUTRAL_INDEX = 50


@dataclass(frozen=True)
class HeatHistoryEntry:
    analyzed_at: datetime
    heat_impact_score: Optional[int] = None
    hr_drift_magnitude_bpm: Optional[float] = None
    pace_degradation_percent: Optional[float] = None
    avg_temperature_c: Optional[float] = None
    avg_humidity_percent: Optional[float] = None


@dataclass(frozen=True)
class HeatAcclimationProfile:
    acclimation_index: int
    recent_heat_exposures: int
    average_heat_tolerance: float
    hr_drift_improvement: float
    pace_stability_in_heat: float
    last_updated: datetime


def _clamp(lo: float, hi: float, value: float) -> float:
    return max(lo, min(hi, value))


def _hr_drift_trend(entries: Sequence[HeatHistoryEntry]) -> float:
    """First-half vs second-half mean drift, as % improvement."""
    drifts = [e.hr_drift_magnitude_bpm for e in entries if e.hr_drift_magnitude_bpm is not None]
    if len(drifts) < 2:
        return 0.0
    mid = len(drifts) // 2
    first = sum(drifts[:mid]) / mid
    second = sum(drifts[mid:]) / (len(drifts) - mid)
    if first == 0:
        return 0.0
    return (first - second) / first * 100.0


def _pace_stability(entries: Sequence[HeatHistoryEntry]) -> float:
    degradations = [e.pace_degradation_percent for e in entries if e.pace_degradation_percent is not None]
    if not degradations:
        return 50.0
    avg = sum(degradations) / len(degradations)
    return _clamp(0.0, 100.0, 100.0 - avg / FULL_DEGRADATION_PCT * 100.0)


def _neutral_profile(now: datetime) -> HeatAcclimationProfile:
    return HeatAcclimationProfile(
        acclimation_index=NEUTRAL_INDEX,
        recent_heat_exposures=0,
        average_heat_tolerance=50.0,
        hr_drift_improvement=0.0,
        pace_stability_in_heat=50.0,
        last_updated=now,
    )


def calculate_heat_acclimation_index(
    history: Sequence[HeatHistoryEntry],
    now: Optional[datetime] = None,
) -> HeatAcclimationProfile:
    now = now or datetime.now(timezone.utc)
    window_start = now - timedelta(days=LOOKBACK_DAYS)
    hot: List[HeatHistoryEntry] = sorted(
        (
            e for e in history
            if e.analyzed_at >= window_start
            and ((e.avg_temperature_c or 0) > HEAT_EXPOSURE_TEMP_C
                 or (e.avg_humidity_percent or 0) > HEAT_EXPOSURE_HUMIDITY_PCT)
        ),
        key=lambda e: e.analyzed_at,
    )
    if not hot:
        return _neutral_profile(now)

    recent_start = now - timedelta(days=RECENT_DAYS)
    recent = sum(1 for e in hot if e.analyzed_at >= recent_start)
    tolerance = sum(100 - (e.heat_impact_score if e.heat_impact_score is not None else 50) for e in hot) / len(hot)
    improvement = _hr_drift_trend(hot)
    stability = _pace_stability(hot)

    frequency_score = min(100.0, recent / FULL_FREQUENCY_EXPOSURES * 100.0)
    improvement_score = _clamp(0.0, 100.0, 50.0 + improvement)
    composite = (
        frequency_score * 0.3
        + tolerance * 0.3
        + improvement_score * 0.2
        + stability * 0.2
    )

    return HeatAcclimationProfile(
        acclimation_index=int(round(_clamp(0.0, 100.0, composite))),
        recent_heat_exposures=recent,
        average_heat_tolerance=tolerance,
        hr_drift_improvement=improvement,
        pace_stability_in_heat=stability,
        last_updated=now,
    )
