"""Physiological stress detection.

Four independent detectors (HR drift, pace degradation, VAM decline,
cadence drop). Each compares an early baseline window against later
rolling windows and reports the largest deviation. Missing channels or
short streams yield a not-detected signature, never an error.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from services.heat_impact.config import DEFAULT_CONFIG, HeatAnalysisConfig
from services.heat_impact.streams import StreamBundle

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Signatures
# ---------------------------------------------------------------------------

@dataclass
class HRDrift:
    detected: bool = False
    magnitude_bpm: float = 0.0
    start_km: float = 0.0
    start_index: int = 0
    baseline_hr: float = 0.0
    peak_hr: float = 0.0
    sustained: bool = False  # Drift persists past the peak window

    @classmethod
    def not_detected(cls) -> "HRDrift":
        return cls()


@dataclass
class PaceDegradation:
    detected: bool = False
    degradation_percent: float = 0.0
    start_km: float = 0.0
    start_index: int = 0
    baseline_pace_min_km: float = 0.0
    degraded_pace_min_km: float = 0.0
    controlled_for_grade: bool = False

    @classmethod
    def not_detected(cls) -> "PaceDegradation":
        return cls()


@dataclass
class VAMDecline:
    detected: bool = False
    decline_percent: float = 0.0
    early_vam: float = 0.0
    late_vam: float = 0.0
    climb_segments_analyzed: int = 0
    start_km: float = 0.0
    start_index: int = 0

    @classmethod
    def not_detected(cls, climbs: int = 0) -> "VAMDecline":
        return cls(climb_segments_analyzed=climbs)


@dataclass
class CadenceDrop:
    detected: bool = False
    drop_percent: float = 0.0
    start_km: float = 0.0
    start_index: int = 0
    baseline_cadence: float = 0.0
    dropped_cadence: float = 0.0

    @classmethod
    def not_detected(cls) -> "CadenceDrop":
        return cls()


@dataclass
class PhysiologicalStress:
    hr_drift: HRDrift
    pace_degradation: PaceDegradation
    vam_decline: VAMDecline
    cadence_drop: CadenceDrop

    @property
    def overall_stress_detected(self) -> bool:
        return (self.hr_drift.detected or self.pace_degradation.detected
                or self.vam_decline.detected or self.cadence_drop.detected)

    @property
    def indicator_count(self) -> int:
        return sum([self.hr_drift.detected, self.pace_degradation.detected,
                    self.vam_decline.detected, self.cadence_drop.detected])


@dataclass
class ClimbSegment:
    start_index: int
    end_index: int
    elevation_gain_m: float
    duration_minutes: float
    vam: float


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _mean(values: Sequence[Optional[float]]) -> Optional[float]:
    """Mean of non-None values, or None when there are none."""
    valid = [v for v in values if v is not None]
    if not valid:
        return None
    return sum(valid) / len(valid)


def _window_size(n: int, cfg: HeatAnalysisConfig) -> int:
    return max(1, min(cfg.max_window_samples, int(n * cfg.window_fraction)))


def _window_starts(first: int, n: int, window: int) -> range:
    """Non-overlapping window starts in [first, n - window)."""
    return range(first, n - window, window)


def _km_at(distance: Sequence[float], index: int) -> float:
    return distance[index] / 1000.0 if index > 0 else 0.0


def _grade_matches(
    grade: Optional[Sequence[Optional[float]]],
    baseline_grade: Optional[float],
    start: int,
    window: int,
    cfg: HeatAnalysisConfig,
) -> bool:
    if grade is None or baseline_grade is None:
        return True
    segment_grade = _mean(grade[start:start + window])
    if segment_grade is None:
        return True
    return abs(segment_grade - baseline_grade) <= cfg.grade_match_tolerance


def _velocity_to_pace_min_km(velocity_m_s: float) -> float:
    if velocity_m_s <= 0:
        return 0.0
    return 1000.0 / (velocity_m_s * 60.0)


# ---------------------------------------------------------------------------
# Detectors
# ---------------------------------------------------------------------------

def detect_hr_drift(
    heart_rate: Optional[Sequence[Optional[float]]],
    distance: Sequence[float],
    config: Optional[HeatAnalysisConfig] = None,
) -> HRDrift:
    """Sustained HR rise over the [10%, 30%) baseline."""
    cfg = config or DEFAULT_CONFIG
    if heart_rate is None or len(heart_rate) < cfg.min_stream_samples or len(heart_rate) != len(distance):
        return HRDrift.not_detected()

    n = len(heart_rate)
    baseline_start = int(n * cfg.hr_baseline_start_fraction)
    baseline_end = int(n * cfg.hr_baseline_end_fraction)
    baseline_hr = _mean(heart_rate[baseline_start:baseline_end])
    if baseline_hr is None:
        return HRDrift.not_detected()

    window = _window_size(n, cfg)
    max_drift = 0.0
    drift_start = 0
    peak_hr = baseline_hr
    for i in _window_starts(baseline_end, n, window):
        segment_avg = _mean(heart_rate[i:i + window])
        if segment_avg is None:
            continue
        drift = segment_avg - baseline_hr
        if drift > max_drift:
            max_drift = drift
            drift_start = i
            peak_hr = segment_avg

    detected = max_drift > cfg.hr_drift_threshold_bpm
    sustained = False
    if detected:
        follow_start = drift_start + window
        follow_end = min(n, follow_start + window * cfg.hr_sustained_windows)
        follow_avg = _mean(heart_rate[follow_start:follow_end])
        if follow_avg is not None:
            sustained = (follow_avg - baseline_hr) >= max_drift * cfg.hr_sustained_fraction

    return HRDrift(
        detected=detected,
        magnitude_bpm=max_drift,
        start_km=_km_at(distance, drift_start),
        start_index=drift_start,
        baseline_hr=baseline_hr,
        peak_hr=peak_hr,
        sustained=sustained,
    )


def detect_pace_degradation(
    velocity: Optional[Sequence[Optional[float]]],
    distance: Sequence[float],
    grade: Optional[Sequence[Optional[float]]] = None,
    config: Optional[HeatAnalysisConfig] = None,
) -> PaceDegradation:
    """Velocity loss against the first 30%, grade-matched when grade is supplied."""
    cfg = config or DEFAULT_CONFIG
    if velocity is None or len(velocity) < cfg.min_stream_samples or len(velocity) != len(distance):
        return PaceDegradation.not_detected()

    n = len(velocity)
    if grade is not None and len(grade) != n:
        grade = None
    baseline_end = int(n * cfg.pace_baseline_end_fraction)

    def moving(values):
        return [v for v in values if v is not None and v > cfg.min_moving_velocity_m_s]

    baseline_velocity = _mean(moving(velocity[:baseline_end]))
    if baseline_velocity is None:
        return PaceDegradation.not_detected()
    baseline_grade = _mean(grade[:baseline_end]) if grade is not None else None

    window = _window_size(n, cfg)
    max_degradation = 0.0
    degradation_start = 0
    degraded_velocity = baseline_velocity
    for i in _window_starts(baseline_end, n, window):
        valid = moving(velocity[i:i + window])
        if len(valid) < window * cfg.min_valid_window_fraction:
            continue
        if not _grade_matches(grade, baseline_grade, i, window, cfg):
            continue
        segment_velocity = sum(valid) / len(valid)
        degradation = (baseline_velocity - segment_velocity) / baseline_velocity
        if degradation > max_degradation:
            max_degradation = degradation
            degradation_start = i
            degraded_velocity = segment_velocity

    return PaceDegradation(
        detected=max_degradation > cfg.pace_degradation_threshold,
        degradation_percent=max_degradation * 100.0,
        start_km=_km_at(distance, degradation_start),
        start_index=degradation_start,
        baseline_pace_min_km=_velocity_to_pace_min_km(baseline_velocity),
        degraded_pace_min_km=_velocity_to_pace_min_km(degraded_velocity),
        controlled_for_grade=grade is not None,
    )


def find_climb_segments(
    elevation: Sequence[Optional[float]],
    time_s: Sequence[float],
    config: Optional[HeatAnalysisConfig] = None,
) -> List[ClimbSegment]:
    """Runs of sustained gain long and high enough to measure VAM on."""
    cfg = config or DEFAULT_CONFIG
    climbs: List[ClimbSegment] = []
    climb_start: Optional[int] = None
    last = len(elevation) - 1

    for i in range(1, len(elevation)):
        if elevation[i] is None or elevation[i - 1] is None:
            continue
        gain = elevation[i] - elevation[i - 1]

        if climb_start is None:
            if gain > cfg.vam_climb_start_gain_m:
                climb_start = i
            continue

        if gain < cfg.vam_climb_end_gain_m or i == last:
            total_gain = elevation[i] - elevation[climb_start]
            minutes = (time_s[i] - time_s[climb_start]) / 60.0
            if total_gain > cfg.vam_min_climb_gain_m and minutes > cfg.vam_min_climb_minutes:
                climbs.append(ClimbSegment(
                    start_index=climb_start,
                    end_index=i,
                    elevation_gain_m=total_gain,
                    duration_minutes=minutes,
                    vam=total_gain / minutes,
                ))
            climb_start = None

    return climbs


def detect_vam_decline(
    elevation: Optional[Sequence[Optional[float]]],
    time_s: Sequence[float],
    distance: Sequence[float],
    config: Optional[HeatAnalysisConfig] = None,
) -> VAMDecline:
    """Late-climb VAM against early-climb VAM; needs at least two climbs."""
    cfg = config or DEFAULT_CONFIG
    if elevation is None or len(elevation) < cfg.min_stream_samples or len(elevation) != len(time_s):
        return VAMDecline.not_detected()

    climbs = find_climb_segments(elevation, time_s, cfg)
    if len(climbs) < cfg.vam_min_climbs:
        return VAMDecline.not_detected(len(climbs))

    # Odd counts put the middle climb in both halves.
    early = climbs[:(len(climbs) + 1) // 2]
    late = climbs[len(climbs) // 2:]
    early_vam = sum(c.vam for c in early) / len(early)
    late_vam = sum(c.vam for c in late) / len(late)
    if early_vam <= 0:
        return VAMDecline.not_detected(len(climbs))

    decline = (early_vam - late_vam) / early_vam
    start_index = late[0].start_index
    return VAMDecline(
        detected=decline > cfg.vam_decline_threshold,
        decline_percent=decline * 100.0,
        early_vam=early_vam,
        late_vam=late_vam,
        climb_segments_analyzed=len(climbs),
        start_km=_km_at(distance, start_index),
        start_index=start_index,
    )


def detect_cadence_drop(
    cadence: Optional[Sequence[Optional[float]]],
    distance: Sequence[float],
    grade: Optional[Sequence[Optional[float]]] = None,
    config: Optional[HeatAnalysisConfig] = None,
) -> CadenceDrop:
    cfg = config or DEFAULT_CONFIG
    if cadence is None or len(cadence) < cfg.min_stream_samples or len(cadence) != len(distance):
        return CadenceDrop.not_detected()

    n = len(cadence)
    if grade is not None and len(grade) != n:
        grade = None
    baseline_end = int(n * cfg.cadence_baseline_end_fraction)

    def running(values):
        return [c for c in values if c is not None and c > cfg.min_running_cadence_spm]

    baseline_cadence = _mean(running(cadence[:baseline_end]))
    if baseline_cadence is None:
        return CadenceDrop.not_detected()
    baseline_grade = _mean(grade[:baseline_end]) if grade is not None else None

    window = _window_size(n, cfg)
    max_drop = 0.0
    drop_start = 0
    dropped_cadence = baseline_cadence
    for i in _window_starts(baseline_end, n, window):
        valid = running(cadence[i:i + window])
        if len(valid) < window * cfg.min_valid_window_fraction:
            continue
        if not _grade_matches(grade, baseline_grade, i, window, cfg):
            continue
        segment_cadence = sum(valid) / len(valid)
        drop = (baseline_cadence - segment_cadence) / baseline_cadence
        if drop > max_drop:
            max_drop = drop
            drop_start = i
            dropped_cadence = segment_cadence

    return CadenceDrop(
        detected=max_drop > cfg.cadence_drop_threshold,
        drop_percent=max_drop * 100.0,
        start_km=_km_at(distance, drop_start),
        start_index=drop_start,
        baseline_cadence=baseline_cadence,
        dropped_cadence=dropped_cadence,
    )


def analyze_physiological_stress(
    bundle: StreamBundle,
    config: Optional[HeatAnalysisConfig] = None,
) -> PhysiologicalStress:
    """Run all four detectors over one activity's streams."""
    cfg = config or DEFAULT_CONFIG
    distance = bundle.distance_m
    grade = bundle.channel("grade")

    stress = PhysiologicalStress(
        hr_drift=detect_hr_drift(bundle.channel("heart_rate"), distance, cfg),
        pace_degradation=detect_pace_degradation(bundle.channel("velocity_m_s"), distance, grade, cfg),
        vam_decline=detect_vam_decline(bundle.channel("elevation_m"), bundle.time_s, distance, cfg),
        cadence_drop=detect_cadence_drop(bundle.channel("cadence"), distance, grade, cfg),
    )
    logger.debug(
        f"Physiological stress: {stress.indicator_count} indicators over {len(bundle)} samples"
    )
    return stress
