"""Heat impact engine configuration.

Every numeric threshold the engine uses lives here. Components take an
optional ``HeatAnalysisConfig``; ``None`` means the defaults below.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class HeatAnalysisConfig:
    """Tunable thresholds for the heat impact pipeline."""

    # --- Weather interpolation / lapse rate ---
    dry_lapse_rate_c_per_m: float = 0.0065
    moist_lapse_rate_c_per_m: float = 0.005
    moist_lapse_humidity_pct: float = 70.0   # Above this = moist adiabatic
    magnus_a: float = 17.27
    magnus_b: float = 237.7
    min_humidity_pct: float = 0.1            # Floor before log() in Magnus
    heat_index_min_temp_f: float = 80.0      # ~26.7°C
    heat_index_min_humidity_pct: float = 40.0
    feels_like_heat_index_temp_c: float = 27.0
    feels_like_max_offset_c: float = 1.0

    # --- Stream sufficiency ---
    min_stream_samples: int = 100

    # --- Rolling windows ---
    window_fraction: float = 0.10
    max_window_samples: int = 20
    min_valid_window_fraction: float = 0.5

    # --- HR drift ---
    hr_baseline_start_fraction: float = 0.10
    hr_baseline_end_fraction: float = 0.30
    hr_drift_threshold_bpm: float = 10.0
    hr_sustained_windows: int = 3
    hr_sustained_fraction: float = 0.70

    # --- Pace degradation ---
    pace_baseline_end_fraction: float = 0.30
    min_moving_velocity_m_s: float = 0.5
    grade_match_tolerance: float = 0.03      # Ratio (3 percentage points)
    pace_degradation_threshold: float = 0.15

    # --- VAM decline ---
    vam_climb_start_gain_m: float = 3.0
    vam_climb_end_gain_m: float = 1.0
    vam_min_climb_gain_m: float = 50.0
    vam_min_climb_minutes: float = 5.0
    vam_min_climbs: int = 2
    vam_decline_threshold: float = 0.20

    # --- Cadence drop ---
    cadence_baseline_end_fraction: float = 0.30
    min_running_cadence_spm: float = 100.0
    cadence_drop_threshold: float = 0.08

    # --- Heat index risk tiers (°C) ---
    caution_heat_index_c: float = 27.0
    extreme_caution_heat_index_c: float = 32.0
    danger_heat_index_c: float = 39.0
    extreme_danger_heat_index_c: float = 51.0

    # --- Humidity strain ---
    high_humidity_pct: float = 80.0

    # --- Cooling benefit ---
    cooling_climb_start_gain_m: float = 10.0
    cooling_climb_end_gain_m: float = 5.0
    cooling_min_gain_m: float = 100.0
    cooling_min_temp_drop_c: float = 2.0
    cooling_significant_drop_c: float = 5.0

    # --- Peak heat period ---
    peak_heat_window_minutes: float = 60.0

    # --- Correlation ---
    spike_baseline_fraction: float = 0.30
    heat_spike_delta_c: float = 5.0
    spike_cooldown_samples: int = 10
    preceding_spike_window_km: float = 5.0
    sustained_heat_index_c: float = 27.0
    high_heat_index_c: float = 32.0
    sustained_heat_bonus: float = 0.5
    high_humidity_mean_pct: float = 70.0
    high_temperature_mean_c: float = 25.0
    confidence_base: float = 0.5
    confidence_min_weather_points: int = 100
    confidence_step: float = 0.1
    confidence_no_spike_penalty: float = 0.2
    weak_correlation_threshold: float = 0.3

    # --- Scoring ---
    hr_drift_weight: float = 0.25
    pace_degradation_weight: float = 0.25
    vam_decline_weight: float = 0.15
    cadence_drop_weight: float = 0.15
    hr_drift_full_scale_bpm: float = 20.0
    pace_score_per_pct: float = 2.0
    vam_score_per_pct: float = 2.0
    cadence_score_per_pct: float = 5.0
    sustained_multiplier: float = 1.2
    grade_controlled_multiplier: float = 1.2
    danger_zone_multiplier: float = 10.0
    caution_zone_multiplier: float = 2.0
    extreme_humidity_pct: float = 90.0
    extreme_humidity_bonus: float = 20.0
    significant_cooling_bonus: float = 10.0
    physiological_overall_weight: float = 0.4
    heat_overall_weight: float = 0.4
    humidity_overall_weight: float = 0.2
    cooling_overall_weight: float = 0.1
    moderate_score: int = 25
    high_score: int = 50
    extreme_score: int = 75
    reference_distance_km: float = 50.0

    # --- Recommendation rule table ---
    humidity_advice_score: float = 60.0
    cooling_advice_score: float = 40.0
    physiological_advice_score: float = 70.0


DEFAULT_CONFIG = HeatAnalysisConfig()
