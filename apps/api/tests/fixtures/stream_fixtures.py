"""Synthetic stream and weather generators for heat impact tests.

Stream generators produce a dict matching ActivityStream.stream_data
(Strava channel names):
    {"time": [...], "distance": [...], "heartrate": [...], ...}

All generators are deterministic (no randomness).
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from services.heat_impact.lapse_rate import AdjustedWeatherPoint
from services.heat_impact.streams import WeatherObservation

START = datetime(2024, 7, 14, 6, 0, tzinfo=timezone.utc)


def make_steady_run_stream(
    duration_s: int = 7200,
    sample_s: int = 10,
    velocity_m_s: float = 3.0,
    hr: float = 145.0,
    cadence_spm: float = 172.0,
    altitude_m: float = 0.0,
) -> Dict[str, List]:
    """Even-effort run on flat ground: every channel constant."""
    n = duration_s // sample_s
    return {
        "time": [i * sample_s for i in range(n)],
        "distance": [round(i * sample_s * velocity_m_s, 1) for i in range(n)],
        "heartrate": [hr] * n,
        "velocity_smooth": [velocity_m_s] * n,
        "cadence": [cadence_spm] * n,
        "altitude": [altitude_m] * n,
        "grade_smooth": [0.0] * n,
    }


def make_heat_stressed_run_stream(
    duration_s: int = 7200,
    sample_s: int = 10,
    velocity_m_s: float = 3.0,
    base_hr: float = 145.0,
    hr_drift_bpm: float = 20.0,
    drift_start_fraction: float = 0.5,
    drift_end_fraction: float = 0.7,
    fade_start_fraction: float = 0.6,
    pace_fade: float = 0.20,
    cadence_spm: float = 172.0,
    cadence_drop: float = 0.10,
) -> Dict[str, List]:
    """Flat run that falls apart in the heat.

    HR ramps by ``hr_drift_bpm`` between the drift fractions and stays up;
    velocity and cadence step down by ``pace_fade`` / ``cadence_drop`` at
    ``fade_start_fraction``.
    """
    n = duration_s // sample_s
    drift_start = int(n * drift_start_fraction)
    drift_end = int(n * drift_end_fraction)
    fade_start = int(n * fade_start_fraction)

    time, distance, heartrate, velocity, cadence = [], [], [], [], []
    cum_dist = 0.0
    for i in range(n):
        if i < drift_start:
            hr = base_hr
        elif i < drift_end:
            hr = base_hr + hr_drift_bpm * (i - drift_start) / (drift_end - drift_start)
        else:
            hr = base_hr + hr_drift_bpm

        faded = i >= fade_start
        v = velocity_m_s * (1 - pace_fade) if faded else velocity_m_s
        cad = cadence_spm * (1 - cadence_drop) if faded else cadence_spm

        time.append(i * sample_s)
        distance.append(round(cum_dist, 1))
        heartrate.append(round(hr, 1))
        velocity.append(round(v, 3))
        cadence.append(round(cad, 1))
        cum_dist += v * sample_s

    return {
        "time": time,
        "distance": distance,
        "heartrate": heartrate,
        "velocity_smooth": velocity,
        "cadence": cadence,
        "altitude": [0.0] * n,
        "grade_smooth": [0.0] * n,
    }


def make_hilly_heat_stressed_run_stream(
    hill_start: int = 316,
    hill_samples: int = 20,
    hill_grade_pct: float = 8.0,
    hill_slowdown: float = 0.40,
    sample_s: int = 10,
    **kwargs,
) -> Dict[str, List]:
    """Heat-stressed run with one steep ramp before the fade.

    On the ramp velocity drops by ``hill_slowdown``, more than the heat
    fade, so only grade matching keeps it out of the pace comparison.
    """
    stream = make_heat_stressed_run_stream(sample_s=sample_s, **kwargs)
    velocity = stream["velocity_smooth"]
    grade = stream["grade_smooth"]
    for i in range(hill_start, hill_start + hill_samples):
        velocity[i] = round(velocity[i] * (1 - hill_slowdown), 3)
        grade[i] = hill_grade_pct

    distance = []
    cum_dist = 0.0
    for v in velocity:
        distance.append(round(cum_dist, 1))
        cum_dist += v * sample_s
    stream["distance"] = distance
    return stream


def make_climb_stream(
    flat_before: int = 30,
    climb_samples: int = 50,
    gain_per_sample_m: float = 12.0,
    flat_after: int = 40,
    sample_s: int = 60,
    velocity_m_s: float = 1.5,
    base_altitude_m: float = 0.0,
) -> Dict[str, List]:
    """Flat approach, one steady climb, flat summit ridge (1-minute samples)."""
    n = flat_before + climb_samples + flat_after
    altitude = []
    elevation = base_altitude_m
    for i in range(n):
        if flat_before <= i < flat_before + climb_samples:
            elevation += gain_per_sample_m
        altitude.append(elevation)
    return {
        "time": [i * sample_s for i in range(n)],
        "distance": [round(i * sample_s * velocity_m_s, 1) for i in range(n)],
        "heartrate": [140.0] * n,
        "velocity_smooth": [velocity_m_s] * n,
        "cadence": [160.0] * n,
        "altitude": altitude,
        "grade_smooth": [0.0] * n,
    }


def make_climb_repeats_stream(
    climbs: Sequence[Tuple[int, int, float, float]],
    n: int = 720,
    sample_s: int = 10,
    velocity_m_s: float = 2.5,
) -> Dict[str, List]:
    """Flat stream with climbs given as (start, samples, first_gain_m, gain_m).

    ``first_gain_m`` is the rise on the climb's first sample; every later
    sample of the climb rises ``gain_m``.
    """
    rises = [0.0] * n
    for start, samples, first_gain, gain in climbs:
        for k in range(samples):
            rises[start + k] = first_gain if k == 0 else gain

    altitude = []
    elevation = 100.0
    for i in range(n):
        elevation += rises[i]
        altitude.append(elevation)
    return {
        "time": [i * sample_s for i in range(n)],
        "distance": [round(i * sample_s * velocity_m_s, 1) for i in range(n)],
        "altitude": altitude,
    }


def make_hourly_weather(
    start: datetime = START,
    hours: int = 6,
    temperature_c: float = 30.0,
    humidity_percent: float = 60.0,
    temperature_step_c: float = 0.0,
    humidity_step_pct: float = 0.0,
) -> List[WeatherObservation]:
    """Hourly observations starting one hour before ``start``."""
    first = start - timedelta(hours=1)
    return [
        WeatherObservation(
            timestamp=first + timedelta(hours=h),
            temperature_c=temperature_c + h * temperature_step_c,
            humidity_percent=humidity_percent + h * humidity_step_pct,
        )
        for h in range(hours)
    ]


def make_weather_points(
    heat_index: Sequence[float],
    humidity: Optional[Sequence[float]] = None,
    elevation: Optional[Sequence[float]] = None,
    temperature: Optional[Sequence[float]] = None,
    spacing_minutes: float = 1.0,
    start: datetime = START,
) -> List[AdjustedWeatherPoint]:
    """Hand-built adjusted weather points for classifier tests.

    Temperature defaults to the heat index; humidity defaults to 50%.
    """
    n = len(heat_index)
    humidity = humidity if humidity is not None else [50.0] * n
    elevation = elevation if elevation is not None else [0.0] * n
    temperature = temperature if temperature is not None else list(heat_index)
    return [
        AdjustedWeatherPoint(
            elevation_m=elevation[i],
            timestamp=start + timedelta(minutes=i * spacing_minutes),
            temperature_c=temperature[i],
            humidity_percent=humidity[i],
            dew_point_c=0.0,
            heat_index_c=heat_index[i],
            feels_like_c=heat_index[i],
        )
        for i in range(n)
    ]
