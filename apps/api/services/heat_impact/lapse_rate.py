"""Weather interpolation and elevation correction.

Hourly observations are interpolated onto each activity sample, then the
temperature is corrected for the athlete's elevation with a lapse rate and
relative humidity is recomputed at the corrected temperature with the dew
point held constant (Magnus formula).
"""
from __future__ import annotations

import bisect
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from services.heat_impact.config import DEFAULT_CONFIG, HeatAnalysisConfig
from services.heat_impact.streams import StreamStructureError, WeatherObservation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdjustedWeatherPoint:
    elevation_m: float
    timestamp: datetime
    temperature_c: float
    humidity_percent: float
    dew_point_c: float
    heat_index_c: float
    feels_like_c: float


def adjust_temperature_for_elevation(
    base_temperature_c: float,
    base_elevation_m: float,
    target_elevation_m: float,
    humidity: float = 50.0,
    config: Optional[HeatAnalysisConfig] = None,
) -> float:
    """Temperature at target elevation using the dry or moist lapse rate."""
    cfg = config or DEFAULT_CONFIG
    if humidity > cfg.moist_lapse_humidity_pct:
        rate = cfg.moist_lapse_rate_c_per_m
    else:
        rate = cfg.dry_lapse_rate_c_per_m
    return base_temperature_c - (target_elevation_m - base_elevation_m) * rate


def calculate_dew_point(
    temperature_c: float,
    relative_humidity: float,
    config: Optional[HeatAnalysisConfig] = None,
) -> float:
    """Magnus-formula dew point (°C)."""
    cfg = config or DEFAULT_CONFIG
    rh = max(cfg.min_humidity_pct, min(100.0, relative_humidity))
    alpha = (cfg.magnus_a * temperature_c) / (cfg.magnus_b + temperature_c) + math.log(rh / 100.0)
    return (cfg.magnus_b * alpha) / (cfg.magnus_a - alpha)


def calculate_relative_humidity(
    temperature_c: float,
    dew_point_c: float,
    config: Optional[HeatAnalysisConfig] = None,
) -> float:
    """Inverse Magnus formula, clamped to [0, 100]."""
    cfg = config or DEFAULT_CONFIG
    numerator = math.exp((cfg.magnus_a * dew_point_c) / (cfg.magnus_b + dew_point_c))
    denominator = math.exp((cfg.magnus_a * temperature_c) / (cfg.magnus_b + temperature_c))
    return max(0.0, min(100.0, 100.0 * numerator / denominator))


def adjust_humidity_for_elevation(
    base_temperature_c: float,
    base_humidity: float,
    adjusted_temperature_c: float,
    config: Optional[HeatAnalysisConfig] = None,
) -> float:
    """Relative humidity at the adjusted temperature, dew point held constant."""
    dew_point = calculate_dew_point(base_temperature_c, base_humidity, config)
    return calculate_relative_humidity(adjusted_temperature_c, dew_point, config)


def calculate_heat_index(
    temperature_c: float,
    relative_humidity: float,
    config: Optional[HeatAnalysisConfig] = None,
) -> float:
    """NOAA Rothfusz regression heat index (°C).

    Below ~26.7°C (80°F) or 40% humidity the regression is not valid and
    the dry-bulb temperature is returned.
    """
    cfg = config or DEFAULT_CONFIG
    temp_f = temperature_c * 9 / 5 + 32
    rh = relative_humidity
    if temp_f < cfg.heat_index_min_temp_f or rh < cfg.heat_index_min_humidity_pct:
        return temperature_c

    hif = (
        -42.379
        + 2.04901523 * temp_f
        + 10.14333127 * rh
        - 0.22475541 * temp_f * rh
        - 0.00683783 * temp_f * temp_f
        - 0.05481717 * rh * rh
        + 0.00122874 * temp_f * temp_f * rh
        + 0.00085282 * temp_f * rh * rh
        - 0.00000199 * temp_f * temp_f * rh * rh
    )
    heat_index_c = (hif - 32) * 5 / 9
    return max(temperature_c, heat_index_c)


def calculate_feels_like(
    temperature_c: float,
    relative_humidity: float,
    config: Optional[HeatAnalysisConfig] = None,
) -> float:
    cfg = config or DEFAULT_CONFIG
    if temperature_c >= cfg.feels_like_heat_index_temp_c:
        return calculate_heat_index(temperature_c, relative_humidity, cfg)
    # ±1°C at 0% / 100% humidity
    offset = (relative_humidity - 50.0) / 100.0 * 2.0
    offset = max(-cfg.feels_like_max_offset_c, min(cfg.feels_like_max_offset_c, offset))
    return temperature_c + offset


def interpolate_weather(
    hourly_weather: Sequence[WeatherObservation],
    timestamp: datetime,
    _epochs: Optional[List[float]] = None,
) -> Tuple[float, float]:
    """Linear (temperature, humidity) at ``timestamp``.

    Outside the observation range the nearest observation is used.
    """
    epochs = _epochs if _epochs is not None else [w.timestamp.timestamp() for w in hourly_weather]
    target = timestamp.timestamp()

    hi = bisect.bisect_left(epochs, target)
    if hi < len(epochs) and epochs[hi] == target:
        obs = hourly_weather[hi]
        return obs.temperature_c, obs.humidity_percent
    if hi == 0:
        obs = hourly_weather[0]
        return obs.temperature_c, obs.humidity_percent
    if hi == len(epochs):
        obs = hourly_weather[-1]
        return obs.temperature_c, obs.humidity_percent

    before, after = hourly_weather[hi - 1], hourly_weather[hi]
    span = epochs[hi] - epochs[hi - 1]
    fraction = (target - epochs[hi - 1]) / span if span > 0 else 0.0
    temperature = before.temperature_c + (after.temperature_c - before.temperature_c) * fraction
    humidity = before.humidity_percent + (after.humidity_percent - before.humidity_percent) * fraction
    return temperature, humidity


def generate_point_by_point_weather(
    hourly_weather: Sequence[WeatherObservation],
    elevation_stream: Sequence[float],
    timestamps: Sequence[datetime],
    base_elevation_m: float = 0.0,
    config: Optional[HeatAnalysisConfig] = None,
) -> List[AdjustedWeatherPoint]:
    """Elevation-corrected weather for every activity sample.

    Raises:
        StreamStructureError: elevation and timestamp streams differ in
            length, or no hourly observations were supplied.
    """
    cfg = config or DEFAULT_CONFIG
    if len(elevation_stream) != len(timestamps):
        raise StreamStructureError(
            f"elevation stream length {len(elevation_stream)} != "
            f"time stream length {len(timestamps)}"
        )
    if not hourly_weather:
        raise StreamStructureError("hourly weather is empty")

    epochs = [w.timestamp.timestamp() for w in hourly_weather]
    adjusted: List[AdjustedWeatherPoint] = []
    for elevation, timestamp in zip(elevation_stream, timestamps):
        if elevation is None:
            elevation = base_elevation_m
        base_temp, base_humidity = interpolate_weather(hourly_weather, timestamp, epochs)

        temp = adjust_temperature_for_elevation(
            base_temp, base_elevation_m, elevation, base_humidity, cfg)
        humidity = adjust_humidity_for_elevation(base_temp, base_humidity, temp, cfg)

        adjusted.append(AdjustedWeatherPoint(
            elevation_m=elevation,
            timestamp=timestamp,
            temperature_c=temp,
            humidity_percent=humidity,
            dew_point_c=calculate_dew_point(temp, humidity, cfg),
            heat_index_c=calculate_heat_index(temp, humidity, cfg),
            feels_like_c=calculate_feels_like(temp, humidity, cfg),
        ))

    logger.debug(f"Generated {len(adjusted)} adjusted weather points from {len(hourly_weather)} hourly observations")
    return adjusted
