"""
Historical Weather Provider (Open-Meteo archive)

Fetches hourly temperature / humidity / dew point for an activity's
start location and date range. No API key is required.

Responses are cached in Redis by rounded location + date range; archive
data for a past day does not change, so the TTL is long. When Redis is
down the provider is simply called every time.

No retries here: the Celery task decides whether to try again.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import requests

from core.cache import cache_key, get_cache, set_cache
from core.config import settings
from services.heat_impact.streams import WeatherObservation

logger = logging.getLogger(__name__)

HOURLY_FIELDS = "temperature_2m,relative_humidity_2m,dew_point_2m"

# ~1 km; weather does not vary meaningfully inside one grid cell
CACHE_COORD_DP = 2


class WeatherProviderError(Exception):
    """Transport, HTTP or payload failure from the weather provider."""


@dataclass
class HourlyWeather:
    observations: List[WeatherObservation] = field(default_factory=list)
    elevation_m: Optional[float] = None  # provider grid elevation the observations refer to


def _parse_time(raw: str) -> datetime:
    # Open-Meteo returns naive ISO strings in the requested timezone (UTC)
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_hourly_payload(payload: Dict[str, Any]) -> HourlyWeather:
    """Convert an Open-Meteo JSON payload into chronological observations.

    Hours with a missing temperature or humidity are skipped.

    Raises:
        WeatherProviderError: payload has no hourly block.
    """
    hourly = payload.get("hourly")
    if not isinstance(hourly, dict) or "time" not in hourly:
        raise WeatherProviderError("weather payload has no hourly data")

    times = hourly.get("time") or []
    temps = hourly.get("temperature_2m") or []
    humidity = hourly.get("relative_humidity_2m") or []
    dew_points = hourly.get("dew_point_2m") or []

    observations = []
    for i, raw_time in enumerate(times):
        temp = temps[i] if i < len(temps) else None
        rh = humidity[i] if i < len(humidity) else None
        if temp is None or rh is None:
            continue
        dp = dew_points[i] if i < len(dew_points) else None
        observations.append(WeatherObservation(
            timestamp=_parse_time(raw_time),
            temperature_c=float(temp),
            humidity_percent=float(rh),
            dew_point_c=float(dp) if dp is not None else None,
        ))

    observations.sort(key=lambda o: o.timestamp)
    elevation = payload.get("elevation")
    return HourlyWeather(
        observations=observations,
        elevation_m=float(elevation) if elevation is not None else None,
    )


def fetch_hourly_weather(
    lat: float,
    lon: float,
    start_date: date,
    end_date: date,
) -> HourlyWeather:
    """Hourly observations covering [start_date, end_date] at (lat, lon).

    Raises:
        WeatherProviderError: request failed, non-2xx status, or bad payload.
    """
    key = cache_key(
        "weather:hourly",
        round(lat, CACHE_COORD_DP),
        round(lon, CACHE_COORD_DP),
        start_date.isoformat(),
        end_date.isoformat(),
    )
    cached = get_cache(key)
    if cached is not None:
        logger.debug(f"Weather cache hit: {key}")
        return parse_hourly_payload(cached)

    params = {
        "latitude": float(lat),
        "longitude": float(lon),
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "hourly": HOURLY_FIELDS,
        "timezone": "UTC",
        "temperature_unit": "celsius",
    }
    try:
        r = requests.get(
            settings.WEATHER_API_BASE_URL,
            params=params,
            timeout=settings.WEATHER_API_TIMEOUT_S,
        )
        r.raise_for_status()
        payload = r.json()
    except requests.exceptions.RequestException as e:
        logger.warning(f"Weather provider request failed for ({lat}, {lon}) {start_date}: {e}")
        raise WeatherProviderError(str(e)) from e
    except ValueError as e:
        raise WeatherProviderError(f"weather provider returned invalid JSON: {e}") from e

    weather = parse_hourly_payload(payload)
    if weather.observations:
        set_cache(key, payload, ttl=settings.WEATHER_CACHE_TTL_S)
    logger.info(
        f"Fetched {len(weather.observations)} hourly observations for ({lat:.3f}, {lon:.3f})",
        extra={"extra_fields": {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()}},
    )
    return weather


def fetch_weather_for_activity(
    lat: float,
    lon: float,
    start_time: datetime,
    duration_s: float,
) -> HourlyWeather:
    """Hourly weather spanning the activity, padded one hour on each side."""
    if start_time.tzinfo is None:
        start_time = start_time.replace(tzinfo=timezone.utc)
    window_start = (start_time - timedelta(hours=1)).astimezone(timezone.utc)
    window_end = (start_time + timedelta(seconds=duration_s or 0) + timedelta(hours=1)).astimezone(timezone.utc)
    return fetch_hourly_weather(lat, lon, window_start.date(), window_end.date())
