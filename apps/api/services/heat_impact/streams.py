"""Input records for the heat impact engine.

Per-sample activity data is held as an ordered tuple of ``StreamSample``
records. Index alignment between channels is checked once, when the
bundle is built, instead of being re-validated by every consumer.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple


class StreamStructureError(ValueError):
    """Caller contract violation: missing mandatory channels or misaligned arrays."""


# Optional channels, keyed by StreamSample attribute name.
OPTIONAL_CHANNELS = ("elevation_m", "velocity_m_s", "heart_rate", "cadence", "grade")

# Strava stream keys -> StreamSample attribute names.
STRAVA_CHANNEL_MAP = {
    "altitude": "elevation_m",
    "velocity_smooth": "velocity_m_s",
    "heartrate": "heart_rate",
    "cadence": "cadence",
    "grade_smooth": "grade",
}


@dataclass(frozen=True)
class WeatherObservation:
    """One hourly observation from the weather provider."""
    timestamp: datetime
    temperature_c: float
    humidity_percent: float
    dew_point_c: Optional[float] = None


@dataclass(frozen=True)
class StreamSample:
    time_s: float
    distance_m: float
    elevation_m: Optional[float] = None
    velocity_m_s: Optional[float] = None
    heart_rate: Optional[float] = None
    cadence: Optional[float] = None
    grade: Optional[float] = None  # ratio, not percent


@dataclass(frozen=True)
class StreamBundle:
    samples: Tuple[StreamSample, ...]
    start_time: datetime
    channels: FrozenSet[str] = field(default_factory=frozenset)

    def __len__(self) -> int:
        return len(self.samples)

    def has_channel(self, name: str) -> bool:
        return name in self.channels

    def channel(self, name: str) -> Optional[List[float]]:
        """Return one optional channel as a list, or None when it was not supplied."""
        if name not in self.channels:
            return None
        return [getattr(s, name) for s in self.samples]

    @property
    def time_s(self) -> List[float]:
        return [s.time_s for s in self.samples]

    @property
    def distance_m(self) -> List[float]:
        return [s.distance_m for s in self.samples]

    @property
    def total_distance_km(self) -> float:
        if not self.samples:
            return 0.0
        return self.samples[-1].distance_m / 1000.0

    @property
    def elapsed_minutes(self) -> float:
        if len(self.samples) < 2:
            return 0.0
        return (self.samples[-1].time_s - self.samples[0].time_s) / 60.0

    def timestamps(self) -> List[datetime]:
        """Absolute wall-clock time of every sample."""
        return [self.start_time + timedelta(seconds=s.time_s) for s in self.samples]

    @classmethod
    def from_channels(
        cls,
        time: Optional[Sequence[float]],
        distance: Optional[Sequence[float]],
        start_time: datetime,
        elevation: Optional[Sequence[float]] = None,
        velocity: Optional[Sequence[float]] = None,
        heart_rate: Optional[Sequence[float]] = None,
        cadence: Optional[Sequence[float]] = None,
        grade: Optional[Sequence[float]] = None,
    ) -> "StreamBundle":
        """Build a bundle from parallel arrays.

        Raises:
            StreamStructureError: time/distance missing, empty or holding
                nulls, or any supplied channel length differs from the
                time channel.
        """
        return cls._build(time, distance, start_time, {
            "elevation_m": elevation,
            "velocity_m_s": velocity,
            "heart_rate": heart_rate,
            "cadence": cadence,
            "grade": grade,
        })

    @classmethod
    def from_stream_data(cls, stream_data: Dict[str, Any], start_time: datetime) -> "StreamBundle":
        """Build a bundle from an ActivityStream.stream_data payload (Strava keys).

        grade_smooth is a percentage and is stored as a ratio. Strava reports
        running cadence per leg; values below 120 are doubled to steps/min.
        """
        optional = {
            name: stream_data.get(key)
            for key, name in STRAVA_CHANNEL_MAP.items()
        }
        if optional["grade"] is not None:
            optional["grade"] = [g / 100.0 if g is not None else None for g in optional["grade"]]
        if optional["cadence"] is not None:
            optional["cadence"] = [_full_stride_cadence(c) for c in optional["cadence"]]

        return cls._build(stream_data.get("time"), stream_data.get("distance"), start_time, optional)

    @classmethod
    def _build(
        cls,
        time: Optional[Sequence[float]],
        distance: Optional[Sequence[float]],
        start_time: datetime,
        optional: Dict[str, Optional[Sequence[float]]],
    ) -> "StreamBundle":
        if time is None or distance is None:
            raise StreamStructureError("time and distance streams are required")
        n = len(time)
        if n == 0:
            raise StreamStructureError("time stream is empty")
        if len(distance) != n:
            raise StreamStructureError(
                f"distance stream length {len(distance)} != time stream length {n}"
            )
        for name, values in (("time", time), ("distance", distance)):
            missing = sum(1 for v in values if v is None)
            if missing:
                raise StreamStructureError(f"{name} stream has {missing} null samples")

        present = {}
        for name in OPTIONAL_CHANNELS:
            values = optional.get(name)
            if values is None:
                continue
            if len(values) != n:
                raise StreamStructureError(
                    f"{name} stream length {len(values)} != time stream length {n}"
                )
            present[name] = values

        samples = tuple(
            StreamSample(
                time_s=float(time[i]),
                distance_m=float(distance[i]),
                **{name: _as_float(values[i]) for name, values in present.items()},
            )
            for i in range(n)
        )
        return cls(samples=samples, start_time=start_time, channels=frozenset(present))


def _as_float(value: Any) -> Optional[float]:
    return float(value) if value is not None else None


def _full_stride_cadence(raw: Optional[float]) -> Optional[float]:
    if raw is None:
        return None
    return raw * 2 if raw < 120 else raw
