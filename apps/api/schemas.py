from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from uuid import UUID
from typing import Optional, List, Dict


class WeatherObservationIn(BaseModel):
    timestamp: datetime
    temperature_c: float
    humidity_percent: float = Field(ge=0, le=100)
    dew_point_c: Optional[float] = None


class HeatImpactAnalyzeRequest(BaseModel):
    """Stateless analysis of a posted activity.

    ``stream_data`` uses Strava channel names: time, distance, altitude,
    velocity_smooth, heartrate, cadence, grade_smooth (percent).
    """
    start_time: datetime
    stream_data: Dict[str, List[Optional[float]]]
    hourly_weather: List[WeatherObservationIn]
    activity_duration_minutes: Optional[float] = Field(default=None, gt=0)
    base_elevation_m: Optional[float] = None
    historical_scores: Optional[List[int]] = None
    include_weather: bool = False


class ActivityHeatImpactRequest(BaseModel):
    """Analyze and persist a stored activity.

    Weather is fetched for the activity's start location when omitted.
    """
    hourly_weather: Optional[List[WeatherObservationIn]] = None
    base_elevation_m: Optional[float] = None
    force_recompute: bool = False


class HeatAcclimationResponse(BaseModel):
    athlete_id: UUID
    acclimation_index: int
    recent_heat_exposures: int
    average_heat_tolerance: float
    hr_drift_improvement: float
    pace_stability_in_heat: float
    last_updated: datetime

    model_config = ConfigDict(from_attributes=True)


class HeatImpactTaskResult(BaseModel):
    """Shape of the background task's return value."""
    status: str  # success / skipped / error
    activity_id: str
    overall_score: Optional[int] = None
    severity: Optional[str] = None
    reason: Optional[str] = None


class PersonalizedRecommendationsResponse(BaseModel):
    activity_id: UUID
    heat_acclimation_index: int
    hydration: List[str]
    pacing: List[str]
    cooling: List[str]
    clothing: List[str]
    acclimation: List[str]
    personalization_factors: List[str]
