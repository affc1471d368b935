"""
Heat Impact API Router

    POST /v1/heat-impact/analyze                      stateless analysis of a posted payload
    POST /v1/activities/{activity_id}/heat-impact     analyze a stored activity and persist
    GET  /v1/activities/{activity_id}/heat-impact     stored analysis
    GET  /v1/activities/{activity_id}/heat-impact/recommendations   personalized advice
    GET  /v1/athletes/{athlete_id}/heat-acclimation   acclimation index from stored analyses

Structural input errors (misaligned streams, empty weather) are 422.
"""
import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import NotFoundError, UpstreamUnavailableError, ValidationError
from models import Activity, ActivityStream
from schemas import (
    ActivityHeatImpactRequest,
    HeatAcclimationResponse,
    HeatImpactAnalyzeRequest,
    PersonalizedRecommendationsResponse,
    WeatherObservationIn,
)
from services import heat_impact_store
from services.heat_impact import (
    StreamBundle,
    StreamStructureError,
    WeatherObservation,
    analyze,
    calculate_heat_acclimation_index,
)
from services.historical_weather import WeatherProviderError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["heat-impact"])


def _to_observations(items: List[WeatherObservationIn]) -> List[WeatherObservation]:
    observations = [
        WeatherObservation(
            timestamp=w.timestamp,
            temperature_c=w.temperature_c,
            humidity_percent=w.humidity_percent,
            dew_point_c=w.dew_point_c,
        )
        for w in items
    ]
    return sorted(observations, key=lambda o: o.timestamp)


@router.post("/heat-impact/analyze")
def analyze_payload(request: HeatImpactAnalyzeRequest) -> Dict[str, Any]:
    """Analyze streams + weather posted by the caller. Nothing is stored."""
    try:
        bundle = StreamBundle.from_stream_data(request.stream_data, request.start_time)
        analysis = analyze(
            bundle,
            _to_observations(request.hourly_weather),
            request.activity_duration_minutes or bundle.elapsed_minutes,
            base_elevation=request.base_elevation_m or 0.0,
            historical_scores=request.historical_scores,
        )
    except StreamStructureError as e:
        raise ValidationError(str(e), field="streams")
    return analysis.to_dict(include_weather=request.include_weather)


@router.post("/activities/{activity_id}/heat-impact")
def analyze_activity(
    activity_id: UUID,
    request: ActivityHeatImpactRequest,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Analyze a stored activity (with history comparison) and persist the result."""
    activity = db.query(Activity).filter(Activity.id == activity_id).first()
    if activity is None:
        raise NotFoundError("Activity", str(activity_id))
    stream_row = db.query(ActivityStream).filter(ActivityStream.activity_id == activity_id).first()
    if stream_row is None:
        raise NotFoundError("Activity stream", str(activity_id))

    hourly_weather = _to_observations(request.hourly_weather) if request.hourly_weather is not None else None
    try:
        return heat_impact_store.get_or_compute_analysis(
            activity,
            stream_row,
            db,
            hourly_weather=hourly_weather,
            base_elevation=request.base_elevation_m,
            force_recompute=request.force_recompute,
        )
    except StreamStructureError as e:
        raise ValidationError(str(e), field="streams")
    except WeatherProviderError as e:
        raise UpstreamUnavailableError("Weather provider", str(e))
    except ValueError as e:
        # No start location to look weather up for
        raise ValidationError(str(e), field="hourly_weather")


@router.get("/activities/{activity_id}/heat-impact")
def get_activity_heat_impact(
    activity_id: UUID,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    result = heat_impact_store.get_analysis(activity_id, db)
    if result is None:
        raise NotFoundError("Heat impact analysis", str(activity_id))
    return result


@router.get(
    "/activities/{activity_id}/heat-impact/recommendations",
    response_model=PersonalizedRecommendationsResponse,
)
def get_personalized_recommendations(
    activity_id: UUID,
    body_weight_kg: Optional[float] = Query(default=None, gt=0, le=300),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Hydration, pacing, cooling, clothing and acclimation advice for a stored analysis."""
    result = heat_impact_store.get_personalized_recommendations(
        activity_id, db, body_weight_kg=body_weight_kg)
    if result is None:
        raise NotFoundError("Heat impact analysis", str(activity_id))
    return result


@router.get("/athletes/{athlete_id}/heat-acclimation", response_model=HeatAcclimationResponse)
def get_heat_acclimation(
    athlete_id: UUID,
    db: Session = Depends(get_db),
) -> HeatAcclimationResponse:
    history = heat_impact_store.get_acclimation_history(athlete_id, db)
    profile = calculate_heat_acclimation_index(history)
    return HeatAcclimationResponse(
        athlete_id=athlete_id,
        acclimation_index=profile.acclimation_index,
        recent_heat_exposures=profile.recent_heat_exposures,
        average_heat_tolerance=profile.average_heat_tolerance,
        hr_drift_improvement=profile.hr_drift_improvement,
        pace_stability_in_heat=profile.pace_stability_in_heat,
        last_updated=profile.last_updated,
    )
