"""
Heat Impact Store

Persists one HeatImpactAnalysis per activity and serves the athlete-level
reads built on top of it (historical scores, acclimation history).

Compute once, serve many: reads return the stored result_json. A row is
recomputed on a new stream payload, an analysis_version bump, or a manual
reprocess.

Usage:
    result = get_or_compute_analysis(activity, stream_row, db)
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from models import Activity, ActivityHeatImpact, ActivityStream
from services.heat_impact import analyze
from services.heat_impact.acclimation import LOOKBACK_DAYS, HeatHistoryEntry, calculate_heat_acclimation_index
from services.heat_impact.heat_metrics import EnvironmentalStats
from services.heat_impact.pipeline import HeatImpactAnalysis
from services.heat_impact.recommendations import AthleteHeatProfile, generate_personalized_recommendations
from services.heat_impact.streams import StreamBundle, WeatherObservation
from services.historical_weather import fetch_weather_for_activity

logger = logging.getLogger(__name__)

# Bump this when engine logic changes to invalidate stored analyses.
CURRENT_ANALYSIS_VERSION = 1


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def save_analysis(
    activity_id: UUID,
    athlete_id: UUID,
    analysis: HeatImpactAnalysis,
    db: Session,
) -> ActivityHeatImpact:
    """Insert or update the stored analysis for an activity.

    Raises:
        SQLAlchemyError: after rolling back.
    """
    score = analysis.heat_impact_score
    stress = analysis.physiological_stress
    env = analysis.environmental_stats
    values = dict(
        athlete_id=athlete_id,
        overall_score=score.overall_score,
        severity=score.severity.value,
        heat_stress_component=score.heat_stress_component,
        physiological_stress_component=score.physiological_stress_component,
        humidity_strain_score=score.humidity_strain_score,
        cooling_benefit_score=score.cooling_benefit_score,
        normalized_score=analysis.normalized_score,
        correlation_strength=analysis.correlation.correlation_strength,
        primary_factor=analysis.correlation.primary_factor.value,
        hr_drift_magnitude_bpm=stress.hr_drift.magnitude_bpm if stress.hr_drift.detected else None,
        pace_degradation_percent=(
            stress.pace_degradation.degradation_percent if stress.pace_degradation.detected else None
        ),
        avg_temperature_c=env.avg_temperature_c,
        avg_humidity_percent=env.avg_humidity_percent,
        result_json=analysis.to_dict(),
        analysis_version=CURRENT_ANALYSIS_VERSION,
    )

    try:
        row = (
            db.query(ActivityHeatImpact)
            .filter(ActivityHeatImpact.activity_id == activity_id)
            .first()
        )
        if row is None:
            row = ActivityHeatImpact(activity_id=activity_id, **values)
            db.add(row)
        else:
            for name, value in values.items():
                setattr(row, name, value)
            row.analyzed_at = datetime.now(timezone.utc)
        db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Failed to store heat impact analysis for {activity_id}: {e}")
        db.rollback()
        raise

    logger.info(
        f"Stored heat impact analysis for activity {activity_id}",
        extra={"extra_fields": {"overall_score": score.overall_score, "severity": score.severity.value}},
    )
    return row


def invalidate_analysis(activity_id: UUID, db: Session) -> None:
    """Drop the stored analysis (new stream payload, manual reprocess)."""
    db.query(ActivityHeatImpact).filter(
        ActivityHeatImpact.activity_id == activity_id,
    ).delete()
    db.commit()


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_analysis(activity_id: UUID, db: Session) -> Optional[Dict[str, Any]]:
    """Stored result for the activity if it matches the current version."""
    row = (
        db.query(ActivityHeatImpact)
        .filter(
            ActivityHeatImpact.activity_id == activity_id,
            ActivityHeatImpact.analysis_version == CURRENT_ANALYSIS_VERSION,
        )
        .first()
    )
    if row is not None:
        return row.result_json
    return None


def get_historical_scores(
    athlete_id: UUID,
    db: Session,
    exclude_activity_id: Optional[UUID] = None,
    limit: Optional[int] = None,
) -> List[int]:
    """The athlete's prior overall scores, newest first."""
    query = db.query(ActivityHeatImpact.overall_score).filter(
        ActivityHeatImpact.athlete_id == athlete_id,
    )
    if exclude_activity_id is not None:
        query = query.filter(ActivityHeatImpact.activity_id != exclude_activity_id)
    rows = (
        query.order_by(ActivityHeatImpact.analyzed_at.desc())
        .limit(limit or settings.HEAT_IMPACT_HISTORY_LIMIT)
        .all()
    )
    return [row[0] for row in rows]


def get_acclimation_history(
    athlete_id: UUID,
    db: Session,
    now: Optional[datetime] = None,
) -> List[HeatHistoryEntry]:
    """Analyses inside the acclimation lookback window, oldest first."""
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=LOOKBACK_DAYS)
    rows = (
        db.query(ActivityHeatImpact)
        .filter(
            ActivityHeatImpact.athlete_id == athlete_id,
            ActivityHeatImpact.analyzed_at >= since,
        )
        .order_by(ActivityHeatImpact.analyzed_at.asc())
        .all()
    )
    return [
        HeatHistoryEntry(
            analyzed_at=row.analyzed_at,
            heat_impact_score=row.overall_score,
            hr_drift_magnitude_bpm=row.hr_drift_magnitude_bpm,
            pace_degradation_percent=row.pace_degradation_percent,
            avg_temperature_c=row.avg_temperature_c,
            avg_humidity_percent=row.avg_humidity_percent,
        )
        for row in rows
    ]



def get_personalized_recommendations(
    activity_id: UUID,
    db: Session,
    body_weight_kg: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Optional[Dict[str, Any]]:
    """Advice for a stored analysis, tailored to the athlete's current acclimation.

    Returns None when the activity has no current stored analysis.
    """
    row = (
        db.query(ActivityHeatImpact)
        .filter(
            ActivityHeatImpact.activity_id == activity_id,
            ActivityHeatImpact.analysis_version == CURRENT_ANALYSIS_VERSION,
        )
        .first()
    )
    if row is None:
        return None

    acclimation = calculate_heat_acclimation_index(
        get_acclimation_history(row.athlete_id, db, now=now), now=now)
    profile = AthleteHeatProfile(
        heat_acclimation_index=acclimation.acclimation_index,
        body_weight_kg=body_weight_kg,
    )
    stats = EnvironmentalStats(**(row.result_json or {}).get("environmental_stats", {}))
    advice = generate_personalized_recommendations(
        profile, row.severity, stats, row.pace_degradation_percent)

    return {
        "activity_id": str(activity_id),
        "heat_acclimation_index": acclimation.acclimation_index,
        "hydration": advice.hydration,
        "pacing": advice.pacing,
        "cooling": advice.cooling,
        "clothing": advice.clothing,
        "acclimation": advice.acclimation,
        "personalization_factors": advice.personalization_factors,
    }

# ---------------------------------------------------------------------------
# Compute + store
# ---------------------------------------------------------------------------

def get_or_compute_analysis(
    activity: Activity,
    stream_row: ActivityStream,
    db: Session,
    hourly_weather: Optional[Sequence[WeatherObservation]] = None,
    base_elevation: Optional[float] = None,
    force_recompute: bool = False,
) -> Dict[str, Any]:
    """Stored analysis, or analyze + store it.

    When no weather is supplied it is fetched for the activity's start
    location; the provider's grid elevation becomes the base elevation
    unless one is given.

    Raises:
        StreamStructureError: malformed stream payload or empty weather.
        WeatherProviderError: weather needed but the provider failed.
        ValueError: weather needed but the activity has no start location.
    """
    if not force_recompute:
        cached = get_analysis(activity.id, db)
        if cached is not None:
            return cached

    bundle = StreamBundle.from_stream_data(stream_row.stream_data, activity.start_time)
    duration_minutes = activity.duration_minutes or bundle.elapsed_minutes

    if hourly_weather is None:
        if activity.start_lat is None or activity.start_lng is None:
            raise ValueError(f"activity {activity.id} has no start location for a weather lookup")
        weather = fetch_weather_for_activity(
            activity.start_lat, activity.start_lng, activity.start_time, duration_minutes * 60.0)
        hourly_weather = weather.observations
        if base_elevation is None:
            base_elevation = weather.elevation_m

    if base_elevation is None:
        base_elevation = (
            activity.start_elevation_m
            if activity.start_elevation_m is not None
            else settings.HEAT_IMPACT_BASE_ELEVATION_M
        )

    history = get_historical_scores(activity.athlete_id, db, exclude_activity_id=activity.id)
    analysis = analyze(
        bundle,
        hourly_weather,
        duration_minutes,
        base_elevation=base_elevation,
        historical_scores=history,
    )
    save_analysis(activity.id, activity.athlete_id, analysis, db)
    return analysis.to_dict()
