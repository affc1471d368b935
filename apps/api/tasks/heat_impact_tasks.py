"""
Celery tasks for heat impact analysis.

One task per activity: fetch weather for the activity's start location,
run the engine, persist. Failures come back as a soft-failure dict; the
engine does no retries and neither does this task.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict
from uuid import UUID

from celery import Task
from sqlalchemy.orm import Session

from core.database import get_db_sync
from models import Activity, ActivityHeatImpact, ActivityStream
from schemas import HeatImpactTaskResult
from services import heat_impact_store
from services.heat_impact import StreamStructureError
from services.historical_weather import WeatherProviderError
from tasks import celery_app

logger = logging.getLogger(__name__)

# Shorter activities do not carry a meaningful heat signal
MIN_ACTIVITY_MINUTES = 10.0


def _activity_minutes(activity: Activity, stream_row: ActivityStream) -> float:
    if activity.duration_minutes is not None:
        return activity.duration_minutes
    time = (stream_row.stream_data or {}).get("time") or []
    if len(time) < 2:
        return 0.0
    return (time[-1] - time[0]) / 60.0


def _result(activity_id: str, status: str, **kwargs) -> Dict:
    return HeatImpactTaskResult(status=status, activity_id=activity_id, **kwargs).model_dump()


@celery_app.task(name="tasks.analyze_activity_heat_impact", bind=True)
def analyze_activity_heat_impact_task(self: Task, activity_id: str, force_recompute: bool = False) -> Dict:
    """
    Analyze one activity's heat impact and store it.

    Args:
        activity_id: UUID string of the activity
        force_recompute: Ignore a stored analysis

    Returns:
        HeatImpactTaskResult as a dict (status success / skipped / error)
    """
    db: Session = get_db_sync()

    try:
        activity = db.get(Activity, UUID(activity_id))
        if activity is None:
            return _result(activity_id, "error", reason="activity not found")

        stream_row = (
            db.query(ActivityStream)
            .filter(ActivityStream.activity_id == activity.id)
            .first()
        )
        if stream_row is None:
            return _result(activity_id, "skipped", reason="no stream data")

        minutes = _activity_minutes(activity, stream_row)
        if minutes < MIN_ACTIVITY_MINUTES:
            return _result(activity_id, "skipped", reason=f"activity too short ({minutes:.1f} min)")

        if activity.start_lat is None or activity.start_lng is None:
            return _result(activity_id, "skipped", reason="no start location")

        result = heat_impact_store.get_or_compute_analysis(
            activity, stream_row, db, force_recompute=force_recompute)
        score = result["heat_impact_score"]
        return _result(
            activity_id,
            "success",
            overall_score=score["overall_score"],
            severity=score["severity"],
        )

    except (WeatherProviderError, StreamStructureError) as e:
        db.rollback()
        logger.warning(f"Heat impact analysis failed for activity {activity_id}: {e}")
        return _result(activity_id, "error", reason=str(e))
    except Exception as e:
        db.rollback()
        logger.error(
            f"Unexpected error analyzing heat impact for activity {activity_id}: {e}",
            exc_info=True,
            extra={"extra_fields": {"activity_id": activity_id, "task_id": str(self.request.id)}},
        )
        return _result(activity_id, "error", reason=str(e))
    finally:
        db.close()


@celery_app.task(name="tasks.backfill_heat_impact", bind=True)
def backfill_heat_impact_task(self: Task, days: int = 7, limit: int = 100) -> Dict:
    """
    Queue analysis for recent activities that have streams and a start
    location but no stored heat impact.
    """
    db: Session = get_db_sync()

    try:
        since = datetime.now(timezone.utc) - timedelta(days=days)
        rows = (
            db.query(Activity.id)
            .join(ActivityStream, ActivityStream.activity_id == Activity.id)
            .outerjoin(ActivityHeatImpact, ActivityHeatImpact.activity_id == Activity.id)
            .filter(
                ActivityHeatImpact.id.is_(None),
                Activity.start_time >= since,
                Activity.start_lat.isnot(None),
                Activity.start_lng.isnot(None),
            )
            .order_by(Activity.start_time.desc())
            .limit(limit)
            .all()
        )
        for (activity_id,) in rows:
            analyze_activity_heat_impact_task.delay(str(activity_id))

        logger.info(f"Queued heat impact analysis for {len(rows)} activities")
        return {"status": "success", "queued": len(rows)}

    except Exception as e:
        logger.error(f"Heat impact backfill failed: {e}", exc_info=True)
        return {"status": "error", "error": str(e)}
    finally:
        db.close()
