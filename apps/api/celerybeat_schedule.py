"""
Celery Beat Schedule Configuration

Defines periodic tasks that run on a schedule.
"""

from celery.schedules import crontab

# Schedule configuration
beat_schedule = {
    # Pick up activities that were ingested without a heat impact analysis
    # (worker down, weather provider outage) and queue them.
    'backfill-heat-impact': {
        'task': 'tasks.backfill_heat_impact',
        'schedule': crontab(minute=30),  # hourly
    },
}
