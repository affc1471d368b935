"""
Celery worker entry point.

Imports the Celery app and the heat impact tasks from the API tree:

    celery -A main worker --beat --loglevel=info
"""
import sys
from pathlib import Path

# API tree: apps/api locally, /api in the container image
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "api"))
sys.path.insert(0, '/api')

from core.logging import setup_logging  # noqa: E402
from tasks import celery_app  # noqa: E402

setup_logging()
celery_app.autodiscover_tasks(['tasks'])


@celery_app.task(name="worker.health_check")
def health_check():
    """Liveness probe for the worker container."""
    return {"status": "ok", "tasks": sorted(t for t in celery_app.tasks if t.startswith("tasks."))}
