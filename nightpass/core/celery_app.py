"""
Celery application: broker and result backend from settings.
Tasks are in nightpass.workers.tasks (retractions, broadcast).
"""
from celery import Celery

from nightpass.core.config import settings

celery_app = Celery(
    "nightpass",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "nightpass.workers.tasks.retractions",
        "nightpass.workers.tasks.broadcast",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_time_limit=3600,
    result_expires=86400,
    beat_schedule={
        "sweep-due-retractions": {
            "task": "nightpass.workers.tasks.retractions.sweep_due_retractions",
            "schedule": settings.retraction_sweep_interval_seconds,
        },
    },
)

celery_app.conf.task_routes = {
    "nightpass.workers.tasks.broadcast.broadcast_message": {"queue": "broadcast"},
}
