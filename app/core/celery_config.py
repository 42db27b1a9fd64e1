from celery import Celery

from app.core.config import SWEEP_INTERVAL_SECONDS
from app.core.redis_config import get_redis_url


def make_celery(app_name: str = "ticket_hold") -> Celery:
    redis_url = get_redis_url()
    celery = Celery(app_name, broker=redis_url, backend=redis_url, include=["app.tasks"])
    celery.conf.task_serializer = "json"
    celery.conf.result_serializer = "json"
    celery.conf.accept_content = ["json"]
    celery.conf.result_persistent = False
    celery.conf.task_track_started = True
    celery.conf.timezone = "UTC"
    celery.conf.beat_schedule = {
        "sweep-expired-bookings": {
            "task": "app.tasks.sweep_expired_bookings_task",
            "schedule": float(SWEEP_INTERVAL_SECONDS),
        },
    }
    return celery


celery_app = make_celery()
