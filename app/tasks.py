import logging

import redis

from app.core.celery_config import celery_app
from app.core.config import SWEEP_LOCK_TIMEOUT_SECONDS
from app.core.redis_config import get_redis_client
from app.database.db import SessionLocal
from app.models import books, events, payments, tickets, users  # noqa: F401
from app.services.expiry import sweep_expired_bookings

logger = logging.getLogger(__name__)

SWEEP_LOCK_KEY = "booking_sweep_lock"


@celery_app.task(bind=True)
def sweep_expired_bookings_task(self):
    """Expire overdue holds. Overlapping runs skip instead of queueing up."""
    redis_client = get_redis_client()
    lock = redis_client.lock(SWEEP_LOCK_KEY, timeout=SWEEP_LOCK_TIMEOUT_SECONDS)
    if not lock.acquire(blocking=False):
        logger.warning("Expiry sweep already running, skipping")
        return 0

    try:
        db = SessionLocal()
        try:
            return sweep_expired_bookings(db)
        finally:
            db.close()
    finally:
        try:
            lock.release()
        except redis.exceptions.LockError:  # type: ignore
            logger.warning("Expiry sweep lock expired before release")
