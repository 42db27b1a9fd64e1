import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utcnow
from app.database.db import atomic
from app.models.books import Booking, BookingStatus

logger = logging.getLogger(__name__)


def sweep_expired_bookings(db: Session, now: datetime | None = None) -> int:
    """
    Expire every pending booking whose hold window ended before ``now``.

    Holds never took stock, so this only changes booking status. Safe to run
    any number of times: only rows still pending are touched.
    """
    now = as_utc(now or utcnow())
    stmt = (
        update(Booking)
        .where(Booking.status == BookingStatus.PENDING.value)
        .where(Booking.expires_at < now)
        .values(status=BookingStatus.EXPIRED.value, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    with atomic(db):
        res = db.execute(stmt)
    expired = int(res.rowcount or 0)  # type: ignore

    if expired:
        logger.info("Expired %s pending booking(s) past their hold window", expired)
    return expired
