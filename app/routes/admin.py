from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database.db import get_db
from app.routes.deps import require_admin
from app.schemas.books import AdminBookingOut, SweepOut
from app.schemas.reports import AnalyticsOut
from app.services.bookings import list_all_bookings
from app.services.expiry import sweep_expired_bookings
from app.services.reports import get_admin_analytics

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/bookings", response_model=list[AdminBookingOut])
def all_bookings(db: Session = Depends(get_db)):
    return list_all_bookings(db)


@router.post("/bookings/sweep", response_model=SweepOut)
def sweep_bookings(db: Session = Depends(get_db)):
    """Expire overdue holds now instead of waiting for the scheduled sweep."""
    return {"expired": sweep_expired_bookings(db)}


@router.get("/analytics", response_model=AnalyticsOut)
def analytics(db: Session = Depends(get_db)):
    """Aggregate report across all events."""
    return get_admin_analytics(db)
