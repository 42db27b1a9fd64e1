from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database.db import get_db
from app.routes.deps import get_current_user, get_optional_user, require_admin
from app.schemas.books import BookingOut, BookRequest
from app.schemas.users import CurrentUser
from app.services.bookings import cancel_booking, create_booking, get_booking, list_bookings_for_user
from app.services.errors import BookingError
from app.services.payments import force_confirm_booking

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingOut, status_code=201)
def book_ticket(
    payload: BookRequest,
    db: Session = Depends(get_db),
    user: CurrentUser | None = Depends(get_optional_user),
):
    try:
        booking = create_booking(
            db,
            event_id=payload.event_id,
            ticket_id=payload.ticket_id,
            quantity=payload.quantity,
            user=user,
            guest_name=payload.guest_name,
            guest_email=payload.guest_email,
            guest_phone=payload.guest_phone,
        )
        return get_booking(db, booking.id)
    except BookingError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("", response_model=list[BookingOut])
def my_bookings(db: Session = Depends(get_db), user: CurrentUser = Depends(get_current_user)):
    return list_bookings_for_user(db, user.id)


@router.get("/{booking_id}", response_model=BookingOut)
def read_booking(booking_id: int, db: Session = Depends(get_db)):
    try:
        return get_booking(db, booking_id)
    except BookingError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{booking_id}/cancel", response_model=BookingOut)
def cancel(booking_id: int, db: Session = Depends(get_db), user: CurrentUser = Depends(get_current_user)):
    try:
        cancel_booking(db, booking_id, user)
        return get_booking(db, booking_id)
    except BookingError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{booking_id}/confirm", response_model=BookingOut, dependencies=[Depends(require_admin)])
def confirm(booking_id: int, db: Session = Depends(get_db)):
    """Admin confirmation; settles the booking for its own total."""
    try:
        return force_confirm_booking(db, booking_id)
    except BookingError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
