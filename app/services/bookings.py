import logging
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.core.clock import as_utc, utcnow
from app.core.config import BOOKING_HOLD_MINUTES
from app.database.db import atomic
from app.models.books import Booking, BookingStatus
from app.models.events import EVENT_ACTIVE, Event
from app.models.tickets import Ticket
from app.schemas.users import CurrentUser
from app.services.errors import (
    ForbiddenError,
    InvalidBookingStateError,
    NotFoundError,
    SoldOutError,
    ValidationError,
)
from app.services.inventory import check_availability, rollback_hold

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset(
    {BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value, BookingStatus.EXPIRED.value}
)

# confirmed -> cancelled is only reachable through a privileged cancel
ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING.value: frozenset(
        {BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value, BookingStatus.EXPIRED.value}
    ),
    BookingStatus.CONFIRMED.value: frozenset({BookingStatus.CANCELLED.value}),
}

MONEY = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(MONEY)


def hold_deadline(now: datetime) -> datetime:
    return now + timedelta(minutes=BOOKING_HOLD_MINUTES)


def is_hold_expired(booking: Booking, now: datetime) -> bool:
    return as_utc(now) > as_utc(booking.expires_at)


def transition(booking: Booking, new_status: BookingStatus, now: datetime) -> None:
    """Move a booking along an allowed lifecycle edge."""
    allowed = ALLOWED_TRANSITIONS.get(booking.status, frozenset())
    if new_status.value not in allowed:
        raise InvalidBookingStateError(
            f"Cannot move booking from {booking.status} to {new_status.value}."
        )
    booking.status = new_status.value
    booking.updated_at = now


def lock_booking(db: Session, booking_id: int) -> Booking:
    """Load a booking row with SELECT ... FOR UPDATE."""
    booking = db.scalars(
        select(Booking).where(Booking.id == booking_id).with_for_update()
    ).one_or_none()
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


def create_booking(
    db: Session,
    *,
    event_id: int,
    ticket_id: int,
    quantity: int,
    user: CurrentUser | None = None,
    guest_name: str | None = None,
    guest_email: str | None = None,
    guest_phone: str | None = None,
    now: datetime | None = None,
) -> Booking:
    """
    Place a soft hold on ``quantity`` units of a ticket type.

    Availability is checked but nothing is reserved: sold counters only move
    when a payment is reconciled. The hold lapses ``BOOKING_HOLD_MINUTES``
    after creation.
    """
    now = as_utc(now or utcnow())
    if quantity is None or quantity <= 0:
        raise ValidationError("Quantity must be greater than zero.")
    if user is None and not (guest_email and guest_name):
        raise ValidationError("Guest bookings require a guest name and email.")

    with atomic(db):
        booking = _create_booking_in_transaction(
            db,
            event_id=event_id,
            ticket_id=ticket_id,
            quantity=quantity,
            user=user,
            guest_name=guest_name,
            guest_email=guest_email,
            guest_phone=guest_phone,
            now=now,
        )

    logger.info(
        "Booking %s created: %s x ticket %s for event %s, hold until %s",
        booking.id, quantity, ticket_id, event_id, booking.expires_at,
    )
    return booking


def _create_booking_in_transaction(
    db: Session,
    *,
    event_id: int,
    ticket_id: int,
    quantity: int,
    user: CurrentUser | None,
    guest_name: str | None,
    guest_email: str | None,
    guest_phone: str | None,
    now: datetime,
) -> Booking:
    """Internal function to create booking within a transaction."""
    event = db.get(Event, event_id)
    if not event:
        raise NotFoundError("Event not found")
    ticket = db.get(Ticket, ticket_id)
    if not ticket:
        raise NotFoundError("Ticket not found")
    if ticket.event_id != event.id:
        raise ValidationError("Ticket does not belong to this event.")
    if event.status != EVENT_ACTIVE:
        raise ValidationError("Event is not open for booking.")

    if not check_availability(db, ticket_id, quantity):
        raise SoldOutError("Not enough tickets left.")

    booking = Booking(
        user_id=user.id if user else None,
        event_id=event_id,
        ticket_id=ticket_id,
        quantity=quantity,
        total_amount=to_money(ticket.price) * quantity,
        currency=ticket.currency,
        status=BookingStatus.PENDING.value,
        guest_name=guest_name,
        guest_email=guest_email,
        guest_phone=guest_phone,
        expires_at=hold_deadline(now),
        created_at=now,
        updated_at=now,
    )
    db.add(booking)
    db.flush()  # gets booking.id
    return booking


def cancel_booking(db: Session, booking_id: int, actor: CurrentUser, now: datetime | None = None) -> Booking:
    """
    Cancel a booking on behalf of ``actor``.

    Pending bookings may be cancelled by their owner, an admin, or anyone for a
    guest booking. Confirmed bookings only by their owner or an admin; they are
    not restocked. Cancelling a cancelled booking is a no-op.
    """
    now = as_utc(now or utcnow())
    with atomic(db):
        booking = lock_booking(db, booking_id)
        if booking.status == BookingStatus.CANCELLED.value:
            return booking

        is_owner = booking.user_id is not None and booking.user_id == actor.id
        if booking.user_id is not None and not (is_owner or actor.is_admin):
            raise ForbiddenError("Not authorized to cancel this booking")
        if booking.status == BookingStatus.CONFIRMED.value and not (is_owner or actor.is_admin):
            raise ForbiddenError("Only the owner or an admin can cancel a confirmed booking")

        previous = booking.status
        transition(booking, BookingStatus.CANCELLED, now)
        if previous == BookingStatus.PENDING.value:
            rollback_hold(db, booking.ticket_id, booking.quantity)

    logger.info("Booking %s cancelled by user %s (was %s)", booking_id, actor.id, previous)
    return booking


def _with_summaries(stmt):
    return stmt.options(selectinload(Booking.event), selectinload(Booking.ticket))


def get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.scalars(_with_summaries(select(Booking).where(Booking.id == booking_id))).one_or_none()
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


def list_bookings_for_user(db: Session, user_id: int) -> list[Booking]:
    stmt = (
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(db.scalars(_with_summaries(stmt)))


def list_all_bookings(db: Session) -> list[Booking]:
    stmt = (
        select(Booking)
        .options(selectinload(Booking.user))
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(db.scalars(_with_summaries(stmt)))
