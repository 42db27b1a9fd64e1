import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utcnow
from app.models.books import Booking, BookingStatus
from app.models.payments import Payment, PaymentStatus
from app.services.bookings import get_booking, is_hold_expired, lock_booking, to_money, transition
from app.services.errors import (
    BookingError,
    BookingExpiredError,
    CapacityExceededError,
    DuplicatePaymentError,
    InvalidBookingStateError,
    ReconciliationError,
    ValidationError,
)
from app.services.inventory import commit_sale

logger = logging.getLogger(__name__)

ADMIN_OVERRIDE_METHOD = "admin_override"


def record_payment(
    db: Session,
    *,
    booking_id: int,
    amount,
    currency: str,
    payment_method: str,
    payment_reference: str | None = None,
    transaction_id: str | None = None,
    now: datetime | None = None,
) -> Payment:
    """
    Settle a booking from a claimed successful payment.

    The payment row, the booking's move to ``confirmed`` and the inventory
    commit land together or not at all. The booking row stays locked for the
    whole unit, so concurrent settlements of one booking serialize and the
    loser sees it already confirmed.

    Raises:
        NotFoundError: the booking does not exist.
        DuplicatePaymentError: the booking is already paid.
        InvalidBookingStateError: the booking is cancelled or expired.
        BookingExpiredError: the hold window has passed.
        ValidationError: amount or currency do not match the booking.
        CapacityExceededError: the sale would oversell the ticket or event.
        ReconciliationError: anything else failed; nothing was persisted.
    """
    now = as_utc(now or utcnow())
    if not payment_method:
        raise ValidationError("Payment method is required.")

    try:
        payment = _record_payment_in_transaction(
            db,
            booking_id=booking_id,
            amount=amount,
            currency=currency,
            payment_method=payment_method,
            payment_reference=payment_reference,
            transaction_id=transaction_id,
            now=now,
        )
        db.commit()
    except CapacityExceededError:
        db.rollback()
        # the buyer was charged outside this system
        logger.error(
            "Payment for booking %s rejected, capacity exceeded; manual reconciliation required",
            booking_id,
        )
        raise
    except BookingError as e:
        db.rollback()
        logger.warning("Payment for booking %s rejected: %s", booking_id, e)
        raise
    except IntegrityError as e:
        db.rollback()
        logger.warning("Payment for booking %s lost a concurrent settlement", booking_id)
        raise DuplicatePaymentError("Booking has already been paid.") from e
    except Exception as e:
        db.rollback()
        logger.exception("Payment reconciliation failed for booking %s", booking_id)
        raise ReconciliationError("Failed to process payment") from e

    logger.info(
        "Booking %s confirmed by payment %s (%s %s via %s)",
        booking_id, payment.id, payment.amount, payment.currency, payment.payment_method,
    )
    return payment


def _record_payment_in_transaction(
    db: Session,
    *,
    booking_id: int,
    amount,
    currency: str,
    payment_method: str,
    payment_reference: str | None,
    transaction_id: str | None,
    now: datetime,
) -> Payment:
    booking = lock_booking(db, booking_id)
    _ensure_settleable(booking, now)

    if to_money(amount) != to_money(booking.total_amount):
        raise ValidationError("Payment amount does not match the booking total.")
    if currency != booking.currency:
        raise ValidationError("Payment currency does not match the booking currency.")

    payment = Payment(
        booking_id=booking.id,
        amount=to_money(amount),
        currency=currency,
        payment_method=payment_method,
        payment_reference=payment_reference,
        transaction_id=transaction_id,
        status=PaymentStatus.SUCCESS.value,
        created_at=now,
        updated_at=now,
    )
    db.add(payment)
    db.flush()

    transition(booking, BookingStatus.CONFIRMED, now)
    db.flush()

    commit_sale(db, booking.ticket_id, booking.quantity)
    return payment


def _ensure_settleable(booking: Booking, now: datetime) -> None:
    if booking.status == BookingStatus.CONFIRMED.value:
        raise DuplicatePaymentError("Booking has already been paid.")
    if booking.status != BookingStatus.PENDING.value:
        raise InvalidBookingStateError(f"Booking is {booking.status} and cannot be paid.")
    if is_hold_expired(booking, now):
        raise BookingExpiredError("Booking hold has expired.")


def force_confirm_booking(db: Session, booking_id: int, now: datetime | None = None) -> Booking:
    """Admin confirmation: settles the booking for its own total so stock is committed."""
    booking = get_booking(db, booking_id)
    total_amount, currency = booking.total_amount, booking.currency
    db.rollback()  # release the read so the settlement starts its own unit

    record_payment(
        db,
        booking_id=booking_id,
        amount=total_amount,
        currency=currency,
        payment_method=ADMIN_OVERRIDE_METHOD,
        now=now,
    )
    return get_booking(db, booking_id)


def get_payment_for_booking(db: Session, booking_id: int) -> Payment | None:
    return db.scalars(select(Payment).where(Payment.booking_id == booking_id)).one_or_none()
