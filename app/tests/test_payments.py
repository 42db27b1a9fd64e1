"""
Test payment reconciliation: atomicity, guards and concurrent settlement.
"""
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.clock import as_utc
from app.models.books import Booking, BookingStatus
from app.models.events import Event
from app.models.payments import Payment
from app.models.tickets import Ticket
from app.schemas.users import CurrentUser
from app.services.bookings import create_booking
from app.services.errors import (
    BookingError,
    BookingExpiredError,
    CapacityExceededError,
    DuplicatePaymentError,
    InvalidBookingStateError,
    NotFoundError,
    ReconciliationError,
    ValidationError,
)
from app.services.expiry import sweep_expired_bookings
from app.services.payments import (
    ADMIN_OVERRIDE_METHOD,
    force_confirm_booking,
    get_payment_for_booking,
    record_payment,
)
from app.tests.factories import NOW, add_event_with_ticket


def guest_hold(db: Session, event_id: int, ticket_id: int, quantity: int = 1, now=NOW) -> Booking:
    return create_booking(
        db,
        event_id=event_id,
        ticket_id=ticket_id,
        quantity=quantity,
        guest_name="Wanjiru",
        guest_email="wanjiru@example.com",
        now=now,
    )


def pay(db: Session, booking_id: int, amount=100, now=NOW, **kwargs):
    return record_payment(
        db,
        booking_id=booking_id,
        amount=amount,
        currency=kwargs.pop("currency", "KSH"),
        payment_method=kwargs.pop("payment_method", "mpesa"),
        now=now,
        **kwargs,
    )


def payment_count(db: Session) -> int:
    return db.scalar(select(func.count(Payment.id)))


class TestRecordPayment:
    """Test the settlement path end to end."""

    def test_scenario_a(self, db_session: Session, event_with_ticket):
        """10 units at 100 KSH, hold 3, pay 300: confirmed and 3 sold."""
        event, ticket = event_with_ticket
        booking = guest_hold(db_session, event.id, ticket.id, quantity=3)
        assert booking.status == BookingStatus.PENDING.value
        assert float(booking.total_amount) == 300

        payment = pay(db_session, booking.id, amount=300, payment_reference="QWE123", transaction_id="tx-1")

        assert payment.id is not None
        assert payment.status == "success"
        assert payment.payment_reference == "QWE123"
        db_session.refresh(booking)
        db_session.refresh(ticket)
        db_session.refresh(event)
        assert booking.status == BookingStatus.CONFIRMED.value
        assert ticket.quantity_sold == 3
        assert event.tickets_sold == 3

    def test_scenario_b_sequential(self, db_session: Session):
        """Two holds on the last unit: the second settlement hits capacity."""
        event, ticket = add_event_with_ticket(db_session, quantity_available=10, quantity_sold=9)
        first = guest_hold(db_session, event.id, ticket.id)
        second = guest_hold(db_session, event.id, ticket.id)

        pay(db_session, first.id)
        with pytest.raises(CapacityExceededError):
            pay(db_session, second.id)

        db_session.refresh(ticket)
        db_session.refresh(second)
        assert ticket.quantity_sold == 10
        assert second.status == BookingStatus.PENDING.value
        assert get_payment_for_booking(db_session, second.id) is None
        assert payment_count(db_session) == 1

    def test_missing_booking(self, db_session: Session):
        with pytest.raises(NotFoundError):
            pay(db_session, 99999)

    def test_second_payment_rejected(self, db_session: Session, event_with_ticket):
        event, ticket = event_with_ticket
        booking = guest_hold(db_session, event.id, ticket.id, quantity=2)
        pay(db_session, booking.id, amount=200)

        with pytest.raises(DuplicatePaymentError):
            pay(db_session, booking.id, amount=200)

        db_session.refresh(ticket)
        assert ticket.quantity_sold == 2
        assert payment_count(db_session) == 1

    def test_expired_hold_rejected_before_sweep(self, db_session: Session, event_with_ticket):
        event, ticket = event_with_ticket
        booking = guest_hold(db_session, event.id, ticket.id)

        with pytest.raises(BookingExpiredError):
            pay(db_session, booking.id, now=NOW + timedelta(minutes=16))

        db_session.refresh(booking)
        db_session.refresh(ticket)
        assert booking.status == BookingStatus.PENDING.value
        assert ticket.quantity_sold == 0

    def test_hold_window_with_east_africa_clock(self, db_session: Session, event_with_ticket):
        """A +03:00 caller clock gets the same 15 minutes as a UTC one."""
        eat = timezone(timedelta(hours=3))
        local_now = NOW.astimezone(eat)
        event, ticket = event_with_ticket
        booking = guest_hold(db_session, event.id, ticket.id, now=local_now)

        db_session.refresh(booking)
        assert as_utc(booking.expires_at) == NOW + timedelta(minutes=15)

        with pytest.raises(BookingExpiredError):
            pay(db_session, booking.id, now=local_now + timedelta(minutes=60))
        assert payment_count(db_session) == 0

        payment = pay(db_session, booking.id, now=local_now + timedelta(minutes=10))
        assert payment.status == "success"

    def test_scenario_c(self, db_session: Session, event_with_ticket):
        """Swept at +16 minutes, the hold can no longer be paid."""
        event, ticket = event_with_ticket
        booking = guest_hold(db_session, event.id, ticket.id)

        assert sweep_expired_bookings(db_session, now=NOW + timedelta(minutes=16)) == 1
        db_session.refresh(booking)
        assert booking.status == BookingStatus.EXPIRED.value

        with pytest.raises(InvalidBookingStateError):
            pay(db_session, booking.id, now=NOW + timedelta(minutes=17))

        db_session.refresh(ticket)
        assert ticket.quantity_sold == 0
        assert payment_count(db_session) == 0

    def test_cancelled_booking_rejected(self, db_session: Session, event_with_ticket):
        event, ticket = event_with_ticket
        booking = guest_hold(db_session, event.id, ticket.id)
        booking.status = BookingStatus.CANCELLED.value
        db_session.commit()

        with pytest.raises(InvalidBookingStateError, match="cancelled"):
            pay(db_session, booking.id)

    @pytest.mark.parametrize("amount,currency", [(99, "KSH"), (100, "USD")])
    def test_amount_and_currency_must_match(self, db_session: Session, event_with_ticket, amount, currency):
        event, ticket = event_with_ticket
        booking = guest_hold(db_session, event.id, ticket.id)

        with pytest.raises(ValidationError):
            pay(db_session, booking.id, amount=amount, currency=currency)

        db_session.refresh(booking)
        assert booking.status == BookingStatus.PENDING.value
        assert payment_count(db_session) == 0

    def test_payment_method_required(self, db_session: Session, event_with_ticket):
        event, ticket = event_with_ticket
        booking = guest_hold(db_session, event.id, ticket.id)

        with pytest.raises(ValidationError):
            pay(db_session, booking.id, payment_method="")


class TestReconciliationAtomicity:
    """A failure anywhere in the unit leaves nothing behind."""

    def test_failure_after_payment_insert_rolls_back(
        self, db_session: Session, event_with_ticket, monkeypatch: pytest.MonkeyPatch
    ):
        event, ticket = event_with_ticket
        booking = guest_hold(db_session, event.id, ticket.id, quantity=2)

        def broken_commit_sale(db, ticket_id, quantity):
            # the payment row and the confirmed status are already flushed here
            assert db.scalar(select(func.count(Payment.id))) == 1
            raise RuntimeError("connection reset")

        monkeypatch.setattr("app.services.payments.commit_sale", broken_commit_sale)

        with pytest.raises(ReconciliationError) as excinfo:
            pay(db_session, booking.id, amount=200)

        assert excinfo.value.status_code == 500
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        db_session.expire_all()
        assert payment_count(db_session) == 0
        assert db_session.get(Booking, booking.id).status == BookingStatus.PENDING.value
        assert db_session.get(Ticket, ticket.id).quantity_sold == 0
        assert db_session.get(Event, event.id).tickets_sold == 0

    def test_capacity_failure_rolls_back_payment_and_status(self, db_session: Session):
        event, ticket = add_event_with_ticket(db_session, quantity_available=10, quantity_sold=0, max_capacity=2)
        booking = guest_hold(db_session, event.id, ticket.id, quantity=2)
        # the event fills up through another channel while the hold is open
        event.tickets_sold = 1
        db_session.commit()

        with pytest.raises(CapacityExceededError):
            pay(db_session, booking.id, amount=200)

        db_session.expire_all()
        assert payment_count(db_session) == 0
        assert db_session.get(Booking, booking.id).status == BookingStatus.PENDING.value
        # the ticket update ran before the event guard failed
        assert db_session.get(Ticket, ticket.id).quantity_sold == 0


class TestConcurrentSettlement:
    """Settlements racing on separate connections."""

    def _settle_concurrently(self, session_factory, booking_ids: list[int]) -> list:
        barrier = threading.Barrier(len(booking_ids))

        def attempt(booking_id: int):
            db = session_factory()
            try:
                barrier.wait()
                payment = pay(db, booking_id)
                return ("ok", payment.id)
            except BookingError as e:
                return ("error", e)
            finally:
                db.close()

        with ThreadPoolExecutor(max_workers=len(booking_ids)) as executor:
            futures = [executor.submit(attempt, booking_id) for booking_id in booking_ids]
            return [f.result() for f in futures]

    def test_same_booking_settles_once(self, file_session_factory):
        setup = file_session_factory()
        event, ticket = add_event_with_ticket(setup)
        booking_id = guest_hold(setup, event.id, ticket.id).id
        ticket_id = ticket.id
        setup.close()

        results = self._settle_concurrently(file_session_factory, [booking_id, booking_id])

        assert sorted(kind for kind, _ in results) == ["error", "ok"]
        error = next(value for kind, value in results if kind == "error")
        assert isinstance(error, DuplicatePaymentError)

        check = file_session_factory()
        try:
            assert payment_count(check) == 1
            assert check.get(Booking, booking_id).status == BookingStatus.CONFIRMED.value
            assert check.get(Ticket, ticket_id).quantity_sold == 1
        finally:
            check.close()

    def test_scenario_b_concurrent(self, file_session_factory):
        """Two holds racing for the last unit: one confirms, one hits capacity."""
        setup = file_session_factory()
        event, ticket = add_event_with_ticket(setup, quantity_available=10, quantity_sold=9)
        booking_ids = [guest_hold(setup, event.id, ticket.id).id for _ in range(2)]
        ticket_id = ticket.id
        setup.close()

        results = self._settle_concurrently(file_session_factory, booking_ids)

        assert sorted(kind for kind, _ in results) == ["error", "ok"]
        error = next(value for kind, value in results if kind == "error")
        assert isinstance(error, CapacityExceededError)

        check = file_session_factory()
        try:
            statuses = sorted(check.get(Booking, booking_id).status for booking_id in booking_ids)
            assert statuses == [BookingStatus.CONFIRMED.value, BookingStatus.PENDING.value]
            assert check.get(Ticket, ticket_id).quantity_sold == 10
            assert payment_count(check) == 1
        finally:
            check.close()


class TestForceConfirm:
    """Admin confirmation goes through the same reconciliation."""

    def test_force_confirm_commits_inventory(self, db_session: Session, event_with_ticket):
        event, ticket = event_with_ticket
        booking = guest_hold(db_session, event.id, ticket.id, quantity=4)

        confirmed = force_confirm_booking(db_session, booking.id, now=NOW)

        assert confirmed.status == BookingStatus.CONFIRMED.value
        payment = get_payment_for_booking(db_session, booking.id)
        assert payment.payment_method == ADMIN_OVERRIDE_METHOD
        assert float(payment.amount) == 400
        db_session.refresh(ticket)
        assert ticket.quantity_sold == 4

    def test_force_confirm_missing(self, db_session: Session):
        with pytest.raises(NotFoundError):
            force_confirm_booking(db_session, 99999, now=NOW)

    def test_force_confirm_cancelled(self, db_session: Session, event_with_ticket, admin_user):
        from app.services.bookings import cancel_booking

        event, ticket = event_with_ticket
        booking = guest_hold(db_session, event.id, ticket.id)
        cancel_booking(db_session, booking.id, CurrentUser(id=admin_user.id, email=admin_user.email, is_admin=True))

        with pytest.raises(InvalidBookingStateError):
            force_confirm_booking(db_session, booking.id, now=NOW)
