"""
Test the inventory ledger.
"""
import pytest
from sqlalchemy.orm import Session

from app.services.errors import CapacityExceededError, NotFoundError
from app.services.inventory import check_availability, commit_sale, remaining_stock, rollback_hold
from app.tests.factories import add_event_with_ticket


class TestInventoryLedger:
    """Test availability checks and sale commits."""

    def test_check_availability(self, db_session: Session):
        _, ticket = add_event_with_ticket(db_session, quantity_available=10, quantity_sold=7)

        assert check_availability(db_session, ticket.id, 3) is True
        assert check_availability(db_session, ticket.id, 4) is False

    def test_check_availability_respects_event_capacity(self, db_session: Session):
        """Ticket stock left over does not help once the event itself is full."""
        _, ticket = add_event_with_ticket(db_session, quantity_available=10, quantity_sold=0, max_capacity=1)

        assert check_availability(db_session, ticket.id, 1) is True
        assert check_availability(db_session, ticket.id, 2) is False

    def test_check_availability_unknown_ticket(self, db_session: Session):
        with pytest.raises(NotFoundError):
            check_availability(db_session, 99999, 1)

    def test_commit_sale_moves_ticket_and_event_counters(self, db_session: Session):
        event, ticket = add_event_with_ticket(db_session, quantity_available=10, max_capacity=50)

        commit_sale(db_session, ticket.id, 3)
        db_session.commit()

        db_session.refresh(ticket)
        db_session.refresh(event)
        assert ticket.quantity_sold == 3
        assert ticket.quantity_available == 10
        assert remaining_stock(ticket) == 7
        assert event.tickets_sold == 3

    def test_commit_sale_up_to_capacity(self, db_session: Session):
        _, ticket = add_event_with_ticket(db_session, quantity_available=5, quantity_sold=3)

        commit_sale(db_session, ticket.id, 2)
        db_session.commit()

        db_session.refresh(ticket)
        assert ticket.quantity_sold == 5
        assert remaining_stock(ticket) == 0

    def test_commit_sale_past_ticket_capacity(self, db_session: Session):
        _, ticket = add_event_with_ticket(db_session, quantity_available=5, quantity_sold=4)

        with pytest.raises(CapacityExceededError, match="Ticket capacity"):
            commit_sale(db_session, ticket.id, 2)
        db_session.rollback()

        db_session.refresh(ticket)
        assert ticket.quantity_sold == 4

    def test_commit_sale_past_event_capacity(self, db_session: Session):
        """A ticket type with room left still cannot oversell its event."""
        event, ticket = add_event_with_ticket(db_session, quantity_available=10, quantity_sold=0, max_capacity=2)

        with pytest.raises(CapacityExceededError, match="Event capacity"):
            commit_sale(db_session, ticket.id, 3)
        db_session.rollback()

        db_session.refresh(ticket)
        db_session.refresh(event)
        assert ticket.quantity_sold == 0
        assert event.tickets_sold == 0

    def test_rollback_hold_is_noop(self, db_session: Session):
        _, ticket = add_event_with_ticket(db_session, quantity_available=5, quantity_sold=2)

        rollback_hold(db_session, ticket.id, 2)
        db_session.commit()

        db_session.refresh(ticket)
        assert ticket.quantity_sold == 2
