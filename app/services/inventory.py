import logging

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.models.books import Booking, BookingStatus
from app.models.events import Event
from app.models.tickets import Ticket
from app.services.errors import CapacityExceededError, NotFoundError

logger = logging.getLogger(__name__)


def remaining_stock(ticket: Ticket) -> int:
    return ticket.quantity_available - ticket.quantity_sold


def check_availability(db: Session, ticket_id: int, quantity: int) -> bool:
    """
    Advisory stock check against both the ticket type and its event, the same
    two ceilings ``commit_sale`` enforces. Pending holds are not counted, so two
    buyers can both pass this for the last unit; ``commit_sale`` settles who
    gets it.
    """
    ticket = db.get(Ticket, ticket_id)
    if not ticket:
        raise NotFoundError("Ticket not found")
    if remaining_stock(ticket) < quantity:
        return False
    event = db.get(Event, ticket.event_id)
    return event.max_capacity - event.tickets_sold >= quantity


def commit_sale(db: Session, ticket_id: int, quantity: int) -> None:
    """
    Count ``quantity`` units of a ticket type, and of its event, as sold.

    Both counters move through guarded conditional updates so capacity holds
    under concurrent settlements. Runs inside the caller's transaction.
    """
    stmt = (
        update(Ticket)
        .where(Ticket.id == ticket_id)
        .where(Ticket.quantity_sold + quantity <= Ticket.quantity_available)
        .values(quantity_sold=Ticket.quantity_sold + quantity, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    res = db.execute(stmt)
    if res.rowcount != 1:  # type: ignore
        raise CapacityExceededError("Ticket capacity exceeded.")

    event_id = db.scalar(select(Ticket.event_id).where(Ticket.id == ticket_id))
    stmt = (
        update(Event)
        .where(Event.id == event_id)
        .where(Event.tickets_sold + quantity <= Event.max_capacity)
        .values(tickets_sold=Event.tickets_sold + quantity, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    res = db.execute(stmt)
    if res.rowcount != 1:  # type: ignore
        raise CapacityExceededError("Event capacity exceeded.")

    logger.debug("Committed sale of %s unit(s) of ticket %s", quantity, ticket_id)


def rollback_hold(db: Session, ticket_id: int, quantity: int) -> None:
    """Holds never take stock, so releasing one gives nothing back."""
    return None


def pending_hold_units(db: Session, ticket_id: int) -> int:
    held = db.scalar(
        select(func.sum(Booking.quantity)).where(
            Booking.ticket_id == ticket_id,
            Booking.status == BookingStatus.PENDING.value,
        )
    )
    return int(held or 0)


def ticket_inventory(db: Session, ticket: Ticket) -> dict:
    return {
        "ticket_id": ticket.id,
        "name": ticket.name,
        "capacity": ticket.quantity_available,
        "sold": ticket.quantity_sold,
        "remaining": remaining_stock(ticket),
        "pending_holds": pending_hold_units(db, ticket.id),
    }
