from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.core.config import DEFAULT_CURRENCY
from app.database.db import atomic
from app.models.events import Event
from app.models.tickets import Ticket
from app.schemas.events import EventCreate, TicketCreate
from app.services.errors import NotFoundError
from app.services.reports import get_event_revenue


def create_event(db: Session, payload: EventCreate) -> Event:
    event = Event(
        title=payload.title,
        description=payload.description,
        date=payload.date,
        location=payload.location,
        category=payload.category,
        max_capacity=payload.max_capacity,
        tickets_sold=0,
        currency=payload.currency or DEFAULT_CURRENCY,
        status=payload.status,
    )
    with atomic(db):
        db.add(event)
    db.refresh(event)
    return event


def create_ticket(db: Session, payload: TicketCreate) -> Ticket:
    with atomic(db):
        event = db.get(Event, payload.event_id)
        if not event:
            raise NotFoundError("Event not found")
        ticket = Ticket(
            event_id=event.id,
            type=payload.type,
            name=payload.name,
            description=payload.description,
            price=Decimal(str(payload.price)),
            currency=payload.currency or event.currency,
            quantity_available=payload.quantity_available,
            quantity_sold=0,
        )
        db.add(ticket)
    db.refresh(ticket)
    return ticket


def _event_out(db: Session, event: Event) -> dict:
    return {
        "id": event.id,
        "title": event.title,
        "description": event.description,
        "date": event.date,
        "location": event.location,
        "category": event.category,
        "max_capacity": event.max_capacity,
        "tickets_sold": event.tickets_sold,
        "currency": event.currency,
        "status": event.status,
        "tickets": sorted(event.tickets, key=lambda t: t.price),
        "revenue": get_event_revenue(db, event.id),
    }


def list_events(db: Session) -> list[dict]:
    events = db.scalars(select(Event).options(selectinload(Event.tickets)).order_by(Event.date)).all()
    return [_event_out(db, event) for event in events]


def get_event(db: Session, event_id: int) -> dict:
    event = db.scalars(
        select(Event).options(selectinload(Event.tickets)).where(Event.id == event_id)
    ).one_or_none()
    if not event:
        raise NotFoundError("Event not found")
    return _event_out(db, event)
