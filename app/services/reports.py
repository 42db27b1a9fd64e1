from datetime import datetime, time

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utcnow
from app.models.books import Booking, BookingStatus
from app.models.events import Event
from app.models.payments import Payment, PaymentStatus
from app.models.tickets import Ticket
from app.services.inventory import ticket_inventory


def _revenue_query():
    return (
        select(func.coalesce(func.sum(Payment.amount), 0))
        .join(Booking, Booking.id == Payment.booking_id)
        .where(Payment.status == PaymentStatus.SUCCESS.value)
    )


def get_event_revenue(db: Session, event_id: int) -> float:
    return float(db.scalar(_revenue_query().where(Booking.event_id == event_id)) or 0)


def get_event_stats(db: Session, event_id: int) -> dict:
    event = db.get(Event, event_id)
    if not event:
        return {}

    def count_with_status(status: BookingStatus) -> int:
        return int(
            db.scalar(
                select(func.count(Booking.id)).where(
                    Booking.event_id == event_id,
                    Booking.status == status.value,
                )
            )
            or 0
        )

    tickets = db.scalars(select(Ticket).where(Ticket.event_id == event_id).order_by(Ticket.price)).all()
    return {
        "event_id": event.id,
        "capacity": event.max_capacity,
        "tickets_sold": event.tickets_sold,
        "confirmed_bookings": count_with_status(BookingStatus.CONFIRMED),
        "pending_bookings": count_with_status(BookingStatus.PENDING),
        "revenue": get_event_revenue(db, event_id),
        "tickets": [ticket_inventory(db, ticket) for ticket in tickets],
    }


def get_admin_analytics(db: Session, now: datetime | None = None) -> dict:
    """Return aggregated totals across all events."""
    now = as_utc(now or utcnow())
    start_of_day = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)

    total_events = db.scalar(select(func.count(Event.id)))
    upcoming_events = db.scalar(select(func.count(Event.id)).where(Event.date >= now))
    tickets_sold = db.scalar(select(func.sum(Event.tickets_sold)))
    total_revenue = db.scalar(_revenue_query())
    bookings_today = db.scalar(select(func.count(Booking.id)).where(Booking.created_at >= start_of_day))

    revenue = func.coalesce(func.sum(Payment.amount), 0)
    top_rows = db.execute(
        select(
            Event.id,
            Event.title,
            revenue.label("revenue"),
            func.coalesce(func.sum(Booking.quantity), 0).label("tickets"),
        )
        .outerjoin(
            Booking,
            (Booking.event_id == Event.id) & (Booking.status == BookingStatus.CONFIRMED.value),
        )
        .outerjoin(
            Payment,
            (Payment.booking_id == Booking.id) & (Payment.status == PaymentStatus.SUCCESS.value),
        )
        .group_by(Event.id, Event.title)
        .order_by(revenue.desc(), Event.id)
        .limit(5)
    ).all()

    return {
        "total_events": int(total_events or 0),
        "upcoming_events": int(upcoming_events or 0),
        "tickets_sold": int(tickets_sold or 0),
        "total_revenue": float(total_revenue or 0),
        "bookings_today": int(bookings_today or 0),
        "top_events": [
            {"id": row.id, "title": row.title, "revenue": float(row.revenue or 0), "tickets": int(row.tickets or 0)}
            for row in top_rows
        ],
    }
