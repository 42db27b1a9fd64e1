from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database.db import get_db
from app.routes.deps import require_admin
from app.schemas.events import EventCreate, EventOut, EventStatsOut, TicketCreate, TicketOut
from app.services.errors import BookingError
from app.services.events import create_event, create_ticket, get_event, list_events
from app.services.reports import get_event_stats

router = APIRouter(tags=["events"])


@router.get("/events", response_model=list[EventOut])
def all_events(db: Session = Depends(get_db)):
    return list_events(db)


@router.post("/events", response_model=EventOut, status_code=201, dependencies=[Depends(require_admin)])
def new_event(payload: EventCreate, db: Session = Depends(get_db)):
    event = create_event(db, payload)
    return get_event(db, event.id)


@router.get("/events/{event_id}", response_model=EventOut)
def read_event(event_id: int, db: Session = Depends(get_db)):
    try:
        return get_event(db, event_id)
    except BookingError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/events/{event_id}/stats", response_model=EventStatsOut)
def event_stats(event_id: int, db: Session = Depends(get_db)):
    stats = get_event_stats(db, event_id)
    if not stats:
        raise HTTPException(status_code=404, detail="Event not found")
    return stats


@router.post("/tickets", response_model=TicketOut, status_code=201, dependencies=[Depends(require_admin)])
def new_ticket(payload: TicketCreate, db: Session = Depends(get_db)):
    try:
        return create_ticket(db, payload)
    except BookingError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
