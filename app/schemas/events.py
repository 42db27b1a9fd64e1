from datetime import datetime

from pydantic import BaseModel, Field


# ---------- Ticket ----------
class TicketCreate(BaseModel):
    event_id: int = Field(ge=1)
    type: str = Field(default="regular", max_length=32)
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    price: float = Field(gt=0)
    currency: str | None = Field(default=None, max_length=8)
    quantity_available: int = Field(ge=1)


class TicketOut(BaseModel):
    id: int
    event_id: int
    type: str
    name: str
    description: str | None = None
    price: float
    currency: str
    quantity_available: int
    quantity_sold: int

    class Config:
        from_attributes = True


# ---------- Event ----------
class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    date: datetime
    location: str = Field(min_length=1, max_length=200)
    category: str = Field(min_length=1, max_length=64)
    max_capacity: int = Field(ge=1)
    currency: str | None = Field(default=None, max_length=8)
    status: str = "active"


class EventSummary(BaseModel):
    id: int
    title: str
    date: datetime
    location: str
    currency: str
    status: str

    class Config:
        from_attributes = True


class EventOut(BaseModel):
    id: int
    title: str
    description: str | None = None
    date: datetime
    location: str
    category: str
    max_capacity: int
    tickets_sold: int
    currency: str
    status: str
    tickets: list[TicketOut] = []
    revenue: float = 0

    class Config:
        from_attributes = True


class TicketStatsOut(BaseModel):
    ticket_id: int
    name: str
    capacity: int
    sold: int
    remaining: int
    pending_holds: int


class EventStatsOut(BaseModel):
    event_id: int
    capacity: int
    tickets_sold: int
    confirmed_bookings: int
    pending_bookings: int
    revenue: float
    tickets: list[TicketStatsOut]
