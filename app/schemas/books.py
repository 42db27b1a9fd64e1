from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.events import EventSummary, TicketOut
from app.schemas.users import UserSummary


class BookRequest(BaseModel):
    event_id: int = Field(ge=1)
    ticket_id: int = Field(ge=1)
    quantity: int = Field(ge=1)
    guest_name: str | None = Field(default=None, max_length=200)
    guest_email: str | None = Field(default=None, max_length=255)
    guest_phone: str | None = Field(default=None, max_length=32)


class BookingOut(BaseModel):
    id: int
    user_id: int | None = None
    event_id: int
    ticket_id: int
    quantity: int
    total_amount: float
    currency: str
    status: str
    guest_name: str | None = None
    guest_email: str | None = None
    guest_phone: str | None = None
    expires_at: datetime
    created_at: datetime
    updated_at: datetime
    event: EventSummary | None = None
    ticket: TicketOut | None = None

    class Config:
        from_attributes = True


class AdminBookingOut(BookingOut):
    user: UserSummary | None = None


class SweepOut(BaseModel):
    expired: int
