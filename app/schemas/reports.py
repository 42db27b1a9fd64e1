from pydantic import BaseModel


class TopEventOut(BaseModel):
    id: int
    title: str
    revenue: float
    tickets: int


class AnalyticsOut(BaseModel):
    total_events: int
    upcoming_events: int
    tickets_sold: int
    total_revenue: float
    bookings_today: int
    top_events: list[TopEventOut]
