from datetime import datetime

from pydantic import BaseModel, Field


class PaymentRequest(BaseModel):
    booking_id: int = Field(ge=1)
    amount: float = Field(gt=0)
    currency: str = Field(min_length=1, max_length=8)
    payment_method: str = Field(min_length=1, max_length=32)
    payment_reference: str | None = Field(default=None, max_length=128)
    transaction_id: str | None = Field(default=None, max_length=128)


class PaymentOut(BaseModel):
    id: int
    booking_id: int
    amount: float
    currency: str
    payment_method: str
    payment_reference: str | None = None
    transaction_id: str | None = None
    status: str
    created_at: datetime

    class Config:
        from_attributes = True
