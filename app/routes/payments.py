from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database.db import get_db
from app.schemas.payments import PaymentOut, PaymentRequest
from app.services.errors import BookingError
from app.services.payments import record_payment

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("", response_model=PaymentOut, status_code=201)
def create_payment(payload: PaymentRequest, db: Session = Depends(get_db)):
    try:
        return record_payment(
            db,
            booking_id=payload.booking_id,
            amount=payload.amount,
            currency=payload.currency,
            payment_method=payload.payment_method,
            payment_reference=payload.payment_reference,
            transaction_id=payload.transaction_id,
        )
    except BookingError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
