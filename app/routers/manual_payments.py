# app/routers/manual_payments.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.dependencies import get_current_user, get_optional_user
from app.core.limiter import limiter
from app.models.user import User
from app.schemas.manual_payment import ManualPaymentCreate, ManualPaymentResponse
from app.services.manual_payment import ManualPaymentService

router = APIRouter(
    prefix="/manual-payments",
    tags=["Manual Payments"],
    responses={404: {"description": "Not found"}},
)


@router.post("/", response_model=ManualPaymentResponse, status_code=201)
@limiter.limit("5/minute")
def submit_manual_payment(
    request: Request,
    payment_in: ManualPaymentCreate,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    """
    Report an out-of-band payment (bank transfer, Zelle...). It waits in
    ``pending_manual_verification`` until an admin verifies it.
    Anonymous submissions are accepted but cannot be verified until linked
    to an account.
    """
    return ManualPaymentService(db).submit_manual_payment(payment_in, current_user)


@router.get("/me", response_model=List[ManualPaymentResponse])
def get_my_manual_payments(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ManualPaymentService(db).get_user_manual_payments(current_user.id)
