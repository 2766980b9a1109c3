# app/routers/checkout.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings, settings as app_settings
from app.core.database import get_db
from app.core.dependencies import get_current_user, get_email_service
from app.core.limiter import limiter
from app.models.user import User
from app.schemas.payment import CheckoutRequest, CheckoutResult, FreeEnrollmentRequest
from app.services.checkout import CheckoutService
from app.services.notification import EmailService

router = APIRouter(
    prefix="/checkout",
    tags=["Checkout"],
    responses={404: {"description": "Not found"}},
)


@router.post("/paypal", response_model=CheckoutResult, status_code=201)
@limiter.limit(app_settings.rate_limit_checkout)
def checkout_paypal(
    request: Request,
    checkout_in: CheckoutRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    email_service: EmailService = Depends(get_email_service),
    current_user: User = Depends(get_current_user),
):
    """
    Record a payment captured by the PayPal widget and enroll the buyer.

    The payment, the enrollment and any coupon usage are committed together.
    A failed confirmation email is reported in ``warning`` and does not undo
    the enrollment.
    """
    service = CheckoutService(db, settings, email_service=email_service)
    return service.checkout(
        current_user,
        checkout_in.course_id,
        checkout_in.payment,
        coupon_code=checkout_in.coupon_code,
    )


@router.post("/free", response_model=CheckoutResult, status_code=201)
@limiter.limit(app_settings.rate_limit_checkout)
def enroll_with_free_coupon(
    request: Request,
    enrollment_in: FreeEnrollmentRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    email_service: EmailService = Depends(get_email_service),
    current_user: User = Depends(get_current_user),
):
    """Enroll with a coupon that brings the price to zero."""
    service = CheckoutService(db, settings, email_service=email_service)
    return service.enroll_free(
        current_user, enrollment_in.course_id, enrollment_in.coupon_code
    )
