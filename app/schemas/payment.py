# app/schemas/payment.py

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

PaymentStatus = Literal["completed", "refunded", "failed"]


class PaymentConfirmation(BaseModel):
    """What the PayPal checkout widget hands back after capture."""

    order_id: str = Field(..., min_length=1, examples=["5O190127TN364715T"])
    payment_id: str = Field(..., min_length=1, examples=["3C679366HH908993F"])
    payer_id: Optional[str] = None
    payer_email: Optional[str] = None
    payer_name: Optional[str] = None
    amount: Decimal = Field(..., ge=0)
    currency: str = "USD"
    transaction_status: str = Field("COMPLETED", examples=["COMPLETED"])
    funding_source: Optional[str] = Field(None, examples=["paypal", "card"])
    timestamp: Optional[datetime] = None


class CheckoutRequest(BaseModel):
    course_id: str
    coupon_code: Optional[str] = Field(None, max_length=50)
    payment: PaymentConfirmation


class FreeEnrollmentRequest(BaseModel):
    course_id: str
    coupon_code: str = Field(..., min_length=1, max_length=50)


class CheckoutResult(BaseModel):
    success: bool = True
    enrollment_id: str
    course_id: str
    batch_number: int
    payment_record_id: int
    amount_paid: Decimal
    original_amount: Decimal
    discount_amount: Decimal
    coupon_code: Optional[str] = None
    email_sent: bool = False
    warning: Optional[str] = None


class PaymentResponse(BaseModel):
    id: int
    payment_id: Optional[str] = None
    order_id: Optional[str] = None
    course_id: str
    course_title: Optional[str] = None
    amount: Decimal
    original_amount: Optional[Decimal] = None
    discount_amount: Decimal
    coupon_code: Optional[str] = None
    currency: str
    user_id: str
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    payer_email: Optional[str] = None
    payer_name: Optional[str] = None
    status: str
    transaction_status: Optional[str] = None
    payment_method: str
    funding_source: Optional[str] = None
    payment_date: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentListResponse(BaseModel):
    payments: List[PaymentResponse]
    total: int


class PaymentStatusUpdate(BaseModel):
    status: PaymentStatus
    reason: Optional[str] = Field(None, max_length=500)
