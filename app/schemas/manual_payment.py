# app/schemas/manual_payment.py

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

ManualPaymentStatus = Literal[
    "pending_manual_verification", "verified_and_enrolled", "archived", "rejected"
]


class ManualPaymentCreate(BaseModel):
    course_id: str
    amount: Decimal = Field(..., ge=0)
    payer_name: Optional[str] = Field(None, max_length=150)
    payer_email: Optional[EmailStr] = None
    transaction_id: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=2000)
    timestamp: Optional[datetime] = None


class StatusChange(BaseModel):
    from_status: str = Field(..., alias="from")
    to_status: str = Field(..., alias="to")
    admin_id: int
    at: datetime
    reason: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class ManualPaymentResponse(BaseModel):
    id: int
    user_id: Optional[str] = None
    course_id: str
    course_title: Optional[str] = None
    amount: Decimal
    payer_name: Optional[str] = None
    payer_email: Optional[str] = None
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    status: ManualPaymentStatus
    status_history: List[StatusChange] = []
    enrollment_id: Optional[str] = None
    enrollment_batch: Optional[int] = None
    payment_record_id: Optional[int] = None
    email_sent: Optional[bool] = None
    verified_by: Optional[int] = None
    verified_at: Optional[datetime] = None
    archived_by: Optional[int] = None
    archived_at: Optional[datetime] = None
    rejected_by: Optional[int] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    submitted_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ManualPaymentListResponse(BaseModel):
    manual_payments: List[ManualPaymentResponse]
    total: int


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)
