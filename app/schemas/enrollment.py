# app/schemas/enrollment.py

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

EnrollmentStatus = Literal["enrolled", "completed"]
EnrollmentSource = Literal["web_purchase", "admin_manual", "free_coupon"]


class EnrollmentResponse(BaseModel):
    id: str
    user_id: str
    course_id: str
    batch_number: int
    course_title: Optional[str] = None
    status: EnrollmentStatus
    progress: int
    amount_paid: Decimal
    payment_id: Optional[str] = None
    order_id: Optional[str] = None
    payment_method: Optional[str] = None
    coupon_code: Optional[str] = None
    enrollment_source: EnrollmentSource
    enrolled_by: Optional[int] = None
    notes: Optional[str] = None
    enrolled_at: datetime
    last_accessed: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class EnrollmentListResponse(BaseModel):
    enrollments: List[EnrollmentResponse]
    total: int
    page: int
    size: int
    total_pages: int


class CourseAccessResponse(BaseModel):
    has_access: bool
    enrollment: Optional[EnrollmentResponse] = None


class ProgressUpdate(BaseModel):
    course_id: str
    progress: int = Field(..., examples=[40])


class ProgressOverride(BaseModel):
    progress: int


class ManualEnrollmentRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    course_id: str = Field(..., min_length=1)
    batch_number: Optional[int] = Field(None, ge=1)
    notes: Optional[str] = Field(None, max_length=2000)
    send_email: bool = True


class ManualEnrollmentResult(BaseModel):
    success: bool = True
    enrollment_id: str
    batch_number: int
    email_sent: bool = False
    warning: Optional[str] = None


class CourseProgressStats(BaseModel):
    course_id: str
    total: int
    completed: int
    average_progress: float


class ProgressOverview(BaseModel):
    total_enrollments: int
    completed: int
    in_progress: int
    not_started: int
    average_progress: float
    by_course: List[CourseProgressStats]


class ReceiptResponse(BaseModel):
    receipt_number: str
    issued_at: datetime
    company: Dict[str, str]
    customer_name: str
    customer_email: Optional[str] = None
    course_title: str
    batch_number: int
    amount_paid: Decimal
    payment_method: Optional[str] = None
    payment_id: Optional[str] = None
    order_id: Optional[str] = None
    html: str
