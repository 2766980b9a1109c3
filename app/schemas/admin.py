from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class EmailLogResponse(BaseModel):
    id: int
    user_id: Optional[str] = None
    recipient_email: Optional[str] = None
    recipient_name: Optional[str] = None
    email_type: str
    subject: Optional[str] = None
    template_id: Optional[str] = None
    course_id: Optional[str] = None
    course_title: Optional[str] = None
    payment_id: Optional[str] = None
    order_id: Optional[str] = None
    amount: Optional[Decimal] = None
    enrollment_id: Optional[str] = None
    provider: str
    status: str
    error_message: Optional[str] = None
    sent_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EmailLogListResponse(BaseModel):
    emails: List[EmailLogResponse]
    total: int


class EmailStats(BaseModel):
    total: int
    sent: int
    failed: int
    skipped: int
    by_type: Dict[str, int]


class AuditLogResponse(BaseModel):
    id: int
    action: str
    resource: str
    resource_id: Optional[str] = None
    actor_id: Optional[str] = None
    actor_email: Optional[str] = None
    actor_role: str
    previous_data: Optional[Any] = None
    new_data: Optional[Any] = None
    description: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogResponse]
    total: int


class EmailResult(BaseModel):
    """Outcome of one send attempt; failures are reported here, not raised."""

    success: bool
    skipped: bool = False
    error: Optional[str] = None
    message_id: Optional[str] = None
    text_content: Optional[str] = None
    log_id: Optional[int] = None
