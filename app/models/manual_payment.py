from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import func

from app.core.database import Base

PENDING = "pending_manual_verification"
VERIFIED = "verified_and_enrolled"
ARCHIVED = "archived"
REJECTED = "rejected"

MANUAL_PAYMENT_STATUSES = (PENDING, VERIFIED, ARCHIVED, REJECTED)


class ManualPayment(Base):
    """
    A learner's claim of an out-of-band payment (bank transfer, Zelle...).
    Only admin actions move it between statuses.
    """

    __tablename__ = "manual_payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), ForeignKey("users.id"), nullable=True, index=True)
    course_id = Column(String(100), ForeignKey("courses.id"), nullable=False)
    course_title = Column(String(200), nullable=True)

    amount = Column(Numeric(10, 2), nullable=False, default=0)
    payer_name = Column(String(150), nullable=True)
    payer_email = Column(String(255), nullable=True)
    transaction_id = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    payment_method = Column(String(20), nullable=False, default="manual")

    status = Column(String(40), nullable=False, default=PENDING, index=True)
    # [{from, to, admin_id, at, reason}]
    status_history = Column(JSON, nullable=False, default=list)

    # Verification outcome
    enrollment_id = Column(String(300), nullable=True)
    enrollment_batch = Column(Integer, nullable=True)
    payment_record_id = Column(Integer, ForeignKey("payments.id"), nullable=True)
    email_sent = Column(Boolean, nullable=True)
    verified_by = Column(Integer, ForeignKey("admins.id"), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)

    archived_by = Column(Integer, ForeignKey("admins.id"), nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(Integer, ForeignKey("admins.id"), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    submitted_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
