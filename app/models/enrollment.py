# app/models/enrollment.py
from sqlalchemy import (
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

ENROLLMENT_STATUSES = ("enrolled", "completed")
ENROLLMENT_SOURCES = ("web_purchase", "admin_manual", "free_coupon")


def make_enrollment_id(user_id: str, course_id: str, batch_number: int) -> str:
    return f"{user_id}_{course_id}_batch{batch_number}"


class Enrollment(Base):
    """
    Links a user to one course batch.

    The primary key is the composite ``{user}_{course}_batch{n}`` string, so
    writing the same enrollment twice replaces the row instead of adding one.
    """

    __tablename__ = "enrollments"

    id = Column(String(300), primary_key=True, index=True)

    user_id = Column(String(128), ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(
        String(100), ForeignKey("courses.id"), nullable=False, index=True
    )
    batch_number = Column(Integer, nullable=False, index=True)
    course_title = Column(String(200), nullable=True)

    status = Column(String(20), nullable=False, default="enrolled", index=True)
    progress = Column(Integer, nullable=False, default=0)

    # Payment reference
    amount_paid = Column(Numeric(10, 2), nullable=False, default=0)
    payment_id = Column(String(255), nullable=True)
    order_id = Column(String(255), nullable=True)
    payment_method = Column(String(50), nullable=True)
    coupon_code = Column(String(50), nullable=True)

    enrollment_source = Column(String(30), nullable=False, default="web_purchase")
    enrolled_by = Column(Integer, ForeignKey("admins.id"), nullable=True)
    notes = Column(Text, nullable=True)

    # Timestamps
    enrolled_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_accessed = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self):
        return f"<Enrollment(id='{self.id}', status='{self.status}', progress={self.progress})>"
