from sqlalchemy import JSON, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from app.core.database import Base

EMAIL_STATUSES = ("sent", "failed", "skipped")


class EmailLog(Base):
    """Outcome of every transactional email attempt."""

    __tablename__ = "emails_sent"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), nullable=True, index=True)
    recipient_email = Column(String(255), nullable=True, index=True)
    recipient_name = Column(String(150), nullable=True)

    email_type = Column(String(50), nullable=False, index=True)
    subject = Column(String(300), nullable=True)
    template_id = Column(String(100), nullable=True)

    course_id = Column(String(100), nullable=True, index=True)
    course_title = Column(String(200), nullable=True)
    payment_id = Column(String(255), nullable=True)
    order_id = Column(String(255), nullable=True)
    amount = Column(Numeric(10, 2), nullable=True)
    enrollment_id = Column(String(300), nullable=True)

    provider = Column(String(30), nullable=False, default="emailjs")
    provider_response = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, index=True)
    error_message = Column(Text, nullable=True)
    raw_text_content = Column(Text, nullable=True)

    sent_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
