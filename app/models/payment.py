from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from app.core.database import Base

PAYMENT_STATUSES = ("completed", "refunded", "failed")
PAYMENT_METHODS = ("paypal", "coupon", "manual")


class Payment(Base):
    """Ledger entry for one completed transaction (or a $0 coupon enrollment)."""

    __tablename__ = "payments"
    __table_args__ = (
        UniqueConstraint("payment_method", "payment_id", name="uq_payment_method_payment_id"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Provider references
    payment_id = Column(String(255), nullable=True, index=True)
    order_id = Column(String(255), nullable=True, index=True)
    payer_id = Column(String(255), nullable=True)

    # Course details
    course_id = Column(
        String(100), ForeignKey("courses.id"), nullable=False, index=True
    )
    course_title = Column(String(200), nullable=True)

    # Pricing
    amount = Column(Numeric(10, 2), nullable=False)
    original_amount = Column(Numeric(10, 2), nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    coupon_code = Column(String(50), nullable=True)
    currency = Column(String(10), nullable=False, default="USD")

    # Buyer as known to us, plus the payer as reported by the provider
    user_id = Column(String(128), ForeignKey("users.id"), nullable=False, index=True)
    user_email = Column(String(255), nullable=True)
    user_name = Column(String(150), nullable=True)
    payer_email = Column(String(255), nullable=True)
    payer_name = Column(String(150), nullable=True)

    status = Column(String(20), nullable=False, default="completed", index=True)
    transaction_status = Column(String(50), nullable=True)
    payment_method = Column(String(20), nullable=False, default="paypal")
    funding_source = Column(String(50), nullable=True)

    payment_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self):
        return f"<Payment(id={self.id}, course_id='{self.course_id}', amount={self.amount})>"
