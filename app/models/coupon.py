from sqlalchemy import (
    JSON,
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

DISCOUNT_TYPES = ("percentage", "fixed")
TARGET_TYPES = ("general", "user_specific", "course_specific")
COUPON_STATUSES = ("active", "inactive", "expired")


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)

    # Discount details
    discount_type = Column(String(20), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)
    max_discount_amount = Column(Numeric(10, 2), nullable=True)
    min_order_amount = Column(Numeric(10, 2), nullable=True)

    # Usage restrictions
    target_type = Column(String(30), nullable=False, default="general")
    target_user_id = Column(String(128), nullable=True)
    target_user_email = Column(String(255), nullable=True)
    course_id = Column(String(100), ForeignKey("courses.id"), nullable=True)
    course_title = Column(String(200), nullable=True)

    # Usage limits
    usage_limit = Column(Integer, nullable=True)
    usage_limit_per_user = Column(Integer, nullable=True, default=1)
    usage_count = Column(Integer, nullable=False, default=0)
    # [{user_id, course_id, used_at, order_amount, discount_amount, final_amount, payment_id, order_id}]
    usage_history = Column(JSON, nullable=False, default=list)

    # Validity period
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), nullable=False, default="active", index=True)

    # Admin information
    created_by = Column(Integer, ForeignKey("admins.id"), nullable=True)
    last_modified_by = Column(Integer, ForeignKey("admins.id"), nullable=True)
    deleted_by = Column(Integer, ForeignKey("admins.id"), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def uses_by(self, user_id: str) -> int:
        return sum(1 for usage in self.usage_history or [] if usage.get("user_id") == user_id)

    def __repr__(self):
        return f"<Coupon(code='{self.code}', type='{self.discount_type}', status='{self.status}')>"


class CouponUsage(Base):
    """Flat redemption log, one row per recorded use."""

    __tablename__ = "coupon_usage"

    id = Column(Integer, primary_key=True, index=True)
    coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=False, index=True)
    coupon_code = Column(String(50), nullable=False)
    user_id = Column(String(128), nullable=False, index=True)
    course_id = Column(String(100), nullable=False)

    order_amount = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False)
    final_amount = Column(Numeric(10, 2), nullable=False)
    payment_id = Column(String(255), nullable=True)
    order_id = Column(String(255), nullable=True)

    used_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
