# app/schemas/coupon.py

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

DiscountType = Literal["percentage", "fixed"]
TargetType = Literal["general", "user_specific", "course_specific"]
CouponStatus = Literal["active", "inactive", "expired"]


class CouponCreate(BaseModel):
    code: Optional[str] = Field(None, min_length=3, max_length=50)
    prefix: Optional[str] = Field(None, max_length=10)
    name: Optional[str] = Field(None, max_length=150)
    description: Optional[str] = None

    discount_type: DiscountType
    discount_value: Decimal = Field(..., examples=[50])
    max_discount_amount: Optional[Decimal] = Field(None, gt=0)
    min_order_amount: Optional[Decimal] = Field(None, gt=0)

    target_type: TargetType = "general"
    target_user_id: Optional[str] = None
    target_user_email: Optional[EmailStr] = None
    course_id: Optional[str] = None

    usage_limit: Optional[int] = Field(None, ge=1)
    usage_limit_per_user: Optional[int] = Field(1, ge=1)

    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None

    @model_validator(mode="after")
    def check_target(self):
        if self.target_type == "user_specific" and not self.target_user_id:
            raise ValueError("target_user_id is required for user_specific coupons")
        if self.target_type == "course_specific" and not self.course_id:
            raise ValueError("course_id is required for course_specific coupons")
        if self.valid_from and self.valid_until and self.valid_until <= self.valid_from:
            raise ValueError("valid_until must be after valid_from")
        return self


class UsageRecord(BaseModel):
    user_id: str
    course_id: str
    used_at: datetime
    order_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    payment_id: Optional[str] = None
    order_id: Optional[str] = None


class CouponResponse(BaseModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal
    max_discount_amount: Optional[Decimal] = None
    min_order_amount: Optional[Decimal] = None
    target_type: TargetType
    target_user_id: Optional[str] = None
    target_user_email: Optional[str] = None
    course_id: Optional[str] = None
    course_title: Optional[str] = None
    usage_limit: Optional[int] = None
    usage_limit_per_user: Optional[int] = None
    usage_count: int
    usage_history: List[UsageRecord] = []
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    status: CouponStatus
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CouponListResponse(BaseModel):
    coupons: List[CouponResponse]
    total: int


class CouponValidateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    course_id: str


class CouponValidation(BaseModel):
    """Outcome of checking a code against an order; never raised as an error."""

    valid: bool
    error: Optional[str] = None
    coupon_id: Optional[int] = None
    coupon_code: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = None
    original_amount: Optional[Decimal] = None
    discount_amount: Decimal = Decimal("0.00")
    final_amount: Optional[Decimal] = None
    savings: Decimal = Decimal("0.00")


class CouponStatusUpdate(BaseModel):
    status: CouponStatus


class CouponDeleteResponse(BaseModel):
    success: bool = True
    deleted: bool
    message: str


class CouponUsageStats(BaseModel):
    total_usage: int
    total_discount: Decimal
    total_orders: Decimal
    average_discount: Decimal
    usage_records: List[UsageRecord]


class CouponEmailRequest(BaseModel):
    recipient_email: EmailStr
    recipient_name: Optional[str] = None
    user_id: Optional[str] = None
    message: Optional[str] = Field(None, max_length=2000)


class CouponSummary(BaseModel):
    """What a learner may see of a coupon offered to them."""

    code: str
    name: str
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal
    max_discount_amount: Optional[Decimal] = None
    min_order_amount: Optional[Decimal] = None
    target_type: TargetType
    course_id: Optional[str] = None
    course_title: Optional[str] = None
    valid_until: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AvailableCouponsResponse(BaseModel):
    coupons: List[CouponSummary]
    total: int
