# app/routers/coupons.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.core.decorator import NotFoundError
from app.core.dependencies import get_current_user
from app.core.limiter import limiter
from app.models.course import Course
from app.models.user import User
from app.schemas.coupon import (
    AvailableCouponsResponse,
    CouponValidateRequest,
    CouponValidation,
)
from app.services.coupon import CouponService

router = APIRouter(
    prefix="/coupons",
    tags=["Coupons"],
    responses={404: {"description": "Not found"}},
)


@router.post("/validate", response_model=CouponValidation)
@limiter.limit("30/minute")
def validate_coupon(
    request: Request,
    validate_in: CouponValidateRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    """
    Price a course with a coupon. Rejections come back as ``valid: false``
    with the reason in ``error``, not as an HTTP error.
    """
    course = db.query(Course).filter(Course.id == validate_in.course_id).first()
    if not course:
        raise NotFoundError(f"Course not found: {validate_in.course_id}")

    service = CouponService(db, settings)
    return service.validate_coupon(
        validate_in.code, current_user.id, course.id, course.price
    )


@router.get("/available", response_model=AvailableCouponsResponse)
def list_available_coupons(
    course_id: Optional[str] = Query(None, description="Include coupons for this course"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    coupons = CouponService(db, settings).get_user_available_coupons(
        current_user.id, course_id
    )
    return {"coupons": coupons, "total": len(coupons)}
