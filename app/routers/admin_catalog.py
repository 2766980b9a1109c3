# app/routers/admin_catalog.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.core.decorator import NotFoundError
from app.core.dependencies import get_current_admin, get_email_service
from app.models.admin import Admin
from app.routers.courses import batch_with_count
from app.schemas.admin import EmailResult
from app.schemas.common import MessageResponse
from app.schemas.coupon import (
    CouponCreate,
    CouponDeleteResponse,
    CouponEmailRequest,
    CouponListResponse,
    CouponResponse,
    CouponStatusUpdate,
    CouponUsageStats,
)
from app.schemas.course import (
    AdminBatchResponse,
    BatchCreate,
    BatchUpdate,
    BatchWithCount,
    CourseCreate,
    CourseListResponse,
    CourseResponse,
    CourseUpdate,
)
from app.schemas.enrollment import EnrollmentResponse
from app.services.audit import AuditService
from app.services.batch import BatchService
from app.services.coupon import CouponService
from app.services.course import CourseService
from app.services.notification import EmailService

router = APIRouter(
    prefix="/admin",
    tags=["Admin Catalog"],
    responses={404: {"description": "Not found"}},
)


# ==================== Courses ====================


@router.get("/courses", response_model=CourseListResponse)
def admin_list_courses(
    category: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    """All courses, unpublished ones included."""
    courses = CourseService(db).get_courses(category=category, include_unpublished=True)
    return {"courses": courses, "total": len(courses)}


@router.post("/courses", response_model=CourseResponse, status_code=201)
def admin_create_course(
    course_in: CourseCreate,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    course = CourseService(db).create_course(course_in)
    AuditService(db).log_admin_event(
        current_admin,
        "create",
        "course",
        course.id,
        description=f"Created course {course.title}",
        new_data=course_in.model_dump(exclude={"batches"}),
    )
    return course


@router.put("/courses/{course_id}", response_model=CourseResponse)
def admin_update_course(
    course_id: str,
    course_in: CourseUpdate,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    course = CourseService(db).update_course(course_id, course_in)
    AuditService(db).log_admin_event(
        current_admin,
        "update",
        "course",
        course_id,
        new_data=course_in.model_dump(exclude_unset=True),
    )
    return course


@router.get("/courses/{course_id}/batches", response_model=List[BatchWithCount])
def admin_course_batch_stats(
    course_id: str,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    stats = BatchService(db).get_course_batch_stats(course_id)
    return [batch_with_count(item["batch"], item["enrollment_count"]) for item in stats]


@router.post(
    "/courses/{course_id}/batches", response_model=AdminBatchResponse, status_code=201
)
def admin_add_batch(
    course_id: str,
    batch_in: BatchCreate,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    batch = CourseService(db).add_batch(course_id, batch_in)
    AuditService(db).log_admin_event(
        current_admin,
        "create",
        "batch",
        f"{course_id}#{batch.batch_number}",
        new_data=batch_in.model_dump(),
    )
    return batch


@router.put(
    "/courses/{course_id}/batches/{batch_number}", response_model=AdminBatchResponse
)
def admin_update_batch(
    course_id: str,
    batch_number: int,
    batch_in: BatchUpdate,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    """Edit a batch, including moving it between upcoming, active and completed."""
    batch = CourseService(db).update_batch(course_id, batch_number, batch_in)
    AuditService(db).log_admin_event(
        current_admin,
        "update",
        "batch",
        f"{course_id}#{batch_number}",
        new_data=batch_in.model_dump(exclude_unset=True),
    )
    return batch


@router.delete(
    "/courses/{course_id}/batches/{batch_number}", response_model=MessageResponse
)
def admin_delete_batch(
    course_id: str,
    batch_number: int,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    CourseService(db).delete_batch(course_id, batch_number)
    AuditService(db).log_admin_event(
        current_admin, "delete", "batch", f"{course_id}#{batch_number}"
    )
    return {"message": f"Batch {batch_number} deleted"}


@router.get(
    "/courses/{course_id}/batches/{batch_number}/enrollments",
    response_model=List[EnrollmentResponse],
)
def admin_batch_enrollments(
    course_id: str,
    batch_number: int,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    return BatchService(db).get_batch_enrollments(course_id, batch_number)


# ==================== Coupons ====================


@router.get("/coupons", response_model=CouponListResponse)
def admin_list_coupons(
    status: Optional[str] = Query(None),
    target_type: Optional[str] = Query(None),
    course_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    coupons = CouponService(db).list_coupons(
        status=status, target_type=target_type, course_id=course_id
    )
    return {"coupons": coupons, "total": len(coupons)}


@router.post("/coupons", response_model=CouponResponse, status_code=201)
def admin_create_coupon(
    coupon_in: CouponCreate,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    """Create a coupon; a code is generated (with the optional prefix) when none is given."""
    coupon = CouponService(db).create_coupon(coupon_in, current_admin)
    AuditService(db).log_admin_event(
        current_admin,
        "create",
        "coupon",
        coupon.id,
        description=f"Created coupon {coupon.code}",
        new_data=coupon_in.model_dump(),
    )
    return coupon


@router.get("/coupons/stats", response_model=CouponUsageStats)
def admin_coupon_usage_stats(
    coupon_id: Optional[int] = Query(None, description="Limit to one coupon"),
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    return CouponService(db).get_coupon_usage_stats(coupon_id)


@router.get("/coupons/code/{code}", response_model=CouponResponse)
def admin_get_coupon_by_code(
    code: str,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    coupon = CouponService(db).get_coupon_by_code(code)
    if not coupon:
        raise NotFoundError("Coupon not found")
    return coupon


@router.put("/coupons/{coupon_id}/status", response_model=CouponResponse)
def admin_update_coupon_status(
    coupon_id: int,
    status_in: CouponStatusUpdate,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    service = CouponService(db)
    previous = service.get_coupon(coupon_id).status
    coupon = service.update_coupon_status(coupon_id, status_in.status, current_admin)
    AuditService(db).log_admin_event(
        current_admin,
        "status_change",
        "coupon",
        coupon_id,
        previous_data={"status": previous},
        new_data={"status": coupon.status},
    )
    return coupon


@router.delete("/coupons/{coupon_id}", response_model=CouponDeleteResponse)
def admin_delete_coupon(
    coupon_id: int,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    """Unused coupons are removed; used ones are deactivated to keep their history."""
    result = CouponService(db).delete_coupon(coupon_id, current_admin)
    AuditService(db).log_admin_event(
        current_admin,
        "delete",
        "coupon",
        coupon_id,
        description=result["message"],
    )
    return result


@router.post("/coupons/{coupon_id}/email", response_model=EmailResult)
def admin_send_coupon_email(
    coupon_id: int,
    email_in: CouponEmailRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    email_service: EmailService = Depends(get_email_service),
    current_admin: Admin = Depends(get_current_admin),
):
    coupon = CouponService(db, settings).get_coupon(coupon_id)
    result = email_service.send_coupon(
        coupon,
        email_in.recipient_email,
        recipient_name=email_in.recipient_name,
        user_id=email_in.user_id,
        message=email_in.message,
    )
    AuditService(db).log_admin_event(
        current_admin,
        "email",
        "coupon",
        coupon_id,
        description=f"Coupon {coupon.code} sent to {email_in.recipient_email}",
        metadata={"success": result.success, "skipped": result.skipped},
    )
    return result
