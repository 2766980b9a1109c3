from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.core.dependencies import get_current_admin, get_email_service
from app.models.admin import Admin
from app.schemas.admin import (
    AuditLogListResponse,
    EmailLogListResponse,
    EmailStats,
)
from app.schemas.common import MessageResponse
from app.schemas.enrollment import (
    EnrollmentListResponse,
    EnrollmentResponse,
    ManualEnrollmentRequest,
    ManualEnrollmentResult,
    ProgressOverride,
    ProgressOverview,
)
from app.schemas.manual_payment import (
    ManualPaymentListResponse,
    ManualPaymentResponse,
    RejectRequest,
)
from app.schemas.payment import PaymentListResponse, PaymentResponse, PaymentStatusUpdate
from app.services.audit import AuditService
from app.services.enrollment import EnrollmentService
from app.services.manual_payment import ManualPaymentService
from app.services.notification import EmailService
from app.services.payment import PaymentService
from app.services.review import ReviewService

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    responses={404: {"description": "Not found"}},
)


# ==================== Enrollments ====================


@router.get("/enrollments", response_model=EnrollmentListResponse)
def list_enrollments(
    course_id: Optional[str] = Query(None),
    batch_number: Optional[int] = Query(None, ge=1),
    status: Optional[str] = Query(None, description="enrolled or completed"),
    user_id: Optional[str] = Query(None),
    source: Optional[str] = Query(None, description="Enrollment source"),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    enrollments, pagination = EnrollmentService(db).list_enrollments(
        course_id=course_id,
        batch_number=batch_number,
        status=status,
        user_id=user_id,
        source=source,
        page=page,
        size=size,
    )
    return {"enrollments": enrollments, **pagination}


@router.post("/enrollments/manual", response_model=ManualEnrollmentResult, status_code=201)
def manual_enroll(
    enrollment_in: ManualEnrollmentRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    email_service: EmailService = Depends(get_email_service),
    current_admin: Admin = Depends(get_current_admin),
):
    """
    Enroll a user without payment. Without ``batch_number`` the next
    available batch is used; an explicit batch may be filled past capacity
    but never a completed one.
    """
    return EnrollmentService(db, settings).manual_enroll(
        enrollment_in.user_id,
        enrollment_in.course_id,
        current_admin,
        batch_number=enrollment_in.batch_number,
        notes=enrollment_in.notes,
        send_email=enrollment_in.send_email,
        email_service=email_service,
    )


@router.delete("/enrollments/{enrollment_id}", response_model=MessageResponse)
def delete_enrollment(
    enrollment_id: str,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    EnrollmentService(db).delete_enrollment(enrollment_id, current_admin)
    return {"message": f"Enrollment {enrollment_id} deleted"}


# ==================== Progress ====================


@router.get("/progress", response_model=ProgressOverview)
def progress_overview(
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    return EnrollmentService(db).progress_overview()


@router.put("/progress/{enrollment_id}", response_model=EnrollmentResponse)
def override_progress(
    enrollment_id: str,
    progress_in: ProgressOverride,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    """Works regardless of the progress tracking flag."""
    return EnrollmentService(db).override_progress(
        enrollment_id, progress_in.progress, current_admin
    )


# ==================== Payments ====================


@router.get("/payments", response_model=PaymentListResponse)
def list_payments(
    status: Optional[str] = Query(None),
    course_id: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    payment_method: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    payments, total = PaymentService(db).list_payments(
        status=status,
        course_id=course_id,
        user_id=user_id,
        payment_method=payment_method,
        skip=skip,
        limit=limit,
    )
    return {"payments": payments, "total": total}


@router.get("/payments/orphaned", response_model=List[PaymentResponse])
def list_orphaned_payments(
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    """Completed payments with no matching enrollment, for reconciliation."""
    return PaymentService(db).find_orphaned_payments()


@router.put("/payments/{payment_record_id}/status", response_model=PaymentResponse)
def update_payment_status(
    payment_record_id: int,
    status_in: PaymentStatusUpdate,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    service = PaymentService(db)
    previous = service.get_payment(payment_record_id).status
    payment = service.update_payment_status(payment_record_id, status_in.status)
    AuditService(db).log_admin_event(
        current_admin,
        "status_change",
        "payment",
        payment_record_id,
        description=status_in.reason,
        previous_data={"status": previous},
        new_data={"status": payment.status},
    )
    return payment


# ==================== Manual payments ====================


@router.get("/manual-payments", response_model=ManualPaymentListResponse)
def list_manual_payments(
    status: Optional[str] = Query(
        None, description="e.g. pending_manual_verification, archived, rejected"
    ),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    payments, total = ManualPaymentService(db).list_manual_payments(status, skip, limit)
    return {"manual_payments": payments, "total": total}


@router.post("/manual-payments/{manual_payment_id}/verify", response_model=ManualPaymentResponse)
def verify_manual_payment(
    manual_payment_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    email_service: EmailService = Depends(get_email_service),
    current_admin: Admin = Depends(get_current_admin),
):
    """Record the payment, enroll the submitter and send the confirmation email."""
    service = ManualPaymentService(db, settings, email_service=email_service)
    return service.verify(manual_payment_id, current_admin)


@router.post("/manual-payments/{manual_payment_id}/archive", response_model=ManualPaymentResponse)
def archive_manual_payment(
    manual_payment_id: int,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    return ManualPaymentService(db).archive(manual_payment_id, current_admin)


@router.post("/manual-payments/{manual_payment_id}/reject", response_model=ManualPaymentResponse)
def reject_manual_payment(
    manual_payment_id: int,
    reject_in: RejectRequest,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    return ManualPaymentService(db).reject(manual_payment_id, current_admin, reject_in.reason)


@router.post("/manual-payments/{manual_payment_id}/reopen", response_model=ManualPaymentResponse)
def reopen_manual_payment(
    manual_payment_id: int,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    """Send an archived or rejected payment back to the pending queue."""
    return ManualPaymentService(db).reopen(manual_payment_id, current_admin)


# ==================== Emails ====================


@router.get("/emails", response_model=EmailLogListResponse)
def list_email_logs(
    user_id: Optional[str] = Query(None),
    recipient_email: Optional[str] = Query(None),
    course_id: Optional[str] = Query(None),
    email_type: Optional[str] = Query(None),
    status: Optional[str] = Query(None, description="sent, failed or skipped"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    email_service: EmailService = Depends(get_email_service),
    current_admin: Admin = Depends(get_current_admin),
):
    emails, total = email_service.list_email_logs(
        user_id=user_id,
        recipient_email=recipient_email,
        course_id=course_id,
        email_type=email_type,
        status=status,
        skip=skip,
        limit=limit,
    )
    return {"emails": emails, "total": total}


@router.get("/emails/stats", response_model=EmailStats)
def email_stats(
    email_service: EmailService = Depends(get_email_service),
    current_admin: Admin = Depends(get_current_admin),
):
    return email_service.get_email_stats()


# ==================== Reviews ====================


@router.delete("/reviews/{review_id}", response_model=MessageResponse)
def delete_review(
    review_id: str,
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    ReviewService(db).delete_review_by_id(review_id)
    AuditService(db).log_admin_event(current_admin, "delete", "review", review_id)
    return {"message": "Review deleted"}


# ==================== Audit log ====================


@router.get("/audit-logs", response_model=AuditLogListResponse)
def list_audit_logs(
    action: Optional[str] = Query(None),
    resource: Optional[str] = Query(None),
    actor_id: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    logs, total = AuditService(db).list_logs(
        action=action, resource=resource, actor_id=actor_id, skip=skip, limit=limit
    )
    return {"logs": logs, "total": total}
