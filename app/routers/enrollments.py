# app/routers/enrollments.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.core.dependencies import get_current_user, get_email_service
from app.models.user import User
from app.schemas.enrollment import (
    CourseAccessResponse,
    EnrollmentResponse,
    ProgressUpdate,
    ReceiptResponse,
)
from app.schemas.payment import PaymentResponse
from app.services.enrollment import EnrollmentService
from app.services.notification import EmailService
from app.services.payment import PaymentService

router = APIRouter(
    prefix="/enrollments",
    tags=["Enrollments"],
    responses={404: {"description": "Not found"}},
)

payments_router = APIRouter(
    prefix="/payments",
    tags=["Payments"],
    responses={404: {"description": "Not found"}},
)


@router.get("/me", response_model=List[EnrollmentResponse])
def get_my_enrollments(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return EnrollmentService(db).get_user_enrollments(current_user.id)


@router.get("/access/{course_id}", response_model=CourseAccessResponse)
def check_course_access(
    course_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Whether the caller is enrolled in any batch of the course."""
    has_access, enrollment = EnrollmentService(db).check_course_access(
        current_user.id, course_id
    )
    return {"has_access": has_access, "enrollment": enrollment}


@router.put("/progress", response_model=EnrollmentResponse)
def update_progress(
    progress_in: ProgressUpdate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    """
    Set course progress (0-100, clamped). Reaching 100 completes the
    enrollment. Answers 403 when progress tracking is switched off.
    """
    service = EnrollmentService(db, settings)
    return service.update_progress(
        current_user.id, progress_in.course_id, progress_in.progress
    )


@router.get("/{enrollment_id}/receipt", response_model=ReceiptResponse)
def get_receipt(
    enrollment_id: str,
    email_service: EmailService = Depends(get_email_service),
    current_user: User = Depends(get_current_user),
):
    return email_service.generate_receipt(enrollment_id, current_user)


@payments_router.get("/me", response_model=List[PaymentResponse])
def get_my_payments(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return PaymentService(db).get_user_payments(current_user.id)
