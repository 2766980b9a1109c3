# app/services/enrollment.py
import logging
import math
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.decorator import ConflictError, NotFoundError, PermissionDenied
from app.models.admin import Admin
from app.models.batch import CourseBatch
from app.models.course import Course
from app.models.enrollment import Enrollment, make_enrollment_id
from app.models.payment import Payment
from app.models.user import User
from app.services.audit import AuditService
from app.services.batch import BatchService
from app.services.notification import EmailService
from app.utils.dates import format_date, format_date_range, utcnow
from app.utils.money import to_money

logger = logging.getLogger(__name__)


def clamp_progress(progress: int) -> int:
    return min(max(int(progress), 0), 100)


def enrollment_email_data(
    user: User,
    course: Course,
    enrollment: Enrollment,
    batch: Optional[CourseBatch] = None,
    payment: Optional[Payment] = None,
) -> Dict:
    data = {
        "user_id": user.id,
        "user_email": user.email,
        "user_name": user.name,
        "course_id": course.id,
        "course_title": course.title,
        "amount": to_money(enrollment.amount_paid or 0),
        "payment_id": enrollment.payment_id,
        "order_id": enrollment.order_id,
        "payment_method": enrollment.payment_method,
        "enrollment_id": enrollment.id,
        "batch_number": enrollment.batch_number,
        "enrollment_date": format_date(enrollment.enrolled_at or utcnow()),
    }
    if batch is not None:
        data["batch_label"] = batch.display_name
        data["batch_dates"] = format_date_range(batch.start_date, batch.end_date)
    if payment is not None:
        data.update(
            payer_name=payment.payer_name,
            payer_email=payment.payer_email,
            transaction_status=payment.transaction_status,
            funding_source=payment.funding_source,
        )
    return data


class EnrollmentService:
    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    # ==================== Writer ====================

    def write_enrollment(
        self,
        user: User,
        course: Course,
        batch: CourseBatch,
        source: str,
        payment: Optional[Payment] = None,
        amount_paid=None,
        coupon_code: Optional[str] = None,
        enrolled_by: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Enrollment:
        """
        Stage the enrollment keyed ``{user}_{course}_batch{n}``.

        Merging on the composite key replaces an existing row for the same
        user and batch, so a retried purchase never produces a second record.
        Nothing is committed here.
        """
        enrollment_id = make_enrollment_id(user.id, course.id, batch.batch_number)
        if amount_paid is None:
            amount_paid = payment.amount if payment is not None else Decimal("0.00")

        enrollment = self.db.merge(
            Enrollment(
                id=enrollment_id,
                user_id=user.id,
                course_id=course.id,
                batch_number=batch.batch_number,
                course_title=course.title,
                status="enrolled",
                progress=0,
                amount_paid=to_money(amount_paid),
                payment_id=payment.payment_id if payment is not None else None,
                order_id=payment.order_id if payment is not None else None,
                payment_method=payment.payment_method if payment is not None else "manual",
                coupon_code=coupon_code,
                enrollment_source=source,
                enrolled_by=enrolled_by,
                notes=notes,
                enrolled_at=utcnow(),
                last_accessed=None,
                completed_at=None,
            )
        )
        self.db.flush()
        logger.info(
            f"Enrollment staged: {enrollment_id} (source={source}, batch={batch.batch_number})"
        )
        return enrollment

    # ==================== Learner ====================

    def get_enrollment(self, enrollment_id: str) -> Enrollment:
        enrollment = self.db.query(Enrollment).filter(Enrollment.id == enrollment_id).first()
        if not enrollment:
            raise NotFoundError("Enrollment not found")
        return enrollment

    def get_user_enrollments(self, user_id: str) -> List[Enrollment]:
        return (
            self.db.query(Enrollment)
            .filter(Enrollment.user_id == user_id)
            .order_by(Enrollment.enrolled_at.desc())
            .all()
        )

    def get_user_course_enrollments(self, user_id: str, course_id: str) -> List[Enrollment]:
        return (
            self.db.query(Enrollment)
            .filter(
                and_(
                    Enrollment.user_id == user_id,
                    Enrollment.course_id == course_id,
                )
            )
            .order_by(Enrollment.batch_number.asc())
            .all()
        )

    def check_course_access(
        self, user_id: str, course_id: str
    ) -> Tuple[bool, Optional[Enrollment]]:
        enrollments = self.get_user_course_enrollments(user_id, course_id)
        if not enrollments:
            return False, None

        enrollment = enrollments[-1]
        enrollment.last_accessed = utcnow()
        self.db.commit()
        self.db.refresh(enrollment)
        return True, enrollment

    def update_progress(self, user_id: str, course_id: str, progress: int) -> Enrollment:
        """Learner progress on their latest batch of a course."""
        if not self.settings.enable_progress_tracking:
            raise PermissionDenied("Progress tracking is disabled")

        enrollments = self.get_user_course_enrollments(user_id, course_id)
        if not enrollments:
            raise NotFoundError("You are not enrolled in this course")

        enrollment = enrollments[-1]
        progress = clamp_progress(progress)
        now = utcnow()

        enrollment.progress = progress
        enrollment.last_accessed = now
        if progress >= 100:
            enrollment.status = "completed"
            enrollment.completed_at = now

        self.db.commit()
        self.db.refresh(enrollment)
        return enrollment

    # ==================== Admin ====================

    def list_enrollments(
        self,
        course_id: Optional[str] = None,
        batch_number: Optional[int] = None,
        status: Optional[str] = None,
        user_id: Optional[str] = None,
        source: Optional[str] = None,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[Enrollment], dict]:
        query = self.db.query(Enrollment)
        if course_id:
            query = query.filter(Enrollment.course_id == course_id)
        if batch_number is not None:
            query = query.filter(Enrollment.batch_number == batch_number)
        if status:
            query = query.filter(Enrollment.status == status)
        if user_id:
            query = query.filter(Enrollment.user_id == user_id)
        if source:
            query = query.filter(Enrollment.enrollment_source == source)

        total = query.count()
        offset = (page - 1) * size
        enrollments = (
            query.order_by(Enrollment.enrolled_at.desc(), Enrollment.id.asc())
            .offset(offset)
            .limit(size)
            .all()
        )

        total_pages = math.ceil(total / size) if size > 0 else 0
        pagination = {
            "total": total,
            "page": page,
            "size": size,
            "total_pages": total_pages,
        }
        return enrollments, pagination

    def delete_enrollment(self, enrollment_id: str, admin: Optional[Admin] = None) -> None:
        enrollment = self.get_enrollment(enrollment_id)
        snapshot = {
            "user_id": enrollment.user_id,
            "course_id": enrollment.course_id,
            "batch_number": enrollment.batch_number,
            "status": enrollment.status,
            "amount_paid": enrollment.amount_paid,
        }
        self.db.delete(enrollment)
        self.db.commit()
        logger.info(f"Enrollment deleted: {enrollment_id}")

        if admin is not None:
            AuditService(self.db).log_admin_event(
                admin,
                "delete",
                "enrollment",
                enrollment_id,
                description=f"Deleted enrollment {enrollment_id}",
                previous_data=snapshot,
            )

    def override_progress(
        self, enrollment_id: str, progress: int, admin: Optional[Admin] = None
    ) -> Enrollment:
        """Admin override; unlike learner updates this may also reopen a course."""
        enrollment = self.get_enrollment(enrollment_id)
        previous = {"progress": enrollment.progress, "status": enrollment.status}

        progress = clamp_progress(progress)
        enrollment.progress = progress
        if progress >= 100:
            enrollment.status = "completed"
            enrollment.completed_at = enrollment.completed_at or utcnow()
        else:
            enrollment.status = "enrolled"
            enrollment.completed_at = None

        self.db.commit()
        self.db.refresh(enrollment)

        if admin is not None:
            AuditService(self.db).log_admin_event(
                admin,
                "update",
                "progress",
                enrollment_id,
                description=f"Progress set to {progress}%",
                previous_data=previous,
                new_data={"progress": enrollment.progress, "status": enrollment.status},
            )
        return enrollment

    def progress_overview(self) -> Dict:
        enrollments = self.db.query(Enrollment).all()

        total = len(enrollments)
        completed = sum(1 for e in enrollments if e.status == "completed")
        not_started = sum(1 for e in enrollments if e.status != "completed" and not e.progress)
        in_progress = total - completed - not_started
        average = sum(e.progress or 0 for e in enrollments) / total if total else 0.0

        by_course: Dict[str, List[Enrollment]] = {}
        for enrollment in enrollments:
            by_course.setdefault(enrollment.course_id, []).append(enrollment)

        return {
            "total_enrollments": total,
            "completed": completed,
            "in_progress": in_progress,
            "not_started": not_started,
            "average_progress": round(average, 1),
            "by_course": [
                {
                    "course_id": course_id,
                    "total": len(items),
                    "completed": sum(1 for e in items if e.status == "completed"),
                    "average_progress": round(
                        sum(e.progress or 0 for e in items) / len(items), 1
                    ),
                }
                for course_id, items in sorted(by_course.items())
            ],
        }

    def manual_enroll(
        self,
        user_id: str,
        course_id: str,
        admin: Admin,
        batch_number: Optional[int] = None,
        notes: Optional[str] = None,
        send_email: bool = True,
        email_service: Optional[EmailService] = None,
    ) -> Dict:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError(f"User not found: {user_id}")
        course = self.db.query(Course).filter(Course.id == course_id).first()
        if not course:
            raise NotFoundError(f"Course not found: {course_id}")

        batches = BatchService(self.db)
        try:
            if batch_number is not None:
                batch = (
                    self.db.query(CourseBatch)
                    .filter(
                        CourseBatch.course_id == course_id,
                        CourseBatch.batch_number == batch_number,
                    )
                    .with_for_update()
                    .first()
                )
                if not batch:
                    raise NotFoundError(
                        f"Batch {batch_number} not found for course {course_id}"
                    )
                if batch.status == "completed":
                    raise ConflictError("Cannot enroll into a completed batch")

                count = batches.get_batch_enrollment_count(
                    course_id, batch_number, exclude_user_id=user.id
                )
                if count >= batch.max_capacity:
                    logger.warning(
                        f"Manual enrollment of {user.id} overfills {course_id} batch "
                        f"{batch_number} ({count}/{batch.max_capacity})"
                    )
            else:
                batch = batches.select_next_available_batch(
                    course_id, user_id=user.id, lock=True
                )

            enrollment = self.write_enrollment(
                user,
                course,
                batch,
                source="admin_manual",
                amount_paid=Decimal("0.00"),
                enrolled_by=admin.id,
                notes=notes,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(enrollment)
        logger.info(f"Admin {admin.id} manually enrolled {user.id} in {enrollment.id}")

        email_sent, warning = False, None
        if send_email:
            emailer = email_service or EmailService(self.db, self.settings)
            result = emailer.send_enrollment_confirmation(
                enrollment_email_data(user, course, enrollment, batch)
            )
            email_sent = result.success
            if not result.success:
                warning = f"Enrollment created but confirmation email was not sent: {result.error}"
                logger.warning(warning)

        AuditService(self.db).log_admin_event(
            admin,
            "create",
            "enrollment",
            enrollment.id,
            description=f"Manual enrollment of {user.id} in {course_id} batch {batch.batch_number}",
            new_data={
                "user_id": user.id,
                "course_id": course_id,
                "batch_number": batch.batch_number,
                "notes": notes,
            },
            metadata={"email_sent": email_sent},
        )

        return {
            "success": True,
            "enrollment_id": enrollment.id,
            "batch_number": batch.batch_number,
            "email_sent": email_sent,
            "warning": warning,
        }
