# app/services/manual_payment.py
import logging
from typing import Dict, List, Optional, Tuple

from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.decorator import ConflictError, NotFoundError, ValidationFailed
from app.models.admin import Admin
from app.models.course import Course
from app.models.manual_payment import (
    ARCHIVED,
    PENDING,
    REJECTED,
    VERIFIED,
    ManualPayment,
)
from app.models.user import User
from app.schemas.manual_payment import ManualPaymentCreate
from app.services.audit import AuditService
from app.services.batch import BatchService
from app.services.enrollment import EnrollmentService, enrollment_email_data
from app.services.notification import EmailService
from app.services.payment import PaymentService
from app.utils.dates import as_naive_utc, utcnow
from app.utils.money import to_money

logger = logging.getLogger(__name__)

# Allowed moves; anything else is a conflict
TRANSITIONS = {
    PENDING: {VERIFIED, ARCHIVED, REJECTED},
    ARCHIVED: {PENDING},
    REJECTED: {PENDING},
    VERIFIED: set(),
}


class ManualPaymentService:
    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        email_service: Optional[EmailService] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.email_service = email_service or EmailService(db, self.settings)

    def submit_manual_payment(
        self, payment_in: ManualPaymentCreate, user: Optional[User] = None
    ) -> ManualPayment:
        course = self.db.query(Course).filter(Course.id == payment_in.course_id).first()
        if not course:
            raise NotFoundError(f"Course not found: {payment_in.course_id}")

        payment = ManualPayment(
            user_id=user.id if user else None,
            course_id=course.id,
            course_title=course.title,
            amount=to_money(payment_in.amount),
            payer_name=payment_in.payer_name,
            payer_email=payment_in.payer_email,
            transaction_id=payment_in.transaction_id,
            notes=payment_in.notes,
            payment_method="manual",
            status=PENDING,
            status_history=[],
            submitted_at=as_naive_utc(payment_in.timestamp) or utcnow(),
        )
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(payment)

        logger.info(
            f"Manual payment {payment.id} submitted for {course.id} "
            f"(transaction {payment.transaction_id})"
        )
        return payment

    def get_manual_payment(self, manual_payment_id: int) -> ManualPayment:
        payment = (
            self.db.query(ManualPayment)
            .filter(ManualPayment.id == manual_payment_id)
            .first()
        )
        if not payment:
            raise NotFoundError("Manual payment not found")
        return payment

    def list_manual_payments(
        self, status: Optional[str] = None, skip: int = 0, limit: int = 50
    ) -> Tuple[List[ManualPayment], int]:
        query = self.db.query(ManualPayment)
        if status:
            query = query.filter(ManualPayment.status == status)
        total = query.count()
        payments = (
            query.order_by(ManualPayment.submitted_at.desc(), ManualPayment.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return payments, total

    def get_user_manual_payments(self, user_id: str) -> List[ManualPayment]:
        return (
            self.db.query(ManualPayment)
            .filter(ManualPayment.user_id == user_id)
            .order_by(ManualPayment.submitted_at.desc())
            .all()
        )

    # ==================== State machine ====================

    def _transition(
        self,
        payment: ManualPayment,
        target: str,
        admin: Admin,
        reason: Optional[str] = None,
    ) -> Dict:
        if target not in TRANSITIONS.get(payment.status, set()):
            raise ConflictError(
                f"Cannot move manual payment from {payment.status} to {target}"
            )

        change = {
            "from": payment.status,
            "to": target,
            "admin_id": admin.id,
            "at": utcnow(),
            "reason": reason,
        }
        payment.status_history = list(payment.status_history or []) + [
            jsonable_encoder(change)
        ]
        payment.status = target
        return change

    def _audit(self, admin: Admin, payment: ManualPayment, change: Dict, **extra) -> None:
        AuditService(self.db).log_admin_event(
            admin,
            "status_change",
            "manual_payment",
            payment.id,
            description=f"Manual payment {payment.id}: {change['from']} -> {change['to']}",
            previous_data={"status": change["from"]},
            new_data={"status": change["to"], "reason": change.get("reason")},
            metadata=extra or None,
        )

    def verify(self, manual_payment_id: int, admin: Admin) -> ManualPayment:
        """Record the payment and enroll its submitter, then email them."""
        payment = self.get_manual_payment(manual_payment_id)
        if payment.status != PENDING:
            raise ConflictError(f"Cannot verify a manual payment in status {payment.status}")
        if not payment.user_id:
            raise ValidationFailed(
                "Manual payment has no user; the payer needs an account before verification"
            )

        user = self.db.query(User).filter(User.id == payment.user_id).first()
        course = self.db.query(Course).filter(Course.id == payment.course_id).first()
        if not user or not course:
            raise NotFoundError("User or course for this manual payment no longer exists")

        payments = PaymentService(self.db, self.settings)
        if payments.find_payment("manual", payment.transaction_id) is not None:
            raise ConflictError(
                f"Transaction {payment.transaction_id} is already recorded in the payment ledger"
            )

        try:
            batch = BatchService(self.db).select_next_available_batch(
                course.id, user.id, lock=True
            )
            ledger = payments.record_manual_payment(
                user,
                course,
                payment.amount,
                transaction_id=payment.transaction_id,
                payer_email=payment.payer_email,
                payer_name=payment.payer_name,
            )
            enrollment = EnrollmentService(self.db, self.settings).write_enrollment(
                user,
                course,
                batch,
                source="admin_manual",
                payment=ledger,
                enrolled_by=admin.id,
                notes=f"Verified manual payment {payment.transaction_id or payment.id}",
            )

            change = self._transition(payment, VERIFIED, admin)
            payment.enrollment_id = enrollment.id
            payment.enrollment_batch = batch.batch_number
            payment.payment_record_id = ledger.id
            payment.verified_by = admin.id
            payment.verified_at = utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error(f"Verification of manual payment {manual_payment_id} failed")
            raise

        self.db.refresh(enrollment)
        self.db.refresh(ledger)
        logger.info(
            f"Manual payment {payment.id} verified: enrollment {enrollment.id}, "
            f"payment record {ledger.id}"
        )

        result = self.email_service.send_enrollment_confirmation(
            enrollment_email_data(user, course, enrollment, batch, ledger)
        )
        if not result.success:
            logger.warning(
                f"Manual payment {payment.id} verified but email not sent: {result.error}"
            )
        payment.email_sent = result.success
        self.db.commit()
        self.db.refresh(payment)

        self._audit(
            admin,
            payment,
            change,
            enrollment_id=enrollment.id,
            payment_record_id=ledger.id,
            email_sent=result.success,
        )
        return payment

    def archive(self, manual_payment_id: int, admin: Admin) -> ManualPayment:
        payment = self.get_manual_payment(manual_payment_id)
        change = self._transition(payment, ARCHIVED, admin)
        payment.archived_by = admin.id
        payment.archived_at = utcnow()
        self.db.commit()
        self.db.refresh(payment)

        logger.info(f"Manual payment {payment.id} archived by admin {admin.id}")
        self._audit(admin, payment, change)
        return payment

    def reject(self, manual_payment_id: int, admin: Admin, reason: str) -> ManualPayment:
        payment = self.get_manual_payment(manual_payment_id)
        change = self._transition(payment, REJECTED, admin, reason=reason)
        payment.rejected_by = admin.id
        payment.rejected_at = utcnow()
        payment.rejection_reason = reason
        self.db.commit()
        self.db.refresh(payment)

        logger.info(f"Manual payment {payment.id} rejected by admin {admin.id}: {reason}")
        self._audit(admin, payment, change)
        return payment

    def reopen(
        self, manual_payment_id: int, admin: Admin, reason: Optional[str] = None
    ) -> ManualPayment:
        payment = self.get_manual_payment(manual_payment_id)
        change = self._transition(payment, PENDING, admin, reason=reason)
        self.db.commit()
        self.db.refresh(payment)

        logger.info(f"Manual payment {payment.id} reopened by admin {admin.id}")
        self._audit(admin, payment, change)
        return payment
