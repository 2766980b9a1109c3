# app/services/checkout.py
import logging
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.decorator import (
    ConflictError,
    FeatureDisabled,
    NotFoundError,
    ValidationFailed,
)
from app.models.course import Course
from app.models.enrollment import Enrollment
from app.models.payment import Payment
from app.models.user import User
from app.schemas.payment import PaymentConfirmation
from app.services.audit import AuditService
from app.services.batch import BatchService
from app.services.coupon import CouponService
from app.services.enrollment import EnrollmentService, enrollment_email_data
from app.services.notification import EmailService
from app.services.payment import PaymentService
from app.utils.money import to_money

logger = logging.getLogger(__name__)


class CheckoutService:
    """
    Turns a captured payment (or a fully discounted order) into an enrollment.

    Payment, enrollment and coupon usage are written in a single transaction
    with the course's batch rows locked, so capacity is checked against what
    is actually committed. Email and audit happen after the commit and can
    only add a warning to the result.
    """

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        email_service: Optional[EmailService] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.email_service = email_service or EmailService(db, self.settings)
        self.coupons = CouponService(db, self.settings)
        self.batches = BatchService(db)
        self.payments = PaymentService(db, self.settings)
        self.enrollments = EnrollmentService(db, self.settings)

    def _get_course(self, course_id: str) -> Course:
        course = self.db.query(Course).filter(Course.id == course_id).first()
        if not course or not course.is_published:
            raise NotFoundError(f"Course not found: {course_id}")
        if course.coming_soon:
            raise ValidationFailed("This course is not open for enrollment yet")
        return course

    def price_order(
        self, user: User, course: Course, coupon_code: Optional[str] = None
    ) -> Dict:
        original = to_money(course.price)
        pricing = {
            "original_amount": original,
            "discount_amount": Decimal("0.00"),
            "final_amount": original,
            "coupon_code": None,
            "coupon_id": None,
        }
        if not coupon_code:
            return pricing

        validation = self.coupons.validate_coupon(coupon_code, user.id, course.id, original)
        if not validation.valid:
            logger.info(f"Coupon {coupon_code} rejected for {user.id}: {validation.error}")
            raise ValidationFailed(validation.error)

        pricing.update(
            discount_amount=validation.discount_amount,
            final_amount=validation.final_amount,
            coupon_code=validation.coupon_code,
            coupon_id=validation.coupon_id,
        )
        return pricing

    def checkout(
        self,
        user: User,
        course_id: str,
        confirmation: PaymentConfirmation,
        coupon_code: Optional[str] = None,
    ) -> Dict:
        if not self.settings.paypal_enabled:
            raise FeatureDisabled("PayPal checkout is not configured")

        course = self._get_course(course_id)
        existing = self.payments.find_payment("paypal", confirmation.payment_id)
        if existing is not None:
            return self._replay(user, course, existing)

        pricing = self.price_order(user, course, coupon_code)

        if (confirmation.transaction_status or "").upper() != "COMPLETED":
            raise ValidationFailed(
                f"Payment is not completed (status: {confirmation.transaction_status})"
            )
        if to_money(confirmation.amount) < pricing["final_amount"]:
            raise ValidationFailed(
                f"Captured amount {to_money(confirmation.amount)} is below the "
                f"order total {pricing['final_amount']}"
            )

        logger.info(
            f"Checkout for {user.id} on {course.id}: order {confirmation.order_id}, "
            f"total {pricing['final_amount']}"
        )

        try:
            batch = self.batches.select_next_available_batch(course.id, user.id, lock=True)
            payment = self.payments.record_payment(confirmation, user, course, pricing)
            enrollment = self.enrollments.write_enrollment(
                user,
                course,
                batch,
                source="web_purchase",
                payment=payment,
                coupon_code=pricing["coupon_code"],
            )
            if pricing["coupon_id"]:
                # Money already moved; an over-limit race is recorded, not refused
                self.coupons.record_coupon_usage(
                    pricing["coupon_id"],
                    user.id,
                    course.id,
                    order_amount=pricing["original_amount"],
                    discount_amount=pricing["discount_amount"],
                    final_amount=payment.amount,
                    payment_id=payment.payment_id,
                    order_id=payment.order_id,
                    enforce_limits=False,
                )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            # A concurrent request committed the same capture first
            existing = self.payments.find_payment("paypal", confirmation.payment_id)
            if existing is None:
                raise
            return self._replay(user, course, existing)
        except Exception:
            self.db.rollback()
            logger.error(
                f"Checkout failed for {user.id} on {course.id} after payment "
                f"{confirmation.payment_id}; nothing was recorded"
            )
            raise

        self.db.refresh(payment)
        self.db.refresh(enrollment)
        logger.info(f"Enrollment {enrollment.id} committed with payment record {payment.id}")

        return self._finish(user, course, batch, payment, enrollment, pricing, "purchase")

    def enroll_free(self, user: User, course_id: str, coupon_code: str) -> Dict:
        if not self.settings.enable_coupons:
            raise FeatureDisabled("Coupons are disabled")

        course = self._get_course(course_id)
        pricing = self.price_order(user, course, coupon_code)
        if pricing["final_amount"] > 0:
            raise ValidationFailed(
                f"Coupon does not cover the full price (remaining {pricing['final_amount']})"
            )

        try:
            batch = self.batches.select_next_available_batch(course.id, user.id, lock=True)
            payment = self.payments.record_free_payment(user, course, pricing)
            enrollment = self.enrollments.write_enrollment(
                user,
                course,
                batch,
                source="free_coupon",
                payment=payment,
                coupon_code=pricing["coupon_code"],
            )
            self.coupons.record_coupon_usage(
                pricing["coupon_id"],
                user.id,
                course.id,
                order_amount=pricing["original_amount"],
                discount_amount=pricing["discount_amount"],
                final_amount=Decimal("0.00"),
                payment_id=payment.payment_id,
                order_id=payment.order_id,
                enforce_limits=True,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error(f"Free enrollment failed for {user.id} on {course.id}")
            raise

        self.db.refresh(payment)
        self.db.refresh(enrollment)
        logger.info(f"Free enrollment {enrollment.id} committed ({payment.payment_id})")

        return self._finish(user, course, batch, payment, enrollment, pricing, "free_enrollment")

    def _replay(self, user: User, course: Course, payment: Payment) -> Dict:
        """Result of an earlier checkout for the same capture; writes nothing."""
        if payment.user_id != user.id or payment.course_id != course.id:
            raise ConflictError("This payment has already been used for another enrollment")

        enrollment = (
            self.db.query(Enrollment)
            .filter(
                Enrollment.user_id == user.id,
                Enrollment.course_id == course.id,
            )
            .order_by(Enrollment.batch_number.desc())
            .first()
        )
        if enrollment is None:
            raise ConflictError(
                "This payment was already recorded but its enrollment no longer exists"
            )

        logger.info(
            f"Payment {payment.payment_id} already processed; "
            f"returning enrollment {enrollment.id}"
        )
        return {
            "success": True,
            "enrollment_id": enrollment.id,
            "course_id": course.id,
            "batch_number": enrollment.batch_number,
            "payment_record_id": payment.id,
            "amount_paid": payment.amount,
            "original_amount": payment.original_amount,
            "discount_amount": payment.discount_amount,
            "coupon_code": payment.coupon_code,
            "email_sent": False,
            "warning": "This payment was already processed",
        }

    def _finish(self, user, course, batch, payment, enrollment, pricing, action) -> Dict:
        result = self.email_service.send_enrollment_confirmation(
            enrollment_email_data(user, course, enrollment, batch, payment)
        )
        warning = None
        if not result.success:
            warning = (
                "Enrollment completed but the confirmation email was not sent: "
                f"{result.error}"
            )
            logger.warning(f"{warning} (enrollment {enrollment.id})")

        AuditService(self.db).log_event(
            action=action,
            resource="enrollment",
            resource_id=enrollment.id,
            actor_id=user.id,
            actor_email=user.email,
            description=f"{user.id} enrolled in {course.id} batch {batch.batch_number}",
            new_data={
                "payment_record_id": payment.id,
                "payment_id": payment.payment_id,
                "amount": payment.amount,
                "coupon_code": pricing["coupon_code"],
            },
            metadata={"email_sent": result.success, "email_skipped": result.skipped},
        )

        return {
            "success": True,
            "enrollment_id": enrollment.id,
            "course_id": course.id,
            "batch_number": batch.batch_number,
            "payment_record_id": payment.id,
            "amount_paid": payment.amount,
            "original_amount": pricing["original_amount"],
            "discount_amount": pricing["discount_amount"],
            "coupon_code": pricing["coupon_code"],
            "email_sent": result.success,
            "warning": warning,
        }
