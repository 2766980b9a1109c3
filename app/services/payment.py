# app/services/payment.py
import logging
import secrets
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, exists
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.decorator import NotFoundError
from app.models.course import Course
from app.models.enrollment import Enrollment
from app.models.payment import Payment
from app.models.user import User
from app.schemas.payment import PaymentConfirmation
from app.utils.dates import as_naive_utc, utcnow
from app.utils.money import to_money

logger = logging.getLogger(__name__)


class PaymentService:
    """
    Payment ledger. Rows are written once by checkout or manual verification;
    only the status column changes afterwards.

    ``record_*`` methods flush but never commit, so the payment lands in the
    same transaction as the enrollment it pays for.
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    def find_payment(self, payment_method: str, payment_id: Optional[str]) -> Optional[Payment]:
        if not payment_id:
            return None
        return (
            self.db.query(Payment)
            .filter(
                Payment.payment_method == payment_method,
                Payment.payment_id == payment_id,
            )
            .first()
        )

    def record_payment(
        self,
        confirmation: PaymentConfirmation,
        user: User,
        course: Course,
        pricing: Dict,
        payment_method: str = "paypal",
    ) -> Payment:
        payment = Payment(
            payment_id=confirmation.payment_id,
            order_id=confirmation.order_id,
            payer_id=confirmation.payer_id,
            course_id=course.id,
            course_title=course.title,
            amount=to_money(confirmation.amount),
            original_amount=to_money(pricing["original_amount"]),
            discount_amount=to_money(pricing.get("discount_amount") or 0),
            coupon_code=pricing.get("coupon_code"),
            currency=confirmation.currency or self.settings.payment_currency,
            user_id=user.id,
            user_email=user.email,
            user_name=user.name,
            payer_email=confirmation.payer_email,
            payer_name=confirmation.payer_name,
            status="completed",
            transaction_status=confirmation.transaction_status,
            payment_method=payment_method,
            funding_source=confirmation.funding_source,
            payment_date=as_naive_utc(confirmation.timestamp) or utcnow(),
        )
        self.db.add(payment)
        self.db.flush()
        logger.info(
            f"Payment staged: {payment.payment_id} for {course.id} "
            f"by {user.id} ({payment.amount} {payment.currency})"
        )
        return payment

    def record_free_payment(self, user: User, course: Course, pricing: Dict) -> Payment:
        """$0 ledger entry for a coupon that covers the whole price."""
        stamp = utcnow().strftime("%Y%m%d%H%M%S")
        suffix = secrets.token_hex(4).upper()

        payment = Payment(
            payment_id=f"FREE-{stamp}-{suffix}",
            order_id=f"FREE-ORDER-{stamp}-{suffix}",
            course_id=course.id,
            course_title=course.title,
            amount=Decimal("0.00"),
            original_amount=to_money(pricing["original_amount"]),
            discount_amount=to_money(pricing.get("discount_amount") or 0),
            coupon_code=pricing.get("coupon_code"),
            currency=self.settings.payment_currency,
            user_id=user.id,
            user_email=user.email,
            user_name=user.name,
            payer_email=user.email,
            payer_name=user.name,
            status="completed",
            transaction_status="COMPLETED",
            payment_method="coupon",
            funding_source="coupon",
            payment_date=utcnow(),
        )
        self.db.add(payment)
        self.db.flush()
        logger.info(f"Free payment staged: {payment.payment_id} for {course.id}")
        return payment

    def record_manual_payment(
        self,
        user: User,
        course: Course,
        amount,
        transaction_id: Optional[str] = None,
        payer_email: Optional[str] = None,
        payer_name: Optional[str] = None,
    ) -> Payment:
        stamp = utcnow().strftime("%Y%m%d%H%M%S")
        payment = Payment(
            payment_id=transaction_id or f"MANUAL-{stamp}-{secrets.token_hex(4).upper()}",
            order_id=f"MANUAL-ORDER-{stamp}",
            course_id=course.id,
            course_title=course.title,
            amount=to_money(amount),
            original_amount=to_money(course.price),
            discount_amount=Decimal("0.00"),
            currency=self.settings.payment_currency,
            user_id=user.id,
            user_email=user.email,
            user_name=user.name,
            payer_email=payer_email or user.email,
            payer_name=payer_name or user.name,
            status="completed",
            transaction_status="COMPLETED",
            payment_method="manual",
            funding_source="manual",
            payment_date=utcnow(),
        )
        self.db.add(payment)
        self.db.flush()
        logger.info(f"Manual payment staged: {payment.payment_id} for {course.id}")
        return payment

    def get_payment(self, payment_record_id: int) -> Payment:
        payment = self.db.query(Payment).filter(Payment.id == payment_record_id).first()
        if not payment:
            raise NotFoundError("Payment not found")
        return payment

    def get_user_payments(self, user_id: str) -> List[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.user_id == user_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .all()
        )

    def list_payments(
        self,
        status: Optional[str] = None,
        course_id: Optional[str] = None,
        user_id: Optional[str] = None,
        payment_method: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Payment], int]:
        query = self.db.query(Payment)
        if status:
            query = query.filter(Payment.status == status)
        if course_id:
            query = query.filter(Payment.course_id == course_id)
        if user_id:
            query = query.filter(Payment.user_id == user_id)
        if payment_method:
            query = query.filter(Payment.payment_method == payment_method)

        total = query.count()
        payments = (
            query.order_by(Payment.created_at.desc(), Payment.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return payments, total

    def update_payment_status(self, payment_record_id: int, status: str) -> Payment:
        payment = self.get_payment(payment_record_id)
        previous = payment.status
        payment.status = status
        self.db.commit()
        self.db.refresh(payment)
        logger.info(f"Payment {payment.id} status {previous} -> {status}")
        return payment

    def find_orphaned_payments(self) -> List[Payment]:
        """Completed payments whose buyer has no enrollment in the course."""
        has_enrollment = exists().where(
            and_(
                Enrollment.user_id == Payment.user_id,
                Enrollment.course_id == Payment.course_id,
            )
        )
        return (
            self.db.query(Payment)
            .filter(Payment.status == "completed", ~has_enrollment)
            .order_by(Payment.created_at.desc())
            .all()
        )
