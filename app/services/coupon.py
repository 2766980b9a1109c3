# app/services/coupon.py
import logging
import secrets
import string
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from fastapi.encoders import jsonable_encoder
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.decorator import ConflictError, NotFoundError, ValidationFailed, db_exception
from app.models.admin import Admin
from app.models.coupon import Coupon, CouponUsage
from app.models.course import Course
from app.schemas.coupon import CouponCreate, CouponValidation
from app.utils.dates import as_naive_utc, utcnow
from app.utils.money import Amount, to_money

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def calculate_discount(coupon: Coupon, order_amount: Amount) -> Tuple[Decimal, Decimal]:
    """Return ``(discount_amount, final_amount)`` for an order, in cents."""
    amount = to_money(order_amount)
    value = Decimal(str(coupon.discount_value))

    if coupon.discount_type == "percentage":
        discount = amount * value / Decimal(100)
        if coupon.max_discount_amount and discount > coupon.max_discount_amount:
            discount = Decimal(str(coupon.max_discount_amount))
    else:
        discount = min(value, amount)

    discount = to_money(discount)
    final = to_money(max(Decimal(0), amount - discount))
    return discount, final


class CouponService:
    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    # ==================== Lookup ====================

    def get_coupon(self, coupon_id: int) -> Coupon:
        coupon = self.db.query(Coupon).filter(Coupon.id == coupon_id).first()
        if not coupon:
            raise NotFoundError("Coupon not found")
        return coupon

    def get_coupon_by_code(self, code: str) -> Optional[Coupon]:
        return (
            self.db.query(Coupon)
            .filter(Coupon.code == code.strip().upper())
            .first()
        )

    def generate_code(self, prefix: str = "") -> str:
        while True:
            code = prefix.upper() + "".join(
                secrets.choice(CODE_ALPHABET) for _ in range(10)
            )
            if not self.get_coupon_by_code(code):
                return code

    # ==================== Admin ====================

    @db_exception
    def create_coupon(self, coupon_in: CouponCreate, admin: Optional[Admin] = None) -> Coupon:
        code = (coupon_in.code or "").strip().upper() or self.generate_code(
            coupon_in.prefix or ""
        )
        if self.get_coupon_by_code(code):
            raise ConflictError("Coupon code already exists")

        course_title = None
        if coupon_in.course_id:
            course = self.db.query(Course).filter(Course.id == coupon_in.course_id).first()
            if not course:
                raise NotFoundError(f"Course not found: {coupon_in.course_id}")
            course_title = course.title

        value = coupon_in.discount_value
        if coupon_in.discount_type == "percentage" and (value < 1 or value > 100):
            raise ValidationFailed("Percentage discount must be between 1 and 100")
        if coupon_in.discount_type == "fixed" and value <= 0:
            raise ValidationFailed("Fixed discount amount must be greater than 0")

        coupon = Coupon(
            code=code,
            name=coupon_in.name or f"Coupon {code}",
            description=coupon_in.description or "",
            discount_type=coupon_in.discount_type,
            discount_value=value,
            max_discount_amount=coupon_in.max_discount_amount,
            min_order_amount=coupon_in.min_order_amount,
            target_type=coupon_in.target_type,
            target_user_id=coupon_in.target_user_id,
            target_user_email=coupon_in.target_user_email,
            course_id=coupon_in.course_id,
            course_title=course_title,
            usage_limit=coupon_in.usage_limit,
            usage_limit_per_user=coupon_in.usage_limit_per_user or 1,
            usage_count=0,
            usage_history=[],
            valid_from=as_naive_utc(coupon_in.valid_from) or utcnow(),
            valid_until=as_naive_utc(coupon_in.valid_until),
            status="active",
            created_by=admin.id if admin else None,
        )
        self.db.add(coupon)
        self.db.commit()
        self.db.refresh(coupon)

        logger.info(f"Coupon created: {coupon.code} (id={coupon.id})")
        return coupon

    def list_coupons(
        self,
        status: Optional[str] = None,
        target_type: Optional[str] = None,
        course_id: Optional[str] = None,
    ) -> List[Coupon]:
        query = self.db.query(Coupon)
        if status:
            query = query.filter(Coupon.status == status)
        if target_type:
            query = query.filter(Coupon.target_type == target_type)
        if course_id:
            query = query.filter(Coupon.course_id == course_id)
        return query.order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()

    def update_coupon_status(
        self, coupon_id: int, status: str, admin: Optional[Admin] = None
    ) -> Coupon:
        coupon = self.get_coupon(coupon_id)
        coupon.status = status
        coupon.last_modified_by = admin.id if admin else None
        self.db.commit()
        self.db.refresh(coupon)
        logger.info(f"Coupon {coupon.code} status set to {status}")
        return coupon

    def delete_coupon(self, coupon_id: int, admin: Optional[Admin] = None) -> Dict:
        """Used coupons are deactivated so their history survives."""
        coupon = self.get_coupon(coupon_id)

        if coupon.usage_count > 0:
            coupon.status = "inactive"
            coupon.deleted_at = utcnow()
            coupon.deleted_by = admin.id if admin else None
            self.db.commit()
            logger.info(f"Coupon {coupon.code} soft-deleted ({coupon.usage_count} uses)")
            return {
                "deleted": False,
                "message": "Coupon has been used and was deactivated instead of deleted",
            }

        code = coupon.code
        self.db.delete(coupon)
        self.db.commit()
        logger.info(f"Coupon {code} deleted")
        return {"deleted": True, "message": "Coupon deleted"}

    def get_coupon_usage_stats(self, coupon_id: Optional[int] = None) -> Dict:
        query = self.db.query(CouponUsage)
        if coupon_id is not None:
            self.get_coupon(coupon_id)
            query = query.filter(CouponUsage.coupon_id == coupon_id)
        records = query.order_by(CouponUsage.used_at.desc()).all()

        total_discount = sum((Decimal(str(r.discount_amount)) for r in records), Decimal(0))
        total_orders = sum((Decimal(str(r.order_amount)) for r in records), Decimal(0))
        average = total_discount / len(records) if records else Decimal(0)

        return {
            "total_usage": len(records),
            "total_discount": to_money(total_discount),
            "total_orders": to_money(total_orders),
            "average_discount": to_money(average),
            "usage_records": records,
        }

    # ==================== Validation ====================

    def _reject(self, error: str) -> CouponValidation:
        return CouponValidation(valid=False, error=error)

    def validate_coupon(
        self, code: str, user_id: str, course_id: str, order_amount: Amount
    ) -> CouponValidation:
        """
        Check a code against an order. Checks run in a fixed order and the
        first failure is returned; nothing here raises.
        """
        if not self.settings.enable_coupons:
            return self._reject("Coupons are disabled")

        coupon = self.get_coupon_by_code(code or "")
        if not coupon:
            return self._reject("Invalid coupon code")

        if coupon.status != "active":
            return self._reject("Coupon is not active")

        now = utcnow()
        valid_from = as_naive_utc(coupon.valid_from)
        valid_until = as_naive_utc(coupon.valid_until)
        if valid_from and valid_from > now:
            return self._reject("Coupon is not yet valid")
        if valid_until and valid_until < now:
            return self._reject("Coupon has expired")

        if coupon.target_type == "user_specific" and coupon.target_user_id != user_id:
            return self._reject("This coupon is not valid for your account")
        if coupon.target_type == "course_specific" and coupon.course_id != course_id:
            return self._reject("This coupon is not valid for this course")

        amount = to_money(order_amount)
        if coupon.min_order_amount and amount < coupon.min_order_amount:
            return self._reject(
                f"Minimum order amount of ${to_money(coupon.min_order_amount)} required"
            )

        limit_error = self._limit_error(coupon, user_id)
        if limit_error:
            return self._reject(limit_error)

        discount, final = calculate_discount(coupon, amount)
        return CouponValidation(
            valid=True,
            coupon_id=coupon.id,
            coupon_code=coupon.code,
            discount_type=coupon.discount_type,
            discount_value=coupon.discount_value,
            original_amount=amount,
            discount_amount=discount,
            final_amount=final,
            savings=discount,
        )

    def _limit_error(self, coupon: Coupon, user_id: str) -> Optional[str]:
        if coupon.usage_limit and coupon.usage_count >= coupon.usage_limit:
            return "Coupon usage limit exceeded"
        if coupon.usage_limit_per_user and coupon.uses_by(user_id) >= coupon.usage_limit_per_user:
            return "You have already used this coupon the maximum number of times"
        return None

    # ==================== Redemption ====================

    def record_coupon_usage(
        self,
        coupon_id: int,
        user_id: str,
        course_id: str,
        order_amount: Amount,
        discount_amount: Amount,
        final_amount: Amount,
        payment_id: Optional[str] = None,
        order_id: Optional[str] = None,
        enforce_limits: bool = True,
    ) -> CouponUsage:
        """
        Stage a redemption in the caller's transaction. The coupon row stays
        locked until that transaction ends; nothing is committed here.
        """
        coupon = (
            self.db.query(Coupon)
            .filter(Coupon.id == coupon_id)
            .with_for_update()
            .first()
        )
        if not coupon:
            raise NotFoundError("Coupon not found")

        limit_error = self._limit_error(coupon, user_id)
        if limit_error:
            if enforce_limits:
                raise ValidationFailed(limit_error)
            logger.warning(
                f"Coupon {coupon.code} over limit for user {user_id} after payment "
                f"{payment_id}: {limit_error}; recording anyway"
            )

        used_at = utcnow()
        record = {
            "user_id": user_id,
            "course_id": course_id,
            "used_at": used_at,
            "order_amount": to_money(order_amount),
            "discount_amount": to_money(discount_amount),
            "final_amount": to_money(final_amount),
            "payment_id": payment_id,
            "order_id": order_id,
        }

        # JSON columns only notice reassignment
        coupon.usage_history = list(coupon.usage_history or []) + [jsonable_encoder(record)]
        coupon.usage_count = (coupon.usage_count or 0) + 1

        usage = CouponUsage(coupon_id=coupon.id, coupon_code=coupon.code, **record)
        self.db.add(usage)
        self.db.flush()

        logger.info(f"Coupon {coupon.code} usage staged for user {user_id} ({course_id})")
        return usage

    # ==================== Learner ====================

    def get_user_available_coupons(
        self, user_id: str, course_id: Optional[str] = None
    ) -> List[Coupon]:
        if not self.settings.enable_coupons:
            return []

        targets = [
            Coupon.target_type == "general",
            (Coupon.target_type == "user_specific") & (Coupon.target_user_id == user_id),
        ]
        if course_id:
            targets.append(
                (Coupon.target_type == "course_specific") & (Coupon.course_id == course_id)
            )

        candidates = (
            self.db.query(Coupon)
            .filter(Coupon.status == "active", or_(*targets))
            .order_by(Coupon.created_at.desc(), Coupon.id.desc())
            .all()
        )

        now = utcnow()
        available = []
        for coupon in candidates:
            valid_from = as_naive_utc(coupon.valid_from)
            valid_until = as_naive_utc(coupon.valid_until)
            if valid_from and valid_from > now:
                continue
            if valid_until and valid_until < now:
                continue
            if self._limit_error(coupon, user_id):
                continue
            available.append(coupon)
        return available
