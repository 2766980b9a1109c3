# app/services/notification.py
import logging
from typing import Dict, List, Optional, Tuple

import httpx
from fastapi.encoders import jsonable_encoder
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.decorator import NotFoundError, PermissionDenied
from app.models.coupon import Coupon
from app.models.email_log import EmailLog
from app.models.enrollment import Enrollment
from app.models.user import User
from app.schemas.admin import EmailResult
from app.utils.dates import format_date, utcnow
from app.utils.email_templates import (
    render_coupon_email,
    render_enrollment_email,
    render_receipt,
)

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "Email service not configured"


class EmailService:
    """
    Transactional email through the EmailJS REST API.

    Sending never raises: every attempt ends in an ``EmailResult`` and an
    ``emails_sent`` row with status sent, failed or skipped.
    """

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.transport = transport

    # ==================== Transport ====================

    def _send(self, template_id: str, template_params: Dict) -> str:
        payload = {
            "service_id": self.settings.emailjs_service_id,
            "template_id": template_id,
            "user_id": self.settings.emailjs_public_key,
            "template_params": jsonable_encoder(template_params),
        }
        if self.settings.emailjs_private_key:
            payload["accessToken"] = self.settings.emailjs_private_key

        url = f"{self.settings.emailjs_api_url.rstrip('/')}/api/v1.0/email/send"
        with httpx.Client(
            transport=self.transport, timeout=self.settings.emailjs_timeout
        ) as client:
            response = client.post(url, json=payload)
            response.raise_for_status()
            return response.text

    def _deliver(
        self,
        email_type: str,
        template_id: str,
        rendered: Dict[str, str],
        template_params: Dict,
        log_fields: Dict,
    ) -> EmailResult:
        log_fields = {
            **log_fields,
            "email_type": email_type,
            "subject": rendered["subject"],
            "template_id": template_id,
            "raw_text_content": rendered["text"],
        }

        if not self.settings.emailjs_configured:
            logger.info(f"Skipping {email_type} email: {NOT_CONFIGURED}")
            log = self._record(status="skipped", error_message=NOT_CONFIGURED, **log_fields)
            return EmailResult(
                success=False,
                skipped=True,
                error=NOT_CONFIGURED,
                text_content=rendered["text"],
                log_id=log.id if log else None,
            )

        if not log_fields.get("recipient_email"):
            log = self._record(status="failed", error_message="No recipient email", **log_fields)
            return EmailResult(
                success=False,
                error="No recipient email",
                log_id=log.id if log else None,
            )

        try:
            message_id = self._send(template_id, template_params)
        except httpx.HTTPStatusError as e:
            error = f"EmailJS returned {e.response.status_code}: {e.response.text}"
            logger.error(f"Failed to send {email_type} email to {log_fields['recipient_email']}: {error}")
            log = self._record(status="failed", error_message=error, **log_fields)
            return EmailResult(success=False, error=error, log_id=log.id if log else None)
        except httpx.HTTPError as e:
            error = f"Email transport error: {e}"
            logger.error(f"Failed to send {email_type} email to {log_fields['recipient_email']}: {error}")
            log = self._record(status="failed", error_message=error, **log_fields)
            return EmailResult(success=False, error=error, log_id=log.id if log else None)

        logger.info(f"Sent {email_type} email to {log_fields['recipient_email']}")
        log = self._record(
            status="sent", provider_response={"text": message_id}, **log_fields
        )
        return EmailResult(
            success=True,
            message_id=message_id,
            text_content=rendered["text"],
            log_id=log.id if log else None,
        )

    def _record(self, **fields) -> Optional[EmailLog]:
        log = EmailLog(provider="emailjs", **fields)
        try:
            self.db.add(log)
            self.db.commit()
            self.db.refresh(log)
            return log
        except SQLAlchemyError as e:
            logger.error(f"Failed to record email log: {e}")
            self.db.rollback()
            return None

    # ==================== Emails ====================

    def send_enrollment_confirmation(self, data: Dict) -> EmailResult:
        """
        ``data`` carries user_id, user_email, user_name, course_id,
        course_title, amount, payment_id, order_id, enrollment_id,
        batch_number and optionally payer/funding details.
        """
        data = {"enrollment_date": format_date(utcnow()), **data}
        rendered = render_enrollment_email(data, self.settings)

        template_params = {
            "to_email": data.get("user_email"),
            "to_name": data.get("user_name") or "Student",
            "from_name": f"{self.settings.company_name} Team",
            "subject": rendered["subject"],
            "html_content": rendered["html"],
            "text_content": rendered["text"],
            "course_title": data.get("course_title"),
            "user_name": data.get("user_name"),
            "amount": str(data.get("amount") or "0.00"),
            "payment_id": data.get("payment_id") or "",
            "order_id": data.get("order_id") or "",
            "batch_number": data.get("batch_number"),
            "enrollment_date": data["enrollment_date"],
            "website_url": self.settings.website_url,
            "support_email": self.settings.support_email,
            "payment_method": data.get("payment_method") or "PayPal",
            "payer_name": data.get("payer_name") or "",
            "payer_email": data.get("payer_email") or "",
            "transaction_status": data.get("transaction_status") or "Completed",
            "funding_source": data.get("funding_source") or "",
        }

        return self._deliver(
            "enrollment_confirmation",
            self.settings.emailjs_template_id,
            rendered,
            template_params,
            {
                "user_id": data.get("user_id"),
                "recipient_email": data.get("user_email"),
                "recipient_name": data.get("user_name"),
                "course_id": data.get("course_id"),
                "course_title": data.get("course_title"),
                "payment_id": data.get("payment_id"),
                "order_id": data.get("order_id"),
                "amount": data.get("amount"),
                "enrollment_id": data.get("enrollment_id"),
            },
        )

    def send_coupon_email(self, data: Dict) -> EmailResult:
        rendered = render_coupon_email(data, self.settings)
        template_id = (
            self.settings.emailjs_coupon_template_id or self.settings.emailjs_template_id
        )

        template_params = {
            "to_email": data.get("recipient_email"),
            "to_name": data.get("recipient_name") or "Student",
            "from_name": self.settings.company_name,
            "reply_to": self.settings.support_email,
            "subject": rendered["subject"],
            "html_content": rendered["html"],
            "text_content": rendered["text"],
            "coupon_code": data["coupon_code"],
            "coupon_name": data.get("coupon_name") or "",
            "discount_type": data["discount_type"],
            "discount_value": str(data["discount_value"]),
            "course_id": data.get("course_id") or "",
            "course_title": data.get("course_title") or "",
            "admin_message": data.get("message") or "",
            "website_url": self.settings.website_url,
            "support_email": self.settings.support_email,
        }

        return self._deliver(
            "coupon_notification",
            template_id,
            rendered,
            template_params,
            {
                "user_id": data.get("user_id"),
                "recipient_email": data.get("recipient_email"),
                "recipient_name": data.get("recipient_name"),
                "course_id": data.get("course_id"),
                "course_title": data.get("course_title"),
            },
        )

    def send_coupon(
        self,
        coupon: Coupon,
        recipient_email: str,
        recipient_name: Optional[str] = None,
        user_id: Optional[str] = None,
        message: Optional[str] = None,
    ) -> EmailResult:
        return self.send_coupon_email(
            {
                "coupon_code": coupon.code,
                "coupon_name": coupon.name,
                "discount_type": coupon.discount_type,
                "discount_value": coupon.discount_value,
                "course_id": coupon.course_id,
                "course_title": coupon.course_title,
                "min_order_amount": coupon.min_order_amount,
                "valid_until": format_date(coupon.valid_until) if coupon.valid_until else None,
                "recipient_email": recipient_email,
                "recipient_name": recipient_name,
                "user_id": user_id or coupon.target_user_id,
                "message": message,
            }
        )

    # ==================== Receipts ====================

    def generate_receipt(self, enrollment_id: str, user: User, is_admin: bool = False) -> Dict:
        enrollment = self.db.query(Enrollment).filter(Enrollment.id == enrollment_id).first()
        if not enrollment:
            raise NotFoundError("Enrollment not found")
        if enrollment.user_id != user.id and not is_admin:
            raise PermissionDenied("You can only view your own receipts")

        owner = enrollment.user or user
        receipt = {
            "receipt_number": f"RCP-{enrollment.order_id or enrollment.id}",
            "issued_at": enrollment.enrolled_at or utcnow(),
            "company": {
                "name": self.settings.company_name,
                "email": self.settings.company_email,
                "phone": self.settings.company_phone,
                "website": self.settings.website_url,
            },
            "customer_name": owner.name,
            "customer_email": owner.email,
            "course_title": enrollment.course_title or enrollment.course_id,
            "batch_number": enrollment.batch_number,
            "amount_paid": enrollment.amount_paid,
            "payment_method": enrollment.payment_method,
            "payment_id": enrollment.payment_id,
            "order_id": enrollment.order_id,
        }
        receipt["html"] = render_receipt(receipt)
        return receipt

    # ==================== Tracking ====================

    def list_email_logs(
        self,
        user_id: Optional[str] = None,
        recipient_email: Optional[str] = None,
        course_id: Optional[str] = None,
        email_type: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[EmailLog], int]:
        query = self.db.query(EmailLog)
        if user_id:
            query = query.filter(EmailLog.user_id == user_id)
        if recipient_email:
            query = query.filter(EmailLog.recipient_email == recipient_email)
        if course_id:
            query = query.filter(EmailLog.course_id == course_id)
        if email_type:
            query = query.filter(EmailLog.email_type == email_type)
        if status:
            query = query.filter(EmailLog.status == status)

        total = query.count()
        logs = (
            query.order_by(EmailLog.sent_at.desc(), EmailLog.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return logs, total

    def get_email_stats(self) -> Dict:
        by_status = dict(
            self.db.query(EmailLog.status, func.count(EmailLog.id))
            .group_by(EmailLog.status)
            .all()
        )
        by_type = dict(
            self.db.query(EmailLog.email_type, func.count(EmailLog.id))
            .group_by(EmailLog.email_type)
            .all()
        )
        return {
            "total": sum(by_status.values()),
            "sent": by_status.get("sent", 0),
            "failed": by_status.get("failed", 0),
            "skipped": by_status.get("skipped", 0),
            "by_type": by_type,
        }
