# app/services/audit.py
import logging
from typing import Any, List, Optional, Tuple

from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.admin import Admin
from app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    """Append-only trail of admin and payment actions. Writes are best-effort."""

    def __init__(self, db: Session):
        self.db = db

    def log_event(
        self,
        action: str,
        resource: str,
        resource_id: Optional[Any] = None,
        actor_id: Optional[Any] = None,
        actor_email: Optional[str] = None,
        actor_role: str = "student",
        description: Optional[str] = None,
        previous_data: Optional[Any] = None,
        new_data: Optional[Any] = None,
        metadata: Optional[dict] = None,
    ) -> Optional[AuditLog]:
        entry = AuditLog(
            action=action,
            resource=resource,
            resource_id=str(resource_id) if resource_id is not None else None,
            actor_id=str(actor_id) if actor_id is not None else None,
            actor_email=actor_email,
            actor_role=actor_role,
            description=description,
            previous_data=jsonable_encoder(previous_data),
            new_data=jsonable_encoder(new_data),
            extra=jsonable_encoder(metadata or {}),
        )
        try:
            self.db.add(entry)
            self.db.commit()
            self.db.refresh(entry)
            return entry
        except SQLAlchemyError as e:
            logger.error(f"Failed to log audit event {action}/{resource}: {e}")
            self.db.rollback()
            return None

    def log_admin_event(
        self,
        admin: Admin,
        action: str,
        resource: str,
        resource_id: Optional[Any] = None,
        **kwargs,
    ) -> Optional[AuditLog]:
        return self.log_event(
            action=action,
            resource=resource,
            resource_id=resource_id,
            actor_id=admin.id,
            actor_email=admin.email,
            actor_role="admin",
            **kwargs,
        )

    def list_logs(
        self,
        action: Optional[str] = None,
        resource: Optional[str] = None,
        actor_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[AuditLog], int]:
        query = self.db.query(AuditLog)
        if action:
            query = query.filter(AuditLog.action == action)
        if resource:
            query = query.filter(AuditLog.resource == resource)
        if actor_id:
            query = query.filter(AuditLog.actor_id == str(actor_id))

        total = query.count()
        logs = (
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return logs, total
