from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from app.core.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String(50), nullable=False, index=True)
    resource = Column(String(50), nullable=False, index=True)
    resource_id = Column(String(300), nullable=True)

    actor_id = Column(String(128), nullable=True, index=True)
    actor_email = Column(String(255), nullable=True)
    actor_role = Column(String(20), nullable=False, default="student")

    previous_data = Column(JSON, nullable=True)
    new_data = Column(JSON, nullable=True)
    description = Column(Text, nullable=True)
    extra = Column("metadata", JSON, nullable=True)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
