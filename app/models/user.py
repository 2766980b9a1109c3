from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from app.core.database import Base


class User(Base):
    """
    Learner profile mirrored from the identity provider.
    The primary key is the provider's user id (``sub`` claim).
    """

    __tablename__ = "users"

    id = Column(String(128), primary_key=True, index=True)
    email = Column(String(255), index=True, nullable=True)
    display_name = Column(String(150), nullable=True)
    photo_url = Column(String(500), nullable=True)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    last_seen = Column(DateTime(timezone=True), nullable=True)

    @property
    def name(self) -> str:
        if self.display_name:
            return self.display_name
        if self.email:
            return self.email.split("@")[0]
        return "Student"

    def __repr__(self):
        return f"<User(id='{self.id}', email='{self.email}')>"
