from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from app.core.database import Base


def make_review_id(course_id: str, user_id: str) -> str:
    return f"{course_id}_{user_id}"


class Review(Base):
    """One review per user per course, keyed by ``{course}_{user}``."""

    __tablename__ = "course_reviews"

    id = Column(String(300), primary_key=True, index=True)
    user_id = Column(String(128), ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(
        String(100), ForeignKey("courses.id"), nullable=False, index=True
    )
    course_title = Column(String(200), nullable=True)
    user_name = Column(String(150), nullable=True)
    user_email = Column(String(255), nullable=True)
    user_photo_url = Column(String(500), nullable=True)

    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False)
    # True when the author was enrolled at submission time
    verified = Column(Boolean, nullable=False, default=False)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
