from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from app.core.database import Base

BATCH_STATUSES = ("upcoming", "active", "completed")
OPEN_BATCH_STATUSES = ("upcoming", "active")


class CourseBatch(Base):
    """
    A time-boxed cohort of a course with its own capacity and schedule.

    ``class_links`` holds videoconference/chat/materials references keyed by
    kind (zoom, discord, materials...). ``schedule`` is an ordered list of
    ``{date, time, duration, topic}`` sessions. Both default to empty.
    """

    __tablename__ = "course_batches"
    __table_args__ = (
        UniqueConstraint("course_id", "batch_number", name="uq_course_batch_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(
        String(100), ForeignKey("courses.id"), nullable=False, index=True
    )
    batch_number = Column(Integer, nullable=False)
    name = Column(String(150), nullable=True)
    description = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default="upcoming")
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    max_capacity = Column(Integer, nullable=False, default=30)

    class_links = Column(JSON, nullable=False, default=dict)
    schedule = Column(JSON, nullable=False, default=list)
    videos = Column(JSON, nullable=False, default=list)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_BATCH_STATUSES

    @property
    def display_name(self) -> str:
        return self.name or f"Batch {self.batch_number}"

    def __repr__(self):
        return (
            f"<CourseBatch(course_id='{self.course_id}', "
            f"batch_number={self.batch_number}, status='{self.status}')>"
        )
