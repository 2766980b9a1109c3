# app/services/batch.py
import logging
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.decorator import ConflictError, NotFoundError, PermissionDenied
from app.models.batch import CourseBatch
from app.models.course import Course
from app.models.enrollment import Enrollment

logger = logging.getLogger(__name__)


class BatchService:
    """
    Batch capacity and assignment.

    Capacity counts only enrollments in status ``enrolled``. A user's own
    enrollment in a batch never counts against them, so retrying a purchase
    lands in the same batch instead of being turned away.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_batch_enrollment_count(
        self, course_id: str, batch_number: int, exclude_user_id: Optional[str] = None
    ) -> int:
        query = self.db.query(func.count(Enrollment.id)).filter(
            Enrollment.course_id == course_id,
            Enrollment.batch_number == batch_number,
            Enrollment.status == "enrolled",
        )
        if exclude_user_id:
            query = query.filter(Enrollment.user_id != exclude_user_id)
        return query.scalar() or 0

    def _counts_by_batch(
        self, course_id: str, exclude_user_id: Optional[str] = None
    ) -> Dict[int, int]:
        query = self.db.query(Enrollment.batch_number, func.count(Enrollment.id)).filter(
            Enrollment.course_id == course_id,
            Enrollment.status == "enrolled",
        )
        if exclude_user_id:
            query = query.filter(Enrollment.user_id != exclude_user_id)
        return dict(query.group_by(Enrollment.batch_number).all())

    def get_batches(self, course_id: str, lock: bool = False) -> List[CourseBatch]:
        query = (
            self.db.query(CourseBatch)
            .filter(CourseBatch.course_id == course_id)
            .order_by(CourseBatch.batch_number.asc())
        )
        if lock:
            # Held until the surrounding transaction commits or rolls back
            query = query.with_for_update()
        return query.all()

    def find_next_available_batch(
        self, course_id: str, user_id: Optional[str] = None, lock: bool = False
    ) -> Optional[CourseBatch]:
        """Earliest open batch with a free seat, or None."""
        batches = self.get_batches(course_id, lock=lock)
        counts = self._counts_by_batch(course_id, exclude_user_id=user_id)

        for batch in batches:
            if not batch.is_open:
                continue
            if counts.get(batch.batch_number, 0) < batch.max_capacity:
                return batch
        return None

    def select_next_available_batch(
        self, course_id: str, user_id: Optional[str] = None, lock: bool = False
    ) -> CourseBatch:
        batch = self.find_next_available_batch(course_id, user_id=user_id, lock=lock)
        if batch is None:
            logger.warning(f"No available batches for course {course_id}")
            raise ConflictError("No available batches")
        logger.info(f"Selected batch {batch.batch_number} for course {course_id}")
        return batch

    def is_batch_available(self, course_id: str, batch_number: int) -> Dict:
        batch = (
            self.db.query(CourseBatch)
            .filter(
                CourseBatch.course_id == course_id,
                CourseBatch.batch_number == batch_number,
            )
            .first()
        )
        if not batch:
            return {
                "available": False,
                "reason": "Batch not found",
                "enrollment_count": 0,
                "batch": None,
            }

        count = self.get_batch_enrollment_count(course_id, batch_number)
        if batch.status == "completed":
            reason, available = "Batch is completed", False
        elif count >= batch.max_capacity:
            reason, available = "Batch is full", False
        else:
            reason, available = "Available", True

        return {
            "available": available,
            "reason": reason,
            "enrollment_count": count,
            "batch": batch,
        }

    def get_course_batch_stats(self, course_id: str) -> List[Dict]:
        if not self.db.query(Course.id).filter(Course.id == course_id).first():
            raise NotFoundError(f"Course not found: {course_id}")

        counts = self._counts_by_batch(course_id)
        stats = []
        for batch in self.get_batches(course_id):
            enrolled = counts.get(batch.batch_number, 0)
            stats.append(
                {
                    "batch": batch,
                    "enrollment_count": enrolled,
                    "available_seats": max(0, batch.max_capacity - enrolled),
                    "is_full": enrolled >= batch.max_capacity,
                }
            )
        return stats

    def get_batch_enrollments(self, course_id: str, batch_number: int) -> List[Enrollment]:
        return (
            self.db.query(Enrollment)
            .filter(
                Enrollment.course_id == course_id,
                Enrollment.batch_number == batch_number,
            )
            .order_by(Enrollment.enrolled_at.asc())
            .all()
        )

    def get_batch_class_links(
        self, user_id: str, course_id: str, batch_number: int
    ) -> CourseBatch:
        """Class links are only handed to students enrolled in that batch."""
        enrolled = (
            self.db.query(Enrollment.id)
            .filter(
                Enrollment.user_id == user_id,
                Enrollment.course_id == course_id,
                Enrollment.batch_number == batch_number,
            )
            .first()
        )
        if not enrolled:
            raise PermissionDenied("You are not enrolled in this batch")

        batch = (
            self.db.query(CourseBatch)
            .filter(
                CourseBatch.course_id == course_id,
                CourseBatch.batch_number == batch_number,
            )
            .first()
        )
        if not batch:
            raise NotFoundError(
                f"Batch {batch_number} not found for course {course_id}"
            )
        return batch
