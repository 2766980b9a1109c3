# app/services/course.py
import logging
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.decorator import ConflictError, NotFoundError
from app.models.batch import CourseBatch
from app.models.course import Course
from app.models.enrollment import Enrollment
from app.models.review import Review
from app.schemas.course import BatchCreate, BatchUpdate, CourseCreate, CourseUpdate

logger = logging.getLogger(__name__)


def _batch_values(data: dict) -> dict:
    # JSON columns take plain dicts, not pydantic models
    if data.get("schedule") is not None:
        data["schedule"] = [
            session if isinstance(session, dict) else session.model_dump()
            for session in data["schedule"]
        ]
    return data


class CourseService:
    """Course and batch catalog, plus the public course statistics."""

    def __init__(self, db: Session):
        self.db = db

    # ==================== Catalog ====================

    def get_courses(
        self, category: Optional[str] = None, include_unpublished: bool = False
    ) -> List[Course]:
        query = self.db.query(Course).options(selectinload(Course.batches))
        if category:
            query = query.filter(Course.category == category)
        if not include_unpublished:
            query = query.filter(Course.is_published == True)
        return query.order_by(Course.created_at.asc(), Course.id.asc()).all()

    def get_course(self, course_id: str) -> Optional[Course]:
        return (
            self.db.query(Course)
            .options(selectinload(Course.batches))
            .filter(Course.id == course_id)
            .first()
        )

    def get_course_or_404(self, course_id: str) -> Course:
        course = self.get_course(course_id)
        if not course:
            raise NotFoundError(f"Course not found: {course_id}")
        return course

    def get_categories(self) -> List[str]:
        rows = (
            self.db.query(Course.category)
            .filter(Course.category.isnot(None), Course.is_published == True)
            .distinct()
            .order_by(Course.category)
            .all()
        )
        return [row[0] for row in rows]

    def get_batch_by_number(
        self, course_id: str, batch_number: int
    ) -> Optional[CourseBatch]:
        return (
            self.db.query(CourseBatch)
            .filter(
                CourseBatch.course_id == course_id,
                CourseBatch.batch_number == batch_number,
            )
            .first()
        )

    def get_batch_or_404(self, course_id: str, batch_number: int) -> CourseBatch:
        batch = self.get_batch_by_number(course_id, batch_number)
        if not batch:
            raise NotFoundError(
                f"Batch {batch_number} not found for course {course_id}"
            )
        return batch

    # ==================== Admin management ====================

    def create_course(self, course_in: CourseCreate) -> Course:
        if self.db.query(Course).filter(Course.id == course_in.id).first():
            raise ConflictError(f"Course id already exists: {course_in.id}")

        numbers = [b.batch_number for b in course_in.batches]
        if len(numbers) != len(set(numbers)):
            raise ConflictError("Batch numbers must be unique within a course")

        data = course_in.model_dump(exclude={"batches"})
        course = Course(**data)
        for batch_in in course_in.batches:
            course.batches.append(CourseBatch(**_batch_values(batch_in.model_dump())))

        self.db.add(course)
        self.db.commit()
        self.db.refresh(course)
        logger.info(f"Course created: {course.id} with {len(numbers)} batches")
        return course

    def update_course(self, course_id: str, course_in: CourseUpdate) -> Course:
        course = self.get_course_or_404(course_id)
        for field, value in course_in.model_dump(exclude_unset=True).items():
            setattr(course, field, value)
        self.db.commit()
        self.db.refresh(course)
        return course

    def add_batch(self, course_id: str, batch_in: BatchCreate) -> CourseBatch:
        self.get_course_or_404(course_id)
        batch = CourseBatch(course_id=course_id, **_batch_values(batch_in.model_dump()))
        self.db.add(batch)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(
                f"Batch {batch_in.batch_number} already exists for course {course_id}"
            )
        self.db.refresh(batch)
        return batch

    def update_batch(
        self, course_id: str, batch_number: int, batch_in: BatchUpdate
    ) -> CourseBatch:
        batch = self.get_batch_or_404(course_id, batch_number)
        previous_status = batch.status
        for field, value in _batch_values(batch_in.model_dump(exclude_unset=True)).items():
            setattr(batch, field, value)
        self.db.commit()
        self.db.refresh(batch)

        if batch.status != previous_status:
            logger.info(
                f"Batch {course_id}#{batch_number} status {previous_status} -> {batch.status}"
            )
        return batch

    def delete_batch(self, course_id: str, batch_number: int) -> None:
        batch = self.get_batch_or_404(course_id, batch_number)
        enrolled = (
            self.db.query(func.count(Enrollment.id))
            .filter(
                Enrollment.course_id == course_id,
                Enrollment.batch_number == batch_number,
            )
            .scalar()
        )
        if enrolled:
            raise ConflictError(
                f"Batch {batch_number} has {enrolled} enrollments and cannot be deleted"
            )
        self.db.delete(batch)
        self.db.commit()

    # ==================== Statistics ====================

    def get_enrollment_count(self, course_id: str) -> int:
        return (
            self.db.query(func.count(Enrollment.id))
            .filter(Enrollment.course_id == course_id, Enrollment.status == "enrolled")
            .scalar()
            or 0
        )

    def get_rating_stats(self, course_id: str) -> Dict:
        count, average = (
            self.db.query(func.count(Review.id), func.avg(Review.rating))
            .filter(Review.course_id == course_id)
            .one()
        )
        average_rating = round(float(average), 1) if count else 0.0
        return {
            "average_rating": average_rating,
            "review_count": count,
            "has_reviews": count > 0,
        }

    def get_course_stats(self, course_id: str) -> Dict:
        self.get_course_or_404(course_id)
        return {
            "course_id": course_id,
            "enrollment_count": self.get_enrollment_count(course_id),
            **self.get_rating_stats(course_id),
        }

    def get_multiple_course_stats(self, course_ids: List[str]) -> List[Dict]:
        return [
            {
                "course_id": course_id,
                "enrollment_count": self.get_enrollment_count(course_id),
                **self.get_rating_stats(course_id),
            }
            for course_id in course_ids
        ]
