# app/routers/courses.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.decorator import NotFoundError
from app.core.dependencies import get_current_user
from app.models.user import User
from app.schemas.course import (
    BatchResponse,
    BatchWithCount,
    ClassLinksResponse,
    CourseListResponse,
    CourseResponse,
    CourseStatsResponse,
    NextBatchResponse,
)
from app.services.batch import BatchService
from app.services.course import CourseService

router = APIRouter(
    prefix="/courses",
    tags=["Courses"],
    responses={404: {"description": "Not found"}},
)


def batch_with_count(batch, enrollment_count: int) -> BatchWithCount:
    return BatchWithCount(
        **BatchResponse.model_validate(batch).model_dump(),
        enrollment_count=enrollment_count,
    )


@router.get("/", response_model=CourseListResponse)
def list_courses(
    category: Optional[str] = Query(None, description="Filter by category"),
    db: Session = Depends(get_db),
):
    """Published courses with their batches, oldest first."""
    courses = CourseService(db).get_courses(category=category)
    return {"courses": courses, "total": len(courses)}


@router.get("/categories", response_model=List[str])
def list_categories(db: Session = Depends(get_db)):
    return CourseService(db).get_categories()


@router.get("/stats", response_model=List[CourseStatsResponse])
def get_multiple_course_stats(
    ids: str = Query(..., description="Comma-separated course ids"),
    db: Session = Depends(get_db),
):
    course_ids = [course_id.strip() for course_id in ids.split(",") if course_id.strip()]
    return CourseService(db).get_multiple_course_stats(course_ids)


@router.get("/{course_id}", response_model=CourseResponse)
def get_course(course_id: str, db: Session = Depends(get_db)):
    course = CourseService(db).get_course_or_404(course_id)
    if not course.is_published:
        raise NotFoundError(f"Course not found: {course_id}")
    return course


@router.get("/{course_id}/stats", response_model=CourseStatsResponse)
def get_course_stats(course_id: str, db: Session = Depends(get_db)):
    """Enrollment count and rating summary shown on the course card."""
    return CourseService(db).get_course_stats(course_id)


@router.get("/{course_id}/batches", response_model=List[BatchWithCount])
def list_course_batches(course_id: str, db: Session = Depends(get_db)):
    stats = BatchService(db).get_course_batch_stats(course_id)
    return [batch_with_count(item["batch"], item["enrollment_count"]) for item in stats]


@router.get("/{course_id}/batches/next", response_model=NextBatchResponse)
def get_next_batch(course_id: str, db: Session = Depends(get_db)):
    """The batch a purchase made now would land in."""
    CourseService(db).get_course_or_404(course_id)
    service = BatchService(db)
    batch = service.find_next_available_batch(course_id)
    if batch is None:
        return {"batch": None, "reason": "No available batches"}

    count = service.get_batch_enrollment_count(course_id, batch.batch_number)
    return {"batch": batch_with_count(batch, count), "reason": None}


@router.get(
    "/{course_id}/batches/{batch_number}/links", response_model=ClassLinksResponse
)
def get_batch_links(
    course_id: str,
    batch_number: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Class links and schedule, for students enrolled in the batch only."""
    batch = BatchService(db).get_batch_class_links(current_user.id, course_id, batch_number)
    return {
        "course_id": course_id,
        "batch_number": batch.batch_number,
        "class_links": batch.class_links or {},
        "schedule": batch.schedule or [],
    }
