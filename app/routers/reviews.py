# app/routers/reviews.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.dependencies import get_current_user
from app.models.user import User
from app.schemas.common import MessageResponse
from app.schemas.review import ReviewCreate, ReviewListResponse, ReviewResponse
from app.services.review import ReviewService

router = APIRouter(
    prefix="/reviews",
    tags=["Reviews"],
    responses={404: {"description": "Not found"}},
)


@router.put("/", response_model=ReviewResponse)
def add_or_update_review(
    review_in: ReviewCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create the caller's review of a course, or replace it if one exists."""
    return ReviewService(db).add_or_update_review(current_user, review_in)


@router.get("/recent", response_model=ReviewListResponse)
def get_recent_reviews(
    limit: int = Query(6, ge=1, le=50),
    db: Session = Depends(get_db),
):
    return {"reviews": ReviewService(db).get_recent_reviews(limit)}


@router.get("/course/{course_id}", response_model=ReviewListResponse)
def get_course_reviews(
    course_id: str,
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return {"reviews": ReviewService(db).get_course_reviews(course_id, limit)}


@router.get("/course/{course_id}/me", response_model=Optional[ReviewResponse])
def get_my_review(
    course_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ReviewService(db).get_user_review(current_user.id, course_id)


@router.delete("/course/{course_id}", response_model=MessageResponse)
def delete_my_review(
    course_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ReviewService(db).delete_review(course_id, current_user.id)
    return {"message": "Review deleted"}
