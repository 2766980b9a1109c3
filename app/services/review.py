# app/services/review.py
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.decorator import NotFoundError, ValidationFailed, db_exception
from app.models.course import Course
from app.models.enrollment import Enrollment
from app.models.review import Review, make_review_id
from app.models.user import User
from app.schemas.review import ReviewCreate
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


class ReviewService:
    """One review per user per course; resubmitting edits it in place."""

    def __init__(self, db: Session):
        self.db = db

    @db_exception
    def add_or_update_review(self, user: User, review_in: ReviewCreate) -> Review:
        course = self.db.query(Course).filter(Course.id == review_in.course_id).first()
        if not course:
            raise NotFoundError(f"Course not found: {review_in.course_id}")
        if not user.email:
            raise ValidationFailed(
                "Unable to determine user email. Please ensure you are logged in properly."
            )

        verified = (
            self.db.query(Enrollment.id)
            .filter(Enrollment.user_id == user.id, Enrollment.course_id == course.id)
            .first()
            is not None
        )

        review_id = make_review_id(course.id, user.id)
        review = self.db.query(Review).filter(Review.id == review_id).first()
        if review is None:
            review = Review(id=review_id, user_id=user.id, course_id=course.id)
            self.db.add(review)

        review.course_title = course.title
        review.user_name = user.name
        review.user_email = user.email
        review.user_photo_url = user.photo_url or ""
        review.rating = review_in.rating
        review.comment = review_in.comment
        review.verified = verified
        review.updated_at = utcnow()

        self.db.commit()
        self.db.refresh(review)
        logger.info(f"Review saved: {review_id} ({review.rating} stars, verified={verified})")
        return review

    def get_course_reviews(self, course_id: str, limit: int = 20) -> List[Review]:
        return (
            self.db.query(Review)
            .filter(Review.course_id == course_id)
            .order_by(Review.created_at.desc(), Review.id.asc())
            .limit(limit)
            .all()
        )

    def get_recent_reviews(self, limit: int = 6) -> List[Review]:
        return (
            self.db.query(Review)
            .order_by(Review.created_at.desc(), Review.id.asc())
            .limit(limit)
            .all()
        )

    def get_user_review(self, user_id: str, course_id: str) -> Optional[Review]:
        return (
            self.db.query(Review)
            .filter(Review.id == make_review_id(course_id, user_id))
            .first()
        )

    def delete_review(self, course_id: str, user_id: str) -> None:
        review = self.get_user_review(user_id, course_id)
        if not review:
            raise NotFoundError("Review not found")
        review_id = review.id
        self.db.delete(review)
        self.db.commit()
        logger.info(f"Review deleted: {review_id}")

    def delete_review_by_id(self, review_id: str) -> None:
        review = self.db.query(Review).filter(Review.id == review_id).first()
        if not review:
            raise NotFoundError("Review not found")
        self.db.delete(review)
        self.db.commit()
        logger.info(f"Review deleted by admin: {review_id}")
