from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ReviewCreate(BaseModel):
    course_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str

    @field_validator("comment")
    def validate_comment(cls, v):
        v = (v or "").strip()
        if not v:
            raise ValueError("Comment is required")
        if len(v) > 2000:
            raise ValueError("Comment too long (max 2000 characters)")
        return v


class ReviewResponse(BaseModel):
    id: str
    user_id: str
    course_id: str
    course_title: Optional[str] = None
    user_name: Optional[str] = None
    user_photo_url: Optional[str] = None
    rating: int
    comment: str
    verified: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReviewListResponse(BaseModel):
    reviews: List[ReviewResponse]
