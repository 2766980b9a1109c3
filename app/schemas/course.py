# app/schemas/course.py

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

BatchStatus = Literal["upcoming", "active", "completed"]


# --- Batch Schemas ---


class ScheduleSession(BaseModel):
    date: Optional[str] = None
    time: Optional[str] = None
    duration: Optional[str] = None
    topic: Optional[str] = None


class BatchBase(BaseModel):
    name: Optional[str] = Field(None, max_length=150)
    description: Optional[str] = None
    status: BatchStatus = "upcoming"
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    max_capacity: int = Field(30, ge=1)
    class_links: Dict[str, str] = Field(default_factory=dict)
    schedule: List[ScheduleSession] = Field(default_factory=list)
    videos: List[dict] = Field(default_factory=list)


class BatchCreate(BatchBase):
    batch_number: int = Field(..., ge=1, examples=[1])


class BatchUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=150)
    description: Optional[str] = None
    status: Optional[BatchStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    max_capacity: Optional[int] = Field(None, ge=1)
    class_links: Optional[Dict[str, str]] = None
    schedule: Optional[List[ScheduleSession]] = None
    videos: Optional[List[dict]] = None

    @field_validator("status", "max_capacity", "class_links", "schedule", "videos", mode="before")
    def reject_null(cls, v):
        if v is None:
            raise ValueError("May be omitted but not null")
        return v


class BatchResponse(BatchBase):
    id: int
    course_id: str
    batch_number: int
    # Only enrolled students get the links, through the links endpoint
    class_links: Dict[str, str] = Field(default_factory=dict, exclude=True)

    model_config = ConfigDict(from_attributes=True)


class AdminBatchResponse(BatchResponse):
    class_links: Dict[str, str] = Field(default_factory=dict)


class BatchWithCount(BatchResponse):
    enrollment_count: int = 0


class BatchAvailabilityResponse(BaseModel):
    available: bool
    reason: str
    enrollment_count: int = 0
    batch: Optional[BatchResponse] = None


class NextBatchResponse(BaseModel):
    batch: Optional[BatchWithCount] = None
    reason: Optional[str] = None


class ClassLinksResponse(BaseModel):
    course_id: str
    batch_number: int
    class_links: Dict[str, str]
    schedule: List[ScheduleSession]


# --- Course Schemas ---


class CourseBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    instructor: Optional[str] = None
    duration: Optional[str] = None
    level: Optional[str] = None
    image: Optional[str] = None
    price: Decimal = Field(..., ge=0, decimal_places=2)
    coming_soon: bool = False
    is_published: bool = True


class CourseCreate(CourseBase):
    id: str = Field(
        ..., min_length=1, max_length=100, pattern=r"^[a-z0-9][a-z0-9-]*$"
    )
    batches: List[BatchCreate] = Field(default_factory=list)


class CourseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None
    instructor: Optional[str] = None
    duration: Optional[str] = None
    level: Optional[str] = None
    image: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    coming_soon: Optional[bool] = None
    is_published: Optional[bool] = None

    @field_validator("title", "price", "coming_soon", "is_published", mode="before")
    def reject_null(cls, v):
        if v is None:
            raise ValueError("May be omitted but not null")
        return v


class CourseResponse(CourseBase):
    id: str
    created_at: datetime
    updated_at: datetime
    batches: List[BatchResponse] = []

    model_config = ConfigDict(from_attributes=True)


class CourseListResponse(BaseModel):
    courses: List[CourseResponse]
    total: int


class RatingStats(BaseModel):
    average_rating: float
    review_count: int
    has_reviews: bool


class CourseStatsResponse(RatingStats):
    course_id: str
    enrollment_count: int
