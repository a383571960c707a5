from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Optional
from datetime import datetime
import bleach

from marketplace.models.review import ReviewStatus, TargetType


def _sanitize(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    return bleach.clean(value, tags=[], attributes={}, strip=True).strip()


class ReviewCreate(BaseModel):
    target_id: int = Field(..., ge=1)
    target_type: TargetType
    rating: int = Field(..., ge=1, le=5, description="Rating must be between 1 and 5")
    title: str = Field(..., min_length=1, max_length=100)
    comment: str = Field(..., min_length=10, max_length=2000)
    images: List[str] = []

    @field_validator("title", "comment")
    @classmethod
    def sanitize_text(cls, value: str) -> str:
        return _sanitize(value)


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5, description="Rating must be between 1 and 5")
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    comment: Optional[str] = Field(None, min_length=10, max_length=2000)

    @field_validator("title", "comment")
    @classmethod
    def sanitize_text(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize(value)


class ReviewResponse(BaseModel):
    id: str
    reviewer_id: int
    reviewer_name: Optional[str] = None
    target_id: int
    target_type: TargetType
    rating: int
    title: str
    comment: str
    images: List[str] = []
    helpful: int
    unhelpful: int
    status: ReviewStatus
    is_verified_purchase: bool
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class RatingSummaryResponse(BaseModel):
    target_type: TargetType
    target_id: int
    total_reviews: int
    average_rating: float
    rating_distribution: Dict[int, int]
