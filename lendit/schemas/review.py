"""Review schemas."""
from datetime import datetime
from pydantic import BaseModel, Field


class ReviewCreate(BaseModel):
    booking_id: int
    rating: int = Field(ge=1, le=5)
    comment: str | None = None


class ReviewResponse(BaseModel):
    id: int
    booking_id: int
    listing_id: int
    author_id: int
    rating: int
    comment: str | None
    created_at: datetime | None = None

    class Config:
        from_attributes = True
