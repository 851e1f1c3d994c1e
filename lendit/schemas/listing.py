"""Listing schemas."""
from datetime import datetime
from pydantic import BaseModel, Field
from lendit.models.listing import EquipmentCategory, ListingStatus


class ListingCreate(BaseModel):
    title: str = Field(min_length=3, max_length=255)
    description: str | None = None
    category: EquipmentCategory = EquipmentCategory.OTHER
    location: str | None = None
    daily_rate_cents: int = Field(gt=0)
    estimated_value: int | None = Field(default=None, ge=0)


class ListingUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=3, max_length=255)
    description: str | None = None
    category: EquipmentCategory | None = None
    location: str | None = None
    daily_rate_cents: int | None = Field(default=None, gt=0)
    estimated_value: int | None = Field(default=None, ge=0)


class ListingStatusUpdate(BaseModel):
    status: ListingStatus
    reason: str | None = None


class ListingResponse(BaseModel):
    id: int
    owner_id: int
    title: str
    description: str | None
    category: EquipmentCategory
    location: str | None
    daily_rate_cents: int
    estimated_value: int | None
    is_high_value: bool
    status: ListingStatus
    hidden_reason: str | None
    created_at: datetime | None = None

    class Config:
        from_attributes = True
