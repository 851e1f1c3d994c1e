"""Booking schemas."""
from datetime import date, datetime
from pydantic import BaseModel
from lendit.models.booking import BookingStatus


class BookingCreate(BaseModel):
    listing_id: int
    start_date: date
    end_date: date
    # Version of the insurance & damage policy the renter was shown. When sent and
    # stale, the submission is rejected so the renter can re-accept.
    accepted_policy_version: int | None = None


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    reason: str | None = None


class BookingResponse(BaseModel):
    id: int
    listing_id: int
    renter_id: int
    owner_id: int
    start_date: date
    end_date: date
    rental_days: int
    daily_rate_cents: int
    rental_total_cents: int
    booking_status: BookingStatus
    platform_policy_version_accepted: int | None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class BookingPolicyStatusResponse(BaseModel):
    booking_id: int
    is_outdated: bool
    booking_version: int | None
    current_version: int
    is_anomalous: bool

    class Config:
        from_attributes = True
