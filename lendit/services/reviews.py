"""Renter reviews of completed bookings."""
from fastapi import Request
from sqlalchemy.orm import Session

from lendit.errors import NotFoundError, PermissionDeniedError, ValidationError
from lendit.models.booking import Booking, BookingStatus
from lendit.models.review import Review
from lendit.models.user import User
from lendit.services.audit_log import log_review_created


def create_review(
    db: Session,
    author: User,
    booking_id: int,
    rating: int,
    comment: str | None = None,
    request: Request | None = None,
) -> Review:
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        raise NotFoundError("Booking not found")
    if booking.renter_id != author.id:
        raise PermissionDeniedError("Only the renter can review this booking")
    if booking.booking_status != BookingStatus.COMPLETED:
        raise ValidationError("Only completed bookings can be reviewed")
    if not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")
    if db.query(Review.id).filter(Review.booking_id == booking.id).first():
        raise ValidationError("This booking has already been reviewed")

    review = Review(
        booking_id=booking.id,
        listing_id=booking.listing_id,
        author_id=author.id,
        rating=rating,
        comment=(comment or "").strip() or None,
    )
    db.add(review)
    db.commit()
    db.refresh(review)
    log_review_created(db, author, review, request=request)
    return review
