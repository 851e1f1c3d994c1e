"""Booking creation (policy binding) and lifecycle transitions.

All booking status changes go through transition_booking_status. The bound
policy version is written only by create_booking.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from fastapi import Request
from sqlalchemy.orm import Session

from lendit.config import get_settings
from lendit.errors import NotFoundError, PermissionDeniedError, StaleVersionSubmission, ValidationError
from lendit.models.booking import Booking, BookingStatus
from lendit.models.listing import Listing, ListingStatus
from lendit.models.user import User, UserRole
from lendit.services.audit_log import log_booking_created, log_booking_status_changed
from lendit.services.booking_state import ACTIVE_STATES, TransitionContext, actor_for, validate_transition
from lendit.services.policy import get_active_policy

# Statuses that hold the equipment for their dates
_BLOCKING_STATES = ACTIVE_STATES | {BookingStatus.PENDING}


@dataclass(frozen=True)
class BookingDraft:
    listing_id: int
    start_date: date
    end_date: date


def rental_days(start: date, end: date) -> int:
    """Inclusive day count; 0 when end is before start."""
    return (end - start).days + 1 if end >= start else 0


def _has_overlap(db: Session, listing_id: int, start: date, end: date) -> bool:
    return (
        db.query(Booking.id)
        .filter(
            Booking.listing_id == listing_id,
            Booking.booking_status.in_(list(_BLOCKING_STATES)),
            Booking.start_date <= end,
            Booking.end_date >= start,
        )
        .first()
        is not None
    )


def create_booking(
    db: Session,
    renter: User,
    draft: BookingDraft,
    *,
    accepted_policy_version: int | None = None,
    request: Request | None = None,
    today: date | None = None,
) -> Booking:
    """Validate, bind to the live policy version, persist, then audit.

    The policy is resolved last, after renter/listing/pricing checks, in the same
    transaction as the insert. PolicyNotFound propagates with nothing written.
    When the client says which version it accepted, that version must be the one
    being bound; otherwise StaleVersionSubmission is raised before the insert.
    """
    if renter.is_suspended:
        raise PermissionDeniedError("Your account is suspended and cannot create bookings")

    listing = db.query(Listing).filter(Listing.id == draft.listing_id).first()
    if not listing:
        raise NotFoundError("Listing not found")
    if listing.owner_id == renter.id:
        raise ValidationError("You cannot book your own listing")
    if listing.status != ListingStatus.LIVE:
        raise ValidationError("Listing is not available for booking")

    days = rental_days(draft.start_date, draft.end_date)
    if days <= 0:
        raise ValidationError("End date must be on or after start date")
    if draft.start_date < (today or date.today()):
        raise ValidationError("Start date cannot be in the past")
    if _has_overlap(db, listing.id, draft.start_date, draft.end_date):
        raise ValidationError("Listing is not available for the selected dates")

    slug = get_settings().canonical_policy_slug
    policy = get_active_policy(db, slug)
    if accepted_policy_version is not None and accepted_policy_version != policy.version:
        raise StaleVersionSubmission(slug, accepted_policy_version, policy.version)

    booking = Booking(
        listing_id=listing.id,
        renter_id=renter.id,
        owner_id=listing.owner_id,
        start_date=draft.start_date,
        end_date=draft.end_date,
        rental_days=days,
        daily_rate_cents=listing.daily_rate_cents,
        rental_total_cents=days * listing.daily_rate_cents,
        booking_status=BookingStatus.PENDING,
        platform_policy_version_accepted=policy.version,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    log_booking_created(db, renter, booking, request=request)
    return booking


def get_booking_for(db: Session, booking_id: int, user: User) -> Booking:
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        raise NotFoundError("Booking not found")
    if user.role != UserRole.ADMIN and user.id not in (booking.renter_id, booking.owner_id):
        raise PermissionDeniedError("Not your booking")
    return booking


def list_bookings_for(db: Session, user: User, *, as_renter: bool = True) -> list[Booking]:
    q = db.query(Booking)
    if as_renter:
        q = q.filter(Booking.renter_id == user.id)
    else:
        q = q.filter(Booking.owner_id == user.id)
    return q.order_by(Booking.created_at.desc(), Booking.id.desc()).all()


def transition_booking_status(
    db: Session,
    booking_id: int,
    new_status: BookingStatus,
    actor: User | None,
    *,
    reason: str | None = None,
    request: Request | None = None,
) -> Booking:
    """Move a booking through the lifecycle. actor=None means a system-triggered change."""
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        raise NotFoundError(f"Booking {booking_id} not found")

    previous = booking.booking_status
    kind = actor_for(
        actor.role if actor is not None else None,
        is_owner=actor is not None and actor.id == booking.owner_id,
        is_renter=actor is not None and actor.id == booking.renter_id,
    )
    context = TransitionContext(
        is_payment_complete=booking.paid_at is not None,
        is_inspection_complete=booking.return_inspected_at is not None,
    )
    validate_transition(previous, new_status, kind, context)

    booking.booking_status = new_status
    db.commit()
    db.refresh(booking)
    log_booking_status_changed(db, actor, booking, previous, new_status, reason=reason, request=request)
    return booking
