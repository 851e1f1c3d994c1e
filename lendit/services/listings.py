"""Listing lifecycle: create, update, status changes. Every mutation is audited after commit."""
from __future__ import annotations

from typing import Any

from fastapi import Request
from sqlalchemy.orm import Session

from lendit.config import get_settings
from lendit.errors import InvalidTransitionError, NotFoundError, PermissionDeniedError, ValidationError
from lendit.models.listing import Listing, ListingStatus
from lendit.models.user import User, UserRole
from lendit.services.audit_log import (
    log_high_value_flagged,
    log_listing_created,
    log_listing_status_changed,
    log_listing_updated,
)

# Valid status transitions for owners; admins may set any status
OWNER_TRANSITIONS: dict[ListingStatus, set[ListingStatus]] = {
    ListingStatus.DRAFT: {ListingStatus.PENDING_REVIEW},
    ListingStatus.PENDING_REVIEW: {ListingStatus.DRAFT},  # withdraw submission
    ListingStatus.LIVE: {ListingStatus.PAUSED},
    ListingStatus.PAUSED: {ListingStatus.LIVE, ListingStatus.PENDING_REVIEW},
    ListingStatus.REJECTED: {ListingStatus.DRAFT},  # edit and resubmit
}

_EDITABLE_FIELDS = ("title", "description", "category", "location", "daily_rate_cents", "estimated_value")


def _snapshot_listing(listing: Listing, fields=_EDITABLE_FIELDS) -> dict[str, Any]:
    return {f: getattr(listing, f) for f in fields}


def _is_high_value(estimated_value: int | None) -> bool:
    return estimated_value is not None and estimated_value >= get_settings().high_value_threshold


def _get_listing(db: Session, listing_id: int) -> Listing:
    listing = db.query(Listing).filter(Listing.id == listing_id).first()
    if not listing:
        raise NotFoundError("Listing not found")
    return listing


def create_listing(db: Session, owner: User, data: dict[str, Any], request: Request | None = None) -> Listing:
    if owner.role not in (UserRole.OWNER, UserRole.ADMIN):
        raise PermissionDeniedError("Owner role required")
    if owner.is_suspended:
        raise PermissionDeniedError("Your account is suspended")
    if data.get("daily_rate_cents") is None or data["daily_rate_cents"] <= 0:
        raise ValidationError("Daily rate must be greater than zero")

    listing = Listing(
        owner_id=owner.id,
        status=ListingStatus.DRAFT,
        is_high_value=_is_high_value(data.get("estimated_value")),
        **{k: v for k, v in data.items() if k in _EDITABLE_FIELDS},
    )
    db.add(listing)
    db.commit()
    db.refresh(listing)
    # Read before auditing: a failed audit write rolls back and expires the listing
    flagged = listing.is_high_value
    flag_reason = f"Estimated value {listing.estimated_value} meets threshold"
    log_listing_created(db, owner, listing, request=request)
    if flagged:
        log_high_value_flagged(db, listing, flag_reason, request=request)
    return listing


def update_listing(
    db: Session,
    actor: User,
    listing_id: int,
    changes: dict[str, Any],
    request: Request | None = None,
) -> Listing:
    """Apply field changes; audit only the fields that actually changed."""
    listing = _get_listing(db, listing_id)
    if actor.role != UserRole.ADMIN and listing.owner_id != actor.id:
        raise PermissionDeniedError("Not authorized")
    if "daily_rate_cents" in changes and (changes["daily_rate_cents"] is None or changes["daily_rate_cents"] <= 0):
        raise ValidationError("Daily rate must be greater than zero")

    changed = [k for k, v in changes.items() if k in _EDITABLE_FIELDS and getattr(listing, k) != v]
    if not changed:
        return listing
    was_high_value = listing.is_high_value
    before = _snapshot_listing(listing, changed)
    for key in changed:
        setattr(listing, key, changes[key])
    listing.is_high_value = _is_high_value(listing.estimated_value)
    after = _snapshot_listing(listing, changed)
    db.commit()
    db.refresh(listing)
    newly_flagged = listing.is_high_value and not was_high_value
    flag_reason = f"Estimated value {listing.estimated_value} meets threshold"
    log_listing_updated(db, actor, listing, before, after, request=request)
    if newly_flagged:
        log_high_value_flagged(db, listing, flag_reason, request=request)
    return listing


def change_listing_status(
    db: Session,
    actor: User,
    listing_id: int,
    new_status: ListingStatus,
    reason: str | None = None,
    request: Request | None = None,
) -> Listing:
    listing = _get_listing(db, listing_id)
    is_admin = actor.role == UserRole.ADMIN
    if not is_admin and listing.owner_id != actor.id:
        raise PermissionDeniedError("Not authorized")

    previous = listing.status
    if not is_admin and new_status not in OWNER_TRANSITIONS.get(previous, set()):
        raise InvalidTransitionError(f"Cannot transition from {previous.value} to {new_status.value}")

    listing.status = new_status
    if new_status == ListingStatus.REJECTED and reason:
        listing.hidden_reason = reason
    db.commit()
    db.refresh(listing)
    log_listing_status_changed(db, actor, listing, previous, new_status, request=request)
    return listing


def get_listing(db: Session, listing_id: int) -> Listing:
    return _get_listing(db, listing_id)
