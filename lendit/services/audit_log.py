"""Append-only audit log service. Never update or delete - immutable audit trail.

Every mutating marketplace operation calls one of the ``log_*`` helpers below
*after* its own transaction has committed. Recording is best-effort: a failed
audit write is rolled back and reported on the operational logger, and the
caller gets ``None`` instead of an exception. The business change it describes
has already been committed and stays committed.

This module intentionally exposes no update or delete operations.
"""
from __future__ import annotations

import enum
import functools
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lendit.config import get_settings
from lendit.models.audit_log import AuditLog, AuditAction, AuditTargetType
from lendit.models.user import User

logger = logging.getLogger("uvicorn.error")

UNKNOWN = "unknown"

# Column limits (match model)
_ACTOR_EMAIL_LEN = 255
_TARGET_ID_LEN = 100
_IP_LEN = 64
_USER_AGENT_LEN = 500
_DESCRIPTION_LEN = 100_000  # avoid unbounded Text blobs


def _sanitize_value(v: Any) -> Any:
    """Convert to JSON-serializable value so snapshots never raise on INSERT."""
    if v is None:
        return None
    if isinstance(v, enum.Enum):
        return getattr(v, "value", str(v))
    if isinstance(v, (str, int, float, bool)):
        return v
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    if isinstance(v, Decimal):
        return str(v)
    if isinstance(v, dict):
        return {str(k): _sanitize_value(x) for k, x in v.items()}
    if isinstance(v, (list, tuple, set)):
        return [_sanitize_value(x) for x in v]
    return str(v)


def _sanitize_mapping(data: dict[str, Any] | None) -> dict[str, Any] | None:
    if data is None:
        return None
    return {str(k): _sanitize_value(v) for k, v in data.items()}


def request_context(request: Request | None) -> tuple[str, str]:
    """(ip_address, user_agent) for an incoming request, preferring X-Forwarded-For (behind a proxy)."""
    if request is None:
        return UNKNOWN, UNKNOWN
    ip = ""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # First hop is the original client
        ip = forwarded.split(",")[0].strip()
    if not ip:
        ip = (request.headers.get("x-real-ip") or "").strip()
    if not ip and request.client:
        ip = request.client.host or ""
    ua = (request.headers.get("user-agent") or "").strip()
    return ip[:_IP_LEN] or UNKNOWN, ua[:_USER_AGENT_LEN] or UNKNOWN


def _persist(db: Session, entry: AuditLog) -> AuditLog:
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def record(
    db: Session,
    action: AuditAction,
    description: str,
    *,
    target_type: AuditTargetType,
    target_id: str | int,
    actor: User | None = None,
    target_user_id: int | None = None,
    listing_id: int | None = None,
    booking_id: int | None = None,
    previous_value: dict[str, Any] | None = None,
    new_value: dict[str, Any] | None = None,
    meta: dict[str, Any] | None = None,
    request: Request | None = None,
) -> AuditLog | None:
    """Append one immutable audit record and commit it.

    Must be called after the primary mutation has committed. Returns the stored
    entry, or None if the audit store could not persist it (logged, never raised).
    """
    try:
        ip, ua = request_context(request)
        entry = AuditLog(
            action=action,
            description=(description or "")[:_DESCRIPTION_LEN].strip() or "-",
            actor_id=actor.id if actor is not None else None,
            actor_email=(actor.email[:_ACTOR_EMAIL_LEN] if actor is not None and actor.email else None),
            actor_role=actor.role if actor is not None else None,
            target_type=target_type,
            target_id=str(target_id)[:_TARGET_ID_LEN],
            target_user_id=target_user_id,
            listing_id=listing_id,
            booking_id=booking_id,
            previous_value=_sanitize_mapping(previous_value),
            new_value=_sanitize_mapping(new_value),
            meta=_sanitize_mapping(meta),
            ip_address=ip,
            user_agent=ua,
        )
        return _persist(db, entry)
    except SQLAlchemyError:
        db.rollback()
        logger.error(
            "AuditWriteFailure: could not record %s for %s:%s",
            getattr(action, "value", action),
            getattr(target_type, "value", target_type),
            target_id,
            exc_info=True,
        )
        return None


@dataclass
class AuditLogFilter:
    target_type: AuditTargetType | None = None
    target_id: str | None = None
    actor_id: int | None = None
    action: AuditAction | None = None
    start: datetime | None = None  # inclusive
    end: datetime | None = None  # inclusive
    limit: int | None = None
    offset: int = 0


def list_logs(db: Session, flt: AuditLogFilter) -> tuple[list[AuditLog], int]:
    """Filtered, paginated audit timeline, most recent first. Returns (entries, total matching)."""
    settings = get_settings()
    q = db.query(AuditLog)
    if flt.target_type is not None:
        q = q.filter(AuditLog.target_type == flt.target_type)
    if flt.target_id is not None:
        q = q.filter(AuditLog.target_id == str(flt.target_id))
    if flt.actor_id is not None:
        q = q.filter(AuditLog.actor_id == flt.actor_id)
    if flt.action is not None:
        q = q.filter(AuditLog.action == flt.action)
    if flt.start is not None:
        q = q.filter(AuditLog.created_at >= flt.start)
    if flt.end is not None:
        q = q.filter(AuditLog.created_at <= flt.end)

    total = q.count()
    limit = flt.limit or settings.audit_default_page_size
    limit = max(1, min(limit, settings.audit_max_page_size))
    offset = max(0, flt.offset or 0)
    entries = (
        q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return entries, total


# ---------------------------------------------------------------------------
# Domain event helpers
# ---------------------------------------------------------------------------


def _best_effort(helper):
    """Helpers read ORM attributes that the caller's commit expired; a reload that
    fails is an audit failure like any other and must not reach the caller."""

    @functools.wraps(helper)
    def wrapper(db: Session, *args, **kwargs) -> AuditLog | None:
        try:
            return helper(db, *args, **kwargs)
        except SQLAlchemyError:
            db.rollback()
            logger.error("AuditWriteFailure: %s could not be recorded", helper.__name__, exc_info=True)
            return None

    return wrapper


@_best_effort
def log_user_registered(db: Session, user: User, request: Request | None = None) -> AuditLog | None:
    return record(
        db,
        AuditAction.USER_REGISTERED,
        f"New user registered: {user.email}",
        target_type=AuditTargetType.User,
        target_id=user.id,
        target_user_id=user.id,
        new_value={"email": user.email, "role": user.role},
        request=request,
    )


@_best_effort
def log_user_updated(
    db: Session,
    actor: User,
    user: User,
    previous_value: dict[str, Any],
    new_value: dict[str, Any],
    request: Request | None = None,
) -> AuditLog | None:
    return record(
        db,
        AuditAction.USER_UPDATED,
        "User profile updated",
        actor=actor,
        target_type=AuditTargetType.User,
        target_id=user.id,
        target_user_id=user.id,
        previous_value=previous_value,
        new_value=new_value,
        request=request,
    )


@_best_effort
def log_verification_submitted(db: Session, user: User, verification, request: Request | None = None) -> AuditLog | None:
    return record(
        db,
        AuditAction.USER_VERIFICATION_SUBMITTED,
        f"Verification request submitted: {verification.document_type.value}",
        actor=user,
        target_type=AuditTargetType.User,
        target_id=user.id,
        target_user_id=user.id,
        meta={"document_type": verification.document_type, "verification_request_id": verification.id},
        request=request,
    )


@_best_effort
def log_verification_approved(
    db: Session,
    admin: User,
    verification,
    previous_status,
    request: Request | None = None,
) -> AuditLog | None:
    return record(
        db,
        AuditAction.USER_VERIFICATION_APPROVED,
        f"Verification approved: {verification.document_type.value}",
        actor=admin,
        target_type=AuditTargetType.User,
        target_id=verification.user_id,
        target_user_id=verification.user_id,
        previous_value={"status": previous_status},
        new_value={"status": verification.status},
        meta={
            "document_type": verification.document_type,
            "verification_request_id": verification.id,
            "notes": verification.review_notes,
        },
        request=request,
    )


@_best_effort
def log_verification_rejected(
    db: Session,
    admin: User,
    verification,
    previous_status,
    request: Request | None = None,
) -> AuditLog | None:
    return record(
        db,
        AuditAction.USER_VERIFICATION_REJECTED,
        f"Verification rejected: {verification.document_type.value}",
        actor=admin,
        target_type=AuditTargetType.User,
        target_id=verification.user_id,
        target_user_id=verification.user_id,
        previous_value={"status": previous_status},
        new_value={"status": verification.status},
        meta={
            "document_type": verification.document_type,
            "verification_request_id": verification.id,
            "reason": verification.rejection_reason,
        },
        request=request,
    )


@_best_effort
def log_listing_created(db: Session, owner: User, listing, request: Request | None = None) -> AuditLog | None:
    return record(
        db,
        AuditAction.LISTING_CREATED,
        f"Listing created: {listing.title}",
        actor=owner,
        target_type=AuditTargetType.Listing,
        target_id=listing.id,
        listing_id=listing.id,
        meta={"title": listing.title, "is_high_value": listing.is_high_value},
        request=request,
    )


@_best_effort
def log_listing_updated(
    db: Session,
    actor: User,
    listing,
    previous_value: dict[str, Any],
    new_value: dict[str, Any],
    request: Request | None = None,
) -> AuditLog | None:
    return record(
        db,
        AuditAction.LISTING_UPDATED,
        "Listing updated",
        actor=actor,
        target_type=AuditTargetType.Listing,
        target_id=listing.id,
        listing_id=listing.id,
        previous_value=previous_value,
        new_value=new_value,
        request=request,
    )


@_best_effort
def log_listing_status_changed(
    db: Session,
    actor: User,
    listing,
    previous_status,
    new_status,
    request: Request | None = None,
) -> AuditLog | None:
    prev = getattr(previous_status, "value", previous_status)
    new = getattr(new_status, "value", new_status)
    return record(
        db,
        AuditAction.LISTING_STATUS_CHANGED,
        f"Listing status changed: {prev} -> {new}",
        actor=actor,
        target_type=AuditTargetType.Listing,
        target_id=listing.id,
        listing_id=listing.id,
        previous_value={"status": prev},
        new_value={"status": new},
        request=request,
    )


@_best_effort
def log_high_value_flagged(
    db: Session,
    listing,
    reason: str,
    request: Request | None = None,
) -> AuditLog | None:
    """System event: no actor."""
    return record(
        db,
        AuditAction.LISTING_HIGH_VALUE_FLAGGED,
        f"Listing flagged as high-value: {reason}",
        target_type=AuditTargetType.Listing,
        target_id=listing.id,
        listing_id=listing.id,
        meta={"reason": reason, "value": listing.estimated_value},
        request=request,
    )


@_best_effort
def log_booking_created(db: Session, renter: User, booking, request: Request | None = None) -> AuditLog | None:
    return record(
        db,
        AuditAction.BOOKING_CREATED,
        "Booking created",
        actor=renter,
        target_type=AuditTargetType.Booking,
        target_id=booking.id,
        listing_id=booking.listing_id,
        booking_id=booking.id,
        new_value={
            "booking_status": booking.booking_status,
            "platform_policy_version_accepted": booking.platform_policy_version_accepted,
        },
        meta={
            "rental_total_cents": booking.rental_total_cents,
            "start_date": booking.start_date,
            "end_date": booking.end_date,
        },
        request=request,
    )


@_best_effort
def log_booking_status_changed(
    db: Session,
    actor: User | None,
    booking,
    previous_status,
    new_status,
    reason: str | None = None,
    request: Request | None = None,
) -> AuditLog | None:
    prev = getattr(previous_status, "value", previous_status)
    new = getattr(new_status, "value", new_status)
    return record(
        db,
        AuditAction.BOOKING_STATUS_CHANGED,
        f"Booking status changed: {prev} -> {new}",
        actor=actor,
        target_type=AuditTargetType.Booking,
        target_id=booking.id,
        listing_id=booking.listing_id,
        booking_id=booking.id,
        previous_value={"status": prev},
        new_value={"status": new},
        meta={"reason": reason} if reason else None,
        request=request,
    )


@_best_effort
def log_review_created(db: Session, author: User, review, request: Request | None = None) -> AuditLog | None:
    return record(
        db,
        AuditAction.REVIEW_CREATED,
        f"Review created with rating {review.rating}",
        actor=author,
        target_type=AuditTargetType.Review,
        target_id=review.id,
        listing_id=review.listing_id,
        booking_id=review.booking_id,
        meta={"rating": review.rating},
        request=request,
    )


@_best_effort
def log_policy_updated(
    db: Session,
    admin: User | None,
    slug: str,
    previous_version: int,
    new_version: int,
    request: Request | None = None,
) -> AuditLog | None:
    return record(
        db,
        AuditAction.POLICY_UPDATED,
        f"Policy updated: {slug}",
        actor=admin,
        target_type=AuditTargetType.Policy,
        target_id=slug,
        previous_value={"version": previous_version},
        new_value={"version": new_version},
        request=request,
    )


@_best_effort
def log_user_suspended(db: Session, admin: User, user: User, reason: str, request: Request | None = None) -> AuditLog | None:
    return record(
        db,
        AuditAction.ADMIN_USER_SUSPENDED,
        f"User suspended: {reason}",
        actor=admin,
        target_type=AuditTargetType.User,
        target_id=user.id,
        target_user_id=user.id,
        previous_value={"is_suspended": False},
        new_value={"is_suspended": True},
        meta={"reason": reason},
        request=request,
    )
