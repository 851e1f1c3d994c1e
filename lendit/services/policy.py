"""Platform policy versioning.

Key principles:
- Each publish inserts a new immutable row (slug, version); earlier versions stay retrievable.
- The active policy for a slug is the published row with the highest version number.
- New bookings capture the active version at creation time; publishing never touches bookings.
- Outdated checks are read-only and never audited.
"""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lendit.config import get_settings
from lendit.errors import ConcurrentVersionConflict, NotFoundError, PolicyNotFound, ValidationError
from lendit.models.booking import Booking
from lendit.models.policy_document import PolicyDocument
from lendit.models.user import User
from lendit.services.audit_log import log_policy_updated

logger = logging.getLogger("uvicorn.error")

INSURANCE_POLICY_SLUG = "insurance-and-damage-policy"
RENTER_RESPONSIBILITIES_SLUG = "renter-responsibilities"
OWNER_RESPONSIBILITIES_SLUG = "owner-responsibilities"

CANONICAL_SLUGS = (INSURANCE_POLICY_SLUG, RENTER_RESPONSIBILITIES_SLUG, OWNER_RESPONSIBILITIES_SLUG)


@dataclass(frozen=True)
class PolicyValidation:
    is_valid: bool
    current_version: int
    provided_version: int
    error: str | None = None


@dataclass(frozen=True)
class BookingPolicyStatus:
    booking_id: int
    is_outdated: bool
    booking_version: int | None
    current_version: int
    # Bound version ahead of the live one; reported, never corrected
    is_anomalous: bool = False


def _sha256_hex(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def _normalize_slug(slug: str) -> str:
    return (slug or "").strip().lower()


def _title_from_slug(slug: str) -> str:
    return " ".join(w.capitalize() for w in slug.replace("_", "-").split("-") if w)


def format_policy_version(version: int, long: bool = False) -> str:
    """'v3' or 'Version 3'."""
    return f"Version {version}" if long else f"v{version}"


# ---------------------------------------------------------------------------
# Store & resolver
# ---------------------------------------------------------------------------


def get_active_policy(db: Session, slug: str) -> PolicyDocument:
    """Published document with the highest version for slug. Raises PolicyNotFound."""
    slug = _normalize_slug(slug)
    doc = (
        db.query(PolicyDocument)
        .filter(PolicyDocument.slug == slug, PolicyDocument.is_published.is_(True))
        # Version number alone decides "current"; timestamps are never consulted
        .order_by(PolicyDocument.version.desc())
        .first()
    )
    if doc is None:
        raise PolicyNotFound(slug)
    return doc


def current_active_version(db: Session, slug: str) -> int:
    return get_active_policy(db, slug).version


def get_policy_version(db: Session, slug: str, version: int) -> PolicyDocument:
    """Historical lookup: the content exactly as published at that version. Raises PolicyNotFound."""
    slug = _normalize_slug(slug)
    doc = (
        db.query(PolicyDocument)
        .filter(PolicyDocument.slug == slug, PolicyDocument.version == version)
        .first()
    )
    if doc is None:
        raise PolicyNotFound(slug, version)
    return doc


def list_policy_versions(db: Session, slug: str) -> list[PolicyDocument]:
    """All versions for slug, newest first. Raises PolicyNotFound when there are none."""
    slug = _normalize_slug(slug)
    docs = (
        db.query(PolicyDocument)
        .filter(PolicyDocument.slug == slug)
        .order_by(PolicyDocument.version.desc())
        .all()
    )
    if not docs:
        raise PolicyNotFound(slug)
    return docs


def validate_policy_version(db: Session, slug: str, provided_version: int) -> PolicyValidation:
    """Compare the version a client accepted against the live one.

    Lets a client check, before submitting, whether it must re-accept the policy.
    """
    current = current_active_version(db, slug)
    if provided_version != current:
        return PolicyValidation(
            is_valid=False,
            current_version=current,
            provided_version=provided_version,
            error=(
                f"Policy version mismatch. You accepted version {provided_version}, but the current version is "
                f"{current}. Please review and accept the updated policy."
            ),
        )
    return PolicyValidation(is_valid=True, current_version=current, provided_version=provided_version)


# ---------------------------------------------------------------------------
# Publisher
# ---------------------------------------------------------------------------


def _latest_document(db: Session, slug: str) -> PolicyDocument | None:
    # FOR UPDATE serializes publishers on PostgreSQL; SQLite ignores it and the
    # unique (slug, version) constraint catches the race instead
    return (
        db.query(PolicyDocument)
        .filter(PolicyDocument.slug == slug)
        .order_by(PolicyDocument.version.desc())
        .with_for_update()
        .first()
    )


def publish_policy(
    db: Session,
    slug: str,
    content: str,
    *,
    title: str | None = None,
    short_summary: str | None = None,
    actor: User | None = None,
    request: Request | None = None,
) -> PolicyDocument:
    """Publish a new version of a policy: version = previous max + 1.

    Additive only: earlier versions are left untouched and bookings are never read
    or written. A losing racer rolls back (consuming no version number) and retries
    the read-increment-insert sequence; ConcurrentVersionConflict after
    ``policy_publish_max_attempts`` tries.
    """
    slug = _normalize_slug(slug)
    if not slug:
        raise ValidationError("Policy slug is required")
    if not (content or "").strip():
        raise ValidationError("Policy content is required")

    max_attempts = max(1, get_settings().policy_publish_max_attempts)
    for attempt in range(1, max_attempts + 1):
        latest = _latest_document(db, slug)
        previous_version = latest.version if latest is not None else 0
        new_version = previous_version + 1

        doc = PolicyDocument(
            slug=slug,
            version=new_version,
            title=(title or "").strip() or (latest.title if latest is not None else _title_from_slug(slug)),
            short_summary=short_summary if short_summary is not None else (latest.short_summary if latest else None),
            content=content,
            content_hash=_sha256_hex(content),
            is_published=True,
            published_at=datetime.now(timezone.utc),
            published_by_id=actor.id if actor is not None else None,
        )
        db.add(doc)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(
                "Policy publish conflict on %s v%d (attempt %d/%d); retrying",
                slug,
                new_version,
                attempt,
                max_attempts,
            )
            continue
        db.refresh(doc)
        log_policy_updated(db, actor, slug, previous_version, new_version, request=request)
        return doc

    raise ConcurrentVersionConflict(slug, max_attempts)


# ---------------------------------------------------------------------------
# Outdated-policy checker (read-only)
# ---------------------------------------------------------------------------


def is_outdated(db: Session, booking: Booking, slug: str = INSURANCE_POLICY_SLUG) -> bool:
    """True iff the booking's bound version is strictly behind the live version.

    NULL (legacy / unknown) is never outdated. A bound version ahead of the live
    one is logged as an anomaly and treated as not outdated.
    """
    bound = booking.platform_policy_version_accepted
    if bound is None:
        return False
    current = current_active_version(db, slug)
    if bound > current:
        logger.warning(
            "Policy version anomaly: booking %s bound to %s v%d but live version is v%d",
            booking.id,
            slug,
            bound,
            current,
        )
        return False
    return bound < current


def check_booking_policy(db: Session, booking_id: int, slug: str = INSURANCE_POLICY_SLUG) -> BookingPolicyStatus:
    """Outdated status for a stored booking. Raises NotFoundError / PolicyNotFound."""
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found")
    current = current_active_version(db, slug)
    bound = booking.platform_policy_version_accepted
    return BookingPolicyStatus(
        booking_id=booking.id,
        is_outdated=is_outdated(db, booking, slug),
        booking_version=bound,
        current_version=current,
        is_anomalous=bound is not None and bound > current,
    )
