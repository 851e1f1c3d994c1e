"""Append-only audit log for the marketplace compliance trail.
No updates or deletes - every record is permanent."""
from datetime import datetime, timezone
import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index, Enum as SQLEnum, event
from sqlalchemy.sql import func

from lendit.database import Base, JSONType
from lendit.errors import AuditLogImmutableError
from lendit.models.user import UserRole


class AuditAction(str, enum.Enum):
    USER_REGISTERED = "USER_REGISTERED"
    USER_UPDATED = "USER_UPDATED"
    USER_VERIFICATION_SUBMITTED = "USER_VERIFICATION_SUBMITTED"
    USER_VERIFICATION_APPROVED = "USER_VERIFICATION_APPROVED"
    USER_VERIFICATION_REJECTED = "USER_VERIFICATION_REJECTED"
    LISTING_CREATED = "LISTING_CREATED"
    LISTING_UPDATED = "LISTING_UPDATED"
    LISTING_STATUS_CHANGED = "LISTING_STATUS_CHANGED"
    LISTING_HIGH_VALUE_FLAGGED = "LISTING_HIGH_VALUE_FLAGGED"
    BOOKING_CREATED = "BOOKING_CREATED"
    BOOKING_STATUS_CHANGED = "BOOKING_STATUS_CHANGED"
    REVIEW_CREATED = "REVIEW_CREATED"
    POLICY_UPDATED = "POLICY_UPDATED"
    ADMIN_USER_SUSPENDED = "ADMIN_USER_SUSPENDED"


class AuditTargetType(str, enum.Enum):
    User = "User"
    Listing = "Listing"
    Booking = "Booking"
    Review = "Review"
    Policy = "Policy"
    System = "System"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditLog(Base):
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_target", "target_type", "target_id"),
    )

    id = Column(Integer, primary_key=True, index=True)

    action = Column(SQLEnum(AuditAction), nullable=False, index=True)
    description = Column(Text, nullable=False)

    # Who did it; NULL for system-triggered events
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    actor_email = Column(String(255), nullable=True)
    actor_role = Column(SQLEnum(UserRole), nullable=True)

    # What it happened to. target_id is a string so policy slugs fit alongside numeric ids
    target_type = Column(SQLEnum(AuditTargetType), nullable=False)
    target_id = Column(String(100), nullable=False)
    target_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="SET NULL"), nullable=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, index=True)

    # Before/after snapshots and free-form context
    previous_value = Column(JSONType, nullable=True)
    new_value = Column(JSONType, nullable=True)
    meta = Column("metadata", JSONType, nullable=True)

    # Request provenance ("unknown" when not available)
    ip_address = Column(String(64), nullable=False, default="unknown")
    user_agent = Column(String(500), nullable=False, default="unknown")

    # UTC only
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False, index=True)


@event.listens_for(AuditLog, "before_update")
def _reject_update(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit log {target.id} is immutable and cannot be updated.")


@event.listens_for(AuditLog, "before_delete")
def _reject_delete(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit log {target.id} is immutable and cannot be deleted.")
