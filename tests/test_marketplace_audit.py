"""Listings, verification, users and reviews each leave an audit trail."""
import logging
from datetime import datetime, timezone

import pytest
from sqlalchemy import event
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from lendit.errors import InvalidTransitionError, PermissionDeniedError, ValidationError
from lendit.models.audit_log import AuditAction, AuditLog, AuditTargetType
from lendit.models.booking import BookingStatus
from lendit.models.listing import ListingStatus
from lendit.models.user import UserRole, VerificationStatus
from lendit.models.verification_request import VerificationDocType, VerificationRequestStatus
from lendit.services import audit_log as audit_service
from lendit.services import listings as listing_service
from lendit.services import verification as verification_service
from lendit.services.bookings import BookingDraft, create_booking, transition_booking_status
from lendit.services.listings import change_listing_status, create_listing, update_listing
from lendit.services.reviews import create_review
from lendit.services.users import register_user, suspend_user
from lendit.services.verification import approve_verification, reject_verification, submit_verification

from conftest import audit_count


def _entries(db, action):
    db.expire_all()
    return db.query(AuditLog).filter(AuditLog.action == action).order_by(AuditLog.id).all()


def test_create_listing_audits_and_flags_high_value(db, owner):
    listing = create_listing(
        db, owner, {"title": "Case IH Axial-Flow 8250", "daily_rate_cents": 120_000, "estimated_value": 650_000}
    )
    assert listing.status == ListingStatus.DRAFT
    assert listing.is_high_value

    created = _entries(db, AuditAction.LISTING_CREATED)
    assert len(created) == 1
    assert created[0].target_id == str(listing.id)
    assert created[0].actor_id == owner.id

    flagged = _entries(db, AuditAction.LISTING_HIGH_VALUE_FLAGGED)
    assert len(flagged) == 1
    assert flagged[0].actor_id is None


def test_renter_cannot_create_listing(db, renter):
    with pytest.raises(PermissionDeniedError):
        create_listing(db, renter, {"title": "Trailer", "daily_rate_cents": 5_000})


def test_update_listing_audits_changed_fields_only(db, owner):
    listing = create_listing(db, owner, {"title": "Post driver", "daily_rate_cents": 9_000, "estimated_value": 8_000})
    update_listing(db, owner, listing.id, {"title": "Post driver", "daily_rate_cents": 9_500})

    updated = _entries(db, AuditAction.LISTING_UPDATED)
    assert len(updated) == 1
    assert updated[0].previous_value == {"daily_rate_cents": 9_000}
    assert updated[0].new_value == {"daily_rate_cents": 9_500}


def test_update_without_changes_is_not_audited(db, owner):
    listing = create_listing(db, owner, {"title": "Post driver", "daily_rate_cents": 9_000})
    update_listing(db, owner, listing.id, {"title": "Post driver"})
    assert _entries(db, AuditAction.LISTING_UPDATED) == []


def test_listing_status_change_records_before_and_after(db, owner, admin):
    listing = create_listing(db, owner, {"title": "Spray rig", "daily_rate_cents": 20_000})
    change_listing_status(db, owner, listing.id, ListingStatus.PENDING_REVIEW)
    change_listing_status(db, admin, listing.id, ListingStatus.LIVE)

    changes = _entries(db, AuditAction.LISTING_STATUS_CHANGED)
    assert len(changes) == 2
    assert changes[0].previous_value == {"status": "DRAFT"}
    assert changes[0].new_value == {"status": "PENDING_REVIEW"}
    assert changes[1].actor_id == admin.id
    assert changes[1].new_value == {"status": "LIVE"}


def test_owner_cannot_publish_own_listing(db, owner):
    listing = create_listing(db, owner, {"title": "Spray rig", "daily_rate_cents": 20_000})
    with pytest.raises(InvalidTransitionError):
        change_listing_status(db, owner, listing.id, ListingStatus.LIVE)
    assert _entries(db, AuditAction.LISTING_STATUS_CHANGED) == []


def test_listing_status_change_survives_audit_outage(db, owner, admin, monkeypatch):
    listing = create_listing(db, owner, {"title": "Spray rig", "daily_rate_cents": 20_000})

    def broken_persist(session, entry):
        raise OperationalError("INSERT INTO audit_logs", {}, Exception("audit store unavailable"))

    monkeypatch.setattr(audit_service, "_persist", broken_persist)
    change_listing_status(db, admin, listing.id, ListingStatus.REJECTED, reason="Photos missing")

    db.expire_all()
    assert listing.status == ListingStatus.REJECTED
    assert listing.hidden_reason == "Photos missing"
    assert audit_count(db, action=AuditAction.LISTING_STATUS_CHANGED) == 0


def test_listing_status_change_survives_database_loss(db, owner, admin, store_outage, caplog):
    listing = create_listing(db, owner, {"title": "Spray rig", "daily_rate_cents": 20_000})
    store_outage.after(listing_service, "log_listing_status_changed")

    with caplog.at_level(logging.ERROR, logger="uvicorn.error"):
        returned = change_listing_status(db, admin, listing.id, ListingStatus.REJECTED, reason="Photos missing")

    store_outage.end()
    assert returned is listing
    assert "AuditWriteFailure" in caplog.text
    db.expire_all()
    assert listing.status == ListingStatus.REJECTED
    assert listing.hidden_reason == "Photos missing"
    assert audit_count(db, action=AuditAction.LISTING_STATUS_CHANGED) == 0


def test_high_value_listing_survives_database_loss(db, owner, store_outage, caplog):
    store_outage.after(listing_service, "log_listing_created")

    with caplog.at_level(logging.ERROR, logger="uvicorn.error"):
        listing = create_listing(
            db, owner, {"title": "Header front", "daily_rate_cents": 60_000, "estimated_value": 250_000}
        )

    store_outage.end()
    assert "AuditWriteFailure" in caplog.text
    db.expire_all()
    assert listing.is_high_value
    assert audit_count(db, action=AuditAction.LISTING_CREATED) == 0


def test_verification_approval(db, renter, admin):
    vr = submit_verification(db, renter, VerificationDocType.DRIVER_LICENCE, "https://files.example.com/licence.pdf")
    assert renter.verification_status == VerificationStatus.PENDING

    approve_verification(db, admin, vr.id, notes="Matches photo ID")

    db.expire_all()
    assert renter.verification_status == VerificationStatus.VERIFIED
    assert renter.driver_licence_verified
    approved = _entries(db, AuditAction.USER_VERIFICATION_APPROVED)
    assert len(approved) == 1
    assert approved[0].target_user_id == renter.id
    assert approved[0].previous_value == {"status": "PENDING"}
    assert approved[0].new_value == {"status": "VERIFIED"}
    assert len(_entries(db, AuditAction.USER_VERIFICATION_SUBMITTED)) == 1


def test_verification_approval_survives_database_loss(db, renter, admin, store_outage, caplog):
    vr = submit_verification(db, renter, VerificationDocType.DRIVER_LICENCE, "https://files.example.com/licence.pdf")
    store_outage.after(verification_service, "log_verification_approved")

    with caplog.at_level(logging.ERROR, logger="uvicorn.error"):
        approved = approve_verification(db, admin, vr.id, notes="Matches photo ID")

    store_outage.end()
    assert approved is vr
    assert "AuditWriteFailure" in caplog.text
    db.expire_all()
    assert vr.status == VerificationRequestStatus.VERIFIED
    assert renter.verification_status == VerificationStatus.VERIFIED
    assert audit_count(db, action=AuditAction.USER_VERIFICATION_APPROVED) == 0
    assert audit_count(db, action=AuditAction.USER_VERIFICATION_SUBMITTED) == 1


def test_review_locks_the_request_row(db, renter, admin):
    vr = submit_verification(db, renter, VerificationDocType.DRIVER_LICENCE, "https://files.example.com/licence.pdf")
    lookups = []

    def capture(state):
        if state.is_select and "verification_requests" in str(state.statement):
            lookups.append(str(state.statement.compile(dialect=postgresql.dialect())))

    event.listen(db, "do_orm_execute", capture)
    try:
        approve_verification(db, admin, vr.id)
    finally:
        event.remove(db, "do_orm_execute", capture)

    assert lookups
    assert "FOR UPDATE" in lookups[0]

    with pytest.raises(InvalidTransitionError):
        approve_verification(db, admin, vr.id)
    assert audit_count(db, action=AuditAction.USER_VERIFICATION_APPROVED) == 1


def test_business_document_sets_business_flag(db, owner, admin):
    vr = submit_verification(db, owner, VerificationDocType.GST_CERTIFICATE, "https://files.example.com/gst.pdf")
    approve_verification(db, admin, vr.id)
    db.expire_all()
    assert owner.business_verified
    assert not owner.driver_licence_verified


def test_verification_rejection_needs_reason(db, renter, admin):
    vr = submit_verification(db, renter, VerificationDocType.PASSPORT, "https://files.example.com/passport.pdf")
    with pytest.raises(ValidationError):
        reject_verification(db, admin, vr.id, "  ")

    reject_verification(db, admin, vr.id, "Document expired")
    db.expire_all()
    assert vr.status == VerificationRequestStatus.REJECTED
    assert renter.verification_status == VerificationStatus.REJECTED
    rejected = _entries(db, AuditAction.USER_VERIFICATION_REJECTED)
    assert len(rejected) == 1
    assert rejected[0].meta["reason"] == "Document expired"


def test_reviewed_request_cannot_be_reviewed_again(db, renter, admin):
    vr = submit_verification(db, renter, VerificationDocType.DRIVER_LICENCE, "https://files.example.com/licence.pdf")
    approve_verification(db, admin, vr.id)
    with pytest.raises(InvalidTransitionError):
        reject_verification(db, admin, vr.id, "Changed my mind")


def test_non_admin_cannot_review_verification(db, renter, owner):
    vr = submit_verification(db, renter, VerificationDocType.DRIVER_LICENCE, "https://files.example.com/licence.pdf")
    with pytest.raises(PermissionDeniedError):
        approve_verification(db, owner, vr.id)


def test_register_and_suspend_user(db, admin):
    user = register_user(db, "grower@example.com", "correct-horse-battery", role=UserRole.RENTER)
    registered = _entries(db, AuditAction.USER_REGISTERED)
    assert len(registered) == 1
    assert registered[0].target_id == str(user.id)

    suspend_user(db, admin, user.id, "Repeated late returns")
    suspended = _entries(db, AuditAction.ADMIN_USER_SUSPENDED)
    assert len(suspended) == 1
    assert suspended[0].actor_id == admin.id
    assert suspended[0].new_value == {"is_suspended": True}


def test_duplicate_email_and_admin_self_registration(db):
    register_user(db, "grower@example.com", "correct-horse-battery")
    with pytest.raises(ValidationError):
        register_user(db, "Grower@Example.com", "another-password")
    with pytest.raises(PermissionDeniedError):
        register_user(db, "boss@example.com", "correct-horse-battery", role=UserRole.ADMIN)


def test_review_after_completed_rental(db, publish, renter, owner, live_listing, future_dates):
    publish(1)
    start, end = future_dates
    booking = create_booking(db, renter, BookingDraft(live_listing.id, start, end))

    with pytest.raises(ValidationError, match="completed"):
        create_review(db, renter, booking.id, 5)

    transition_booking_status(db, booking.id, BookingStatus.ACCEPTED, owner)
    booking.paid_at = datetime.now(timezone.utc)
    db.commit()
    transition_booking_status(db, booking.id, BookingStatus.AWAITING_PICKUP, None)
    transition_booking_status(db, booking.id, BookingStatus.IN_USE, owner)
    transition_booking_status(db, booking.id, BookingStatus.AWAITING_RETURN_INSPECTION, renter)
    booking.return_inspected_at = datetime.now(timezone.utc)
    db.commit()
    transition_booking_status(db, booking.id, BookingStatus.COMPLETED, owner)

    with pytest.raises(ValidationError, match="between 1 and 5"):
        create_review(db, renter, booking.id, 6)
    with pytest.raises(PermissionDeniedError):
        create_review(db, owner, booking.id, 4)

    review = create_review(db, renter, booking.id, 5, "Tractor ran perfectly")
    with pytest.raises(ValidationError, match="already"):
        create_review(db, renter, booking.id, 4)

    entries = _entries(db, AuditAction.REVIEW_CREATED)
    assert len(entries) == 1
    assert entries[0].target_type == AuditTargetType.Review
    assert entries[0].target_id == str(review.id)
    assert entries[0].meta == {"rating": 5}
