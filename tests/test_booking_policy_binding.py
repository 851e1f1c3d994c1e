"""Binding new bookings to the live insurance policy version."""
import logging
from datetime import date, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from lendit.errors import (
    NotFoundError,
    PermissionDeniedError,
    PolicyNotFound,
    PolicyVersionImmutableError,
    StaleVersionSubmission,
    ValidationError,
)
from lendit.models.audit_log import AuditAction, AuditLog, AuditTargetType
from lendit.models.booking import Booking, BookingStatus
from lendit.models.listing import ListingStatus
from lendit.services import audit_log as audit_service
from lendit.services import bookings as booking_service
from lendit.services.bookings import BookingDraft, create_booking, rental_days, transition_booking_status
from lendit.services.policy import RENTER_RESPONSIBILITIES_SLUG, publish_policy

from conftest import audit_count


def _draft(listing, dates):
    start, end = dates
    return BookingDraft(listing_id=listing.id, start_date=start, end_date=end)


def test_rental_days_is_inclusive():
    d = date(2026, 3, 1)
    assert rental_days(d, d) == 1
    assert rental_days(d, d + timedelta(days=2)) == 3
    assert rental_days(d, d - timedelta(days=1)) == 0


def test_booking_binds_live_version(db, publish, renter, live_listing, future_dates):
    publish(4)
    booking = create_booking(db, renter, _draft(live_listing, future_dates))

    assert booking.platform_policy_version_accepted == 4
    assert booking.booking_status == BookingStatus.PENDING
    assert booking.rental_days == 3
    assert booking.rental_total_cents == 3 * live_listing.daily_rate_cents
    assert booking.owner_id == live_listing.owner_id


def test_only_the_insurance_policy_is_bound(db, publish, renter, live_listing, future_dates):
    publish(2)
    publish(5, slug=RENTER_RESPONSIBILITIES_SLUG)
    booking = create_booking(db, renter, _draft(live_listing, future_dates))
    assert booking.platform_policy_version_accepted == 2


def test_no_published_policy_aborts_with_nothing_written(db, renter, live_listing, future_dates):
    with pytest.raises(PolicyNotFound):
        create_booking(db, renter, _draft(live_listing, future_dates))

    db.expire_all()
    assert db.query(Booking).count() == 0
    assert audit_count(db, action=AuditAction.BOOKING_CREATED) == 0


def test_bookings_across_a_republish(db, publish, make_user, live_listing):
    publish(2)
    today = date.today()
    early = create_booking(
        db, make_user(), BookingDraft(live_listing.id, today + timedelta(days=10), today + timedelta(days=11))
    )
    publish(1)
    late = create_booking(
        db, make_user(), BookingDraft(live_listing.id, today + timedelta(days=20), today + timedelta(days=21))
    )

    db.expire_all()
    assert db.get(Booking, early.id).platform_policy_version_accepted == 2
    assert db.get(Booking, late.id).platform_policy_version_accepted == 3


def test_bound_version_is_write_once(db, publish, renter, live_listing, future_dates):
    publish(1)
    booking = create_booking(db, renter, _draft(live_listing, future_dates))
    with pytest.raises(PolicyVersionImmutableError):
        booking.platform_policy_version_accepted = 2
    db.expire_all()
    assert db.get(Booking, booking.id).platform_policy_version_accepted == 1


def test_status_transitions_keep_bound_version(db, publish, renter, owner, live_listing, future_dates):
    publish(1)
    booking = create_booking(db, renter, _draft(live_listing, future_dates))
    publish(2)

    transition_booking_status(db, booking.id, BookingStatus.ACCEPTED, owner)
    updated = transition_booking_status(db, booking.id, BookingStatus.CANCELLED, renter, reason="Plans changed")

    assert updated.booking_status == BookingStatus.CANCELLED
    assert updated.platform_policy_version_accepted == 1


def test_creation_records_one_audit_entry(db, publish, renter, live_listing, future_dates):
    publish(3)
    booking = create_booking(db, renter, _draft(live_listing, future_dates))

    entries = db.query(AuditLog).filter(AuditLog.action == AuditAction.BOOKING_CREATED).all()
    assert len(entries) == 1
    entry = entries[0]
    assert entry.target_type == AuditTargetType.Booking
    assert entry.target_id == str(booking.id)
    assert entry.booking_id == booking.id
    assert entry.listing_id == live_listing.id
    assert entry.actor_id == renter.id
    assert entry.new_value == {"booking_status": "PENDING", "platform_policy_version_accepted": 3}
    assert entry.ip_address == "unknown"


def test_audit_outage_does_not_block_booking(db, publish, renter, live_listing, future_dates, monkeypatch, caplog):
    publish(1)

    def broken_persist(session, entry):
        raise OperationalError("INSERT INTO audit_logs", {}, Exception("audit store unavailable"))

    monkeypatch.setattr(audit_service, "_persist", broken_persist)

    with caplog.at_level(logging.ERROR, logger="uvicorn.error"):
        booking = create_booking(db, renter, _draft(live_listing, future_dates))

    db.expire_all()
    assert db.get(Booking, booking.id) is not None
    assert audit_count(db, action=AuditAction.BOOKING_CREATED) == 0
    assert "AuditWriteFailure" in caplog.text


def test_database_loss_after_commit_does_not_fail_booking(
    db, publish, renter, live_listing, future_dates, store_outage, caplog
):
    publish(1)
    store_outage.after(booking_service, "log_booking_created")

    with caplog.at_level(logging.ERROR, logger="uvicorn.error"):
        booking = create_booking(db, renter, _draft(live_listing, future_dates))

    store_outage.end()
    assert "AuditWriteFailure" in caplog.text
    db.expire_all()
    stored = db.get(Booking, booking.id)
    assert stored.renter_id == renter.id
    assert stored.platform_policy_version_accepted == 1
    assert audit_count(db, action=AuditAction.BOOKING_CREATED) == 0


def test_matching_accepted_version_binds(db, publish, renter, live_listing, future_dates):
    publish(2)
    booking = create_booking(db, renter, _draft(live_listing, future_dates), accepted_policy_version=2)
    assert booking.platform_policy_version_accepted == 2


def test_stale_accepted_version_writes_nothing(db, publish, renter, live_listing, future_dates):
    publish(2)
    with pytest.raises(StaleVersionSubmission) as exc:
        create_booking(db, renter, _draft(live_listing, future_dates), accepted_policy_version=1)

    assert exc.value.provided_version == 1
    assert exc.value.current_version == 2
    assert db.query(Booking).count() == 0
    assert audit_count(db, action=AuditAction.BOOKING_CREATED) == 0


def test_publish_landing_before_binding_is_caught(db, publish, renter, live_listing, future_dates, monkeypatch):
    publish(1)
    resolve = booking_service.get_active_policy

    def publish_then_resolve(session, slug):
        publish_policy(session, slug, "Bond raised to $900.")
        return resolve(session, slug)

    monkeypatch.setattr(booking_service, "get_active_policy", publish_then_resolve)
    with pytest.raises(StaleVersionSubmission) as exc:
        create_booking(db, renter, _draft(live_listing, future_dates), accepted_policy_version=1)

    assert exc.value.current_version == 2
    assert db.query(Booking).count() == 0

@pytest.mark.parametrize(
    "offset_start,offset_end,message",
    [
        (5, 3, "End date"),
        (-2, 1, "past"),
    ],
)
def test_date_rules(db, publish, renter, live_listing, offset_start, offset_end, message):
    publish(1)
    today = date.today()
    draft = BookingDraft(live_listing.id, today + timedelta(days=offset_start), today + timedelta(days=offset_end))
    with pytest.raises(ValidationError, match=message):
        create_booking(db, renter, draft, today=today)


def test_cannot_book_own_listing(db, publish, owner, live_listing, future_dates):
    publish(1)
    with pytest.raises(ValidationError, match="own listing"):
        create_booking(db, owner, _draft(live_listing, future_dates))


def test_listing_must_be_live(db, publish, renter, live_listing, future_dates):
    publish(1)
    live_listing.status = ListingStatus.PAUSED
    db.commit()
    with pytest.raises(ValidationError, match="not available"):
        create_booking(db, renter, _draft(live_listing, future_dates))


def test_unknown_listing(db, publish, renter, future_dates):
    publish(1)
    start, end = future_dates
    with pytest.raises(NotFoundError):
        create_booking(db, renter, BookingDraft(9999, start, end))


def test_suspended_renter_cannot_book(db, publish, make_user, live_listing, future_dates):
    publish(1)
    suspended = make_user(is_suspended=True, suspended_reason="Unpaid damage")
    with pytest.raises(PermissionDeniedError):
        create_booking(db, suspended, _draft(live_listing, future_dates))


def test_overlapping_dates_rejected(db, publish, make_user, live_listing, future_dates):
    publish(1)
    create_booking(db, make_user(), _draft(live_listing, future_dates))
    start, end = future_dates
    with pytest.raises(ValidationError, match="selected dates"):
        create_booking(db, make_user(), BookingDraft(live_listing.id, end, end + timedelta(days=1)))


def test_validation_runs_before_policy_lookup(db, owner, live_listing, future_dates):
    # No policy published: the business-rule error still wins
    with pytest.raises(ValidationError):
        create_booking(db, owner, _draft(live_listing, future_dates))
