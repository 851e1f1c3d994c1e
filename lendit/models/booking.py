"""Equipment bookings. Each booking is bound to the platform policy version live at creation."""
from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, Enum as SQLEnum, inspect
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func
from lendit.database import Base
from lendit.errors import PolicyVersionImmutableError
import enum


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"
    AWAITING_PICKUP = "AWAITING_PICKUP"
    IN_USE = "IN_USE"
    AWAITING_RETURN_INSPECTION = "AWAITING_RETURN_INSPECTION"
    IN_DISPUTE = "IN_DISPUTE"
    COMPLETED = "COMPLETED"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False, index=True)
    renter_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    rental_days = Column(Integer, nullable=False)  # derived, inclusive of both ends

    # Money in cents, priced at creation
    daily_rate_cents = Column(Integer, nullable=False)
    rental_total_cents = Column(Integer, nullable=False)

    booking_status = Column(SQLEnum(BookingStatus), nullable=False, default=BookingStatus.PENDING, index=True)

    # Set by the payments and handover collaborators; read by the lifecycle state machine
    paid_at = Column(DateTime(timezone=True), nullable=True)
    return_inspected_at = Column(DateTime(timezone=True), nullable=True)

    # Write-once. NULL = legacy booking from before version tracking
    platform_policy_version_accepted = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    listing = relationship("Listing")
    renter = relationship("User", foreign_keys=[renter_id])
    owner = relationship("User", foreign_keys=[owner_id])

    @validates("platform_policy_version_accepted")
    def _guard_policy_version(self, key, value):
        if inspect(self).has_identity:
            raise PolicyVersionImmutableError(
                f"Booking {self.id}: {key} is set once at creation and cannot be changed."
            )
        return value
