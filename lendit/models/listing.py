"""Equipment listings offered by owners."""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from lendit.database import Base
import enum


class ListingStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_REVIEW = "PENDING_REVIEW"
    LIVE = "LIVE"
    PAUSED = "PAUSED"
    REJECTED = "REJECTED"


class EquipmentCategory(str, enum.Enum):
    TRACTOR = "TRACTOR"
    HARVESTER = "HARVESTER"
    EXCAVATOR = "EXCAVATOR"
    LOADER = "LOADER"
    IMPLEMENT = "IMPLEMENT"
    TRAILER = "TRAILER"
    OTHER = "OTHER"


class Listing(Base):
    __tablename__ = "listings"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(SQLEnum(EquipmentCategory), nullable=False, default=EquipmentCategory.OTHER)
    location = Column(String(255), nullable=True)

    # Money in cents
    daily_rate_cents = Column(Integer, nullable=False)
    # Replacement value in whole dollars; drives the high-value flag
    estimated_value = Column(Integer, nullable=True)
    is_high_value = Column(Boolean, nullable=False, default=False)

    status = Column(SQLEnum(ListingStatus), nullable=False, default=ListingStatus.DRAFT, index=True)
    # Admin rejection reason
    hidden_reason = Column(String(1000), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    owner = relationship("User")
