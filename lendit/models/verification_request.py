"""KYC documents submitted by users and reviewed by admins."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from lendit.database import Base
import enum


class VerificationDocType(str, enum.Enum):
    DRIVER_LICENCE = "DRIVER_LICENCE"
    PASSPORT = "PASSPORT"
    GST_CERTIFICATE = "GST_CERTIFICATE"
    BUSINESS_REGISTRATION = "BUSINESS_REGISTRATION"
    EQUIPMENT_OWNERSHIP = "EQUIPMENT_OWNERSHIP"


class VerificationRequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class VerificationRequest(Base):
    __tablename__ = "verification_requests"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    document_type = Column(SQLEnum(VerificationDocType), nullable=False)
    document_number = Column(String(100), nullable=True)
    file_url = Column(String(1000), nullable=False)

    status = Column(SQLEnum(VerificationRequestStatus), nullable=False, default=VerificationRequestStatus.PENDING)
    submitted_at = Column(DateTime(timezone=True), server_default=func.now())
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    review_notes = Column(String(1000), nullable=True)
    rejection_reason = Column(String(1000), nullable=True)

    user = relationship("User", foreign_keys=[user_id])
