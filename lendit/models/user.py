"""Marketplace users: renters, equipment owners, admins."""
from sqlalchemy import Column, Integer, String, Enum as SQLEnum, DateTime, Boolean
from sqlalchemy.sql import func
from lendit.database import Base
import enum


class UserRole(str, enum.Enum):
    RENTER = "RENTER"
    OWNER = "OWNER"
    ADMIN = "ADMIN"


class VerificationStatus(str, enum.Enum):
    UNVERIFIED = "UNVERIFIED"
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.RENTER)

    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    region = Column(String(100), nullable=True)

    # KYC: driver licence approval marks the user verified
    verification_status = Column(SQLEnum(VerificationStatus), nullable=False, default=VerificationStatus.UNVERIFIED)
    driver_licence_verified = Column(Boolean, nullable=False, default=False)
    business_verified = Column(Boolean, nullable=False, default=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)

    is_suspended = Column(Boolean, nullable=False, default=False)
    suspended_reason = Column(String(500), nullable=True)
    suspended_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
