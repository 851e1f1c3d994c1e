"""
All SQLAlchemy models. Schema is the source of truth for new DBs.
Base.metadata.create_all() creates every table; no migration scripts needed for fresh installs.
"""
from lendit.models.user import User
from lendit.models.listing import Listing
from lendit.models.booking import Booking
from lendit.models.policy_document import PolicyDocument
from lendit.models.audit_log import AuditLog
from lendit.models.verification_request import VerificationRequest
from lendit.models.review import Review

__all__ = [
    "User",
    "Listing",
    "Booking",
    "PolicyDocument",
    "AuditLog",
    "VerificationRequest",
    "Review",
]
