"""KYC verification schemas."""
from datetime import datetime
from pydantic import BaseModel, Field
from lendit.models.verification_request import VerificationDocType, VerificationRequestStatus


class VerificationSubmit(BaseModel):
    document_type: VerificationDocType
    file_url: str = Field(min_length=1)
    document_number: str | None = None


class VerificationApprove(BaseModel):
    notes: str | None = None


class VerificationReject(BaseModel):
    reason: str = Field(min_length=1)


class VerificationResponse(BaseModel):
    id: int
    user_id: int
    document_type: VerificationDocType
    status: VerificationRequestStatus
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None
    rejection_reason: str | None = None

    class Config:
        from_attributes = True
