"""KYC verification: submission by users, approve/reject by admins."""
from __future__ import annotations

from datetime import datetime, timezone

from fastapi import Request
from sqlalchemy.orm import Session

from lendit.errors import InvalidTransitionError, NotFoundError, PermissionDeniedError, ValidationError
from lendit.models.user import User, UserRole, VerificationStatus
from lendit.models.verification_request import (
    VerificationDocType,
    VerificationRequest,
    VerificationRequestStatus,
)
from lendit.services.audit_log import (
    log_verification_approved,
    log_verification_rejected,
    log_verification_submitted,
)

_BUSINESS_DOCS = {VerificationDocType.GST_CERTIFICATE, VerificationDocType.BUSINESS_REGISTRATION}


def submit_verification(
    db: Session,
    user: User,
    document_type: VerificationDocType,
    file_url: str,
    document_number: str | None = None,
    request: Request | None = None,
) -> VerificationRequest:
    if not (file_url or "").strip():
        raise ValidationError("Document file is required")
    vr = VerificationRequest(
        user_id=user.id,
        document_type=document_type,
        document_number=(document_number or "").strip() or None,
        file_url=file_url.strip(),
        status=VerificationRequestStatus.PENDING,
    )
    db.add(vr)
    if user.verification_status in (VerificationStatus.UNVERIFIED, VerificationStatus.REJECTED):
        user.verification_status = VerificationStatus.PENDING
    db.commit()
    db.refresh(vr)
    log_verification_submitted(db, user, vr, request=request)
    return vr


def _pending_request(db: Session, admin: User, request_id: int) -> VerificationRequest:
    if admin.role != UserRole.ADMIN:
        raise PermissionDeniedError("Admin access required")
    # Row lock so two admins reviewing at once cannot both see PENDING
    vr = (
        db.query(VerificationRequest)
        .filter(VerificationRequest.id == request_id)
        .with_for_update()
        .first()
    )
    if not vr:
        raise NotFoundError("Verification request not found")
    if vr.status != VerificationRequestStatus.PENDING:
        raise InvalidTransitionError(f"Cannot review request with status: {vr.status.value}")
    return vr


def approve_verification(
    db: Session,
    admin: User,
    request_id: int,
    notes: str | None = None,
    request: Request | None = None,
) -> VerificationRequest:
    vr = _pending_request(db, admin, request_id)
    previous = vr.status
    now = datetime.now(timezone.utc)
    vr.status = VerificationRequestStatus.VERIFIED
    vr.reviewed_at = now
    vr.reviewed_by_id = admin.id
    vr.review_notes = notes

    user = vr.user
    if vr.document_type == VerificationDocType.DRIVER_LICENCE:
        user.driver_licence_verified = True
        user.verification_status = VerificationStatus.VERIFIED
        user.verified_at = now
    elif vr.document_type in _BUSINESS_DOCS:
        user.business_verified = True
    db.commit()
    db.refresh(vr)
    log_verification_approved(db, admin, vr, previous, request=request)
    return vr


def reject_verification(
    db: Session,
    admin: User,
    request_id: int,
    reason: str,
    request: Request | None = None,
) -> VerificationRequest:
    if not (reason or "").strip():
        raise ValidationError("A rejection reason is required")
    vr = _pending_request(db, admin, request_id)
    previous = vr.status
    vr.status = VerificationRequestStatus.REJECTED
    vr.reviewed_at = datetime.now(timezone.utc)
    vr.reviewed_by_id = admin.id
    vr.rejection_reason = reason.strip()

    user = vr.user
    if not user.driver_licence_verified:
        user.verification_status = VerificationStatus.REJECTED
    db.commit()
    db.refresh(vr)
    log_verification_rejected(db, admin, vr, previous, request=request)
    return vr
