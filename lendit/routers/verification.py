"""KYC verification requests."""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from lendit.database import get_db
from lendit.dependencies import get_current_user, require_admin
from lendit.models.user import User
from lendit.schemas.verification import (
    VerificationApprove,
    VerificationReject,
    VerificationResponse,
    VerificationSubmit,
)
from lendit.services.verification import approve_verification, reject_verification, submit_verification

router = APIRouter(prefix="/verification", tags=["verification"])


@router.post("/", response_model=VerificationResponse, status_code=201)
def submit(
    request: Request,
    data: VerificationSubmit,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    vr = submit_verification(
        db, current_user, data.document_type, data.file_url, document_number=data.document_number, request=request
    )
    return VerificationResponse.model_validate(vr)


@router.post("/{request_id}/approve", response_model=VerificationResponse)
def approve(
    request: Request,
    request_id: int,
    data: VerificationApprove,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return VerificationResponse.model_validate(approve_verification(db, admin, request_id, notes=data.notes, request=request))


@router.post("/{request_id}/reject", response_model=VerificationResponse)
def reject(
    request: Request,
    request_id: int,
    data: VerificationReject,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return VerificationResponse.model_validate(reject_verification(db, admin, request_id, data.reason, request=request))
