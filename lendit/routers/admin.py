"""Admin: compliance audit trail and user suspension."""
from datetime import datetime
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from lendit.config import get_settings
from lendit.database import get_db
from lendit.dependencies import require_admin
from lendit.models.audit_log import AuditAction, AuditTargetType
from lendit.models.user import User
from lendit.schemas.audit import AuditLogPage, AuditLogResponse
from lendit.schemas.auth import SuspendRequest, UserResponse
from lendit.services.audit_log import AuditLogFilter, list_logs
from lendit.services.users import suspend_user

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/audit", response_model=AuditLogPage)
def audit_trail(
    target_type: AuditTargetType | None = Query(None),
    target_id: str | None = Query(None),
    actor_id: int | None = Query(None),
    action: AuditAction | None = Query(None),
    start: datetime | None = Query(None, description="Inclusive lower bound on created_at (UTC)"),
    end: datetime | None = Query(None, description="Inclusive upper bound on created_at (UTC)"),
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    settings = get_settings()
    limit = min(limit or settings.audit_default_page_size, settings.audit_max_page_size)
    logs, total = list_logs(
        db,
        AuditLogFilter(
            target_type=target_type,
            target_id=target_id,
            actor_id=actor_id,
            action=action,
            start=start,
            end=end,
            limit=limit,
            offset=offset,
        ),
    )
    return AuditLogPage(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + len(logs) < total,
    )


@router.post("/users/{user_id}/suspend", response_model=UserResponse)
def suspend(
    request: Request,
    user_id: int,
    data: SuspendRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return UserResponse.model_validate(suspend_user(db, admin, user_id, data.reason, request=request))
