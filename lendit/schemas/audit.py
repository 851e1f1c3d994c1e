"""Audit trail schemas (admin/compliance view)."""
from datetime import datetime
from typing import Any
from pydantic import BaseModel
from lendit.models.audit_log import AuditAction, AuditTargetType
from lendit.models.user import UserRole


class AuditLogResponse(BaseModel):
    id: int
    action: AuditAction
    description: str
    actor_id: int | None
    actor_email: str | None
    actor_role: UserRole | None
    target_type: AuditTargetType
    target_id: str
    target_user_id: int | None
    listing_id: int | None
    booking_id: int | None
    previous_value: dict[str, Any] | None
    new_value: dict[str, Any] | None
    meta: dict[str, Any] | None
    ip_address: str
    user_agent: str
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogPage(BaseModel):
    logs: list[AuditLogResponse]
    total: int
    limit: int
    offset: int
    has_more: bool
