"""User registration, profile updates and admin suspension."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lendit.errors import NotFoundError, PermissionDeniedError, ValidationError
from lendit.models.user import User, UserRole
from lendit.services.audit_log import log_user_registered, log_user_suspended, log_user_updated
from lendit.services.auth import get_password_hash, verify_password

_PROFILE_FIELDS = ("first_name", "last_name", "phone", "region")


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def register_user(
    db: Session,
    email: str,
    password: str,
    *,
    role: UserRole = UserRole.RENTER,
    first_name: str | None = None,
    last_name: str | None = None,
    request: Request | None = None,
) -> User:
    if role == UserRole.ADMIN:
        raise PermissionDeniedError("Admin accounts cannot self-register")
    email = _normalize_email(email)
    if db.query(User).filter(User.email == email).first():
        raise ValidationError("Email already registered")
    user = User(
        email=email,
        hashed_password=get_password_hash(password),
        role=role,
        first_name=first_name,
        last_name=last_name,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent registration with the same email
        db.rollback()
        raise ValidationError("Email already registered")
    db.refresh(user)
    log_user_registered(db, user, request=request)
    return user


def authenticate(db: Session, email: str, password: str) -> User | None:
    user = db.query(User).filter(User.email == _normalize_email(email)).first()
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user


def update_profile(
    db: Session,
    actor: User,
    user: User,
    changes: dict[str, Any],
    request: Request | None = None,
) -> User:
    if actor.role != UserRole.ADMIN and actor.id != user.id:
        raise PermissionDeniedError("Not authorized")
    changed = [k for k, v in changes.items() if k in _PROFILE_FIELDS and getattr(user, k) != v]
    if not changed:
        return user
    before = {k: getattr(user, k) for k in changed}
    for key in changed:
        setattr(user, key, changes[key])
    after = {k: getattr(user, k) for k in changed}
    db.commit()
    db.refresh(user)
    log_user_updated(db, actor, user, before, after, request=request)
    return user


def suspend_user(db: Session, admin: User, user_id: int, reason: str, request: Request | None = None) -> User:
    if admin.role != UserRole.ADMIN:
        raise PermissionDeniedError("Admin access required")
    if not (reason or "").strip():
        raise ValidationError("A suspension reason is required")
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    if user.id == admin.id:
        raise ValidationError("Admins cannot suspend themselves")
    if user.is_suspended:
        raise ValidationError("User is already suspended")
    user.is_suspended = True
    user.suspended_reason = reason.strip()
    user.suspended_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    log_user_suspended(db, admin, user, user.suspended_reason, request=request)
    return user
