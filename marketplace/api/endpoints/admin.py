"""
Admin API endpoints: dashboard counters, user management and login lockouts.

All endpoints need an admin, subadmin or superadmin account. Granting or
revoking admin roles is reserved for superadmins.
"""

import logging
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from marketplace.core import lockout
from marketplace.core.database import get_db
from marketplace.core.deps import get_admin_user
from marketplace.crud import user as user_crud
from marketplace.crud.property import page_count
from marketplace.models.user import User, UserRole, UserStatus
from marketplace.schemas.admin import (
    AdminUserUpdate,
    DashboardStats,
    LoginAttemptOut,
    UnlockRequest,
    UnlockResponse
)
from marketplace.schemas.property import Page
from marketplace.schemas.user import MessageResponse, UserResponse

router = APIRouter(prefix="/admin", tags=["Admin"])
logger = logging.getLogger(__name__)


def _user_or_404(db: Session, user_id: UUID) -> User:
    user = user_crud.get_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/dashboard", response_model=DashboardStats)
def get_dashboard_stats(
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_admin_user)
):
    return user_crud.dashboard_stats(db)


@router.get("/users", response_model=Page[UserResponse])
def list_users(
    role: Optional[UserRole] = None,
    status_filter: Optional[UserStatus] = Query(None, alias="status"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_admin_user)
):
    """Users filtered by role, status and a name/email search, newest first."""
    items, total = user_crud.list_users(db, role, status_filter, search, skip=(page - 1) * limit, limit=limit)
    return Page[UserResponse](
        items=[UserResponse.model_validate(item) for item in items],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )


@router.patch("/users/{user_id}", response_model=UserResponse)
def update_user(
    user_id: UUID,
    updates: AdminUserUpdate,
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_admin_user)
):
    """
    Change a user's role, status or flags.

    Raises:
        HTTPException 403: non-superadmin touching admin roles
        HTTPException 400: admin changing their own role or status
    """
    user = _user_or_404(db, user_id)
    changes = updates.model_dump(exclude_unset=True)

    touches_admin_role = user.is_admin or (changes.get("role") is not None and changes["role"].is_admin)
    if touches_admin_role and admin_user.role != UserRole.SUPERADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Superadmin access required to manage admin accounts"
        )

    if user.id == admin_user.id and ("role" in changes or "status" in changes or changes.get("is_active") is False):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot change your own role or status"
        )

    for field, value in changes.items():
        if value is not None:
            setattr(user, field, value)
    if changes.get("status") == UserStatus.SUSPENDED:
        user.is_active = False
    elif changes.get("status") == UserStatus.ACTIVE and "is_active" not in changes:
        user.is_active = True

    db.commit()
    db.refresh(user)
    logger.info(f"Admin {admin_user.email} updated user {user.email}: {sorted(changes)}")
    return user


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_admin_user)
):
    """Delete a user and everything they own. Cascades through listings and subscriptions."""
    user = _user_or_404(db, user_id)
    if user.id == admin_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Use /auth/me to delete your own account")
    if user.is_admin and admin_user.role != UserRole.SUPERADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Superadmin access required to delete admin accounts")

    email = user.email
    user_crud.delete_account(db, user)
    lockout.clear_attempts(db, email)

    logger.warning(f"Admin {admin_user.email} deleted user {email}")
    return MessageResponse(message=f"User {email} deleted successfully")


@router.post("/unlock", response_model=UnlockResponse)
def unlock_account(
    request: UnlockRequest,
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_admin_user)
):
    """Clear login failures and locks for an email, from every IP."""
    cleared = lockout.clear_attempts(db, request.email)
    logger.info(f"Admin {admin_user.email} unlocked {request.email} ({cleared} records)")
    return UnlockResponse(email=lockout.normalize_email(request.email), cleared=cleared)


@router.get("/locked-accounts", response_model=List[LoginAttemptOut])
def list_locked_accounts(
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_admin_user)
):
    """(email, ip) pairs whose lock is still running, with minutes left."""
    records = lockout.get_locked_attempts(db)
    return [
        LoginAttemptOut(
            email=record.email,
            ip_address=record.ip_address,
            user_agent=record.user_agent,
            attempts=record.attempts,
            is_locked=record.is_locked,
            locked_until=record.locked_until,
            last_attempt=record.last_attempt,
            remaining_minutes=lockout.get_remaining_lock_time(record),
        )
        for record in records
    ]
