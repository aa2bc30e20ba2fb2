"""
Two-factor authentication endpoints (TOTP with backup codes).
"""

import logging
from fastapi import APIRouter, HTTPException, Depends, status
from sqlalchemy.orm import Session

from marketplace.core import two_factor
from marketplace.core.celery_utils import queue_task_safely
from marketplace.core.database import get_db
from marketplace.core.deps import get_current_user
from marketplace.models.user import User
from marketplace.schemas.two_factor import (
    TwoFactorSetupResponse,
    TwoFactorTokenRequest,
    TwoFactorPasswordRequest,
    TwoFactorStatusResponse,
    BackupCodesResponse
)
from marketplace.schemas.user import MessageResponse
from marketplace.tasks.email_tasks import send_two_factor_alert_task

router = APIRouter(prefix="/2fa", tags=["Two-Factor Authentication"])
logger = logging.getLogger(__name__)


def _alert(user: User, enabled: bool) -> None:
    if not queue_task_safely(send_two_factor_alert_task, to_email=user.email, enabled=enabled, user_name=user.full_name):
        logger.error(f"Failed to queue 2FA alert for {user.email}")


@router.post("/setup", response_model=TwoFactorSetupResponse)
def setup_two_factor(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Generate a TOTP secret, QR code and backup codes.

    The secret and backup codes are only shown in this response. 2FA stays
    off until /enable confirms a code from the authenticator app.
    """
    try:
        return two_factor.setup(db, current_user)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/enable", response_model=MessageResponse)
def enable_two_factor(
    request: TwoFactorTokenRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        two_factor.enable(db, current_user, request.token)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    _alert(current_user, enabled=True)
    return MessageResponse(message="2FA enabled successfully")


@router.post("/disable", response_model=MessageResponse)
def disable_two_factor(
    request: TwoFactorPasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Turn off 2FA. Requires the account password and a TOTP or backup code."""
    try:
        two_factor.disable(db, current_user, request.password, request.token)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    _alert(current_user, enabled=False)
    return MessageResponse(message="2FA disabled successfully")


@router.get("/status", response_model=TwoFactorStatusResponse)
def two_factor_status(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return two_factor.status(db, current_user)


@router.post("/backup-codes", response_model=BackupCodesResponse)
def regenerate_backup_codes(
    request: TwoFactorPasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Replace every backup code. Requires password and a current TOTP code."""
    try:
        codes = two_factor.regenerate_backup_codes(db, current_user, request.password, request.token)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return BackupCodesResponse(backup_codes=codes)
