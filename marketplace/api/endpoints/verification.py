"""
Email verification endpoints.

Handles sending, resending, and verifying 6-digit email verification codes.
"""

import logging
from fastapi import APIRouter, HTTPException, Depends, status
from sqlalchemy.orm import Session

from marketplace.core.celery_utils import queue_task_safely
from marketplace.core.database import get_db
from marketplace.core.deps import get_current_user
from marketplace.core.verification import (
    CODE_EXPIRATION_MINUTES,
    attempts_remaining,
    create_verification_code,
    get_active_verification,
    verify_code
)
from marketplace.models.email_verification import EmailVerification
from marketplace.models.user import User
from marketplace.schemas.verification import (
    SendCodeResponse,
    VerificationResponse,
    VerificationStatusResponse,
    VerifyCodeRequest
)
from marketplace.tasks.email_tasks import send_verification_email_task

router = APIRouter(prefix="/auth", tags=["Email Verification"])
logger = logging.getLogger(__name__)


def _send_code(db: Session, user: User) -> EmailVerification:
    if user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email is already verified"
        )

    # A new code invalidates any outstanding one
    verification = create_verification_code(db, user.id)

    if not queue_task_safely(
        send_verification_email_task,
        to_email=user.email,
        verification_code=verification.code,
        user_name=user.full_name
    ):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not send verification email. Please try again shortly."
        )
    return verification


def _sent(user: User, verification: EmailVerification, message: str) -> SendCodeResponse:
    return SendCodeResponse(
        success=True,
        message=message,
        sent_to=user.email,
        expires_at=verification.expires_at,
        expires_in_minutes=CODE_EXPIRATION_MINUTES
    )


@router.post("/send-verification-code", response_model=SendCodeResponse)
def send_verification_code(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Generate and send a verification code to the current user's email.

    Raises:
        HTTPException 400: User already verified
        HTTPException 503: Email could not be queued
    """
    verification = _send_code(db, current_user)
    logger.info(f"Verification code sent to user {current_user.email}")
    return _sent(current_user, verification, f"Verification code sent to {current_user.email}")


@router.post("/resend-verification-code", response_model=SendCodeResponse)
def resend_verification_code(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Resend a verification code. Generates a new code and invalidates the old one."""
    verification = _send_code(db, current_user)
    logger.info(f"Verification code resent to user {current_user.email}")
    return _sent(current_user, verification, f"New verification code sent to {current_user.email}")


@router.post("/verify-email", response_model=VerificationResponse)
def verify_email(
    request: VerifyCodeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Verify the user's email with a 6-digit code.

    A pending account becomes active on success.

    Raises:
        HTTPException 400: Wrong, expired or retired code
    """
    if current_user.is_verified:
        return VerificationResponse(
            success=True,
            message="Email is already verified",
            is_verified=True,
            account_status=current_user.status
        )

    success, message = verify_code(db, current_user.id, request.code)

    if not success:
        logger.info(f"Failed email verification for {current_user.email}: {message}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message
        )

    db.refresh(current_user)
    logger.info(f"User {current_user.email} successfully verified their email")

    return VerificationResponse(
        success=True,
        message=message,
        is_verified=True,
        account_status=current_user.status
    )


@router.get("/verification-status", response_model=VerificationStatusResponse)
def get_verification_status(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if current_user.is_verified:
        return VerificationStatusResponse(
            is_verified=True,
            account_status=current_user.status,
            message="Email is verified"
        )

    verification = get_active_verification(db, current_user.id)
    if verification is None:
        return VerificationStatusResponse(
            is_verified=False,
            account_status=current_user.status,
            message="Email not verified. Please request a verification code."
        )

    return VerificationStatusResponse(
        is_verified=False,
        account_status=current_user.status,
        message="Verification pending. Please check your email for the code.",
        code_expires_at=verification.expires_at,
        attempts_remaining=attempts_remaining(verification)
    )
