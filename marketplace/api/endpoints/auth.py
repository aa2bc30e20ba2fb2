"""
Authentication endpoints for registration, login, tokens and password reset.

Implements JWT-based stateless authentication:
- POST /register: Create new account (pending until email verified)
- POST /login: Authenticate with lockout tracking and optional 2FA
- POST /refresh: New token pair from a refresh token
- GET /me, PATCH /me, DELETE /me: Current user profile
- POST /forgot-password, /reset-password: Password reset by emailed token
"""

import logging
import secrets
import uuid
from datetime import timedelta
from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, Request, status
from jose import JWTError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.core import lockout
from marketplace.core import two_factor
from marketplace.core.celery_utils import queue_task_safely
from marketplace.core.database import get_db
from marketplace.core.deps import get_current_user, get_client_ip
from marketplace.core.security import verify_password, get_password_hash, create_access_token, create_refresh_token, decode_token
from marketplace.core.timeutils import as_utc, utcnow
from marketplace.core.verification import create_verification_code
from marketplace.crud import platform_settings as settings_crud
from marketplace.crud import user as user_crud
from marketplace.models.user import User
from marketplace.schemas.settings import SecuritySettings
from marketplace.schemas.user import (
    UserRegisterRequest,
    UserLoginRequest,
    TokenResponse,
    TokenRefreshRequest,
    UserResponse,
    UserProfileUpdate,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    MessageResponse
)
from marketplace.tasks.email_tasks import (
    send_verification_email_task,
    send_password_reset_email_task,
    send_lockout_alert_task
)

router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = logging.getLogger(__name__)

RESET_TOKEN_TTL = timedelta(hours=1)


def _issue_tokens(user: User, session_minutes: int) -> TokenResponse:
    """Access token lives for the platform session timeout."""
    claims = {"sub": str(user.id), "role": user.role.value}
    access_token = create_access_token(data=claims, expires_delta=timedelta(minutes=session_minutes))
    refresh_token = create_refresh_token(data={"sub": str(user.id)})
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=session_minutes * 60
    )


def _locked_exception(minutes: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_423_LOCKED,
        detail=f"Account temporarily locked due to too many failed login attempts. Try again in {minutes} minutes.",
        headers={"Retry-After": str(minutes * 60)},
    )


def _reject_login(
    db: Session,
    email: str,
    ip_address: str,
    user_agent: Optional[str],
    security: SecuritySettings,
    user: Optional[User],
    detail: str = "Incorrect email or password"
):
    """Count the failure, alert the owner if it just locked, and raise."""
    record = lockout.record_failure(
        db,
        email=email,
        ip_address=ip_address,
        user_agent=user_agent,
        max_attempts=security.max_login_attempts,
        lockout_minutes=security.lockout_duration,
        auto_lock=security.auto_lock_account
    )

    if lockout.is_currently_locked(record):
        if user is not None:
            queue_task_safely(
                send_lockout_alert_task,
                to_email=user.email,
                locked_minutes=security.lockout_duration,
                ip_address=ip_address
            )
        raise _locked_exception(lockout.get_remaining_lock_time(record))

    remaining = security.max_login_attempts - record.attempts
    logger.info(f"Failed login for {email} from {ip_address} ({record.attempts} attempts, {max(remaining, 0)} left)")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.post("/register", status_code=201, response_model=TokenResponse)
def register(
    request: UserRegisterRequest,
    db: Session = Depends(get_db)
):
    """
    Register a new account.

    The account starts pending; a 6-digit verification code is emailed.
    Returns JWT tokens so the client can show the verification screen.
    """
    general = settings_crud.get_general(db)
    security = settings_crud.get_security(db)

    if not general.registration_enabled:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Registration is currently disabled"
        )

    if len(request.password) < security.password_min_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {security.password_min_length} characters long"
        )

    existing_user = user_crud.get_by_email(db, request.email)
    if existing_user and not existing_user.is_guest:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered"
        )

    new_user = user_crud.create(db, request)
    logger.info(f"New user registered: {new_user.email} (role: {new_user.role.value})")

    verification = create_verification_code(db, new_user.id)
    success = queue_task_safely(
        send_verification_email_task,
        to_email=new_user.email,
        verification_code=verification.code,
        user_name=new_user.full_name
    )
    if success:
        logger.info(f"Verification email queued for {new_user.email}")
    else:
        logger.error(f"Failed to queue verification email for {new_user.email}")

    return _issue_tokens(new_user, security.session_timeout)


@router.post("/login", response_model=TokenResponse)
def login(
    credentials: UserLoginRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Authenticate and return JWT tokens.

    Failures are counted per (email, client IP). Once the platform's
    max_login_attempts is reached the pair is locked for lockout_duration
    minutes and every attempt gets 423 until the lock runs out.

    When the account has 2FA enabled, two_factor_code must carry a TOTP or
    backup code; a missing code is not counted as a failure.
    """
    email = lockout.normalize_email(credentials.email)
    ip_address = get_client_ip(request)
    user_agent = request.headers.get("user-agent")
    security = settings_crud.get_security(db)

    record = lockout.get_attempt(db, email, ip_address)
    if lockout.check_lock(db, record):
        minutes = lockout.get_remaining_lock_time(record)
        logger.warning(f"Rejected login for locked {email} from {ip_address} ({minutes} min left)")
        raise _locked_exception(minutes)

    user = user_crud.get_by_email(db, email)
    if not user or user.is_guest or not verify_password(credentials.password, user.hashed_password):
        _reject_login(db, email, ip_address, user_agent, security, user)

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive. Please contact support."
        )

    if two_factor.is_enabled_for(db, user):
        if not credentials.two_factor_code:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Two-factor authentication code required",
                headers={"X-2FA-Required": "true"},
            )
        if not two_factor.verify_login(db, user, credentials.two_factor_code):
            _reject_login(db, email, ip_address, user_agent, security, user, detail="Invalid two-factor authentication code")

    lockout.clear_attempts(db, email, ip_address)

    user.last_login_at = utcnow()
    db.commit()

    logger.info(f"User logged in: {user.email} (verified: {user.is_verified})")
    return _issue_tokens(user, security.session_timeout)


@router.post("/refresh", response_model=TokenResponse)
def refresh_token(
    request: TokenRefreshRequest,
    db: Session = Depends(get_db)
):
    """
    Exchange a refresh token for a new token pair.

    Access tokens are rejected here; refresh tokens are rejected everywhere else.
    """
    invalid = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired refresh token"
    )

    try:
        payload = decode_token(request.refresh_token)
        user_id = payload.get("sub")
        token_type = payload.get("type")
        if user_id is None or token_type != "refresh":
            raise invalid
        user = user_crud.get_by_id(db, uuid.UUID(user_id))
    except (JWTError, ValueError) as e:
        logger.error(f"Token refresh error: {e}")
        raise invalid

    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive"
        )

    return _issue_tokens(user, settings_crud.get_security(db).session_timeout)


@router.get("/me", response_model=UserResponse)
def get_current_user_profile(
    current_user: User = Depends(get_current_user)
):
    """Current authenticated user's profile."""
    return current_user


@router.patch("/me", response_model=UserResponse)
def update_current_user_profile(
    updates: UserProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    for field, value in updates.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)
    db.commit()
    db.refresh(current_user)
    return current_user


@router.delete("/me", response_model=MessageResponse)
def delete_current_user(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Delete the current user's account.

    Listings, subscriptions and 2FA data are removed with it. Irreversible.
    """
    user_email = current_user.email
    try:
        user_crud.delete_account(db, current_user)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting user {user_email}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete account"
        )

    lockout.clear_attempts(db, user_email)
    logger.info(f"User account deleted: {user_email}")
    return MessageResponse(message="Account deleted successfully")


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    request: ForgotPasswordRequest,
    db: Session = Depends(get_db)
):
    """
    Email a password reset token valid for one hour.

    Always returns the same message so the endpoint cannot be used to discover
    which emails have accounts.
    """
    if not settings_crud.get_security(db).allow_password_reset:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Password reset is disabled. Please contact support."
        )

    success_message = MessageResponse(
        message="If an account with that email exists, a password reset link has been sent."
    )

    user = user_crud.get_by_email(db, request.email)
    if not user or user.is_guest:
        logger.info(f"Password reset requested for unknown email: {request.email}")
        return success_message

    reset_token = secrets.token_urlsafe(32)
    user.reset_token = reset_token
    user.reset_token_expires_at = utcnow() + RESET_TOKEN_TTL

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error generating password reset token for {request.email}: {e}")
        return success_message

    if queue_task_safely(
        send_password_reset_email_task,
        to_email=user.email,
        reset_token=reset_token,
        user_name=user.full_name
    ):
        logger.info(f"Password reset email queued for {user.email}")
    else:
        logger.error(f"Failed to queue password reset email for {user.email}")

    return success_message


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    request: ResetPasswordRequest,
    db: Session = Depends(get_db)
):
    """
    Set a new password with a reset token.

    A successful reset also clears any login lockout for the account.
    """
    security = settings_crud.get_security(db)
    if not security.allow_password_reset:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Password reset is disabled. Please contact support."
        )

    user = db.query(User).filter(User.reset_token == request.token).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token"
        )

    if not user.reset_token_expires_at or as_utc(user.reset_token_expires_at) < utcnow():
        user.reset_token = None
        user.reset_token_expires_at = None
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Reset token has expired. Please request a new password reset."
        )

    if len(request.new_password) < security.password_min_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {security.password_min_length} characters long"
        )

    user.hashed_password = get_password_hash(request.new_password)
    user.reset_token = None
    user.reset_token_expires_at = None

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error resetting password for user {user.email}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reset password. Please try again."
        )

    lockout.clear_attempts(db, user.email)
    logger.info(f"Password successfully reset for user: {user.email}")
    return MessageResponse(message="Password has been reset successfully. You can now login with your new password.")
