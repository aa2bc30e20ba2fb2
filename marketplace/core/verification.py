"""
Email verification code lifecycle.

Codes are generated with the secrets module, stored per user and checked
with an attempt counter so a code cannot be brute forced.
"""

import secrets
import uuid
from datetime import timedelta
from typing import Optional, Tuple
from sqlalchemy.orm import Session

from marketplace.core.timeutils import utcnow
from marketplace.models.email_verification import EmailVerification
from marketplace.models.user import User, UserStatus


CODE_EXPIRATION_MINUTES = 15
MAX_VERIFICATION_ATTEMPTS = 5
CODE_LENGTH = 6


def generate_verification_code() -> str:
    """Random numeric code, CODE_LENGTH digits."""
    return ''.join(secrets.choice('0123456789') for _ in range(CODE_LENGTH))


def create_verification_code(db: Session, user_id: uuid.UUID) -> EmailVerification:
    """
    Issue a new code for a user, retiring any code still outstanding.

    Returns:
        EmailVerification: The new record (code expires in 15 minutes)
    """
    db.query(EmailVerification).filter(
        EmailVerification.user_id == user_id,
        EmailVerification.is_used == False  # noqa: E712
    ).update({"is_used": True})

    verification = EmailVerification(
        user_id=user_id,
        code=generate_verification_code(),
        expires_at=utcnow() + timedelta(minutes=CODE_EXPIRATION_MINUTES),
        attempts=0,
        is_used=False
    )
    db.add(verification)
    db.commit()
    db.refresh(verification)
    return verification


def verify_code(db: Session, user_id: uuid.UUID, code: str) -> Tuple[bool, str]:
    """
    Check a guess against the user's outstanding code.

    Every guess counts against the code; after MAX_VERIFICATION_ATTEMPTS
    the code is retired and a new one must be requested. A pending account
    becomes active once its email is verified.

    Returns:
        Tuple[bool, str]: (success, message)
    """
    verification = get_active_verification(db, user_id)
    if verification is None:
        return False, "No active verification code. Please request a new code."

    verification.attempts += 1

    if not secrets.compare_digest(verification.code, code):
        remaining = attempts_remaining(verification)
        if remaining == 0:
            verification.is_used = True
            db.commit()
            return False, "Too many attempts. Please request a new code."
        db.commit()
        return False, f"Invalid verification code ({remaining} attempts left)"

    verification.is_used = True

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        db.commit()
        return False, "User not found"

    user.is_verified = True
    if user.status == UserStatus.PENDING:
        user.status = UserStatus.ACTIVE
    db.commit()

    return True, "Email verified successfully"


def attempts_remaining(verification: EmailVerification) -> int:
    return max(MAX_VERIFICATION_ATTEMPTS - (verification.attempts or 0), 0)


def cleanup_expired_codes(db: Session) -> int:
    """Delete codes older than a day. Returns rows deleted."""
    cutoff_time = utcnow() - timedelta(hours=24)
    deleted = db.query(EmailVerification).filter(
        EmailVerification.created_at < cutoff_time
    ).delete()
    db.commit()
    return deleted


def get_active_verification(db: Session, user_id: uuid.UUID) -> Optional[EmailVerification]:
    """Most recent unused, unexpired code for a user."""
    candidates = db.query(EmailVerification).filter(
        EmailVerification.user_id == user_id,
        EmailVerification.is_used == False  # noqa: E712
    ).order_by(EmailVerification.created_at.desc()).all()
    for verification in candidates:
        if not verification.is_expired():
            return verification
    return None
