"""
Core two-factor authentication logic.

Wraps pyotp (TOTP generation/verification) and qrcode (provisioning QR
image) around the TwoFactorAuth model.
"""

import base64
import io
import logging
import secrets
from typing import List, Optional, Tuple
import pyotp
import qrcode
from sqlalchemy.orm import Session

from marketplace.core.config import settings
from marketplace.core.encryption import secret_encryption
from marketplace.core.security import get_password_hash, verify_password
from marketplace.core.timeutils import utcnow
from marketplace.models.two_factor_auth import TwoFactorAuth
from marketplace.models.user import User

logger = logging.getLogger(__name__)

BACKUP_CODE_COUNT = 10


def get_two_factor(db: Session, user_id) -> Optional[TwoFactorAuth]:
    return db.query(TwoFactorAuth).filter(TwoFactorAuth.user_id == user_id).first()


def is_enabled_for(db: Session, user: User) -> bool:
    record = get_two_factor(db, user.id)
    return bool(record and record.is_enabled)


def generate_backup_codes(count: int = BACKUP_CODE_COUNT) -> List[str]:
    """Eight-character uppercase hex codes, e.g. "9F2A61C0"."""
    return [secrets.token_hex(4).upper() for _ in range(count)]


def _hash_backup_codes(codes: List[str]) -> List[dict]:
    return [{"code_hash": get_password_hash(code), "used": False, "used_at": None} for code in codes]


def build_qr_code(email: str, secret: str) -> Tuple[str, str]:
    """
    Build the otpauth:// provisioning URI and a PNG data URL of its QR code.

    Returns:
        Tuple[str, str]: (data_url, otpauth_url)
    """
    otpauth_url = pyotp.TOTP(secret).provisioning_uri(name=email, issuer_name=settings.TWO_FACTOR_ISSUER)
    img = qrcode.make(otpauth_url)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    data_url = "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("utf-8")
    return data_url, otpauth_url


def setup(db: Session, user: User) -> dict:
    """
    Start (or restart) 2FA setup for a user.

    Generates a fresh secret and backup codes. The record stays disabled
    until enable() verifies a code from the authenticator app.

    Raises:
        ValueError: If 2FA is already enabled
    """
    record = get_two_factor(db, user.id)
    if record and record.is_enabled:
        raise ValueError("2FA is already enabled. Disable it first to set up again.")

    secret = pyotp.random_base32(length=32)
    backup_codes = generate_backup_codes()

    if record is None:
        record = TwoFactorAuth(user_id=user.id)
        db.add(record)

    record.secret = secret_encryption.encrypt(secret)
    record.backup_codes = _hash_backup_codes(backup_codes)
    record.is_enabled = False
    record.enabled_at = None
    db.commit()

    qr_code, otpauth_url = build_qr_code(user.email, secret)
    logger.info(f"2FA setup initiated for {user.email}")

    return {
        "secret": secret,
        "otpauth_url": otpauth_url,
        "qr_code": qr_code,
        "backup_codes": backup_codes,
    }


def verify_token(record: TwoFactorAuth, token: Optional[str]) -> bool:
    """Check a 6-digit TOTP code against the stored secret."""
    token = (token or "").strip().replace(" ", "")
    if not token.isdigit():
        return False
    secret = secret_encryption.decrypt(record.secret)
    return bool(pyotp.TOTP(secret).verify(token, valid_window=settings.TOTP_VALID_WINDOW))


def verify_backup_code(record: TwoFactorAuth, code: Optional[str]) -> bool:
    """
    Consume a backup code. Codes are single use and compared case-insensitively.

    Marks the matching entry used on the record; caller commits.
    """
    code = (code or "").strip().upper()
    if not code:
        return False

    entries = [dict(entry) for entry in (record.backup_codes or [])]
    for entry in entries:
        if entry.get("used"):
            continue
        if verify_password(code, entry["code_hash"]):
            entry["used"] = True
            entry["used_at"] = utcnow().isoformat()
            # JSON columns only persist on reassignment
            record.backup_codes = entries
            return True
    return False


def enable(db: Session, user: User, token: str) -> TwoFactorAuth:
    """
    Turn on 2FA after verifying a code from the freshly scanned secret.

    Raises:
        LookupError: setup() was never called
        ValueError: already enabled, or the code is wrong
    """
    record = get_two_factor(db, user.id)
    if record is None:
        raise LookupError("2FA not set up. Please set up 2FA first.")
    if record.is_enabled:
        raise ValueError("2FA is already enabled")
    if not verify_token(record, token):
        raise ValueError("Invalid verification code. Please try again.")

    record.is_enabled = True
    record.enabled_at = utcnow()
    db.commit()
    logger.info(f"2FA enabled for {user.email}")
    return record


def verify_login(db: Session, user: User, code: Optional[str]) -> bool:
    """
    Second-factor check at login. Accepts a TOTP code or an unused backup code.

    Stamps last_used on success.
    """
    record = get_two_factor(db, user.id)
    if record is None or not record.is_enabled:
        return True

    if verify_token(record, code) or verify_backup_code(record, code):
        record.last_used = utcnow()
        db.commit()
        return True
    return False


def disable(db: Session, user: User, password: str, token: str) -> None:
    """
    Turn off 2FA. Requires the account password and a TOTP or backup code.

    Raises:
        PermissionError: wrong password
        ValueError: 2FA not enabled, or bad code
    """
    if not verify_password(password, user.hashed_password):
        raise PermissionError("Invalid password")

    record = get_two_factor(db, user.id)
    if record is None or not record.is_enabled:
        raise ValueError("2FA is not enabled")

    if not (verify_token(record, token) or verify_backup_code(record, token)):
        raise ValueError("Invalid 2FA code")

    record.is_enabled = False
    record.enabled_at = None
    db.commit()
    logger.info(f"2FA disabled for {user.email}")


def regenerate_backup_codes(db: Session, user: User, password: str, token: str) -> List[str]:
    """
    Replace all backup codes. Requires password and a current TOTP code.

    Raises:
        PermissionError: wrong password
        ValueError: 2FA not enabled, or bad code
    """
    if not verify_password(password, user.hashed_password):
        raise PermissionError("Invalid password")

    record = get_two_factor(db, user.id)
    if record is None or not record.is_enabled:
        raise ValueError("2FA is not enabled")
    if not verify_token(record, token):
        raise ValueError("Invalid 2FA code")

    codes = generate_backup_codes()
    record.backup_codes = _hash_backup_codes(codes)
    db.commit()
    logger.info(f"2FA backup codes regenerated for {user.email}")
    return codes


def status(db: Session, user: User) -> dict:
    record = get_two_factor(db, user.id)
    return {
        "is_enabled": bool(record and record.is_enabled),
        "method": record.method.value if record else None,
        "enabled_at": record.enabled_at if record else None,
        "last_used": record.last_used if record else None,
        "remaining_backup_codes": record.remaining_backup_codes if record else 0,
    }
