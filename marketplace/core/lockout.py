"""
Login lockout tracker.

Decides, per (email, ip_address) pair, whether a login attempt must be
rejected because of earlier failures, and maintains the failure count.

The predicates here are pure. Clearing an expired lock is a separate,
explicit mutation (reset_lock); check_lock is the one place that combines
the two and persists the result.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy.orm import Session

from marketplace.core.timeutils import as_utc, utcnow
from marketplace.models.login_attempt import LoginAttempt

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_attempt(db: Session, email: str, ip_address: str) -> Optional[LoginAttempt]:
    """Fetch the bookkeeping row for an (email, ip) pair, if any."""
    return db.query(LoginAttempt).filter(
        LoginAttempt.email == normalize_email(email),
        LoginAttempt.ip_address == ip_address
    ).first()


def is_currently_locked(record: Optional[LoginAttempt], now: Optional[datetime] = None) -> bool:
    """
    True while the record is locked and locked_until is still in the future.

    Does not modify the record; an expired lock reads as unlocked here and is
    cleared by check_lock / reset_lock.
    """
    if record is None or not record.is_locked or record.locked_until is None:
        return False
    now = as_utc(now) if now else utcnow()
    return as_utc(record.locked_until) > now


def is_lock_expired(record: Optional[LoginAttempt], now: Optional[datetime] = None) -> bool:
    """True when the record is flagged locked but locked_until has passed."""
    if record is None or not record.is_locked or record.locked_until is None:
        return False
    now = as_utc(now) if now else utcnow()
    return as_utc(record.locked_until) <= now


def reset_lock(record: LoginAttempt) -> None:
    """Return the record to its unlocked defaults. Caller persists."""
    record.is_locked = False
    record.locked_until = None
    record.attempts = 0


def get_remaining_lock_time(record: Optional[LoginAttempt], now: Optional[datetime] = None) -> int:
    """Whole minutes until locked_until, rounded up; 0 once it has passed."""
    if record is None or record.locked_until is None:
        return 0
    now = as_utc(now) if now else utcnow()
    seconds = (as_utc(record.locked_until) - now).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / 60)


def check_lock(db: Session, record: Optional[LoginAttempt], now: Optional[datetime] = None) -> bool:
    """
    Lock check used by the login flow.

    Clears and commits an expired lock before answering, so a lock that has
    run out also forgets the failures that caused it.

    Returns:
        bool: True if the pair is locked right now
    """
    if record is None:
        return False
    now = as_utc(now) if now else utcnow()

    if is_lock_expired(record, now):
        reset_lock(record)
        db.commit()
        logger.info(f"Lock expired and cleared for {record.email} from {record.ip_address}")
        return False

    return is_currently_locked(record, now)


def record_failure(
    db: Session,
    email: str,
    ip_address: str,
    user_agent: Optional[str],
    max_attempts: int,
    lockout_minutes: int,
    now: Optional[datetime] = None,
    auto_lock: bool = True
) -> LoginAttempt:
    """
    Count one failed login for (email, ip_address).

    Creates the row on the first failure. Once attempts reaches max_attempts
    the pair is locked for lockout_minutes. Never raises for a lockout; the
    caller inspects the returned record.
    """
    now = as_utc(now) if now else utcnow()
    email = normalize_email(email)

    record = get_attempt(db, email, ip_address)
    if record is None:
        record = LoginAttempt(
            email=email,
            ip_address=ip_address,
            attempts=0,
            is_locked=False
        )
        db.add(record)

    record.attempts = (record.attempts or 0) + 1
    record.last_attempt = now
    if user_agent:
        record.user_agent = user_agent[:512]

    if auto_lock and record.attempts >= max_attempts:
        record.is_locked = True
        record.locked_until = now + timedelta(minutes=lockout_minutes)
        logger.warning(
            f"Login locked for {email} from {ip_address} after {record.attempts} failed attempts "
            f"(until {record.locked_until.isoformat()})"
        )

    db.commit()
    db.refresh(record)
    return record


def clear_attempts(db: Session, email: str, ip_address: Optional[str] = None) -> int:
    """
    Reset failure bookkeeping.

    With ip_address: the single pair (successful login).
    Without: every pair for the email (administrative unlock).

    Returns:
        int: Number of rows reset
    """
    query = db.query(LoginAttempt).filter(LoginAttempt.email == normalize_email(email))
    if ip_address is not None:
        query = query.filter(LoginAttempt.ip_address == ip_address)

    records = query.all()
    for record in records:
        reset_lock(record)
        record.last_attempt = None
    db.commit()
    return len(records)


def get_locked_attempts(db: Session, now: Optional[datetime] = None) -> List[LoginAttempt]:
    """All pairs whose lock is still running."""
    now = as_utc(now) if now else utcnow()
    records = db.query(LoginAttempt).filter(LoginAttempt.is_locked == True).all()  # noqa: E712
    return [r for r in records if is_currently_locked(r, now)]
