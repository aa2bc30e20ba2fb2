"""
Celery tasks for transactional and security emails.

Each send task retries with exponential backoff when SES refuses the message.
"""

import logging
from typing import Optional
from celery import shared_task
from marketplace.services.email_service import email_service

logger = logging.getLogger(__name__)

RETRY_OPTIONS = dict(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(RuntimeError,),
    retry_backoff=True,
    retry_backoff_max=600,  # Max 10 minutes between retries
    retry_jitter=True,
)


def _ensure_sent(task, success: bool, what: str, to_email: str) -> dict:
    if not success:
        if task.request.retries >= task.max_retries:
            logger.error(f"All retry attempts exhausted for {what} to {to_email}")
        raise RuntimeError(f"Failed to send {what} to {to_email}")
    logger.info(f"{what.capitalize()} sent successfully to {to_email}")
    return {"status": "success", "email": to_email}


@shared_task(name="send_verification_email_task", **RETRY_OPTIONS)
def send_verification_email_task(self, to_email: str, verification_code: str, user_name: Optional[str] = None):
    logger.info(f"Sending verification email to {to_email} (attempt {self.request.retries + 1})")
    success = email_service.send_verification_email(
        to_email=to_email,
        verification_code=verification_code,
        user_name=user_name
    )
    return _ensure_sent(self, success, "verification email", to_email)


@shared_task(name="send_password_reset_email_task", **RETRY_OPTIONS)
def send_password_reset_email_task(self, to_email: str, reset_token: str, user_name: Optional[str] = None):
    success = email_service.send_password_reset_email(
        to_email=to_email,
        reset_token=reset_token,
        user_name=user_name
    )
    return _ensure_sent(self, success, "password reset email", to_email)


@shared_task(name="send_lockout_alert_task", **RETRY_OPTIONS)
def send_lockout_alert_task(self, to_email: str, locked_minutes: int, ip_address: str):
    """Alert the account owner that repeated failures locked their login."""
    success = email_service.send_lockout_alert(
        to_email=to_email,
        locked_minutes=locked_minutes,
        ip_address=ip_address
    )
    return _ensure_sent(self, success, "lockout alert", to_email)


@shared_task(name="send_two_factor_alert_task", **RETRY_OPTIONS)
def send_two_factor_alert_task(self, to_email: str, enabled: bool, user_name: Optional[str] = None):
    success = email_service.send_two_factor_alert(
        to_email=to_email,
        enabled=enabled,
        user_name=user_name
    )
    return _ensure_sent(self, success, "two-factor alert", to_email)


@shared_task(name="cleanup_expired_verification_codes")
def cleanup_expired_verification_codes_task():
    """Daily sweep of verification codes older than 24 hours (see beat_schedule)."""
    from marketplace.core.database import SessionLocal
    from marketplace.core.verification import cleanup_expired_codes

    db = SessionLocal()
    try:
        deleted_count = cleanup_expired_codes(db)
        logger.info(f"Cleaned up {deleted_count} expired verification codes")
        return {"status": "success", "deleted_count": deleted_count}
    finally:
        db.close()


@shared_task(name="send_free_listing_expired_email_task", **RETRY_OPTIONS)
def send_free_listing_expired_email_task(self, to_email: str, property_title: str, user_name: Optional[str] = None):
    success = email_service.send_free_listing_expired_email(
        to_email=to_email,
        property_title=property_title,
        user_name=user_name
    )
    return _ensure_sent(self, success, "free listing expiry email", to_email)


@shared_task(name="send_vendor_application_email_task", **RETRY_OPTIONS)
def send_vendor_application_email_task(self, to_email: str, application_id: str, decision: Optional[str] = None,
                                       note: Optional[str] = None, user_name: Optional[str] = None):
    """Receipt (decision None) or approval/rejection notice for a vendor application."""
    success = email_service.send_vendor_application_email(
        to_email=to_email,
        application_id=application_id,
        decision=decision,
        note=note,
        user_name=user_name
    )
    return _ensure_sent(self, success, "vendor application email", to_email)
