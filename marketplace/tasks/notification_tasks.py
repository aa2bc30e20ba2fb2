"""
Celery tasks for notification campaigns: per-recipient email delivery and
the periodic dispatch of scheduled campaigns.
"""

import logging
from uuid import UUID
from celery import shared_task

from marketplace.core.celery_utils import queue_task_safely
from marketplace.services.email_service import email_service

logger = logging.getLogger(__name__)


def queue_email_deliveries(db, notification) -> int:
    """
    Queue one email per recipient for campaigns with the email channel.

    Returns:
        int: tasks queued successfully
    """
    from marketplace.crud import notification as notification_crud

    queued = 0
    for user_id, _email in notification_crud.email_recipients(db, notification):
        if queue_task_safely(deliver_notification_email_task, str(notification.id), str(user_id)):
            queued += 1
    if queued:
        logger.info(f"Queued {queued} emails for notification {notification.id}")
    return queued


@shared_task(
    bind=True,
    name="deliver_notification_email_task",
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(RuntimeError,),
    retry_backoff=True,
    retry_jitter=True
)
def deliver_notification_email_task(self, notification_id: str, user_id: str):
    """Email one recipient and mark the recipient row delivered."""
    from marketplace.core.database import SessionLocal
    from marketplace.crud import notification as notification_crud
    from marketplace.models.user import User

    db = SessionLocal()
    try:
        notification = notification_crud.get_by_id(db, UUID(notification_id))
        recipient = notification_crud.get_recipient(db, UUID(notification_id), UUID(user_id))
        user = db.query(User).filter(User.id == UUID(user_id)).first()
        if notification is None or recipient is None or user is None:
            logger.warning(f"Skipping email for notification {notification_id} / user {user_id}: not found")
            return {"status": "skipped"}

        success = email_service.send_notification_email(
            to_email=user.email,
            subject=notification.subject,
            title=notification.title,
            message=notification.message,
        )
        if not success:
            raise RuntimeError(f"Failed to email notification {notification_id} to {user.email}")

        notification_crud.mark_delivered(db, recipient)
        return {"status": "success", "email": user.email}
    finally:
        db.close()


@shared_task(name="dispatch_scheduled_notifications")
def dispatch_scheduled_notifications_task():
    """
    Send every scheduled campaign whose time has come.

    One failing campaign is marked failed and does not stop the others.
    """
    from sqlalchemy.exc import SQLAlchemyError
    from marketplace.core.database import SessionLocal
    from marketplace.crud import notification as notification_crud
    from marketplace.models.notification import NotificationStatus

    db = SessionLocal()
    sent = 0
    failed = 0
    try:
        for notification in notification_crud.get_due_scheduled(db):
            logger.info(f"Dispatching scheduled notification {notification.id}: {notification.subject}")
            try:
                notification = notification_crud.send(db, notification)
            except SQLAlchemyError as e:
                db.rollback()
                logger.exception(f"Failed to dispatch notification {notification.id}")
                notification = notification_crud.get_by_id(db, notification.id)
                if notification is not None and notification.can_transition_to(NotificationStatus.SENDING):
                    notification.transition_to(NotificationStatus.SENDING)
                    notification.transition_to(NotificationStatus.FAILED)
                    notification.failure_reason = str(e)[:250]
                    db.commit()
                failed += 1
                continue

            if notification.status == NotificationStatus.SENT:
                queue_email_deliveries(db, notification)
                sent += 1
            else:
                failed += 1

        if sent or failed:
            logger.info(f"Scheduled notifications dispatched: {sent} sent, {failed} failed")
        return {"status": "success", "sent": sent, "failed": failed}
    finally:
        db.close()
