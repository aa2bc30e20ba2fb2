"""
Celery tasks for listing housekeeping.
"""

import logging
from celery import shared_task

from marketplace.core.celery_utils import queue_task_safely
from marketplace.tasks.email_tasks import send_free_listing_expired_email_task

logger = logging.getLogger(__name__)


def notify_free_listing_expired(db, db_property) -> None:
    """In-app alert plus an email telling the owner the listing was archived."""
    from marketplace.core.config import settings
    from marketplace.crud import notification as notification_crud
    from marketplace.models.notification import NotificationPriority, NotificationType, TargetAudience
    from marketplace.schemas.notification import AudienceFilters, NotificationCreate

    owner = db_property.owner
    data = NotificationCreate(
        title="Free Listing Expired",
        subject="Your free listing has expired",
        message=(
            f'Your free listing "{db_property.title}" has expired after {settings.FREE_LISTING_DAYS} days. '
            "Purchase a subscription to make it visible to customers again."
        ),
        type=NotificationType.ALERT,
        target_audience=TargetAudience.CUSTOM,
        audience_filters=AudienceFilters(user_ids=[owner.id]),
        tags=["free-listing-expiry"],
        priority=NotificationPriority.HIGH,
    )
    notification = notification_crud.create(db, data)
    notification_crud.send(db, notification)

    queue_task_safely(
        send_free_listing_expired_email_task,
        to_email=owner.email,
        property_title=db_property.title,
        user_name=owner.full_name
    )


@shared_task(name="expire_free_listings")
def expire_free_listings_task():
    """
    Daily: archive free listings whose visibility window has closed and
    tell their owners.

    A listing that fails to archive is rolled back and retried on the next run.
    """
    from sqlalchemy.exc import SQLAlchemyError
    from marketplace.core.database import SessionLocal
    from marketplace.crud import property as property_crud

    db = SessionLocal()
    archived = 0
    errors = 0
    try:
        for db_property in property_crud.get_expired_free_listings(db):
            property_id = db_property.id
            try:
                property_crud.archive(db, db_property, property_crud.FREE_LISTING_EXPIRED_REASON)
                notify_free_listing_expired(db, db_property)
            except SQLAlchemyError:
                db.rollback()
                logger.exception(f"Failed to archive free listing {property_id}")
                errors += 1
                continue

            logger.info(f"Archived free listing {property_id}: {db_property.title}")
            archived += 1

        if archived or errors:
            logger.info(f"Free listing expiry: {archived} archived, {errors} errors")
        return {"status": "success", "archived": archived, "errors": errors}
    finally:
        db.close()
