"""
Celery tasks for subscription housekeeping.
"""

import logging
from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(name="expire_subscriptions")
def expire_subscriptions_task():
    """Hourly: mark active subscriptions past their end date as expired."""
    from marketplace.core.database import SessionLocal
    from marketplace.crud.subscription import expire_lapsed

    db = SessionLocal()
    try:
        expired = expire_lapsed(db)
        if expired:
            logger.info(f"Expired {expired} lapsed subscriptions")
        return {"status": "success", "expired": expired}
    finally:
        db.close()
