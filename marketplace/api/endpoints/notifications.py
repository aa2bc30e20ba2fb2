"""
Notification campaign endpoints.

Admins compose, schedule and send campaigns. Recipients read them in their
inbox and report opens and clicks, which feed the campaign statistics.
"""

import logging
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from marketplace.core.database import get_db
from marketplace.core.deps import get_admin_user, get_current_user
from marketplace.crud import notification as notification_crud
from marketplace.crud.property import page_count
from marketplace.models.notification import Notification, NotificationStatus
from marketplace.models.user import User
from marketplace.schemas.notification import (
    InboxItem,
    NotificationCreate,
    NotificationOut,
    NotificationOverview,
    NotificationStatisticsOut,
    NotificationUpdate,
    ScheduleRequest
)
from marketplace.schemas.property import Page
from marketplace.tasks.notification_tasks import queue_email_deliveries

router = APIRouter(prefix="/notifications", tags=["Notifications"])
logger = logging.getLogger(__name__)


def _notification_or_404(db: Session, notification_id: UUID) -> Notification:
    notification = notification_crud.get_by_id(db, notification_id)
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return notification


# Recipient side

@router.get("/inbox", response_model=List[InboxItem])
def get_inbox(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """In-app notifications sent to the current user, newest first."""
    return [
        InboxItem(
            notification_id=notification.id,
            title=notification.title,
            message=notification.message,
            type=notification.type,
            priority=notification.priority,
            sent_at=notification.sent_at,
            opened=recipient.opened,
            clicked=recipient.clicked,
        )
        for notification, recipient in notification_crud.inbox(db, current_user.id, skip, limit)
    ]


@router.post("/{notification_id}/open", status_code=204)
def mark_opened(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    recipient = notification_crud.get_recipient(db, notification_id, current_user.id)
    if not recipient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    notification_crud.mark_opened(db, recipient)


@router.post("/{notification_id}/click", status_code=204)
def mark_clicked(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    recipient = notification_crud.get_recipient(db, notification_id, current_user.id)
    if not recipient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    notification_crud.mark_clicked(db, recipient)


# Admin side

@router.post("", status_code=201, response_model=NotificationOut)
def create_notification(
    data: NotificationCreate,
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Save a campaign as a draft, or scheduled when scheduled_date is set."""
    try:
        notification = notification_crud.create(db, data, admin_user)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(f"Notification {notification.id} created by {admin_user.email} ({notification.status.value})")
    return notification


@router.get("", response_model=Page[NotificationOut])
def list_notifications(
    status_filter: Optional[NotificationStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    items, total = notification_crud.list_notifications(db, status_filter, skip=(page - 1) * limit, limit=limit)
    return Page[NotificationOut](
        items=[NotificationOut.model_validate(item) for item in items],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )


@router.get("/overview", response_model=NotificationOverview)
def notifications_overview(
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return notification_crud.overview(db)


@router.get("/{notification_id}", response_model=NotificationOut)
def get_notification(
    notification_id: UUID,
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return _notification_or_404(db, notification_id)


@router.get("/{notification_id}/statistics", response_model=NotificationStatisticsOut)
def get_notification_statistics(
    notification_id: UUID,
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """
    Delivery funnel for one campaign.

    delivery_rate = delivered / recipients, open_rate = opened / delivered,
    click_rate = clicked / opened, as percentages; 0 when the base is 0.
    """
    return _notification_or_404(db, notification_id).statistics


@router.patch("/{notification_id}", response_model=NotificationOut)
def update_notification(
    notification_id: UUID,
    updates: NotificationUpdate,
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    notification = _notification_or_404(db, notification_id)
    try:
        return notification_crud.update(db, notification, updates.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/{notification_id}/schedule", response_model=NotificationOut)
def schedule_notification(
    notification_id: UUID,
    request: ScheduleRequest,
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    notification = _notification_or_404(db, notification_id)
    try:
        return notification_crud.schedule(db, notification, request.scheduled_date)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/{notification_id}/cancel", response_model=NotificationOut)
def cancel_notification(
    notification_id: UUID,
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    notification = _notification_or_404(db, notification_id)
    try:
        return notification_crud.cancel(db, notification)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/{notification_id}/send", response_model=NotificationOut)
def send_notification(
    notification_id: UUID,
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """
    Send a draft or scheduled campaign now.

    In-app and push deliveries are recorded immediately; emails are queued
    per recipient. A campaign with no matching users ends up failed.
    """
    notification = _notification_or_404(db, notification_id)
    try:
        notification = notification_crud.send(db, notification, sent_by=admin_user)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if notification.status == NotificationStatus.SENT:
        queue_email_deliveries(db, notification)
    return notification
