"""
CRUD operations for listing promotion requests.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from uuid import UUID
from sqlalchemy.orm import Session

from marketplace.core.timeutils import as_utc, utcnow
from marketplace.models.promotion_request import (
    PromotionRequest, PromotionStatus, PromotionType, duration_in_days
)
from marketplace.models.property import Property
from marketplace.models.user import User
from marketplace.schemas.promotion import PromotionCreate

logger = logging.getLogger(__name__)


def create(db: Session, vendor: User, db_property: Property, data: PromotionCreate) -> PromotionRequest:
    """
    Raises:
        PermissionError: vendor does not own the property
        ValueError: a pending or active request of the same type exists
    """
    if db_property.owner_id != vendor.id and not vendor.is_admin:
        raise PermissionError("You can only promote your own properties")

    duplicate = db.query(PromotionRequest).filter(
        PromotionRequest.property_id == db_property.id,
        PromotionRequest.promotion_type == data.promotion_type,
        PromotionRequest.status.in_([PromotionStatus.PENDING, PromotionStatus.APPROVED, PromotionStatus.ACTIVE])
    ).first()
    if duplicate:
        raise ValueError(f"A {data.promotion_type.value} promotion is already pending or active for this property")

    request = PromotionRequest(
        property_id=db_property.id,
        vendor_id=vendor.id,
        promotion_type=data.promotion_type,
        duration=duration_in_days(data.requested_start_date, data.requested_end_date),
        requested_start_date=data.requested_start_date,
        requested_end_date=data.requested_end_date,
        cost=data.cost,
        status=PromotionStatus.PENDING,
        metrics={"impressions": 0, "clicks": 0, "inquiries": 0},
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    logger.info(f"Promotion request {request.id} ({request.promotion_type.value}) created by {vendor.email}")
    return request


def get_by_id(db: Session, request_id: UUID) -> Optional[PromotionRequest]:
    return db.query(PromotionRequest).filter(PromotionRequest.id == request_id).first()


def list_for_vendor(db: Session, vendor_id: UUID, status: Optional[PromotionStatus] = None) -> List[PromotionRequest]:
    query = db.query(PromotionRequest).filter(PromotionRequest.vendor_id == vendor_id)
    if status:
        query = query.filter(PromotionRequest.status == status)
    return query.order_by(PromotionRequest.created_at.desc()).all()


def admin_list(db: Session, status: Optional[PromotionStatus] = None,
               skip: int = 0, limit: int = 50) -> Tuple[List[PromotionRequest], int]:
    query = db.query(PromotionRequest)
    if status:
        query = query.filter(PromotionRequest.status == status)
    total = query.count()
    items = query.order_by(PromotionRequest.created_at.desc()).offset(skip).limit(limit).all()
    return items, total


def cancel(db: Session, request: PromotionRequest) -> PromotionRequest:
    """
    Raises:
        ValueError: only pending requests can be cancelled
    """
    if request.status != PromotionStatus.PENDING:
        raise ValueError("Only pending promotion requests can be cancelled")
    request.status = PromotionStatus.CANCELLED
    db.commit()
    db.refresh(request)
    return request


def approve(db: Session, request: PromotionRequest, admin: User, notes: Optional[str] = None,
            start_date: Optional[datetime] = None) -> PromotionRequest:
    """
    Approve a pending request. The promotion runs for the requested
    duration from start_date (default: requested start). A featured
    promotion marks the property featured.

    Raises:
        ValueError: request is not pending
    """
    if request.status != PromotionStatus.PENDING:
        raise ValueError("Only pending promotion requests can be approved")

    now = utcnow()
    start = as_utc(start_date) if start_date else as_utc(request.requested_start_date)
    request.actual_start_date = start
    request.actual_end_date = start + timedelta(days=request.duration)
    request.status = PromotionStatus.ACTIVE if start <= now else PromotionStatus.APPROVED
    request.approval_notes = notes
    request.reviewed_by = admin.id
    request.reviewed_at = now

    if request.promotion_type == PromotionType.FEATURED:
        request.property.featured = True

    db.commit()
    db.refresh(request)
    logger.info(f"Promotion request {request.id} approved by {admin.email}")
    return request


def reject(db: Session, request: PromotionRequest, admin: User, reason: str) -> PromotionRequest:
    """
    Raises:
        ValueError: request is not pending
    """
    if request.status != PromotionStatus.PENDING:
        raise ValueError("Only pending promotion requests can be rejected")
    request.status = PromotionStatus.REJECTED
    request.rejection_reason = reason
    request.reviewed_by = admin.id
    request.reviewed_at = utcnow()
    db.commit()
    db.refresh(request)
    logger.info(f"Promotion request {request.id} rejected by {admin.email}")
    return request
