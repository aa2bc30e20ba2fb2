"""
Listing promotion endpoints.

Vendors request a promotion for one of their properties; admins approve
or reject. Approving a featured promotion marks the property featured.
"""

import logging
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from marketplace.core.database import get_db
from marketplace.core.deps import get_admin_user, get_vendor_user
from marketplace.crud import promotion as promotion_crud
from marketplace.crud import property as property_crud
from marketplace.crud.property import page_count
from marketplace.models.promotion_request import PromotionRequest, PromotionStatus
from marketplace.models.user import User
from marketplace.schemas.promotion import PromotionApprove, PromotionCreate, PromotionOut, PromotionReject
from marketplace.schemas.property import Page

router = APIRouter(prefix="/promotions", tags=["Promotions"])
logger = logging.getLogger(__name__)


def _request_or_404(db: Session, request_id: UUID) -> PromotionRequest:
    request = promotion_crud.get_by_id(db, request_id)
    if not request:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Promotion request not found")
    return request


@router.post("", status_code=201, response_model=PromotionOut)
def create_promotion_request(
    data: PromotionCreate,
    current_user: User = Depends(get_vendor_user),
    db: Session = Depends(get_db)
):
    db_property = property_crud.get_by_id(db, data.property_id)
    if not db_property:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Property not found")

    try:
        return promotion_crud.create(db, current_user, db_property, data)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.get("/mine", response_model=List[PromotionOut])
def list_my_promotion_requests(
    status_filter: Optional[PromotionStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_vendor_user),
    db: Session = Depends(get_db)
):
    return promotion_crud.list_for_vendor(db, current_user.id, status_filter)


@router.post("/{request_id}/cancel", response_model=PromotionOut)
def cancel_promotion_request(
    request_id: UUID,
    current_user: User = Depends(get_vendor_user),
    db: Session = Depends(get_db)
):
    request = _request_or_404(db, request_id)
    if request.vendor_id != current_user.id and not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to cancel this request")
    try:
        return promotion_crud.cancel(db, request)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/admin/all", response_model=Page[PromotionOut])
def admin_list_promotion_requests(
    status_filter: Optional[PromotionStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    items, total = promotion_crud.admin_list(db, status_filter, skip=(page - 1) * limit, limit=limit)
    return Page[PromotionOut](
        items=[PromotionOut.model_validate(item) for item in items],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )


@router.post("/{request_id}/approve", response_model=PromotionOut)
def approve_promotion_request(
    request_id: UUID,
    data: PromotionApprove,
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Approve a pending request; it is active at once if its start date has passed."""
    request = _request_or_404(db, request_id)
    try:
        return promotion_crud.approve(db, request, admin_user, data.approval_notes, data.start_date)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/{request_id}/reject", response_model=PromotionOut)
def reject_promotion_request(
    request_id: UUID,
    data: PromotionReject,
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    request = _request_or_404(db, request_id)
    try:
        return promotion_crud.reject(db, request, admin_user, data.rejection_reason)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
