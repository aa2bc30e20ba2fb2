"""
Vendor onboarding endpoints.

A signed-in, verified user submits a business profile; admins work the
review queue. Approval turns a customer account into a vendor account.
Applicants are emailed a receipt and the decision.
"""

import logging
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from marketplace.core.celery_utils import queue_task_safely
from marketplace.core.database import get_db
from marketplace.core.deps import get_admin_user, get_current_user, get_verified_user
from marketplace.crud import vendor_profile as vendor_crud
from marketplace.crud.property import page_count
from marketplace.models.user import User
from marketplace.models.vendor_profile import ApprovalStatus, VendorProfile
from marketplace.schemas.property import Page
from marketplace.schemas.vendor_profile import (
    VendorApplicationApprove,
    VendorApplicationOut,
    VendorApplicationReject,
    VendorApplicationStatus,
    VendorRegistration
)
from marketplace.tasks.email_tasks import send_vendor_application_email_task

router = APIRouter(prefix="/vendor-registration", tags=["Vendor Registration"])
logger = logging.getLogger(__name__)


def _application_or_404(db: Session, profile_id: UUID) -> VendorProfile:
    profile = vendor_crud.get_by_id(db, profile_id)
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vendor application not found")
    return profile


def _email_applicant(profile: VendorProfile, decision: Optional[str] = None, note: Optional[str] = None) -> None:
    applicant = profile.user
    if not queue_task_safely(
        send_vendor_application_email_task,
        to_email=applicant.email,
        application_id=profile.application_id,
        decision=decision,
        note=note,
        user_name=applicant.full_name
    ):
        logger.warning(f"Could not queue vendor application email for {applicant.email}")


@router.post("/register", status_code=201, response_model=VendorApplicationOut)
def register_vendor(
    data: VendorRegistration,
    current_user: User = Depends(get_verified_user),
    db: Session = Depends(get_db)
):
    """
    Submit a vendor application.

    Raises:
        HTTPException 409: The user already has an application
    """
    try:
        profile = vendor_crud.register(db, current_user, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    _email_applicant(profile)
    return profile


@router.get("/status", response_model=VendorApplicationStatus)
def get_registration_status(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    profile = vendor_crud.get_by_user(db, current_user.id)
    if profile is None:
        return VendorApplicationStatus(has_application=False)

    return VendorApplicationStatus(
        has_application=True,
        application_id=profile.application_id,
        company_name=profile.company_name,
        status=profile.approval_status,
        submitted_at=profile.submitted_at,
        reviewed_at=profile.reviewed_at,
        approval_notes=profile.approval_notes,
        rejection_reason=profile.rejection_reason,
        submitted_documents=len(profile.submitted_documents or []),
    )


@router.get("/admin/applications", response_model=Page[VendorApplicationOut])
def list_vendor_applications(
    status_filter: Optional[ApprovalStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    items, total = vendor_crud.list_applications(db, status_filter, skip=(page - 1) * limit, limit=limit)
    return Page[VendorApplicationOut](
        items=[VendorApplicationOut.model_validate(item) for item in items],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )


@router.post("/admin/applications/{profile_id}/approve", response_model=VendorApplicationOut)
def approve_vendor_application(
    profile_id: UUID,
    data: VendorApplicationApprove,
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    profile = _application_or_404(db, profile_id)
    try:
        profile = vendor_crud.approve(db, profile, admin_user, data.approval_notes)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    _email_applicant(profile, decision="approved", note=profile.approval_notes)
    return profile


@router.post("/admin/applications/{profile_id}/reject", response_model=VendorApplicationOut)
def reject_vendor_application(
    profile_id: UUID,
    data: VendorApplicationReject,
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    profile = _application_or_404(db, profile_id)
    try:
        profile = vendor_crud.reject(db, profile, admin_user, data.rejection_reason)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    _email_applicant(profile, decision="rejected", note=profile.rejection_reason)
    return profile
