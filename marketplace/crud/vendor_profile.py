"""
CRUD operations for vendor onboarding applications.
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID
from sqlalchemy.orm import Session

from marketplace.core.timeutils import as_utc, utcnow
from marketplace.models.user import User, UserRole
from marketplace.models.vendor_profile import ApprovalStatus, VendorProfile
from marketplace.schemas.vendor_profile import VendorRegistration

logger = logging.getLogger(__name__)


def get_by_id(db: Session, profile_id: UUID) -> Optional[VendorProfile]:
    return db.query(VendorProfile).filter(VendorProfile.id == profile_id).first()


def get_by_user(db: Session, user_id: UUID) -> Optional[VendorProfile]:
    return db.query(VendorProfile).filter(VendorProfile.user_id == user_id).first()


def register(db: Session, user: User, data: VendorRegistration, now: Optional[datetime] = None) -> VendorProfile:
    """
    Submit a business profile for review.

    Raises:
        ValueError: the user already has a vendor profile
    """
    if get_by_user(db, user.id):
        raise ValueError("Vendor profile already exists for this user")

    payload = data.model_dump(exclude={"documents", "office_address"})
    profile = VendorProfile(
        user_id=user.id,
        office_address=data.office_address.model_dump() if data.office_address else None,
        submitted_documents=[document.model_dump() for document in data.documents],
        approval_status=ApprovalStatus.PENDING,
        submitted_at=as_utc(now) if now else utcnow(),
        **payload
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    logger.info(f"Vendor application {profile.application_id} submitted by {user.email}")
    return profile


def list_applications(db: Session, status: Optional[ApprovalStatus] = None,
                      skip: int = 0, limit: int = 50) -> Tuple[List[VendorProfile], int]:
    """Oldest submissions first, so the review queue is worked in order."""
    query = db.query(VendorProfile)
    if status:
        query = query.filter(VendorProfile.approval_status == status)
    total = query.count()
    items = query.order_by(VendorProfile.submitted_at).offset(skip).limit(limit).all()
    return items, total


def _require_pending(profile: VendorProfile) -> None:
    if profile.approval_status != ApprovalStatus.PENDING:
        raise ValueError(f"Application is already {profile.approval_status.value}")


def approve(db: Session, profile: VendorProfile, admin: User, notes: Optional[str] = None,
            now: Optional[datetime] = None) -> VendorProfile:
    """
    Approve a pending application. A customer applicant becomes a vendor;
    agents and admins keep their role.

    Raises:
        ValueError: application is not pending
    """
    _require_pending(profile)
    profile.approval_status = ApprovalStatus.APPROVED
    profile.reviewed_at = as_utc(now) if now else utcnow()
    profile.reviewed_by = admin.id
    profile.approval_notes = notes

    applicant = profile.user
    if applicant.role == UserRole.CUSTOMER:
        applicant.role = UserRole.VENDOR

    db.commit()
    db.refresh(profile)
    logger.info(f"Vendor application {profile.application_id} approved by {admin.email}")
    return profile


def reject(db: Session, profile: VendorProfile, admin: User, reason: str,
           now: Optional[datetime] = None) -> VendorProfile:
    """
    Raises:
        ValueError: application is not pending
    """
    _require_pending(profile)
    profile.approval_status = ApprovalStatus.REJECTED
    profile.reviewed_at = as_utc(now) if now else utcnow()
    profile.reviewed_by = admin.id
    profile.rejection_reason = reason
    db.commit()
    db.refresh(profile)
    logger.info(f"Vendor application {profile.application_id} rejected by {admin.email}")
    return profile
