"""
Platform settings endpoints.

- GET /settings/public: unauthenticated subset for the frontend shell
- GET /settings: all categories (admin), integration secrets removed
- GET /settings/{category}: one category (admin)
- PUT /settings/{category}: merge updates (superadmin)
- POST /settings/{category}/reset: restore defaults (superadmin)
"""

import logging
from typing import Any, Dict
from fastapi import APIRouter, Body, HTTPException, Depends, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from marketplace.core.database import get_db
from marketplace.core.deps import get_admin_user, get_superadmin_user
from marketplace.crud import platform_settings as settings_crud
from marketplace.models.user import User
from marketplace.schemas.settings import CATEGORY_MODELS, PublicSettingsResponse, SettingsResponse

router = APIRouter(prefix="/settings", tags=["Settings"])
logger = logging.getLogger(__name__)


def _require_category(category: str) -> None:
    if category not in CATEGORY_MODELS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Invalid settings category: {category}"
        )


@router.get("/public", response_model=PublicSettingsResponse)
def get_public_settings(db: Session = Depends(get_db)):
    general = settings_crud.get_general(db)
    security = settings_crud.get_security(db)
    return PublicSettingsResponse(
        site_name=general.site_name,
        site_description=general.site_description,
        contact_email=general.contact_email,
        support_email=general.support_email,
        maintenance_mode=general.maintenance_mode,
        registration_enabled=general.registration_enabled,
        default_currency=general.default_currency,
        default_language=general.default_language,
        two_factor_available=security.two_factor_auth,
    )


@router.get("", response_model=SettingsResponse)
def get_all_settings(
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_admin_user)
):
    row = settings_crud.get_settings(db)
    return settings_crud.to_public_dict(db, row)


@router.get("/{category}")
def get_settings_category(
    category: str,
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_admin_user)
) -> Dict[str, Any]:
    _require_category(category)
    data = settings_crud.to_public_dict(db, settings_crud.get_settings(db))
    return {"category": category, "settings": data[category], "version": data["version"]}


@router.put("/{category}", response_model=SettingsResponse)
def update_settings_category(
    category: str,
    updates: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    superadmin: User = Depends(get_superadmin_user)
):
    """
    Merge the given keys into a category.

    Unknown keys and out-of-range values are rejected with 422; the stored
    settings are unchanged in that case.
    """
    _require_category(category)
    try:
        row = settings_crud.update_category(db, category, updates, updated_by=superadmin.id)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False)
        )

    logger.info(f"Superadmin {superadmin.email} updated '{category}' settings: {sorted(updates)}")
    return settings_crud.to_public_dict(db, row)


@router.post("/{category}/reset", response_model=SettingsResponse)
def reset_settings_category(
    category: str,
    db: Session = Depends(get_db),
    superadmin: User = Depends(get_superadmin_user)
):
    _require_category(category)
    row = settings_crud.reset_category(db, category, updated_by=superadmin.id)
    return settings_crud.to_public_dict(db, row)
