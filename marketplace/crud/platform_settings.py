"""
Repository functions for the platform settings singleton.

get_settings() is the only way the row comes into existence; every reader
goes through it so the first request after a fresh install sees defaults.
"""

import copy
import logging
from typing import Optional
from uuid import UUID
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.models.platform_settings import PlatformSettings, SETTINGS_ID
from marketplace.schemas.settings import CATEGORY_MODELS, SECRET_INTEGRATION_KEYS, SecuritySettings, GeneralSettings

logger = logging.getLogger(__name__)


def _defaults(category: str) -> dict:
    return CATEGORY_MODELS[category]().model_dump()


def _check_category(category: str) -> None:
    if category not in CATEGORY_MODELS:
        raise ValueError(f"Invalid settings category: {category}")


def get_settings(db: Session) -> PlatformSettings:
    """Fetch the settings row, creating it with defaults on first access."""
    row = db.get(PlatformSettings, SETTINGS_ID)
    if row is not None:
        return row

    row = PlatformSettings(id=SETTINGS_ID, version=1, **{name: _defaults(name) for name in CATEGORY_MODELS})
    db.add(row)
    try:
        db.commit()
    except IntegrityError:
        # Another request created it first
        db.rollback()
        return db.get(PlatformSettings, SETTINGS_ID)
    db.refresh(row)
    logger.info("Created default platform settings")
    return row


def get_category(db: Session, category: str) -> BaseModel:
    """
    Validated view of one category.

    Stored values are layered over the model defaults, so keys added in a
    later release read as their default until someone saves them.
    """
    _check_category(category)
    row = get_settings(db)
    stored = getattr(row, category) or {}
    return CATEGORY_MODELS[category](**{**_defaults(category), **stored})


def get_security(db: Session) -> SecuritySettings:
    return get_category(db, "security")


def get_general(db: Session) -> GeneralSettings:
    return get_category(db, "general")


def update_category(db: Session, category: str, updates: dict, updated_by: Optional[UUID] = None) -> PlatformSettings:
    """
    Merge updates into a category and bump the version.

    Raises:
        ValueError: Unknown category
        pydantic.ValidationError: Merged values fail validation
    """
    _check_category(category)
    current = get_category(db, category).model_dump()
    merged = CATEGORY_MODELS[category](**{**current, **updates})

    row = get_settings(db)
    setattr(row, category, merged.model_dump())
    row.last_updated_by = updated_by
    row.version = (row.version or 1) + 1
    db.commit()
    db.refresh(row)

    logger.info(f"Settings category '{category}' updated to version {row.version} by {updated_by}")
    return row


def reset_category(db: Session, category: str, updated_by: Optional[UUID] = None) -> PlatformSettings:
    """Restore a category to its defaults and bump the version."""
    _check_category(category)
    row = get_settings(db)
    setattr(row, category, _defaults(category))
    row.last_updated_by = updated_by
    row.version = (row.version or 1) + 1
    db.commit()
    db.refresh(row)

    logger.info(f"Settings category '{category}' reset to defaults by {updated_by}")
    return row


def to_public_dict(db: Session, row: PlatformSettings) -> dict:
    """All categories with integration secrets removed."""
    data = {name: get_category(db, name).model_dump() for name in CATEGORY_MODELS}

    integrations = copy.deepcopy(data["integrations"])
    for key in SECRET_INTEGRATION_KEYS:
        integrations.pop(key, None)
    if integrations.get("firebase_config"):
        integrations["firebase_config"].pop("api_key", None)
    data["integrations"] = integrations

    data["version"] = row.version
    data["last_updated_by"] = row.last_updated_by
    data["updated_at"] = row.updated_at
    return data
