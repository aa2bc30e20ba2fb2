"""
CRUD operations (Create, Read, Update, Delete) for database models.

This layer keeps SQLAlchemy queries out of the API routes: each module
exposes plain functions that take a Session.
"""

from marketplace.crud import (
    notification, platform_settings, promotion, property, subscription, support_ticket, user, vendor_service
)

__all__ = [
    "notification", "platform_settings", "promotion", "property",
    "subscription", "support_ticket", "user", "vendor_service",
]
