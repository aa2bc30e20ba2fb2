"""
Platform-wide configuration stored as a single row.

The row id is fixed ("app_settings"); marketplace.crud.platform_settings
creates it on first access.
"""

from sqlalchemy import Column, String, Integer, DateTime, JSON, func
from sqlalchemy.dialects.postgresql import UUID
from marketplace.core.database import Base

SETTINGS_ID = "app_settings"


class PlatformSettings(Base):
    __tablename__ = "platform_settings"

    id = Column(String(32), primary_key=True, default=SETTINGS_ID)

    general = Column(JSON, nullable=False, default=dict)
    notifications = Column(JSON, nullable=False, default=dict)
    security = Column(JSON, nullable=False, default=dict)
    payment = Column(JSON, nullable=False, default=dict)
    system = Column(JSON, nullable=False, default=dict)
    integrations = Column(JSON, nullable=False, default=dict)
    location = Column(JSON, nullable=False, default=dict)

    last_updated_by = Column(UUID(as_uuid=True), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<PlatformSettings(id='{self.id}', version={self.version})>"
