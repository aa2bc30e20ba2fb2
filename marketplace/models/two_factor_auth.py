"""
Two-factor authentication state per user.

The TOTP secret is stored Fernet-encrypted; backup codes are stored as
bcrypt hashes with a used flag each.
"""

import enum
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Enum, ForeignKey, JSON, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from marketplace.core.database import Base


class TwoFactorMethod(str, enum.Enum):
    TOTP = "totp"
    SMS = "sms"
    EMAIL = "email"


class TwoFactorAuth(Base):
    __tablename__ = "two_factor_auth"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)

    secret = Column(String, nullable=False)
    # [{"code_hash": str, "used": bool, "used_at": iso8601 | None}]
    backup_codes = Column(JSON, nullable=False, default=list)

    is_enabled = Column(Boolean, nullable=False, default=False)
    enabled_at = Column(DateTime(timezone=True), nullable=True)
    last_used = Column(DateTime(timezone=True), nullable=True)
    method = Column(Enum(TwoFactorMethod), nullable=False, default=TwoFactorMethod.TOTP)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="two_factor")

    @property
    def remaining_backup_codes(self) -> int:
        return sum(1 for entry in (self.backup_codes or []) if not entry.get("used"))

    def __repr__(self):
        return f"<TwoFactorAuth(user_id={self.user_id}, enabled={self.is_enabled})>"
