"""
Six-digit email verification codes issued at signup.
"""

import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import Column, String, Boolean, DateTime, Integer, ForeignKey, Index, func
from sqlalchemy.dialects.postgresql import UUID
from marketplace.core.database import Base
from marketplace.core.timeutils import as_utc, utcnow


class EmailVerification(Base):
    """
    One verification code for one user.

    Codes are single use, expire after CODE_EXPIRATION_MINUTES and are burned
    after too many wrong guesses. Rows go away with the user.
    """
    __tablename__ = "email_verifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    code = Column(String(6), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    attempts = Column(Integer, nullable=False, default=0)
    is_used = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index('ix_email_verifications_user_code', 'user_id', 'code'),
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (as_utc(now) if now else utcnow()) > as_utc(self.expires_at)

    def __repr__(self):
        return f"<EmailVerification(user_id={self.user_id}, expires_at={self.expires_at}, used={self.is_used})>"
