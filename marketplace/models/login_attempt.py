"""
Failed-login bookkeeping per (email, ip_address) pair.

Owned by the authentication flow; see marketplace.core.lockout for the
operations that mutate it.
"""

import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Integer, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from marketplace.core.database import Base


class LoginAttempt(Base):
    __tablename__ = "login_attempts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Tracked per email + ip to stop both targeted and broad attacks
    email = Column(String(255), nullable=False, index=True)
    ip_address = Column(String(64), nullable=False, index=True)
    user_agent = Column(String(512), nullable=True)

    attempts = Column(Integer, nullable=False, default=0)
    is_locked = Column(Boolean, nullable=False, default=False, index=True)
    locked_until = Column(DateTime(timezone=True), nullable=True)
    last_attempt = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("email", "ip_address", name="uq_login_attempts_email_ip"),
    )

    def __repr__(self):
        return f"<LoginAttempt(email='{self.email}', ip='{self.ip_address}', attempts={self.attempts}, locked={self.is_locked})>"
