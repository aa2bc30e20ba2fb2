"""
User model for authentication, roles and marketplace ownership.

Every listing, booking, ticket and subscription is scoped to the user that
owns it; admin roles can act across owners.
"""

import enum
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Enum, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from marketplace.core.database import Base


class UserRole(str, enum.Enum):
    """
    Account roles.

    - CUSTOMER: browses listings, books services, files tickets
    - VENDOR / AGENT: publish listings and services
    - SUBADMIN / ADMIN: moderate content and manage users
    - SUPERADMIN: platform configuration and role grants
    """
    CUSTOMER = "customer"
    VENDOR = "vendor"
    AGENT = "agent"
    ADMIN = "admin"
    SUBADMIN = "subadmin"
    SUPERADMIN = "superadmin"

    @property
    def is_admin(self) -> bool:
        return self in (UserRole.ADMIN, UserRole.SUBADMIN, UserRole.SUPERADMIN)

    @property
    def can_list(self) -> bool:
        """Roles allowed to publish property listings and services."""
        return self in (UserRole.VENDOR, UserRole.AGENT) or self.is_admin


class UserStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


class User(Base):
    """Marketplace account."""
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)

    # Authentication credentials (email stored lowercased)
    email = Column(String, unique=True, nullable=False, index=True)
    hashed_password = Column(String, nullable=False)

    # Profile
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    city = Column(String, nullable=True, index=True)

    role = Column(Enum(UserRole), default=UserRole.CUSTOMER, nullable=False, index=True)
    status = Column(Enum(UserStatus), default=UserStatus.ACTIVE, nullable=False, index=True)

    # Account status
    is_active = Column(Boolean, default=True, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)  # Email verification
    is_guest = Column(Boolean, default=False, nullable=False)  # Created from a guest support ticket

    # Password reset
    reset_token = Column(String, nullable=True, index=True)
    reset_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    subscriptions = relationship("Subscription", back_populates="user", cascade="all, delete-orphan")
    properties = relationship("Property", back_populates="owner", foreign_keys="[Property.owner_id]", cascade="all, delete-orphan")
    two_factor = relationship("TwoFactorAuth", back_populates="user", uselist=False, cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    @property
    def is_admin(self) -> bool:
        return self.role.is_admin

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role={self.role.value})>"
