"""
Pydantic schemas for accounts, authentication and password reset.
"""

from pydantic import BaseModel, EmailStr, Field, UUID4, field_validator
from typing import Optional
from datetime import datetime
import re

from marketplace.models.user import UserRole, UserStatus

SELF_SERVICE_ROLES = (UserRole.CUSTOMER, UserRole.VENDOR, UserRole.AGENT)


def _check_password_strength(v: str) -> str:
    # Minimum length is a platform setting, checked at registration time
    if len(v.encode("utf-8")) > 72:
        raise ValueError('Password cannot exceed 72 bytes (bcrypt limitation)')
    if not re.search(r'[a-z]', v):
        raise ValueError('Password must contain at least one lowercase letter')
    if not re.search(r'[A-Z]', v):
        raise ValueError('Password must contain at least one uppercase letter')
    if not re.search(r'\d', v):
        raise ValueError('Password must contain at least one number')
    return v


class UserRegisterRequest(BaseModel):
    """Request schema for user registration."""
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    city: Optional[str] = Field(None, max_length=100)
    role: UserRole = UserRole.CUSTOMER

    @field_validator('password')
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        return _check_password_strength(v)

    @field_validator('role')
    @classmethod
    def validate_role(cls, v: UserRole) -> UserRole:
        if v not in SELF_SERVICE_ROLES:
            raise ValueError('Role must be customer, vendor or agent')
        return v


class UserLoginRequest(BaseModel):
    """Email/password login with an optional TOTP or backup code."""
    email: EmailStr
    password: str
    two_factor_code: Optional[str] = Field(None, max_length=16)


class TokenResponse(BaseModel):
    """JWT token response."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Access token lifetime in seconds")


class TokenRefreshRequest(BaseModel):
    refresh_token: str


class UserResponse(BaseModel):
    """User profile response (no sensitive data)."""
    id: UUID4
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    phone: Optional[str]
    city: Optional[str]
    role: UserRole
    status: UserStatus
    is_active: bool
    is_verified: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    city: Optional[str] = Field(None, max_length=100)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str = Field(..., min_length=1, max_length=72)

    @field_validator('new_password')
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        return _check_password_strength(v)


class MessageResponse(BaseModel):
    message: str
