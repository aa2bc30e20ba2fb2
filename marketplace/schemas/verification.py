"""
Pydantic schemas for email verification endpoints.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from marketplace.core.verification import CODE_LENGTH
from marketplace.models.user import UserStatus


class VerifyCodeRequest(BaseModel):
    code: str = Field(..., pattern=rf"^\d{{{CODE_LENGTH}}}$", description=f"{CODE_LENGTH}-digit code from the email")


class VerificationResponse(BaseModel):
    success: bool
    message: str
    is_verified: bool = False
    account_status: Optional[UserStatus] = None


class SendCodeResponse(BaseModel):
    success: bool
    message: str
    sent_to: str
    expires_at: datetime
    expires_in_minutes: int


class VerificationStatusResponse(BaseModel):
    """Where the account stands; code fields are set only while a code is outstanding."""
    is_verified: bool
    account_status: UserStatus
    message: str
    code_expires_at: Optional[datetime] = None
    attempts_remaining: Optional[int] = None
