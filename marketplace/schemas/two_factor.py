"""
Pydantic schemas for two-factor authentication.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from marketplace.models.two_factor_auth import TwoFactorMethod


class TwoFactorSetupResponse(BaseModel):
    """Returned once at setup; the secret and codes are not shown again."""
    secret: str
    otpauth_url: str
    qr_code: str = Field(..., description="PNG data URL of the provisioning QR code")
    backup_codes: List[str]


class TwoFactorTokenRequest(BaseModel):
    token: str = Field(..., min_length=6, max_length=16)


class TwoFactorPasswordRequest(BaseModel):
    password: str
    token: str = Field(..., min_length=6, max_length=16, description="TOTP code or backup code")


class TwoFactorStatusResponse(BaseModel):
    is_enabled: bool
    method: Optional[TwoFactorMethod] = None
    enabled_at: Optional[datetime] = None
    last_used: Optional[datetime] = None
    remaining_backup_codes: int = 0


class BackupCodesResponse(BaseModel):
    backup_codes: List[str]
