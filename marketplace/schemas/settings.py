"""
Pydantic schemas for platform settings categories.

Each category model carries its own defaults; resetting a category means
writing the model's defaults back.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional, Type
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field


class GeneralSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    site_name: str = "BuildHomeMart Squares"
    site_description: str = "Premium Real Estate Platform"
    contact_email: str = "support@buildhomemartsquares.com"
    support_email: str = "support@buildhomemartsquares.com"
    maintenance_mode: bool = False
    registration_enabled: bool = True
    default_currency: str = "INR"
    default_language: str = "en"
    timezone: str = "Asia/Kolkata"


class NotificationSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email_notifications: bool = True
    sms_notifications: bool = True
    push_notifications: bool = True
    admin_alerts: bool = True
    system_alerts: bool = True
    user_activity_alerts: bool = False
    marketing_emails: bool = True
    weekly_reports: bool = True


class SecuritySettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    two_factor_auth: bool = False
    session_timeout: int = Field(30, ge=5, le=24 * 60, description="Minutes; also the access token lifetime")
    password_min_length: int = Field(8, ge=6, le=72)
    max_login_attempts: int = Field(5, ge=1, le=100)
    lockout_duration: int = Field(30, ge=1, le=24 * 60, description="Minutes an (email, ip) pair stays locked")
    require_email_verification: bool = True
    require_phone_verification: bool = False
    allow_password_reset: bool = True
    auto_lock_account: bool = True
    ip_whitelisting: bool = False


class PaymentSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    currency: str = "INR"
    tax_rate: float = Field(18, ge=0, le=100)
    processing_fee: float = Field(2.5, ge=0, le=100)
    refund_policy: str = "7 days"
    auto_refund: bool = False
    payment_methods: List[Literal["card", "upi", "netbanking", "wallet"]] = ["card", "upi", "netbanking"]
    minimum_amount: float = Field(100, ge=0)
    maximum_amount: float = Field(1000000, ge=0)


class SystemSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    backup_enabled: bool = True
    backup_frequency: Literal["daily", "weekly", "monthly"] = "daily"
    backup_retention: int = Field(30, ge=1)
    maintenance_window: str = "02:00-04:00"
    debug_mode: bool = False
    log_level: Literal["error", "warn", "info", "debug"] = "info"
    performance_mode: Literal["balanced", "performance", "memory"] = "balanced"


class FirebaseConfig(BaseModel):
    api_key: Optional[str] = None
    auth_domain: Optional[str] = None
    project_id: Optional[str] = None


class IntegrationSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email_provider: Literal["smtp", "sendgrid", "aws-ses"] = "aws-ses"
    email_api_key: Optional[str] = None
    sms_provider: Literal["twilio", "aws-sns", "firebase"] = "twilio"
    sms_api_key: Optional[str] = None
    payment_gateway: Literal["razorpay", "stripe", "paypal"] = "razorpay"
    payment_api_key: Optional[str] = None
    google_maps_api_key: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    firebase_config: FirebaseConfig = FirebaseConfig()


class LocationSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default_country: str = "India"
    default_state: str = "Karnataka"
    default_city: str = "Bangalore"
    enable_location_autodetection: bool = True
    location_data_source: Literal["loca", "google", "mapbox"] = "loca"
    radius_unit: Literal["km", "miles"] = "km"
    default_radius: int = Field(25, ge=1)


CATEGORY_MODELS: Dict[str, Type[BaseModel]] = {
    "general": GeneralSettings,
    "notifications": NotificationSettings,
    "security": SecuritySettings,
    "payment": PaymentSettings,
    "system": SystemSettings,
    "integrations": IntegrationSettings,
    "location": LocationSettings,
}

# Integration keys never leave the server
SECRET_INTEGRATION_KEYS = (
    "email_api_key",
    "sms_api_key",
    "payment_api_key",
    "google_maps_api_key",
    "cloudinary_api_key",
)


class PublicSettingsResponse(BaseModel):
    """Subset of settings safe to expose without authentication."""
    site_name: str
    site_description: str
    contact_email: str
    support_email: str
    maintenance_mode: bool
    registration_enabled: bool
    default_currency: str
    default_language: str
    two_factor_available: bool


class SettingsResponse(BaseModel):
    general: dict
    notifications: dict
    security: dict
    payment: dict
    system: dict
    integrations: dict
    location: dict
    version: int
    last_updated_by: Optional[UUID] = None
    updated_at: Optional[datetime] = None
