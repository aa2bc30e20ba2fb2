"""
Database models package.

Importing this package registers every table on Base.metadata and installs
the notification statistics flush hook.
"""

from marketplace.models.user import User, UserRole, UserStatus
from marketplace.models.login_attempt import LoginAttempt
from marketplace.models.email_verification import EmailVerification
from marketplace.models.two_factor_auth import TwoFactorAuth, TwoFactorMethod
from marketplace.models.platform_settings import PlatformSettings
from marketplace.models.property import Property, PropertyType, PropertyStatus, ListingType
from marketplace.models.subscription import (
    Plan, AddonService, Subscription, SubscriptionPayment, SubscriptionStatus, BillingPeriod
)
from marketplace.models.support_ticket import SupportTicket, TicketResponse, TicketStatus
from marketplace.models.notification import (
    Notification, NotificationRecipient, NotificationStatus, TargetAudience
)
from marketplace.models.vendor_service import VendorService, ServiceBooking, BookingStatus
from marketplace.models.review import Review, ReviewType
from marketplace.models.promotion_request import PromotionRequest, PromotionStatus, PromotionType
from marketplace.models.favorite import Favorite
from marketplace.models.vendor_profile import VendorProfile, BusinessType, ApprovalStatus

__all__ = [
    "User", "UserRole", "UserStatus",
    "LoginAttempt", "EmailVerification",
    "TwoFactorAuth", "TwoFactorMethod",
    "PlatformSettings",
    "Property", "PropertyType", "PropertyStatus", "ListingType",
    "Plan", "AddonService", "Subscription", "SubscriptionPayment", "SubscriptionStatus", "BillingPeriod",
    "SupportTicket", "TicketResponse", "TicketStatus",
    "Notification", "NotificationRecipient", "NotificationStatus", "TargetAudience",
    "VendorService", "ServiceBooking", "BookingStatus",
    "Review", "ReviewType",
    "PromotionRequest", "PromotionStatus", "PromotionType",
    "Favorite",
    "VendorProfile", "BusinessType", "ApprovalStatus",
]
