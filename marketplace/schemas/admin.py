"""
Pydantic schemas for the admin dashboard and user management.
"""

from datetime import datetime
from typing import Dict, Optional
from pydantic import BaseModel, EmailStr, UUID4

from marketplace.models.user import UserRole, UserStatus


class DashboardStats(BaseModel):
    total_users: int
    users_by_role: Dict[str, int]
    total_properties: int
    properties_by_status: Dict[str, int]
    active_subscriptions: int
    open_tickets: int
    notifications_sent: int
    locked_accounts: int


class AdminUserUpdate(BaseModel):
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    is_active: Optional[bool] = None
    is_verified: Optional[bool] = None


class UnlockRequest(BaseModel):
    email: EmailStr


class UnlockResponse(BaseModel):
    email: str
    cleared: int


class LoginAttemptOut(BaseModel):
    email: str
    ip_address: str
    user_agent: Optional[str]
    attempts: int
    is_locked: bool
    locked_until: Optional[datetime]
    last_attempt: Optional[datetime]
    remaining_minutes: int = 0

    class Config:
        from_attributes = True


class RecomputeResponse(BaseModel):
    service_id: UUID4
    total_bookings: int
    total_revenue: float
    average_rating: float
    completion_rate: float
