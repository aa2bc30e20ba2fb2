"""
Pydantic schemas for notification campaigns.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, UUID4, field_validator, model_validator

from marketplace.models.notification import (
    NotificationChannel, NotificationPriority, NotificationStatus, NotificationType, TargetAudience
)
from marketplace.models.user import UserRole


class AudienceFilters(BaseModel):
    city_filter: List[str] = []
    user_type_filter: List[UserRole] = []
    user_ids: List[UUID4] = []


class NotificationCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    type: NotificationType = NotificationType.INFORMATIONAL
    target_audience: TargetAudience
    channels: List[NotificationChannel] = Field(default_factory=lambda: [NotificationChannel.IN_APP])
    scheduled_date: Optional[datetime] = None
    audience_filters: AudienceFilters = AudienceFilters()
    campaign_id: Optional[str] = None
    tags: List[str] = []
    priority: NotificationPriority = NotificationPriority.MEDIUM

    @field_validator('channels')
    @classmethod
    def at_least_one_channel(cls, v: List[NotificationChannel]) -> List[NotificationChannel]:
        if not v:
            raise ValueError('At least one channel is required')
        return list(dict.fromkeys(v))

    @model_validator(mode='after')
    def audience_filters_present(self):
        if self.target_audience == TargetAudience.CITY_SPECIFIC and not self.audience_filters.city_filter:
            raise ValueError('city_specific notifications need at least one city in audience_filters.city_filter')
        if self.target_audience == TargetAudience.CUSTOM and not self.audience_filters.user_ids:
            raise ValueError('custom notifications need audience_filters.user_ids')
        return self


class NotificationUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    subject: Optional[str] = Field(None, min_length=1, max_length=200)
    message: Optional[str] = Field(None, min_length=1)
    type: Optional[NotificationType] = None
    target_audience: Optional[TargetAudience] = None
    channels: Optional[List[NotificationChannel]] = None
    audience_filters: Optional[AudienceFilters] = None
    tags: Optional[List[str]] = None
    priority: Optional[NotificationPriority] = None


class ScheduleRequest(BaseModel):
    scheduled_date: datetime


class NotificationStatisticsOut(BaseModel):
    total_recipients: int
    delivered: int
    opened: int
    clicked: int
    delivery_rate: float
    open_rate: float
    click_rate: float

    class Config:
        from_attributes = True


class NotificationOut(BaseModel):
    id: UUID4
    title: str
    subject: str
    message: str
    type: NotificationType
    target_audience: TargetAudience
    channels: List[NotificationChannel]
    status: NotificationStatus
    is_scheduled: bool
    scheduled_date: Optional[datetime]
    sent_at: Optional[datetime]
    sent_by: Optional[UUID4]
    failure_reason: Optional[str] = None
    audience_filters: dict
    campaign_id: Optional[str]
    tags: List[str]
    priority: NotificationPriority
    statistics: NotificationStatisticsOut
    created_at: datetime

    class Config:
        from_attributes = True


class InboxItem(BaseModel):
    notification_id: UUID4
    title: str
    message: str
    type: NotificationType
    priority: NotificationPriority
    sent_at: Optional[datetime]
    opened: bool
    clicked: bool


class NotificationOverview(BaseModel):
    """Totals across all sent campaigns."""
    total_notifications: int
    sent: int
    scheduled: int
    drafts: int
    total_recipients: int
    delivered: int
    opened: int
    clicked: int
    delivery_rate: float
    open_rate: float
    click_rate: float
