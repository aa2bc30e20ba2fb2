"""
Pydantic schemas for support tickets.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field, UUID4

from marketplace.models.support_ticket import TicketCategory, TicketPriority, TicketStatus


class TicketCreate(BaseModel):
    """
    New ticket. Guests must supply contact_email (and usually contact_name);
    authenticated users default to their account email.
    """
    subject: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10)
    priority: TicketPriority = TicketPriority.MEDIUM
    category: TicketCategory = TicketCategory.GENERAL
    contact_email: Optional[EmailStr] = None
    contact_name: Optional[str] = Field(None, max_length=100)
    tags: List[str] = []


class TicketResponseCreate(BaseModel):
    message: str = Field(..., min_length=1)


class TicketAdminUpdate(BaseModel):
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    assigned_to: Optional[UUID4] = None
    resolution: Optional[str] = None
    tags: Optional[List[str]] = None


class TicketMessage(BaseModel):
    id: UUID4
    author_id: Optional[UUID4]
    message: str
    is_admin: bool
    created_at: datetime

    class Config:
        from_attributes = True


class TicketOut(BaseModel):
    id: UUID4
    ticket_number: str
    subject: str
    description: str
    priority: TicketPriority
    status: TicketStatus
    category: TicketCategory
    user_id: UUID4
    contact_email: str
    contact_name: Optional[str]
    assigned_to: Optional[UUID4]
    tags: List[str]
    resolution: Optional[str]
    resolved_at: Optional[datetime]
    created_at: datetime
    updated_at: Optional[datetime] = None
    responses: List[TicketMessage] = []

    class Config:
        from_attributes = True


class TicketTrackResponse(BaseModel):
    """Public view for tracking by number and email."""
    ticket_number: str
    subject: str
    status: TicketStatus
    priority: TicketPriority
    created_at: datetime
    updated_at: Optional[datetime] = None
    resolution: Optional[str] = None
    response_count: int


class TicketStats(BaseModel):
    total: int = 0
    open: int = 0
    in_progress: int = 0
    resolved: int = 0
    closed: int = 0
