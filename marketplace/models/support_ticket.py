"""
Support tickets and the conversation attached to them.
"""

import enum
import uuid
from sqlalchemy import Column, String, Text, Boolean, DateTime, Enum, ForeignKey, JSON, Index, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, validates
from marketplace.core.database import Base
from marketplace.core.timeutils import utcnow

TICKET_NUMBER_PREFIX = "TKT-"


class TicketPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TicketStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketCategory(str, enum.Enum):
    GENERAL = "general"
    TECHNICAL = "technical"
    BILLING = "billing"
    ACCOUNT = "account"
    PROPERTY = "property"
    OTHER = "other"


def format_ticket_number(sequence: int) -> str:
    return f"{TICKET_NUMBER_PREFIX}{sequence:06d}"


class SupportTicket(Base):
    __tablename__ = "support_tickets"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    ticket_number = Column(String, unique=True, nullable=False, index=True)

    subject = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    priority = Column(Enum(TicketPriority), nullable=False, default=TicketPriority.MEDIUM)
    status = Column(Enum(TicketStatus), nullable=False, default=TicketStatus.OPEN, index=True)
    category = Column(Enum(TicketCategory), nullable=False, default=TicketCategory.GENERAL)

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    contact_email = Column(String, nullable=False, index=True)
    contact_name = Column(String, nullable=True)
    assigned_to = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    tags = Column(JSON, nullable=False, default=list)

    resolution = Column(Text, nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolved_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", foreign_keys=[user_id])
    assignee = relationship("User", foreign_keys=[assigned_to])
    responses = relationship(
        "TicketResponse",
        back_populates="ticket",
        cascade="all, delete-orphan",
        order_by="TicketResponse.created_at",
    )

    __table_args__ = (
        Index("ix_support_tickets_user_status", "user_id", "status"),
    )

    @validates("resolution")
    def _resolve_on_resolution(self, key, value):
        """A resolution on an unresolved ticket resolves it."""
        if value and self.status not in (TicketStatus.RESOLVED, TicketStatus.CLOSED):
            self.status = TicketStatus.RESOLVED
            self.resolved_at = utcnow()
        return value

    def __repr__(self):
        return f"<SupportTicket(number='{self.ticket_number}', status={self.status})>"


class TicketResponse(Base):
    __tablename__ = "ticket_responses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ticket_id = Column(UUID(as_uuid=True), ForeignKey("support_tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    message = Column(Text, nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    ticket = relationship("SupportTicket", back_populates="responses")
    author = relationship("User")
