"""
CRUD operations for support tickets.
"""

import logging
import secrets
from typing import Dict, List, Optional, Tuple
from uuid import UUID
from sqlalchemy import func
from sqlalchemy.orm import Session

from marketplace.core.security import get_password_hash
from marketplace.core.timeutils import utcnow
from marketplace.models.support_ticket import (
    SupportTicket, TicketPriority, TicketResponse, TicketStatus, format_ticket_number
)
from marketplace.models.user import User, UserRole, UserStatus
from marketplace.schemas.support import TicketCreate

logger = logging.getLogger(__name__)


def next_ticket_number(db: Session) -> str:
    """TKT-000001 style number, one past the current ticket count."""
    sequence = db.query(func.count(SupportTicket.id)).scalar() + 1
    number = format_ticket_number(sequence)
    while db.query(SupportTicket.id).filter(SupportTicket.ticket_number == number).first():
        sequence += 1
        number = format_ticket_number(sequence)
    return number


def get_or_create_guest_user(db: Session, email: str, name: Optional[str]) -> User:
    """
    Account a guest ticket is filed under.

    An existing account with that email is reused; otherwise a guest record
    with an unusable random password is created.
    """
    email = email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user

    first_name, _, last_name = (name or "Guest").partition(" ")
    user = User(
        email=email,
        hashed_password=get_password_hash(secrets.token_urlsafe(32)),
        first_name=first_name or "Guest",
        last_name=last_name or None,
        role=UserRole.CUSTOMER,
        status=UserStatus.ACTIVE,
        is_guest=True,
    )
    db.add(user)
    db.flush()
    logger.info(f"Created guest user for support ticket: {email}")
    return user


def create(db: Session, data: TicketCreate, user: Optional[User]) -> SupportTicket:
    """
    File a ticket for an authenticated user, or for a guest identified by contact_email.

    Raises:
        ValueError: guest ticket without contact_email
    """
    if user is None:
        if not data.contact_email:
            raise ValueError("Contact email is required for guest tickets")
        owner = get_or_create_guest_user(db, data.contact_email, data.contact_name)
    else:
        owner = user

    ticket = SupportTicket(
        ticket_number=next_ticket_number(db),
        subject=data.subject,
        description=data.description,
        priority=data.priority,
        category=data.category,
        status=TicketStatus.OPEN,
        user_id=owner.id,
        contact_email=(data.contact_email or owner.email).lower(),
        contact_name=data.contact_name or owner.full_name or None,
        tags=data.tags,
    )
    db.add(ticket)
    db.commit()
    db.refresh(ticket)
    logger.info(f"Support ticket {ticket.ticket_number} created by {ticket.contact_email}")
    return ticket


def get_by_number(db: Session, ticket_number: str) -> Optional[SupportTicket]:
    return db.query(SupportTicket).filter(SupportTicket.ticket_number == ticket_number.upper()).first()


def track(db: Session, ticket_number: str, email: str) -> Optional[SupportTicket]:
    ticket = get_by_number(db, ticket_number)
    if ticket is None or ticket.contact_email != email.strip().lower():
        return None
    return ticket


def list_for_user(db: Session, user_id: UUID, status: Optional[TicketStatus] = None) -> List[SupportTicket]:
    query = db.query(SupportTicket).filter(SupportTicket.user_id == user_id)
    if status:
        query = query.filter(SupportTicket.status == status)
    return query.order_by(SupportTicket.created_at.desc()).all()


def stats_for_user(db: Session, user_id: UUID) -> Dict[str, int]:
    rows = db.query(SupportTicket.status, func.count(SupportTicket.id)).filter(
        SupportTicket.user_id == user_id
    ).group_by(SupportTicket.status).all()

    stats = {s.value: 0 for s in TicketStatus}
    for ticket_status, count in rows:
        stats[ticket_status.value] = count
    stats["total"] = sum(count for _, count in rows)
    return stats


def add_response(db: Session, ticket: SupportTicket, author: User, message: str) -> TicketResponse:
    """
    Append a reply. An admin reply on an open ticket moves it to in_progress.

    Raises:
        ValueError: ticket is closed
    """
    if ticket.status == TicketStatus.CLOSED:
        raise ValueError("Cannot respond to a closed ticket")

    response = TicketResponse(author_id=author.id, message=message, is_admin=author.is_admin)
    ticket.responses.append(response)

    if author.is_admin and ticket.status == TicketStatus.OPEN:
        ticket.status = TicketStatus.IN_PROGRESS

    db.commit()
    db.refresh(response)
    return response


def admin_list(
    db: Session,
    status: Optional[TicketStatus] = None,
    priority: Optional[TicketPriority] = None,
    assigned_to: Optional[UUID] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[SupportTicket], int]:
    query = db.query(SupportTicket)
    if status:
        query = query.filter(SupportTicket.status == status)
    if priority:
        query = query.filter(SupportTicket.priority == priority)
    if assigned_to:
        query = query.filter(SupportTicket.assigned_to == assigned_to)
    total = query.count()
    items = query.order_by(SupportTicket.created_at.desc()).offset(skip).limit(limit).all()
    return items, total


def admin_update(db: Session, ticket: SupportTicket, updates: dict, admin: User) -> SupportTicket:
    """
    Apply admin changes.

    Writing a resolution resolves the ticket (see SupportTicket's validator)
    unless the same request sets an explicit status, which wins. A ticket
    that ends up open or in progress carries no resolved_at/resolved_by.
    """
    if updates.get("resolution"):
        ticket.resolution = updates["resolution"]
    if updates.get("status") is not None:
        ticket.status = updates["status"]

    if ticket.status == TicketStatus.RESOLVED:
        ticket.resolved_by = ticket.resolved_by or admin.id
        ticket.resolved_at = ticket.resolved_at or utcnow()
    elif ticket.status != TicketStatus.CLOSED:
        # Reopened, or a resolution drafted on a ticket kept open
        ticket.resolved_by = None
        ticket.resolved_at = None

    for field in ("priority", "assigned_to", "tags"):
        if field in updates and updates[field] is not None:
            setattr(ticket, field, updates[field])

    db.commit()
    db.refresh(ticket)
    logger.info(f"Ticket {ticket.ticket_number} updated by {admin.email}: status={ticket.status.value}")
    return ticket
