"""
Support ticket endpoints.

Tickets can be filed without an account; guests are tracked by ticket
number plus contact email. Owners and admins see the full conversation.
"""

import logging
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import EmailStr
from sqlalchemy.orm import Session

from marketplace.core.database import get_db
from marketplace.core.deps import get_admin_user, get_current_user, get_optional_user
from marketplace.crud import support_ticket as ticket_crud
from marketplace.crud.property import page_count
from marketplace.models.support_ticket import SupportTicket, TicketPriority, TicketStatus
from marketplace.models.user import User
from marketplace.schemas.property import Page
from marketplace.schemas.support import (
    TicketAdminUpdate,
    TicketCreate,
    TicketMessage,
    TicketOut,
    TicketResponseCreate,
    TicketStats,
    TicketTrackResponse
)

router = APIRouter(prefix="/support", tags=["Support"])
logger = logging.getLogger(__name__)


def _ticket_for(db: Session, ticket_number: str, user: User) -> SupportTicket:
    """Ticket visible to the user: their own, or any for admins."""
    ticket = ticket_crud.get_by_number(db, ticket_number)
    if not ticket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")
    if ticket.user_id != user.id and not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to access this ticket")
    return ticket


@router.post("/tickets", status_code=201, response_model=TicketOut)
def create_ticket(
    data: TicketCreate,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """File a ticket. Without a bearer token, contact_email is required."""
    try:
        return ticket_crud.create(db, data, current_user)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/tickets/mine", response_model=List[TicketOut])
def list_my_tickets(
    status_filter: Optional[TicketStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return ticket_crud.list_for_user(db, current_user.id, status_filter)


@router.get("/tickets/stats", response_model=TicketStats)
def my_ticket_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return ticket_crud.stats_for_user(db, current_user.id)


@router.get("/track", response_model=TicketTrackResponse)
def track_ticket(
    ticket_number: str,
    email: EmailStr,
    db: Session = Depends(get_db)
):
    """Public status lookup; the email must match the ticket's contact email."""
    ticket = ticket_crud.track(db, ticket_number, email)
    if not ticket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")

    return TicketTrackResponse(
        ticket_number=ticket.ticket_number,
        subject=ticket.subject,
        status=ticket.status,
        priority=ticket.priority,
        created_at=ticket.created_at,
        updated_at=ticket.updated_at,
        resolution=ticket.resolution,
        response_count=len(ticket.responses),
    )


@router.get("/tickets/{ticket_number}", response_model=TicketOut)
def get_ticket(
    ticket_number: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return _ticket_for(db, ticket_number, current_user)


@router.post("/tickets/{ticket_number}/responses", status_code=201, response_model=TicketMessage)
def add_ticket_response(
    ticket_number: str,
    data: TicketResponseCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Reply to a ticket.

    An admin reply on an open ticket moves it to in_progress.
    Closed tickets accept no replies (400).
    """
    ticket = _ticket_for(db, ticket_number, current_user)
    try:
        return ticket_crud.add_response(db, ticket, current_user, data.message)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/admin/tickets", response_model=Page[TicketOut])
def admin_list_tickets(
    status_filter: Optional[TicketStatus] = Query(None, alias="status"),
    priority: Optional[TicketPriority] = None,
    assigned_to: Optional[UUID] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    items, total = ticket_crud.admin_list(
        db,
        status=status_filter,
        priority=priority,
        assigned_to=assigned_to,
        skip=(page - 1) * limit,
        limit=limit,
    )
    return Page[TicketOut](
        items=[TicketOut.model_validate(item) for item in items],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )


@router.patch("/admin/tickets/{ticket_number}", response_model=TicketOut)
def admin_update_ticket(
    ticket_number: str,
    updates: TicketAdminUpdate,
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """
    Change status, priority, assignee, tags or resolution.

    Writing a resolution on an unresolved ticket resolves it.
    """
    ticket = ticket_crud.get_by_number(db, ticket_number)
    if not ticket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")
    return ticket_crud.admin_update(db, ticket, updates.model_dump(exclude_unset=True), admin_user)
