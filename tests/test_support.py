"""
Tests for support tickets.

Tests:
- Ticket numbering
- Guest and authenticated ticket creation
- Public tracking by number and email
- Replies and status changes
- Admin listing and updates
"""

from marketplace.crud import support_ticket as ticket_crud
from marketplace.models.support_ticket import SupportTicket, TicketStatus, format_ticket_number
from marketplace.models.user import User

from conftest import auth_headers

TICKET = {
    "subject": "Cannot upload photos",
    "description": "Uploading images for my listing fails with an error.",
    "category": "technical",
    "priority": "high",
}


def file_ticket(client, user=None, **overrides):
    headers = auth_headers(user) if user else {}
    return client.post("/api/v1/support/tickets", json={**TICKET, **overrides}, headers=headers)


class TestTicketNumbers:

    def test_format(self):
        """Test ticket number format"""
        assert format_ticket_number(1) == "TKT-000001"
        assert format_ticket_number(123456) == "TKT-123456"

    def test_sequential(self, client, customer):
        """Test ticket numbers are sequential"""
        first = file_ticket(client, customer).json()["ticket_number"]
        second = file_ticket(client, customer).json()["ticket_number"]
        assert (first, second) == ("TKT-000001", "TKT-000002")

    def test_skips_taken_numbers(self, db_session, customer):
        """Test numbering skips numbers already taken"""
        db_session.add(SupportTicket(
            ticket_number="TKT-000001", subject="Old", description="Imported ticket",
            user_id=customer.id, contact_email=customer.email,
        ))
        db_session.add(SupportTicket(
            ticket_number="TKT-000002", subject="Old", description="Imported ticket",
            user_id=customer.id, contact_email=customer.email,
        ))
        db_session.commit()
        db_session.query(SupportTicket).filter(SupportTicket.ticket_number == "TKT-000001").delete()
        db_session.commit()

        assert ticket_crud.next_ticket_number(db_session) == "TKT-000003"


class TestCreateTicket:

    def test_authenticated(self, client, customer):
        """Test a signed-in user files a ticket"""
        response = file_ticket(client, customer)
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "open"
        assert data["user_id"] == str(customer.id)
        assert data["contact_email"] == customer.email

    def test_guest_requires_email(self, client):
        """Test guests must give a contact email"""
        assert file_ticket(client).status_code == 400

    def test_guest_creates_guest_account(self, client, db_session):
        """Test a guest ticket creates a guest account"""
        response = file_ticket(client, contact_email="Visitor@Example.com", contact_name="Ravi Kumar")
        assert response.status_code == 201

        guest = db_session.query(User).filter(User.email == "visitor@example.com").one()
        assert guest.is_guest is True
        assert guest.first_name == "Ravi"
        assert response.json()["user_id"] == str(guest.id)

    def test_guest_reuses_existing_account(self, client, db_session, customer):
        """Test a guest ticket reuses an existing account"""
        response = file_ticket(client, contact_email=customer.email)
        assert response.json()["user_id"] == str(customer.id)
        assert db_session.query(User).count() == 1


class TestTrackTicket:

    def test_track(self, client):
        """Test tracking a ticket by number and email"""
        number = file_ticket(client, contact_email="visitor@example.com").json()["ticket_number"]
        response = client.get(
            "/api/v1/support/track", params={"ticket_number": number.lower(), "email": "VISITOR@example.com"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "open"
        assert data["response_count"] == 0

    def test_wrong_email(self, client):
        """Test tracking with the wrong email fails"""
        number = file_ticket(client, contact_email="visitor@example.com").json()["ticket_number"]
        response = client.get("/api/v1/support/track", params={"ticket_number": number, "email": "other@example.com"})
        assert response.status_code == 404


class TestTicketAccess:

    def test_owner_and_admin_only(self, client, customer, vendor, admin):
        """Test only the owner and admins can see a ticket"""
        number = file_ticket(client, customer).json()["ticket_number"]
        assert client.get(f"/api/v1/support/tickets/{number}", headers=auth_headers(customer)).status_code == 200
        assert client.get(f"/api/v1/support/tickets/{number}", headers=auth_headers(admin)).status_code == 200
        assert client.get(f"/api/v1/support/tickets/{number}", headers=auth_headers(vendor)).status_code == 403

    def test_mine_and_stats(self, client, customer, vendor):
        """Test the user's ticket list and counts"""
        file_ticket(client, customer)
        file_ticket(client, customer)
        file_ticket(client, vendor)

        mine = client.get("/api/v1/support/tickets/mine", headers=auth_headers(customer)).json()
        assert len(mine) == 2

        stats = client.get("/api/v1/support/tickets/stats", headers=auth_headers(customer)).json()
        assert stats["total"] == 2
        assert stats["open"] == 2
        assert stats["closed"] == 0


class TestResponses:

    def test_admin_reply_moves_to_in_progress(self, client, customer, admin):
        """Test an admin reply moves an open ticket to in progress"""
        number = file_ticket(client, customer).json()["ticket_number"]
        response = client.post(
            f"/api/v1/support/tickets/{number}/responses",
            json={"message": "Could you share a screenshot?"},
            headers=auth_headers(admin)
        )
        assert response.status_code == 201
        assert response.json()["is_admin"] is True

        ticket = client.get(f"/api/v1/support/tickets/{number}", headers=auth_headers(customer)).json()
        assert ticket["status"] == "in_progress"
        assert len(ticket["responses"]) == 1

    def test_customer_reply_keeps_status(self, client, customer):
        """Test a customer reply leaves the status alone"""
        number = file_ticket(client, customer).json()["ticket_number"]
        client.post(
            f"/api/v1/support/tickets/{number}/responses", json={"message": "Any update?"},
            headers=auth_headers(customer)
        )
        ticket = client.get(f"/api/v1/support/tickets/{number}", headers=auth_headers(customer)).json()
        assert ticket["status"] == "open"

    def test_closed_ticket_rejects_replies(self, client, customer, admin):
        """Test closed tickets take no replies"""
        number = file_ticket(client, customer).json()["ticket_number"]
        client.patch(f"/api/v1/support/admin/tickets/{number}", json={"status": "closed"}, headers=auth_headers(admin))
        response = client.post(
            f"/api/v1/support/tickets/{number}/responses", json={"message": "Hello?"}, headers=auth_headers(customer)
        )
        assert response.status_code == 400


class TestAdminTickets:

    def test_resolution_resolves(self, client, db_session, customer, admin):
        """Test adding a resolution resolves the ticket"""
        number = file_ticket(client, customer).json()["ticket_number"]
        response = client.patch(
            f"/api/v1/support/admin/tickets/{number}",
            json={"resolution": "Image size limit raised to 10 MB."},
            headers=auth_headers(admin)
        )
        data = response.json()
        assert data["status"] == "resolved"
        assert data["resolved_at"] is not None

        ticket = ticket_crud.get_by_number(db_session, number)
        assert ticket.resolved_by == admin.id

    def test_explicit_status_wins_over_resolution(self, client, customer, admin):
        """Test an explicit status wins over an added resolution"""
        number = file_ticket(client, customer).json()["ticket_number"]
        data = client.patch(
            f"/api/v1/support/admin/tickets/{number}",
            json={"resolution": "Duplicate of TKT-000009", "status": "closed"},
            headers=auth_headers(admin)
        ).json()
        assert data["status"] == "closed"
        assert data["resolution"] == "Duplicate of TKT-000009"

    def test_resolution_with_open_status_is_not_stamped(self, client, db_session, customer, admin):
        """Test a ticket kept open carries no resolution stamps"""
        number = file_ticket(client, customer).json()["ticket_number"]
        data = client.patch(
            f"/api/v1/support/admin/tickets/{number}",
            json={"resolution": "Waiting on the storage fix.", "status": "in_progress"},
            headers=auth_headers(admin)
        ).json()
        assert data["status"] == "in_progress"
        assert data["resolution"] == "Waiting on the storage fix."
        assert data["resolved_at"] is None
        assert ticket_crud.get_by_number(db_session, number).resolved_by is None

    def test_reopening_clears_resolution_stamps(self, client, db_session, customer, admin):
        """Test reopening a resolved ticket clears its resolution stamps"""
        number = file_ticket(client, customer).json()["ticket_number"]
        client.patch(
            f"/api/v1/support/admin/tickets/{number}", json={"resolution": "Cache cleared."}, headers=auth_headers(admin)
        )
        data = client.patch(
            f"/api/v1/support/admin/tickets/{number}", json={"status": "open"}, headers=auth_headers(admin)
        ).json()
        assert data["status"] == "open"
        assert data["resolved_at"] is None
        assert ticket_crud.get_by_number(db_session, number).resolved_by is None

    def test_assign_and_filter(self, client, customer, admin):
        """Test assigning tickets and filtering the admin list"""
        number = file_ticket(client, customer).json()["ticket_number"]
        file_ticket(client, customer, priority="low")
        client.patch(
            f"/api/v1/support/admin/tickets/{number}", json={"assigned_to": str(admin.id)}, headers=auth_headers(admin)
        )

        data = client.get(
            "/api/v1/support/admin/tickets", params={"assigned_to": str(admin.id)}, headers=auth_headers(admin)
        ).json()
        assert data["total"] == 1
        assert data["items"][0]["ticket_number"] == number

        high = client.get("/api/v1/support/admin/tickets", params={"priority": "high"}, headers=auth_headers(admin)).json()
        assert high["total"] == 1

    def test_admin_routes_forbidden_for_customers(self, client, customer):
        """Test admin ticket routes are admin only"""
        assert client.get("/api/v1/support/admin/tickets", headers=auth_headers(customer)).status_code == 403

    def test_status_filter(self, client, db_session, customer, admin):
        """Test filtering the admin list by status"""
        number = file_ticket(client, customer).json()["ticket_number"]
        file_ticket(client, customer)
        ticket_crud.admin_update(db_session, ticket_crud.get_by_number(db_session, number),
                                 {"status": TicketStatus.RESOLVED}, admin)

        data = client.get("/api/v1/support/admin/tickets", params={"status": "resolved"}, headers=auth_headers(admin)).json()
        assert data["total"] == 1
