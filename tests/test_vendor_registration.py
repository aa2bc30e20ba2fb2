"""
Tests for vendor onboarding.

Tests:
- Submitting a business profile
- Application status for the applicant
- Admin review queue, approval and rejection
- Applicant emails
"""

import pytest

from marketplace.models.user import User, UserRole
from marketplace.models.vendor_profile import ApprovalStatus, VendorProfile

from conftest import auth_headers, make_user


@pytest.fixture
def application_data():
    """Sample vendor application"""
    return {
        "company_name": "Skyline Realty",
        "business_type": "real_estate_agent",
        "business_description": "Residential resale and rentals in east Bangalore.",
        "gst_number": "29abcde1234f1z5",
        "pan_number": "ABCDE1234F",
        "experience_years": 6,
        "specializations": ["residential", "rentals"],
        "service_areas": ["Whitefield", "Marathahalli"],
        "languages": ["English", "Kannada"],
        "office_address": {"street": "ITPL Main Road", "city": "Bangalore", "state": "Karnataka", "pincode": "560066"},
        "office_phone": "+918012345678",
        "documents": [{"type": "business_license", "name": "license.pdf"}],
    }


def apply(client, user, data):
    return client.post("/api/v1/vendor-registration/register", json=data, headers=auth_headers(user))


def emails(queued_tasks):
    return [kwargs for name, kwargs in queued_tasks if name == "send_vendor_application_email_task"]


class TestRegister:

    def test_register(self, client, customer, application_data, queued_tasks):
        """Test successful vendor application"""
        response = apply(client, customer, application_data)
        assert response.status_code == 201
        data = response.json()
        assert data["approval_status"] == "pending"
        assert data["gst_number"] == "29ABCDE1234F1Z5"
        assert data["application_id"] == f"VEN-{data['id'].replace('-', '')[-8:].upper()}"
        assert data["submitted_documents"] == [{"type": "business_license", "name": "license.pdf", "url": None}]
        assert data["submitted_at"] is not None

        sent = emails(queued_tasks)
        assert len(sent) == 1
        assert sent[0]["to_email"] == customer.email
        assert sent[0]["decision"] is None

    def test_duplicate_application(self, client, customer, application_data):
        """Test a user can only hold one application"""
        apply(client, customer, application_data)
        response = apply(client, customer, application_data)
        assert response.status_code == 409
        assert response.json()["detail"] == "Vendor profile already exists for this user"

    def test_unverified_user(self, client, db_session, application_data):
        """Test applying requires a verified email"""
        pending = make_user(db_session, "pending@example.com", verified=False)
        assert apply(client, pending, application_data).status_code == 403

    @pytest.mark.parametrize("field, value", [
        ("gst_number", "12345"),
        ("pan_number", "ABC1234"),
        ("business_type", "astrologer"),
        ("experience_years", -1),
    ])
    def test_invalid_fields(self, client, customer, application_data, field, value):
        """Test malformed business details are rejected"""
        assert apply(client, customer, {**application_data, field: value}).status_code == 422


class TestStatus:

    def test_no_application(self, client, customer):
        """Test status for a user who never applied"""
        data = client.get("/api/v1/vendor-registration/status", headers=auth_headers(customer)).json()
        assert data["has_application"] is False
        assert data["status"] is None

    def test_pending_application(self, client, customer, application_data):
        """Test status reports the pending application"""
        application = apply(client, customer, application_data).json()
        data = client.get("/api/v1/vendor-registration/status", headers=auth_headers(customer)).json()
        assert data["has_application"] is True
        assert data["application_id"] == application["application_id"]
        assert data["status"] == "pending"
        assert data["submitted_documents"] == 1


class TestReview:

    def test_queue_filters_by_status(self, client, db_session, admin, customer, application_data):
        """Test the admin queue lists applications by status"""
        apply(client, customer, application_data)
        other = make_user(db_session, "builder@example.com")
        apply(client, other, {**application_data, "company_name": "Brick & Beam", "business_type": "property_developer"})

        data = client.get(
            "/api/v1/vendor-registration/admin/applications", params={"status": "pending"},
            headers=auth_headers(admin)
        ).json()
        assert data["total"] == 2
        assert [item["company_name"] for item in data["items"]] == ["Skyline Realty", "Brick & Beam"]

        approved = client.get(
            "/api/v1/vendor-registration/admin/applications", params={"status": "approved"},
            headers=auth_headers(admin)
        ).json()
        assert approved["total"] == 0

    def test_queue_requires_admin(self, client, customer):
        """Test applicants cannot see the review queue"""
        response = client.get("/api/v1/vendor-registration/admin/applications", headers=auth_headers(customer))
        assert response.status_code == 403

    def test_approve_promotes_customer(self, client, db_session, admin, customer, application_data, queued_tasks):
        """Test approval makes a customer a vendor and emails the decision"""
        application = apply(client, customer, application_data).json()
        response = client.post(
            f"/api/v1/vendor-registration/admin/applications/{application['id']}/approve",
            json={"approval_notes": "Documents verified"}, headers=auth_headers(admin)
        )
        assert response.status_code == 200
        data = response.json()
        assert data["approval_status"] == "approved"
        assert data["reviewed_by"] == str(admin.id)
        assert data["reviewed_at"] is not None

        db_session.expire_all()
        assert db_session.get(User, customer.id).role == UserRole.VENDOR

        decision = emails(queued_tasks)[-1]
        assert decision["decision"] == "approved"
        assert decision["note"] == "Documents verified"

    def test_approve_keeps_agent_role(self, client, db_session, admin, application_data):
        """Test approving an agent does not downgrade them to vendor"""
        agent = make_user(db_session, "agent@example.com", UserRole.AGENT)
        application = apply(client, agent, application_data).json()
        client.post(
            f"/api/v1/vendor-registration/admin/applications/{application['id']}/approve",
            json={}, headers=auth_headers(admin)
        )
        db_session.expire_all()
        assert db_session.get(User, agent.id).role == UserRole.AGENT

    def test_reject(self, client, db_session, admin, customer, application_data, queued_tasks):
        """Test rejection records the reason and leaves the role alone"""
        application = apply(client, customer, application_data).json()
        response = client.post(
            f"/api/v1/vendor-registration/admin/applications/{application['id']}/reject",
            json={"rejection_reason": "GST certificate missing"}, headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json()["approval_status"] == "rejected"
        assert response.json()["rejection_reason"] == "GST certificate missing"

        db_session.expire_all()
        assert db_session.get(User, customer.id).role == UserRole.CUSTOMER
        assert emails(queued_tasks)[-1]["decision"] == "rejected"

        status = client.get("/api/v1/vendor-registration/status", headers=auth_headers(customer)).json()
        assert status["status"] == "rejected"
        assert status["rejection_reason"] == "GST certificate missing"

    def test_reject_needs_reason(self, client, admin, customer, application_data):
        """Test rejection without a reason is refused"""
        application = apply(client, customer, application_data).json()
        response = client.post(
            f"/api/v1/vendor-registration/admin/applications/{application['id']}/reject",
            json={}, headers=auth_headers(admin)
        )
        assert response.status_code == 422

    def test_decision_is_final(self, client, db_session, admin, customer, application_data):
        """Test a reviewed application cannot be reviewed again"""
        application = apply(client, customer, application_data).json()
        url = f"/api/v1/vendor-registration/admin/applications/{application['id']}"
        client.post(f"{url}/reject", json={"rejection_reason": "Incomplete"}, headers=auth_headers(admin))

        response = client.post(f"{url}/approve", json={}, headers=auth_headers(admin))
        assert response.status_code == 400
        assert response.json()["detail"] == "Application is already rejected"
        assert db_session.query(VendorProfile).one().approval_status == ApprovalStatus.REJECTED

    def test_unknown_application(self, client, admin):
        """Test reviewing an application that does not exist"""
        response = client.post(
            "/api/v1/vendor-registration/admin/applications/00000000-0000-4000-8000-000000000000/approve",
            json={}, headers=auth_headers(admin)
        )
        assert response.status_code == 404
