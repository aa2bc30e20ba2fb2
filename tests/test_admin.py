"""
Unit tests for admin endpoints.

Tests:
- Admin dashboard stats
- User management and role rules
- Unlocking accounts and listing running locks
- System health checks
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

from marketplace.api.endpoints import health
from marketplace.core import lockout
from marketplace.models.login_attempt import LoginAttempt
from marketplace.models.notification import Notification
from marketplace.models.user import User, UserRole
from marketplace.models.vendor_service import VendorService

from conftest import DEFAULT_PASSWORD, auth_headers, make_user


def lock(db, email, ip="5.6.7.8", minutes=30):
    return lockout.record_failure(db, email, ip, "pytest", max_attempts=1, lockout_minutes=minutes)


class TestAdminDashboard:

    def test_dashboard_counts(self, client, db_session, admin, customer, vendor, sample_property_data):
        """Test dashboard totals by role, status and lock state"""
        client.post("/api/v1/properties", json=sample_property_data, headers=auth_headers(vendor))
        lock(db_session, "someone@example.com")

        response = client.get("/api/v1/admin/dashboard", headers=auth_headers(admin))
        assert response.status_code == 200
        data = response.json()
        assert data["total_users"] == 3
        assert data["users_by_role"]["vendor"] == 1
        assert data["users_by_role"]["agent"] == 0
        assert data["total_properties"] == 1
        assert data["properties_by_status"] == {"available": 1}
        assert data["active_subscriptions"] == 0
        assert data["locked_accounts"] == 1

    def test_guests_not_counted(self, client, db_session, admin):
        """Test guest accounts are left out of user totals"""
        make_user(db_session, "guest@example.com", is_guest=True)
        data = client.get("/api/v1/admin/dashboard", headers=auth_headers(admin)).json()
        assert data["total_users"] == 1

    def test_requires_admin(self, client, customer):
        """Test dashboard is admin only"""
        response = client.get("/api/v1/admin/dashboard", headers=auth_headers(customer))
        assert response.status_code == 403


class TestUserManagement:

    def test_list_and_filter(self, client, admin, customer, vendor):
        """Test listing users with role and search filters"""
        data = client.get("/api/v1/admin/users", headers=auth_headers(admin)).json()
        assert data["total"] == 3

        vendors = client.get("/api/v1/admin/users", params={"role": "vendor"}, headers=auth_headers(admin)).json()
        assert [u["email"] for u in vendors["items"]] == ["vendor@example.com"]

        found = client.get("/api/v1/admin/users", params={"search": "CUSTOMER"}, headers=auth_headers(admin)).json()
        assert found["total"] == 1

    def test_suspend_deactivates(self, client, admin, customer):
        """Test suspending a user deactivates the account and blocks login"""
        response = client.patch(
            f"/api/v1/admin/users/{customer.id}", json={"status": "suspended"}, headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json()["status"] == "suspended"
        assert response.json()["is_active"] is False

        login = client.post("/api/v1/auth/login", json={"email": customer.email, "password": DEFAULT_PASSWORD})
        assert login.status_code == 403

    def test_reactivate(self, client, db_session, admin, customer):
        """Test reactivating a suspended user"""
        client.patch(f"/api/v1/admin/users/{customer.id}", json={"status": "suspended"}, headers=auth_headers(admin))
        response = client.patch(
            f"/api/v1/admin/users/{customer.id}", json={"status": "active"}, headers=auth_headers(admin)
        )
        assert response.json()["is_active"] is True

    def test_admin_cannot_grant_admin(self, client, admin, customer):
        """Test plain admins cannot hand out admin roles"""
        response = client.patch(
            f"/api/v1/admin/users/{customer.id}", json={"role": "admin"}, headers=auth_headers(admin)
        )
        assert response.status_code == 403

    def test_admin_cannot_touch_other_admins(self, client, db_session, admin):
        """Test admins cannot modify other admin accounts"""
        other = make_user(db_session, "subadmin@example.com", UserRole.SUBADMIN)
        response = client.patch(
            f"/api/v1/admin/users/{other.id}", json={"status": "suspended"}, headers=auth_headers(admin)
        )
        assert response.status_code == 403

    def test_superadmin_grants_admin(self, client, superadmin, customer):
        """Test superadmin can grant admin roles"""
        response = client.patch(
            f"/api/v1/admin/users/{customer.id}", json={"role": "subadmin"}, headers=auth_headers(superadmin)
        )
        assert response.status_code == 200
        assert response.json()["role"] == "subadmin"

    def test_cannot_change_own_role(self, client, superadmin):
        """Test admins cannot change their own role"""
        response = client.patch(
            f"/api/v1/admin/users/{superadmin.id}", json={"role": "customer"}, headers=auth_headers(superadmin)
        )
        assert response.status_code == 400

    def test_vendor_role_change(self, client, admin, customer):
        """Test switching a customer to an agent"""
        response = client.patch(
            f"/api/v1/admin/users/{customer.id}", json={"role": "agent", "is_verified": True},
            headers=auth_headers(admin)
        )
        assert response.json()["role"] == "agent"

    def test_unknown_user(self, client, admin):
        """Test updating a user that does not exist"""
        response = client.patch(
            "/api/v1/admin/users/00000000-0000-4000-8000-000000000000", json={"status": "active"},
            headers=auth_headers(admin)
        )
        assert response.status_code == 404


class TestDeleteUser:

    def test_delete_user_clears_lockout(self, client, db_session, admin, customer):
        """Test deleting a user also clears their lockout records"""
        lock(db_session, customer.email)
        response = client.delete(f"/api/v1/admin/users/{customer.id}", headers=auth_headers(admin))
        assert response.status_code == 200
        assert db_session.query(User).filter(User.email == customer.email).first() is None
        assert lockout.get_locked_attempts(db_session) == []

    def test_delete_user_refreshes_statistics(self, client, db_session, admin, customer, vendor):
        """Test deleting a user refreshes campaign and service statistics"""
        headers = auth_headers(admin)
        campaign = client.post("/api/v1/notifications", json={
            "title": "Price drop",
            "subject": "Price drop",
            "message": "Listings you viewed are now cheaper.",
            "target_audience": "all_users",
            "channels": ["in_app"],
        }, headers=headers).json()
        client.post(f"/api/v1/notifications/{campaign['id']}/send", headers=headers)
        client.post(f"/api/v1/notifications/{campaign['id']}/open", headers=auth_headers(customer))

        service = client.post("/api/v1/services", json={
            "title": "Legal verification",
            "description": "Title search and document checks.",
            "category": "legal",
            "price": 7000,
        }, headers=auth_headers(vendor)).json()
        service_date = (datetime.now(timezone.utc) + timedelta(days=3)).isoformat()
        client.post(
            f"/api/v1/services/{service['id']}/bookings", json={"service_date": service_date},
            headers=auth_headers(customer)
        )

        assert client.delete(f"/api/v1/admin/users/{customer.id}", headers=headers).status_code == 200

        db_session.expire_all()
        notification = db_session.get(Notification, UUID(campaign["id"]))
        assert notification.total_recipients == 2
        assert notification.opened_count == 0
        assert notification.open_rate == 0.0

        row = db_session.get(VendorService, UUID(service["id"]))
        assert row.total_bookings == 0
        assert row.total_revenue == 0.0

    def test_cannot_delete_self(self, client, admin):
        """Test admins cannot delete their own account"""
        assert client.delete(f"/api/v1/admin/users/{admin.id}", headers=auth_headers(admin)).status_code == 400

    def test_only_superadmin_deletes_admins(self, client, db_session, admin, superadmin):
        """Test only superadmin can delete admin accounts"""
        other = make_user(db_session, "other-admin@example.com", UserRole.ADMIN)
        assert client.delete(f"/api/v1/admin/users/{other.id}", headers=auth_headers(admin)).status_code == 403
        assert client.delete(f"/api/v1/admin/users/{other.id}", headers=auth_headers(superadmin)).status_code == 200


class TestLockAdministration:

    def test_unlock_every_ip(self, client, db_session, admin):
        """Test unlocking clears locks from every IP"""
        lock(db_session, "bob@example.com", ip="1.1.1.1")
        lock(db_session, "bob@example.com", ip="2.2.2.2")

        response = client.post("/api/v1/admin/unlock", json={"email": "Bob@Example.com"}, headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json() == {"email": "bob@example.com", "cleared": 2}

        records = db_session.query(LoginAttempt).all()
        assert all(not r.is_locked and r.attempts == 0 for r in records)

    def test_unlock_unknown_email(self, client, admin):
        """Test unlocking an email with no attempts"""
        response = client.post("/api/v1/admin/unlock", json={"email": "nobody@example.com"}, headers=auth_headers(admin))
        assert response.json()["cleared"] == 0

    def test_locked_accounts(self, client, db_session, admin):
        """Test listing currently locked accounts"""
        lock(db_session, "bob@example.com", minutes=30)
        lockout.record_failure(db_session, "alice@example.com", "9.9.9.9", None, max_attempts=5, lockout_minutes=30)

        data = client.get("/api/v1/admin/locked-accounts", headers=auth_headers(admin)).json()
        assert len(data) == 1
        assert data[0]["email"] == "bob@example.com"
        assert data[0]["is_locked"] is True
        assert 29 <= data[0]["remaining_minutes"] <= 30

    def test_unlock_requires_admin(self, client, vendor):
        """Test unlocking is admin only"""
        response = client.post("/api/v1/admin/unlock", json={"email": "bob@example.com"}, headers=auth_headers(vendor))
        assert response.status_code == 403


class TestHealthCheck:

    def test_health(self, client):
        """Test basic health check"""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_detailed_health(self, client, monkeypatch):
        """Test detailed health check with all dependencies up"""
        monkeypatch.setattr(health, "check_broker", lambda: (True, "Broker reachable"))
        data = client.get("/health/detailed").json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["status"] == "healthy"
        assert data["checks"]["broker"]["status"] == "healthy"

    def test_broker_outage_degrades(self, client, monkeypatch):
        """Test broker outage reports degraded, not down"""
        monkeypatch.setattr(health, "check_broker", lambda: (False, "Broker error: connection refused"))
        response = client.get("/health/detailed")
        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["checks"]["database"]["status"] == "healthy"

    def test_root(self, client):
        """Test root endpoint"""
        assert client.get("/").json()["status"] == "healthy"

    def test_request_id_is_echoed(self, client):
        """Test a client supplied request id is echoed back"""
        response = client.get("/health", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"

    def test_request_id_generated(self, client):
        """Test a request id is generated when none is sent"""
        assert len(client.get("/health").headers["X-Request-ID"]) == 16


class TestRequestContextLogging:

    def test_filter_stamps_request_id(self):
        """Test log records carry the current request id"""
        import logging
        from marketplace.core.logging_config import RequestContextFilter, request_id_var

        record = logging.LogRecord("test", logging.INFO, __file__, 1, "hello", None, None)
        token = request_id_var.set("req-1")
        try:
            RequestContextFilter().filter(record)
        finally:
            request_id_var.reset(token)
        assert record.request_id == "req-1"

        RequestContextFilter().filter(record)
        assert record.request_id == "-"
