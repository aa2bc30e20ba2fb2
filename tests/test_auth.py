"""
Unit tests for authentication endpoints.

Tests:
- User registration
- Login
- Token refresh
- Profile (/me)
- Password reset
- Email verification flow
"""

from datetime import timedelta

from marketplace.core import lockout
from marketplace.core.security import create_access_token, verify_password
from marketplace.core.timeutils import utcnow
from marketplace.crud import platform_settings as settings_crud
from marketplace.models.notification import Notification, NotificationRecipient, TargetAudience
from marketplace.models.user import User, UserRole, UserStatus

from conftest import DEFAULT_PASSWORD, auth_headers, make_user


def register(client, **overrides):
    payload = {
        "email": "new@example.com",
        "password": DEFAULT_PASSWORD,
        "first_name": "Asha",
        "last_name": "Rao",
        "city": "Pune",
    }
    payload.update(overrides)
    return client.post("/api/v1/auth/register", json=payload)


def sent_code(queued_tasks) -> str:
    codes = [kw["verification_code"] for name, kw in queued_tasks if name == "send_verification_email_task"]
    return codes[-1]


class TestUserRegistration:
    """Test user registration endpoint"""

    def test_register_success(self, client, db_session, queued_tasks):
        """Test successful user registration"""
        response = register(client)

        assert response.status_code == 201
        data = response.json()
        assert "access_token" in data
        assert "refresh_token" in data
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 30 * 60

        user = db_session.query(User).filter(User.email == "new@example.com").first()
        assert user.status == UserStatus.PENDING
        assert user.is_verified is False
        assert user.role == UserRole.CUSTOMER
        assert len(sent_code(queued_tasks)) == 6

    def test_register_vendor(self, client, db_session):
        """Test registering as a vendor"""
        assert register(client, role="vendor").status_code == 201
        assert db_session.query(User).filter(User.email == "new@example.com").first().role == UserRole.VENDOR

    def test_register_cannot_claim_admin(self, client):
        """Test registration cannot request an admin role"""
        assert register(client, role="admin").status_code == 422

    def test_register_duplicate_email(self, client, customer):
        """Test registration with duplicate email fails"""
        response = register(client, email="Customer@Example.com")
        assert response.status_code == 409
        assert "already registered" in response.json()["detail"].lower()

    def test_register_upgrades_guest(self, client, db_session):
        """Test registering over a guest account upgrades it"""
        make_user(db_session, "guest@example.com", is_guest=True)
        assert register(client, email="guest@example.com").status_code == 201
        user = db_session.query(User).filter(User.email == "guest@example.com").first()
        db_session.refresh(user)
        assert user.is_guest is False
        assert user.first_name == "Asha"

    def test_register_weak_password(self, client):
        """Test registration with weak password fails"""
        assert register(client, password="alllowercase1").status_code == 422

    def test_register_respects_min_length_setting(self, client, db_session):
        """Test password length follows the platform setting"""
        settings_crud.update_category(db_session, "security", {"password_min_length": 16})
        response = register(client)
        assert response.status_code == 400
        assert "16" in response.json()["detail"]

    def test_registration_disabled(self, client, db_session):
        """Test registration is refused when turned off"""
        settings_crud.update_category(db_session, "general", {"registration_enabled": False})
        assert register(client).status_code == 403


class TestUserLogin:

    def login(self, client, email="customer@example.com", password=DEFAULT_PASSWORD, **extra):
        return client.post("/api/v1/auth/login", json={"email": email, "password": password, **extra})

    def test_login_success(self, client, customer, db_session):
        """Test successful login"""
        response = self.login(client)
        assert response.status_code == 200
        assert response.json()["access_token"]

        db_session.refresh(customer)
        assert customer.last_login_at is not None

    def test_email_is_case_insensitive(self, client, customer):
        """Test login email is case insensitive"""
        assert self.login(client, email="CUSTOMER@example.com").status_code == 200

    def test_wrong_password(self, client, customer):
        """Test login with wrong password fails"""
        response = self.login(client, password="WrongPass1")
        assert response.status_code == 401
        assert response.json()["detail"] == "Incorrect email or password"

    def test_unknown_email_same_error(self, client):
        """Test unknown email gets the same error as a wrong password"""
        response = self.login(client, email="nobody@example.com")
        assert response.status_code == 401
        assert response.json()["detail"] == "Incorrect email or password"

    def test_guest_account_cannot_login(self, client, db_session):
        """Test guest accounts cannot log in"""
        make_user(db_session, "guest@example.com", is_guest=True)
        assert self.login(client, email="guest@example.com").status_code == 401

    def test_inactive_account(self, client, db_session, customer):
        """Test deactivated accounts cannot log in"""
        customer.is_active = False
        db_session.commit()
        assert self.login(client).status_code == 403

    def test_session_timeout_sets_token_lifetime(self, client, db_session, customer):
        """Test session timeout setting controls token lifetime"""
        settings_crud.update_category(db_session, "security", {"session_timeout": 90})
        assert self.login(client).json()["expires_in"] == 90 * 60


class TestTokenRefresh:

    def test_refresh(self, client, customer):
        """Test refreshing tokens"""
        tokens = client.post(
            "/api/v1/auth/login", json={"email": customer.email, "password": DEFAULT_PASSWORD}
        ).json()
        response = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 200
        assert response.json()["access_token"]

    def test_access_token_rejected(self, client, customer):
        """Test an access token cannot be used to refresh"""
        token = create_access_token(data={"sub": str(customer.id), "role": "customer"})
        response = client.post("/api/v1/auth/refresh", json={"refresh_token": token})
        assert response.status_code == 401

    def test_garbage_token(self, client):
        """Test refresh with a malformed token fails"""
        response = client.post("/api/v1/auth/refresh", json={"refresh_token": "not-a-jwt"})
        assert response.status_code == 401


class TestProfile:

    def test_me(self, client, customer):
        """Test getting the current user"""
        response = client.get("/api/v1/auth/me", headers=auth_headers(customer))
        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "customer@example.com"
        assert data["role"] == "customer"
        assert "hashed_password" not in data

    def test_me_requires_token(self, client):
        """Test current user endpoint needs a token"""
        assert client.get("/api/v1/auth/me").status_code in (401, 403)

    def test_update_profile(self, client, customer):
        """Test updating profile fields"""
        response = client.patch(
            "/api/v1/auth/me", json={"city": "Chennai", "phone": "9876543210"}, headers=auth_headers(customer)
        )
        assert response.status_code == 200
        assert response.json()["city"] == "Chennai"

    def test_delete_account_clears_lockout(self, client, db_session, customer):
        """Test deleting an account clears its lockout records"""
        lockout.record_failure(db_session, customer.email, "1.2.3.4", None, max_attempts=5, lockout_minutes=30)

        response = client.delete("/api/v1/auth/me", headers=auth_headers(customer))
        assert response.status_code == 200

        db_session.expire_all()
        assert db_session.query(User).filter(User.email == "customer@example.com").first() is None
        assert lockout.get_attempt(db_session, "customer@example.com", "1.2.3.4") is None

    def test_delete_account_updates_campaign_statistics(self, client, db_session, customer):
        """Test deleting an account removes it from campaign statistics"""
        notification = Notification(
            title="Welcome", subject="Welcome", message="Thanks for joining.",
            target_audience=TargetAudience.ALL_USERS, channels=["in_app"]
        )
        notification.recipients.append(NotificationRecipient(user_id=customer.id, delivered=True))
        db_session.add(notification)
        db_session.commit()
        notification_id = notification.id
        assert notification.total_recipients == 1

        assert client.delete("/api/v1/auth/me", headers=auth_headers(customer)).status_code == 200

        db_session.expire_all()
        stored = db_session.get(Notification, notification_id)
        assert stored.total_recipients == 0
        assert stored.delivery_rate == 0.0


class TestPasswordReset:

    def test_forgot_password_queues_email(self, client, customer, queued_tasks):
        """Test forgot password queues a reset email"""
        response = client.post("/api/v1/auth/forgot-password", json={"email": customer.email})
        assert response.status_code == 200
        assert any(name == "send_password_reset_email_task" for name, _ in queued_tasks)

    def test_forgot_password_unknown_email_same_message(self, client, customer, queued_tasks):
        """Test forgot password does not reveal unknown emails"""
        known = client.post("/api/v1/auth/forgot-password", json={"email": customer.email}).json()
        unknown = client.post("/api/v1/auth/forgot-password", json={"email": "nobody@example.com"}).json()
        assert known == unknown

    def test_reset_password(self, client, db_session, customer, queued_tasks):
        """Test resetting the password with a valid token"""
        client.post("/api/v1/auth/forgot-password", json={"email": customer.email})
        token = [kw["reset_token"] for name, kw in queued_tasks if name == "send_password_reset_email_task"][0]

        for _ in range(3):
            lockout.record_failure(db_session, customer.email, "1.2.3.4", None, max_attempts=5, lockout_minutes=30)

        response = client.post(
            "/api/v1/auth/reset-password", json={"token": token, "new_password": "BrandNew456"}
        )
        assert response.status_code == 200

        db_session.expire_all()
        user = db_session.query(User).filter(User.email == customer.email).first()
        assert verify_password("BrandNew456", user.hashed_password)
        assert user.reset_token is None
        assert lockout.get_attempt(db_session, customer.email, "1.2.3.4") is None

    def test_expired_token(self, client, db_session, customer):
        """Test reset with an expired token fails"""
        customer.reset_token = "stale-token"
        customer.reset_token_expires_at = utcnow() - timedelta(minutes=5)
        db_session.commit()

        response = client.post(
            "/api/v1/auth/reset-password", json={"token": "stale-token", "new_password": "BrandNew456"}
        )
        assert response.status_code == 400
        assert "expired" in response.json()["detail"].lower()

    def test_invalid_token(self, client, customer):
        """Test reset with an invalid token fails"""
        response = client.post(
            "/api/v1/auth/reset-password", json={"token": "nope", "new_password": "BrandNew456"}
        )
        assert response.status_code == 400

    def test_reset_disabled(self, client, db_session, customer):
        """Test password reset is refused when turned off"""
        settings_crud.update_category(db_session, "security", {"allow_password_reset": False})
        response = client.post("/api/v1/auth/forgot-password", json={"email": customer.email})
        assert response.status_code == 403


class TestEmailVerification:

    def test_verify_with_emailed_code(self, client, db_session, queued_tasks):
        """Test verifying email with the emailed code"""
        token = register(client).json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}

        response = client.post("/api/v1/auth/verify-email", json={"code": sent_code(queued_tasks)}, headers=headers)
        assert response.status_code == 200
        assert response.json()["is_verified"] is True

        user = db_session.query(User).filter(User.email == "new@example.com").first()
        db_session.refresh(user)
        assert user.is_verified is True
        assert user.status == UserStatus.ACTIVE

    def test_wrong_code(self, client, queued_tasks):
        """Test verification with a wrong code fails"""
        token = register(client).json()["access_token"]
        code = sent_code(queued_tasks)
        wrong = "000000" if code != "000000" else "111111"
        response = client.post(
            "/api/v1/auth/verify-email", json={"code": wrong}, headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 400
        assert "4 attempts left" in response.json()["detail"]

    def test_code_retired_after_five_wrong_guesses(self, client, queued_tasks):
        """Test a code stops working after five wrong guesses"""
        token = register(client).json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}
        code = sent_code(queued_tasks)
        wrong = "000000" if code != "000000" else "111111"

        for _ in range(4):
            client.post("/api/v1/auth/verify-email", json={"code": wrong}, headers=headers)
        last = client.post("/api/v1/auth/verify-email", json={"code": wrong}, headers=headers)
        assert "Too many attempts" in last.json()["detail"]

        response = client.post("/api/v1/auth/verify-email", json={"code": code}, headers=headers)
        assert response.status_code == 400
        assert "No active verification code" in response.json()["detail"]

    def test_malformed_code(self, client):
        """Test verification rejects malformed codes"""
        token = register(client).json()["access_token"]
        response = client.post(
            "/api/v1/auth/verify-email", json={"code": "12ab56"}, headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 422

    def test_resend_invalidates_old_code(self, client, queued_tasks):
        """Test resending a code invalidates the previous one"""
        token = register(client).json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}
        first = sent_code(queued_tasks)

        assert client.post("/api/v1/auth/resend-verification-code", headers=headers).status_code == 200
        second = sent_code(queued_tasks)

        if first != second:
            assert client.post("/api/v1/auth/verify-email", json={"code": first}, headers=headers).status_code == 400
        assert client.post("/api/v1/auth/verify-email", json={"code": second}, headers=headers).status_code == 200

    def test_send_code_when_verified(self, client, customer):
        """Test sending a code to an already verified user"""
        response = client.post("/api/v1/auth/send-verification-code", headers=auth_headers(customer))
        assert response.status_code == 400

    def test_status_pending(self, client):
        """Test verification status for an unverified user"""
        token = register(client).json()["access_token"]
        response = client.get("/api/v1/auth/verification-status", headers={"Authorization": f"Bearer {token}"})
        assert response.json()["is_verified"] is False
        data = response.json()
        assert "pending" in data["message"].lower()
        assert data["account_status"] == "pending"
        assert data["attempts_remaining"] == 5
        assert data["code_expires_at"] is not None

    def test_unverified_user_blocked_from_verified_routes(self, client, db_session):
        """Test unverified users are blocked from verified-only routes"""
        pending = make_user(db_session, "pending@example.com", verified=False)
        response = client.post(
            "/api/v1/subscriptions",
            json={"plan_id": "00000000-0000-4000-8000-000000000000"},
            headers=auth_headers(pending)
        )
        assert response.status_code == 403
