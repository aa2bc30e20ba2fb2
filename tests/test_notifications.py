"""
Tests for notification campaigns and their statistics.

Tests:
- Funnel statistics (zero-guarded rates)
- Recompute on flush when recipients change
- Status lifecycle
- Audience resolution
- Admin create/send/schedule/cancel endpoints
- Inbox, open and click tracking
- Scheduled dispatch task
"""

from datetime import datetime, timedelta, timezone

import pytest

from marketplace.crud import notification as notification_crud
from marketplace.models.notification import (
    Notification, NotificationRecipient, NotificationStatus, TargetAudience, compute_notification_statistics
)
from marketplace.models.user import UserRole
from marketplace.schemas.notification import NotificationCreate

from conftest import TestingSessionLocal, auth_headers, make_user


def recipients(delivered=0, opened=0, clicked=0, pending=0):
    """Recipient rows with the given funnel shape (clicked <= opened <= delivered)."""
    rows = []
    for i in range(delivered):
        rows.append(NotificationRecipient(delivered=True, opened=i < opened, clicked=i < clicked))
    rows.extend(NotificationRecipient(delivered=False, opened=False, clicked=False) for _ in range(pending))
    return rows


def new_campaign(db, audience=TargetAudience.ALL_USERS, channels=("in_app",), **filters):
    data = NotificationCreate(
        title="Monsoon offers",
        subject="Monsoon offers",
        message="Zero brokerage on rentals this week.",
        target_audience=audience,
        channels=list(channels),
        audience_filters=filters,
    )
    return notification_crud.create(db, data)


class TestStatisticsComputation:
    """compute_notification_statistics"""

    def test_empty_recipients_give_zero_rates(self):
        """Test statistics of an empty recipient list"""
        stats = compute_notification_statistics([])
        assert stats.total_recipients == 0
        assert stats.delivery_rate == 0.0
        assert stats.open_rate == 0.0
        assert stats.click_rate == 0.0

    def test_funnel_rates(self):
        """Test delivery, open and click rates"""
        stats = compute_notification_statistics(recipients(delivered=8, opened=4, clicked=1, pending=2))
        assert (stats.total_recipients, stats.delivered, stats.opened, stats.clicked) == (10, 8, 4, 1)
        assert stats.delivery_rate == pytest.approx(80.0)
        assert stats.open_rate == pytest.approx(50.0)
        assert stats.click_rate == pytest.approx(25.0)

    def test_nothing_delivered_gives_zero_open_rate(self):
        """Test open rate is zero when nothing was delivered"""
        stats = compute_notification_statistics(recipients(pending=5))
        assert stats.delivery_rate == 0.0
        assert stats.open_rate == 0.0
        assert stats.click_rate == 0.0

    def test_nothing_opened_gives_zero_click_rate(self):
        """Test click rate is zero when nothing was opened"""
        stats = compute_notification_statistics(recipients(delivered=3))
        assert stats.delivery_rate == pytest.approx(100.0)
        assert stats.open_rate == 0.0
        assert stats.click_rate == 0.0

    def test_rates_stay_within_bounds(self):
        """Test rates never exceed 100 percent"""
        stats = compute_notification_statistics(recipients(delivered=3, opened=3, clicked=3))
        for rate in (stats.delivery_rate, stats.open_rate, stats.click_rate):
            assert 0.0 <= rate <= 100.0


class TestRecomputeOnFlush:
    """Statistics columns follow the recipient rows"""

    def test_new_recipients_update_statistics(self, db_session, customer, vendor):
        """Test adding recipients refreshes the counters"""
        notification = new_campaign(db_session)
        notification.recipients.append(NotificationRecipient(user_id=customer.id, delivered=True))
        notification.recipients.append(NotificationRecipient(user_id=vendor.id))
        db_session.commit()

        db_session.expire_all()
        stored = db_session.get(Notification, notification.id)
        assert stored.total_recipients == 2
        assert stored.delivered_count == 1
        assert stored.delivery_rate == pytest.approx(50.0)

    def test_changing_a_recipient_updates_parent(self, db_session, customer):
        """Test updating a recipient refreshes its campaign"""
        notification = new_campaign(db_session)
        notification.recipients.append(NotificationRecipient(user_id=customer.id, delivered=True))
        db_session.commit()

        recipient = notification_crud.get_recipient(db_session, notification.id, customer.id)
        notification_crud.mark_opened(db_session, recipient)

        db_session.expire_all()
        stored = db_session.get(Notification, notification.id)
        assert stored.opened_count == 1
        assert stored.open_rate == pytest.approx(100.0)
        assert stored.click_rate == 0.0

    def test_recipient_added_by_notification_id(self, db_session, customer):
        """Test a recipient added by foreign key is counted"""
        notification = new_campaign(db_session)
        db_session.add(NotificationRecipient(notification_id=notification.id, user_id=customer.id, delivered=True))
        db_session.commit()

        db_session.expire_all()
        stored = db_session.get(Notification, notification.id)
        assert stored.total_recipients == 1
        assert stored.delivered_count == 1
        assert stored.delivery_rate == pytest.approx(100.0)

    def test_deleted_recipient_is_not_counted(self, db_session, customer, vendor):
        """Test deleting a recipient drops it from the counters"""
        notification = new_campaign(db_session)
        notification.recipients.append(NotificationRecipient(user_id=customer.id, delivered=True))
        notification.recipients.append(NotificationRecipient(user_id=vendor.id))
        db_session.commit()

        db_session.delete(notification_crud.get_recipient(db_session, notification.id, customer.id))
        db_session.commit()

        db_session.expire_all()
        stored = db_session.get(Notification, notification.id)
        assert stored.total_recipients == 1
        assert stored.delivered_count == 0
        assert stored.delivery_rate == 0.0

    def test_click_implies_open_and_delivery(self, db_session, customer):
        """Test a click also marks the recipient opened and delivered"""
        notification = new_campaign(db_session, channels=("email",))
        notification.recipients.append(NotificationRecipient(user_id=customer.id))
        db_session.commit()

        recipient = notification_crud.get_recipient(db_session, notification.id, customer.id)
        notification_crud.mark_clicked(db_session, recipient)

        assert recipient.delivered and recipient.opened and recipient.clicked
        db_session.expire_all()
        stats = db_session.get(Notification, notification.id).statistics
        assert (stats.delivered, stats.opened, stats.clicked) == (1, 1, 1)
        assert stats.click_rate == pytest.approx(100.0)


class TestLifecycle:

    def test_draft_by_default(self, db_session):
        """Test new campaigns start as drafts"""
        assert new_campaign(db_session).status == NotificationStatus.DRAFT

    def test_sent_notification_cannot_be_cancelled(self, db_session, customer):
        """Test sent campaigns cannot be cancelled"""
        notification = notification_crud.send(db_session, new_campaign(db_session))
        assert notification.status == NotificationStatus.SENT
        with pytest.raises(ValueError):
            notification_crud.cancel(db_session, notification)

    def test_cancelled_notification_cannot_be_sent(self, db_session, customer):
        """Test cancelled campaigns cannot be sent"""
        notification = notification_crud.cancel(db_session, new_campaign(db_session))
        with pytest.raises(ValueError):
            notification_crud.send(db_session, notification)

    def test_sent_notification_cannot_be_edited(self, db_session, customer):
        """Test sent campaigns cannot be edited"""
        notification = notification_crud.send(db_session, new_campaign(db_session))
        with pytest.raises(ValueError):
            notification_crud.update(db_session, notification, {"title": "Changed"})

    def test_schedule_requires_future_date(self, db_session):
        """Test scheduling needs a future date"""
        notification = new_campaign(db_session)
        with pytest.raises(ValueError):
            notification_crud.schedule(db_session, notification, datetime.now(timezone.utc) - timedelta(minutes=1))

    def test_create_rejects_past_schedule(self, db_session):
        """Test creating a campaign scheduled in the past fails"""
        data = NotificationCreate(
            title="Late", subject="Late", message="Already gone.",
            target_audience=TargetAudience.ALL_USERS,
            scheduled_date=datetime.now(timezone.utc) - timedelta(minutes=1),
        )
        with pytest.raises(ValueError):
            notification_crud.create(db_session, data)
        assert db_session.query(Notification).count() == 0

    def test_scheduled_cannot_return_to_draft(self, db_session):
        """Test a scheduled campaign cannot go back to draft"""
        notification = new_campaign(db_session)
        notification_crud.schedule(db_session, notification, datetime.now(timezone.utc) + timedelta(hours=1))
        assert not notification.can_transition_to(NotificationStatus.DRAFT)
        with pytest.raises(ValueError):
            notification.transition_to(NotificationStatus.DRAFT)


class TestAudience:

    def test_vendors_include_agents(self, db_session, customer, vendor):
        """Test the vendor audience includes agents"""
        agent = make_user(db_session, "agent@example.com", UserRole.AGENT)
        users = notification_crud.resolve_audience(db_session, new_campaign(db_session, TargetAudience.VENDORS))
        assert {u.id for u in users} == {vendor.id, agent.id}

    def test_city_specific(self, db_session, customer, vendor):
        """Test city specific audience matches case insensitively"""
        notification = new_campaign(db_session, TargetAudience.CITY_SPECIFIC, city_filter=["bangalore"])
        assert [u.id for u in notification_crud.resolve_audience(db_session, notification)] == [customer.id]

    def test_custom_ids(self, db_session, customer, vendor):
        """Test custom audience uses the listed user ids"""
        notification = new_campaign(db_session, TargetAudience.CUSTOM, user_ids=[str(vendor.id)])
        assert [u.id for u in notification_crud.resolve_audience(db_session, notification)] == [vendor.id]

    def test_active_users_logged_in_recently(self, db_session, customer, vendor):
        """Test active audience is users who logged in recently"""
        customer.last_login_at = datetime.now(timezone.utc) - timedelta(days=2)
        vendor.last_login_at = datetime.now(timezone.utc) - timedelta(days=90)
        db_session.commit()
        users = notification_crud.resolve_audience(db_session, new_campaign(db_session, TargetAudience.ACTIVE_USERS))
        assert [u.id for u in users] == [customer.id]

    def test_guests_and_inactive_users_excluded(self, db_session, customer):
        """Test guests and inactive users never receive campaigns"""
        make_user(db_session, "guest@example.com", is_guest=True)
        make_user(db_session, "gone@example.com").is_active = False
        db_session.commit()
        users = notification_crud.resolve_audience(db_session, new_campaign(db_session))
        assert [u.id for u in users] == [customer.id]

    def test_empty_audience_fails_campaign(self, db_session):
        """Test a campaign with no recipients is marked failed"""
        notification = notification_crud.send(db_session, new_campaign(db_session, TargetAudience.PREMIUM_USERS))
        assert notification.status == NotificationStatus.FAILED
        assert notification.failure_reason == "No recipients found"
        assert notification.total_recipients == 0


class TestNotificationEndpoints:

    def payload(self, **overrides):
        data = {
            "title": "New listings near you",
            "subject": "New listings near you",
            "message": "Fresh 2BHK rentals were listed this morning.",
            "target_audience": "all_users",
            "channels": ["in_app", "email"],
        }
        data.update(overrides)
        return data

    def test_create_requires_admin(self, client, customer):
        """Test creating campaigns is admin only"""
        response = client.post("/api/v1/notifications", json=self.payload(), headers=auth_headers(customer))
        assert response.status_code == 403

    def test_city_specific_needs_city(self, client, admin):
        """Test city specific campaigns need a city filter"""
        response = client.post(
            "/api/v1/notifications",
            json=self.payload(target_audience="city_specific"),
            headers=auth_headers(admin)
        )
        assert response.status_code == 422

    def test_create_and_send(self, client, admin, customer, vendor, queued_tasks):
        """Test creating and sending a campaign"""
        headers = auth_headers(admin)
        created = client.post("/api/v1/notifications", json=self.payload(), headers=headers).json()
        assert created["status"] == "draft"
        assert created["statistics"]["total_recipients"] == 0

        response = client.post(f"/api/v1/notifications/{created['id']}/send", headers=headers)
        assert response.status_code == 200
        sent = response.json()
        assert sent["status"] == "sent"
        # admin, customer and vendor; in-app delivery is immediate
        assert sent["statistics"]["total_recipients"] == 3
        assert sent["statistics"]["delivery_rate"] == pytest.approx(100.0)
        assert sent["statistics"]["open_rate"] == 0.0

        # One email per recipient on top of the in-app delivery
        assert sum(1 for name, _ in queued_tasks if name == "deliver_notification_email_task") == 3

    def test_send_twice_is_rejected(self, client, admin, customer):
        """Test a campaign cannot be sent twice"""
        headers = auth_headers(admin)
        created = client.post("/api/v1/notifications", json=self.payload(), headers=headers).json()
        client.post(f"/api/v1/notifications/{created['id']}/send", headers=headers)
        response = client.post(f"/api/v1/notifications/{created['id']}/send", headers=headers)
        assert response.status_code == 400

    def test_schedule_and_cancel(self, client, admin):
        """Test scheduling and then cancelling a campaign"""
        headers = auth_headers(admin)
        created = client.post("/api/v1/notifications", json=self.payload(), headers=headers).json()
        when = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()

        scheduled = client.post(
            f"/api/v1/notifications/{created['id']}/schedule", json={"scheduled_date": when}, headers=headers
        ).json()
        assert scheduled["status"] == "scheduled"
        assert scheduled["is_scheduled"] is True

        cancelled = client.post(f"/api/v1/notifications/{created['id']}/cancel", headers=headers).json()
        assert cancelled["status"] == "cancelled"

    def test_inbox_open_click_and_statistics(self, client, admin, customer, vendor):
        """Test inbox opens and clicks feed campaign statistics"""
        headers = auth_headers(admin)
        created = client.post("/api/v1/notifications", json=self.payload(channels=["in_app"]), headers=headers).json()
        client.post(f"/api/v1/notifications/{created['id']}/send", headers=headers)

        inbox = client.get("/api/v1/notifications/inbox", headers=auth_headers(customer)).json()
        assert len(inbox) == 1
        assert inbox[0]["opened"] is False

        assert client.post(
            f"/api/v1/notifications/{created['id']}/open", headers=auth_headers(customer)
        ).status_code == 204
        assert client.post(
            f"/api/v1/notifications/{created['id']}/click", headers=auth_headers(vendor)
        ).status_code == 204

        stats = client.get(f"/api/v1/notifications/{created['id']}/statistics", headers=headers).json()
        assert stats["total_recipients"] == 3
        assert stats["opened"] == 2
        assert stats["clicked"] == 1
        assert stats["open_rate"] == pytest.approx(200 / 3)
        assert stats["click_rate"] == pytest.approx(50.0)

    def test_open_by_non_recipient_is_404(self, client, admin, customer):
        """Test users outside the audience cannot open a campaign"""
        headers = auth_headers(admin)
        created = client.post(
            "/api/v1/notifications",
            json=self.payload(target_audience="vendors"),
            headers=headers
        ).json()
        response = client.post(f"/api/v1/notifications/{created['id']}/open", headers=auth_headers(customer))
        assert response.status_code == 404

    def test_overview(self, client, admin, customer):
        """Test totals across all campaigns"""
        headers = auth_headers(admin)
        created = client.post("/api/v1/notifications", json=self.payload(), headers=headers).json()
        client.post(f"/api/v1/notifications/{created['id']}/send", headers=headers)
        client.post("/api/v1/notifications", json=self.payload(), headers=headers)

        overview = client.get("/api/v1/notifications/overview", headers=headers).json()
        assert overview["total_notifications"] == 2
        assert overview["sent"] == 1
        assert overview["drafts"] == 1
        assert overview["total_recipients"] == 2


class TestScheduledDispatch:

    def test_due_campaigns_are_sent(self, db_session, customer, monkeypatch):
        """Test the dispatcher sends only campaigns that are due"""
        from marketplace.tasks.notification_tasks import dispatch_scheduled_notifications_task

        monkeypatch.setattr("marketplace.core.database.SessionLocal", TestingSessionLocal)

        due = new_campaign(db_session)
        notification_crud.schedule(db_session, due, datetime.now(timezone.utc) + timedelta(minutes=5))
        due.scheduled_date = datetime.now(timezone.utc) - timedelta(minutes=1)
        later = new_campaign(db_session)
        notification_crud.schedule(db_session, later, datetime.now(timezone.utc) + timedelta(hours=1))
        db_session.commit()

        result = dispatch_scheduled_notifications_task()
        assert result == {"status": "success", "sent": 1, "failed": 0}

        db_session.expire_all()
        assert db_session.get(Notification, due.id).status == NotificationStatus.SENT
        assert db_session.get(Notification, later.id).status == NotificationStatus.SCHEDULED


class TestEmailDelivery:
    """deliver_notification_email_task"""

    @pytest.fixture
    def email_campaign(self, db_session, customer, monkeypatch):
        monkeypatch.setattr("marketplace.core.database.SessionLocal", TestingSessionLocal)
        notification = new_campaign(db_session, TargetAudience.CUSTOM, channels=("email",), user_ids=[str(customer.id)])
        return notification_crud.send(db_session, notification)

    def test_sent_email_marks_recipient_delivered(self, db_session, customer, email_campaign, monkeypatch):
        """Test a sent email marks the recipient delivered"""
        from marketplace.tasks import notification_tasks

        sent = []
        monkeypatch.setattr(
            notification_tasks.email_service, "send_notification_email", lambda **kwargs: sent.append(kwargs) or True
        )
        notification_id = email_campaign.id
        assert email_campaign.total_recipients == 1
        assert email_campaign.delivery_rate == 0.0

        result = notification_tasks.deliver_notification_email_task(str(notification_id), str(customer.id))
        assert result == {"status": "success", "email": "customer@example.com"}
        assert sent[0]["to_email"] == "customer@example.com"
        assert sent[0]["subject"] == "Monsoon offers"

        db_session.expire_all()
        stored = db_session.get(Notification, notification_id)
        assert stored.delivered_count == 1
        assert stored.delivery_rate == pytest.approx(100.0)
        assert notification_crud.get_recipient(db_session, notification_id, customer.id).delivered_at is not None

    def test_failed_email_raises_and_stays_undelivered(self, db_session, customer, email_campaign, monkeypatch):
        """Test a failed email raises for retry and stays undelivered"""
        from marketplace.tasks import notification_tasks

        monkeypatch.setattr(notification_tasks.email_service, "send_notification_email", lambda **kwargs: False)
        notification_id = email_campaign.id

        with pytest.raises(RuntimeError):
            notification_tasks.deliver_notification_email_task(str(notification_id), str(customer.id))

        db_session.expire_all()
        stored = db_session.get(Notification, notification_id)
        assert stored.delivered_count == 0
        assert stored.delivery_rate == 0.0
        assert notification_crud.get_recipient(db_session, notification_id, customer.id).delivered is False

    def test_unknown_recipient_is_skipped(self, db_session, vendor, email_campaign, monkeypatch):
        """Test email delivery skips unknown recipients"""
        from marketplace.tasks import notification_tasks

        result = notification_tasks.deliver_notification_email_task(str(email_campaign.id), str(vendor.id))
        assert result == {"status": "skipped"}
