"""
Tests for vendor services, bookings, reviews and service statistics.

Tests:
- Statistics aggregation (zero-guarded)
- Explicit recompute after bookings and reviews
- Best-effort refresh that never fails the write
- Booking lifecycle and who may move it
- Review rules and vendor responses
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import UUID

import pytest
from sqlalchemy.exc import OperationalError

from marketplace.crud import vendor_service as service_crud
from marketplace.models.vendor_service import BookingStatus, ServiceBooking, VendorService

from conftest import auth_headers, make_user

SERVICE = {
    "title": "Home loan assistance",
    "description": "Paperwork and bank liaison for home loans.",
    "category": "home_loans",
    "price": 5000,
    "service_cities": ["Bangalore", "Mumbai"],
}


def booking(status, amount):
    return SimpleNamespace(status=status, amount=amount)


def create_service(client, vendor, **overrides):
    response = client.post("/api/v1/services", json={**SERVICE, **overrides}, headers=auth_headers(vendor))
    assert response.status_code == 201
    return response.json()


def book(client, user, service_id, **extra):
    service_date = (datetime.now(timezone.utc) + timedelta(days=7)).isoformat()
    return client.post(
        f"/api/v1/services/{service_id}/bookings",
        json={"service_date": service_date, **extra},
        headers=auth_headers(user)
    )


def set_status(client, user, booking_id, new_status):
    return client.patch(
        f"/api/v1/services/bookings/{booking_id}/status", json={"status": new_status}, headers=auth_headers(user)
    )


def complete(client, vendor, booking_id):
    set_status(client, vendor, booking_id, "confirmed")
    return set_status(client, vendor, booking_id, "completed")


class TestServiceStatistics:
    """compute_service_statistics"""

    def test_no_bookings_no_reviews(self):
        """Test statistics of a service with no activity"""
        stats = service_crud.compute_service_statistics([], [])
        assert stats.total_bookings == 0
        assert stats.total_revenue == 0.0
        assert stats.average_rating == 0.0
        assert stats.completion_rate == 0.0

    def test_aggregates(self):
        """Test bookings, revenue, rating and completion aggregates"""
        bookings = [
            booking(BookingStatus.COMPLETED, 5000),
            booking(BookingStatus.COMPLETED, 3000),
            booking(BookingStatus.PENDING, 2000),
            booking(BookingStatus.CANCELLED, 1000),
        ]
        stats = service_crud.compute_service_statistics(bookings, [5, 4, 4])
        assert stats.total_bookings == 4
        assert stats.total_revenue == 11000.0
        assert stats.average_rating == pytest.approx(4.33)
        assert stats.completion_rate == pytest.approx(50.0)

    def test_ratings_without_bookings(self):
        """Test ratings count even without bookings"""
        stats = service_crud.compute_service_statistics([], [3])
        assert stats.average_rating == 3.0
        assert stats.completion_rate == 0.0


class TestServiceCatalogue:

    def test_customer_cannot_create(self, client, customer):
        """Test customers cannot list services"""
        response = client.post("/api/v1/services", json=SERVICE, headers=auth_headers(customer))
        assert response.status_code == 403

    def test_city_filter_includes_online(self, client, vendor):
        """Test the city filter also returns online services"""
        create_service(client, vendor)
        create_service(client, vendor, title="Interior consult", category="interior_design",
                       service_cities=[], online_available=True)
        create_service(client, vendor, title="Chennai movers", category="packers_movers", service_cities=["Chennai"])

        data = client.get("/api/v1/services", params={"city": "bangalore"}).json()
        assert data["total"] == 2
        assert {item["title"] for item in data["items"]} == {"Home loan assistance", "Interior consult"}

    def test_deactivated_hidden(self, client, vendor):
        """Test deactivated services are hidden from the catalogue"""
        service = create_service(client, vendor)
        client.delete(f"/api/v1/services/{service['id']}", headers=auth_headers(vendor))
        assert client.get("/api/v1/services").json()["total"] == 0

    def test_other_vendor_cannot_edit(self, client, db_session, vendor):
        """Test vendors cannot edit other vendors' services"""
        service = create_service(client, vendor)
        other = make_user(db_session, "other-vendor@example.com", vendor.role)
        response = client.patch(f"/api/v1/services/{service['id']}", json={"price": 1}, headers=auth_headers(other))
        assert response.status_code == 403


class TestBookings:

    def test_booking_updates_statistics(self, client, vendor, customer):
        """Test a booking updates service statistics"""
        service = create_service(client, vendor)
        response = book(client, customer, service["id"])
        assert response.status_code == 201
        assert response.json()["amount"] == 5000
        assert response.json()["timeline"][0]["status"] == "pending"

        stats = client.get(f"/api/v1/services/{service['id']}/statistics").json()
        assert stats["total_bookings"] == 1
        assert stats["total_revenue"] == 5000
        assert stats["completion_rate"] == 0.0
        assert stats["statistics_updated_at"] is not None

    def test_cannot_book_own_service(self, client, vendor):
        """Test vendors cannot book their own service"""
        service = create_service(client, vendor)
        assert book(client, vendor, service["id"]).status_code == 400

    def test_cannot_book_inactive(self, client, vendor, customer):
        """Test inactive services cannot be booked"""
        service = create_service(client, vendor)
        client.delete(f"/api/v1/services/{service['id']}", headers=auth_headers(vendor))
        assert book(client, customer, service["id"]).status_code == 400

    def test_completion_updates_rate(self, client, vendor, customer):
        """Test completing a booking updates the completion rate"""
        service = create_service(client, vendor)
        first = book(client, customer, service["id"]).json()
        book(client, customer, service["id"])
        assert complete(client, vendor, first["id"]).status_code == 200

        stats = client.get(f"/api/v1/services/{service['id']}/statistics").json()
        assert stats["completion_rate"] == pytest.approx(50.0)

    def test_client_may_only_cancel(self, client, vendor, customer):
        """Test clients can only cancel their bookings"""
        service = create_service(client, vendor)
        booking_id = book(client, customer, service["id"]).json()["id"]

        assert set_status(client, customer, booking_id, "confirmed").status_code == 403
        response = set_status(client, customer, booking_id, "cancelled")
        assert response.status_code == 200
        assert [entry["status"] for entry in response.json()["timeline"]] == ["pending", "cancelled"]

    def test_invalid_transition(self, client, vendor, customer):
        """Test booking status changes follow the allowed transitions"""
        service = create_service(client, vendor)
        booking_id = book(client, customer, service["id"]).json()["id"]
        assert set_status(client, vendor, booking_id, "completed").status_code == 400

    def test_stranger_cannot_see_booking(self, client, db_session, vendor, customer):
        """Test users outside a booking cannot see it"""
        service = create_service(client, vendor)
        booking_id = book(client, customer, service["id"]).json()["id"]
        stranger = make_user(db_session, "stranger@example.com")
        response = client.get(f"/api/v1/services/bookings/{booking_id}", headers=auth_headers(stranger))
        assert response.status_code == 403

    def test_my_bookings_both_sides(self, client, vendor, customer):
        """Test booking lists for clients and vendors"""
        service = create_service(client, vendor)
        book(client, customer, service["id"])
        assert len(client.get("/api/v1/services/bookings/mine", headers=auth_headers(customer)).json()) == 1
        as_vendor = client.get(
            "/api/v1/services/bookings/mine", params={"as_vendor": True}, headers=auth_headers(vendor)
        ).json()
        assert len(as_vendor) == 1


class TestReviews:

    def review(self, client, user, service_id, rating=5):
        return client.post(
            f"/api/v1/services/{service_id}/reviews",
            json={"rating": rating, "comment": "Quick and thorough."},
            headers=auth_headers(user)
        )

    def test_requires_completed_booking(self, client, vendor, customer):
        """Test reviews need a completed booking"""
        service = create_service(client, vendor)
        book(client, customer, service["id"])
        assert self.review(client, customer, service["id"]).status_code == 403

    def test_review_updates_rating(self, client, db_session, vendor, customer):
        """Test a review updates the service rating"""
        service = create_service(client, vendor)
        booking_id = book(client, customer, service["id"]).json()["id"]
        complete(client, vendor, booking_id)

        assert self.review(client, customer, service["id"], rating=4).status_code == 201
        assert client.get(f"/api/v1/services/{service['id']}/statistics").json()["average_rating"] == 4.0

        other = make_user(db_session, "second@example.com")
        booking_id = book(client, other, service["id"]).json()["id"]
        complete(client, vendor, booking_id)
        self.review(client, other, service["id"], rating=5)

        stats = client.get(f"/api/v1/services/{service['id']}/statistics").json()
        assert stats["average_rating"] == 4.5
        assert stats["completion_rate"] == 100.0
        assert len(client.get(f"/api/v1/services/{service['id']}/reviews").json()) == 2

    def test_one_review_per_client(self, client, vendor, customer):
        """Test a client reviews a service only once"""
        service = create_service(client, vendor)
        complete(client, vendor, book(client, customer, service["id"]).json()["id"])
        self.review(client, customer, service["id"])
        assert self.review(client, customer, service["id"]).status_code == 409

    def test_vendor_response(self, client, vendor, customer):
        """Test the vendor responds to a review"""
        service = create_service(client, vendor)
        complete(client, vendor, book(client, customer, service["id"]).json()["id"])
        review_id = self.review(client, customer, service["id"]).json()["id"]

        response = client.post(
            f"/api/v1/services/reviews/{review_id}/response", json={"response": "Thank you!"},
            headers=auth_headers(vendor)
        )
        assert response.status_code == 200
        assert response.json()["vendor_response"] == "Thank you!"

        again = client.post(
            f"/api/v1/services/reviews/{review_id}/response", json={"response": "Again"},
            headers=auth_headers(vendor)
        )
        assert again.status_code == 400


class TestStatisticsRecompute:

    def test_admin_recompute_repairs_drift(self, client, db_session, vendor, customer, admin):
        """Test admin recompute repairs drifted statistics"""
        service = create_service(client, vendor)
        book(client, customer, service["id"])

        row = db_session.get(VendorService, UUID(service["id"]))
        row.total_bookings = 99
        row.total_revenue = 0
        db_session.commit()

        response = client.post(f"/api/v1/services/{service['id']}/statistics/recompute", headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json()["total_bookings"] == 1
        assert response.json()["total_revenue"] == 5000

    def test_recompute_requires_admin(self, client, vendor):
        """Test recompute is admin only"""
        service = create_service(client, vendor)
        response = client.post(f"/api/v1/services/{service['id']}/statistics/recompute", headers=auth_headers(vendor))
        assert response.status_code == 403

    def test_failed_refresh_keeps_booking(self, client, db_session, vendor, customer, monkeypatch):
        """Test a failed statistics refresh does not lose the booking"""
        service = create_service(client, vendor)

        def broken(db, service_id):
            raise OperationalError("UPDATE vendor_services", {}, Exception("database is locked"))

        monkeypatch.setattr(service_crud, "recompute_service_statistics", broken)

        response = book(client, customer, service["id"])
        assert response.status_code == 201
        assert db_session.query(ServiceBooking).count() == 1
