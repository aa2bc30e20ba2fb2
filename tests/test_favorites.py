"""
Tests for saved listings.

Tests:
- Adding, checking and removing favorites
- Bulk removal
- Summary statistics
- Cleanup when a listing is deleted
"""

import pytest

from marketplace.models.favorite import Favorite
from marketplace.models.property import ListingType, Property, PropertyStatus, PropertyType

from conftest import auth_headers

MISSING_ID = "00000000-0000-4000-8000-000000000000"


@pytest.fixture
def homes(db_session, vendor):
    rows = []
    for title, price, status in [
        ("Garden villa", 30000000, PropertyStatus.AVAILABLE),
        ("Studio flat", 4000000, PropertyStatus.AVAILABLE),
        ("Sold duplex", 17000000, PropertyStatus.SOLD),
    ]:
        row = Property(
            owner_id=vendor.id, title=title, description="Listed for the favorites tests.",
            property_type=PropertyType.APARTMENT, listing_type=ListingType.SALE, price=price, status=status,
            street="MG Road", locality="Central", city="Bangalore", state="KA", pincode="560001",
        )
        db_session.add(row)
        rows.append(row)
    db_session.commit()
    for row in rows:
        db_session.refresh(row)
    return rows


def save(client, user, db_property):
    return client.post(f"/api/v1/favorites/{db_property.id}", headers=auth_headers(user))


class TestAddFavorite:

    def test_add_favorite(self, client, customer, homes):
        """Test saving a listing returns the favorite with the listing embedded"""
        response = save(client, customer, homes[0])
        assert response.status_code == 201
        data = response.json()
        assert data["property_id"] == str(homes[0].id)
        assert data["property"]["title"] == "Garden villa"

    def test_duplicate_favorite(self, client, customer, homes):
        """Test saving the same listing twice is a conflict"""
        save(client, customer, homes[0])
        response = save(client, customer, homes[0])
        assert response.status_code == 409
        assert response.json()["detail"] == "Property already in favorites"

    def test_unknown_property(self, client, customer):
        """Test saving a listing that does not exist"""
        response = client.post(f"/api/v1/favorites/{MISSING_ID}", headers=auth_headers(customer))
        assert response.status_code == 404

    def test_archived_property_cannot_be_saved(self, client, db_session, customer, homes):
        """Test archived listings are not offered to other users"""
        homes[0].archived = True
        db_session.commit()
        assert save(client, customer, homes[0]).status_code == 404

    def test_requires_login(self, client, homes):
        """Test favorites need an authenticated user"""
        assert client.post(f"/api/v1/favorites/{homes[0].id}").status_code in (401, 403)


class TestListAndCheck:

    def test_list_newest_first(self, client, customer, homes):
        """Test favorites list is paginated and most recent first"""
        for home in homes:
            save(client, customer, home)

        data = client.get("/api/v1/favorites", params={"limit": 2}, headers=auth_headers(customer)).json()
        assert data["total"] == 3
        assert data["pages"] == 2
        assert len(data["items"]) == 2

    def test_list_is_per_user(self, client, customer, vendor, homes):
        """Test one user's favorites are not visible to another"""
        save(client, customer, homes[0])
        data = client.get("/api/v1/favorites", headers=auth_headers(vendor)).json()
        assert data["total"] == 0

    def test_check(self, client, customer, homes):
        """Test checking whether a listing is saved"""
        save(client, customer, homes[1])
        saved = client.get(f"/api/v1/favorites/check/{homes[1].id}", headers=auth_headers(customer)).json()
        assert saved == {"property_id": str(homes[1].id), "is_favorite": True}

        other = client.get(f"/api/v1/favorites/check/{homes[0].id}", headers=auth_headers(customer)).json()
        assert other["is_favorite"] is False


class TestRemoveFavorite:

    def test_remove(self, client, customer, homes):
        """Test removing a saved listing"""
        save(client, customer, homes[0])
        response = client.delete(f"/api/v1/favorites/{homes[0].id}", headers=auth_headers(customer))
        assert response.status_code == 200
        assert response.json()["message"] == "Property removed from favorites"

    def test_remove_unsaved(self, client, customer, homes):
        """Test removing a listing that was never saved"""
        response = client.delete(f"/api/v1/favorites/{homes[0].id}", headers=auth_headers(customer))
        assert response.status_code == 404

    def test_bulk_remove(self, client, db_session, customer, homes):
        """Test bulk removal ignores ids that are not saved"""
        save(client, customer, homes[0])
        save(client, customer, homes[1])

        response = client.request(
            "DELETE", "/api/v1/favorites/bulk",
            json={"property_ids": [str(homes[0].id), str(homes[1].id), MISSING_ID]},
            headers=auth_headers(customer)
        )
        assert response.status_code == 200
        assert response.json() == {"removed": 2}
        assert db_session.query(Favorite).count() == 0

    def test_bulk_remove_needs_ids(self, client, customer):
        """Test bulk removal rejects an empty id list"""
        response = client.request(
            "DELETE", "/api/v1/favorites/bulk", json={"property_ids": []}, headers=auth_headers(customer)
        )
        assert response.status_code == 422

    def test_deleting_listing_removes_favorites(self, client, db_session, customer, vendor, homes):
        """Test favorites go away with the listing they point to"""
        save(client, customer, homes[0])
        client.delete(f"/api/v1/properties/{homes[0].id}", headers=auth_headers(vendor))

        assert db_session.query(Favorite).count() == 0
        assert client.get("/api/v1/favorites", headers=auth_headers(customer)).json()["total"] == 0


class TestFavoriteStats:

    def test_stats(self, client, customer, homes):
        """Test totals, available count and rounded average price"""
        for home in homes:
            save(client, customer, home)

        stats = client.get("/api/v1/favorites/stats", headers=auth_headers(customer)).json()
        assert stats == {"total": 3, "available": 2, "average_price": 17000000.0}

    def test_archived_not_available(self, client, db_session, customer, homes):
        """Test archived listings do not count as available"""
        save(client, customer, homes[1])
        homes[1].archived = True
        db_session.commit()

        stats = client.get("/api/v1/favorites/stats", headers=auth_headers(customer)).json()
        assert stats["total"] == 1
        assert stats["available"] == 0

    def test_empty_stats(self, client, customer):
        """Test statistics with nothing saved"""
        stats = client.get("/api/v1/favorites/stats", headers=auth_headers(customer)).json()
        assert stats == {"total": 0, "available": 0, "average_price": 0.0}
