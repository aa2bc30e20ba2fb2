"""
Pytest configuration and fixtures for testing.

This file provides reusable test fixtures for:
- Database setup/teardown
- FastAPI test client
- Celery queueing stub (no Redis needed)
- Users of each role with bearer headers
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from marketplace.core.database import Base, get_db
from marketplace.core.security import create_access_token, get_password_hash
from marketplace.models.user import User, UserRole, UserStatus
from main import app

import marketplace.models  # noqa: F401  registers every table on Base.metadata


# Use in-memory SQLite for testing (fast, isolated)
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

DEFAULT_PASSWORD = "SecurePass123"


@pytest.fixture
def db_session():
    """
    Create a fresh database for each test.
    Tables are dropped after the test completes.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    """
    FastAPI test client with overridden database dependency.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def queued_tasks(monkeypatch):
    """
    Replace broker access with an in-memory list of (task name, kwargs).

    Every test gets it, so nothing ever tries to reach Redis.
    """
    calls = []

    def fake_queue(task, args, kwargs):
        calls.append((task.name, kwargs))
        return (True, "test-task-id", "")

    monkeypatch.setattr("marketplace.core.celery_utils._queue_task_sync", fake_queue)
    return calls


def make_user(
    db,
    email: str,
    role: UserRole = UserRole.CUSTOMER,
    password: str = DEFAULT_PASSWORD,
    verified: bool = True,
    **fields
) -> User:
    """Insert a user directly, bypassing registration."""
    user = User(
        email=email.lower(),
        hashed_password=get_password_hash(password),
        first_name=fields.pop("first_name", "Test"),
        last_name=fields.pop("last_name", "User"),
        role=role,
        status=UserStatus.ACTIVE if verified else UserStatus.PENDING,
        is_active=True,
        is_verified=verified,
        **fields
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer(db_session):
    return make_user(db_session, "customer@example.com", UserRole.CUSTOMER, city="Bangalore")


@pytest.fixture
def vendor(db_session):
    return make_user(db_session, "vendor@example.com", UserRole.VENDOR, city="Mumbai")


@pytest.fixture
def admin(db_session):
    return make_user(db_session, "admin@example.com", UserRole.ADMIN)


@pytest.fixture
def superadmin(db_session):
    return make_user(db_session, "root@example.com", UserRole.SUPERADMIN)


@pytest.fixture
def sample_property_data():
    """Sample listing payload"""
    return {
        "title": "3BHK Apartment in Indiranagar",
        "description": "Spacious corner apartment close to the metro with covered parking.",
        "property_type": "apartment",
        "listing_type": "sale",
        "price": 12500000,
        "built_up_area": 1650,
        "area_unit": "sqft",
        "bedrooms": 3,
        "bathrooms": 2,
        "street": "12th Main",
        "locality": "Indiranagar",
        "city": "Bangalore",
        "state": "Karnataka",
        "pincode": "560038",
        "amenities": ["parking", "lift"],
        "images": [
            {"url": "https://cdn.example.com/a.jpg"},
            {"url": "https://cdn.example.com/b.jpg", "is_primary": True},
        ],
    }
