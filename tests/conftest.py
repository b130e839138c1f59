"""Shared fixtures: a throwaway SQLite database, an API client and seed helpers."""

import os
import tempfile
from datetime import date, timedelta

import httpx
import pytest

_db_dir = tempfile.mkdtemp(prefix="carflow-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["GOOGLE_CLIENT_ID"] = "test-client-id.apps.googleusercontent.com"
os.environ["GOOGLE_CLIENT_SECRET"] = "test-client-secret"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ.pop("N8N_WEBHOOK_SECRET", None)
os.environ.pop("REDIS_URL", None)

from fastapi.testclient import TestClient  # noqa: E402

from carflow import rate_limiter  # noqa: E402
from carflow.database import Base, SessionLocal, engine  # noqa: E402
from carflow.domain.bookings.schemas import BookingCreate  # noqa: E402
from carflow.domain.bookings.service import BookingService  # noqa: E402
from carflow.main import app  # noqa: E402
from carflow.models import Customer, User, Vehicle, VehiclePricing  # noqa: E402
from carflow.security_utils import create_user_token, hash_password_bcrypt  # noqa: E402
from carflow.services import google_oauth  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_database():
    """Every test starts from empty tables and an empty rate-limit cache."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    rate_limiter.memory_cache.clear()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def admin_user(db):
    user = User(
        username="admin",
        password=hash_password_bcrypt("admin123"),
        full_name="Fleet Admin",
        email="admin@carflow.test",
        role="admin",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def staff_user(db):
    user = User(
        username="agent",
        password=hash_password_bcrypt("agent123"),
        full_name="Counter Agent",
        email="agent@carflow.test",
        role="user",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_headers(admin_user):
    return {"Authorization": f"Bearer {create_user_token(admin_user)}"}


@pytest.fixture
def auth_headers(staff_user):
    return {"Authorization": f"Bearer {create_user_token(staff_user)}"}


@pytest.fixture
def make_vehicle(db):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        values = {
            "make": "Toyota",
            "model": "Corolla",
            "year": 2022,
            "license_plate": f"CF-{counter['n']:04d}",
            "category": "economy",
            "daily_rate": 50,
            "status": "available",
            "transmission": "automatic",
            "fuel_type": "gasoline",
            "seats": 5,
            "doors": 4,
        }
        values.update(overrides)
        vehicle = Vehicle(**values)
        db.add(vehicle)
        db.commit()
        db.refresh(vehicle)
        return vehicle

    return _make


@pytest.fixture
def make_customer(db):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        values = {
            "full_name": f"Customer {counter['n']}",
            "email": f"customer{counter['n']}@example.com",
            "phone": f"+1 555 010 {counter['n']:04d}",
            "driver_license": f"DL{counter['n']:06d}",
        }
        values.update(overrides)
        customer = Customer(**values)
        db.add(customer)
        db.commit()
        db.refresh(customer)
        return customer

    return _make


@pytest.fixture
def make_booking(db):
    """Create bookings through the service so availability rules apply."""

    def _make(customer, vehicle, start=None, end=None, **overrides):
        start = start or date.today() + timedelta(days=10)
        end = end or start + timedelta(days=3)
        data = BookingCreate(
            customerId=customer.id,
            vehicleId=vehicle.id,
            startDate=start,
            endDate=end,
            **overrides,
        )
        return BookingService(db).create_booking(data)

    return _make


@pytest.fixture
def add_pricing(db):
    def _add(vehicle, daily_rate, weekly_rate=None, monthly_rate=None, insurance_daily_rate=None):
        pricing = VehiclePricing(
            vehicle_id=vehicle.id,
            daily_rate=daily_rate,
            weekly_rate=weekly_rate,
            monthly_rate=monthly_rate,
            insurance_daily_rate=insurance_daily_rate,
        )
        db.add(pricing)
        db.commit()
        db.refresh(vehicle)
        return pricing

    return _add


class FakeGoogleAPI:
    """Answers Google HTTP calls from registered routes and records every request."""

    def __init__(self):
        self.routes = []
        self.requests = []

    def add(self, method, fragment, status=200, json=None):
        self.routes.append((method, fragment, status, json if json is not None else {}))

    def calls(self, method, fragment):
        return [r for r in self.requests if r.method == method and fragment in str(r.url)]

    def handler(self, request):
        self.requests.append(request)
        for method, fragment, status, body in self.routes:
            if request.method == method and fragment in str(request.url):
                return httpx.Response(status, json=body)
        return httpx.Response(404, json={"error": {"message": "not mocked"}})


@pytest.fixture
def google_api(monkeypatch):
    fake = FakeGoogleAPI()
    monkeypatch.setattr(
        google_oauth, "http_client", lambda: httpx.AsyncClient(transport=httpx.MockTransport(fake.handler))
    )
    return fake


@pytest.fixture
def google_connected(db, staff_user):
    """A Google account connected for the staff user with every service scope granted."""
    return google_oauth.save_integration(
        db,
        staff_user.id,
        {
            "access_token": "ya29.test-access",
            "refresh_token": "1//test-refresh",
            "expires_in": 3600,
            "scope": " ".join(google_oauth.SERVICE_SCOPES["all"]),
        },
        "agent@gmail.com",
    )
