"""
Test configuration and fixtures
"""

import os

# Must be set before the app modules read settings
os.environ.pop("DATABASE_URL", None)
os.environ.pop("DATABASE_NAME", None)
os.environ["PASSWORD_HASH_ROUNDS"] = "4"

from datetime import date, datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402

import mongomock  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from database import get_db  # noqa: E402
from inventory import MedicineRecord  # noqa: E402
from main import app, get_change_bus  # noqa: E402
from notifications import ChangeBus  # noqa: E402


@pytest.fixture
def mongo_db():
    """Fresh in-memory MongoDB database for each test"""
    client = mongomock.MongoClient(tz_aware=True)
    yield client["pharmacy_test"]
    client.close()


@pytest.fixture
def bus():
    return ChangeBus()


@pytest.fixture
def client(mongo_db, bus):
    """Test client with the database and change bus overridden"""
    app.dependency_overrides[get_db] = lambda: mongo_db
    app.dependency_overrides[get_change_bus] = lambda: bus
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def today():
    return date(2026, 3, 1)


@pytest.fixture
def make_record(today):
    """Build MedicineRecord snapshots relative to `today`"""
    counter = {"n": 0}

    def _make(name="Paracetamol 500mg", quantity=100, expires_in=365, price="5.50", created_at=None):
        counter["n"] += 1
        return MedicineRecord(
            id=f"med-{counter['n']}",
            name=name,
            company="Cipla Ltd",
            price=Decimal(price),
            quantity=quantity,
            expiry_date=today + timedelta(days=expires_in),
            created_at=created_at or datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(hours=counter["n"]),
        )

    return _make


@pytest.fixture
def medicine_payload():
    return {
        "name": "Paracetamol 500mg",
        "company": "Cipla Ltd",
        "price": "5.50",
        "quantity": 100,
        "expiry_date": (date.today() + timedelta(days=365)).isoformat(),
    }
