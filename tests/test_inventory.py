"""
Tests for the Mongo-backed inventory store.
"""

from datetime import date
from decimal import Decimal

import pytest

from inventory import MongoInventory


@pytest.fixture
def inventory(mongo_db):
    return MongoInventory(mongo_db)


@pytest.fixture
def paracetamol(inventory):
    return inventory.create(
        {
            "name": "Paracetamol 500mg",
            "company": "Cipla Ltd",
            "price": Decimal("5.50"),
            "quantity": 100,
            "expiry_date": date(2027, 12, 31),
        }
    )


def test_create_and_get(inventory, paracetamol):
    record = inventory.get(paracetamol.id)

    assert record.name == "Paracetamol 500mg"
    assert record.price == Decimal("5.50")
    assert record.quantity == 100
    assert record.expiry_date == date(2027, 12, 31)
    assert record.created_at is not None


def test_search_by_name_or_company(inventory, paracetamol):
    inventory.create(
        {"name": "Aspirin 75mg", "company": "Bayer", "price": Decimal("12.99"), "quantity": 30, "expiry_date": date(2027, 8, 15)}
    )

    assert [r.name for r in inventory.list_medicines("para")] == ["Paracetamol 500mg"]
    assert [r.name for r in inventory.list_medicines("BAYER")] == ["Aspirin 75mg"]
    assert len(inventory.list_medicines()) == 2


def test_update_sets_quantity(inventory, paracetamol):
    record = inventory.update(paracetamol.id, {"quantity": 7, "price": None})

    assert record.quantity == 7
    assert record.price == Decimal("5.50")


def test_decrement_stock(inventory, paracetamol):
    assert inventory.decrement_stock(paracetamol.id, 30) is True
    assert inventory.get(paracetamol.id).quantity == 70


def test_decrement_never_goes_negative(inventory, paracetamol):
    assert inventory.decrement_stock(paracetamol.id, 101) is False
    assert inventory.get(paracetamol.id).quantity == 100


def test_unknown_or_malformed_ids(inventory):
    assert inventory.get("not-an-id") is None
    assert inventory.get("65f000000000000000000000") is None
    assert inventory.update("not-an-id", {"quantity": 1}) is None
    assert inventory.delete("not-an-id") is False
    assert inventory.decrement_stock("not-an-id", 1) is False


def test_delete(inventory, paracetamol):
    assert inventory.delete(paracetamol.id) is True
    assert inventory.get(paracetamol.id) is None
