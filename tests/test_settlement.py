"""
Tests for bill settlement.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from cart import Cart
from errors import EmptyCartError, ValidationError
from notifications import BILLS, MEDICINES, ChangeBus
from settlement import settle


class FakeInventory:
    def __init__(self, stock=None, fail_with=None):
        self.stock = dict(stock or {})
        self.fail_with = fail_with
        self.calls = []

    def list_medicines(self):
        return []

    def decrement_stock(self, medicine_id, qty):
        self.calls.append((medicine_id, qty))
        if self.fail_with is not None:
            raise self.fail_with
        if self.stock.get(medicine_id, 0) < qty:
            return False
        self.stock[medicine_id] -= qty
        return True


class FakeHistory:
    def __init__(self, fail=False):
        self.bills = []
        self.fail = fail

    def append_bill(self, bill):
        if self.fail:
            raise ConnectionError("history unavailable")
        self.bills.insert(0, bill)

    def list_recent_bills(self, limit):
        return self.bills[:limit]


@pytest.fixture
def cart():
    c = Cart()
    c.add_item("m1", "Paracetamol 500mg", "5.50", 10, 100)
    return c


def test_empty_cart_produces_no_bill():
    inventory, history = FakeInventory(), FakeHistory()

    with pytest.raises(EmptyCartError):
        settle(Cart(), inventory, history)

    assert history.bills == []
    assert inventory.calls == []


def test_settles_paracetamol_example(cart):
    inventory = FakeInventory({"m1": 100})
    history = FakeHistory()
    now = datetime(2026, 3, 1, 10, 30, tzinfo=timezone.utc)

    result = settle(cart, inventory, history, customer_name="Asha", customer_phone="98765", now=now)
    bill = result.bill

    assert bill.subtotal == Decimal("55.00")
    assert bill.tax == Decimal("2.75")
    assert bill.discount == Decimal("0")
    assert bill.total == Decimal("57.75")
    assert bill.customer_name == "Asha"
    assert bill.customer_phone == "98765"
    assert bill.created_at == now
    assert bill.bill_number.startswith("BILL-")
    assert [(i.name, i.quantity, i.line_total) for i in bill.items] == [
        ("Paracetamol 500mg", 10, Decimal("55.00"))
    ]
    assert result.stock_synced
    assert inventory.stock["m1"] == 90
    assert history.bills == [bill]
    assert cart.is_empty


def test_discount_can_exceed_subtotal(cart):
    result = settle(cart, FakeInventory({"m1": 100}), FakeHistory(), discount=Decimal("100"))
    assert result.bill.total == Decimal("-42.25")


def test_cart_discount_used_when_none_given(cart):
    cart.set_discount("5")
    result = settle(cart, FakeInventory({"m1": 100}), FakeHistory())
    assert result.bill.discount == Decimal("5")
    assert result.bill.total == Decimal("52.75")


@pytest.mark.parametrize("discount", [Decimal("-1"), Decimal("NaN"), Decimal("Infinity")])
def test_invalid_discount_rejected_and_cart_kept(cart, discount):
    history = FakeHistory()
    with pytest.raises(ValidationError):
        settle(cart, FakeInventory({"m1": 100}), history, discount=discount)
    assert len(cart) == 1
    assert history.bills == []


def test_walk_in_customer_default(cart):
    result = settle(cart, FakeInventory({"m1": 100}), FakeHistory(), customer_name="  ")
    assert result.bill.customer_name == "Walk-in Customer"
    assert result.bill.customer_phone is None


def test_short_stock_is_a_soft_failure(cart):
    history = FakeHistory()

    result = settle(cart, FakeInventory({"m1": 3}), history)

    assert not result.stock_synced
    assert len(result.failures) == 1
    failure = result.failures[0]
    assert failure.operation == "decrement_stock"
    assert failure.medicine_id == "m1"
    assert failure.quantity == 10
    assert history.bills == [result.bill]
    assert cart.is_empty


def test_inventory_exception_does_not_abort(cart):
    history = FakeHistory()

    result = settle(cart, FakeInventory(fail_with=TimeoutError("backend down")), history)

    assert not result.stock_synced
    assert result.failures[0].detail == "backend down"
    assert history.bills == [result.bill]


def test_history_failure_is_reported(cart):
    result = settle(cart, FakeInventory({"m1": 100}), FakeHistory(fail=True))

    assert result.stock_synced
    assert [f.operation for f in result.failures] == ["append_bill"]
    assert cart.is_empty


def test_publishes_change_events(cart):
    bus = ChangeBus()
    seen = []
    bus.subscribe(lambda event: seen.append(event.topic))

    settle(cart, FakeInventory({"m1": 100}), FakeHistory(), notifier=bus)

    assert bus.versions() == {BILLS: 1, MEDICINES: 1}
    assert seen == [BILLS, MEDICINES]


def test_cart_clear_is_persisted():
    saved = []
    c = Cart(on_change=lambda cart: saved.append(cart.to_document()))
    c.add_item("m1", "Paracetamol", "5.50", 1, 5)

    settle(c, FakeInventory({"m1": 5}), FakeHistory())

    assert saved[-1]["items"] == []


def test_bill_is_immutable(cart):
    result = settle(cart, FakeInventory({"m1": 100}), FakeHistory())
    with pytest.raises(AttributeError):
        result.bill.total = Decimal("0")
