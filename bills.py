"""
Bill records and the bill history store.

A Bill is frozen once created. History lives in the "bill" collection and is
capped to the most recent BILL_HISTORY_LIMIT entries.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol, Tuple

from bson.decimal128 import Decimal128
from pymongo import DESCENDING
from pymongo.database import Database

from cart import to_money
from logging_config import get_logger

logger = get_logger(__name__)

BILL_COLLECTION = "bill"
BILL_HISTORY_LIMIT = 50
WALK_IN_CUSTOMER = "Walk-in Customer"


@dataclass(frozen=True)
class BillItem:
    medicine_id: str
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal


@dataclass(frozen=True)
class Bill:
    bill_number: str
    customer_name: str
    items: Tuple[BillItem, ...]
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal
    created_at: datetime
    customer_phone: Optional[str] = None


class BillNumberGenerator:
    """Issues BILL-<epoch ms> numbers, strictly increasing within the process."""

    def __init__(self, prefix: str = "BILL-"):
        self.prefix = prefix
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> str:
        with self._lock:
            stamp = max(int(time.time() * 1000), self._last + 1)
            self._last = stamp
        return f"{self.prefix}{stamp}"


next_bill_number = BillNumberGenerator().next


class BillHistoryStore(Protocol):
    def append_bill(self, bill: Bill) -> None: ...

    def list_recent_bills(self, limit: int) -> List[Bill]: ...


def bill_to_document(bill: Bill) -> Dict[str, Any]:
    return {
        "bill_number": bill.bill_number,
        "customer_name": bill.customer_name,
        "customer_phone": bill.customer_phone,
        "items": [
            {
                "medicine_id": item.medicine_id,
                "name": item.name,
                "unit_price": Decimal128(item.unit_price),
                "quantity": item.quantity,
                "line_total": Decimal128(item.line_total),
            }
            for item in bill.items
        ],
        "subtotal": Decimal128(bill.subtotal),
        "tax": Decimal128(bill.tax),
        "discount": Decimal128(bill.discount),
        "total": Decimal128(bill.total),
        "created_at": bill.created_at,
    }


def bill_from_document(doc: Dict[str, Any]) -> Bill:
    return Bill(
        bill_number=doc["bill_number"],
        customer_name=doc.get("customer_name") or WALK_IN_CUSTOMER,
        customer_phone=doc.get("customer_phone"),
        items=tuple(
            BillItem(
                medicine_id=str(item.get("medicine_id", "")),
                name=item["name"],
                unit_price=to_money(item["unit_price"]),
                quantity=int(item["quantity"]),
                line_total=to_money(item["line_total"]),
            )
            for item in doc.get("items", [])
        ),
        subtotal=to_money(doc["subtotal"]),
        tax=to_money(doc["tax"]),
        discount=to_money(doc["discount"]),
        total=to_money(doc["total"]),
        created_at=doc["created_at"],
    )


@dataclass
class MongoBillHistory:
    """Bill history backed by a MongoDB collection."""

    db: Database
    limit: int = BILL_HISTORY_LIMIT
    collection_name: str = field(default=BILL_COLLECTION)

    @property
    def collection(self):
        return self.db[self.collection_name]

    def append_bill(self, bill: Bill) -> None:
        self.collection.insert_one(bill_to_document(bill))
        # evict in append order, regardless of the bill's own timestamp
        stale = [
            doc["_id"]
            for doc in self.collection.find({}, {"_id": 1})
            .sort("_id", DESCENDING)
            .skip(self.limit)
        ]
        if stale:
            self.collection.delete_many({"_id": {"$in": stale}})
            logger.info("bill_history_trimmed", evicted=len(stale), limit=self.limit)

    def list_recent_bills(self, limit: int = BILL_HISTORY_LIMIT) -> List[Bill]:
        if limit < 1:
            return []
        cursor = (
            self.collection.find()
            .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
            .limit(min(limit, self.limit))
        )
        return [bill_from_document(doc) for doc in cursor]

    def get_bill(self, bill_number: str) -> Optional[Bill]:
        doc = self.collection.find_one({"bill_number": bill_number})
        return bill_from_document(doc) if doc else None
