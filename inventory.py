"""
Inventory store over the "medicine" collection.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol

from bson import ObjectId
from bson.decimal128 import Decimal128
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.database import Database

from cart import to_money
from logging_config import get_logger

logger = get_logger(__name__)

MEDICINE_COLLECTION = "medicine"


@dataclass
class MedicineRecord:
    id: str
    name: str
    company: str
    price: Decimal
    quantity: int
    expiry_date: date
    created_at: Optional[datetime] = None


class InventoryStore(Protocol):
    def list_medicines(self) -> List[MedicineRecord]: ...

    def decrement_stock(self, medicine_id: str, qty: int) -> bool: ...


def parse_object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def record_from_document(doc: Dict[str, Any]) -> MedicineRecord:
    return MedicineRecord(
        id=str(doc["_id"]),
        name=doc.get("name", ""),
        company=doc.get("company", ""),
        price=to_money(doc.get("price", 0)),
        quantity=int(doc.get("quantity", 0)),
        expiry_date=_as_date(doc["expiry_date"]),
        created_at=doc.get("created_at"),
    )


def _to_storage(fields: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(fields)
    if out.get("price") is not None:
        out["price"] = Decimal128(to_money(out["price"]))
    if isinstance(out.get("expiry_date"), date) and not isinstance(out["expiry_date"], datetime):
        d = out["expiry_date"]
        out["expiry_date"] = datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
    return out


@dataclass
class MongoInventory:
    """Medicine CRUD plus the conditional stock decrement used by billing."""

    db: Database
    collection_name: str = MEDICINE_COLLECTION

    @property
    def collection(self):
        return self.db[self.collection_name]

    def list_medicines(self, query: Optional[str] = None) -> List[MedicineRecord]:
        filter_dict: Dict[str, Any] = {}
        if query:
            # literal substring match on name or company
            pattern = re.escape(query)
            filter_dict["$or"] = [
                {"name": {"$regex": pattern, "$options": "i"}},
                {"company": {"$regex": pattern, "$options": "i"}},
            ]
        cursor = self.collection.find(filter_dict).sort("created_at", 1)
        return [record_from_document(doc) for doc in cursor]

    def get(self, medicine_id: str) -> Optional[MedicineRecord]:
        oid = parse_object_id(medicine_id)
        if oid is None:
            return None
        doc = self.collection.find_one({"_id": oid})
        return record_from_document(doc) if doc else None

    def create(self, fields: Dict[str, Any]) -> MedicineRecord:
        now = datetime.now(timezone.utc)
        doc = _to_storage(fields)
        doc["created_at"] = now
        doc["updated_at"] = now
        result = self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info("medicine_created", medicine_id=str(result.inserted_id), name=doc.get("name"))
        return record_from_document(doc)

    def update(self, medicine_id: str, fields: Dict[str, Any]) -> Optional[MedicineRecord]:
        oid = parse_object_id(medicine_id)
        if oid is None:
            return None
        changes = _to_storage({k: v for k, v in fields.items() if v is not None})
        changes["updated_at"] = datetime.now(timezone.utc)
        doc = self.collection.find_one_and_update(
            {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
        )
        if doc is None:
            return None
        logger.info("medicine_updated", medicine_id=medicine_id, fields=sorted(changes))
        return record_from_document(doc)

    def delete(self, medicine_id: str) -> bool:
        oid = parse_object_id(medicine_id)
        if oid is None:
            return False
        deleted = self.collection.delete_one({"_id": oid}).deleted_count == 1
        if deleted:
            logger.info("medicine_deleted", medicine_id=medicine_id)
        return deleted

    def decrement_stock(self, medicine_id: str, qty: int) -> bool:
        """Take qty units off a medicine; False when it is missing or short."""
        oid = parse_object_id(medicine_id)
        if oid is None or qty <= 0:
            return False
        res = self.collection.update_one(
            {"_id": oid, "quantity": {"$gte": qty}},
            {"$inc": {"quantity": -qty}, "$set": {"updated_at": datetime.now(timezone.utc)}},
        )
        return res.modified_count == 1
