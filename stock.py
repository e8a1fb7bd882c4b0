"""
Stock aggregation for the dashboard.

Pure functions over an already-fetched snapshot of medicine records and
bills. Nothing here touches the store.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence

from bills import Bill
from inventory import MedicineRecord

EXPIRED = "expired"
EXPIRING_SOON = "expiring-soon"
OUT_OF_STOCK = "out-of-stock"
LOW_STOCK = "low-stock"
IN_STOCK = "in-stock"

CLASSIFICATIONS = (EXPIRED, EXPIRING_SOON, OUT_OF_STOCK, LOW_STOCK, IN_STOCK)

EXPIRY_WARNING_DAYS = 30
LOW_STOCK_THRESHOLD = 10


def days_to_expiry(expiry_date: date, today: date) -> int:
    return (expiry_date - today).days


def classify(
    record: MedicineRecord,
    today: date,
    expiry_warning_days: int = EXPIRY_WARNING_DAYS,
    low_stock_threshold: int = LOW_STOCK_THRESHOLD,
) -> str:
    """Expiry status wins over quantity status."""
    days = days_to_expiry(record.expiry_date, today)
    if days < 0:
        return EXPIRED
    if days <= expiry_warning_days:
        return EXPIRING_SOON
    if record.quantity <= 0:
        return OUT_OF_STOCK
    if record.quantity < low_stock_threshold:
        return LOW_STOCK
    return IN_STOCK


@dataclass
class ClassifiedMedicine:
    record: MedicineRecord
    status: str
    days_to_expiry: int


@dataclass
class StockSummary:
    counts: Dict[str, int]
    total_medicines: int
    total_units: int
    total_value: Decimal
    recent: List[ClassifiedMedicine] = field(default_factory=list)
    by_status: Dict[str, List[ClassifiedMedicine]] = field(default_factory=dict)


def _created_key(record: MedicineRecord) -> float:
    return record.created_at.timestamp() if record.created_at else float("-inf")


def summarize(
    records: Sequence[MedicineRecord],
    today: date,
    recent_limit: int = 5,
    expiry_warning_days: int = EXPIRY_WARNING_DAYS,
    low_stock_threshold: int = LOW_STOCK_THRESHOLD,
) -> StockSummary:
    classified = [
        ClassifiedMedicine(
            record=r,
            status=classify(r, today, expiry_warning_days, low_stock_threshold),
            days_to_expiry=days_to_expiry(r.expiry_date, today),
        )
        for r in records
    ]

    by_status: Dict[str, List[ClassifiedMedicine]] = {name: [] for name in CLASSIFICATIONS}
    for item in classified:
        by_status[item.status].append(item)

    # sorted() is stable, so equal timestamps keep input order
    recent = sorted(classified, key=lambda c: _created_key(c.record), reverse=True)[:recent_limit]

    return StockSummary(
        counts={name: len(items) for name, items in by_status.items()},
        total_medicines=len(classified),
        total_units=sum(max(r.quantity, 0) for r in records),
        total_value=sum((r.price * max(r.quantity, 0) for r in records), Decimal("0")),
        recent=recent,
        by_status=by_status,
    )


def stock_levels(records: Iterable[MedicineRecord]) -> Dict[str, int]:
    """Buckets for the stock chart."""
    levels = {"high": 0, "medium": 0, "low": 0, "out": 0}
    for r in records:
        if r.quantity > 50:
            levels["high"] += 1
        elif r.quantity >= 11:
            levels["medium"] += 1
        elif r.quantity >= 1:
            levels["low"] += 1
        else:
            levels["out"] += 1
    return levels


@dataclass
class SalesSummary:
    today_bills: int
    today_amount: Decimal
    total_bills: int
    total_amount: Decimal


def summarize_sales(bills: Iterable[Bill], today: date) -> SalesSummary:
    bills = list(bills)
    todays = [b for b in bills if b.created_at.date() == today]
    return SalesSummary(
        today_bills=len(todays),
        today_amount=sum((b.total for b in todays), Decimal("0")),
        total_bills=len(bills),
        total_amount=sum((b.total for b in bills), Decimal("0")),
    )
