"""
Bill settlement.

Freezes a cart into a Bill, then syncs stock and history on a best-effort
basis. Only an empty cart (or a negative discount) stops settlement; every
downstream I/O failure is returned as a SoftIOFailure and logged.

Stock decrements are at-most-once and not transactional: two sales racing
for the same stock can over-sell. The bill is the record of what was sold.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from bills import WALK_IN_CUSTOMER, Bill, BillHistoryStore, BillItem, next_bill_number
from cart import Cart, to_money
from errors import EmptyCartError, SoftIOFailure, ValidationError
from inventory import InventoryStore
from logging_config import get_logger
from notifications import BILLS, MEDICINES, ChangeBus

logger = get_logger(__name__)


@dataclass(frozen=True)
class SettlementResult:
    bill: Bill
    failures: Tuple[SoftIOFailure, ...] = ()

    @property
    def stock_synced(self) -> bool:
        return not any(f.operation == "decrement_stock" for f in self.failures)


def settle(
    cart: Cart,
    inventory: InventoryStore,
    history: BillHistoryStore,
    notifier: Optional[ChangeBus] = None,
    discount: Optional[Decimal] = None,
    customer_name: Optional[str] = None,
    customer_phone: Optional[str] = None,
    now: Optional[datetime] = None,
    bill_number: Callable[[], str] = next_bill_number,
) -> SettlementResult:
    if cart.is_empty:
        raise EmptyCartError("No items in bill to process")

    if discount is not None:
        discount = to_money(discount)
        if discount < 0:
            raise ValidationError("Discount cannot be negative")

    lines = cart.snapshot()
    totals = cart.totals(discount)
    bill = Bill(
        bill_number=bill_number(),
        customer_name=(customer_name or "").strip() or WALK_IN_CUSTOMER,
        customer_phone=(customer_phone or "").strip() or None,
        items=tuple(
            BillItem(
                medicine_id=line.medicine_id,
                name=line.name,
                unit_price=line.unit_price,
                quantity=line.quantity,
                line_total=line.line_total,
            )
            for line in lines
        ),
        subtotal=totals.subtotal,
        tax=totals.tax,
        discount=totals.discount,
        total=totals.total,
        created_at=now or datetime.now(timezone.utc),
    )

    failures: List[SoftIOFailure] = []
    for line in lines:
        try:
            ok = inventory.decrement_stock(line.medicine_id, line.quantity)
            detail = "medicine missing or stock too low"
        except Exception as e:
            ok = False
            detail = str(e)
        if not ok:
            failures.append(
                SoftIOFailure(
                    operation="decrement_stock",
                    detail=detail,
                    medicine_id=line.medicine_id,
                    quantity=line.quantity,
                )
            )
            logger.warning(
                "stock_sync_failed",
                bill_number=bill.bill_number,
                medicine_id=line.medicine_id,
                quantity=line.quantity,
                detail=detail,
            )

    try:
        history.append_bill(bill)
    except Exception as e:
        failures.append(SoftIOFailure(operation="append_bill", detail=str(e)))
        logger.warning("bill_history_append_failed", bill_number=bill.bill_number, exc_info=True)

    cart.clear()

    if notifier is not None:
        notifier.publish(BILLS)
        notifier.publish(MEDICINES)

    logger.info(
        "bill_settled",
        bill_number=bill.bill_number,
        items=len(bill.items),
        total=str(bill.total),
        soft_failures=len(failures),
    )
    return SettlementResult(bill=bill, failures=tuple(failures))
