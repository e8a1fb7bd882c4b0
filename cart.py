"""
Cart engine.

Holds the line items of one uncommitted sale. Every successful mutation calls
the ``on_change`` callback with the cart so the caller can persist it and
resume an interrupted sale later.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from errors import StockError, ValidationError

TAX_RATE = Decimal("0.05")


def to_money(value: Any) -> Decimal:
    """Convert a price-like value to Decimal without binary float noise."""
    if isinstance(value, bool):
        raise ValidationError("Amount must be a number")
    if isinstance(value, Decimal):
        amount = value
    elif hasattr(value, "to_decimal"):
        amount = value.to_decimal()
    elif isinstance(value, (int, float, str)):
        try:
            amount = Decimal(str(value))
        except ArithmeticError:
            raise ValidationError(f"Invalid amount: {value!r}")
    else:
        raise ValidationError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return amount


def format_money(amount: Decimal) -> str:
    """Return amount formatted to two decimals."""
    return f"{amount:.2f}"


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class CartLine:
    medicine_id: str
    name: str
    unit_price: Decimal
    quantity: int
    max_stock: int

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal


class Cart:
    """Working set of items for the current sale, keyed by medicine id."""

    def __init__(
        self,
        lines: Optional[List[CartLine]] = None,
        discount: Decimal = Decimal("0"),
        on_change: Optional[Callable[["Cart"], None]] = None,
        tax_rate: Decimal = TAX_RATE,
    ) -> None:
        self._lines: Dict[str, CartLine] = {}
        for line in lines or []:
            self._lines[line.medicine_id] = line
        self.discount = to_money(discount)
        self.tax_rate = to_money(tax_rate)
        self.on_change = on_change

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def lines(self) -> Tuple[CartLine, ...]:
        return self.snapshot()

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def snapshot(self) -> Tuple[CartLine, ...]:
        return tuple(replace(line) for line in self._lines.values())

    def get(self, medicine_id: str) -> Optional[CartLine]:
        line = self._lines.get(medicine_id)
        return replace(line) if line else None

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def add_item(self, medicine_id: str, name: str, unit_price: Any, requested_qty: Any, available_stock: int) -> Tuple[CartLine, ...]:
        """
        Add a medicine to the cart or grow its existing line.

        Raises:
            ValidationError: quantity is not a positive integer, or price/stock is invalid
            StockError: the line would exceed available_stock
        """
        if not _is_int(requested_qty) or requested_qty <= 0:
            raise ValidationError("Please enter a valid quantity")
        if not _is_int(available_stock) or available_stock < 0:
            raise ValidationError("Available stock must be a non-negative integer")
        price = to_money(unit_price)
        if price < 0:
            raise ValidationError("Unit price cannot be negative")

        existing = self._lines.get(medicine_id)
        if existing is None:
            if requested_qty > available_stock:
                raise StockError(
                    f"Only {available_stock} units available in stock", available=available_stock
                )
            self._lines[medicine_id] = CartLine(
                medicine_id=medicine_id,
                name=name,
                unit_price=price,
                quantity=requested_qty,
                max_stock=available_stock,
            )
        else:
            new_qty = existing.quantity + requested_qty
            if new_qty > available_stock:
                raise StockError(
                    f"Cannot add more than {available_stock} units", available=available_stock
                )
            existing.quantity = new_qty
            existing.max_stock = available_stock

        self._changed()
        return self.snapshot()

    def update_quantity(self, medicine_id: str, new_qty: Any) -> Tuple[CartLine, ...]:
        """Set a line's quantity, clamped to [1, max_stock]."""
        line = self._lines.get(medicine_id)
        if line is None:
            raise ValidationError(f"Medicine {medicine_id} is not in the cart")

        if not _is_int(new_qty) or new_qty < 1:
            new_qty = 1
        new_qty = min(new_qty, line.max_stock)

        if new_qty != line.quantity:
            line.quantity = new_qty
            self._changed()
        return self.snapshot()

    def remove_item(self, medicine_id: str) -> Tuple[CartLine, ...]:
        if self._lines.pop(medicine_id, None) is not None:
            self._changed()
        return self.snapshot()

    def set_discount(self, amount: Any) -> CartTotals:
        discount = to_money(amount if amount is not None else 0)
        if discount < 0:
            raise ValidationError("Discount cannot be negative")
        if discount != self.discount:
            self.discount = discount
            self._changed()
        return self.totals()

    def clear(self) -> None:
        had_state = bool(self._lines) or self.discount != 0
        self._lines.clear()
        self.discount = Decimal("0")
        if had_state:
            self._changed()

    def totals(self, discount: Optional[Decimal] = None) -> CartTotals:
        """
        Compute subtotal, tax, discount and total without touching state.

        A discount larger than the subtotal yields a negative total; it is
        not clamped.
        """
        discount = self.discount if discount is None else to_money(discount)
        subtotal = sum((line.line_total for line in self._lines.values()), Decimal("0"))
        tax = subtotal * self.tax_rate
        return CartTotals(
            subtotal=subtotal,
            tax=tax,
            discount=discount,
            total=subtotal + tax - discount,
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "items": [
                {
                    "medicine_id": line.medicine_id,
                    "name": line.name,
                    "unit_price": str(line.unit_price),
                    "quantity": line.quantity,
                    "max_stock": line.max_stock,
                }
                for line in self._lines.values()
            ],
            "discount": str(self.discount),
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any], on_change: Optional[Callable[["Cart"], None]] = None, tax_rate: Decimal = TAX_RATE) -> "Cart":
        lines = [
            CartLine(
                medicine_id=item["medicine_id"],
                name=item["name"],
                unit_price=to_money(item["unit_price"]),
                quantity=int(item["quantity"]),
                max_stock=int(item["max_stock"]),
            )
            for item in doc.get("items", [])
        ]
        return cls(
            lines=lines,
            discount=to_money(doc.get("discount", "0")),
            on_change=on_change,
            tax_rate=tax_rate,
        )
