"""Error taxonomy for billing and inventory operations."""

from dataclasses import dataclass
from typing import Optional


class PharmacyError(Exception):
    """Base class for errors rejected synchronously to the caller."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PharmacyError):
    """Bad input shape or range, e.g. a non-positive quantity."""

    status_code = 422


class StockError(PharmacyError):
    """Requested quantity exceeds available stock."""

    status_code = 409

    def __init__(self, message: str, available: Optional[int] = None):
        super().__init__(message)
        self.available = available


class EmptyCartError(PharmacyError):
    """Settlement attempted on a cart with no lines."""

    status_code = 400


@dataclass(frozen=True)
class SoftIOFailure:
    """A best-effort external call that failed. Recorded, never raised."""

    operation: str
    detail: str
    medicine_id: Optional[str] = None
    quantity: Optional[int] = None
