"""Domain exceptions shared by the RentLedger services."""
from __future__ import annotations


class RentLedgerError(RuntimeError):
    """Base exception for service errors."""


class NotFoundError(RentLedgerError):
    """Raised when a tenant, property, payment, report or share does not exist in scope."""


class PermissionDeniedError(RentLedgerError):
    """Raised when the caller may not act on the resource."""


class DataIntegrityError(RentLedgerError):
    """Raised for a stored payment record that cannot be interpreted.

    The ledger reader catches it per record, so one bad row never aborts a read.
    """

    def __init__(self, record_id: str | None, reason: str) -> None:
        super().__init__(f"Payment record '{record_id}' is malformed: {reason}")
        self.record_id = record_id
        self.reason = reason


class DuplicatePaymentError(RentLedgerError):
    """Raised when a payment already exists for the property, period and source."""


class BadgeConflict(RentLedgerError):
    """A concurrent writer issued the same badge first. Handled as a no-op."""


class ShareExpiredError(RentLedgerError):
    """Raised when a share link is accessed after its expiry."""


__all__ = [
    "BadgeConflict",
    "DataIntegrityError",
    "DuplicatePaymentError",
    "NotFoundError",
    "PermissionDeniedError",
    "RentLedgerError",
    "ShareExpiredError",
]
