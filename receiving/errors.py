"""
Exceptions raised by the receiving engine and the record-service client.

Validation problems found while checking a whole receipt are collected as
Violation objects and raised together in ReceiptRejected; the remaining
classes signal a single condition the caller must act on.
"""
from typing import Any, Optional

from models.result import Violation


class ReceivingError(Exception):
    """Base class for all receiving errors."""


class OrderFullyReceived(ReceivingError):
    """No receivable lines remain on the PO; receipt creation is blocked."""

    def __init__(self, po_number: str):
        self.po_number = po_number
        super().__init__(f"All items on PO {po_number} have already been received")


class InvalidQuantityFormat(ReceivingError, ValueError):
    """A quantity input is non-numeric or not greater than zero."""

    def __init__(self, value: Any, field: Optional[str] = None, reason: str = "must be a number"):
        self.value = value
        self.field = field
        self.reason = reason
        where = f" for {field}" if field else ""
        super().__init__(f"Invalid quantity{where}: {value!r} ({reason})")


class ReceiptRejected(ReceivingError):
    """The candidate receipt failed validation and was not submitted."""

    def __init__(self, violations: list[Violation]):
        self.violations = violations
        summary = "; ".join(v.description for v in violations)
        super().__init__(f"Receipt rejected: {summary}")


class StaleRemainingQuantity(ReceivingError):
    """
    The record service rejected a receipt because the remaining quantity it
    was validated against is out of date. Re-fetch and retry.
    """

    def __init__(self, po_number: str, detail: Optional[str] = None):
        self.po_number = po_number
        self.detail = detail
        msg = f"Remaining quantities for PO {po_number} changed; reload and try again"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class RecordServiceError(ReceivingError):
    """The record-keeping service could not be reached or returned an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
