from .purchase_order import PurchaseOrder, PurchaseOrderLine
from .receipt import (
    DraftLine, ReceiptDocument, ReceiptDraft, ReceiptLine,
    ReceiptMetadataUpdate, ReceiptTotals,
)
from .result import FulfillmentStatus, RemainingLine, Violation, ViolationKind

__all__ = [
    "PurchaseOrder", "PurchaseOrderLine",
    "DraftLine", "ReceiptDocument", "ReceiptDraft", "ReceiptLine",
    "ReceiptMetadataUpdate", "ReceiptTotals",
    "FulfillmentStatus", "RemainingLine", "Violation", "ViolationKind",
]
