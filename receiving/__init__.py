from .errors import (
    ReceivingError, OrderFullyReceived, InvalidQuantityFormat,
    ReceiptRejected, StaleRemainingQuantity, RecordServiceError,
)
from .tax import TaxRules, compute_totals
from .reconciliation import ReconciliationEngine
from .record_client import RecordServiceClient
from .cache import ReceiptCache
from .service import ReceivingService

__all__ = [
    "ReceivingError", "OrderFullyReceived", "InvalidQuantityFormat",
    "ReceiptRejected", "StaleRemainingQuantity", "RecordServiceError",
    "TaxRules", "compute_totals", "ReconciliationEngine",
    "RecordServiceClient", "ReceiptCache", "ReceivingService",
]
