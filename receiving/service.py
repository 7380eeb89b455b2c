"""
Receiving workflow orchestrator.

ReceivingService ties the record-service client, the reconciliation engine
and the local cache together:

  1. Fetch the PO and its full receipt history from the record service
  2. ReconciliationEngine.compute_remaining -- what can still be received
  3. ReconciliationEngine.validate          -- check the candidate receipt
  4. ReconciliationEngine.compute_totals    -- subtotal, GST, total
  5. POST the receipt; the record service repeats the quantity check
  6. Record the saved receipt in the local cache and audit log

Step 1 runs again immediately before every validation, so a receipt is never
checked against quantities fetched earlier in the session.
"""
import logging
from datetime import date
from typing import Optional

from config import Config
from models.purchase_order import PurchaseOrder
from models.receipt import (
    ReceiptDocument, ReceiptDraft, ReceiptLine, ReceiptMetadataUpdate, ReceiptTotals,
)
from models.result import FulfillmentStatus, RemainingLine, Violation
from .cache import ReceiptCache
from .errors import OrderFullyReceived, ReceiptRejected, StaleRemainingQuantity
from .quantities import parse_quantity, to_decimal
from .reconciliation import ReconciliationEngine
from .record_client import RecordServiceClient
from .search import filter_receipts, sort_receipts
from .tax import TaxRules

logger = logging.getLogger(__name__)


class ReceivingService:
    """Fetch → reconcile → validate → price → persist, for one PO at a time."""

    def __init__(
        self,
        config: Optional[Config] = None,
        client: Optional[RecordServiceClient] = None,
        cache: Optional[ReceiptCache] = None,
    ):
        self.config = config or Config()
        self.client = client or RecordServiceClient.from_config(self.config)
        self.cache = cache or ReceiptCache(self.config.cache_db_path)
        self.engine = ReconciliationEngine(TaxRules.from_config(self.config))

    # ------------------------------------------------------------------
    # Order position
    # ------------------------------------------------------------------

    def load_order(self, po_number: str) -> tuple[PurchaseOrder, list[ReceiptDocument]]:
        """The PO and its authoritative receipt history."""
        po = self.client.get_purchase_order(po_number)
        history = self.client.list_receipts(po.po_number)
        logger.debug("PO %s: %d line(s), %d prior receipt(s)", po.po_number, len(po.lines), len(history))
        return po, history

    def order_position(
        self, po_number: str,
    ) -> tuple[PurchaseOrder, list[RemainingLine], FulfillmentStatus]:
        po, history = self.load_order(po_number)
        remaining = self.engine.compute_remaining(po, history)
        return po, remaining, self.engine.fulfillment_status(po, history)

    def remaining(self, po_number: str) -> list[RemainingLine]:
        po, history = self.load_order(po_number)
        return self.engine.compute_remaining(po, history)

    def status(self, po_number: str) -> FulfillmentStatus:
        po, history = self.load_order(po_number)
        return self.engine.fulfillment_status(po, history)

    def open_receipt(self, po_number: str) -> ReceiptDraft:
        """Draft pre-filled with outstanding quantities; raises OrderFullyReceived."""
        po, history = self.load_order(po_number)
        draft = self.engine.open_receipt(po, history)
        draft.receipt_date = date.today().isoformat()
        return draft

    # ------------------------------------------------------------------
    # Checking and submitting
    # ------------------------------------------------------------------

    def check(self, draft: ReceiptDraft) -> tuple[list[Violation], ReceiptTotals]:
        """
        Validate *draft* against freshly fetched remaining quantities and
        price it. Nothing is written.
        """
        po, history = self.load_order(draft.po_number)
        remaining = self.engine.compute_remaining(po, history)
        if not remaining:
            raise OrderFullyReceived(po.po_number)
        violations = self.engine.validate(
            draft.lines,
            self.engine.remaining_by_name(remaining),
            self.engine.remaining_by_id(po, remaining),
        )
        totals = self.engine.compute_totals(
            draft.lines, draft.other_charges, po.vendor_tax_id or draft.vendor_tax_id,
        )
        return violations, totals

    def submit(self, draft: ReceiptDraft, actor: str = "system") -> ReceiptDocument:
        """
        Validate and persist a receipt.

        Raises:
            OrderFullyReceived      nothing left to receive on the PO
            ReceiptRejected         one or more lines failed validation
            StaleRemainingQuantity  the record service saw newer receipts
            RecordServiceError      the record service failed
        """
        po, history = self.load_order(draft.po_number)
        remaining = self.engine.compute_remaining(po, history)
        if not remaining:
            raise OrderFullyReceived(po.po_number)

        violations = self.engine.validate(
            draft.lines,
            self.engine.remaining_by_name(remaining),
            self.engine.remaining_by_id(po, remaining),
        )
        if violations:
            for v in violations:
                logger.warning("PO %s: %s", po.po_number, v.description)
            raise ReceiptRejected(violations)

        document = self._build_document(draft, po)
        try:
            saved = self.client.create_receipt(document)
        except StaleRemainingQuantity:
            logger.warning("PO %s: record service rejected receipt as stale", po.po_number)
            raise

        if self.cache.upsert_receipt(saved):
            self.cache.log_audit(
                saved.document_number, "created", actor=actor,
                detail={"po_number": saved.po_number, "total": str(saved.total)},
            )
        return saved

    def update_metadata(
        self,
        document_number: str,
        update: ReceiptMetadataUpdate,
        actor: str = "system",
    ) -> ReceiptDocument:
        """Edit transporter / vehicle / date on a persisted receipt."""
        saved = self.client.update_receipt_metadata(document_number, update)
        self.cache.upsert_receipt(saved)
        self.cache.log_audit(
            document_number, "metadata_updated", actor=actor,
            detail=update.model_dump(exclude_none=True),
        )
        return saved

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_receipts(
        self,
        search: Optional[str] = None,
        cached: bool = False,
    ) -> list[ReceiptDocument]:
        """
        All receipts matching *search*, newest first.

        By default the full list is fetched and the cache refreshed; with
        cached=True only the local cache is read.
        """
        if cached:
            receipts = self.cache.list_receipts()
        else:
            receipts = self.client.list_receipts()
            self.cache.replace_all(receipts)
        return sort_receipts(filter_receipts(receipts, search))

    def get_receipt(self, document_number: str) -> Optional[ReceiptDocument]:
        """One receipt, from the cache or, failing that, a fresh listing."""
        doc = self.cache.get_receipt(document_number)
        if doc is None:
            self.list_receipts()
            doc = self.cache.get_receipt(document_number)
        return doc

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_document(self, draft: ReceiptDraft, po: PurchaseOrder) -> ReceiptDocument:
        lines = [
            ReceiptLine(
                name=line.name.strip(),
                quantity_received=parse_quantity(line.quantity_received),
                rate=to_decimal(line.rate),
                description=line.description,
                hsn_code=line.hsn_code,
                unit=line.unit,
                line_id=line.line_id,
            )
            for line in draft.lines
        ]
        vendor_tax_id = po.vendor_tax_id or draft.vendor_tax_id
        totals = self.engine.compute_totals(lines, draft.other_charges, vendor_tax_id)

        header = draft.model_dump(exclude={"lines", "other_charges"})
        header["vendor_tax_id"] = vendor_tax_id
        header["receipt_date"] = draft.receipt_date or date.today().isoformat()
        return ReceiptDocument(
            **header,
            lines=lines,
            subtotal=totals.subtotal,
            cgst=totals.cgst,
            sgst=totals.sgst,
            igst=totals.igst,
            other_charges=totals.other_charges,
            total=totals.total,
        )
