"""
Client for the external record-keeping service that owns purchase orders
and receipt documents.

Endpoints used:
  GET   /purchase-orders                       → all POs
  GET   /purchase-orders/{poNumber}            → one PO with lines
  GET   /receipt-documents[?poNumber=...]      → receipt documents
  POST  /receipt-documents                     → create a receipt
  PATCH /receipt-documents/{documentNumber}    → edit receipt metadata

Responses may be bare JSON or wrapped as {"data": ...}. The service is
expected to repeat the remaining-quantity check when a receipt is created and
answer 409 Conflict when it fails; that is surfaced as StaleRemainingQuantity.
Nothing here retries.
"""
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Optional

from pydantic import ValidationError

from models.purchase_order import PurchaseOrder
from models.receipt import ReceiptDocument, ReceiptMetadataUpdate
from .errors import RecordServiceError, StaleRemainingQuantity

logger = logging.getLogger(__name__)

USER_AGENT = "GRN-Reconciliation/1.0"


class RecordServiceClient:
    """Thin JSON-over-HTTP wrapper around the record-keeping service."""

    def __init__(self, base_url: str, timeout: int = 30, token: Optional[str] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token = token

    @classmethod
    def from_config(cls, config: Any) -> "RecordServiceClient":
        return cls(
            config.records_api_url,
            timeout=config.records_api_timeout,
            token=config.records_api_token,
        )

    # ------------------------------------------------------------------
    # Purchase orders
    # ------------------------------------------------------------------

    def get_purchase_order(self, po_number: str) -> PurchaseOrder:
        data = self._request("GET", f"/purchase-orders/{_quote(po_number)}")
        return _parse(PurchaseOrder, data)

    def list_purchase_orders(self) -> list[PurchaseOrder]:
        """All POs, newest first, then by PO number descending."""
        data = self._request("GET", "/purchase-orders")
        orders = [_parse(PurchaseOrder, item) for item in (data or [])]
        orders.sort(key=lambda po: (po.po_date or "", po.po_number), reverse=True)
        return orders

    # ------------------------------------------------------------------
    # Receipt documents
    # ------------------------------------------------------------------

    def list_receipts(self, po_number: Optional[str] = None) -> list[ReceiptDocument]:
        """
        Receipt documents, optionally only those against *po_number*.

        Always bypasses intermediate caches: the result feeds remaining
        quantity checks and must reflect the latest writes.
        """
        params = {"poNumber": po_number} if po_number else None
        data = self._request(
            "GET", "/receipt-documents",
            params=params,
            headers={"Cache-Control": "no-cache"},
        )
        return [_parse(ReceiptDocument, item) for item in (data or [])]

    def create_receipt(self, document: ReceiptDocument) -> ReceiptDocument:
        payload = document.model_dump(mode="json", by_alias=True, exclude_none=True)
        try:
            data = self._request("POST", "/receipt-documents", payload=payload)
        except RecordServiceError as exc:
            if exc.status_code == 409:
                raise StaleRemainingQuantity(document.po_number, str(exc)) from exc
            raise
        saved = _parse(ReceiptDocument, data)
        logger.info("Receipt %s created against PO %s", saved.document_number, saved.po_number)
        return saved

    def update_receipt_metadata(
        self,
        document_number: str,
        update: ReceiptMetadataUpdate,
    ) -> ReceiptDocument:
        payload = update.model_dump(mode="json", by_alias=True, exclude_none=True)
        data = self._request(
            "PATCH", f"/receipt-documents/{_quote(document_number)}", payload=payload,
        )
        return _parse(ReceiptDocument, data)

    def ping(self) -> dict:
        """Reachability check used by `main.py check`."""
        try:
            self._request("GET", "/purchase-orders")
            return {"ok": True}
        except RecordServiceError as exc:
            return {"ok": False, "error": str(exc), "status_code": exc.status_code}

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        payload: Optional[dict] = None,
        headers: Optional[dict] = None,
    ) -> Any:
        url = self.base_url + path
        if params:
            url += "?" + urllib.parse.urlencode(params)

        body = json.dumps(payload).encode("utf-8") if payload is not None else None
        req = urllib.request.Request(url, data=body, method=method)
        req.add_header("Accept", "application/json")
        req.add_header("User-Agent", USER_AGENT)
        if body is not None:
            req.add_header("Content-Type", "application/json; charset=utf-8")
        if self.token:
            req.add_header("Authorization", f"Bearer {self.token}")
        for k, v in (headers or {}).items():
            req.add_header(k, v)

        logger.debug("%s %s", method, url)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                raw = response.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as e:
            resp_body = e.read().decode("utf-8", errors="replace") if e.fp else ""
            message = _error_message(resp_body) or str(e)
            logger.error("%s %s failed: HTTP %d - %s", method, url, e.code, message)
            raise RecordServiceError(message, status_code=e.code) from e
        except (urllib.error.URLError, OSError) as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise RecordServiceError(f"Record service unreachable: {e}") from e

        if not raw.strip():
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise RecordServiceError(f"Invalid JSON from record service: {e}") from e
        if isinstance(data, dict) and "data" in data:
            return data["data"]
        return data


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _quote(value: str) -> str:
    return urllib.parse.quote(value.strip(), safe="")


def _parse(model, data: Any):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise RecordServiceError(f"Unexpected {model.__name__} payload: {e}") from e


def _error_message(body: str) -> Optional[str]:
    """Pull a human-readable message out of an error response body."""
    if not body:
        return None
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return body[:500]
    if isinstance(data, dict):
        return str(data.get("message") or data.get("detail") or data.get("error") or body[:500])
    return body[:500]
