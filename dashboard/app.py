"""
Goods Receipt API — FastAPI backend for the GRN screens.

Exposes the reconciliation engine to the form layer. All order and receipt
data is read from (and written to) the external record-keeping service on
each request; remaining quantities are never served from a cache.

Endpoints
---------
  GET   /api/health                                   → liveness probe
  GET   /api/purchase-orders/{po}/remaining           → receivable lines + fulfillment status
  POST  /api/purchase-orders/{po}/receipts/draft      → receipt draft pre-filled with remaining qty
  POST  /api/quantity/clamp                           → accepted value for a typed quantity
  POST  /api/receipts/validate                        → violations + totals for a draft (no write)
  POST  /api/receipts/totals                          → subtotal / GST / total for lines
  POST  /api/receipts                                 → validate and create a receipt
  PATCH /api/receipts/{document_number}               → edit transporter / vehicle / date
  GET   /api/receipts                                 → list (supports ?search= and ?cached=)
  GET   /api/receipts/export.xlsx                     → receipt register as Excel
  GET   /api/receipts/export.csv                      → receipt register as CSV
  GET   /api/receipts/{document_number}/print         → printable XML for the PDF exporter
"""
import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import FileResponse, Response

from config import Config, config_dir
from dashboard.models import QuantityClampRequest, TotalsRequest
from dashboard.services.export import (
    build_register_rows, render_receipt_xml, write_register_csv, write_register_xlsx,
)
from models.receipt import ReceiptDraft, ReceiptMetadataUpdate
from receiving.errors import (
    InvalidQuantityFormat, OrderFullyReceived, ReceiptRejected,
    RecordServiceError, StaleRemainingQuantity,
)
from receiving.quantities import to_decimal
from receiving.service import ReceivingService

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Service (built lazily on first request)
# ---------------------------------------------------------------------------
_service: Optional[ReceivingService] = None


def get_service() -> ReceivingService:
    global _service
    if _service is None:
        _service = ReceivingService(Config())
    return _service


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(title="Goods Receipt API", docs_url=None, redoc_url=None)


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


def _raise_for(exc: Exception):
    """Translate a receiving error into the matching HTTP error."""
    if isinstance(exc, ReceiptRejected):
        raise HTTPException(422, {
            "message": "Receipt rejected",
            "violations": [_dump(v) for v in exc.violations],
        })
    if isinstance(exc, InvalidQuantityFormat):
        raise HTTPException(422, str(exc))
    if isinstance(exc, (OrderFullyReceived, StaleRemainingQuantity)):
        raise HTTPException(409, str(exc))
    if isinstance(exc, RecordServiceError):
        if exc.status_code == 404:
            raise HTTPException(404, str(exc))
        raise HTTPException(502, f"Record service error: {exc}")
    raise exc


# ── Routes ───────────────────────────────────────────────────────────────────

@app.get("/api/health")
def health():
    svc = get_service()
    return {
        "status":          "ok",
        "records_api_url": svc.config.records_api_url,
        "cache_db_path":   str(svc.config.cache_db_path),
        "export_dir":      str(svc.config.export_dir),
    }


@app.get("/api/purchase-orders/{po_number}/remaining")
def remaining(po_number: str):
    try:
        po, lines, status = get_service().order_position(po_number)
    except RecordServiceError as exc:
        _raise_for(exc)
    return {
        "po_number": po.po_number,
        "vendor_tax_id": po.vendor_tax_id,
        "status": status,
        "lines": [_dump(rl) for rl in lines],
    }


@app.post("/api/purchase-orders/{po_number}/receipts/draft")
def open_draft(po_number: str):
    try:
        draft = get_service().open_receipt(po_number)
    except (OrderFullyReceived, RecordServiceError) as exc:
        _raise_for(exc)
    return _dump(draft)


@app.post("/api/quantity/clamp")
def clamp_quantity(body: QuantityClampRequest):
    try:
        value = get_service().engine.clamp_quantity_input(body.raw, body.cap)
    except InvalidQuantityFormat as exc:
        _raise_for(exc)
    clamped = body.cap is not None and to_decimal(body.raw) > body.cap
    return {"value": str(value), "clamped": clamped}


@app.post("/api/receipts/validate")
def validate_receipt(draft: ReceiptDraft):
    try:
        violations, totals = get_service().check(draft)
    except (OrderFullyReceived, RecordServiceError) as exc:
        _raise_for(exc)
    return {
        "ok": not violations,
        "violations": [_dump(v) for v in violations],
        "totals": _dump(totals),
    }


@app.post("/api/receipts/totals")
def receipt_totals(body: TotalsRequest):
    totals = get_service().engine.compute_totals(body.lines, body.other_charges, body.vendor_tax_id)
    return _dump(totals)


@app.post("/api/receipts", status_code=201)
def create_receipt(draft: ReceiptDraft):
    try:
        saved = get_service().submit(draft, actor="dashboard")
    except (
        OrderFullyReceived, ReceiptRejected, StaleRemainingQuantity, RecordServiceError,
    ) as exc:
        _raise_for(exc)
    return _dump(saved)


@app.patch("/api/receipts/{document_number}")
def update_receipt(document_number: str, body: ReceiptMetadataUpdate):
    try:
        saved = get_service().update_metadata(document_number, body, actor="dashboard")
    except RecordServiceError as exc:
        _raise_for(exc)
    return _dump(saved)


@app.get("/api/receipts")
def list_receipts(
    search: Optional[str] = Query(default=None),
    cached: bool = Query(default=False),
):
    try:
        receipts = get_service().list_receipts(search=search, cached=cached)
    except RecordServiceError as exc:
        _raise_for(exc)
    return [_dump(r) for r in receipts]


@app.get("/api/receipts/export.xlsx")
def export_xlsx(search: Optional[str] = Query(default=None)):
    path = _export_register(search, "GRNs.xlsx", write_register_xlsx)
    return FileResponse(
        path,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        filename=path.name,
    )


@app.get("/api/receipts/export.csv")
def export_csv(search: Optional[str] = Query(default=None)):
    path = _export_register(search, "GRNs.csv", write_register_csv)
    return FileResponse(path, media_type="text/csv", filename=path.name)


@app.get("/api/receipts/{document_number}/print")
def print_receipt(document_number: str):
    svc = get_service()
    try:
        doc = svc.get_receipt(document_number)
    except RecordServiceError as exc:
        _raise_for(exc)
    if doc is None:
        raise HTTPException(404, f"Receipt not found: {document_number}")
    template = config_dir() / svc.config.receipt_template
    xml = render_receipt_xml(doc, template, svc.engine.tax_rules)
    return Response(content=xml, media_type="application/xml")


# ── Helpers ──────────────────────────────────────────────────────────────────

def _export_register(search: Optional[str], filename: str, writer) -> Path:
    svc = get_service()
    try:
        receipts = svc.list_receipts(search=search)
    except RecordServiceError as exc:
        _raise_for(exc)
    if not receipts:
        raise HTTPException(404, "No receipts to export")
    svc.config.ensure_output_dir()
    path = writer(build_register_rows(receipts, svc.engine.tax_rules), svc.config.export_dir / filename)
    svc.cache.log_audit("*", "exported", actor="dashboard", detail={"file": path.name, "rows": len(receipts)})
    logger.info("Exported receipt register: %s", path)
    return path
