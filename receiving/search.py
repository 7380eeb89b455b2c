"""
Search and ordering for the receipt list.

Matching is a case-insensitive substring test of the trimmed search term
against the receipt header, vendor fields and every line's name,
description and HSN code.
"""
from typing import Iterable, Optional

from models.receipt import ReceiptDocument

_HEADER_FIELDS = (
    "document_number", "po_number", "lr_number",
    "vendor_name", "vendor_tax_id", "vendor_address", "vendor_contact", "vendor_email",
)
_LINE_FIELDS = ("name", "description", "hsn_code")


def matches(doc: ReceiptDocument, term: str) -> bool:
    """True if *term* (already lower-cased) occurs in any searchable field."""
    for field in _HEADER_FIELDS:
        value = getattr(doc, field)
        if value and term in value.lower():
            return True
    for line in doc.lines:
        for field in _LINE_FIELDS:
            value = getattr(line, field)
            if value and term in value.lower():
                return True
    return False


def filter_receipts(
    receipts: Iterable[ReceiptDocument],
    term: Optional[str],
) -> list[ReceiptDocument]:
    needle = (term or "").strip().lower()
    if not needle:
        return list(receipts)
    return [doc for doc in receipts if matches(doc, needle)]


def sort_receipts(receipts: Iterable[ReceiptDocument]) -> list[ReceiptDocument]:
    """Newest receipt date first, then document number descending."""
    return sorted(
        receipts,
        key=lambda doc: (doc.receipt_date or "", doc.document_number or ""),
        reverse=True,
    )
