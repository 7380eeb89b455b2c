from decimal import Decimal
from typing import Any, Optional, List, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


GstType = Literal["intra", "inter"]


class ReceiptLine(BaseModel):
    """
    A received line on a persisted receipt document (GRN).
    Matched to a PO line by line_id when both sides carry one, otherwise by
    case-insensitive trimmed name.
    """
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    name: str
    quantity_received: Decimal
    rate: Decimal
    description: Optional[str] = None
    hsn_code: Optional[str] = None
    unit: Optional[str] = None
    line_id: Optional[str] = None


class DraftLine(BaseModel):
    """
    A receipt line as entered on the form, before validation.

    quantity_received and rate hold the raw input (str / number / None) so
    that malformed values reach the validator instead of failing on parse.
    remaining_quantity is the cap computed when the draft was opened.
    """
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    name: str
    quantity_received: Any = None
    rate: Any = None
    description: Optional[str] = None
    hsn_code: Optional[str] = None
    unit: Optional[str] = None
    line_id: Optional[str] = None
    remaining_quantity: Optional[Decimal] = None


class ReceiptTotals(BaseModel):
    """Monetary summary of a receipt. subtotal is kept unrounded."""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    subtotal: Decimal
    cgst: Decimal = Decimal("0")
    sgst: Decimal = Decimal("0")
    igst: Decimal = Decimal("0")
    other_charges: Decimal = Decimal("0")
    total: Decimal
    gst_type: GstType


class _ReceiptHeader(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    po_number: str
    receipt_date: Optional[str] = None      # YYYY-MM-DD
    po_date: Optional[str] = None

    # Transport details
    lr_number: Optional[str] = None         # Lorry receipt number
    transporter: Optional[str] = None
    vehicle_number: Optional[str] = None

    # Vendor details (copied from the PO when the draft is opened)
    vendor_name: Optional[str] = None
    vendor_tax_id: Optional[str] = None     # GSTIN
    vendor_address: Optional[str] = None
    vendor_contact: Optional[str] = None
    vendor_email: Optional[str] = None

    comments: Optional[str] = None


class ReceiptDraft(_ReceiptHeader):
    """A receipt being prepared against a PO; not yet validated or priced."""
    lines: List[DraftLine] = Field(default_factory=list)
    other_charges: Any = None


class ReceiptDocument(_ReceiptHeader):
    """
    A Goods-Received-Note as persisted by the record-keeping service.

    document_number is assigned by the service on creation, so it is empty on
    the candidate document sent with POST. Quantities and amounts never
    change after persistence; see ReceiptMetadataUpdate.
    """
    document_number: Optional[str] = None
    lines: List[ReceiptLine] = Field(default_factory=list)

    subtotal: Decimal = Decimal("0")
    cgst: Decimal = Decimal("0")
    sgst: Decimal = Decimal("0")
    igst: Decimal = Decimal("0")
    other_charges: Decimal = Decimal("0")
    total: Decimal = Decimal("0")


class ReceiptMetadataUpdate(BaseModel):
    """The only fields of a persisted receipt that may be edited."""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="forbid")

    transporter: Optional[str] = None
    vehicle_number: Optional[str] = None
    receipt_date: Optional[str] = None
