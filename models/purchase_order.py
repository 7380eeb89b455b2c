from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PurchaseOrderLine(BaseModel):
    """A single line on an issued Purchase Order. Immutable once issued."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    name: str
    quantity_ordered: Decimal
    rate: Decimal
    unit: Optional[str] = None          # e.g. "nos", "kg", "mtr"
    hsn_code: Optional[str] = None      # HSN classification code
    description: Optional[str] = None
    line_id: Optional[str] = None       # Stable identifier, when the order system provides one


class PurchaseOrder(BaseModel):
    """
    A Purchase Order owned by the external order system.
    po_number is the key receipt documents reference; vendor_tax_id (GSTIN)
    decides the GST split for receipts against this order.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    po_number: str
    vendor_tax_id: Optional[str] = None
    lines: List[PurchaseOrderLine] = Field(default_factory=list)

    po_date: Optional[str] = None           # YYYY-MM-DD
    vendor_name: Optional[str] = None
    vendor_address: Optional[str] = None
    vendor_contact: Optional[str] = None
    vendor_email: Optional[str] = None
