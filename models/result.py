from decimal import Decimal
from typing import Optional, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .purchase_order import PurchaseOrderLine


ViolationKind = Literal[
    # Quantity against the PO
    "quantity_exceeds_remaining",
    # Field format
    "invalid_quantity_format",
    "invalid_rate",
    # Receipt as a whole
    "no_lines",
]

# Derived from the receipt history on every call, never persisted
FulfillmentStatus = Literal["open", "partially_received", "fully_received"]


class RemainingLine(BaseModel):
    """A PO line that can still be received, with its running quantities."""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    line: PurchaseOrderLine
    quantity_ordered: Decimal
    quantity_received: Decimal
    remaining_quantity: Decimal


class Violation(BaseModel):
    """A single reason a candidate receipt cannot be submitted."""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    kind: ViolationKind
    description: str                        # Human-readable message shown to the user
    line_name: Optional[str] = None
    field: Optional[str] = None             # e.g. "lines[0].quantity_received"
    allowed_max: Optional[Decimal] = None   # Cap for quantity_exceeds_remaining
    submitted: Optional[str] = None         # The offending value as entered
    suggestion: Optional[str] = None        # Closest receivable line name, if any
