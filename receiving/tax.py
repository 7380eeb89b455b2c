"""
GST computation for goods receipts.

A vendor whose GSTIN starts with the home state code is intra-state and is
charged CGST + SGST; every other vendor is inter-state and is charged IGST.
The state code and the three rates are configuration, not constants, so a
different home state or a rate change only needs a settings change.
"""
import logging
from decimal import Decimal, localcontext
from typing import Any, Iterable, Optional

from pydantic import BaseModel

from models.receipt import GstType, ReceiptTotals
from .quantities import AMOUNT_CONTEXT, ZERO, round2, to_decimal

logger = logging.getLogger(__name__)

# India GST defaults: state code 24 (Gujarat), 18% slab
DEFAULT_INTRA_STATE_PREFIX = "24"
DEFAULT_CGST_RATE = Decimal("0.09")
DEFAULT_SGST_RATE = Decimal("0.09")
DEFAULT_IGST_RATE = Decimal("0.18")


class TaxRules(BaseModel):
    """Jurisdiction settings for the intra/inter-state GST split."""
    intra_state_prefix: str = DEFAULT_INTRA_STATE_PREFIX
    cgst_rate: Decimal = DEFAULT_CGST_RATE
    sgst_rate: Decimal = DEFAULT_SGST_RATE
    igst_rate: Decimal = DEFAULT_IGST_RATE

    @classmethod
    def from_config(cls, config: Any) -> "TaxRules":
        return cls(
            intra_state_prefix=config.intra_state_prefix,
            cgst_rate=config.cgst_rate,
            sgst_rate=config.sgst_rate,
            igst_rate=config.igst_rate,
        )

    def is_intra_state(self, vendor_tax_id: Optional[str]) -> bool:
        return (vendor_tax_id or "").strip().startswith(self.intra_state_prefix)

    def gst_type(self, vendor_tax_id: Optional[str]) -> GstType:
        return "intra" if self.is_intra_state(vendor_tax_id) else "inter"


def line_amount(line: Any) -> Decimal:
    """quantity × rate for one line; non-numeric inputs count as zero."""
    qty = to_decimal(line.quantity_received) or ZERO
    rate = to_decimal(line.rate) or ZERO
    return qty * rate


def compute_totals(
    lines: Iterable[Any],
    other_charges: Any = None,
    vendor_tax_id: Optional[str] = None,
    rules: Optional[TaxRules] = None,
) -> ReceiptTotals:
    """
    Compute subtotal, GST and grand total for a receipt.

    The subtotal is summed without rounding; each tax component is computed on
    the unrounded subtotal and rounded individually, and the grand total is
    rounded once at the end.
    """
    rules = rules or TaxRules()
    with localcontext(AMOUNT_CONTEXT):
        subtotal = sum((line_amount(line) for line in lines), ZERO)
        charges = to_decimal(other_charges) or ZERO

        if rules.is_intra_state(vendor_tax_id):
            cgst = round2(subtotal * rules.cgst_rate)
            sgst = round2(subtotal * rules.sgst_rate)
            igst = ZERO
        else:
            cgst = sgst = ZERO
            igst = round2(subtotal * rules.igst_rate)

        total = round2(subtotal + cgst + sgst + igst + charges)
    logger.debug(
        "Totals for GSTIN %s: subtotal=%s cgst=%s sgst=%s igst=%s other=%s total=%s",
        vendor_tax_id, subtotal, cgst, sgst, igst, charges, total,
    )
    return ReceiptTotals(
        subtotal=subtotal,
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        other_charges=charges,
        total=total,
        gst_type=rules.gst_type(vendor_tax_id),
    )
