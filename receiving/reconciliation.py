"""
Goods-receipt reconciliation against a purchase order.

Given a PO and every receipt document recorded against it, the engine works
out how much of each line can still be received, checks a candidate receipt
against those caps, and prices it. All methods are pure: nothing is cached
between calls and inputs are never modified, so the fulfillment state of an
order is always recomputed from the full receipt history.

Receipt lines are matched to PO lines by line_id when both carry one. Lines
without an identifier fall back to case-insensitive trimmed name equality;
when a PO repeats a name, name-matched quantities fill the same-named lines
in PO order.
"""
import logging
from collections import Counter, defaultdict
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

from rapidfuzz import fuzz, process

from models.purchase_order import PurchaseOrder
from models.receipt import DraftLine, ReceiptDocument, ReceiptDraft, ReceiptTotals
from models.result import FulfillmentStatus, RemainingLine, Violation
from .errors import InvalidQuantityFormat, OrderFullyReceived
from .quantities import ZERO, clamp_quantity_input, normalise_name, parse_quantity, to_decimal
from .tax import TaxRules, compute_totals

logger = logging.getLogger(__name__)

SUGGESTION_THRESHOLD = 65   # minimum rapidfuzz score to offer a "did you mean" name


class ReconciliationEngine:
    """
    Tracks received quantities against a PO and validates new receipts.

    Usage:
        engine = ReconciliationEngine(TaxRules())
        remaining = engine.compute_remaining(po, receipts)
        violations = engine.validate(
            lines, engine.remaining_by_name(remaining), engine.remaining_by_id(po, remaining),
        )
        totals = engine.compute_totals(lines, other_charges, po.vendor_tax_id)
    """

    def __init__(self, tax_rules: Optional[TaxRules] = None):
        self.tax_rules = tax_rules or TaxRules()

    # ------------------------------------------------------------------
    # Remaining quantities
    # ------------------------------------------------------------------

    def compute_remaining(
        self,
        po: PurchaseOrder,
        prior_receipts: Iterable[ReceiptDocument],
    ) -> list[RemainingLine]:
        """
        Return the PO lines that can still be received, in PO order.

        Fully received lines are left out, so an empty list means nothing on
        the order is receivable any more.
        """
        received = self._received_per_line(po, prior_receipts)
        remaining_lines: list[RemainingLine] = []
        for line, got in zip(po.lines, received):
            remaining = max(ZERO, line.quantity_ordered - got)
            logger.debug(
                "Item: %s | Ordered: %s | Received: %s | Remaining: %s",
                line.name, line.quantity_ordered, got, remaining,
            )
            if remaining > ZERO:
                remaining_lines.append(RemainingLine(
                    line=line,
                    quantity_ordered=line.quantity_ordered,
                    quantity_received=got,
                    remaining_quantity=remaining,
                ))
        return remaining_lines

    @staticmethod
    def remaining_by_name(remaining_lines: Iterable[RemainingLine]) -> dict[str, Decimal]:
        """Remaining quantity per line name (same-named lines are summed)."""
        caps: dict[str, Decimal] = {}
        labels: dict[str, str] = {}
        for rl in remaining_lines:
            key = normalise_name(rl.line.name)
            label = labels.setdefault(key, rl.line.name)
            caps[label] = caps.get(label, ZERO) + rl.remaining_quantity
        return caps

    @staticmethod
    def remaining_by_id(
        po: PurchaseOrder,
        remaining_lines: Iterable[RemainingLine],
    ) -> dict[str, Decimal]:
        """Remaining quantity per PO line_id; fully received lines map to 0."""
        caps = {line.line_id: ZERO for line in po.lines if line.line_id}
        for rl in remaining_lines:
            if rl.line.line_id:
                caps[rl.line.line_id] = rl.remaining_quantity
        return caps

    def is_order_fully_received(
        self,
        po: PurchaseOrder,
        all_receipts: Iterable[ReceiptDocument],
    ) -> bool:
        return not self.compute_remaining(po, all_receipts)

    def fulfillment_status(
        self,
        po: PurchaseOrder,
        all_receipts: Iterable[ReceiptDocument],
    ) -> FulfillmentStatus:
        """open → partially_received → fully_received, derived from history."""
        receipts = list(all_receipts)
        if self.is_order_fully_received(po, receipts):
            return "fully_received"
        if any(got > ZERO for got in self._received_per_line(po, receipts)):
            return "partially_received"
        return "open"

    def open_receipt(
        self,
        po: PurchaseOrder,
        prior_receipts: Iterable[ReceiptDocument],
    ) -> ReceiptDraft:
        """
        Start a receipt against *po*, one draft line per receivable PO line
        with the quantity pre-filled to what is still outstanding.

        Raises OrderFullyReceived when nothing remains to be received.
        """
        remaining = self.compute_remaining(po, prior_receipts)
        if not remaining:
            logger.info("PO %s is fully received; no receipt can be opened", po.po_number)
            raise OrderFullyReceived(po.po_number)

        return ReceiptDraft(
            po_number=po.po_number,
            po_date=po.po_date,
            vendor_name=po.vendor_name,
            vendor_tax_id=po.vendor_tax_id,
            vendor_address=po.vendor_address,
            vendor_contact=po.vendor_contact,
            vendor_email=po.vendor_email,
            lines=[
                DraftLine(
                    name=rl.line.name,
                    quantity_received=rl.remaining_quantity,
                    rate=rl.line.rate,
                    description=rl.line.description,
                    hsn_code=rl.line.hsn_code,
                    unit=rl.line.unit,
                    line_id=rl.line.line_id,
                    remaining_quantity=rl.remaining_quantity,
                )
                for rl in remaining
            ],
        )

    # ------------------------------------------------------------------
    # Input and validation
    # ------------------------------------------------------------------

    @staticmethod
    def clamp_quantity_input(raw: Any, cap: Optional[Decimal]) -> Decimal:
        """Input-time policy: values above the cap become the cap."""
        return clamp_quantity_input(raw, cap)

    def validate(
        self,
        candidate_lines: Sequence[Any],
        remaining_by_name: dict[str, Decimal],
        remaining_by_id: Optional[dict[str, Decimal]] = None,
    ) -> list[Violation]:
        """
        Check candidate receipt lines against the remaining caps.

        Returns an empty list when the receipt may be submitted. Lines sharing
        a name draw on a single cap. A line whose name has no cap is treated
        as having nothing left to receive.

        A line whose line_id is a key of *remaining_by_id* is also held to
        that PO line's own remaining quantity.
        """
        id_caps = remaining_by_id or {}
        caps: dict[str, tuple[str, Decimal]] = {}
        for name, qty in remaining_by_name.items():
            key = normalise_name(name)
            label, total = caps.get(key, (name, ZERO))
            caps[key] = (label, total + qty)

        violations: list[Violation] = []
        if not candidate_lines:
            violations.append(Violation(
                kind="no_lines",
                description="A receipt needs at least one line",
                field="lines",
            ))
            return violations

        used: dict[str, Decimal] = defaultdict(lambda: ZERO)
        used_by_id: dict[str, Decimal] = defaultdict(lambda: ZERO)

        for idx, line in enumerate(candidate_lines):
            field = f"lines[{idx}].quantity_received"
            raw_qty = line.quantity_received

            rate = to_decimal(line.rate)
            if rate is None or rate <= ZERO:
                violations.append(Violation(
                    kind="invalid_rate",
                    description=f"Rate for {line.name} must be greater than 0",
                    line_name=line.name,
                    field=f"lines[{idx}].rate",
                    submitted=None if line.rate is None else str(line.rate),
                ))

            try:
                qty = parse_quantity(raw_qty, field)
            except InvalidQuantityFormat as exc:
                violations.append(Violation(
                    kind="invalid_quantity_format",
                    description=f"Quantity for {line.name} {exc.reason}",
                    line_name=line.name,
                    field=field,
                    submitted=None if raw_qty is None else str(raw_qty),
                ))
                continue

            key = normalise_name(line.name)
            line_id = getattr(line, "line_id", None)
            identified = bool(line_id) and line_id in id_caps
            _, cap = caps.get(key, (line.name, ZERO))
            allowed = max(ZERO, cap - used[key])
            if identified:
                own = max(ZERO, id_caps[line_id] - used_by_id[line_id])
                allowed = min(allowed, own) if key in caps else own
            if qty > allowed:
                violations.append(Violation(
                    kind="quantity_exceeds_remaining",
                    description=(
                        f"Quantity for {line.name} exceeds remaining PO quantity "
                        f"(Max: {allowed})"
                    ),
                    line_name=line.name,
                    field=field,
                    allowed_max=allowed,
                    submitted=str(raw_qty),
                    suggestion=None if key in caps or identified else self._suggest(line.name, caps),
                ))
                continue
            used[key] += qty
            if identified:
                used_by_id[line_id] += qty

        if violations:
            logger.info("Receipt failed validation with %d violation(s)", len(violations))
        return violations

    def compute_totals(
        self,
        lines: Iterable[Any],
        other_charges: Any = None,
        vendor_tax_id: Optional[str] = None,
    ) -> ReceiptTotals:
        return compute_totals(lines, other_charges, vendor_tax_id, self.tax_rules)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _received_per_line(
        po: PurchaseOrder,
        receipts: Iterable[ReceiptDocument],
    ) -> list[Decimal]:
        """Quantity already received for each PO line, aligned with po.lines."""
        po_key = po.po_number.strip()
        known_ids = {line.line_id for line in po.lines if line.line_id}

        by_id: dict[str, Decimal] = defaultdict(lambda: ZERO)
        by_name: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for doc in receipts:
            if (doc.po_number or "").strip() != po_key:
                continue
            for rl in doc.lines:
                if rl.line_id and rl.line_id in known_ids:
                    by_id[rl.line_id] += rl.quantity_received
                    continue
                key = normalise_name(rl.name)
                if key:
                    by_name[key] += rl.quantity_received

        # Split name-matched quantities across same-named PO lines in order;
        # the last line of a name takes whatever is left over.
        name_counts = Counter(normalise_name(line.name) for line in po.lines)
        seen: Counter = Counter()
        received: list[Decimal] = []
        for line in po.lines:
            got = by_id[line.line_id] if line.line_id else ZERO
            key = normalise_name(line.name)
            if not key:
                received.append(got)
                continue
            seen[key] += 1
            pool = by_name[key]
            if seen[key] == name_counts[key]:
                take = pool
            else:
                take = min(pool, max(ZERO, line.quantity_ordered - got))
            by_name[key] = pool - take
            received.append(got + take)
        return received

    @staticmethod
    def _suggest(name: str, caps: dict[str, tuple[str, Decimal]]) -> Optional[str]:
        labels = [label for label, _ in caps.values()]
        if not labels or not name:
            return None
        best = process.extractOne(
            name, labels,
            scorer=fuzz.token_sort_ratio,
            processor=str.lower,
            score_cutoff=SUGGESTION_THRESHOLD,
        )
        return best[0] if best else None
