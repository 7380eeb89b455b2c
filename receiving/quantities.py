"""
Decimal helpers for quantities and money.

All amounts are decimal.Decimal. Monetary outputs are rounded half-up to two
places at each output boundary; quantity input is cut to at most two decimal
places before it is checked.
"""
import logging
from decimal import Context, Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Any, Optional

from .errors import InvalidQuantityFormat

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")
MAX_MAGNITUDE = Decimal("1e100")   # larger inputs are not accepted as numbers
# Exact to the cent for sums and products of values below MAX_MAGNITUDE
AMOUNT_CONTEXT = Context(prec=400)


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert form/JSON input to Decimal; None when it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            return None
    if not result.is_finite():
        return None
    if result.copy_abs() >= MAX_MAGNITUDE:
        logger.debug("Rejecting out-of-range number %s", value)
        return None
    return result


def round2(value: Decimal) -> Decimal:
    """Round half-up to two decimal places."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP, context=AMOUNT_CONTEXT)


def clamp_places(value: Decimal) -> Decimal:
    """Drop digits beyond the second decimal place."""
    return value.quantize(TWO_PLACES, rounding=ROUND_DOWN, context=AMOUNT_CONTEXT)


def parse_quantity(raw: Any, field: Optional[str] = None) -> Decimal:
    """
    Parse a received quantity as entered.

    Raises InvalidQuantityFormat when the input, after clamping to two decimal
    places, is non-numeric or not greater than zero.
    """
    value = to_decimal(raw)
    if value is None:
        raise InvalidQuantityFormat(raw, field, "must be a number")
    value = clamp_places(value)
    if value <= ZERO:
        raise InvalidQuantityFormat(raw, field, "must be greater than 0")
    return value


def clamp_quantity_input(raw: Any, cap: Optional[Decimal]) -> Decimal:
    """
    Accept a quantity typed by the user, silently capping it at *cap*.

    This is the input-time policy: a value above the remaining quantity is
    replaced by the remaining quantity rather than rejected. Values below the
    cap pass through unchanged and are checked on submit.
    """
    value = to_decimal(raw)
    if value is None:
        raise InvalidQuantityFormat(raw, reason="must be a number")
    value = clamp_places(value)
    if cap is not None and value > cap:
        logger.debug("Quantity %s above remaining %s, clamped", value, cap)
        return cap
    return value


def normalise_name(name: Optional[str]) -> str:
    """Key used to match receipt lines to PO lines by name."""
    return (name or "").strip().lower()
