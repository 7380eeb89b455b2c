"""
Pydantic models for dashboard API requests.
"""
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.receipt import DraftLine


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class QuantityClampRequest(_Request):
    raw: Any                            # value as typed into the quantity field
    cap: Optional[Decimal] = None       # remaining quantity for the line


class TotalsRequest(_Request):
    lines: list[DraftLine] = Field(default_factory=list)
    other_charges: Any = None
    vendor_tax_id: Optional[str] = None
