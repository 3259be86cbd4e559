"""Itemized output of a calculation."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple


def _plain(value: Any) -> Any:
    """JSON-friendly copy: Decimals become strings, enums their values."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if hasattr(value, "__dataclass_fields__"):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    return value


@dataclass(frozen=True)
class DiscountLine:
    id: str
    kind: str
    base: Decimal
    amount: Decimal
    rate: Optional[Decimal] = None
    formula: str = ""


@dataclass(frozen=True)
class ChargeLine:
    name: str
    kind: str
    value: Decimal
    base: str
    base_amount: Decimal
    amount: Decimal
    formula: str = ""


@dataclass(frozen=True)
class TaxLine:
    name: str
    rate: Decimal
    inclusive: bool
    base: str
    compound: bool
    threshold: Optional[Decimal]
    enabled: bool
    effective_base: Decimal
    amount: Decimal
    below_threshold: bool = False
    formula: str = ""


@dataclass(frozen=True)
class ItemLine:
    id: str
    name: str
    quantity: Decimal
    currency: Optional[str]
    unit_price: Decimal
    unit_total: Decimal
    gross_total: Decimal
    discount: Decimal
    total: Decimal
    tax_exempt: bool
    discounts: Tuple[DiscountLine, ...] = ()
    add_ons: Tuple["ItemLine", ...] = ()
    variations: Tuple["ItemLine", ...] = ()
    formula: str = ""
    # Share of the taxable base after bill-level discounts; top-level items only
    taxable_amount: Optional[Decimal] = None


@dataclass(frozen=True)
class BillingResult:
    """Published result of one calculation. Never mutated after creation."""

    billing_id: str
    created_at: str
    currency: str
    subtotal: Decimal
    item_discount_total: Decimal
    total_discount: Decimal
    taxable_base: Decimal
    discounts: Tuple[DiscountLine, ...]
    charges: Tuple[ChargeLine, ...]
    total_charges: Decimal
    taxes: Tuple[TaxLine, ...]
    inclusive_tax: Decimal
    exclusive_tax: Decimal
    total_tax: Decimal
    net_base: Decimal
    unrounded_total: Decimal
    rounding_residual: Decimal
    total: Decimal
    exchange_rate: Decimal
    converted_totals: Optional[Dict[str, Decimal]]
    item_lines: Tuple[ItemLine, ...]
    formula_steps: Tuple[str, ...]
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return _plain(self)
