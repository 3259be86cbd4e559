"""Conversion of a flat declarative payload (JSON-shaped dict) into a calculation context."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .context import CalculationContext
from .models import (
    BillingConfiguration,
    ChargeKind,
    ChargeRule,
    DiscountKind,
    DiscountRule,
    DiscountTier,
    FlatDiscount,
    LineItem,
    PercentDiscount,
    TaxRule,
    TieredDiscount,
)

# Accepted spellings of rule kinds, case-insensitive
DISCOUNT_KIND_ALIASES = {
    "FLAT": DiscountKind.FLAT,
    "FIXED": DiscountKind.FLAT,
    "PERCENT": DiscountKind.PERCENT,
    "PERCENTAGE": DiscountKind.PERCENT,
    "TIERED": DiscountKind.TIERED,
}
CHARGE_KIND_ALIASES = {
    "FLAT": ChargeKind.FLAT,
    "FIXED": ChargeKind.FLAT,
    "PERCENT": ChargeKind.PERCENT,
    "PERCENTAGE": ChargeKind.PERCENT,
}

# Payload keys that name the same field
ITEM_ADD_ON_KEYS = ("addOns", "addons")
ITEM_EXEMPT_KEYS = ("taxExempt", "taxFree")
TIER_MIN_KEYS = ("minBase", "minSubtotal")


def first_present(data: Dict[str, Any], keys, default: Any = None) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


def item_discount_entries(item: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Item discounts may be a ``discounts`` list or a single ``discount`` object."""
    entries = list(item.get("discounts") or [])
    if item.get("discount"):
        entries.append(item["discount"])
    return entries


def config_discount_entries(config: Dict[str, Any]) -> List[Dict[str, Any]]:
    entries = list(config.get("discounts") or [])
    if config.get("globalDiscount"):
        entries.append(config["globalDiscount"])
    return entries


def parse_discount(data: Dict[str, Any], default_id: str) -> DiscountRule:
    kind = DISCOUNT_KIND_ALIASES[str(data.get("type", data.get("kind"))).upper()]
    rule_id = str(data.get("id") or default_id)
    if kind is DiscountKind.FLAT:
        return FlatDiscount(rule_id, data.get("value"))
    if kind is DiscountKind.PERCENT:
        return PercentDiscount(rule_id, data.get("value"))
    tiers = tuple(
        DiscountTier(first_present(tier, TIER_MIN_KEYS), tier.get("rate"))
        for tier in data.get("tiers") or []
    )
    return TieredDiscount(rule_id, tiers)


def parse_charge(data: Dict[str, Any]) -> ChargeRule:
    kwargs = {}
    if data.get("applyOn") is not None:
        kwargs["base"] = data["applyOn"]
    return ChargeRule(
        name=data["name"],
        kind=CHARGE_KIND_ALIASES[str(data.get("kind", data.get("type"))).upper()],
        value=data["value"],
        **kwargs,
    )


def parse_tax(data: Dict[str, Any]) -> TaxRule:
    kwargs = {}
    if data.get("applyOn") is not None:
        kwargs["base"] = data["applyOn"]
    return TaxRule(
        name=data["name"],
        rate=data["rate"],
        inclusive=bool(data.get("inclusive", False)),
        compound=bool(data.get("compound", False)),
        threshold=data.get("threshold"),
        enabled=data.get("enabled", True) is not False,
        **kwargs,
    )


def parse_item(data: Dict[str, Any], default_id: str) -> LineItem:
    item_id = str(data.get("id") or data.get("sku") or default_id)
    discounts = tuple(
        parse_discount(entry, f"{item_id}-discount-{index}")
        for index, entry in enumerate(item_discount_entries(data))
    )
    add_ons = tuple(
        parse_item(child, f"{item_id}-addon-{index}")
        for index, child in enumerate(first_present(data, ITEM_ADD_ON_KEYS, []))
    )
    variations = tuple(
        parse_item(child, f"{item_id}-variation-{index}")
        for index, child in enumerate(data.get("variations") or [])
    )
    return LineItem(
        id=item_id,
        name=data["name"],
        quantity=data.get("qty", data.get("quantity")),
        unit_price=data["unitPrice"],
        currency=data.get("currency"),
        tax_exempt=bool(first_present(data, ITEM_EXEMPT_KEYS, False)),
        discounts=discounts,
        add_ons=add_ons,
        variations=variations,
    )


def parse_config(data: Optional[Dict[str, Any]], defaults: Optional[Dict[str, Any]] = None) -> BillingConfiguration:
    data = data or {}
    values: Dict[str, Any] = dict(defaults or {})
    simple_keys = {
        "currency": "currency",
        "decimalPlaces": "decimal_places",
        "roundOff": "round_off",
        "exchangeRate": "exchange_rate",
        "exchangeRates": "exchange_rates",
        "taxPreset": "tax_preset",
        "clampDiscounts": "clamp_discounts",
        "billingIdPrefix": "billing_id_prefix",
    }
    for key, attribute in simple_keys.items():
        if data.get(key) is not None:
            values[attribute] = data[key]
    internal = first_present(data, ("internalPrecision", "decimalInternalPrecision"))
    if internal is not None:
        values["internal_precision"] = internal
    values["discounts"] = tuple(
        parse_discount(entry, f"global-discount-{index}")
        for index, entry in enumerate(config_discount_entries(data))
    )
    values["charges"] = tuple(parse_charge(entry) for entry in data.get("charges") or [])
    return BillingConfiguration(**values)


def parse_payload(payload: Dict[str, Any], defaults: Optional[Dict[str, Any]] = None) -> CalculationContext:
    """Build a context from a payload that already passed structural validation."""
    return CalculationContext(
        configuration=parse_config(payload.get("config"), defaults),
        items=tuple(
            parse_item(item, f"item-{index}") for index, item in enumerate(payload["items"])
        ),
        discounts=tuple(
            parse_discount(entry, f"discount-{index}")
            for index, entry in enumerate(payload.get("discounts") or [])
        ),
        charges=tuple(parse_charge(entry) for entry in payload.get("charges") or []),
        taxes=tuple(parse_tax(entry) for entry in payload.get("taxes") or []),
        metadata=dict(payload.get("meta") or {}),
        billing_id=(payload.get("billingId") or "").strip() or None,
    )
