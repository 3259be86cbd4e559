"""
Input validation.

``validate_payload`` checks the shape and types of a raw payload dict so it can
be parsed; ``validate_context`` checks the values of a typed context (ranges,
currencies, presets). Both raise ``ValidationFailure`` carrying the payload
path of the first offending field, and both run before any arithmetic.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from ..utils.logging import get_logger
from .context import CalculationContext
from .errors import ValidationFailure
from .models import (
    BillingConfiguration,
    ChargeBase,
    ChargeRule,
    DiscountRule,
    FlatDiscount,
    LineItem,
    PercentDiscount,
    TaxBase,
    TaxRule,
    TieredDiscount,
)
from .payload import (
    CHARGE_KIND_ALIASES,
    DISCOUNT_KIND_ALIASES,
    ITEM_ADD_ON_KEYS,
    ITEM_EXEMPT_KEYS,
    TIER_MIN_KEYS,
    config_discount_entries,
    first_present,
    item_discount_entries,
)
from .precision import HUNDRED, ZERO
from .presets import PresetRegistry, default_registry

logger = get_logger(__name__)

MAX_DECIMAL_PLACES = 10
MAX_INTERNAL_PRECISION = 15

CHARGE_BASES = [base.value for base in ChargeBase]
TAX_BASES = [base.value for base in TaxBase]


def _fail(message: str, field: str) -> None:
    logger.warning(f"Validation failed at {field}: {message}")
    raise ValidationFailure(message, field=field)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, Decimal):
        return value.is_finite()
    if isinstance(value, float):
        return value == value and value not in (float("inf"), float("-inf"))
    return False


def _is_name(value: Any) -> bool:
    return isinstance(value, str) and len(value.strip()) > 0


# ---------- Payload shape ----------

def _require_dict(value: Any, field: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        _fail("must be an object", field)
    return value


def _optional_list(data: Dict[str, Any], key: str, field: str) -> list:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        _fail(f"{key} must be an array", f"{field}.{key}")
    return value


def _optional_number(data: Dict[str, Any], key: str, field: str) -> None:
    value = data.get(key)
    if value is not None and not _is_number(value):
        _fail(f"{key} must be a number", f"{field}.{key}")


def _optional_bool(data: Dict[str, Any], key: str, field: str) -> None:
    value = data.get(key)
    if value is not None and not isinstance(value, bool):
        _fail(f"{key} must be a boolean", f"{field}.{key}")


def _check_discount_shape(data: Any, field: str) -> None:
    data = _require_dict(data, field)
    kind = data.get("type", data.get("kind"))
    if not isinstance(kind, str) or kind.upper() not in DISCOUNT_KIND_ALIASES:
        _fail(f"type must be one of {sorted(DISCOUNT_KIND_ALIASES)}", f"{field}.type")
    _optional_number(data, "value", field)
    for index, tier in enumerate(_optional_list(data, "tiers", field)):
        tier_field = f"{field}.tiers[{index}]"
        tier = _require_dict(tier, tier_field)
        if not _is_number(first_present(tier, TIER_MIN_KEYS)):
            _fail("minBase must be a number", f"{tier_field}.minBase")
        if not _is_number(tier.get("rate")):
            _fail("rate must be a number", f"{tier_field}.rate")


def _check_item_shape(data: Any, field: str) -> None:
    data = _require_dict(data, field)
    if not _is_name(data.get("name")):
        _fail("name is required and must be a non-empty string", f"{field}.name")
    quantity = data.get("qty", data.get("quantity"))
    if not _is_number(quantity):
        _fail("qty must be a number", f"{field}.qty")
    if not _is_number(data.get("unitPrice")):
        _fail("unitPrice must be a number", f"{field}.unitPrice")
    currency = data.get("currency")
    if currency is not None and not _is_name(currency):
        _fail("currency must be a currency code", f"{field}.currency")
    for key in ITEM_EXEMPT_KEYS:
        _optional_bool(data, key, field)
    for index, discount in enumerate(item_discount_entries(data)):
        _check_discount_shape(discount, f"{field}.discounts[{index}]")
    # Same key precedence as parse_item
    add_on_key = next((key for key in ITEM_ADD_ON_KEYS if data.get(key) is not None), None)
    if add_on_key is not None:
        for index, child in enumerate(_optional_list(data, add_on_key, field)):
            _check_item_shape(child, f"{field}.{add_on_key}[{index}]")
    for index, child in enumerate(_optional_list(data, "variations", field)):
        _check_item_shape(child, f"{field}.variations[{index}]")


def _check_charge_shape(data: Any, field: str) -> None:
    data = _require_dict(data, field)
    if not _is_name(data.get("name")):
        _fail("name is required and must be a non-empty string", f"{field}.name")
    kind = data.get("kind", data.get("type"))
    if not isinstance(kind, str) or kind.upper() not in CHARGE_KIND_ALIASES:
        _fail(f"kind must be one of {sorted(CHARGE_KIND_ALIASES)}", f"{field}.kind")
    if not _is_number(data.get("value")):
        _fail("value must be a number", f"{field}.value")
    apply_on = data.get("applyOn")
    if apply_on is not None and apply_on not in CHARGE_BASES:
        _fail(f"applyOn must be one of {CHARGE_BASES}", f"{field}.applyOn")


def _check_tax_shape(data: Any, field: str) -> None:
    data = _require_dict(data, field)
    if not _is_name(data.get("name")):
        _fail("name is required and must be a non-empty string", f"{field}.name")
    if not _is_number(data.get("rate")):
        _fail("rate must be a number", f"{field}.rate")
    apply_on = data.get("applyOn")
    if apply_on is not None and apply_on not in TAX_BASES:
        _fail(f"applyOn must be one of {TAX_BASES}", f"{field}.applyOn")
    _optional_number(data, "threshold", field)
    for key in ("inclusive", "compound", "enabled"):
        _optional_bool(data, key, field)


def _check_config_shape(data: Any, field: str = "config") -> None:
    data = _require_dict(data, field)
    for key in ("decimalPlaces", "internalPrecision", "decimalInternalPrecision"):
        value = data.get(key)
        if value is not None and (not isinstance(value, int) or isinstance(value, bool)):
            _fail(f"{key} must be an integer", f"{field}.{key}")
    _optional_number(data, "exchangeRate", field)
    for key in ("roundOff", "clampDiscounts"):
        _optional_bool(data, key, field)
    for key in ("currency", "taxPreset", "billingIdPrefix"):
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            _fail(f"{key} must be a string", f"{field}.{key}")
    rates = data.get("exchangeRates")
    if rates is not None:
        rates = _require_dict(rates, f"{field}.exchangeRates")
        for code, rate in rates.items():
            if not _is_number(rate):
                _fail("exchange rate must be a number", f"{field}.exchangeRates.{code}")
    for index, discount in enumerate(config_discount_entries(data)):
        _check_discount_shape(discount, f"{field}.discounts[{index}]")
    for index, charge in enumerate(_optional_list(data, "charges", field)):
        _check_charge_shape(charge, f"{field}.charges[{index}]")


def validate_payload(payload: Any) -> None:
    """Check that ``payload`` has the shape ``parse_payload`` expects."""
    payload = _require_dict(payload, "payload")
    items = payload.get("items")
    if not isinstance(items, list):
        _fail("Items must be a non-empty array", "items")
    if not items:
        _fail("At least one item is required", "items")
    for index, item in enumerate(items):
        _check_item_shape(item, f"items[{index}]")
    for index, discount in enumerate(_optional_list(payload, "discounts", "payload")):
        _check_discount_shape(discount, f"discounts[{index}]")
    for index, charge in enumerate(_optional_list(payload, "charges", "payload")):
        _check_charge_shape(charge, f"charges[{index}]")
    for index, tax in enumerate(_optional_list(payload, "taxes", "payload")):
        _check_tax_shape(tax, f"taxes[{index}]")
    if payload.get("config") is not None:
        _check_config_shape(payload["config"])
    if payload.get("meta") is not None:
        _require_dict(payload["meta"], "meta")
    billing_id = payload.get("billingId")
    if billing_id is not None and not isinstance(billing_id, str):
        _fail("billingId must be a string", "billingId")


# ---------- Context values ----------

def _check_discount(rule: DiscountRule, field: str) -> None:
    if isinstance(rule, FlatDiscount):
        if rule.amount is not None and rule.amount < ZERO:
            _fail("discount fixed value must be non-negative", f"{field}.value")
    elif isinstance(rule, PercentDiscount):
        if rule.percent is not None and not ZERO <= rule.percent <= HUNDRED:
            _fail("discount percentage must be between 0 and 100", f"{field}.value")
    elif isinstance(rule, TieredDiscount):
        for index, tier in enumerate(rule.tiers):
            if tier.min_base < ZERO:
                _fail("tier minBase must be non-negative", f"{field}.tiers[{index}].minBase")
            if not ZERO <= tier.rate <= HUNDRED:
                _fail("tier rate must be between 0 and 100", f"{field}.tiers[{index}].rate")
    else:
        _fail(f"unsupported discount rule {type(rule).__name__}", field)


def _check_discounts(rules: Iterable[DiscountRule], field: str) -> None:
    for index, rule in enumerate(rules):
        _check_discount(rule, f"{field}[{index}]")


def _check_item(item: LineItem, field: str, configuration: BillingConfiguration) -> None:
    if not _is_name(item.name):
        _fail("name is required and must be a non-empty string", f"{field}.name")
    if item.quantity < ZERO:
        _fail("qty must be a non-negative number", f"{field}.qty")
    if item.unit_price < ZERO:
        _fail("unitPrice must be a non-negative number", f"{field}.unitPrice")
    if item.currency and item.currency != configuration.currency \
            and item.currency not in configuration.exchange_rates:
        _fail(
            f"no exchange rate configured for {item.currency} (base {configuration.currency})",
            f"{field}.currency",
        )
    _check_discounts(item.discounts, f"{field}.discounts")
    for group, index, child in item.children():
        _check_item(child, f"{field}.{group}[{index}]", configuration)


def _check_charges(rules: Iterable[ChargeRule], field: str) -> None:
    for index, rule in enumerate(rules):
        if not _is_name(rule.name):
            _fail("name is required and must be a non-empty string", f"{field}[{index}].name")
        if rule.value < ZERO:
            _fail("value must be a non-negative number", f"{field}[{index}].value")


def _check_taxes(rules: Iterable[TaxRule], field: str) -> None:
    for index, rule in enumerate(rules):
        if not _is_name(rule.name):
            _fail("name is required and must be a non-empty string", f"{field}[{index}].name")
        if rule.rate < ZERO:
            _fail("rate must be a non-negative number", f"{field}[{index}].rate")
        if rule.threshold is not None and rule.threshold < ZERO:
            _fail("threshold must be a non-negative number", f"{field}[{index}].threshold")


def validate_configuration(configuration: BillingConfiguration,
                           registry: Optional[PresetRegistry] = None) -> None:
    registry = registry or default_registry
    if not _is_name(configuration.currency):
        _fail("currency must be a non-empty currency code", "config.currency")
    if not 0 <= configuration.decimal_places <= MAX_DECIMAL_PLACES:
        _fail(f"decimalPlaces must be a number between 0 and {MAX_DECIMAL_PLACES}",
              "config.decimalPlaces")
    if not 0 <= configuration.internal_precision <= MAX_INTERNAL_PRECISION:
        _fail(f"internalPrecision must be a number between 0 and {MAX_INTERNAL_PRECISION}",
              "config.internalPrecision")
    if configuration.exchange_rate <= ZERO:
        _fail("exchangeRate must be a positive number", "config.exchangeRate")
    for code, rate in configuration.exchange_rates.items():
        if rate <= ZERO:
            _fail(f"exchangeRates.{code} must be a positive number", f"config.exchangeRates.{code}")
    if configuration.tax_preset and configuration.tax_preset not in registry:
        _fail(f"unknown tax preset '{configuration.tax_preset}'", "config.taxPreset")
    _check_discounts(configuration.discounts, "config.discounts")
    _check_charges(configuration.charges, "config.charges")


def validate_context(context: CalculationContext, registry: Optional[PresetRegistry] = None) -> None:
    """Reject a context whose values cannot be calculated."""
    configuration = context.configuration
    validate_configuration(configuration, registry)
    if not context.items:
        _fail("At least one item is required", "items")
    for index, item in enumerate(context.items):
        _check_item(item, f"items[{index}]", configuration)
    _check_discounts(context.discounts, "discounts")
    _check_charges(context.charges, "charges")
    _check_taxes(context.taxes, "taxes")
