"""Billing calculation engine entry point."""

from .context import (
    CalculationContext,
    add_charge,
    add_discount,
    add_item,
    add_tax_rule,
    create_context,
    pipe,
    register_extension,
    set_billing_id,
    set_metadata,
)
from .engine import BillingEngine, calculate, calculate_from_payload
from .errors import BillingError, CalculationFailure, ValidationFailure
from .extensions import (
    Extension,
    ExtensionPipeline,
    LoyaltyPointsExtension,
    Phase,
    PromoCodeExtension,
    RegionTaxExtension,
)
from .models import (
    BillingConfiguration,
    ChargeBase,
    ChargeKind,
    ChargeRule,
    DiscountKind,
    DiscountTier,
    FlatDiscount,
    LineItem,
    PercentDiscount,
    TaxBase,
    TaxRule,
    TieredDiscount,
)
from .presets import PresetRegistry
from .results import BillingResult, ChargeLine, DiscountLine, ItemLine, TaxLine

__all__ = [
    "BillingConfiguration",
    "BillingEngine",
    "BillingError",
    "BillingResult",
    "CalculationContext",
    "CalculationFailure",
    "ChargeBase",
    "ChargeKind",
    "ChargeLine",
    "ChargeRule",
    "DiscountKind",
    "DiscountLine",
    "DiscountTier",
    "Extension",
    "ExtensionPipeline",
    "FlatDiscount",
    "ItemLine",
    "LineItem",
    "LoyaltyPointsExtension",
    "PercentDiscount",
    "Phase",
    "PresetRegistry",
    "PromoCodeExtension",
    "RegionTaxExtension",
    "TaxBase",
    "TaxLine",
    "TaxRule",
    "TieredDiscount",
    "ValidationFailure",
    "add_charge",
    "add_discount",
    "add_item",
    "add_tax_rule",
    "calculate",
    "calculate_from_payload",
    "create_context",
    "pipe",
    "register_extension",
    "set_billing_id",
    "set_metadata",
]
