"""Immutable calculation context and the functions that derive new contexts from it."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, Optional, Tuple, Union

from .models import BillingConfiguration, ChargeRule, DiscountRule, LineItem, TaxRule
from .presets import default_registry
from .results import BillingResult


@dataclass(frozen=True)
class CalculationContext:
    """Everything one bill is computed from.

    Never modified in place: every ``with_*`` method returns a new context and
    leaves the receiver valid, so a context can be branched into alternative
    scenarios.
    """

    configuration: BillingConfiguration = field(default_factory=BillingConfiguration)
    items: Tuple[LineItem, ...] = ()
    discounts: Tuple[DiscountRule, ...] = ()
    charges: Tuple[ChargeRule, ...] = ()
    taxes: Tuple[TaxRule, ...] = ()
    extensions: Tuple[Any, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)
    billing_id: Optional[str] = None
    # Only set on the context handed to afterCalc hooks
    result: Optional[BillingResult] = None

    def __post_init__(self) -> None:
        for name in ("items", "discounts", "charges", "taxes", "extensions"):
            value = getattr(self, name)
            if not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))
        object.__setattr__(self, "metadata", dict(self.metadata))

    def with_item(self, item: LineItem) -> "CalculationContext":
        return replace(self, items=self.items + (item,))

    def with_discount(self, rule: DiscountRule) -> "CalculationContext":
        return replace(self, discounts=self.discounts + (rule,))

    def with_charge(self, rule: ChargeRule) -> "CalculationContext":
        return replace(self, charges=self.charges + (rule,))

    def with_tax(self, rule: TaxRule) -> "CalculationContext":
        return replace(self, taxes=self.taxes + (rule,))

    def with_extensions(self, extensions: Iterable[Any]) -> "CalculationContext":
        return replace(self, extensions=self.extensions + tuple(extensions))

    def with_metadata(self, key: str, value: Any) -> "CalculationContext":
        return replace(self, metadata={**self.metadata, key: value})

    def with_billing_id(self, billing_id: Optional[str]) -> "CalculationContext":
        return replace(self, billing_id=billing_id)

    def with_result(self, result: BillingResult) -> "CalculationContext":
        return replace(self, result=result)


def create_context(configuration: Optional[BillingConfiguration] = None) -> CalculationContext:
    """Start a new bill.

    Raises:
        ValidationFailure: if the configuration names an unknown tax preset
    """
    configuration = configuration or BillingConfiguration()
    if configuration.tax_preset:
        default_registry.resolve(configuration.tax_preset)
    return CalculationContext(configuration=configuration)


def add_item(context: CalculationContext, item: LineItem) -> CalculationContext:
    return context.with_item(item)


def add_discount(context: CalculationContext, rule: DiscountRule) -> CalculationContext:
    return context.with_discount(rule)


def add_charge(context: CalculationContext, rule: ChargeRule) -> CalculationContext:
    return context.with_charge(rule)


def add_tax_rule(context: CalculationContext, rule: TaxRule) -> CalculationContext:
    return context.with_tax(rule)


def register_extension(context: CalculationContext,
                       extension: Union[Any, Iterable[Any]]) -> CalculationContext:
    """Append one extension or a list of them, keeping registration order."""
    if isinstance(extension, (list, tuple)):
        return context.with_extensions(extension)
    return context.with_extensions((extension,))


def set_metadata(context: CalculationContext, key: str, value: Any) -> CalculationContext:
    return context.with_metadata(key, value)


def set_billing_id(context: CalculationContext, billing_id: str) -> CalculationContext:
    return context.with_billing_id(billing_id)


def pipe(value: Any, *functions: Callable[[Any], Any]) -> Any:
    """Thread ``value`` through ``functions`` left to right."""
    for function in functions:
        value = function(value)
    return value
