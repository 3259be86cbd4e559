"""Input model of a bill: line items, discount, charge and tax rules, configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Iterable, Optional, Tuple, Type, Union

from .errors import CalculationFailure, ValidationFailure
from .precision import DEFAULT_DECIMAL_PLACES, DEFAULT_INTERNAL_PRECISION, to_decimal

if TYPE_CHECKING:
    from ..utils.config import Config


class DiscountKind(Enum):
    FLAT = "FLAT"
    PERCENT = "PERCENT"
    TIERED = "TIERED"


class ChargeKind(Enum):
    FLAT = "FLAT"
    PERCENT = "PERCENT"


class ChargeBase(Enum):
    """Amount a percent charge is computed against."""

    SUBTOTAL = "subtotal"
    TAXABLE_BASE = "taxableBase"
    NET_AFTER_DISCOUNT = "netAfterDiscount"


class TaxBase(Enum):
    """Amount an exclusive tax rule is computed against."""

    SUBTOTAL = "subtotal"
    TAXABLE_BASE = "taxableBase"
    CHARGES = "charges"
    NET_AFTER_DISCOUNT = "netAfterDiscount"


def _coerce_decimal(owner: object, name: str, optional: bool = False) -> None:
    value = getattr(owner, name)
    if value is None and optional:
        return
    try:
        coerced = to_decimal(value)
    except CalculationFailure as exc:
        raise ValidationFailure(f"{name} must be a number, got {value!r}", field=name) from exc
    if not coerced.is_finite():
        raise ValidationFailure(f"{name} must be a finite number, got {value!r}", field=name)
    object.__setattr__(owner, name, coerced)


def _coerce_enum(owner: object, name: str, enum_type: Type[Enum]) -> None:
    value = getattr(owner, name)
    if isinstance(value, enum_type):
        return
    try:
        coerced = enum_type(value)
    except ValueError as exc:
        allowed = ", ".join(repr(member.value) for member in enum_type)
        raise ValidationFailure(f"{name} must be one of {allowed}, got {value!r}", field=name) from exc
    object.__setattr__(owner, name, coerced)


def _coerce_tuple(owner: object, name: str) -> None:
    value = getattr(owner, name)
    if not isinstance(value, tuple):
        object.__setattr__(owner, name, tuple(value or ()))


# ---------- Discount rules (closed sum type) ----------

@dataclass(frozen=True)
class DiscountTier:
    min_base: Decimal
    rate: Decimal

    def __post_init__(self) -> None:
        _coerce_decimal(self, "min_base")
        _coerce_decimal(self, "rate")


@dataclass(frozen=True)
class FlatDiscount:
    """Fixed amount off. ``amount=None`` contributes zero."""

    id: str
    amount: Optional[Decimal] = None

    kind: ClassVar[DiscountKind] = DiscountKind.FLAT

    def __post_init__(self) -> None:
        _coerce_decimal(self, "amount", optional=True)


@dataclass(frozen=True)
class PercentDiscount:
    """Percentage (0-100) of the running balance. ``percent=None`` contributes zero."""

    id: str
    percent: Optional[Decimal] = None

    kind: ClassVar[DiscountKind] = DiscountKind.PERCENT

    def __post_init__(self) -> None:
        _coerce_decimal(self, "percent", optional=True)


@dataclass(frozen=True)
class TieredDiscount:
    """Rate chosen by the highest tier whose ``min_base`` the running balance reaches."""

    id: str
    tiers: Tuple[DiscountTier, ...] = ()

    kind: ClassVar[DiscountKind] = DiscountKind.TIERED

    def __post_init__(self) -> None:
        _coerce_tuple(self, "tiers")


DiscountRule = Union[FlatDiscount, PercentDiscount, TieredDiscount]


# ---------- Charges and taxes ----------

@dataclass(frozen=True)
class ChargeRule:
    name: str
    kind: ChargeKind
    value: Decimal
    base: ChargeBase = ChargeBase.NET_AFTER_DISCOUNT

    def __post_init__(self) -> None:
        _coerce_enum(self, "kind", ChargeKind)
        _coerce_enum(self, "base", ChargeBase)
        _coerce_decimal(self, "value")


@dataclass(frozen=True)
class TaxRule:
    name: str
    rate: Decimal
    inclusive: bool = False
    base: TaxBase = TaxBase.TAXABLE_BASE
    compound: bool = False
    threshold: Optional[Decimal] = None
    enabled: bool = True

    def __post_init__(self) -> None:
        _coerce_decimal(self, "rate")
        _coerce_decimal(self, "threshold", optional=True)
        _coerce_enum(self, "base", TaxBase)


# ---------- Line items ----------

@dataclass(frozen=True)
class LineItem:
    """A priced line. Add-ons and variations are owned sub-items of the same shape."""

    id: str
    name: str
    quantity: Decimal
    unit_price: Decimal
    currency: Optional[str] = None
    tax_exempt: bool = False
    discounts: Tuple[DiscountRule, ...] = ()
    add_ons: Tuple["LineItem", ...] = ()
    variations: Tuple["LineItem", ...] = ()

    def __post_init__(self) -> None:
        _coerce_decimal(self, "quantity")
        _coerce_decimal(self, "unit_price")
        _coerce_tuple(self, "discounts")
        _coerce_tuple(self, "add_ons")
        _coerce_tuple(self, "variations")

    def children(self) -> Iterable[Tuple[str, int, "LineItem"]]:
        """Yield ``(group, index, child)`` for add-ons, then variations."""
        for index, child in enumerate(self.add_ons):
            yield "addOns", index, child
        for index, child in enumerate(self.variations):
            yield "variations", index, child


# ---------- Configuration ----------

@dataclass(frozen=True)
class BillingConfiguration:
    currency: str = "USD"
    decimal_places: int = DEFAULT_DECIMAL_PLACES
    internal_precision: int = DEFAULT_INTERNAL_PRECISION
    round_off: bool = True
    # Whole-bill multiplier applied to every reported amount
    exchange_rate: Decimal = Decimal("1")
    # foreign = base * rate
    exchange_rates: Dict[str, Decimal] = field(default_factory=dict)
    tax_preset: Optional[str] = None
    discounts: Tuple[DiscountRule, ...] = ()
    charges: Tuple[ChargeRule, ...] = ()
    clamp_discounts: bool = False
    billing_id_prefix: str = "BILL"

    def __post_init__(self) -> None:
        _coerce_decimal(self, "exchange_rate")
        _coerce_tuple(self, "discounts")
        _coerce_tuple(self, "charges")
        rates = {}
        for code, rate in dict(self.exchange_rates or {}).items():
            try:
                rates[code] = to_decimal(rate)
            except CalculationFailure as exc:
                raise ValidationFailure(
                    f"exchange rate for {code} must be a number, got {rate!r}",
                    field=f"exchangeRates.{code}",
                ) from exc
            if not rates[code].is_finite():
                raise ValidationFailure(
                    f"exchange rate for {code} must be a finite number, got {rate!r}",
                    field=f"exchangeRates.{code}",
                )
        object.__setattr__(self, "exchange_rates", rates)

    @classmethod
    def from_config(cls, config: "Config", **overrides: Any) -> "BillingConfiguration":
        """Build a configuration seeded from environment-driven defaults."""
        values = config.billing_defaults()
        values.update(overrides)
        return cls(**values)
