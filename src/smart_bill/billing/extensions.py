"""
Extension hooks around the calculation.

An extension exposes up to two optional hooks:

* ``setup(context) -> context`` runs once per calculation, before anything else.
* ``transform(phase, context) -> context`` runs for ``beforeCalc`` and
  ``afterCalc``.

Each phase is a left fold over the registered extensions: every hook receives
the context returned by the previous one. afterCalc hooks see
``context.result`` and may only contribute metadata to the published result.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Callable, Dict, Iterable

from ..utils.logging import get_logger
from .context import CalculationContext
from .errors import CalculationFailure
from .models import DiscountRule, TaxRule
from .precision import to_decimal

logger = get_logger(__name__)


class Phase(Enum):
    BEFORE_CALC = "beforeCalc"
    AFTER_CALC = "afterCalc"


class Extension:
    """Base class with pass-through hooks. Subclasses override what they need."""

    name = "extension"
    version = "1.0.0"

    def setup(self, context: CalculationContext) -> CalculationContext:
        return context

    def transform(self, phase: Phase, context: CalculationContext) -> CalculationContext:
        return context


class ExtensionPipeline:
    """Runs extension hooks in registration order."""

    def __init__(self, extensions: Iterable[Any]) -> None:
        self.extensions = tuple(extensions)

    def setup(self, context: CalculationContext) -> CalculationContext:
        for extension in self.extensions:
            hook = getattr(extension, "setup", None)
            if hook is not None:
                context = self._checked(extension, "setup", hook(context))
        return context

    def transform(self, phase: Phase, context: CalculationContext) -> CalculationContext:
        for extension in self.extensions:
            hook = getattr(extension, "transform", None)
            if hook is not None:
                context = self._checked(extension, phase.value, hook(phase, context))
        return context

    @staticmethod
    def _checked(extension: Any, hook_name: str, context: Any) -> CalculationContext:
        if not isinstance(context, CalculationContext):
            name = getattr(extension, "name", type(extension).__name__)
            raise CalculationFailure(
                f"Extension '{name}' {hook_name} hook returned {type(context).__name__}, "
                f"expected CalculationContext"
            )
        return context


# ---------- Bundled extensions ----------

class LoyaltyPointsExtension(Extension):
    """Records ``floor(total * rate)`` loyalty points in the result metadata."""

    name = "loyalty"

    def __init__(self, rate: Any) -> None:
        self.rate = to_decimal(rate)

    def transform(self, phase: Phase, context: CalculationContext) -> CalculationContext:
        if phase is Phase.AFTER_CALC and context.result is not None:
            points = math.floor(context.result.total * self.rate)
            return context.with_metadata("loyaltyPoints", points)
        return context


class RegionTaxExtension(Extension):
    """Adds the region's VAT as an exclusive tax rule before calculation."""

    name = "region-vat"

    def __init__(self, region: str, vat_rates: Dict[str, Any]) -> None:
        self.region = region
        self.vat_rates = {code: to_decimal(rate) for code, rate in vat_rates.items()}

    def transform(self, phase: Phase, context: CalculationContext) -> CalculationContext:
        if phase is not Phase.BEFORE_CALC:
            return context
        rate = self.vat_rates.get(self.region)
        if rate is None or rate <= 0:
            logger.debug(f"No VAT configured for region {self.region}")
            return context
        return context.with_tax(TaxRule(f"{self.region} VAT", rate))


class PromoCodeExtension(Extension):
    """Adds a discount and marks the promo as applied when ``validate`` accepts the code."""

    name = "promo"

    def __init__(self, code: str, validate: Callable[[str, CalculationContext], bool],
                 discount: DiscountRule) -> None:
        self.code = code
        self.validate = validate
        self.discount = discount

    def transform(self, phase: Phase, context: CalculationContext) -> CalculationContext:
        if phase is Phase.BEFORE_CALC and self.validate(self.code, context):
            return context.with_discount(self.discount).with_metadata("appliedPromo", self.code)
        return context
