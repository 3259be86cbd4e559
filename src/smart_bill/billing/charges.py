"""Charge composition against a selectable base."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Tuple

from .errors import CalculationFailure
from .models import ChargeBase, ChargeKind, ChargeRule
from .precision import ZERO, PrecisionController
from .results import ChargeLine


@dataclass(frozen=True)
class ChargeOutcome:
    lines: Tuple[ChargeLine, ...]
    total: Decimal


class ChargeComposer:
    """Computes every charge independently against its own base and sums them.

    ``TAXABLE_BASE`` and ``NET_AFTER_DISCOUNT`` both resolve to the subtotal
    minus all bill-level discounts.
    """

    def __init__(self, precision: PrecisionController) -> None:
        self.precision = precision

    def apply(self, rules: Iterable[ChargeRule], subtotal: Decimal,
              discounted_base: Decimal) -> ChargeOutcome:
        bases = {
            ChargeBase.SUBTOTAL: subtotal,
            ChargeBase.TAXABLE_BASE: discounted_base,
            ChargeBase.NET_AFTER_DISCOUNT: discounted_base,
        }
        total = ZERO
        lines = []
        for rule in rules:
            base_amount = bases[rule.base]
            if rule.kind is ChargeKind.FLAT:
                amount = self.precision.internal(rule.value)
                formula = f"Flat {rule.value}"
            elif rule.kind is ChargeKind.PERCENT:
                amount = self.precision.percent_of(base_amount, rule.value)
                formula = f"{base_amount} × {rule.value}/100 = {amount}"
            else:
                raise CalculationFailure(f"Unsupported charge kind {rule.kind!r}")
            lines.append(ChargeLine(
                name=rule.name,
                kind=rule.kind.value,
                value=rule.value,
                base=rule.base.value,
                base_amount=base_amount,
                amount=amount,
                formula=formula,
            ))
            total = self.precision.internal(total + amount)
        return ChargeOutcome(lines=tuple(lines), total=total)
