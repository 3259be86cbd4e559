"""
Tax engine.

Rules are processed strictly in this order:

1. Enabled rules are split into inclusive and exclusive sets, each keeping the
   caller's relative order. Disabled rules stay in the breakdown at zero.
2. Inclusive rules share one embedded amount. Their rates are summed into R,
   the net is extracted once as G / (1 + R/100), and the extracted tax is
   apportioned to each rule by rate / R. Extracting each rule separately
   would double count.
3. Exclusive rules run in order on top of the net, with an accumulated tax
   sum that compound rules add to their base. A threshold above the
   effective base yields a zero line flagged ``below_threshold``.

Inclusive tax is already part of the price and is never added to the total.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

from ..utils.logging import get_logger
from .models import TaxBase, TaxRule
from .precision import HUNDRED, ONE, ZERO, PrecisionController
from .results import TaxLine

logger = get_logger(__name__)


@dataclass(frozen=True)
class TaxBases:
    """Upstream amounts a tax rule may select, at internal precision.

    Args:
        taxable_subtotal: Subtotal before bill-level discounts, tax-exempt items excluded
        taxable_gross: Discounted base, tax-exempt share excluded (tax-inclusive if
            inclusive rules exist)
        charges: Total of all charges
    """

    taxable_subtotal: Decimal
    taxable_gross: Decimal
    charges: Decimal


@dataclass(frozen=True)
class TaxOutcome:
    lines: Tuple[TaxLine, ...]
    inclusive_total: Decimal
    exclusive_total: Decimal
    net_taxable: Decimal

    @property
    def total(self) -> Decimal:
        return self.inclusive_total + self.exclusive_total


class TaxEngine:
    """Computes inclusive and exclusive taxes for one bill."""

    def __init__(self, precision: PrecisionController) -> None:
        self.precision = precision

    def compute(self, rules: Iterable[TaxRule], bases: TaxBases) -> TaxOutcome:
        rules = tuple(rules)
        lines: Dict[int, TaxLine] = {}
        inclusive: List[Tuple[int, TaxRule]] = []
        exclusive: List[Tuple[int, TaxRule]] = []

        for index, rule in enumerate(rules):
            if not rule.enabled:
                lines[index] = self._line(rule, ZERO, ZERO, formula="Disabled")
            elif rule.inclusive:
                inclusive.append((index, rule))
            else:
                exclusive.append((index, rule))

        inclusive_total, net_taxable = self._extract_inclusive(inclusive, bases.taxable_gross, lines)
        exclusive_total = self._apply_exclusive(exclusive, bases, net_taxable, lines)

        logger.debug(
            f"Taxes: inclusive={inclusive_total} exclusive={exclusive_total} net_taxable={net_taxable}"
        )
        return TaxOutcome(
            lines=tuple(lines[index] for index in range(len(rules))),
            inclusive_total=inclusive_total,
            exclusive_total=exclusive_total,
            net_taxable=net_taxable,
        )

    def _extract_inclusive(self, rules: List[Tuple[int, TaxRule]], gross: Decimal,
                           lines: Dict[int, TaxLine]) -> Tuple[Decimal, Decimal]:
        """Reverse-extract the tax embedded in ``gross``.

        Returns:
            Tuple of (total inclusive tax, net after extraction)
        """
        active = []
        for index, rule in rules:
            if rule.threshold is not None and gross < rule.threshold:
                lines[index] = self._line(
                    rule, gross, ZERO, below_threshold=True,
                    formula=f"Below threshold: {gross} < {rule.threshold}",
                )
            else:
                active.append((index, rule))

        combined_rate = sum((rule.rate for _, rule in active), ZERO)
        if not active or combined_rate == ZERO:
            for index, rule in active:
                lines[index] = self._line(rule, gross, ZERO, formula="Zero combined inclusive rate")
            return ZERO, gross

        net = self.precision.internal(gross / (ONE + combined_rate / HUNDRED))
        extracted = self.precision.internal(gross - net)

        allocated = ZERO
        for position, (index, rule) in enumerate(active):
            if position == len(active) - 1:
                # Last share absorbs the apportionment rounding
                amount = self.precision.internal(extracted - allocated)
            else:
                amount = self.precision.internal(extracted * rule.rate / combined_rate)
            allocated += amount
            lines[index] = self._line(
                rule, gross, amount,
                formula=(
                    f"Inclusive: {gross} - ({gross} ÷ (1 + {combined_rate}/100)) = {extracted}; "
                    f"share {rule.rate}/{combined_rate} = {amount}"
                ),
            )
        return extracted, net

    def _apply_exclusive(self, rules: List[Tuple[int, TaxRule]], bases: TaxBases,
                         net_taxable: Decimal, lines: Dict[int, TaxLine]) -> Decimal:
        base_for = {
            TaxBase.SUBTOTAL: bases.taxable_subtotal,
            TaxBase.TAXABLE_BASE: net_taxable,
            TaxBase.NET_AFTER_DISCOUNT: net_taxable,
            TaxBase.CHARGES: bases.charges,
        }
        accumulated_tax = ZERO
        total = ZERO
        for index, rule in rules:
            effective_base = base_for[rule.base]
            if rule.compound:
                effective_base = self.precision.internal(effective_base + accumulated_tax)

            if rule.threshold is not None and effective_base < rule.threshold:
                lines[index] = self._line(
                    rule, effective_base, ZERO, below_threshold=True,
                    formula=f"Below threshold: {effective_base} < {rule.threshold}",
                )
                continue

            amount = self.precision.percent_of(effective_base, rule.rate)
            compound_note = " (compound)" if rule.compound else ""
            lines[index] = self._line(
                rule, effective_base, amount,
                formula=f"{effective_base} × {rule.rate}/100{compound_note} = {amount}",
            )
            accumulated_tax = self.precision.internal(accumulated_tax + amount)
            total = self.precision.internal(total + amount)
        return total

    @staticmethod
    def _line(rule: TaxRule, effective_base: Decimal, amount: Decimal,
              below_threshold: bool = False, formula: str = "") -> TaxLine:
        return TaxLine(
            name=rule.name,
            rate=rule.rate,
            inclusive=rule.inclusive,
            base=rule.base.value,
            compound=rule.compound,
            threshold=rule.threshold,
            enabled=rule.enabled,
            effective_base=effective_base,
            amount=amount,
            below_threshold=below_threshold,
            formula=formula,
        )
