"""Sequential resolution of flat, percent and tiered discount rules."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from ..utils.logging import get_logger
from .errors import CalculationFailure
from .models import DiscountRule, DiscountTier, FlatDiscount, PercentDiscount, TieredDiscount
from .precision import ZERO, PrecisionController
from .results import DiscountLine

logger = get_logger(__name__)


@dataclass(frozen=True)
class DiscountOutcome:
    """Result of folding a list of rules over a starting balance.

    ``lines`` carry internal-precision amounts; rendering rounds them.
    """

    lines: Tuple[DiscountLine, ...]
    total: Decimal
    balance: Decimal


class DiscountComposer:
    """Applies discount rules in order, each against the balance left by the previous one.

    Tiered rules pick their tier from the running balance at the moment they
    execute, so moving a tiered rule after a flat rule can change its tier.
    """

    def __init__(self, precision: PrecisionController, clamp: bool = False) -> None:
        self.precision = precision
        self.clamp = clamp

    def apply(self, base: Decimal, rules: Iterable[DiscountRule]) -> DiscountOutcome:
        running = self.precision.internal(base)
        total = ZERO
        lines = []
        for rule in rules:
            amount, rate, formula = self._resolve(rule, running)
            if self.clamp:
                cap = max(running, ZERO)
                if amount > cap:
                    formula = f"{formula} (clamped to remaining balance {cap})"
                    amount = cap
            amount = self.precision.internal(amount)
            lines.append(DiscountLine(
                id=rule.id,
                kind=rule.kind.value,
                base=running,
                amount=amount,
                rate=rate,
                formula=formula,
            ))
            running = self.precision.internal(running - amount)
            total = self.precision.internal(total + amount)
        return DiscountOutcome(lines=tuple(lines), total=total, balance=running)

    def _resolve(self, rule: DiscountRule, running: Decimal) -> Tuple[Decimal, Optional[Decimal], str]:
        if isinstance(rule, FlatDiscount):
            if rule.amount is None:
                return ZERO, None, "Flat discount without value = 0"
            return rule.amount, None, f"Flat {rule.amount}"

        if isinstance(rule, PercentDiscount):
            if rule.percent is None:
                return ZERO, rule.percent, "Percent discount without value = 0"
            amount = self.precision.percent_of(running, rule.percent)
            return amount, rule.percent, f"{running} × {rule.percent}/100 = {amount}"

        if isinstance(rule, TieredDiscount):
            tier = self.select_tier(rule.tiers, running)
            if tier is None:
                return ZERO, None, f"No tier reached by {running}"
            amount = self.precision.percent_of(running, tier.rate)
            return amount, tier.rate, f"Tier ≥ {tier.min_base}: {running} × {tier.rate}/100 = {amount}"

        raise CalculationFailure(f"Unsupported discount rule {rule!r}")

    @staticmethod
    def select_tier(tiers: Iterable[DiscountTier], base: Decimal) -> Optional[DiscountTier]:
        """Highest tier whose ``min_base`` does not exceed ``base``."""
        tiers = tuple(tiers)
        for tier in tiers:
            if not isinstance(tier, DiscountTier) or not tier.min_base.is_finite() \
                    or not tier.rate.is_finite():
                raise CalculationFailure(f"Malformed discount tier {tier!r}")
        for tier in sorted(tiers, key=lambda t: t.min_base, reverse=True):
            if tier.min_base <= base:
                logger.debug(f"Selected tier min_base={tier.min_base} rate={tier.rate} for base {base}")
                return tier
        return None
