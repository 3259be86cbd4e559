"""Bottom-up evaluation of line item trees."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Tuple

from ..utils.logging import get_logger
from .currency import CurrencyConverter
from .discounts import DiscountComposer
from .models import LineItem
from .precision import PrecisionController
from .results import DiscountLine

logger = get_logger(__name__)


@dataclass(frozen=True)
class ItemEvaluation:
    """Internal-precision totals of one node and its evaluated children."""

    item: LineItem
    unit_price: Decimal
    unit_total: Decimal
    gross_total: Decimal
    discount: Decimal
    total: Decimal
    discount_lines: Tuple[DiscountLine, ...]
    add_ons: Tuple["ItemEvaluation", ...]
    variations: Tuple["ItemEvaluation", ...]


class ItemAggregator:
    """Computes the monetary total of a line item tree.

    unit_total = unit_price + sum(add-on totals) + sum(variation totals)
    gross      = unit_total * quantity
    total      = gross minus the item's own discounts, each on the running total

    Children carry their own quantities, applied inside their own evaluation.
    Item totals are not floored at zero unless discount clamping is enabled.
    """

    def __init__(self, precision: PrecisionController, converter: CurrencyConverter,
                 discounts: DiscountComposer) -> None:
        self.precision = precision
        self.converter = converter
        self.discounts = discounts

    def evaluate(self, item: LineItem) -> ItemEvaluation:
        add_ons = tuple(self.evaluate(child) for child in item.add_ons)
        variations = tuple(self.evaluate(child) for child in item.variations)

        unit_price = self.converter.normalize(item.unit_price, item.currency)
        unit_total = unit_price
        for child in add_ons + variations:
            unit_total += child.total
        unit_total = self.precision.internal(unit_total)
        gross = self.precision.internal(unit_total * item.quantity)

        outcome = self.discounts.apply(gross, item.discounts)
        logger.debug(
            f"Item {item.id}: unit_total={unit_total} qty={item.quantity} "
            f"gross={gross} discount={outcome.total} total={outcome.balance}"
        )
        return ItemEvaluation(
            item=item,
            unit_price=unit_price,
            unit_total=unit_total,
            gross_total=gross,
            discount=outcome.total,
            total=outcome.balance,
            discount_lines=outcome.lines,
            add_ons=add_ons,
            variations=variations,
        )

    def total(self, item: LineItem) -> Decimal:
        return self.evaluate(item).total
