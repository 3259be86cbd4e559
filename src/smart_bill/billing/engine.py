"""Billing engine: runs every stage in order and assembles the published result."""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Any, Callable, Dict, Optional, Sequence

from .. import __version__
from ..utils.config import Config
from ..utils.logging import get_logger
from .charges import ChargeComposer
from .context import CalculationContext
from .currency import CurrencyConverter
from .discounts import DiscountComposer
from .extensions import ExtensionPipeline, Phase
from .identifiers import generate_billing_id, utc_timestamp
from .items import ItemAggregator, ItemEvaluation
from .payload import parse_payload
from .precision import ONE, ZERO, PrecisionController
from .presets import PresetRegistry, default_registry
from .results import BillingResult, ChargeLine, DiscountLine, ItemLine, TaxLine
from .taxes import TaxBases, TaxEngine
from .validation import validate_context, validate_payload

logger = get_logger(__name__)


class BillingEngine:
    """Computes itemized bills from calculation contexts.

    Stage order: item aggregation, bill-level discounts, charges, taxes,
    rounding and currency conversion. Extension hooks run around the whole
    computation (setup, beforeCalc, afterCalc).

    Args:
        presets: Registry used to resolve ``tax_preset`` names
        id_generator: ``prefix -> id`` for bills without a caller-supplied ID
        clock: ``() -> timestamp`` for the result's creation time
    """

    def __init__(
        self,
        presets: Optional[PresetRegistry] = None,
        id_generator: Optional[Callable[[str], str]] = None,
        clock: Optional[Callable[[], str]] = None,
    ) -> None:
        self.presets = presets or default_registry
        self.id_generator = id_generator or generate_billing_id
        self.clock = clock or utc_timestamp

    def calculate(self, context: CalculationContext) -> BillingResult:
        """Run the extension pipeline around ``compute``.

        Raises:
            ValidationFailure: if the context (after beforeCalc hooks) is invalid
            CalculationFailure: if an internal invariant breaks
        """
        pipeline = ExtensionPipeline(context.extensions)
        prepared = pipeline.setup(context)
        prepared = pipeline.transform(Phase.BEFORE_CALC, prepared)

        result = self.compute(prepared)

        finished = pipeline.transform(Phase.AFTER_CALC, prepared.with_result(result))
        # Hooks contribute metadata only; monetary fields stay as computed
        metadata = {**result.metadata, **finished.metadata}
        return replace(result, metadata=metadata)

    def compute(self, context: CalculationContext) -> BillingResult:
        """Core arithmetic without extension hooks."""
        validate_context(context, self.presets)
        config = context.configuration

        precision = PrecisionController(
            decimal_places=config.decimal_places,
            internal_precision=config.internal_precision,
            round_off=config.round_off,
            multiplier=config.exchange_rate,
        )
        converter = CurrencyConverter(config.currency, config.exchange_rates, precision)
        composer = DiscountComposer(precision, clamp=config.clamp_discounts)
        aggregator = ItemAggregator(precision, converter, composer)

        # 1. Items
        evaluations = [aggregator.evaluate(item) for item in context.items]
        subtotal = precision.internal(sum((e.total for e in evaluations), ZERO))
        item_discount_total = precision.internal(
            sum((self._tree_discount(e) for e in evaluations), ZERO)
        )
        exempt_subtotal = precision.internal(
            sum((e.total for e in evaluations if e.item.tax_exempt), ZERO)
        )

        # 2. Bill-level discounts
        discount_outcome = composer.apply(subtotal, config.discounts + context.discounts)
        taxable_base = discount_outcome.balance

        # 3. Charges
        charge_outcome = ChargeComposer(precision).apply(
            config.charges + context.charges, subtotal, taxable_base
        )

        # 4. Taxes
        tax_rules = context.taxes
        if config.tax_preset:
            tax_rules = tax_rules + self.presets.resolve(config.tax_preset)
        tax_outcome = TaxEngine(precision).compute(tax_rules, TaxBases(
            taxable_subtotal=precision.internal(subtotal - exempt_subtotal),
            taxable_gross=self._taxable_share(precision, taxable_base, subtotal, exempt_subtotal),
            charges=charge_outcome.total,
        ))
        net_base = precision.internal(taxable_base - tax_outcome.inclusive_total)

        # 5. Total, rounding and conversion
        computed_total = precision.internal(
            taxable_base + charge_outcome.total + tax_outcome.exclusive_total
        )
        total, unrounded_total, residual = precision.finalize(computed_total)
        converted_totals = converter.converted_totals(precision.display_unscaled(computed_total))

        billing_id = context.billing_id or self.id_generator(config.billing_id_prefix)
        metadata: Dict[str, Any] = {"engineVersion": __version__}
        if config.tax_preset:
            metadata["taxPreset"] = config.tax_preset
        metadata.update(context.metadata)

        result = BillingResult(
            billing_id=billing_id,
            created_at=self.clock(),
            currency=config.currency,
            subtotal=precision.display(subtotal),
            item_discount_total=precision.display(item_discount_total),
            total_discount=precision.display(discount_outcome.total),
            taxable_base=precision.display(taxable_base),
            discounts=tuple(self._render_discount(precision, line) for line in discount_outcome.lines),
            charges=tuple(self._render_charge(precision, line) for line in charge_outcome.lines),
            total_charges=precision.display(charge_outcome.total),
            taxes=tuple(self._render_tax(precision, line) for line in tax_outcome.lines),
            inclusive_tax=precision.display(tax_outcome.inclusive_total),
            exclusive_tax=precision.display(tax_outcome.exclusive_total),
            total_tax=precision.display(tax_outcome.total),
            net_base=precision.display(net_base),
            unrounded_total=unrounded_total,
            rounding_residual=residual,
            total=total,
            exchange_rate=config.exchange_rate,
            converted_totals=converted_totals,
            item_lines=tuple(
                replace(
                    self._render_item(precision, e),
                    taxable_amount=precision.display(
                        self._item_taxable(precision, e, taxable_base, subtotal)
                    ),
                )
                for e in evaluations
            ),
            formula_steps=self._formula_steps(
                precision, subtotal, item_discount_total, discount_outcome.lines,
                taxable_base, charge_outcome.total, tax_outcome.inclusive_total,
                tax_outcome.exclusive_total, unrounded_total, residual, total,
            ),
            metadata=metadata,
        )
        logger.debug(f"Calculated bill {billing_id}: total={total} {config.currency}")
        return result

    @staticmethod
    def _taxable_share(precision: PrecisionController, taxable_base: Decimal,
                       subtotal: Decimal, exempt_subtotal: Decimal) -> Decimal:
        """Part of the discounted base attributable to taxable items.

        Bill-level discounts are spread over items pro rata, so the exempt
        share of the discounted base keeps the exempt share of the subtotal.
        """
        if exempt_subtotal == ZERO:
            return taxable_base
        if subtotal == ZERO:
            return ZERO
        return precision.internal(taxable_base * (subtotal - exempt_subtotal) / subtotal)

    @staticmethod
    def _item_taxable(precision: PrecisionController, evaluation: ItemEvaluation,
                      taxable_base: Decimal, subtotal: Decimal) -> Decimal:
        """Pro-rata share of the discounted base carried by one top-level item."""
        if evaluation.item.tax_exempt or subtotal == ZERO:
            return ZERO
        return precision.internal(taxable_base * evaluation.total / subtotal)

    def _tree_discount(self, evaluation: ItemEvaluation) -> Decimal:
        """Item-level discounts embedded in ``evaluation.total``.

        A child's discount repeats once per unit of its parent, like its total.
        """
        children = evaluation.add_ons + evaluation.variations
        nested = sum((self._tree_discount(c) for c in children), ZERO)
        return evaluation.discount + nested * evaluation.item.quantity

    # ---------- Rendering at display precision ----------

    @staticmethod
    def _render_discount(precision: PrecisionController, line: DiscountLine) -> DiscountLine:
        return replace(line, base=precision.display(line.base), amount=precision.display(line.amount))

    @staticmethod
    def _render_charge(precision: PrecisionController, line: ChargeLine) -> ChargeLine:
        return replace(
            line,
            base_amount=precision.display(line.base_amount),
            amount=precision.display(line.amount),
        )

    @staticmethod
    def _render_tax(precision: PrecisionController, line: TaxLine) -> TaxLine:
        return replace(
            line,
            effective_base=precision.display(line.effective_base),
            amount=precision.display(line.amount),
        )

    def _render_item(self, precision: PrecisionController, evaluation: ItemEvaluation) -> ItemLine:
        item = evaluation.item
        return ItemLine(
            id=item.id,
            name=item.name,
            quantity=item.quantity,
            currency=item.currency,
            unit_price=precision.display(evaluation.unit_price),
            unit_total=precision.display(evaluation.unit_total),
            gross_total=precision.display(evaluation.gross_total),
            discount=precision.display(evaluation.discount),
            total=precision.display(evaluation.total),
            tax_exempt=item.tax_exempt,
            discounts=tuple(self._render_discount(precision, line) for line in evaluation.discount_lines),
            add_ons=tuple(self._render_item(precision, child) for child in evaluation.add_ons),
            variations=tuple(self._render_item(precision, child) for child in evaluation.variations),
            formula=(
                f"({evaluation.unit_price} + children) × {item.quantity} "
                f"- {evaluation.discount} = {evaluation.total}"
            ),
        )

    @staticmethod
    def _formula_steps(precision: PrecisionController, subtotal: Decimal,
                       item_discount_total: Decimal, discount_lines: Sequence[DiscountLine],
                       taxable_base: Decimal, total_charges: Decimal, inclusive_tax: Decimal,
                       exclusive_tax: Decimal, unrounded_total: Decimal, residual: Decimal,
                       total: Decimal) -> tuple:
        show = precision.display
        steps = [f"Subtotal = sum(item totals) = {show(subtotal)}"]
        if item_discount_total != ZERO:
            steps.append(f"Item discounts (already in item totals) = {show(item_discount_total)}")
        for line in discount_lines:
            steps.append(f"Discount {line.id} ({line.kind}) = {show(line.amount)}")
        steps.append(f"Taxable base = subtotal - discounts = {show(taxable_base)}")
        if total_charges != ZERO:
            steps.append(f"Total charges = {show(total_charges)}")
        if inclusive_tax != ZERO:
            steps.append(f"Inclusive taxes (already in price) = {show(inclusive_tax)}")
        if exclusive_tax != ZERO:
            steps.append(f"Exclusive taxes (added) = {show(exclusive_tax)}")
        if precision.multiplier != ONE:
            steps.append(f"Exchange multiplier = {precision.multiplier}")
        steps.append(f"Total (before rounding) = {unrounded_total}")
        if precision.round_off:
            steps.append(f"Round off (difference) = {residual}")
        steps.append(f"Final total = {total}")
        return tuple(steps)


default_engine = BillingEngine()


def calculate(context: CalculationContext) -> BillingResult:
    """Calculate ``context`` with the default engine."""
    return default_engine.calculate(context)


def calculate_from_payload(payload: Dict[str, Any], engine: Optional[BillingEngine] = None,
                           config: Optional[Config] = None) -> BillingResult:
    """Validate, resolve presets and calculate a flat declarative payload in one call.

    Args:
        payload: JSON-shaped bill description (items, discounts, charges, taxes, config, meta)
        engine: Engine to use instead of the default one
        config: Environment configuration seeding defaults the payload omits
    """
    validate_payload(payload)
    defaults = config.billing_defaults() if config is not None else None
    context = parse_payload(payload, defaults)
    return (engine or default_engine).calculate(context)
