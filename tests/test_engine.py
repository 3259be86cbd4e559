"""Tests for the billing engine end to end."""

import json
import os
import re
from decimal import Decimal
from unittest.mock import patch

import pytest

from smart_bill.billing import (
    BillingConfiguration,
    BillingEngine,
    ChargeRule,
    FlatDiscount,
    PercentDiscount,
    TaxBase,
    TaxRule,
    ValidationFailure,
    calculate,
    calculate_from_payload,
    create_context,
)
from smart_bill.utils.config import Config


class TestTotals:

    def test_single_item_no_rules(self, engine, hundred_context):
        result = engine.calculate(hundred_context)

        assert result.subtotal == Decimal("100.00")
        assert result.total == Decimal("100.00")
        assert result.total_tax == Decimal("0.00")

    def test_total_identity(self, engine, make_item):
        context = (
            create_context()
            .with_item(make_item(40, quantity=2))
            .with_item(make_item(20, item_id="i2"))
            .with_discount(PercentDiscount("d", 10))
            .with_charge(ChargeRule("Delivery", "FLAT", 5))
            .with_tax(TaxRule("VAT", 10))
        )

        result = engine.calculate(context)

        assert result.subtotal - result.total_discount == result.taxable_base
        assert result.taxable_base + result.total_charges + result.exclusive_tax == result.total
        assert result.total == Decimal("104.00")

    def test_rounding_with_fractional_rates(self, engine, make_item):
        context = (
            create_context()
            .with_item(make_item("19.99"))
            .with_discount(PercentDiscount("d", "7.5"))
            .with_tax(TaxRule("Sales Tax", "8.875"))
        )

        result = engine.calculate(context)

        assert result.total_discount == Decimal("1.50")
        assert result.total_tax == Decimal("1.64")
        assert result.total == Decimal("20.13")

    def test_display_rounding_of_subtotal(self, engine, make_item):
        result = engine.calculate(create_context().with_item(make_item("10.666", quantity=3)))

        assert result.subtotal == Decimal("32.00")
        assert result.rounding_residual == Decimal("0.002")

    def test_round_off_disabled(self, engine, make_item):
        configuration = BillingConfiguration(round_off=False)
        context = create_context(configuration).with_item(make_item("10.123456"))

        result = engine.calculate(context)

        assert result.total == Decimal("10.12")
        assert result.unrounded_total == Decimal("10.123456")
        assert result.rounding_residual == Decimal("0")
        assert not any(step.startswith("Round off") for step in result.formula_steps)

    def test_overdiscount_goes_negative_by_default(self, engine, make_item):
        context = create_context().with_item(make_item(10)).with_discount(FlatDiscount("big", 25))

        result = engine.calculate(context)

        assert result.total == Decimal("-15.00")

    def test_clamped_discounts(self, engine, make_item):
        configuration = BillingConfiguration(clamp_discounts=True)
        context = create_context(configuration).with_item(make_item(10)).with_discount(FlatDiscount("big", 25))

        result = engine.calculate(context)

        assert result.total_discount == Decimal("10.00")
        assert result.total == Decimal("0.00")

    def test_configuration_rules_run_before_context_rules(self, engine, make_item):
        configuration = BillingConfiguration(discounts=[FlatDiscount("global", 10)])
        context = create_context(configuration).with_item(make_item(100)).with_discount(PercentDiscount("p", 50))

        result = engine.calculate(context)

        assert [line.id for line in result.discounts] == ["global", "p"]
        assert result.total == Decimal("45.00")

    def test_add_on_discounts_repeat_per_parent_unit(self, engine, make_item):
        cheese = make_item(2, item_id="cheese", discounts=[FlatDiscount("c", 1)])
        pizza = make_item(10, quantity=3, item_id="pizza", add_ons=[cheese])

        result = engine.calculate(create_context().with_item(pizza))

        assert result.item_lines[0].unit_total == Decimal("11.00")
        assert result.subtotal == Decimal("33.00")
        assert result.item_discount_total == Decimal("3.00")
        assert "Item discounts (already in item totals) = 3.00" in result.formula_steps

    def test_large_amounts_at_full_internal_precision(self, engine):
        payload = {
            "config": {"decimalInternalPrecision": 15},
            "items": [{"name": "Tower", "qty": 1, "unitPrice": 10 ** 13}],
        }

        result = calculate_from_payload(payload, engine=engine)

        assert result.total == Decimal("10000000000000.00")
        assert result.subtotal == Decimal("10000000000000.00")


class TestTaxesInBills:

    def test_tax_on_charges(self, engine, hundred_context):
        context = (
            hundred_context
            .with_charge(ChargeRule("Service", "PERCENT", 10))
            .with_tax(TaxRule("Service Tax", 18, base=TaxBase.CHARGES))
        )

        result = engine.calculate(context)

        assert result.total_charges == Decimal("10.00")
        assert result.exclusive_tax == Decimal("1.80")
        assert result.total == Decimal("111.80")

    def test_tax_exempt_items_excluded(self, engine, make_item):
        context = (
            create_context()
            .with_item(make_item(100))
            .with_item(make_item(50, item_id="bread", tax_exempt=True))
            .with_discount(PercentDiscount("d", 10))
            .with_tax(TaxRule("VAT", 10))
        )

        result = engine.calculate(context)

        assert result.taxable_base == Decimal("135.00")
        assert result.total_tax == Decimal("9.00")
        assert result.total == Decimal("144.00")

    def test_item_taxable_amounts(self, engine, make_item):
        context = (
            create_context()
            .with_item(make_item(100))
            .with_item(make_item(50, item_id="bread", tax_exempt=True))
            .with_discount(PercentDiscount("d", 10))
            .with_tax(TaxRule("VAT", 10))
        )

        result = engine.calculate(context)

        assert [line.taxable_amount for line in result.item_lines] == [
            Decimal("90.00"),
            Decimal("0.00"),
        ]

    def test_inclusive_tax_not_added(self, engine, make_item):
        context = create_context().with_item(make_item(110)).with_tax(TaxRule("VAT", 10, inclusive=True))

        result = engine.calculate(context)

        assert result.inclusive_tax == Decimal("10.00")
        assert result.net_base == Decimal("100.00")
        assert result.total == Decimal("110.00")

    def test_india_preset(self, engine, make_item):
        context = create_context(BillingConfiguration(tax_preset="india")).with_item(make_item(118))

        result = engine.calculate(context)

        assert [(line.name, line.amount) for line in result.taxes] == [
            ("CGST", Decimal("9.00")),
            ("SGST", Decimal("9.00")),
        ]
        assert result.total == Decimal("118.00")
        assert result.metadata["taxPreset"] == "india"

    def test_preset_rules_follow_explicit_rules(self, engine, hundred_context):
        configuration = BillingConfiguration(tax_preset="canada")
        context = create_context(configuration).with_item(hundred_context.items[0]).with_tax(TaxRule("Levy", 1))

        result = engine.calculate(context)

        assert [line.name for line in result.taxes] == ["Levy", "GST", "PST"]
        assert result.total == Decimal("113.00")


class TestResultShape:

    def test_repeat_calculation_is_identical(self, engine, sample_payload):
        first = calculate_from_payload(sample_payload, engine=engine)
        second = calculate_from_payload(sample_payload, engine=engine)

        assert first == second

    def test_sample_payload(self, engine, sample_payload):
        result = calculate_from_payload(sample_payload, engine=engine)

        assert result.billing_id == "INV-42"
        assert result.subtotal == Decimal("27.50")
        assert result.total_discount == Decimal("2.75")
        assert result.taxable_base == Decimal("24.75")
        assert result.total_charges == Decimal("5.00")
        assert result.total_tax == Decimal("1.98")
        assert result.total == Decimal("31.73")
        assert result.item_lines[0].add_ons[0].id == "cheese"
        assert result.item_lines[0].taxable_amount == Decimal("21.60")
        assert result.item_lines[0].add_ons[0].taxable_amount is None
        assert result.item_lines[1].taxable_amount == Decimal("3.15")
        assert result.metadata["orderId"] == "A-1"
        assert result.metadata["engineVersion"]

    def test_formula_steps(self, engine, sample_payload):
        steps = calculate_from_payload(sample_payload, engine=engine).formula_steps

        assert steps[0] == "Subtotal = sum(item totals) = 27.50"
        assert "Discount d1 (PERCENT) = 2.75" in steps
        assert "Taxable base = subtotal - discounts = 24.75" in steps
        assert steps[-1] == "Final total = 31.73"

    def test_to_dict_is_json_serializable(self, engine, sample_payload):
        data = calculate_from_payload(sample_payload, engine=engine).to_dict()

        encoded = json.loads(json.dumps(data))
        assert encoded["total"] == "31.73"
        assert encoded["taxes"][0]["name"] == "Sales Tax"
        assert encoded["created_at"] == "2024-01-01T00:00:00+00:00"

    def test_generated_billing_id(self, hundred_context):
        result = calculate(hundred_context)

        assert re.match(r"^BILL-\d{8}-\d{6}-\d{4}$", result.billing_id)

    def test_custom_prefix(self, make_item):
        context = create_context(BillingConfiguration(billing_id_prefix="INV")).with_item(make_item(1))

        assert BillingEngine().calculate(context).billing_id.startswith("INV-")

    def test_env_defaults_seed_payload(self, engine, sample_payload, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("BILLING_DECIMAL_PLACES=3\n")
        sample_payload["config"].pop("decimalPlaces")

        with patch.dict(os.environ, {}, clear=True):
            config = Config(str(env_file))
        result = calculate_from_payload(sample_payload, engine=engine, config=config)

        assert result.total == Decimal("31.730")
        assert str(result.total) == "31.730"


class TestFailures:

    def test_no_items(self, engine):
        with pytest.raises(ValidationFailure) as excinfo:
            engine.calculate(create_context())

        assert excinfo.value.field == "items"
        assert excinfo.value.code == "VALIDATION_ERROR"

    def test_negative_price(self, engine, make_item):
        with pytest.raises(ValidationFailure) as excinfo:
            engine.calculate(create_context().with_item(make_item(-1)))

        assert excinfo.value.field == "items[0].unitPrice"

    def test_missing_exchange_rate(self, engine, make_item):
        context = create_context().with_item(make_item(10, currency="GBP"))

        with pytest.raises(ValidationFailure) as excinfo:
            engine.calculate(context)

        assert excinfo.value.field == "items[0].currency"

    def test_percent_out_of_range(self, engine, hundred_context):
        with pytest.raises(ValidationFailure) as excinfo:
            engine.calculate(hundred_context.with_discount(PercentDiscount("p", 150)))

        assert excinfo.value.field == "discounts[0].value"
