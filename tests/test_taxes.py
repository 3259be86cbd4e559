"""Tests for the tax engine."""

from decimal import Decimal

import pytest

from smart_bill.billing import TaxBase, TaxRule
from smart_bill.billing.precision import PrecisionController
from smart_bill.billing.taxes import TaxBases, TaxEngine


@pytest.fixture
def tax_engine():
    return TaxEngine(PrecisionController())


def bases(gross, subtotal=None, charges=0):
    gross = Decimal(str(gross))
    subtotal = gross if subtotal is None else Decimal(str(subtotal))
    return TaxBases(taxable_subtotal=subtotal, taxable_gross=gross, charges=Decimal(str(charges)))


class TestExclusiveTaxes:

    def test_single_rate(self, tax_engine):
        outcome = tax_engine.compute([TaxRule("VAT", 20)], bases(100))

        assert outcome.exclusive_total == Decimal("20")
        assert outcome.inclusive_total == Decimal("0")
        assert outcome.lines[0].effective_base == Decimal("100")

    def test_compound_includes_preceding_taxes(self, tax_engine):
        rules = [TaxRule("Tax A", 10), TaxRule("Tax B", 5, compound=True)]

        outcome = tax_engine.compute(rules, bases(100))

        assert [line.amount for line in outcome.lines] == [Decimal("10"), Decimal("5.5")]
        assert outcome.lines[1].effective_base == Decimal("110")
        assert outcome.total == Decimal("15.5")

    def test_non_compound_ignores_preceding_taxes(self, tax_engine):
        rules = [TaxRule("GST", 5), TaxRule("PST", 7)]

        outcome = tax_engine.compute(rules, bases(100))

        assert outcome.exclusive_total == Decimal("12")

    def test_threshold_not_reached(self, tax_engine):
        outcome = tax_engine.compute([TaxRule("Luxury", 10, threshold=100)], bases(50))

        line = outcome.lines[0]
        assert line.amount == Decimal("0")
        assert line.below_threshold is True
        assert outcome.total == Decimal("0")

    def test_threshold_reached_exactly(self, tax_engine):
        outcome = tax_engine.compute([TaxRule("Luxury", 10, threshold=100)], bases(100))

        assert outcome.lines[0].amount == Decimal("10")
        assert outcome.lines[0].below_threshold is False

    def test_charges_base(self, tax_engine):
        rule = TaxRule("Service Tax", 10, base=TaxBase.CHARGES)

        outcome = tax_engine.compute([rule], bases(100, charges=20))

        assert outcome.exclusive_total == Decimal("2")

    def test_subtotal_base(self, tax_engine):
        rule = TaxRule("Levy", 10, base="subtotal")

        outcome = tax_engine.compute([rule], bases(90, subtotal=100))

        assert outcome.exclusive_total == Decimal("10")

    def test_disabled_rule_stays_in_breakdown(self, tax_engine):
        rules = [TaxRule("Old", 50, enabled=False), TaxRule("VAT", 10)]

        outcome = tax_engine.compute(rules, bases(100))

        assert [line.name for line in outcome.lines] == ["Old", "VAT"]
        assert outcome.lines[0].amount == Decimal("0")
        assert outcome.lines[0].formula == "Disabled"
        assert outcome.total == Decimal("10")


class TestInclusiveTaxes:

    def test_single_inclusive_rate(self, tax_engine):
        outcome = tax_engine.compute([TaxRule("VAT", 10, inclusive=True)], bases(110))

        assert outcome.inclusive_total == Decimal("10")
        assert outcome.net_taxable == Decimal("100")
        assert outcome.exclusive_total == Decimal("0")

    def test_combined_rates_extracted_once(self, tax_engine):
        rules = [TaxRule("CGST", 10, inclusive=True), TaxRule("SGST", 10, inclusive=True)]

        outcome = tax_engine.compute(rules, bases(120))

        assert [line.amount for line in outcome.lines] == [Decimal("10"), Decimal("10")]
        assert outcome.net_taxable == Decimal("100")

    def test_shares_follow_rate_ratio(self, tax_engine):
        rules = [TaxRule("A", 5, inclusive=True), TaxRule("B", 15, inclusive=True)]

        outcome = tax_engine.compute(rules, bases(120))

        assert [line.amount for line in outcome.lines] == [Decimal("5"), Decimal("15")]

    def test_apportioned_shares_sum_to_extracted_amount(self, tax_engine):
        rules = [TaxRule(name, 7, inclusive=True) for name in ("A", "B", "C")]

        outcome = tax_engine.compute(rules, bases(100))

        assert sum(line.amount for line in outcome.lines) == outcome.inclusive_total

    def test_exclusive_applies_on_extracted_net(self, tax_engine):
        rules = [TaxRule("VAT", 10, inclusive=True), TaxRule("Levy", 5)]

        outcome = tax_engine.compute(rules, bases(110))

        assert outcome.lines[1].effective_base == Decimal("100")
        assert outcome.exclusive_total == Decimal("5")

    def test_inclusive_threshold_gates_rule(self, tax_engine):
        rules = [TaxRule("VAT", 10, inclusive=True, threshold=500)]

        outcome = tax_engine.compute(rules, bases(110))

        assert outcome.inclusive_total == Decimal("0")
        assert outcome.net_taxable == Decimal("110")
        assert outcome.lines[0].below_threshold is True

    def test_zero_combined_rate(self, tax_engine):
        outcome = tax_engine.compute([TaxRule("Zero", 0, inclusive=True)], bases(110))

        assert outcome.inclusive_total == Decimal("0")
        assert outcome.net_taxable == Decimal("110")

    def test_no_rules(self, tax_engine):
        outcome = tax_engine.compute([], bases(100))

        assert outcome.lines == ()
        assert outcome.total == Decimal("0")

    def test_inclusive_round_trip(self, tax_engine):
        outcome = tax_engine.compute([TaxRule("GST", 7, inclusive=True)], bases("99.99"))

        assert outcome.inclusive_total + outcome.net_taxable == Decimal("99.99")
        assert outcome.net_taxable == Decimal("93.448598")
