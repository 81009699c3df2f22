"""
Unit Tests for Breakdown Assembler

Tests verify the subtotal, the ordering and completeness of the breakdown,
and that a single invalid charge fails the whole calculation.
"""

import dataclasses
from datetime import date
from decimal import ROUND_HALF_EVEN, Decimal

import pytest

from billing_engine.calculators.breakdown import BreakdownAssembler, allot_line_amounts, subtotal_of
from billing_engine.errors import InvalidChargeDefinition
from billing_engine.models import (
    ChargeDefinition,
    ChargeEvaluation,
    ChargeType,
    EvaluationStatus,
    FixedTerms,
    GuaranteeOutcome,
    PercentageOfSalesTerms,
    PerUnitTerms,
    SkipReason,
)
from billing_engine.money import Money


def applied(charge_id, amount, terms=None):
    charge = ChargeDefinition(
        id=charge_id,
        configuration_id=10,
        name=f"Charge {charge_id}",
        terms=terms or FixedTerms(Money.of(amount)),
    )
    return ChargeEvaluation(charge=charge, status=EvaluationStatus.APPLIED, amount=Money.of(amount))


def applied_exact(charge_id, exact_minor):
    """An applied line whose exact amount is a fraction of a minor unit."""
    exact = Decimal(exact_minor)
    charge = ChargeDefinition(
        id=charge_id,
        configuration_id=10,
        name=f"Charge {charge_id}",
        terms=PerUnitTerms(unit_rate=Money(1), unit_label="unit"),
    )
    return ChargeEvaluation(
        charge=charge,
        status=EvaluationStatus.APPLIED,
        amount=Money.rounded(exact),
        exact=exact,
    )


def skipped(charge_id, reason=SkipReason.INACTIVE):
    charge = ChargeDefinition(
        id=charge_id, configuration_id=10, name=f"Charge {charge_id}", terms=FixedTerms(Money.of("50"))
    )
    return ChargeEvaluation(charge=charge, status=EvaluationStatus.SKIPPED, skip_reason=reason)


def invalid(charge_id, defect="missing required parameter 'percentage'"):
    charge = ChargeDefinition(
        id=charge_id, configuration_id=10, name=f"Charge {charge_id}", terms=FixedTerms(Money.of("50"))
    )
    return ChargeEvaluation(charge=charge, status=EvaluationStatus.INVALID, defects=(defect,))


def passthrough(subtotal):
    return GuaranteeOutcome(final_amount=subtotal, adjustment=Money(0), applied=False)


class TestBreakdownAssembly:
    """Test result assembly from evaluations."""

    @pytest.fixture
    def assembler(self):
        return BreakdownAssembler()

    def test_subtotal_sums_applied_only(self, assembler):
        evaluations = [applied(1, "5000"), skipped(2), applied(3, "4000.25")]
        subtotal = subtotal_of(evaluations)

        result = assembler.assemble(evaluations, passthrough(subtotal))

        assert result.subtotal == Money.of("9000.25")
        assert result.subtotal == Money(sum(line.amount.minor for line in result.charge_breakdown if line.applied))

    def test_skipped_charges_are_listed_with_zero(self, assembler):
        evaluations = [skipped(1, SkipReason.BEFORE_ANNUAL_ANCHOR), applied(2, "10")]

        result = assembler.assemble(evaluations, passthrough(Money.of("10")))

        first = result.charge_breakdown[0]
        assert first.charge_id == 1
        assert first.applied is False
        assert first.amount == Money(0)
        assert first.skip_reason is SkipReason.BEFORE_ANNUAL_ANCHOR

    def test_order_is_definition_order(self, assembler):
        evaluations = [applied(9, "1"), skipped(4), applied(6, "2")]

        result = assembler.assemble(evaluations, passthrough(Money.of("3")))

        assert [line.charge_id for line in result.charge_breakdown] == [9, 4, 6]

    def test_guarantee_fields_are_carried(self, assembler):
        evaluations = [applied(1, "9000")]
        outcome = GuaranteeOutcome(final_amount=Money.of("10000"), adjustment=Money.of("1000"), applied=True)

        result = assembler.assemble(
            evaluations,
            outcome,
            contract_id=7,
            configuration_id=3,
            period_start=date(2025, 3, 1),
            period_end=date(2025, 3, 31),
        )

        assert result.minimum_guarantee_applied is True
        assert result.guarantee_adjustment == Money.of("1000")
        assert result.final_amount == Money.of("10000")
        assert result.configuration_id == 3
        assert result.period_start == date(2025, 3, 1)

    def test_outcome_for_another_subtotal_is_rejected(self, assembler):
        with pytest.raises(ValueError):
            assembler.assemble([applied(1, "100")], passthrough(Money.of("99")))

    def test_invalid_charge_fails_closed(self, assembler):
        evaluations = [applied(1, "100"), invalid(2)]

        with pytest.raises(InvalidChargeDefinition) as exc:
            assembler.assemble(evaluations, passthrough(Money.of("100")))

        assert exc.value.charge_ids == (2,)
        assert exc.value.defects == {2: ["missing required parameter 'percentage'"]}

    def test_every_invalid_charge_is_named(self, assembler):
        evaluations = [invalid(5), applied(1, "100"), invalid(3, "no area")]

        with pytest.raises(InvalidChargeDefinition) as exc:
            assembler.assemble(evaluations, passthrough(Money.of("100")))

        assert exc.value.charge_ids == (5, 3)
        assert exc.value.to_dict()["chargeIds"] == [5, 3]

    def test_result_is_immutable(self, assembler):
        result = assembler.assemble([applied(1, "1")], passthrough(Money.of("1")))

        with pytest.raises(dataclasses.FrozenInstanceError):
            result.final_amount = Money(0)
        assert isinstance(result.charge_breakdown, tuple)

    def test_totals_by_type(self, assembler):
        evaluations = [
            applied(1, "5000"),
            applied(2, "4000", PercentageOfSalesTerms(Decimal("2"))),
            applied(3, "1000", PerUnitTerms(unit_rate=Money.of("2"), unit_label="unit")),
            applied(4, "250"),
            skipped(5),
        ]

        result = assembler.assemble(evaluations, passthrough(Money.of("10250")))
        totals = result.totals_by_type()

        assert totals[ChargeType.FIXED.value] == Money.of("5250")
        assert totals[ChargeType.PERCENTAGE_OF_SALES.value] == Money.of("4000")
        assert totals[ChargeType.PER_UNIT.value] == Money.of("1000")
        assert totals[ChargeType.PER_AREA.value] == Money(0)


class TestSubtotalRounding:
    """Test the subtotal is rounded once, on the exact sum."""

    def test_half_cents_are_not_rounded_per_line(self):
        # Two lines of half a cent each: exactly one cent in total
        evaluations = [applied_exact(1, "0.5"), applied_exact(2, "0.5")]

        assert subtotal_of(evaluations) == Money(1)

    def test_rounding_mode_applies_to_the_sum(self):
        evaluations = [applied_exact(1, "0.25"), applied_exact(2, "0.25")]

        assert subtotal_of(evaluations) == Money(1)
        assert subtotal_of(evaluations, ROUND_HALF_EVEN) == Money(0)

    def test_skipped_lines_do_not_count(self):
        assert subtotal_of([applied_exact(1, "0.4"), skipped(2)]) == Money(0)

    def test_breakdown_adds_up_to_subtotal(self):
        evaluations = [applied_exact(1, "0.5"), applied_exact(2, "0.5")]
        assembler = BreakdownAssembler()

        result = assembler.assemble(evaluations, passthrough(Money(1)))

        assert result.subtotal == Money(1)
        assert [line.amount for line in result.charge_breakdown] == [Money(1), Money(0)]

    def test_assembler_uses_its_rounding_mode(self):
        evaluations = [applied_exact(1, "0.5")]
        assembler = BreakdownAssembler(rounding=ROUND_HALF_EVEN)

        result = assembler.assemble(evaluations, passthrough(Money(0)))

        assert result.subtotal == Money(0)
        assert result.charge_breakdown[0].amount == Money(0)


class TestLineAllotment:
    """Test whole-cent line amounts by largest remainder."""

    def test_exact_lines_are_unchanged(self):
        evaluations = [applied(1, "5000"), skipped(2), applied(3, "0.07")]

        amounts = allot_line_amounts(evaluations, Money.of("5000.07"))

        assert amounts == [Money.of("5000"), Money(0), Money(7)]

    def test_largest_fraction_gets_the_cent(self):
        evaluations = [applied_exact(1, "10.2"), applied_exact(2, "20.7"), applied_exact(3, "30.1")]

        amounts = allot_line_amounts(evaluations, subtotal_of(evaluations))

        # 61.0 exact: floors 10 + 20 + 30, one cent left for the .7 line
        assert amounts == [Money(10), Money(21), Money(30)]

    def test_ties_go_to_earlier_lines(self):
        evaluations = [applied_exact(1, "0.5"), applied_exact(2, "0.5"), applied_exact(3, "0.5")]

        amounts = allot_line_amounts(evaluations, subtotal_of(evaluations))

        # 1.5 rounds half-up to 2
        assert amounts == [Money(1), Money(1), Money(0)]

    def test_amounts_always_sum_to_subtotal(self):
        evaluations = [applied_exact(i, f"{i}.{i}{i}") for i in range(1, 10)]
        subtotal = subtotal_of(evaluations)

        assert sum(amount.minor for amount in allot_line_amounts(evaluations, subtotal)) == subtotal.minor

    def test_subtotal_out_of_reach_is_rejected(self):
        with pytest.raises(ValueError):
            allot_line_amounts([applied_exact(1, "0.5")], Money(5))
