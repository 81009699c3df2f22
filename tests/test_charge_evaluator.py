"""
Unit Tests for Charge Evaluator

Tests verify each charge type's formula, the skip rules (inactive, annual
anchor), and that malformed charges are flagged invalid rather than zeroed.
"""

from datetime import date
from decimal import ROUND_HALF_EVEN, Decimal

import pytest

from billing_engine.calculators.charges import ChargeEvaluator, anchor_reached, resolve_area
from billing_engine.models import (
    ChargeDefinition,
    ChargeType,
    EvaluationStatus,
    FixedTerms,
    MalformedTerms,
    PerAreaTerms,
    PercentageOfSalesTerms,
    PerUnitTerms,
    PeriodInput,
    SkipReason,
)
from billing_engine.money import Money


def make_charge(terms, charge_id=1, is_active=True, month=None, day=None):
    return ChargeDefinition(
        id=charge_id,
        configuration_id=10,
        name=f"Charge {charge_id}",
        terms=terms,
        is_active=is_active,
        applies_from_month=month,
        applies_from_day=day,
    )


def make_period(start=date(2025, 3, 1), sales="0", units="0", area=None, by_label=None):
    return PeriodInput(
        period_start=start,
        period_end=start,
        reported_sales=Money.of(sales),
        units_sold=Decimal(units),
        leased_area_m2=Decimal(area) if area is not None else None,
        units_by_label=by_label or {},
    )


class TestChargeFormulas:
    """Test the amount computed for each charge type."""

    @pytest.fixture
    def evaluator(self):
        return ChargeEvaluator()

    def test_fixed(self, evaluator):
        evaluation = evaluator.evaluate_one(make_charge(FixedTerms(Money.of("5000"))), make_period())

        assert evaluation.status is EvaluationStatus.APPLIED
        assert evaluation.amount == Money.of("5000")

    def test_percentage_of_sales(self, evaluator):
        # 2% × $200,000 = $4,000
        charge = make_charge(PercentageOfSalesTerms(Decimal("2")))
        evaluation = evaluator.evaluate_one(charge, make_period(sales="200000"))

        assert evaluation.amount == Money.of("4000")

    def test_percentage_is_monotonic_in_sales(self, evaluator):
        charge = make_charge(PercentageOfSalesTerms(Decimal("3.75")))
        amounts = [
            evaluator.evaluate_one(charge, make_period(sales=str(sales))).amount
            for sales in ["0", "0.01", "0.99", "13.33", "1000", "1000.01", "999999.99"]
        ]

        assert amounts == sorted(amounts)

    def test_per_unit(self, evaluator):
        # $2 × 500 units = $1,000
        charge = make_charge(PerUnitTerms(unit_rate=Money.of("2"), unit_label="unit"))
        evaluation = evaluator.evaluate_one(charge, make_period(units="500"))

        assert evaluation.amount == Money.of("1000")

    def test_per_unit_is_exact_product(self, evaluator):
        # $0.10 × 2.5 kg = 25 cents, no rounding involved
        charge = make_charge(PerUnitTerms(unit_rate=Money.of("0.10"), unit_label="kg"))
        evaluation = evaluator.evaluate_one(charge, make_period(units="2.5"))

        assert evaluation.amount == Money(25)

    def test_fractional_product_is_kept_exact(self, evaluator):
        # $0.01 × 0.5 kg = half a cent
        charge = make_charge(PerUnitTerms(unit_rate=Money.of("0.01"), unit_label="kg"))
        evaluation = evaluator.evaluate_one(charge, make_period(units="0.5"))

        assert evaluation.exact == Decimal("0.5")
        assert evaluation.exact_minor == Decimal("0.5")

    def test_per_unit_uses_count_for_its_label(self, evaluator):
        tickets = make_charge(PerUnitTerms(unit_rate=Money.of("1.50"), unit_label="ticket"), charge_id=1)
        rentals = make_charge(PerUnitTerms(unit_rate=Money.of("3"), unit_label="rental"), charge_id=2)
        period = make_period(units="10", by_label={"ticket": Decimal("100")})

        ticket_eval, rental_eval = evaluator.evaluate([tickets, rentals], period)

        assert ticket_eval.amount == Money.of("150")
        # No per-label count for rentals: falls back to unitsSold
        assert rental_eval.amount == Money.of("30")

    def test_per_area_configured_area(self, evaluator):
        # $50/m² × 40 m² = $2,000
        charge = make_charge(PerAreaTerms(area_rate=Money.of("50"), area_m2=Decimal("40")))
        evaluation = evaluator.evaluate_one(charge, make_period())

        assert evaluation.amount == Money.of("2000")

    def test_per_area_leased_area_overrides(self, evaluator):
        charge = make_charge(PerAreaTerms(area_rate=Money.of("50"), area_m2=Decimal("40")))
        evaluation = evaluator.evaluate_one(charge, make_period(area="25.5"))

        assert evaluation.amount == Money.of("1275")

    def test_per_area_without_any_area_is_invalid(self, evaluator):
        charge = make_charge(PerAreaTerms(area_rate=Money.of("50")))
        evaluation = evaluator.evaluate_one(charge, make_period())

        assert evaluation.status is EvaluationStatus.INVALID
        assert evaluation.amount == Money(0)
        assert evaluation.defects

    def test_rounding_once_half_up(self, evaluator):
        # 0.5% × $1.00 = 0.5 cents -> 1 cent
        charge = make_charge(PercentageOfSalesTerms(Decimal("0.5")))
        evaluation = evaluator.evaluate_one(charge, make_period(sales="1.00"))

        assert evaluation.amount == Money(1)

    def test_rounding_half_even(self):
        evaluator = ChargeEvaluator(rounding=ROUND_HALF_EVEN)
        charge = make_charge(PercentageOfSalesTerms(Decimal("0.5")))
        evaluation = evaluator.evaluate_one(charge, make_period(sales="1.00"))

        assert evaluation.amount == Money(0)


class TestResolveArea:
    """Test the single area fallback."""

    def test_override_wins(self):
        terms = PerAreaTerms(area_rate=Money(1), area_m2=Decimal("40"))
        assert resolve_area(terms, make_period(area="10")) == Decimal("10")

    def test_falls_back_to_configured(self):
        terms = PerAreaTerms(area_rate=Money(1), area_m2=Decimal("40"))
        assert resolve_area(terms, make_period()) == Decimal("40")

    def test_zero_override_is_still_an_override(self):
        terms = PerAreaTerms(area_rate=Money(1), area_m2=Decimal("40"))
        assert resolve_area(terms, make_period(area="0")) == Decimal("0")

    def test_nothing_available(self):
        assert resolve_area(PerAreaTerms(area_rate=Money(1)), make_period()) is None


class TestSkipRules:
    """Test inactive and annual anchor skips."""

    @pytest.fixture
    def evaluator(self):
        return ChargeEvaluator()

    def test_inactive_is_skipped(self, evaluator):
        charge = make_charge(FixedTerms(Money.of("100")), is_active=False)
        evaluation = evaluator.evaluate_one(charge, make_period())

        assert evaluation.status is EvaluationStatus.SKIPPED
        assert evaluation.skip_reason is SkipReason.INACTIVE
        assert evaluation.amount == Money(0)

    @pytest.mark.parametrize(
        "start,applies",
        [
            (date(2025, 1, 1), False),
            (date(2025, 2, 28), False),
            (date(2024, 2, 29), False),
            (date(2025, 3, 1), True),
            (date(2025, 3, 2), True),
            (date(2025, 12, 31), True),
            (date(2031, 1, 15), False),
            (date(2031, 7, 1), True),
        ],
    )
    def test_anchor_recurs_every_year(self, evaluator, start, applies):
        charge = make_charge(FixedTerms(Money.of("100")), month=3, day=1)
        evaluation = evaluator.evaluate_one(charge, make_period(start=start))

        assert evaluation.applied is applies
        if not applies:
            assert evaluation.skip_reason is SkipReason.BEFORE_ANNUAL_ANCHOR
            assert evaluation.amount == Money(0)

    def test_period_spanning_anchor_uses_start_only(self, evaluator):
        charge = make_charge(FixedTerms(Money.of("100")), month=3, day=15)
        period = PeriodInput(
            period_start=date(2025, 3, 1),
            period_end=date(2025, 3, 31),
        )

        assert evaluator.evaluate_one(charge, period).applied is False

    def test_lone_day_anchor(self):
        charge = make_charge(FixedTerms(Money.of("100")), day=10)

        assert anchor_reached(charge, make_period(start=date(2025, 1, 9))) is False
        assert anchor_reached(charge, make_period(start=date(2025, 1, 10))) is True
        assert anchor_reached(charge, make_period(start=date(2025, 2, 1))) is True

    def test_no_anchor_always_applies(self):
        charge = make_charge(FixedTerms(Money.of("100")))

        assert anchor_reached(charge, make_period(start=date(2025, 1, 1))) is True

    def test_inactive_takes_precedence_over_malformed(self, evaluator):
        malformed = MalformedTerms(declared_type=ChargeType.FIXED, defects=("missing required parameter 'amount'",))
        charge = make_charge(malformed, is_active=False)

        assert evaluator.evaluate_one(charge, make_period()).skip_reason is SkipReason.INACTIVE


class TestInvalidCharges:
    """Test malformed charges are flagged, never silently zeroed."""

    @pytest.fixture
    def evaluator(self):
        return ChargeEvaluator()

    def test_malformed_is_invalid(self, evaluator):
        malformed = MalformedTerms(
            declared_type=ChargeType.PERCENTAGE_OF_SALES,
            defects=("missing required parameter 'percentage'",),
        )
        evaluation = evaluator.evaluate_one(make_charge(malformed), make_period(sales="1000"))

        assert evaluation.is_invalid
        assert evaluation.defects == ("missing required parameter 'percentage'",)

    def test_order_is_preserved(self, evaluator):
        charges = [
            make_charge(FixedTerms(Money.of("1")), charge_id=3),
            make_charge(FixedTerms(Money.of("2")), charge_id=1, is_active=False),
            make_charge(FixedTerms(Money.of("3")), charge_id=2),
        ]

        evaluations = evaluator.evaluate(charges, make_period())

        assert [e.charge.id for e in evaluations] == [3, 1, 2]
