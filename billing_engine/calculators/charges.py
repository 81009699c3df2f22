"""
Charge Evaluator

Computes the amount each charge contributes to a reporting period.
Amounts are integer minor units times exact Decimal factors. Each evaluation
keeps its exact product; rounding happens once, on the subtotal.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from ..models import (
    ChargeDefinition,
    ChargeEvaluation,
    EvaluationStatus,
    FixedTerms,
    MalformedTerms,
    PerAreaTerms,
    PercentageOfSalesTerms,
    PerUnitTerms,
    PeriodInput,
    SkipReason,
)
from ..money import Money

logger = logging.getLogger(__name__)

ONE_HUNDRED = Decimal("100")


def resolve_area(terms: PerAreaTerms, period: PeriodInput) -> Decimal | None:
    """The area a PerArea charge bills: the period's leased area, else the charge's own."""
    if period.leased_area_m2 is not None:
        return period.leased_area_m2
    return terms.area_m2


def anchor_reached(charge: ChargeDefinition, period: PeriodInput) -> bool:
    """
    True if the period starts on or after the charge's annual anchor.

    The anchor recurs every year and is inclusive: month=3, day=1 excludes
    periods starting in January or February and includes March 1 onward.
    Only the period start is tested.
    """
    anchor = charge.annual_anchor
    if anchor is None:
        return True
    start = period.period_start
    return (start.month, start.day) >= anchor


class ChargeEvaluator:
    """Evaluates every charge of a configuration for one period."""

    def __init__(self, rounding: str = ROUND_HALF_UP):
        self.rounding = rounding

    def evaluate(self, charges: Iterable[ChargeDefinition], period: PeriodInput) -> list[ChargeEvaluation]:
        """Evaluate charges in their stored order; one evaluation per charge."""
        evaluations = [self.evaluate_one(charge, period) for charge in charges]
        for evaluation in evaluations:
            logger.debug(
                f"Charge {evaluation.charge.id} ({evaluation.charge.type_name}): "
                f"{evaluation.status.value} {evaluation.amount}"
            )
        return evaluations

    def evaluate_one(self, charge: ChargeDefinition, period: PeriodInput) -> ChargeEvaluation:
        # Step 1: Inactive charges never bill
        if not charge.is_active:
            return self._skipped(charge, SkipReason.INACTIVE)

        # Step 2: Annual anchor not yet reached this year
        if not anchor_reached(charge, period):
            return self._skipped(charge, SkipReason.BEFORE_ANNUAL_ANCHOR)

        # Step 3: Stored parameters did not match the declared type
        terms = charge.terms
        if isinstance(terms, MalformedTerms):
            return self._invalid(charge, terms.defects)

        # Step 4: Compute by type
        if isinstance(terms, FixedTerms):
            exact = Decimal(terms.amount.minor)
        elif isinstance(terms, PercentageOfSalesTerms):
            exact = period.reported_sales.exact_times(terms.percentage / ONE_HUNDRED)
        elif isinstance(terms, PerUnitTerms):
            exact = terms.unit_rate.exact_times(period.units_for(terms.unit_label))
        elif isinstance(terms, PerAreaTerms):
            area = resolve_area(terms, period)
            if area is None:
                return self._invalid(charge, ("no leasedAreaM2 for the period and no areaM2 on the charge",))
            exact = terms.area_rate.exact_times(area)
        else:
            return self._invalid(charge, (f"unsupported terms {type(terms).__name__}",))

        return ChargeEvaluation(
            charge=charge,
            status=EvaluationStatus.APPLIED,
            amount=Money.rounded(exact, self.rounding),
            exact=exact,
        )

    def _skipped(self, charge: ChargeDefinition, reason: SkipReason) -> ChargeEvaluation:
        return ChargeEvaluation(charge=charge, status=EvaluationStatus.SKIPPED, skip_reason=reason)

    def _invalid(self, charge: ChargeDefinition, defects) -> ChargeEvaluation:
        return ChargeEvaluation(charge=charge, status=EvaluationStatus.INVALID, defects=tuple(defects))
