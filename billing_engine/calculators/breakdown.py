"""
Breakdown Assembler

Aggregates charge evaluations and the guarantee outcome into one immutable
CalculationResult. Fails closed: a single invalid charge voids the result.

The subtotal is the exact sum of the applied charges, rounded once. Line
amounts are then whole minor units allotted by largest remainder, so the
breakdown always adds up to the subtotal.
"""

from datetime import date
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Sequence

from ..errors import InvalidChargeDefinition
from ..models import (
    BreakdownLine,
    CalculationResult,
    ChargeEvaluation,
    GuaranteeOutcome,
)
from ..money import Money


def subtotal_of(evaluations: Sequence[ChargeEvaluation], rounding: str = ROUND_HALF_UP) -> Money:
    """Exact sum of the applied evaluations, rounded once to a whole minor unit."""
    exact = sum((evaluation.exact_minor for evaluation in evaluations if evaluation.applied), Decimal(0))
    return Money.rounded(exact, rounding)


def allot_line_amounts(evaluations: Sequence[ChargeEvaluation], subtotal: Money) -> list[Money]:
    """
    Whole-minor-unit amount per evaluation, summing to subtotal.

    Each applied line gets the floor of its exact amount; the cents left over
    go one each to the lines with the largest fractional parts, earlier lines
    first on ties. Non-applied lines get zero.
    """
    floors = {}
    fractions = {}
    for index, evaluation in enumerate(evaluations):
        if evaluation.applied:
            exact = evaluation.exact_minor
            floors[index] = int(exact.to_integral_value(rounding=ROUND_FLOOR))
            fractions[index] = exact - floors[index]

    remainder = subtotal.minor - sum(floors.values())
    if not 0 <= remainder <= len(floors):
        raise ValueError(f"Subtotal {subtotal} cannot be allotted over the applied charges")

    by_fraction = sorted(fractions, key=fractions.__getitem__, reverse=True)
    bumped = set(by_fraction[:remainder])
    return [
        Money(floors[index] + (1 if index in bumped else 0)) if index in floors else Money.zero()
        for index in range(len(evaluations))
    ]


def check_evaluations(evaluations: Sequence[ChargeEvaluation]) -> None:
    """Raise InvalidChargeDefinition naming every invalid evaluation, in definition order."""
    defects = {
        evaluation.charge.id: list(evaluation.defects)
        for evaluation in evaluations
        if evaluation.is_invalid
    }
    if defects:
        raise InvalidChargeDefinition(defects)


class BreakdownAssembler:
    """Builds the ordered, reproducible breakdown of a calculation."""

    def __init__(self, rounding: str = ROUND_HALF_UP):
        self.rounding = rounding

    def assemble(
        self,
        evaluations: Sequence[ChargeEvaluation],
        outcome: GuaranteeOutcome,
        contract_id=None,
        configuration_id=None,
        period_start: date | None = None,
        period_end: date | None = None,
    ) -> CalculationResult:
        """
        Assemble the result.

        Every evaluation appears in the breakdown, in definition order;
        skipped charges carry amount 0 and their reason. Line amounts add
        up to the subtotal exactly.

        Raises:
            InvalidChargeDefinition: any evaluation is invalid.
            ValueError: outcome was enforced against a different subtotal.
        """
        check_evaluations(evaluations)

        subtotal = subtotal_of(evaluations, self.rounding)
        expected_final = subtotal + outcome.adjustment
        if outcome.final_amount != expected_final:
            raise ValueError(
                f"Guarantee outcome does not match subtotal {subtotal}: "
                f"final {outcome.final_amount}, adjustment {outcome.adjustment}"
            )

        amounts = allot_line_amounts(evaluations, subtotal)
        breakdown = tuple(self._line(evaluation, amount) for evaluation, amount in zip(evaluations, amounts))

        return CalculationResult(
            subtotal=subtotal,
            charge_breakdown=breakdown,
            minimum_guarantee_applied=outcome.applied,
            guarantee_adjustment=outcome.adjustment,
            final_amount=outcome.final_amount,
            contract_id=contract_id,
            configuration_id=configuration_id,
            period_start=period_start,
            period_end=period_end,
        )

    def _line(self, evaluation: ChargeEvaluation, amount: Money) -> BreakdownLine:
        charge = evaluation.charge
        return BreakdownLine(
            charge_id=charge.id,
            name=charge.name,
            type=charge.type_name,
            amount=amount,
            applied=evaluation.applied,
            skip_reason=evaluation.skip_reason,
        )
