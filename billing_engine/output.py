"""
Output Builder

Renders a CalculationResult into the wire response. Money goes out as
two-decimal strings so no float ever carries an amount across a process
boundary.
"""

from .models import BreakdownLine, CalculationResult, ChargeType, SkipReason
from .money import Money, fmt


def to_wire(value: Money) -> str:
    """Money as a decimal string with exactly two places, e.g. "10000.00"."""
    return str(value)


_SKIP_DESCRIPTIONS = {
    SkipReason.INACTIVE: "Charge is inactive",
    SkipReason.BEFORE_ANNUAL_ANCHOR: "Period starts before the charge's annual start date",
}


class OutputBuilder:
    """Builds the final output response."""

    def build(self, result: CalculationResult) -> dict:
        """Construct the wire dict for a calculation result."""
        return {
            "contractId": result.contract_id,
            "configurationId": result.configuration_id,
            "periodStart": result.period_start.isoformat() if result.period_start else None,
            "periodEnd": result.period_end.isoformat() if result.period_end else None,
            "subtotal": to_wire(result.subtotal),
            "chargeBreakdown": [self._build_line(line) for line in result.charge_breakdown],
            "minimumGuaranteeApplied": result.minimum_guarantee_applied,
            "guaranteeAdjustment": to_wire(result.guarantee_adjustment),
            "finalAmount": to_wire(result.final_amount),
            "totalsByType": {name: to_wire(total) for name, total in result.totals_by_type().items()},
            "summary": self._build_summary(result),
        }

    def _build_line(self, line: BreakdownLine) -> dict:
        return {
            "chargeId": line.charge_id,
            "name": line.name,
            "type": line.type,
            "amount": to_wire(line.amount),
            "applied": line.applied,
            "skipReason": line.skip_reason.value if line.skip_reason else None,
            "description": self._describe_line(line),
        }

    def _describe_line(self, line: BreakdownLine) -> str:
        if not line.applied:
            return _SKIP_DESCRIPTIONS.get(line.skip_reason, "Charge not applied")
        labels = {
            ChargeType.FIXED.value: "Fixed charge",
            ChargeType.PERCENTAGE_OF_SALES.value: "Percentage of reported sales",
            ChargeType.PER_UNIT.value: "Units sold × unit rate",
            ChargeType.PER_AREA.value: "Leased area × rate per m²",
        }
        return f"{labels.get(line.type, line.type)}: {fmt(line.amount)}"

    def _build_summary(self, result: CalculationResult) -> str:
        applied = sum(1 for line in result.charge_breakdown if line.applied)
        total = len(result.charge_breakdown)
        if result.minimum_guarantee_applied:
            return (
                f"{applied} of {total} charges applied; subtotal {fmt(result.subtotal)} is below the "
                f"minimum guarantee, adjusted by {fmt(result.guarantee_adjustment)} "
                f"to {fmt(result.final_amount)}"
            )
        return f"{applied} of {total} charges applied; amount due {fmt(result.final_amount)}"
