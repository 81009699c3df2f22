"""
Input Validation for the Billing Engine

Validates period measurements before any charge is evaluated.
Raises InvalidPeriodInput with a clear message for any constraint violation.
"""

from decimal import Decimal

from .errors import InvalidPeriodInput
from .models import PeriodInput


class InputValidator:
    """Validates period input according to business rules."""

    def validate(self, period: PeriodInput) -> None:
        """
        Run all validations. Raises InvalidPeriodInput if any check fails.
        """
        self._validate_dates(period)
        self._validate_measurements(period)

    def _validate_dates(self, period: PeriodInput) -> None:
        if period.period_end < period.period_start:
            raise InvalidPeriodInput(
                "periodEnd",
                f"cannot be before periodStart, got: {period.period_start} to {period.period_end}",
            )

    def _validate_measurements(self, period: PeriodInput) -> None:
        if period.reported_sales.is_negative:
            raise InvalidPeriodInput("reportedSales", f"cannot be negative, got: {period.reported_sales}")

        if period.units_sold < 0:
            raise InvalidPeriodInput("unitsSold", f"cannot be negative, got: {period.units_sold}")

        if period.leased_area_m2 is not None and period.leased_area_m2 < 0:
            raise InvalidPeriodInput("leasedAreaM2", f"cannot be negative, got: {period.leased_area_m2}")

        for label, count in period.units_by_label.items():
            if not isinstance(count, Decimal):
                raise InvalidPeriodInput(f"unitsByLabel.{label}", f"must be Decimal, got: {count!r}")
            if count < 0:
                raise InvalidPeriodInput(f"unitsByLabel.{label}", f"cannot be negative, got: {count}")
