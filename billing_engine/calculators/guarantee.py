"""
Guarantee Enforcer

Applies the contractual minimum guarantee to the charge subtotal.
"""

from ..models import GuaranteeOutcome, PaymentConfiguration
from ..money import Money


class GuaranteeEnforcer:
    """Tops the subtotal up to the configured minimum guarantee."""

    def enforce(self, config: PaymentConfiguration, subtotal: Money) -> GuaranteeOutcome:
        """
        Compare subtotal against the minimum guarantee.

        - No guarantee configured: final = subtotal, no adjustment.
        - Subtotal reaches the guarantee: final = subtotal, no adjustment.
        - Subtotal below the guarantee: final = guarantee,
          adjustment = guarantee - subtotal.

        The guarantee is never prorated here; a prorated period is billed
        under its own configuration.
        """
        if not config.has_minimum_guarantee:
            return GuaranteeOutcome(final_amount=subtotal, adjustment=Money.zero(), applied=False)

        minimum = config.minimum_guarantee_amount
        if subtotal >= minimum:
            return GuaranteeOutcome(final_amount=subtotal, adjustment=Money.zero(), applied=False)

        return GuaranteeOutcome(final_amount=minimum, adjustment=minimum - subtotal, applied=True)
