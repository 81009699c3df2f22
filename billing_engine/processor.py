"""
Billing Engine - Main Orchestrator

Coordinates one payment calculation through discrete, testable steps.
"""

import json
import logging
import os
from datetime import date
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal
from typing import Any, Dict

from .calculators import BreakdownAssembler, ChargeEvaluator, GuaranteeEnforcer
from .calculators.breakdown import check_evaluations, subtotal_of
from .errors import BillingEngineError, ConfigAmbiguous, InvalidChargeDefinition
from .models import CalculationResult, PeriodInput, parse_date
from .output import OutputBuilder
from .resolver import ConfigResolver
from .stores import ChargeStore, ConfigStore, InMemoryChargeStore, InMemoryConfigStore
from .validators import InputValidator

logger = logging.getLogger(__name__)

ROUNDING_MODES = {
    "HALF_UP": ROUND_HALF_UP,
    "HALF_EVEN": ROUND_HALF_EVEN,
}


def rounding_from_env(default: str = "HALF_UP") -> str:
    """Read BILLING_ROUNDING (HALF_UP or HALF_EVEN) into a decimal rounding constant."""
    name = os.environ.get("BILLING_ROUNDING", default).strip().upper()
    if name not in ROUNDING_MODES:
        raise ValueError(f"Invalid BILLING_ROUNDING: {name}. Must be one of {sorted(ROUNDING_MODES)}")
    return ROUNDING_MODES[name]


class BillingEngine:
    """
    Main orchestrator for payment calculation.

    Implements a clear pipeline pattern:
    1. Validate Input
    2. Resolve Configuration
    3. Load Charges
    4. Evaluate Charges
    5. Enforce Minimum Guarantee
    6. Assemble Breakdown
    """

    def __init__(self, config_store: ConfigStore, charge_store: ChargeStore, rounding: str = ROUND_HALF_UP):
        self.charge_store = charge_store
        self.validator = InputValidator()
        self.resolver = ConfigResolver(config_store)
        self.rounding = rounding
        self.evaluator = ChargeEvaluator(rounding=rounding)
        self.guarantee_enforcer = GuaranteeEnforcer()
        self.assembler = BreakdownAssembler(rounding=rounding)
        self.output_builder = OutputBuilder()

    def calculate(self, contract_id, as_of: date, period: PeriodInput) -> CalculationResult:
        """
        Calculate the payment owed for one period.

        Args:
            contract_id: Contract whose configuration applies
            as_of: Reference date used to select the configuration
            period: Measurements for the period

        Returns:
            CalculationResult, owned by the caller

        Raises:
            InvalidPeriodInput, ConfigNotFound, ConfigAmbiguous,
            InvalidChargeDefinition: the first failure stops the pipeline.
        """
        # Step 1: Validate
        self.validator.validate(period)

        # Step 2: Resolve configuration
        try:
            config = self.resolver.resolve(contract_id, as_of)
        except ConfigAmbiguous as e:
            logger.warning(f"Ambiguous configuration: {e.message}")
            raise

        # Step 3: Load charges
        charges = self.charge_store.list_for(config.id)

        # Step 4: Evaluate each charge
        evaluations = self.evaluator.evaluate(charges, period)
        try:
            check_evaluations(evaluations)
        except InvalidChargeDefinition as e:
            logger.warning(f"Configuration {config.id} has invalid charges: {e.message}")
            raise

        # Step 5: Enforce minimum guarantee
        outcome = self.guarantee_enforcer.enforce(config, subtotal_of(evaluations, self.rounding))

        # Step 6: Assemble
        result = self.assembler.assemble(
            evaluations,
            outcome,
            contract_id=contract_id,
            configuration_id=config.id,
            period_start=period.period_start,
            period_end=period.period_end,
        )

        logger.info(
            f"Calculated contract {contract_id} with configuration {config.id}: "
            f"subtotal {result.subtotal}, final {result.final_amount}"
            + (" (minimum guarantee applied)" if result.minimum_guarantee_applied else "")
        )
        return result

    def calculate_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Calculate from a raw request dictionary.

        Convenience method for API usage. Expects contractId, asOfDate and
        period; asOfDate defaults to the period start.
        """
        period = PeriodInput.from_dict(data["period"])
        as_of_raw = data.get("asOfDate", data.get("as_of_date"))
        as_of = parse_date(as_of_raw, "asOfDate") if as_of_raw else period.period_start
        contract_id = data.get("contractId", data.get("contract_id"))

        result = self.calculate(contract_id, as_of, period)
        return self.output_builder.build(result)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def calculate_from_snapshot(payload: Dict[str, Any], rounding: str = ROUND_HALF_UP) -> Dict[str, Any]:
    """
    Calculate from a self-contained request snapshot.

    The payload carries the configurations and charges the caller already
    fetched, alongside contractId, asOfDate and period.
    """
    engine = BillingEngine(
        InMemoryConfigStore.from_dicts(payload.get("configurations", [])),
        InMemoryChargeStore.from_dicts(payload.get("charges", [])),
        rounding=rounding,
    )
    return engine.calculate_from_dict(payload)


def calculate_from_json(json_input: str, rounding: str = ROUND_HALF_UP) -> str:
    """
    Calculate from a JSON snapshot string and return a JSON string.

    Errors come back as a structured document instead of raising.
    """
    try:
        payload = json.loads(json_input, parse_float=Decimal)
        result = calculate_from_snapshot(payload, rounding=rounding)
        return json.dumps(result, indent=2)

    except BillingEngineError as e:
        return json.dumps({**e.to_dict(), "status": "failed"}, indent=2)

    except (ValueError, KeyError, TypeError) as e:
        return json.dumps({"error": str(e), "status": "validation_failed"}, indent=2)
