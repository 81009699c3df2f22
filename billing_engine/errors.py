"""
Typed Errors for the Billing Engine

Every failure the engine can report is a distinct class with a stable
``code`` and structured attributes, so callers catch by type and never parse
messages.

    BillingEngineError
    +-- ConfigurationError
    |   +-- ConfigNotFound              (no applicable billing exists yet)
    |   +-- ConfigAmbiguous             (fix your data)
    |   +-- InvalidPaymentConfiguration (fix your data)
    +-- InvalidChargeDefinition         (fix your data)
    +-- InputError
        +-- InvalidPeriodInput
        +-- InvalidMoneyError
"""

from datetime import date


class BillingEngineError(Exception):
    """Base class for all engine errors."""

    code: str = "BILLING_ENGINE_ERROR"
    is_data_defect: bool = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"code": self.code, "error": self.message}


# =============================================================================
# CONFIGURATION
# =============================================================================


class ConfigurationError(BillingEngineError):
    code = "CONFIGURATION_ERROR"


class ConfigNotFound(ConfigurationError):
    """No active payment configuration covers the requested date."""

    code = "CONFIG_NOT_FOUND"

    def __init__(self, contract_id, as_of: date):
        self.contract_id = contract_id
        self.as_of = as_of
        super().__init__(
            f"No active payment configuration for contract {contract_id} on {as_of.isoformat()}"
        )

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "contractId": self.contract_id,
            "asOfDate": self.as_of.isoformat(),
        }


class ConfigAmbiguous(ConfigurationError):
    """More than one active configuration covers the same date."""

    code = "CONFIG_AMBIGUOUS"
    is_data_defect = True

    def __init__(self, contract_id, as_of: date, configuration_ids):
        self.contract_id = contract_id
        self.as_of = as_of
        self.configuration_ids = tuple(configuration_ids)
        ids = ", ".join(str(i) for i in self.configuration_ids)
        super().__init__(
            f"Overlapping payment configurations for contract {contract_id} "
            f"on {as_of.isoformat()}: {ids}"
        )

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "contractId": self.contract_id,
            "asOfDate": self.as_of.isoformat(),
            "configurationIds": list(self.configuration_ids),
        }


class InvalidPaymentConfiguration(ConfigurationError, ValueError):
    """A configuration record violates its own invariants."""

    code = "INVALID_PAYMENT_CONFIGURATION"
    is_data_defect = True

    def __init__(self, configuration_id, reason: str):
        self.configuration_id = configuration_id
        self.reason = reason
        super().__init__(f"Payment configuration {configuration_id}: {reason}")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "configurationId": self.configuration_id, "reason": self.reason}


# =============================================================================
# CHARGES
# =============================================================================


class InvalidChargeDefinition(BillingEngineError):
    """
    One or more charges cannot be evaluated.

    Carries every offending charge so all defects can be fixed in one pass.
    ``defects`` maps charge id to the list of problems found for it.
    """

    code = "INVALID_CHARGE_DEFINITION"
    is_data_defect = True

    def __init__(self, defects: dict):
        self.defects = {charge_id: list(problems) for charge_id, problems in defects.items()}
        self.charge_ids = tuple(self.defects)
        details = "; ".join(
            f"{charge_id}: {', '.join(problems)}" for charge_id, problems in self.defects.items()
        )
        super().__init__(f"Invalid charge definitions ({details})")

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "chargeIds": list(self.charge_ids),
            "defects": {str(k): v for k, v in self.defects.items()},
        }


# =============================================================================
# INPUT
# =============================================================================


class InputError(BillingEngineError, ValueError):
    code = "INPUT_ERROR"


class InvalidPeriodInput(InputError):
    code = "INVALID_PERIOD_INPUT"

    def __init__(self, field_name: str, reason: str):
        self.field_name = field_name
        self.reason = reason
        super().__init__(f"{field_name} {reason}")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "field": self.field_name}


class InvalidMoneyError(InputError):
    code = "INVALID_MONEY"

    def __init__(self, value, field_name: str, reason: str = "is not a valid decimal amount"):
        self.value = value
        self.field_name = field_name
        super().__init__(f"{field_name} {reason}: {value!r}")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "field": self.field_name}
