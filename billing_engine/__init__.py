"""
CONCESSION BILLING ENGINE
Computes the periodic payment owed under a concession contract.
"""

from .errors import (
    BillingEngineError,
    ConfigAmbiguous,
    ConfigNotFound,
    InvalidChargeDefinition,
    InvalidPaymentConfiguration,
    InvalidPeriodInput,
)
from .models import CalculationResult, ChargeDefinition, PaymentConfiguration, PeriodInput
from .money import Money
from .processor import BillingEngine

__all__ = [
    'BillingEngine',
    'BillingEngineError',
    'CalculationResult',
    'ChargeDefinition',
    'ConfigAmbiguous',
    'ConfigNotFound',
    'InvalidChargeDefinition',
    'InvalidPaymentConfiguration',
    'InvalidPeriodInput',
    'Money',
    'PaymentConfiguration',
    'PeriodInput',
]
