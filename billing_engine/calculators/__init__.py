"""
Calculators Package

Provides all calculation components for a payment calculation.
"""

from .breakdown import BreakdownAssembler
from .charges import ChargeEvaluator
from .guarantee import GuaranteeEnforcer

__all__ = [
    "ChargeEvaluator",
    "GuaranteeEnforcer",
    "BreakdownAssembler",
]
