"""
Read Interfaces Consumed by the Engine

The engine never fetches data itself. Collaborators implement these
protocols over whatever persistence they own; the in-memory versions below
hold a read-only snapshot and back the JSON adapters and the tests.
"""

from datetime import date
from typing import Iterable, Protocol

from .models import ChargeDefinition, PaymentConfiguration, config_row_may_apply


class ConfigStore(Protocol):
    """Source of candidate payment configurations."""

    def find_active(self, contract_id, as_of: date) -> list[PaymentConfiguration]:
        """Return configurations that may be in force for contract_id on as_of.

        Ambiguity resolution is the engine's job; a store may return more
        than one candidate.
        """
        ...


class ChargeStore(Protocol):
    """Source of the charge definitions owned by a configuration."""

    def list_for(self, configuration_id) -> list[ChargeDefinition]:
        """Return the configuration's charges in their stored order."""
        ...


class InMemoryConfigStore:
    """ConfigStore over a fixed list of configurations."""

    def __init__(self, configurations: Iterable[PaymentConfiguration] = (), rows: Iterable[dict] = ()):
        self._configurations = tuple(configurations)
        self._rows = tuple(rows)

    @classmethod
    def from_dicts(cls, rows: Iterable[dict]) -> "InMemoryConfigStore":
        """Store over raw rows, modelled on demand.

        Only rows that may be in force on the requested date are validated, so
        a defective row elsewhere in the snapshot does not block the calculation.
        """
        return cls(rows=rows)

    def find_active(self, contract_id, as_of: date) -> list[PaymentConfiguration]:
        loaded = [
            PaymentConfiguration.from_dict(row)
            for row in self._rows
            if config_row_may_apply(row, contract_id, as_of)
        ]
        return [
            config
            for config in self._configurations + tuple(loaded)
            if config.contract_id == contract_id and config.is_active and config.covers(as_of)
        ]


class InMemoryChargeStore:
    """ChargeStore over a fixed list of charges, preserving insertion order."""

    def __init__(self, charges: Iterable[ChargeDefinition] = ()):
        self._charges = tuple(charges)

    @classmethod
    def from_dicts(cls, rows: Iterable[dict]) -> "InMemoryChargeStore":
        return cls(ChargeDefinition.from_dict(row) for row in rows)

    def list_for(self, configuration_id) -> list[ChargeDefinition]:
        return [charge for charge in self._charges if charge.configuration_id == configuration_id]
