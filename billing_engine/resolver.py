"""
Config Resolver

Selects the single payment configuration in force for a contract on a date.
"""

import logging
from datetime import date
from typing import Iterable

from .errors import ConfigAmbiguous, ConfigNotFound
from .models import PaymentConfiguration
from .stores import ConfigStore

logger = logging.getLogger(__name__)


def _sorted_ids(ids) -> list:
    """Ids in natural order; by their text when they do not compare."""
    ids = list(ids)
    try:
        return sorted(ids)
    except TypeError:
        return sorted(ids, key=str)


class ConfigResolver:
    """Resolves exactly one configuration or fails; never guesses."""

    def __init__(self, store: ConfigStore):
        self.store = store

    def resolve(self, contract_id, as_of: date) -> PaymentConfiguration:
        """
        Return the configuration covering as_of.

        Raises:
            ConfigNotFound: no active configuration covers the date.
            ConfigAmbiguous: more than one does (overlapping ranges upstream).
        """
        candidates = self.store.find_active(contract_id, as_of)
        return self.select(contract_id, as_of, candidates)

    @staticmethod
    def select(contract_id, as_of: date, candidates: Iterable[PaymentConfiguration]) -> PaymentConfiguration:
        """Pure selection over candidates; re-applies the activity and date filter."""
        matches = [
            config
            for config in candidates
            if config.contract_id == contract_id and config.is_active and config.covers(as_of)
        ]

        if not matches:
            raise ConfigNotFound(contract_id, as_of)

        if len(matches) > 1:
            ids = _sorted_ids(config.id for config in matches)
            raise ConfigAmbiguous(contract_id, as_of, ids)

        config = matches[0]
        logger.debug(f"Resolved configuration {config.id} for contract {contract_id} on {as_of}")
        return config
