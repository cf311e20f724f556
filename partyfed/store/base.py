"""
PartyRepository: Abstract base class for party persistence.

The resolution services only ever talk to storage through this contract,
so any backend (relational, document, in-memory) can sit behind them.
Parties are keyed by their federated id; relationships between parties are
stored on the parties themselves as id-keyed records.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from partyfed.domain.models import Party, PartyStatus


class PartyRepository(ABC):
    """
    Abstract base class for party repository implementations.

    Implementations must be safe to call from the batch pipeline's worker
    threads. They are not required to serialize concurrent updates of the
    same party; the last ``save`` wins.
    """

    @abstractmethod
    def find_by_status(self, status: PartyStatus) -> List[Party]:
        """
        Return every party currently in ``status``.

        Args:
            status: Lifecycle status to filter on

        Returns:
            Matching parties (possibly empty), in insertion order
        """
        pass

    @abstractmethod
    def find_by_federated_id(self, party_id: str) -> Optional[Party]:
        """
        Retrieve a party by its federated id.

        Args:
            party_id: Federated party id

        Returns:
            The party or None if not found
        """
        pass

    @abstractmethod
    def find_by_source_system_and_source_id(
        self, source_system: str, source_id: str
    ) -> Optional[Party]:
        """
        Retrieve the party that carries a given source record.

        Args:
            source_system: Producing system identifier
            source_id: Key of the party inside that system

        Returns:
            The owning party or None if not found
        """
        pass

    @abstractmethod
    def find_by_legal_name_ignore_case(self, legal_name: str) -> List[Party]:
        """Return organizations whose legal name equals ``legal_name`` ignoring case."""
        pass

    @abstractmethod
    def save(self, party: Party) -> Party:
        """
        Insert or replace a party.

        Args:
            party: Party to persist

        Returns:
            The persisted party
        """
        pass

    def save_all(self, parties: Iterable[Party]) -> List[Party]:
        """Persist several parties; backends may override with a bulk write."""
        return [self.save(party) for party in parties]

    @abstractmethod
    def find_duplicate_candidates(self, threshold: float) -> List[Party]:
        """
        Return non-merged parties with a pending duplicate candidate at or
        above ``threshold``, highest candidate score first.

        Args:
            threshold: Minimum similarity score in [0, 1]
        """
        pass

    def count(self) -> int:
        """Total number of stored parties, regardless of status."""
        return sum(len(self.find_by_status(status)) for status in PartyStatus)
