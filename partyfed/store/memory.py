"""In-memory party arena used for embedding and tests."""

from __future__ import annotations

import logging
from threading import RLock
from typing import Dict, Iterable, List, Optional

from partyfed.domain.models import Party, PartyStatus, PartyType
from partyfed.errors import InvalidInputError
from partyfed.store.base import PartyRepository

LOGGER = logging.getLogger(__name__)


class InMemoryPartyRepository(PartyRepository):
    """Dict-backed repository keyed by federated id.

    The lock guards the index only. Parties handed out are the stored
    objects themselves, so callers mutate them in place and ``save`` them
    back, as they would with an identity-mapped ORM session.
    """

    def __init__(self, parties: Optional[Iterable[Party]] = None) -> None:
        self._parties: Dict[str, Party] = {}
        self._lock = RLock()
        for party in parties or ():
            self.save(party)

    def __len__(self) -> int:
        with self._lock:
            return len(self._parties)

    def __contains__(self, party_id: object) -> bool:
        with self._lock:
            return party_id in self._parties

    def _values(self) -> List[Party]:
        with self._lock:
            return list(self._parties.values())

    def find_by_status(self, status: PartyStatus) -> List[Party]:
        return [party for party in self._values() if party.status is status]

    def find_by_federated_id(self, party_id: str) -> Optional[Party]:
        with self._lock:
            return self._parties.get(party_id)

    def find_by_source_system_and_source_id(
        self, source_system: str, source_id: str
    ) -> Optional[Party]:
        for party in self._values():
            for record in party.source_records:
                if record.source_system == source_system and record.source_id == source_id:
                    return party
        return None

    def find_by_legal_name_ignore_case(self, legal_name: str) -> List[Party]:
        if not legal_name:
            return []
        wanted = legal_name.strip().casefold()
        matches = []
        for party in self._values():
            if party.party_type is PartyType.INDIVIDUAL:
                continue
            name = party.attributes.legal_name
            if name and name.strip().casefold() == wanted:
                matches.append(party)
        return matches

    def save(self, party: Party) -> Party:
        if not party.id:
            raise InvalidInputError("party id is required")
        with self._lock:
            self._parties[party.id] = party
        LOGGER.debug("Saved party %s (%s)", party.id, party.status.value)
        return party

    def save_all(self, parties: Iterable[Party]) -> List[Party]:
        batch = list(parties)
        with self._lock:
            for party in batch:
                self.save(party)
        return batch

    def find_duplicate_candidates(self, threshold: float) -> List[Party]:
        scored = []
        for party in self._values():
            if party.status is PartyStatus.MERGED:
                continue
            best = max(
                (c.similarity_score for c in party.pending_duplicates if c.similarity_score >= threshold),
                default=None,
            )
            if best is not None:
                scored.append((best, party))
        scored.sort(key=lambda item: item[0], reverse=True)
        return [party for _, party in scored]

    def count(self) -> int:
        return len(self)

    def clear(self) -> None:
        with self._lock:
            self._parties.clear()
