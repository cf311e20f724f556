"""Resolve names mentioned by upstream producers (documents, extractions) to parties.

A reference resolves, in order, to an exact legal-name match, a fuzzy match
among active parties, an existing placeholder with the same name, or a newly
created PLACEHOLDER party awaiting verification.
"""

import logging
from dataclasses import fields, replace
from typing import Any, List, Mapping, Optional

from partyfed.domain.factories import new_individual, new_organization
from partyfed.domain.models import Party, PartyStatus, PartyType
from partyfed.errors import IllegalStateError, InvalidInputError
from partyfed.resolution.similarity import name_similarity
from partyfed.resolution.utils import _record_resolution_event
from partyfed.store.base import PartyRepository

LOGGER = logging.getLogger(__name__)

PLACEHOLDER_CONFIDENCE = 0.70
FUZZY_MATCH_THRESHOLD = 0.85


class EntityReferenceResolver:
    """Turns a free-text entity reference into a Party, creating placeholders as needed."""

    def __init__(
        self,
        repository: PartyRepository,
        fuzzy_threshold: float = FUZZY_MATCH_THRESHOLD,
        placeholder_confidence: float = PLACEHOLDER_CONFIDENCE,
    ):
        self.repository = repository
        self.fuzzy_threshold = fuzzy_threshold
        self.placeholder_confidence = placeholder_confidence

    def resolve_reference(
        self,
        name: str,
        jurisdiction: Optional[str] = None,
        party_type: Optional[PartyType] = None,
        context: str = "",
    ) -> Party:
        """Resolve ``name`` to an existing party or a new placeholder.

        Args:
            name: Entity name as mentioned upstream
            jurisdiction: Jurisdiction, when known; breaks ties between exact matches
            party_type: Kind of party referenced (ORGANIZATION when omitted)
            context: Free-text description of where the reference came from

        Returns:
            The matched or newly created party

        Raises:
            InvalidInputError: If ``name`` is empty or blank
        """
        if name is None or not name.strip():
            raise InvalidInputError("Entity name cannot be null or empty")
        name = name.strip()
        party_type = party_type or PartyType.ORGANIZATION
        LOGGER.info(
            "Resolving entity reference: name=%s jurisdiction=%s type=%s context=%s",
            name, jurisdiction, party_type.value, context,
        )

        exact = [
            party
            for party in self.repository.find_by_legal_name_ignore_case(name)
            if party.status is not PartyStatus.MERGED
        ]
        if exact:
            match = self._best_exact_match(exact, jurisdiction)
            LOGGER.info("Exact match for %r: %s (%s)", name, match.id, match.status.value)
            return match

        fuzzy = self._best_fuzzy_match(name, party_type)
        if fuzzy is not None:
            LOGGER.info("Fuzzy match for %r: %s (%s)", name, fuzzy.id, fuzzy.display_name)
            return fuzzy

        wanted = name.casefold()
        for placeholder in self.repository.find_by_status(PartyStatus.PLACEHOLDER):
            if placeholder.display_name.casefold() == wanted:
                LOGGER.info("Existing placeholder for %r: %s", name, placeholder.id)
                return placeholder

        placeholder = self._create_placeholder(name, jurisdiction, party_type)
        saved = self.repository.save(placeholder)
        LOGGER.info("Created placeholder for %r: %s", name, saved.id)
        _record_resolution_event(
            "placeholder.created",
            {
                "party_id": saved.id,
                "name": name,
                "jurisdiction": jurisdiction,
                "party_type": party_type.value,
                "context": context,
            },
        )
        return saved

    def upgrade_placeholder(self, party: Party, verified_data: Mapping[str, Any]) -> Party:
        """Promote a placeholder to ACTIVE after verification.

        Args:
            party: PLACEHOLDER party
            verified_data: Verified attribute values keyed by attribute name

        Raises:
            IllegalStateError: If ``party`` is not a placeholder
            InvalidInputError: If ``verified_data`` names unknown attributes
        """
        if party.status is not PartyStatus.PLACEHOLDER:
            raise IllegalStateError(f"Can only upgrade PLACEHOLDER parties, {party.id} is {party.status.value}")

        known = {attribute.name for attribute in fields(party.attributes)}
        unknown = sorted(set(verified_data) - known)
        if unknown:
            raise InvalidInputError(f"Unknown attributes for {party.party_type.value}: {', '.join(unknown)}")

        party.attributes = replace(party.attributes, **dict(verified_data))
        party.status = PartyStatus.ACTIVE
        party.set_confidence(1.0)
        party.mark_updated()
        upgraded = self.repository.save(party)
        _record_resolution_event(
            "placeholder.upgraded",
            {"party_id": upgraded.id, "fields": sorted(verified_data)},
        )
        return upgraded

    @staticmethod
    def _best_exact_match(matches: List[Party], jurisdiction: Optional[str]) -> Party:
        active = [party for party in matches if party.status is PartyStatus.ACTIVE]
        if jurisdiction:
            wanted = jurisdiction.casefold()
            for party in active:
                found = getattr(party.attributes, "jurisdiction", None)
                if found and found.casefold() == wanted:
                    return party
        return active[0] if active else matches[0]

    def _best_fuzzy_match(self, name: str, party_type: PartyType) -> Optional[Party]:
        best: Optional[Party] = None
        best_score = self.fuzzy_threshold
        for party in self.repository.find_by_status(PartyStatus.ACTIVE):
            if (party.party_type is PartyType.INDIVIDUAL) != (party_type is PartyType.INDIVIDUAL):
                continue
            candidate_name = party.display_name
            if not candidate_name:
                continue
            score = name_similarity(name, candidate_name)
            if score >= best_score and (best is None or score > best_score):
                best, best_score = party, score
        return best

    def _create_placeholder(self, name: str, jurisdiction: Optional[str], party_type: PartyType) -> Party:
        if party_type is PartyType.INDIVIDUAL:
            first, _, last = name.rpartition(" ")
            return new_individual(
                first or None,
                last,
                nationality=jurisdiction,
                status=PartyStatus.PLACEHOLDER,
                confidence=self.placeholder_confidence,
            )
        return new_organization(
            name,
            jurisdiction=jurisdiction,
            status=PartyStatus.PLACEHOLDER,
            confidence=self.placeholder_confidence,
            party_type=party_type,
        )
