"""Rule-based candidate matching for entity resolution.

Every party pair is scored from whichever signals carry data on both sides;
a signal missing on either side is left out of the weighted average entirely
rather than counted as a mismatch.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from partyfed.domain.models import (
    IndividualAttributes,
    OrganizationAttributes,
    Party,
    PartyStatus,
    PartyType,
)
from partyfed.errors import InvalidInputError
from partyfed.resolution.address import address_similarity
from partyfed.resolution.config import MatchingConfig
from partyfed.resolution.models import MatchAction, MatchCandidate
from partyfed.resolution.similarity import name_similarity
from partyfed.resolution.utils import _record_resolution_event, weighted_average

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Signal:
    field: str
    score: float
    weight: float
    matched: bool


def _text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _same_ignore_case(a: str, b: str) -> bool:
    return a.casefold() == b.casefold()


class EntityMatcher:
    """Scores parties against a pool and proposes merge candidates."""

    def __init__(self, config: Optional[MatchingConfig] = None):
        """Initialize matcher with configuration.

        Args:
            config: MatchingConfig with thresholds and weights (defaults used if None)
        """
        self.config = config or MatchingConfig()

    def find_candidates(
        self,
        party: Party,
        existing_parties: Iterable[Party],
    ) -> List[MatchCandidate]:
        """Return pool parties scoring at or above the manual-review threshold.

        Args:
            party: Incoming party
            existing_parties: Pool to match against; the party itself, parties
                of another type and merged parties are skipped

        Returns:
            MatchCandidates sorted by score, highest first
        """
        if party is None:
            raise InvalidInputError("party is required for matching")

        candidates: List[MatchCandidate] = []
        compared = 0
        for existing in existing_parties:
            if existing.id == party.id:
                continue
            if existing.party_type is not party.party_type:
                continue
            if existing.status is PartyStatus.MERGED:
                continue

            compared += 1
            score, fields = self._score(party, existing)
            if score < self.config.manual_review_threshold:
                continue
            candidates.append(MatchCandidate(
                existing_party=existing,
                score=score,
                matching_fields=frozenset(fields),
                recommended_action=self.recommend(score),
            ))

        candidates.sort(key=lambda candidate: candidate.score, reverse=True)
        LOGGER.debug(
            "Party %s: %d candidates from %d comparable parties",
            party.id, len(candidates), compared,
        )
        _record_resolution_event(
            "matching.complete",
            {
                "party_id": party.id,
                "compared": compared,
                "candidates": len(candidates),
                "best_score": candidates[0].score if candidates else None,
            },
        )
        return candidates

    def score_pair(self, a: Party, b: Party) -> float:
        """Composite similarity of two parties of the same type (0.0 across types)."""
        if a.party_type is not b.party_type:
            return 0.0
        score, _ = self._score(a, b)
        return score

    def recommend(self, score: float) -> MatchAction:
        if score >= self.config.auto_merge_threshold:
            return MatchAction.AUTO_MERGE
        if score >= self.config.manual_review_threshold:
            return MatchAction.MANUAL_REVIEW
        return MatchAction.CREATE_NEW

    def _score(self, a: Party, b: Party) -> Tuple[float, List[str]]:
        if a.party_type is PartyType.INDIVIDUAL:
            signals = self._individual_signals(a.attributes, b.attributes)
        else:
            signals = self._organization_signals(a.attributes, b.attributes)

        fields = [signal.field for signal in signals if signal.matched]
        if any(signal.field == "lei" and signal.matched for signal in signals):
            return 1.0, fields
        score = weighted_average([(signal.score, signal.weight) for signal in signals])
        return score, fields

    def _organization_signals(
        self,
        a: OrganizationAttributes,
        b: OrganizationAttributes,
    ) -> List[_Signal]:
        cfg = self.config
        signals: List[_Signal] = []

        lei_a, lei_b = _text(a.lei), _text(b.lei)
        if lei_a and lei_b:
            equal = lei_a.upper() == lei_b.upper()
            signals.append(_Signal("lei", 1.0 if equal else 0.0, cfg.lei_weight, equal))

        reg_a, reg_b = _text(a.registration_number), _text(b.registration_number)
        jur_a, jur_b = _text(a.jurisdiction), _text(b.jurisdiction)
        if reg_a and reg_b and jur_a and jur_b:
            equal = reg_a == reg_b and _same_ignore_case(jur_a, jur_b)
            signals.append(_Signal("registration_number", 1.0 if equal else 0.0, cfg.registration_weight, equal))

        name_a, name_b = _text(a.legal_name), _text(b.legal_name)
        if name_a and name_b:
            similarity = name_similarity(name_a, name_b)
            signals.append(_Signal(
                "legal_name", similarity, cfg.name_weight, similarity >= cfg.name_match_threshold
            ))

        if jur_a and jur_b:
            equal = _same_ignore_case(jur_a, jur_b)
            signals.append(_Signal("jurisdiction", 1.0 if equal else 0.0, cfg.jurisdiction_weight, equal))

        code_a, code_b = _text(a.industry_code), _text(b.industry_code)
        if code_a and code_b:
            # Scored only; never listed in matching_fields.
            signals.append(_Signal("industry_code", 1.0 if code_a == code_b else 0.0, cfg.industry_weight, False))

        if a.registered_address is not None and b.registered_address is not None:
            similarity = address_similarity(a.registered_address, b.registered_address)
            signals.append(_Signal(
                "registered_address",
                similarity,
                cfg.address_weight,
                similarity >= cfg.address_match_threshold,
            ))
        return signals

    def _individual_signals(
        self,
        a: IndividualAttributes,
        b: IndividualAttributes,
    ) -> List[_Signal]:
        cfg = self.config
        signals: List[_Signal] = []

        id_a, id_b = _text(a.national_id), _text(b.national_id)
        if id_a and id_b:
            equal = id_a == id_b
            signals.append(_Signal("national_id", 1.0 if equal else 0.0, cfg.national_id_weight, equal))

        full_a, full_b = a.full_name, b.full_name
        if full_a and full_b:
            similarity = name_similarity(full_a, full_b)
            signals.append(_Signal(
                "full_name", similarity, cfg.name_weight, similarity >= cfg.name_match_threshold
            ))

        if a.date_of_birth is not None and b.date_of_birth is not None:
            equal = a.date_of_birth == b.date_of_birth
            signals.append(_Signal("date_of_birth", 1.0 if equal else 0.0, cfg.date_of_birth_weight, equal))

        nat_a, nat_b = _text(a.nationality), _text(b.nationality)
        if nat_a and nat_b:
            equal = _same_ignore_case(nat_a, nat_b)
            signals.append(_Signal("nationality", 1.0 if equal else 0.0, cfg.nationality_weight, equal))

        if a.residential_address is not None and b.residential_address is not None:
            similarity = address_similarity(a.residential_address, b.residential_address)
            signals.append(_Signal(
                "residential_address",
                similarity,
                cfg.address_weight,
                similarity >= cfg.address_match_threshold,
            ))
        return signals
