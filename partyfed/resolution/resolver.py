"""Single-party entity resolution: create, auto-merge or park for review."""

import logging
from typing import Iterable, List, Optional

from partyfed.domain.models import (
    DuplicateCandidate,
    DuplicateStatus,
    Party,
    PartyMerge,
    PartyStatus,
    PartyType,
    SourceRecord,
    party_summary,
    utcnow,
)
from partyfed.errors import IllegalStateError, InvalidInputError, PartyNotFoundError
from partyfed.resolution.conflicts import ConflictResolutionService
from partyfed.resolution.matching import EntityMatcher
from partyfed.resolution.models import Created, MatchAction, Merged, NeedsReview, ResolutionResult
from partyfed.resolution.quality import DataQualityService
from partyfed.resolution.utils import _record_resolution_event
from partyfed.store.base import PartyRepository

LOGGER = logging.getLogger(__name__)


class EntityResolutionService:
    """Resolves incoming parties against the active population.

    Each call to :meth:`resolve` ends in exactly one of three states:
    the party is created as new, merged into an existing party, or parked
    ``UNDER_REVIEW`` with a duplicate candidate pointing at its best match.

    No per-party lock is taken. Two callers merging into the same target at
    the same time both append their lineage; the last ``save`` wins.
    """

    def __init__(
        self,
        repository: PartyRepository,
        matcher: Optional[EntityMatcher] = None,
        conflicts: Optional[ConflictResolutionService] = None,
        quality: Optional[DataQualityService] = None,
    ):
        """Initialize the service.

        Args:
            repository: Party store used for pools, lookups and persistence
            matcher: EntityMatcher (defaults used if None)
            conflicts: ConflictResolutionService applied when merging attributes
            quality: DataQualityService used to elect a master source after merges
        """
        self.repository = repository
        self.matcher = matcher or EntityMatcher()
        self.conflicts = conflicts or ConflictResolutionService()
        self.quality = quality or DataQualityService()

    def resolve(self, party: Party, pool: Optional[Iterable[Party]] = None) -> ResolutionResult:
        """Resolve ``party`` against ``pool``.

        Args:
            party: Incoming party
            pool: Parties to match against; all ACTIVE parties when omitted

        Returns:
            Created, Merged or NeedsReview
        """
        if party is None:
            raise InvalidInputError("party is required for resolution")

        LOGGER.info("Starting entity resolution for %r", party)
        if pool is None:
            pool = self.repository.find_by_status(PartyStatus.ACTIVE)
        existing = [candidate for candidate in pool if candidate.id != party.id]

        candidates = self.matcher.find_candidates(party, existing)
        if not candidates:
            party.set_confidence(1.0)
            saved = self.repository.save(party)
            LOGGER.info("No matches for party %s, created as new", party.id)
            _record_resolution_event("resolution.created", party_summary(saved))
            return Created(party=saved)

        best = candidates[0]
        LOGGER.info(
            "Best match for party %s: %s (score=%.3f, action=%s)",
            party.id, best.existing_party.id, best.score, best.recommended_action.value,
        )

        if best.recommended_action is MatchAction.AUTO_MERGE:
            merged = self.merge(party, best.existing_party, best.score, automatic=True)
            return Merged(result_party=merged, matched_party=best.existing_party)

        party.duplicate_candidates.append(DuplicateCandidate(
            candidate_party_id=best.existing_party.id,
            similarity_score=best.score,
            matching_fields=tuple(sorted(best.matching_fields)),
            resolution_status=DuplicateStatus.NEEDS_REVIEW,
        ))
        party.status = PartyStatus.UNDER_REVIEW
        party.mark_updated()
        saved = self.repository.save(party)
        _record_resolution_event(
            "review.queued",
            {
                "party_id": saved.id,
                "candidate_party_id": best.existing_party.id,
                "score": best.score,
                "matching_fields": sorted(best.matching_fields),
            },
        )
        return NeedsReview(party=saved, matched_party=best.existing_party, score=best.score)

    def merge(
        self,
        source: Party,
        target: Party,
        confidence: float,
        automatic: bool,
        approved_by: Optional[str] = None,
        reason: str = "Entity resolution",
    ) -> Party:
        """Soft-merge ``source`` into ``target``.

        The target gains a PartyMerge audit entry, copies of the source's
        records and the conflict-resolved attributes of the source. The source
        is marked MERGED and keeps its own records. Merging the same pair twice
        appends a second audit entry and the records again.

        Returns:
            The saved target
        """
        if source.id == target.id:
            raise InvalidInputError(f"cannot merge party {source.id} into itself")
        if (source.party_type is PartyType.INDIVIDUAL) != (target.party_type is PartyType.INDIVIDUAL):
            raise InvalidInputError(
                f"cannot merge {source.party_type.value} party into {target.party_type.value} party"
            )

        LOGGER.info("Merging party %s into %s", source.id, target.id)
        now = utcnow()
        target.merged_from.append(PartyMerge(
            source_party_id=source.id,
            merge_date=now,
            confidence_score=confidence,
            automatic=automatic,
            merge_reason=reason,
            approved_by=approved_by,
        ))

        # Target values are credited to the pre-merge master.
        self.conflicts.merge_updates(target, source, self._incoming_record(source))
        for record in source.source_records:
            target.add_source_record(record)
        if target.master_source is None and target.source_records:
            self.quality.elect_master_source(target)

        target.set_confidence(max(target.confidence, confidence))
        target.mark_updated(now)
        source.status = PartyStatus.MERGED
        source.mark_updated(now)

        self.repository.save(source)
        saved = self.repository.save(target)
        _record_resolution_event(
            "merge.complete",
            {
                "source_party_id": source.id,
                "target_party_id": target.id,
                "confidence": confidence,
                "automatic": automatic,
                "approved_by": approved_by,
                "source_records": len(source.source_records),
            },
        )
        return saved

    def approve_merge(self, source_id: str, target_id: str, approved_by: str) -> Party:
        """Manually approve merging ``source_id`` into ``target_id``.

        Raises:
            PartyNotFoundError: If either party does not exist
            IllegalStateError: If either party is already merged
        """
        source = self._require(source_id, "Source")
        target = self._require(target_id, "Target")
        if source.status is PartyStatus.MERGED:
            raise IllegalStateError(f"party {source_id} has already been merged")
        if target.status is PartyStatus.MERGED:
            raise IllegalStateError(f"cannot merge into party {target_id}; it has been merged")

        merged = self.merge(
            source,
            target,
            1.0,
            automatic=False,
            approved_by=approved_by,
            reason="Manual approval",
        )
        for owner, other_id in ((source, target_id), (target, source_id)):
            for candidate in owner.duplicate_candidates:
                if candidate.candidate_party_id == other_id and candidate.is_pending:
                    candidate.resolve(DuplicateStatus.MERGED, approved_by)
        self.repository.save_all([source, target])
        return merged

    def mark_not_duplicate(self, party_id: str, candidate_id: str, reviewed_by: str) -> Party:
        """Record that ``candidate_id`` is not a duplicate of ``party_id``.

        When no pending candidates remain, a party under review returns to
        ACTIVE.

        Raises:
            PartyNotFoundError: If the party or the candidate link does not exist
        """
        party = self._require(party_id, "Party")
        matching = [c for c in party.duplicate_candidates if c.candidate_party_id == candidate_id]
        if not matching:
            raise PartyNotFoundError(f"party {party_id} has no duplicate candidate {candidate_id}")

        for candidate in matching:
            candidate.resolve(DuplicateStatus.NOT_DUPLICATE, reviewed_by)
        if not party.pending_duplicates and party.status is PartyStatus.UNDER_REVIEW:
            party.status = PartyStatus.ACTIVE
        party.mark_updated()
        saved = self.repository.save(party)
        _record_resolution_event(
            "review.not_duplicate",
            {"party_id": party_id, "candidate_party_id": candidate_id, "reviewed_by": reviewed_by},
        )
        return saved

    def find_duplicates(self, threshold: Optional[float] = None) -> List[Party]:
        """Parties with pending duplicate candidates at or above ``threshold``."""
        if threshold is None:
            threshold = self.matcher.config.manual_review_threshold
        return self.repository.find_duplicate_candidates(threshold)

    def _require(self, party_id: str, label: str) -> Party:
        party = self.repository.find_by_federated_id(party_id)
        if party is None:
            raise PartyNotFoundError(f"{label} party not found: {party_id}")
        return party

    @staticmethod
    def _incoming_record(source: Party) -> Optional[SourceRecord]:
        if source.master_source is not None:
            return source.master_source
        return source.source_records[-1] if source.source_records else None
