"""
Tests for single-party entity resolution.

Tests cover:
- The three resolution outcomes (created, merged, needs review)
- Soft merges: lineage, source records, master election
- Manual review: approve_merge and mark_not_duplicate
"""

import pytest

from partyfed.domain import (
    DuplicateCandidate,
    DuplicateStatus,
    PartyStatus,
    new_individual,
    new_organization,
    new_source_record,
)
from partyfed.errors import IllegalStateError, InvalidInputError, PartyNotFoundError
from partyfed.resolution import Created, Merged, NeedsReview, ResolutionAction
from tests.fixtures.sample_parties import acme


@pytest.fixture
def review_pair(repository, resolution_service):
    """Resolve a near-duplicate of an existing party so it lands in review."""
    existing = repository.save(acme("existing"))
    incoming = acme("incoming", industry_code="5222")
    result = resolution_service.resolve(incoming)
    return incoming, existing, result


class TestResolve:
    """Test EntityResolutionService.resolve."""

    def test_new_party_is_created(self, repository, resolution_service, recorded_events):
        party = new_organization("Acme Holdings", confidence=0.4, party_id="new")

        result = resolution_service.resolve(party)

        assert isinstance(result, Created)
        assert result.action is ResolutionAction.CREATED
        assert result.party is party
        assert party.confidence == 1.0
        assert repository.find_by_federated_id("new") is party
        assert [e.name for e in recorded_events][-1] == "resolution.created"

    def test_duplicate_is_merged(self, repository, resolution_service, goldman_parties, recorded_events):
        incoming, existing = goldman_parties
        repository.save(existing)

        result = resolution_service.resolve(incoming)

        assert isinstance(result, Merged)
        assert result.action is ResolutionAction.MERGED
        assert result.matched_party is existing
        assert result.result_party is existing
        assert incoming.status is PartyStatus.MERGED
        assert repository.find_by_federated_id(incoming.id) is incoming
        lineage = existing.merged_from
        assert len(lineage) == 1
        assert lineage[0].source_party_id == incoming.id
        assert lineage[0].automatic is True
        assert lineage[0].confidence_score == 1.0
        assert "merge.complete" in [e.name for e in recorded_events]

    def test_near_duplicate_needs_review(self, review_pair, repository, recorded_events):
        incoming, existing, result = review_pair

        assert isinstance(result, NeedsReview)
        assert result.action is ResolutionAction.NEEDS_REVIEW
        assert result.matched_party is existing
        assert result.score == pytest.approx(0.88)
        assert incoming.status is PartyStatus.UNDER_REVIEW
        assert repository.find_by_federated_id(incoming.id) is incoming

        [candidate] = incoming.duplicate_candidates
        assert candidate.candidate_party_id == existing.id
        assert candidate.resolution_status is DuplicateStatus.NEEDS_REVIEW
        assert "registration_number" in candidate.matching_fields

    def test_review_event(self, repository, resolution_service, recorded_events):
        repository.save(acme("existing"))

        resolution_service.resolve(acme("incoming", industry_code="5222"))

        [event] = [e for e in recorded_events if e.name == "review.queued"]
        assert event.payload["candidate_party_id"] == "existing"

    def test_explicit_pool(self, repository, resolution_service, goldman_parties):
        incoming, existing = goldman_parties
        repository.save(existing)

        result = resolution_service.resolve(incoming, pool=[])

        assert isinstance(result, Created)
        assert existing.merged_from == []

    def test_merged_parties_never_match(self, repository, resolution_service, goldman_parties):
        incoming, existing = goldman_parties
        existing.status = PartyStatus.MERGED

        result = resolution_service.resolve(incoming, pool=[existing])

        assert isinstance(result, Created)

    def test_none_party_rejected(self, resolution_service):
        with pytest.raises(InvalidInputError):
            resolution_service.resolve(None)


class TestMerge:
    """Test EntityResolutionService.merge."""

    def test_records_are_copied_and_master_kept(self, resolution_service):
        target_master = new_source_record("COMMERCIAL_BANKING", "cb-1", master_source=True)
        source_master = new_source_record("KYC_SYSTEM", "kyc-1", master_source=True)
        target = new_organization("Acme Holdings", source_records=[target_master], party_id="target")
        source = new_organization("Acme Holdings LLC", source_records=[source_master], party_id="source")

        merged = resolution_service.merge(source, target, 0.9, automatic=True)

        assert merged is target
        assert [r.source_id for r in target.source_records] == ["cb-1", "kyc-1"]
        assert target.master_source.source_id == "cb-1"
        assert source.source_records == [source_master]
        # KYC_SYSTEM outranks COMMERCIAL_BANKING for legal_name
        assert target.attributes.legal_name == "Acme Holdings LLC"

    def test_master_elected_when_target_has_none(self, resolution_service):
        target = new_organization("Acme", party_id="target")
        source = new_organization(
            "Acme",
            party_id="source",
            source_records=[
                new_source_record("CRM", "crm-1"),
                new_source_record("LEI_DATABASE", "lei-1"),
            ],
        )

        resolution_service.merge(source, target, 0.97, automatic=True)

        assert target.master_source.source_system == "LEI_DATABASE"

    def test_target_without_master_loses_to_incoming_kyc_values(self, resolution_service):
        target = new_organization("Acme Holdngs", party_id="target")
        source = new_organization(
            "Acme Holdings Inc",
            party_id="source",
            source_records=[new_source_record("KYC_SYSTEM", "kyc-1", master_source=True)],
        )

        resolution_service.merge(source, target, 0.96, automatic=True)

        assert target.attributes.legal_name == "Acme Holdings Inc"
        assert target.master_source.source_system == "KYC_SYSTEM"

    def test_confidence_takes_maximum(self, resolution_service):
        target = new_organization("Acme", party_id="target", confidence=0.6)
        source = new_organization("Acme", party_id="source")

        resolution_service.merge(source, target, 0.8, automatic=True)

        assert target.confidence == 0.8

    def test_repeated_merge_appends_lineage(self, resolution_service):
        target = new_organization("Acme", party_id="target")
        source = new_organization(
            "Acme", party_id="source", source_records=[new_source_record("CRM", "crm-1")]
        )

        resolution_service.merge(source, target, 0.96, automatic=True)
        resolution_service.merge(source, target, 0.96, automatic=True)

        assert len(target.merged_from) == 2
        assert len(target.source_records) == 2

    def test_merge_into_self_rejected(self, resolution_service):
        party = new_organization("Acme", party_id="same")
        with pytest.raises(InvalidInputError):
            resolution_service.merge(party, party, 1.0, automatic=True)

    def test_merge_across_kinds_rejected(self, resolution_service):
        with pytest.raises(InvalidInputError):
            resolution_service.merge(
                new_individual("Jane", "Doe"), new_organization("Acme"), 1.0, automatic=False
            )


class TestManualReview:
    """Test approve_merge, mark_not_duplicate and find_duplicates."""

    def test_approve_merge(self, review_pair, resolution_service, repository):
        incoming, existing, _ = review_pair

        merged = resolution_service.approve_merge(incoming.id, existing.id, "analyst@bank")

        assert merged is existing
        assert incoming.status is PartyStatus.MERGED
        [entry] = existing.merged_from
        assert entry.automatic is False
        assert entry.approved_by == "analyst@bank"
        assert entry.merge_reason == "Manual approval"
        assert entry.confidence_score == 1.0
        [candidate] = incoming.duplicate_candidates
        assert candidate.resolution_status is DuplicateStatus.MERGED
        assert candidate.resolved_by == "analyst@bank"
        assert candidate.resolved_at is not None
        assert resolution_service.find_duplicates() == []

    def test_approve_merge_missing_party(self, review_pair, resolution_service):
        incoming, _, _ = review_pair
        with pytest.raises(PartyNotFoundError):
            resolution_service.approve_merge(incoming.id, "missing", "analyst@bank")
        with pytest.raises(PartyNotFoundError):
            resolution_service.approve_merge("missing", incoming.id, "analyst@bank")

    def test_approve_merge_twice(self, review_pair, resolution_service):
        incoming, existing, _ = review_pair
        resolution_service.approve_merge(incoming.id, existing.id, "analyst@bank")

        with pytest.raises(IllegalStateError):
            resolution_service.approve_merge(incoming.id, existing.id, "analyst@bank")

    def test_approve_merge_into_merged_target(self, review_pair, resolution_service, repository):
        incoming, existing, _ = review_pair
        existing.status = PartyStatus.MERGED

        with pytest.raises(IllegalStateError):
            resolution_service.approve_merge(incoming.id, existing.id, "analyst@bank")

    def test_mark_not_duplicate(self, review_pair, resolution_service, recorded_events):
        incoming, existing, _ = review_pair

        party = resolution_service.mark_not_duplicate(incoming.id, existing.id, "analyst@bank")

        assert party is incoming
        assert party.status is PartyStatus.ACTIVE
        [candidate] = party.duplicate_candidates
        assert candidate.resolution_status is DuplicateStatus.NOT_DUPLICATE
        assert candidate.resolved_by == "analyst@bank"
        assert recorded_events[-1].name == "review.not_duplicate"

    def test_mark_not_duplicate_keeps_review_while_pending(self, review_pair, resolution_service):
        incoming, existing, _ = review_pair
        other = acme("other")
        resolution_service.repository.save(other)
        incoming.duplicate_candidates.append(
            DuplicateCandidate(candidate_party_id=other.id, similarity_score=0.8)
        )

        resolution_service.mark_not_duplicate(incoming.id, existing.id, "analyst@bank")

        assert incoming.status is PartyStatus.UNDER_REVIEW

    def test_mark_not_duplicate_unknown_candidate(self, review_pair, resolution_service):
        incoming, _, _ = review_pair
        with pytest.raises(PartyNotFoundError):
            resolution_service.mark_not_duplicate(incoming.id, "missing", "analyst@bank")
        with pytest.raises(PartyNotFoundError):
            resolution_service.mark_not_duplicate("missing", incoming.id, "analyst@bank")

    def test_find_duplicates(self, review_pair, resolution_service):
        incoming, _, _ = review_pair

        assert resolution_service.find_duplicates() == [incoming]
        assert resolution_service.find_duplicates(0.9) == []
