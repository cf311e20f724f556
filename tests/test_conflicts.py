"""Tests for field-level conflict resolution."""

import pytest

from partyfed.domain import new_individual, new_organization, new_source_record
from partyfed.errors import InvalidInputError
from partyfed.resolution import ConflictConfig, ConflictResolutionService
from partyfed.resolution.conflicts import HIGHEST_QUALITY


@pytest.fixture
def conflicts():
    return ConflictResolutionService()


def _source(system, source_id="1", master=False):
    return new_source_record(system, f"{system.lower()}-{source_id}", {}, master_source=master)


class TestFieldQuality:
    def test_table_lookup(self, conflicts):
        assert conflicts.field_quality("KYC_SYSTEM", "lei") == 1.0
        assert conflicts.field_quality("COMMERCIAL_BANKING", "registered_address") == 0.98

    def test_fallbacks(self, conflicts):
        assert conflicts.field_quality("CRM", "lei") == 0.8
        assert conflicts.field_quality("KYC_SYSTEM", "website") == 0.8
        assert conflicts.field_quality(None, "lei") == 0.5

    def test_master_source_for_field(self, conflicts):
        assert conflicts.master_source_for_field("lei") == "KYC_SYSTEM"
        assert conflicts.master_source_for_field("risk_rating") == "CAPITAL_MARKETS"
        assert conflicts.master_source_for_field("registered_address") == "COMMERCIAL_BANKING"
        assert conflicts.master_source_for_field("legal_name") == "KYC_SYSTEM"
        assert conflicts.master_source_for_field("website") == HIGHEST_QUALITY

    def test_injected_tables(self):
        conflicts = ConflictResolutionService(
            ConflictConfig(field_quality={"CRM": {"email": 0.95}}, pinned_fields={})
        )

        assert conflicts.field_quality("CRM", "email") == 0.95
        assert conflicts.field_quality("KYC_SYSTEM", "lei") == 0.8
        assert conflicts.master_source_for_field("lei") == HIGHEST_QUALITY


class TestMergeField:
    def test_null_coalescing(self, conflicts):
        assert conflicts.merge_field("legal_name", None, "Acme", "CRM", "KYC_SYSTEM") == "Acme"
        assert conflicts.merge_field("legal_name", "Acme", None, "CRM", "KYC_SYSTEM") == "Acme"
        assert conflicts.merge_field("legal_name", None, None, "CRM", "KYC_SYSTEM") is None

    def test_higher_quality_source_wins(self, conflicts):
        assert conflicts.merge_field(
            "legal_name", "Acme Holdings", "Acme Holdings LLC", "COMMERCIAL_BANKING", "KYC_SYSTEM"
        ) == "Acme Holdings LLC"
        assert conflicts.merge_field(
            "legal_name", "Acme Holdings LLC", "Acme Holdings", "KYC_SYSTEM", "COMMERCIAL_BANKING"
        ) == "Acme Holdings LLC"

    def test_ties_keep_existing(self, conflicts):
        assert conflicts.merge_field("website", "a.example", "b.example", "CRM", "BLOOMBERG") == "a.example"

    def test_pinned_field(self, conflicts):
        assert conflicts.merge_field("lei", "OLD", "NEW", "CAPITAL_MARKETS", "KYC_SYSTEM") == "NEW"
        assert conflicts.merge_field("lei", "OLD", "NEW", "KYC_SYSTEM", "CAPITAL_MARKETS") == "OLD"
        assert conflicts.merge_field("risk_rating", "LOW", "HIGH", "KYC_SYSTEM", "CAPITAL_MARKETS") == "HIGH"


class TestMergeUpdates:
    def _existing(self):
        return new_organization(
            "Acme Holdings",
            industry_code="5221",
            industry="Credit",
            website="https://old.example",
            aml_status="CLEAR",
            risk_rating="LOW",
            source_records=[_source("COMMERCIAL_BANKING", master=True)],
        )

    def _updates(self):
        return new_organization(
            "Acme Holdings LLC",
            lei="529900T8BM49AURSDO55",
            industry_code="522110",
            industry="Commercial Banking",
            website="https://new.example",
            aml_status="FLAGGED",
            risk_rating="HIGH",
        )

    def test_organization_merge_from_kyc(self, conflicts):
        existing = self._existing()

        result = conflicts.merge_updates(existing, self._updates(), _source("KYC_SYSTEM"))

        assert result is existing
        attributes = existing.attributes
        assert attributes.legal_name == "Acme Holdings LLC"
        assert attributes.lei == "529900T8BM49AURSDO55"
        assert attributes.industry_code == "522110"
        assert attributes.industry == "Commercial Banking"
        assert attributes.website == "https://new.example"
        assert attributes.aml_status == "FLAGGED"
        # risk_rating is pinned to CAPITAL_MARKETS
        assert attributes.risk_rating == "LOW"

    def test_organization_merge_from_low_quality_source(self, conflicts):
        existing = self._existing()

        conflicts.merge_updates(existing, self._updates(), _source("CRM"))

        attributes = existing.attributes
        assert attributes.legal_name == "Acme Holdings"
        assert attributes.aml_status == "CLEAR"
        assert attributes.website == "https://new.example"

    def test_less_specific_industry_code_is_ignored(self, conflicts):
        existing = new_organization("Acme", industry_code="522110", industry="Commercial Banking")
        updates = new_organization("Acme", industry_code="5221", industry="Credit")

        conflicts.merge_updates(existing, updates, _source("CAPITAL_MARKETS"))

        assert existing.attributes.industry_code == "522110"
        assert existing.attributes.industry == "Commercial Banking"

    def test_individual_merge(self, conflicts):
        existing = new_individual("Jane", "Doe", email="jane@old.example", nationality="US")
        updates = new_individual("Jane", "Doe", email="jane@new.example", nationality="GB", pep_status=True)

        conflicts.merge_updates(existing, updates, None)

        assert existing.attributes.email == "jane@new.example"
        assert existing.attributes.nationality == "US"
        assert existing.attributes.pep_status is True

    def test_pep_status_is_never_cleared(self, conflicts):
        existing = new_individual("Jane", "Doe", pep_status=True)

        conflicts.merge_updates(existing, new_individual("Jane", "Doe"), None)

        assert existing.attributes.pep_status is True

    def test_mismatched_party_kinds(self, conflicts):
        with pytest.raises(InvalidInputError):
            conflicts.merge_updates(new_organization("Acme"), new_individual("Jane", "Doe"), None)
