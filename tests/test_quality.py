"""
Tests for data quality scoring.

Tests cover:
- Freshness decay, source authority and completeness
- Overall quality score and its fallback
- Best-value selection, master election and corroboration boost
"""

from datetime import date, datetime, timedelta

import pytest
from freezegun import freeze_time
from hypothesis import given, strategies as st

from partyfed.domain import Address, new_organization, new_source_record
from partyfed.resolution import DataQualityService, QualityConfig
from tests.fixtures.sample_parties import FIXED_NOW, jane_doe


@pytest.fixture
def quality():
    return DataQualityService()


def _record(system, source_id, synced_at=FIXED_NOW, master=False, **payload):
    return new_source_record(system, source_id, payload, master_source=master, synced_at=synced_at)


def _legal_name(record):
    return record.payload.get("legal_name")


def _complete_organization(**kwargs):
    return new_organization(
        "Acme Holdings LLC",
        registration_number="DE-4411",
        jurisdiction="DE",
        incorporation_date=date(1999, 3, 1),
        industry_code="522110",
        phone_number="+49 30 1234",
        email="info@acme.example",
        lei="529900T8BM49AURSDO55",
        website="https://acme.example",
        tier="1",
        registered_address=Address(city="Berlin", country_code="DE"),
        **kwargs,
    )


class TestFreshness:
    """Test exponential freshness decay."""

    @freeze_time("2024-01-15 10:30:00")
    def test_decay_against_current_time(self, quality):
        assert quality.freshness(FIXED_NOW) == pytest.approx(1.0)
        assert quality.freshness(FIXED_NOW - timedelta(days=180)) == pytest.approx(0.5)
        assert quality.freshness(FIXED_NOW - timedelta(days=360)) == pytest.approx(0.25)

    def test_unknown_sync_time(self, quality):
        assert quality.freshness(None) == pytest.approx(0.1)

    def test_future_sync_counts_as_now(self, quality):
        assert quality.freshness(FIXED_NOW + timedelta(days=3), now=FIXED_NOW) == 1.0

    def test_naive_timestamps_are_utc(self, quality):
        naive = datetime(2023, 7, 19, 10, 30)
        assert quality.freshness(naive, now=FIXED_NOW) == pytest.approx(0.5)

    def test_custom_half_life(self):
        quality = DataQualityService(QualityConfig(freshness_half_life_days=30))
        assert quality.freshness(FIXED_NOW - timedelta(days=30), now=FIXED_NOW) == pytest.approx(0.5)

    @given(st.integers(0, 3650), st.integers(1, 3650))
    def test_strictly_decreasing(self, days, extra):
        quality = DataQualityService()
        newer = quality.freshness(FIXED_NOW - timedelta(days=days), now=FIXED_NOW)
        older = quality.freshness(FIXED_NOW - timedelta(days=days + extra), now=FIXED_NOW)

        assert 0.0 <= older < newer <= 1.0


class TestSourceAuthority:
    """Test source authority lookups."""

    def test_default_table(self, quality):
        assert quality.source_authority("LEI_DATABASE") == 1.0
        assert quality.source_authority("sec_edgar") == 0.95
        assert quality.source_authority("CRM") == 0.75

    def test_unknown_sources(self, quality):
        assert quality.source_authority("HOMEGROWN_FEED") == 0.3
        assert quality.source_authority(None) == 0.3

    def test_injected_table(self):
        quality = DataQualityService(QualityConfig(source_authority={"inhouse": 0.9, "UNKNOWN": 0.1}))

        assert quality.source_authority("INHOUSE") == 0.9
        assert quality.source_authority("SEC_EDGAR") == 0.1

    def test_record_quality(self, quality):
        record = _record("LEI_DATABASE", "lei-1")
        assert quality.source_record_quality(record, now=FIXED_NOW) == pytest.approx(1.0)


class TestQualityScore:
    """Test the overall quality score."""

    def test_complete_authoritative_party_beats_sparse_stale_party(self, quality):
        good = _complete_organization(source_records=[_record("SEC_EDGAR", "sec-1", master=True)])
        stale = FIXED_NOW - timedelta(days=730)
        poor = new_organization(
            "Acme",
            source_records=[_record("HOMEGROWN_FEED", "hg-1", synced_at=stale, master=True)],
        )

        good_score = quality.quality_score(good, now=FIXED_NOW)
        poor_score = quality.quality_score(poor, now=FIXED_NOW)

        assert good_score == pytest.approx(0.4 + 0.3 + 0.3 * 0.95)
        assert poor_score < good_score
        assert 0.0 <= poor_score <= 1.0

    def test_party_without_master_source(self, quality):
        party = new_organization("Acme", source_records=[_record("CRM", "crm-1")])
        assert quality.quality_score(party) == 0.5

    def test_organization_completeness(self, quality):
        assert quality.completeness(_complete_organization()) == 1.0
        assert quality.completeness(new_organization("Acme")) == pytest.approx(4 / 13)

    def test_individual_completeness(self, quality):
        assert quality.completeness(jane_doe("jane")) == pytest.approx(8 / 11)

    def test_blank_strings_are_not_populated(self, quality):
        assert quality.completeness(new_organization("Acme", email="   ")) == pytest.approx(4 / 13)

    def test_resolve_conflict(self, quality):
        good = _complete_organization(source_records=[_record("SEC_EDGAR", "sec-1", master=True)])
        bare = new_organization("Acme")

        assert quality.resolve_conflict(bare, good, now=FIXED_NOW) is good
        assert quality.resolve_conflict(good, good, now=FIXED_NOW) is good

    def test_conflict_tie_goes_to_first(self, quality):
        first = new_organization("Acme")
        second = new_organization("Acme")
        assert quality.resolve_conflict(first, second) is first

    def test_describe(self, quality):
        party = _complete_organization(source_records=[_record("SEC_EDGAR", "sec-1", master=True)])

        summary = quality.describe(party, now=FIXED_NOW)

        assert summary["master_source"] == "SEC_EDGAR"
        assert summary["authority"] == 0.95
        assert summary["completeness"] == 1.0


class TestSourceArbitration:
    """Test best-value selection, master election and confidence boost."""

    def test_select_best_value(self, quality):
        records = [
            _record("CRM", "crm-1", legal_name="Acme Holdings"),
            _record("SEC_EDGAR", "sec-1", legal_name="Acme Holdings LLC"),
            _record("LEI_DATABASE", "lei-1"),
        ]

        assert quality.select_best_value(records, _legal_name, now=FIXED_NOW) == "Acme Holdings LLC"

    def test_select_best_value_without_values(self, quality):
        assert quality.select_best_value([_record("CRM", "crm-1")], _legal_name) is None
        assert quality.select_best_value([], _legal_name) is None

    def test_elect_master_source(self, quality):
        party = new_organization(
            "Acme",
            source_records=[
                _record("CRM", "crm-1", master=True),
                _record("SEC_EDGAR", "sec-1"),
            ],
        )

        elected = quality.elect_master_source(party, now=FIXED_NOW)

        assert elected.source_system == "SEC_EDGAR"
        assert party.master_source is elected
        assert sum(1 for record in party.source_records if record.master_source) == 1

    def test_elect_master_source_without_records(self, quality):
        assert quality.elect_master_source(new_organization("Acme")) is None

    def test_single_record_gets_no_boost(self, quality):
        assert quality.confidence_boost([_record("SEC_EDGAR", "sec-1", legal_name="Acme")], _legal_name) == 1.0

    def test_corroborated_high_quality_value(self, quality):
        records = [
            _record("SEC_EDGAR", f"sec-{index}", legal_name="Acme")
            for index in range(4)
        ]
        assert quality.confidence_boost(records, _legal_name, now=FIXED_NOW) == pytest.approx(1.3)

    def test_corroborated_low_quality_value(self, quality):
        stale = FIXED_NOW - timedelta(days=365)
        records = [
            _record("WEB_SCRAPE", "web-1", synced_at=stale, legal_name="Acme"),
            _record("WEB_SCRAPE", "web-2", synced_at=stale, legal_name="Acme"),
            _record("WEB_SCRAPE", "web-3", synced_at=stale, legal_name="Acme Corp"),
        ]
        assert quality.confidence_boost(records, _legal_name, now=FIXED_NOW) == pytest.approx(1.1)

    def test_no_extracted_values(self, quality):
        records = [_record("CRM", "crm-1"), _record("CRM", "crm-2")]
        assert quality.confidence_boost(records, _legal_name) == 1.0
