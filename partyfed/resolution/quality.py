"""Data quality scoring for parties and their source records.

Quality has three dimensions, each in [0, 1]:

- completeness: share of applicable fields that are populated
- freshness: exponential decay on the age of the master source's last sync
- authority: trust weight of the master source's system

The source-authority table is injected through :class:`QualityConfig` so
alternate tables can be substituted per deployment or per test.
"""

import logging
import math
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Hashable, Optional, Sequence, Tuple, TypeVar

from partyfed.domain.models import Party, PartyType, SourceRecord
from partyfed.resolution.config import QualityConfig

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

SECONDS_PER_DAY = 86400.0

_BASE_FIELDS: Tuple[str, ...] = ("id", "party_type", "status")

_CRITICAL_FIELDS: Dict[PartyType, Tuple[str, ...]] = {
    PartyType.ORGANIZATION: (
        "legal_name",
        "registration_number",
        "jurisdiction",
        "incorporation_date",
        "industry_code",
        "phone_number",
        "email",
    ),
    PartyType.INDIVIDUAL: (
        "first_name",
        "last_name",
        "date_of_birth",
        "nationality",
        "email",
    ),
}
_CRITICAL_FIELDS[PartyType.LEGAL_ENTITY] = _CRITICAL_FIELDS[PartyType.ORGANIZATION]

_OPTIONAL_FIELDS: Dict[PartyType, Tuple[str, ...]] = {
    PartyType.ORGANIZATION: ("lei", "website", "tier"),
    PartyType.INDIVIDUAL: ("phone_number", "national_id", "residential_address"),
}
_OPTIONAL_FIELDS[PartyType.LEGAL_ENTITY] = _OPTIONAL_FIELDS[PartyType.ORGANIZATION]


def _populated(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class DataQualityService:
    """Scores parties and source records; arbitrates between them by quality."""

    def __init__(self, config: Optional[QualityConfig] = None):
        """Initialize the service.

        Args:
            config: QualityConfig carrying the source-authority table and weights
        """
        self.config = config or QualityConfig()
        self._decay = math.log(2) / self.config.freshness_half_life_days

    def quality_score(self, party: Party, now: Optional[datetime] = None) -> float:
        """Overall quality of ``party`` based on its master source.

        Returns:
            ``0.4 * completeness + 0.3 * freshness + 0.3 * authority`` with the
            default weights; the configured fallback (0.5) when the party has
            no master source
        """
        master = party.master_source
        if master is None:
            LOGGER.debug("No master source for party %s, using default quality", party.id)
            return self.config.no_master_quality

        cfg = self.config
        completeness = self.completeness(party)
        freshness = self.freshness(master.synced_at, now=now)
        authority = self.source_authority(master.source_system)
        score = (
            completeness * cfg.completeness_weight
            + freshness * cfg.freshness_weight
            + authority * cfg.authority_weight
        )
        LOGGER.debug(
            "Quality for party %s: overall=%.3f completeness=%.3f freshness=%.3f authority=%.3f",
            party.id, score, completeness, freshness, authority,
        )
        return min(1.0, max(0.0, score))

    def completeness(self, party: Party) -> float:
        """Fraction of base and type-specific fields that are populated."""
        total = len(_BASE_FIELDS)
        populated = sum(1 for name in _BASE_FIELDS if _populated(getattr(party, name, None)))

        for name in _CRITICAL_FIELDS[party.party_type] + _OPTIONAL_FIELDS[party.party_type]:
            total += 1
            if _populated(getattr(party.attributes, name, None)):
                populated += 1
        return populated / total

    def freshness(self, synced_at: Optional[datetime], now: Optional[datetime] = None) -> float:
        """Exponential-decay freshness: 1.0 now, 0.5 at the half-life, 0.25 at twice that.

        Unknown sync times score the configured floor (0.1). Timestamps in
        the future count as age zero.
        """
        if synced_at is None:
            return self.config.unknown_freshness
        reference = _as_utc(now) if now is not None else datetime.now(timezone.utc)
        age_days = max(0.0, (reference - _as_utc(synced_at)).total_seconds() / SECONDS_PER_DAY)
        return min(1.0, max(0.0, math.exp(-self._decay * age_days)))

    def source_authority(self, source_system: Optional[str]) -> float:
        table = self.config.source_authority
        unknown = table.get("UNKNOWN", 0.3)
        if not source_system:
            return unknown
        return table.get(source_system.strip().upper(), unknown)

    def source_record_quality(self, record: SourceRecord, now: Optional[datetime] = None) -> float:
        """``0.6 * authority + 0.4 * freshness`` for one source record."""
        authority = self.source_authority(record.source_system)
        freshness = self.freshness(record.synced_at, now=now)
        return authority * 0.6 + freshness * 0.4

    def resolve_conflict(self, party1: Party, party2: Party, now: Optional[datetime] = None) -> Party:
        """Return whichever party has the higher quality; ties go to ``party1``."""
        score1 = self.quality_score(party1, now=now)
        score2 = self.quality_score(party2, now=now)
        LOGGER.info(
            "Resolving conflict: %s (%.3f) vs %s (%.3f)", party1.id, score1, party2.id, score2
        )
        return party1 if score1 >= score2 else party2

    def select_best_value(
        self,
        records: Sequence[SourceRecord],
        extractor: Callable[[SourceRecord], Optional[T]],
        now: Optional[datetime] = None,
    ) -> Optional[T]:
        """Return the value supplied by the highest-quality record that has one.

        Records whose extractor yields ``None`` are ignored; ties keep the
        earlier record.
        """
        best_value: Optional[T] = None
        best_quality = -1.0
        for record in records:
            value = extractor(record)
            if value is None:
                continue
            quality = self.source_record_quality(record, now=now)
            if quality > best_quality:
                best_value, best_quality = value, quality
        return best_value

    def elect_master_source(self, party: Party, now: Optional[datetime] = None) -> Optional[SourceRecord]:
        """Mark the highest-quality source record as the party's only master.

        Returns:
            The elected record, or None when the party has no source records
        """
        if not party.source_records:
            return None
        qualities = [self.source_record_quality(record, now=now) for record in party.source_records]
        winner = qualities.index(max(qualities))
        party.source_records = [
            replace(record, master_source=(index == winner))
            for index, record in enumerate(party.source_records)
        ]
        return party.source_records[winner]

    def confidence_boost(
        self,
        records: Sequence[SourceRecord],
        extractor: Callable[[SourceRecord], Optional[Hashable]],
        now: Optional[datetime] = None,
    ) -> float:
        """Confidence multiplier in [1.0, 1.5] from sources agreeing on a value.

        The most corroborated value earns +0.1 per agreeing source beyond the
        first (at most +0.2), and a further +0.1 when its best source quality
        exceeds 0.8. A single source, or no extracted values, gives 1.0.
        """
        if len(records) <= 1:
            return 1.0

        counts: Dict[Hashable, int] = {}
        best_quality: Dict[Hashable, float] = {}
        for record in records:
            value = extractor(record)
            if value is None:
                continue
            counts[value] = counts.get(value, 0) + 1
            quality = self.source_record_quality(record, now=now)
            best_quality[value] = max(best_quality.get(value, 0.0), quality)

        if not counts:
            return 1.0

        # Most sources first, then best quality.
        agreed = max(counts, key=lambda value: (counts[value], best_quality[value]))
        count_boost = min(counts[agreed] - 1, 2) * 0.1
        quality_boost = 0.1 if best_quality[agreed] > 0.8 else 0.0
        return min(1.5, 1.0 + count_boost + quality_boost)

    def describe(self, party: Party, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Break the quality score of ``party`` into its dimensions."""
        master = party.master_source
        return {
            "party_id": party.id,
            "quality": self.quality_score(party, now=now),
            "completeness": self.completeness(party),
            "freshness": self.freshness(master.synced_at, now=now) if master else None,
            "authority": self.source_authority(master.source_system) if master else None,
            "master_source": master.source_system if master else None,
        }
