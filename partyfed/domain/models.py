"""Domain records for federated parties.

A :class:`Party` is a tagged variant: ``party_type`` selects which attribute
record it carries (:class:`OrganizationAttributes` for organizations and legal
entities, :class:`IndividualAttributes` for people). Merge lineage and review
candidates are stored as id-keyed records so parties never hold references to
each other.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from partyfed.errors import InvalidInputError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PartyType(str, Enum):
    ORGANIZATION = "ORGANIZATION"
    LEGAL_ENTITY = "LEGAL_ENTITY"
    INDIVIDUAL = "INDIVIDUAL"


class PartyStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    MERGED = "MERGED"
    DUPLICATE = "DUPLICATE"
    UNDER_REVIEW = "UNDER_REVIEW"
    PENDING_DELETION = "PENDING_DELETION"
    PLACEHOLDER = "PLACEHOLDER"


class DuplicateStatus(str, Enum):
    PENDING = "PENDING"
    MERGED = "MERGED"
    NOT_DUPLICATE = "NOT_DUPLICATE"
    NEEDS_REVIEW = "NEEDS_REVIEW"


@dataclass(frozen=True, slots=True)
class Address:
    """Postal address as delivered by a source system (unnormalized)."""

    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state_province: Optional[str] = None
    postal_code: Optional[str] = None
    country_code: Optional[str] = None


@dataclass(frozen=True, slots=True)
class OrganizationAttributes:
    """Matching and profile attributes for organizations and legal entities."""

    legal_name: Optional[str] = None
    name: Optional[str] = None
    lei: Optional[str] = None
    registration_number: Optional[str] = None
    jurisdiction: Optional[str] = None
    industry_code: Optional[str] = None
    industry: Optional[str] = None
    incorporation_date: Optional[date] = None
    tier: Optional[str] = None
    risk_rating: Optional[str] = None
    aml_status: Optional[str] = None
    website: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    tax_id: Optional[str] = None
    employee_count: Optional[int] = None
    annual_revenue: Optional[float] = None
    registered_address: Optional[Address] = None


@dataclass(frozen=True, slots=True)
class IndividualAttributes:
    """Matching and profile attributes for natural persons."""

    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    nationality: Optional[str] = None
    residency: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    national_id: Optional[str] = None
    passport_number: Optional[str] = None
    residential_address: Optional[Address] = None
    pep_status: bool = False

    @property
    def full_name(self) -> str:
        parts = (self.first_name, self.middle_name, self.last_name)
        return " ".join(part.strip() for part in parts if part and part.strip())


PartyAttributes = Union[OrganizationAttributes, IndividualAttributes]

_ATTRIBUTES_BY_TYPE = {
    PartyType.ORGANIZATION: OrganizationAttributes,
    PartyType.LEGAL_ENTITY: OrganizationAttributes,
    PartyType.INDIVIDUAL: IndividualAttributes,
}


def attributes_class_for(party_type: PartyType) -> type:
    return _ATTRIBUTES_BY_TYPE[party_type]


def payload_checksum(payload: Mapping[str, Any]) -> str:
    """Return a stable sha256 over the canonical JSON form of ``payload``."""
    canonical = json.dumps(payload, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class SourceRecord:
    """One source system's snapshot of a party.

    Attributes:
        source_system: Identifier of the producing system (e.g. ``KYC_SYSTEM``)
        source_id: The party's key inside that system
        payload: Raw attribute payload as received
        checksum: sha256 of the canonical payload, used for change detection
        synced_at: When the payload was last synchronized
        version: Incremented on every payload change
        quality_score: Default quality for every field of this record
        field_quality: Per-field overrides of ``quality_score``
        master_source: Whether this record is the party's authoritative source
    """

    source_system: str
    source_id: str
    payload: Mapping[str, Any]
    checksum: str
    synced_at: Optional[datetime]
    version: int = 1
    quality_score: float = 0.8
    field_quality: Mapping[str, float] = field(default_factory=dict)
    master_source: bool = False

    def field_quality_for(self, field_name: str) -> float:
        return self.field_quality.get(field_name, self.quality_score)

    def has_changed(self, payload: Mapping[str, Any]) -> bool:
        return payload_checksum(payload) != self.checksum

    def with_new_payload(
        self, payload: Mapping[str, Any], *, now: Optional[datetime] = None
    ) -> "SourceRecord":
        return replace(
            self,
            payload=dict(payload),
            checksum=payload_checksum(payload),
            synced_at=now or utcnow(),
            version=self.version + 1,
        )


@dataclass(slots=True)
class PartyMerge:
    """Audit entry recording that ``source_party_id`` was merged into the owner."""

    source_party_id: str
    merge_date: datetime
    confidence_score: float
    automatic: bool
    merge_reason: str = "Entity resolution"
    approved_by: Optional[str] = None


@dataclass(slots=True)
class DuplicateCandidate:
    """A pending (or resolved) review link from the owning party to another."""

    candidate_party_id: str
    similarity_score: float
    matching_fields: Tuple[str, ...] = ()
    resolution_status: DuplicateStatus = DuplicateStatus.PENDING
    identified_at: datetime = field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    notes: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.resolution_status in (DuplicateStatus.PENDING, DuplicateStatus.NEEDS_REVIEW)

    def resolve(self, status: DuplicateStatus, resolved_by: Optional[str], *, now: Optional[datetime] = None) -> None:
        self.resolution_status = status
        self.resolved_by = resolved_by
        self.resolved_at = now or utcnow()


@dataclass(slots=True, eq=False)
class Party:
    """Canonical federated party."""

    id: str
    party_type: PartyType
    attributes: PartyAttributes
    status: PartyStatus = PartyStatus.ACTIVE
    confidence: float = 1.0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    source_records: List[SourceRecord] = field(default_factory=list)
    merged_from: List[PartyMerge] = field(default_factory=list)
    duplicate_candidates: List[DuplicateCandidate] = field(default_factory=list)

    def __post_init__(self) -> None:
        expected = _ATTRIBUTES_BY_TYPE.get(self.party_type)
        if expected is None or not isinstance(self.attributes, expected):
            raise InvalidInputError(
                f"{self.party_type} party requires {getattr(expected, '__name__', 'known')} attributes, "
                f"got {type(self.attributes).__name__}"
            )
        if not 0.0 <= self.confidence <= 1.0:
            raise InvalidInputError(f"confidence must be within [0, 1], got {self.confidence}")

    def __repr__(self) -> str:
        return f"Party(id={self.id!r}, type={self.party_type.value}, status={self.status.value}, name={self.display_name!r})"

    @property
    def display_name(self) -> str:
        if self.party_type is PartyType.INDIVIDUAL:
            return self.attributes.full_name
        return self.attributes.legal_name or self.attributes.name or ""

    @property
    def master_source(self) -> Optional[SourceRecord]:
        for record in self.source_records:
            if record.master_source:
                return record
        return None

    @property
    def pending_duplicates(self) -> List[DuplicateCandidate]:
        return [candidate for candidate in self.duplicate_candidates if candidate.is_pending]

    def add_source_record(self, record: SourceRecord) -> SourceRecord:
        """Attach ``record``, demoting it when the party already has a master.

        Returns the record as stored.
        """
        if record.master_source and self.master_source is not None:
            record = replace(record, master_source=False)
        self.source_records.append(record)
        return record

    def set_confidence(self, value: float) -> None:
        self.confidence = min(1.0, max(0.0, value))

    def mark_updated(self, now: Optional[datetime] = None) -> None:
        self.updated_at = now or utcnow()


def attribute_value(party: Party, field_name: str) -> Any:
    return getattr(party.attributes, field_name, None)


def party_summary(party: Party) -> Dict[str, Any]:
    """Summarize a party for event payloads and logs."""
    return {
        "id": party.id,
        "party_type": party.party_type.value,
        "status": party.status.value,
        "confidence": party.confidence,
        "name": party.display_name,
        "source_records": len(party.source_records),
    }
