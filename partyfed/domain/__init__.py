"""Party domain model: parties, source records and their id-keyed relationships."""

from partyfed.domain.factories import (
    new_individual,
    new_legal_entity,
    new_organization,
    new_party_id,
    new_source_record,
)
from partyfed.domain.models import (
    Address,
    DuplicateCandidate,
    DuplicateStatus,
    IndividualAttributes,
    OrganizationAttributes,
    Party,
    PartyAttributes,
    PartyMerge,
    PartyStatus,
    PartyType,
    SourceRecord,
    attribute_value,
    party_summary,
    payload_checksum,
)

__all__ = [
    # Enums
    "PartyType",
    "PartyStatus",
    "DuplicateStatus",
    # Records
    "Address",
    "OrganizationAttributes",
    "IndividualAttributes",
    "PartyAttributes",
    "SourceRecord",
    "PartyMerge",
    "DuplicateCandidate",
    "Party",
    # Helpers
    "attribute_value",
    "party_summary",
    "payload_checksum",
    # Factories
    "new_organization",
    "new_legal_entity",
    "new_individual",
    "new_source_record",
    "new_party_id",
]
