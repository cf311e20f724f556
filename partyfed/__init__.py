"""
partyfed: Party Federation Entity Resolution

Federates party records (organizations, legal entities, individuals) arriving
from disconnected source systems into one deduplicated set of canonical parties.

Main Components:
- EntityMatcher: Score a party against a pool and propose merge candidates
- EntityResolutionService: Create, auto-merge or queue a party for review
- BatchResolutionService: Resolve the whole active population in parallel chunks
- DataQualityService / ConflictResolutionService: Arbitrate between sources
- PartyRepository: Storage contract, with an in-memory implementation

Example:
    >>> from partyfed import EntityResolutionService, InMemoryPartyRepository, new_organization
    >>>
    >>> repository = InMemoryPartyRepository()
    >>> service = EntityResolutionService(repository)
    >>> party = new_organization("Goldman Sachs Group Inc", lei="5493000F4ZO33MV32P92")
    >>> result = service.resolve(party)
"""

from partyfed.configuration import (
    ConfigurationError,
    FederationConfig,
    ObservabilitySettings,
    default_config,
    load_config_from_file,
)
from partyfed.domain import (
    Address,
    DuplicateCandidate,
    DuplicateStatus,
    IndividualAttributes,
    OrganizationAttributes,
    Party,
    PartyMerge,
    PartyStatus,
    PartyType,
    SourceRecord,
    new_individual,
    new_legal_entity,
    new_organization,
    new_source_record,
)
from partyfed.errors import (
    IllegalStateError,
    InvalidInputError,
    PartyFederationError,
    PartyNotFoundError,
)
from partyfed.resolution import (
    BatchResolutionResult,
    BatchResolutionService,
    ConflictResolutionService,
    Created,
    DataQualityService,
    EntityMatcher,
    EntityReferenceResolver,
    EntityResolutionService,
    MatchAction,
    MatchCandidate,
    Merged,
    NeedsReview,
    ResolutionAction,
    address_similarity,
    name_similarity,
)
from partyfed.store import InMemoryPartyRepository, PartyRepository

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "FederationConfig",
    "ObservabilitySettings",
    "ConfigurationError",
    "default_config",
    "load_config_from_file",
    # Domain
    "Party",
    "PartyType",
    "PartyStatus",
    "Address",
    "OrganizationAttributes",
    "IndividualAttributes",
    "SourceRecord",
    "PartyMerge",
    "DuplicateCandidate",
    "DuplicateStatus",
    "new_organization",
    "new_legal_entity",
    "new_individual",
    "new_source_record",
    # Errors
    "PartyFederationError",
    "InvalidInputError",
    "PartyNotFoundError",
    "IllegalStateError",
    # Resolution
    "EntityMatcher",
    "MatchCandidate",
    "MatchAction",
    "EntityResolutionService",
    "ResolutionAction",
    "Created",
    "Merged",
    "NeedsReview",
    "BatchResolutionService",
    "BatchResolutionResult",
    "DataQualityService",
    "ConflictResolutionService",
    "EntityReferenceResolver",
    "name_similarity",
    "address_similarity",
    # Storage
    "PartyRepository",
    "InMemoryPartyRepository",
    "__version__",
]
