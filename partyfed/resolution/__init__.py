"""
Entity Resolution Engine

This module deduplicates federated parties using:
- Similarity scorers: phonetic, Jaro-Winkler and edit-distance name scoring
  plus field-agreement address scoring
- Matching: weighted composite scores over identifiers, names and addresses
- Quality: completeness, freshness and source authority of party data
- Conflict resolution: per-source, per-field arbitration when merging
- Batch: chunked, parallel resolution of the whole active population

Example:
    >>> from partyfed.resolution import EntityMatcher, EntityResolutionService, MatchingConfig
    >>> from partyfed.store import InMemoryPartyRepository
    >>>
    >>> repository = InMemoryPartyRepository()
    >>> service = EntityResolutionService(
    ...     repository,
    ...     matcher=EntityMatcher(MatchingConfig(auto_merge_threshold=0.97)),
    ... )
    >>> result = service.resolve(incoming_party)
    >>> result.action
    <ResolutionAction.CREATED: 'CREATED'>
"""

# Import configuration
from partyfed.resolution.config import (
    BatchConfig,
    ConflictConfig,
    MatchingConfig,
    QualityConfig,
    DEFAULT_FIELD_QUALITY,
    DEFAULT_PINNED_FIELDS,
    DEFAULT_SOURCE_AUTHORITY,
)

# Import data models
from partyfed.resolution.models import (
    BatchResolutionResult,
    ChunkResult,
    Created,
    MatchAction,
    MatchCandidate,
    Merged,
    NeedsReview,
    ResolutionAction,
    ResolutionResult,
)

# Import scorers
from partyfed.resolution.similarity import (
    jaro_winkler,
    levenshtein_ratio,
    metaphone,
    name_similarity,
    normalize_legal_name,
    phonetic_similarity,
)
from partyfed.resolution.address import address_similarity, normalize_address

# Import core services
from partyfed.resolution.matching import EntityMatcher
from partyfed.resolution.quality import DataQualityService
from partyfed.resolution.conflicts import ConflictResolutionService
from partyfed.resolution.resolver import EntityResolutionService
from partyfed.resolution.batch import BatchResolutionService
from partyfed.resolution.references import EntityReferenceResolver

__all__ = [
    # Configuration
    "MatchingConfig",
    "QualityConfig",
    "ConflictConfig",
    "BatchConfig",
    "DEFAULT_SOURCE_AUTHORITY",
    "DEFAULT_FIELD_QUALITY",
    "DEFAULT_PINNED_FIELDS",
    # Data models
    "MatchAction",
    "MatchCandidate",
    "ResolutionAction",
    "ResolutionResult",
    "Created",
    "Merged",
    "NeedsReview",
    "ChunkResult",
    "BatchResolutionResult",
    # Scorers
    "name_similarity",
    "phonetic_similarity",
    "metaphone",
    "jaro_winkler",
    "levenshtein_ratio",
    "normalize_legal_name",
    "address_similarity",
    "normalize_address",
    # Services
    "EntityMatcher",
    "DataQualityService",
    "ConflictResolutionService",
    "EntityResolutionService",
    "BatchResolutionService",
    "EntityReferenceResolver",
]
