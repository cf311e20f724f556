"""Configuration for the entity resolution engine."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from partyfed.errors import InvalidInputError

DEFAULT_SOURCE_AUTHORITY: Mapping[str, float] = MappingProxyType({
    # Regulatory and official registries
    "LEI_DATABASE": 1.0,
    "SEC_EDGAR": 0.95,
    "IRS": 0.95,
    "STATE_REGISTRY": 0.90,
    # Verified onboarding
    "CUSTOMER_ONBOARDING": 0.85,
    "KYC_VERIFICATION": 0.85,
    # Internal operational systems
    "CRM": 0.75,
    "CORE_BANKING": 0.75,
    "LOAN_ORIGINATION": 0.70,
    # Commercial data providers
    "DUN_AND_BRADSTREET": 0.65,
    "EXPERIAN": 0.65,
    "BLOOMBERG": 0.65,
    # Unverified
    "PUBLIC_RECORDS": 0.50,
    "WEB_SCRAPE": 0.40,
    "UNKNOWN": 0.30,
})

DEFAULT_FIELD_QUALITY: Mapping[str, Mapping[str, float]] = MappingProxyType({
    "COMMERCIAL_BANKING": MappingProxyType({
        "legal_name": 0.95,
        "registered_address": 0.98,
        "industry": 0.70,
        "industry_code": 0.70,
        "risk_rating": 0.85,
    }),
    "CAPITAL_MARKETS": MappingProxyType({
        "legal_name": 0.90,
        "risk_rating": 0.95,
        "lei": 0.99,
        "industry": 0.80,
        "industry_code": 0.80,
    }),
    "KYC_SYSTEM": MappingProxyType({
        "legal_name": 0.99,
        "lei": 1.0,
        "registration_number": 0.99,
        "jurisdiction": 0.99,
        "tax_id": 0.99,
        "aml_status": 0.99,
    }),
})

DEFAULT_PINNED_FIELDS: Mapping[str, str] = MappingProxyType({
    "lei": "KYC_SYSTEM",
    "risk_rating": "CAPITAL_MARKETS",
})


def _check_unit(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise InvalidInputError(f"{name} must be within [0, 1], got {value}")


@dataclass(frozen=True)
class MatchingConfig:
    """Thresholds and signal weights for the entity matcher.

    Attributes:
        manual_review_threshold: Minimum composite score for a candidate to be returned
        auto_merge_threshold: Composite score at which a candidate merges without review
        name_match_threshold: Name similarity at which ``legal_name``/``full_name`` counts as matching
        address_match_threshold: Address similarity at which the address counts as matching
        lei_weight: Weight of the exact LEI signal
        registration_weight: Weight of registration number + jurisdiction
        name_weight: Weight of legal-name similarity
        jurisdiction_weight: Weight of jurisdiction equality
        industry_weight: Weight of industry code equality
        address_weight: Weight of registered/residential address similarity
        national_id_weight: Weight of exact national id (individuals)
        date_of_birth_weight: Weight of exact date of birth (individuals)
        nationality_weight: Weight of nationality equality (individuals)
    """
    manual_review_threshold: float = 0.75
    auto_merge_threshold: float = 0.95
    name_match_threshold: float = 0.85
    address_match_threshold: float = 0.85
    lei_weight: float = 1.0
    registration_weight: float = 0.9
    name_weight: float = 0.8
    jurisdiction_weight: float = 0.5
    industry_weight: float = 0.3
    address_weight: float = 0.4
    national_id_weight: float = 1.0
    date_of_birth_weight: float = 0.7
    nationality_weight: float = 0.3

    def __post_init__(self) -> None:
        _check_unit("manual_review_threshold", self.manual_review_threshold)
        _check_unit("auto_merge_threshold", self.auto_merge_threshold)
        if self.auto_merge_threshold < self.manual_review_threshold:
            raise InvalidInputError("auto_merge_threshold must not be below manual_review_threshold")


@dataclass(frozen=True)
class QualityConfig:
    """Weights for party quality scoring.

    Attributes:
        source_authority: Authority per source system; unknown systems use ``UNKNOWN``
        completeness_weight: Share of completeness in the quality score
        freshness_weight: Share of freshness in the quality score
        authority_weight: Share of source authority in the quality score
        freshness_half_life_days: Days after which freshness halves
        unknown_freshness: Freshness when the sync time is unknown
        no_master_quality: Quality of a party without a master source
    """
    source_authority: Mapping[str, float] = field(default_factory=lambda: DEFAULT_SOURCE_AUTHORITY)
    completeness_weight: float = 0.4
    freshness_weight: float = 0.3
    authority_weight: float = 0.3
    freshness_half_life_days: float = 180.0
    unknown_freshness: float = 0.1
    no_master_quality: float = 0.5

    def __post_init__(self) -> None:
        if self.freshness_half_life_days <= 0:
            raise InvalidInputError("freshness_half_life_days must be positive")
        for system, authority in self.source_authority.items():
            _check_unit(f"source_authority[{system}]", authority)
        # Lookups are case-insensitive on the system name.
        object.__setattr__(
            self,
            "source_authority",
            MappingProxyType({key.upper(): value for key, value in self.source_authority.items()}),
        )


@dataclass(frozen=True)
class ConflictConfig:
    """Field-level source quality used when merging conflicting values.

    Attributes:
        field_quality: Quality per source system, per field
        pinned_fields: Fields whose value always comes from one named source
        unknown_source_quality: Quality for a source missing from ``field_quality``
        missing_source_quality: Quality when no source is given at all
        aml_min_quality: Minimum source quality to accept an AML status
        specific_industry_code_length: Codes longer than this are considered more specific
    """
    field_quality: Mapping[str, Mapping[str, float]] = field(default_factory=lambda: DEFAULT_FIELD_QUALITY)
    pinned_fields: Mapping[str, str] = field(default_factory=lambda: DEFAULT_PINNED_FIELDS)
    unknown_source_quality: float = 0.8
    missing_source_quality: float = 0.5
    aml_min_quality: float = 0.85
    specific_industry_code_length: int = 4

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "field_quality",
            MappingProxyType({
                source: MappingProxyType(dict(fields))
                for source, fields in self.field_quality.items()
            }),
        )
        object.__setattr__(self, "pinned_fields", MappingProxyType(dict(self.pinned_fields)))


@dataclass(frozen=True)
class BatchConfig:
    """Configuration for the batch resolution pipeline.

    Attributes:
        chunk_size: Parties per chunk
        max_workers: Size of the worker pool processing chunks
    """
    chunk_size: int = 1000
    max_workers: int = 10

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise InvalidInputError("chunk_size must be at least 1")
        if self.max_workers < 1:
            raise InvalidInputError("max_workers must be at least 1")
