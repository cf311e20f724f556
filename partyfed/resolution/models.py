"""Data models for entity resolution."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Union

from partyfed.domain.models import Party


class MatchAction(str, Enum):
    AUTO_MERGE = "AUTO_MERGE"
    MANUAL_REVIEW = "MANUAL_REVIEW"
    CREATE_NEW = "CREATE_NEW"


class ResolutionAction(str, Enum):
    CREATED = "CREATED"
    MERGED = "MERGED"
    NEEDS_REVIEW = "NEEDS_REVIEW"


@dataclass(frozen=True)
class MatchCandidate:
    """An existing party that may be the same real-world party as the incoming one.

    Attributes:
        existing_party: The pool party that was matched
        score: Composite match score (0-1)
        matching_fields: Signals that cleared their own per-field bar
        recommended_action: Action derived from ``score`` and the matcher thresholds
    """
    existing_party: Party
    score: float
    matching_fields: FrozenSet[str] = frozenset()
    recommended_action: MatchAction = MatchAction.CREATE_NEW

    def to_dict(self) -> Dict[str, Any]:
        return {
            "existing_party_id": self.existing_party.id,
            "score": self.score,
            "matching_fields": sorted(self.matching_fields),
            "recommended_action": self.recommended_action.value,
        }


@dataclass(frozen=True)
class Created:
    """The party had no candidates and was persisted as new."""
    party: Party

    @property
    def action(self) -> ResolutionAction:
        return ResolutionAction.CREATED


@dataclass(frozen=True)
class Merged:
    """The party was merged into ``matched_party``; ``result_party`` is the merge target."""
    result_party: Party
    matched_party: Party

    @property
    def action(self) -> ResolutionAction:
        return ResolutionAction.MERGED


@dataclass(frozen=True)
class NeedsReview:
    """The party was parked under review against ``matched_party``."""
    party: Party
    matched_party: Party
    score: float

    @property
    def action(self) -> ResolutionAction:
        return ResolutionAction.NEEDS_REVIEW


ResolutionResult = Union[Created, Merged, NeedsReview]


@dataclass
class ChunkResult:
    """Counters for one chunk of a batch run.

    Attributes:
        chunk_index: Position of the chunk in the batch
        chunk_size: Number of parties in the chunk
        processed: Parties resolved without error
        auto_merged: Parties merged into an existing party
        needs_review: Parties parked for manual review
        no_match_found: Parties created as new
        errors: Parties whose resolution raised
        duration_ms: Wall-clock time spent on the chunk
    """
    chunk_index: int
    chunk_size: int
    processed: int = 0
    auto_merged: int = 0
    needs_review: int = 0
    no_match_found: int = 0
    errors: int = 0
    duration_ms: float = 0.0

    def count(self, result: ResolutionResult) -> None:
        self.processed += 1
        if result.action is ResolutionAction.MERGED:
            self.auto_merged += 1
        elif result.action is ResolutionAction.NEEDS_REVIEW:
            self.needs_review += 1
        else:
            self.no_match_found += 1


@dataclass
class BatchResolutionResult:
    """Aggregated statistics for a batch resolution run.

    ``processed == auto_merged + needs_review + no_match_found``; errors are
    not included in ``processed``.
    """
    total_parties: int = 0
    processed: int = 0
    auto_merged: int = 0
    needs_review: int = 0
    no_match_found: int = 0
    errors: int = 0
    duration_seconds: float = 0.0
    parties_per_second: float = 0.0
    chunks: List[ChunkResult] = field(default_factory=list)

    @property
    def auto_merge_rate(self) -> float:
        """Percentage of processed parties that were auto-merged."""
        return self.auto_merged * 100.0 / self.processed if self.processed > 0 else 0.0

    @property
    def manual_review_rate(self) -> float:
        """Percentage of processed parties sent to manual review."""
        return self.needs_review * 100.0 / self.processed if self.processed > 0 else 0.0

    @property
    def error_rate(self) -> float:
        """Percentage of all parties whose resolution failed."""
        return self.errors * 100.0 / self.total_parties if self.total_parties > 0 else 0.0

    def add_chunk(self, chunk: ChunkResult) -> None:
        self.chunks.append(chunk)
        self.processed += chunk.processed
        self.auto_merged += chunk.auto_merged
        self.needs_review += chunk.needs_review
        self.no_match_found += chunk.no_match_found
        self.errors += chunk.errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary for serialization."""
        return {
            "total_parties": self.total_parties,
            "processed": self.processed,
            "auto_merged": self.auto_merged,
            "needs_review": self.needs_review,
            "no_match_found": self.no_match_found,
            "errors": self.errors,
            "duration_seconds": self.duration_seconds,
            "parties_per_second": self.parties_per_second,
            "auto_merge_rate": self.auto_merge_rate,
            "manual_review_rate": self.manual_review_rate,
            "error_rate": self.error_rate,
            "chunk_count": len(self.chunks),
        }

    def __str__(self) -> str:
        return (
            f"BatchResolutionResult(total={self.total_parties}, processed={self.processed}, "
            f"auto_merged={self.auto_merged} ({self.auto_merge_rate:.1f}%), "
            f"needs_review={self.needs_review} ({self.manual_review_rate:.1f}%), "
            f"no_match={self.no_match_found}, errors={self.errors} ({self.error_rate:.1f}%), "
            f"duration={self.duration_seconds:.2f}s, throughput={self.parties_per_second:.1f} parties/sec)"
        )
