"""Chunked parallel resolution over the whole active population."""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional

from partyfed.domain.models import Party, PartyStatus
from partyfed.resolution.config import BatchConfig
from partyfed.resolution.models import BatchResolutionResult, ChunkResult
from partyfed.resolution.resolver import EntityResolutionService
from partyfed.resolution.utils import _record_resolution_event, chunk_list
from partyfed.store.base import PartyRepository

LOGGER = logging.getLogger(__name__)


class BatchResolutionService:
    """Runs EntityResolutionService over every ACTIVE party.

    Parties are split into fixed-size chunks that a fixed-size worker pool
    processes in parallel. Inside a chunk, parties are resolved one after
    another in list order. A failure resolving one party is counted and the
    chunk moves on; a failure of a whole chunk counts as a single error.
    """

    def __init__(
        self,
        repository: PartyRepository,
        resolution_service: EntityResolutionService,
        config: Optional[BatchConfig] = None,
    ):
        """Initialize the batch service.

        Args:
            repository: Source of the active population and per-chunk pools
            resolution_service: Resolves one party at a time
            config: BatchConfig with chunk size and worker count
        """
        self.repository = repository
        self.resolution_service = resolution_service
        self.config = config or BatchConfig()
        self._coordinator = ThreadPoolExecutor(max_workers=1, thread_name_prefix="partyfed-batch")

    def __enter__(self) -> "BatchResolutionService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def shutdown(self, wait: bool = True) -> None:
        """Release the coordinator thread; runs already submitted still finish."""
        self._coordinator.shutdown(wait=wait)

    def resolve_all_parties(self) -> "Future[BatchResolutionResult]":
        """Start a batch run on the coordinator thread and return its future."""
        return self._coordinator.submit(self.run)

    def run(self) -> BatchResolutionResult:
        """Resolve every ACTIVE party and return the aggregated statistics."""
        started = time.perf_counter()
        parties = self.repository.find_by_status(PartyStatus.ACTIVE)
        chunks = chunk_list(parties, self.config.chunk_size)
        LOGGER.info(
            "Starting batch resolution: %d parties in %d chunks of up to %d (%d workers)",
            len(parties), len(chunks), self.config.chunk_size, self.config.max_workers,
        )
        _record_resolution_event(
            "batch.start",
            {"total_parties": len(parties), "chunks": len(chunks), "max_workers": self.config.max_workers},
        )

        result = BatchResolutionResult(total_parties=len(parties))
        with ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="partyfed-chunk",
        ) as pool:
            futures: Dict[Future, int] = {
                pool.submit(self._process_chunk, index, chunk): index
                for index, chunk in enumerate(chunks)
            }
            for future in as_completed(futures):
                index = futures[future]
                try:
                    chunk_result = future.result()
                except Exception as exc:
                    LOGGER.error("Chunk %d failed: %s", index, exc, exc_info=True)
                    _record_resolution_event("chunk.error", {"chunk_index": index, "error": str(exc)})
                    chunk_result = ChunkResult(chunk_index=index, chunk_size=len(chunks[index]), errors=1)
                result.add_chunk(chunk_result)

        result.chunks.sort(key=lambda chunk: chunk.chunk_index)
        result.duration_seconds = time.perf_counter() - started
        if result.duration_seconds > 0:
            result.parties_per_second = result.processed / result.duration_seconds

        LOGGER.info("Batch resolution completed: %s", result)
        _record_resolution_event("batch.complete", result.to_dict())
        return result

    def _process_chunk(self, chunk_index: int, chunk: List[Party]) -> ChunkResult:
        LOGGER.info("Processing chunk %d with %d parties", chunk_index, len(chunk))
        started = time.perf_counter()
        result = ChunkResult(chunk_index=chunk_index, chunk_size=len(chunk))

        chunk_ids = {party.id for party in chunk}
        pool = [
            party
            for party in self.repository.find_by_status(PartyStatus.ACTIVE)
            if party.id not in chunk_ids
        ]

        for party in chunk:
            try:
                outcome = self.resolution_service.resolve(party, pool=pool)
            except Exception as exc:
                result.errors += 1
                LOGGER.warning("Error resolving party %s: %s", party.id, exc, exc_info=True)
                _record_resolution_event(
                    "party.error",
                    {"chunk_index": chunk_index, "party_id": party.id, "error": str(exc)},
                )
                continue
            result.count(outcome)

        result.duration_ms = (time.perf_counter() - started) * 1000
        LOGGER.info(
            "Chunk %d completed: %d processed, %d auto-merged, %d needs review, "
            "%d no match, %d errors in %.0fms",
            chunk_index, result.processed, result.auto_merged, result.needs_review,
            result.no_match_found, result.errors, result.duration_ms,
        )
        return result
