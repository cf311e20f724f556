"""Utility functions for entity resolution."""

from typing import Any, Dict, List, Sequence, Tuple, TypeVar

import numpy as np

from partyfed.observability import get_event_recorder

ENTITY_RESOLUTION_RECORDER = get_event_recorder("entity_resolution")

T = TypeVar("T")


def _record_resolution_event(name: str, payload: Dict[str, Any]) -> None:
    """Record an entity resolution event."""
    ENTITY_RESOLUTION_RECORDER.record(name=name, payload=payload)


def weighted_average(signals: Sequence[Tuple[float, float]]) -> float:
    """Weighted mean of ``(score, weight)`` pairs.

    Args:
        signals: Signal scores with their weights; weights must be positive

    Returns:
        The weighted mean, or 0.0 when there are no signals
    """
    if not signals:
        return 0.0
    scores = np.fromiter((score for score, _ in signals), dtype=float, count=len(signals))
    weights = np.fromiter((weight for _, weight in signals), dtype=float, count=len(signals))
    if weights.sum() <= 0:
        return 0.0
    return float(np.clip(np.average(scores, weights=weights), 0.0, 1.0))


def chunk_list(items: Sequence[T], chunk_size: int) -> List[List[T]]:
    """Split ``items`` into consecutive chunks of at most ``chunk_size``.

    >>> chunk_list([1, 2, 3, 4, 5], 2)
    [[1, 2], [3, 4], [5]]
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")
    return [list(items[i:i + chunk_size]) for i in range(0, len(items), chunk_size)]
