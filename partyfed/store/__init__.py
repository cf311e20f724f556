"""Party persistence contract and the in-memory arena."""

from partyfed.store.base import PartyRepository
from partyfed.store.memory import InMemoryPartyRepository

__all__ = [
    "PartyRepository",
    "InMemoryPartyRepository",
]
